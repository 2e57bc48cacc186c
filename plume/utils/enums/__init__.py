from .image_format import ImageFormat, normalize_format
from .item_status import ItemStatus
from .progress_phase import ProgressPhase
from .size_bucket import SizeBucket
