from enum import Enum


class ItemStatus(Enum):
    """Enum for image item status values."""

    # Active States
    PENDING = "pending"        # Image added and waiting for the batch to reach it (initial state)
    PROCESSING = "processing"  # Compressor running, progress bar animating

    # Terminal States
    COMPLETED = "completed"    # Compressed file written, savings known
    ERROR = "error"            # Compressor reported a failure for this image

    @property
    def is_terminal(self):
        return self in (ItemStatus.COMPLETED, ItemStatus.ERROR)
