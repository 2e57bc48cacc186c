from enum import Enum

SMALL_MAX_BYTES = 1_000_000   # 1MB
MEDIUM_MAX_BYTES = 5_000_000  # 5MB


class SizeBucket(Enum):
    """Coarse size classes used to group historical samples."""

    SMALL = "small"    # < 1MB
    MEDIUM = "medium"  # 1MB - 5MB
    LARGE = "large"    # >= 5MB

    @classmethod
    def from_size(cls, size_bytes):
        if size_bytes < SMALL_MAX_BYTES:
            return cls.SMALL
        if size_bytes < MEDIUM_MAX_BYTES:
            return cls.MEDIUM
        return cls.LARGE
