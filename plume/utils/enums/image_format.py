"""
Image formats understood by the compression core.

Format names are normalised to lowercase and 'jpg' is folded into 'jpeg'
so that historical samples and lookup tables share one key space.
"""

import os
from enum import Enum

SUPPORTED_EXTENSIONS = [".png", ".jpg", ".jpeg", ".webp"]


class ImageFormat(Enum):
    PNG = "png"
    JPEG = "jpeg"
    WEBP = "webp"

    @property
    def extension(self):
        return ".jpg" if self is ImageFormat.JPEG else f".{self.value}"

    @property
    def mime_type(self):
        return f"image/{self.value}"

    @property
    def supports_lossless(self):
        return self in (ImageFormat.PNG, ImageFormat.WEBP)

    @classmethod
    def parse(cls, value):
        """Parse 'PNG', 'jpg', '.webp' and friends; None for unknown formats"""
        if isinstance(value, ImageFormat):
            return value
        try:
            return cls(normalize_format(value))
        except ValueError:
            return None


def normalize_format(value):
    """Lowercase a format name and map jpg to jpeg"""
    if isinstance(value, ImageFormat):
        return value.value
    name = str(value or "").strip().lower().lstrip(".")
    return "jpeg" if name == "jpg" else name


def detect_image_format(filename):
    """
    Detect the image format of a file from its extension.

    Raises:
        UnsupportedImageFormatError: If the file has no extension or an unsupported one
    """
    from plume.exceptions import UnsupportedImageFormatError

    if not filename:
        raise UnsupportedImageFormatError(filename or "unnamed file", None)

    _, extension = os.path.splitext(filename)
    extension = extension.lower()

    if not extension:
        raise UnsupportedImageFormatError(filename, None)

    if extension not in SUPPORTED_EXTENSIONS:
        raise UnsupportedImageFormatError(filename, extension)

    return ImageFormat.parse(extension)


def is_supported_image(filename):
    """Check if a file has a supported image extension without raising."""
    from plume.exceptions import UnsupportedImageFormatError

    try:
        detect_image_format(filename)
        return True
    except UnsupportedImageFormatError:
        return False
