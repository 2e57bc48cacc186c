from dataclasses import dataclass, replace

from plume.utils.enums import ImageFormat

LOSSLESS_QUALITY_THRESHOLD = 90  # Quality at or above this encodes lossless
LOSSY_QUALITY = 80
LOSSLESS_QUALITY = 95


def clamp_quality(quality):
    return max(1, min(100, int(quality)))


@dataclass(frozen=True)
class CompressionSettings:
    """User-facing compression options for a batch."""

    quality: int = LOSSY_QUALITY
    output_format: ImageFormat = ImageFormat.WEBP
    keep_original_format: bool = False

    def __post_init__(self):
        object.__setattr__(self, 'quality', clamp_quality(self.quality))

    @property
    def lossy(self):
        return self.quality < LOSSLESS_QUALITY_THRESHOLD

    def output_format_for(self, input_format) -> ImageFormat:
        """Target format for an input, honouring keep_original_format"""
        if self.keep_original_format:
            return ImageFormat.parse(input_format) or self.output_format
        return self.output_format

    def with_quality(self, quality) -> 'CompressionSettings':
        return replace(self, quality=clamp_quality(quality))

    def toggle_lossy(self) -> 'CompressionSettings':
        """Switch between the default lossy and lossless quality presets"""
        return self.with_quality(LOSSLESS_QUALITY if self.lossy else LOSSY_QUALITY)
