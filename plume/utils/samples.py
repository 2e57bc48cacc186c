from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional

from plume.utils.enums import SizeBucket, normalize_format


@dataclass(frozen=True)
class HistoricalSample:
    """A recorded compression outcome, the unit of learning for estimates."""

    input_format: str
    output_format: str
    size_bucket: SizeBucket
    quality_setting: int
    lossy_mode: bool
    original_size: int
    compressed_size: int
    reduction_percent: float
    compression_duration_ms: Optional[int] = None
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self):
        return {
            'input_format': self.input_format,
            'output_format': self.output_format,
            'size_bucket': self.size_bucket.value,
            'quality_setting': self.quality_setting,
            'lossy_mode': self.lossy_mode,
            'original_size': self.original_size,
            'compressed_size': self.compressed_size,
            'reduction_percent': self.reduction_percent,
            'compression_duration_ms': self.compression_duration_ms,
            'timestamp': self.timestamp.isoformat(),
        }

    @classmethod
    def from_dict(cls, data):
        duration = data.get('compression_duration_ms')
        return cls(
            input_format=data['input_format'],
            output_format=data['output_format'],
            size_bucket=SizeBucket(data['size_bucket']),
            quality_setting=int(data['quality_setting']),
            lossy_mode=bool(data['lossy_mode']),
            original_size=int(data['original_size']),
            compressed_size=int(data['compressed_size']),
            reduction_percent=float(data['reduction_percent']),
            compression_duration_ms=int(duration) if duration is not None else None,
            timestamp=datetime.fromisoformat(data['timestamp']),
        )


def reduction_percent(original_size, compressed_size):
    """Size reduction in percent, negative when the output grew; 0 for empty inputs."""
    if original_size <= 0:
        return 0.0
    return (original_size - compressed_size) / original_size * 100


def create_sample(
    input_format,
    output_format,
    original_size,
    compressed_size,
    quality,
    lossy,
    duration_ms=None,
):
    """Build a sample from a finished compression, bucketing and normalising as it goes."""
    return HistoricalSample(
        input_format=normalize_format(input_format),
        output_format=normalize_format(output_format),
        size_bucket=SizeBucket.from_size(original_size),
        quality_setting=int(quality),
        lossy_mode=bool(lossy),
        original_size=int(original_size),
        compressed_size=int(compressed_size),
        reduction_percent=round(reduction_percent(original_size, compressed_size), 2),
        compression_duration_ms=int(duration_ms) if duration_ms is not None else None,
    )
