from typing import List

from sqlalchemy.orm import Session as DBSession

from plume.utils.enums import SizeBucket
from plume.utils.samples import HistoricalSample

from .models import CompressionSample


def sample_from_row(row: CompressionSample) -> HistoricalSample:
    """Convert a database row into an immutable sample"""
    return HistoricalSample(
        input_format=row.input_format,
        output_format=row.output_format,
        size_bucket=SizeBucket(row.size_bucket),
        quality_setting=row.quality_setting,
        lossy_mode=row.lossy_mode,
        original_size=row.original_size,
        compressed_size=row.compressed_size,
        reduction_percent=row.reduction_percent,
        compression_duration_ms=row.compression_duration_ms,
        timestamp=row.timestamp,
    )


def insert_sample(db: DBSession, sample: HistoricalSample) -> int:
    """Insert a sample and return its row id"""
    row = CompressionSample(
        input_format=sample.input_format,
        output_format=sample.output_format,
        size_bucket=sample.size_bucket.value,
        quality_setting=sample.quality_setting,
        lossy_mode=sample.lossy_mode,
        original_size=sample.original_size,
        compressed_size=sample.compressed_size,
        reduction_percent=sample.reduction_percent,
        compression_duration_ms=sample.compression_duration_ms,
        timestamp=sample.timestamp,
    )
    db.add(row)
    db.commit()
    db.refresh(row)
    return row.id


def query_samples(
    db: DBSession,
    input_format: str,
    output_format: str,
    size_bucket: SizeBucket,
    min_quality: int,
    max_quality: int,
    lossy: bool,
) -> List[HistoricalSample]:
    """Get samples for a format pair and bucket within a quality range"""
    rows = (
        db.query(CompressionSample)
        .filter(
            CompressionSample.input_format == input_format,
            CompressionSample.output_format == output_format,
            CompressionSample.size_bucket == size_bucket.value,
            CompressionSample.quality_setting.between(min_quality, max_quality),
            CompressionSample.lossy_mode == lossy,
        )
        .order_by(CompressionSample.timestamp.desc())
        .all()
    )
    return [sample_from_row(row) for row in rows]


def delete_all_samples(db: DBSession) -> int:
    """Delete every sample, returns the number of deleted rows"""
    deleted = db.query(CompressionSample).delete()
    db.commit()
    return deleted


def count_samples(db: DBSession) -> int:
    """Count all recorded samples"""
    return db.query(CompressionSample).count()
