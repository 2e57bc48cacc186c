"""
Size-reduction and duration estimation for image compression.

Estimates are learned from historical samples kept in an EstimationStore:
samples for the same format pair, size bucket and lossy mode, with a quality
setting near the requested one, are aggregated into a weighted mean where
closer quality settings weigh more.

When the store is empty or unreachable the service falls back to static
per-format-pair tables. Store failures never propagate out of estimate(),
estimate_duration() or record(); the UI always gets a usable number.

Confidence tiers (by matching sample count):
- 0 samples      -> 0.3 (static table)
- 1-5 samples    -> 0.4
- 6-20 samples   -> 0.6
- 21-50 samples  -> 0.8
- > 50 samples   -> 0.9
"""

from dataclasses import dataclass
from typing import List, Optional

import numpy as np
import pandas as pd

from plume.exceptions import EstimationUnavailable, PersistenceFailure
from plume.utils.enhanced_logger import log_with_context, setup_enhanced_logging
from plume.utils.enums import SizeBucket, normalize_format
from plume.utils.estimation_store import EstimationStore
from plume.utils.samples import HistoricalSample, create_sample

logger = setup_enhanced_logging()

FALLBACK_CONFIDENCE = 0.3
FALLBACK_DURATION_CONFIDENCE = 0.4

CONFIDENCE_TIERS = [
    (50, 0.9),
    (20, 0.8),
    (5, 0.6),
    (0, 0.4),
]

# Static reduction table (percent), used until real samples exist
DEFAULT_REDUCTIONS = {
    ('png', 'png'): 12.0,
    ('jpeg', 'jpeg'): 18.0,
    ('jpeg', 'webp'): 25.0,
    ('webp', 'webp'): 10.0,
}
PNG_TO_WEBP_LOSSY = 65.0
PNG_TO_WEBP_LOSSLESS = 20.0
DEFAULT_REDUCTION = 10.0

# Small files compress less efficiently, large ones slightly better
SIZE_FACTORS = {
    SizeBucket.SMALL: 0.8,
    SizeBucket.MEDIUM: 1.0,
    SizeBucket.LARGE: 1.1,
}

# Static duration table (ms) per size bucket: small / medium / large
DEFAULT_DURATIONS = {
    ('png', 'webp'): (300, 1200, 3000),
    ('png', 'png'): (800, 2500, 6000),
    ('jpeg', 'webp'): (200, 800, 2000),
    ('jpeg', 'jpeg'): (150, 500, 1200),
    ('webp', 'webp'): (250, 900, 2200),
}
DEFAULT_DURATION = (300, 1000, 2500)
LOSSLESS_WEBP_FACTOR = 1.25

MAX_DURATION_MS = 3_600_000  # Anything slower than an hour is a broken recording

# Reference combination shown in the stats summary
SUMMARY_REFERENCE = ('png', 'webp', 1_000_000, 80, True)


@dataclass(frozen=True)
class EstimationResult:
    percent: float
    ratio: float
    confidence: float
    sample_count: int
    is_learning: bool
    description: str


@dataclass(frozen=True)
class DurationEstimate:
    estimated_duration_ms: int
    confidence: float
    sample_count: int
    is_learning: bool


@dataclass(frozen=True)
class StatsSummary:
    total_compressions: int
    reference_estimate: EstimationResult


def confidence_for(sample_count: int) -> float:
    """Map a sample count onto the capped confidence tiers"""
    if sample_count <= 0:
        return FALLBACK_CONFIDENCE
    for threshold, confidence in CONFIDENCE_TIERS:
        if sample_count > threshold:
            return confidence
    return FALLBACK_CONFIDENCE


def default_reduction(input_format: str, output_format: str, lossy: bool) -> float:
    """Static reduction percent for a format pair"""
    pair = (normalize_format(input_format), normalize_format(output_format))
    if pair == ('png', 'webp'):
        return PNG_TO_WEBP_LOSSY if lossy else PNG_TO_WEBP_LOSSLESS
    return DEFAULT_REDUCTIONS.get(pair, DEFAULT_REDUCTION)


def fallback_reduction(input_format: str, output_format: str, size_bucket: SizeBucket, lossy: bool) -> float:
    """Static reduction scaled for the size bucket"""
    percent = default_reduction(input_format, output_format, lossy) * SIZE_FACTORS[size_bucket]
    return round(min(100.0, percent), 2)


def remaining_ratio(percent: float) -> float:
    """Fraction of the original size left after compression"""
    return (100 - percent) / 100


def default_duration_ms(input_format: str, output_format: str, size_bucket: SizeBucket, lossy: bool) -> int:
    """Static duration for a format pair and size bucket"""
    input_format = normalize_format(input_format)
    output_format = normalize_format(output_format)
    small, medium, large = DEFAULT_DURATIONS.get((input_format, output_format), DEFAULT_DURATION)
    duration = {
        SizeBucket.SMALL: small,
        SizeBucket.MEDIUM: medium,
        SizeBucket.LARGE: large,
    }[size_bucket]

    # Lossless WebP encoding is noticeably slower than lossy
    if output_format == 'webp' and input_format != 'webp' and not lossy:
        duration *= LOSSLESS_WEBP_FACTOR

    return int(duration)


def samples_to_frame(samples: List[HistoricalSample]) -> pd.DataFrame:
    """Load samples into a DataFrame with the columns aggregation needs"""
    return pd.DataFrame(
        [
            {
                'quality_setting': s.quality_setting,
                'reduction_percent': s.reduction_percent,
                'compression_duration_ms': s.compression_duration_ms,
            }
            for s in samples
        ],
        columns=['quality_setting', 'reduction_percent', 'compression_duration_ms'],
    )


def sanitize_reductions(df: pd.DataFrame) -> pd.DataFrame:
    """Drop unusable reduction values and clip the rest into [0, 100]"""
    df = df.dropna(subset=['reduction_percent', 'quality_setting'])
    df = df.assign(reduction_percent=df['reduction_percent'].astype(float).clip(0, 100))
    return df


def sanitize_durations(df: pd.DataFrame) -> pd.DataFrame:
    """Keep samples with a recorded, plausible duration"""
    df = df.dropna(subset=['compression_duration_ms', 'quality_setting'])
    durations = df['compression_duration_ms'].astype(float)
    return df[(durations > 0) & (durations < MAX_DURATION_MS)]


def quality_weights(df: pd.DataFrame, quality: int) -> np.ndarray:
    """Closer quality settings weigh more: 1 / (1 + distance)"""
    distance = np.abs(df['quality_setting'].to_numpy(dtype=float) - float(quality))
    return 1.0 / (1.0 + distance)


class EstimationService:
    """Predicts compression results from history, with a static fallback."""

    def __init__(self, store: EstimationStore):
        self.store = store

    def _query(self, input_format, output_format, size_bucket, quality, lossy) -> Optional[List[HistoricalSample]]:
        """Matching samples, or None when the store cannot be read"""
        try:
            return self.store.query(input_format, output_format, size_bucket, quality, lossy)
        except EstimationUnavailable as e:
            log_with_context(
                logger, 'warning', f'[EstimationService] Store unavailable, using defaults: {e}',
                input_format=input_format, output_format=output_format
            )
            return None

    def estimate(self, input_format, output_format, original_size, quality, lossy) -> EstimationResult:
        """Predict the size reduction for one compression"""
        input_format = normalize_format(input_format)
        output_format = normalize_format(output_format)
        size_bucket = SizeBucket.from_size(original_size)

        samples = self._query(input_format, output_format, size_bucket, quality, lossy)
        df = sanitize_reductions(samples_to_frame(samples)) if samples else None

        if df is None or df.empty:
            percent = fallback_reduction(input_format, output_format, size_bucket, lossy)
            return EstimationResult(
                percent=percent,
                ratio=remaining_ratio(percent),
                confidence=FALLBACK_CONFIDENCE,
                sample_count=0,
                is_learning=False,
                description=f"Default estimate ({input_format.upper()} → {output_format.upper()})",
            )

        sample_count = len(df)
        percent = float(np.average(df['reduction_percent'], weights=quality_weights(df, quality)))
        percent = round(percent, 2)

        log_with_context(
            logger, 'debug', '[EstimationService] Estimate from history',
            input_format=input_format, output_format=output_format,
            size_bucket=size_bucket.value, samples=sample_count, percent=percent
        )

        suffix = "" if sample_count == 1 else "s"
        return EstimationResult(
            percent=percent,
            ratio=remaining_ratio(percent),
            confidence=confidence_for(sample_count),
            sample_count=sample_count,
            is_learning=True,
            description=f"Based on {sample_count} similar compression{suffix}",
        )

    def estimate_duration(self, input_format, output_format, original_size, quality, lossy) -> DurationEstimate:
        """Predict how long one compression will take"""
        input_format = normalize_format(input_format)
        output_format = normalize_format(output_format)
        size_bucket = SizeBucket.from_size(original_size)

        samples = self._query(input_format, output_format, size_bucket, quality, lossy)
        df = sanitize_durations(samples_to_frame(samples)) if samples else None

        if df is None or df.empty:
            return DurationEstimate(
                estimated_duration_ms=default_duration_ms(input_format, output_format, size_bucket, lossy),
                confidence=FALLBACK_DURATION_CONFIDENCE,
                sample_count=0,
                is_learning=False,
            )

        sample_count = len(df)
        duration = np.average(
            df['compression_duration_ms'].astype(float),
            weights=quality_weights(df, quality),
        )
        return DurationEstimate(
            estimated_duration_ms=max(1, int(round(duration))),
            confidence=confidence_for(sample_count),
            sample_count=sample_count,
            is_learning=True,
        )

    def record(self, input_format, output_format, original_size, compressed_size, quality, lossy, duration_ms=None):
        """Best-effort: store a finished compression, never raises for store failures"""
        sample = create_sample(
            input_format, output_format, original_size, compressed_size, quality, lossy, duration_ms
        )
        try:
            self.store.append(sample)
        except PersistenceFailure as e:
            log_with_context(
                logger, 'warning', f'[EstimationService] Failed to record compression: {e}',
                input_format=sample.input_format, output_format=sample.output_format
            )
            return

        log_with_context(
            logger, 'debug', '[EstimationService] Recorded compression',
            input_format=sample.input_format, output_format=sample.output_format,
            size_bucket=sample.size_bucket.value, reduction=sample.reduction_percent,
            duration_ms=sample.compression_duration_ms
        )

    def reset(self):
        """Forget all learned samples. Raises PersistenceFailure if the store refuses."""
        self.store.reset_all()
        logger.info("[EstimationService] Compression history reset")

    def summary(self) -> StatsSummary:
        """Total sample count and the reference PNG → WEBP estimate"""
        try:
            total = self.store.count()
        except EstimationUnavailable as e:
            log_with_context(logger, 'warning', f'[EstimationService] Cannot count samples: {e}')
            total = 0

        return StatsSummary(
            total_compressions=total,
            reference_estimate=self.estimate(*SUMMARY_REFERENCE),
        )
