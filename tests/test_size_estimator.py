"""Tests for the estimation service."""

import pytest

from plume.exceptions import PersistenceFailure
from plume.utils.enums import SizeBucket
from plume.utils.size_estimator import (
    FALLBACK_CONFIDENCE,
    EstimationService,
    confidence_for,
    default_duration_ms,
    default_reduction,
    fallback_reduction,
)
from plume.utils.estimation_store import SqlEstimationStore

from conftest import UnreachableStore

PNG_2MB = ("png", "webp", 2_000_000, 80, True)


def record_png(estimator, compressed_size, quality=80, lossy=True, duration_ms=400, original_size=2_000_000):
    estimator.record("png", "webp", original_size, compressed_size, quality, lossy, duration_ms)


class TestFallbackEstimates:
    """Test estimates without history."""

    def test_zero_samples_uses_static_table(self, estimator):
        """Test that an empty history returns the low-confidence default."""
        result = estimator.estimate(*PNG_2MB)

        assert result.percent == 65.0
        assert result.ratio == pytest.approx(0.35)
        assert result.confidence < 0.5
        assert result.confidence == FALLBACK_CONFIDENCE
        assert result.sample_count == 0
        assert result.is_learning is False
        assert result.description == "Default estimate (PNG → WEBP)"

    def test_static_reduction_table(self):
        """Test the per format pair defaults."""
        assert default_reduction("png", "webp", True) == 65.0
        assert default_reduction("png", "webp", False) == 20.0
        assert default_reduction("jpg", "webp", True) == 25.0
        assert default_reduction("png", "png", True) == 12.0
        assert default_reduction("jpeg", "jpeg", False) == 18.0
        assert default_reduction("webp", "webp", True) == 10.0
        assert default_reduction("webp", "png", True) == 10.0

    def test_static_duration_table(self):
        """Test the per format pair and bucket duration defaults."""
        assert default_duration_ms("png", "webp", SizeBucket.MEDIUM, True) == 1200
        assert default_duration_ms("png", "webp", SizeBucket.MEDIUM, False) == 1500
        assert default_duration_ms("png", "png", SizeBucket.LARGE, False) == 6000
        assert default_duration_ms("jpeg", "jpeg", SizeBucket.SMALL, True) == 150
        assert default_duration_ms("webp", "webp", SizeBucket.SMALL, False) == 250
        assert default_duration_ms("webp", "png", SizeBucket.MEDIUM, True) == 1000

    def test_unreachable_store_never_raises(self):
        """Test that a dead store still yields usable estimates."""
        estimator = EstimationService(UnreachableStore())

        result = estimator.estimate(*PNG_2MB)
        duration = estimator.estimate_duration(*PNG_2MB)

        assert result.percent == 65.0
        assert result.is_learning is False
        assert duration.estimated_duration_ms == 1200
        assert duration.is_learning is False

    def test_unopenable_database_uses_defaults(self, tmp_path):
        """Test that a SQL store on a directory path still yields usable estimates."""
        estimator = EstimationService(SqlEstimationStore(f"sqlite:///{tmp_path}"))

        result = estimator.estimate(*PNG_2MB)
        estimator.record("png", "webp", 2_000_000, 1_000_000, 80, True, 400)

        assert result.percent == 65.0
        assert result.is_learning is False
        assert estimator.summary().total_compressions == 0

    def test_fallback_scaled_by_size_bucket(self, estimator):
        """Test that small files expect less reduction and large files more."""
        small = estimator.estimate("png", "webp", 500_000, 80, True)
        large = estimator.estimate("png", "webp", 6_000_000, 80, True)

        assert small.percent == 52.0
        assert large.percent == 71.5
        assert fallback_reduction("jpeg", "webp", SizeBucket.SMALL, True) == 20.0
        assert fallback_reduction("jpeg", "webp", SizeBucket.MEDIUM, True) == 25.0
        assert fallback_reduction("png", "png", SizeBucket.LARGE, False) == pytest.approx(13.2)


class TestRatio:
    """Test the size ratio reported with each estimate."""

    def test_fallback_ratio_is_remaining_fraction(self, estimator):
        """Test that the ratio is the share of the original size left over."""
        for size in (500_000, 2_000_000, 6_000_000):
            result = estimator.estimate("png", "webp", size, 80, True)
            assert result.ratio == pytest.approx((100 - result.percent) / 100)

    def test_learned_ratio_is_remaining_fraction(self, estimator):
        """Test the ratio of an estimate built from history."""
        record_png(estimator, 600_000)

        result = estimator.estimate(*PNG_2MB)

        assert result.percent == 70.0
        assert result.ratio == pytest.approx(0.3)
        assert result.ratio == pytest.approx((100 - result.percent) / 100)


class TestLearnedEstimates:
    """Test estimates built from recorded samples."""

    def test_record_increases_sample_count(self, estimator):
        """Test that recording makes the next estimate learn from it."""
        before = estimator.estimate(*PNG_2MB)
        record_png(estimator, 1_000_000)
        after = estimator.estimate(*PNG_2MB)

        assert after.sample_count == before.sample_count + 1
        assert after.confidence >= before.confidence
        assert after.is_learning is True
        assert after.percent == 50.0
        assert after.description == "Based on 1 similar compression"

    def test_weighted_by_quality_distance(self, estimator):
        """Test that closer quality settings weigh more."""
        record_png(estimator, 1_000_000, quality=80)  # 50%
        record_png(estimator, 1_600_000, quality=90)  # 20%, weight 1/11

        result = estimator.estimate(*PNG_2MB)

        assert result.sample_count == 2
        assert result.percent == pytest.approx(47.5)
        assert result.description == "Based on 2 similar compressions"

    def test_samples_outside_lookup_are_ignored(self, estimator):
        """Test lossy flag, quality window and bucket all restrict matches."""
        record_png(estimator, 1_000_000, lossy=False)
        record_png(estimator, 1_000_000, quality=60)
        record_png(estimator, 100_000, original_size=500_000)

        result = estimator.estimate(*PNG_2MB)

        assert result.sample_count == 0
        assert result.is_learning is False

    def test_negative_reductions_clipped(self, estimator):
        """Test that outputs larger than inputs count as zero reduction."""
        record_png(estimator, 3_000_000)

        assert estimator.estimate(*PNG_2MB).percent == 0.0

    def test_jpg_and_jpeg_share_history(self, estimator):
        """Test that format aliases hit the same samples."""
        estimator.record("JPG", "webp", 2_000_000, 1_500_000, 80, True, 300)

        result = estimator.estimate("jpeg", "webp", 2_000_000, 80, True)

        assert result.sample_count == 1
        assert result.percent == 25.0


class TestConfidence:
    """Test confidence tiers."""

    def test_tiers(self):
        """Test the sample count thresholds."""
        assert confidence_for(0) == 0.3
        assert confidence_for(1) == 0.4
        assert confidence_for(5) == 0.4
        assert confidence_for(6) == 0.6
        assert confidence_for(20) == 0.6
        assert confidence_for(21) == 0.8
        assert confidence_for(50) == 0.8
        assert confidence_for(51) == 0.9
        assert confidence_for(10_000) == 0.9

    def test_monotonic(self):
        """Test that more samples never lower confidence."""
        values = [confidence_for(n) for n in range(0, 120)]
        assert values == sorted(values)
        assert all(0 <= v <= 1 for v in values)


class TestDurationEstimates:
    """Test duration estimation."""

    def test_learned_duration(self, estimator):
        """Test the weighted mean of recorded durations."""
        record_png(estimator, 1_000_000, duration_ms=400)
        record_png(estimator, 1_000_000, duration_ms=600)

        estimate = estimator.estimate_duration(*PNG_2MB)

        assert estimate.estimated_duration_ms == 500
        assert estimate.sample_count == 2
        assert estimate.is_learning is True
        assert estimate.confidence == 0.4

    def test_missing_and_outlier_durations_ignored(self, estimator):
        """Test that untimed, zero and hour-long recordings fall back to defaults."""
        record_png(estimator, 1_000_000, duration_ms=None)
        record_png(estimator, 1_000_000, duration_ms=0)
        record_png(estimator, 1_000_000, duration_ms=4_000_000)

        estimate = estimator.estimate_duration(*PNG_2MB)

        assert estimate.estimated_duration_ms == 1200
        assert estimate.sample_count == 0
        assert estimate.is_learning is False
        # The reductions are still usable
        assert estimator.estimate(*PNG_2MB).sample_count == 3


class TestRecordAndReset:
    """Test recording failures and reset."""

    def test_record_swallows_store_failure(self):
        """Test that a failed recording never raises."""
        estimator = EstimationService(UnreachableStore())

        estimator.record("png", "webp", 2_000_000, 1_000_000, 80, True, 400)

    def test_reset_returns_to_fallback(self, estimator):
        """Test that reset forgets learned values."""
        record_png(estimator, 200_000)
        assert estimator.estimate(*PNG_2MB).percent == 90.0

        estimator.reset()
        result = estimator.estimate(*PNG_2MB)

        assert result.percent == 65.0
        assert result.sample_count == 0
        assert result.is_learning is False
        assert estimator.estimate_duration(*PNG_2MB).estimated_duration_ms == 1200

    def test_reset_is_idempotent(self, estimator):
        """Test that resetting an empty history is fine."""
        estimator.reset()
        estimator.reset()
        assert estimator.summary().total_compressions == 0

    def test_reset_failure_raises(self):
        """Test that an explicit reset reports store failures."""
        with pytest.raises(PersistenceFailure):
            EstimationService(UnreachableStore()).reset()


class TestSummary:
    """Test the statistics summary."""

    def test_summary_counts_samples(self, estimator):
        """Test the total and reference estimate."""
        estimator.record("png", "webp", 500_000, 250_000, 80, True, 200)
        estimator.record("jpeg", "jpeg", 500_000, 400_000, 80, True, 100)

        summary = estimator.summary()

        assert summary.total_compressions == 2
        assert summary.reference_estimate.sample_count == 0
        assert summary.reference_estimate.percent == 65.0

    def test_summary_with_unreachable_store(self):
        """Test that the summary degrades to zero samples."""
        summary = EstimationService(UnreachableStore()).summary()

        assert summary.total_compressions == 0
        assert summary.reference_estimate.is_learning is False
