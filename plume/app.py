"""
Session wiring: builds the estimation store, service and orchestrator from
environment configuration. Run as a module to print the learned statistics.
"""

from plume.utils.batch_orchestrator import BatchOrchestrator
from plume.utils.compression_settings import CompressionSettings
from plume.utils.enhanced_logger import setup_enhanced_logging
from plume.utils.estimation_store import build_estimation_store
from plume.utils.size_estimator import EstimationService

logger = setup_enhanced_logging()


def create_estimation_service(backend=None):
    return EstimationService(build_estimation_store(backend))


def create_session(compressor, settings=None, backend=None):
    """One orchestrator per session, sharing a single estimation service"""
    estimator = create_estimation_service(backend)
    return BatchOrchestrator(estimator, compressor, settings=settings or CompressionSettings())


def main():
    summary = create_estimation_service().summary()
    estimate = summary.reference_estimate

    print(f"Recorded compressions: {summary.total_compressions}")
    print(
        f"PNG → WEBP, 1 MB at quality 80: "
        f"{estimate.percent:.1f}% smaller (confidence {estimate.confidence:.1f}, {estimate.description})"
    )


if __name__ == "__main__":
    main()
