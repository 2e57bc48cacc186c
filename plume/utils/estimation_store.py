"""
Persistent store of historical compression samples.

The estimation service treats the store as unreliable: reads that fail raise
EstimationUnavailable and writes that fail raise PersistenceFailure, and the
service decides how to degrade.
"""

import threading
from abc import ABC, abstractmethod
from contextlib import contextmanager
from typing import List, Optional

from sqlalchemy.exc import SQLAlchemyError

from plume.config import DATABASE_URL, ESTIMATION_BACKEND, QUALITY_WINDOW, REDIS_URL
from plume.database import create_db_engine, create_session_factory, create_session_with_retry
from plume.database.utils import count_samples, delete_all_samples, insert_sample, query_samples
from plume.exceptions import EstimationUnavailable, PersistenceFailure
from plume.utils.enhanced_logger import log_with_context, setup_enhanced_logging
from plume.utils.enums import SizeBucket, normalize_format
from plume.utils.samples import HistoricalSample

logger = setup_enhanced_logging()


def quality_range(quality: int, window: int = QUALITY_WINDOW):
    """Inclusive quality bounds around a setting, kept inside 1..100"""
    return max(1, quality - window), min(100, quality + window)


class EstimationStore(ABC):
    @abstractmethod
    def append(self, sample: HistoricalSample) -> None:
        """Persist one sample"""
        pass

    @abstractmethod
    def query(
        self,
        input_format: str,
        output_format: str,
        size_bucket: SizeBucket,
        quality_near: int,
        lossy: bool,
    ) -> List[HistoricalSample]:
        """Samples for a format pair and bucket whose quality is near the given one"""
        pass

    @abstractmethod
    def reset_all(self) -> None:
        """Delete every sample"""
        pass

    @abstractmethod
    def count(self) -> int:
        """Total number of samples"""
        pass


class SqlEstimationStore(EstimationStore):
    """SQLAlchemy-backed store, SQLite file by default."""

    def __init__(self, database_url: Optional[str] = None, quality_window: int = QUALITY_WINDOW):
        self.database_url = database_url or DATABASE_URL
        self.quality_window = quality_window
        self.engine = None
        self.session_factory = None
        # SQLite connections must not be used from two worker threads at once
        self._lock = threading.Lock()

        try:
            self._connect()
        except (SQLAlchemyError, OSError) as e:
            log_with_context(
                logger, 'error', f'[SqlEstimationStore] Estimation database unavailable, retrying on use: {e}',
                database_url=self.database_url
            )

    def _connect(self):
        """Create the engine and tables on first successful use"""
        if self.session_factory is not None:
            return

        engine = create_db_engine(self.database_url)
        try:
            self.session_factory = create_session_factory(engine)
        except SQLAlchemyError:
            engine.dispose()
            raise
        self.engine = engine

        log_with_context(
            logger, 'info', '[SqlEstimationStore] Estimation database ready',
            backend=engine.dialect.name
        )

    @contextmanager
    def _session(self):
        with self._lock:
            self._connect()
            db = create_session_with_retry(self.session_factory)
            try:
                yield db
            finally:
                db.close()

    def append(self, sample):
        try:
            with self._session() as db:
                insert_sample(db, sample)
        except (SQLAlchemyError, OSError) as e:
            raise PersistenceFailure(f"Failed to save sample: {e}") from e

    def query(self, input_format, output_format, size_bucket, quality_near, lossy):
        min_quality, max_quality = quality_range(quality_near, self.quality_window)
        try:
            with self._session() as db:
                return query_samples(
                    db,
                    normalize_format(input_format),
                    normalize_format(output_format),
                    size_bucket,
                    min_quality,
                    max_quality,
                    bool(lossy),
                )
        except (SQLAlchemyError, OSError) as e:
            raise EstimationUnavailable(f"Failed to query samples: {e}") from e

    def reset_all(self):
        try:
            with self._session() as db:
                deleted = delete_all_samples(db)
        except (SQLAlchemyError, OSError) as e:
            raise PersistenceFailure(f"Failed to clear samples: {e}") from e

        log_with_context(
            logger, 'info', '[SqlEstimationStore] All samples cleared',
            deleted=deleted
        )

    def count(self):
        try:
            with self._session() as db:
                return count_samples(db)
        except (SQLAlchemyError, OSError) as e:
            raise EstimationUnavailable(f"Failed to count samples: {e}") from e


def build_estimation_store(backend: Optional[str] = None) -> EstimationStore:
    """Create the store selected by PLUME_ESTIMATION_BACKEND"""
    backend = (backend or ESTIMATION_BACKEND).lower()

    if backend == "redis":
        from plume.utils.redis_estimation_store import RedisEstimationStore
        return RedisEstimationStore(url=REDIS_URL)
    if backend == "sql":
        return SqlEstimationStore()

    raise ValueError(f"Unknown estimation backend: {backend}")
