"""
Redis-backed storage for historical compression samples.

Alternative to the SQL store for setups that already run Redis. Samples are
kept as JSON strings in one list per lookup key, so a query is a single
LRANGE followed by quality/lossy filtering in Python.

Schema:
    {prefix}:{input}:{output}:{bucket} -> List of JSON samples (oldest -> newest)
    {prefix}:keys                      -> Set of every sample list key
"""

import json

import redis

from plume.config import QUALITY_WINDOW
from plume.exceptions import EstimationUnavailable, PersistenceFailure
from plume.utils.enhanced_logger import log_with_context, setup_enhanced_logging
from plume.utils.enums import normalize_format
from plume.utils.estimation_store import EstimationStore, quality_range
from plume.utils.samples import HistoricalSample

logger = setup_enhanced_logging()


def connect_redis(url):
    """Connect and ping; None when Redis is unreachable"""
    try:
        client = redis.Redis.from_url(
            url,
            decode_responses=True,
            socket_connect_timeout=5,
            socket_timeout=5
        )
        client.ping()
        logger.info(f"[RedisEstimationStore] Redis connection established successfully to {url}")
        return client
    except redis.RedisError as e:
        logger.error(f"[RedisEstimationStore] Failed to connect to Redis at {url}: {e}")
        return None


class RedisEstimationStore(EstimationStore):

    KEY_PREFIX = "plume:samples"

    def __init__(self, client=None, url=None, quality_window=QUALITY_WINDOW):
        if client is None and url is not None:
            client = connect_redis(url)
        self.client = client
        self.quality_window = quality_window

    @property
    def index_key(self):
        return f"{self.KEY_PREFIX}:keys"

    def sample_key(self, input_format, output_format, size_bucket):
        return (
            f"{self.KEY_PREFIX}:{normalize_format(input_format)}:"
            f"{normalize_format(output_format)}:{size_bucket.value}"
        )

    def append(self, sample):
        if not self.client:
            raise PersistenceFailure("Redis unavailable, cannot save sample")

        key = self.sample_key(sample.input_format, sample.output_format, sample.size_bucket)
        try:
            self.client.rpush(key, json.dumps(sample.to_dict(), separators=(',', ':')))
            self.client.sadd(self.index_key, key)
        except redis.RedisError as e:
            raise PersistenceFailure(f"Failed to save sample: {e}") from e

    def query(self, input_format, output_format, size_bucket, quality_near, lossy):
        if not self.client:
            raise EstimationUnavailable("Redis unavailable, cannot query samples")

        key = self.sample_key(input_format, output_format, size_bucket)
        try:
            raw_samples = self.client.lrange(key, 0, -1)
        except redis.RedisError as e:
            raise EstimationUnavailable(f"Failed to query samples: {e}") from e

        min_quality, max_quality = quality_range(quality_near, self.quality_window)
        samples = []
        for raw in raw_samples:
            try:
                sample = HistoricalSample.from_dict(json.loads(raw))
            except (ValueError, KeyError, TypeError) as e:
                log_with_context(
                    logger, 'warning', f'[RedisEstimationStore] Skipping unreadable sample: {e}',
                    key=key
                )
                continue
            if sample.lossy_mode != bool(lossy):
                continue
            if min_quality <= sample.quality_setting <= max_quality:
                samples.append(sample)

        # Newest first, same order as the SQL store
        samples.reverse()
        return samples

    def reset_all(self):
        if not self.client:
            raise PersistenceFailure("Redis unavailable, cannot clear samples")

        try:
            keys = list(self.client.smembers(self.index_key))
            if keys:
                self.client.delete(*keys)
            self.client.delete(self.index_key)
        except redis.RedisError as e:
            raise PersistenceFailure(f"Failed to clear samples: {e}") from e

        log_with_context(
            logger, 'info', '[RedisEstimationStore] All samples cleared',
            lists=len(keys)
        )

    def count(self):
        if not self.client:
            raise EstimationUnavailable("Redis unavailable, cannot count samples")

        try:
            return sum(self.client.llen(key) for key in self.client.smembers(self.index_key))
        except redis.RedisError as e:
            raise EstimationUnavailable(f"Failed to count samples: {e}") from e
