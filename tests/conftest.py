"""Shared fixtures and fakes for the plume tests."""

import asyncio

import pytest
import redis

from plume.exceptions import CompressionFailure, EstimationUnavailable, PersistenceFailure
from plume.utils.compressor import CompressionOutcome, CompressionStage, Compressor
from plume.utils.estimation_store import EstimationStore, SqlEstimationStore
from plume.utils.size_estimator import EstimationService


class FakeClock:
    """Millisecond clock that only moves when told to."""

    def __init__(self, now=0.0):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, ms):
        self.now += ms
        return self.now


class FakeRedis:
    """Dict-backed stand-in for the handful of redis-py calls the store makes."""

    def __init__(self):
        self.lists = {}
        self.sets = {}

    def ping(self):
        return True

    def rpush(self, key, *values):
        self.lists.setdefault(key, []).extend(values)
        return len(self.lists[key])

    def lrange(self, key, start, end):
        values = self.lists.get(key, [])
        return list(values[start:] if end == -1 else values[start:end + 1])

    def llen(self, key):
        return len(self.lists.get(key, []))

    def sadd(self, key, *members):
        self.sets.setdefault(key, set()).update(members)
        return len(members)

    def smembers(self, key):
        return set(self.sets.get(key, set()))

    def delete(self, *keys):
        deleted = 0
        for key in keys:
            if self.lists.pop(key, None) is not None or self.sets.pop(key, None) is not None:
                deleted += 1
        return deleted


class BrokenRedis(FakeRedis):
    """Every command fails as if the server went away."""

    def _fail(self, *args, **kwargs):
        raise redis.ConnectionError("Connection refused")

    ping = rpush = lrange = llen = sadd = smembers = delete = _fail


class UnreachableStore(EstimationStore):
    """Store whose backend is always down."""

    def append(self, sample):
        raise PersistenceFailure("store offline")

    def query(self, input_format, output_format, size_bucket, quality_near, lossy):
        raise EstimationUnavailable("store offline")

    def reset_all(self):
        raise PersistenceFailure("store offline")

    def count(self):
        raise EstimationUnavailable("store offline")


class FakeCompressor(Compressor):
    """Compressor that halves files by default and fails for configured paths."""

    def __init__(self, failures=None, compressed_sizes=None, stage_events=True):
        self.failures = failures or {}
        self.compressed_sizes = compressed_sizes or {}
        self.stage_events = stage_events
        self.calls = []

    async def compress(self, path, quality, output_format, item_id, on_stage=None):
        self.calls.append((path, quality, output_format))
        if on_stage and self.stage_events:
            on_stage(item_id, CompressionStage.LOADING)
            on_stage(item_id, CompressionStage.COMPRESSING)

        await asyncio.sleep(0.01)

        if path in self.failures:
            failure = self.failures[path]
            if isinstance(failure, Exception):
                raise failure
            raise CompressionFailure(failure, item_id)

        if on_stage and self.stage_events:
            on_stage(item_id, CompressionStage.COMPLETE)
        return CompressionOutcome(
            compressed_size=self.compressed_sizes.get(path, 500),
            output_path=f"{path}.out",
        )


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def sql_store():
    return SqlEstimationStore("sqlite://")


@pytest.fixture
def estimator(sql_store):
    return EstimationService(sql_store)


@pytest.fixture
def fake_redis():
    return FakeRedis()
