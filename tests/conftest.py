"""Shared fixtures: settings, a controllable clock, a fake Redis client and a
seeded in-memory document store wired into a QueryOptimizer."""

import fnmatch
from typing import Any, Dict, Optional

import pytest

from core.cache import CacheService
from core.config import Settings
from core.database import MemoryDocumentStore
from services.optimization import OptimizerConfig, QueryOptimizer

GIGS = {
    "g1": {"title": "Jazz night", "status": "active", "genre": "jazz", "budget": 300,
           "venue": {"city": "Santo Domingo"}},
    "g2": {"title": "Wedding", "status": "pending", "genre": "classical", "budget": 800,
           "venue": {"city": "Santiago"}},
    "g3": {"title": "Church service", "status": "active", "genre": "gospel", "budget": 150},
    "g4": {"title": "Festival", "status": "cancelled", "genre": "jazz", "budget": 1200},
    "g5": {"title": "Bar gig", "status": "active", "genre": "rock"},
}


def make_settings(**overrides) -> Settings:
    values = {
        "redis_enabled": False,
        "redis_url": None,
        "cache_ttl": 3600,
        "log_format": "console",
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)


class FakeClock:
    """Callable epoch-millisecond clock that only moves when told to."""

    def __init__(self, start: int = 1_700_000_000_000):
        self.now = start

    def __call__(self) -> int:
        return self.now

    def advance(self, millis: int) -> None:
        self.now += millis


class FakeRedis:
    """Minimal in-process stand-in for a redis.asyncio client.

    Records SETEX TTLs instead of expiring keys. Setting ``fail_with`` makes
    every command raise that exception.
    """

    def __init__(self):
        self.store: Dict[str, str] = {}
        self.ttls: Dict[str, int] = {}
        self.fail_with: Optional[Exception] = None
        self.closed = False

    def _check(self) -> None:
        if self.fail_with is not None:
            raise self.fail_with

    async def ping(self) -> bool:
        self._check()
        return True

    async def get(self, key: str) -> Optional[str]:
        self._check()
        return self.store.get(key)

    async def setex(self, key: str, seconds: int, value: str) -> bool:
        self._check()
        self.store[key] = value
        self.ttls[key] = seconds
        return True

    async def delete(self, *keys: str) -> int:
        self._check()
        removed = 0
        for key in keys:
            if self.store.pop(key, None) is not None:
                removed += 1
            self.ttls.pop(key, None)
        return removed

    async def keys(self, pattern: str = "*"):
        self._check()
        return [key for key in self.store if fnmatch.fnmatchcase(key, pattern)]

    async def exists(self, *keys: str) -> int:
        self._check()
        return sum(1 for key in keys if key in self.store)

    async def dbsize(self) -> int:
        self._check()
        return len(self.store)

    async def aclose(self) -> None:
        self.closed = True


class FailingStore(MemoryDocumentStore):
    """Memory store whose reads always fail."""

    def __init__(self, error: Exception):
        super().__init__()
        self.error = error

    async def run_query(self, spec):
        raise self.error

    async def count(self, collection, predicates):
        raise self.error


@pytest.fixture
def settings() -> Settings:
    return make_settings()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def fake_redis() -> FakeRedis:
    return FakeRedis()


@pytest.fixture
def cache(settings, clock) -> CacheService:
    return CacheService(settings, clock=clock)


@pytest.fixture
def store() -> MemoryDocumentStore:
    memory_store = MemoryDocumentStore()
    memory_store.seed("gigs", GIGS)
    return memory_store


@pytest.fixture
def optimizer_config() -> OptimizerConfig:
    return OptimizerConfig()


@pytest.fixture
def optimizer(store, cache, optimizer_config) -> QueryOptimizer:
    return QueryOptimizer(store, cache, optimizer_config)


def ids(rows) -> list:
    return [row["id"] for row in rows]


def gig(doc_id: str, **fields: Any) -> Dict[str, Any]:
    return {"type": "create", "collection": "gigs", "document": doc_id,
            "data": {"title": doc_id, **fields}}
