"""Cache service with Redis (production) or in-memory (development) backend.

Every public operation is total: backend failures are logged and turned into
cache-miss / no-op results so callers never need try/except around the cache.
"""

import asyncio
import copy
import json
import math
import re
from datetime import date, datetime
from typing import Any, Callable, Dict, Optional, Protocol

import redis.asyncio as redis
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import TimeoutError as RedisTimeoutError

from core.config import Settings
from core.logging import get_logger, log_cache_operation
from models.cache import CacheEntry, CacheStats, now_millis

logger = get_logger(__name__)

# Errors that mean the Redis connection itself is gone (not a bad key/value)
CONNECTION_ERRORS = (
    RedisConnectionError,
    RedisTimeoutError,
    ConnectionError,
    asyncio.TimeoutError,
)

_GLOB_SPECIAL = re.compile(r"([*?\[\]\\])")


def escape_glob(value: str) -> str:
    """Escape Redis glob metacharacters so a prefix matches literally."""
    return _GLOB_SPECIAL.sub(r"\\\1", value)


def json_default(value: Any) -> str:
    """Encode datetimes (incl. Firestore timestamps) as ISO 8601, the way ORJSON renders them."""
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return str(value)


class CacheBackend(Protocol):
    """Storage primitives shared by the Redis and in-memory backends.

    Keys passed to a backend are already fully prefixed. Backends may raise;
    CacheService is responsible for absorbing errors.
    """

    name: str

    async def get_entry(self, key: str) -> Optional[CacheEntry]:
        ...

    async def set_entry(self, key: str, entry: CacheEntry) -> None:
        ...

    async def delete(self, key: str) -> None:
        ...

    async def delete_prefix(self, prefix: str) -> int:
        ...

    async def count_prefix(self, prefix: str, now: int) -> int:
        ...

    async def exists(self, key: str, now: int) -> bool:
        ...

    async def size(self) -> int:
        ...

    async def purge_expired(self, now: int) -> int:
        ...

    async def close(self) -> None:
        ...


class MemoryCacheBackend:
    """Process-local dict backend.

    Payloads are deep-copied on the way in and on the way out so callers can
    never mutate a stored value. Expired entries are dropped lazily on access
    and by purge_expired() (driven by CacheSweeper).
    """

    name = "memory"

    def __init__(self):
        self._entries: Dict[str, CacheEntry] = {}

    async def get_entry(self, key: str) -> Optional[CacheEntry]:
        entry = self._entries.get(key)
        if entry is None:
            return None
        return CacheEntry(
            payload=copy.deepcopy(entry.payload),
            ttl_millis=entry.ttl_millis,
            stored_at=entry.stored_at,
        )

    async def set_entry(self, key: str, entry: CacheEntry) -> None:
        self._entries[key] = CacheEntry(
            payload=copy.deepcopy(entry.payload),
            ttl_millis=entry.ttl_millis,
            stored_at=entry.stored_at,
        )

    async def delete(self, key: str) -> None:
        self._entries.pop(key, None)

    async def delete_prefix(self, prefix: str) -> int:
        keys = [k for k in self._entries if k.startswith(prefix)]
        for key in keys:
            del self._entries[key]
        return len(keys)

    async def count_prefix(self, prefix: str, now: int) -> int:
        return sum(1 for key, entry in self._entries.items()
                   if key.startswith(prefix) and not entry.is_expired(now))

    async def exists(self, key: str, now: int) -> bool:
        entry = self._entries.get(key)
        if entry is None:
            return False
        if entry.is_expired(now):
            del self._entries[key]
            return False
        return True

    async def size(self) -> int:
        return len(self._entries)

    async def purge_expired(self, now: int) -> int:
        expired = [k for k, entry in self._entries.items() if entry.is_expired(now)]
        for key in expired:
            del self._entries[key]
        return len(expired)

    async def close(self) -> None:
        self._entries.clear()


class RedisCacheBackend:
    """redis.asyncio backend storing JSON-encoded CacheEntry dicts with SETEX."""

    name = "redis"

    def __init__(self, client: "redis.Redis"):
        self.client = client

    async def get_entry(self, key: str) -> Optional[CacheEntry]:
        raw = await self.client.get(key)
        if raw is None:
            return None
        return CacheEntry.from_dict(json.loads(raw))

    async def set_entry(self, key: str, entry: CacheEntry) -> None:
        # Native expiry mirrors ttl_millis, rounded up to whole seconds
        ttl_seconds = max(1, math.ceil(entry.ttl_millis / 1000))
        await self.client.setex(key, ttl_seconds, json.dumps(entry.to_dict(), default=json_default))

    async def delete(self, key: str) -> None:
        await self.client.delete(key)

    async def delete_prefix(self, prefix: str) -> int:
        keys = await self.client.keys(f"{escape_glob(prefix)}*")
        if not keys:
            return 0
        return await self.client.delete(*keys)

    async def count_prefix(self, prefix: str, now: int) -> int:
        # Native expiry means every key still present is live
        return len(await self.client.keys(f"{escape_glob(prefix)}*"))

    async def exists(self, key: str, now: int) -> bool:
        return bool(await self.client.exists(key))

    async def size(self) -> int:
        return await self.client.dbsize()

    async def purge_expired(self, now: int) -> int:
        # Redis expires keys natively
        return 0

    async def close(self) -> None:
        await self.client.aclose()


class CacheService:
    """Async key/value cache with per-entry TTL.

    Backend selection (made once, in startup()):
    - Redis: when REDIS_ENABLED=true, REDIS_URL is set and PING succeeds
    - Memory: otherwise, or when the Redis connection drops at runtime
    """

    def __init__(self, settings: Settings, clock: Callable[[], int] = now_millis):
        self.settings = settings
        self.default_ttl = settings.cache_ttl
        self.prefix = settings.cache_prefix
        self.redis: Optional[redis.Redis] = None
        self.backend: CacheBackend = MemoryCacheBackend()
        self.stats = CacheStats()
        self._clock = clock
        self._connected = False

    @property
    def is_connected(self) -> bool:
        """True while the Redis backend is active."""
        return self._connected

    @property
    def backend_name(self) -> str:
        return self.backend.name

    async def startup(self) -> None:
        """Initialize cache connection."""
        if not self.settings.use_redis:
            logger.info("Using in-memory cache",
                        redis_enabled=self.settings.redis_enabled,
                        redis_url_configured=bool(self.settings.redis_url))
            return

        try:
            client = redis.from_url(
                self.settings.redis_url,
                encoding="utf-8",
                decode_responses=True,
                socket_timeout=5,
                socket_connect_timeout=5,
            )
            await client.ping()
            self.redis = client
            self.backend = RedisCacheBackend(client)
            self._connected = True
            logger.info("Redis cache initialized")
        except Exception as e:
            logger.warning("Redis connection failed, falling back to in-memory cache",
                           error=str(e))
            self._use_memory()

    def _use_memory(self) -> None:
        self.backend = MemoryCacheBackend()
        self._connected = False

    def _key(self, key: str, prefix: Optional[str] = None) -> str:
        return f"{prefix or self.prefix}{key}"

    def _handle_error(self, operation: str, key: str, error: Exception) -> None:
        """Log a backend failure; a lost Redis connection switches to memory."""
        if self._connected and isinstance(error, CONNECTION_ERRORS):
            logger.error("Redis connection lost, routing cache to in-memory fallback",
                         operation=operation, cache_key=key, error=str(error))
            self._use_memory()
            return
        logger.error(f"Cache {operation} failed", cache_key=key, error=str(error))

    async def get(self, key: str, prefix: Optional[str] = None) -> Optional[Any]:
        """Get value from cache, or None on miss, expiry or error."""
        full_key = self._key(key, prefix)
        try:
            entry = await self.backend.get_entry(full_key)
            if entry is not None and entry.is_expired(self._clock()):
                await self.backend.delete(full_key)
                entry = None

            hit = entry is not None
            self.stats.record(hit)
            log_cache_operation(logger, "get", full_key, hit=hit)
            return entry.payload if hit else None

        except Exception as e:
            self.stats.record(False)
            self._handle_error("get", full_key, e)
            return None

    async def set(self, key: str, value: Any, ttl: Optional[int] = None,
                  prefix: Optional[str] = None) -> None:
        """Set value in cache. ttl is in seconds (default CACHE_TTL)."""
        full_key = self._key(key, prefix)
        ttl = ttl or self.default_ttl
        try:
            entry = CacheEntry(payload=value, ttl_millis=ttl * 1000, stored_at=self._clock())
            await self.backend.set_entry(full_key, entry)
            log_cache_operation(logger, "set", full_key, ttl=ttl)
        except Exception as e:
            self._handle_error("set", full_key, e)

    async def delete(self, key: str, prefix: Optional[str] = None) -> None:
        """Delete value from cache. Missing keys are not an error."""
        full_key = self._key(key, prefix)
        try:
            await self.backend.delete(full_key)
            log_cache_operation(logger, "delete", full_key)
        except Exception as e:
            self._handle_error("delete", full_key, e)

    async def clear(self, prefix: Optional[str] = None) -> None:
        """Remove every key starting with prefix (default namespace)."""
        key_prefix = prefix or self.prefix
        try:
            deleted = await self.backend.delete_prefix(key_prefix)
            logger.info("Cache cleared", pattern=f"{key_prefix}*", deleted=deleted)
        except Exception as e:
            self._handle_error("clear", f"{key_prefix}*", e)

    async def exists(self, key: str, prefix: Optional[str] = None) -> bool:
        """Check if a live (non-expired) key exists without decoding its payload."""
        full_key = self._key(key, prefix)
        try:
            return await self.backend.exists(full_key, self._clock())
        except Exception as e:
            self._handle_error("exists", full_key, e)
            return False

    async def count(self, prefix: Optional[str] = None) -> int:
        """Number of live keys under prefix (default namespace); 0 on error."""
        key_prefix = prefix or self.prefix
        try:
            return await self.backend.count_prefix(key_prefix, self._clock())
        except Exception as e:
            self._handle_error("count", f"{key_prefix}*", e)
            return 0

    async def get_stats(self) -> Dict[str, int]:
        """Hit/miss counters since startup plus the current key count."""
        try:
            keys = await self.backend.size()
        except Exception as e:
            self._handle_error("stats", "*", e)
            keys = 0
        return {"hits": self.stats.hits, "misses": self.stats.misses, "keys": keys}

    async def purge_expired(self) -> int:
        """Drop expired entries that nobody has read since they expired."""
        try:
            return await self.backend.purge_expired(self._clock())
        except Exception as e:
            self._handle_error("purge_expired", "*", e)
            return 0

    async def disconnect(self) -> None:
        """Close the Redis connection if one is open. No-op for the memory backend."""
        if self.redis is None:
            return
        try:
            await self.redis.aclose()
            logger.info("Redis cache disconnected")
        except Exception as e:
            logger.error("Error disconnecting cache", error=str(e))
        finally:
            self.redis = None
            self._use_memory()
