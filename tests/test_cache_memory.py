"""CacheService behavior on the in-memory backend."""

import pytest

from core.cache import CacheService, MemoryCacheBackend
from core.cleanup import CacheSweeper


class TestGetSet:
    """Tests for basic get/set round trips."""

    @pytest.mark.asyncio
    async def test_set_then_get_returns_value(self, cache: CacheService):
        await cache.set("artist:1", {"name": "Ana", "genres": ["jazz"]})
        assert await cache.get("artist:1") == {"name": "Ana", "genres": ["jazz"]}

    @pytest.mark.asyncio
    async def test_missing_key_is_none(self, cache: CacheService):
        assert await cache.get("nope") is None

    @pytest.mark.asyncio
    async def test_overwrite_replaces_value(self, cache: CacheService):
        await cache.set("k", 1)
        await cache.set("k", 2)
        assert await cache.get("k") == 2

    @pytest.mark.asyncio
    async def test_returned_value_is_a_copy(self, cache: CacheService):
        rows = [{"id": "g1"}]
        await cache.set("rows", rows)
        rows.append({"id": "g2"})

        first = await cache.get("rows")
        first.append({"id": "g3"})

        assert await cache.get("rows") == [{"id": "g1"}]

    @pytest.mark.asyncio
    async def test_default_backend_is_memory(self, cache: CacheService):
        assert cache.backend_name == "memory"
        assert cache.is_connected is False
        assert isinstance(cache.backend, MemoryCacheBackend)


class TestExpiry:
    """Tests for TTL handling with a controlled clock."""

    @pytest.mark.asyncio
    async def test_value_readable_until_ttl_elapses(self, cache, clock):
        await cache.set("k", "v", ttl=2)
        clock.advance(1999)
        assert await cache.get("k") == "v"

    @pytest.mark.asyncio
    async def test_value_expired_at_ttl_boundary(self, cache, clock):
        await cache.set("k", "v", ttl=2)
        clock.advance(2000)
        assert await cache.get("k") is None

    @pytest.mark.asyncio
    async def test_default_ttl_applies(self, cache, clock):
        await cache.set("k", "v")
        clock.advance(3600 * 1000 - 1)
        assert await cache.get("k") == "v"
        clock.advance(1)
        assert await cache.get("k") is None

    @pytest.mark.asyncio
    async def test_overwrite_restarts_ttl(self, cache, clock):
        await cache.set("k", "old", ttl=1)
        clock.advance(900)
        await cache.set("k", "new", ttl=1)
        clock.advance(900)
        assert await cache.get("k") == "new"

    @pytest.mark.asyncio
    async def test_expired_entry_removed_on_read(self, cache, clock):
        await cache.set("k", "v", ttl=1)
        clock.advance(1000)
        await cache.get("k")
        assert (await cache.get_stats())["keys"] == 0


class TestNamespaces:
    """Tests for prefix isolation and scoped clearing."""

    @pytest.mark.asyncio
    async def test_same_key_in_different_prefixes(self, cache):
        await cache.set("k", "a", prefix="a:")
        await cache.set("k", "b", prefix="b:")
        assert await cache.get("k", prefix="a:") == "a"
        assert await cache.get("k", prefix="b:") == "b"
        assert await cache.get("k") is None

    @pytest.mark.asyncio
    async def test_clear_only_removes_matching_prefix(self, cache):
        await cache.set("k", 1, prefix="firestore:")
        await cache.set("k", 2)

        await cache.clear("firestore:")

        assert await cache.get("k", prefix="firestore:") is None
        assert await cache.get("k") == 2

    @pytest.mark.asyncio
    async def test_clear_defaults_to_service_namespace(self, cache):
        await cache.set("k", 1)
        await cache.set("k", 2, prefix="other:")

        await cache.clear()

        assert await cache.get("k") is None
        assert await cache.get("k", prefix="other:") == 2

    @pytest.mark.asyncio
    async def test_count_skips_expired_and_other_prefixes(self, cache, clock):
        await cache.set("a", 1, ttl=1, prefix="firestore:")
        await cache.set("b", 2, ttl=10, prefix="firestore:")
        await cache.set("c", 3)

        assert await cache.count("firestore:") == 2
        clock.advance(1000)
        assert await cache.count("firestore:") == 1
        assert await cache.count() == 1

    @pytest.mark.asyncio
    async def test_delete_missing_key_is_noop(self, cache):
        await cache.delete("never-set")
        assert await cache.get("never-set") is None


class TestExists:
    """Tests for exists()."""

    @pytest.mark.asyncio
    async def test_exists_for_live_key(self, cache):
        await cache.set("k", None)
        assert await cache.exists("k") is True

    @pytest.mark.asyncio
    async def test_exists_false_after_expiry(self, cache, clock):
        await cache.set("k", "v", ttl=1)
        clock.advance(1000)
        assert await cache.exists("k") is False

    @pytest.mark.asyncio
    async def test_exists_does_not_touch_stats(self, cache):
        await cache.set("k", "v")
        await cache.exists("k")
        await cache.exists("missing")
        stats = await cache.get_stats()
        assert stats["hits"] == 0
        assert stats["misses"] == 0


class TestStats:
    """Tests for hit/miss accounting."""

    @pytest.mark.asyncio
    async def test_hits_and_misses_counted(self, cache):
        await cache.set("k", "v")
        await cache.get("k")
        await cache.get("k")
        await cache.get("missing")

        assert await cache.get_stats() == {"hits": 2, "misses": 1, "keys": 1}
        assert cache.stats.hit_rate == pytest.approx(200 / 3)

    @pytest.mark.asyncio
    async def test_expired_read_is_a_miss(self, cache, clock):
        await cache.set("k", "v", ttl=1)
        clock.advance(5000)
        await cache.get("k")
        assert (await cache.get_stats())["misses"] == 1


class TestSweeper:
    """Tests for CacheSweeper and purge_expired()."""

    @pytest.mark.asyncio
    async def test_purge_removes_only_expired(self, cache, clock):
        await cache.set("short", 1, ttl=1)
        await cache.set("long", 2, ttl=60)
        clock.advance(1000)

        assert await cache.purge_expired() == 1
        assert (await cache.get_stats())["keys"] == 1
        assert await cache.get("long") == 2

    @pytest.mark.asyncio
    async def test_run_once_reports_removed(self, cache, clock):
        await cache.set("a", 1, ttl=1)
        await cache.set("b", 2, ttl=1)
        clock.advance(1000)

        sweeper = CacheSweeper(cache, interval=60)
        assert await sweeper.run_once() == 2
        assert await sweeper.run_once() == 0

    @pytest.mark.asyncio
    async def test_start_and_stop(self, cache):
        sweeper = CacheSweeper(cache, interval=60)
        await sweeper.start()
        assert sweeper.running is True

        await sweeper.stop()
        assert sweeper.running is False

    @pytest.mark.asyncio
    async def test_zero_interval_disables_sweeper(self, cache):
        sweeper = CacheSweeper(cache, interval=0)
        await sweeper.start()
        assert sweeper.running is False
        await sweeper.stop()
