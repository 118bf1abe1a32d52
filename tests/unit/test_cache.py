"""
Unit Tests - Read Cache
"""
from conftest import MemoryRedis
from skupulse.serving.cache import CacheManager


class TestCacheManager:
    """Tests for the namespaced JSON cache"""

    async def test_disabled_cache_always_loads(self):
        cache = CacheManager(None, "skus")
        calls = []

        async def load():
            calls.append(1)
            return {"skus": []}

        assert await cache.get_or_set("2025-03-15:200", load) == {"skus": []}
        assert await cache.get_or_set("2025-03-15:200", load) == {"skus": []}
        assert len(calls) == 2
        assert await cache.invalidate_all() == 0

    async def test_get_or_set_loads_once(self, redis):
        cache = CacheManager(redis, "skus", default_ttl=120)
        calls = []

        async def load():
            calls.append(1)
            return {"skus": [{"sku": "SKU-A", "mtd": 60}]}

        first = await cache.get_or_set("2025-03-15:200", load)
        second = await cache.get_or_set("2025-03-15:200", load)

        assert first == second == {"skus": [{"sku": "SKU-A", "mtd": 60}]}
        assert len(calls) == 1
        assert redis.ttls == {"skus:2025-03-15:200": 120}

    async def test_invalidate_all_stays_in_namespace(self, redis):
        skus = CacheManager(redis, "skus")
        other = CacheManager(redis, "other")
        await skus.set("a", 1)
        await skus.set("b", 2)
        await other.set("a", 3)

        assert await skus.invalidate_all() == 2
        assert await skus.get("a") is None
        assert await other.get("a") == 3

    async def test_unreachable_redis_falls_through_to_loader(self):
        cache = CacheManager(MemoryRedis(down=True), "skus")

        async def load():
            return {"skus": []}

        assert await cache.get("missing") is None
        assert await cache.set("k", 1) is False
        assert await cache.get_or_set("k", load) == {"skus": []}

    async def test_corrupt_entry_is_a_miss(self, redis):
        cache = CacheManager(redis, "skus")
        redis.store["skus:k"] = "{not json"

        assert await cache.get("k") is None
