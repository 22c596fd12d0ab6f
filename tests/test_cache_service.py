"""
Tests for the best-effort Redis cache.
"""

from unittest.mock import AsyncMock, MagicMock

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from searchgate.services.cache_service import CacheService


class TestCacheService:
    async def test_set_then_get(self, cache, fake_redis):
        assert await cache.set("k", {"hits": [1, 2]}) is True
        assert fake_redis.store["test/k"] == '{"hits": [1, 2]}'
        assert fake_redis.expiry["test/k"] == 300
        assert await cache.get("k") == {"hits": [1, 2]}

    async def test_explicit_ttl(self, cache, fake_redis):
        await cache.set("k", 1, ttl=5)
        assert fake_redis.expiry["test/k"] == 5

    async def test_miss(self, cache):
        assert await cache.get("missing") is None

    async def test_delete(self, cache, fake_redis):
        await cache.set("k", 1)
        assert await cache.delete("k") is True
        assert "test/k" not in fake_redis.store

    async def test_disabled_cache(self, disabled_cache):
        assert disabled_cache.enabled is False
        assert await disabled_cache.set("k", 1) is False
        assert await disabled_cache.get("k") is None
        assert await disabled_cache.ping() is False

    async def test_connection_failure_is_a_miss(self):
        client = MagicMock()
        client.get = AsyncMock(side_effect=RedisConnectionError("refused"))
        client.set = AsyncMock(side_effect=RedisConnectionError("refused"))
        cache = CacheService(redis_url="redis://down", client=client)

        assert await cache.get("k") is None
        assert await cache.set("k", 1) is False

    async def test_unserializable_value_is_not_written(self, cache, fake_redis):
        assert await cache.set("k", {"value": object()}) is False
        assert fake_redis.store == {}

    async def test_corrupt_payload_is_a_miss(self, cache, fake_redis):
        fake_redis.store["test/k"] = "{not json"
        assert await cache.get("k") is None

    async def test_ping(self, cache):
        assert await cache.ping() is True

    async def test_close_releases_client(self, cache):
        await cache.close()
        assert cache._redis_client is None

    @pytest.mark.parametrize("prefix,expected", [("", "k"), ("app/", "app/k")])
    def test_key_prefix(self, prefix, expected):
        assert CacheService(redis_url="", key_prefix=prefix)._key("k") == expected
