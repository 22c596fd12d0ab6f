"""Best-effort Redis cache for engine responses.

Every failure (connection, timeout, bad payload) is logged and reported as a
miss or a no-op; callers never see a cache error. Without a configured Redis
URL the cache is disabled and always misses.
"""
import json
from typing import Any, Optional

import redis.asyncio as redis
from redis.exceptions import RedisError

from ..config.settings import settings
from ..core.errors import CacheError
from ..core.logging import get_logger

logger = get_logger(__name__)


class CacheService:
    """Redis-backed key/value cache with TTL"""

    def __init__(self, redis_url: Optional[str] = None, key_prefix: Optional[str] = None,
                 ttl_seconds: Optional[int] = None, client: Optional[redis.Redis] = None):
        self.redis_url = redis_url if redis_url is not None else settings.redis_url
        self.key_prefix = key_prefix if key_prefix is not None else settings.cache_key_prefix
        self.ttl_seconds = ttl_seconds or settings.cache_ttl_seconds
        self._redis_client = client

    @property
    def enabled(self) -> bool:
        return self._redis_client is not None or bool(self.redis_url)

    async def get_redis_client(self) -> redis.Redis:
        """Get or create Redis client connection."""
        if self._redis_client is None:
            self._redis_client = redis.Redis.from_url(
                self.redis_url,
                decode_responses=True,
                socket_connect_timeout=5,
                socket_timeout=5,
            )
        return self._redis_client

    def _key(self, key: str) -> str:
        return f"{self.key_prefix}{key}"

    @staticmethod
    def _serialize(value: Any) -> str:
        try:
            return json.dumps(value)
        except (TypeError, ValueError) as e:
            raise CacheError("Cache value is not JSON serializable", {"error": str(e)}) from e

    @staticmethod
    def _deserialize(data: Any) -> Optional[Any]:
        if not isinstance(data, (str, bytes)):
            return None
        try:
            return json.loads(data)
        except ValueError as e:
            raise CacheError("Cached value is not valid JSON", {"error": str(e)}) from e

    async def get(self, key: str) -> Optional[Any]:
        """Cached value for ``key``, or None on miss or failure"""
        if not self.enabled:
            return None

        try:
            client = await self.get_redis_client()
            value = self._deserialize(await client.get(self._key(key)))
        except (RedisError, OSError, CacheError) as e:
            logger.error("cache_get_failed", key=self._key(key), error=str(e))
            return None

        logger.debug("cache_hit" if value is not None else "cache_miss", key=self._key(key))
        return value

    async def set(self, key: str, value: Any, ttl: Optional[int] = None) -> bool:
        """Store ``value`` with a TTL; returns False when the write failed"""
        if not self.enabled:
            return False

        try:
            client = await self.get_redis_client()
            await client.set(self._key(key), self._serialize(value), ex=ttl or self.ttl_seconds)
        except (RedisError, OSError, CacheError) as e:
            logger.error("cache_set_failed", key=self._key(key), error=str(e))
            return False
        return True

    async def delete(self, key: str) -> bool:
        if not self.enabled:
            return False

        try:
            client = await self.get_redis_client()
            await client.delete(self._key(key))
        except (RedisError, OSError) as e:
            logger.error("cache_delete_failed", key=self._key(key), error=str(e))
            return False
        return True

    async def ping(self) -> bool:
        if not self.enabled:
            return False

        try:
            client = await self.get_redis_client()
            return bool(await client.ping())
        except (RedisError, OSError) as e:
            logger.warning("cache_ping_failed", error=str(e))
            return False

    async def close(self):
        if self._redis_client is not None:
            await self._redis_client.aclose()
            self._redis_client = None
