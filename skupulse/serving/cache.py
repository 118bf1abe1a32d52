"""
Redis Cache Module

Optional read-side cache for the dashboard listing. When REDIS_URL is unset
the cache is disabled and every lookup misses.
"""

import json
from typing import Any, Awaitable, Callable, Optional

import structlog
from redis.asyncio import Redis, ConnectionPool

from skupulse.config.settings import RedisSettings

logger = structlog.get_logger(__name__)


async def init_redis(settings: RedisSettings) -> Optional[Redis]:
    """Create and ping a Redis client; None when no URL is configured"""
    if not settings.url:
        logger.info("Redis cache disabled")
        return None

    pool = ConnectionPool.from_url(
        settings.url,
        max_connections=settings.max_connections,
        socket_timeout=settings.socket_timeout,
        decode_responses=True,
    )
    client = Redis(connection_pool=pool)

    try:
        await client.ping()
        logger.info("Redis connection established")
    except Exception as e:
        logger.error("Redis connection failed", error=str(e))
        await client.aclose()
        raise

    return client


class CacheManager:
    """
    Namespaced JSON cache.

    Example:
        cache = CacheManager(redis, "skus", default_ttl=300)
        rows = await cache.get_or_set("2025-03-01", load_rows)
    """

    def __init__(self, client: Optional[Redis], namespace: str, default_ttl: int = 300):
        self.client = client
        self.namespace = namespace
        self.default_ttl = default_ttl

    @property
    def enabled(self) -> bool:
        return self.client is not None

    def _key(self, key: str) -> str:
        return f"{self.namespace}:{key}"

    async def get(self, key: str) -> Optional[Any]:
        if not self.enabled:
            return None
        try:
            value = await self.client.get(self._key(key))
        except Exception as e:
            logger.warning("Cache read failed", key=key, error=str(e))
            return None
        if value is None:
            return None
        try:
            return json.loads(value)
        except json.JSONDecodeError:
            return None

    async def set(self, key: str, value: Any, ttl: Optional[int] = None) -> bool:
        if not self.enabled:
            return False
        try:
            serialized = json.dumps(value, default=str)
        except (TypeError, ValueError) as e:
            logger.warning("Failed to serialize value for cache", error=str(e))
            return False
        try:
            await self.client.setex(self._key(key), ttl or self.default_ttl, serialized)
        except Exception as e:
            logger.warning("Cache write failed", key=key, error=str(e))
            return False
        return True

    async def invalidate_all(self) -> int:
        """Drop every key in the namespace"""
        if not self.enabled:
            return 0
        keys = [k async for k in self.client.scan_iter(match=self._key("*"))]
        if not keys:
            return 0
        return await self.client.delete(*keys)

    async def get_or_set(self, key: str, factory: Callable[[], Awaitable[Any]], ttl: Optional[int] = None) -> Any:
        value = await self.get(key)
        if value is not None:
            return value
        value = await factory()
        await self.set(key, value, ttl)
        return value
