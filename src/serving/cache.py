"""
Redis Cache Module

Optional read-through cache for product detail responses:
- Connection pooling
- JSON serialization
- TTL management
- Namespaced invalidation

When Redis is disabled or unreachable every cache call degrades to a miss,
so the API keeps serving straight from the database.
"""

import json
from typing import Any, Optional, Union
from datetime import timedelta

import structlog
from redis.asyncio import Redis, ConnectionPool
from redis.exceptions import RedisError

from src.config.settings import RedisSettings

logger = structlog.get_logger(__name__)

_redis_pool: Optional[ConnectionPool] = None
_redis_client: Optional[Redis] = None


async def init_redis(settings: RedisSettings) -> Redis:
    """Initialize Redis connection pool"""
    global _redis_pool, _redis_client

    if _redis_client is not None:
        return _redis_client

    pool = ConnectionPool.from_url(
        settings.get_url(),
        max_connections=settings.max_connections,
        socket_timeout=settings.socket_timeout,
        decode_responses=settings.decode_responses,
    )
    client = Redis(connection_pool=pool)

    try:
        await client.ping()
    except RedisError as e:
        logger.error("Redis connection failed", error=str(e))
        await pool.disconnect()
        raise

    _redis_pool, _redis_client = pool, client
    logger.info("Redis connection established")
    return _redis_client


async def close_redis() -> None:
    """Close Redis connection pool"""
    global _redis_pool, _redis_client

    if _redis_client:
        await _redis_client.aclose()
        _redis_client = None

    if _redis_pool:
        await _redis_pool.disconnect()
        _redis_pool = None

    logger.info("Redis connection closed")


def get_redis() -> Optional[Redis]:
    """Redis client instance, None while caching is off"""
    return _redis_client


async def cache_get(key: str) -> Optional[Any]:
    """
    Get value from cache.

    Args:
        key: Cache key

    Returns:
        Cached value or None if not found
    """
    client = get_redis()
    if client is None:
        return None

    try:
        value = await client.get(key)
    except RedisError as e:
        logger.warning("Cache read failed", key=key, error=str(e))
        return None

    if value is None:
        return None

    try:
        return json.loads(value)
    except json.JSONDecodeError:
        return value


async def cache_set(
    key: str,
    value: Any,
    ttl: Optional[Union[int, timedelta]] = None,
) -> bool:
    """
    Set value in cache.

    Args:
        key: Cache key
        value: Value to cache (will be JSON serialized)
        ttl: Time-to-live in seconds or timedelta

    Returns:
        True if successful
    """
    client = get_redis()
    if client is None:
        return False

    try:
        serialized = json.dumps(value, default=str)
    except (TypeError, ValueError) as e:
        logger.warning("Failed to serialize value for cache", key=key, error=str(e))
        return False

    try:
        if ttl:
            if isinstance(ttl, timedelta):
                ttl = int(ttl.total_seconds())
            await client.setex(key, ttl, serialized)
        else:
            await client.set(key, serialized)
    except RedisError as e:
        logger.warning("Cache write failed", key=key, error=str(e))
        return False

    return True


async def cache_delete(*keys: str) -> int:
    """Delete keys from cache"""
    client = get_redis()
    if client is None or not keys:
        return 0

    try:
        return await client.delete(*keys)
    except RedisError as e:
        logger.warning("Cache delete failed", keys=list(keys), error=str(e))
        return 0


class CacheManager:
    """
    Cache manager with namespace support and automatic key generation.

    Example:
        cache = CacheManager("products")
        await cache.set("blue-tee", product_data, ttl=3600)
        product = await cache.get("blue-tee")
    """

    def __init__(self, namespace: str, default_ttl: int = 3600):
        self.namespace = namespace
        self.default_ttl = default_ttl

    def _key(self, key: str) -> str:
        """Generate namespaced key"""
        return f"{self.namespace}:{key}"

    async def get(self, key: str) -> Optional[Any]:
        """Get value from cache"""
        return await cache_get(self._key(key))

    async def set(
        self,
        key: str,
        value: Any,
        ttl: Optional[int] = None,
    ) -> bool:
        """Set value in cache"""
        return await cache_set(self._key(key), value, ttl or self.default_ttl)

    async def delete(self, *keys: str) -> int:
        """Delete keys from the namespace"""
        return await cache_delete(*(self._key(key) for key in keys))


products_cache = CacheManager("products", default_ttl=3600)
