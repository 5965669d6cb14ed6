"""
Redis connection and the rate-limit counter store
"""
from redis.asyncio import Redis
from typing import Optional
import logging

from momento.core.config import settings

logger = logging.getLogger(__name__)


# Global Redis client
redis_client: Optional[Redis] = None


async def get_redis() -> Redis:
    """
    Get Redis client instance

    Returns:
        Redis client
    """
    if redis_client is None:
        raise RuntimeError("Redis client not initialized")
    return redis_client


async def init_cache() -> Redis:
    """
    Initialize Redis connection
    """
    global redis_client
    redis_client = Redis.from_url(
        settings.REDIS_URL,
        encoding="utf-8",
        decode_responses=True
    )
    await redis_client.ping()
    logger.info("Redis cache initialized")
    return redis_client


async def close_cache() -> None:
    """
    Close Redis connection
    """
    global redis_client
    if redis_client:
        await redis_client.aclose()
        redis_client = None
    logger.info("Redis cache closed")


class RedisRateLimitStore:
    """
    Counter store for the FCM rate limiter.

    Values are plain strings; errors are raised to the caller so the limiter
    can apply its fail-open / fail-closed policy.
    """

    def __init__(self, client: Redis):
        self.client = client

    async def get(self, key: str) -> Optional[str]:
        return await self.client.get(key)

    async def set(self, key: str, value: str, ttl_seconds: Optional[int] = None) -> None:
        if ttl_seconds:
            await self.client.set(key, value, ex=ttl_seconds)
        else:
            await self.client.set(key, value)
