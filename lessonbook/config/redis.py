# lessonbook/config/redis.py
"""Redis connection for live slot notifications"""
import redis.asyncio as redis
from typing import Optional

from lessonbook.config.settings import get_settings

settings = get_settings()

# Shared by every publisher in the process
_redis_pool: Optional[redis.ConnectionPool] = None


def get_redis_pool() -> redis.ConnectionPool:
    """Get or create the pub/sub connection pool"""
    global _redis_pool
    if _redis_pool is None:
        _redis_pool = redis.ConnectionPool.from_url(
            settings.REDIS_URL,
            max_connections=settings.REDIS_MAX_CONNECTIONS,
            retry_on_timeout=True,
            socket_connect_timeout=2,
        )
    return _redis_pool


async def get_redis() -> redis.Redis:
    """Get a client backed by the shared pool"""
    return redis.Redis(connection_pool=get_redis_pool())


async def close_redis_pool() -> None:
    """Drop pooled connections on shutdown"""
    global _redis_pool
    if _redis_pool is not None:
        await _redis_pool.disconnect()
        _redis_pool = None


class RedisKeys:
    """Channel names for consistent naming"""

    # Slot changes for one tutor, consumed by open booking pages
    TUTOR_SLOTS_CHANNEL = "tutor:{tutor_id}:slots"

    @classmethod
    def tutor_slots_channel(cls, tutor_id) -> str:
        return cls.TUTOR_SLOTS_CHANNEL.format(tutor_id=tutor_id)
