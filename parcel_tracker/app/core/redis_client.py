"""
Redis client initialization.

The backend client owns the connection; nothing here is module-global.
"""

import redis.asyncio as redis
from parcel_tracker.app.core.config import Settings


def create_redis(settings: Settings) -> redis.Redis:
    """Create an async Redis client from settings (connects lazily)."""
    return redis.from_url(
        settings.redis_url,
        decode_responses=settings.redis_decode_responses,
    )


async def ping_redis(client) -> bool:
    """
    Test Redis connection.

    Returns:
        True if connection successful, False otherwise
    """
    try:
        return await client.ping()
    except Exception:
        return False
