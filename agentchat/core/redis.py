"""Redis client lifecycle management."""

import redis.asyncio as redis
import structlog

from agentchat.core.config import settings

logger = structlog.get_logger()

redis_client: redis.Redis | None = None  # type: ignore[type-arg]


async def init_redis() -> redis.Redis | None:  # type: ignore[type-arg]
    """Initialize the Redis connection.

    Redis only backs the cross-worker turn lock, so an unreachable server
    is logged and the application falls back to process-local locking.
    """
    global redis_client  # noqa: PLW0603
    client = redis.from_url(settings.redis.url, decode_responses=True)
    try:
        await client.ping()
    except (redis.ConnectionError, redis.TimeoutError):
        logger.warning(
            "Redis unavailable, using in-process turn locks", url=settings.redis.url
        )
        await client.aclose()
        return None
    redis_client = client
    return redis_client


async def close_redis() -> None:
    """Close the Redis connection."""
    global redis_client  # noqa: PLW0603
    if redis_client:
        await redis_client.aclose()
        redis_client = None


def get_redis() -> redis.Redis | None:  # type: ignore[type-arg]
    """Get the active Redis client, or None when Redis is not connected."""
    return redis_client
