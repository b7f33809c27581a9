"""
Redis connection used by the rate limiter.

Redis is optional: until init_redis() succeeds, get_redis() returns None
and rate limits are kept in process memory.
"""

import logging

from redis.asyncio import Redis, from_url

from studieo.core.config import settings

logger = logging.getLogger(__name__)

_client: Redis | None = None


async def init_redis() -> Redis:
    """Connect and ping; the client is only published once the ping succeeds."""
    global _client
    client = from_url(settings.redis_url, encoding="utf-8", decode_responses=True)
    await client.ping()
    _client = client
    logger.info("Redis client ready")
    return _client


async def get_redis() -> Redis | None:
    return _client


async def close_redis() -> None:
    global _client
    if _client is not None:
        await _client.aclose()
        _client = None
