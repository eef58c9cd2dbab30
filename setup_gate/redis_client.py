"""
Shared Redis client for password attempt and verification records.

Only opened when REDIS_URL is configured; otherwise the password gate keeps
its records in process memory.
"""

from typing import Optional

import redis.asyncio as aioredis
from redis.exceptions import RedisError

from setup_gate.utils.logger import get_logger

logger = get_logger(__name__)

# One client per process, created by the app lifespan
_client: Optional[aioredis.Redis] = None


async def connect_redis(redis_url: str) -> aioredis.Redis:
    """
    Open the shared client and check the server answers.

    Raises:
        RedisError: If the server cannot be reached
    """
    global _client
    if _client is not None:
        return _client

    client = aioredis.from_url(
        redis_url,
        decode_responses=True,
        max_connections=10,
    )
    try:
        await client.ping()
    except (RedisError, OSError):
        logger.error("redis_connection_failed", exc_info=True)
        await client.aclose()
        raise

    _client = client
    logger.info("redis_connected")
    return _client


async def close_redis() -> None:
    global _client
    if _client is not None:
        await _client.aclose()
        _client = None
        logger.info("redis_closed")
