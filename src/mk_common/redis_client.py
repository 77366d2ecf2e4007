"""Redis client factory, used for background job locks only.

NOT used for balances or reservations (those go through PostgreSQL).
"""

import logging
import uuid
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import redis.asyncio as aioredis

from config.settings import settings
from src.mk_common.errors import JobAlreadyRunningError

logger = logging.getLogger(__name__)

_redis_pool: aioredis.Redis | None = None

# Delete the key only if we still own it (the TTL may have expired and another
# worker may have taken the lock since).
_RELEASE_SCRIPT = """
if redis.call('get', KEYS[1]) == ARGV[1] then
    return redis.call('del', KEYS[1])
end
return 0
"""


async def get_redis() -> aioredis.Redis:
    """Get or create the Redis connection pool."""
    global _redis_pool  # noqa: PLW0603
    if _redis_pool is None:
        _redis_pool = aioredis.from_url(
            settings.REDIS_URL,
            decode_responses=True,
        )
    return _redis_pool


async def close_redis() -> None:
    """Close the Redis connection pool."""
    global _redis_pool  # noqa: PLW0603
    if _redis_pool is not None:
        await _redis_pool.close()
        _redis_pool = None


@asynccontextmanager
async def job_lock(
    redis: aioredis.Redis, job_name: str, ttl_seconds: int
) -> AsyncIterator[str]:
    """Hold an exclusive lock for a background job (SET NX EX).

    Raises JobAlreadyRunningError if another worker holds it.
    """
    key = f"mk:job:{job_name}"
    token = uuid.uuid4().hex
    acquired = await redis.set(key, token, nx=True, ex=ttl_seconds)
    if not acquired:
        raise JobAlreadyRunningError(job_name)
    logger.info("Job lock acquired: %s", job_name)
    try:
        yield token
    finally:
        await redis.eval(_RELEASE_SCRIPT, 1, key, token)
        logger.info("Job lock released: %s", job_name)
