"""Redis-based per-category lock serializing "load more" crawls."""

import asyncio
import logging
import time
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional
from uuid import uuid4

import redis.asyncio as redis

from src.config import settings

logger = logging.getLogger(__name__)

LOCK_KEY_TEMPLATE = "crawl:category:{category_id}:lock"

# 0 = already gone, 1 = released, 2 = owned by another token
RELEASE_SCRIPT = """
local owner = redis.call('GET', KEYS[1])
if not owner then
    return 0
end
if owner == ARGV[1] then
    redis.call('DEL', KEYS[1])
    return 1
end
return 2
"""


class LockStatus:
    """Outcome of trying to enter a crawl lock."""

    ACQUIRED = "acquired"
    BUSY = "busy"  # Another crawl held the lock for the whole wait window
    UNAVAILABLE = "unavailable"  # Redis unreachable or locking disabled


def lock_key(category_id: int) -> str:
    return LOCK_KEY_TEMPLATE.format(category_id=category_id)


class CrawlLockManager:
    """
    Mutual exclusion for crawls of one category.

    The lock value is an owner token; release is a compare-and-delete so a
    crawl whose lock expired never frees a successor's lock. The TTL bounds
    how long a crashed crawl can block its category.
    """

    def __init__(
        self,
        redis_url: Optional[str] = None,
        enabled: Optional[bool] = None,
    ):
        """
        Args:
            redis_url: Redis connection URL (defaults to settings)
            enabled: Override settings.crawl_lock_enabled
        """
        self.redis_url = redis_url or settings.redis_url
        self.enabled = settings.crawl_lock_enabled if enabled is None else enabled
        self._redis: Optional[redis.Redis] = None

    async def _client(self) -> redis.Redis:
        if self._redis is None:
            self._redis = redis.from_url(self.redis_url, decode_responses=True)
        return self._redis

    async def close(self):
        if self._redis is not None:
            await self._redis.aclose()
            self._redis = None

    async def acquire(
        self,
        category_id: int,
        ttl_seconds: Optional[int] = None,
        wait_seconds: Optional[float] = None,
    ) -> Optional[str]:
        """
        Take the category lock, polling until `wait_seconds` have passed.

        Returns:
            Owner token, or None if another crawl still holds the lock

        Raises:
            redis.RedisError: If Redis cannot be reached
        """
        client = await self._client()
        key = lock_key(category_id)
        ttl = ttl_seconds or settings.crawl_lock_ttl_seconds
        wait = settings.crawl_lock_wait_seconds if wait_seconds is None else wait_seconds
        deadline = time.monotonic() + wait
        token = uuid4().hex

        while not await client.set(key, token, nx=True, ex=ttl):
            if time.monotonic() >= deadline:
                logger.info(f"Category {category_id} still locked after {wait}s")
                return None
            await asyncio.sleep(settings.crawl_lock_poll_seconds)

        logger.debug(f"Locked category {category_id}")
        return token

    async def release(self, category_id: int, token: str) -> bool:
        """Release the lock if `token` still owns it."""
        try:
            client = await self._client()
            result = await client.eval(RELEASE_SCRIPT, 1, lock_key(category_id), token)
        except redis.RedisError as e:
            logger.error(f"Error releasing lock for category {category_id}: {e}")
            return False

        if result == 2:
            logger.warning(f"Lock for category {category_id} now belongs to another crawl")
            return False
        return True

    async def force_unlock(self, category_id: int) -> bool:
        """Delete a category lock regardless of owner."""
        try:
            client = await self._client()
            await client.delete(lock_key(category_id))
        except redis.RedisError as e:
            logger.error(f"Failed to force unlock category {category_id}: {e}")
            return False
        logger.warning(f"Force-cleared crawl lock for category {category_id}")
        return True

    @asynccontextmanager
    async def hold(self, category_id: int) -> AsyncIterator[str]:
        """
        Serialize crawls of one category.

        Yields a LockStatus value. BUSY means another crawl kept the lock for
        the whole wait window; UNAVAILABLE means the crawl runs unlocked.
        """
        if not self.enabled:
            yield LockStatus.UNAVAILABLE
            return

        try:
            token = await self.acquire(category_id)
        except (redis.RedisError, OSError) as e:
            logger.warning(f"Crawl lock unavailable, continuing unlocked: {e}")
            yield LockStatus.UNAVAILABLE
            return

        if token is None:
            yield LockStatus.BUSY
            return

        try:
            yield LockStatus.ACQUIRED
        finally:
            await self.release(category_id, token)


# Global lock manager instance
crawl_lock_manager = CrawlLockManager()
