# lifecycle_engine/infrastructure/cache/redis_client.py

from typing import Optional

import redis.asyncio as redis

from lifecycle_engine.config.settings import get_settings

_RELEASE_SCRIPT = (
    "if redis.call('get', KEYS[1]) == ARGV[1] "
    "then return redis.call('del', KEYS[1]) else return 0 end"
)


class RedisClient:
    """Lock backend for DistributedLock (implements RedisLockBackend)."""

    def __init__(self, redis_url: Optional[str] = None, client: Optional[redis.Redis] = None):
        if client is None:
            url = redis_url or get_settings().redis_url
            if not url:
                raise ValueError("redis_url is not configured")
            client = redis.from_url(url, decode_responses=True)
        self.client = client

    async def set_nx_ex(self, key: str, value: str, ttl: int) -> bool:
        """Set key to value only if not exists, with TTL. Returns True if key was set."""
        return bool(await self.client.set(key, value, nx=True, ex=ttl))

    async def get(self, key: str) -> Optional[str]:
        """Get value for key. Returns None if key does not exist."""
        return await self.client.get(key)

    async def delete_if_value(self, key: str, value: str) -> bool:
        """Delete key only if its value equals value (atomic). Returns True if deleted."""
        result = await self.client.eval(_RELEASE_SCRIPT, 1, key, value)
        return bool(result)

    async def close(self) -> None:
        await self.client.aclose()
