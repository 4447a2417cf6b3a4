"""Redis-based distributed locking. SETNX pattern, TTL, safe release. Serializes transitions on one resource across nodes."""

import asyncio
import uuid
from contextlib import asynccontextmanager
from typing import AsyncIterator, Protocol

from lifecycle_engine.domain.exceptions import ConflictError


class RedisLockBackend(Protocol):
    """Minimal Redis operations for distributed lock. Injected; no global state."""

    async def set_nx_ex(self, key: str, value: str, ttl: int) -> bool: ...
    async def get(self, key: str) -> str | None: ...
    async def delete_if_value(self, key: str, value: str) -> bool: ...


LOCK_PREFIX = "lifecycle:lock:"


class DistributedLock:
    """
    Distributed lock using Redis SET NX EX. Safe in concurrent async environment.
    Each acquire gets a unique token so only the holder can release.
    """

    def __init__(
        self,
        backend: RedisLockBackend,
        key_prefix: str = LOCK_PREFIX,
        ttl: int = 30,
        wait_timeout: float = 5.0,
        poll_interval: float = 0.05,
    ) -> None:
        self._backend = backend
        self._prefix = key_prefix
        self._ttl = ttl
        self._wait_timeout = wait_timeout
        self._poll = poll_interval

    def _key(self, key: str) -> str:
        return f"{self._prefix}{key}"

    async def acquire(self, key: str, ttl: int | None = None) -> str | None:
        """
        Try once to acquire the lock. Returns the holder token, or None if already held.
        TTL enforced; lock auto-expires to avoid deadlock.
        """
        token = str(uuid.uuid4())
        acquired = await self._backend.set_nx_ex(self._key(key), token, ttl or self._ttl)
        return token if acquired else None

    async def release(self, key: str, token: str) -> bool:
        """Release the lock only if token still holds it (atomic compare-and-delete)."""
        return await self._backend.delete_if_value(self._key(key), token)

    @asynccontextmanager
    async def hold(self, key: str) -> AsyncIterator[None]:
        """Wait up to wait_timeout for the lock; ConflictError if it stays held."""
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self._wait_timeout
        token = await self.acquire(key)
        while token is None:
            if loop.time() >= deadline:
                raise ConflictError(
                    f"Resource is locked by a concurrent transition: {key}",
                    details={"lock_key": key},
                )
            await asyncio.sleep(self._poll)
            token = await self.acquire(key)
        try:
            yield
        finally:
            await self.release(key, token)
