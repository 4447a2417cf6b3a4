"""In-process serializing lock scoped to one resource id."""

import asyncio
from contextlib import asynccontextmanager
from typing import AsyncContextManager, AsyncIterator, Dict, Protocol

from lifecycle_engine.domain.models.resource import ResourceRef


def lock_key(ref: ResourceRef) -> str:
    return f"{ref.kind.value}:{ref.resource_id}"


class ResourceLock(Protocol):
    def hold(self, key: str) -> AsyncContextManager[None]:
        ...


class LocalResourceLock:
    """
    One asyncio.Lock per key, created on demand and dropped when no task
    holds or waits for it. Waiters acquire in FIFO order.
    """

    def __init__(self) -> None:
        self._locks: Dict[str, asyncio.Lock] = {}
        self._users: Dict[str, int] = {}

    @asynccontextmanager
    async def hold(self, key: str) -> AsyncIterator[None]:
        lock = self._locks.setdefault(key, asyncio.Lock())
        self._users[key] = self._users.get(key, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._users[key] -= 1
            if self._users[key] == 0:
                del self._users[key]
                del self._locks[key]

    def active_keys(self) -> int:
        return len(self._locks)


class NoLock:
    """Disables serialization; optimistic version checks alone guard writes."""

    @asynccontextmanager
    async def hold(self, key: str) -> AsyncIterator[None]:
        yield
