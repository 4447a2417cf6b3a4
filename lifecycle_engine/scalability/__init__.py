"""Scalability: per-resource serialization, in-process and across nodes."""

from lifecycle_engine.scalability.distributed_lock import DistributedLock, RedisLockBackend
from lifecycle_engine.scalability.resource_lock import (
    LocalResourceLock,
    NoLock,
    ResourceLock,
    lock_key,
)

__all__ = [
    "DistributedLock",
    "LocalResourceLock",
    "NoLock",
    "RedisLockBackend",
    "ResourceLock",
    "lock_key",
]
