"""
Chaos: audit store, Redis and broker failures around a transition.
System must: never commit state without its audit entry, never audit twice,
fail cleanly when the lock backend is down, keep commits when the broker is down.
"""

import pytest

from conftest import make_resource, member
from lifecycle_engine.application.transition_executor import TransitionExecutor
from lifecycle_engine.domain.exceptions import AuditWriteError
from lifecycle_engine.domain.models.resource import ResourceRef
from lifecycle_engine.domain.status import ResourceKind
from lifecycle_engine.governance.audit_logger import AuditLog
from lifecycle_engine.infrastructure.memory.audit_sink import InMemoryAuditSink
from lifecycle_engine.infrastructure.memory.resource_store import InMemoryResourceStore
from lifecycle_engine.scalability.distributed_lock import DistributedLock

EQ = ResourceRef(ResourceKind.EQUIPMENT, "eq-1")


class FlakyAuditSink(InMemoryAuditSink):
    """Fails the first `failures` appends, then behaves."""

    def __init__(self, failures: int) -> None:
        super().__init__()
        self._failures = failures

    async def append(self, entry):
        if self._failures > 0:
            self._failures -= 1
            raise ConnectionError("audit store unavailable")
        await super().append(entry)


class LandsThenTimesOutSink(InMemoryAuditSink):
    """First append is stored but reported as a timeout; a retry must not duplicate it."""

    def __init__(self) -> None:
        super().__init__()
        self._timed_out = False

    async def append(self, entry):
        await super().append(entry)
        if not self._timed_out:
            self._timed_out = True
            raise TimeoutError("ack lost")


class RevertFailingStore(InMemoryResourceStore):
    """The first write goes through; the next `revert_failures` writes raise, then return `revert_result`."""

    def __init__(self, resources, revert_failures: int, revert_result: bool = True) -> None:
        super().__init__(resources)
        self._writes = 0
        self._revert_failures = revert_failures
        self._revert_result = revert_result

    async def save_if_version_matches(self, resource, expected_version):
        self._writes += 1
        if self._writes == 1:
            return await super().save_if_version_matches(resource, expected_version)
        if self._revert_failures > 0:
            self._revert_failures -= 1
            raise ConnectionError("resource store unavailable")
        if not self._revert_result:
            return False
        return await super().save_if_version_matches(resource, expected_version)


class FailingLockBackend:
    async def set_nx_ex(self, key: str, value: str, ttl: int) -> bool:
        raise ConnectionError("Redis connection refused")

    async def get(self, key: str) -> str | None:
        raise ConnectionError("Redis connection refused")

    async def delete_if_value(self, key: str, value: str) -> bool:
        raise ConnectionError("Redis connection refused")


class DownBroker:
    async def publish(self, event) -> None:
        raise ConnectionError("broker unreachable")


def _equipment():
    return make_resource(ResourceKind.EQUIPMENT, "available", resource_id="eq-1")


def _store():
    return InMemoryResourceStore([_equipment()])


async def test_transient_audit_outage_still_audits_once(clock):
    store = _store()
    sink = FlakyAuditSink(failures=2)
    executor = TransitionExecutor(store, AuditLog(sink, retry_attempts=3, retry_backoff_seconds=0), clock=clock)

    await executor.execute(member(), EQ, "in_use")

    assert (await store.load(EQ)).stored_status == "in_use"
    assert len(await sink.query("equipment", "eq-1")) == 1


async def test_lost_ack_does_not_duplicate_entry(clock):
    store = _store()
    sink = LandsThenTimesOutSink()
    executor = TransitionExecutor(store, AuditLog(sink, retry_backoff_seconds=0), clock=clock)

    await executor.execute(member(), EQ, "in_use")

    assert len(sink) == 1


async def test_persistent_audit_outage_leaves_no_unaudited_state(clock):
    store = _store()
    sink = FlakyAuditSink(failures=100)
    executor = TransitionExecutor(store, AuditLog(sink, retry_attempts=3, retry_backoff_seconds=0), clock=clock)

    with pytest.raises(AuditWriteError):
        await executor.execute(member(), EQ, "in_use")

    assert (await store.load(EQ)).stored_status == "available"
    assert len(sink) == 0

    # Recovery: the next attempt goes through normally.
    sink._failures = 0
    updated = await executor.execute(member(), EQ, "in_use")
    assert updated.stored_status == "in_use"
    assert len(sink) == 1


async def test_redis_outage_fails_before_any_write(clock, audit_log, audit_sink):
    store = _store()
    executor = TransitionExecutor(
        store, audit_log, clock=clock, lock=DistributedLock(FailingLockBackend())
    )

    with pytest.raises(ConnectionError):
        await executor.execute(member(), EQ, "in_use")

    assert (await store.load(EQ)).version == 1
    assert len(audit_sink) == 0


async def test_broker_outage_keeps_committed_transition(clock, audit_log, audit_sink):
    store = _store()
    executor = TransitionExecutor(store, audit_log, clock=clock, publisher=DownBroker())

    await executor.execute(member(), EQ, "in_use")
    await executor.execute(member(), EQ, "maintenance")

    assert (await store.load(EQ)).stored_status == "maintenance"
    assert len(audit_sink) == 2


def _recovering_executor(store, sink, clock):
    return TransitionExecutor(
        store,
        AuditLog(sink, retry_attempts=3, retry_backoff_seconds=0),
        clock=clock,
        recovery_backoff_seconds=0,
    )


async def test_failed_revert_is_retried_until_state_is_restored(clock):
    store = RevertFailingStore([_equipment()], revert_failures=2)
    sink = FlakyAuditSink(failures=100)
    executor = _recovering_executor(store, sink, clock)

    with pytest.raises(AuditWriteError):
        await executor.execute(member(), EQ, "in_use")

    restored = await store.load(EQ)
    assert restored.stored_status == "available"
    assert restored.version == 3
    assert len(sink) == 0


async def test_audit_recovering_during_failed_revert_keeps_transition(clock):
    store = RevertFailingStore([_equipment()], revert_failures=100)
    sink = FlakyAuditSink(failures=4)
    executor = _recovering_executor(store, sink, clock)

    updated = await executor.execute(member(), EQ, "in_use")

    assert updated.stored_status == "in_use"
    assert (await store.load(EQ)).stored_status == "in_use"
    (entry,) = await sink.query("equipment", "eq-1")
    assert (entry.from_state, entry.to_state) == ("available", "in_use")


async def test_revert_blocked_by_newer_version_waits_for_audit(clock):
    store = RevertFailingStore([_equipment()], revert_failures=0, revert_result=False)
    sink = FlakyAuditSink(failures=5)
    executor = _recovering_executor(store, sink, clock)

    await executor.execute(member(), EQ, "in_use")

    assert (await store.load(EQ)).stored_status == "in_use"
    assert len(await sink.query("equipment", "eq-1")) == 1
