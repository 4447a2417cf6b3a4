"""Governance tests: audit entry fields, idempotent append, retry until durable."""

from unittest.mock import AsyncMock

import pytest

from conftest import NOW
from lifecycle_engine.domain.exceptions import AuditWriteError, ErrorCode
from lifecycle_engine.governance.audit_logger import AuditLog, transition_action_name, transition_entry
from lifecycle_engine.governance.audit_models import AuditEntry
from lifecycle_engine.infrastructure.memory.audit_sink import InMemoryAuditSink


def _entry(**overrides) -> AuditEntry:
    values = dict(
        resource_kind="equipment",
        resource_id="eq-1",
        tenant_id="tenant-a",
        actor_id="user-1",
        from_state="available",
        to_state="in_use",
        timestamp_utc=NOW,
        correlation_id="corr-1",
    )
    values.update(overrides)
    return transition_entry(**values)


def test_entry_carries_who_what_when():
    entry = _entry()
    assert entry.action == "equipment.transition.in_use"
    assert entry.actor_id == "user-1"
    assert entry.from_state == "available"
    assert entry.to_state == "in_use"
    assert entry.timestamp_utc == NOW
    assert entry.entry_id
    d = entry.to_dict()
    assert d["timestamp_utc"] == NOW.isoformat()
    assert d["cross_tenant"] is False
    with pytest.raises(AttributeError):
        entry.actor_id = "other"  # type: ignore[misc]


def test_entries_get_distinct_ids():
    assert _entry().entry_id != _entry().entry_id


def test_action_name_format():
    assert transition_action_name("subscription", "grace_period") == "subscription.transition.grace_period"


async def test_record_transition_appends_once():
    sink = InMemoryAuditSink()
    log = AuditLog(sink, retry_backoff_seconds=0)
    entry = await log.record_transition(
        resource_kind="quote",
        resource_id="q-1",
        tenant_id="tenant-a",
        actor_id="user-1",
        from_state="pending",
        to_state="accepted",
        timestamp_utc=NOW,
    )
    assert await log.query_by_resource("quote", "q-1") == [entry]


async def test_duplicate_entry_id_is_not_stored_twice():
    sink = InMemoryAuditSink()
    log = AuditLog(sink, retry_backoff_seconds=0)
    entry = _entry()
    await log.append(entry)
    await log.append(entry)
    assert len(sink) == 1


async def test_transient_sink_failure_is_retried():
    sink = AsyncMock()
    sink.append = AsyncMock(side_effect=[ConnectionError("db down"), ConnectionError("db down"), None])
    log = AuditLog(sink, retry_attempts=3, retry_backoff_seconds=0)
    await log.append(_entry())
    assert sink.append.await_count == 3


async def test_exhausted_retries_raise_audit_write_error():
    sink = AsyncMock()
    sink.append = AsyncMock(side_effect=ConnectionError("db down"))
    log = AuditLog(sink, retry_attempts=2, retry_backoff_seconds=0)
    entry = _entry()
    with pytest.raises(AuditWriteError) as exc_info:
        await log.append(entry)
    assert exc_info.value.code == ErrorCode.AUDIT_WRITE_FAILED
    assert exc_info.value.details == {"entry_id": entry.entry_id}
    assert sink.append.await_count == 2


def test_retry_attempts_must_be_positive():
    with pytest.raises(ValueError):
        AuditLog(InMemoryAuditSink(), retry_attempts=0)


async def test_query_by_tenant_filters():
    sink = InMemoryAuditSink()
    log = AuditLog(sink)
    await log.append(_entry())
    await log.append(_entry(resource_kind="quote", resource_id="q-1", to_state="accepted"))
    await log.append(_entry(tenant_id="tenant-b", actor_id="user-2"))
    assert len(await log.query_by_tenant("tenant-a")) == 2
    quotes = await log.query_by_tenant("tenant-a", resource_kind="quote")
    assert [e.resource_id for e in quotes] == ["q-1"]
    assert await log.query_by_tenant("tenant-b", actor_id="user-1") == []
