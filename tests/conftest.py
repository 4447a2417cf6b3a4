"""Shared fixtures: fixed clock, in-memory adapters, resource builders, callers."""

from datetime import datetime, timedelta, timezone
from typing import Any, Optional

import pytest

from lifecycle_engine.application.transition_executor import TransitionExecutor
from lifecycle_engine.core.clock import FixedClock
from lifecycle_engine.domain.models.resource import Resource
from lifecycle_engine.domain.status import ResourceKind
from lifecycle_engine.governance.audit_logger import AuditLog
from lifecycle_engine.infrastructure.memory.audit_sink import InMemoryAuditSink
from lifecycle_engine.infrastructure.memory.resource_store import InMemoryResourceStore
from lifecycle_engine.security.access_gate import Caller
from lifecycle_engine.security.rbac import MembershipRole, PlatformRole

NOW = datetime(2025, 3, 10, 12, 0, tzinfo=timezone.utc)


def make_resource(
    kind: ResourceKind,
    status: Optional[str],
    resource_id: str = "res-1",
    tenant_id: str = "tenant-a",
    **overrides: Any,
) -> Resource:
    created = overrides.pop("created_at", NOW - timedelta(days=30))
    return Resource(
        resource_id=resource_id,
        tenant_id=tenant_id,
        kind=kind,
        stored_status=status,
        created_at=created,
        updated_at=overrides.pop("updated_at", created),
        **overrides,
    )


def member(tenant_id: str = "tenant-a", user_id: str = "user-member") -> Caller:
    return Caller(user_id=user_id, tenant_id=tenant_id, membership_role=MembershipRole.MEMBER)


def owner(tenant_id: str = "tenant-a", user_id: str = "user-owner") -> Caller:
    return Caller(user_id=user_id, tenant_id=tenant_id, membership_role=MembershipRole.OWNER)


def platform_admin(user_id: str = "user-platform") -> Caller:
    return Caller(user_id=user_id, platform_role=PlatformRole.PLATFORM_ADMIN)


@pytest.fixture
def clock():
    return FixedClock(NOW)


@pytest.fixture
def store():
    return InMemoryResourceStore()


@pytest.fixture
def audit_sink():
    return InMemoryAuditSink()


@pytest.fixture
def audit_log(audit_sink):
    return AuditLog(audit_sink, retry_attempts=3, retry_backoff_seconds=0)


@pytest.fixture
def executor(store, audit_log, clock):
    return TransitionExecutor(store, audit_log, clock=clock)
