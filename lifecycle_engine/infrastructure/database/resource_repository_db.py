"""DB-backed resource store and audit sink (lifecycle_resources, lifecycle_audit_entries tables)."""

from datetime import datetime, timezone
from typing import List, Optional, Sequence

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from lifecycle_engine.domain.models.resource import Resource, ResourceRef
from lifecycle_engine.domain.status import ResourceKind
from lifecycle_engine.governance.audit_models import AuditEntry
from lifecycle_engine.governance.audit_repository import AuditSink
from lifecycle_engine.infrastructure.database.models import AuditEntryRecord, ResourceRecord


def _utc(value: Optional[datetime]) -> Optional[datetime]:
    # Some drivers hand back naive datetimes for timezone-aware columns.
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _to_resource(orm: ResourceRecord) -> Resource:
    return Resource(
        resource_id=orm.resource_id,
        tenant_id=orm.tenant_id,
        kind=ResourceKind(orm.kind),
        stored_status=orm.status,
        created_at=_utc(orm.created_at),
        updated_at=_utc(orm.updated_at),
        version=orm.version,
        scheduled_at=_utc(orm.scheduled_at),
        completed_at=_utc(orm.completed_at),
        subscription_expires_at=_utc(orm.subscription_expires_at),
        grace_period_ends_at=_utc(orm.grace_period_ends_at),
        is_trial=bool(orm.is_trial),
        fields=dict(orm.fields_ or {}),
    )


def _state_columns(resource: Resource) -> dict:
    return {
        "status": resource.stored_status,
        "version": resource.version,
        "updated_at": resource.updated_at,
        "scheduled_at": resource.scheduled_at,
        "completed_at": resource.completed_at,
        "subscription_expires_at": resource.subscription_expires_at,
        "grace_period_ends_at": resource.grace_period_ends_at,
        "is_trial": resource.is_trial,
        "fields_": dict(resource.fields),
    }


def _to_record(entry: AuditEntry) -> AuditEntryRecord:
    return AuditEntryRecord(
        entry_id=entry.entry_id,
        resource_kind=entry.resource_kind,
        resource_id=entry.resource_id,
        tenant_id=entry.tenant_id,
        action=entry.action,
        actor_id=entry.actor_id,
        from_state=entry.from_state,
        to_state=entry.to_state,
        timestamp_utc=entry.timestamp_utc,
        correlation_id=entry.correlation_id,
        cross_tenant=entry.cross_tenant,
        metadata_=dict(entry.metadata),
    )


def _to_entry(orm: AuditEntryRecord) -> AuditEntry:
    return AuditEntry(
        entry_id=orm.entry_id,
        resource_kind=orm.resource_kind,
        resource_id=orm.resource_id,
        tenant_id=orm.tenant_id,
        action=orm.action,
        actor_id=orm.actor_id,
        from_state=orm.from_state,
        to_state=orm.to_state,
        timestamp_utc=_utc(orm.timestamp_utc),
        correlation_id=orm.correlation_id,
        cross_tenant=bool(orm.cross_tenant),
        metadata=dict(orm.metadata_ or {}),
    )


async def _versioned_update(session: AsyncSession, resource: Resource, expected_version: int) -> bool:
    stmt = (
        update(ResourceRecord)
        .where(
            ResourceRecord.kind == resource.kind.value,
            ResourceRecord.resource_id == resource.resource_id,
            ResourceRecord.version == expected_version,
        )
        .values(**_state_columns(resource))
        .execution_options(synchronize_session=False)
    )
    result = await session.execute(stmt)
    return result.rowcount == 1


class DbResourceStore:
    """
    Implements ResourceStore, AtomicTransitionStore and ResourceSource.
    The version check is part of the UPDATE's WHERE clause, so a stale writer
    matches zero rows instead of overwriting.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._sessions = session_factory

    async def add(self, resource: Resource) -> None:
        """Insert a new resource. Creation is not a transition and is not audited."""
        async with self._sessions() as session:
            session.add(
                ResourceRecord(
                    kind=resource.kind.value,
                    resource_id=resource.resource_id,
                    tenant_id=resource.tenant_id,
                    created_at=resource.created_at,
                    **_state_columns(resource),
                )
            )
            await session.commit()

    async def load(self, ref: ResourceRef) -> Optional[Resource]:
        async with self._sessions() as session:
            stmt = select(ResourceRecord).where(
                ResourceRecord.kind == ref.kind.value,
                ResourceRecord.resource_id == ref.resource_id,
            )
            result = await session.execute(stmt)
            orm = result.scalar_one_or_none()
            return _to_resource(orm) if orm is not None else None

    async def save_if_version_matches(self, resource: Resource, expected_version: int) -> bool:
        async with self._sessions() as session:
            saved = await _versioned_update(session, resource, expected_version)
            if not saved:
                await session.rollback()
                return False
            await session.commit()
            return True

    async def save_with_audit(
        self, resource: Resource, expected_version: int, entry: AuditEntry
    ) -> bool:
        """State update and audit insert in one transaction; neither is visible without the other."""
        async with self._sessions() as session:
            if not await _versioned_update(session, resource, expected_version):
                await session.rollback()
                return False
            session.add(_to_record(entry))
            await session.commit()
            return True

    def owns_audit_sink(self, sink: AuditSink) -> bool:
        """save_with_audit rows are only visible through a sink on the same database."""
        return isinstance(sink, DbAuditSink) and sink.session_factory is self._sessions

    async def refs_by_kind(self, kind: ResourceKind) -> List[ResourceRef]:
        async with self._sessions() as session:
            stmt = (
                select(ResourceRecord.resource_id)
                .where(ResourceRecord.kind == kind.value)
                .order_by(ResourceRecord.resource_id)
            )
            result = await session.execute(stmt)
            return [ResourceRef(kind=kind, resource_id=rid) for rid in result.scalars().all()]


class DbAuditSink:
    """Implements AuditSink on lifecycle_audit_entries. Exposes no update or delete."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._sessions = session_factory

    @property
    def session_factory(self) -> async_sessionmaker[AsyncSession]:
        return self._sessions

    async def append(self, entry: AuditEntry) -> None:
        async with self._sessions() as session:
            session.add(_to_record(entry))
            try:
                await session.commit()
            except IntegrityError:
                # Unique entry_id: a retried append that already landed.
                await session.rollback()
                existing = await session.execute(
                    select(AuditEntryRecord.id).where(AuditEntryRecord.entry_id == entry.entry_id)
                )
                if existing.scalar_one_or_none() is None:
                    raise

    async def query(self, resource_kind: str, resource_id: str) -> Sequence[AuditEntry]:
        async with self._sessions() as session:
            stmt = (
                select(AuditEntryRecord)
                .where(
                    AuditEntryRecord.resource_kind == resource_kind,
                    AuditEntryRecord.resource_id == resource_id,
                )
                .order_by(AuditEntryRecord.id)
            )
            result = await session.execute(stmt)
            return [_to_entry(orm) for orm in result.scalars().all()]

    async def query_by_tenant(
        self,
        tenant_id: str,
        *,
        resource_kind: Optional[str] = None,
        actor_id: Optional[str] = None,
    ) -> Sequence[AuditEntry]:
        async with self._sessions() as session:
            stmt = select(AuditEntryRecord).where(AuditEntryRecord.tenant_id == tenant_id)
            if resource_kind is not None:
                stmt = stmt.where(AuditEntryRecord.resource_kind == resource_kind)
            if actor_id is not None:
                stmt = stmt.where(AuditEntryRecord.actor_id == actor_id)
            result = await session.execute(stmt.order_by(AuditEntryRecord.id))
            return [_to_entry(orm) for orm in result.scalars().all()]
