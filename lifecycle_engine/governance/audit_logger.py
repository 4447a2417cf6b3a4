"""Append-only audit log for lifecycle transitions. No update or delete is exposed."""

import asyncio
import logging
import uuid
from datetime import datetime
from typing import Any, Dict, Optional, Sequence

from lifecycle_engine.domain.exceptions import AuditWriteError
from lifecycle_engine.governance.audit_models import AuditEntry
from lifecycle_engine.governance.audit_repository import AuditSink

logger = logging.getLogger(__name__)

TRANSITION_ACTION_PREFIX = "transition"


def transition_action_name(resource_kind: str, to_state: str) -> str:
    """e.g. 'equipment.transition.in_use'."""
    return f"{resource_kind}.{TRANSITION_ACTION_PREFIX}.{to_state}"


def transition_entry(
    *,
    resource_kind: str,
    resource_id: str,
    tenant_id: str,
    actor_id: str,
    from_state: Optional[str],
    to_state: str,
    timestamp_utc: datetime,
    action: Optional[str] = None,
    correlation_id: Optional[str] = None,
    cross_tenant: bool = False,
    metadata: Optional[Dict[str, Any]] = None,
) -> AuditEntry:
    """New audit entry with a fresh entry_id. action defaults to '<kind>.transition.<to_state>'."""
    return AuditEntry(
        entry_id=str(uuid.uuid4()),
        resource_kind=resource_kind,
        resource_id=resource_id,
        tenant_id=tenant_id,
        action=action or transition_action_name(resource_kind, to_state),
        actor_id=actor_id,
        from_state=from_state,
        to_state=to_state,
        timestamp_utc=timestamp_utc,
        correlation_id=correlation_id,
        cross_tenant=cross_tenant,
        metadata=metadata or {},
    )


class AuditLog:
    """
    Writes immutable audit entries via a sink and reads them back per resource.
    Audit completeness is a hard invariant: a failed append is retried with
    backoff, and exhausting the retries raises AuditWriteError rather than
    dropping the entry.
    """

    def __init__(
        self,
        sink: AuditSink,
        *,
        retry_attempts: int = 5,
        retry_backoff_seconds: float = 0.05,
    ) -> None:
        if retry_attempts < 1:
            raise ValueError("retry_attempts must be at least 1")
        self._sink = sink
        self._attempts = retry_attempts
        self._backoff = retry_backoff_seconds

    @property
    def sink(self) -> AuditSink:
        return self._sink

    async def append(self, entry: AuditEntry) -> None:
        """Append entry until the sink accepts it, up to the configured attempts."""
        last_error: Optional[Exception] = None
        for attempt in range(1, self._attempts + 1):
            try:
                await self._sink.append(entry)
                return
            except Exception as e:
                last_error = e
                logger.warning(
                    "audit_append_retry",
                    extra={
                        "entry_id": entry.entry_id,
                        "resource_kind": entry.resource_kind,
                        "resource_id": entry.resource_id,
                        "attempt": attempt,
                        "error": str(e),
                    },
                )
                if attempt < self._attempts:
                    await asyncio.sleep(self._backoff * (2 ** (attempt - 1)))
        logger.error(
            "audit_append_failed",
            extra={"entry": entry.to_dict(), "error": str(last_error)},
        )
        raise AuditWriteError(
            f"Audit entry {entry.entry_id} could not be recorded: {last_error}",
            details={"entry_id": entry.entry_id},
        ) from last_error

    async def record_transition(
        self,
        *,
        resource_kind: str,
        resource_id: str,
        tenant_id: str,
        actor_id: str,
        from_state: Optional[str],
        to_state: str,
        timestamp_utc: datetime,
        correlation_id: Optional[str] = None,
        cross_tenant: bool = False,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> AuditEntry:
        """Build and append the single audit entry for an accepted transition."""
        entry = transition_entry(
            resource_kind=resource_kind,
            resource_id=resource_id,
            tenant_id=tenant_id,
            actor_id=actor_id,
            from_state=from_state,
            to_state=to_state,
            timestamp_utc=timestamp_utc,
            correlation_id=correlation_id,
            cross_tenant=cross_tenant,
            metadata=metadata,
        )
        await self.append(entry)
        return entry

    async def query_by_resource(self, resource_kind: str, resource_id: str) -> Sequence[AuditEntry]:
        """Entries for one resource, oldest first."""
        return await self._sink.query(resource_kind, resource_id)

    async def query_by_tenant(
        self,
        tenant_id: str,
        *,
        resource_kind: Optional[str] = None,
        actor_id: Optional[str] = None,
    ) -> Sequence[AuditEntry]:
        return await self._sink.query_by_tenant(
            tenant_id, resource_kind=resource_kind, actor_id=actor_id
        )
