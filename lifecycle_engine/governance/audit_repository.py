"""Audit sink protocol. Governance layer depends on this; infrastructure implements it."""

from typing import Optional, Protocol, Sequence

from lifecycle_engine.governance.audit_models import AuditEntry


class AuditSink(Protocol):
    """Append-only store of audit entries. Exposes no update or delete."""

    async def append(self, entry: AuditEntry) -> None:
        """Persist entry. Appending an entry_id already stored is a no-op."""
        ...

    async def query(self, resource_kind: str, resource_id: str) -> Sequence[AuditEntry]:
        """Entries for one resource in append order, oldest first."""
        ...

    async def query_by_tenant(
        self,
        tenant_id: str,
        *,
        resource_kind: Optional[str] = None,
        actor_id: Optional[str] = None,
    ) -> Sequence[AuditEntry]:
        """Entries for one tenant in append order, optionally filtered."""
        ...
