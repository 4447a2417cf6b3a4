"""In-memory append-only audit sink."""

import asyncio
from typing import List, Optional, Sequence, Set

from lifecycle_engine.governance.audit_models import AuditEntry


class InMemoryAuditSink:
    """Implements AuditSink. Entries are kept in append order; duplicate entry_ids are ignored."""

    def __init__(self) -> None:
        self._entries: List[AuditEntry] = []
        self._ids: Set[str] = set()
        self._lock = asyncio.Lock()

    async def append(self, entry: AuditEntry) -> None:
        async with self._lock:
            if entry.entry_id in self._ids:
                return
            self._ids.add(entry.entry_id)
            self._entries.append(entry)

    async def query(self, resource_kind: str, resource_id: str) -> Sequence[AuditEntry]:
        return [
            e for e in self._entries
            if e.resource_kind == resource_kind and e.resource_id == resource_id
        ]

    async def query_by_tenant(
        self,
        tenant_id: str,
        *,
        resource_kind: Optional[str] = None,
        actor_id: Optional[str] = None,
    ) -> Sequence[AuditEntry]:
        return [
            e for e in self._entries
            if e.tenant_id == tenant_id
            and (resource_kind is None or e.resource_kind == resource_kind)
            and (actor_id is None or e.actor_id == actor_id)
        ]

    def __len__(self) -> int:
        return len(self._entries)
