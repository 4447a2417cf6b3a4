"""Immutable audit entry model. Domain-level immutability."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Optional


@dataclass(frozen=True)
class AuditEntry:
    """
    Immutable record of one accepted transition: which resource, who, from/to, when (UTC).
    entry_id makes appends idempotent so a retried write never duplicates.
    """

    entry_id: str
    resource_kind: str
    resource_id: str
    tenant_id: str
    action: str
    actor_id: str
    from_state: Optional[str]
    to_state: str
    timestamp_utc: datetime
    correlation_id: Optional[str] = None
    cross_tenant: bool = False
    metadata: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        """Structured representation for JSON logging."""
        return {
            "entry_id": self.entry_id,
            "resource_kind": self.resource_kind,
            "resource_id": self.resource_id,
            "tenant_id": self.tenant_id,
            "action": self.action,
            "actor_id": self.actor_id,
            "from_state": self.from_state,
            "to_state": self.to_state,
            "timestamp_utc": self.timestamp_utc.isoformat(),
            "correlation_id": self.correlation_id,
            "cross_tenant": self.cross_tenant,
            "metadata": dict(self.metadata),
        }
