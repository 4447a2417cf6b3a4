"""Domain model for lifecycle-controlled resources. Pure business semantics, no ORM."""

import dataclasses
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Optional

from lifecycle_engine.domain.status import ResourceKind, kind_value, state_value
from lifecycle_engine.domain.transitions import states


@dataclass(frozen=True)
class ResourceRef:
    """Address of a resource: kind plus id."""

    kind: ResourceKind
    resource_id: str

    def __post_init__(self) -> None:
        object.__setattr__(self, "kind", kind_value(self.kind))


@dataclass(frozen=True)
class Resource:
    """
    A record under lifecycle control. Immutable: a transition produces a new
    instance via evolve(). stored_status is always a state of the kind's table,
    except None for subscriptions that predate the lifecycle feature.
    """

    resource_id: str
    tenant_id: str
    kind: ResourceKind
    stored_status: Optional[str]
    created_at: datetime
    updated_at: datetime
    version: int = 1
    scheduled_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    subscription_expires_at: Optional[datetime] = None
    grace_period_ends_at: Optional[datetime] = None
    is_trial: bool = False
    fields: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        kind = kind_value(self.kind)
        object.__setattr__(self, "kind", kind)
        if self.stored_status is None:
            if kind != ResourceKind.SUBSCRIPTION:
                raise ValueError(f"{kind.value} {self.resource_id} has no stored status")
            return
        status = state_value(self.stored_status)
        if status not in states(kind):
            raise ValueError(f"{kind.value} {self.resource_id} has unknown status {status!r}")
        object.__setattr__(self, "stored_status", status)

    @property
    def ref(self) -> ResourceRef:
        return ResourceRef(kind=self.kind, resource_id=self.resource_id)

    def evolve(self, **changes: Any) -> "Resource":
        """Return a copy with the given attributes replaced."""
        return dataclasses.replace(self, **changes)
