"""Post-commit transition notifications. Best-effort: publish failure never undoes a commit."""

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Optional, Protocol


@dataclass(frozen=True)
class TransitionEvent:
    """Message emitted after a transition and its audit entry are durable."""

    resource_kind: str
    resource_id: str
    tenant_id: str
    from_state: Optional[str]
    to_state: str
    actor_id: str
    version: int
    occurred_at: datetime
    correlation_id: Optional[str] = None

    @property
    def routing_key(self) -> str:
        return f"{self.resource_kind}.{self.to_state}"

    def to_message(self) -> Dict[str, Any]:
        return {
            "resource_kind": self.resource_kind,
            "resource_id": self.resource_id,
            "tenant_id": self.tenant_id,
            "from_state": self.from_state,
            "to_state": self.to_state,
            "actor_id": self.actor_id,
            "version": self.version,
            "occurred_at": self.occurred_at.isoformat(),
            "correlation_id": self.correlation_id,
        }


class TransitionPublisher(Protocol):
    async def publish(self, event: TransitionEvent) -> None:
        ...
