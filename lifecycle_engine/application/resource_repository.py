"""Resource store protocols. Application layer depends on these; infrastructure implements them."""

from typing import Optional, Protocol, runtime_checkable

from lifecycle_engine.domain.models.resource import Resource, ResourceRef
from lifecycle_engine.governance.audit_models import AuditEntry
from lifecycle_engine.governance.audit_repository import AuditSink


class ResourceStore(Protocol):
    """Persistence for lifecycle-controlled resources. A committed write is visible to the next load()."""

    async def load(self, ref: ResourceRef) -> Optional[Resource]:
        """Return the resource, or None if it does not exist."""
        ...

    async def save_if_version_matches(self, resource: Resource, expected_version: int) -> bool:
        """
        Replace the stored resource only if its current version equals expected_version.
        Returns False on mismatch (or if the resource vanished); nothing is written then.
        """
        ...


@runtime_checkable
class AtomicTransitionStore(Protocol):
    """Store that can write the new state and its audit entry in one transaction."""

    async def save_with_audit(
        self, resource: Resource, expected_version: int, entry: AuditEntry
    ) -> bool:
        """Version-checked state write plus audit insert, committed together. False on mismatch."""
        ...

    def owns_audit_sink(self, sink: AuditSink) -> bool:
        """True when entries written by save_with_audit are visible through sink."""
        ...
