"""Domain layer: kinds, transition tables, time-derived status, exceptions. Pure business logic only."""

from lifecycle_engine.domain.exceptions import (
    AuditWriteError,
    ConflictError,
    ErrorCode,
    ForbiddenError,
    InvalidTransitionError,
    LifecycleError,
    NotFoundError,
    PreconditionFailedError,
)
from lifecycle_engine.domain.status import ResourceKind
from lifecycle_engine.domain.transitions import (
    assert_transition,
    can_transition,
    initial_state,
    is_terminal,
    valid_transitions,
)
from lifecycle_engine.domain.models import Resource, ResourceRef
from lifecycle_engine.domain.status_resolver import (
    AccessLevel,
    EffectiveStatus,
    StatusResolver,
    days_remaining,
    resolve_effective_status,
)

__all__ = [
    "AccessLevel",
    "AuditWriteError",
    "ConflictError",
    "EffectiveStatus",
    "ErrorCode",
    "ForbiddenError",
    "InvalidTransitionError",
    "LifecycleError",
    "NotFoundError",
    "PreconditionFailedError",
    "Resource",
    "ResourceKind",
    "ResourceRef",
    "StatusResolver",
    "assert_transition",
    "can_transition",
    "days_remaining",
    "initial_state",
    "is_terminal",
    "resolve_effective_status",
    "valid_transitions",
]
