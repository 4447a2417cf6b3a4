"""Lifecycle exceptions. Typed, locale-agnostic: callers render codes into copy."""

from enum import Enum
from typing import Any, Dict, Optional


class ErrorCode(str, Enum):
    """Structured failure codes. Presentation maps each to bilingual text."""

    # NotFound
    RESOURCE_NOT_FOUND = "RESOURCE_NOT_FOUND"
    # Forbidden
    UNAUTHENTICATED = "UNAUTHENTICATED"
    TENANT_MISMATCH = "TENANT_MISMATCH"
    INSUFFICIENT_ROLE = "INSUFFICIENT_ROLE"
    # InvalidTransition
    UNKNOWN_KIND = "UNKNOWN_KIND"
    UNKNOWN_STATE = "UNKNOWN_STATE"
    SELF_TRANSITION = "SELF_TRANSITION"
    TERMINAL_STATE = "TERMINAL_STATE"
    TRANSITION_NOT_ALLOWED = "TRANSITION_NOT_ALLOWED"
    # PreconditionFailed
    PRECONDITION_FAILED = "PRECONDITION_FAILED"
    # Conflict
    VERSION_CONFLICT = "VERSION_CONFLICT"
    # Audit durability
    AUDIT_WRITE_FAILED = "AUDIT_WRITE_FAILED"


class LifecycleError(Exception):
    """Base for all lifecycle-engine errors. Carries a code, never presentation text."""

    retryable = False
    default_code = ErrorCode.PRECONDITION_FAILED

    def __init__(
        self,
        message: str,
        *,
        code: Optional[ErrorCode] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.message = message
        self.code = code or self.default_code
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        """Structured representation for the caller's error envelope."""
        return {
            "code": self.code.value,
            "message": self.message,
            "retryable": self.retryable,
            "details": self.details,
        }


class NotFoundError(LifecycleError):
    """Raised when the referenced resource does not exist."""

    default_code = ErrorCode.RESOURCE_NOT_FOUND


class ForbiddenError(LifecycleError):
    """Raised on access gate denial: unauthenticated, wrong tenant or insufficient role."""

    default_code = ErrorCode.INSUFFICIENT_ROLE


class InvalidTransitionError(LifecycleError):
    """Raised when the requested move is not in the kind's transition table."""

    default_code = ErrorCode.TRANSITION_NOT_ALLOWED

    def __init__(
        self,
        kind: str,
        from_state: Optional[str],
        to_state: str,
        *,
        code: Optional[ErrorCode] = None,
    ) -> None:
        self.kind = kind
        self.from_state = from_state
        self.to_state = to_state
        super().__init__(
            f"Invalid {kind} transition: {from_state} -> {to_state}",
            code=code,
            details={"kind": kind, "from_state": from_state, "to_state": to_state},
        )


class PreconditionFailedError(LifecycleError):
    """Raised when a domain-supplied validation rejects the transition payload."""

    default_code = ErrorCode.PRECONDITION_FAILED


class ConflictError(LifecycleError):
    """Raised on a concurrent-write version mismatch. Safe to retry after reloading."""

    retryable = True
    default_code = ErrorCode.VERSION_CONFLICT


class AuditWriteError(LifecycleError):
    """Raised when the audit sink could not durably record an accepted transition."""

    default_code = ErrorCode.AUDIT_WRITE_FAILED
