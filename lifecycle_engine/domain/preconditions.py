"""
Reusable domain preconditions.

A precondition is a callable (resource, to_state, payload) -> None that raises
PreconditionFailedError. Domain modules pass them to the executor at the call
site; the engine itself hard-codes none.
"""

from datetime import datetime
from typing import Any, Callable, Mapping, Optional

from lifecycle_engine.domain.exceptions import PreconditionFailedError
from lifecycle_engine.domain.models.resource import Resource

Precondition = Callable[[Resource, str, Mapping[str, Any]], None]

# Minimum length of a service completion report's work description.
COMPLETION_REPORT_MIN_LENGTH = 20


def require_min_length(field: str, min_length: int) -> Precondition:
    """Payload field must be a string of at least min_length non-blank characters."""

    def check(resource: Resource, to_state: str, payload: Mapping[str, Any]) -> None:
        value = payload.get(field)
        if not isinstance(value, str) or len(value.strip()) < min_length:
            raise PreconditionFailedError(
                f"Field '{field}' must be at least {min_length} characters",
                details={"field": field, "min_length": min_length},
            )

    return check


def require_fields(*fields: str) -> Precondition:
    """Each named payload field must be present and not None."""

    def check(resource: Resource, to_state: str, payload: Mapping[str, Any]) -> None:
        missing = [f for f in fields if payload.get(f) is None]
        if missing:
            raise PreconditionFailedError(
                f"Missing required fields: {', '.join(missing)}",
                details={"missing": missing},
            )

    return check


def require_future_timestamp(field: str, now: Callable[[], datetime]) -> Precondition:
    """Payload field must be a datetime strictly after now()."""

    def check(resource: Resource, to_state: str, payload: Mapping[str, Any]) -> None:
        value: Optional[datetime] = payload.get(field)
        if not isinstance(value, datetime) or value <= now():
            raise PreconditionFailedError(
                f"Field '{field}' must be a future timestamp",
                details={"field": field},
            )

    return check


def only_for(to_state: str, precondition: Precondition) -> Precondition:
    """Apply precondition only when the requested target is to_state."""

    def check(resource: Resource, target: str, payload: Mapping[str, Any]) -> None:
        if target == to_state:
            precondition(resource, target, payload)

    return check


def completion_report_required() -> Precondition:
    """Service requests may only complete with a work description of minimum length."""
    return only_for(
        "completed",
        require_min_length("work_description", COMPLETION_REPORT_MIN_LENGTH),
    )


def require_valid_subscription_period(now: Callable[[], datetime]) -> Precondition:
    """
    Activating a subscription needs an expiry in the future, either already
    stored or supplied in the payload (a renewal).
    """

    def check(resource: Resource, to_state: str, payload: Mapping[str, Any]) -> None:
        expires_at = payload.get("subscription_expires_at", resource.subscription_expires_at)
        if expires_at is None or expires_at <= now():
            raise PreconditionFailedError(
                "Subscription period has ended; a renewal expiry is required",
                details={"field": "subscription_expires_at"},
            )

    return check
