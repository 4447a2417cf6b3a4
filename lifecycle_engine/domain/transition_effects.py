"""Field changes that accompany a transition, besides the status itself."""

from datetime import datetime, timedelta
from typing import Any, Callable, Dict, Mapping, Tuple

from lifecycle_engine.domain.models.resource import Resource
from lifecycle_engine.domain.status import ResourceKind, ServiceRequestStatus, SubscriptionStatus

# Payload keys that map onto Resource attributes; everything else lands in Resource.fields.
TIMESTAMP_FIELDS = frozenset({
    "scheduled_at",
    "completed_at",
    "subscription_expires_at",
    "grace_period_ends_at",
})

Effect = Callable[[Resource, Dict[str, Any], datetime, timedelta], None]


def _mark_completed(resource: Resource, changes: Dict[str, Any], now: datetime, grace: timedelta) -> None:
    changes.setdefault("completed_at", now)


def _open_grace_window(resource: Resource, changes: Dict[str, Any], now: datetime, grace: timedelta) -> None:
    if changes.get("grace_period_ends_at") or resource.grace_period_ends_at:
        return
    expires_at = changes.get("subscription_expires_at", resource.subscription_expires_at)
    changes["grace_period_ends_at"] = (expires_at or now) + grace


def _activate(resource: Resource, changes: Dict[str, Any], now: datetime, grace: timedelta) -> None:
    # Activation ends the trial and any grace window.
    changes["is_trial"] = False
    changes.setdefault("grace_period_ends_at", None)


_EFFECTS: Mapping[Tuple[ResourceKind, str], Effect] = {
    (ResourceKind.SERVICE_REQUEST, ServiceRequestStatus.COMPLETED.value): _mark_completed,
    (ResourceKind.SUBSCRIPTION, SubscriptionStatus.GRACE_PERIOD.value): _open_grace_window,
    (ResourceKind.SUBSCRIPTION, SubscriptionStatus.ACTIVE.value): _activate,
}


def apply_transition(
    resource: Resource,
    to_state: str,
    payload: Mapping[str, Any],
    now: datetime,
    grace_period: timedelta,
) -> Resource:
    """New resource with to_state, bumped version, updated_at=now and payload fields applied."""
    changes: Dict[str, Any] = {}
    extra_fields = dict(resource.fields)
    for key, value in payload.items():
        if key in TIMESTAMP_FIELDS:
            changes[key] = value
        else:
            extra_fields[key] = value

    effect = _EFFECTS.get((resource.kind, to_state))
    if effect is not None:
        effect(resource, changes, now, grace_period)

    return resource.evolve(
        stored_status=to_state,
        version=resource.version + 1,
        updated_at=now,
        fields=extra_fields,
        **changes,
    )
