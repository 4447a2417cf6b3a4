"""
Time-derived status resolution.

Some kinds (organization subscriptions) are not fully described by their
stored status: expiry and the read-only grace window follow from comparing
the current time with stored timestamps. Resolution is a pure function of
(stored_status, now, timestamps); the clock is always passed in.

Precedence: an explicitly stored blocking state (suspended, expired) always
wins over time, and a stored grace_period can only advance to expired. Time
is consulted from scratch only for trial, active and missing statuses.
Records with no expiry timestamp (legacy organizations created before
billing existed) resolve to active, never to a blocked state.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum
from types import MappingProxyType
from typing import FrozenSet, Mapping, Optional, Union

from lifecycle_engine.core.clock import Clock
from lifecycle_engine.domain.models.resource import Resource
from lifecycle_engine.domain.status import ResourceKind, SubscriptionStatus

DAY = timedelta(days=1)
_MS = timedelta(milliseconds=1)
DEFAULT_GRACE_PERIOD = timedelta(days=7)


class EffectiveStatus(str, Enum):
    """Status a subscription-like resource is treated as right now."""

    TRIAL = "trial"
    ACTIVE = "active"
    GRACE_PERIOD = "grace_period"
    EXPIRED = "expired"
    SUSPENDED = "suspended"


class AccessLevel(str, Enum):
    """What an effective status permits: everything, reads only, or nothing."""

    FULL = "full"
    READ_ONLY = "read_only"
    BLOCKED = "blocked"


@dataclass(frozen=True)
class ExpiryPolicy:
    """How stored states of a kind combine with time."""

    override_states: FrozenSet[str]
    trial_state: str
    grace_state: str


EXPIRY_POLICIES: Mapping[ResourceKind, ExpiryPolicy] = MappingProxyType({
    ResourceKind.SUBSCRIPTION: ExpiryPolicy(
        override_states=frozenset({
            SubscriptionStatus.SUSPENDED.value,
            SubscriptionStatus.EXPIRED.value,
        }),
        trial_state=SubscriptionStatus.TRIAL.value,
        grace_state=SubscriptionStatus.GRACE_PERIOD.value,
    ),
})

_ACCESS_LEVELS: Mapping[EffectiveStatus, AccessLevel] = MappingProxyType({
    EffectiveStatus.TRIAL: AccessLevel.FULL,
    EffectiveStatus.ACTIVE: AccessLevel.FULL,
    EffectiveStatus.GRACE_PERIOD: AccessLevel.READ_ONLY,
    EffectiveStatus.EXPIRED: AccessLevel.BLOCKED,
    EffectiveStatus.SUSPENDED: AccessLevel.BLOCKED,
})


def has_expiry_semantics(kind) -> bool:
    return kind in EXPIRY_POLICIES


def grace_period_end(
    resource: Resource, grace_period: timedelta = DEFAULT_GRACE_PERIOD
) -> Optional[datetime]:
    """Stored grace end, or expiry plus the configured grace window."""
    if resource.grace_period_ends_at is not None:
        return resource.grace_period_ends_at
    if resource.subscription_expires_at is None:
        return None
    return resource.subscription_expires_at + grace_period


def resolve_effective_status(
    resource: Resource,
    now: datetime,
    grace_period: timedelta = DEFAULT_GRACE_PERIOD,
) -> Union[EffectiveStatus, str]:
    """
    Effective status of resource at now.
    Kinds without expiry semantics return their stored status unchanged.
    """
    policy = EXPIRY_POLICIES.get(resource.kind)
    if policy is None:
        return resource.stored_status

    stored = resource.stored_status
    if stored in policy.override_states:
        return EffectiveStatus(stored)

    if stored == policy.grace_state:
        # Entered explicitly or by an earlier sweep: the window only runs out.
        grace_end = grace_period_end(resource, grace_period)
        if grace_end is not None and now >= grace_end:
            return EffectiveStatus.EXPIRED
        return EffectiveStatus.GRACE_PERIOD

    is_trial = resource.is_trial or stored == policy.trial_state
    expires_at = resource.subscription_expires_at
    if expires_at is None:
        # Legacy record: never retroactively lock out an established tenant.
        return EffectiveStatus.TRIAL if is_trial else EffectiveStatus.ACTIVE

    if now > expires_at:
        if now < grace_period_end(resource, grace_period):
            return EffectiveStatus.GRACE_PERIOD
        return EffectiveStatus.EXPIRED

    return EffectiveStatus.TRIAL if is_trial else EffectiveStatus.ACTIVE


def days_remaining(target: Optional[datetime], now: datetime) -> int:
    """Whole days until target, rounded up; 0 once target has passed."""
    if target is None:
        return 0
    delta_ms = (target - now) // _MS
    if delta_ms <= 0:
        return 0
    day_ms = DAY // _MS
    return -(-delta_ms // day_ms)


def subscription_days_remaining(
    resource: Resource,
    now: datetime,
    grace_period: timedelta = DEFAULT_GRACE_PERIOD,
) -> Optional[int]:
    """Countdown shown to the tenant: to expiry, or to grace end once expired. None for legacy."""
    if resource.subscription_expires_at is None:
        return None
    effective = resolve_effective_status(resource, now, grace_period)
    if effective == EffectiveStatus.GRACE_PERIOD:
        return days_remaining(grace_period_end(resource, grace_period), now)
    if effective in (EffectiveStatus.EXPIRED, EffectiveStatus.SUSPENDED):
        return 0
    return days_remaining(resource.subscription_expires_at, now)


def access_level(effective: Union[EffectiveStatus, str, None]) -> AccessLevel:
    """Access permitted by an effective status. Non-expiring statuses grant full access."""
    try:
        return _ACCESS_LEVELS[EffectiveStatus(effective)]
    except ValueError:
        return AccessLevel.FULL


class StatusResolver:
    """Resolver bound to a clock and grace window. Holds no mutable state."""

    def __init__(self, clock: Clock, grace_period_days: int = 7) -> None:
        self._clock = clock
        self._grace = timedelta(days=grace_period_days)

    @property
    def grace_period(self) -> timedelta:
        return self._grace

    def now(self) -> datetime:
        return self._clock.now()

    def resolve(self, resource: Resource, now: Optional[datetime] = None) -> Union[EffectiveStatus, str]:
        return resolve_effective_status(resource, now or self._clock.now(), self._grace)

    def days_remaining(self, resource: Resource, now: Optional[datetime] = None) -> Optional[int]:
        return subscription_days_remaining(resource, now or self._clock.now(), self._grace)

    def access_level(self, resource: Resource, now: Optional[datetime] = None) -> AccessLevel:
        if not has_expiry_semantics(resource.kind):
            return AccessLevel.FULL
        return access_level(self.resolve(resource, now))
