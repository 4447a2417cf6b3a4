"""
Tenant/role access gate.

Consulted for every mutation and every read of tenant-sensitive detail. Rules
are evaluated in order:

  (a) unauthenticated caller            -> denied
  (b) elevated platform role            -> allowed for any tenant
  (c) caller tenant != resource tenant  -> denied
  (d) membership role restrictions, evaluated only after the tenant matched

A denial is terminal; it is never downgraded to a partial read.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from lifecycle_engine.domain.exceptions import ErrorCode, ForbiddenError
from lifecycle_engine.domain.models.resource import Resource
from lifecycle_engine.domain.status import state_value
from lifecycle_engine.security.rbac import (
    ELEVATED_ONLY_TRANSITIONS,
    ELEVATED_ROLES,
    Action,
    MembershipRole,
    PlatformRole,
    RBACService,
    transition_action,
)


@dataclass(frozen=True)
class Caller:
    """Authenticated identity making a request. user_id None means anonymous."""

    user_id: Optional[str]
    tenant_id: Optional[str] = None
    membership_role: Optional[MembershipRole] = None
    platform_role: Optional[PlatformRole] = None

    @property
    def is_authenticated(self) -> bool:
        return bool(self.user_id and self.user_id.strip())

    @property
    def is_elevated(self) -> bool:
        return self.platform_role in ELEVATED_ROLES


SYSTEM_CALLER = Caller(user_id="system", platform_role=PlatformRole.SYSTEM)


class AccessReason(str, Enum):
    TENANT_MEMBER = "TENANT_MEMBER"
    ELEVATED_ROLE = "ELEVATED_ROLE"
    UNAUTHENTICATED = "UNAUTHENTICATED"
    TENANT_MISMATCH = "TENANT_MISMATCH"
    INSUFFICIENT_ROLE = "INSUFFICIENT_ROLE"


_DENIAL_CODES = {
    AccessReason.UNAUTHENTICATED: ErrorCode.UNAUTHENTICATED,
    AccessReason.TENANT_MISMATCH: ErrorCode.TENANT_MISMATCH,
    AccessReason.INSUFFICIENT_ROLE: ErrorCode.INSUFFICIENT_ROLE,
}


@dataclass(frozen=True)
class AccessDecision:
    """Outcome of an authorization check. Carries the actor for audit even when cross-tenant."""

    allowed: bool
    reason: AccessReason
    actor_id: Optional[str]
    cross_tenant: bool = False

    def raise_if_denied(self) -> None:
        if self.allowed:
            return
        raise ForbiddenError(
            f"Access denied: {self.reason.value}",
            code=_DENIAL_CODES[self.reason],
            details={"reason": self.reason.value, "actor_id": self.actor_id},
        )


class AccessGate:
    """Decide whether a caller may view or transition a resource."""

    def __init__(self, rbac: Optional[RBACService] = None) -> None:
        self._rbac = rbac or RBACService()

    def authorize(
        self,
        caller: Optional[Caller],
        resource: Resource,
        action: Action,
        to_state: Optional[str] = None,
    ) -> AccessDecision:
        """Evaluate rules (a)-(d). to_state is required for Action.TRANSITION."""
        if caller is None or not caller.is_authenticated:
            return AccessDecision(False, AccessReason.UNAUTHENTICATED, None)

        actor = caller.user_id
        if caller.is_elevated:
            return AccessDecision(
                True,
                AccessReason.ELEVATED_ROLE,
                actor,
                cross_tenant=caller.tenant_id != resource.tenant_id,
            )

        if not caller.tenant_id or caller.tenant_id != resource.tenant_id:
            return AccessDecision(False, AccessReason.TENANT_MISMATCH, actor)

        if caller.membership_role is None:
            return AccessDecision(False, AccessReason.INSUFFICIENT_ROLE, actor)

        if action == Action.VIEW:
            required = Action.VIEW
        else:
            if resource.kind in ELEVATED_ONLY_TRANSITIONS:
                return AccessDecision(False, AccessReason.INSUFFICIENT_ROLE, actor)
            if to_state is None:
                required = Action.TRANSITION
            else:
                required = transition_action(resource.kind, state_value(to_state))

        if not self._rbac.has_permission(caller.membership_role, required):
            return AccessDecision(False, AccessReason.INSUFFICIENT_ROLE, actor)
        return AccessDecision(True, AccessReason.TENANT_MEMBER, actor)

    def require(
        self,
        caller: Optional[Caller],
        resource: Resource,
        action: Action,
        to_state: Optional[str] = None,
    ) -> AccessDecision:
        """authorize(), raising ForbiddenError on denial."""
        decision = self.authorize(caller, resource, action, to_state)
        decision.raise_if_denied()
        return decision
