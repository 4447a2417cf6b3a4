"""Role-based access control for tenant members. Platform roles are handled by the access gate."""

from enum import Enum
from types import MappingProxyType
from typing import FrozenSet, Mapping

from lifecycle_engine.domain.exceptions import ErrorCode, ForbiddenError
from lifecycle_engine.domain.status import (
    DisputeStatus,
    EquipmentStatus,
    ResourceKind,
    ServiceRequestStatus,
    SupportTicketStatus,
)


class MembershipRole(Enum):
    OWNER = "owner"
    ADMIN = "admin"
    MEMBER = "member"


class PlatformRole(Enum):
    """Cross-tenant roles. SYSTEM is the identity of scheduled sweeps."""

    PLATFORM_ADMIN = "platform_admin"
    PLATFORM_SUPPORT = "platform_support"
    SYSTEM = "system"


ELEVATED_ROLES: FrozenSet[PlatformRole] = frozenset(PlatformRole)


class Action(str, Enum):
    VIEW = "view"
    TRANSITION = "transition"
    RESTRICTED_TRANSITION = "restricted_transition"


# Permission matrix:
# Role      View  Transition  Restricted transition
# OWNER     ✓     ✓           ✓
# ADMIN     ✓     ✓           ✓
# MEMBER    ✓     ✓           ✗

_ACTION_PERMISSIONS: dict[tuple[MembershipRole, Action], bool] = {
    (MembershipRole.OWNER, Action.VIEW): True,
    (MembershipRole.OWNER, Action.TRANSITION): True,
    (MembershipRole.OWNER, Action.RESTRICTED_TRANSITION): True,
    (MembershipRole.ADMIN, Action.VIEW): True,
    (MembershipRole.ADMIN, Action.TRANSITION): True,
    (MembershipRole.ADMIN, Action.RESTRICTED_TRANSITION): True,
    (MembershipRole.MEMBER, Action.VIEW): True,
    (MembershipRole.MEMBER, Action.TRANSITION): True,
    (MembershipRole.MEMBER, Action.RESTRICTED_TRANSITION): False,
}

# Destructive targets: only owners and admins may move a resource here.
RESTRICTED_TARGETS: Mapping[ResourceKind, FrozenSet[str]] = MappingProxyType({
    ResourceKind.EQUIPMENT: frozenset({EquipmentStatus.RETIRED.value}),
    ResourceKind.SERVICE_REQUEST: frozenset({ServiceRequestStatus.CANCELLED.value}),
    ResourceKind.SUPPORT_TICKET: frozenset({SupportTicketStatus.CLOSED.value}),
    ResourceKind.DISPUTE: frozenset({DisputeStatus.ESCALATED.value}),
})

# Kinds whose transitions no tenant role may perform (billing is platform-administered).
ELEVATED_ONLY_TRANSITIONS: FrozenSet[ResourceKind] = frozenset({ResourceKind.SUBSCRIPTION})


def transition_action(kind: ResourceKind, to_state: str) -> Action:
    """Permission a tenant member needs to move a resource of kind to to_state."""
    if to_state in RESTRICTED_TARGETS.get(kind, frozenset()):
        return Action.RESTRICTED_TRANSITION
    return Action.TRANSITION


class RBACService:
    """Check permission for membership role and action. Raise ForbiddenError if invalid."""

    def has_permission(self, role: MembershipRole, action: Action) -> bool:
        return _ACTION_PERMISSIONS.get((role, action), False)

    def check_permission(self, role: MembershipRole, action: Action) -> None:
        """Raises ForbiddenError if role does not have permission for action."""
        if not self.has_permission(role, action):
            raise ForbiddenError(
                f"Role {role.value} does not have permission for action '{action.value}'",
                code=ErrorCode.INSUFFICIENT_ROLE,
                details={"role": role.value, "action": action.value},
            )
