"""Security: membership RBAC and the tenant/role access gate."""

from lifecycle_engine.security.access_gate import (
    SYSTEM_CALLER,
    AccessDecision,
    AccessGate,
    AccessReason,
    Caller,
)
from lifecycle_engine.security.rbac import Action, MembershipRole, PlatformRole, RBACService

__all__ = [
    "SYSTEM_CALLER",
    "AccessDecision",
    "AccessGate",
    "AccessReason",
    "Action",
    "Caller",
    "MembershipRole",
    "PlatformRole",
    "RBACService",
]
