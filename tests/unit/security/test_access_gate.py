"""Access gate: rule order, tenant isolation, elevated roles, restricted targets."""

import pytest

from conftest import make_resource, member, owner, platform_admin
from lifecycle_engine.domain.exceptions import ErrorCode, ForbiddenError
from lifecycle_engine.domain.status import ResourceKind
from lifecycle_engine.security.access_gate import SYSTEM_CALLER, AccessGate, AccessReason, Caller
from lifecycle_engine.security.rbac import Action


@pytest.fixture
def gate():
    return AccessGate()


@pytest.fixture
def equipment():
    return make_resource(ResourceKind.EQUIPMENT, "available", tenant_id="tenant-a")


@pytest.mark.parametrize("caller", [None, Caller(user_id=None), Caller(user_id="  ", tenant_id="tenant-a")])
def test_unauthenticated_is_denied(gate, equipment, caller):
    decision = gate.authorize(caller, equipment, Action.VIEW)
    assert decision.allowed is False
    assert decision.reason == AccessReason.UNAUTHENTICATED


def test_same_tenant_member_may_view_and_transition(gate, equipment):
    caller = member("tenant-a")
    assert gate.authorize(caller, equipment, Action.VIEW).allowed
    decision = gate.authorize(caller, equipment, Action.TRANSITION, "in_use")
    assert decision.allowed
    assert decision.reason == AccessReason.TENANT_MEMBER
    assert decision.cross_tenant is False


@pytest.mark.parametrize("action", [Action.VIEW, Action.TRANSITION])
def test_other_tenant_is_denied_regardless_of_role(gate, equipment, action):
    decision = gate.authorize(owner("tenant-b"), equipment, action, "in_use")
    assert decision.allowed is False
    assert decision.reason == AccessReason.TENANT_MISMATCH


def test_caller_without_tenant_is_denied(gate, equipment):
    caller = Caller(user_id="u-1", membership_role=None)
    assert gate.authorize(caller, equipment, Action.VIEW).reason == AccessReason.TENANT_MISMATCH


def test_tenant_match_without_membership_role_is_denied(gate, equipment):
    caller = Caller(user_id="u-1", tenant_id="tenant-a")
    assert gate.authorize(caller, equipment, Action.VIEW).reason == AccessReason.INSUFFICIENT_ROLE


def test_member_cannot_retire_equipment(gate, equipment):
    decision = gate.authorize(member("tenant-a"), equipment, Action.TRANSITION, "retired")
    assert decision.allowed is False
    assert decision.reason == AccessReason.INSUFFICIENT_ROLE
    assert gate.authorize(owner("tenant-a"), equipment, Action.TRANSITION, "retired").allowed


def test_platform_admin_crosses_tenants_and_is_flagged(gate, equipment):
    decision = gate.authorize(platform_admin(), equipment, Action.TRANSITION, "retired")
    assert decision.allowed
    assert decision.reason == AccessReason.ELEVATED_ROLE
    assert decision.cross_tenant is True
    assert decision.actor_id == "user-platform"


def test_subscription_transitions_are_platform_only(gate):
    sub = make_resource(ResourceKind.SUBSCRIPTION, "active", tenant_id="tenant-a")
    assert gate.authorize(owner("tenant-a"), sub, Action.VIEW).allowed
    assert not gate.authorize(owner("tenant-a"), sub, Action.TRANSITION, "suspended").allowed
    assert gate.authorize(SYSTEM_CALLER, sub, Action.TRANSITION, "grace_period").allowed


@pytest.mark.parametrize(
    "caller,code",
    [
        (None, ErrorCode.UNAUTHENTICATED),
        (Caller(user_id="u-9", tenant_id="tenant-b", membership_role=None), ErrorCode.TENANT_MISMATCH),
    ],
)
def test_require_raises_forbidden_with_reason_code(gate, equipment, caller, code):
    with pytest.raises(ForbiddenError) as exc_info:
        gate.require(caller, equipment, Action.VIEW)
    assert exc_info.value.code == code
