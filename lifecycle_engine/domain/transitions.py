"""
Static transition tables, one per resource kind.

Tables are built once at import and exposed read-only; they are shared by all
callers without locking. Adding a kind means adding an entry here. Every
lookup is pure.
"""

from types import MappingProxyType
from typing import Dict, FrozenSet, Iterable, Mapping, Optional

from lifecycle_engine.domain.exceptions import ErrorCode, InvalidTransitionError
from lifecycle_engine.domain.status import (
    DisputeStatus,
    EquipmentStatus,
    QuoteStatus,
    ResourceKind,
    ServiceRequestStatus,
    SubscriptionStatus,
    SupportTicketStatus,
    kind_value,
    state_value,
)

StateTable = Mapping[str, FrozenSet[str]]


def _freeze(table: Mapping) -> StateTable:
    return MappingProxyType(
        {state_value(src): frozenset(state_value(t) for t in targets) for src, targets in table.items()}
    )


_EQUIPMENT = _freeze({
    EquipmentStatus.AVAILABLE: {
        EquipmentStatus.IN_USE,
        EquipmentStatus.MAINTENANCE,
        EquipmentStatus.DAMAGED,
        EquipmentStatus.RETIRED,
    },
    EquipmentStatus.IN_USE: {
        EquipmentStatus.AVAILABLE,
        EquipmentStatus.MAINTENANCE,
        EquipmentStatus.DAMAGED,
    },
    EquipmentStatus.MAINTENANCE: {EquipmentStatus.AVAILABLE, EquipmentStatus.DAMAGED},
    EquipmentStatus.DAMAGED: {EquipmentStatus.AVAILABLE, EquipmentStatus.RETIRED},
    EquipmentStatus.RETIRED: set(),
})

_SERVICE_REQUEST = _freeze({
    ServiceRequestStatus.PENDING: {ServiceRequestStatus.QUOTED, ServiceRequestStatus.CANCELLED},
    ServiceRequestStatus.QUOTED: {ServiceRequestStatus.ACCEPTED, ServiceRequestStatus.CANCELLED},
    ServiceRequestStatus.ACCEPTED: {ServiceRequestStatus.IN_PROGRESS, ServiceRequestStatus.CANCELLED},
    ServiceRequestStatus.IN_PROGRESS: {ServiceRequestStatus.COMPLETED, ServiceRequestStatus.DISPUTED},
    ServiceRequestStatus.COMPLETED: set(),
    ServiceRequestStatus.CANCELLED: set(),
    ServiceRequestStatus.DISPUTED: set(),
})

_SUPPORT_TICKET = _freeze({
    SupportTicketStatus.OPEN: {SupportTicketStatus.IN_PROGRESS, SupportTicketStatus.CLOSED},
    SupportTicketStatus.IN_PROGRESS: {SupportTicketStatus.RESOLVED, SupportTicketStatus.CLOSED},
    SupportTicketStatus.RESOLVED: {SupportTicketStatus.CLOSED},
    SupportTicketStatus.CLOSED: set(),
})

# No terminal state: an expired or suspended organization can always be reactivated.
_SUBSCRIPTION = _freeze({
    SubscriptionStatus.TRIAL: {
        SubscriptionStatus.ACTIVE,
        SubscriptionStatus.GRACE_PERIOD,
        SubscriptionStatus.EXPIRED,
        SubscriptionStatus.SUSPENDED,
    },
    SubscriptionStatus.ACTIVE: {
        SubscriptionStatus.GRACE_PERIOD,
        SubscriptionStatus.EXPIRED,
        SubscriptionStatus.SUSPENDED,
    },
    SubscriptionStatus.GRACE_PERIOD: {
        SubscriptionStatus.ACTIVE,
        SubscriptionStatus.EXPIRED,
        SubscriptionStatus.SUSPENDED,
    },
    SubscriptionStatus.EXPIRED: {SubscriptionStatus.ACTIVE},
    SubscriptionStatus.SUSPENDED: {SubscriptionStatus.ACTIVE},
})

_QUOTE = _freeze({
    QuoteStatus.PENDING: {QuoteStatus.ACCEPTED, QuoteStatus.REJECTED, QuoteStatus.EXPIRED},
    QuoteStatus.ACCEPTED: set(),
    QuoteStatus.REJECTED: set(),
    QuoteStatus.EXPIRED: set(),
})

_DISPUTE = _freeze({
    DisputeStatus.OPEN: {DisputeStatus.INVESTIGATING, DisputeStatus.ESCALATED},
    DisputeStatus.INVESTIGATING: {
        DisputeStatus.RESOLVED,
        DisputeStatus.CLOSED,
        DisputeStatus.ESCALATED,
    },
    DisputeStatus.RESOLVED: set(),
    DisputeStatus.CLOSED: set(),
    DisputeStatus.ESCALATED: set(),
})

TRANSITION_TABLES: Mapping[ResourceKind, StateTable] = MappingProxyType({
    ResourceKind.EQUIPMENT: _EQUIPMENT,
    ResourceKind.SERVICE_REQUEST: _SERVICE_REQUEST,
    ResourceKind.SUPPORT_TICKET: _SUPPORT_TICKET,
    ResourceKind.SUBSCRIPTION: _SUBSCRIPTION,
    ResourceKind.QUOTE: _QUOTE,
    ResourceKind.DISPUTE: _DISPUTE,
})

INITIAL_STATES: Mapping[ResourceKind, str] = MappingProxyType({
    ResourceKind.EQUIPMENT: EquipmentStatus.AVAILABLE.value,
    ResourceKind.SERVICE_REQUEST: ServiceRequestStatus.PENDING.value,
    ResourceKind.SUPPORT_TICKET: SupportTicketStatus.OPEN.value,
    ResourceKind.SUBSCRIPTION: SubscriptionStatus.TRIAL.value,
    ResourceKind.QUOTE: QuoteStatus.PENDING.value,
    ResourceKind.DISPUTE: DisputeStatus.OPEN.value,
})


def _table_for(kind) -> Optional[StateTable]:
    try:
        return TRANSITION_TABLES.get(kind_value(kind))
    except ValueError:
        return None


def states(kind) -> FrozenSet[str]:
    """All states of a kind; empty for an unknown kind."""
    table = _table_for(kind)
    return frozenset(table) if table is not None else frozenset()


def initial_state(kind) -> str:
    """Designated creation state of a kind."""
    return INITIAL_STATES[kind_value(kind)]


def valid_transitions(kind, from_state) -> FrozenSet[str]:
    """Targets reachable from from_state in one move. Never contains from_state."""
    table = _table_for(kind)
    if table is None:
        return frozenset()
    return table.get(state_value(from_state), frozenset())


def can_transition(kind, from_state, to_state) -> bool:
    """Pure predicate; self-transitions are always invalid."""
    src, dst = state_value(from_state), state_value(to_state)
    if src == dst:
        return False
    return dst in valid_transitions(kind, src)


def is_terminal(kind, state) -> bool:
    table = _table_for(kind)
    value = state_value(state)
    return table is not None and value in table and not table[value]


def assert_transition(kind, from_state, to_state) -> None:
    """Raise InvalidTransitionError with a structured reason code if the move is illegal."""
    kind_name = getattr(kind, "value", str(kind))
    src = state_value(from_state) if from_state is not None else None
    dst = state_value(to_state)
    table = _table_for(kind)
    if table is None:
        raise InvalidTransitionError(kind_name, src, dst, code=ErrorCode.UNKNOWN_KIND)
    if src not in table or dst not in table:
        raise InvalidTransitionError(kind_name, src, dst, code=ErrorCode.UNKNOWN_STATE)
    if src == dst:
        raise InvalidTransitionError(kind_name, src, dst, code=ErrorCode.SELF_TRANSITION)
    if not table[src]:
        raise InvalidTransitionError(kind_name, src, dst, code=ErrorCode.TERMINAL_STATE)
    if dst not in table[src]:
        raise InvalidTransitionError(kind_name, src, dst, code=ErrorCode.TRANSITION_NOT_ALLOWED)


def validate_table(table: Mapping[str, Iterable[str]], initial: str) -> None:
    """
    Structural check of a state table. Raises ValueError on:
    a target that is not a declared state, a state listing itself,
    or a non-initial state that no other state can reach.
    """
    declared = set(table)
    if initial not in declared:
        raise ValueError(f"Initial state '{initial}' is not declared")
    reached: set = set()
    for src, targets in table.items():
        for dst in targets:
            if dst not in declared:
                raise ValueError(f"Transition {src} -> {dst} targets an undeclared state")
            if dst == src:
                raise ValueError(f"State '{src}' lists itself as a target")
            reached.add(dst)
    unreachable = declared - reached - {initial}
    if unreachable:
        raise ValueError(f"Unreachable states: {sorted(unreachable)}")


def _validate_all(tables: Dict) -> None:
    for kind, table in tables.items():
        validate_table(table, INITIAL_STATES[kind])


_validate_all(dict(TRANSITION_TABLES))
