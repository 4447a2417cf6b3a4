"""Resource kinds and their stored status vocabularies. Values are the persisted strings."""

from enum import Enum


class ResourceKind(str, Enum):
    """Discriminates which transition table applies to a resource."""

    EQUIPMENT = "equipment"
    SERVICE_REQUEST = "service_request"
    SUPPORT_TICKET = "support_ticket"
    SUBSCRIPTION = "subscription"
    QUOTE = "quote"
    DISPUTE = "dispute"


class EquipmentStatus(str, Enum):
    AVAILABLE = "available"
    IN_USE = "in_use"
    MAINTENANCE = "maintenance"
    DAMAGED = "damaged"
    RETIRED = "retired"


class ServiceRequestStatus(str, Enum):
    PENDING = "pending"
    QUOTED = "quoted"
    ACCEPTED = "accepted"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    DISPUTED = "disputed"


class SupportTicketStatus(str, Enum):
    OPEN = "open"
    IN_PROGRESS = "in_progress"
    RESOLVED = "resolved"
    CLOSED = "closed"


class SubscriptionStatus(str, Enum):
    """Organization subscription status. Also the effective-status vocabulary."""

    TRIAL = "trial"
    ACTIVE = "active"
    GRACE_PERIOD = "grace_period"
    EXPIRED = "expired"
    SUSPENDED = "suspended"


class QuoteStatus(str, Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    EXPIRED = "expired"


class DisputeStatus(str, Enum):
    OPEN = "open"
    INVESTIGATING = "investigating"
    RESOLVED = "resolved"
    CLOSED = "closed"
    ESCALATED = "escalated"


def state_value(state) -> str:
    """Normalize an enum member or raw string to the persisted string."""
    if isinstance(state, Enum):
        return state.value
    return str(state)


def kind_value(kind) -> ResourceKind:
    """Coerce a raw kind string to ResourceKind. Raises ValueError if unknown."""
    if isinstance(kind, ResourceKind):
        return kind
    return ResourceKind(kind)
