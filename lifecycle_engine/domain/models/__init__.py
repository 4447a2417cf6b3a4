"""Domain models. Pure business entities."""

from lifecycle_engine.domain.models.resource import Resource, ResourceRef
from lifecycle_engine.domain.status import (
    DisputeStatus,
    EquipmentStatus,
    QuoteStatus,
    ResourceKind,
    ServiceRequestStatus,
    SubscriptionStatus,
    SupportTicketStatus,
)

__all__ = [
    "DisputeStatus",
    "EquipmentStatus",
    "QuoteStatus",
    "Resource",
    "ResourceKind",
    "ResourceRef",
    "ServiceRequestStatus",
    "SubscriptionStatus",
    "SupportTicketStatus",
]
