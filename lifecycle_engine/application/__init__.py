# Application layer: orchestration of domain rules, access, persistence and audit.

from lifecycle_engine.application.expiry_sweeper import ExpirySweeper, ResourceSource, SweepResult
from lifecycle_engine.application.resource_repository import AtomicTransitionStore, ResourceStore
from lifecycle_engine.application.transition_events import TransitionEvent, TransitionPublisher
from lifecycle_engine.application.transition_executor import ResourceView, TransitionExecutor

__all__ = [
    "AtomicTransitionStore",
    "ExpirySweeper",
    "ResourceSource",
    "ResourceStore",
    "ResourceView",
    "SweepResult",
    "TransitionEvent",
    "TransitionExecutor",
    "TransitionPublisher",
]
