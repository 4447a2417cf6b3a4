# lifecycle_engine/main.py

import logging
from dataclasses import dataclass
from typing import Optional

from lifecycle_engine.application.expiry_sweeper import ExpirySweeper, ResourceSource
from lifecycle_engine.application.resource_repository import ResourceStore
from lifecycle_engine.application.transition_events import TransitionPublisher
from lifecycle_engine.application.transition_executor import TransitionExecutor
from lifecycle_engine.config.logging import configure_logging
from lifecycle_engine.config.settings import EngineSettings, get_settings
from lifecycle_engine.core.clock import Clock
from lifecycle_engine.governance.audit_logger import AuditLog
from lifecycle_engine.governance.audit_repository import AuditSink
from lifecycle_engine.scalability.distributed_lock import DistributedLock
from lifecycle_engine.scalability.resource_lock import LocalResourceLock, ResourceLock

logger = logging.getLogger(__name__)


@dataclass
class LifecycleEngine:
    """Wired components. The executor is the only way to change resource state."""

    settings: EngineSettings
    store: ResourceStore
    audit_log: AuditLog
    executor: TransitionExecutor
    sweeper: Optional[ExpirySweeper]


def build_engine(
    settings: Optional[EngineSettings] = None,
    *,
    store: Optional[ResourceStore] = None,
    audit_sink: Optional[AuditSink] = None,
    clock: Optional[Clock] = None,
    lock: Optional[ResourceLock] = None,
    publisher: Optional[TransitionPublisher] = None,
    configure_logs: bool = False,
) -> LifecycleEngine:
    """
    Assemble the engine from settings. Adapters passed in win; otherwise
    database_url selects the SQL store and audit sink (in-memory when unset),
    redis_url selects the cross-node lock, rabbitmq_url enables the
    transition publisher.
    """
    settings = settings or get_settings()
    if configure_logs:
        configure_logging(settings.log_level)

    if store is None or audit_sink is None:
        if settings.database_url:
            from lifecycle_engine.infrastructure.database.resource_repository_db import (
                DbAuditSink,
                DbResourceStore,
            )
            from lifecycle_engine.infrastructure.database.session import (
                create_engine,
                create_session_factory,
            )

            sessions = create_session_factory(create_engine(settings.database_url))
            if store is None:
                store = DbResourceStore(sessions)
            if audit_sink is None:
                audit_sink = DbAuditSink(sessions)
        else:
            from lifecycle_engine.infrastructure.memory.audit_sink import InMemoryAuditSink
            from lifecycle_engine.infrastructure.memory.resource_store import InMemoryResourceStore

            if store is None:
                store = InMemoryResourceStore()
            if audit_sink is None:
                audit_sink = InMemoryAuditSink()

    if lock is None:
        if settings.redis_url:
            from lifecycle_engine.infrastructure.cache.redis_client import RedisClient

            lock = DistributedLock(RedisClient(settings.redis_url), ttl=settings.lock_ttl_seconds)
        else:
            lock = LocalResourceLock()

    if publisher is None and settings.rabbitmq_url:
        from lifecycle_engine.infrastructure.messaging.rabbitmq_publisher import (
            RabbitMQTransitionPublisher,
        )

        publisher = RabbitMQTransitionPublisher(settings.rabbitmq_url, settings.transition_exchange)

    audit_log = AuditLog(
        audit_sink,
        retry_attempts=settings.audit_retry_attempts,
        retry_backoff_seconds=settings.audit_retry_backoff_seconds,
    )
    executor = TransitionExecutor(
        store,
        audit_log,
        clock=clock,
        lock=lock,
        publisher=publisher,
        grace_period_days=settings.grace_period_days,
        recovery_backoff_seconds=settings.audit_retry_backoff_seconds,
    )
    sweeper = ExpirySweeper(executor, store) if isinstance(store, ResourceSource) else None

    logger.info(
        "lifecycle_engine_ready",
        extra={
            "environment": settings.environment,
            "store": type(store).__name__,
            "lock": type(lock).__name__,
            "publisher": type(publisher).__name__ if publisher else None,
        },
    )
    return LifecycleEngine(
        settings=settings,
        store=store,
        audit_log=audit_log,
        executor=executor,
        sweeper=sweeper,
    )
