"""build_engine: adapter selection from settings."""

from datetime import timedelta

from conftest import NOW, make_resource, platform_admin
from lifecycle_engine.config.settings import EngineSettings
from lifecycle_engine.core.clock import FixedClock
from lifecycle_engine.domain.models.resource import ResourceRef
from lifecycle_engine.domain.status import ResourceKind
from lifecycle_engine.infrastructure.database.resource_repository_db import DbResourceStore
from lifecycle_engine.infrastructure.memory.audit_sink import InMemoryAuditSink
from lifecycle_engine.infrastructure.memory.resource_store import InMemoryResourceStore
from lifecycle_engine.main import build_engine
from lifecycle_engine.scalability.distributed_lock import DistributedLock
from lifecycle_engine.scalability.resource_lock import LocalResourceLock


def test_defaults_to_in_memory_adapters():
    engine = build_engine(EngineSettings(_env_file=None))
    assert isinstance(engine.store, InMemoryResourceStore)
    assert isinstance(engine.executor._lock, LocalResourceLock)
    assert engine.executor._publisher is None
    assert engine.sweeper is not None


def test_redis_url_selects_distributed_lock():
    settings = EngineSettings(_env_file=None, redis_url="redis://localhost:6379/0")
    engine = build_engine(settings)
    assert isinstance(engine.executor._lock, DistributedLock)


async def test_grace_period_setting_reaches_resolver():
    settings = EngineSettings(_env_file=None, grace_period_days=3, audit_retry_backoff_seconds=0)
    store = InMemoryResourceStore()
    sink = InMemoryAuditSink()
    engine = build_engine(settings, store=store, audit_sink=sink, clock=FixedClock(NOW))
    await store.add(
        make_resource(
            ResourceKind.SUBSCRIPTION,
            "active",
            resource_id="org-1",
            subscription_expires_at=NOW - timedelta(days=4),
        )
    )

    view = await engine.executor.read(platform_admin(), ResourceRef(ResourceKind.SUBSCRIPTION, "org-1"))

    assert view.effective_status == "expired"
    result = await engine.sweeper.run()
    assert len(result.transitioned) == 1
    assert len(sink) == 1


def test_injected_empty_audit_sink_is_kept():
    sink = InMemoryAuditSink()
    engine = build_engine(EngineSettings(_env_file=None), audit_sink=sink)
    assert engine.audit_log.sink is sink


def test_injected_sink_next_to_sql_store_disables_atomic_writes(tmp_path):
    settings = EngineSettings(_env_file=None, database_url=f"sqlite+aiosqlite:///{tmp_path / 'engine.db'}")
    sink = InMemoryAuditSink()

    engine = build_engine(settings, audit_sink=sink)

    assert isinstance(engine.store, DbResourceStore)
    assert engine.audit_log.sink is sink
    assert engine.executor._atomic is False
