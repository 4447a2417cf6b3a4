# lifecycle_engine/infrastructure/database/models.py

import uuid

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    Integer,
    String,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.dialects.postgresql import JSONB

from lifecycle_engine.infrastructure.database.session import Base

JsonDocument = JSON().with_variant(JSONB(), "postgresql")


class ResourceRecord(Base):
    """Current state of one lifecycle-controlled resource. version backs optimistic concurrency."""

    __tablename__ = "lifecycle_resources"
    __table_args__ = (UniqueConstraint("kind", "resource_id", name="uq_lifecycle_resource"),)

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)

    kind = Column(String, nullable=False)
    resource_id = Column(String, nullable=False)
    tenant_id = Column(String, nullable=False, index=True)

    status = Column(String, nullable=True)
    version = Column(Integer, nullable=False, default=1)

    created_at = Column(DateTime(timezone=True), nullable=False)
    updated_at = Column(DateTime(timezone=True), nullable=False)

    scheduled_at = Column(DateTime(timezone=True), nullable=True)
    completed_at = Column(DateTime(timezone=True), nullable=True)
    subscription_expires_at = Column(DateTime(timezone=True), nullable=True)
    grace_period_ends_at = Column(DateTime(timezone=True), nullable=True)
    is_trial = Column(Boolean, nullable=False, default=False)

    fields_ = Column("fields", JsonDocument, nullable=False, default=dict)


class AuditEntryRecord(Base):
    """Append-only audit row. The autoincrement id is the append order."""

    __tablename__ = "lifecycle_audit_entries"

    id = Column(Integer, primary_key=True, autoincrement=True)
    entry_id = Column(String, nullable=False, unique=True)

    resource_kind = Column(String, nullable=False)
    resource_id = Column(String, nullable=False, index=True)
    tenant_id = Column(String, nullable=False, index=True)

    action = Column(String, nullable=False)
    actor_id = Column(String, nullable=False)
    from_state = Column(String, nullable=True)
    to_state = Column(String, nullable=False)
    timestamp_utc = Column(DateTime(timezone=True), nullable=False)
    correlation_id = Column(String, nullable=True)
    cross_tenant = Column(Boolean, nullable=False, default=False)

    metadata_ = Column("metadata", JsonDocument, nullable=False, default=dict)
