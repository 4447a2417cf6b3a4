"""Governance: append-only audit log of accepted transitions."""

from lifecycle_engine.governance.audit_logger import AuditLog
from lifecycle_engine.governance.audit_models import AuditEntry
from lifecycle_engine.governance.audit_repository import AuditSink

__all__ = [
    "AuditEntry",
    "AuditLog",
    "AuditSink",
]
