# lifecycle_engine/core/context.py

import contextvars
from contextlib import contextmanager
from typing import Iterator, Optional

correlation_id_ctx = contextvars.ContextVar("correlation_id", default=None)
tenant_id_ctx = contextvars.ContextVar("tenant_id", default=None)
actor_id_ctx = contextvars.ContextVar("actor_id", default=None)


@contextmanager
def bound_request(
    correlation_id: Optional[str],
    tenant_id: Optional[str] = None,
    actor_id: Optional[str] = None,
) -> Iterator[None]:
    """Bind request identifiers for log records emitted inside the block."""
    tokens = [
        (correlation_id_ctx, correlation_id_ctx.set(correlation_id)),
        (tenant_id_ctx, tenant_id_ctx.set(tenant_id)),
        (actor_id_ctx, actor_id_ctx.set(actor_id)),
    ]
    try:
        yield
    finally:
        for var, token in reversed(tokens):
            var.reset(token)
