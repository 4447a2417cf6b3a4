"""
Periodic persistence of time-derived statuses.

Reads never need this: the effective status is computed on every read. The
sweeper only brings the stored status in line (trial/active -> grace_period ->
expired) so that stored-status queries and downstream consumers see it too.
"""

import logging
from dataclasses import dataclass, field
from typing import List, Optional, Protocol, Sequence, runtime_checkable

from lifecycle_engine.application.transition_executor import TransitionExecutor
from lifecycle_engine.domain.exceptions import LifecycleError
from lifecycle_engine.domain.models.resource import ResourceRef
from lifecycle_engine.domain.status import ResourceKind
from lifecycle_engine.domain.status_resolver import EXPIRY_POLICIES
from lifecycle_engine.security.access_gate import SYSTEM_CALLER, Caller

logger = logging.getLogger(__name__)


@runtime_checkable
class ResourceSource(Protocol):
    async def refs_by_kind(self, kind: ResourceKind) -> Sequence[ResourceRef]:
        """All resource refs of one kind, across tenants."""
        ...


@dataclass
class SweepResult:
    examined: int = 0
    transitioned: List[ResourceRef] = field(default_factory=list)
    failed: List[ResourceRef] = field(default_factory=list)


class ExpirySweeper:
    """Runs TransitionExecutor.reconcile over every resource with expiry semantics."""

    def __init__(
        self,
        executor: TransitionExecutor,
        source: ResourceSource,
        *,
        caller: Caller = SYSTEM_CALLER,
    ) -> None:
        self._executor = executor
        self._source = source
        self._caller = caller

    async def run(self, correlation_id: Optional[str] = None) -> SweepResult:
        result = SweepResult()
        for kind in EXPIRY_POLICIES:
            for ref in await self._source.refs_by_kind(kind):
                result.examined += 1
                try:
                    updated = await self._executor.reconcile(
                        self._caller, ref, correlation_id=correlation_id
                    )
                except LifecycleError as e:
                    result.failed.append(ref)
                    logger.warning(
                        "expiry_sweep_failed",
                        extra={
                            "resource_kind": ref.kind.value,
                            "resource_id": ref.resource_id,
                            "code": e.code.value,
                            "error": e.message,
                        },
                    )
                    continue
                if updated is not None:
                    result.transitioned.append(ref)
        logger.info(
            "expiry_sweep_completed",
            extra={
                "examined": result.examined,
                "transitioned": len(result.transitioned),
                "failed": len(result.failed),
            },
        )
        return result
