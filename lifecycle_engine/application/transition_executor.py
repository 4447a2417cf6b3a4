"""
Transition executor: the single choke point for resource state changes.

Steps per request:
  1. load the resource                      (NotFoundError)
  2. consult the access gate                (ForbiddenError)
  3. resolve the effective "from" state for time-derived kinds
  4. check the transition table             (InvalidTransitionError)
  5. run caller-supplied preconditions      (PreconditionFailedError)
  6. version-checked write                  (ConflictError)
  7. append exactly one audit entry

Steps 6 and 7 succeed together or the request fails with no state change.
Once step 6 starts it runs to completion even if the caller is cancelled.
Requests on the same resource are serialized by a per-resource lock; the
version check at write time is the final guard across processes.
"""

import asyncio
import logging
import uuid
from dataclasses import dataclass
from typing import Any, Dict, FrozenSet, Iterable, Mapping, Optional, Tuple

from lifecycle_engine.application.resource_repository import AtomicTransitionStore, ResourceStore
from lifecycle_engine.application.transition_events import TransitionEvent, TransitionPublisher
from lifecycle_engine.core.clock import Clock, SystemClock
from lifecycle_engine.core.context import bound_request, correlation_id_ctx
from lifecycle_engine.domain.exceptions import (
    AuditWriteError,
    ConflictError,
    LifecycleError,
    NotFoundError,
)
from lifecycle_engine.domain.models.resource import Resource, ResourceRef
from lifecycle_engine.domain.preconditions import Precondition
from lifecycle_engine.domain.status import state_value
from lifecycle_engine.domain.status_resolver import (
    AccessLevel,
    StatusResolver,
    has_expiry_semantics,
)
from lifecycle_engine.domain.transition_effects import apply_transition
from lifecycle_engine.domain.transitions import assert_transition, valid_transitions
from lifecycle_engine.governance.audit_logger import AuditLog, transition_entry
from lifecycle_engine.governance.audit_models import AuditEntry
from lifecycle_engine.scalability.resource_lock import LocalResourceLock, ResourceLock, lock_key
from lifecycle_engine.security.access_gate import AccessDecision, AccessGate, Caller
from lifecycle_engine.security.rbac import Action

RECONCILE_ACTION = "reconcile"
MAX_RECOVERY_BACKOFF_SECONDS = 30.0


def _caller_ids(caller: Optional[Caller]) -> Tuple[Optional[str], Optional[str]]:
    if caller is None:
        return None, None
    return caller.tenant_id, caller.user_id


@dataclass(frozen=True)
class ResourceView:
    """Gated read result: the stored record plus what it means right now."""

    resource: Resource
    effective_status: Optional[str]
    access_level: AccessLevel
    days_remaining: Optional[int]
    available_transitions: FrozenSet[str]


class TransitionExecutor:
    """
    Application-layer orchestration only. The only component that writes
    resource state; every accepted write produces one audit entry.
    """

    def __init__(
        self,
        store: ResourceStore,
        audit_log: AuditLog,
        *,
        gate: Optional[AccessGate] = None,
        clock: Optional[Clock] = None,
        lock: Optional[ResourceLock] = None,
        publisher: Optional[TransitionPublisher] = None,
        grace_period_days: int = 7,
        recovery_backoff_seconds: float = 0.5,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self._store = store
        self._audit = audit_log
        # Atomic writes only when the audit rows land where audit_log reads them.
        self._atomic = isinstance(store, AtomicTransitionStore) and store.owns_audit_sink(audit_log.sink)
        self._recovery_backoff = recovery_backoff_seconds
        self._gate = gate or AccessGate()
        self._resolver = StatusResolver(clock or SystemClock(), grace_period_days)
        self._lock = lock or LocalResourceLock()
        self._publisher = publisher
        self._logger = logger or logging.getLogger(__name__)

    @property
    def resolver(self) -> StatusResolver:
        return self._resolver

    async def execute(
        self,
        caller: Optional[Caller],
        ref: ResourceRef,
        to_state: Any,
        payload: Optional[Mapping[str, Any]] = None,
        *,
        preconditions: Iterable[Precondition] = (),
        correlation_id: Optional[str] = None,
    ) -> Resource:
        """Move ref to to_state on behalf of caller. Returns the updated resource."""
        corr = correlation_id or correlation_id_ctx.get() or str(uuid.uuid4())
        with bound_request(corr, *_caller_ids(caller)):
            return await self._execute(
                caller, ref, state_value(to_state), dict(payload or {}), tuple(preconditions), corr
            )

    async def _execute(
        self,
        caller: Optional[Caller],
        ref: ResourceRef,
        target: str,
        data: Dict[str, Any],
        preconditions: Tuple[Precondition, ...],
        corr: str,
    ) -> Resource:
        log_extra = {
            "resource_kind": ref.kind.value,
            "resource_id": ref.resource_id,
            "to_state": target,
            "actor_id": caller.user_id if caller else None,
            "correlation_id": corr,
        }
        self._logger.info("transition_requested", extra=log_extra)

        async with self._lock.hold(lock_key(ref)):
            # Step 1: load
            resource = await self._load(ref)

            # Step 2: access gate
            decision = self._authorize(caller, resource, Action.TRANSITION, target, log_extra)

            # Step 3: effective "from" state
            now = self._resolver.now()
            from_state = self._from_state(resource, now)

            # Steps 4, 5: table legality, then domain preconditions
            try:
                assert_transition(resource.kind, from_state, target)
                for check in preconditions:
                    check(resource, target, data)
            except LifecycleError as e:
                self._logger.info(
                    "transition_rejected",
                    extra={**log_extra, "from_state": from_state, "code": e.code.value},
                )
                raise

            updated = apply_transition(resource, target, data, now, self._resolver.grace_period)
            metadata = {}
            if from_state != resource.stored_status:
                metadata["stored_status"] = resource.stored_status
            entry = transition_entry(
                resource_kind=resource.kind.value,
                resource_id=resource.resource_id,
                tenant_id=resource.tenant_id,
                actor_id=decision.actor_id,
                from_state=from_state,
                to_state=target,
                timestamp_utc=now,
                correlation_id=corr,
                cross_tenant=decision.cross_tenant,
                metadata=metadata,
            )

            # Steps 6, 7: write and audit
            await self._commit_to_completion(resource, updated, entry)

        self._logger.info(
            "transition_committed",
            extra={**log_extra, "from_state": from_state, "version": updated.version},
        )
        await self._publish(updated, entry)
        return updated

    async def reconcile(
        self,
        caller: Optional[Caller],
        ref: ResourceRef,
        *,
        correlation_id: Optional[str] = None,
    ) -> Optional[Resource]:
        """
        Persist a time-derived status: write the effective status as the stored
        one when they differ. The move must be legal from the stored status.
        Returns None when there is nothing to do.
        """
        corr = correlation_id or correlation_id_ctx.get() or str(uuid.uuid4())
        with bound_request(corr, *_caller_ids(caller)):
            return await self._reconcile(caller, ref, corr)

    async def _reconcile(self, caller: Optional[Caller], ref: ResourceRef, corr: str) -> Optional[Resource]:
        log_extra = {
            "resource_kind": ref.kind.value,
            "resource_id": ref.resource_id,
            "actor_id": caller.user_id if caller else None,
            "correlation_id": corr,
        }
        async with self._lock.hold(lock_key(ref)):
            resource = await self._load(ref)
            if not has_expiry_semantics(resource.kind):
                return None
            now = self._resolver.now()
            effective = state_value(self._resolver.resolve(resource, now))
            stored = resource.stored_status
            if stored is None or effective == stored:
                return None

            decision = self._authorize(caller, resource, Action.TRANSITION, effective, log_extra)
            assert_transition(resource.kind, stored, effective)

            updated = apply_transition(resource, effective, {}, now, self._resolver.grace_period)
            entry = transition_entry(
                resource_kind=resource.kind.value,
                resource_id=resource.resource_id,
                tenant_id=resource.tenant_id,
                actor_id=decision.actor_id,
                from_state=stored,
                to_state=effective,
                timestamp_utc=now,
                action=f"{resource.kind.value}.{RECONCILE_ACTION}.{effective}",
                correlation_id=corr,
                cross_tenant=decision.cross_tenant,
            )
            await self._commit_to_completion(resource, updated, entry)

        self._logger.info(
            "transition_reconciled",
            extra={**log_extra, "from_state": stored, "to_state": effective},
        )
        await self._publish(updated, entry)
        return updated

    async def read(self, caller: Optional[Caller], ref: ResourceRef) -> ResourceView:
        """Gated detail read. Denial raises ForbiddenError; there is no partial view."""
        log_extra = {
            "resource_kind": ref.kind.value,
            "resource_id": ref.resource_id,
            "actor_id": caller.user_id if caller else None,
        }
        resource = await self._load(ref)
        self._authorize(caller, resource, Action.VIEW, None, log_extra)
        now = self._resolver.now()
        effective = self._from_state(resource, now)
        available = frozenset(
            target
            for target in valid_transitions(resource.kind, effective)
            if self._gate.authorize(caller, resource, Action.TRANSITION, target).allowed
        )
        return ResourceView(
            resource=resource,
            effective_status=effective,
            access_level=self._resolver.access_level(resource, now),
            days_remaining=(
                self._resolver.days_remaining(resource, now)
                if has_expiry_semantics(resource.kind)
                else None
            ),
            available_transitions=available,
        )

    async def available_transitions(self, caller: Optional[Caller], ref: ResourceRef) -> FrozenSet[str]:
        """Targets this caller may move ref to right now."""
        view = await self.read(caller, ref)
        return view.available_transitions

    async def _load(self, ref: ResourceRef) -> Resource:
        resource = await self._store.load(ref)
        if resource is None:
            raise NotFoundError(
                f"{ref.kind.value} not found: {ref.resource_id}",
                details={"kind": ref.kind.value, "resource_id": ref.resource_id},
            )
        return resource

    def _authorize(
        self,
        caller: Optional[Caller],
        resource: Resource,
        action: Action,
        to_state: Optional[str],
        log_extra: Mapping[str, Any],
    ) -> AccessDecision:
        decision = self._gate.authorize(caller, resource, action, to_state)
        if not decision.allowed:
            self._logger.warning(
                "access_denied",
                extra={**log_extra, "action": action.value, "reason": decision.reason.value},
            )
            decision.raise_if_denied()
        return decision

    def _from_state(self, resource: Resource, now) -> Optional[str]:
        if has_expiry_semantics(resource.kind):
            return state_value(self._resolver.resolve(resource, now))
        return resource.stored_status

    async def _commit_to_completion(self, original: Resource, updated: Resource, entry: AuditEntry) -> None:
        commit = asyncio.ensure_future(self._commit(original, updated, entry))
        try:
            await asyncio.shield(commit)
        except asyncio.CancelledError:
            # Caller went away after the write started: finish it, audit included.
            while not commit.done():
                try:
                    await asyncio.shield(commit)
                except asyncio.CancelledError:
                    continue
            raise

    async def _commit(self, original: Resource, updated: Resource, entry: AuditEntry) -> None:
        if self._atomic:
            if not await self._store.save_with_audit(updated, original.version, entry):
                raise self._conflict(original)
            return

        if not await self._store.save_if_version_matches(updated, original.version):
            raise self._conflict(original)
        try:
            await self._audit.append(entry)
        except AuditWriteError:
            if await self._settle_unaudited(original, updated, entry):
                return
            raise

    async def _settle_unaudited(self, original: Resource, updated: Resource, entry: AuditEntry) -> bool:
        """
        A state write landed but its audit entry did not. Alternate between
        restoring the pre-transition state and recording the entry until one
        of them succeeds. Returns True if the entry was recorded after all,
        False if the state was restored.
        """
        restored = original.evolve(version=updated.version + 1, updated_at=updated.updated_at)
        log_extra = {
            "resource_kind": original.kind.value,
            "resource_id": original.resource_id,
            "from_state": updated.stored_status,
            "to_state": original.stored_status,
            "entry_id": entry.entry_id,
        }
        revertible = True
        delay = self._recovery_backoff
        while True:
            if revertible:
                try:
                    if await self._store.save_if_version_matches(restored, updated.version):
                        self._logger.error("transition_rolled_back", extra=log_extra)
                        return False
                    # A later write owns the record now; only the audit entry can settle it.
                    revertible = False
                    self._logger.error(
                        "transition_rollback_failed", extra={**log_extra, "error": "version moved"}
                    )
                except Exception as e:
                    self._logger.error("transition_rollback_failed", extra={**log_extra, "error": str(e)})

            try:
                await self._audit.append(entry)
            except AuditWriteError:
                await asyncio.sleep(delay)
                delay = min(delay * 2, MAX_RECOVERY_BACKOFF_SECONDS)
                continue
            self._logger.warning("transition_audit_recovered", extra=log_extra)
            return True

    def _conflict(self, original: Resource) -> ConflictError:
        self._logger.info(
            "transition_conflict",
            extra={
                "resource_kind": original.kind.value,
                "resource_id": original.resource_id,
                "expected_version": original.version,
            },
        )
        return ConflictError(
            f"{original.kind.value} {original.resource_id} changed concurrently; reload and retry",
            details={"expected_version": original.version},
        )

    async def _publish(self, updated: Resource, entry: AuditEntry) -> None:
        if self._publisher is None:
            return
        event = TransitionEvent(
            resource_kind=entry.resource_kind,
            resource_id=entry.resource_id,
            tenant_id=entry.tenant_id,
            from_state=entry.from_state,
            to_state=entry.to_state,
            actor_id=entry.actor_id,
            version=updated.version,
            occurred_at=entry.timestamp_utc,
            correlation_id=entry.correlation_id,
        )
        try:
            await self._publisher.publish(event)
        except Exception as e:
            self._logger.error(
                "transition_publish_failed",
                extra={
                    "resource_kind": entry.resource_kind,
                    "resource_id": entry.resource_id,
                    "error": str(e),
                },
            )
            # Do not re-raise: the transition is already committed and audited.
