"""
PodCleanupPolicy reconciliation.

One reconciliation loads a policy, checks its cron schedule, runs the
cleanup when due, records the outcome in the policy status and tells the
caller when to reconcile again. No timer is started here: waits are
returned as durations for the caller to honour.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Callable, Optional

import structlog

from ..exceptions import (
    InvalidScheduleError,
    ObjectNotFoundError,
    StatusPersistError,
    TransientStoreError,
)
from ..metrics import RECONCILE_DURATION, RECONCILIATIONS
from ..models.policy import CleanupPolicyStatus, PodCleanupPolicy
from ..utils.schedule import CronSchedule
from ..utils.store import ObjectStore
from .executor import CleanupExecutor, CleanupOutcome
from .status import apply_invalid_schedule, apply_outcome


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class ReconcileState(str, Enum):
    """Terminal state of one reconciliation."""

    DELETED = "deleted"      # Policy no longer exists
    WAITING = "waiting"      # Schedule not yet due, nothing executed
    IDLE = "idle"            # No timer; only a spec change triggers again
    REQUEUED = "requeued"    # Ran; reconcile again at the next tick


@dataclass(frozen=True)
class ReconcileResult:
    """What the caller should do after a reconciliation."""

    state: ReconcileState
    requeue_after: Optional[timedelta] = None
    outcome: Optional[CleanupOutcome] = None


class PodCleanupPolicyReconciler:
    """
    Reconciles PodCleanupPolicy resources against the cluster.

    The reconciler holds no per-policy state: each call works from the
    policy fetched from the store and the status persisted on it.
    """

    def __init__(self,
                 store: ObjectStore,
                 max_concurrent_namespaces: int = 1,
                 clock: Optional[Callable[[], datetime]] = None,
                 logger: Any = None) -> None:
        """
        Initialize the reconciler.

        Args:
            store: Object store the policies, namespaces and pods live in
            max_concurrent_namespaces: Namespaces cleaned in parallel per run
            clock: Source of the current time, UTC
            logger: Structured logger instance
        """
        self.store = store
        self.clock = clock or utc_now
        base_logger = logger or structlog.get_logger()
        self.logger = base_logger.bind(component="policy_reconciler")
        self.executor = CleanupExecutor(
            store,
            max_concurrency=max_concurrent_namespaces,
            logger=base_logger
        )

    async def reconcile(self, name: str) -> ReconcileResult:
        """
        Reconcile one policy.

        Args:
            name: Policy name

        Returns:
            Reconcile result with the requeue delay, if any

        Raises:
            StatusPersistError: If the status update could not be written
            TransientStoreError: If the policy could not be fetched
        """
        with RECONCILE_DURATION.time():
            try:
                result = await self._reconcile(name)
            except Exception:
                RECONCILIATIONS.labels(result="error").inc()
                raise

        RECONCILIATIONS.labels(result=result.state.value).inc()
        return result

    async def _reconcile(self, name: str) -> ReconcileResult:
        log = self.logger.bind(policy=name)
        now = self.clock()

        try:
            policy = await self.store.get_policy(name)
        except ObjectNotFoundError:
            log.debug("Policy not found, nothing to reconcile")
            return ReconcileResult(ReconcileState.DELETED)

        schedule: Optional[CronSchedule] = None
        if policy.spec.schedule is not None:
            try:
                schedule = CronSchedule.parse(policy.spec.schedule)
                decision = schedule.gate(policy.status.last_run_time, now)
            except InvalidScheduleError as e:
                log.error("Invalid cron schedule", schedule=policy.spec.schedule, error=e.detail)
                status = apply_invalid_schedule(policy, e, now)
                if not await self._persist_status(policy, status, log):
                    return ReconcileResult(ReconcileState.DELETED)
                # Not requeued: the spec must change first
                return ReconcileResult(ReconcileState.IDLE)

            if not decision.should_run:
                requeue_after = decision.wait_duration(now)
                log.info(
                    "Next cleanup scheduled",
                    next_run=decision.until.isoformat(),
                    requeue_after=requeue_after.total_seconds()
                )
                return ReconcileResult(ReconcileState.WAITING, requeue_after=requeue_after)

        outcome = await self.executor.execute(policy.spec, now, policy_name=name)
        if not outcome.succeeded:
            log.error("Cleanup failed", error=outcome.fatal_error)

        status = apply_outcome(policy, outcome, now)
        if not await self._persist_status(policy, status, log):
            return ReconcileResult(ReconcileState.DELETED, outcome=outcome)

        if schedule is None:
            return ReconcileResult(ReconcileState.IDLE, outcome=outcome)

        baseline = self.clock()
        try:
            next_run = schedule.next_run(baseline)
        except InvalidScheduleError as e:
            log.error("No further cron tick, not requeued", schedule=schedule.expression, error=e.detail)
            return ReconcileResult(ReconcileState.IDLE, outcome=outcome)
        requeue_after = next_run - baseline
        log.info(
            "Cleanup requeued",
            next_run=next_run.isoformat(),
            requeue_after=requeue_after.total_seconds()
        )
        return ReconcileResult(ReconcileState.REQUEUED, requeue_after=requeue_after, outcome=outcome)

    async def _persist_status(self, policy: PodCleanupPolicy, status: CleanupPolicyStatus, log: Any) -> bool:
        """Write the status once; False if the policy disappeared meanwhile."""
        updated = policy.model_copy(update={"status": status})
        try:
            await self.store.update_status(updated)
        except ObjectNotFoundError:
            log.info("Policy deleted before its status could be updated")
            return False
        except TransientStoreError as e:
            log.error("Failed to update PodCleanupPolicy status", error=str(e))
            raise StatusPersistError(f"updating status of {policy.name}: {e}") from e
        return True
