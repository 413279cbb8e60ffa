"""
Controller manager: drives reconciliations over time.

The manager periodically lists policies and reconciles those that are due:
new policies, policies whose spec generation changed, policies whose
requested requeue time has passed and policies not reconciled within the
resync period. Failed reconciliations are retried with capped exponential
backoff.
"""

import asyncio
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, Optional

import structlog

from ..exceptions import StatusPersistError, TransientStoreError
from ..metrics import MANAGED_POLICIES
from ..models.config import ControllerConfiguration
from ..models.policy import PodCleanupPolicy
from ..utils.store import ObjectStore
from .policy_controller import PodCleanupPolicyReconciler, ReconcileState, utc_now


@dataclass
class PolicyTracking:
    """Scheduling bookkeeping for one policy."""

    generation: int
    due_at: Optional[datetime] = None
    last_reconciled: Optional[datetime] = None
    failures: int = 0


class ControllerManager:
    """Runs the reconciler for every policy according to its requeue requests."""

    def __init__(self,
                 store: ObjectStore,
                 reconciler: PodCleanupPolicyReconciler,
                 config: ControllerConfiguration,
                 clock: Optional[Callable[[], datetime]] = None,
                 logger: Any = None) -> None:
        self.store = store
        self.reconciler = reconciler
        self.config = config
        self.clock = clock or utc_now
        base_logger = logger or structlog.get_logger()
        self.logger = base_logger.bind(component="controller_manager")

        self.tracking: Dict[str, PolicyTracking] = {}
        self.resync_period = timedelta(seconds=config.resync_period_seconds)

        self._running = False
        self._shutdown_event = asyncio.Event()

    def is_due(self, policy: PodCleanupPolicy, now: datetime) -> bool:
        """Return True if the policy should be reconciled at ``now``."""
        entry = self.tracking.get(policy.name)
        if entry is None or entry.generation != policy.metadata.generation:
            return True
        if entry.due_at is not None and entry.due_at <= now:
            return True
        if entry.last_reconciled is not None and now - entry.last_reconciled >= self.resync_period:
            return True
        return False

    def backoff(self, failures: int) -> timedelta:
        """Retry delay after ``failures`` consecutive failures."""
        delay = self.config.retry_backoff_base_seconds * (2 ** (failures - 1))
        return timedelta(seconds=min(delay, self.config.retry_backoff_max_seconds))

    async def run_once(self) -> int:
        """
        Reconcile every due policy once.

        Returns:
            Number of reconciliations attempted
        """
        now = self.clock()
        try:
            policies = await self.store.list_policies()
        except TransientStoreError as e:
            self.logger.error("Failed to list policies", error=str(e))
            return 0

        attempted = 0
        present = set()
        for policy in policies:
            present.add(policy.name)
            if not self.is_due(policy, now):
                continue
            attempted += 1
            await self._reconcile(policy, now)

        for name in list(self.tracking):
            if name not in present:
                del self.tracking[name]

        MANAGED_POLICIES.set(len(self.tracking))
        return attempted

    async def _reconcile(self, policy: PodCleanupPolicy, now: datetime) -> None:
        name = policy.name
        generation = policy.metadata.generation

        try:
            result = await self.reconciler.reconcile(name)
        except (StatusPersistError, TransientStoreError) as e:
            self._schedule_retry(name, generation, now, e)
            return
        except Exception as e:
            self.logger.error(
                "Unexpected error reconciling policy",
                policy=name,
                error=str(e),
                exc_info=True
            )
            self._schedule_retry(name, generation, now, e)
            return

        if result.state == ReconcileState.DELETED:
            self.tracking.pop(name, None)
            return

        due_at = now + result.requeue_after if result.requeue_after is not None else None
        self.tracking[name] = PolicyTracking(
            generation=generation,
            due_at=due_at,
            last_reconciled=now,
        )

    def _schedule_retry(self, name: str, generation: int, now: datetime, error: Exception) -> None:
        """Track a failed reconciliation and push its next attempt out by the backoff."""
        previous = self.tracking.get(name)
        failures = (previous.failures if previous else 0) + 1
        delay = self.backoff(failures)
        self.tracking[name] = PolicyTracking(
            generation=generation,
            due_at=now + delay,
            last_reconciled=now,
            failures=failures,
        )
        self.logger.warning(
            "Reconciliation failed, retrying",
            policy=name,
            failures=failures,
            retry_in=delay.total_seconds(),
            error=str(error)
        )

    async def start(self) -> None:
        """
        Run the manager loop until stop() is called.

        Raises:
            RuntimeError: If the manager is already running
        """
        if self._running:
            raise RuntimeError("Controller manager is already running")

        self._running = True
        self._shutdown_event.clear()
        self.logger.info(
            "Controller manager started",
            poll_interval=self.config.poll_interval_seconds,
            resync_period=self.config.resync_period_seconds
        )

        try:
            while not self._shutdown_event.is_set():
                try:
                    await self.run_once()
                except Exception as e:
                    self.logger.error("Error in controller loop", error=str(e), exc_info=True)
                try:
                    await asyncio.wait_for(
                        self._shutdown_event.wait(),
                        timeout=self.config.poll_interval_seconds
                    )
                except asyncio.TimeoutError:
                    pass
        finally:
            self._running = False
            self.logger.info("Controller manager stopped")

    async def stop(self) -> None:
        """Signal the manager loop to exit after the current pass."""
        self._shutdown_event.set()
