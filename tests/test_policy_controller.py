"""
PodCleanupPolicy reconciler tests.

End-to-end reconciliations against the in-memory store with a fixed clock.
"""

from datetime import datetime, timedelta, timezone

import pytest

from pod_cleanup_controller.controllers.policy_controller import (
    PodCleanupPolicyReconciler,
    ReconcileState,
)
from pod_cleanup_controller.exceptions import (
    ObjectNotFoundError,
    StatusPersistError,
    TransientStoreError,
)
from pod_cleanup_controller.models.policy import READY_CONDITION, ConditionReason, ConditionStatus

from fakes import NOW, FakeObjectStore, FixedClock, make_pod, make_policy


class TestPodCleanupPolicyReconciler:
    """Test policy reconciliation."""

    def setup_method(self):
        self.store = FakeObjectStore()
        self.clock = FixedClock()
        self.reconciler = PodCleanupPolicyReconciler(self.store, clock=self.clock)

    def _stored_status(self, name="cleanup"):
        return self.store.policies[name].status

    async def test_unscheduled_policy_cleans_and_goes_idle(self):
        self.store.add_policy(make_policy(podStatuses=["Failed"], maxAge="30m"))
        self.store.add_pod(make_pod("default", "crashed", phase="Failed", age=timedelta(minutes=45)))
        self.store.add_pod(make_pod("default", "fresh", phase="Failed", age=timedelta(minutes=10)))

        result = await self.reconciler.reconcile("cleanup")

        assert result.state == ReconcileState.IDLE
        assert result.requeue_after is None
        assert self.store.deleted == ["default/crashed"]

        status = self._stored_status()
        condition = status.get_condition(READY_CONDITION)
        assert condition.status == ConditionStatus.TRUE
        assert condition.reason == ConditionReason.CLEANUP_SUCCEEDED.value
        assert condition.message == "Cleanup completed; 1 pod(s) deleted"
        assert status.last_run_time == NOW
        assert status.last_run_pods_deleted == 1
        assert status.pods_deleted == 1

    async def test_schedule_not_due_waits(self):
        policy = make_policy(schedule="*/15 * * * *")
        policy.status.last_run_time = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)
        self.store.add_policy(policy)
        self.store.add_pod(make_pod("default", "pod"))

        result = await self.reconciler.reconcile("cleanup")

        assert result.state == ReconcileState.WAITING
        assert result.requeue_after == timedelta(minutes=10)
        assert self.store.deleted == []
        assert self.store.status_updates == []

    async def test_due_schedule_runs_and_requeues(self):
        policy = make_policy(schedule="*/15 * * * *")
        policy.status.last_run_time = datetime(2024, 5, 1, 11, 45, tzinfo=timezone.utc)
        self.store.add_policy(policy)
        self.store.add_pod(make_pod("default", "pod"))

        result = await self.reconciler.reconcile("cleanup")

        assert result.state == ReconcileState.REQUEUED
        assert result.requeue_after == timedelta(minutes=10)
        assert result.outcome.affected == 1
        assert self._stored_status().last_run_time == NOW

        # The recorded run now gates the next reconciliation
        result = await self.reconciler.reconcile("cleanup")
        assert result.state == ReconcileState.WAITING
        assert result.requeue_after == timedelta(minutes=10)

    async def test_first_run_of_scheduled_policy_is_immediate(self):
        self.store.add_policy(make_policy(schedule="0 3 * * *"))

        result = await self.reconciler.reconcile("cleanup")

        assert result.state == ReconcileState.REQUEUED
        assert result.requeue_after == timedelta(hours=14, minutes=55)

    async def test_invalid_schedule_is_reported(self):
        self.store.add_policy(make_policy(schedule="not a cron"))
        self.store.add_pod(make_pod("default", "pod"))

        result = await self.reconciler.reconcile("cleanup")

        assert result.state == ReconcileState.IDLE
        assert result.requeue_after is None
        assert self.store.deleted == []

        status = self._stored_status()
        condition = status.get_condition(READY_CONDITION)
        assert condition.status == ConditionStatus.FALSE
        assert condition.reason == ConditionReason.INVALID_SCHEDULE.value
        assert condition.message.startswith('Cannot parse cron schedule "not a cron"')
        assert status.last_run_time is None

    async def test_dry_run(self):
        self.store.add_policy(make_policy(dryRun=True))
        self.store.add_pod(make_pod("default", "a"))
        self.store.add_pod(make_pod("default", "b"))

        await self.reconciler.reconcile("cleanup")

        status = self._stored_status()
        assert self.store.deleted == []
        assert status.pods_deleted == 0
        assert status.last_run_pods_deleted == 2
        assert status.get_condition(READY_CONDITION).message == (
            "DryRun cleanup completed; 2 pod(s) would be deleted"
        )

    async def test_failed_cleanup_is_recorded_not_raised(self):
        self.store.add_policy(make_policy(schedule="*/15 * * * *"))
        self.store.list_namespaces_error = TransientStoreError("apiserver unavailable")

        result = await self.reconciler.reconcile("cleanup")

        assert result.state == ReconcileState.REQUEUED
        condition = self._stored_status().get_condition(READY_CONDITION)
        assert condition.status == ConditionStatus.FALSE
        assert condition.reason == ConditionReason.CLEANUP_FAILED.value
        assert condition.message == "listing target namespaces: apiserver unavailable"

    async def test_status_write_failure_raises(self):
        self.store.add_policy(make_policy())
        self.store.add_pod(make_pod("default", "pod"))
        self.store.update_status_error = TransientStoreError("conflict")

        with pytest.raises(StatusPersistError):
            await self.reconciler.reconcile("cleanup")

        # The cleanup itself already happened
        assert self.store.deleted == ["default/pod"]

    async def test_missing_policy(self):
        result = await self.reconciler.reconcile("absent")

        assert result.state == ReconcileState.DELETED
        assert self.store.status_updates == []

    async def test_policy_deleted_before_status_write(self):
        self.store.add_policy(make_policy())
        self.store.update_status_error = ObjectNotFoundError("gone")

        result = await self.reconciler.reconcile("cleanup")

        assert result.state == ReconcileState.DELETED

    async def test_policy_fetch_failure_propagates(self):
        self.store.add_policy(make_policy())
        self.store.get_policy_error = TransientStoreError("apiserver unavailable")

        with pytest.raises(TransientStoreError):
            await self.reconciler.reconcile("cleanup")

    async def test_condition_keeps_transition_time_across_runs(self):
        self.store.add_policy(make_policy())

        await self.reconciler.reconcile("cleanup")
        self.clock.advance(timedelta(hours=1))
        await self.reconciler.reconcile("cleanup")

        status = self._stored_status()
        assert status.last_run_time == NOW + timedelta(hours=1)
        assert status.get_condition(READY_CONDITION).last_transition_time == NOW

    async def test_out_of_range_schedule_is_reported(self):
        self.store.add_policy(make_policy(schedule="99 * * * *"))
        self.store.add_pod(make_pod("default", "pod"))

        result = await self.reconciler.reconcile("cleanup")

        assert result.state == ReconcileState.IDLE
        assert result.requeue_after is None
        assert self.store.deleted == []
        condition = self._stored_status().get_condition(READY_CONDITION)
        assert condition.reason == ConditionReason.INVALID_SCHEDULE.value
        assert condition.message.startswith('Cannot parse cron schedule "99 * * * *"')

    async def test_schedule_that_never_fires_is_reported(self):
        policy = make_policy(schedule="0 0 31 2 *")
        policy.status.last_run_time = datetime(2024, 5, 1, 11, 0, tzinfo=timezone.utc)
        policy.status.pods_deleted = 3
        self.store.add_policy(policy)
        self.store.add_pod(make_pod("default", "pod"))

        result = await self.reconciler.reconcile("cleanup")

        assert result.state == ReconcileState.IDLE
        assert self.store.deleted == []
        status = self._stored_status()
        condition = status.get_condition(READY_CONDITION)
        assert condition.status == ConditionStatus.FALSE
        assert condition.reason == ConditionReason.INVALID_SCHEDULE.value
        assert status.pods_deleted == 3

    async def test_one_failed_namespace_of_three(self):
        self.store.add_policy(make_policy(podStatuses=["Failed"], maxAge="30m"))
        for namespace in ["ns-a", "ns-b", "ns-c"]:
            self.store.add_pod(make_pod(namespace, "crashed", phase="Failed", age=timedelta(minutes=45)))
        self.store.list_pods_errors["ns-b"] = TransientStoreError("connection refused")

        result = await self.reconciler.reconcile("cleanup")

        assert result.state == ReconcileState.IDLE
        assert sorted(self.store.deleted) == ["ns-a/crashed", "ns-c/crashed"]
        assert self.store.pod_names("ns-b") == ["crashed"]

        status = self._stored_status()
        condition = status.get_condition(READY_CONDITION)
        assert condition.status == ConditionStatus.TRUE
        assert condition.reason == ConditionReason.CLEANUP_SUCCEEDED.value
        assert condition.message == "Cleanup completed; 2 pod(s) deleted"
        assert status.last_run_pods_deleted == 2
        assert status.pods_deleted == 2
