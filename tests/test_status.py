"""
Policy status bookkeeping tests.
"""

from datetime import timedelta

from pod_cleanup_controller.controllers.executor import CleanupOutcome
from pod_cleanup_controller.controllers.status import apply_invalid_schedule, apply_outcome, set_condition
from pod_cleanup_controller.exceptions import InvalidScheduleError
from pod_cleanup_controller.models.policy import (
    READY_CONDITION,
    CleanupPolicyStatus,
    ConditionReason,
    ConditionStatus,
)

from fakes import NOW, make_policy


class TestSetCondition:
    """Test condition upserts."""

    def test_transition_time_changes_only_on_flip(self):
        status = CleanupPolicyStatus()
        later = NOW + timedelta(minutes=15)

        set_condition(status, READY_CONDITION, ConditionStatus.TRUE, "CleanupSucceeded", "first", 1, NOW)
        set_condition(status, READY_CONDITION, ConditionStatus.TRUE, "CleanupSucceeded", "second", 2, later)

        condition = status.get_condition(READY_CONDITION)
        assert condition.last_transition_time == NOW
        assert condition.message == "second"
        assert condition.observed_generation == 2

        set_condition(status, READY_CONDITION, ConditionStatus.FALSE, "CleanupFailed", "broken", 2, later)

        condition = status.get_condition(READY_CONDITION)
        assert condition.last_transition_time == later
        assert condition.reason == "CleanupFailed"
        assert len(status.conditions) == 1


class TestApplyOutcome:
    """Test merging run outcomes into status."""

    def test_success_updates_counters(self):
        policy = make_policy(generation=3)
        policy.status.pods_deleted = 4

        status = apply_outcome(policy, CleanupOutcome(affected=2), NOW.replace(microsecond=123456))

        condition = status.get_condition(READY_CONDITION)
        assert condition.status == ConditionStatus.TRUE
        assert condition.reason == ConditionReason.CLEANUP_SUCCEEDED.value
        assert condition.message == "Cleanup completed; 2 pod(s) deleted"
        assert condition.observed_generation == 3
        assert status.last_run_time == NOW
        assert status.last_run_pods_deleted == 2
        assert status.pods_deleted == 6
        assert policy.status.pods_deleted == 4

    def test_dry_run_does_not_advance_total(self):
        policy = make_policy(dryRun=True)
        policy.status.pods_deleted = 4

        status = apply_outcome(policy, CleanupOutcome(affected=3, dry_run=True), NOW)

        assert status.pods_deleted == 4
        assert status.last_run_pods_deleted == 3
        assert status.get_condition(READY_CONDITION).message == (
            "DryRun cleanup completed; 3 pod(s) would be deleted"
        )

    def test_fatal_outcome(self):
        outcome = CleanupOutcome(fatal_error="listing target namespaces: apiserver unavailable")

        status = apply_outcome(make_policy(), outcome, NOW)

        condition = status.get_condition(READY_CONDITION)
        assert condition.status == ConditionStatus.FALSE
        assert condition.reason == ConditionReason.CLEANUP_FAILED.value
        assert condition.message == "listing target namespaces: apiserver unavailable"
        assert status.last_run_time == NOW
        assert status.last_run_pods_deleted == 0

    def test_invalid_schedule_leaves_counters(self):
        policy = make_policy(schedule="bad")
        policy.status.last_run_pods_deleted = 7

        status = apply_invalid_schedule(policy, InvalidScheduleError("bad", "expected exactly 5 fields, found 1"), NOW)

        condition = status.get_condition(READY_CONDITION)
        assert condition.reason == ConditionReason.INVALID_SCHEDULE.value
        assert condition.message == 'Cannot parse cron schedule "bad": expected exactly 5 fields, found 1'
        assert status.last_run_time is None
        assert status.last_run_pods_deleted == 7
