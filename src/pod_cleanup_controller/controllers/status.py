"""
Status bookkeeping for PodCleanupPolicy.

Every function here works on a copy of the policy status and returns the
new status, so a reconciliation computes the complete status in memory and
writes it once.
"""

from datetime import datetime

from ..exceptions import InvalidScheduleError
from ..models.policy import (
    READY_CONDITION,
    CleanupPolicyStatus,
    Condition,
    ConditionReason,
    ConditionStatus,
    PodCleanupPolicy,
)
from .executor import CleanupOutcome


def set_condition(status: CleanupPolicyStatus,
                  condition_type: str,
                  condition_status: ConditionStatus,
                  reason: str,
                  message: str,
                  generation: int,
                  now: datetime) -> None:
    """
    Upsert a condition by type.

    A status flip replaces the condition with a fresh transition time. An
    unchanged status keeps the transition time and only updates reason,
    message and observed generation.
    """
    existing = status.conditions.get(condition_type)

    if existing is not None and existing.status == condition_status:
        existing.reason = reason
        existing.message = message
        existing.observed_generation = generation
        return

    status.conditions[condition_type] = Condition(
        type=condition_type,
        status=condition_status,
        reason=reason,
        message=message,
        last_transition_time=now,
        observed_generation=generation,
    )


def success_message(affected: int, dry_run: bool) -> str:
    if dry_run:
        return f"DryRun cleanup completed; {affected} pod(s) would be deleted"
    return f"Cleanup completed; {affected} pod(s) deleted"


def apply_outcome(policy: PodCleanupPolicy, outcome: CleanupOutcome, now: datetime) -> CleanupPolicyStatus:
    """
    Merge a cleanup run into the policy status.

    Args:
        policy: Policy the run was executed for
        outcome: Result of the run
        now: Start time of the run

    Returns:
        New status with the Ready condition, last-run fields and cumulative
        counter updated
    """
    status = policy.status.model_copy(deep=True)
    now = now.replace(microsecond=0)

    if outcome.succeeded:
        set_condition(
            status,
            READY_CONDITION,
            ConditionStatus.TRUE,
            ConditionReason.CLEANUP_SUCCEEDED.value,
            success_message(outcome.affected, policy.spec.dry_run),
            policy.metadata.generation,
            now,
        )
    else:
        set_condition(
            status,
            READY_CONDITION,
            ConditionStatus.FALSE,
            ConditionReason.CLEANUP_FAILED.value,
            outcome.fatal_error or "cleanup failed",
            policy.metadata.generation,
            now,
        )

    status.last_run_time = now
    status.last_run_pods_deleted = outcome.affected
    if not policy.spec.dry_run:
        status.pods_deleted += outcome.affected

    return status


def apply_invalid_schedule(policy: PodCleanupPolicy,
                           error: InvalidScheduleError,
                           now: datetime) -> CleanupPolicyStatus:
    """Record an unparseable schedule; run counters are left untouched."""
    status = policy.status.model_copy(deep=True)
    set_condition(
        status,
        READY_CONDITION,
        ConditionStatus.FALSE,
        ConditionReason.INVALID_SCHEDULE.value,
        str(error),
        policy.metadata.generation,
        now.replace(microsecond=0),
    )
    return status
