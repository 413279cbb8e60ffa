"""
Pod Cleanup Controller package.

This package contains the policy reconciler, the cleanup executor and the
manager loop that schedules reconciliations.
"""

from .executor import CleanupExecutor, CleanupOutcome
from .manager import ControllerManager
from .policy_controller import PodCleanupPolicyReconciler, ReconcileResult, ReconcileState

__all__ = [
    "CleanupExecutor",
    "CleanupOutcome",
    "ControllerManager",
    "PodCleanupPolicyReconciler",
    "ReconcileResult",
    "ReconcileState",
]
