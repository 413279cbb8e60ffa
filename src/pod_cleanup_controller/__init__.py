"""
Pod Cleanup Controller for Kubernetes.

A controller that removes pods matching declarative PodCleanupPolicy
resources: pods selected by namespace and pod label selectors, filtered by
lifecycle phase and minimum age, cleaned on a cron schedule.

This package implements:
- Cron-gated reconciliation with requeue durations
- Label selector evaluation for namespaces and pods
- Dry-run reporting and per-namespace failure isolation
- Status conditions and Prometheus metrics
"""

__version__ = "0.1.0"

from .controllers.policy_controller import PodCleanupPolicyReconciler, ReconcileResult, ReconcileState
from .models.policy import CleanupPolicySpec, CleanupPolicyStatus, PodCleanupPolicy

__all__ = [
    "CleanupPolicySpec",
    "CleanupPolicyStatus",
    "PodCleanupPolicy",
    "PodCleanupPolicyReconciler",
    "ReconcileResult",
    "ReconcileState",
]
