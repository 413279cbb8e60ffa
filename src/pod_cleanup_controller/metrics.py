"""
Prometheus metrics for the pod cleanup controller.
"""

from prometheus_client import Counter, Gauge, Histogram


RECONCILIATIONS = Counter(
    "pod_cleanup_reconciliations_total",
    "Total policy reconciliations",
    ["result"]
)
RECONCILE_DURATION = Histogram(
    "pod_cleanup_reconcile_duration_seconds",
    "Policy reconciliation duration in seconds"
)
PODS_CLEANED = Counter(
    "pod_cleanup_pods_cleaned_total",
    "Pods deleted, or reported in dry-run mode",
    ["policy", "mode"]
)
NAMESPACE_FAILURES = Counter(
    "pod_cleanup_namespace_failures_total",
    "Namespaces skipped because listing their pods failed",
    ["policy"]
)
POD_DELETE_FAILURES = Counter(
    "pod_cleanup_pod_delete_failures_total",
    "Pod deletions that failed",
    ["policy"]
)
MANAGED_POLICIES = Gauge(
    "pod_cleanup_managed_policies",
    "Number of policies tracked by the controller manager"
)
