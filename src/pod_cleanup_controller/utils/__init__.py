"""
Utility modules for the Pod Cleanup Controller.

This package contains label selector evaluation, pod filters, cron
gating, policy validation and the object store backends.
"""

from .filters import is_eligible, parse_duration
from .kubernetes_client import KubernetesObjectStore
from .schedule import CronSchedule, GateDecision
from .selectors import Selector, compile_selector
from .store import ObjectStore
from .validation import PolicyValidator

__all__ = [
    "CronSchedule",
    "GateDecision",
    "KubernetesObjectStore",
    "ObjectStore",
    "PolicyValidator",
    "Selector",
    "compile_selector",
    "is_eligible",
    "parse_duration",
]
