"""
Data models for the pod cleanup controller.

This package contains the PodCleanupPolicy resource models and the
read-only views of pods and namespaces used during reconciliation.
"""

from .cluster import NamespaceInfo, PodInfo
from .config import ControllerConfiguration
from .policy import (
    CleanupPolicySpec,
    CleanupPolicyStatus,
    Condition,
    ConditionReason,
    ConditionStatus,
    LabelSelector,
    LabelSelectorRequirement,
    ObjectMeta,
    PodCleanupPolicy,
)

__all__ = [
    "CleanupPolicySpec",
    "CleanupPolicyStatus",
    "Condition",
    "ConditionReason",
    "ConditionStatus",
    "ControllerConfiguration",
    "LabelSelector",
    "LabelSelectorRequirement",
    "NamespaceInfo",
    "ObjectMeta",
    "PodCleanupPolicy",
    "PodInfo",
]
