"""
PodCleanupPolicy models with camelCase wire format.

This module defines the cluster-scoped PodCleanupPolicy resource: its spec
(the declarative cleanup rule), its status (owned by the controller) and the
Kubernetes-style label selectors and conditions it embeds. Spec fields are
kept permissive: malformed schedules, selectors and durations are reported
through status during reconciliation rather than rejected on load.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_serializer, field_validator
from pydantic.alias_generators import to_camel


API_GROUP = "cleanup.k8s.io"
API_VERSION = "v1"
KIND = "PodCleanupPolicy"
PLURAL = "podcleanuppolicies"

READY_CONDITION = "Ready"


class KubernetesModel(BaseModel):
    """Base model mapping snake_case attributes to camelCase keys."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )


class ConditionStatus(str, Enum):
    """Condition status values as defined by Kubernetes API conventions."""

    TRUE = "True"
    FALSE = "False"
    UNKNOWN = "Unknown"


class ConditionReason(str, Enum):
    """Reasons the controller records on the Ready condition."""

    CLEANUP_SUCCEEDED = "CleanupSucceeded"
    CLEANUP_FAILED = "CleanupFailed"
    INVALID_SCHEDULE = "InvalidSchedule"


class LabelSelectorRequirement(KubernetesModel):
    """A single set-based label requirement."""

    key: str = Field(..., description="Label key the requirement applies to")
    operator: str = Field(..., description="One of In, NotIn, Exists, DoesNotExist")
    values: List[str] = Field(
        default_factory=list,
        description="Values for In and NotIn; must be empty otherwise"
    )

    @field_validator("values", mode="before")
    @classmethod
    def _none_as_empty(cls, v: Any) -> Any:
        return [] if v is None else v


class LabelSelector(KubernetesModel):
    """
    Label selector in Kubernetes form.

    matchLabels and matchExpressions are ANDed together. An empty selector
    selects everything.
    """

    match_labels: Dict[str, str] = Field(
        default_factory=dict,
        description="Exact label key/value pairs"
    )
    match_expressions: List[LabelSelectorRequirement] = Field(
        default_factory=list,
        description="Set-based label requirements"
    )

    @field_validator("match_labels", mode="before")
    @classmethod
    def _none_as_empty_map(cls, v: Any) -> Any:
        return {} if v is None else v

    @field_validator("match_expressions", mode="before")
    @classmethod
    def _none_as_empty_list(cls, v: Any) -> Any:
        return [] if v is None else v

    def is_empty(self) -> bool:
        return not self.match_labels and not self.match_expressions


class CleanupPolicySpec(KubernetesModel):
    """Desired cleanup behaviour of a policy."""

    schedule: Optional[str] = Field(
        default=None,
        description="Five-field cron expression; unset means run on every reconcile"
    )
    namespace_selector: Optional[LabelSelector] = Field(
        default=None,
        description="Namespaces to scan; unset means all namespaces"
    )
    pod_selector: Optional[LabelSelector] = Field(
        default=None,
        description="Pods to consider; unset means all pods"
    )
    pod_statuses: List[str] = Field(
        default_factory=list,
        description="Pod phases eligible for cleanup; empty means all phases"
    )
    max_age: Optional[str] = Field(
        default=None,
        description="Minimum pod age before cleanup, e.g. '24h' or '1h30m'"
    )
    dry_run: bool = Field(
        default=False,
        description="Report matching pods without deleting them"
    )

    @field_validator("pod_statuses", mode="before")
    @classmethod
    def _none_as_empty(cls, v: Any) -> Any:
        return [] if v is None else v

    @field_validator("schedule", "max_age", mode="before")
    @classmethod
    def _blank_as_unset(cls, v: Any) -> Any:
        if isinstance(v, str) and not v.strip():
            return None
        return v


class Condition(KubernetesModel):
    """Named, timestamped status record."""

    type: str
    status: ConditionStatus = ConditionStatus.UNKNOWN
    reason: str = ""
    message: str = ""
    last_transition_time: Optional[datetime] = None
    observed_generation: int = 0


class CleanupPolicyStatus(KubernetesModel):
    """
    Observed state of a policy.

    Conditions are held as a mapping keyed by condition type and exchanged
    as an ordered list on the wire.
    """

    last_run_time: Optional[datetime] = Field(
        default=None,
        description="Start time of the last cleanup run"
    )
    last_run_pods_deleted: int = Field(
        default=0,
        ge=0,
        description="Pods deleted (or that would be deleted) in the last run"
    )
    pods_deleted: int = Field(
        default=0,
        ge=0,
        description="Cumulative pods deleted; never advanced by dry runs"
    )
    conditions: Dict[str, Condition] = Field(default_factory=dict)

    @field_validator("conditions", mode="before")
    @classmethod
    def _index_conditions(cls, v: Any) -> Any:
        if v is None:
            return {}
        if isinstance(v, list):
            indexed: Dict[str, Any] = {}
            for item in v:
                key = item.type if isinstance(item, Condition) else item["type"]
                indexed[key] = item
            return indexed
        return v

    @field_serializer("conditions")
    def _conditions_as_list(self, conditions: Dict[str, Condition]) -> List[Condition]:
        return list(conditions.values())

    def get_condition(self, condition_type: str) -> Optional[Condition]:
        return self.conditions.get(condition_type)


class ObjectMeta(KubernetesModel):
    """Subset of Kubernetes object metadata the controller relies on."""

    name: str
    generation: int = 0
    resource_version: Optional[str] = None
    uid: Optional[str] = None
    labels: Dict[str, str] = Field(default_factory=dict)
    creation_timestamp: Optional[datetime] = None

    @field_validator("labels", mode="before")
    @classmethod
    def _none_as_empty(cls, v: Any) -> Any:
        return {} if v is None else v


class PodCleanupPolicy(KubernetesModel):
    """Cluster-scoped PodCleanupPolicy resource."""

    api_version: str = f"{API_GROUP}/{API_VERSION}"
    kind: str = KIND
    metadata: ObjectMeta
    spec: CleanupPolicySpec = Field(default_factory=CleanupPolicySpec)
    status: CleanupPolicyStatus = Field(default_factory=CleanupPolicyStatus)

    @field_validator("spec", "status", mode="before")
    @classmethod
    def _none_as_default(cls, v: Any) -> Any:
        return {} if v is None else v

    @property
    def name(self) -> str:
        return self.metadata.name

    def to_manifest(self) -> Dict[str, Any]:
        """Serialize to the camelCase dictionary the API server expects."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)
