"""
Controller configuration model.

Aggregates the runtime settings of the pod cleanup controller: logging,
metrics, loop timing, namespace parallelism and the coordinates of the
PodCleanupPolicy resource.
"""

from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, PositiveInt, model_validator

from .policy import API_GROUP, API_VERSION, PLURAL


class ControllerConfiguration(BaseModel):
    """
    Main controller configuration.

    Loaded from YAML or JSON by the CLI; unknown keys are rejected so that
    typos surface at startup.
    """

    model_config = ConfigDict(validate_assignment=True, extra="forbid")

    log_level: str = Field(
        default="INFO",
        pattern=r"^(DEBUG|INFO|WARNING|ERROR|CRITICAL)$",
        description="Logging level"
    )
    log_format: str = Field(
        default="json",
        pattern=r"^(json|console)$",
        description="Log renderer"
    )
    enable_metrics: bool = Field(
        default=True,
        description="Expose Prometheus metrics"
    )
    monitoring_port: PositiveInt = Field(
        default=8080,
        le=65535,
        description="Port for the metrics endpoint"
    )
    poll_interval_seconds: float = Field(
        default=10.0,
        gt=0,
        description="How often the manager lists policies and checks due work"
    )
    resync_period_seconds: float = Field(
        default=36000.0,
        gt=0,
        description="Reconcile every policy at least this often"
    )
    max_concurrent_namespaces: PositiveInt = Field(
        default=1,
        le=64,
        description="Namespaces cleaned in parallel within one run"
    )
    delete_grace_period_seconds: Optional[int] = Field(
        default=None,
        ge=0,
        description="Grace period for pod deletion; unset uses the pod's own"
    )
    retry_backoff_base_seconds: float = Field(
        default=5.0,
        gt=0,
        description="First retry delay after a failed reconciliation"
    )
    retry_backoff_max_seconds: float = Field(
        default=300.0,
        gt=0,
        description="Upper bound for the retry delay"
    )
    api_group: str = Field(default=API_GROUP, description="PodCleanupPolicy API group")
    api_version: str = Field(default=API_VERSION, description="PodCleanupPolicy API version")
    plural: str = Field(default=PLURAL, description="PodCleanupPolicy plural name")
    kubeconfig: Optional[str] = Field(
        default=None,
        description="Path to a kubeconfig; unset tries in-cluster first"
    )

    @model_validator(mode="after")
    def validate_backoff(self) -> "ControllerConfiguration":
        """Validate retry backoff bounds for consistency."""
        if self.retry_backoff_base_seconds > self.retry_backoff_max_seconds:
            raise ValueError("retry_backoff_base_seconds must not exceed retry_backoff_max_seconds")
        return self

    @classmethod
    def sample(cls) -> Dict[str, Any]:
        """Return a sample configuration with every setting spelled out."""
        return cls().model_dump()
