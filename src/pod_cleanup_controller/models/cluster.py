"""
Read-only views of cluster objects the controller inspects.

Pods and namespaces are owned by the cluster; the controller only reads them
and, for pods, deletes them.
"""

from datetime import datetime, timedelta
from typing import Dict, Optional

from pydantic import BaseModel, Field


class NamespaceInfo(BaseModel):
    """Namespace identity and labels."""

    name: str
    labels: Dict[str, str] = Field(default_factory=dict)


class PodInfo(BaseModel):
    """Pod identity, labels, lifecycle phase and creation time."""

    namespace: str
    name: str
    labels: Dict[str, str] = Field(default_factory=dict)
    phase: str = "Unknown"
    creation_timestamp: Optional[datetime] = None

    @property
    def key(self) -> str:
        return f"{self.namespace}/{self.name}"

    def age(self, now: datetime) -> Optional[timedelta]:
        """Return the pod age at ``now``, or None without a creation time."""
        if self.creation_timestamp is None:
            return None
        return now - self.creation_timestamp
