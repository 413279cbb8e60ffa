"""
Object store interface consumed by the reconciler.

Implementations wrap a Kubernetes-like API. All methods are coroutines;
implementations backed by blocking clients run the calls in worker threads.
"""

from abc import ABC, abstractmethod
from typing import List, Optional

from ..models.cluster import NamespaceInfo, PodInfo
from ..models.policy import PodCleanupPolicy
from .selectors import Selector


class ObjectStore(ABC):
    """Read, delete and status-update operations the controller needs."""

    @abstractmethod
    async def get_policy(self, name: str) -> PodCleanupPolicy:
        """
        Fetch a policy by name.

        Raises:
            ObjectNotFoundError: If the policy does not exist
            TransientStoreError: If the store cannot be reached
        """

    @abstractmethod
    async def list_policies(self) -> List[PodCleanupPolicy]:
        """List all policies."""

    @abstractmethod
    async def list_namespaces(self, selector: Optional[Selector] = None) -> List[NamespaceInfo]:
        """
        List namespaces, optionally filtered by label selector.

        Raises:
            InvalidSelectorError: If the store rejects the selector
            TransientStoreError: If listing fails
        """

    @abstractmethod
    async def list_pods(self, namespace: str, selector: Optional[Selector] = None) -> List[PodInfo]:
        """
        List pods in a namespace, optionally filtered by label selector.

        Raises:
            InvalidSelectorError: If the store rejects the selector
            TransientStoreError: If listing fails
        """

    @abstractmethod
    async def delete_pod(self, namespace: str, name: str) -> None:
        """
        Delete a pod.

        Raises:
            ObjectNotFoundError: If the pod is already gone
            TransientStoreError: If deletion fails
        """

    @abstractmethod
    async def update_status(self, policy: PodCleanupPolicy) -> None:
        """
        Persist the status of a policy.

        Raises:
            ObjectNotFoundError: If the policy no longer exists
            TransientStoreError: If the update fails
        """

    async def close(self) -> None:
        """Release client resources."""
