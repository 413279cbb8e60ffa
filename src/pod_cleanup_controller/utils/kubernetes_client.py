"""
Kubernetes-backed object store for the pod cleanup controller.

This module wraps the official Kubernetes Python client: core API calls for
namespaces and pods, custom object calls for PodCleanupPolicy resources.
API errors are translated into the controller's error taxonomy so the
reconciler never sees ApiException directly.
"""

import asyncio
from typing import Any, Callable, Dict, List, Optional

import structlog
from kubernetes import client, config
from kubernetes.client.rest import ApiException
from pydantic import ValidationError

from ..exceptions import (
    InvalidSelectorError,
    ObjectNotFoundError,
    TransientStoreError,
)
from ..models.cluster import NamespaceInfo, PodInfo
from ..models.policy import API_GROUP, API_VERSION, PLURAL, PodCleanupPolicy
from .selectors import Selector
from .store import ObjectStore


def load_kubernetes_configuration(kubeconfig: Optional[str] = None) -> None:
    """
    Load cluster credentials.

    An explicit kubeconfig wins; otherwise in-cluster configuration is tried
    first and the default kubeconfig location second.
    """
    logger = structlog.get_logger().bind(component="k8s_client")

    if kubeconfig:
        config.load_kube_config(config_file=kubeconfig)
        logger.info("Loaded Kubernetes configuration", kubeconfig=kubeconfig)
        return

    try:
        config.load_incluster_config()
        logger.info("Loaded in-cluster Kubernetes configuration")
    except config.ConfigException:
        config.load_kube_config()
        logger.info("Loaded local Kubernetes configuration")


class KubernetesObjectStore(ObjectStore):
    """
    Object store backed by the Kubernetes API.

    Provides:
    - Namespace and pod listing with server-side label selection
    - Pod deletion with an optional grace period
    - PodCleanupPolicy retrieval and status replacement
    """

    def __init__(self,
                 logger: Any = None,
                 api_group: str = API_GROUP,
                 api_version: str = API_VERSION,
                 plural: str = PLURAL,
                 delete_grace_period: Optional[int] = None,
                 core_api: Optional[client.CoreV1Api] = None,
                 custom_api: Optional[client.CustomObjectsApi] = None) -> None:
        """
        Initialize the Kubernetes object store.

        Args:
            logger: Structured logger instance
            api_group: API group of the PodCleanupPolicy resource
            api_version: API version of the PodCleanupPolicy resource
            plural: Plural resource name of PodCleanupPolicy
            delete_grace_period: Grace period for pod deletion, None for
                the pod's own default
            core_api: Preconfigured CoreV1Api, created when omitted
            custom_api: Preconfigured CustomObjectsApi, created when omitted
        """
        base_logger = logger or structlog.get_logger()
        self.logger = base_logger.bind(component="k8s_client")

        self.api_group = api_group
        self.api_version = api_version
        self.plural = plural
        self.delete_grace_period = delete_grace_period

        self.v1 = core_api or client.CoreV1Api()
        self.custom = custom_api or client.CustomObjectsApi()

        self._operation_counts: Dict[str, int] = {}

    async def _call(self, operation: str, func: Callable[..., Any], *args: Any, **kwargs: Any) -> Any:
        """Run a blocking client call in a worker thread and count it."""
        self._operation_counts[operation] = self._operation_counts.get(operation, 0) + 1
        try:
            return await asyncio.to_thread(func, *args, **kwargs)
        except ApiException:
            raise
        except Exception as e:
            # Connection-level failures surface as urllib3 errors
            raise TransientStoreError(f"{operation} failed: {e}") from e

    async def validate_permissions(self) -> None:
        """
        Validate the service account can perform controller operations.

        Raises:
            TransientStoreError: If a required permission is missing
        """
        checks = [
            ("list namespaces", self.v1.list_namespace, {"limit": 1}),
            ("list pods", self.v1.list_pod_for_all_namespaces, {"limit": 1}),
            ("list policies", self.custom.list_cluster_custom_object,
             {"group": self.api_group, "version": self.api_version,
              "plural": self.plural, "limit": 1}),
        ]
        for description, func, kwargs in checks:
            try:
                await asyncio.to_thread(func, **kwargs)
            except ApiException as e:
                raise TransientStoreError(f"Cannot {description}: {e.status} {e.reason}") from e

        self.logger.info("Kubernetes permissions validated successfully")

    async def get_policy(self, name: str) -> PodCleanupPolicy:
        try:
            obj = await self._call(
                "policy_get",
                self.custom.get_cluster_custom_object,
                group=self.api_group,
                version=self.api_version,
                plural=self.plural,
                name=name,
            )
        except ApiException as e:
            if e.status == 404:
                raise ObjectNotFoundError(f"PodCleanupPolicy {name} not found") from e
            self.logger.error(
                "Kubernetes API error getting policy",
                policy=name,
                status_code=e.status,
                reason=e.reason
            )
            raise TransientStoreError(f"getting policy {name}: {e.status} {e.reason}") from e

        return self._to_policy(obj)

    async def list_policies(self) -> List[PodCleanupPolicy]:
        try:
            response = await self._call(
                "policy_list",
                self.custom.list_cluster_custom_object,
                group=self.api_group,
                version=self.api_version,
                plural=self.plural,
            )
        except ApiException as e:
            self.logger.error(
                "Kubernetes API error listing policies",
                status_code=e.status,
                reason=e.reason
            )
            raise TransientStoreError(f"listing policies: {e.status} {e.reason}") from e

        policies = []
        for obj in response.get("items", []):
            try:
                policies.append(self._to_policy(obj))
            except TransientStoreError as e:
                self.logger.warning("Skipping malformed policy", error=str(e))
        return policies

    async def list_namespaces(self, selector: Optional[Selector] = None) -> List[NamespaceInfo]:
        label_selector = selector.to_label_selector() if selector else ""
        try:
            response = await self._call(
                "namespace_list",
                self.v1.list_namespace,
                label_selector=label_selector or None,
            )
        except ApiException as e:
            self._raise_list_error(e, "namespaces", label_selector)

        return [
            NamespaceInfo(name=ns.metadata.name, labels=ns.metadata.labels or {})
            for ns in response.items
        ]

    async def list_pods(self, namespace: str, selector: Optional[Selector] = None) -> List[PodInfo]:
        label_selector = selector.to_label_selector() if selector else ""
        try:
            response = await self._call(
                "pod_list",
                self.v1.list_namespaced_pod,
                namespace=namespace,
                label_selector=label_selector or None,
            )
        except ApiException as e:
            self._raise_list_error(e, f"pods in namespace {namespace}", label_selector)

        return [self._to_pod_info(pod) for pod in response.items]

    async def delete_pod(self, namespace: str, name: str) -> None:
        kwargs: Dict[str, Any] = {"name": name, "namespace": namespace}
        if self.delete_grace_period is not None:
            kwargs["grace_period_seconds"] = self.delete_grace_period

        try:
            await self._call("pod_delete", self.v1.delete_namespaced_pod, **kwargs)
        except ApiException as e:
            if e.status == 404:
                raise ObjectNotFoundError(f"pod {namespace}/{name} not found") from e
            raise TransientStoreError(
                f"deleting pod {namespace}/{name}: {e.status} {e.reason}"
            ) from e

    async def update_status(self, policy: PodCleanupPolicy) -> None:
        try:
            await self._call(
                "status_update",
                self.custom.replace_cluster_custom_object_status,
                group=self.api_group,
                version=self.api_version,
                plural=self.plural,
                name=policy.name,
                body=policy.to_manifest(),
            )
        except ApiException as e:
            if e.status == 404:
                raise ObjectNotFoundError(f"PodCleanupPolicy {policy.name} not found") from e
            raise TransientStoreError(
                f"updating status of {policy.name}: {e.status} {e.reason}"
            ) from e

    def _raise_list_error(self, e: ApiException, what: str, label_selector: str) -> None:
        if label_selector and e.status in (400, 422):
            raise InvalidSelectorError(
                f"selector {label_selector!r} rejected listing {what}: {e.reason}"
            ) from e
        self.logger.error(
            "Kubernetes API error listing objects",
            objects=what,
            status_code=e.status,
            reason=e.reason
        )
        raise TransientStoreError(f"listing {what}: {e.status} {e.reason}") from e

    def _to_policy(self, obj: Dict[str, Any]) -> PodCleanupPolicy:
        try:
            return PodCleanupPolicy.model_validate(obj)
        except ValidationError as e:
            name = (obj.get("metadata") or {}).get("name", "<unknown>")
            raise TransientStoreError(f"malformed PodCleanupPolicy {name}: {e}") from e

    @staticmethod
    def _to_pod_info(pod: Any) -> PodInfo:
        return PodInfo(
            namespace=pod.metadata.namespace,
            name=pod.metadata.name,
            labels=pod.metadata.labels or {},
            phase=(pod.status.phase if pod.status else None) or "Unknown",
            creation_timestamp=pod.metadata.creation_timestamp,
        )

    async def close(self) -> None:
        """Log operation statistics; the client needs no explicit cleanup."""
        self.logger.info(
            "Kubernetes client closing",
            operation_counts=self._operation_counts
        )

    def get_operation_stats(self) -> Dict[str, int]:
        """Get operation statistics for monitoring."""
        return self._operation_counts.copy()
