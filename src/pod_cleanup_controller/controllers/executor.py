"""
Cleanup execution for a single policy run.

Resolves the target namespaces, lists their pods, filters them by phase and
age and deletes (or, in dry-run mode, reports) the matches. Failures are
isolated: a namespace whose pods cannot be listed is skipped, a pod that
cannot be deleted is skipped, and the run continues.
"""

import asyncio
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

import structlog

from ..exceptions import (
    InvalidSelectorError,
    ObjectNotFoundError,
    PodCleanupError,
    TransientStoreError,
)
from ..metrics import NAMESPACE_FAILURES, POD_DELETE_FAILURES, PODS_CLEANED
from ..models.cluster import PodInfo
from ..models.policy import CleanupPolicySpec
from ..utils.filters import is_eligible, parse_duration
from ..utils.selectors import compile_selector
from ..utils.store import ObjectStore


@dataclass
class NamespaceResult:
    """Result of cleaning one namespace."""

    namespace: str
    affected: int = 0
    error: Optional[PodCleanupError] = None
    pod_errors: Dict[str, PodCleanupError] = field(default_factory=dict)


@dataclass
class CleanupOutcome:
    """Aggregated result of one cleanup run."""

    affected: int = 0
    dry_run: bool = False
    namespaces: List[str] = field(default_factory=list)
    namespace_errors: Dict[str, PodCleanupError] = field(default_factory=dict)
    pod_errors: Dict[str, PodCleanupError] = field(default_factory=dict)
    fatal_error: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return self.fatal_error is None


def _format_age(age: Optional[timedelta]) -> str:
    if age is None:
        return "unknown"
    return str(timedelta(seconds=round(age.total_seconds())))


class CleanupExecutor:
    """
    Runs the namespace, pod, filter and delete pipeline for a policy.

    Namespaces are processed with at most ``max_concurrency`` in flight.
    Each namespace accumulates into its own result; results are merged in
    namespace order once all have finished.
    """

    def __init__(self, store: ObjectStore, max_concurrency: int = 1, logger: Any = None) -> None:
        if max_concurrency < 1:
            raise ValueError("max_concurrency must be at least 1")

        self.store = store
        self.max_concurrency = max_concurrency
        base_logger = logger or structlog.get_logger()
        self.logger = base_logger.bind(component="cleanup_executor")

    async def execute(self, spec: CleanupPolicySpec, now: datetime, policy_name: str = "") -> CleanupOutcome:
        """
        Execute one cleanup pass.

        Args:
            spec: Policy spec to apply
            now: Reference time for pod age
            policy_name: Policy name for logs and metrics

        Returns:
            Outcome with the affected count and recorded failures. The
            outcome is fatal when namespaces cannot be resolved or when
            every target namespace failed.
        """
        log = self.logger.bind(policy=policy_name, dry_run=spec.dry_run)

        try:
            namespaces = await self._target_namespaces(spec)
        except (InvalidSelectorError, TransientStoreError) as e:
            log.error("Failed to resolve target namespaces", error=str(e))
            return CleanupOutcome(
                dry_run=spec.dry_run,
                fatal_error=f"listing target namespaces: {e}",
            )

        if spec.max_age is not None:
            try:
                parse_duration(spec.max_age)
            except ValueError as e:
                log.warning("Invalid maxAge, no pod is eligible", max_age=spec.max_age, error=str(e))

        semaphore = asyncio.Semaphore(self.max_concurrency)

        async def bounded(namespace: str) -> NamespaceResult:
            async with semaphore:
                return await self._cleanup_namespace(spec, namespace, now, policy_name, log)

        results = await asyncio.gather(
            *(bounded(ns) for ns in namespaces),
            return_exceptions=True
        )

        outcome = CleanupOutcome(dry_run=spec.dry_run, namespaces=list(namespaces))
        for namespace, result in zip(namespaces, results):
            if isinstance(result, BaseException):
                if not isinstance(result, Exception):
                    raise result
                log.error(
                    "Unexpected error cleaning namespace",
                    namespace=namespace,
                    error=str(result),
                    exc_info=result
                )
                NAMESPACE_FAILURES.labels(policy=policy_name).inc()
                result = NamespaceResult(
                    namespace=namespace,
                    error=PodCleanupError(f"unexpected error: {result}")
                )
            outcome.affected += result.affected
            outcome.pod_errors.update(result.pod_errors)
            if result.error is not None:
                outcome.namespace_errors[result.namespace] = result.error

        if namespaces and len(outcome.namespace_errors) == len(namespaces):
            details = "; ".join(f"{ns}: {err}" for ns, err in outcome.namespace_errors.items())
            outcome.fatal_error = (
                f"cleanup failed in all {len(namespaces)} target namespace(s): {details}"
            )

        mode = "dry_run" if spec.dry_run else "delete"
        if outcome.affected:
            PODS_CLEANED.labels(policy=policy_name, mode=mode).inc(outcome.affected)

        log.info(
            "Cleanup run finished",
            pods_affected=outcome.affected,
            namespaces=len(namespaces),
            namespace_errors=len(outcome.namespace_errors),
            pod_errors=len(outcome.pod_errors)
        )
        return outcome

    async def _target_namespaces(self, spec: CleanupPolicySpec) -> List[str]:
        """Return the names of the namespaces the policy applies to."""
        if spec.namespace_selector is None:
            namespaces = await self.store.list_namespaces()
        else:
            try:
                selector = compile_selector(spec.namespace_selector)
            except InvalidSelectorError as e:
                raise InvalidSelectorError(f"invalid namespaceSelector: {e}") from e
            namespaces = [
                ns for ns in await self.store.list_namespaces(selector)
                if selector.matches(ns.labels)
            ]
        return [ns.name for ns in namespaces]

    async def _cleanup_namespace(self,
                                 spec: CleanupPolicySpec,
                                 namespace: str,
                                 now: datetime,
                                 policy_name: str,
                                 log: Any) -> NamespaceResult:
        """List, filter and clean the pods of one namespace."""
        result = NamespaceResult(namespace=namespace)

        try:
            selector = compile_selector(spec.pod_selector)
            pods = await self.store.list_pods(namespace, selector)
        except InvalidSelectorError as e:
            result.error = InvalidSelectorError(f"invalid podSelector: {e}")
        except TransientStoreError as e:
            result.error = e

        if result.error is not None:
            log.error("Error cleaning pods in namespace", namespace=namespace, error=str(result.error))
            NAMESPACE_FAILURES.labels(policy=policy_name).inc()
            return result

        for pod in pods:
            if not selector.matches(pod.labels) or not is_eligible(spec, pod, now):
                continue
            if await self._clean_pod(spec, pod, now, policy_name, result, log):
                result.affected += 1

        return result

    async def _clean_pod(self,
                         spec: CleanupPolicySpec,
                         pod: PodInfo,
                         now: datetime,
                         policy_name: str,
                         result: NamespaceResult,
                         log: Any) -> bool:
        """Delete or report one eligible pod; return True if it counts."""
        pod_log = log.bind(
            namespace=pod.namespace,
            pod=pod.name,
            phase=pod.phase,
            age=_format_age(pod.age(now))
        )

        if spec.dry_run:
            pod_log.info("DryRun: would delete pod")
            return True

        pod_log.info("Deleting pod")
        try:
            await self.store.delete_pod(pod.namespace, pod.name)
        except ObjectNotFoundError:
            pod_log.info("Pod not found (already deleted)")
        except TransientStoreError as e:
            pod_log.error("Failed to delete pod", error=str(e))
            result.pod_errors[pod.key] = e
            POD_DELETE_FAILURES.labels(policy=policy_name).inc()
            return False
        return True
