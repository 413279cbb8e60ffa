"""
Static validation of PodCleanupPolicy manifests.

The reconciler tolerates malformed specs and reports them through status;
this validator lets operators catch the same problems before applying a
manifest.
"""

from typing import List

import structlog

from ..exceptions import InvalidScheduleError, InvalidSelectorError
from ..models.policy import PodCleanupPolicy
from .filters import parse_duration
from .schedule import CronSchedule
from .selectors import compile_selector


POD_PHASES = {"Pending", "Running", "Succeeded", "Failed", "Unknown"}


class PolicyValidator:
    """Checks a policy spec for problems that would stop or skew cleanup."""

    def __init__(self) -> None:
        self.logger = structlog.get_logger().bind(component="policy_validator")

    def validate_policy(self, policy: PodCleanupPolicy) -> List[str]:
        """
        Validate a policy.

        Args:
            policy: Policy to validate

        Returns:
            List of issues found, empty if the policy is valid
        """
        issues: List[str] = []
        spec = policy.spec

        if spec.schedule is not None:
            try:
                CronSchedule.parse(spec.schedule)
            except InvalidScheduleError as e:
                issues.append(str(e))

        for field_name, selector in (
            ("namespaceSelector", spec.namespace_selector),
            ("podSelector", spec.pod_selector),
        ):
            try:
                compile_selector(selector)
            except InvalidSelectorError as e:
                issues.append(f"invalid {field_name}: {e}")

        if spec.max_age is not None:
            try:
                if parse_duration(spec.max_age).total_seconds() < 0:
                    issues.append(f"maxAge {spec.max_age!r} is negative; every pod would match")
            except ValueError as e:
                issues.append(f"invalid maxAge: {e}; no pod would be cleaned")

        for phase in spec.pod_statuses:
            if phase not in POD_PHASES:
                issues.append(
                    f"unknown pod phase {phase!r}; expected one of {', '.join(sorted(POD_PHASES))}"
                )

        if issues:
            self.logger.debug("Policy validation found issues", policy=policy.name, issues=issues)
        return issues
