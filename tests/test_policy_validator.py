"""
Policy validator tests.

Tests for the static checks run by the ``validate`` command before a
policy is applied.
"""

from pod_cleanup_controller.utils.validation import PolicyValidator

from fakes import make_policy


class TestPolicyValidator:
    """Test policy validation functionality."""

    def setup_method(self):
        """Set up test fixtures."""
        self.validator = PolicyValidator()

    def test_valid_policy(self):
        policy = make_policy(
            schedule="*/15 * * * *",
            namespaceSelector={"matchLabels": {"cleanup.k8s.io/enabled": "true"}},
            podSelector={"matchExpressions": [{"key": "keep", "operator": "DoesNotExist"}]},
            podStatuses=["Failed", "Succeeded"],
            maxAge="24h",
        )

        assert self.validator.validate_policy(policy) == []

    def test_empty_policy_is_valid(self):
        assert self.validator.validate_policy(make_policy()) == []

    def test_multiple_issues_reported(self):
        policy = make_policy(
            schedule="every day",
            namespaceSelector={"matchExpressions": [{"key": "env", "operator": "Near"}]},
            podSelector={"matchLabels": {"app": "bad value"}},
            podStatuses=["Crashed"],
            maxAge="1d",
        )

        issues = self.validator.validate_policy(policy)
        assert len(issues) == 5

        issue_text = " ".join(issues)
        assert 'Cannot parse cron schedule "every day"' in issue_text
        assert "invalid namespaceSelector" in issue_text
        assert "invalid podSelector" in issue_text
        assert "invalid maxAge" in issue_text
        assert "'Crashed'" in issue_text

    def test_negative_max_age_warned(self):
        issues = self.validator.validate_policy(make_policy(maxAge="-1h"))

        assert len(issues) == 1
        assert "negative" in issues[0]
