"""
Pod filter tests.

Covers Go-style duration parsing and the phase and age eligibility checks.
"""

from datetime import timedelta

import pytest

from pod_cleanup_controller.models.policy import CleanupPolicySpec
from pod_cleanup_controller.utils.filters import is_eligible, old_enough, parse_duration, phase_allowed

from fakes import NOW, make_pod


class TestParseDuration:
    """Test duration parsing."""

    @pytest.mark.parametrize("text,expected", [
        ("30m", timedelta(minutes=30)),
        ("1h30m", timedelta(hours=1, minutes=30)),
        ("1.5h", timedelta(hours=1, minutes=30)),
        ("300ms", timedelta(milliseconds=300)),
        ("2h45m10s", timedelta(hours=2, minutes=45, seconds=10)),
        ("1500us", timedelta(microseconds=1500)),
        ("-1h", timedelta(hours=-1)),
        ("+5s", timedelta(seconds=5)),
        ("0", timedelta(0)),
        ("0s", timedelta(0)),
    ])
    def test_valid(self, text, expected):
        assert parse_duration(text) == expected

    @pytest.mark.parametrize("text", ["", "10", "1d", "abc", "1h-", "h", "-", ".h", "1h 30m"])
    def test_invalid(self, text):
        with pytest.raises(ValueError):
            parse_duration(text)


class TestEligibility:
    """Test phase and age filtering."""

    def test_empty_statuses_allow_every_phase(self):
        spec = CleanupPolicySpec()
        for phase in ["Pending", "Running", "Succeeded", "Failed", "Unknown"]:
            assert phase_allowed(spec, make_pod("default", "p", phase=phase))

    def test_statuses_restrict_phase(self):
        spec = CleanupPolicySpec(pod_statuses=["Failed", "Succeeded"])
        assert phase_allowed(spec, make_pod("default", "p", phase="Failed"))
        assert not phase_allowed(spec, make_pod("default", "p", phase="Running"))

    def test_age_boundary_is_inclusive(self):
        spec = CleanupPolicySpec(max_age="30m")

        assert old_enough(spec, make_pod("default", "p", age=timedelta(minutes=30)), NOW)
        assert not old_enough(spec, make_pod("default", "p", age=timedelta(minutes=29, seconds=59)), NOW)

    def test_unset_max_age_ignores_age(self):
        spec = CleanupPolicySpec()
        assert old_enough(spec, make_pod("default", "p", age=timedelta(0)), NOW)
        assert old_enough(spec, make_pod("default", "p", age=None), NOW)

    def test_invalid_max_age_matches_nothing(self):
        spec = CleanupPolicySpec(max_age="1d")
        assert not old_enough(spec, make_pod("default", "p", age=timedelta(days=30)), NOW)

    def test_missing_creation_time_is_not_old_enough(self):
        spec = CleanupPolicySpec(max_age="1m")
        assert not old_enough(spec, make_pod("default", "p", age=None), NOW)

    def test_is_eligible_requires_both(self):
        spec = CleanupPolicySpec(pod_statuses=["Failed"], max_age="30m")

        assert is_eligible(spec, make_pod("default", "p", phase="Failed", age=timedelta(minutes=45)), NOW)
        assert not is_eligible(spec, make_pod("default", "p", phase="Running", age=timedelta(minutes=45)), NOW)
        assert not is_eligible(spec, make_pod("default", "p", phase="Failed", age=timedelta(minutes=10)), NOW)
