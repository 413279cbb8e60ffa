"""
Pod eligibility filtering by lifecycle phase and age.

Durations follow the Go duration syntax used by Kubernetes tooling, e.g.
"300ms", "1.5h" or "2h45m". An unparseable maxAge makes every pod
ineligible so a typo never widens a cleanup.
"""

import re
from datetime import datetime, timedelta
from decimal import Decimal, InvalidOperation

from ..models.cluster import PodInfo
from ..models.policy import CleanupPolicySpec


_UNIT_MICROSECONDS = {
    "ns": Decimal("0.001"),
    "us": Decimal(1),
    "µs": Decimal(1),  # micro sign
    "μs": Decimal(1),  # greek mu
    "ms": Decimal(1000),
    "s": Decimal(1000000),
    "m": Decimal(60 * 1000000),
    "h": Decimal(3600 * 1000000),
}

_COMPONENT_RE = re.compile(r"([0-9]*(?:\.[0-9]*)?)([a-zµμ]+)")


def parse_duration(value: str) -> timedelta:
    """
    Parse a Go-style duration string.

    Args:
        value: Sequence of decimal numbers with unit suffixes and an optional
            leading sign, or the bare string "0"

    Returns:
        Parsed duration, truncated to microseconds

    Raises:
        ValueError: If the string is not a valid duration
    """
    text = value
    if not text:
        raise ValueError("invalid duration: empty string")

    negative = False
    if text[0] in "+-":
        negative = text[0] == "-"
        text = text[1:]

    if text == "0":
        return timedelta(0)
    if not text:
        raise ValueError(f"invalid duration {value!r}")

    total = Decimal(0)
    pos = 0
    while pos < len(text):
        match = _COMPONENT_RE.match(text, pos)
        if match is None or match.group(1) in ("", "."):
            raise ValueError(f"invalid duration {value!r}")

        number, unit = match.groups()
        if unit not in _UNIT_MICROSECONDS:
            raise ValueError(f"unknown unit {unit!r} in duration {value!r}")

        try:
            total += Decimal(number) * _UNIT_MICROSECONDS[unit]
        except InvalidOperation as e:
            raise ValueError(f"invalid duration {value!r}") from e
        pos = match.end()

    try:
        duration = timedelta(microseconds=int(total))
    except OverflowError as e:
        raise ValueError(f"duration {value!r} out of range") from e

    return -duration if negative else duration


def phase_allowed(spec: CleanupPolicySpec, pod: PodInfo) -> bool:
    """An empty phase list allows every phase."""
    if not spec.pod_statuses:
        return True
    return pod.phase in spec.pod_statuses


def old_enough(spec: CleanupPolicySpec, pod: PodInfo, now: datetime) -> bool:
    """Check the pod has reached maxAge; unset maxAge always passes."""
    if spec.max_age is None:
        return True

    try:
        max_age = parse_duration(spec.max_age)
    except ValueError:
        return False

    age = pod.age(now)
    if age is None:
        return False
    return age >= max_age


def is_eligible(spec: CleanupPolicySpec, pod: PodInfo, now: datetime) -> bool:
    """Return True when the pod passes both the phase and the age check."""
    return phase_allowed(spec, pod) and old_enough(spec, pod, now)
