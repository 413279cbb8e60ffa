"""
Label selector evaluation.

Compiles the declarative LabelSelector of a policy into a Selector variant
(match-all, match-labels or match-expressions). Every variant answers
``matches(labels)`` locally and renders itself in Kubernetes label selector
syntax for server-side filtering. Malformed selectors are rejected with
InvalidSelectorError instead of silently matching nothing or everything.
"""

import re
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional, Tuple, Union

from pydantic import ValidationError

from ..exceptions import InvalidSelectorError
from ..models.policy import LabelSelector, LabelSelectorRequirement


OPERATOR_IN = "In"
OPERATOR_NOT_IN = "NotIn"
OPERATOR_EXISTS = "Exists"
OPERATOR_DOES_NOT_EXIST = "DoesNotExist"

VALID_OPERATORS = (OPERATOR_IN, OPERATOR_NOT_IN, OPERATOR_EXISTS, OPERATOR_DOES_NOT_EXIST)

_NAME_RE = re.compile(r"^([A-Za-z0-9][-A-Za-z0-9_.]*)?[A-Za-z0-9]$")
_DNS_SUBDOMAIN_RE = re.compile(r"^[a-z0-9]([-a-z0-9]*[a-z0-9])?(\.[a-z0-9]([-a-z0-9]*[a-z0-9])?)*$")

MAX_NAME_LENGTH = 63
MAX_PREFIX_LENGTH = 253


def validate_label_key(key: str) -> None:
    """Validate a label key: an optional DNS subdomain prefix and a name."""
    if not key:
        raise InvalidSelectorError("label key must not be empty")

    prefix, sep, name = key.rpartition("/")
    if sep:
        if not prefix or len(prefix) > MAX_PREFIX_LENGTH or not _DNS_SUBDOMAIN_RE.match(prefix):
            raise InvalidSelectorError(f"invalid label key {key!r}: bad prefix {prefix!r}")

    if len(name) > MAX_NAME_LENGTH or not _NAME_RE.match(name):
        raise InvalidSelectorError(f"invalid label key {key!r}")


def validate_label_value(key: str, value: str) -> None:
    """Validate a label value; the empty string is allowed."""
    if not isinstance(value, str):
        raise InvalidSelectorError(f"invalid value for label {key!r}: {value!r}")
    if value == "":
        return
    if len(value) > MAX_NAME_LENGTH or not _NAME_RE.match(value):
        raise InvalidSelectorError(f"invalid value for label {key!r}: {value!r}")


class Selector(ABC):
    """Predicate over the labels of an object."""

    @abstractmethod
    def matches(self, labels: Optional[Mapping[str, str]]) -> bool:
        """Return True if an object with these labels is selected."""

    @abstractmethod
    def to_label_selector(self) -> str:
        """Render in Kubernetes label selector syntax."""

    def __str__(self) -> str:
        return self.to_label_selector() or "<all>"


class MatchAll(Selector):
    """Selects every object."""

    def matches(self, labels: Optional[Mapping[str, str]]) -> bool:
        return True

    def to_label_selector(self) -> str:
        return ""


class MatchLabels(Selector):
    """Conjunction of exact label key/value pairs."""

    def __init__(self, labels: Mapping[str, str]) -> None:
        self.labels: Dict[str, str] = dict(labels)

    def matches(self, labels: Optional[Mapping[str, str]]) -> bool:
        labels = labels or {}
        return all(labels.get(key) == value for key, value in self.labels.items())

    def to_label_selector(self) -> str:
        return ",".join(f"{key}={value}" for key, value in sorted(self.labels.items()))


@dataclass(frozen=True)
class Requirement:
    """A validated set-based requirement."""

    key: str
    operator: str
    values: Tuple[str, ...] = ()

    def matches(self, labels: Mapping[str, str]) -> bool:
        if self.operator == OPERATOR_IN:
            return self.key in labels and labels[self.key] in self.values
        if self.operator == OPERATOR_NOT_IN:
            return self.key not in labels or labels[self.key] not in self.values
        if self.operator == OPERATOR_EXISTS:
            return self.key in labels
        return self.key not in labels

    def to_label_selector(self) -> str:
        if self.operator == OPERATOR_IN:
            return f"{self.key} in ({','.join(sorted(self.values))})"
        if self.operator == OPERATOR_NOT_IN:
            return f"{self.key} notin ({','.join(sorted(self.values))})"
        if self.operator == OPERATOR_EXISTS:
            return self.key
        return f"!{self.key}"


class MatchExpressions(Selector):
    """Conjunction of set-based requirements."""

    def __init__(self, requirements: List[Requirement]) -> None:
        self.requirements = list(requirements)

    def matches(self, labels: Optional[Mapping[str, str]]) -> bool:
        labels = labels or {}
        return all(requirement.matches(labels) for requirement in self.requirements)

    def to_label_selector(self) -> str:
        return ",".join(requirement.to_label_selector() for requirement in self.requirements)


def _compile_requirement(expression: LabelSelectorRequirement) -> Requirement:
    validate_label_key(expression.key)

    operator = expression.operator
    if operator not in VALID_OPERATORS:
        raise InvalidSelectorError(
            f"invalid operator {operator!r} for key {expression.key!r}; "
            f"expected one of {', '.join(VALID_OPERATORS)}"
        )

    values = tuple(expression.values)
    if operator in (OPERATOR_IN, OPERATOR_NOT_IN):
        if not values:
            raise InvalidSelectorError(
                f"operator {operator} for key {expression.key!r} requires at least one value"
            )
        for value in values:
            validate_label_value(expression.key, value)
    elif values:
        raise InvalidSelectorError(
            f"operator {operator} for key {expression.key!r} must not have values"
        )

    return Requirement(key=expression.key, operator=operator, values=values)


def compile_selector(selector: Union[LabelSelector, Dict[str, Any], None]) -> Selector:
    """
    Compile a declarative label selector into a Selector.

    Args:
        selector: LabelSelector model, its camelCase dictionary form, or None

    Returns:
        MatchAll for an absent or empty selector, MatchLabels when only
        matchLabels is given, MatchExpressions otherwise

    Raises:
        InvalidSelectorError: If the selector is malformed
    """
    if selector is None:
        return MatchAll()

    if not isinstance(selector, LabelSelector):
        try:
            selector = LabelSelector.model_validate(selector)
        except ValidationError as e:
            raise InvalidSelectorError(f"malformed label selector: {e}") from e

    if selector.is_empty():
        return MatchAll()

    for key, value in selector.match_labels.items():
        validate_label_key(key)
        validate_label_value(key, value)

    if not selector.match_expressions:
        return MatchLabels(selector.match_labels)

    requirements = [
        Requirement(key=key, operator=OPERATOR_IN, values=(value,))
        for key, value in selector.match_labels.items()
    ]
    requirements.extend(_compile_requirement(e) for e in selector.match_expressions)
    return MatchExpressions(requirements)
