"""
Label selectors for MachineHealthCheck resources.

Mirrors the Kubernetes ``LabelSelector`` type: ``matchLabels`` plus
``matchExpressions``. Selectors are validated when converted to requirements,
so a malformed selector surfaces as ``InvalidSelectorError`` at evaluation
time rather than when the policy is loaded.
"""

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Tuple

from ..errors import InvalidSelectorError

_NAME_PATTERN = re.compile(r"^[A-Za-z0-9]([-A-Za-z0-9_.]*[A-Za-z0-9])?$")
_DNS_SUBDOMAIN_PATTERN = re.compile(r"^[a-z0-9]([-a-z0-9]*[a-z0-9])?(\.[a-z0-9]([-a-z0-9]*[a-z0-9])?)*$")


class Operator(Enum):
    """Selector expression operators"""
    IN = "In"
    NOT_IN = "NotIn"
    EXISTS = "Exists"
    DOES_NOT_EXIST = "DoesNotExist"


def validate_label_key(key: str) -> None:
    if not key:
        raise InvalidSelectorError("Label key must not be empty")
    prefix, _, name = key.rpartition("/")
    if "/" in key:
        if not prefix or len(prefix) > 253 or not _DNS_SUBDOMAIN_PATTERN.match(prefix):
            raise InvalidSelectorError(f"Invalid label key prefix: {key!r}")
    if not name or len(name) > 63 or not _NAME_PATTERN.match(name):
        raise InvalidSelectorError(f"Invalid label key: {key!r}")


def validate_label_value(value: str) -> None:
    if value == "":
        return
    if len(value) > 63 or not _NAME_PATTERN.match(value):
        raise InvalidSelectorError(f"Invalid label value: {value!r}")


@dataclass(frozen=True)
class Requirement:
    """A single validated selector requirement"""
    key: str
    operator: Operator
    values: Tuple[str, ...] = ()

    def matches(self, labels: Mapping[str, str]) -> bool:
        if self.operator is Operator.EXISTS:
            return self.key in labels
        if self.operator is Operator.DOES_NOT_EXIST:
            return self.key not in labels
        if self.operator is Operator.IN:
            return self.key in labels and labels[self.key] in self.values
        # NotIn matches when the label is absent as well
        return self.key not in labels or labels[self.key] not in self.values

    def __str__(self) -> str:
        if self.operator is Operator.EXISTS:
            return self.key
        if self.operator is Operator.DOES_NOT_EXIST:
            return f"!{self.key}"
        if self.operator is Operator.IN and len(self.values) == 1:
            return f"{self.key}={self.values[0]}"
        keyword = "in" if self.operator is Operator.IN else "notin"
        return f"{self.key} {keyword} ({','.join(sorted(self.values))})"


@dataclass
class LabelSelectorRequirement:
    """Raw ``matchExpressions`` entry as stored on the resource"""
    key: str
    operator: str
    values: List[str] = field(default_factory=list)

    def to_requirement(self) -> Requirement:
        validate_label_key(self.key)
        try:
            operator = Operator(self.operator)
        except ValueError:
            raise InvalidSelectorError(f"{self.operator!r} is not a valid label selector operator")

        if operator in (Operator.IN, Operator.NOT_IN):
            if not self.values:
                raise InvalidSelectorError(
                    f"Values must be non-empty for operator {operator.value} on key {self.key!r}")
        elif self.values:
            raise InvalidSelectorError(
                f"Values must be empty for operator {operator.value} on key {self.key!r}")

        for value in self.values:
            validate_label_value(value)
        return Requirement(key=self.key, operator=operator, values=tuple(self.values))


@dataclass
class LabelSelector:
    """Label query over a set of resources"""
    match_labels: Dict[str, str] = field(default_factory=dict)
    match_expressions: List[LabelSelectorRequirement] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Optional[Mapping[str, Any]]) -> "LabelSelector":
        data = data or {}
        expressions = [
            LabelSelectorRequirement(
                key=expr.get("key", ""),
                operator=expr.get("operator", ""),
                values=list(expr.get("values") or []),
            )
            for expr in data.get("matchExpressions") or []
        ]
        return cls(match_labels=dict(data.get("matchLabels") or {}), match_expressions=expressions)

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {}
        if self.match_labels:
            result["matchLabels"] = dict(self.match_labels)
        if self.match_expressions:
            result["matchExpressions"] = [
                {"key": e.key, "operator": e.operator, "values": list(e.values)}
                for e in self.match_expressions
            ]
        return result

    def is_empty(self) -> bool:
        return not self.match_labels and not self.match_expressions

    def requirements(self) -> List[Requirement]:
        """Validate the selector and return its requirements sorted by key."""
        reqs = []
        for key, value in self.match_labels.items():
            validate_label_key(key)
            validate_label_value(value)
            reqs.append(Requirement(key=key, operator=Operator.IN, values=(value,)))
        for expr in self.match_expressions:
            reqs.append(expr.to_requirement())
        return sorted(reqs, key=lambda r: r.key)

    def matches(self, labels: Optional[Mapping[str, str]]) -> bool:
        """
        Evaluate the selector against a label set.

        An empty selector matches nothing. Raises ``InvalidSelectorError`` for
        malformed selectors.
        """
        if self.is_empty():
            return False
        labels = labels or {}
        return all(req.matches(labels) for req in self.requirements())

    def to_selector_string(self) -> str:
        """Render the selector in the API server's ``labelSelector`` syntax."""
        return ",".join(str(req) for req in self.requirements())
