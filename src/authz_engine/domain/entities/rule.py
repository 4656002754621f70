"""Attribute rule entities.

A rule's condition is a small tree: comparison leaves joined by ``AllOf``,
``AnyOf`` and ``Not``. Leaves are validated when they are built so that a
malformed tree fails configuration load instead of a request.
"""

from __future__ import annotations

import numbers
from dataclasses import dataclass
from enum import Enum
from typing import Any, Union

from authz_engine.domain.errors import EvaluationError
from authz_engine.domain.value_objects.identifiers import RuleId
from authz_engine.domain.value_objects.permission import Permission
from authz_engine.domain.value_objects.time_window import TimeWindow, parse_clock


class Namespace(str, Enum):
    """Where an attribute is read from."""
    SUBJECT = "subject"
    RESOURCE = "resource"
    ENVIRONMENT = "environment"


class Operator(str, Enum):
    """Comparison operators for leaves."""
    EQ = "eq"
    NE = "ne"
    LT = "lt"
    LE = "le"
    GT = "gt"
    GE = "ge"
    IN = "in"
    IN_RANGE = "in_range"


# Symbolic spellings accepted in policy documents.
OPERATOR_ALIASES = {
    "=": Operator.EQ,
    "==": Operator.EQ,
    "!=": Operator.NE,
    "≠": Operator.NE,
    "<": Operator.LT,
    "<=": Operator.LE,
    "≤": Operator.LE,
    ">": Operator.GT,
    ">=": Operator.GE,
    "≥": Operator.GE,
}

# Attributes holding a timestamp; leaf values over them are clock times.
CLOCK_ATTRIBUTES = frozenset({"environment.time"})


def parse_operator(value: str) -> Operator:
    if value in OPERATOR_ALIASES:
        return OPERATOR_ALIASES[value]
    try:
        return Operator(value)
    except ValueError:
        raise EvaluationError(f"Unsupported operator {value!r}") from None


@dataclass(frozen=True)
class AttributeRef:
    """Reference such as ``environment.ip`` or ``resource.sensitivity``."""
    namespace: Namespace
    name: str

    @classmethod
    def parse(cls, text: str) -> "AttributeRef":
        if not isinstance(text, str) or "." not in text:
            raise EvaluationError(f"Attribute must be '<namespace>.<name>', got {text!r}")
        namespace, name = text.split(".", 1)
        try:
            ns = Namespace(namespace)
        except ValueError:
            raise EvaluationError(
                f"Unknown attribute namespace {namespace!r} in {text!r}"
            ) from None
        if not name:
            raise EvaluationError(f"Empty attribute name in {text!r}")
        return cls(ns, name)

    def __str__(self) -> str:
        return f"{self.namespace.value}.{self.name}"


@dataclass(frozen=True)
class Comparison:
    """Leaf: ``attribute op value``."""
    attribute: AttributeRef
    operator: Operator
    value: Any

    @property
    def is_clock(self) -> bool:
        return str(self.attribute) in CLOCK_ATTRIBUTES

    @classmethod
    def create(cls, attribute: str, operator: str, value: Any) -> "Comparison":
        """Validate and normalise a leaf.

        Raises:
            EvaluationError: If the operator or value shape is unsupported.
        """
        ref = AttributeRef.parse(attribute)
        op = parse_operator(operator)
        clock = str(ref) in CLOCK_ATTRIBUTES

        if op is Operator.IN_RANGE:
            value = _range_value(value, clock)
        elif op is Operator.IN:
            if not isinstance(value, (list, tuple)) or not value:
                raise EvaluationError(f"'in' on {ref} needs a non-empty list, got {value!r}")
            value = tuple(parse_clock(v) for v in value) if clock else tuple(value)
        elif clock:
            value = parse_clock(value)
        elif isinstance(value, (list, tuple, dict)):
            raise EvaluationError(f"'{op.value}' on {ref} needs a scalar value, got {value!r}")

        return cls(ref, op, value)


@dataclass(frozen=True)
class AllOf:
    children: tuple["Condition", ...]

    def __post_init__(self) -> None:
        if not self.children:
            raise EvaluationError("'all' needs at least one condition")


@dataclass(frozen=True)
class AnyOf:
    children: tuple["Condition", ...]

    def __post_init__(self) -> None:
        if not self.children:
            raise EvaluationError("'any' needs at least one condition")


@dataclass(frozen=True)
class Not:
    child: "Condition"


Condition = Union[Comparison, AllOf, AnyOf, Not]


@dataclass(frozen=True)
class AttributeRule:
    """ABAC restriction layered on top of an RBAC grant.

    ``permissions`` attach the rule to permissions by id; ``scopes`` attach
    it to every request whose ``(action, path)`` the pattern covers.
    """
    rule_id: RuleId
    condition: Condition
    permissions: frozenset[Permission] = frozenset()
    scopes: tuple[Permission, ...] = ()
    description: str = ""

    def applies_to(self, matched: Permission, action: str, path: str) -> bool:
        if matched in self.permissions:
            return True
        return any(scope.grants(action, path) for scope in self.scopes)


def iter_leaves(condition: Condition):
    if isinstance(condition, Comparison):
        yield condition
    elif isinstance(condition, (AllOf, AnyOf)):
        for child in condition.children:
            yield from iter_leaves(child)
    elif isinstance(condition, Not):
        yield from iter_leaves(condition.child)
    else:
        raise EvaluationError(f"Unsupported condition node {type(condition).__name__}")


def _range_value(value: Any, clock: bool) -> Any:
    if clock:
        return TimeWindow.parse(value)
    if not isinstance(value, (list, tuple)) or len(value) != 2:
        raise EvaluationError(f"'in_range' needs [low, high], got {value!r}")
    low, high = value
    if isinstance(low, bool) or isinstance(high, bool):
        raise EvaluationError(f"'in_range' bounds must not be booleans: {value!r}")
    if isinstance(low, numbers.Real) and isinstance(high, numbers.Real):
        if low > high:
            raise EvaluationError(f"'in_range' low bound exceeds high bound: {value!r}")
        return (low, high)
    if type(low) is not type(high):
        raise EvaluationError(f"'in_range' bounds must share a type: {value!r}")
    try:
        inverted = low > high
    except TypeError:
        raise EvaluationError(f"'in_range' bounds are not orderable: {value!r}") from None
    if inverted:
        raise EvaluationError(f"'in_range' low bound exceeds high bound: {value!r}")
    return (low, high)
