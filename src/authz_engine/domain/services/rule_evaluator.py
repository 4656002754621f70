"""Attribute rule evaluation.

Evaluates a rule's condition tree against subject, resource and environment
attributes. Evaluation never raises for request content:

- A leaf whose attribute is absent does not hold (fail-closed). The absence
  also propagates through ``Not``, so negating a condition over a missing
  attribute cannot turn it into a grant.
- Values of the wrong type (``"abc" < 3``, a string where a timestamp is
  expected) are treated like absent ones: the leaf is indeterminate and no
  ``Not`` or ``any`` above it can turn that into a grant.
- ``all``/``any`` short-circuit; leaves they skip are recorded as
  ``not_evaluated`` rather than failed.
"""

from __future__ import annotations

import logging
import operator
from datetime import datetime, time, tzinfo
from enum import Enum
from typing import Any, Callable
from zoneinfo import ZoneInfo

from authz_engine.domain.entities.policy import (
    Environment,
    LeafEvaluation,
    LeafOutcome,
    Resource,
    RuleEvaluation,
    Subject,
)
from authz_engine.domain.entities.rule import (
    AllOf,
    AnyOf,
    AttributeRef,
    AttributeRule,
    Comparison,
    Condition,
    Namespace,
    Not,
    Operator,
    iter_leaves,
)
from authz_engine.domain.errors import EvaluationError
from authz_engine.domain.value_objects.time_window import TimeWindow, local_clock

logger = logging.getLogger(__name__)

_MISSING = object()

_BINARY: dict[Operator, Callable[[Any, Any], bool]] = {
    Operator.EQ: operator.eq,
    Operator.NE: operator.ne,
    Operator.LT: operator.lt,
    Operator.LE: operator.le,
    Operator.GT: operator.gt,
    Operator.GE: operator.ge,
}


class _Truth(Enum):
    TRUE = "true"
    FALSE = "false"
    MISSING = "missing"  # indeterminate: absent or unusable value


class RuleEvaluator:
    """Evaluate attribute rules in a policy timezone."""

    def __init__(self, timezone: tzinfo | None = None):
        self._timezone = timezone or ZoneInfo("UTC")

    @property
    def timezone(self) -> tzinfo:
        return self._timezone

    def evaluate(
        self,
        rule: AttributeRule,
        subject: Subject,
        resource: Resource,
        environment: Environment,
    ) -> bool:
        """Return True when the rule's condition holds."""
        return self.explain(rule, subject, resource, environment).result

    def explain(
        self,
        rule: AttributeRule,
        subject: Subject,
        resource: Resource,
        environment: Environment,
    ) -> RuleEvaluation:
        """Evaluate a rule and record every leaf's outcome.

        Returns:
            RuleEvaluation with leaves in depth-first order.
        """
        trace: list[LeafEvaluation] = []
        context = (subject, resource, environment)
        truth = self._eval(rule.condition, context, trace)
        result = truth is _Truth.TRUE
        logger.debug(f"Rule {rule.rule_id} evaluated to {result}")
        return RuleEvaluation(rule_id=rule.rule_id, result=result, leaves=tuple(trace))

    def _eval(self, node: Condition, context: tuple, trace: list[LeafEvaluation]) -> _Truth:
        if isinstance(node, Comparison):
            return self._eval_leaf(node, context, trace)

        if isinstance(node, AllOf):
            outcome = _Truth.TRUE
            for index, child in enumerate(node.children):
                outcome = self._eval(child, context, trace)
                if outcome is not _Truth.TRUE:
                    _skip(node.children[index + 1:], trace)
                    return outcome
            return outcome

        if isinstance(node, AnyOf):
            missing = False
            for index, child in enumerate(node.children):
                outcome = self._eval(child, context, trace)
                if outcome is _Truth.TRUE:
                    _skip(node.children[index + 1:], trace)
                    return outcome
                missing = missing or outcome is _Truth.MISSING
            return _Truth.MISSING if missing else _Truth.FALSE

        if isinstance(node, Not):
            outcome = self._eval(node.child, context, trace)
            if outcome is _Truth.MISSING:
                return outcome
            return _Truth.FALSE if outcome is _Truth.TRUE else _Truth.TRUE

        raise EvaluationError(f"Unsupported condition node {type(node).__name__}")

    def _eval_leaf(self, leaf: Comparison, context: tuple, trace: list[LeafEvaluation]) -> _Truth:
        actual = _lookup(leaf.attribute, *context)
        if actual is _MISSING:
            trace.append(_record(leaf, LeafOutcome.ATTRIBUTE_MISSING))
            return _Truth.MISSING

        if leaf.is_clock:
            actual = self._to_clock(actual)
            if actual is None:
                trace.append(_record(leaf, LeafOutcome.INVALID_VALUE))
                return _Truth.MISSING

        held = _compare(leaf.operator, actual, leaf.value)
        if held is None:
            trace.append(_record(leaf, LeafOutcome.INVALID_VALUE))
            return _Truth.MISSING
        trace.append(_record(leaf, LeafOutcome.PASSED if held else LeafOutcome.FAILED))
        return _Truth.TRUE if held else _Truth.FALSE

    def _to_clock(self, value: Any) -> time | None:
        if isinstance(value, datetime):
            return local_clock(value, self._timezone)
        if isinstance(value, time):
            return value.replace(second=0, microsecond=0, tzinfo=None)
        return None


def _lookup(ref: AttributeRef, subject: Subject, resource: Resource, environment: Environment) -> Any:
    if ref.namespace is Namespace.SUBJECT:
        value = subject.subject_id if ref.name == "id" else subject.attributes.get(ref.name, _MISSING)
    elif ref.namespace is Namespace.RESOURCE:
        value = resource.path if ref.name == "path" else resource.attributes.get(ref.name, _MISSING)
    elif ref.name in ("time", "ip", "device"):
        value = getattr(environment, ref.name)
    else:
        value = environment.attributes.get(ref.name, _MISSING)
    return _MISSING if value is None else value


def _compare(op: Operator, actual: Any, expected: Any) -> bool | None:
    """None when the values cannot be compared."""
    try:
        if op in _BINARY:
            return bool(_BINARY[op](actual, expected))
        if op is Operator.IN:
            return actual in expected
        if op is Operator.IN_RANGE:
            if isinstance(expected, TimeWindow):
                return isinstance(actual, time) and expected.contains(actual)
            low, high = expected
            return bool(low <= actual <= high)
    except TypeError:
        return None
    return False


def _record(leaf: Comparison, outcome: LeafOutcome) -> LeafEvaluation:
    return LeafEvaluation(
        attribute=str(leaf.attribute),
        operator=leaf.operator.value,
        expected=leaf.value,
        outcome=outcome,
    )


def _skip(nodes: tuple, trace: list[LeafEvaluation]) -> None:
    for node in nodes:
        for leaf in iter_leaves(node):
            trace.append(_record(leaf, LeafOutcome.NOT_EVALUATED))
