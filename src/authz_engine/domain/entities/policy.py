"""Authorization request, subject, resource and decision entities.

Requests and decisions are created per call and own no shared state. Roles
are immutable once loaded; the registry replaces them wholesale on reload.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from types import MappingProxyType
from typing import Any, Iterable, Mapping, Optional

from authz_engine.domain.value_objects.identifiers import RoleId, RuleId, SubjectId
from authz_engine.domain.value_objects.permission import Permission


def _freeze(values: Optional[Mapping[str, Any]]) -> Mapping[str, Any]:
    return MappingProxyType(dict(values or {}))


class DecisionReason(str, Enum):
    """Why a decision came out the way it did."""
    NO_SUCH_SUBJECT = "NoSuchSubject"
    NO_MATCHING_PERMISSION = "NoMatchingPermission"
    ATTRIBUTE_RULE_FAILED = "AttributeRuleFailed"
    GRANTED = "Granted"


class LeafOutcome(str, Enum):
    """Audit outcome of one comparison leaf."""
    PASSED = "passed"
    FAILED = "failed"
    ATTRIBUTE_MISSING = "attribute_missing"  # fail-closed, counts as failed
    INVALID_VALUE = "invalid_value"  # wrong type for the comparison, fail-closed
    NOT_EVALUATED = "not_evaluated"  # skipped by AND/OR short-circuit


@dataclass(frozen=True)
class Role:
    """RBAC role with its permission set."""
    role_id: RoleId
    name: str
    permissions: frozenset[Permission] = frozenset()
    description: str = ""

    def __post_init__(self) -> None:
        object.__setattr__(self, "permissions", frozenset(self.permissions))


@dataclass(frozen=True)
class Subject:
    """Already-authenticated caller.

    ``roles`` of ``None`` means "look the subject up in the policy's subject
    directory"; an empty set means the caller holds no roles.
    """
    subject_id: SubjectId
    roles: Optional[frozenset[RoleId]] = None
    attributes: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if self.roles is not None:
            object.__setattr__(self, "roles", frozenset(self.roles))
        object.__setattr__(self, "attributes", _freeze(self.attributes))


@dataclass(frozen=True)
class Resource:
    """Protected resource addressed by a dot-delimited path."""
    path: str
    attributes: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "attributes", _freeze(self.attributes))


@dataclass(frozen=True)
class Environment:
    """Ambient request context, supplied per request and never stored."""
    time: Optional[datetime] = None
    ip: Optional[str] = None
    device: Optional[str] = None
    attributes: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "attributes", _freeze(self.attributes))


@dataclass(frozen=True)
class AuthorizationRequest:
    """The unit of evaluation."""
    subject: Subject
    action: str
    resource: Resource
    environment: Environment = field(default_factory=Environment)

    @classmethod
    def create(
        cls,
        subject_id: str,
        action: str,
        resource_path: str,
        roles: Optional[Iterable[str]] = None,
        subject_attributes: Optional[Mapping[str, Any]] = None,
        resource_attributes: Optional[Mapping[str, Any]] = None,
        environment: Optional[Environment] = None,
    ) -> "AuthorizationRequest":
        """Build a request from the flat fields an interceptor receives."""
        return cls(
            subject=Subject(
                subject_id=SubjectId(subject_id),
                roles=None if roles is None else frozenset(RoleId(r) for r in roles),
                attributes=subject_attributes or {},
            ),
            action=action,
            resource=Resource(path=resource_path, attributes=resource_attributes or {}),
            environment=environment or Environment(),
        )


@dataclass(frozen=True)
class LeafEvaluation:
    """One comparison leaf as seen by the audit trail."""
    attribute: str
    operator: str
    expected: Any
    outcome: LeafOutcome

    def to_dict(self) -> dict[str, Any]:
        return {
            "attribute": self.attribute,
            "op": self.operator,
            "value": _jsonable(self.expected),
            "outcome": self.outcome.value,
        }


@dataclass(frozen=True)
class RuleEvaluation:
    """Result of one attached rule, with its leaves in depth-first order."""
    rule_id: RuleId
    result: bool
    leaves: tuple[LeafEvaluation, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {
            "rule_id": self.rule_id,
            "result": self.result,
            "leaves": [leaf.to_dict() for leaf in self.leaves],
        }


@dataclass(frozen=True)
class Decision:
    """Explainable result of an authorization check."""
    allowed: bool
    reason: DecisionReason
    matched_permission: Optional[Permission] = None
    evaluated_rules: tuple[RuleEvaluation, ...] = ()
    detail: str = ""
    policy_version: int = 0

    @classmethod
    def deny(cls, reason: DecisionReason, detail: str, **kwargs: Any) -> "Decision":
        return cls(allowed=False, reason=reason, detail=detail, **kwargs)

    def to_dict(self) -> dict[str, Any]:
        """Render the decision for structured audit logging."""
        return {
            "allowed": self.allowed,
            "reason": self.reason.value,
            "matched_permission": str(self.matched_permission) if self.matched_permission else None,
            "evaluated_rules": [rule.to_dict() for rule in self.evaluated_rules],
            "detail": self.detail,
            "policy_version": self.policy_version,
        }


def _jsonable(value: Any) -> Any:
    if isinstance(value, (str, int, float, bool)) or value is None:
        return value
    if isinstance(value, (list, tuple, frozenset, set)):
        return [_jsonable(item) for item in value]
    return str(value)
