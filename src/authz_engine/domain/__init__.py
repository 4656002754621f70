"""Authorization engine domain layer."""

from authz_engine.domain.entities.policy import (
    AuthorizationRequest,
    Decision,
    DecisionReason,
    Environment,
    LeafEvaluation,
    LeafOutcome,
    Resource,
    Role,
    RuleEvaluation,
    Subject,
)
from authz_engine.domain.entities.rule import (
    AllOf,
    AnyOf,
    AttributeRule,
    Comparison,
    Not,
    Operator,
)
from authz_engine.domain.errors import (
    ConfigError,
    EvaluationError,
    PolicyError,
    UnknownRole,
    UnknownSubject,
)
from authz_engine.domain.services.permission_matcher import PermissionMatcher
from authz_engine.domain.services.policy_engine import PolicyEngine, PolicyEngineError
from authz_engine.domain.services.role_registry import PolicySnapshot, RoleRegistry
from authz_engine.domain.services.rule_evaluator import RuleEvaluator
from authz_engine.domain.value_objects.identifiers import RoleId, RuleId, SubjectId
from authz_engine.domain.value_objects.permission import Permission
from authz_engine.domain.value_objects.time_window import TimeWindow

__all__ = [
    # Value objects
    "Permission",
    "RoleId",
    "RuleId",
    "SubjectId",
    "TimeWindow",
    # Entities
    "AllOf",
    "AnyOf",
    "AttributeRule",
    "AuthorizationRequest",
    "Comparison",
    "Decision",
    "DecisionReason",
    "Environment",
    "LeafEvaluation",
    "LeafOutcome",
    "Not",
    "Operator",
    "Resource",
    "Role",
    "RuleEvaluation",
    "Subject",
    # Errors
    "ConfigError",
    "EvaluationError",
    "PolicyEngineError",
    "PolicyError",
    "UnknownRole",
    "UnknownSubject",
    # Services
    "PermissionMatcher",
    "PolicyEngine",
    "PolicySnapshot",
    "RoleRegistry",
    "RuleEvaluator",
]
