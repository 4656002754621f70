"""Domain entities."""

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
    AttributeRef,
    AttributeRule,
    Comparison,
    Condition,
    Namespace,
    Not,
    Operator,
)

__all__ = [
    "AllOf",
    "AnyOf",
    "AttributeRef",
    "AttributeRule",
    "AuthorizationRequest",
    "Comparison",
    "Condition",
    "Decision",
    "DecisionReason",
    "Environment",
    "LeafEvaluation",
    "LeafOutcome",
    "Namespace",
    "Not",
    "Operator",
    "Resource",
    "Role",
    "RuleEvaluation",
    "Subject",
]
