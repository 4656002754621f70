"""Domain services."""

from authz_engine.domain.services.permission_matcher import PermissionMatcher, match
from authz_engine.domain.services.policy_engine import PolicyEngine, PolicyEngineError
from authz_engine.domain.services.role_registry import PolicySnapshot, RoleRegistry
from authz_engine.domain.services.rule_evaluator import RuleEvaluator

__all__ = [
    "PermissionMatcher",
    "PolicyEngine",
    "PolicyEngineError",
    "PolicySnapshot",
    "RoleRegistry",
    "RuleEvaluator",
    "match",
]
