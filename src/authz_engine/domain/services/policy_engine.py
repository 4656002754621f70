"""Authorization policy engine (RBAC + ABAC).

Resolves the subject's roles, finds the most specific permission that grants
the request, then applies any attribute rules attached to that permission.
ABAC rules only ever narrow an RBAC grant; with no attached rules the RBAC
match alone is sufficient.

Each call reads one policy snapshot reference up front and uses it for the
whole evaluation, so a concurrent :meth:`PolicyEngine.reload` cannot produce
a decision that mixes old and new configuration.
"""

from __future__ import annotations

import logging
import threading
from typing import Optional, Sequence

from authz_engine.domain.entities.policy import (
    AuthorizationRequest,
    Decision,
    DecisionReason,
    Role,
)
from authz_engine.domain.errors import PolicyError, UnknownRole, UnknownSubject
from authz_engine.domain.services.permission_matcher import PermissionMatcher
from authz_engine.domain.services.role_registry import PolicySnapshot
from authz_engine.domain.services.rule_evaluator import RuleEvaluator
from authz_engine.domain.value_objects.permission import split_path

logger = logging.getLogger(__name__)


class PolicyEngineError(PolicyError):
    """Policy engine error."""
    pass


class PolicyEngine:
    """Evaluate authorization requests against the active policy snapshot."""

    def __init__(
        self,
        snapshot: Optional[PolicySnapshot] = None,
        matcher: Optional[PermissionMatcher] = None,
    ):
        self._snapshot = snapshot
        self._matcher = matcher or PermissionMatcher()
        self._reload_lock = threading.Lock()

    @property
    def snapshot(self) -> PolicySnapshot:
        snapshot = self._snapshot
        if snapshot is None:
            raise PolicyEngineError("No policy loaded")
        return snapshot

    def reload(self, snapshot: PolicySnapshot) -> PolicySnapshot:
        """Replace the active snapshot.

        Calls already in flight finish against the snapshot they started
        with. Writers are serialised; readers never take the lock.

        Returns:
            The previous snapshot (None on first load).
        """
        with self._reload_lock:
            previous = self._snapshot
            self._snapshot = snapshot
        logger.info(
            f"Policy snapshot v{snapshot.version} active: {len(snapshot.registry)} roles, "
            f"{len(snapshot.rules)} rules"
        )
        return previous

    def reload_roles(
        self,
        roles: Sequence[Role],
        version: Optional[int] = None,
        fail_on_dead_rules: bool = False,
    ) -> PolicySnapshot:
        """Swap in a new role set, keeping catalog, rules and subjects.

        Raises:
            ConfigError: If the new role set is invalid; the active snapshot
                is left untouched.
        """
        with self._reload_lock:
            current = self.snapshot
            snapshot = current.with_roles(roles, version, fail_on_dead_rules)
            self._snapshot = snapshot
        logger.info(f"Role set replaced: v{current.version} -> v{snapshot.version}")
        return snapshot

    def authorize(self, request: AuthorizationRequest) -> Decision:
        """Decide whether ``request`` is allowed.

        Never raises for request content; every denial carries a reason.

        Args:
            request: Subject, action, resource and environment.

        Returns:
            Decision with reason, matched permission and rule trace.
        """
        snapshot = self.snapshot
        version = snapshot.version

        try:
            subject = snapshot.resolve_subject(request.subject)
        except UnknownSubject as exc:
            return Decision.deny(DecisionReason.NO_SUCH_SUBJECT, str(exc), policy_version=version)

        if not subject.roles:
            return Decision.deny(
                DecisionReason.NO_SUCH_SUBJECT,
                f"Subject {subject.subject_id} holds no roles",
                policy_version=version,
            )

        try:
            permissions = snapshot.registry.effective_permissions(subject.roles)
        except UnknownRole as exc:
            return Decision.deny(DecisionReason.NO_SUCH_SUBJECT, str(exc), policy_version=version)

        action = request.action
        path = request.resource.path
        if not _well_formed(action, path):
            return Decision.deny(
                DecisionReason.NO_MATCHING_PERMISSION,
                f"Malformed request target {action!r} on {path!r}",
                policy_version=version,
            )

        matched = self._matcher.matches(permissions, action, path)
        if matched is None:
            return Decision.deny(
                DecisionReason.NO_MATCHING_PERMISSION,
                f"No permission grants {action} on {path}",
                policy_version=version,
            )

        rules = snapshot.rules_for(matched, action, path)
        if not rules:
            return Decision(
                allowed=True,
                reason=DecisionReason.GRANTED,
                matched_permission=matched,
                detail=f"Granted by {matched}",
                policy_version=version,
            )

        evaluator = RuleEvaluator(snapshot.timezone)
        evaluations = tuple(
            evaluator.explain(rule, subject, request.resource, request.environment)
            for rule in rules
        )
        failed = [evaluation.rule_id for evaluation in evaluations if not evaluation.result]

        if failed:
            return Decision.deny(
                DecisionReason.ATTRIBUTE_RULE_FAILED,
                f"Attribute rules failed: {', '.join(failed)}",
                matched_permission=matched,
                evaluated_rules=evaluations,
                policy_version=version,
            )

        return Decision(
            allowed=True,
            reason=DecisionReason.GRANTED,
            matched_permission=matched,
            evaluated_rules=evaluations,
            detail=f"Granted by {matched} with {len(evaluations)} attribute rule(s)",
            policy_version=version,
        )

    def get_stats(self) -> dict:
        """Summarise the active snapshot."""
        snapshot = self._snapshot
        if snapshot is None:
            return {"loaded": False}
        return {
            "loaded": True,
            "policy_version": snapshot.version,
            "roles": len(snapshot.registry),
            "permissions": len(snapshot.registry.catalog),
            "rules": len(snapshot.rules),
            "subjects": len(snapshot.subjects),
            "dead_rules": list(snapshot.dead_rules),
            "timezone": str(snapshot.timezone),
        }


def _well_formed(action: str, path: str) -> bool:
    if not isinstance(action, str) or not isinstance(path, str):
        return False
    if not action or not path:
        return False
    return all(segment for segment in split_path(path))
