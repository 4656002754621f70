"""Application coordinator for the authorization engine.

Wires the policy engine to its configuration source and to the ambient
stack:
- Policy loading and atomic reload from the configured YAML file
- Authorization decisions with tracing, metrics and audit logging
- Runtime statistics
"""

from __future__ import annotations

import threading
import time
from pathlib import Path
from typing import Any, Mapping, Optional, Sequence

import structlog

from authz_engine.domain.entities.policy import AuthorizationRequest, Decision, Role
from authz_engine.domain.errors import PolicyError
from authz_engine.domain.services.policy_engine import PolicyEngine
from authz_engine.domain.services.role_registry import PolicySnapshot
from authz_engine.infrastructure.config import Config, get_config
from authz_engine.infrastructure.logging import get_logger
from authz_engine.infrastructure.metrics import MetricsRegistry, get_metrics
from authz_engine.infrastructure.policy_loader import (
    build_snapshot,
    parse_policy_document,
    read_policy_file,
)
from authz_engine.infrastructure.tracing import annotate_decision, authorization_span


class AccessCoordinator:
    """Orchestrates policy lifecycle and authorization calls.

    Loads are all-or-nothing: a policy that fails validation is reported and
    the previously active snapshot keeps serving.
    """

    def __init__(
        self,
        config: Optional[Config] = None,
        metrics: Optional[MetricsRegistry] = None,
        logger: Optional[structlog.stdlib.BoundLogger] = None,
    ):
        self._config = config or get_config()
        self._metrics = metrics or get_metrics()
        self._logger = logger or get_logger(__name__)
        self._engine = PolicyEngine()
        self._load_lock = threading.Lock()
        self._next_version = 1

        self._stats_lock = threading.Lock()
        self._stats = {
            "auth_allowed": 0,
            "auth_denied": 0,
            "policy_loads": 0,
            "policy_load_failures": 0,
        }

    @property
    def engine(self) -> PolicyEngine:
        return self._engine

    def initialize(self) -> PolicySnapshot:
        """Load the policy file named in configuration."""
        self._logger.info("initializing_authz_coordinator", policy_path=str(self._config.authz.policy_path))
        return self.load_policy_file()

    def load_policy_file(self, path: Optional[Path | str] = None) -> PolicySnapshot:
        """Load (or reload) a YAML policy file and make it active."""
        source = Path(path) if path is not None else self._config.authz.policy_path
        return self._load(lambda: read_policy_file(source), source=str(source))

    def load_policy_document(self, raw: Mapping[str, Any]) -> PolicySnapshot:
        """Load a policy document that is already parsed into a mapping."""
        return self._load(lambda: raw, source="<document>")

    def reload(self) -> PolicySnapshot:
        """Re-read the configured policy file."""
        return self.load_policy_file()

    def reload_roles(self, roles: Sequence[Role]) -> PolicySnapshot:
        """Replace the role set, keeping rules and subjects."""
        with self._load_lock:
            try:
                snapshot = self._engine.reload_roles(
                    roles,
                    version=self._next_version,
                    fail_on_dead_rules=self._config.authz.fail_on_dead_rules,
                )
            except PolicyError as exc:
                self._record_load_failure("<roles>", exc)
                raise
            self._next_version += 1
        self._record_load_success("<roles>", snapshot)
        return snapshot

    def authorize_request(self, request: AuthorizationRequest) -> Decision:
        """Authorize an access request and emit its audit record."""
        start = time.perf_counter()
        with authorization_span(request) as span:
            decision = self._engine.authorize(request)
            annotate_decision(span, decision)
        elapsed = time.perf_counter() - start

        self._metrics.authz_decision_latency_seconds.observe(elapsed)
        self._metrics.authz_decisions_total.labels(
            allowed=str(decision.allowed).lower(), reason=decision.reason.value
        ).inc()
        for rule in decision.evaluated_rules:
            self._metrics.authz_rules_evaluated_total.labels(result=str(rule.result).lower()).inc()

        with self._stats_lock:
            self._stats["auth_allowed" if decision.allowed else "auth_denied"] += 1

        self._logger.info(
            "authorization_decision",
            subject_id=str(request.subject.subject_id),
            action=request.action,
            resource=request.resource.path,
            latency_ms=round(elapsed * 1000, 3),
            **decision.to_dict(),
        )
        return decision

    def get_stats(self) -> dict:
        """Counters plus a summary of the active snapshot."""
        with self._stats_lock:
            stats = dict(self._stats)
        return {**stats, "policy": self._engine.get_stats()}

    def _load(self, read, source: str) -> PolicySnapshot:
        authz = self._config.authz
        with self._load_lock:
            version = self._next_version
            try:
                document = parse_policy_document(read())
                snapshot = build_snapshot(
                    document,
                    default_timezone=authz.default_timezone,
                    version=version,
                    fail_on_dead_rules=authz.fail_on_dead_rules,
                )
            except PolicyError as exc:
                self._record_load_failure(source, exc)
                raise
            self._engine.reload(snapshot)
            self._next_version += 1
        self._record_load_success(source, snapshot)
        return snapshot

    def _record_load_success(self, source: str, snapshot: PolicySnapshot) -> None:
        with self._stats_lock:
            self._stats["policy_loads"] += 1
        self._metrics.authz_policy_reloads_total.labels(status="success").inc()
        self._metrics.authz_policy_version.set(snapshot.version)
        self._metrics.authz_dead_rules.set(len(snapshot.dead_rules))
        if snapshot.dead_rules:
            self._logger.warning("dead_attribute_rules", source=source, rules=list(snapshot.dead_rules))
        self._logger.info(
            "policy_loaded",
            source=source,
            policy_version=snapshot.version,
            roles=len(snapshot.registry),
            rules=len(snapshot.rules),
        )

    def _record_load_failure(self, source: str, exc: Exception) -> None:
        with self._stats_lock:
            self._stats["policy_load_failures"] += 1
        self._metrics.authz_policy_reloads_total.labels(status="failure").inc()
        self._logger.error("policy_load_failed", source=source, error=str(exc), error_type=type(exc).__name__)
