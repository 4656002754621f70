"""Prometheus metrics for the authorization engine."""

from __future__ import annotations

from prometheus_client import (
    Counter, Gauge, Histogram, Info, start_http_server, REGISTRY, CollectorRegistry,
)


class MetricsRegistry:
    """Registry of all authorization engine metrics."""

    def __init__(self, registry: CollectorRegistry | None = None) -> None:
        self._registry = registry or REGISTRY

        # Decision metrics
        self.authz_decisions_total = Counter(
            "authz_decisions_total", "Authorization decisions", ["allowed", "reason"],
            registry=self._registry,
        )

        self.authz_decision_latency_seconds = Histogram(
            "authz_decision_latency_seconds", "Authorization decision latency",
            buckets=(0.00005, 0.0001, 0.0005, 0.001, 0.005, 0.01),
            registry=self._registry,
        )

        self.authz_rules_evaluated_total = Counter(
            "authz_rules_evaluated_total", "Attribute rules evaluated", ["result"],
            registry=self._registry,
        )

        # Policy lifecycle metrics
        self.authz_policy_reloads_total = Counter(
            "authz_policy_reloads_total", "Policy loads and reloads", ["status"],
            registry=self._registry,
        )

        self.authz_policy_version = Gauge(
            "authz_policy_version", "Version of the active policy snapshot",
            registry=self._registry,
        )

        self.authz_dead_rules = Gauge(
            "authz_dead_rules", "Attribute rules attached to no held permission",
            registry=self._registry,
        )

        self.info = Info("authz_engine", "Engine information", registry=self._registry)

    @property
    def registry(self) -> CollectorRegistry:
        return self._registry


_metrics: MetricsRegistry | None = None


def setup_metrics(port: int = 8003, registry: CollectorRegistry | None = None) -> MetricsRegistry:
    """Set up Prometheus metrics and start the exposition server."""
    global _metrics
    _metrics = MetricsRegistry(registry)
    from authz_engine import __version__
    _metrics.info.info({"version": __version__})
    start_http_server(port, registry=registry or REGISTRY)
    return _metrics


def get_metrics() -> MetricsRegistry:
    """Get the metrics registry."""
    global _metrics
    if _metrics is None:
        _metrics = MetricsRegistry()
    return _metrics
