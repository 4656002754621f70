"""Dependency injection container for the authorization engine."""

from __future__ import annotations

from dataclasses import dataclass

import structlog
from opentelemetry import trace

from authz_engine.infrastructure.config import Config, get_config
from authz_engine.infrastructure.logging import setup_logging
from authz_engine.infrastructure.metrics import MetricsRegistry, get_metrics, setup_metrics
from authz_engine.infrastructure.tracing import setup_tracing


@dataclass
class Container:
    """Process-wide infrastructure: settings, logger, tracer and metrics."""

    config: Config
    logger: structlog.stdlib.BoundLogger
    tracer: trace.Tracer
    metrics: MetricsRegistry

    _instance: "Container | None" = None

    @classmethod
    def create(cls) -> "Container":
        """Create and initialize the container with all dependencies."""
        if cls._instance is not None:
            return cls._instance

        config = get_config()
        observability = config.observability
        logger = setup_logging(observability.log_level, observability.log_format)
        tracer = setup_tracing(observability.otel_service_name, observability.otel_endpoint)
        if observability.enable_metrics_server:
            metrics = setup_metrics(observability.metrics_port)
        else:
            metrics = get_metrics()

        cls._instance = cls(config=config, logger=logger, tracer=tracer, metrics=metrics)

        logger.info(
            "authz_engine_container_initialized",
            policy_path=str(config.authz.policy_path),
            default_timezone=config.authz.default_timezone,
            metrics_server=observability.enable_metrics_server,
        )
        return cls._instance

    @classmethod
    def get(cls) -> "Container":
        """Get the singleton container instance."""
        if cls._instance is None:
            return cls.create()
        return cls._instance

    @classmethod
    def reset(cls) -> None:
        """Reset the container (useful for testing)."""
        cls._instance = None
