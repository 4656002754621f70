"""OpenTelemetry tracing for authorization calls."""

from __future__ import annotations

from contextlib import contextmanager
from typing import Generator

from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor

from authz_engine.domain.entities.policy import AuthorizationRequest, Decision

_tracer: trace.Tracer | None = None


def setup_tracing(service_name: str = "authz_engine", otlp_endpoint: str | None = None) -> trace.Tracer:
    """Install a tracer provider, exporting over OTLP when an endpoint is set."""
    global _tracer
    provider = TracerProvider(resource=Resource.create({"service.name": service_name}))

    if otlp_endpoint:
        provider.add_span_processor(BatchSpanProcessor(OTLPSpanExporter(endpoint=otlp_endpoint, insecure=True)))

    trace.set_tracer_provider(provider)
    _tracer = trace.get_tracer(service_name)
    return _tracer


def get_tracer() -> trace.Tracer:
    return _tracer or trace.get_tracer("authz_engine")


@contextmanager
def authorization_span(request: AuthorizationRequest) -> Generator[trace.Span, None, None]:
    """Span around one authorization call, tagged with the request target."""
    with get_tracer().start_as_current_span("authz.authorize") as span:
        span.set_attribute("authz.subject_id", str(request.subject.subject_id))
        span.set_attribute("authz.action", request.action)
        span.set_attribute("authz.resource", request.resource.path)
        yield span


def annotate_decision(span: trace.Span, decision: Decision) -> None:
    """Copy the outcome of a decision onto its span."""
    span.set_attribute("authz.allowed", decision.allowed)
    span.set_attribute("authz.reason", decision.reason.value)
    span.set_attribute("authz.policy_version", decision.policy_version)
    if decision.matched_permission is not None:
        span.set_attribute("authz.matched_permission", str(decision.matched_permission))
    if decision.evaluated_rules:
        span.set_attribute(
            "authz.failed_rules",
            [rule.rule_id for rule in decision.evaluated_rules if not rule.result],
        )
