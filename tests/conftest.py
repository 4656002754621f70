"""Pytest configuration and shared fixtures for authorization engine tests."""

import pytest
from prometheus_client import CollectorRegistry

from authz_engine.domain.entities.policy import Environment
from authz_engine.domain.services.policy_engine import PolicyEngine
from authz_engine.infrastructure.config import Config
from authz_engine.infrastructure.container import Container
from authz_engine.infrastructure.metrics import MetricsRegistry
from authz_engine.infrastructure.policy_loader import build_snapshot, parse_policy_document

from factories import OFFICE_IP, at, scenario_document


@pytest.fixture(autouse=True)
def reset_container():
    """Reset the DI container before each test."""
    Container.reset()
    yield
    Container.reset()


@pytest.fixture
def policy_document() -> dict:
    return scenario_document()


@pytest.fixture
def snapshot(policy_document):
    return build_snapshot(parse_policy_document(policy_document), version=1)


@pytest.fixture
def engine(snapshot) -> PolicyEngine:
    return PolicyEngine(snapshot)


@pytest.fixture
def office_env() -> Environment:
    return Environment(time=at(10), ip=OFFICE_IP)


@pytest.fixture
def metrics() -> MetricsRegistry:
    """Metrics bound to a private registry so tests do not collide."""
    return MetricsRegistry(CollectorRegistry())


@pytest.fixture
def test_config(tmp_path) -> Config:
    return Config(authz={"policy_path": tmp_path / "policy.yaml"})


# Pytest markers
def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line("markers", "unit: mark test as unit test")
    config.addinivalue_line("markers", "integration: mark test as integration test")
