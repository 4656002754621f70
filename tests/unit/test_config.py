"""Unit tests for authorization engine configuration."""

from pathlib import Path

import pytest
from pydantic import ValidationError

from authz_engine.infrastructure.config import AuthzConfig, Config, ObservabilityConfig


@pytest.mark.unit
class TestConfig:
    """Test configuration loading and validation."""

    def test_default_config(self):
        config = Config()
        assert config.authz.default_timezone == "UTC"
        assert config.authz.fail_on_dead_rules is False
        assert config.observability.log_format == "json"

    def test_authz_config_defaults(self):
        authz = AuthzConfig()
        assert authz.policy_path == Path("/policies/policy.yaml")

    def test_observability_defaults(self):
        observability = ObservabilityConfig()
        assert observability.enable_metrics_server is False
        assert observability.otel_endpoint is None
        assert observability.otel_service_name == "authz_engine"

    def test_environment_overrides(self, monkeypatch, tmp_path):
        monkeypatch.setenv("AUTHZ_ENGINE_AUTHZ__POLICY_PATH", str(tmp_path / "p.yaml"))
        monkeypatch.setenv("AUTHZ_ENGINE_AUTHZ__FAIL_ON_DEAD_RULES", "true")
        monkeypatch.setenv("AUTHZ_ENGINE_OBSERVABILITY__LOG_LEVEL", "DEBUG")
        config = Config()
        assert config.authz.policy_path == tmp_path / "p.yaml"
        assert config.authz.fail_on_dead_rules is True
        assert config.observability.log_level == "DEBUG"

    def test_policy_path_must_be_yaml(self, tmp_path):
        with pytest.raises(ValidationError, match="policy_path"):
            AuthzConfig(policy_path=tmp_path / "policy.json")

    def test_unknown_default_timezone_rejected(self):
        with pytest.raises(ValidationError, match="unknown timezone"):
            AuthzConfig(default_timezone="Mars/Olympus_Mons")

    def test_metrics_port_range(self):
        with pytest.raises(ValidationError):
            ObservabilityConfig(metrics_port=0)
