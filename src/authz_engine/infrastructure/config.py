"""Configuration management for the authorization engine.

Settings come from ``AUTHZ_ENGINE_*`` environment variables, nested with a
double underscore (``AUTHZ_ENGINE_AUTHZ__POLICY_PATH``).
"""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Literal
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class AuthzConfig(BaseModel):
    """Policy source and load behaviour."""

    policy_path: Path = Field(default=Path("/policies/policy.yaml"))
    default_timezone: str = Field(default="UTC", description="Used when a policy names no timezone")
    fail_on_dead_rules: bool = Field(default=False, description="Reject policies with unreachable rules")

    @field_validator("policy_path")
    @classmethod
    def _yaml_policy(cls, value: Path) -> Path:
        if value.suffix.lower() not in (".yaml", ".yml"):
            raise ValueError(f"policy_path must be a .yaml or .yml file, got {value}")
        return value

    @field_validator("default_timezone")
    @classmethod
    def _known_timezone(cls, value: str) -> str:
        try:
            ZoneInfo(value)
        except (ZoneInfoNotFoundError, ValueError) as exc:
            raise ValueError(f"unknown timezone {value!r}") from exc
        return value


class ObservabilityConfig(BaseModel):
    """Logging, metrics and tracing."""

    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(default="INFO")
    log_format: Literal["json", "console"] = Field(default="json")
    metrics_port: int = Field(default=8003, ge=1, le=65535)
    enable_metrics_server: bool = Field(default=False)
    otel_endpoint: str | None = Field(default=None)
    otel_service_name: str = Field(default="authz_engine")


class Config(BaseSettings):
    """Main configuration."""

    model_config = SettingsConfigDict(
        env_prefix="AUTHZ_ENGINE_",
        env_nested_delimiter="__",
    )

    authz: AuthzConfig = Field(default_factory=AuthzConfig)
    observability: ObservabilityConfig = Field(default_factory=ObservabilityConfig)


@lru_cache
def get_config() -> Config:
    """Get the global configuration."""
    return Config()
