"""Infrastructure: settings, logging, metrics, tracing and policy loading."""

from authz_engine.infrastructure.config import AuthzConfig, Config, ObservabilityConfig, get_config
from authz_engine.infrastructure.logging import get_logger, setup_logging
from authz_engine.infrastructure.policy_loader import (
    PolicyDocument,
    build_snapshot,
    load_policy,
    parse_condition,
    parse_policy_document,
    read_policy_file,
)

__all__ = [
    "AuthzConfig",
    "Config",
    "ObservabilityConfig",
    "PolicyDocument",
    "build_snapshot",
    "get_config",
    "get_logger",
    "load_policy",
    "parse_condition",
    "parse_policy_document",
    "read_policy_file",
    "setup_logging",
]
