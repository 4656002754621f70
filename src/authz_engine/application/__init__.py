"""Application layer for the authorization engine."""

from authz_engine.application.coordinator import AccessCoordinator

__all__ = [
    "AccessCoordinator",
]
