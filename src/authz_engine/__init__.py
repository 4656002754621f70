"""Hybrid RBAC/ABAC authorization decision engine."""

__version__ = "0.1.0"
