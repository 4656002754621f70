"""Error taxonomy for the authorization engine.

Load-time errors (``ConfigError``, ``EvaluationError``) are fatal and abort
startup or reload. Request-time conditions (``UnknownRole``,
``UnknownSubject``) are raised by the registry and turned into denials by the
policy engine; they never escape ``PolicyEngine.authorize``.
"""

from __future__ import annotations


class PolicyError(Exception):
    """Base class for authorization engine errors."""


class ConfigError(PolicyError):
    """Malformed or inconsistent role/permission/rule definitions."""


class EvaluationError(PolicyError):
    """Malformed rule tree (unsupported operator, bad value shape, ...)."""


class UnknownRole(PolicyError):
    """A role id that the registry does not define."""

    def __init__(self, role_id: str):
        super().__init__(f"Unknown role: {role_id}")
        self.role_id = role_id


class UnknownSubject(PolicyError):
    """A subject with no directory entry and no roles on the request."""

    def __init__(self, subject_id: str):
        super().__init__(f"Unknown subject: {subject_id}")
        self.subject_id = subject_id
