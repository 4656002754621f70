"""Identifiers for the authorization engine (type-safe).

Uses Python's NewType for compile-time type safety without runtime overhead.
"""

from __future__ import annotations

from typing import NewType

RoleId = NewType("RoleId", str)
SubjectId = NewType("SubjectId", str)
RuleId = NewType("RuleId", str)
