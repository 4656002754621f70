"""Permission matching with hierarchical wildcards.

Selects the most specific permission in a set that grants a requested
``(action, resource)``.
"""

from __future__ import annotations

from typing import Iterable, Optional

from authz_engine.domain.value_objects.permission import WILDCARD, Permission


def specificity(permission: Permission) -> tuple[bool, int, int, bool]:
    """Ranking key; a larger tuple is more specific.

    Exact resources beat wildcards, then the longer literal prefix wins,
    then more literal segments, then a literal action over ``*``.
    """
    return (
        permission.is_exact,
        permission.literal_prefix,
        permission.literal_segments,
        permission.action != WILDCARD,
    )


def match(
    permissions: Iterable[Permission],
    action: str,
    resource: str,
) -> Optional[Permission]:
    """Return the most specific permission granting ``action`` on ``resource``.

    Ties on specificity resolve by the permission string so that the result
    does not depend on set iteration order.

    Args:
        permissions: Effective permission set of the subject.
        action: Requested action.
        resource: Dot-delimited resource path.

    Returns:
        The winning permission, or None when nothing grants the request.
    """
    best: Optional[Permission] = None
    best_key: Optional[tuple] = None

    for permission in permissions:
        if not permission.grants(action, resource):
            continue
        key = specificity(permission)
        if (
            best is None
            or key > best_key
            or (key == best_key and str(permission) < str(best))
        ):
            best, best_key = permission, key

    return best


class PermissionMatcher:
    """Stateless wrapper over :func:`match` for injection into the engine."""

    def matches(
        self,
        permissions: Iterable[Permission],
        action: str,
        resource: str,
    ) -> Optional[Permission]:
        return match(permissions, action, resource)
