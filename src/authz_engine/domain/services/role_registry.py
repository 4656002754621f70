"""Role registry and the immutable policy snapshot.

The registry maps role ids to permission sets and resolves a set of roles to
its effective permissions. A :class:`PolicySnapshot` bundles a registry with
the attribute rules, subject directory and timezone that go with it; the
policy engine swaps whole snapshots on reload so that a call never sees half
of an update.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Iterable, Mapping, Optional, Sequence
from zoneinfo import ZoneInfo

from authz_engine.domain.entities.policy import Role, Subject
from authz_engine.domain.entities.rule import AttributeRule
from authz_engine.domain.errors import ConfigError, UnknownRole, UnknownSubject
from authz_engine.domain.value_objects.identifiers import RoleId, RuleId, SubjectId
from authz_engine.domain.value_objects.permission import Permission

logger = logging.getLogger(__name__)


class RoleRegistry:
    """Read-only role -> permission-set mapping."""

    def __init__(
        self,
        roles: Mapping[RoleId, Role],
        catalog: Mapping[str, Permission],
    ):
        """Use :meth:`load`, which validates its input."""
        self._roles = MappingProxyType(dict(roles))
        self._catalog = MappingProxyType(dict(catalog))
        self._held = frozenset().union(*(role.permissions for role in self._roles.values()))

    @classmethod
    def load(
        cls,
        roles: Sequence[Role],
        permissions: Optional[Iterable[Permission]] = None,
    ) -> "RoleRegistry":
        """Build a registry from role definitions.

        Args:
            roles: Role definitions.
            permissions: Permission catalog. When omitted, the catalog is the
                union of the roles' permissions.

        Raises:
            ConfigError: On duplicate role ids, duplicate catalog entries or
                a role referencing a permission missing from the catalog.
        """
        by_id: dict[RoleId, Role] = {}
        for role in roles:
            if role.role_id in by_id:
                raise ConfigError(f"Duplicate role id: {role.role_id}")
            by_id[role.role_id] = role

        if permissions is None:
            catalog = {str(p): p for role in by_id.values() for p in role.permissions}
        else:
            catalog = {}
            for permission in permissions:
                key = str(permission)
                if key in catalog:
                    raise ConfigError(f"Duplicate permission id: {key}")
                catalog[key] = permission

        for role in by_id.values():
            for permission in sorted(role.permissions, key=str):
                if str(permission) not in catalog:
                    raise ConfigError(
                        f"Role {role.role_id} references undefined permission {permission}"
                    )

        return cls(by_id, catalog)

    @property
    def roles(self) -> Mapping[RoleId, Role]:
        return self._roles

    @property
    def catalog(self) -> Mapping[str, Permission]:
        return self._catalog

    @property
    def held_permissions(self) -> frozenset[Permission]:
        """Every permission granted by at least one role."""
        return self._held

    def get_role(self, role_id: str) -> Role:
        try:
            return self._roles[RoleId(role_id)]
        except KeyError:
            raise UnknownRole(role_id) from None

    def effective_permissions(self, role_ids: Iterable[str]) -> frozenset[Permission]:
        """Union of the permissions of ``role_ids``.

        Raises:
            UnknownRole: If any role id is not defined. Ids are checked in
                sorted order so the reported role is deterministic.
        """
        result: set[Permission] = set()
        for role_id in sorted(role_ids):
            result |= self.get_role(role_id).permissions
        return frozenset(result)

    def __len__(self) -> int:
        return len(self._roles)

    def __contains__(self, role_id: object) -> bool:
        return role_id in self._roles


@dataclass(frozen=True)
class PolicySnapshot:
    """Everything one authorization call reads, frozen together."""
    registry: RoleRegistry
    rules: tuple[AttributeRule, ...] = ()
    subjects: Mapping[SubjectId, Subject] = field(default_factory=lambda: MappingProxyType({}))
    timezone: ZoneInfo = field(default_factory=lambda: ZoneInfo("UTC"))
    version: int = 0
    dead_rules: tuple[RuleId, ...] = ()

    @classmethod
    def build(
        cls,
        registry: RoleRegistry,
        rules: Sequence[AttributeRule] = (),
        subjects: Sequence[Subject] = (),
        timezone: Optional[ZoneInfo] = None,
        version: int = 0,
        fail_on_dead_rules: bool = False,
    ) -> "PolicySnapshot":
        """Validate and assemble a snapshot.

        Raises:
            ConfigError: On duplicate rule or subject ids, a rule attached to
                a permission missing from the catalog, a rule with no
                attachment, a subject referencing an unknown role, or (with
                ``fail_on_dead_rules``) an unreachable rule.
        """
        seen_rules: set[RuleId] = set()
        for rule in rules:
            if rule.rule_id in seen_rules:
                raise ConfigError(f"Duplicate rule id: {rule.rule_id}")
            seen_rules.add(rule.rule_id)
            if not rule.permissions and not rule.scopes:
                raise ConfigError(f"Rule {rule.rule_id} is not attached to any permission or scope")
            for permission in sorted(rule.permissions, key=str):
                if str(permission) not in registry.catalog:
                    raise ConfigError(
                        f"Rule {rule.rule_id} references undefined permission {permission}"
                    )

        directory: dict[SubjectId, Subject] = {}
        for subject in subjects:
            if subject.subject_id in directory:
                raise ConfigError(f"Duplicate subject id: {subject.subject_id}")
            for role_id in sorted(subject.roles or ()):
                if role_id not in registry:
                    raise ConfigError(f"Subject {subject.subject_id} references unknown role {role_id}")
            directory[subject.subject_id] = subject

        dead = tuple(rule.rule_id for rule in rules if not _reachable(rule, registry))
        for rule_id in dead:
            logger.warning(f"Attribute rule {rule_id} is attached to no permission held by any role")
        if dead and fail_on_dead_rules:
            raise ConfigError(f"Unreachable attribute rules: {', '.join(dead)}")

        return cls(
            registry=registry,
            rules=tuple(rules),
            subjects=MappingProxyType(directory),
            timezone=timezone or ZoneInfo("UTC"),
            version=version,
            dead_rules=dead,
        )

    def with_roles(
        self,
        roles: Sequence[Role],
        version: Optional[int] = None,
        fail_on_dead_rules: bool = False,
    ) -> "PolicySnapshot":
        """New snapshot with the role set replaced and everything else kept."""
        registry = RoleRegistry.load(roles, self.registry.catalog.values())
        return PolicySnapshot.build(
            registry,
            rules=self.rules,
            subjects=tuple(self.subjects.values()),
            timezone=self.timezone,
            version=self.version + 1 if version is None else version,
            fail_on_dead_rules=fail_on_dead_rules,
        )

    def resolve_subject(self, subject: Subject) -> Subject:
        """Fill in roles and attributes from the subject directory.

        Roles on the request win over the directory; request attributes are
        layered over directory attributes.

        Raises:
            UnknownSubject: If the request carries no roles and the subject
                has no directory entry.
        """
        entry = self.subjects.get(subject.subject_id)
        if entry is None:
            if subject.roles is None:
                raise UnknownSubject(subject.subject_id)
            return subject

        roles = subject.roles if subject.roles is not None else entry.roles
        attributes = {**entry.attributes, **subject.attributes}
        return Subject(subject_id=subject.subject_id, roles=roles or frozenset(), attributes=attributes)

    def rules_for(self, matched: Permission, action: str, path: str) -> list[AttributeRule]:
        """Rules attached to ``matched`` or scoped over ``(action, path)``."""
        return [rule for rule in self.rules if rule.applies_to(matched, action, path)]


def _reachable(rule: AttributeRule, registry: RoleRegistry) -> bool:
    held = registry.held_permissions
    if any(permission in held for permission in rule.permissions):
        return True
    return any(scope.overlaps(permission) for scope in rule.scopes for permission in held)
