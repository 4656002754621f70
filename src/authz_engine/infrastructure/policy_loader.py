"""Policy document loading and validation.

Reads a YAML policy document, validates its shape with Pydantic and turns it
into an immutable :class:`PolicySnapshot`. Any problem fails the whole load
with a descriptive error; nothing is ever partially loaded.

Document layout::

    version: 1
    timezone: Europe/London
    permissions:
      - {id: "read:*", description: "Read anything"}
    roles:
      - {id: admin, name: Admin, permissions: ["read:*"]}
    subjects:
      - {id: alice, roles: [admin], attributes: {region: eu}}
    rules:
      - id: office-hours
        permissions: ["write:datasets.outturnreports"]
        scopes: ["delete:datasets.*"]
        condition:
          all:
            - {attribute: environment.time, op: in_range, value: "9AM-5PM"}
            - {attribute: environment.ip, op: eq, value: 192.168.1.1}

Clock values must be quoted (``"17:00"``); YAML 1.1 reads bare ``17:00``
as a base-60 integer.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Mapping, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from authz_engine.domain.entities.policy import Role, Subject
from authz_engine.domain.entities.rule import AllOf, AnyOf, AttributeRule, Comparison, Condition, Not
from authz_engine.domain.errors import ConfigError, EvaluationError
from authz_engine.domain.services.role_registry import PolicySnapshot, RoleRegistry
from authz_engine.domain.value_objects.identifiers import RoleId, RuleId, SubjectId
from authz_engine.domain.value_objects.permission import Permission

logger = logging.getLogger(__name__)

_YAML_EXTS = frozenset({".yaml", ".yml"})
_LEAF_KEYS = frozenset({"attribute", "op", "value"})
SUPPORTED_SCHEMA_VERSIONS = frozenset({1})


class _Strict(BaseModel):
    model_config = ConfigDict(extra="forbid")


class PermissionDocument(_Strict):
    id: str
    description: str = ""


class RoleDocument(_Strict):
    id: str
    name: str
    description: str = ""
    permissions: list[str] = Field(default_factory=list)


class SubjectDocument(_Strict):
    id: str
    roles: list[str] = Field(default_factory=list)
    attributes: dict[str, Any] = Field(default_factory=dict)


class RuleDocument(_Strict):
    id: str
    description: str = ""
    permissions: list[str] = Field(default_factory=list)
    scopes: list[str] = Field(default_factory=list)
    condition: dict[str, Any]


class PolicyDocument(_Strict):
    """Top-level policy document; this schema is kept backward compatible."""

    version: int = 1
    timezone: Optional[str] = None
    permissions: list[PermissionDocument] = Field(default_factory=list)
    roles: list[RoleDocument] = Field(default_factory=list)
    subjects: list[SubjectDocument] = Field(default_factory=list)
    rules: list[RuleDocument] = Field(default_factory=list)


def read_policy_file(path: Path | str) -> dict[str, Any]:
    """Read and parse a YAML policy file.

    Raises:
        ConfigError: On unsupported extension, I/O or parse errors, or a
            top level that is not a mapping.
    """
    path = Path(path)
    if path.suffix.lower() not in _YAML_EXTS:
        raise ConfigError(
            f"Unsupported policy file extension '{path.suffix}'. "
            "Only YAML files (.yaml, .yml) are supported."
        )

    try:
        with path.open("r", encoding="utf-8") as fh:
            raw = yaml.safe_load(fh)
    except (OSError, yaml.YAMLError) as exc:
        raise ConfigError(f"Error reading policy file: {path}\n  {exc}") from exc

    if not isinstance(raw, dict):
        raise ConfigError("Top-level policy content must be a YAML mapping (dictionary).")
    return raw


def parse_policy_document(raw: Mapping[str, Any]) -> PolicyDocument:
    """Validate the document shape.

    Raises:
        ConfigError: With one line per validation problem.
    """
    try:
        return PolicyDocument.model_validate(raw)
    except ValidationError as exc:
        raise ConfigError(f"Invalid policy document:\n{_format_validation_errors(exc)}") from exc


def build_snapshot(
    document: PolicyDocument,
    default_timezone: str = "UTC",
    version: int = 0,
    fail_on_dead_rules: bool = False,
) -> PolicySnapshot:
    """Turn a validated document into a policy snapshot.

    Raises:
        ConfigError: On inconsistent definitions.
        EvaluationError: On a malformed rule condition.
    """
    if document.version not in SUPPORTED_SCHEMA_VERSIONS:
        raise ConfigError(f"Unsupported policy schema version {document.version}")

    catalog: dict[str, Permission] = {}
    for entry in document.permissions:
        if entry.id in catalog:
            raise ConfigError(f"Duplicate permission id: {entry.id}")
        catalog[entry.id] = Permission.parse(entry.id)

    roles = [
        Role(
            role_id=RoleId(entry.id),
            name=entry.name,
            description=entry.description,
            permissions=frozenset(
                _lookup_permission(catalog, pid, f"Role {entry.id}") for pid in entry.permissions
            ),
        )
        for entry in document.roles
    ]
    registry = RoleRegistry.load(roles, catalog.values())

    rules = [_build_rule(entry, catalog) for entry in document.rules]
    subjects = [
        Subject(
            subject_id=SubjectId(entry.id),
            roles=frozenset(RoleId(r) for r in entry.roles),
            attributes=entry.attributes,
        )
        for entry in document.subjects
    ]

    snapshot = PolicySnapshot.build(
        registry,
        rules=rules,
        subjects=subjects,
        timezone=_load_timezone(document.timezone or default_timezone),
        version=version,
        fail_on_dead_rules=fail_on_dead_rules,
    )
    logger.info(
        f"Loaded policy v{version}: {len(catalog)} permissions, {len(roles)} roles, "
        f"{len(rules)} rules, {len(subjects)} subjects"
    )
    return snapshot


def load_policy(
    path: Path | str,
    default_timezone: str = "UTC",
    version: int = 0,
    fail_on_dead_rules: bool = False,
) -> PolicySnapshot:
    """Read, validate and build a snapshot from a YAML file."""
    document = parse_policy_document(read_policy_file(path))
    return build_snapshot(document, default_timezone, version, fail_on_dead_rules)


def parse_condition(node: Any, where: str = "condition") -> Condition:
    """Build a condition tree from its document form.

    Accepted nodes: ``{all: [...]}``, ``{any: [...]}``, ``{not: {...}}`` and
    leaves ``{attribute, op, value}``.

    Raises:
        EvaluationError: Naming the position of the malformed node.
    """
    if not isinstance(node, Mapping):
        raise EvaluationError(f"{where}: expected a mapping, got {node!r}")

    keys = set(node)
    try:
        if keys == {"all"} or keys == {"any"}:
            (combinator,) = keys
            children = node[combinator]
            if not isinstance(children, list):
                raise EvaluationError(f"'{combinator}' needs a list of conditions")
            parsed = tuple(
                parse_condition(child, f"{where}.{combinator}[{index}]")
                for index, child in enumerate(children)
            )
            return AllOf(parsed) if combinator == "all" else AnyOf(parsed)
        if keys == {"not"}:
            return Not(parse_condition(node["not"], f"{where}.not"))
        if keys == _LEAF_KEYS:
            return Comparison.create(node["attribute"], node["op"], node["value"])
    except EvaluationError as exc:
        if str(exc).startswith(where):
            raise
        raise EvaluationError(f"{where}: {exc}") from exc

    raise EvaluationError(
        f"{where}: expected one of all/any/not or attribute+op+value, got keys {sorted(keys)}"
    )


def _build_rule(entry: RuleDocument, catalog: Mapping[str, Permission]) -> AttributeRule:
    try:
        condition = parse_condition(entry.condition)
    except EvaluationError as exc:
        raise EvaluationError(f"Rule {entry.id}: {exc}") from exc

    return AttributeRule(
        rule_id=RuleId(entry.id),
        condition=condition,
        permissions=frozenset(
            _lookup_permission(catalog, pid, f"Rule {entry.id}") for pid in entry.permissions
        ),
        scopes=tuple(Permission.parse(scope) for scope in entry.scopes),
        description=entry.description,
    )


def _lookup_permission(catalog: Mapping[str, Permission], permission_id: str, owner: str) -> Permission:
    try:
        return catalog[permission_id]
    except KeyError:
        raise ConfigError(f"{owner} references undefined permission {permission_id}") from None


def _load_timezone(name: str) -> ZoneInfo:
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError) as exc:
        raise ConfigError(f"Unknown timezone {name!r}") from exc


def _format_validation_errors(exc: ValidationError) -> str:
    """Format Pydantic validation errors into a readable multi-line string."""
    lines = []
    for err in exc.errors():
        loc = " -> ".join(str(part) for part in err["loc"])
        lines.append(f"  - {loc}: {err['msg']}")
    return "\n".join(lines)
