"""Permission value object.

A permission is written ``action:resource`` where the resource is a
dot-delimited path. Either component may be ``*``; inside the resource a
``*`` segment matches any single segment, and a trailing ``*`` matches the
parent path itself plus every descendant::

    read:*                   any read
    write:datasets.*         write on "datasets" and anything below it
    delete:datasets.reports  exactly one resource
"""

from __future__ import annotations

from dataclasses import dataclass, field

from authz_engine.domain.errors import ConfigError

WILDCARD = "*"
SEPARATOR = ":"
PATH_DELIMITER = "."


def split_path(path: str) -> tuple[str, ...]:
    """Split a resource path into segments."""
    return tuple(path.split(PATH_DELIMITER))


@dataclass(frozen=True)
class Permission:
    """Immutable ``action:resource`` grant."""

    action: str
    resource: str
    segments: tuple[str, ...] = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        _validate_action(self.action)
        object.__setattr__(self, "segments", _validate_resource(self.resource))

    @classmethod
    def parse(cls, text: str) -> "Permission":
        """Parse ``action:resource``.

        Raises:
            ConfigError: If the string is not a well-formed permission.
        """
        if not isinstance(text, str) or SEPARATOR not in text:
            raise ConfigError(f"Malformed permission {text!r}: expected 'action:resource'")
        action, resource = text.split(SEPARATOR, 1)
        try:
            return cls(action=action, resource=resource)
        except ConfigError as exc:
            raise ConfigError(f"Malformed permission {text!r}: {exc}") from exc

    def __str__(self) -> str:
        return f"{self.action}{SEPARATOR}{self.resource}"

    @property
    def is_exact(self) -> bool:
        """True when the resource carries no wildcard segment."""
        return WILDCARD not in self.segments

    @property
    def literal_prefix(self) -> int:
        """Number of leading non-wildcard resource segments."""
        count = 0
        for segment in self.segments:
            if segment == WILDCARD:
                break
            count += 1
        return count

    @property
    def literal_segments(self) -> int:
        return sum(1 for segment in self.segments if segment != WILDCARD)

    @property
    def open_ended(self) -> bool:
        """True when a trailing ``*`` makes the pattern cover descendants."""
        return self.segments[-1] == WILDCARD

    def matches_action(self, action: str) -> bool:
        return self.action == WILDCARD or self.action == action

    def matches_resource(self, path: str) -> bool:
        return _pattern_matches(self.segments, split_path(path))

    def grants(self, action: str, path: str) -> bool:
        """Check whether this permission covers ``(action, path)``."""
        return self.matches_action(action) and self.matches_resource(path)

    def overlaps(self, other: "Permission") -> bool:
        """Check whether some ``(action, path)`` is granted by both patterns."""
        if not (
            self.action == WILDCARD
            or other.action == WILDCARD
            or self.action == other.action
        ):
            return False
        return _patterns_overlap(self.segments, other.segments)


def _validate_action(action: str) -> None:
    if not action or action != action.strip():
        raise ConfigError("action must be a non-empty string without surrounding whitespace")
    if action != WILDCARD and WILDCARD in action:
        raise ConfigError(f"partial wildcard in action {action!r}")
    if PATH_DELIMITER in action:
        raise ConfigError(f"action {action!r} must not contain '{PATH_DELIMITER}'")


def _validate_resource(resource: str) -> tuple[str, ...]:
    if not resource:
        raise ConfigError("resource must be non-empty")
    segments = split_path(resource)
    for segment in segments:
        if not segment:
            raise ConfigError(f"empty segment in resource {resource!r}")
        if segment != segment.strip() or any(ch.isspace() for ch in segment):
            raise ConfigError(f"whitespace in resource {resource!r}")
        if segment != WILDCARD and WILDCARD in segment:
            raise ConfigError(f"partial wildcard segment {segment!r} in resource {resource!r}")
    return segments


def _split_open(segments: tuple[str, ...]) -> tuple[tuple[str, ...], bool]:
    if segments[-1] == WILDCARD:
        return segments[:-1], True
    return segments, False


def _pattern_matches(pattern: tuple[str, ...], path: tuple[str, ...]) -> bool:
    body, open_ended = _split_open(pattern)
    if open_ended:
        if len(path) < len(body):
            return False
    elif len(path) != len(body):
        return False
    return all(
        expected == WILDCARD or expected == actual
        for expected, actual in zip(body, path)
    )


def _patterns_overlap(left: tuple[str, ...], right: tuple[str, ...]) -> bool:
    left_body, left_open = _split_open(left)
    right_body, right_open = _split_open(right)

    for a, b in zip(left_body, right_body):
        if a != WILDCARD and b != WILDCARD and a != b:
            return False

    if left_open and right_open:
        return True
    if left_open:
        return len(right_body) >= len(left_body)
    if right_open:
        return len(left_body) >= len(right_body)
    return len(left_body) == len(right_body)
