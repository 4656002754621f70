"""Value objects for the authorization domain."""

from authz_engine.domain.value_objects.identifiers import RoleId, RuleId, SubjectId
from authz_engine.domain.value_objects.permission import Permission
from authz_engine.domain.value_objects.time_window import TimeWindow, parse_clock

__all__ = [
    "Permission",
    "RoleId",
    "RuleId",
    "SubjectId",
    "TimeWindow",
    "parse_clock",
]
