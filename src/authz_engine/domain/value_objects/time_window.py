"""Clock values and daily time windows used by time-of-day conditions."""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import datetime, time, timezone, tzinfo

from authz_engine.domain.errors import EvaluationError

# 9AM, 9:30 pm, 17:00, 09:05
_CLOCK_RE = re.compile(
    r"^\s*(?P<hour>\d{1,2})(?::(?P<minute>\d{2}))?\s*(?P<meridiem>[AaPp][Mm])?\s*$"
)
_RANGE_RE = re.compile(r"^\s*(?P<start>[^-]+?)\s*-\s*(?P<end>[^-]+?)\s*$")


def parse_clock(value: object) -> time:
    """Parse a clock value such as ``9AM``, ``5:30PM`` or ``17:00``.

    Raises:
        EvaluationError: If the value is not a recognisable clock time.
    """
    if isinstance(value, time):
        return value.replace(second=0, microsecond=0, tzinfo=None)
    if not isinstance(value, str):
        raise EvaluationError(f"Expected a clock time, got {value!r}")

    match = _CLOCK_RE.match(value)
    if not match:
        raise EvaluationError(f"Unrecognised clock time {value!r}")

    hour = int(match.group("hour"))
    minute = int(match.group("minute") or 0)
    meridiem = match.group("meridiem")

    if meridiem:
        if not 1 <= hour <= 12:
            raise EvaluationError(f"Hour out of range in {value!r}")
        hour = hour % 12
        if meridiem.lower() == "pm":
            hour += 12
    elif match.group("minute") is None:
        raise EvaluationError(f"Ambiguous clock time {value!r}: use AM/PM or HH:MM")

    if not (0 <= hour <= 23 and 0 <= minute <= 59):
        raise EvaluationError(f"Clock time out of range: {value!r}")
    return time(hour, minute)


@dataclass(frozen=True)
class TimeWindow:
    """Inclusive daily window; ``start > end`` wraps past midnight."""

    start: time
    end: time

    @classmethod
    def parse(cls, value: object) -> "TimeWindow":
        """Build a window from ``"9AM-5PM"`` or a ``[start, end]`` pair."""
        if isinstance(value, str):
            match = _RANGE_RE.match(value)
            if not match:
                raise EvaluationError(f"Unrecognised time range {value!r}")
            return cls(parse_clock(match.group("start")), parse_clock(match.group("end")))
        if isinstance(value, (list, tuple)) and len(value) == 2:
            return cls(parse_clock(value[0]), parse_clock(value[1]))
        raise EvaluationError(f"Time range must be 'START-END' or [start, end], got {value!r}")

    @property
    def wraps_midnight(self) -> bool:
        return self.start > self.end

    def contains(self, moment: time) -> bool:
        moment = moment.replace(second=0, microsecond=0, tzinfo=None)
        if self.wraps_midnight:
            return moment >= self.start or moment <= self.end
        return self.start <= moment <= self.end

    def __str__(self) -> str:
        return f"{self.start:%H:%M}-{self.end:%H:%M}"


def local_clock(moment: datetime, tz: tzinfo) -> time:
    """Time of day of ``moment`` in ``tz``, truncated to the minute.

    Naive datetimes are taken as UTC.
    """
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(tz).time().replace(second=0, microsecond=0)
