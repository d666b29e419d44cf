"""Wall-clock time primitives shared by slot generation and overlap checks."""
import re
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, Optional

from courtbook.core.errors import InvalidDate, InvalidInterval

MINUTES_PER_DAY = 24 * 60

_CLOCK_PATTERN = re.compile(r"^([01]\d|2[0-3]):([0-5]\d)$")
_DATE_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}$")


def overlaps(a_start: Any, a_end: Any, b_start: Any, b_end: Any) -> bool:
    """
    Half-open overlap test for [a_start, a_end) and [b_start, b_end).

    Intervals that only touch at a boundary do not overlap.
    """
    return a_start < b_end and b_start < a_end


def parse_clock(value: str, allow_end_of_day: bool = False) -> int:
    """
    Parse an "HH:MM" wall-clock string into minutes since midnight.

    Args:
        value: Time string such as "09:30"
        allow_end_of_day: Accept "24:00" (used for closing times and ends)

    Returns:
        Minutes since midnight

    Raises:
        ValueError: If the string is not a valid wall-clock time
    """
    if not isinstance(value, str):
        raise ValueError(f"Expected an 'HH:MM' string, got {value!r}")

    value = value.strip()
    if allow_end_of_day and value == "24:00":
        return MINUTES_PER_DAY

    match = _CLOCK_PATTERN.match(value)
    if not match:
        raise ValueError(f"Invalid time '{value}', expected HH:MM")

    return int(match.group(1)) * 60 + int(match.group(2))


def format_clock(minutes: int) -> str:
    """Format minutes since midnight as "HH:MM"."""
    hours, mins = divmod(minutes, 60)
    return f"{hours:02d}:{mins:02d}"


def parse_date(value: Any) -> date:
    """Parse a "YYYY-MM-DD" calendar date, raising InvalidDate otherwise."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value

    if not isinstance(value, str) or not _DATE_PATTERN.match(value.strip()):
        raise InvalidDate(f"Invalid date '{value}', expected YYYY-MM-DD")

    try:
        return date.fromisoformat(value.strip())
    except ValueError:
        raise InvalidDate(f"Invalid date '{value}', expected YYYY-MM-DD")


def day_of_week(target_date: date) -> int:
    """Weekday index used by operating hours: 0 = Sunday ... 6 = Saturday."""
    return target_date.isoweekday() % 7


@dataclass(frozen=True, order=True)
class Interval:
    """Half-open range [start, end) in minutes since midnight."""

    start: int
    end: int

    def __post_init__(self):
        if self.end <= self.start:
            raise ValueError(
                f"Interval end {format_clock(self.end)} must be after "
                f"start {format_clock(self.start)}"
            )

    @classmethod
    def from_clock(cls, start_time: str, end_time: str) -> "Interval":
        return cls(parse_clock(start_time), parse_clock(end_time, allow_end_of_day=True))

    @property
    def duration(self) -> int:
        return self.end - self.start

    @property
    def start_time(self) -> str:
        return format_clock(self.start)

    @property
    def end_time(self) -> str:
        return format_clock(self.end)

    def overlaps(self, other: "Interval") -> bool:
        return overlaps(self.start, self.end, other.start, other.end)

    def contains(self, other: "Interval") -> bool:
        return self.start <= other.start and other.end <= self.end

    def __str__(self) -> str:
        return f"{self.start_time}-{self.end_time}"


def requested_interval(
    start_time: Optional[str],
    end_time: Optional[str] = None,
    duration: Optional[int] = None,
) -> Interval:
    """
    Build the interval a caller asked for from start+end or start+duration.

    Raises:
        InvalidInterval: Missing or malformed times, or end not after start
    """
    if start_time is None:
        raise InvalidInterval("startTime is required")

    try:
        start = parse_clock(start_time)
        if end_time is not None:
            end = parse_clock(end_time, allow_end_of_day=True)
        elif duration is not None:
            end = start + int(duration)
        else:
            raise InvalidInterval("Either endTime or duration is required")
    except (TypeError, ValueError) as e:
        raise InvalidInterval(str(e))

    if end <= start:
        raise InvalidInterval(f"End time must be after start time {format_clock(start)}")
    if end > MINUTES_PER_DAY:
        raise InvalidInterval("Bookings cannot extend past midnight")

    return Interval(start, end)
