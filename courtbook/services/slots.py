"""Slot generation from venue operating hours."""
import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Iterable, List, Optional

from courtbook.core.errors import ConfigurationError
from courtbook.services.intervals import Interval, day_of_week, parse_clock

logger = logging.getLogger(__name__)

DEFAULT_SLOT_MINUTES = 60


@dataclass(frozen=True)
class OperatingWindow:
    """Opening window of a venue for one weekday."""

    day_of_week: int
    opens_at: str
    closes_at: str
    is_open: bool = True

    @classmethod
    def from_model(cls, hours) -> "OperatingWindow":
        return cls(
            day_of_week=hours.day_of_week,
            opens_at=hours.opening_time,
            closes_at=hours.closing_time,
            is_open=bool(hours.is_open),
        )

    @property
    def label(self) -> str:
        return f"{self.opens_at} - {self.closes_at}"


@dataclass
class SlotGrid:
    """Candidate slots for a date. closed=True means the venue does not open that day."""

    closed: bool
    slots: List[Interval] = field(default_factory=list)
    window: Optional[OperatingWindow] = None
    hours: Optional[Interval] = None


def window_for_date(
    windows: Iterable[OperatingWindow], target_date: date
) -> Optional[OperatingWindow]:
    """
    Pick the operating window for the weekday of ``target_date``.

    Closed rows are ignored; more than one open row for the same weekday
    is a configuration error.
    """
    weekday = day_of_week(target_date)
    matches = [w for w in windows if w.day_of_week == weekday and w.is_open]

    if len(matches) > 1:
        raise ConfigurationError(
            f"Multiple open operating windows configured for day {weekday}"
        )

    return matches[0] if matches else None


def opening_interval(window: Optional[OperatingWindow]) -> Optional[Interval]:
    """
    Parse an operating window into [opens, closes).

    Returns None for a closed day.

    Raises:
        ConfigurationError: If the times are malformed or not ordered
    """
    if window is None or not window.is_open:
        return None

    try:
        opens = parse_clock(window.opens_at)
        closes = parse_clock(window.closes_at, allow_end_of_day=True)
    except ValueError as e:
        logger.error(f"Bad operating hours for day {window.day_of_week}: {e}")
        raise ConfigurationError(f"Invalid operating hours: {e}")

    if opens >= closes:
        raise ConfigurationError(
            f"Opening time {window.opens_at} must be before closing time {window.closes_at}"
        )

    return Interval(opens, closes)


def generate_slots(
    window: Optional[OperatingWindow],
    slot_minutes: int = DEFAULT_SLOT_MINUTES,
) -> SlotGrid:
    """
    Build fixed-width candidate slots for an operating window.

    Slots start at the opening time floored to the slot width and stop
    before any slot that would end after closing.

    Args:
        window: Operating window for the requested weekday, or None
        slot_minutes: Slot width in minutes

    Returns:
        SlotGrid, with closed=True and no slots when the venue is closed
    """
    if slot_minutes <= 0:
        raise ConfigurationError(f"Slot width must be positive, got {slot_minutes}")

    hours = opening_interval(window)
    if hours is None:
        return SlotGrid(closed=True, window=window)

    slots = []
    start = (hours.start // slot_minutes) * slot_minutes
    while start + slot_minutes <= hours.end:
        slots.append(Interval(start, start + slot_minutes))
        start += slot_minutes

    return SlotGrid(closed=False, slots=slots, window=window, hours=hours)


def slots_for_date(
    windows: Iterable[OperatingWindow],
    target_date: date,
    slot_minutes: int = DEFAULT_SLOT_MINUTES,
) -> SlotGrid:
    """Generate the slot grid for a date from a venue's weekly windows."""
    return generate_slots(window_for_date(windows, target_date), slot_minutes)
