"""Overlap resolution between candidate intervals and existing reservations."""
import logging
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional

from courtbook.core.errors import ConfigurationError
from courtbook.models.booking import BLOCKING_STATUSES
from courtbook.models.conflict import CONFLICT_ACTIVE
from courtbook.services.intervals import Interval

logger = logging.getLogger(__name__)

KIND_BOOKING = "booking"
KIND_CONFLICT = "conflict"
KIND_UNAVAILABLE = "unavailable"
KIND_CLOSED = "closed"

# Bookings win ties against conflicts, conflicts against unavailable windows
_KIND_RANK = {KIND_BOOKING: 0, KIND_CONFLICT: 1, KIND_UNAVAILABLE: 2, KIND_CLOSED: 3}


@dataclass(frozen=True)
class Blocker:
    """Something that occupies an interval of a court on a date."""

    kind: str
    id: Optional[int]
    interval: Interval

    @property
    def sort_key(self):
        return (self.interval.start, _KIND_RANK[self.kind], self.id or 0)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind,
            "id": self.id,
            "startTime": self.interval.start_time,
            "endTime": self.interval.end_time,
        }


@dataclass(frozen=True)
class SlotAvailability:
    interval: Interval
    available: bool
    blocked_by: Optional[Blocker] = None


def _blocker(kind: str, record) -> Blocker:
    try:
        interval = Interval.from_clock(record.start_time, record.end_time)
    except ValueError as e:
        logger.error(f"Stored {kind} {record.id} has an unusable interval: {e}")
        raise ConfigurationError(f"Stored {kind} {record.id} has an invalid interval: {e}")
    return Blocker(kind=kind, id=record.id, interval=interval)


def collect_blockers(
    bookings: Iterable = (),
    conflicts: Iterable = (),
    windows: Iterable = (),
    exclude_booking_id: Optional[int] = None,
) -> List[Blocker]:
    """
    Turn stored records into blockers, keeping only the ones that block.

    Only PENDING/CONFIRMED bookings, active conflicts and windows marked
    unavailable are kept. Result is ordered by start, then kind.
    """
    blockers = [
        _blocker(KIND_BOOKING, b)
        for b in bookings
        if b.status in BLOCKING_STATUSES and b.id != exclude_booking_id
    ]
    blockers.extend(
        _blocker(KIND_CONFLICT, c) for c in conflicts if c.status == CONFLICT_ACTIVE
    )
    blockers.extend(
        _blocker(KIND_UNAVAILABLE, w) for w in windows if not w.is_available
    )
    return sorted(blockers, key=lambda b: b.sort_key)


def find_blocker(interval: Interval, blockers: Iterable[Blocker]) -> Optional[Blocker]:
    """Return the first blocker overlapping ``interval``, or None if it is free."""
    overlapping = [b for b in blockers if b.interval.overlaps(interval)]
    return min(overlapping, key=lambda b: b.sort_key, default=None)


def _outside_hours(slot: Interval, hours: Optional[Interval]) -> Optional[Blocker]:
    """Blocker for the part of ``slot`` that falls outside opening hours, if any."""
    if hours is None or hours.contains(slot):
        return None
    if slot.start < hours.start:
        outside = Interval(slot.start, min(hours.start, slot.end))
    else:
        outside = Interval(max(hours.end, slot.start), slot.end)
    return Blocker(kind=KIND_CLOSED, id=None, interval=outside)


def resolve_slots(
    slots: Iterable[Interval],
    blockers: Iterable[Blocker],
    hours: Optional[Interval] = None,
) -> List[SlotAvailability]:
    """
    Mark each candidate slot available or blocked by its first overlapping blocker.

    When ``hours`` is given, a slot reaching outside it (the leading slot of
    a grid floored below the opening time) is never available; it reports a
    ``closed`` blocker unless a stored blocker already covers it.
    """
    ordered = sorted(blockers, key=lambda b: b.sort_key)
    resolved = []
    for slot in slots:
        blocker = next((b for b in ordered if b.interval.overlaps(slot)), None)
        if blocker is None:
            blocker = _outside_hours(slot, hours)
        resolved.append(
            SlotAvailability(interval=slot, available=blocker is None, blocked_by=blocker)
        )
    return resolved
