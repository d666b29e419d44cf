"""Availability service: slot grids and proposed-interval checks for courts."""
import logging
from typing import List, Optional
from datetime import date
from sqlalchemy import select, and_
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from courtbook.core.config import settings
from courtbook.core.errors import ResourceNotFound, InvalidInterval
from courtbook.models.venue import Venue
from courtbook.models.court import Court
from courtbook.models.booking import Booking, BLOCKING_STATUSES
from courtbook.models.conflict import Conflict, CONFLICT_ACTIVE
from courtbook.models.court_availability import CourtAvailability
from courtbook.schemas.availability import (
    AvailabilitySlot,
    BlockedBy,
    CourtAvailabilityResponse,
    ProposedSlot,
    VenueAvailabilityResponse,
)
from courtbook.services.intervals import Interval, day_of_week, parse_date, requested_interval
from courtbook.services.overlap import Blocker, collect_blockers, find_blocker, resolve_slots
from courtbook.services.slots import OperatingWindow, SlotGrid, slots_for_date

logger = logging.getLogger(__name__)

CLOSED_MESSAGE = "Venue is closed on this day"


async def get_active_court(db: AsyncSession, court_id: int) -> Court:
    """
    Load an active court together with its venue's operating hours.

    Raises:
        ResourceNotFound: Unknown or inactive court, or soft-deleted venue
    """
    result = await db.execute(
        select(Court)
        .options(selectinload(Court.venue).selectinload(Venue.operating_hours))
        .where(Court.id == court_id)
    )
    court = result.scalar_one_or_none()

    if not court or not court.is_active or court.venue.deleted_at is not None:
        raise ResourceNotFound(f"Court {court_id} not found")

    return court


async def get_active_venue(db: AsyncSession, venue_id: int) -> Venue:
    """Load a venue that has not been soft-deleted, with hours and courts."""
    result = await db.execute(
        select(Venue)
        .options(selectinload(Venue.operating_hours), selectinload(Venue.courts))
        .where(and_(Venue.id == venue_id, Venue.deleted_at.is_(None)))
    )
    venue = result.scalar_one_or_none()

    if not venue:
        raise ResourceNotFound(f"Venue {venue_id} not found")

    return venue


async def load_blockers(
    db: AsyncSession,
    court_id: int,
    target_date: date,
    exclude_booking_id: Optional[int] = None,
    include_windows: bool = True,
) -> List[Blocker]:
    """
    Fetch everything that blocks a court on a date.

    Args:
        db: Database session
        court_id: Court ID
        target_date: Date to inspect
        exclude_booking_id: Booking to ignore (used when rescheduling it)
        include_windows: Whether unavailable override windows count

    Returns:
        Blockers ordered by start time
    """
    bookings = (
        await db.execute(
            select(Booking).where(
                and_(
                    Booking.court_id == court_id,
                    Booking.date == target_date,
                    Booking.status.in_(BLOCKING_STATUSES),
                )
            )
        )
    ).scalars().all()

    conflicts = (
        await db.execute(
            select(Conflict).where(
                and_(
                    Conflict.court_id == court_id,
                    Conflict.date == target_date,
                    Conflict.status == CONFLICT_ACTIVE,
                )
            )
        )
    ).scalars().all()

    windows = []
    if include_windows:
        windows = (
            await db.execute(
                select(CourtAvailability).where(
                    and_(
                        CourtAvailability.court_id == court_id,
                        CourtAvailability.date == target_date,
                        CourtAvailability.is_available.is_(False),
                    )
                )
            )
        ).scalars().all()

    return collect_blockers(bookings, conflicts, windows, exclude_booking_id=exclude_booking_id)


def slot_grid_for_venue(venue: Venue, target_date: date, slot_minutes: Optional[int] = None) -> SlotGrid:
    """Build the slot grid shared by all courts of a venue from its weekly hours."""
    windows = [OperatingWindow.from_model(h) for h in venue.operating_hours]
    return slots_for_date(windows, target_date, slot_minutes or settings.SLOT_MINUTES)


def _blocked_by(blocker: Optional[Blocker]) -> Optional[BlockedBy]:
    if blocker is None:
        return None
    return BlockedBy(
        kind=blocker.kind,
        id=blocker.id,
        start_time=blocker.interval.start_time,
        end_time=blocker.interval.end_time,
    )


class AvailabilityService:
    """Service answering "which slots of this court are free on this date"."""

    async def get_court_availability(
        self,
        db: AsyncSession,
        court_id: int,
        date_value,
        start_time: Optional[str] = None,
        duration: Optional[int] = None,
        slot_minutes: Optional[int] = None,
    ) -> CourtAvailabilityResponse:
        """
        Compute the slot grid of a court for a date.

        Args:
            db: Database session
            court_id: Court ID
            date_value: Date as "YYYY-MM-DD"
            start_time: Optional proposed start ("HH:MM")
            duration: Proposed duration in minutes, required with start_time
            slot_minutes: Slot width override

        Returns:
            Slot grid, with closed=True when the venue does not open that day
        """
        target_date = parse_date(date_value)

        proposed_interval = None
        if start_time is not None or duration is not None:
            if start_time is None or duration is None:
                raise InvalidInterval("start_time and duration must be given together")
            proposed_interval = requested_interval(start_time, duration=duration)

        court = await get_active_court(db, court_id)
        grid = slot_grid_for_venue(court.venue, target_date, slot_minutes)
        blockers = [] if grid.closed else await load_blockers(db, court.id, target_date)

        return self._build_response(
            court, target_date, grid, blockers, proposed_interval, slot_minutes
        )

    async def get_venue_availability(
        self,
        db: AsyncSession,
        venue_id: int,
        date_value,
        slot_minutes: Optional[int] = None,
    ) -> VenueAvailabilityResponse:
        """Compute slot grids for every active court of a venue."""
        target_date = parse_date(date_value)
        venue = await get_active_venue(db, venue_id)

        grid = slot_grid_for_venue(venue, target_date, slot_minutes)
        courts = []
        for court in sorted(venue.courts, key=lambda c: (c.name, c.id)):
            if not court.is_active:
                continue
            blockers = [] if grid.closed else await load_blockers(db, court.id, target_date)
            courts.append(
                self._build_response(court, target_date, grid, blockers, None, slot_minutes)
            )

        logger.debug(f"Computed availability for venue {venue_id} on {target_date}")

        return VenueAvailabilityResponse(
            venue_id=venue.id,
            venue_name=venue.name,
            date=target_date,
            closed=grid.closed,
            message=CLOSED_MESSAGE if grid.closed else None,
            courts=courts,
        )

    def _build_response(
        self,
        court: Court,
        target_date: date,
        grid: SlotGrid,
        blockers: List[Blocker],
        proposed_interval: Optional[Interval],
        slot_minutes: Optional[int],
    ) -> CourtAvailabilityResponse:
        slots = [
            AvailabilitySlot(
                start_time=s.interval.start_time,
                end_time=s.interval.end_time,
                available=s.available,
                blocked_by=_blocked_by(s.blocked_by),
            )
            for s in resolve_slots(grid.slots, blockers, grid.hours)
        ]

        proposed = None
        if proposed_interval is not None:
            within = grid.hours is not None and grid.hours.contains(proposed_interval)
            blocker = find_blocker(proposed_interval, blockers)
            proposed = ProposedSlot(
                start_time=proposed_interval.start_time,
                end_time=proposed_interval.end_time,
                available=within and blocker is None,
                within_operating_hours=within,
                blocked_by=_blocked_by(blocker),
            )

        return CourtAvailabilityResponse(
            court_id=court.id,
            court_name=court.name,
            venue_id=court.venue_id,
            date=target_date,
            day_of_week=day_of_week(target_date),
            closed=grid.closed,
            message=CLOSED_MESSAGE if grid.closed else None,
            slot_minutes=slot_minutes or settings.SLOT_MINUTES,
            price_per_hour=court.price_per_hour,
            operating_hours=grid.window.label if grid.window else None,
            slots=slots,
            proposed=proposed,
        )


# Singleton instance
availability_service = AvailabilityService()
