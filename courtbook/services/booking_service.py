"""Booking service: transactional booking writes, blackouts and lifecycle."""
import asyncio
import logging
from datetime import date, datetime, timedelta
from decimal import Decimal, ROUND_HALF_UP
from typing import Awaitable, Callable, List, Optional, Tuple, TypeVar

import pytz
from sqlalchemy import select, and_
from sqlalchemy.exc import DBAPIError, IntegrityError, OperationalError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.orm import selectinload

from courtbook.core.config import settings
from courtbook.core.database import serializable_transaction
from courtbook.core.errors import (
    InvalidInterval,
    InvalidStatusTransition,
    ResourceClosed,
    ResourceNotFound,
    SlotConflict,
    TransientStoreError,
)
from courtbook.core.metrics import MetricsRecorder
from courtbook.models.booking import Booking, BookingStatus, BLOCKING_STATUSES
from courtbook.models.conflict import Conflict, CONFLICT_ACTIVE, CONFLICT_RESOLVED
from courtbook.models.court import Court
from courtbook.models.court_availability import CourtAvailability
from courtbook.services.availability_service import (
    get_active_court,
    load_blockers,
    slot_grid_for_venue,
)
from courtbook.services.intervals import (
    Interval,
    MINUTES_PER_DAY,
    parse_date,
    requested_interval,
)
from courtbook.services.overlap import KIND_BOOKING, KIND_CONFLICT, Blocker, find_blocker

logger = logging.getLogger(__name__)

T = TypeVar("T")

ALLOWED_TRANSITIONS = {
    BookingStatus.PENDING: {BookingStatus.CONFIRMED, BookingStatus.CANCELLED},
    BookingStatus.CONFIRMED: {
        BookingStatus.CANCELLED,
        BookingStatus.COMPLETED,
        BookingStatus.NO_SHOW,
    },
}

# Serialization failure and deadlock
_RETRYABLE_SQLSTATES = {"40001", "40P01"}


def _is_transient(exc: DBAPIError) -> bool:
    if isinstance(exc, IntegrityError):
        return False
    if isinstance(exc, OperationalError) or exc.connection_invalidated:
        return True
    orig = exc.orig
    sqlstate = getattr(orig, "sqlstate", None) or getattr(orig, "pgcode", None)
    return sqlstate in _RETRYABLE_SQLSTATES


def _utcnow() -> datetime:
    return datetime.now(pytz.UTC)


def _conflict_error(blocker: Blocker) -> SlotConflict:
    return SlotConflict(
        f"Requested time overlaps {blocker.kind} {blocker.id} "
        f"({blocker.interval.start_time}-{blocker.interval.end_time})",
        conflicting_id=blocker.id,
        conflicting_kind=blocker.kind,
    )


def validate_duration(interval: Interval) -> None:
    """Enforce the configured booking length rules."""
    minutes = interval.duration
    if minutes < settings.BOOKING_MIN_MINUTES or minutes > settings.BOOKING_MAX_MINUTES:
        raise InvalidInterval(
            f"Duration must be between {settings.BOOKING_MIN_MINUTES} and "
            f"{settings.BOOKING_MAX_MINUTES} minutes, got {minutes}"
        )
    if minutes % settings.BOOKING_STEP_MINUTES:
        raise InvalidInterval(
            f"Duration must be a multiple of {settings.BOOKING_STEP_MINUTES} minutes"
        )


def ensure_within_operating_hours(court: Court, target_date: date, interval: Interval) -> None:
    """
    Check that the venue is open for the whole interval.

    Raises:
        ResourceClosed: Closed that day or interval outside opening hours
        ConfigurationError: Operating hours are malformed
    """
    grid = slot_grid_for_venue(court.venue, target_date)
    if grid.closed:
        raise ResourceClosed(f"Venue is closed on {target_date.isoformat()}")
    if not grid.hours.contains(interval):
        raise ResourceClosed(
            f"Requested time {interval} is outside operating hours {grid.window.label}"
        )


def booking_price(court: Court, interval: Interval) -> Decimal:
    price = Decimal(court.price_per_hour or 0) * interval.duration / 60
    return price.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)


class BookingService:
    """Service owning every write that can change what is bookable."""

    async def _with_retries(
        self,
        operation: Callable[[], Awaitable[T]],
        metrics: MetricsRecorder,
        description: str,
    ) -> T:
        """
        Run a transactional operation, retrying transient store failures.

        Domain errors (conflicts, validation) are never retried.
        """
        max_retries = settings.BOOKING_MAX_RETRIES
        for attempt in range(max_retries + 1):
            try:
                return await operation()
            except DBAPIError as e:
                if not _is_transient(e):
                    raise

                if attempt == max_retries:
                    logger.error(f"{description} failed after {attempt + 1} attempts: {e}")
                    raise TransientStoreError(f"{description} failed, please retry") from e

                logger.warning(
                    f"{description} hit a transient store error "
                    f"(attempt {attempt + 1}/{max_retries + 1}): {e}"
                )
                metrics.increment("booking.retry")

                # Exponential backoff
                await asyncio.sleep(settings.BOOKING_RETRY_BACKOFF_SECONDS * (2 ** attempt))

        raise TransientStoreError(f"{description} failed, please retry")

    async def create_booking(
        self,
        session_factory: async_sessionmaker,
        court_id: int,
        date_value,
        start_time: Optional[str],
        end_time: Optional[str] = None,
        duration: Optional[int] = None,
        player_count: int = 1,
        customer_name: Optional[str] = None,
        notes: Optional[str] = None,
        idempotency_key: Optional[str] = None,
        metrics: Optional[MetricsRecorder] = None,
    ) -> Tuple[Booking, bool]:
        """
        Create a booking if the interval is free, atomically.

        The overlap check and the insert run in one serializable
        transaction, so of two concurrent requests for the same interval
        exactly one commits and the other gets SlotConflict.

        Args:
            session_factory: Factory for the write session
            court_id: Court to book
            date_value: Date as "YYYY-MM-DD"
            start_time: Start as "HH:MM"
            end_time: End as "HH:MM" (or give duration)
            duration: Length in minutes (or give end_time)
            player_count: Number of players
            customer_name: Name shown to the vendor
            notes: Free-form notes
            idempotency_key: Replays with the same key return the first booking
            metrics: Metrics recorder

        Returns:
            (booking, created) where created is False for an idempotent replay

        Raises:
            InvalidDate, InvalidInterval, ResourceClosed, ResourceNotFound,
            SlotConflict, TransientStoreError
        """
        metrics = metrics or MetricsRecorder()

        # Validated before touching the store
        target_date = parse_date(date_value)
        interval = requested_interval(start_time, end_time, duration)
        validate_duration(interval)

        async def attempt() -> Tuple[Booking, bool]:
            try:
                async with serializable_transaction(session_factory) as db:
                    if idempotency_key:
                        existing = await self._by_idempotency_key(db, idempotency_key)
                        if existing:
                            return existing, False

                    court = await get_active_court(db, court_id)
                    ensure_within_operating_hours(court, target_date, interval)

                    blockers = await load_blockers(db, court.id, target_date)
                    blocker = find_blocker(interval, blockers)
                    if blocker:
                        raise _conflict_error(blocker)

                    now = _utcnow()
                    auto_confirm = settings.AUTO_CONFIRM_BOOKINGS
                    booking = Booking(
                        court_id=court.id,
                        venue_id=court.venue_id,
                        date=target_date,
                        start_time=interval.start_time,
                        end_time=interval.end_time,
                        duration=interval.duration,
                        total_price=booking_price(court, interval),
                        status=(
                            BookingStatus.CONFIRMED.value
                            if auto_confirm
                            else BookingStatus.PENDING.value
                        ),
                        player_count=player_count,
                        customer_name=customer_name,
                        notes=notes,
                        idempotency_key=idempotency_key,
                        confirmed_at=now if auto_confirm else None,
                    )
                    db.add(booking)
                    await db.flush()
                    await db.refresh(booking)
            except IntegrityError as e:
                logger.info(f"Booking insert for court {court_id} lost a race: {e.orig}")
                return await self._resolve_lost_race(
                    session_factory, court_id, target_date, interval, idempotency_key
                )
            return booking, True

        try:
            booking, created = await self._with_retries(attempt, metrics, "Booking creation")
        except SlotConflict as e:
            metrics.increment("booking.conflict", kind=e.conflicting_kind or "unknown")
            logger.info(f"Rejected booking for court {court_id} on {target_date} {interval}: {e.message}")
            raise

        if created:
            metrics.increment("booking.created")
            logger.info(
                f"Created booking {booking.id} for court {court_id} on {target_date} {interval}"
            )
        else:
            metrics.increment("booking.replayed")
            logger.info(f"Returning booking {booking.id} for idempotency key replay")

        return booking, created

    async def _by_idempotency_key(self, db: AsyncSession, key: str) -> Optional[Booking]:
        result = await db.execute(select(Booking).where(Booking.idempotency_key == key))
        return result.scalar_one_or_none()

    async def _resolve_lost_race(
        self,
        session_factory: async_sessionmaker,
        court_id: int,
        target_date: date,
        interval: Interval,
        idempotency_key: Optional[str],
    ) -> Tuple[Booking, bool]:
        """Explain a unique-index violation using the committed state."""
        async with session_factory() as db:
            if idempotency_key:
                existing = await self._by_idempotency_key(db, idempotency_key)
                if existing:
                    return existing, False

            blocker = find_blocker(interval, await load_blockers(db, court_id, target_date))

        if blocker:
            raise _conflict_error(blocker)
        raise SlotConflict("Requested time was taken by a concurrent booking")

    async def get_booking(self, db: AsyncSession, booking_id: int) -> Booking:
        result = await db.execute(select(Booking).where(Booking.id == booking_id))
        booking = result.scalar_one_or_none()
        if not booking:
            raise ResourceNotFound(f"Booking {booking_id} not found")
        return booking

    async def list_bookings(
        self,
        db: AsyncSession,
        court_id: Optional[int] = None,
        date_value=None,
        status: Optional[BookingStatus] = None,
        skip: int = 0,
        limit: int = 100,
    ) -> List[Booking]:
        """List bookings ordered by date and start time."""
        query = select(Booking)
        if court_id is not None:
            query = query.where(Booking.court_id == court_id)
        if date_value is not None:
            query = query.where(Booking.date == parse_date(date_value))
        if status is not None:
            query = query.where(Booking.status == BookingStatus(status).value)

        result = await db.execute(
            query.order_by(Booking.date, Booking.start_time, Booking.id).offset(skip).limit(limit)
        )
        return list(result.scalars().all())

    async def update_booking(
        self,
        session_factory: async_sessionmaker,
        booking_id: int,
        status: Optional[BookingStatus] = None,
        date_value=None,
        start_time: Optional[str] = None,
        end_time: Optional[str] = None,
        duration: Optional[int] = None,
        player_count: Optional[int] = None,
        notes: Optional[str] = None,
        metrics: Optional[MetricsRecorder] = None,
    ) -> Booking:
        """
        Change a booking's status and/or time.

        A new time goes through the same transactional overlap gate as
        creation, ignoring the booking itself.
        """
        metrics = metrics or MetricsRecorder()
        reschedule = any(v is not None for v in (date_value, start_time, end_time, duration))
        new_status = BookingStatus(status) if status is not None else None

        async def attempt() -> Booking:
            try:
                async with serializable_transaction(session_factory) as db:
                    booking = await self._locked_booking(db, booking_id)
                    current = BookingStatus(booking.status)

                    if new_status is not None and new_status != current:
                        if new_status not in ALLOWED_TRANSITIONS.get(current, set()):
                            raise InvalidStatusTransition(
                                f"Cannot change booking {booking_id} from "
                                f"{current.value} to {new_status.value}"
                            )

                    if reschedule:
                        if current.value not in BLOCKING_STATUSES:
                            raise InvalidStatusTransition(
                                f"Booking {booking_id} is {current.value} and cannot be rescheduled"
                            )
                        await self._reschedule(db, booking, date_value, start_time, end_time, duration)

                    if new_status is not None and new_status != current:
                        self._apply_status(booking, new_status)
                    if player_count is not None:
                        booking.player_count = player_count
                    if notes is not None:
                        booking.notes = notes

                    await db.flush()
                    await db.refresh(booking)
            except IntegrityError as e:
                logger.info(f"Rescheduling booking {booking_id} lost a race: {e.orig}")
                raise SlotConflict("Requested time was taken by a concurrent booking")
            return booking

        try:
            booking = await self._with_retries(attempt, metrics, "Booking update")
        except SlotConflict as e:
            metrics.increment("booking.conflict", kind=e.conflicting_kind or "unknown")
            raise

        logger.info(f"Updated booking {booking_id}: status={booking.status} {booking.start_time}-{booking.end_time}")
        return booking

    async def cancel_booking(
        self,
        session_factory: async_sessionmaker,
        booking_id: int,
        metrics: Optional[MetricsRecorder] = None,
    ) -> Booking:
        """Cancel a booking; its interval becomes bookable immediately."""
        booking = await self.update_booking(
            session_factory, booking_id, status=BookingStatus.CANCELLED, metrics=metrics
        )
        (metrics or MetricsRecorder()).increment("booking.cancelled")
        return booking

    async def _locked_booking(self, db: AsyncSession, booking_id: int) -> Booking:
        result = await db.execute(
            select(Booking).where(Booking.id == booking_id).with_for_update()
        )
        booking = result.scalar_one_or_none()
        if not booking:
            raise ResourceNotFound(f"Booking {booking_id} not found")
        return booking

    async def _reschedule(
        self,
        db: AsyncSession,
        booking: Booking,
        date_value,
        start_time: Optional[str],
        end_time: Optional[str],
        duration: Optional[int],
    ) -> None:
        target_date = parse_date(date_value) if date_value is not None else booking.date

        # Keep the current length when only the start moves
        if end_time is None and duration is None:
            duration = booking.duration
        interval = requested_interval(start_time or booking.start_time, end_time, duration)
        validate_duration(interval)

        court = await get_active_court(db, booking.court_id)
        ensure_within_operating_hours(court, target_date, interval)

        blockers = await load_blockers(
            db, court.id, target_date, exclude_booking_id=booking.id
        )
        blocker = find_blocker(interval, blockers)
        if blocker:
            raise _conflict_error(blocker)

        booking.date = target_date
        booking.start_time = interval.start_time
        booking.end_time = interval.end_time
        booking.duration = interval.duration
        booking.total_price = booking_price(court, interval)

    def _apply_status(self, booking: Booking, status: BookingStatus) -> None:
        booking.status = status.value
        if status == BookingStatus.CONFIRMED:
            booking.confirmed_at = _utcnow()
        elif status == BookingStatus.CANCELLED:
            booking.cancelled_at = _utcnow()

    async def create_conflict(
        self,
        session_factory: async_sessionmaker,
        court_id: int,
        date_value,
        start_time: str,
        end_time: str,
        reason: Optional[str] = None,
        metrics: Optional[MetricsRecorder] = None,
    ) -> Conflict:
        """
        Block part of a court's day.

        Rejected with SlotConflict when it overlaps an active booking or
        another active conflict.
        """
        metrics = metrics or MetricsRecorder()
        target_date = parse_date(date_value)
        interval = requested_interval(start_time, end_time)

        async def attempt() -> Conflict:
            async with serializable_transaction(session_factory) as db:
                court = await get_active_court(db, court_id)
                blockers = [
                    b
                    for b in await load_blockers(db, court.id, target_date, include_windows=False)
                    if b.kind in (KIND_BOOKING, KIND_CONFLICT)
                ]
                blocker = find_blocker(interval, blockers)
                if blocker:
                    raise _conflict_error(blocker)

                conflict = Conflict(
                    court_id=court.id,
                    date=target_date,
                    start_time=interval.start_time,
                    end_time=interval.end_time,
                    reason=reason,
                    status=CONFLICT_ACTIVE,
                )
                db.add(conflict)
                await db.flush()
                await db.refresh(conflict)
            return conflict

        try:
            conflict = await self._with_retries(attempt, metrics, "Conflict creation")
        except SlotConflict as e:
            metrics.increment("booking.conflict", kind=e.conflicting_kind or "unknown")
            raise

        metrics.increment("conflict.created")
        logger.info(f"Blocked court {court_id} on {target_date} {interval}: {reason}")
        return conflict

    async def resolve_conflict(
        self, session_factory: async_sessionmaker, conflict_id: int
    ) -> Conflict:
        """Mark a conflict resolved so it stops blocking."""
        async with serializable_transaction(session_factory) as db:
            result = await db.execute(select(Conflict).where(Conflict.id == conflict_id))
            conflict = result.scalar_one_or_none()
            if not conflict:
                raise ResourceNotFound(f"Conflict {conflict_id} not found")

            if conflict.status != CONFLICT_RESOLVED:
                conflict.status = CONFLICT_RESOLVED
                conflict.resolved_at = _utcnow()

        logger.info(f"Resolved conflict {conflict_id}")
        return conflict

    async def replace_availability_windows(
        self,
        session_factory: async_sessionmaker,
        court_id: int,
        date_value,
        windows: List[Tuple[str, str, bool]],
    ) -> List[CourtAvailability]:
        """Replace every override window of a court for one date."""
        target_date = parse_date(date_value)
        intervals = [(requested_interval(s, e), available) for s, e, available in windows]

        async with serializable_transaction(session_factory) as db:
            court = await get_active_court(db, court_id)
            existing = (
                await db.execute(
                    select(CourtAvailability).where(
                        and_(
                            CourtAvailability.court_id == court.id,
                            CourtAvailability.date == target_date,
                        )
                    )
                )
            ).scalars().all()
            for window in existing:
                await db.delete(window)

            created = [
                CourtAvailability(
                    court_id=court.id,
                    date=target_date,
                    start_time=interval.start_time,
                    end_time=interval.end_time,
                    is_available=available,
                )
                for interval, available in intervals
            ]
            db.add_all(created)
            await db.flush()

        return created

    async def complete_finished_bookings(
        self,
        session_factory: async_sessionmaker,
        now: Optional[datetime] = None,
    ) -> int:
        """
        Mark CONFIRMED bookings whose end has passed as COMPLETED.

        "Passed" is judged in each venue's local timezone.

        Returns:
            Number of bookings completed
        """
        now = now or _utcnow()
        if now.tzinfo is None:
            now = pytz.UTC.localize(now)

        # Every timezone is within a day of UTC
        horizon = now.date() + timedelta(days=1)
        completed = 0

        async with serializable_transaction(session_factory) as db:
            result = await db.execute(
                select(Booking)
                .options(selectinload(Booking.court).selectinload(Court.venue))
                .where(
                    and_(
                        Booking.status == BookingStatus.CONFIRMED.value,
                        Booking.date <= horizon,
                    )
                )
            )
            for booking in result.scalars().all():
                venue_tz = pytz.timezone(booking.court.venue.timezone or "UTC")
                local_now = now.astimezone(venue_tz).replace(tzinfo=None)
                if self._ends_at(booking) <= local_now:
                    booking.status = BookingStatus.COMPLETED.value
                    completed += 1

        if completed:
            logger.info(f"Marked {completed} finished bookings as completed")
        return completed

    @staticmethod
    def _ends_at(booking: Booking) -> datetime:
        interval = Interval.from_clock(booking.start_time, booking.end_time)
        midnight = datetime.combine(booking.date, datetime.min.time())
        return midnight + timedelta(minutes=min(interval.end, MINUTES_PER_DAY))


# Singleton instance
booking_service = BookingService()
