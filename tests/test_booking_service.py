"""Tests for the transactional booking write path."""

import asyncio
from datetime import datetime
from decimal import Decimal

import pytest
import pytz
from sqlalchemy import select
from sqlalchemy.exc import OperationalError

from courtbook.core.config import settings
from courtbook.core.errors import (
    InvalidDate,
    InvalidInterval,
    InvalidStatusTransition,
    ResourceClosed,
    ResourceNotFound,
    SlotConflict,
    TransientStoreError,
)
from courtbook.models import Booking, BookingStatus, Court
from courtbook.services.booking_service import booking_service

from tests.conftest import CLOSED_DAY, OPEN_DAY


async def _book(session_factory, court, start="14:00", end="15:00", **kwargs):
    booking, _ = await booking_service.create_booking(
        session_factory, court.id, kwargs.pop("on", OPEN_DAY), start, end, **kwargs
    )
    return booking


async def _bookings(session_factory, court):
    async with session_factory() as db:
        result = await db.execute(select(Booking).where(Booking.court_id == court.id))
        return result.scalars().all()


class TestCreateBooking:
    """Creating bookings through the write gate."""

    @pytest.mark.asyncio
    async def test_creates_pending_booking_with_price(self, session_factory, court, metrics):
        booking, created = await booking_service.create_booking(
            session_factory,
            court.id,
            OPEN_DAY,
            "14:00",
            duration=90,
            customer_name="Ana",
            metrics=metrics,
        )

        assert created is True
        assert booking.id is not None
        assert booking.status == BookingStatus.PENDING.value
        assert booking.end_time == "15:30"
        assert booking.duration == 90
        assert booking.total_price == Decimal("60.00")
        assert booking.venue_id == court.venue_id
        assert metrics.snapshot()["counters"]["booking.created"] == 1

    @pytest.mark.asyncio
    async def test_overlap_raises_slot_conflict(self, session_factory, court, metrics):
        first = await _book(session_factory, court)

        with pytest.raises(SlotConflict) as exc_info:
            await _book(session_factory, court, "14:30", "15:30", metrics=metrics)

        assert exc_info.value.conflicting_id == first.id
        assert exc_info.value.conflicting_kind == "booking"
        assert metrics.snapshot()["counters"]["booking.conflict{kind=booking}"] == 1
        assert len(await _bookings(session_factory, court)) == 1

    @pytest.mark.asyncio
    async def test_adjacent_bookings_allowed(self, session_factory, court):
        await _book(session_factory, court, "14:00", "15:00")
        await _book(session_factory, court, "15:00", "16:00")
        await _book(session_factory, court, "13:00", "14:00")

        assert len(await _bookings(session_factory, court)) == 3

    @pytest.mark.asyncio
    async def test_cancelled_booking_frees_interval(self, session_factory, court, add_booking):
        await add_booking(court, "14:00", "15:00", status=BookingStatus.CANCELLED)

        booking = await _book(session_factory, court)

        assert booking.status == BookingStatus.PENDING.value

    @pytest.mark.asyncio
    @pytest.mark.parametrize("start,end", [("15:00", "15:00"), ("15:00", "14:00"), ("10:00", "09:30")])
    async def test_end_not_after_start(self, session_factory, court, start, end):
        with pytest.raises(InvalidInterval):
            await _book(session_factory, court, start, end)

    @pytest.mark.asyncio
    async def test_end_not_after_start_even_for_unknown_court(self, session_factory):
        with pytest.raises(InvalidInterval):
            await booking_service.create_booking(session_factory, 999, OPEN_DAY, "15:00", "14:00")

    @pytest.mark.asyncio
    async def test_invalid_date(self, session_factory, court):
        with pytest.raises(InvalidDate):
            await _book(session_factory, court, on="03/06/2030")

    @pytest.mark.asyncio
    async def test_duration_rules(self, session_factory, court):
        with pytest.raises(InvalidInterval):
            await _book(session_factory, court, "14:00", "14:15")
        with pytest.raises(InvalidInterval):
            await _book(session_factory, court, "14:00", "14:45")
        with pytest.raises(InvalidInterval):
            await _book(session_factory, court, "06:00", "21:00")

    @pytest.mark.asyncio
    async def test_closed_day(self, session_factory, court):
        with pytest.raises(ResourceClosed) as exc_info:
            await _book(session_factory, court, on=CLOSED_DAY)

        assert exc_info.value.code == "RESOURCE_CLOSED"
        assert isinstance(exc_info.value, InvalidInterval)

    @pytest.mark.asyncio
    async def test_outside_operating_hours(self, session_factory, court):
        with pytest.raises(ResourceClosed):
            await _book(session_factory, court, "21:30", "22:30")
        with pytest.raises(ResourceClosed):
            await _book(session_factory, court, "05:00", "06:30")

    @pytest.mark.asyncio
    async def test_off_boundary_opening(self, session_factory, court, set_opening):
        await set_opening("06:30")

        with pytest.raises(ResourceClosed):
            await _book(session_factory, court, "06:00", "07:00")
        booking = await _book(session_factory, court, "06:30", "07:30")

        assert booking.start_time == "06:30"

    @pytest.mark.asyncio
    async def test_unknown_court(self, session_factory, court):
        with pytest.raises(ResourceNotFound):
            await booking_service.create_booking(session_factory, court.id + 1, OPEN_DAY, "14:00", "15:00")

    @pytest.mark.asyncio
    async def test_inactive_court(self, session_factory, court):
        async with session_factory() as db:
            stored = await db.get(Court, court.id)
            stored.is_active = False
            await db.commit()

        with pytest.raises(ResourceNotFound):
            await _book(session_factory, court)

    @pytest.mark.asyncio
    async def test_auto_confirm(self, session_factory, court, monkeypatch):
        monkeypatch.setattr(settings, "AUTO_CONFIRM_BOOKINGS", True)

        booking = await _book(session_factory, court)

        assert booking.status == BookingStatus.CONFIRMED.value
        assert booking.confirmed_at is not None


class TestConcurrentBooking:
    """Racing requests for the same interval."""

    @pytest.mark.asyncio
    async def test_exactly_one_of_two_identical_requests_wins(self, session_factory, court):
        results = await asyncio.gather(
            _book(session_factory, court),
            _book(session_factory, court),
            return_exceptions=True,
        )

        winners = [r for r in results if isinstance(r, Booking)]
        losers = [r for r in results if isinstance(r, SlotConflict)]
        assert len(winners) == 1
        assert len(losers) == 1
        assert losers[0].conflicting_id == winners[0].id
        assert len(await _bookings(session_factory, court)) == 1

    @pytest.mark.asyncio
    async def test_racing_requests_never_store_overlaps(self, session_factory, court):
        starts = ["14:00", "14:30", "14:00", "13:30", "14:30"]

        results = await asyncio.gather(
            *(_book(session_factory, court, s, duration=60, end=None) for s in starts),
            return_exceptions=True,
        )

        winners = [r for r in results if isinstance(r, Booking)]
        assert len(winners) >= 1
        stored = await _bookings(session_factory, court)
        for i, a in enumerate(stored):
            for b in stored[i + 1:]:
                assert not (a.start_time < b.end_time and b.start_time < a.end_time)


class TestIdempotency:
    """Replaying a create with the same Idempotency-Key."""

    @pytest.mark.asyncio
    async def test_replay_returns_original(self, session_factory, court, metrics):
        first, created = await booking_service.create_booking(
            session_factory, court.id, OPEN_DAY, "14:00", "15:00", idempotency_key="abc-123"
        )
        again, replayed_created = await booking_service.create_booking(
            session_factory,
            court.id,
            OPEN_DAY,
            "14:00",
            "15:00",
            idempotency_key="abc-123",
            metrics=metrics,
        )

        assert created is True
        assert replayed_created is False
        assert again.id == first.id
        assert metrics.snapshot()["counters"]["booking.replayed"] == 1
        assert len(await _bookings(session_factory, court)) == 1

    @pytest.mark.asyncio
    async def test_concurrent_replays_create_one_booking(self, session_factory, court):
        results = await asyncio.gather(
            booking_service.create_booking(
                session_factory, court.id, OPEN_DAY, "14:00", "15:00", idempotency_key="same"
            ),
            booking_service.create_booking(
                session_factory, court.id, OPEN_DAY, "14:00", "15:00", idempotency_key="same"
            ),
        )

        assert results[0][0].id == results[1][0].id
        assert sorted(created for _, created in results) == [False, True]


class TestRetries:
    """Transient store failures."""

    @pytest.mark.asyncio
    async def test_transient_errors_are_retried(self, monkeypatch, metrics):
        monkeypatch.setattr(settings, "BOOKING_RETRY_BACKOFF_SECONDS", 0)
        calls = []

        async def flaky():
            calls.append(1)
            if len(calls) < 3:
                raise OperationalError("SELECT 1", {}, Exception("database is locked"))
            return "ok"

        assert await booking_service._with_retries(flaky, metrics, "Test") == "ok"
        assert len(calls) == 3
        assert metrics.snapshot()["counters"]["booking.retry"] == 2

    @pytest.mark.asyncio
    async def test_gives_up_after_max_retries(self, monkeypatch, metrics):
        monkeypatch.setattr(settings, "BOOKING_RETRY_BACKOFF_SECONDS", 0)
        monkeypatch.setattr(settings, "BOOKING_MAX_RETRIES", 2)
        calls = []

        async def broken():
            calls.append(1)
            raise OperationalError("SELECT 1", {}, Exception("connection reset"))

        with pytest.raises(TransientStoreError):
            await booking_service._with_retries(broken, metrics, "Test")
        assert len(calls) == 3

    @pytest.mark.asyncio
    async def test_slot_conflicts_are_not_retried(self, metrics):
        calls = []

        async def conflicting():
            calls.append(1)
            raise SlotConflict("taken", conflicting_id=1, conflicting_kind="booking")

        with pytest.raises(SlotConflict):
            await booking_service._with_retries(conflicting, metrics, "Test")
        assert len(calls) == 1


class TestUpdateBooking:
    """Status transitions and rescheduling."""

    @pytest.mark.asyncio
    async def test_confirm_then_complete(self, session_factory, court):
        booking = await _book(session_factory, court)

        confirmed = await booking_service.update_booking(
            session_factory, booking.id, status=BookingStatus.CONFIRMED
        )
        completed = await booking_service.update_booking(
            session_factory, booking.id, status=BookingStatus.COMPLETED
        )

        assert confirmed.confirmed_at is not None
        assert completed.status == BookingStatus.COMPLETED.value

    @pytest.mark.asyncio
    async def test_terminal_states_stay_terminal(self, session_factory, court):
        booking = await _book(session_factory, court)
        await booking_service.cancel_booking(session_factory, booking.id)

        with pytest.raises(InvalidStatusTransition):
            await booking_service.update_booking(
                session_factory, booking.id, status=BookingStatus.CONFIRMED
            )

    @pytest.mark.asyncio
    async def test_pending_cannot_complete(self, session_factory, court):
        booking = await _book(session_factory, court)

        with pytest.raises(InvalidStatusTransition):
            await booking_service.update_booking(
                session_factory, booking.id, status=BookingStatus.COMPLETED
            )

    @pytest.mark.asyncio
    async def test_cancel_frees_interval(self, session_factory, court, metrics):
        booking = await _book(session_factory, court)

        cancelled = await booking_service.cancel_booking(session_factory, booking.id, metrics=metrics)
        replacement = await _book(session_factory, court)

        assert cancelled.status == BookingStatus.CANCELLED.value
        assert cancelled.cancelled_at is not None
        assert replacement.id != booking.id
        assert metrics.snapshot()["counters"]["booking.cancelled"] == 1

    @pytest.mark.asyncio
    async def test_reschedule_overlapping_itself(self, session_factory, court):
        booking = await _book(session_factory, court, "14:00", "15:00")

        moved = await booking_service.update_booking(session_factory, booking.id, start_time="14:30")

        assert moved.start_time == "14:30"
        assert moved.end_time == "15:30"
        assert moved.duration == 60

    @pytest.mark.asyncio
    async def test_reschedule_into_other_booking(self, session_factory, court):
        other = await _book(session_factory, court, "16:00", "17:00")
        booking = await _book(session_factory, court, "14:00", "15:00")

        with pytest.raises(SlotConflict) as exc_info:
            await booking_service.update_booking(
                session_factory, booking.id, start_time="15:30", end_time="16:30"
            )

        assert exc_info.value.conflicting_id == other.id
        async with session_factory() as db:
            unchanged = await booking_service.get_booking(db, booking.id)
        assert unchanged.start_time == "14:00"

    @pytest.mark.asyncio
    async def test_reschedule_to_closed_day(self, session_factory, court):
        booking = await _book(session_factory, court)

        with pytest.raises(ResourceClosed):
            await booking_service.update_booking(session_factory, booking.id, date_value=CLOSED_DAY)

    @pytest.mark.asyncio
    async def test_reschedule_cancelled_booking(self, session_factory, court):
        booking = await _book(session_factory, court)
        await booking_service.cancel_booking(session_factory, booking.id)

        with pytest.raises(InvalidStatusTransition):
            await booking_service.update_booking(session_factory, booking.id, start_time="16:00")

    @pytest.mark.asyncio
    async def test_unknown_booking(self, session_factory, court):
        with pytest.raises(ResourceNotFound):
            await booking_service.cancel_booking(session_factory, 12345)


class TestConflicts:
    """Administrative blackouts share the write gate."""

    @pytest.mark.asyncio
    async def test_conflict_blocks_bookings(self, session_factory, court):
        conflict = await booking_service.create_conflict(
            session_factory, court.id, OPEN_DAY, "10:00", "12:00", reason="Maintenance"
        )

        with pytest.raises(SlotConflict) as exc_info:
            await _book(session_factory, court, "11:00", "12:00")

        assert exc_info.value.conflicting_kind == "conflict"
        assert exc_info.value.conflicting_id == conflict.id

    @pytest.mark.asyncio
    async def test_conflict_rejected_over_booking(self, session_factory, court):
        booking = await _book(session_factory, court)

        with pytest.raises(SlotConflict) as exc_info:
            await booking_service.create_conflict(session_factory, court.id, OPEN_DAY, "13:00", "14:30")

        assert exc_info.value.conflicting_id == booking.id

    @pytest.mark.asyncio
    async def test_conflicts_cannot_overlap_each_other(self, session_factory, court):
        await booking_service.create_conflict(session_factory, court.id, OPEN_DAY, "10:00", "12:00")

        with pytest.raises(SlotConflict):
            await booking_service.create_conflict(session_factory, court.id, OPEN_DAY, "11:00", "13:00")

    @pytest.mark.asyncio
    async def test_resolved_conflict_stops_blocking(self, session_factory, court):
        conflict = await booking_service.create_conflict(
            session_factory, court.id, OPEN_DAY, "14:00", "15:00"
        )

        resolved = await booking_service.resolve_conflict(session_factory, conflict.id)
        booking = await _book(session_factory, court)

        assert resolved.status == "resolved"
        assert resolved.resolved_at is not None
        assert booking.start_time == "14:00"


class TestAvailabilityWindows:
    """Explicit availability overrides."""

    @pytest.mark.asyncio
    async def test_unavailable_window_blocks_bookings(self, session_factory, court):
        windows = await booking_service.replace_availability_windows(
            session_factory, court.id, OPEN_DAY, [("14:00", "16:00", False), ("18:00", "19:00", True)]
        )

        with pytest.raises(SlotConflict) as exc_info:
            await _book(session_factory, court)

        assert exc_info.value.conflicting_kind == "unavailable"
        assert exc_info.value.conflicting_id == windows[0].id
        assert await _book(session_factory, court, "18:00", "19:00")

    @pytest.mark.asyncio
    async def test_replace_drops_previous_windows(self, session_factory, court):
        await booking_service.replace_availability_windows(
            session_factory, court.id, OPEN_DAY, [("14:00", "16:00", False)]
        )
        await booking_service.replace_availability_windows(session_factory, court.id, OPEN_DAY, [])

        assert await _book(session_factory, court)


class TestLifecycleSweep:
    """Completing bookings whose end has passed."""

    @pytest.mark.asyncio
    async def test_completes_only_finished_confirmed_bookings(self, session_factory, court, add_booking):
        finished = await add_booking(court, "09:00", "10:00")
        upcoming = await add_booking(court, "18:00", "19:00")
        pending = await add_booking(court, "08:00", "09:00", status=BookingStatus.PENDING)

        # 12:00 in Madrid (UTC+2 in June)
        now = pytz.UTC.localize(datetime(2030, 6, 3, 10, 0))
        completed = await booking_service.complete_finished_bookings(session_factory, now=now)

        assert completed == 1
        async with session_factory() as db:
            assert (await booking_service.get_booking(db, finished.id)).status == "COMPLETED"
            assert (await booking_service.get_booking(db, upcoming.id)).status == "CONFIRMED"
            assert (await booking_service.get_booking(db, pending.id)).status == "PENDING"

    @pytest.mark.asyncio
    async def test_uses_venue_local_time(self, session_factory, court, add_booking):
        booking = await add_booking(court, "09:00", "10:00")

        # 07:30 UTC is 09:30 in Madrid
        now = pytz.UTC.localize(datetime(2030, 6, 3, 7, 30))
        assert await booking_service.complete_finished_bookings(session_factory, now=now) == 0

        # 08:00 UTC is 10:00 in Madrid
        later = pytz.UTC.localize(datetime(2030, 6, 3, 8, 0))
        assert await booking_service.complete_finished_bookings(session_factory, now=later) == 1

        async with session_factory() as db:
            assert (await booking_service.get_booking(db, booking.id)).status == "COMPLETED"
