"""Booking endpoints."""
from typing import List, Optional
from fastapi import APIRouter, Depends, Header, Query, Response
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from courtbook.core.database import get_db, get_session_factory
from courtbook.core.metrics import MetricsRecorder, get_metrics
from courtbook.models.booking import BookingStatus
from courtbook.schemas.booking import BookingCreate, BookingInDB, BookingUpdate
from courtbook.services.booking_service import booking_service

router = APIRouter(prefix="/bookings", tags=["bookings"])


@router.post("", response_model=BookingInDB, status_code=201)
async def create_booking(
    booking: BookingCreate,
    response: Response,
    idempotency_key: Optional[str] = Header(default=None, max_length=128),
    session_factory: async_sessionmaker = Depends(get_session_factory),
    metrics: MetricsRecorder = Depends(get_metrics),
):
    """
    Book a court for an interval.

    The overlap check is repeated inside the write transaction, so a slot
    shown as free a moment ago can still be rejected with SLOT_CONFLICT
    if someone else booked it first. Sending the same Idempotency-Key
    again returns the original booking with status 200.

    Args:
        booking: Court, date, start and end (or duration)
        response: Outgoing response, used to set 200 for replays
        idempotency_key: Optional Idempotency-Key header
        session_factory: Write session factory
        metrics: Metrics recorder

    Returns:
        Created booking
    """
    db_booking, created = await booking_service.create_booking(
        session_factory,
        court_id=booking.court_id,
        date_value=booking.date,
        start_time=booking.start_time,
        end_time=booking.end_time,
        duration=booking.duration,
        player_count=booking.player_count,
        customer_name=booking.customer_name,
        notes=booking.notes,
        idempotency_key=idempotency_key,
        metrics=metrics,
    )

    if not created:
        response.status_code = 200

    return db_booking


@router.get("", response_model=List[BookingInDB])
async def list_bookings(
    court_id: Optional[int] = Query(default=None, alias="courtId"),
    date: Optional[str] = Query(default=None, description="Date (YYYY-MM-DD)"),
    status: Optional[BookingStatus] = None,
    skip: int = 0,
    limit: int = Query(default=100, ge=1, le=500),
    db: AsyncSession = Depends(get_db),
):
    """
    List bookings, optionally filtered by court, date and status.

    Args:
        court_id: Court ID
        date: Date (YYYY-MM-DD)
        status: Booking status
        skip: Number of records to skip
        limit: Maximum number of records to return
        db: Database session

    Returns:
        List of bookings
    """
    return await booking_service.list_bookings(
        db, court_id=court_id, date_value=date, status=status, skip=skip, limit=limit
    )


@router.get("/{booking_id}", response_model=BookingInDB)
async def get_booking(
    booking_id: int,
    db: AsyncSession = Depends(get_db),
):
    """Get a specific booking by ID."""
    return await booking_service.get_booking(db, booking_id)


@router.patch("/{booking_id}", response_model=BookingInDB)
async def update_booking(
    booking_id: int,
    booking_update: BookingUpdate,
    session_factory: async_sessionmaker = Depends(get_session_factory),
    metrics: MetricsRecorder = Depends(get_metrics),
):
    """
    Update a booking's status, time or details.

    A new time is checked for overlaps exactly like a new booking.

    Args:
        booking_id: Booking ID
        booking_update: Fields to update
        session_factory: Write session factory
        metrics: Metrics recorder

    Returns:
        Updated booking
    """
    return await booking_service.update_booking(
        session_factory,
        booking_id,
        status=booking_update.status,
        date_value=booking_update.date,
        start_time=booking_update.start_time,
        end_time=booking_update.end_time,
        duration=booking_update.duration,
        player_count=booking_update.player_count,
        notes=booking_update.notes,
        metrics=metrics,
    )


@router.post("/{booking_id}/cancel", response_model=BookingInDB)
async def cancel_booking(
    booking_id: int,
    session_factory: async_sessionmaker = Depends(get_session_factory),
    metrics: MetricsRecorder = Depends(get_metrics),
):
    """
    Cancel a booking. The interval becomes bookable again immediately.

    Args:
        booking_id: Booking ID
        session_factory: Write session factory
        metrics: Metrics recorder

    Returns:
        Cancelled booking
    """
    return await booking_service.cancel_booking(session_factory, booking_id, metrics=metrics)
