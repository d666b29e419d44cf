"""Availability endpoints."""
from typing import Optional
from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from courtbook.core.database import get_db
from courtbook.schemas.availability import (
    CourtAvailabilityResponse,
    VenueAvailabilityResponse,
)
from courtbook.services.availability_service import availability_service

router = APIRouter(tags=["availability"])


@router.get("/courts/{court_id}/availability", response_model=CourtAvailabilityResponse)
async def get_court_availability(
    court_id: int,
    date: str = Query(..., description="Date (YYYY-MM-DD)"),
    start_time: Optional[str] = Query(
        default=None, alias="startTime", description="Proposed start (HH:MM)"
    ),
    start_time_snake: Optional[str] = Query(
        default=None, alias="start_time", description="Same as startTime"
    ),
    duration: Optional[int] = Query(
        default=None, description="Proposed duration in minutes"
    ),
    db: AsyncSession = Depends(get_db),
):
    """
    Get the slot grid of a court for a date.

    Each slot reports whether it is available and, if not, which booking,
    conflict or unavailable window blocks it. On days the venue does not
    open, the response has closed=true and no slots.

    Args:
        court_id: Court ID
        date: Date to inspect
        start_time: Optional proposed start to check (startTime or start_time)
        duration: Proposed duration, required with start_time
        db: Database session

    Returns:
        Slot grid
    """
    return await availability_service.get_court_availability(
        db, court_id, date, start_time=start_time or start_time_snake, duration=duration
    )


@router.get("/venues/{venue_id}/availability", response_model=VenueAvailabilityResponse)
async def get_venue_availability(
    venue_id: int,
    date: str = Query(..., description="Date (YYYY-MM-DD)"),
    db: AsyncSession = Depends(get_db),
):
    """
    Get slot grids for every active court of a venue.

    Args:
        venue_id: Venue ID
        date: Date to inspect
        db: Database session

    Returns:
        Slot grids per court
    """
    return await availability_service.get_venue_availability(db, venue_id, date)
