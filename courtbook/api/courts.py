"""Court endpoints."""
from typing import List
from fastapi import APIRouter, Depends, Query
from sqlalchemy import select, and_
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from courtbook.core.database import get_db, get_session_factory
from courtbook.core.errors import ResourceNotFound
from courtbook.models.court import Court
from courtbook.models.court_availability import CourtAvailability
from courtbook.schemas.conflict import AvailabilityWindowInDB, AvailabilityWindowsReplace
from courtbook.schemas.venue import CourtInDB, CourtUpdate
from courtbook.services.booking_service import booking_service
from courtbook.services.intervals import parse_date

router = APIRouter(prefix="/courts", tags=["courts"])


@router.get("/{court_id}", response_model=CourtInDB)
async def get_court(
    court_id: int,
    db: AsyncSession = Depends(get_db),
):
    """Get a specific court by ID."""
    result = await db.execute(select(Court).where(Court.id == court_id))
    court = result.scalar_one_or_none()

    if not court:
        raise ResourceNotFound(f"Court {court_id} not found")

    return court


@router.patch("/{court_id}", response_model=CourtInDB)
async def update_court(
    court_id: int,
    court_update: CourtUpdate,
    db: AsyncSession = Depends(get_db),
):
    """
    Update a court's information.

    Args:
        court_id: Court ID
        court_update: Fields to update
        db: Database session

    Returns:
        Updated court
    """
    result = await db.execute(select(Court).where(Court.id == court_id))
    court = result.scalar_one_or_none()

    if not court:
        raise ResourceNotFound(f"Court {court_id} not found")

    update_data = court_update.model_dump(exclude_unset=True)
    for field, value in update_data.items():
        setattr(court, field, value)

    await db.commit()
    await db.refresh(court)

    return court


@router.put("/{court_id}/overrides", response_model=List[AvailabilityWindowInDB])
async def replace_overrides(
    court_id: int,
    payload: AvailabilityWindowsReplace,
    session_factory: async_sessionmaker = Depends(get_session_factory),
):
    """
    Replace the explicit availability windows of a court for one date.

    Windows with isAvailable=false block every slot they overlap.

    Args:
        court_id: Court ID
        payload: Date and windows
        session_factory: Write session factory

    Returns:
        Stored windows
    """
    return await booking_service.replace_availability_windows(
        session_factory,
        court_id,
        payload.date,
        [(w.start_time, w.end_time, w.is_available) for w in payload.windows],
    )


@router.get("/{court_id}/overrides", response_model=List[AvailabilityWindowInDB])
async def list_overrides(
    court_id: int,
    date: str = Query(..., description="Date (YYYY-MM-DD)"),
    db: AsyncSession = Depends(get_db),
):
    """List the explicit availability windows of a court for one date."""
    result = await db.execute(
        select(CourtAvailability)
        .where(
            and_(
                CourtAvailability.court_id == court_id,
                CourtAvailability.date == parse_date(date),
            )
        )
        .order_by(CourtAvailability.start_time)
    )
    return result.scalars().all()
