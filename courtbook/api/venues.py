"""Venue, operating-hours and court administration endpoints."""
from typing import List
from datetime import datetime
import pytz
from fastapi import APIRouter, Depends
from sqlalchemy import select, and_
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from courtbook.core.database import get_db
from courtbook.core.errors import ResourceNotFound
from courtbook.models.venue import Venue
from courtbook.models.court import Court
from courtbook.models.operating_hours import OperatingHours
from courtbook.schemas.venue import (
    CourtCreate,
    CourtInDB,
    OperatingHoursReplace,
    VenueCreate,
    VenueInDB,
    VenueUpdate,
)

router = APIRouter(prefix="/venues", tags=["venues"])


async def _get_venue_or_404(db: AsyncSession, venue_id: int) -> Venue:
    result = await db.execute(
        select(Venue)
        .options(selectinload(Venue.operating_hours))
        .where(and_(Venue.id == venue_id, Venue.deleted_at.is_(None)))
        .execution_options(populate_existing=True)
    )
    venue = result.scalar_one_or_none()

    if not venue:
        raise ResourceNotFound(f"Venue {venue_id} not found")

    return venue


@router.post("", response_model=VenueInDB, status_code=201)
async def create_venue(
    venue: VenueCreate,
    db: AsyncSession = Depends(get_db),
):
    """
    Create a new venue, optionally with its weekly operating hours.

    Args:
        venue: Venue data
        db: Database session

    Returns:
        Created venue
    """
    data = venue.model_dump(exclude={"operating_hours"})
    db_venue = Venue(**data)
    db_venue.operating_hours = [
        OperatingHours(**entry.model_dump()) for entry in venue.operating_hours
    ]
    db.add(db_venue)
    await db.commit()

    return await _get_venue_or_404(db, db_venue.id)


@router.get("", response_model=List[VenueInDB])
async def list_venues(
    skip: int = 0,
    limit: int = 100,
    db: AsyncSession = Depends(get_db),
):
    """
    List venues that have not been deleted.

    Args:
        skip: Number of records to skip
        limit: Maximum number of records to return
        db: Database session

    Returns:
        List of venues
    """
    result = await db.execute(
        select(Venue)
        .options(selectinload(Venue.operating_hours))
        .where(Venue.deleted_at.is_(None))
        .order_by(Venue.id)
        .offset(skip)
        .limit(limit)
    )
    return result.scalars().all()


@router.get("/{venue_id}", response_model=VenueInDB)
async def get_venue(
    venue_id: int,
    db: AsyncSession = Depends(get_db),
):
    """Get a specific venue by ID."""
    return await _get_venue_or_404(db, venue_id)


@router.patch("/{venue_id}", response_model=VenueInDB)
async def update_venue(
    venue_id: int,
    venue_update: VenueUpdate,
    db: AsyncSession = Depends(get_db),
):
    """
    Update a venue's information.

    Args:
        venue_id: Venue ID
        venue_update: Fields to update
        db: Database session

    Returns:
        Updated venue
    """
    venue = await _get_venue_or_404(db, venue_id)

    update_data = venue_update.model_dump(exclude_unset=True)
    for field, value in update_data.items():
        setattr(venue, field, value)

    await db.commit()

    return await _get_venue_or_404(db, venue_id)


@router.delete("/{venue_id}", status_code=204)
async def delete_venue(
    venue_id: int,
    db: AsyncSession = Depends(get_db),
):
    """
    Soft-delete a venue. Its courts stop being bookable.

    Args:
        venue_id: Venue ID
        db: Database session
    """
    venue = await _get_venue_or_404(db, venue_id)
    venue.deleted_at = datetime.now(pytz.UTC)
    await db.commit()


@router.put("/{venue_id}/operating-hours", response_model=VenueInDB)
async def replace_operating_hours(
    venue_id: int,
    payload: OperatingHoursReplace,
    db: AsyncSession = Depends(get_db),
):
    """
    Replace a venue's weekly operating hours.

    Weekdays missing from the payload are closed.

    Args:
        venue_id: Venue ID
        payload: One entry per open weekday
        db: Database session

    Returns:
        Venue with its new hours
    """
    venue = await _get_venue_or_404(db, venue_id)

    venue.operating_hours.clear()
    await db.flush()

    venue.operating_hours.extend(
        OperatingHours(**entry.model_dump()) for entry in payload.hours
    )

    await db.commit()

    return await _get_venue_or_404(db, venue_id)


@router.post("/{venue_id}/courts", response_model=CourtInDB, status_code=201)
async def create_court(
    venue_id: int,
    court: CourtCreate,
    db: AsyncSession = Depends(get_db),
):
    """
    Add a bookable court to a venue.

    Args:
        venue_id: Venue ID
        court: Court data
        db: Database session

    Returns:
        Created court
    """
    await _get_venue_or_404(db, venue_id)

    db_court = Court(venue_id=venue_id, **court.model_dump())
    db.add(db_court)
    await db.commit()
    await db.refresh(db_court)

    return db_court


@router.get("/{venue_id}/courts", response_model=List[CourtInDB])
async def list_courts(
    venue_id: int,
    db: AsyncSession = Depends(get_db),
):
    """List the courts of a venue."""
    await _get_venue_or_404(db, venue_id)

    result = await db.execute(
        select(Court).where(Court.venue_id == venue_id).order_by(Court.name, Court.id)
    )
    return result.scalars().all()
