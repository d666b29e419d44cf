"""Conflict (blackout) endpoints."""
from typing import List, Optional
from fastapi import APIRouter, Depends, Query
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from courtbook.core.database import get_db, get_session_factory
from courtbook.core.metrics import MetricsRecorder, get_metrics
from courtbook.models.conflict import Conflict
from courtbook.schemas.conflict import ConflictCreate, ConflictInDB
from courtbook.services.booking_service import booking_service
from courtbook.services.intervals import parse_date

router = APIRouter(tags=["conflicts"])


@router.post("/courts/{court_id}/conflicts", response_model=ConflictInDB, status_code=201)
async def create_conflict(
    court_id: int,
    conflict: ConflictCreate,
    session_factory: async_sessionmaker = Depends(get_session_factory),
    metrics: MetricsRecorder = Depends(get_metrics),
):
    """
    Block part of a court's day (maintenance, private event, ...).

    Rejected with SLOT_CONFLICT when the interval overlaps an active
    booking or another active conflict.

    Args:
        court_id: Court ID
        conflict: Date, interval and reason
        session_factory: Write session factory
        metrics: Metrics recorder

    Returns:
        Created conflict
    """
    return await booking_service.create_conflict(
        session_factory,
        court_id,
        conflict.date,
        conflict.start_time,
        conflict.end_time,
        reason=conflict.reason,
        metrics=metrics,
    )


@router.get("/courts/{court_id}/conflicts", response_model=List[ConflictInDB])
async def list_conflicts(
    court_id: int,
    date: Optional[str] = Query(default=None, description="Date (YYYY-MM-DD)"),
    status: Optional[str] = Query(default=None, pattern="^(active|resolved)$"),
    db: AsyncSession = Depends(get_db),
):
    """List the conflicts of a court, optionally for one date or status."""
    query = select(Conflict).where(Conflict.court_id == court_id)
    if date is not None:
        query = query.where(Conflict.date == parse_date(date))
    if status is not None:
        query = query.where(Conflict.status == status)

    result = await db.execute(query.order_by(Conflict.date, Conflict.start_time))
    return result.scalars().all()


@router.post("/conflicts/{conflict_id}/resolve", response_model=ConflictInDB)
async def resolve_conflict(
    conflict_id: int,
    session_factory: async_sessionmaker = Depends(get_session_factory),
):
    """
    Resolve a conflict so its interval stops blocking.

    Args:
        conflict_id: Conflict ID
        session_factory: Write session factory

    Returns:
        Resolved conflict
    """
    return await booking_service.resolve_conflict(session_factory, conflict_id)
