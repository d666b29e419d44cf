"""Conflict and availability window schemas."""
from typing import Optional, List
from datetime import date, datetime
from pydantic import Field

from courtbook.schemas.base import CamelModel


class ConflictCreate(CamelModel):
    """Schema for blocking a court interval."""

    date: str
    start_time: str
    end_time: str
    reason: Optional[str] = Field(default=None, max_length=500)


class ConflictInDB(CamelModel):
    """Schema for conflict from database."""

    id: int
    court_id: int
    date: date
    start_time: str
    end_time: str
    reason: Optional[str] = None
    status: str
    created_at: Optional[datetime] = None
    resolved_at: Optional[datetime] = None


class AvailabilityWindow(CamelModel):
    """Explicit availability override for part of a day."""

    start_time: str
    end_time: str
    is_available: bool = False


class AvailabilityWindowsReplace(CamelModel):
    """Replace all override windows of a court for one date."""

    date: str
    windows: List[AvailabilityWindow] = []


class AvailabilityWindowInDB(AvailabilityWindow):
    id: int
    court_id: int
    date: date
