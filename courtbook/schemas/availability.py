"""Availability schemas."""
from typing import Optional, List
from datetime import date
from decimal import Decimal

from courtbook.schemas.base import CamelModel


class BlockedBy(CamelModel):
    """Reference to the booking, conflict or window occupying a slot."""

    kind: str  # booking, conflict, unavailable, closed
    id: Optional[int] = None
    start_time: str
    end_time: str


class AvailabilitySlot(CamelModel):
    """Schema for a single candidate slot."""

    start_time: str
    end_time: str
    available: bool
    blocked_by: Optional[BlockedBy] = None


class ProposedSlot(AvailabilitySlot):
    """Result of checking a caller-proposed interval without booking it."""

    within_operating_hours: bool


class CourtAvailabilityResponse(CamelModel):
    """Slot grid for one court on one date."""

    court_id: int
    court_name: str
    venue_id: int
    date: date
    day_of_week: int
    closed: bool
    message: Optional[str] = None
    slot_minutes: int
    price_per_hour: Optional[Decimal] = None
    operating_hours: Optional[str] = None
    slots: List[AvailabilitySlot]
    proposed: Optional[ProposedSlot] = None


class VenueAvailabilityResponse(CamelModel):
    """Slot grids for every active court of a venue."""

    venue_id: int
    venue_name: str
    date: date
    closed: bool
    message: Optional[str] = None
    courts: List[CourtAvailabilityResponse]
