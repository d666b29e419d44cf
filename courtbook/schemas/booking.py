"""Booking schemas."""
from typing import Optional
from datetime import date, datetime
from decimal import Decimal
from pydantic import Field

from courtbook.models.booking import BookingStatus
from courtbook.schemas.base import CamelModel


class BookingCreate(CamelModel):
    """
    Schema for creating a booking.

    Date and times stay strings here so that malformed values surface as
    INVALID_DATE / INVALID_INTERVAL instead of generic validation errors.
    """

    court_id: int
    date: str
    start_time: str
    end_time: Optional[str] = None
    duration: Optional[int] = None  # minutes, alternative to end_time
    player_count: int = Field(default=1, ge=1, le=50)
    customer_name: Optional[str] = Field(default=None, max_length=200)
    notes: Optional[str] = Field(default=None, max_length=500)


class BookingUpdate(CamelModel):
    """Schema for updating a booking's status or time."""

    status: Optional[BookingStatus] = None
    date: Optional[str] = None
    start_time: Optional[str] = None
    end_time: Optional[str] = None
    duration: Optional[int] = None
    player_count: Optional[int] = Field(default=None, ge=1, le=50)
    notes: Optional[str] = Field(default=None, max_length=500)


class BookingInDB(CamelModel):
    """Schema for booking from database."""

    id: int
    court_id: int
    venue_id: int
    date: date
    start_time: str
    end_time: str
    duration: int
    total_price: Decimal
    status: BookingStatus
    player_count: int
    customer_name: Optional[str] = None
    notes: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    confirmed_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
