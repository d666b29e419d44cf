"""Venue, court and operating-hours schemas."""
from typing import Optional, List
from datetime import datetime
from decimal import Decimal
import pytz
from pydantic import Field, field_validator, model_validator

from courtbook.schemas.base import CamelModel
from courtbook.services.intervals import parse_clock


def _known_timezone(value: str) -> str:
    try:
        pytz.timezone(value)
    except pytz.UnknownTimeZoneError:
        raise ValueError(f"Unknown timezone '{value}'")
    return value


class OperatingHoursEntry(CamelModel):
    """Opening window for one weekday (0 = Sunday ... 6 = Saturday)."""

    day_of_week: int = Field(ge=0, le=6)
    opening_time: str = "06:00"
    closing_time: str = "22:00"
    is_open: bool = True

    @field_validator("opening_time")
    @classmethod
    def _check_opening(cls, value: str) -> str:
        parse_clock(value)
        return value

    @field_validator("closing_time")
    @classmethod
    def _check_closing(cls, value: str) -> str:
        parse_clock(value, allow_end_of_day=True)
        return value

    @model_validator(mode="after")
    def _check_order(self):
        if self.is_open and parse_clock(self.opening_time) >= parse_clock(
            self.closing_time, allow_end_of_day=True
        ):
            raise ValueError("opening_time must be before closing_time")
        return self


class OperatingHoursReplace(CamelModel):
    """Weekly operating hours; weekdays that are missing are closed."""

    hours: List[OperatingHoursEntry]

    @field_validator("hours")
    @classmethod
    def _unique_days(cls, value: List[OperatingHoursEntry]) -> List[OperatingHoursEntry]:
        days = [entry.day_of_week for entry in value]
        if len(days) != len(set(days)):
            raise ValueError("Each day_of_week may appear only once")
        return value


class OperatingHoursInDB(OperatingHoursEntry):
    id: int
    venue_id: int


class VenueBase(CamelModel):
    """Base venue schema."""

    name: str
    address: Optional[str] = None
    city: Optional[str] = None
    timezone: str = "UTC"

    @field_validator("timezone")
    @classmethod
    def _check_timezone(cls, value: str) -> str:
        return _known_timezone(value)


class VenueCreate(VenueBase):
    """Schema for creating a venue, optionally with its weekly hours."""

    operating_hours: List[OperatingHoursEntry] = []


class VenueUpdate(CamelModel):
    """Schema for updating a venue."""

    name: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    timezone: Optional[str] = None

    @field_validator("timezone")
    @classmethod
    def _check_timezone(cls, value: Optional[str]) -> Optional[str]:
        return _known_timezone(value) if value is not None else value


class VenueInDB(VenueBase):
    """Schema for venue from database."""

    id: int
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    operating_hours: List[OperatingHoursInDB] = []


class CourtBase(CamelModel):
    """Base court schema."""

    name: str
    sport: Optional[str] = None
    price_per_hour: Decimal = Field(default=Decimal("0"), ge=0)
    max_players: Optional[int] = Field(default=None, ge=1)


class CourtCreate(CourtBase):
    """Schema for creating a court."""

    pass


class CourtUpdate(CamelModel):
    """Schema for updating a court."""

    name: Optional[str] = None
    sport: Optional[str] = None
    price_per_hour: Optional[Decimal] = Field(default=None, ge=0)
    max_players: Optional[int] = Field(default=None, ge=1)
    is_active: Optional[bool] = None


class CourtInDB(CourtBase):
    """Schema for court from database."""

    id: int
    venue_id: int
    is_active: bool
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
