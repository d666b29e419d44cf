"""Database models."""
from courtbook.models.venue import Venue
from courtbook.models.court import Court
from courtbook.models.operating_hours import OperatingHours
from courtbook.models.booking import Booking, BookingStatus, BLOCKING_STATUSES
from courtbook.models.conflict import Conflict, CONFLICT_ACTIVE, CONFLICT_RESOLVED
from courtbook.models.court_availability import CourtAvailability

__all__ = [
    "Venue",
    "Court",
    "OperatingHours",
    "Booking",
    "BookingStatus",
    "BLOCKING_STATUSES",
    "Conflict",
    "CONFLICT_ACTIVE",
    "CONFLICT_RESOLVED",
    "CourtAvailability",
]
