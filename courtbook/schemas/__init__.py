"""API schemas."""
from courtbook.schemas.venue import (
    VenueCreate,
    VenueUpdate,
    VenueInDB,
    CourtCreate,
    CourtUpdate,
    CourtInDB,
    OperatingHoursEntry,
    OperatingHoursReplace,
)
from courtbook.schemas.booking import (
    BookingCreate,
    BookingUpdate,
    BookingInDB,
)
from courtbook.schemas.conflict import (
    ConflictCreate,
    ConflictInDB,
    AvailabilityWindow,
    AvailabilityWindowsReplace,
    AvailabilityWindowInDB,
)
from courtbook.schemas.availability import (
    AvailabilitySlot,
    BlockedBy,
    CourtAvailabilityResponse,
    ProposedSlot,
    VenueAvailabilityResponse,
)
from courtbook.schemas.monitoring import HealthStatus, MetricsSnapshot

__all__ = [
    "VenueCreate",
    "VenueUpdate",
    "VenueInDB",
    "CourtCreate",
    "CourtUpdate",
    "CourtInDB",
    "OperatingHoursEntry",
    "OperatingHoursReplace",
    "BookingCreate",
    "BookingUpdate",
    "BookingInDB",
    "ConflictCreate",
    "ConflictInDB",
    "AvailabilityWindow",
    "AvailabilityWindowsReplace",
    "AvailabilityWindowInDB",
    "AvailabilitySlot",
    "BlockedBy",
    "CourtAvailabilityResponse",
    "ProposedSlot",
    "VenueAvailabilityResponse",
    "HealthStatus",
    "MetricsSnapshot",
]
