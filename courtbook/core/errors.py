"""Domain errors surfaced by the availability and booking services."""
from typing import Any, Dict, Optional


class CourtbookError(Exception):
    """Base class for errors rendered as structured API responses."""

    code = "ERROR"
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> Dict[str, Any]:
        return {"code": self.code, "message": self.message}


class ConfigurationError(CourtbookError):
    """Operating-hours data for a venue cannot be used."""

    code = "CONFIGURATION_ERROR"
    status_code = 500


class ResourceNotFound(CourtbookError):
    code = "RESOURCE_NOT_FOUND"
    status_code = 404


class InvalidDate(CourtbookError):
    code = "INVALID_DATE"
    status_code = 400


class InvalidInterval(CourtbookError):
    """End is not after start, a time is malformed, or the duration is not allowed."""

    code = "INVALID_INTERVAL"
    status_code = 400


class ResourceClosed(InvalidInterval):
    """The requested interval falls outside the venue's operating hours."""

    code = "RESOURCE_CLOSED"


class SlotConflict(CourtbookError):
    """The requested interval overlaps an active booking, conflict or blocked window."""

    code = "SLOT_CONFLICT"
    status_code = 409

    def __init__(
        self,
        message: str,
        conflicting_id: Optional[int] = None,
        conflicting_kind: Optional[str] = None,
    ):
        super().__init__(message)
        self.conflicting_id = conflicting_id
        self.conflicting_kind = conflicting_kind

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data["conflictingId"] = self.conflicting_id
        data["conflictingKind"] = self.conflicting_kind
        return data


class InvalidStatusTransition(CourtbookError):
    code = "INVALID_STATUS_TRANSITION"
    status_code = 409


class TransientStoreError(CourtbookError):
    """The data store failed in a way that may succeed on retry."""

    code = "TRANSIENT_STORE_ERROR"
    status_code = 503
