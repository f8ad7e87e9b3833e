"""
Booking domain exceptions.

Every failure the booking core reports to its caller is one of these, so the
API layer can render a specific message instead of a generic failure.
"""
from typing import Any, Dict, Optional


class BookingError(Exception):
    """Base exception for all booking-domain errors."""

    status_code = 500
    code = "BOOKING_ERROR"
    retriable = False

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "error": {
                "code": self.code,
                "message": self.message,
                "details": self.details,
            }
        }


class ValidationError(BookingError):
    """A required field is missing or a value is not acceptable."""

    status_code = 400
    code = "VALIDATION_ERROR"

    def __init__(self, field: str, message: str, details: Optional[Dict[str, Any]] = None):
        self.field = field
        super().__init__(message, {"field": field, **(details or {})})


class DuplicateMembershipError(BookingError):
    """The student is already a participant of this group session."""

    status_code = 409
    code = "ALREADY_JOINED"


class CapacityExceededError(BookingError):
    """The group session has no free seats."""

    status_code = 409
    code = "SESSION_FULL"


class NotApprovableStateError(BookingError):
    """The target is not in a state that permits the requested action."""

    status_code = 409
    code = "INVALID_STATE"


class NotFoundError(BookingError):
    status_code = 404
    code = "NOT_FOUND"


class PermissionDeniedError(BookingError):
    status_code = 403
    code = "FORBIDDEN"


class PersistenceError(BookingError):
    """The backing store was unreachable or rejected the unit of work."""

    status_code = 503
    code = "PERSISTENCE_ERROR"
    retriable = True
