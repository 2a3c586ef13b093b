"""Booking error taxonomy.

Every error carries a ``kind`` the HTTP layer maps to a status code and a
machine-readable ``reason`` callers can branch on.
"""

from enum import Enum


class ErrorKind(str, Enum):
    VALIDATION = "validation"
    CONFLICT = "conflict"
    FORBIDDEN = "forbidden"
    NOT_FOUND = "not_found"


class Reason(str, Enum):
    """Machine-readable failure reasons."""

    # validation
    INVALID_DATE = "invalid_date"
    PAST_TIME = "past_time"
    OFF_GRID = "off_grid"
    INVALID_REFERENCE = "invalid_reference"
    PROFESSIONAL_NOT_AT_BRANCH = "professional_not_at_branch"
    PRICING_MISSING = "pricing_missing"
    OUTSIDE_BRANCH_HOURS = "outside_branch_hours"
    OUTSIDE_PROFESSIONAL_HOURS = "outside_professional_hours"
    NO_PROFESSIONALS = "no_professionals"

    # conflict
    PROFESSIONAL_UNAVAILABLE = "professional_unavailable"
    USER_DOUBLE_BOOKED = "user_double_booked"
    NO_PROFESSIONAL_AVAILABLE = "no_professional_available"
    ALREADY_CONFIRMED = "already_confirmed"
    ALREADY_CANCELLED = "already_cancelled"
    INVALID_TRANSITION = "invalid_transition"

    # forbidden
    NOT_OWNER = "not_owner"
    STATUS_CHANGE_NOT_ALLOWED = "status_change_not_allowed"

    # not found
    BOOKING_NOT_FOUND = "booking_not_found"


class BookingError(Exception):
    """Base class for expected booking failures."""

    kind: ErrorKind = ErrorKind.VALIDATION

    def __init__(self, reason: Reason, message: str):
        super().__init__(message)
        self.reason = reason
        self.message = message

    def to_dict(self) -> dict:
        return {"detail": self.message, "reason": self.reason.value}


class InvalidBookingRequest(BookingError):
    """Malformed input, past timestamp, or a reference outside the tenant."""

    kind = ErrorKind.VALIDATION


class BookingConflict(BookingError):
    """Double-booking or an illegal status transition."""

    kind = ErrorKind.CONFLICT


class BookingForbidden(BookingError):
    """Role or ownership mismatch."""

    kind = ErrorKind.FORBIDDEN


class BookingNotFound(BookingError):
    """Booking does not exist within the caller's tenant."""

    kind = ErrorKind.NOT_FOUND

    def __init__(self, message: str = "Booking not found"):
        super().__init__(Reason.BOOKING_NOT_FOUND, message)
