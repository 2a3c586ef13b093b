"""Enum definitions for booking constants."""

from enum import Enum


class UserRole(str, Enum):
    """
    Role of a user inside one tenant.

    - CLIENT: books for themselves, may only touch their own bookings
    - STAFF: manages bookings of the tenant
    - ADMIN: full access to the tenant's bookings
    """
    CLIENT = "CLIENT"
    STAFF = "STAFF"
    ADMIN = "ADMIN"

    @classmethod
    def has_value(cls, value: str) -> bool:
        """Check if value is a valid role."""
        return value in cls._value2member_map_


class BookingStatus(str, Enum):
    """
    Booking lifecycle status.

    Flow: PENDING → CONFIRMED → CANCELLED
              ↘ CANCELLED
    CANCELLED is terminal.
    """
    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"
    CANCELLED = "CANCELLED"


# Statuses whose bookings occupy their interval
OCCUPYING_STATUSES = (BookingStatus.PENDING.value, BookingStatus.CONFIRMED.value)

DEFAULT_BOOKING_STATUS = BookingStatus.PENDING

ROLES_CAN_MANAGE_BOOKINGS = {UserRole.ADMIN, UserRole.STAFF}
