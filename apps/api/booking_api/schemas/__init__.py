"""Pydantic schemas for API request/response models."""

from booking_api.schemas.auth import TokenPayload, UserSession
from booking_api.schemas.booking import (
    AvailabilityResponse,
    BookingConfirm,
    BookingCreate,
    BookingListResponse,
    BookingRead,
    BookingUpdate,
    TimeSlotRead,
)

__all__ = [
    # Auth
    "TokenPayload",
    "UserSession",
    # Bookings
    "AvailabilityResponse",
    "BookingConfirm",
    "BookingCreate",
    "BookingListResponse",
    "BookingRead",
    "BookingUpdate",
    "TimeSlotRead",
]
