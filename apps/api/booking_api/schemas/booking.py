"""Booking schemas - Pydantic models for the bookings API."""

from datetime import date, datetime
from typing import Literal
from uuid import UUID

from pydantic import BaseModel, Field, model_validator

from booking_api.db.enums import BookingStatus


# =============================================================================
# Availability
# =============================================================================

class TimeSlotRead(BaseModel):
    """One candidate start time on the local grid."""
    time: str  # "HH:MM" in the branch timezone
    available: bool
    professional_id: UUID | None = None


class AvailabilityBranch(BaseModel):
    id: UUID
    name: str


class AvailabilityService(BaseModel):
    id: UUID
    name: str
    duration_minutes: int


class AvailabilityResponse(BaseModel):
    """Slot grid for one branch/service/day."""
    date: date
    branch: AvailabilityBranch
    service: AvailabilityService
    timezone: str
    slots: list[TimeSlotRead]


# =============================================================================
# Bookings
# =============================================================================

class BookingCreate(BaseModel):
    """Schema for creating a booking. Omit professional_id for auto-assignment."""
    branch_id: UUID
    service_id: UUID
    professional_id: UUID | None = None
    scheduled_at: datetime


class BookingUpdate(BaseModel):
    """
    Schema for patching a booking.

    Only fields present in the request body are applied. An explicit
    ``"professional_id": null`` re-runs auto-assignment.
    """
    status: Literal["PENDING", "CONFIRMED", "CANCELLED"] | None = None
    scheduled_at: datetime | None = None
    professional_id: UUID | None = None

    @model_validator(mode="after")
    def _reject_null_fields(self):
        for name in ("status", "scheduled_at"):
            if name in self.model_fields_set and getattr(self, name) is None:
                raise ValueError(f"{name} cannot be null")
        return self


class BookingConfirm(BaseModel):
    """Schema for confirming a booking by token."""
    token: str = Field(..., min_length=1, max_length=64)


class BookingRead(BaseModel):
    """Full booking view, including the display names the confirmation UI needs."""
    id: UUID
    display_id: str
    customer_id: UUID
    branch_id: UUID
    branch_name: str
    service_id: UUID
    service_name: str
    professional_id: UUID
    professional_name: str
    user_id: UUID
    user_name: str
    scheduled_at: datetime
    duration_minutes: int
    total_price: str  # decimal string, two places
    currency: str
    status: BookingStatus
    confirmation_token: str
    created_at: datetime
    updated_at: datetime | None


class BookingListResponse(BaseModel):
    """Paginated booking list."""
    items: list[BookingRead]
    total: int
    page: int
    limit: int
