"""Bookings router - availability, booking creation and lifecycle.

Mounted under /salon/{customer_slug}. Token endpoints are public (the token
is the credential); everything else needs a session in the tenant.
"""

from uuid import UUID

from fastapi import APIRouter, Depends, Query, Request, Response
from sqlalchemy.orm import Session

from booking_api.core.deps import (
    caller_context,
    get_current_session,
    get_customer,
    get_db,
    get_optional_session,
    require_csrf_header,
    require_roles,
)
from booking_api.core.rate_limit import PUBLIC_LIMIT, limiter
from booking_api.db.enums import BookingStatus, UserRole
from booking_api.db.models import Booking, Customer
from booking_api.schemas.auth import UserSession
from booking_api.schemas.booking import (
    AvailabilityBranch,
    AvailabilityResponse,
    AvailabilityService,
    BookingConfirm,
    BookingCreate,
    BookingListResponse,
    BookingRead,
    BookingUpdate,
    TimeSlotRead,
)
from booking_api.services import availability_service, booking_service
from booking_api.services.booking_service import UNSET, BookingPatch

router = APIRouter()


# =============================================================================
# Helper Functions
# =============================================================================

def _booking_to_read(booking: Booking) -> BookingRead:
    """Convert Booking model to read schema."""
    return BookingRead(
        id=booking.id,
        display_id=booking.display_id,
        customer_id=booking.customer_id,
        branch_id=booking.branch_id,
        branch_name=booking.branch.name,
        service_id=booking.service_id,
        service_name=booking.service.name,
        professional_id=booking.professional_id,
        professional_name=booking.professional.name,
        user_id=booking.user_id,
        user_name=booking.user.name,
        scheduled_at=booking.scheduled_at,
        duration_minutes=booking.duration_minutes,
        total_price=f"{booking.total_price:.2f}",
        currency=booking.currency,
        status=BookingStatus(booking.status),
        confirmation_token=booking.confirmation_token,
        created_at=booking.created_at,
        updated_at=booking.updated_at,
    )


def _patch_from_update(data: BookingUpdate) -> BookingPatch:
    """Build an explicit patch from the fields actually present in the body."""
    fields = data.model_fields_set
    return BookingPatch(
        status=BookingStatus(data.status) if "status" in fields else UNSET,
        scheduled_at=data.scheduled_at if "scheduled_at" in fields else UNSET,
        professional_id=data.professional_id if "professional_id" in fields else UNSET,
    )


# =============================================================================
# Availability
# =============================================================================

@router.get("/availability", response_model=AvailabilityResponse)
def check_availability(
    branch_id: UUID,
    service_id: UUID,
    date: str = Query(..., description="Local date (YYYY-MM-DD)"),
    professional_id: UUID | None = None,
    customer: Customer = Depends(get_customer),
    session: UserSession | None = Depends(get_optional_session),
    db: Session = Depends(get_db),
):
    """
    Bookable slots for a branch and service on one day.

    Without professional_id, a slot is available when any professional at
    the branch can take it. Signed-in callers also see their own bookings
    blocking overlapping slots.
    """
    result = availability_service.check_availability(
        db,
        customer_id=customer.id,
        branch_id=branch_id,
        service_id=service_id,
        date_str=date,
        professional_id=professional_id,
        user_id=session.user_id if session else None,
    )
    return AvailabilityResponse(
        date=result.date,
        branch=AvailabilityBranch(id=result.branch.id, name=result.branch.name),
        service=AvailabilityService(
            id=result.service.id,
            name=result.service.name,
            duration_minutes=result.service.duration_minutes,
        ),
        timezone=result.timezone,
        slots=[
            TimeSlotRead(
                time=slot.time,
                available=slot.available,
                professional_id=slot.professional_id,
            )
            for slot in result.slots
        ],
    )


# =============================================================================
# Bookings (authenticated)
# =============================================================================

@router.post(
    "/bookings",
    response_model=BookingRead,
    status_code=201,
    dependencies=[Depends(require_csrf_header)],
)
def create_booking(
    data: BookingCreate,
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    """Book a slot for the signed-in user. Omit professional_id to auto-assign."""
    booking = booking_service.create_booking(
        db,
        caller_context(session),
        branch_id=data.branch_id,
        service_id=data.service_id,
        professional_id=data.professional_id,
        scheduled_at=data.scheduled_at,
    )
    booking = booking_service.get_booking(db, booking.id, session.customer_id)
    return _booking_to_read(booking)


@router.get("/bookings", response_model=BookingListResponse)
def list_bookings(
    page: int = Query(1, ge=1),
    limit: int = Query(500, ge=1, le=500),
    status: BookingStatus | None = None,
    session: UserSession = Depends(require_roles([UserRole.ADMIN])),
    db: Session = Depends(get_db),
):
    """All bookings of the tenant (admin only)."""
    items, total = booking_service.list_bookings(
        db, session.customer_id, status=status, page=page, limit=limit
    )
    return BookingListResponse(
        items=[_booking_to_read(b) for b in items],
        total=total,
        page=page,
        limit=limit,
    )


@router.get("/bookings/my", response_model=BookingListResponse)
def list_my_bookings(
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=500),
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    """The signed-in user's bookings in this tenant."""
    items, total = booking_service.list_user_bookings(
        db, session.customer_id, session.user_id, page=page, limit=limit
    )
    return BookingListResponse(
        items=[_booking_to_read(b) for b in items],
        total=total,
        page=page,
        limit=limit,
    )


# =============================================================================
# Token Actions (public)
# =============================================================================

@router.get("/bookings/token/{token}", response_model=BookingRead)
@limiter.limit(PUBLIC_LIMIT)
def get_booking_by_token(
    request: Request,
    token: str,
    customer: Customer = Depends(get_customer),
    db: Session = Depends(get_db),
):
    """Look up a booking by its confirmation token."""
    booking = booking_service.get_booking_by_token(db, token, customer.url_slug)
    return _booking_to_read(booking)


@router.post("/bookings/confirm", response_model=BookingRead)
@limiter.limit(PUBLIC_LIMIT)
def confirm_booking(
    request: Request,
    data: BookingConfirm,
    customer: Customer = Depends(get_customer),
    db: Session = Depends(get_db),
):
    """Confirm a PENDING booking with its token."""
    booking = booking_service.confirm_booking(db, data.token, customer.url_slug)
    booking = booking_service.get_booking(db, booking.id, customer.id)
    return _booking_to_read(booking)


@router.delete("/bookings/cancel/{token}", status_code=204)
@limiter.limit(PUBLIC_LIMIT)
def cancel_booking_by_token(
    request: Request,
    token: str,
    customer: Customer = Depends(get_customer),
    db: Session = Depends(get_db),
):
    """Cancel a booking with its token."""
    booking_service.cancel_booking_by_token(db, token, customer.url_slug)
    return Response(status_code=204)


# =============================================================================
# Single Booking (authenticated)
# =============================================================================

@router.get("/bookings/{booking_id}", response_model=BookingRead)
def get_booking(
    booking_id: UUID,
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    """Get a booking. Clients can only read their own."""
    booking = booking_service.get_booking_for_caller(
        db, booking_id, caller_context(session)
    )
    return _booking_to_read(booking)


@router.patch(
    "/bookings/{booking_id}",
    response_model=BookingRead,
    dependencies=[Depends(require_csrf_header)],
)
def update_booking(
    booking_id: UUID,
    data: BookingUpdate,
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    """
    Reschedule, reassign or change the status of a booking.

    Clients may reschedule their own bookings but not set status.
    """
    booking = booking_service.update_booking(
        db, booking_id, _patch_from_update(data), caller_context(session)
    )
    booking = booking_service.get_booking(db, booking.id, session.customer_id)
    return _booking_to_read(booking)


@router.delete(
    "/bookings/{booking_id}",
    status_code=204,
    dependencies=[Depends(require_csrf_header)],
)
def cancel_booking(
    booking_id: UUID,
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    """Cancel a booking. Clients can only cancel their own."""
    booking_service.cancel_booking(db, booking_id, caller_context(session))
    return Response(status_code=204)
