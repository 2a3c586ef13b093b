"""Booking service - creation, lookup and lifecycle of bookings.

Handles:
- End-to-end validation of a booking request
- Professional auto-assignment
- Conflict-safe writes via per-bucket slot claims
- Confirm / cancel / update transitions (authenticated or by token)

The central invariant: no two live bookings overlap for the same professional,
and no two live bookings of the same user overlap within a tenant. Live
pre-checks give callers a precise reason; the unique constraints on the claim
tables make the guarantee hold under concurrent commits.
"""

import logging
import math
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import NamedTuple
from uuid import UUID
from zoneinfo import ZoneInfo

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, joinedload

from booking_api.core.config import settings
from booking_api.core.security import generate_confirmation_token
from booking_api.core.structured_logging import build_log_context
from booking_api.db.enums import (
    DEFAULT_BOOKING_STATUS,
    ROLES_CAN_MANAGE_BOOKINGS,
    BookingStatus,
    UserRole,
)
from booking_api.db.models import (
    Booking,
    Branch,
    Customer,
    Professional,
    ProfessionalSlotClaim,
    User,
    UserSlotClaim,
)
from booking_api.services import catalog_service, occupancy, schedule_store
from booking_api.services.booking_errors import (
    BookingConflict,
    BookingForbidden,
    BookingNotFound,
    InvalidBookingRequest,
    Reason,
)
from booking_api.services.booking_state import ensure_transition
from booking_api.services.slot_generator import (
    SLOT_GRANULARITY_MINUTES,
    exists_locally,
    is_on_grid,
    local_span,
    window_fits,
)

logger = logging.getLogger(__name__)


# =============================================================================
# Types
# =============================================================================

class _Unset:
    """Marker for a patch field the caller did not send."""

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "UNSET"

    def __bool__(self) -> bool:
        return False


UNSET = _Unset()


class CallerContext(NamedTuple):
    """Authenticated caller acting within one tenant."""
    user_id: UUID
    customer_id: UUID
    role: UserRole

    @property
    def can_manage(self) -> bool:
        return self.role in ROLES_CAN_MANAGE_BOOKINGS


@dataclass(frozen=True)
class BookingPatch:
    """
    Requested changes to a booking.

    A field left as UNSET is not touched. ``professional_id=None`` is an
    explicit request to re-run auto-assignment.
    """
    status: BookingStatus | _Unset = UNSET
    scheduled_at: datetime | _Unset = UNSET
    professional_id: UUID | None | _Unset = UNSET

    @property
    def reschedules(self) -> bool:
        return self.scheduled_at is not UNSET or self.professional_id is not UNSET


class _Slot(NamedTuple):
    """A validated interval in both UTC and branch-local terms."""
    start: datetime
    end: datetime
    day_of_week: int
    start_minutes: int
    end_minutes: int


# =============================================================================
# Helpers
# =============================================================================

def generate_display_id() -> str:
    """Short human-facing booking reference, e.g. BK-9F2C01AB."""
    return f"BK-{secrets.token_hex(4).upper()}"


def claim_buckets(start: datetime, duration_minutes: int) -> list[datetime]:
    """
    Grid buckets an interval touches.

    Starts are grid-aligned, so two intervals overlap exactly when they share
    a bucket.
    """
    count = math.ceil(duration_minutes / SLOT_GRANULARITY_MINUTES)
    step = timedelta(minutes=SLOT_GRANULARITY_MINUTES)
    return [start + step * i for i in range(count)]


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _normalize_scheduled_at(value: datetime, tz: ZoneInfo) -> datetime:
    """Interpret naive values in the branch timezone and normalize to UTC."""
    if value.tzinfo is None:
        minutes = value.hour * 60 + value.minute
        if not exists_locally(value.date(), minutes, tz):
            raise InvalidBookingRequest(
                Reason.OFF_GRID,
                "Requested local time does not exist in the branch timezone",
            )
        value = value.replace(tzinfo=tz)
    return value.astimezone(timezone.utc)


def _validate_slot(
    db: Session,
    branch: Branch,
    tz: ZoneInfo,
    start: datetime,
    duration_minutes: int,
    now: datetime,
) -> _Slot:
    """Future, on-grid, and inside the branch hours of its local day."""
    if start <= now:
        raise InvalidBookingRequest(Reason.PAST_TIME, "Cannot book a time in the past")
    if not is_on_grid(start):
        raise InvalidBookingRequest(
            Reason.OFF_GRID,
            f"Start time must fall on a {SLOT_GRANULARITY_MINUTES}-minute boundary",
        )

    local_date, start_minutes, end_minutes = local_span(start, duration_minutes, tz)
    dow = schedule_store.day_of_week(local_date)
    window = schedule_store.branch_window(db, branch.id, dow)
    if not window_fits(window, start_minutes, end_minutes):
        raise InvalidBookingRequest(
            Reason.OUTSIDE_BRANCH_HOURS,
            "Requested time is outside branch operating hours",
        )
    return _Slot(
        start=start,
        end=start + timedelta(minutes=duration_minutes),
        day_of_week=dow,
        start_minutes=start_minutes,
        end_minutes=end_minutes,
    )


def _ensure_professional_hours(db: Session, professional_id: UUID, slot: _Slot) -> None:
    window = schedule_store.professional_window(db, professional_id, slot.day_of_week)
    if not window_fits(window, slot.start_minutes, slot.end_minutes):
        raise InvalidBookingRequest(
            Reason.OUTSIDE_PROFESSIONAL_HOURS,
            "Requested time is outside the professional's working hours",
        )


def _lock_contenders(db: Session, user_id: UUID, professional_ids: list[UUID]) -> None:
    """
    Row-lock the user and professionals so competing writers queue up.

    FOR UPDATE is ignored by SQLite; the claim constraints still hold there.
    """
    db.query(User.id).filter(User.id == user_id).with_for_update().first()
    if professional_ids:
        db.query(Professional.id).filter(
            Professional.id.in_(professional_ids)
        ).order_by(Professional.id).with_for_update().all()


def _user_conflict() -> BookingConflict:
    return BookingConflict(
        Reason.USER_DOUBLE_BOOKED, "You already have a booking at this time"
    )


def _professional_conflict() -> BookingConflict:
    return BookingConflict(
        Reason.PROFESSIONAL_UNAVAILABLE,
        "Professional is not available at the requested time",
    )


def _ensure_user_free(
    db: Session,
    customer_id: UUID,
    user_id: UUID,
    slot: _Slot,
    exclude_booking_id: UUID | None = None,
) -> None:
    conflict = occupancy.find_user_conflict(
        db, customer_id, user_id, slot.start, slot.end, exclude_booking_id
    )
    if conflict:
        logger.info(
            "Booking rejected: user already booked",
            extra=build_log_context(
                user_id=user_id,
                customer_id=customer_id,
                booking_id=conflict.id,
                reason=Reason.USER_DOUBLE_BOOKED.value,
            ),
        )
        raise _user_conflict()


def _candidate_professionals(
    db: Session,
    branch: Branch,
    professional_id: UUID | None,
    slot: _Slot,
    exclude_booking_id: UUID | None = None,
) -> list[UUID]:
    """
    Professionals that may take the slot, in the order they should be tried.

    A specific professional must be free; auto-assignment returns every
    assigned professional whose schedule fits and who is free.
    """
    if professional_id is not None:
        conflict = occupancy.find_professional_conflict(
            db, professional_id, slot.start, slot.end, exclude_booking_id
        )
        if conflict:
            logger.info(
                "Booking rejected: professional unavailable",
                extra=build_log_context(
                    professional_id=professional_id,
                    booking_id=conflict.id,
                    reason=Reason.PROFESSIONAL_UNAVAILABLE.value,
                ),
            )
            raise _professional_conflict()
        return [professional_id]

    professionals = catalog_service.list_branch_professionals(db, branch.id)
    if not professionals:
        raise InvalidBookingRequest(
            Reason.NO_PROFESSIONALS, "No professionals work at this branch"
        )

    ids = [p.id for p in professionals]
    windows = schedule_store.professional_windows(db, ids, slot.day_of_week)
    busy = {
        b.professional_id
        for b in occupancy.load_professional_occupancy(db, ids, slot.start, slot.end)
        if b.id != exclude_booking_id
    }
    candidates = [
        pid for pid in ids
        if pid not in busy
        and window_fits(windows.get(pid), slot.start_minutes, slot.end_minutes)
    ]
    if not candidates:
        logger.info(
            "Booking rejected: no professional available",
            extra=build_log_context(reason=Reason.NO_PROFESSIONAL_AVAILABLE.value),
        )
        raise BookingConflict(
            Reason.NO_PROFESSIONAL_AVAILABLE,
            "No professional is available at the requested time",
        )
    return candidates


# =============================================================================
# Slot Claims
# =============================================================================

def _claim_user_slots(db: Session, booking: Booking) -> None:
    claims = [
        UserSlotClaim(
            booking_id=booking.id,
            customer_id=booking.customer_id,
            user_id=booking.user_id,
            slot_start=bucket,
        )
        for bucket in claim_buckets(booking.scheduled_at, booking.duration_minutes)
    ]
    try:
        with db.begin_nested():
            db.add_all(claims)
    except IntegrityError:
        logger.info(
            "Booking rejected: user slot claim race",
            extra=build_log_context(
                user_id=booking.user_id,
                customer_id=booking.customer_id,
                reason=Reason.USER_DOUBLE_BOOKED.value,
            ),
        )
        raise _user_conflict()


def _claim_professional_slots(db: Session, booking: Booking, professional_id: UUID) -> bool:
    """Assign the professional and claim their buckets. False if another booking won."""
    claims = [
        ProfessionalSlotClaim(
            booking_id=booking.id,
            professional_id=professional_id,
            slot_start=bucket,
        )
        for bucket in claim_buckets(booking.scheduled_at, booking.duration_minutes)
    ]
    booking.professional_id = professional_id
    try:
        with db.begin_nested():
            db.add_all(claims)
    except IntegrityError:
        logger.info(
            "Professional slot claim lost to a concurrent booking",
            extra=build_log_context(
                professional_id=professional_id,
                reason=Reason.PROFESSIONAL_UNAVAILABLE.value,
            ),
        )
        return False
    return True


def _claim_slots(
    db: Session,
    booking: Booking,
    candidates: list[UUID],
    auto_assign: bool,
) -> None:
    """Claim user buckets, then the first candidate professional whose buckets are free."""
    _claim_user_slots(db, booking)
    for professional_id in candidates:
        if _claim_professional_slots(db, booking, professional_id):
            return
    if not auto_assign:
        raise _professional_conflict()
    raise BookingConflict(
        Reason.NO_PROFESSIONAL_AVAILABLE,
        "No professional is available at the requested time",
    )


def _release_claims(db: Session, booking_id: UUID) -> None:
    db.query(ProfessionalSlotClaim).filter(
        ProfessionalSlotClaim.booking_id == booking_id
    ).delete(synchronize_session=False)
    db.query(UserSlotClaim).filter(
        UserSlotClaim.booking_id == booking_id
    ).delete(synchronize_session=False)


# =============================================================================
# Creation
# =============================================================================

def create_booking(
    db: Session,
    caller: CallerContext,
    branch_id: UUID,
    service_id: UUID,
    professional_id: UUID | None,
    scheduled_at: datetime,
    now: datetime | None = None,
) -> Booking:
    """
    Validate and persist a PENDING booking for the caller.

    Raises:
        InvalidBookingRequest: bad time, foreign reference, hours violation
        BookingConflict: user or professional already booked
    """
    now = now or _now()
    customer_id = caller.customer_id

    branch = catalog_service.get_branch(db, customer_id, branch_id)
    service = catalog_service.get_service(db, customer_id, service_id)
    if professional_id is not None:
        catalog_service.get_branch_professional(db, customer_id, branch.id, professional_id)

    tz = schedule_store.branch_timezone(db, branch)
    start = _normalize_scheduled_at(scheduled_at, tz)
    slot = _validate_slot(db, branch, tz, start, service.duration_minutes, now)
    if professional_id is not None:
        _ensure_professional_hours(db, professional_id, slot)
    price = catalog_service.get_active_price(db, service.id, branch.id)
    customer = db.get(Customer, customer_id)
    currency = (customer.currency if customer else None) or settings.DEFAULT_CURRENCY

    try:
        _lock_contenders(
            db, caller.user_id, [professional_id] if professional_id else []
        )
        _ensure_user_free(db, customer_id, caller.user_id, slot)
        candidates = _candidate_professionals(db, branch, professional_id, slot)

        booking = Booking(
            display_id=generate_display_id(),
            customer_id=customer_id,
            branch_id=branch.id,
            service_id=service.id,
            professional_id=candidates[0],
            user_id=caller.user_id,
            scheduled_at=slot.start,
            duration_minutes=service.duration_minutes,
            total_price=price,
            currency=currency,
            status=DEFAULT_BOOKING_STATUS.value,
            confirmation_token=generate_confirmation_token(),
        )
        db.add(booking)
        db.flush()
        _claim_slots(db, booking, candidates, auto_assign=professional_id is None)
        db.commit()
    except Exception:
        db.rollback()
        raise

    db.refresh(booking)
    logger.info(
        "Booking created",
        extra=build_log_context(
            user_id=caller.user_id,
            customer_id=customer_id,
            booking_id=booking.id,
            professional_id=booking.professional_id,
        ),
    )
    return booking


# =============================================================================
# Lookups
# =============================================================================

def _booking_query(db: Session):
    return db.query(Booking).options(
        joinedload(Booking.branch),
        joinedload(Booking.service),
        joinedload(Booking.professional),
        joinedload(Booking.user),
    )


def get_booking(
    db: Session,
    booking_id: UUID,
    customer_id: UUID | None = None,
) -> Booking:
    """Booking by id, optionally scoped to a tenant."""
    query = _booking_query(db).filter(Booking.id == booking_id)
    if customer_id is not None:
        query = query.filter(Booking.customer_id == customer_id)
    booking = query.first()
    if not booking:
        raise BookingNotFound()
    return booking


def get_booking_for_caller(db: Session, booking_id: UUID, caller: CallerContext) -> Booking:
    """Booking in the caller's tenant; clients only see their own."""
    booking = get_booking(db, booking_id, caller.customer_id)
    if not caller.can_manage and booking.user_id != caller.user_id:
        raise BookingForbidden(Reason.NOT_OWNER, "You can only access your own bookings")
    return booking


def list_bookings(
    db: Session,
    customer_id: UUID,
    status: BookingStatus | None = None,
    page: int = 1,
    limit: int = 500,
) -> tuple[list[Booking], int]:
    """Tenant bookings, newest start first. Returns (items, total)."""
    query = _booking_query(db).filter(Booking.customer_id == customer_id)
    if status is not None:
        query = query.filter(Booking.status == BookingStatus(status).value)
    total = query.count()
    items = (
        query.order_by(Booking.scheduled_at.desc(), Booking.id)
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return items, total


def list_user_bookings(
    db: Session,
    customer_id: UUID,
    user_id: UUID,
    page: int = 1,
    limit: int = 50,
) -> tuple[list[Booking], int]:
    """One user's bookings within a tenant. Returns (items, total)."""
    query = _booking_query(db).filter(
        Booking.customer_id == customer_id,
        Booking.user_id == user_id,
    )
    total = query.count()
    items = (
        query.order_by(Booking.scheduled_at.desc(), Booking.id)
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return items, total


def get_booking_by_token(db: Session, token: str, customer_slug: str) -> Booking:
    """
    Booking by confirmation token, scoped to the tenant slug.

    A valid token used under another tenant's slug is not found.
    """
    booking = (
        _booking_query(db)
        .join(Customer, Customer.id == Booking.customer_id)
        .filter(
            Booking.confirmation_token == token,
            Customer.url_slug == customer_slug,
        )
        .first()
    )
    if not booking:
        raise BookingNotFound()
    return booking


# =============================================================================
# Transitions
# =============================================================================

def _lock_booking(db: Session, booking_id: UUID) -> Booking:
    """
    Re-read the booking row under FOR UPDATE.

    Status checks must run against committed state: a cancel that landed
    after the booking was first loaded wins.
    """
    return (
        db.query(Booking)
        .filter(Booking.id == booking_id)
        .populate_existing()
        .with_for_update()
        .one()
    )


def _apply_status(db: Session, booking: Booking, target: BookingStatus) -> None:
    ensure_transition(booking.status, target)
    booking.status = target.value
    booking.updated_at = _now()
    if target == BookingStatus.CANCELLED:
        _release_claims(db, booking.id)


def _transition(db: Session, booking: Booking, target: BookingStatus) -> Booking:
    try:
        booking = _lock_booking(db, booking.id)
        previous = booking.status
        _apply_status(db, booking, target)
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(booking)
    logger.info(
        "Booking status changed",
        extra={
            **build_log_context(booking_id=booking.id, customer_id=booking.customer_id),
            "from_status": previous,
            "to_status": booking.status,
        },
    )
    return booking


def confirm_booking(db: Session, token: str, customer_slug: str) -> Booking:
    """PENDING -> CONFIRMED for the holder of the confirmation token."""
    booking = get_booking_by_token(db, token, customer_slug)
    return _transition(db, booking, BookingStatus.CONFIRMED)


def cancel_booking_by_token(db: Session, token: str, customer_slug: str) -> None:
    """Cancel for the holder of the confirmation token."""
    booking = get_booking_by_token(db, token, customer_slug)
    _transition(db, booking, BookingStatus.CANCELLED)


def cancel_booking(db: Session, booking_id: UUID, caller: CallerContext) -> None:
    """Cancel as an authenticated caller. Clients may only cancel their own."""
    booking = get_booking_for_caller(db, booking_id, caller)
    _transition(db, booking, BookingStatus.CANCELLED)


def update_booking(
    db: Session,
    booking_id: UUID,
    patch: BookingPatch,
    caller: CallerContext,
    now: datetime | None = None,
) -> Booking:
    """
    Reschedule, reassign and/or change status of a booking.

    A new time or professional re-runs the full creation checks for the new
    interval, ignoring the booking's own occupancy. Frozen duration, price
    and currency are kept. Clients may not change status directly.
    """
    now = now or _now()
    booking = get_booking_for_caller(db, booking_id, caller)

    if patch.status is not UNSET and not caller.can_manage:
        raise BookingForbidden(
            Reason.STATUS_CHANGE_NOT_ALLOWED,
            "Use confirm or cancel to change the booking status",
        )

    try:
        booking = _lock_booking(db, booking.id)
        if booking.status == BookingStatus.CANCELLED.value:
            raise BookingConflict(
                Reason.ALREADY_CANCELLED, "Cancelled bookings cannot be updated"
            )

        target_status = (
            BookingStatus(patch.status) if patch.status is not UNSET else None
        )
        if target_status is not None and target_status.value == booking.status:
            target_status = None

        if patch.reschedules:
            _reschedule(db, booking, patch, caller, now)
        if target_status is not None:
            _apply_status(db, booking, target_status)
        booking.updated_at = _now()
        db.commit()
    except Exception:
        db.rollback()
        raise

    db.refresh(booking)
    logger.info(
        "Booking updated",
        extra=build_log_context(
            user_id=caller.user_id,
            customer_id=caller.customer_id,
            booking_id=booking.id,
            professional_id=booking.professional_id,
        ),
    )
    return booking


def _reschedule(
    db: Session,
    booking: Booking,
    patch: BookingPatch,
    caller: CallerContext,
    now: datetime,
) -> None:
    branch = catalog_service.get_branch(db, booking.customer_id, booking.branch_id)
    tz = schedule_store.branch_timezone(db, branch)

    start = (
        _normalize_scheduled_at(patch.scheduled_at, tz)
        if patch.scheduled_at is not UNSET
        else booking.scheduled_at
    )
    professional_id = (
        patch.professional_id
        if patch.professional_id is not UNSET
        else booking.professional_id
    )
    if professional_id is not None:
        catalog_service.get_branch_professional(
            db, booking.customer_id, branch.id, professional_id
        )

    slot = _validate_slot(db, branch, tz, start, booking.duration_minutes, now)
    if professional_id is not None:
        _ensure_professional_hours(db, professional_id, slot)

    _lock_contenders(db, booking.user_id, [professional_id] if professional_id else [])
    _ensure_user_free(db, booking.customer_id, booking.user_id, slot, booking.id)
    candidates = _candidate_professionals(db, branch, professional_id, slot, booking.id)

    _release_claims(db, booking.id)
    booking.scheduled_at = slot.start
    booking.professional_id = candidates[0]
    db.flush()
    _claim_slots(db, booking, candidates, auto_assign=professional_id is None)
