"""Occupancy resolver - subtract live bookings from candidate slots.

Occupancy intervals are half-open: [scheduled_at, scheduled_at + duration).
Only PENDING and CONFIRMED bookings occupy time.
"""

from datetime import datetime, timedelta
from typing import Iterable, Sequence
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from booking_api.db.enums import OCCUPYING_STATUSES
from booking_api.db.models import Booking
from booking_api.services.slot_generator import CandidateSlot

# Bookings starting this long before a range can still reach into it
LOOKBACK = timedelta(hours=24)


def overlaps(
    a_start: datetime, a_end: datetime, b_start: datetime, b_end: datetime
) -> bool:
    """Half-open interval intersection."""
    return a_start < b_end and b_start < a_end


def occupancy_interval(booking: Booking) -> tuple[datetime, datetime]:
    """Interval a booking occupies, using its own frozen duration."""
    return (
        booking.scheduled_at,
        booking.scheduled_at + timedelta(minutes=booking.duration_minutes),
    )


def _live_bookings_query(range_start: datetime, range_end: datetime):
    return select(Booking).where(
        Booking.status.in_(OCCUPYING_STATUSES),
        Booking.scheduled_at >= range_start - LOOKBACK,
        Booking.scheduled_at < range_end,
    )


def _overlapping(
    bookings: Iterable[Booking], range_start: datetime, range_end: datetime
) -> list[Booking]:
    return [
        b for b in bookings
        if overlaps(*occupancy_interval(b), range_start, range_end)
    ]


# =============================================================================
# Loading
# =============================================================================

def load_professional_occupancy(
    db: Session,
    professional_ids: Sequence[UUID],
    range_start: datetime,
    range_end: datetime,
) -> list[Booking]:
    """
    Live bookings of the given professionals overlapping a range.

    Bookings at every branch count: a professional assigned to two branches
    cannot be in both at once.
    """
    if not professional_ids:
        return []
    query = _live_bookings_query(range_start, range_end).where(
        Booking.professional_id.in_(list(professional_ids))
    )
    return _overlapping(db.execute(query).scalars(), range_start, range_end)


def load_user_occupancy(
    db: Session,
    customer_id: UUID,
    user_id: UUID,
    range_start: datetime,
    range_end: datetime,
) -> list[Booking]:
    """Live bookings of one user within a tenant overlapping a range."""
    query = _live_bookings_query(range_start, range_end).where(
        Booking.customer_id == customer_id,
        Booking.user_id == user_id,
    )
    return _overlapping(db.execute(query).scalars(), range_start, range_end)


def find_professional_conflict(
    db: Session,
    professional_id: UUID,
    start: datetime,
    end: datetime,
    exclude_booking_id: UUID | None = None,
) -> Booking | None:
    """First live booking of a professional overlapping [start, end)."""
    for booking in load_professional_occupancy(db, [professional_id], start, end):
        if booking.id != exclude_booking_id:
            return booking
    return None


def find_user_conflict(
    db: Session,
    customer_id: UUID,
    user_id: UUID,
    start: datetime,
    end: datetime,
    exclude_booking_id: UUID | None = None,
) -> Booking | None:
    """First live booking of a user (within the tenant) overlapping [start, end)."""
    for booking in load_user_occupancy(db, customer_id, user_id, start, end):
        if booking.id != exclude_booking_id:
            return booking
    return None


# =============================================================================
# Resolution
# =============================================================================

def resolve(
    candidates: Sequence[CandidateSlot],
    bookings: Iterable[Booking],
    user_bookings: Iterable[Booking] = (),
    now: datetime | None = None,
    requested_professional_id: UUID | None = None,
) -> list[CandidateSlot]:
    """
    Downgrade candidate availability by occupancy.

    Per slot, professionals holding an overlapping booking are dropped; the
    slot stays available only while at least one professional remains, it
    does not overlap the caller's own bookings, and it starts after ``now``.
    Flags are never upgraded.
    """
    busy: dict[UUID, list[tuple[datetime, datetime]]] = {}
    for booking in bookings:
        busy.setdefault(booking.professional_id, []).append(occupancy_interval(booking))
    own = [occupancy_interval(b) for b in user_bookings]

    resolved: list[CandidateSlot] = []
    for slot in candidates:
        free = tuple(
            professional_id
            for professional_id in slot.professional_ids
            if not any(
                overlaps(slot.start, slot.end, start, end)
                for start, end in busy.get(professional_id, ())
            )
        )
        user_busy = any(overlaps(slot.start, slot.end, start, end) for start, end in own)
        in_past = now is not None and slot.start <= now
        available = slot.available and bool(free) and not user_busy and not in_past

        if requested_professional_id is not None:
            professional_id = requested_professional_id
        else:
            professional_id = free[0] if available else None

        resolved.append(
            slot._replace(
                professional_ids=free,
                available=available,
                professional_id=professional_id,
            )
        )
    return resolved
