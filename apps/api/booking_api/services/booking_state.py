"""Booking status transitions.

PENDING -> CONFIRMED, PENDING -> CANCELLED, CONFIRMED -> CANCELLED.
CANCELLED is terminal and nothing ever returns to PENDING.
"""

from booking_api.db.enums import BookingStatus
from booking_api.services.booking_errors import BookingConflict, Reason

ALLOWED_TRANSITIONS: dict[BookingStatus, frozenset[BookingStatus]] = {
    BookingStatus.PENDING: frozenset({BookingStatus.CONFIRMED, BookingStatus.CANCELLED}),
    BookingStatus.CONFIRMED: frozenset({BookingStatus.CANCELLED}),
    BookingStatus.CANCELLED: frozenset(),
}


def can_transition(current: BookingStatus | str, target: BookingStatus | str) -> bool:
    return BookingStatus(target) in ALLOWED_TRANSITIONS[BookingStatus(current)]


def ensure_transition(current: BookingStatus | str, target: BookingStatus | str) -> None:
    """
    Raise BookingConflict unless current -> target is allowed.

    The reason tells the caller why: a booking already in the target state
    (or already cancelled) reports that state, anything else is an
    invalid transition.
    """
    current = BookingStatus(current)
    target = BookingStatus(target)
    if target in ALLOWED_TRANSITIONS[current]:
        return

    if current == BookingStatus.CANCELLED:
        raise BookingConflict(Reason.ALREADY_CANCELLED, "Booking is already CANCELLED")
    if current == BookingStatus.CONFIRMED and target == BookingStatus.CONFIRMED:
        raise BookingConflict(Reason.ALREADY_CONFIRMED, "Booking is already CONFIRMED")
    raise BookingConflict(
        Reason.INVALID_TRANSITION,
        f"Cannot change booking status from {current.value} to {target.value}",
    )
