"""Availability service - bookable slot grid for one branch/service/day.

Data flow: schedule store -> slot generator -> occupancy resolver. The result
is a best-effort snapshot; the booking writer re-checks everything at commit.
"""

import logging
import re
from datetime import date, datetime, time, timedelta, timezone
from typing import NamedTuple
from uuid import UUID
from zoneinfo import ZoneInfo

from sqlalchemy.orm import Session

from booking_api.db.models import Branch, Service
from booking_api.services import catalog_service, occupancy, schedule_store, slot_generator
from booking_api.services.booking_errors import InvalidBookingRequest, Reason
from booking_api.services.slot_generator import CandidateSlot

logger = logging.getLogger(__name__)

DATE_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}$")


class AvailabilityResult(NamedTuple):
    """Slot grid for one local day, plus the entities it was computed for."""
    date: date
    branch: Branch
    service: Service
    timezone: str
    slots: list[CandidateSlot]


def parse_date(date_str: str) -> date:
    """Parse a strict YYYY-MM-DD calendar date."""
    if not date_str or not DATE_PATTERN.match(date_str):
        raise InvalidBookingRequest(
            Reason.INVALID_DATE, "Invalid date format. Use YYYY-MM-DD"
        )
    try:
        return date.fromisoformat(date_str)
    except ValueError:
        raise InvalidBookingRequest(Reason.INVALID_DATE, "Invalid calendar date")


def local_day_bounds(local_date: date, tz: ZoneInfo) -> tuple[datetime, datetime]:
    """UTC instants bounding a local calendar day."""
    start = datetime.combine(local_date, time.min, tzinfo=tz)
    end = datetime.combine(local_date + timedelta(days=1), time.min, tzinfo=tz)
    return start.astimezone(timezone.utc), end.astimezone(timezone.utc)


def check_availability(
    db: Session,
    customer_id: UUID,
    branch_id: UUID,
    service_id: UUID,
    date_str: str,
    professional_id: UUID | None = None,
    user_id: UUID | None = None,
    now: datetime | None = None,
) -> AvailabilityResult:
    """
    Compute the slot grid for a branch and service on a local date.

    With ``professional_id`` only that professional is considered; otherwise
    a slot is available when any active professional assigned to the branch
    can serve it. With ``user_id`` the caller's own bookings in the tenant
    also block overlapping slots. A closed day yields an empty grid.
    """
    local_date = parse_date(date_str)
    branch = catalog_service.get_branch(db, customer_id, branch_id)
    service = catalog_service.get_service(db, customer_id, service_id)

    if professional_id is not None:
        professionals = [
            catalog_service.get_branch_professional(
                db, customer_id, branch.id, professional_id
            )
        ]
    else:
        professionals = catalog_service.list_branch_professionals(db, branch.id)

    tz = schedule_store.branch_timezone(db, branch)
    dow = schedule_store.day_of_week(local_date)
    branch_window = schedule_store.branch_window(db, branch.id, dow)
    if branch_window is None or branch_window.is_closed:
        return AvailabilityResult(local_date, branch, service, tz.key, [])

    professional_ids = [p.id for p in professionals]
    windows = schedule_store.professional_windows(db, professional_ids, dow)
    candidates = slot_generator.generate_candidates(
        branch_window,
        [(pid, windows.get(pid)) for pid in professional_ids],
        service.duration_minutes,
        local_date,
        tz,
    )
    if not candidates:
        return AvailabilityResult(local_date, branch, service, tz.key, [])

    range_start = candidates[0].start
    range_end = max(slot.end for slot in candidates)
    bookings = occupancy.load_professional_occupancy(
        db, professional_ids, range_start, range_end
    )
    user_bookings = (
        occupancy.load_user_occupancy(db, customer_id, user_id, range_start, range_end)
        if user_id is not None
        else []
    )

    slots = occupancy.resolve(
        candidates,
        bookings,
        user_bookings,
        now=now or datetime.now(timezone.utc),
        requested_professional_id=professional_id,
    )
    logger.debug(
        "Availability computed",
        extra={
            "branch_id": str(branch.id),
            "date": local_date.isoformat(),
            "slots": len(slots),
            "available": sum(1 for s in slots if s.available),
        },
    )
    return AvailabilityResult(local_date, branch, service, tz.key, slots)
