"""Schedule store - read-only access to weekly operating windows.

A missing row for a day is treated exactly like a closed day. Rows that break
the window invariants are also treated as closed.
"""

import logging
from datetime import date, time
from typing import NamedTuple
from uuid import UUID
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from sqlalchemy import select
from sqlalchemy.orm import Session

from booking_api.core.config import settings
from booking_api.db.models import Branch, BranchSchedule, Customer, ProfessionalSchedule

logger = logging.getLogger(__name__)


class OperatingWindow(NamedTuple):
    """Local wall-clock hours for one entity on one day of the week."""
    is_closed: bool
    start: time
    end: time
    break_start: time | None = None
    break_end: time | None = None

    @property
    def is_open(self) -> bool:
        return not self.is_closed

    @property
    def has_break(self) -> bool:
        return self.break_start is not None and self.break_end is not None


CLOSED = OperatingWindow(is_closed=True, start=time.min, end=time.min)


def parse_hhmm(value: str) -> time:
    """Parse a "HH:MM" string into a time."""
    hours, minutes = value.split(":")
    return time(int(hours), int(minutes))


def day_of_week(local_date: date) -> int:
    """Day-of-week index used by schedule rows: Sunday=0 ... Saturday=6."""
    return (local_date.weekday() + 1) % 7


def _build_window(
    is_closed: bool,
    start_time: str,
    end_time: str,
    break_start_time: str | None = None,
    break_end_time: str | None = None,
) -> OperatingWindow | None:
    """Build a window from stored strings; returns None when the row is invalid."""
    if is_closed:
        return CLOSED
    try:
        start = parse_hhmm(start_time)
        end = parse_hhmm(end_time)
        break_start = parse_hhmm(break_start_time) if break_start_time else None
        break_end = parse_hhmm(break_end_time) if break_end_time else None
    except ValueError:
        return None

    if start >= end:
        return None
    if (break_start is None) != (break_end is None):
        return None
    if break_start is not None:
        if not (start <= break_start < break_end <= end):
            return None

    return OperatingWindow(
        is_closed=False,
        start=start,
        end=end,
        break_start=break_start,
        break_end=break_end,
    )


def _branch_row_to_window(row: BranchSchedule) -> OperatingWindow:
    window = _build_window(row.is_closed, row.start_time, row.end_time)
    if window is None:
        logger.warning(
            "Invalid branch schedule row treated as closed",
            extra={"branch_id": str(row.branch_id), "day_of_week": row.day_of_week},
        )
        return CLOSED
    return window


def _professional_row_to_window(row: ProfessionalSchedule) -> OperatingWindow:
    window = _build_window(
        row.is_closed,
        row.start_time,
        row.end_time,
        row.break_start_time,
        row.break_end_time,
    )
    if window is None:
        logger.warning(
            "Invalid professional schedule row treated as closed",
            extra={
                "professional_id": str(row.professional_id),
                "day_of_week": row.day_of_week,
            },
        )
        return CLOSED
    return window


# =============================================================================
# Lookups
# =============================================================================

def branch_window(db: Session, branch_id: UUID, dow: int) -> OperatingWindow | None:
    """Operating window of a branch for a day of week, or None if undefined."""
    row = db.execute(
        select(BranchSchedule).where(
            BranchSchedule.branch_id == branch_id,
            BranchSchedule.day_of_week == dow,
        )
    ).scalar_one_or_none()
    if row is None:
        return None
    return _branch_row_to_window(row)


def professional_window(
    db: Session, professional_id: UUID, dow: int
) -> OperatingWindow | None:
    """Working window of a professional for a day of week, or None if undefined."""
    row = db.execute(
        select(ProfessionalSchedule).where(
            ProfessionalSchedule.professional_id == professional_id,
            ProfessionalSchedule.day_of_week == dow,
        )
    ).scalar_one_or_none()
    if row is None:
        return None
    return _professional_row_to_window(row)


def professional_windows(
    db: Session, professional_ids: list[UUID], dow: int
) -> dict[UUID, OperatingWindow]:
    """Bulk variant of professional_window. Missing professionals are absent."""
    if not professional_ids:
        return {}
    rows = db.execute(
        select(ProfessionalSchedule).where(
            ProfessionalSchedule.professional_id.in_(professional_ids),
            ProfessionalSchedule.day_of_week == dow,
        )
    ).scalars()
    return {row.professional_id: _professional_row_to_window(row) for row in rows}


def branch_timezone(db: Session, branch: Branch) -> ZoneInfo:
    """
    Resolve the timezone a branch's wall-clock hours are expressed in.

    Branch zone, then the tenant default, then settings.DEFAULT_TIMEZONE.
    """
    name = branch.timezone
    if not name:
        customer = db.get(Customer, branch.customer_id)
        name = customer.default_timezone if customer else None
    name = name or settings.DEFAULT_TIMEZONE
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        logger.warning(
            "Unknown timezone, falling back to UTC",
            extra={"branch_id": str(branch.id), "timezone": name},
        )
        return ZoneInfo("UTC")
