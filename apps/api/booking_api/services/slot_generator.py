"""Slot generator - candidate start times from operating hours.

Pure computation. Works in local minutes-of-day for the branch timezone and
emits UTC instants for each candidate so occupancy can be compared against
stored bookings.
"""

from datetime import date, datetime, time, timedelta, timezone
from typing import Iterable, NamedTuple
from uuid import UUID
from zoneinfo import ZoneInfo

from booking_api.services.schedule_store import OperatingWindow

SLOT_GRANULARITY_MINUTES = 15


class CandidateSlot(NamedTuple):
    """A bookable start time and the professionals able to serve it."""
    time: str  # local "HH:MM"
    start: datetime  # UTC
    end: datetime  # UTC, exclusive
    professional_ids: tuple[UUID, ...]
    available: bool = True
    professional_id: UUID | None = None


def _minutes(value: time) -> int:
    return value.hour * 60 + value.minute


def _format_minutes(minutes: int) -> str:
    return f"{minutes // 60:02d}:{minutes % 60:02d}"


def _round_up_to_grid(minutes: int) -> int:
    remainder = minutes % SLOT_GRANULARITY_MINUTES
    return minutes if remainder == 0 else minutes + SLOT_GRANULARITY_MINUTES - remainder


def window_fits(
    window: OperatingWindow | None,
    start_minutes: int,
    end_minutes: int,
) -> bool:
    """
    Whether [start, end) lies inside an open window and clear of its break.

    Half-open semantics: touching the break boundary is allowed.
    """
    if window is None or window.is_closed:
        return False
    if start_minutes < _minutes(window.start) or end_minutes > _minutes(window.end):
        return False
    if window.has_break:
        break_start = _minutes(window.break_start)
        break_end = _minutes(window.break_end)
        if start_minutes < break_end and end_minutes > break_start:
            return False
    return True


def is_on_grid(instant: datetime) -> bool:
    """Whether an instant falls on a slot boundary."""
    return (
        instant.second == 0
        and instant.microsecond == 0
        and instant.minute % SLOT_GRANULARITY_MINUTES == 0
    )


def local_span(instant: datetime, duration_minutes: int, tz: ZoneInfo) -> tuple[date, int, int]:
    """Local date plus start/end minutes-of-day for a booking starting at instant."""
    local = instant.astimezone(tz)
    start_minutes = local.hour * 60 + local.minute
    return local.date(), start_minutes, start_minutes + duration_minutes


def slot_instant(local_date: date, minutes: int, tz: ZoneInfo) -> datetime:
    """UTC instant for a local minute-of-day on a date."""
    local = datetime.combine(
        local_date, time(minutes // 60, minutes % 60), tzinfo=tz
    )
    return local.astimezone(timezone.utc)


def exists_locally(local_date: date, minutes: int, tz: ZoneInfo) -> bool:
    """False for wall-clock times skipped by a DST jump (e.g. 02:30 on spring-forward)."""
    local = slot_instant(local_date, minutes, tz).astimezone(tz)
    return local.date() == local_date and local.hour * 60 + local.minute == minutes


def generate_candidates(
    branch: OperatingWindow | None,
    professionals: Iterable[tuple[UUID, OperatingWindow | None]],
    duration_minutes: int,
    local_date: date,
    tz: ZoneInfo,
) -> list[CandidateSlot]:
    """
    Build the candidate grid for one local day.

    A closed or undefined branch day yields no slots at all. Every start whose
    whole duration fits the branch hours is emitted, except wall-clock times
    a DST jump skips. A slot is marked available when at least one of the
    given professionals can serve it (hours and break). With a single professional this is the per-professional filter,
    with several it is aggregated availability.
    """
    if branch is None or branch.is_closed:
        return []

    professionals = list(professionals)
    branch_start = _round_up_to_grid(_minutes(branch.start))
    branch_end = _minutes(branch.end)

    slots: list[CandidateSlot] = []
    for start_minutes in range(branch_start, branch_end, SLOT_GRANULARITY_MINUTES):
        end_minutes = start_minutes + duration_minutes
        if end_minutes > branch_end:
            break
        if not exists_locally(local_date, start_minutes, tz):
            continue

        feasible = tuple(
            professional_id
            for professional_id, window in professionals
            if window_fits(window, start_minutes, end_minutes)
        )
        start = slot_instant(local_date, start_minutes, tz)
        slots.append(
            CandidateSlot(
                time=_format_minutes(start_minutes),
                start=start,
                end=start + timedelta(minutes=duration_minutes),
                professional_ids=feasible,
                available=bool(feasible),
            )
        )

    return slots
