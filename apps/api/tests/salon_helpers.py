"""Date helpers shared by the test modules."""

from datetime import date, datetime, time, timedelta, timezone


def next_weekday(weekday: int) -> date:
    """Next date (strictly after today, UTC) with the given Python weekday (Monday=0)."""
    today = datetime.now(timezone.utc).date()
    days_ahead = (weekday - today.weekday()) % 7 or 7
    return today + timedelta(days=days_ahead)


def at(day: date, hhmm: str, tz=timezone.utc) -> datetime:
    """Aware UTC instant for a wall-clock time on a date."""
    hours, minutes = hhmm.split(":")
    local = datetime.combine(day, time(int(hours), int(minutes)), tzinfo=tz)
    return local.astimezone(timezone.utc)
