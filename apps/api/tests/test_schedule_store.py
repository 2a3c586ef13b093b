"""Tests for schedule store lookups and timezone resolution."""

from datetime import date, time

from booking_api.db.models import Branch, BranchSchedule, ProfessionalSchedule
from booking_api.services import schedule_store
from booking_api.services.schedule_store import CLOSED, day_of_week, parse_hhmm


class TestDayOfWeek:
    def test_sunday_is_zero(self):
        assert day_of_week(date(2030, 1, 6)) == 0  # Sunday
        assert day_of_week(date(2030, 1, 7)) == 1  # Monday
        assert day_of_week(date(2030, 1, 12)) == 6  # Saturday

    def test_parse_hhmm(self):
        assert parse_hhmm("09:30") == time(9, 30)


class TestWindows:
    def test_open_branch_day(self, db, salon):
        window = schedule_store.branch_window(db, salon.branch.id, 1)

        assert window.is_open
        assert window.start == time(9)
        assert window.end == time(17)
        assert not window.has_break

    def test_closed_branch_day(self, db, salon):
        window = schedule_store.branch_window(db, salon.branch.id, 6)

        assert window.is_closed

    def test_missing_branch_day_is_none(self, db, salon):
        assert schedule_store.branch_window(db, salon.branch.id, 0) is None

    def test_professional_window_has_break(self, db, salon):
        window = schedule_store.professional_window(db, salon.professional.id, 1)

        assert window.has_break
        assert window.break_start == time(12)
        assert window.break_end == time(13)

    def test_invalid_row_fails_closed(self, db, salon):
        db.add(BranchSchedule(
            branch_id=salon.branch.id, day_of_week=0, start_time="18:00", end_time="09:00"
        ))
        db.commit()

        assert schedule_store.branch_window(db, salon.branch.id, 0) == CLOSED

    def test_break_outside_hours_fails_closed(self, db, salon):
        row = db.query(ProfessionalSchedule).filter(
            ProfessionalSchedule.professional_id == salon.professional.id,
            ProfessionalSchedule.day_of_week == 2,
        ).one()
        row.break_start_time = "16:30"
        row.break_end_time = "17:30"
        db.commit()

        window = schedule_store.professional_window(db, salon.professional.id, 2)

        assert window.is_closed

    def test_bulk_windows(self, db, salon, second_professional):
        windows = schedule_store.professional_windows(
            db, [salon.professional.id, second_professional.id], 1
        )

        assert windows[salon.professional.id].has_break
        assert not windows[second_professional.id].has_break


class TestBranchTimezone:
    def test_branch_zone_wins(self, db, salon):
        salon.branch.timezone = "Europe/Lisbon"
        db.commit()

        assert schedule_store.branch_timezone(db, salon.branch).key == "Europe/Lisbon"

    def test_falls_back_to_tenant_default(self, db, salon):
        salon.customer.default_timezone = "America/Chicago"
        db.commit()

        assert schedule_store.branch_timezone(db, salon.branch).key == "America/Chicago"

    def test_unknown_zone_falls_back_to_utc(self, db, salon):
        branch = Branch(
            customer_id=salon.customer.id, name="Nowhere", timezone="Mars/Olympus_Mons"
        )
        db.add(branch)
        db.commit()

        assert schedule_store.branch_timezone(db, branch).key == "UTC"
