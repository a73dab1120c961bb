"""Tests for DTR summaries used by entry computation."""

from datetime import date
from types import SimpleNamespace
from uuid import uuid4

from ph_payroll.services.entry_computer import ends_month, summarize_attendance

SCHEDULE_ID = uuid4()


def dtr(status="present", **fields):
    values = {
        "status": status,
        "work_minutes": 480 if status == "present" else 0,
        "overtime_minutes": 0,
        "overtime_approved": False,
        "late_minutes": 0,
        "undertime_minutes": 0,
        "night_diff_minutes": 0,
        "is_rest_day": False,
        "holiday_type": None,
        "work_schedule_id": SCHEDULE_ID,
    }
    values.update(fields)
    return SimpleNamespace(**values)


class TestSummarizeAttendance:
    """Minutes and day counts over a cutoff."""

    def test_day_counts(self):
        summary = summarize_attendance(
            [
                dtr(),
                dtr(),
                dtr("absent"),
                dtr("holiday", holiday_type="regular"),
                dtr("rest_day", is_rest_day=True),
            ]
        )

        assert summary.days_worked == 2
        assert summary.absent_days == 1
        assert summary.holiday_days == 1
        assert summary.rest_days == 1
        assert summary.regular_minutes == 960

    def test_late_and_undertime_summed(self):
        summary = summarize_attendance(
            [dtr(late_minutes=15, undertime_minutes=30), dtr(late_minutes=5)]
        )

        assert summary.late_minutes == 20
        assert summary.undertime_minutes == 30

    def test_unapproved_overtime_not_paid(self):
        """Unapproved overtime is reported but never bucketed for pay."""
        summary = summarize_attendance([dtr(work_minutes=600, overtime_minutes=120)])

        assert summary.unapproved_overtime_minutes == 120
        assert summary.overtime_minutes == 0
        assert summary.regular_minutes == 480

    def test_approved_overtime_buckets(self):
        summary = summarize_attendance(
            [
                dtr(work_minutes=600, overtime_minutes=120, overtime_approved=True),
                dtr(
                    work_minutes=240,
                    overtime_minutes=240,
                    overtime_approved=True,
                    is_rest_day=True,
                ),
            ]
        )

        assert summary.overtime[("regular", SCHEDULE_ID)] == 120
        assert summary.overtime[("rest_day", SCHEDULE_ID)] == 240
        assert summary.overtime_minutes == 360
        # Rest day work is not a regular day worked
        assert summary.days_worked == 1

    def test_worked_holiday_counted(self):
        summary = summarize_attendance([dtr(holiday_type="regular")])

        assert summary.holidays_worked == {"regular": 1}
        assert summary.days_worked == 1

    def test_night_differential_by_schedule(self):
        other = uuid4()
        summary = summarize_attendance(
            [
                dtr(night_diff_minutes=480),
                dtr(night_diff_minutes=60, work_schedule_id=other),
            ]
        )

        assert summary.night_diff == {SCHEDULE_ID: 480, other: 60}
        assert summary.night_diff_minutes == 540


class TestEndsMonth:
    def test_month_end(self):
        assert ends_month(date(2025, 3, 31)) is True
        assert ends_month(date(2024, 2, 29)) is True
        assert ends_month(date(2025, 2, 28)) is True

    def test_mid_month(self):
        assert ends_month(date(2025, 3, 15)) is False
