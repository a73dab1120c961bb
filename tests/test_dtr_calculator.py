"""Tests for daily time record calculation."""

from datetime import date, datetime, timedelta
from uuid import uuid4

from hypothesis import given, settings, strategies as st

from ph_payroll.attendance.dtr_calculator import (
    CORE_HOURS_REASON,
    MISSING_CLOCK_OUT_REASON,
    NO_SCHEDULE_REASON,
    REST_DAY_WORK_REASON,
    DtrCalculator,
    day_closes_at,
)
from ph_payroll.attendance.punch_reconciler import PunchReconciler
from ph_payroll.attendance.schedules import parse_schedule_config
from ph_payroll.attendance.types import DtrStatus, HolidayInfo, HolidayType, PunchRecord

MONDAY = date(2025, 3, 3)
SUNDAY = date(2025, 3, 9)

DAY_SHIFT = parse_schedule_config(
    "fixed",
    {
        "start_time": "08:00",
        "end_time": "17:00",
        "break": {"start_time": "12:00", "duration_minutes": 60},
    },
)

NIGHT_SHIFT = parse_schedule_config(
    "fixed",
    {"start_time": "22:00", "end_time": "06:00"},
    night_differential={"enabled": True, "start_time": "22:00", "end_time": "06:00"},
)


def calculate(work_date, schedule, punches, holiday=None, now=None, overtime_approved=False):
    plan = schedule.plan_for(work_date) if schedule is not None else None
    records = [
        PunchRecord(i, at, direction) for i, (at, direction) in enumerate(punches, start=1)
    ]
    now = now or datetime(2025, 3, 31)
    rec = PunchReconciler().reconcile(
        records,
        day_closes_at=day_closes_at(plan, work_date),
        now=now,
    )
    return DtrCalculator().calculate(
        work_date, plan, rec, now, holiday=holiday, overtime_approved=overtime_approved
    )


def holiday(holiday_type: HolidayType, on: date = MONDAY) -> HolidayInfo:
    return HolidayInfo(uuid4(), "Test holiday", on, holiday_type)


class TestPresentDays:
    """Worked days on a fixed schedule."""

    def test_on_time_full_day(self):
        """An unpunched lunch is deducted when the session spans it."""
        result = calculate(
            MONDAY,
            DAY_SHIFT,
            [(datetime(2025, 3, 3, 8, 0), "in"), (datetime(2025, 3, 3, 17, 0), "out")],
        )

        assert result.status == DtrStatus.PRESENT
        assert result.work_minutes == 480
        assert result.break_minutes == 60
        assert result.late_minutes == 0
        assert result.undertime_minutes == 0
        assert result.overtime_minutes == 0
        assert result.needs_review is False

    def test_late_and_undertime(self):
        """Late is measured from scheduled start, undertime to scheduled end."""
        result = calculate(
            MONDAY,
            DAY_SHIFT,
            [(datetime(2025, 3, 3, 8, 15), "in"), (datetime(2025, 3, 3, 16, 30), "out")],
        )

        assert result.late_minutes == 15
        assert result.undertime_minutes == 30
        assert result.work_minutes == 435
        assert result.overtime_minutes == 0

    def test_overtime_unapproved_by_default(self):
        """Overtime is recorded but not paid until approved."""
        result = calculate(
            MONDAY,
            DAY_SHIFT,
            [(datetime(2025, 3, 3, 8, 0), "in"), (datetime(2025, 3, 3, 19, 0), "out")],
        )

        assert result.work_minutes == 600
        assert result.overtime_minutes == 120
        assert result.overtime_approved is False
        assert result.paid_overtime_minutes == 0

    def test_overtime_approval_carried(self):
        result = calculate(
            MONDAY,
            DAY_SHIFT,
            [(datetime(2025, 3, 3, 8, 0), "in"), (datetime(2025, 3, 3, 19, 0), "out")],
            overtime_approved=True,
        )

        assert result.paid_overtime_minutes == 120

    def test_night_shift_differential(self):
        """Work inside the 22:00-06:00 window earns night differential minutes."""
        result = calculate(
            MONDAY,
            NIGHT_SHIFT,
            [(datetime(2025, 3, 3, 22, 0), "in"), (datetime(2025, 3, 4, 6, 0), "out")],
        )

        assert result.work_minutes == 480
        assert result.night_diff_minutes == 480
        assert result.late_minutes == 0

    def test_day_shift_has_no_night_minutes(self):
        result = calculate(
            MONDAY,
            DAY_SHIFT,
            [(datetime(2025, 3, 3, 8, 0), "in"), (datetime(2025, 3, 3, 17, 0), "out")],
        )

        assert result.night_diff_minutes == 0

    def test_invalid_punch_flags_review(self):
        """Anomalies keep the day computable but flag it."""
        result = calculate(
            MONDAY,
            DAY_SHIFT,
            [
                (datetime(2025, 3, 3, 8, 0), "in"),
                (datetime(2025, 3, 3, 8, 2), "in"),
                (datetime(2025, 3, 3, 17, 0), "out"),
            ],
        )

        assert result.status == DtrStatus.PRESENT
        assert result.work_minutes == 480
        assert result.needs_review is True
        assert "duplicate in" in result.review_reason
        assert len(result.anomalies) == 1


class TestNonWorkedDays:
    """Days without valid punches."""

    def test_absent(self):
        result = calculate(MONDAY, DAY_SHIFT, [])

        assert result.status == DtrStatus.ABSENT
        assert result.needs_review is False

    def test_rest_day(self):
        result = calculate(SUNDAY, DAY_SHIFT, [])

        assert result.status == DtrStatus.REST_DAY
        assert result.is_rest_day is True

    def test_non_working_holiday(self):
        """A regular holiday without punches is a paid holiday, not an absence."""
        result = calculate(MONDAY, DAY_SHIFT, [], holiday=holiday(HolidayType.REGULAR))

        assert result.status == DtrStatus.HOLIDAY
        assert result.holiday_type == HolidayType.REGULAR

    def test_special_working_holiday_is_ordinary_day(self):
        """Special working holidays do not excuse absence."""
        result = calculate(
            MONDAY, DAY_SHIFT, [], holiday=holiday(HolidayType.SPECIAL_WORKING)
        )

        assert result.status == DtrStatus.ABSENT
        assert result.holiday_type is None


class TestRestDayWork:
    """Work on a rest day."""

    def test_all_work_is_overtime(self):
        """Every minute on a rest day is overtime pending approval."""
        result = calculate(
            SUNDAY,
            DAY_SHIFT,
            [(datetime(2025, 3, 9, 13, 0), "in"), (datetime(2025, 3, 9, 17, 0), "out")],
        )

        assert result.status == DtrStatus.PRESENT
        assert result.is_rest_day is True
        assert result.work_minutes == 240
        assert result.overtime_minutes == 240
        assert result.late_minutes == 0
        assert REST_DAY_WORK_REASON in result.review_reasons


class TestIncompleteDays:
    """Days that cannot be paid yet."""

    def test_no_schedule(self):
        """Without a plan the day needs review and blocks payroll."""
        result = calculate(
            MONDAY,
            None,
            [(datetime(2025, 3, 3, 8, 0), "in"), (datetime(2025, 3, 3, 17, 0), "out")],
        )

        assert result.status == DtrStatus.NO_SCHEDULE
        assert result.is_incomplete is True
        assert result.needs_review is True
        assert result.review_reasons[0] == NO_SCHEDULE_REASON
        assert result.first_in == datetime(2025, 3, 3, 8, 0)

    def test_missing_clock_out(self):
        """An unmatched in after the day has closed is flagged and incomplete."""
        result = calculate(
            MONDAY,
            DAY_SHIFT,
            [(datetime(2025, 3, 3, 8, 0), "in")],
            now=datetime(2025, 3, 4, 9, 0),
        )

        assert result.status == DtrStatus.PRESENT
        assert result.is_incomplete is True
        assert MISSING_CLOCK_OUT_REASON in result.review_reasons
        assert result.work_minutes == 0

    def test_day_in_progress(self):
        """Before the scheduled end an open session is not yet an error."""
        result = calculate(
            MONDAY,
            DAY_SHIFT,
            [(datetime(2025, 3, 3, 8, 0), "in")],
            now=datetime(2025, 3, 3, 11, 0),
        )

        assert result.is_incomplete is True
        assert result.needs_review is False

    def test_calculator_clock_decides_day_closing(self):
        """The calculator's own ``now`` rules, not the reconciler's default."""
        plan = DAY_SHIFT.plan_for(MONDAY)
        rec = PunchReconciler().reconcile([PunchRecord(1, datetime(2025, 3, 3, 8, 0), "in")])
        assert rec.missing_clock_out is True

        result = DtrCalculator().calculate(MONDAY, plan, rec, datetime(2025, 3, 3, 11, 0))

        assert result.is_incomplete is True
        assert result.needs_review is False

    def test_second_session_never_closed(self):
        """Work and breaks stop at the last clock-out when a later session stays open."""
        result = calculate(
            MONDAY,
            DAY_SHIFT,
            [
                (datetime(2025, 3, 3, 8, 0), "in"),
                (datetime(2025, 3, 3, 12, 0), "out"),
                (datetime(2025, 3, 3, 13, 0), "in"),
            ],
            now=datetime(2025, 3, 4, 9, 0),
        )

        assert result.status == DtrStatus.PRESENT
        assert result.is_incomplete is True
        assert MISSING_CLOCK_OUT_REASON in result.review_reasons
        assert result.last_out == datetime(2025, 3, 3, 12, 0)
        assert result.work_minutes == 240
        assert result.break_minutes == 0
        span = int((result.last_out - result.first_in).total_seconds() // 60)
        assert result.work_minutes == span - result.break_minutes


class TestFlexibleDays:
    """Flexible schedule rules."""

    FLEX = parse_schedule_config(
        "flexible",
        {
            "required_hours_per_day": 8,
            "core_hours": {"start_time": "10:00", "end_time": "15:00"},
            "flexible_start_window": {"earliest": "07:00", "latest": "10:00"},
            "break": {"duration_minutes": 60},
        },
    )

    def test_late_after_latest_start(self):
        result = calculate(
            MONDAY,
            self.FLEX,
            [(datetime(2025, 3, 3, 10, 30), "in"), (datetime(2025, 3, 3, 19, 30), "out")],
        )

        assert result.late_minutes == 30
        assert result.work_minutes == 480
        assert result.undertime_minutes == 0

    def test_core_hours_missed(self):
        """Leaving before the core window ends is flagged for review."""
        result = calculate(
            MONDAY,
            self.FLEX,
            [(datetime(2025, 3, 3, 7, 0), "in"), (datetime(2025, 3, 3, 14, 0), "out")],
        )

        assert CORE_HOURS_REASON in result.review_reasons
        assert result.undertime_minutes == 120


class TestWorkMinutesInvariant:
    @given(
        raw=st.lists(
            st.tuples(
                st.integers(0, 14 * 60),
                st.sampled_from(["in", "out", "break_out", "break_in"]),
            ),
            max_size=10,
        )
    )
    @settings(max_examples=300)
    def test_closed_day_work_is_span_less_breaks(self, raw):
        """Once the day has closed every present day satisfies the work identity."""
        start = datetime(2025, 3, 3, 6, 0)
        result = calculate(
            MONDAY,
            DAY_SHIFT,
            [(start + timedelta(minutes=offset), direction) for offset, direction in raw],
        )

        if result.status != DtrStatus.PRESENT or result.last_out is None:
            return
        span = int((result.last_out - result.first_in).total_seconds() // 60)
        assert result.work_minutes == span - result.break_minutes
        assert result.work_minutes >= 0
