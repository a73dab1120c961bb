"""Daily time record calculation.

Pure: takes the day's plan, the reconciled punches, and the applicable
holiday, and returns a ``DtrResult``. Persistence lives in ``DtrService``.
"""

from __future__ import annotations

import logging
from datetime import date, datetime, time, timedelta

from ph_payroll.attendance.types import (
    DayPlan,
    DtrResult,
    DtrStatus,
    HolidayInfo,
    Interval,
    NightDifferentialRule,
    PunchReconciliation,
    ScheduleKind,
)

logger = logging.getLogger(__name__)

NO_SCHEDULE_REASON = "No schedule assigned"
UNRESOLVED_SHIFT_REASON = "Shift could not be resolved"
MISSING_CLOCK_OUT_REASON = "Missing clock-out"
REST_DAY_WORK_REASON = "Work on rest day - OT pending approval"
CORE_HOURS_REASON = "Absent during core hours"

# A single session longer than this implies the anytime break was taken
ANYTIME_BREAK_AFTER_MINUTES = 300


def day_closes_at(plan: DayPlan | None, work_date: date) -> datetime:
    """Scheduled end when known, otherwise the following midnight."""
    if plan is not None and plan.scheduled_end is not None:
        return plan.scheduled_end
    return datetime.combine(work_date + timedelta(days=1), time(0, 0))


def _minutes(delta: timedelta) -> int:
    return int(delta.total_seconds() // 60)


def night_windows(rule: NightDifferentialRule, work_date: date) -> list[Interval]:
    """Night windows that can touch work done on ``work_date``.

    A 22:00-06:00 window starting the previous evening covers early-morning
    work; the one starting on the work date covers late-evening work.
    """
    windows = []
    for anchor in (work_date - timedelta(days=1), work_date):
        start = datetime.combine(anchor, rule.start_time)
        end = datetime.combine(anchor, rule.end_time)
        if end <= start:
            end += timedelta(days=1)
        windows.append(Interval(start, end))
    return windows


class DtrCalculator:
    """Computes one employee-day from schedule, punches, and holiday.

    ``now`` decides whether an open session is still in progress or a missing
    clock-out; it is always passed in.
    """

    def calculate(
        self,
        work_date: date,
        plan: DayPlan | None,
        reconciliation: PunchReconciliation,
        now: datetime,
        holiday: HolidayInfo | None = None,
        overtime_approved: bool = False,
        no_plan_reason: str = NO_SCHEDULE_REASON,
    ) -> DtrResult:
        rec = reconciliation
        anomaly_reasons = self._anomaly_reasons(rec)

        if plan is None:
            return DtrResult(
                work_date=work_date,
                status=DtrStatus.NO_SCHEDULE,
                first_in=rec.first_in,
                last_out=rec.last_out,
                overtime_approved=overtime_approved,
                needs_review=True,
                review_reasons=(no_plan_reason, *anomaly_reasons),
                is_incomplete=True,
                anomalies=rec.anomalies,
            )

        non_working_holiday = holiday if holiday and holiday.holiday_type.is_non_working else None
        is_rest_day = not plan.is_work_day
        base = {
            "work_date": work_date,
            "schedule_id": plan.schedule_id,
            "shift_name": plan.shift_name,
            "overtime_approved": overtime_approved,
            "is_rest_day": is_rest_day,
            "holiday_id": non_working_holiday.holiday_id if non_working_holiday else None,
            "holiday_type": non_working_holiday.holiday_type if non_working_holiday else None,
            "anomalies": rec.anomalies,
        }

        if not rec.has_valid_punches:
            if non_working_holiday:
                status = DtrStatus.HOLIDAY
            elif is_rest_day:
                status = DtrStatus.REST_DAY
            else:
                status = DtrStatus.ABSENT
            return DtrResult(
                status=status,
                needs_review=bool(anomaly_reasons),
                review_reasons=anomaly_reasons,
                **base,
            )

        missing_clock_out = (
            rec.open_session_start is not None and now >= day_closes_at(plan, work_date)
        )
        if rec.open_session_start is not None and not missing_clock_out:
            # Day still in progress
            return DtrResult(
                status=DtrStatus.PRESENT,
                first_in=rec.first_in,
                last_out=rec.last_out,
                needs_review=bool(anomaly_reasons),
                review_reasons=anomaly_reasons,
                is_incomplete=True,
                **base,
            )

        reasons: list[str] = []
        intervals, work, break_minutes = self._work_after_breaks(plan, rec)
        late = undertime = overtime = 0

        if is_rest_day:
            overtime = work
            reasons.append(REST_DAY_WORK_REASON)
        elif rec.last_out is not None:
            if plan.kind is ScheduleKind.FLEXIBLE:
                late, undertime, overtime = self._flexible_math(plan, rec, work, reasons)
            else:
                late, undertime, overtime = self._fixed_math(plan, rec, work)

        night = 0
        if plan.night_differential.enabled:
            windows = night_windows(plan.night_differential, work_date)
            night = sum(i.overlap_minutes(w) for i in intervals for w in windows)
            night = min(night, work)

        incomplete = False
        if missing_clock_out:
            reasons.append(MISSING_CLOCK_OUT_REASON)
            incomplete = True
        reasons.extend(anomaly_reasons)
        if reasons:
            logger.debug("DTR for %s flagged for review: %s", work_date, "; ".join(reasons))

        return DtrResult(
            status=DtrStatus.PRESENT,
            first_in=rec.first_in,
            last_out=rec.last_out,
            work_minutes=work,
            break_minutes=break_minutes,
            late_minutes=late,
            undertime_minutes=undertime,
            overtime_minutes=overtime,
            night_diff_minutes=night,
            needs_review=bool(reasons),
            review_reasons=tuple(reasons),
            is_incomplete=incomplete,
            **base,
        )

    def _anomaly_reasons(self, rec: PunchReconciliation) -> tuple[str, ...]:
        if not rec.anomalies:
            return ()
        seen: list[str] = []
        for anomaly in rec.anomalies:
            if anomaly.reason not in seen:
                seen.append(anomaly.reason)
        return (f"Invalid punches: {', '.join(seen)}",)

    def _work_after_breaks(
        self, plan: DayPlan, rec: PunchReconciliation
    ) -> tuple[list[Interval], int, int]:
        """Work intervals, work minutes, and break minutes.

        When the employee never punched a break, a single session that spans
        the scheduled break has the mandatory break deducted anyway.
        """
        intervals = rec.work_intervals()
        work = sum(i.minutes for i in intervals)
        break_minutes = rec.break_minutes

        duration = plan.break_rule.duration_minutes
        if duration <= 0 or rec.breaks or len(rec.sessions) != 1:
            return intervals, work, break_minutes

        session = rec.sessions[0]
        break_start = plan.scheduled_break_start
        if break_start is not None:
            if not (session.start <= break_start < session.end):
                return intervals, work, break_minutes
            cut = Interval(break_start, min(break_start + timedelta(minutes=duration), session.end))
            intervals = [
                piece
                for piece in (Interval(session.start, cut.start), Interval(cut.end, session.end))
                if piece.minutes > 0
            ]
            deducted = cut.minutes
        else:
            if session.minutes <= ANYTIME_BREAK_AFTER_MINUTES:
                return intervals, work, break_minutes
            deducted = min(duration, work)

        return intervals, work - deducted, break_minutes + deducted

    def _fixed_math(
        self, plan: DayPlan, rec: PunchReconciliation, work: int
    ) -> tuple[int, int, int]:
        threshold = plan.overtime_threshold_minutes

        if plan.scheduled_start is None or plan.scheduled_end is None:
            # Compressed days without a fixed start are judged on hours alone
            undertime = max(0, plan.required_minutes - work)
            return 0, undertime, max(0, work - threshold)

        late = max(0, _minutes(rec.first_in - plan.scheduled_start))
        undertime = max(0, _minutes(plan.scheduled_end - rec.last_out))
        overtime = max(_minutes(rec.last_out - plan.scheduled_end), work - threshold, 0)
        return late, undertime, overtime

    def _flexible_math(
        self,
        plan: DayPlan,
        rec: PunchReconciliation,
        work: int,
        reasons: list[str],
    ) -> tuple[int, int, int]:
        late = 0
        if plan.latest_start is not None:
            late = max(0, _minutes(rec.first_in - plan.latest_start))

        undertime = max(0, plan.required_minutes - work)
        overtime = max(0, work - plan.overtime_threshold_minutes)

        if plan.core_start is not None and plan.core_end is not None:
            if rec.first_in > plan.core_start or rec.last_out < plan.core_end:
                reasons.append(CORE_HOURS_REASON)

        return late, undertime, overtime
