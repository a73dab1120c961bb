"""DTR computation and persistence."""

from __future__ import annotations

import logging
from datetime import date, datetime, time, timedelta
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ph_payroll.attendance.dtr_calculator import (
    NO_SCHEDULE_REASON,
    UNRESOLVED_SHIFT_REASON,
    DtrCalculator,
    day_closes_at,
)
from ph_payroll.attendance.holiday_calendar import HolidayCalendar
from ph_payroll.attendance.punch_reconciler import PunchReconciler
from ph_payroll.attendance.schedule_resolver import ScheduleResolver
from ph_payroll.attendance.types import DayPlan, DtrResult, PunchRecord
from ph_payroll.models import DailyTimeRecord, Employee, RawPunch
from ph_payroll.services.locking_service import LockingService

logger = logging.getLogger(__name__)

DEFAULT_PUNCH_WINDOW_LEAD_MINUTES = 240


def punch_window(
    plan: DayPlan | None,
    work_date: date,
    lead_minutes: int = DEFAULT_PUNCH_WINDOW_LEAD_MINUTES,
) -> tuple[datetime, datetime]:
    """Half-open window of punch timestamps that belong to a work date.

    Anchored ``lead_minutes`` before the scheduled start so overnight shifts
    keep their morning clock-out; the calendar day when there is no start.
    """
    if plan is not None and plan.scheduled_start is not None:
        start = plan.scheduled_start - timedelta(minutes=lead_minutes)
    else:
        start = datetime.combine(work_date, time(0, 0))
    return start, start + timedelta(hours=24)


class DtrService:
    """Builds and stores daily time records.

    The only writer of ``daily_time_record``. Recomputing a day from the same
    punches yields the same row; ``overtime_approved`` is carried over from
    the existing row because it belongs to the approval workflow.
    """

    def __init__(
        self,
        session: AsyncSession,
        punch_window_lead_minutes: int = DEFAULT_PUNCH_WINDOW_LEAD_MINUTES,
    ):
        self.session = session
        self.punch_window_lead_minutes = punch_window_lead_minutes
        self.resolver = ScheduleResolver(session)
        self.holidays = HolidayCalendar(session)
        self.locking = LockingService(session)
        self.reconciler = PunchReconciler()
        self.calculator = DtrCalculator()

    async def compute_day(
        self,
        employee_id: UUID,
        work_date: date,
        now: datetime,
    ) -> DailyTimeRecord:
        """Compute and upsert one employee-day.

        ``now`` is the clock used for day closing; an open session before the
        scheduled end is in progress, after it a missing clock-out.
        """
        await self.locking.ensure_date_unlocked(work_date, "recompute attendance")

        employee = await self.session.get(Employee, employee_id)
        if employee is None:
            raise ValueError(f"Employee {employee_id} not found")

        existing = await self._get_existing(employee_id, work_date)
        result = await self._calculate(employee, work_date, existing, now)
        return await self._upsert(employee_id, result, existing)

    async def compute_range(
        self,
        employee_id: UUID,
        start: date,
        end: date,
        now: datetime,
    ) -> list[DailyTimeRecord]:
        """Compute every day in ``[start, end]`` for one employee."""
        records = []
        current = start
        while current <= end:
            records.append(await self.compute_day(employee_id, current, now))
            current += timedelta(days=1)
        return records

    async def preview_day(
        self,
        employee_id: UUID,
        work_date: date,
        now: datetime,
    ) -> DtrResult:
        """Compute one employee-day without writing anything."""
        employee = await self.session.get(Employee, employee_id)
        if employee is None:
            raise ValueError(f"Employee {employee_id} not found")
        existing = await self._get_existing(employee_id, work_date)
        return await self._calculate(employee, work_date, existing, now)

    async def _calculate(
        self,
        employee: Employee,
        work_date: date,
        existing: DailyTimeRecord | None,
        now: datetime,
    ) -> DtrResult:
        resolved = await self.resolver.resolve(employee.employee_id, work_date)
        plan = resolved.plan_for(work_date) if resolved else None
        no_plan_reason = UNRESOLVED_SHIFT_REASON if resolved else NO_SCHEDULE_REASON

        holiday = await self.holidays.holiday_on(work_date, employee.work_location_id)

        window_start, window_end = punch_window(plan, work_date, self.punch_window_lead_minutes)
        punches = await self._load_punches(employee.employee_id, window_start, window_end)

        reconciliation = self.reconciler.reconcile(
            punches,
            day_closes_at=day_closes_at(plan, work_date),
            now=now,
        )
        return self.calculator.calculate(
            work_date,
            plan,
            reconciliation,
            now,
            holiday=holiday,
            overtime_approved=existing.overtime_approved if existing else False,
            no_plan_reason=no_plan_reason,
        )

    async def _load_punches(
        self,
        employee_id: UUID,
        window_start: datetime,
        window_end: datetime,
    ) -> list[PunchRecord]:
        result = await self.session.execute(
            select(RawPunch)
            .where(
                RawPunch.employee_id == employee_id,
                RawPunch.punched_at >= window_start,
                RawPunch.punched_at < window_end,
            )
            .order_by(RawPunch.punched_at, RawPunch.punch_id)
        )
        return [
            PunchRecord(
                punch_id=p.punch_id,
                punched_at=p.punched_at,
                direction=p.direction,
                source=p.source,
            )
            for p in result.scalars()
        ]

    async def _get_existing(self, employee_id: UUID, work_date: date) -> DailyTimeRecord | None:
        result = await self.session.execute(
            select(DailyTimeRecord).where(
                DailyTimeRecord.employee_id == employee_id,
                DailyTimeRecord.work_date == work_date,
            )
        )
        return result.scalar_one_or_none()

    async def _upsert(
        self,
        employee_id: UUID,
        result: DtrResult,
        existing: DailyTimeRecord | None,
    ) -> DailyTimeRecord:
        dtr = existing or DailyTimeRecord(employee_id=employee_id, work_date=result.work_date)

        dtr.work_schedule_id = result.schedule_id
        dtr.shift_name = result.shift_name
        dtr.status = result.status.value
        dtr.first_in = result.first_in
        dtr.last_out = result.last_out
        dtr.work_minutes = result.work_minutes
        dtr.break_minutes = result.break_minutes
        dtr.late_minutes = result.late_minutes
        dtr.undertime_minutes = result.undertime_minutes
        dtr.overtime_minutes = result.overtime_minutes
        dtr.night_diff_minutes = result.night_diff_minutes
        dtr.overtime_approved = result.overtime_approved
        dtr.is_rest_day = result.is_rest_day
        dtr.holiday_id = result.holiday_id
        dtr.holiday_type = result.holiday_type.value if result.holiday_type else None
        dtr.needs_review = result.needs_review
        dtr.review_reason = result.review_reason
        dtr.is_incomplete = result.is_incomplete
        dtr.punch_audit = [a.to_dict() for a in result.anomalies] or None

        if existing is None:
            self.session.add(dtr)
        await self.session.flush()

        if result.needs_review:
            logger.info(
                "DTR %s for employee %s needs review: %s",
                result.work_date,
                employee_id,
                result.review_reason,
            )
        return dtr
