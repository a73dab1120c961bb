"""Schedule resolution by assignment window."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date
from uuid import UUID

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from ph_payroll.attendance.schedules import ScheduleConfig, parse_schedule
from ph_payroll.attendance.types import DayPlan
from ph_payroll.errors import ScheduleNotFoundError, ScheduleOverlapError
from ph_payroll.models import EmployeeScheduleAssignment, WorkSchedule

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ResolvedSchedule:
    """The schedule in force for an employee on one date."""

    assignment_id: UUID
    schedule: ScheduleConfig
    shift_name: str | None

    def plan_for(self, work_date: date) -> DayPlan | None:
        return self.schedule.plan_for(work_date, self.shift_name)


class ScheduleResolver:
    """Finds the schedule assignment whose window contains a date.

    Overlapping assignments are a data-integrity error: they are raised,
    never resolved by picking one. Parsed schedule configs are cached for the
    lifetime of the resolver.
    """

    def __init__(self, session: AsyncSession):
        self.session = session
        self._config_cache: dict[UUID, ScheduleConfig] = {}

    async def resolve(self, employee_id: UUID, work_date: date) -> ResolvedSchedule | None:
        assignments = await self._assignments_covering(employee_id, work_date, work_date)

        if not assignments:
            return None
        if len(assignments) > 1:
            raise ScheduleOverlapError(
                employee_id, work_date, [a.assignment_id for a in assignments]
            )

        assignment = assignments[0]
        schedule = await self.get_schedule(assignment.work_schedule_id)
        return ResolvedSchedule(
            assignment_id=assignment.assignment_id,
            schedule=schedule,
            shift_name=assignment.shift_name,
        )

    async def get_schedule(self, work_schedule_id: UUID) -> ScheduleConfig:
        """Parsed config for a schedule id, cached."""
        if work_schedule_id in self._config_cache:
            return self._config_cache[work_schedule_id]

        row = await self.session.get(WorkSchedule, work_schedule_id)
        if row is None:
            raise ScheduleNotFoundError(work_schedule_id)

        config = parse_schedule(row)
        self._config_cache[work_schedule_id] = config
        return config

    async def assign(
        self,
        employee_id: UUID,
        work_schedule_id: UUID,
        effective_date: date,
        end_date: date | None = None,
        shift_name: str | None = None,
    ) -> EmployeeScheduleAssignment:
        """Create an assignment, refusing one that overlaps an existing window."""
        if end_date is not None and end_date < effective_date:
            raise ValueError("end_date must not be before effective_date")

        overlapping = await self._assignments_covering(employee_id, effective_date, end_date)
        if overlapping:
            raise ScheduleOverlapError(
                employee_id, effective_date, [a.assignment_id for a in overlapping]
            )

        # Fail early on a config that cannot be parsed
        await self.get_schedule(work_schedule_id)

        assignment = EmployeeScheduleAssignment(
            employee_id=employee_id,
            work_schedule_id=work_schedule_id,
            shift_name=shift_name,
            effective_date=effective_date,
            end_date=end_date,
        )
        self.session.add(assignment)
        await self.session.flush()

        logger.info(
            "Assigned schedule %s to employee %s from %s to %s",
            work_schedule_id,
            employee_id,
            effective_date,
            end_date or "open",
        )
        return assignment

    async def _assignments_covering(
        self,
        employee_id: UUID,
        start: date,
        end: date | None,
    ) -> list[EmployeeScheduleAssignment]:
        """Assignments whose window intersects ``[start, end]`` (end None = open)."""
        conditions = [
            EmployeeScheduleAssignment.employee_id == employee_id,
            or_(
                EmployeeScheduleAssignment.end_date.is_(None),
                EmployeeScheduleAssignment.end_date >= start,
            ),
        ]
        if end is not None:
            conditions.append(EmployeeScheduleAssignment.effective_date <= end)

        result = await self.session.execute(
            select(EmployeeScheduleAssignment)
            .where(*conditions)
            .order_by(EmployeeScheduleAssignment.effective_date)
        )
        return list(result.scalars().all())
