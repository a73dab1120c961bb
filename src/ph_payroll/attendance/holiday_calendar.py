"""Holiday lookup."""

from __future__ import annotations

from datetime import date
from uuid import UUID

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from ph_payroll.attendance.types import HolidayInfo, HolidayType
from ph_payroll.models import Holiday


def pick_holiday(candidates: list[HolidayInfo]) -> HolidayInfo | None:
    """Highest-precedence holiday of those falling on one date."""
    if not candidates:
        return None
    return max(candidates, key=lambda h: h.holiday_type.precedence)


class HolidayCalendar:
    """Finds the holiday that applies to an employee on a date.

    A holiday applies when it is national or scoped to the employee's work
    location. When two apply on the same date, the higher-precedence type
    wins (double > regular > special non-working > special working).
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def holidays_between(
        self,
        start: date,
        end: date,
        work_location_id: UUID | None = None,
    ) -> dict[date, HolidayInfo]:
        """Applicable holiday per date in ``[start, end]``."""
        scope = Holiday.is_national.is_(True)
        if work_location_id is not None:
            scope = or_(scope, Holiday.work_location_id == work_location_id)

        result = await self.session.execute(
            select(Holiday).where(
                Holiday.holiday_date >= start,
                Holiday.holiday_date <= end,
                scope,
            )
        )

        by_date: dict[date, list[HolidayInfo]] = {}
        for row in result.scalars():
            by_date.setdefault(row.holiday_date, []).append(
                HolidayInfo(
                    holiday_id=row.holiday_id,
                    name=row.name,
                    holiday_date=row.holiday_date,
                    holiday_type=HolidayType(row.holiday_type),
                )
            )
        return {d: pick_holiday(infos) for d, infos in by_date.items()}

    async def holiday_on(
        self,
        on_date: date,
        work_location_id: UUID | None = None,
    ) -> HolidayInfo | None:
        holidays = await self.holidays_between(on_date, on_date, work_location_id)
        return holidays.get(on_date)
