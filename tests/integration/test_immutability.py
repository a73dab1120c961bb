"""Approved and closed periods refuse every write to the data they own."""

from datetime import date, datetime
from decimal import Decimal

import pytest
from sqlalchemy import select

from ph_payroll.attendance.dtr_service import DtrService
from ph_payroll.errors import InvalidTransitionError, PeriodLockedError
from ph_payroll.models import PayrollPeriod, PayrollRunEmployee
from ph_payroll.services.entry_computer import PayrollEntryComputer
from ph_payroll.services.period_service import PeriodService
from ph_payroll.services.run_orchestrator import PayrollRunOrchestrator

CUTOFF_START = date(2025, 3, 1)
CUTOFF_END = date(2025, 3, 15)
AFTER_CUTOFF = datetime(2025, 3, 31, 12, 0)


@pytest.fixture
async def approved_period(
    session_factory, settings, registry, open_period, employee, day_schedule, make_attendance,
    statutory_tables,
):
    """The open period run and approved with one employee."""
    await make_attendance(
        employee.employee_id, day_schedule.work_schedule_id, CUTOFF_START, CUTOFF_END
    )
    period_id = open_period.payroll_period_id
    await PayrollRunOrchestrator(session_factory, settings, registry=registry).run(period_id)
    async with session_factory() as session:
        period = await PeriodService(session, registry).approve_period(period_id)
        await session.commit()
    return period


@pytest.fixture
async def closed_period(session_factory, registry, approved_period):
    async with session_factory() as session:
        period = await PeriodService(session, registry).close_period(
            approved_period.payroll_period_id
        )
        await session.commit()
    return period


class TestApprovedPeriod:
    """Approval freezes attendance and entries inside the cutoff."""

    async def test_entry_compute_refused(self, session_factory, settings, approved_period, employee):
        async with session_factory() as session:
            computer = PayrollEntryComputer(session, settings)
            with pytest.raises(PeriodLockedError):
                await computer.compute(approved_period.payroll_period_id, employee.employee_id)

    async def test_dtr_recompute_refused(self, session_factory, approved_period, employee):
        async with session_factory() as session:
            with pytest.raises(PeriodLockedError):
                await DtrService(session).compute_day(
                    employee.employee_id, date(2025, 3, 3), AFTER_CUTOFF
                )

    async def test_run_refused(self, session_factory, settings, registry, approved_period):
        orchestrator = PayrollRunOrchestrator(session_factory, settings, registry=registry)

        with pytest.raises(InvalidTransitionError):
            await orchestrator.run(approved_period.payroll_period_id)

    async def test_entry_transitions_refused(self, session_factory, registry, approved_period):
        """Individual entries cannot be rejected or reopened while the period is approved."""
        async with session_factory() as session:
            service = PeriodService(session, registry)
            [entry] = await service.list_entries(approved_period.payroll_period_id)

            with pytest.raises(PeriodLockedError):
                await service.reject_entry(entry.payroll_entry_id)
            with pytest.raises(PeriodLockedError):
                await service.reopen_entry(entry.payroll_entry_id)

    async def test_refused_compute_leaves_entry_untouched(
        self, session_factory, settings, registry, approved_period, employee
    ):
        period_id = approved_period.payroll_period_id
        async with session_factory() as session:
            with pytest.raises(PeriodLockedError):
                await PayrollEntryComputer(session, settings).compute(
                    period_id, employee.employee_id
                )
            await session.rollback()

        async with session_factory() as session:
            [entry] = await PeriodService(session, registry).list_entries(period_id)
            entry = await PeriodService(session, registry).get_entry(entry.payroll_entry_id)

        assert entry.status == "approved"
        assert entry.net_pay == Decimal("13335.05")
        assert len(entry.earnings) == 1
        assert len(entry.deductions) == 4


class TestClosedPeriod:
    """Closed is terminal."""

    async def test_no_transitions_out(self, session_factory, registry, closed_period):
        period_id = closed_period.payroll_period_id
        async with session_factory() as session:
            service = PeriodService(session, registry)
            with pytest.raises(InvalidTransitionError):
                await service.reopen_period(period_id)
            with pytest.raises(InvalidTransitionError):
                await service.open_period(period_id)
            with pytest.raises(InvalidTransitionError):
                await service.close_period(period_id)

    async def test_attendance_and_entries_locked(
        self, session_factory, settings, closed_period, employee
    ):
        period_id = closed_period.payroll_period_id
        async with session_factory() as session:
            with pytest.raises(PeriodLockedError):
                await PayrollEntryComputer(session, settings).compute(
                    period_id, employee.employee_id
                )
            with pytest.raises(PeriodLockedError):
                await DtrService(session).compute_day(
                    employee.employee_id, date(2025, 3, 14), AFTER_CUTOFF
                )

    async def test_next_cutoff_still_writable(self, session_factory, closed_period, employee):
        """Dates after the closed cutoff are unaffected."""
        async with session_factory() as session:
            dtr = await DtrService(session).compute_day(
                employee.employee_id, date(2025, 3, 17), AFTER_CUTOFF
            )

        assert dtr.status == "absent"

    async def test_recompute_leaves_run_rows_alone(
        self, session_factory, settings, registry, closed_period, employee
    ):
        """Refusing a recompute writes nothing, not even a failed run row."""
        period_id = closed_period.payroll_period_id
        orchestrator = PayrollRunOrchestrator(session_factory, settings, registry=registry)

        with pytest.raises(PeriodLockedError):
            await orchestrator.recompute_employee(period_id, employee.employee_id)

        async with session_factory() as session:
            rows = (
                await session.execute(
                    select(PayrollRunEmployee.status, PayrollRunEmployee.error_type).where(
                        PayrollRunEmployee.payroll_period_id == period_id
                    )
                )
            ).all()
            period = await session.get(PayrollPeriod, period_id)

        assert [tuple(row) for row in rows] == [("computed", None)]
        assert period.total_net == Decimal("13335.05")
