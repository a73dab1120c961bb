"""Tests for payroll run orchestration with stand-in entry computers."""

from __future__ import annotations

import asyncio
import dataclasses
from datetime import date
from decimal import Decimal
from uuid import UUID, uuid4

import pytest
from sqlalchemy import select

from ph_payroll.errors import (
    InvalidTransitionError,
    PeriodNotFoundError,
    UnresolvedAttendanceError,
)
from ph_payroll.models import PayrollPeriod, PayrollRunEmployee
from ph_payroll.services.entry_computer import EntryComputationResult
from ph_payroll.services.period_service import PeriodService
from ph_payroll.services.run_orchestrator import PayrollRunOrchestrator


class FakeComputer:
    """Records calls and succeeds unless told otherwise for an employee."""

    def __init__(self, behaviours: dict[UUID, object] | None = None, on_compute=None):
        self.behaviours = behaviours or {}
        self.on_compute = on_compute
        self.calls: list[UUID] = []

    def factory(self, session):
        return self

    async def compute(self, period_id: UUID, employee_id: UUID) -> EntryComputationResult:
        self.calls.append(employee_id)
        if self.on_compute is not None:
            self.on_compute(employee_id)

        behaviour = self.behaviours.get(employee_id)
        if isinstance(behaviour, Exception):
            raise behaviour
        if behaviour == "hang":
            await asyncio.sleep(5)

        return EntryComputationResult(
            employee_id=employee_id,
            payroll_period_id=period_id,
            payroll_entry_id=uuid4(),
            gross_pay=Decimal("0.00"),
            taxable_income=Decimal("0.00"),
            total_deductions=Decimal("0.00"),
            net_pay=Decimal("0.00"),
            earnings=[],
            deductions=[],
            inputs_fingerprint="fake",
        )


async def run_rows(session_factory, period_id: UUID) -> dict[UUID, PayrollRunEmployee]:
    async with session_factory() as session:
        result = await session.execute(
            select(PayrollRunEmployee).where(PayrollRunEmployee.payroll_period_id == period_id)
        )
        return {row.employee_id: row for row in result.scalars().all()}


async def period_status(session_factory, period_id: UUID) -> str:
    async with session_factory() as session:
        period = await session.get(PayrollPeriod, period_id)
        return period.status


class TestPayrollRunOrchestrator:
    """Run lifecycle, failure isolation, and cancellation."""

    async def test_all_computed_moves_period_to_computed(
        self, session_factory, settings, registry, open_period, employee, make_employee
    ):
        """A clean run computes every eligible employee and marks the period computed."""
        second = await make_employee("EMP-002")
        fake = FakeComputer()
        orchestrator = PayrollRunOrchestrator(
            session_factory, settings, computer_factory=fake.factory, registry=registry
        )

        report = await orchestrator.run(open_period.payroll_period_id, actor="tester")

        assert report.eligible == 2
        assert sorted(report.computed) == sorted([employee.employee_id, second.employee_id])
        assert report.failures == []
        assert report.success is True
        assert report.period_status == "computed"
        assert await period_status(session_factory, open_period.payroll_period_id) == "computed"

        rows = await run_rows(session_factory, open_period.payroll_period_id)
        assert {row.status for row in rows.values()} == {"computed"}

    async def test_failure_isolated_to_one_employee(
        self, session_factory, settings, registry, open_period, employee, make_employee
    ):
        """One failing employee does not stop the others; the period stays open."""
        second = await make_employee("EMP-002")
        error = UnresolvedAttendanceError(
            employee.employee_id, [date(2025, 3, 3)], ["No schedule assigned"]
        )
        fake = FakeComputer({employee.employee_id: error})
        orchestrator = PayrollRunOrchestrator(
            session_factory, settings, computer_factory=fake.factory, registry=registry
        )

        report = await orchestrator.run(open_period.payroll_period_id)

        assert report.computed == [second.employee_id]
        assert len(report.failures) == 1
        failure = report.failures[0]
        assert failure.employee_id == employee.employee_id
        assert failure.error_type == "UnresolvedAttendanceError"
        assert report.period_status == "open"

        rows = await run_rows(session_factory, open_period.payroll_period_id)
        assert rows[employee.employee_id].status == "failed"
        assert rows[employee.employee_id].error_type == "UnresolvedAttendanceError"
        assert rows[second.employee_id].status == "computed"

    async def test_refused_employee_reported_not_recorded(
        self, session_factory, settings, registry, open_period, employee, make_employee
    ):
        """A state refusal shows in the report but never rewrites the run row."""
        second = await make_employee("EMP-002")
        error = InvalidTransitionError(
            "approved", "computed", "Approved entries must be reopened before recomputation"
        )
        fake = FakeComputer({employee.employee_id: error})
        orchestrator = PayrollRunOrchestrator(
            session_factory, settings, computer_factory=fake.factory, registry=registry
        )

        report = await orchestrator.run(open_period.payroll_period_id)

        assert [f.error_type for f in report.failures] == ["InvalidTransitionError"]
        assert report.period_status == "open"
        rows = await run_rows(session_factory, open_period.payroll_period_id)
        assert rows[employee.employee_id].status == "pending"
        assert rows[employee.employee_id].error_type is None
        assert rows[second.employee_id].status == "computed"

    async def test_recompute_refused_before_computing(
        self, session, session_factory, settings, registry, open_period, employee
    ):
        """A locked period is refused up front: the computer never runs."""
        fake = FakeComputer()
        orchestrator = PayrollRunOrchestrator(
            session_factory, settings, computer_factory=fake.factory, registry=registry
        )
        await orchestrator.run(open_period.payroll_period_id)
        open_period.status = "approved"
        await session.commit()
        fake.calls.clear()

        with pytest.raises(InvalidTransitionError):
            await orchestrator.recompute_employee(
                open_period.payroll_period_id, employee.employee_id
            )

        assert fake.calls == []
        rows = await run_rows(session_factory, open_period.payroll_period_id)
        assert rows[employee.employee_id].status == "computed"

    async def test_failures_need_override_to_mark_computed(
        self, session_factory, settings, registry, open_period, employee, make_employee
    ):
        """After a partial run, marking computed requires allow_failures."""
        await make_employee("EMP-002")
        fake = FakeComputer({employee.employee_id: RuntimeError("boom")})
        orchestrator = PayrollRunOrchestrator(
            session_factory, settings, computer_factory=fake.factory, registry=registry
        )
        await orchestrator.run(open_period.payroll_period_id)

        async with session_factory() as session:
            service = PeriodService(session, registry)
            with pytest.raises(InvalidTransitionError):
                await service.mark_computed(open_period.payroll_period_id)
            await session.rollback()

        async with session_factory() as session:
            service = PeriodService(session, registry)
            period = await service.mark_computed(
                open_period.payroll_period_id, actor="tester", allow_failures=True
            )
            await session.commit()

        assert period.status == "computed"

    async def test_unexpected_error_recorded(
        self, session_factory, settings, registry, open_period, employee
    ):
        fake = FakeComputer({employee.employee_id: RuntimeError("boom")})
        orchestrator = PayrollRunOrchestrator(
            session_factory, settings, computer_factory=fake.factory, registry=registry
        )

        report = await orchestrator.run(open_period.payroll_period_id)

        assert report.failures[0].error_type == "RuntimeError"
        assert report.failures[0].reason == "boom"

    async def test_timeout_is_a_failure(
        self, session_factory, settings, registry, open_period, employee, make_employee
    ):
        """An employee over the time budget fails; the next one still runs."""
        second = await make_employee("EMP-002")
        fast_settings = dataclasses.replace(settings, employee_timeout_seconds=0.05)
        fake = FakeComputer({employee.employee_id: "hang"})
        orchestrator = PayrollRunOrchestrator(
            session_factory, fast_settings, computer_factory=fake.factory, registry=registry
        )

        report = await orchestrator.run(open_period.payroll_period_id)

        assert [f.error_type for f in report.failures] == ["ComputationTimeoutError"]
        assert report.computed == [second.employee_id]

    async def test_cancel_skips_remaining(
        self, session_factory, settings, registry, open_period, employee, make_employee
    ):
        """Cancellation lets started work finish and skips the rest."""
        await make_employee("EMP-002")
        await make_employee("EMP-003")
        orchestrator = PayrollRunOrchestrator(
            session_factory, settings, registry=registry
        )
        fake = FakeComputer(on_compute=lambda _: orchestrator.cancel())
        orchestrator.computer_factory = fake.factory

        report = await orchestrator.run(open_period.payroll_period_id, concurrency=1)

        assert report.cancelled is True
        assert len(fake.calls) == 1
        assert len(report.computed) == 1
        assert len(report.skipped) == 2
        assert report.period_status == "open"

    async def test_computations_tracked_in_flight(
        self, session_factory, settings, registry, open_period, employee
    ):
        """The registry counts the run while it is computing."""
        seen: list[int] = []
        period_id = open_period.payroll_period_id
        fake = FakeComputer(on_compute=lambda _: seen.append(registry.count(period_id)))
        orchestrator = PayrollRunOrchestrator(
            session_factory, settings, computer_factory=fake.factory, registry=registry
        )

        await orchestrator.run(period_id)

        # The run itself plus the employee's computation
        assert seen == [2]
        assert registry.count(period_id) == 0

    async def test_inactive_employees_not_eligible(
        self, session, session_factory, settings, registry, open_period, employee, make_employee
    ):
        leaver = await make_employee("EMP-002")
        leaver.status = "inactive"
        await session.commit()
        fake = FakeComputer()
        orchestrator = PayrollRunOrchestrator(
            session_factory, settings, computer_factory=fake.factory, registry=registry
        )

        report = await orchestrator.run(open_period.payroll_period_id)

        assert report.eligible == 1
        assert fake.calls == [employee.employee_id]

    async def test_draft_period_rejected(self, session, session_factory, settings, registry):
        """Only open or computed periods can be run."""
        service = PeriodService(session, registry)
        period = await service.create_period(
            name="April 2025 - 1st Half",
            cutoff_start=date(2025, 4, 1),
            cutoff_end=date(2025, 4, 15),
            pay_date=date(2025, 4, 25),
        )
        await session.commit()
        orchestrator = PayrollRunOrchestrator(
            session_factory, settings, computer_factory=FakeComputer().factory, registry=registry
        )

        with pytest.raises(InvalidTransitionError):
            await orchestrator.run(period.payroll_period_id)

    async def test_rerun_of_computed_period(
        self, session_factory, settings, registry, open_period, employee
    ):
        """A computed period can be run again and stays computed."""
        fake = FakeComputer()
        orchestrator = PayrollRunOrchestrator(
            session_factory, settings, computer_factory=fake.factory, registry=registry
        )

        await orchestrator.run(open_period.payroll_period_id)
        report = await orchestrator.run(open_period.payroll_period_id)

        assert report.period_status == "computed"
        assert len(fake.calls) == 2

    async def test_unknown_period(self, session_factory, settings, registry):
        orchestrator = PayrollRunOrchestrator(
            session_factory, settings, computer_factory=FakeComputer().factory, registry=registry
        )

        with pytest.raises(PeriodNotFoundError):
            await orchestrator.run(uuid4())
