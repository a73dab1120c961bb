"""Integration tests for payroll entry computation."""

import dataclasses
from datetime import date
from decimal import Decimal

import pytest
from sqlalchemy import func, select

from ph_payroll.errors import (
    CompensationNotFoundError,
    InvalidTransitionError,
    UnresolvedAttendanceError,
)
from ph_payroll.models import (
    AdjustmentApplication,
    Employee,
    EmployeeAdjustment,
    PayrollDeduction,
    PayrollEarning,
    PayrollEntry,
)
from ph_payroll.services.entry_computer import PayrollEntryComputer
from ph_payroll.services.period_service import PeriodService

CUTOFF_START = date(2025, 3, 1)
CUTOFF_END = date(2025, 3, 15)


def by_code(lines) -> dict:
    return {line.code: line for line in lines}


@pytest.fixture
async def attended(employee, day_schedule, make_attendance):
    """Full attendance for the employee over the open period."""
    return await make_attendance(
        employee.employee_id, day_schedule.work_schedule_id, CUTOFF_START, CUTOFF_END
    )


class TestMonthlyEmployee:
    """30,000 monthly pay on a semi-monthly period."""

    async def test_full_attendance(
        self, session, settings, statutory_tables, open_period, employee, attended
    ):
        """Basic pay, the three contributions split evenly, and withholding tax."""
        result = await PayrollEntryComputer(session, settings).compute(
            open_period.payroll_period_id, employee.employee_id
        )

        earnings = by_code(result.earnings)
        deductions = by_code(result.deductions)

        assert list(earnings) == ["BASIC"]
        assert earnings["BASIC"].amount == Decimal("15000.00")

        assert deductions["SSS"].amount == Decimal("675.00")
        assert deductions["SSS"].employer_share == Decimal("1440.00")
        assert deductions["PHIC"].amount == Decimal("375.00")
        assert deductions["HDMF"].amount == Decimal("100.00")
        assert deductions["WTAX"].amount == Decimal("514.95")
        assert deductions["WTAX"].basis_amount == Decimal("13850.00")

        assert result.gross_pay == Decimal("15000.00")
        assert result.taxable_income == Decimal("13850.00")
        assert result.total_deductions == Decimal("1664.95")
        assert result.net_pay == Decimal("13335.05")

    async def test_entry_persisted(
        self, session, settings, statutory_tables, open_period, employee, attended
    ):
        result = await PayrollEntryComputer(session, settings).compute(
            open_period.payroll_period_id, employee.employee_id
        )

        entry = await session.get(PayrollEntry, result.payroll_entry_id)
        assert entry.status == "computed"
        assert entry.employee_number == "EMP-001"
        assert entry.days_worked == 10
        assert entry.daily_rate == Decimal("1363.6364")
        assert entry.net_pay == Decimal("13335.05")
        assert entry.engine_version == settings.engine_version
        assert entry.inputs_fingerprint == result.inputs_fingerprint

    async def test_absence_reduces_basic(
        self, session, settings, statutory_tables, open_period, employee, day_schedule,
        make_attendance,
    ):
        await make_attendance(
            employee.employee_id,
            day_schedule.work_schedule_id,
            CUTOFF_START,
            CUTOFF_END,
            overrides={"2025-03-04": {"status": "absent", "work_minutes": 0, "break_minutes": 0}},
        )

        result = await PayrollEntryComputer(session, settings).compute(
            open_period.payroll_period_id, employee.employee_id
        )

        earnings = by_code(result.earnings)
        assert earnings["ABSENT"].amount == Decimal("-1363.64")
        assert earnings["ABSENT"].quantity == Decimal("1")
        assert result.gross_pay == Decimal("13636.36")
        assert by_code(result.deductions)["WTAX"].amount == Decimal("310.40")
        assert result.net_pay == Decimal("12175.96")

    async def test_fully_absent_cutoff_floors_basic(
        self, session, settings, registry, statutory_tables, employee, day_schedule,
        make_attendance,
    ):
        """Twelve absences cost more than the half-month basic; pay stops at zero."""
        service = PeriodService(session, registry)
        period = await service.create_period(
            name="October 2025 - 2nd Half",
            cutoff_start=date(2025, 10, 16),
            cutoff_end=date(2025, 10, 31),
            pay_date=date(2025, 11, 10),
        )
        await service.open_period(period.payroll_period_id)
        await session.commit()
        weekdays = [
            date(2025, 10, day) for day in range(16, 32) if date(2025, 10, day).weekday() < 5
        ]
        await make_attendance(
            employee.employee_id,
            day_schedule.work_schedule_id,
            date(2025, 10, 16),
            date(2025, 10, 31),
            overrides={
                d.isoformat(): {"status": "absent", "work_minutes": 0, "break_minutes": 0}
                for d in weekdays
            },
        )

        result = await PayrollEntryComputer(session, settings).compute(
            period.payroll_period_id, employee.employee_id
        )

        earnings = by_code(result.earnings)
        assert len(weekdays) == 12
        assert earnings["BASIC"].amount == Decimal("15000.00")
        assert earnings["ABSENT"].amount == Decimal("-15000.00")
        assert earnings["ABSENT"].quantity == Decimal("12")
        assert result.gross_pay == Decimal("0.00")
        assert result.taxable_income == Decimal("0")
        assert "WTAX" not in by_code(result.deductions)
        # Statutory contributions are still due on the monthly basic
        assert result.total_deductions == Decimal("1150.00")
        assert result.net_pay == result.gross_pay - result.total_deductions

    async def test_tardiness_capped_after_absences(
        self, session, settings, statutory_tables, open_period, employee, day_schedule,
        make_attendance,
    ):
        """Late minutes never push basic pay below zero."""
        overrides = {
            d.isoformat(): {"status": "absent", "work_minutes": 0, "break_minutes": 0}
            for d in (date(2025, 3, day) for day in range(3, 15))
            if d.weekday() < 5 and d.day != 3
        }
        overrides["2025-03-03"] = {"late_minutes": 1000}
        await make_attendance(
            employee.employee_id,
            day_schedule.work_schedule_id,
            CUTOFF_START,
            CUTOFF_END,
            overrides=overrides,
        )

        result = await PayrollEntryComputer(session, settings).compute(
            open_period.payroll_period_id, employee.employee_id
        )

        earnings = by_code(result.earnings)
        assert earnings["ABSENT"].amount == Decimal("-12272.73")
        assert earnings["ABSENT"].quantity == Decimal("9")
        assert earnings["TARDINESS"].amount == Decimal("-2727.27")
        assert result.gross_pay == Decimal("0.00")

    async def test_tardiness(
        self, session, settings, statutory_tables, open_period, employee, day_schedule,
        make_attendance,
    ):
        await make_attendance(
            employee.employee_id,
            day_schedule.work_schedule_id,
            CUTOFF_START,
            CUTOFF_END,
            overrides={"2025-03-05": {"late_minutes": 20, "undertime_minutes": 10}},
        )

        result = await PayrollEntryComputer(session, settings).compute(
            open_period.payroll_period_id, employee.employee_id
        )

        tardiness = by_code(result.earnings)["TARDINESS"]
        assert tardiness.amount == Decimal("-85.23")
        assert tardiness.quantity == Decimal("30")

    async def test_approved_overtime_paid(
        self, session, settings, statutory_tables, open_period, employee, day_schedule,
        make_attendance,
    ):
        await make_attendance(
            employee.employee_id,
            day_schedule.work_schedule_id,
            CUTOFF_START,
            CUTOFF_END,
            overrides={
                "2025-03-03": {
                    "work_minutes": 600,
                    "overtime_minutes": 120,
                    "overtime_approved": True,
                }
            },
        )

        result = await PayrollEntryComputer(session, settings).compute(
            open_period.payroll_period_id, employee.employee_id
        )

        overtime = by_code(result.earnings)["OT_REG"]
        assert overtime.multiplier == Decimal("1.25")
        assert overtime.amount == Decimal("426.14")

    async def test_unapproved_overtime_not_paid(
        self, session, settings, statutory_tables, open_period, employee, day_schedule,
        make_attendance,
    ):
        await make_attendance(
            employee.employee_id,
            day_schedule.work_schedule_id,
            CUTOFF_START,
            CUTOFF_END,
            overrides={"2025-03-03": {"work_minutes": 600, "overtime_minutes": 120}},
        )

        result = await PayrollEntryComputer(session, settings).compute(
            open_period.payroll_period_id, employee.employee_id
        )

        assert "OT_REG" not in by_code(result.earnings)
        entry = await session.get(PayrollEntry, result.payroll_entry_id)
        assert entry.unapproved_overtime_minutes == 120
        assert entry.overtime_minutes == 0

    async def test_last_cutoff_policy(
        self, session, settings, statutory_tables, open_period, employee, attended
    ):
        """With last_cutoff, nothing is deducted in the first half of the month."""
        late_settings = dataclasses.replace(settings, sss_split_policy="last_cutoff")

        result = await PayrollEntryComputer(session, late_settings).compute(
            open_period.payroll_period_id, employee.employee_id
        )

        assert "SSS" not in by_code(result.deductions)
        assert "PHIC" in by_code(result.deductions)


class TestDailyEmployee:
    async def test_paid_per_day_worked(
        self, session, settings, statutory_tables, open_period, day_schedule, make_employee,
        make_attendance,
    ):
        worker = await make_employee(
            "EMP-DAILY", basic_pay=Decimal("1000"), pay_type="daily", schedule=day_schedule
        )
        await make_attendance(
            worker.employee_id, day_schedule.work_schedule_id, CUTOFF_START, CUTOFF_END
        )

        result = await PayrollEntryComputer(session, settings).compute(
            open_period.payroll_period_id, worker.employee_id
        )

        basic = by_code(result.earnings)["BASIC"]
        assert basic.amount == Decimal("10000.00")
        assert basic.quantity == Decimal("10")


class TestBlockedComputation:
    """Inputs that stop one employee's computation."""

    async def test_unresolved_day_blocks(
        self, session, settings, statutory_tables, open_period, employee, day_schedule,
        make_attendance,
    ):
        await make_attendance(
            employee.employee_id,
            day_schedule.work_schedule_id,
            CUTOFF_START,
            CUTOFF_END,
            overrides={
                "2025-03-03": {
                    "status": "no_schedule",
                    "work_minutes": 0,
                    "needs_review": True,
                    "is_incomplete": True,
                    "review_reason": "No schedule assigned",
                }
            },
        )

        with pytest.raises(UnresolvedAttendanceError) as exc_info:
            await PayrollEntryComputer(session, settings).compute(
                open_period.payroll_period_id, employee.employee_id
            )

        assert exc_info.value.dates == [date(2025, 3, 3)]
        assert exc_info.value.reasons == ["No schedule assigned"]

    async def test_review_without_incomplete_does_not_block(
        self, session, settings, statutory_tables, open_period, employee, day_schedule,
        make_attendance,
    ):
        """Rest-day work pending approval is flagged but still payable."""
        await make_attendance(
            employee.employee_id,
            day_schedule.work_schedule_id,
            CUTOFF_START,
            CUTOFF_END,
            overrides={
                "2025-03-08": {
                    "status": "present",
                    "work_minutes": 240,
                    "overtime_minutes": 240,
                    "needs_review": True,
                    "review_reason": "Work on rest day - OT pending approval",
                }
            },
        )

        result = await PayrollEntryComputer(session, settings).compute(
            open_period.payroll_period_id, employee.employee_id
        )

        assert result.gross_pay == Decimal("15000.00")

    async def test_missing_compensation(self, session, settings, statutory_tables, open_period):
        newcomer = Employee(employee_number="EMP-NEW", first_name="Ana", last_name="Reyes")
        session.add(newcomer)
        await session.commit()

        with pytest.raises(CompensationNotFoundError):
            await PayrollEntryComputer(session, settings).compute(
                open_period.payroll_period_id, newcomer.employee_id
            )

    async def test_draft_period_refused(
        self, session, settings, statutory_tables, registry, employee, attended
    ):
        service = PeriodService(session, registry)
        draft = await service.create_period(
            name="March 2025 - 1st Half",
            cutoff_start=CUTOFF_START,
            cutoff_end=CUTOFF_END,
            pay_date=date(2025, 3, 25),
        )
        await session.commit()

        with pytest.raises(InvalidTransitionError):
            await PayrollEntryComputer(session, settings).compute(
                draft.payroll_period_id, employee.employee_id
            )


class TestRecompute:
    """Recomputation replaces line items wholesale."""

    async def test_lines_replaced_not_appended(
        self, session, settings, statutory_tables, open_period, employee, attended
    ):
        computer = PayrollEntryComputer(session, settings)

        first = await computer.compute(open_period.payroll_period_id, employee.employee_id)
        second = await computer.compute(open_period.payroll_period_id, employee.employee_id)

        assert second.payroll_entry_id == first.payroll_entry_id
        assert second.inputs_fingerprint == first.inputs_fingerprint
        earnings = await session.scalar(
            select(func.count()).select_from(PayrollEarning).where(
                PayrollEarning.payroll_entry_id == first.payroll_entry_id
            )
        )
        deductions = await session.scalar(
            select(func.count()).select_from(PayrollDeduction).where(
                PayrollDeduction.payroll_entry_id == first.payroll_entry_id
            )
        )
        assert earnings == 1
        assert deductions == 4

    async def test_approved_entry_refused(
        self, session, settings, registry, statutory_tables, open_period, employee, attended
    ):
        """Approved entries must be reopened before they can be recomputed."""
        computer = PayrollEntryComputer(session, settings)
        result = await computer.compute(open_period.payroll_period_id, employee.employee_id)
        await PeriodService(session, registry).approve_entry(result.payroll_entry_id)
        await session.commit()

        with pytest.raises(InvalidTransitionError):
            await computer.compute(open_period.payroll_period_id, employee.employee_id)


class TestAdjustments:
    """Allowances and loans applied once per period."""

    async def test_one_time_allowance(
        self, session, settings, statutory_tables, open_period, employee, attended
    ):
        allowance = EmployeeAdjustment(
            employee_id=employee.employee_id,
            category="earning",
            adjustment_type="allowance",
            name="Rice allowance",
            amount=Decimal("1000"),
            is_taxable=False,
            frequency="one_time",
            target_payroll_period_id=open_period.payroll_period_id,
        )
        session.add(allowance)
        await session.commit()
        computer = PayrollEntryComputer(session, settings)

        await computer.compute(open_period.payroll_period_id, employee.employee_id)
        result = await computer.compute(open_period.payroll_period_id, employee.employee_id)

        line = by_code(result.earnings)["ALLOWANCE"]
        assert line.amount == Decimal("1000.00")
        assert line.adjustment_id == allowance.adjustment_id
        # Non-taxable: tax is unchanged
        assert result.taxable_income == Decimal("13850.00")
        assert result.net_pay == Decimal("14335.05")

        applications = await session.scalar(
            select(func.count()).select_from(AdjustmentApplication).where(
                AdjustmentApplication.adjustment_id == allowance.adjustment_id
            )
        )
        assert applications == 1
        assert allowance.status == "completed"
        assert allowance.total_applied == Decimal("1000")

    async def test_loan_capped_by_balance(
        self, session, settings, statutory_tables, open_period, employee, attended
    ):
        """An installment larger than the remaining balance takes only the balance."""
        loan = EmployeeAdjustment(
            employee_id=employee.employee_id,
            category="deduction",
            adjustment_type="sss_loan",
            name="SSS salary loan",
            amount=Decimal("1500"),
            frequency="recurring",
            has_balance_tracking=True,
            total_amount=Decimal("2000"),
            remaining_balance=Decimal("1000"),
        )
        session.add(loan)
        await session.commit()
        computer = PayrollEntryComputer(session, settings)

        await computer.compute(open_period.payroll_period_id, employee.employee_id)
        result = await computer.compute(open_period.payroll_period_id, employee.employee_id)

        line = by_code(result.deductions)["SSS_LOAN"]
        assert line.amount == Decimal("1000.00")
        assert line.deduction_type == "loan"
        assert loan.remaining_balance == Decimal("0")
        assert loan.status == "completed"
