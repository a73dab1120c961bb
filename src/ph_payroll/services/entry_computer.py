"""Payroll entry computation: attendance, compensation, and tables into pay lines."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from typing import Any, Iterable
from uuid import UUID

from sqlalchemy import delete, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from ph_payroll.attendance.schedule_resolver import ScheduleResolver
from ph_payroll.attendance.types import NightDifferentialRule, OvertimeRules
from ph_payroll.calculators.contributions import ContributionTableResolver, cutoff_portion
from ph_payroll.calculators.line_builder import LineItemBuilder
from ph_payroll.calculators.rates import PayRates, derive_rates, monthly_equivalent
from ph_payroll.calculators.types import (
    AttendanceSummary,
    ContributionScheme,
    DeductionLine,
    EarningLine,
    PayFrequency,
    PayType,
    SplitPolicy,
)
from ph_payroll.calculators.withholding_tax import WithholdingTaxCalculator
from ph_payroll.config import Settings, get_settings
from ph_payroll.errors import (
    CompensationNotFoundError,
    InvalidTransitionError,
    InvariantViolationError,
    LineItemMismatchError,
    PeriodNotFoundError,
    UnresolvedAttendanceError,
)
from ph_payroll.models import (
    DailyTimeRecord,
    Employee,
    EmployeeAdjustment,
    EmployeeCompensation,
    PayrollDeduction,
    PayrollEarning,
    PayrollEntry,
    PayrollPeriod,
)
from ph_payroll.services.adjustment_service import (
    AdjustmentService,
    adjustment_amount,
    deduction_type_for,
)
from ph_payroll.services.locking_service import LockingService, compute_hash
from ph_payroll.services.state_machine import (
    EntryStateMachine,
    EntryStatus,
    PeriodStateMachine,
    PeriodStatus,
)

logger = logging.getLogger(__name__)

MINUTES_PER_HOUR = Decimal("60")

# Premium over the daily rate for working on a holiday
HOLIDAY_PAY_MULTIPLIERS: dict[str, Decimal] = {
    "special_non_working": Decimal("1.30"),
    "regular": Decimal("2.00"),
    "double": Decimal("3.00"),
}

OVERTIME_CODES = {
    "regular": ("OT_REG", "Regular overtime"),
    "rest_day": ("OT_RD", "Rest day overtime"),
    "holiday": ("OT_HOL", "Holiday overtime"),
}


@dataclass
class EntryComputationResult:
    """Result of computing pay for one employee."""

    employee_id: UUID
    payroll_period_id: UUID
    payroll_entry_id: UUID
    gross_pay: Decimal
    taxable_income: Decimal
    total_deductions: Decimal
    net_pay: Decimal
    earnings: list[EarningLine]
    deductions: list[DeductionLine]
    inputs_fingerprint: str


def summarize_attendance(dtrs: Iterable[DailyTimeRecord]) -> AttendanceSummary:
    """Sum DTR minutes and day counts over a cutoff.

    Overtime is paid only where ``overtime_approved`` is set; the rest is
    reported as unapproved and not paid.
    """
    summary = AttendanceSummary()

    for dtr in dtrs:
        if dtr.status == "absent":
            summary.absent_days += 1
        elif dtr.status == "holiday":
            summary.holiday_days += 1
        elif dtr.status == "rest_day":
            summary.rest_days += 1
        elif dtr.status == "present":
            if not dtr.is_rest_day:
                summary.days_worked += 1
                summary.regular_minutes += max(0, dtr.work_minutes - dtr.overtime_minutes)
            if dtr.holiday_type in HOLIDAY_PAY_MULTIPLIERS:
                summary.holidays_worked[dtr.holiday_type] = (
                    summary.holidays_worked.get(dtr.holiday_type, 0) + 1
                )

        summary.late_minutes += dtr.late_minutes
        summary.undertime_minutes += dtr.undertime_minutes

        if dtr.night_diff_minutes:
            key = dtr.work_schedule_id
            summary.night_diff[key] = summary.night_diff.get(key, 0) + dtr.night_diff_minutes
            summary.night_diff_minutes += dtr.night_diff_minutes

        if dtr.overtime_minutes:
            if not dtr.overtime_approved:
                summary.unapproved_overtime_minutes += dtr.overtime_minutes
            elif dtr.is_rest_day:
                summary.add_overtime("rest_day", dtr.work_schedule_id, dtr.overtime_minutes)
            elif dtr.holiday_type:
                summary.add_overtime("holiday", dtr.work_schedule_id, dtr.overtime_minutes)
            else:
                summary.add_overtime("regular", dtr.work_schedule_id, dtr.overtime_minutes)

    return summary


def ends_month(cutoff_end: date) -> bool:
    return (cutoff_end + timedelta(days=1)).day == 1


def capped_reduction(amount: Decimal, basic_lines: list[EarningLine]) -> Decimal:
    """A reduction rounded to cents, never larger than the basic pay it reduces."""
    remaining = sum((line.amount for line in basic_lines), Decimal("0"))
    return min(LineItemBuilder.round_to_cents(amount), max(remaining, Decimal("0")))


class PayrollEntryComputer:
    """Computes one employee's payroll entry for one period.

    Calculation pipeline (stable order per employee):
    1) Guard the period and entry state
    2) Compensation in force at cutoff end
    3) DTR summary; unresolved days block the computation
    4) Earnings: basic, absence, tardiness, overtime, night differential,
       holiday premium, earning adjustments
    5) Statutory contributions on the monthly-equivalent basic salary
    6) Withholding tax on taxable earnings less employee contributions
    7) Deduction adjustments
    8) Replace line items wholesale, then verify they sum to the totals
    """

    def __init__(
        self,
        session: AsyncSession,
        settings: Settings | None = None,
        contribution_cache: dict | None = None,
        tax_cache: dict | None = None,
    ):
        self.session = session
        self.settings = settings or get_settings()
        self.contributions = ContributionTableResolver(session, contribution_cache)
        self.withholding = WithholdingTaxCalculator(session, tax_cache)
        self.schedules = ScheduleResolver(session)
        self.adjustments = AdjustmentService(session)
        self.locking = LockingService(session)

    async def compute(
        self,
        period: PayrollPeriod | UUID,
        employee_id: UUID,
    ) -> EntryComputationResult:
        """Compute (or recompute) an entry and replace its line items.

        Raises:
            InvalidTransitionError: period not accepting computation, or the
                entry is approved
            CompensationNotFoundError: no compensation in force
            UnresolvedAttendanceError: a DTR in the cutoff needs resolution
            LineItemMismatchError: line items do not sum to the totals
        """
        if isinstance(period, UUID):
            loaded = await self.session.get(PayrollPeriod, period)
            if loaded is None:
                raise PeriodNotFoundError(period)
            period = loaded

        # 1) Guards
        self.locking.ensure_period_writable(period, "compute entries")
        if not PeriodStateMachine.can_calculate(period.status):
            raise InvalidTransitionError(
                period.status,
                PeriodStatus.COMPUTED,
                f"Period is {period.status}; open it before computing entries",
            )

        entry = await self._get_entry(period.payroll_period_id, employee_id)
        if entry is not None:
            EntryStateMachine.validate_entry_for_recompute(entry, period)

        employee = await self.session.get(Employee, employee_id)
        if employee is None:
            raise ValueError(f"Employee {employee_id} not found")

        # 2) Compensation
        compensation = await self._get_compensation(employee_id, period.cutoff_end)
        pay_type = PayType(compensation.pay_type)
        rates = derive_rates(compensation.basic_pay, pay_type)
        frequency = PayFrequency(period.pay_frequency)

        # 3) Attendance
        dtrs = await self._get_dtrs(employee_id, period.cutoff_start, period.cutoff_end)
        self._ensure_attendance_resolved(employee_id, dtrs)
        summary = summarize_attendance(dtrs)

        # Adjustments already applied to this period are undone first
        await self.adjustments.revert_applications(employee_id, period.payroll_period_id)
        adjustments = await self.adjustments.applicable_adjustments(employee_id, period)
        applied: list[tuple[EmployeeAdjustment, Decimal]] = []

        # 4) Earnings
        earnings = self._basic_lines(compensation, rates, frequency, summary)
        earnings.extend(await self._premium_lines(rates, summary))
        for adj in adjustments:
            if adj.category != "earning":
                continue
            amount = adjustment_amount(adj)
            if amount <= 0:
                continue
            earnings.append(
                LineItemBuilder.create_earning_line(
                    earning_type=adj.adjustment_type,
                    code=adj.adjustment_type.upper(),
                    description=adj.name,
                    amount=amount,
                    is_taxable=adj.is_taxable,
                    adjustment_id=adj.adjustment_id,
                )
            )
            applied.append((adj, amount))

        # 5) Contributions
        deductions, table_ids = await self._contribution_lines(compensation, period, frequency)
        employee_contributions = LineItemBuilder.calculate_deductions_from_lines(deductions)

        # 6) Withholding tax
        taxable_earnings = LineItemBuilder.calculate_taxable_from_lines(earnings)
        taxable = max(Decimal("0"), taxable_earnings - employee_contributions)
        tax = await self.withholding.calculate(taxable, period.pay_frequency, period.cutoff_end)
        table_ids["tax"] = str(tax.table_id)
        if tax.tax > 0:
            deductions.append(
                LineItemBuilder.create_deduction_line(
                    deduction_type="withholding_tax",
                    code="WTAX",
                    description="Withholding tax",
                    amount=tax.tax,
                    basis_amount=taxable,
                    is_statutory=True,
                    source_table_id=tax.table_id,
                )
            )

        # 7) Deduction adjustments
        for adj in adjustments:
            if adj.category != "deduction":
                continue
            amount = adjustment_amount(adj)
            if amount <= 0:
                continue
            deductions.append(
                LineItemBuilder.create_deduction_line(
                    deduction_type=deduction_type_for(adj),
                    code=adj.adjustment_type.upper(),
                    description=adj.name,
                    amount=amount,
                    basis_amount=adj.remaining_balance if adj.has_balance_tracking else None,
                    adjustment_id=adj.adjustment_id,
                )
            )
            applied.append((adj, amount))

        sign_errors = LineItemBuilder.validate_line_signs(earnings, deductions)
        if sign_errors:
            raise InvariantViolationError("; ".join(sign_errors))

        gross = LineItemBuilder.calculate_gross_from_lines(earnings)
        total_deductions = LineItemBuilder.calculate_deductions_from_lines(deductions)
        net = gross - total_deductions

        inputs = self._inputs_snapshot(
            period, employee, compensation, dtrs, adjustments, table_ids
        )
        fingerprint = compute_hash(inputs)

        # 8) Persist and verify
        entry = await self._write_entry(
            entry,
            period,
            employee,
            compensation,
            rates,
            summary,
            gross=gross,
            taxable=taxable,
            total_deductions=total_deductions,
            net=net,
            fingerprint=fingerprint,
        )
        await self._replace_lines(entry, earnings, deductions)
        for adj, amount in applied:
            await self.adjustments.record_application(adj, period, entry, amount)
        await self.session.flush()

        await self._verify_totals(entry, inputs)

        logger.info(
            "Computed entry for employee %s in period %s: gross=%s deductions=%s net=%s",
            employee_id,
            period.payroll_period_id,
            gross,
            total_deductions,
            net,
        )

        return EntryComputationResult(
            employee_id=employee_id,
            payroll_period_id=period.payroll_period_id,
            payroll_entry_id=entry.payroll_entry_id,
            gross_pay=gross,
            taxable_income=taxable,
            total_deductions=total_deductions,
            net_pay=net,
            earnings=earnings,
            deductions=deductions,
            inputs_fingerprint=fingerprint,
        )

    # ===== Earnings =====

    def _basic_lines(
        self,
        compensation: EmployeeCompensation,
        rates: PayRates,
        frequency: PayFrequency,
        summary: AttendanceSummary,
    ) -> list[EarningLine]:
        lines: list[EarningLine] = []
        pay_type = PayType(compensation.pay_type)

        if pay_type in (PayType.MONTHLY, PayType.SEMI_MONTHLY):
            per_cutoff = monthly_equivalent(compensation.basic_pay, pay_type) / frequency.cutoffs_per_month
            lines.append(
                LineItemBuilder.create_earning_line(
                    earning_type="basic",
                    code="BASIC",
                    description="Basic pay",
                    amount=per_cutoff,
                )
            )
            if summary.absent_days:
                lines.append(
                    LineItemBuilder.create_reduction_line(
                        earning_type="absence",
                        code="ABSENT",
                        description="Absences",
                        amount=capped_reduction(rates.daily * summary.absent_days, lines),
                        quantity=Decimal(summary.absent_days),
                        quantity_unit="days",
                        rate=rates.daily,
                    )
                )
        else:
            lines.append(
                LineItemBuilder.create_earning_line(
                    earning_type="basic",
                    code="BASIC",
                    description="Basic pay",
                    amount=rates.daily * summary.days_worked,
                    quantity=Decimal(summary.days_worked),
                    quantity_unit="days",
                    rate=rates.daily,
                )
            )

        tardy_minutes = summary.late_minutes + summary.undertime_minutes
        if tardy_minutes and sum(line.amount for line in lines) > 0:
            lines.append(
                LineItemBuilder.create_reduction_line(
                    earning_type="tardiness",
                    code="TARDINESS",
                    description="Late and undertime",
                    amount=capped_reduction(rates.per_minute * tardy_minutes, lines),
                    quantity=Decimal(tardy_minutes),
                    quantity_unit="minutes",
                    rate=rates.per_minute,
                )
            )

        return lines

    async def _premium_lines(
        self, rates: PayRates, summary: AttendanceSummary
    ) -> list[EarningLine]:
        lines: list[EarningLine] = []

        for (bucket, schedule_id), minutes in sorted(
            summary.overtime.items(), key=lambda item: (item[0][0], str(item[0][1]))
        ):
            rules = await self._overtime_rules(schedule_id)
            multiplier = {
                "regular": rules.regular_multiplier,
                "rest_day": rules.rest_day_multiplier,
                "holiday": rules.holiday_multiplier,
            }[bucket]
            code, description = OVERTIME_CODES[bucket]
            hours = Decimal(minutes) / MINUTES_PER_HOUR
            lines.append(
                LineItemBuilder.create_earning_line(
                    earning_type="overtime",
                    code=code,
                    description=description,
                    amount=hours * rates.hourly * multiplier,
                    quantity=LineItemBuilder.round_rate(hours),
                    quantity_unit="hours",
                    rate=rates.hourly,
                    multiplier=multiplier,
                )
            )

        for schedule_id, minutes in sorted(summary.night_diff.items(), key=lambda i: str(i[0])):
            rule = await self._night_rule(schedule_id)
            premium = rule.rate_multiplier - 1
            if premium <= 0:
                continue
            hours = Decimal(minutes) / MINUTES_PER_HOUR
            lines.append(
                LineItemBuilder.create_earning_line(
                    earning_type="night_differential",
                    code="ND",
                    description="Night differential",
                    amount=hours * rates.hourly * premium,
                    quantity=LineItemBuilder.round_rate(hours),
                    quantity_unit="hours",
                    rate=rates.hourly,
                    multiplier=rule.rate_multiplier,
                )
            )

        for holiday_type, days in sorted(summary.holidays_worked.items()):
            multiplier = HOLIDAY_PAY_MULTIPLIERS[holiday_type]
            lines.append(
                LineItemBuilder.create_earning_line(
                    earning_type="holiday",
                    code=f"HOLIDAY_{holiday_type.upper()}",
                    description=f"{holiday_type.replace('_', ' ').title()} holiday premium",
                    amount=rates.daily * (multiplier - 1) * days,
                    quantity=Decimal(days),
                    quantity_unit="days",
                    rate=rates.daily,
                    multiplier=multiplier,
                )
            )

        return lines

    async def _overtime_rules(self, schedule_id: UUID | None) -> OvertimeRules:
        if schedule_id is None:
            return OvertimeRules()
        return (await self.schedules.get_schedule(schedule_id)).overtime

    async def _night_rule(self, schedule_id: UUID | None) -> NightDifferentialRule:
        if schedule_id is None:
            return NightDifferentialRule()
        return (await self.schedules.get_schedule(schedule_id)).night_differential

    # ===== Deductions =====

    async def _contribution_lines(
        self,
        compensation: EmployeeCompensation,
        period: PayrollPeriod,
        frequency: PayFrequency,
    ) -> tuple[list[DeductionLine], dict[str, str]]:
        lines: list[DeductionLine] = []
        table_ids: dict[str, str] = {}
        basis = monthly_equivalent(compensation.basic_pay, compensation.pay_type)
        month_end = ends_month(period.cutoff_end)

        for scheme in ContributionScheme:
            share = await self.contributions.compute(scheme, basis, period.cutoff_end)
            table_ids[scheme.value] = str(share.table_id)
            policy = SplitPolicy(self.settings.split_policy(scheme.value))

            employee_part = cutoff_portion(share.employee_share, frequency, policy, month_end)
            employer_part = cutoff_portion(
                share.employer_share + share.ec_share, frequency, policy, month_end
            )
            if employee_part == 0 and employer_part == 0:
                continue

            lines.append(
                LineItemBuilder.create_deduction_line(
                    deduction_type=scheme.value,
                    code=scheme.deduction_code,
                    description=scheme.label,
                    amount=employee_part,
                    basis_amount=share.basis,
                    employer_share=employer_part,
                    is_statutory=True,
                    source_table_id=share.table_id,
                )
            )

        return lines, table_ids

    # ===== Persistence =====

    async def _write_entry(
        self,
        entry: PayrollEntry | None,
        period: PayrollPeriod,
        employee: Employee,
        compensation: EmployeeCompensation,
        rates: PayRates,
        summary: AttendanceSummary,
        gross: Decimal,
        taxable: Decimal,
        total_deductions: Decimal,
        net: Decimal,
        fingerprint: str,
    ) -> PayrollEntry:
        is_new = entry is None
        if entry is None:
            entry = PayrollEntry(
                payroll_period_id=period.payroll_period_id,
                employee_id=employee.employee_id,
                status=EntryStatus.DRAFT.value,
            )

        EntryStateMachine.validate_transition(entry.status, EntryStatus.COMPUTED)

        entry.employee_number = employee.employee_number
        entry.employee_name = employee.full_name
        entry.pay_type = compensation.pay_type
        entry.basic_salary = compensation.basic_pay
        entry.daily_rate = rates.daily
        entry.hourly_rate = rates.hourly

        entry.days_worked = summary.days_worked
        entry.absent_days = summary.absent_days
        entry.holiday_days = summary.holiday_days
        entry.regular_minutes = summary.regular_minutes
        entry.late_minutes = summary.late_minutes
        entry.undertime_minutes = summary.undertime_minutes
        entry.overtime_minutes = summary.overtime_minutes
        entry.unapproved_overtime_minutes = summary.unapproved_overtime_minutes
        entry.night_diff_minutes = summary.night_diff_minutes

        entry.gross_pay = gross
        entry.taxable_income = taxable
        entry.total_deductions = total_deductions
        entry.net_pay = net

        entry.status = EntryStatus.COMPUTED.value
        entry.inputs_fingerprint = fingerprint
        entry.engine_version = self.settings.engine_version
        entry.computed_at = datetime.now(timezone.utc)

        if is_new:
            self.session.add(entry)
        await self.session.flush()
        return entry

    async def _replace_lines(
        self,
        entry: PayrollEntry,
        earnings: list[EarningLine],
        deductions: list[DeductionLine],
    ) -> None:
        """Delete every prior line and insert the new set (no diffing)."""
        await self.session.execute(
            delete(PayrollEarning).where(PayrollEarning.payroll_entry_id == entry.payroll_entry_id)
        )
        await self.session.execute(
            delete(PayrollDeduction).where(
                PayrollDeduction.payroll_entry_id == entry.payroll_entry_id
            )
        )

        for sequence, line in enumerate(earnings, start=1):
            self.session.add(
                PayrollEarning(
                    payroll_entry_id=entry.payroll_entry_id,
                    sequence=sequence,
                    earning_type=line.earning_type,
                    code=line.code,
                    description=line.description,
                    quantity=line.quantity,
                    quantity_unit=line.quantity_unit,
                    rate=line.rate,
                    multiplier=line.multiplier,
                    amount=line.amount,
                    is_taxable=line.is_taxable,
                    adjustment_id=line.adjustment_id,
                )
            )

        for sequence, line in enumerate(deductions, start=1):
            self.session.add(
                PayrollDeduction(
                    payroll_entry_id=entry.payroll_entry_id,
                    sequence=sequence,
                    deduction_type=line.deduction_type,
                    code=line.code,
                    description=line.description,
                    basis_amount=line.basis_amount,
                    rate=line.rate,
                    amount=line.amount,
                    employer_share=line.employer_share,
                    is_statutory=line.is_statutory,
                    source_table_id=line.source_table_id,
                    adjustment_id=line.adjustment_id,
                )
            )

    async def _verify_totals(self, entry: PayrollEntry, inputs: dict[str, Any]) -> None:
        """Persisted line items must sum exactly to the entry totals."""
        earnings = (
            await self.session.execute(
                select(PayrollEarning.amount).where(
                    PayrollEarning.payroll_entry_id == entry.payroll_entry_id
                )
            )
        ).scalars().all()
        deductions = (
            await self.session.execute(
                select(PayrollDeduction.amount).where(
                    PayrollDeduction.payroll_entry_id == entry.payroll_entry_id
                )
            )
        ).scalars().all()

        earnings_sum = LineItemBuilder.round_to_cents(sum(earnings, Decimal("0")))
        deductions_sum = LineItemBuilder.round_to_cents(sum(deductions, Decimal("0")))
        gross = LineItemBuilder.round_to_cents(entry.gross_pay)
        total_deductions = LineItemBuilder.round_to_cents(entry.total_deductions)
        net = LineItemBuilder.round_to_cents(entry.net_pay)

        checks = (
            ("gross_pay", gross, earnings_sum),
            ("total_deductions", total_deductions, deductions_sum),
            ("net_pay", net, gross - total_deductions),
        )
        for field, expected, actual in checks:
            if expected != actual:
                logger.error(
                    "Line items do not reconcile for employee %s (%s: expected %s, got %s); inputs=%s",
                    entry.employee_id,
                    field,
                    expected,
                    actual,
                    json.dumps(inputs, sort_keys=True, default=str),
                )
                raise LineItemMismatchError(field, expected, actual, inputs)

    # ===== Loading =====

    async def _get_entry(self, period_id: UUID, employee_id: UUID) -> PayrollEntry | None:
        result = await self.session.execute(
            select(PayrollEntry).where(
                PayrollEntry.payroll_period_id == period_id,
                PayrollEntry.employee_id == employee_id,
            )
        )
        return result.scalar_one_or_none()

    async def _get_compensation(self, employee_id: UUID, as_of_date: date) -> EmployeeCompensation:
        result = await self.session.execute(
            select(EmployeeCompensation)
            .where(
                EmployeeCompensation.employee_id == employee_id,
                EmployeeCompensation.effective_date <= as_of_date,
                or_(
                    EmployeeCompensation.end_date.is_(None),
                    EmployeeCompensation.end_date >= as_of_date,
                ),
            )
            .order_by(EmployeeCompensation.effective_date.desc())
            .limit(1)
        )
        compensation = result.scalar_one_or_none()
        if compensation is None:
            raise CompensationNotFoundError(employee_id, as_of_date)
        return compensation

    async def _get_dtrs(self, employee_id: UUID, start: date, end: date) -> list[DailyTimeRecord]:
        result = await self.session.execute(
            select(DailyTimeRecord)
            .where(
                DailyTimeRecord.employee_id == employee_id,
                DailyTimeRecord.work_date >= start,
                DailyTimeRecord.work_date <= end,
            )
            .order_by(DailyTimeRecord.work_date)
        )
        return list(result.scalars().all())

    def _ensure_attendance_resolved(self, employee_id: UUID, dtrs: list[DailyTimeRecord]) -> None:
        unresolved = [d for d in dtrs if d.is_incomplete]
        if unresolved:
            raise UnresolvedAttendanceError(
                employee_id,
                [d.work_date for d in unresolved],
                [d.review_reason or "Day still in progress" for d in unresolved],
            )

    def _inputs_snapshot(
        self,
        period: PayrollPeriod,
        employee: Employee,
        compensation: EmployeeCompensation,
        dtrs: list[DailyTimeRecord],
        adjustments: list[EmployeeAdjustment],
        table_ids: dict[str, str],
    ) -> dict[str, Any]:
        """Every input the computation read, in a deterministic shape."""
        return {
            "period": {
                "id": str(period.payroll_period_id),
                "pay_frequency": period.pay_frequency,
                "cutoff_start": period.cutoff_start.isoformat(),
                "cutoff_end": period.cutoff_end.isoformat(),
            },
            "employee_id": str(employee.employee_id),
            "compensation": {
                "id": str(compensation.compensation_id),
                "basic_pay": str(compensation.basic_pay),
                "pay_type": compensation.pay_type,
            },
            "dtrs": [
                {
                    "date": d.work_date.isoformat(),
                    "status": d.status,
                    "work": d.work_minutes,
                    "late": d.late_minutes,
                    "undertime": d.undertime_minutes,
                    "overtime": d.overtime_minutes,
                    "overtime_approved": d.overtime_approved,
                    "night_diff": d.night_diff_minutes,
                    "rest_day": d.is_rest_day,
                    "holiday_type": d.holiday_type,
                    "schedule_id": str(d.work_schedule_id) if d.work_schedule_id else None,
                }
                for d in dtrs
            ],
            "adjustments": [
                {
                    "id": str(a.adjustment_id),
                    "category": a.category,
                    "amount": str(a.amount),
                    "remaining_balance": str(a.remaining_balance)
                    if a.remaining_balance is not None
                    else None,
                }
                for a in adjustments
            ],
            "tables": table_ids,
            "split_policies": {
                s.value: self.settings.split_policy(s.value) for s in ContributionScheme
            },
            "engine_version": self.settings.engine_version,
        }
