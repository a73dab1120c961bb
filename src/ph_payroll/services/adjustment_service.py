"""Employee adjustments: selection for a period and application bookkeeping."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from decimal import Decimal
from uuid import UUID

from sqlalchemy import and_, or_, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from ph_payroll.models import (
    AdjustmentApplication,
    EmployeeAdjustment,
    PayrollEntry,
    PayrollPeriod,
)

logger = logging.getLogger(__name__)

# Deduction adjustment types reported as loan deductions
LOAN_TYPES = frozenset({"loan", "sss_loan", "pagibig_loan", "company_loan", "salary_loan"})


def adjustment_amount(adjustment: EmployeeAdjustment) -> Decimal:
    """Amount to apply this period; balance-tracked amounts are capped by the balance."""
    amount = adjustment.amount
    if adjustment.has_balance_tracking and adjustment.remaining_balance is not None:
        amount = min(amount, adjustment.remaining_balance)
    return max(amount, Decimal("0"))


def deduction_type_for(adjustment: EmployeeAdjustment) -> str:
    return "loan" if adjustment.adjustment_type in LOAN_TYPES else "other"


class AdjustmentService:
    """Selects and applies allowances, bonuses, deductions, and loan installments.

    Applicability for a period:
    - one-time: active and targeted at the period
    - recurring: active, window overlapping the cutoff, occurrences and
      balance (when tracked) not exhausted

    Each adjustment is applied at most once per period. Recomputing an entry
    first reverts the period's applications so balances never double count.
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def applicable_adjustments(
        self,
        employee_id: UUID,
        period: PayrollPeriod,
    ) -> list[EmployeeAdjustment]:
        one_time = and_(
            EmployeeAdjustment.frequency == "one_time",
            EmployeeAdjustment.target_payroll_period_id == period.payroll_period_id,
        )
        recurring = and_(
            EmployeeAdjustment.frequency == "recurring",
            or_(
                EmployeeAdjustment.recurring_start_date.is_(None),
                EmployeeAdjustment.recurring_start_date <= period.cutoff_end,
            ),
            or_(
                EmployeeAdjustment.recurring_end_date.is_(None),
                EmployeeAdjustment.recurring_end_date >= period.cutoff_start,
            ),
            or_(
                EmployeeAdjustment.remaining_occurrences.is_(None),
                EmployeeAdjustment.remaining_occurrences > 0,
            ),
        )

        result = await self.session.execute(
            select(EmployeeAdjustment)
            .where(
                EmployeeAdjustment.employee_id == employee_id,
                EmployeeAdjustment.status == "active",
                or_(one_time, recurring),
            )
            .order_by(EmployeeAdjustment.created_at, EmployeeAdjustment.adjustment_id)
        )
        adjustments = list(result.scalars().all())

        return [
            adj
            for adj in adjustments
            if not adj.has_balance_tracking
            or adj.remaining_balance is None
            or adj.remaining_balance > 0
        ]

    async def revert_applications(self, employee_id: UUID, period_id: UUID) -> int:
        """Undo the period's applications for one employee.

        Restores balance, occurrences, and status. Returns count reverted.
        """
        result = await self.session.execute(
            select(AdjustmentApplication)
            .join(EmployeeAdjustment)
            .options(selectinload(AdjustmentApplication.adjustment))
            .where(
                AdjustmentApplication.payroll_period_id == period_id,
                EmployeeAdjustment.employee_id == employee_id,
            )
        )
        applications = list(result.scalars().all())

        for application in applications:
            adjustment = application.adjustment
            adjustment.total_applied -= application.amount
            if adjustment.has_balance_tracking:
                adjustment.remaining_balance = application.balance_before
            if adjustment.remaining_occurrences is not None:
                adjustment.remaining_occurrences += 1
            if adjustment.status == "completed":
                adjustment.status = "active"
            await self.session.delete(application)

        if applications:
            await self.session.flush()
            logger.debug(
                "Reverted %d adjustment application(s) for employee %s in period %s",
                len(applications),
                employee_id,
                period_id,
            )
        return len(applications)

    async def record_application(
        self,
        adjustment: EmployeeAdjustment,
        period: PayrollPeriod,
        entry: PayrollEntry,
        amount: Decimal,
    ) -> AdjustmentApplication:
        """Book an applied amount and complete the adjustment when exhausted."""
        balance_before = adjustment.remaining_balance if adjustment.has_balance_tracking else None
        balance_after = None
        if balance_before is not None:
            balance_after = balance_before - amount
            adjustment.remaining_balance = balance_after

        adjustment.total_applied += amount
        if adjustment.remaining_occurrences is not None:
            adjustment.remaining_occurrences -= 1

        exhausted = (
            adjustment.frequency == "one_time"
            or (balance_after is not None and balance_after <= 0)
            or adjustment.remaining_occurrences == 0
        )
        if exhausted:
            adjustment.status = "completed"

        application = AdjustmentApplication(
            adjustment_id=adjustment.adjustment_id,
            payroll_period_id=period.payroll_period_id,
            payroll_entry_id=entry.payroll_entry_id,
            amount=amount,
            balance_before=balance_before,
            balance_after=balance_after,
            applied_at=datetime.now(timezone.utc),
        )
        self.session.add(application)
        return application
