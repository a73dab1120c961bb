"""Withholding tax calculation from effective-dated bracket tables."""

from __future__ import annotations

import logging
from datetime import date
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from ph_payroll.calculators.contributions import find_bracket
from ph_payroll.calculators.line_builder import LineItemBuilder
from ph_payroll.calculators.types import TaxBracketData, TaxTableData, WithholdingTaxResult
from ph_payroll.errors import TaxTableNotFoundError
from ph_payroll.models import WithholdingTaxTable

logger = logging.getLogger(__name__)


def compute_tax(table: TaxTableData, taxable: Decimal) -> WithholdingTaxResult:
    """tax = base_tax + excess_rate x (taxable - bracket min), rounded once.

    Compensation below the lowest bracket, or zero, owes nothing.
    """
    if taxable <= 0 or not table.brackets or taxable < table.brackets[0].min_value:
        return WithholdingTaxResult(
            taxable_compensation=max(taxable, Decimal("0")),
            tax=Decimal("0.00"),
            pay_period=table.pay_period,
            table_id=table.table_id,
        )

    bracket = find_bracket(table.brackets, taxable, table.label)
    tax = bracket.base_tax + bracket.excess_rate * (taxable - bracket.min_value)
    return WithholdingTaxResult(
        taxable_compensation=taxable,
        tax=LineItemBuilder.round_to_cents(tax),
        pay_period=table.pay_period,
        table_id=table.table_id,
        bracket_number=bracket.bracket_number,
    )


class WithholdingTaxCalculator:
    """Computes withholding tax on a period's taxable compensation.

    Tables are stored per pay period type (daily, weekly, semi-monthly,
    monthly) as append-only versions:
    {
        "pay_period": "semi_monthly",
        "effective_from": "2023-01-01",
        "brackets": [
            {"min": 0, "max": 10417, "base_tax": 0, "excess_rate": 0},
            {"min": 10417, "max": 16667, "base_tax": 0, "excess_rate": 0.15},
            ...
        ]
    }
    """

    def __init__(
        self,
        session: AsyncSession,
        cache: dict[tuple[str, date], TaxTableData] | None = None,
    ):
        self.session = session
        self._table_cache = cache if cache is not None else {}

    async def resolve_table(self, pay_period: str, as_of_date: date) -> TaxTableData:
        cache_key = (pay_period, as_of_date)
        if cache_key in self._table_cache:
            return self._table_cache[cache_key]

        result = await self.session.execute(
            select(WithholdingTaxTable)
            .options(selectinload(WithholdingTaxTable.brackets))
            .where(
                WithholdingTaxTable.pay_period == pay_period,
                WithholdingTaxTable.is_active.is_(True),
                WithholdingTaxTable.effective_from <= as_of_date,
            )
            .order_by(WithholdingTaxTable.effective_from.desc())
            .limit(1)
        )
        row = result.scalar_one_or_none()
        if row is None:
            raise TaxTableNotFoundError(pay_period, as_of_date)

        table = TaxTableData(
            table_id=row.withholding_tax_table_id,
            pay_period=row.pay_period,
            name=row.name,
            effective_from=row.effective_from,
            brackets=tuple(
                TaxBracketData(
                    min_value=b.min_compensation,
                    max_value=b.max_compensation,
                    bracket_number=b.bracket_number,
                    base_tax=b.base_tax,
                    excess_rate=b.excess_rate,
                )
                for b in row.brackets
            ),
        )
        self._table_cache[cache_key] = table
        logger.debug("Resolved %s for %s", table.label, as_of_date)
        return table

    async def calculate(
        self,
        taxable: Decimal,
        pay_period: str,
        as_of_date: date,
    ) -> WithholdingTaxResult:
        table = await self.resolve_table(pay_period, as_of_date)
        return compute_tax(table, taxable)
