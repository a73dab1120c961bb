"""Statutory contribution calculation: SSS, PhilHealth, Pag-IBIG."""

from __future__ import annotations

import logging
from datetime import date
from decimal import Decimal
from typing import Sequence, TypeVar

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from ph_payroll.calculators.types import (
    ContributionBracketData,
    ContributionScheme,
    ContributionShare,
    ContributionTableData,
    PayFrequency,
    SalaryBracket,
    SplitPolicy,
)
from ph_payroll.errors import (
    BracketGapError,
    ContributionTableNotFoundError,
    DataIntegrityError,
)
from ph_payroll.models import ContributionTable

logger = logging.getLogger(__name__)

B = TypeVar("B", bound=SalaryBracket)

ZERO = Decimal("0")


def find_bracket(brackets: Sequence[B], value: Decimal, table_label: str) -> B:
    """The one bracket with ``min <= value < max`` (top bracket unbounded).

    A value in no bracket is a partition gap and a data-integrity error.
    """
    matches = [b for b in brackets if b.contains(value)]
    if not matches:
        raise BracketGapError(table_label, value)
    if len(matches) > 1:
        raise DataIntegrityError(
            f"{len(matches)} brackets in {table_label} overlap at {value}"
        )
    return matches[0]


def validate_partition(brackets: Sequence[SalaryBracket], domain_start: Decimal = ZERO) -> list[str]:
    """Check that brackets partition ``[domain_start, infinity)``.

    Returns list of problems (empty if the partition is sound).
    """
    if not brackets:
        return ["table has no brackets"]

    errors: list[str] = []
    ordered = sorted(brackets, key=lambda b: b.min_value)

    if ordered[0].min_value > domain_start:
        errors.append(f"gap: [{domain_start}, {ordered[0].min_value}) is not covered")

    for current, following in zip(ordered, ordered[1:]):
        if current.max_value is None:
            errors.append(f"unbounded bracket at {current.min_value} is not the last bracket")
        elif current.max_value < following.min_value:
            errors.append(f"gap: [{current.max_value}, {following.min_value}) is not covered")
        elif current.max_value > following.min_value:
            errors.append(
                f"overlap: [{following.min_value}, {current.max_value}) is in two brackets"
            )

    if ordered[-1].max_value is not None:
        errors.append(f"top bracket ends at {ordered[-1].max_value}; it must be unbounded")

    return errors


def _clamp(value: Decimal, low: Decimal | None, high: Decimal | None) -> Decimal:
    if low is not None and value < low:
        value = low
    if high is not None and value > high:
        value = high
    return value


def compute_share(table: ContributionTableData, salary: Decimal) -> ContributionShare:
    """Monthly contribution for a salary under one table version.

    Amounts are not rounded here; rounding happens once, on the line item.
    """
    if table.scheme is ContributionScheme.PHILHEALTH:
        if table.premium_rate is None:
            raise DataIntegrityError(f"{table.label} has no premium rate")
        basis = _clamp(salary, table.salary_floor, table.salary_ceiling)
        premium = _clamp(basis * table.premium_rate, table.min_contribution, table.max_contribution)
        return ContributionShare(
            scheme=table.scheme,
            basis=basis,
            employee_share=premium * (table.employee_share_rate or ZERO),
            employer_share=premium * (table.employer_share_rate or ZERO),
            table_id=table.table_id,
        )

    bracket: ContributionBracketData = find_bracket(table.brackets, salary, table.label)

    if table.scheme is ContributionScheme.PAGIBIG:
        basis = salary
        if table.max_monthly_compensation is not None:
            basis = min(salary, table.max_monthly_compensation)
        return ContributionShare(
            scheme=table.scheme,
            basis=basis,
            employee_share=basis * (bracket.employee_rate or ZERO),
            employer_share=basis * (bracket.employer_rate or ZERO),
            table_id=table.table_id,
        )

    return ContributionShare(
        scheme=table.scheme,
        basis=bracket.monthly_salary_credit or salary,
        employee_share=bracket.employee_share or ZERO,
        employer_share=bracket.employer_share or ZERO,
        ec_share=bracket.ec_share or ZERO,
        monthly_salary_credit=bracket.monthly_salary_credit,
        table_id=table.table_id,
    )


def cutoff_portion(
    monthly_amount: Decimal,
    frequency: PayFrequency,
    policy: SplitPolicy,
    ends_month: bool,
) -> Decimal:
    """Part of a monthly amount that falls on one cutoff.

    ``even`` spreads it over the month's cutoffs; ``last_cutoff`` puts all of
    it on the cutoff that ends the month.
    """
    if frequency is PayFrequency.MONTHLY:
        return monthly_amount
    if policy is SplitPolicy.LAST_CUTOFF:
        return monthly_amount if ends_month else ZERO
    return monthly_amount / frequency.cutoffs_per_month


class ContributionTableResolver:
    """Resolves effective-dated contribution tables and computes shares.

    The table in force is the active version with the latest
    ``effective_from`` on or before the as-of date. Tables are read-only
    during a run, so resolved versions are cached per resolver.
    """

    def __init__(
        self,
        session: AsyncSession,
        cache: dict[tuple[ContributionScheme, date], ContributionTableData] | None = None,
    ):
        self.session = session
        # A run shares one cache across its per-employee sessions
        self._table_cache = cache if cache is not None else {}

    async def resolve_table(
        self, scheme: ContributionScheme | str, as_of_date: date
    ) -> ContributionTableData:
        scheme = ContributionScheme(scheme)
        cache_key = (scheme, as_of_date)
        if cache_key in self._table_cache:
            return self._table_cache[cache_key]

        result = await self.session.execute(
            select(ContributionTable)
            .options(selectinload(ContributionTable.brackets))
            .where(
                ContributionTable.scheme == scheme.value,
                ContributionTable.is_active.is_(True),
                ContributionTable.effective_from <= as_of_date,
            )
            .order_by(ContributionTable.effective_from.desc())
            .limit(1)
        )
        row = result.scalar_one_or_none()
        if row is None:
            raise ContributionTableNotFoundError(scheme.value, as_of_date)

        table = self._to_data(row)
        self._table_cache[cache_key] = table
        logger.debug("Resolved %s for %s", table.label, as_of_date)
        return table

    async def compute(
        self,
        scheme: ContributionScheme | str,
        salary: Decimal,
        as_of_date: date,
    ) -> ContributionShare:
        table = await self.resolve_table(scheme, as_of_date)
        return compute_share(table, salary)

    def _to_data(self, row: ContributionTable) -> ContributionTableData:
        return ContributionTableData(
            table_id=row.contribution_table_id,
            scheme=ContributionScheme(row.scheme),
            name=row.name,
            effective_from=row.effective_from,
            brackets=tuple(
                ContributionBracketData(
                    min_value=b.min_salary,
                    max_value=b.max_salary,
                    monthly_salary_credit=b.monthly_salary_credit,
                    employee_share=b.employee_share,
                    employer_share=b.employer_share,
                    ec_share=b.ec_share,
                    employee_rate=b.employee_rate,
                    employer_rate=b.employer_rate,
                )
                for b in row.brackets
            ),
            premium_rate=row.premium_rate,
            employee_share_rate=row.employee_share_rate,
            employer_share_rate=row.employer_share_rate,
            salary_floor=row.salary_floor,
            salary_ceiling=row.salary_ceiling,
            min_contribution=row.min_contribution,
            max_contribution=row.max_contribution,
            max_monthly_compensation=row.max_monthly_compensation,
        )
