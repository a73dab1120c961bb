"""Statutory table seed data: SSS, PhilHealth, Pag-IBIG, and BIR withholding tax.

Every version is inserted once, keyed by (scheme, effective_from) or
(pay_period, effective_from); reseeding never edits an existing version.
"""

from __future__ import annotations

import logging
from datetime import date
from decimal import ROUND_HALF_UP, Decimal
from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ph_payroll.models import (
    ContributionBracket,
    ContributionTable,
    WithholdingTaxBracket,
    WithholdingTaxTable,
)

logger = logging.getLogger(__name__)

CENTS = Decimal("0.01")


def _money(value: Any) -> Decimal:
    return Decimal(str(value)).quantize(CENTS, rounding=ROUND_HALF_UP)


def sss_2025_brackets() -> list[dict[str, Any]]:
    """2025 SSS schedule: MSC 4,000 to 30,000 in 500 steps.

    Employee 4.5% and employer 9.5% of MSC; EC 10 up to MSC 15,000, 30 above.
    Each MSC covers salaries within 250 of it; the top bracket is unbounded.
    """
    brackets = []
    for msc in range(4000, 30001, 500):
        credit = Decimal(msc)
        brackets.append(
            {
                "min_salary": Decimal("0") if msc == 4000 else credit - 250,
                "max_salary": None if msc == 30000 else credit + 250,
                "monthly_salary_credit": credit,
                "employee_share": _money(credit * Decimal("0.045")),
                "employer_share": _money(credit * Decimal("0.095")),
                "ec_share": Decimal("10") if msc <= 15000 else Decimal("30"),
            }
        )
    return brackets


CONTRIBUTION_TABLES: list[dict[str, Any]] = [
    {
        "scheme": "sss",
        "name": "2025 SSS Contribution Table",
        "effective_from": date(2025, 1, 1),
        "brackets": sss_2025_brackets(),
    },
    {
        "scheme": "philhealth",
        "name": "2025 PhilHealth Premium (5%)",
        "effective_from": date(2025, 1, 1),
        "premium_rate": Decimal("0.05"),
        "employee_share_rate": Decimal("0.5"),
        "employer_share_rate": Decimal("0.5"),
        "salary_floor": Decimal("10000"),
        "salary_ceiling": Decimal("100000"),
        "min_contribution": Decimal("500"),
        "max_contribution": Decimal("5000"),
        "brackets": [],
    },
    {
        "scheme": "pagibig",
        "name": "Pag-IBIG Contribution Table (5,000 fund salary cap)",
        "effective_from": date(2023, 1, 1),
        "max_monthly_compensation": Decimal("5000"),
        "brackets": [
            {"min_salary": Decimal("0"), "max_salary": Decimal("1500"),
             "employee_rate": Decimal("0.01"), "employer_rate": Decimal("0.02")},
            {"min_salary": Decimal("1500"), "max_salary": None,
             "employee_rate": Decimal("0.02"), "employer_rate": Decimal("0.02")},
        ],
    },
    {
        "scheme": "pagibig",
        "name": "2025 Pag-IBIG Contribution Table (10,000 fund salary cap)",
        "effective_from": date(2025, 1, 1),
        "max_monthly_compensation": Decimal("10000"),
        "brackets": [
            {"min_salary": Decimal("0"), "max_salary": Decimal("1500"),
             "employee_rate": Decimal("0.01"), "employer_rate": Decimal("0.02")},
            {"min_salary": Decimal("1500"), "max_salary": None,
             "employee_rate": Decimal("0.02"), "employer_rate": Decimal("0.02")},
        ],
    },
]

# TRAIN law (RA 10963) tables effective 2023: (min, max, base_tax, excess_rate)
WITHHOLDING_TAX_TABLES: dict[str, list[tuple[Any, Any, Any, Any]]] = {
    "daily": [
        (0, 685, 0, 0),
        (685, 1096, 0, "0.15"),
        (1096, 2192, "61.65", "0.20"),
        (2192, 5479, "280.85", "0.25"),
        (5479, 21918, "1102.60", "0.30"),
        (21918, None, "6034.30", "0.35"),
    ],
    "weekly": [
        (0, 4808, 0, 0),
        (4808, 7692, 0, "0.15"),
        (7692, 15385, "432.69", "0.20"),
        (15385, 38462, "1971.15", "0.25"),
        (38462, 153846, "7740.38", "0.30"),
        (153846, None, "42355.77", "0.35"),
    ],
    "semi_monthly": [
        (0, 10417, 0, 0),
        (10417, 16667, 0, "0.15"),
        (16667, 33333, "937.50", "0.20"),
        (33333, 83333, "4270.83", "0.25"),
        (83333, 333333, "16770.83", "0.30"),
        (333333, None, "91770.83", "0.35"),
    ],
    "monthly": [
        (0, 20833, 0, 0),
        (20833, 33333, 0, "0.15"),
        (33333, 66667, "1875.00", "0.20"),
        (66667, 166667, "8541.67", "0.25"),
        (166667, 666667, "33541.67", "0.30"),
        (666667, None, "183541.67", "0.35"),
    ],
}
WITHHOLDING_TAX_EFFECTIVE_FROM = date(2023, 1, 1)


async def seed_contribution_tables(session: AsyncSession) -> list[ContributionTable]:
    """Insert contribution table versions that do not exist yet."""
    created = []
    for definition in CONTRIBUTION_TABLES:
        result = await session.execute(
            select(ContributionTable).where(
                ContributionTable.scheme == definition["scheme"],
                ContributionTable.effective_from == definition["effective_from"],
            )
        )
        if result.scalar_one_or_none() is not None:
            logger.info("%s already exists, skipping", definition["name"])
            continue

        fields = {k: v for k, v in definition.items() if k != "brackets"}
        table = ContributionTable(**fields)
        table.brackets = [ContributionBracket(**bracket) for bracket in definition["brackets"]]
        session.add(table)
        created.append(table)
        logger.info("Created %s", definition["name"])

    await session.flush()
    return created


async def seed_withholding_tax_tables(session: AsyncSession) -> list[WithholdingTaxTable]:
    """Insert withholding tax tables that do not exist yet."""
    created = []
    for pay_period, rows in WITHHOLDING_TAX_TABLES.items():
        result = await session.execute(
            select(WithholdingTaxTable).where(
                WithholdingTaxTable.pay_period == pay_period,
                WithholdingTaxTable.effective_from == WITHHOLDING_TAX_EFFECTIVE_FROM,
            )
        )
        if result.scalar_one_or_none() is not None:
            logger.info("%s withholding tax table already exists, skipping", pay_period)
            continue

        table = WithholdingTaxTable(
            pay_period=pay_period,
            name=f"BIR Withholding Tax Table - {pay_period.replace('_', '-').title()} (TRAIN)",
            effective_from=WITHHOLDING_TAX_EFFECTIVE_FROM,
        )
        table.brackets = [
            WithholdingTaxBracket(
                bracket_number=number,
                min_compensation=Decimal(str(low)),
                max_compensation=Decimal(str(high)) if high is not None else None,
                base_tax=Decimal(str(base)),
                excess_rate=Decimal(str(rate)),
            )
            for number, (low, high, base, rate) in enumerate(rows, start=1)
        ]
        session.add(table)
        created.append(table)
        logger.info("Created %s withholding tax table", pay_period)

    await session.flush()
    return created


async def seed_statutory_tables(session: AsyncSession) -> int:
    """Seed every statutory table. Returns the number of versions created."""
    contributions = await seed_contribution_tables(session)
    taxes = await seed_withholding_tax_tables(session)
    return len(contributions) + len(taxes)
