"""Pay rate derivation from basic pay."""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

from ph_payroll.calculators.line_builder import LineItemBuilder
from ph_payroll.calculators.types import PayType

WORK_DAYS_PER_MONTH = Decimal("22")
WORK_DAYS_PER_WEEK = Decimal("5")
WEEKS_PER_MONTH = Decimal("4.33")
HOURS_PER_DAY = Decimal("8")
MINUTES_PER_DAY = Decimal("480")


@dataclass(frozen=True)
class PayRates:
    """Daily, hourly, and per-minute rates, carried at 4 decimals."""

    daily: Decimal
    hourly: Decimal
    per_minute: Decimal


def daily_rate(basic_pay: Decimal, pay_type: PayType | str) -> Decimal:
    """Daily rate for a basic pay amount.

    monthly / 22; semi-monthly x 2 / 22; weekly / 5; daily as is.
    """
    pay_type = PayType(pay_type)
    if pay_type is PayType.MONTHLY:
        rate = basic_pay / WORK_DAYS_PER_MONTH
    elif pay_type is PayType.SEMI_MONTHLY:
        rate = basic_pay * 2 / WORK_DAYS_PER_MONTH
    elif pay_type is PayType.WEEKLY:
        rate = basic_pay / WORK_DAYS_PER_WEEK
    else:
        rate = basic_pay
    return LineItemBuilder.round_rate(rate)


def derive_rates(basic_pay: Decimal, pay_type: PayType | str) -> PayRates:
    daily = daily_rate(basic_pay, pay_type)
    return PayRates(
        daily=daily,
        hourly=LineItemBuilder.round_rate(daily / HOURS_PER_DAY),
        per_minute=LineItemBuilder.round_rate(daily / MINUTES_PER_DAY),
    )


def monthly_equivalent(basic_pay: Decimal, pay_type: PayType | str) -> Decimal:
    """Monthly basic salary used as the contribution basis."""
    pay_type = PayType(pay_type)
    factor = {
        PayType.MONTHLY: Decimal("1"),
        PayType.SEMI_MONTHLY: Decimal("2"),
        PayType.WEEKLY: WEEKS_PER_MONTH,
        PayType.DAILY: WORK_DAYS_PER_MONTH,
    }[pay_type]
    return LineItemBuilder.round_to_cents(basic_pay * factor)
