"""Payroll calculators: rates, statutory contributions, withholding tax, line items."""

from ph_payroll.calculators.contributions import (
    ContributionTableResolver,
    compute_share,
    cutoff_portion,
    find_bracket,
    validate_partition,
)
from ph_payroll.calculators.line_builder import LineItemBuilder
from ph_payroll.calculators.rates import PayRates, derive_rates, monthly_equivalent
from ph_payroll.calculators.types import (
    ContributionScheme,
    ContributionShare,
    DeductionLine,
    EarningLine,
    PayFrequency,
    PayType,
    SplitPolicy,
    WithholdingTaxResult,
)
from ph_payroll.calculators.withholding_tax import WithholdingTaxCalculator, compute_tax

__all__ = [
    "ContributionScheme",
    "ContributionShare",
    "ContributionTableResolver",
    "DeductionLine",
    "EarningLine",
    "LineItemBuilder",
    "PayFrequency",
    "PayRates",
    "PayType",
    "SplitPolicy",
    "WithholdingTaxCalculator",
    "WithholdingTaxResult",
    "compute_share",
    "compute_tax",
    "cutoff_portion",
    "derive_rates",
    "find_bracket",
    "monthly_equivalent",
    "validate_partition",
]
