"""Line item builder and reconciliation checks."""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal
from uuid import UUID

from ph_payroll.calculators.types import DeductionLine, EarningLine

# Earning types that reduce basic pay
REDUCTION_TYPES = frozenset({"absence", "tardiness"})


class LineItemBuilder:
    """Builds earning and deduction lines for a payroll entry.

    Sign conventions (non-negotiable):
    - Earnings: positive, except ABSENT and TARDINESS which reduce basic pay
      and are negative
    - Deductions: non-negative employee share; employer share is separate
      and never part of the entry's totals

    Rounding:
    - Rates are carried at 4 decimals
    - Every line amount is rounded once, half-up, to 2 decimals
    - Totals are sums of rounded lines, so they reconcile exactly
    """

    RATE_PRECISION = Decimal("0.0001")
    OUTPUT_PRECISION = Decimal("0.01")

    @staticmethod
    def round_to_cents(amount: Decimal) -> Decimal:
        """Round amount to 2 decimal places (centavos)."""
        return amount.quantize(LineItemBuilder.OUTPUT_PRECISION, rounding=ROUND_HALF_UP)

    @staticmethod
    def round_rate(rate: Decimal) -> Decimal:
        return rate.quantize(LineItemBuilder.RATE_PRECISION, rounding=ROUND_HALF_UP)

    @staticmethod
    def create_earning_line(
        earning_type: str,
        code: str,
        description: str,
        amount: Decimal,
        quantity: Decimal | None = None,
        quantity_unit: str | None = None,
        rate: Decimal | None = None,
        multiplier: Decimal | None = None,
        is_taxable: bool = True,
        adjustment_id: UUID | None = None,
    ) -> EarningLine:
        """Create an earning line item (positive amount)."""
        return EarningLine(
            earning_type=earning_type,
            code=code,
            description=description,
            amount=LineItemBuilder.round_to_cents(abs(amount)),  # Ensure positive
            quantity=quantity,
            quantity_unit=quantity_unit,
            rate=rate,
            multiplier=multiplier,
            is_taxable=is_taxable,
            adjustment_id=adjustment_id,
        )

    @staticmethod
    def create_reduction_line(
        earning_type: str,
        code: str,
        description: str,
        amount: Decimal,
        quantity: Decimal | None = None,
        quantity_unit: str | None = None,
        rate: Decimal | None = None,
    ) -> EarningLine:
        """Create an earning line that reduces basic pay (negative amount)."""
        return EarningLine(
            earning_type=earning_type,
            code=code,
            description=description,
            amount=-LineItemBuilder.round_to_cents(abs(amount)),  # Ensure negative
            quantity=quantity,
            quantity_unit=quantity_unit,
            rate=rate,
        )

    @staticmethod
    def create_deduction_line(
        deduction_type: str,
        code: str,
        description: str,
        amount: Decimal,
        basis_amount: Decimal | None = None,
        rate: Decimal | None = None,
        employer_share: Decimal = Decimal("0"),
        is_statutory: bool = False,
        source_table_id: UUID | None = None,
        adjustment_id: UUID | None = None,
    ) -> DeductionLine:
        """Create a deduction line item (non-negative employee share)."""
        return DeductionLine(
            deduction_type=deduction_type,
            code=code,
            description=description,
            amount=LineItemBuilder.round_to_cents(abs(amount)),
            basis_amount=LineItemBuilder.round_to_cents(basis_amount)
            if basis_amount is not None
            else None,
            rate=rate,
            employer_share=LineItemBuilder.round_to_cents(abs(employer_share)),
            is_statutory=is_statutory,
            source_table_id=source_table_id,
            adjustment_id=adjustment_id,
        )

    @staticmethod
    def calculate_gross_from_lines(earnings: list[EarningLine]) -> Decimal:
        """GROSS = sum of every earning line, reductions included."""
        gross = sum((line.amount for line in earnings), Decimal("0"))
        return LineItemBuilder.round_to_cents(gross)

    @staticmethod
    def calculate_taxable_from_lines(earnings: list[EarningLine]) -> Decimal:
        taxable = sum((line.amount for line in earnings if line.is_taxable), Decimal("0"))
        return LineItemBuilder.round_to_cents(taxable)

    @staticmethod
    def calculate_deductions_from_lines(deductions: list[DeductionLine]) -> Decimal:
        total = sum((line.amount for line in deductions), Decimal("0"))
        return LineItemBuilder.round_to_cents(total)

    @staticmethod
    def validate_line_signs(
        earnings: list[EarningLine], deductions: list[DeductionLine]
    ) -> list[str]:
        """Validate that all line items have correct signs.

        Returns list of error messages (empty if all valid).
        """
        errors: list[str] = []

        for i, line in enumerate(earnings):
            if line.earning_type in REDUCTION_TYPES:
                if line.amount > 0:
                    errors.append(
                        f"Earning {i} ({line.code}) has positive amount {line.amount}, expected negative"
                    )
            elif line.amount < 0:
                errors.append(
                    f"Earning {i} ({line.code}) has negative amount {line.amount}, expected positive"
                )

        for i, line in enumerate(deductions):
            if line.amount < 0 or line.employer_share < 0:
                errors.append(f"Deduction {i} ({line.code}) has a negative amount")

        return errors

