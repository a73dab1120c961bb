"""Type definitions for the payroll calculation pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from enum import Enum
from uuid import UUID


class PayType(str, Enum):
    """How an employee's basic pay is expressed."""

    MONTHLY = "monthly"
    SEMI_MONTHLY = "semi_monthly"
    WEEKLY = "weekly"
    DAILY = "daily"


class PayFrequency(str, Enum):
    """How often a payroll period pays out."""

    SEMI_MONTHLY = "semi_monthly"
    MONTHLY = "monthly"
    WEEKLY = "weekly"

    @property
    def cutoffs_per_month(self) -> Decimal:
        return {
            PayFrequency.SEMI_MONTHLY: Decimal("2"),
            PayFrequency.MONTHLY: Decimal("1"),
            PayFrequency.WEEKLY: Decimal("4.33"),
        }[self]


class ContributionScheme(str, Enum):
    """Statutory contribution schemes."""

    SSS = "sss"
    PHILHEALTH = "philhealth"
    PAGIBIG = "pagibig"

    @property
    def deduction_code(self) -> str:
        return {
            ContributionScheme.SSS: "SSS",
            ContributionScheme.PHILHEALTH: "PHIC",
            ContributionScheme.PAGIBIG: "HDMF",
        }[self]

    @property
    def label(self) -> str:
        return {
            ContributionScheme.SSS: "SSS contribution",
            ContributionScheme.PHILHEALTH: "PhilHealth contribution",
            ContributionScheme.PAGIBIG: "Pag-IBIG contribution",
        }[self]


class SplitPolicy(str, Enum):
    """How a monthly contribution is spread over the month's cutoffs."""

    EVEN = "even"
    LAST_CUTOFF = "last_cutoff"


# ===== Line items =====


@dataclass
class EarningLine:
    """An earning line before persistence. Deductive earnings are negative."""

    earning_type: str
    code: str
    description: str
    amount: Decimal
    quantity: Decimal | None = None
    quantity_unit: str | None = None
    rate: Decimal | None = None
    multiplier: Decimal | None = None
    is_taxable: bool = True
    adjustment_id: UUID | None = None


@dataclass
class DeductionLine:
    """A deduction line before persistence.

    ``amount`` is the employee share and is always non-negative.
    ``employer_share`` is carried for remittance reports only.
    """

    deduction_type: str
    code: str
    description: str
    amount: Decimal
    basis_amount: Decimal | None = None
    rate: Decimal | None = None
    employer_share: Decimal = Decimal("0")
    is_statutory: bool = False
    source_table_id: UUID | None = None
    adjustment_id: UUID | None = None


# ===== Statutory tables =====


@dataclass(frozen=True)
class SalaryBracket:
    """Half-open range ``[min_value, max_value)``; ``max_value`` None is unbounded."""

    min_value: Decimal
    max_value: Decimal | None

    def contains(self, value: Decimal) -> bool:
        if value < self.min_value:
            return False
        return self.max_value is None or value < self.max_value


@dataclass(frozen=True)
class ContributionBracketData(SalaryBracket):
    monthly_salary_credit: Decimal | None = None
    employee_share: Decimal | None = None
    employer_share: Decimal | None = None
    ec_share: Decimal | None = None
    employee_rate: Decimal | None = None
    employer_rate: Decimal | None = None


@dataclass(frozen=True)
class ContributionTableData:
    """Detached, cacheable copy of one contribution table version."""

    table_id: UUID
    scheme: ContributionScheme
    name: str
    effective_from: date
    brackets: tuple[ContributionBracketData, ...] = ()
    premium_rate: Decimal | None = None
    employee_share_rate: Decimal | None = None
    employer_share_rate: Decimal | None = None
    salary_floor: Decimal | None = None
    salary_ceiling: Decimal | None = None
    min_contribution: Decimal | None = None
    max_contribution: Decimal | None = None
    max_monthly_compensation: Decimal | None = None

    @property
    def label(self) -> str:
        return f"{self.scheme.value} table '{self.name}' ({self.effective_from})"


@dataclass(frozen=True)
class ContributionShare:
    """Monthly contribution for one scheme and salary."""

    scheme: ContributionScheme
    basis: Decimal
    employee_share: Decimal
    employer_share: Decimal
    ec_share: Decimal = Decimal("0")
    monthly_salary_credit: Decimal | None = None
    table_id: UUID | None = None

    @property
    def total(self) -> Decimal:
        return self.employee_share + self.employer_share + self.ec_share


@dataclass(frozen=True)
class TaxBracketData(SalaryBracket):
    bracket_number: int = 0
    base_tax: Decimal = Decimal("0")
    excess_rate: Decimal = Decimal("0")


@dataclass(frozen=True)
class TaxTableData:
    """Detached, cacheable copy of one withholding tax table version."""

    table_id: UUID
    pay_period: str
    name: str
    effective_from: date
    brackets: tuple[TaxBracketData, ...] = ()

    @property
    def label(self) -> str:
        return f"{self.pay_period} tax table '{self.name}' ({self.effective_from})"


@dataclass(frozen=True)
class WithholdingTaxResult:
    taxable_compensation: Decimal
    tax: Decimal
    pay_period: str
    table_id: UUID | None = None
    bracket_number: int | None = None


# ===== Attendance summary =====


@dataclass
class AttendanceSummary:
    """DTR totals for one employee over a cutoff."""

    days_worked: int = 0
    absent_days: int = 0
    holiday_days: int = 0
    rest_days: int = 0
    regular_minutes: int = 0
    late_minutes: int = 0
    undertime_minutes: int = 0
    night_diff_minutes: int = 0
    unapproved_overtime_minutes: int = 0

    # Approved overtime minutes keyed by (bucket, schedule id)
    overtime: dict[tuple[str, UUID | None], int] = field(default_factory=dict)
    # Worked holiday days keyed by holiday type
    holidays_worked: dict[str, int] = field(default_factory=dict)
    # Night differential minutes keyed by schedule id
    night_diff: dict[UUID | None, int] = field(default_factory=dict)

    @property
    def overtime_minutes(self) -> int:
        return sum(self.overtime.values())

    def add_overtime(self, bucket: str, schedule_id: UUID | None, minutes: int) -> None:
        key = (bucket, schedule_id)
        self.overtime[key] = self.overtime.get(key, 0) + minutes
