"""Pydantic schemas for API request/response models."""

from datetime import date, datetime
from decimal import Decimal
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


# ============================================================================
# Payroll period schemas
# ============================================================================


class PeriodCreate(BaseModel):
    """Schema for creating a payroll period in draft status."""

    name: str
    pay_frequency: str = "semi_monthly"
    cutoff_start: date
    cutoff_end: date
    pay_date: date
    period_number: int | None = None
    actor: str | None = None


class PeriodGenerateRequest(BaseModel):
    """Schema for generating a year of payroll periods."""

    year: int = Field(ge=2000, le=2100)
    pay_frequency: str = "semi_monthly"
    pay_date_adjustment: str = "before"
    actor: str | None = None


class PeriodResponse(BaseModel):
    """Schema for payroll period response."""

    model_config = ConfigDict(from_attributes=True)

    payroll_period_id: UUID
    name: str
    pay_frequency: str
    period_number: int | None = None
    cutoff_start: date
    cutoff_end: date
    pay_date: date
    status: str
    employee_count: int
    total_gross: Decimal
    total_deductions: Decimal
    total_net: Decimal
    opened_at: datetime | None = None
    computed_at: datetime | None = None
    approved_at: datetime | None = None
    closed_at: datetime | None = None
    reopen_count: int


class PeriodListResponse(BaseModel):
    items: list[PeriodResponse]
    total: int


class TransitionRequest(BaseModel):
    """Schema for a period or entry status change."""

    actor: str | None = None
    reason: str | None = None
    allow_failures: bool = False


# ============================================================================
# Run schemas
# ============================================================================


class RunRequest(BaseModel):
    concurrency: int | None = Field(default=None, ge=1)
    actor: str | None = None


class EmployeeFailureResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    employee_id: UUID
    error_type: str
    reason: str


class RunReportResponse(BaseModel):
    """Schema for a payroll run report."""

    model_config = ConfigDict(from_attributes=True)

    payroll_period_id: UUID
    eligible: int
    computed: list[UUID]
    failures: list[EmployeeFailureResponse]
    skipped: list[UUID]
    cancelled: bool
    period_status: str | None = None
    employee_count: int
    total_gross: Decimal
    total_deductions: Decimal
    total_net: Decimal


# ============================================================================
# Entry schemas
# ============================================================================


class EarningResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    sequence: int
    earning_type: str
    code: str
    description: str
    quantity: Decimal | None = None
    quantity_unit: str | None = None
    rate: Decimal | None = None
    multiplier: Decimal | None = None
    amount: Decimal
    is_taxable: bool
    adjustment_id: UUID | None = None


class DeductionResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    sequence: int
    deduction_type: str
    code: str
    description: str
    basis_amount: Decimal | None = None
    rate: Decimal | None = None
    amount: Decimal
    employer_share: Decimal
    is_statutory: bool
    source_table_id: UUID | None = None
    adjustment_id: UUID | None = None


class EntrySummaryResponse(BaseModel):
    """Schema for a payroll entry without line items."""

    model_config = ConfigDict(from_attributes=True)

    payroll_entry_id: UUID
    payroll_period_id: UUID
    employee_id: UUID
    employee_number: str
    employee_name: str
    pay_type: str
    basic_salary: Decimal
    daily_rate: Decimal
    hourly_rate: Decimal
    days_worked: int
    absent_days: int
    late_minutes: int
    undertime_minutes: int
    overtime_minutes: int
    unapproved_overtime_minutes: int
    night_diff_minutes: int
    gross_pay: Decimal
    taxable_income: Decimal
    total_deductions: Decimal
    net_pay: Decimal
    status: str
    inputs_fingerprint: str | None = None
    engine_version: str | None = None
    computed_at: datetime | None = None
    approved_at: datetime | None = None
    reopen_count: int


class EntryDetailResponse(EntrySummaryResponse):
    """Schema for a payroll entry with its line items."""

    earnings: list[EarningResponse] = []
    deductions: list[DeductionResponse] = []


class EntryListResponse(BaseModel):
    items: list[EntrySummaryResponse]
    total: int


# ============================================================================
# DTR schemas
# ============================================================================


class DtrComputeRequest(BaseModel):
    """Schema for computing DTRs for one employee over a date range."""

    employee_id: UUID
    start_date: date
    end_date: date | None = None


class DtrResponse(BaseModel):
    """Schema for daily time record response."""

    model_config = ConfigDict(from_attributes=True)

    dtr_id: UUID
    employee_id: UUID
    work_date: date
    work_schedule_id: UUID | None = None
    shift_name: str | None = None
    status: str
    first_in: datetime | None = None
    last_out: datetime | None = None
    work_minutes: int
    break_minutes: int
    late_minutes: int
    undertime_minutes: int
    overtime_minutes: int
    night_diff_minutes: int
    overtime_approved: bool
    is_rest_day: bool
    holiday_type: str | None = None
    needs_review: bool
    review_reason: str | None = None
    is_incomplete: bool
    punch_audit: list[dict[str, Any]] | None = None


class DtrListResponse(BaseModel):
    items: list[DtrResponse]
    total: int


# ============================================================================
# Error schemas
# ============================================================================


class ErrorResponse(BaseModel):
    """Schema for error response."""

    detail: str
    code: str | None = None
    context: dict[str, Any] | None = None
