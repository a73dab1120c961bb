"""Payroll period, entry, line item, adjustment, and audit models."""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import TYPE_CHECKING, Any
from uuid import UUID, uuid4

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    Date,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ph_payroll.models.base import MONEY, RATE, Base, TimestampMixin

if TYPE_CHECKING:
    from ph_payroll.models.employee import Employee


# ===== Periods =====


class PayrollPeriod(Base, TimestampMixin):
    """One pay run: cutoff range, pay date, lifecycle status and totals.

    Totals are written only by the run orchestrator's aggregation pass.
    """

    __tablename__ = "payroll_period"

    payroll_period_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    name: Mapped[str] = mapped_column(String, nullable=False)
    pay_frequency: Mapped[str] = mapped_column(String, nullable=False, default="semi_monthly")
    period_number: Mapped[int | None] = mapped_column(Integer, nullable=True)
    cutoff_start: Mapped[date] = mapped_column(Date, nullable=False)
    cutoff_end: Mapped[date] = mapped_column(Date, nullable=False)
    pay_date: Mapped[date] = mapped_column(Date, nullable=False)
    status: Mapped[str] = mapped_column(String, nullable=False, default="draft")

    total_gross: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False, default=Decimal("0"))
    total_deductions: Mapped[Decimal] = mapped_column(
        Numeric(14, 2), nullable=False, default=Decimal("0")
    )
    total_net: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False, default=Decimal("0"))
    employee_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    opened_at: Mapped[datetime | None] = mapped_column(nullable=True)
    computed_at: Mapped[datetime | None] = mapped_column(nullable=True)
    approved_at: Mapped[datetime | None] = mapped_column(nullable=True)
    closed_at: Mapped[datetime | None] = mapped_column(nullable=True)
    reopen_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    __table_args__ = (
        UniqueConstraint(
            "pay_frequency", "cutoff_start", "cutoff_end", name="payroll_period_cutoff_unique"
        ),
        CheckConstraint(
            "status IN ('draft', 'open', 'computed', 'approved', 'closed')",
            name="payroll_period_status_check",
        ),
        CheckConstraint(
            "pay_frequency IN ('semi_monthly', 'monthly', 'weekly')",
            name="payroll_period_frequency_check",
        ),
        CheckConstraint("cutoff_end >= cutoff_start", name="payroll_period_cutoff_check"),
    )

    # Relationships
    entries: Mapped[list[PayrollEntry]] = relationship(back_populates="payroll_period")
    run_employees: Mapped[list[PayrollRunEmployee]] = relationship(
        back_populates="payroll_period"
    )


class PayrollRunEmployee(Base, TimestampMixin):
    """Computation outcome for one employee in one period."""

    __tablename__ = "payroll_run_employee"

    payroll_run_employee_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    payroll_period_id: Mapped[UUID] = mapped_column(
        ForeignKey("payroll_period.payroll_period_id", ondelete="CASCADE"),
        nullable=False,
    )
    employee_id: Mapped[UUID] = mapped_column(
        ForeignKey("employee.employee_id", ondelete="CASCADE"),
        nullable=False,
    )
    status: Mapped[str] = mapped_column(String, nullable=False, default="pending")
    error_type: Mapped[str | None] = mapped_column(String, nullable=True)
    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)
    attempted_at: Mapped[datetime | None] = mapped_column(nullable=True)

    __table_args__ = (
        UniqueConstraint("payroll_period_id", "employee_id", name="payroll_run_employee_unique"),
        CheckConstraint(
            "status IN ('pending', 'computed', 'failed')",
            name="payroll_run_employee_status_check",
        ),
    )

    # Relationships
    payroll_period: Mapped[PayrollPeriod] = relationship(back_populates="run_employees")


# ===== Entries and line items =====


class PayrollEntry(Base, TimestampMixin):
    """Snapshot of one employee's pay for one period."""

    __tablename__ = "payroll_entry"

    payroll_entry_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    payroll_period_id: Mapped[UUID] = mapped_column(
        ForeignKey("payroll_period.payroll_period_id", ondelete="CASCADE"),
        nullable=False,
    )
    employee_id: Mapped[UUID] = mapped_column(
        ForeignKey("employee.employee_id", ondelete="CASCADE"),
        nullable=False,
    )

    # Snapshot at computation time
    employee_number: Mapped[str] = mapped_column(String, nullable=False)
    employee_name: Mapped[str] = mapped_column(String, nullable=False)
    pay_type: Mapped[str] = mapped_column(String, nullable=False)
    basic_salary: Mapped[Decimal] = mapped_column(Numeric(*MONEY), nullable=False)
    daily_rate: Mapped[Decimal] = mapped_column(Numeric(*RATE), nullable=False)
    hourly_rate: Mapped[Decimal] = mapped_column(Numeric(*RATE), nullable=False)

    # DTR summary
    days_worked: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    absent_days: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    holiday_days: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    regular_minutes: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    late_minutes: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    undertime_minutes: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    overtime_minutes: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    unapproved_overtime_minutes: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    night_diff_minutes: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    # Totals
    gross_pay: Mapped[Decimal] = mapped_column(Numeric(*MONEY), nullable=False, default=Decimal("0"))
    taxable_income: Mapped[Decimal] = mapped_column(
        Numeric(*MONEY), nullable=False, default=Decimal("0")
    )
    total_deductions: Mapped[Decimal] = mapped_column(
        Numeric(*MONEY), nullable=False, default=Decimal("0")
    )
    net_pay: Mapped[Decimal] = mapped_column(Numeric(*MONEY), nullable=False, default=Decimal("0"))

    status: Mapped[str] = mapped_column(String, nullable=False, default="draft")
    inputs_fingerprint: Mapped[str | None] = mapped_column(String, nullable=True)
    engine_version: Mapped[str | None] = mapped_column(String, nullable=True)
    computed_at: Mapped[datetime | None] = mapped_column(nullable=True)
    approved_at: Mapped[datetime | None] = mapped_column(nullable=True)
    reopen_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    __table_args__ = (
        UniqueConstraint("payroll_period_id", "employee_id", name="payroll_entry_unique"),
        CheckConstraint(
            "status IN ('draft', 'computed', 'approved')",
            name="payroll_entry_status_check",
        ),
    )

    # Relationships
    payroll_period: Mapped[PayrollPeriod] = relationship(back_populates="entries")
    employee: Mapped[Employee] = relationship()
    earnings: Mapped[list[PayrollEarning]] = relationship(
        back_populates="payroll_entry",
        order_by="PayrollEarning.sequence",
    )
    deductions: Mapped[list[PayrollDeduction]] = relationship(
        back_populates="payroll_entry",
        order_by="PayrollDeduction.sequence",
    )


class PayrollEarning(Base):
    """Earning line item. Absence and tardiness lines carry negative amounts."""

    __tablename__ = "payroll_earning"

    payroll_earning_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    payroll_entry_id: Mapped[UUID] = mapped_column(
        ForeignKey("payroll_entry.payroll_entry_id", ondelete="CASCADE"),
        nullable=False,
    )
    sequence: Mapped[int] = mapped_column(Integer, nullable=False)
    earning_type: Mapped[str] = mapped_column(String, nullable=False)
    code: Mapped[str] = mapped_column(String, nullable=False)
    description: Mapped[str] = mapped_column(String, nullable=False)
    quantity: Mapped[Decimal | None] = mapped_column(Numeric(*RATE), nullable=True)
    quantity_unit: Mapped[str | None] = mapped_column(String, nullable=True)
    rate: Mapped[Decimal | None] = mapped_column(Numeric(*RATE), nullable=True)
    multiplier: Mapped[Decimal | None] = mapped_column(Numeric(6, 4), nullable=True)
    amount: Mapped[Decimal] = mapped_column(Numeric(*MONEY), nullable=False)
    is_taxable: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    adjustment_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("employee_adjustment.adjustment_id"),
        nullable=True,
    )

    __table_args__ = (
        UniqueConstraint("payroll_entry_id", "sequence", name="payroll_earning_sequence_unique"),
    )

    # Relationships
    payroll_entry: Mapped[PayrollEntry] = relationship(back_populates="earnings")


class PayrollDeduction(Base):
    """Deduction line item. ``amount`` is the employee share withheld from pay."""

    __tablename__ = "payroll_deduction"

    payroll_deduction_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    payroll_entry_id: Mapped[UUID] = mapped_column(
        ForeignKey("payroll_entry.payroll_entry_id", ondelete="CASCADE"),
        nullable=False,
    )
    sequence: Mapped[int] = mapped_column(Integer, nullable=False)
    deduction_type: Mapped[str] = mapped_column(String, nullable=False)
    code: Mapped[str] = mapped_column(String, nullable=False)
    description: Mapped[str] = mapped_column(String, nullable=False)
    basis_amount: Mapped[Decimal | None] = mapped_column(Numeric(*MONEY), nullable=True)
    rate: Mapped[Decimal | None] = mapped_column(Numeric(*RATE), nullable=True)
    amount: Mapped[Decimal] = mapped_column(Numeric(*MONEY), nullable=False)
    employer_share: Mapped[Decimal] = mapped_column(
        Numeric(*MONEY), nullable=False, default=Decimal("0")
    )
    is_statutory: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    source_table_id: Mapped[UUID | None] = mapped_column(nullable=True)
    adjustment_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("employee_adjustment.adjustment_id"),
        nullable=True,
    )

    __table_args__ = (
        UniqueConstraint("payroll_entry_id", "sequence", name="payroll_deduction_sequence_unique"),
        CheckConstraint("amount >= 0 AND employer_share >= 0", name="payroll_deduction_nonneg"),
    )

    # Relationships
    payroll_entry: Mapped[PayrollEntry] = relationship(back_populates="deductions")


# ===== Adjustments =====


class EmployeeAdjustment(Base, TimestampMixin):
    """Allowance, bonus, deduction or loan installment fed into payroll."""

    __tablename__ = "employee_adjustment"

    adjustment_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    employee_id: Mapped[UUID] = mapped_column(
        ForeignKey("employee.employee_id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    category: Mapped[str] = mapped_column(String, nullable=False)
    adjustment_type: Mapped[str] = mapped_column(String, nullable=False)
    name: Mapped[str] = mapped_column(String, nullable=False)
    amount: Mapped[Decimal] = mapped_column(Numeric(*MONEY), nullable=False)
    is_taxable: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    frequency: Mapped[str] = mapped_column(String, nullable=False, default="one_time")
    target_payroll_period_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("payroll_period.payroll_period_id"),
        nullable=True,
    )
    recurring_start_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    recurring_end_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    remaining_occurrences: Mapped[int | None] = mapped_column(Integer, nullable=True)

    has_balance_tracking: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    total_amount: Mapped[Decimal | None] = mapped_column(Numeric(*MONEY), nullable=True)
    total_applied: Mapped[Decimal] = mapped_column(
        Numeric(*MONEY), nullable=False, default=Decimal("0")
    )
    remaining_balance: Mapped[Decimal | None] = mapped_column(Numeric(*MONEY), nullable=True)

    status: Mapped[str] = mapped_column(String, nullable=False, default="active")

    __table_args__ = (
        CheckConstraint(
            "category IN ('earning', 'deduction')",
            name="employee_adjustment_category_check",
        ),
        CheckConstraint(
            "frequency IN ('one_time', 'recurring')",
            name="employee_adjustment_frequency_check",
        ),
        CheckConstraint(
            "status IN ('active', 'on_hold', 'completed', 'cancelled')",
            name="employee_adjustment_status_check",
        ),
        CheckConstraint("amount >= 0", name="employee_adjustment_amount_nonneg"),
    )

    # Relationships
    applications: Mapped[list[AdjustmentApplication]] = relationship(
        back_populates="adjustment"
    )


class AdjustmentApplication(Base, TimestampMixin):
    """Record of an adjustment applied in one period."""

    __tablename__ = "adjustment_application"

    application_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    adjustment_id: Mapped[UUID] = mapped_column(
        ForeignKey("employee_adjustment.adjustment_id", ondelete="CASCADE"),
        nullable=False,
    )
    payroll_period_id: Mapped[UUID] = mapped_column(
        ForeignKey("payroll_period.payroll_period_id", ondelete="CASCADE"),
        nullable=False,
    )
    payroll_entry_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("payroll_entry.payroll_entry_id", ondelete="SET NULL"),
        nullable=True,
    )
    amount: Mapped[Decimal] = mapped_column(Numeric(*MONEY), nullable=False)
    balance_before: Mapped[Decimal | None] = mapped_column(Numeric(*MONEY), nullable=True)
    balance_after: Mapped[Decimal | None] = mapped_column(Numeric(*MONEY), nullable=True)
    applied_at: Mapped[datetime] = mapped_column(nullable=False)

    __table_args__ = (
        UniqueConstraint(
            "adjustment_id", "payroll_period_id", name="adjustment_application_period_unique"
        ),
    )

    # Relationships
    adjustment: Mapped[EmployeeAdjustment] = relationship(back_populates="applications")


# ===== Audit =====


class AuditEvent(Base, TimestampMixin):
    """Audit trail entry."""

    __tablename__ = "audit_event"

    audit_event_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    actor: Mapped[str | None] = mapped_column(String, nullable=True)
    entity_type: Mapped[str] = mapped_column(String, nullable=False)
    entity_id: Mapped[UUID] = mapped_column(nullable=False, index=True)
    action: Mapped[str] = mapped_column(String, nullable=False)
    before_json: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)
    after_json: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)
