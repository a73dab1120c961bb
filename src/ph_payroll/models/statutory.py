"""Effective-dated statutory tables: SSS, PhilHealth, Pag-IBIG, withholding tax.

Table versions are append-only. A new rate schedule is a new row with a
later ``effective_from``; older versions stay for recomputation of past
periods. Retiring a version means clearing ``is_active``, never editing
its brackets.
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from uuid import UUID, uuid4

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Date,
    ForeignKey,
    Integer,
    Numeric,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ph_payroll.models.base import MONEY, RATE, Base, TimestampMixin


class ContributionTable(Base, TimestampMixin):
    """One version of a contribution scheme's table.

    Scheme parameters that are not per-bracket live on the table:
    PhilHealth premium rate, share split, salary floor and ceiling,
    premium floor and ceiling; Pag-IBIG maximum monthly compensation.
    """

    __tablename__ = "contribution_table"

    contribution_table_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    scheme: Mapped[str] = mapped_column(String, nullable=False)
    name: Mapped[str] = mapped_column(String, nullable=False)
    effective_from: Mapped[date] = mapped_column(Date, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    # PhilHealth
    premium_rate: Mapped[Decimal | None] = mapped_column(Numeric(*RATE), nullable=True)
    employee_share_rate: Mapped[Decimal | None] = mapped_column(Numeric(*RATE), nullable=True)
    employer_share_rate: Mapped[Decimal | None] = mapped_column(Numeric(*RATE), nullable=True)
    salary_floor: Mapped[Decimal | None] = mapped_column(Numeric(*MONEY), nullable=True)
    salary_ceiling: Mapped[Decimal | None] = mapped_column(Numeric(*MONEY), nullable=True)
    min_contribution: Mapped[Decimal | None] = mapped_column(Numeric(*MONEY), nullable=True)
    max_contribution: Mapped[Decimal | None] = mapped_column(Numeric(*MONEY), nullable=True)

    # Pag-IBIG
    max_monthly_compensation: Mapped[Decimal | None] = mapped_column(
        Numeric(*MONEY), nullable=True
    )

    __table_args__ = (
        UniqueConstraint("scheme", "effective_from", name="contribution_table_version_unique"),
        CheckConstraint(
            "scheme IN ('sss', 'philhealth', 'pagibig')",
            name="contribution_table_scheme_check",
        ),
    )

    # Relationships
    brackets: Mapped[list[ContributionBracket]] = relationship(
        back_populates="table",
        order_by="ContributionBracket.min_salary",
        cascade="all, delete-orphan",
    )


class ContributionBracket(Base):
    """Half-open salary range ``[min_salary, max_salary)`` of a contribution table.

    SSS brackets carry fixed monthly amounts; Pag-IBIG tiers carry rates.
    """

    __tablename__ = "contribution_bracket"

    contribution_bracket_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    contribution_table_id: Mapped[UUID] = mapped_column(
        ForeignKey("contribution_table.contribution_table_id", ondelete="CASCADE"),
        nullable=False,
    )
    min_salary: Mapped[Decimal] = mapped_column(Numeric(*MONEY), nullable=False)
    max_salary: Mapped[Decimal | None] = mapped_column(Numeric(*MONEY), nullable=True)

    monthly_salary_credit: Mapped[Decimal | None] = mapped_column(Numeric(*MONEY), nullable=True)
    employee_share: Mapped[Decimal | None] = mapped_column(Numeric(*MONEY), nullable=True)
    employer_share: Mapped[Decimal | None] = mapped_column(Numeric(*MONEY), nullable=True)
    ec_share: Mapped[Decimal | None] = mapped_column(Numeric(*MONEY), nullable=True)

    employee_rate: Mapped[Decimal | None] = mapped_column(Numeric(*RATE), nullable=True)
    employer_rate: Mapped[Decimal | None] = mapped_column(Numeric(*RATE), nullable=True)

    __table_args__ = (
        CheckConstraint(
            "max_salary IS NULL OR max_salary > min_salary",
            name="contribution_bracket_range_check",
        ),
    )

    # Relationships
    table: Mapped[ContributionTable] = relationship(back_populates="brackets")


class WithholdingTaxTable(Base, TimestampMixin):
    """One version of the withholding tax table for a pay period type."""

    __tablename__ = "withholding_tax_table"

    withholding_tax_table_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    pay_period: Mapped[str] = mapped_column(String, nullable=False)
    name: Mapped[str] = mapped_column(String, nullable=False)
    effective_from: Mapped[date] = mapped_column(Date, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    __table_args__ = (
        UniqueConstraint("pay_period", "effective_from", name="withholding_tax_table_version_unique"),
        CheckConstraint(
            "pay_period IN ('daily', 'weekly', 'semi_monthly', 'monthly')",
            name="withholding_tax_table_pay_period_check",
        ),
    )

    # Relationships
    brackets: Mapped[list[WithholdingTaxBracket]] = relationship(
        back_populates="table",
        order_by="WithholdingTaxBracket.min_compensation",
        cascade="all, delete-orphan",
    )


class WithholdingTaxBracket(Base):
    """Bracket ``[min_compensation, max_compensation)`` with base tax and excess rate."""

    __tablename__ = "withholding_tax_bracket"

    withholding_tax_bracket_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    withholding_tax_table_id: Mapped[UUID] = mapped_column(
        ForeignKey("withholding_tax_table.withholding_tax_table_id", ondelete="CASCADE"),
        nullable=False,
    )
    bracket_number: Mapped[int] = mapped_column(Integer, nullable=False)
    min_compensation: Mapped[Decimal] = mapped_column(Numeric(*MONEY), nullable=False)
    max_compensation: Mapped[Decimal | None] = mapped_column(Numeric(*MONEY), nullable=True)
    base_tax: Mapped[Decimal] = mapped_column(Numeric(*MONEY), nullable=False, default=Decimal("0"))
    excess_rate: Mapped[Decimal] = mapped_column(Numeric(*RATE), nullable=False, default=Decimal("0"))

    __table_args__ = (
        CheckConstraint(
            "max_compensation IS NULL OR max_compensation > min_compensation",
            name="withholding_tax_bracket_range_check",
        ),
    )

    # Relationships
    table: Mapped[WithholdingTaxTable] = relationship(back_populates="brackets")
