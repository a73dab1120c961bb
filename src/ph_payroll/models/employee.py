"""Employee and compensation models."""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import TYPE_CHECKING
from uuid import UUID, uuid4

from sqlalchemy import CheckConstraint, Date, ForeignKey, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ph_payroll.models.base import MONEY, Base, TimestampMixin

if TYPE_CHECKING:
    from ph_payroll.models.schedule import EmployeeScheduleAssignment


class Employee(Base, TimestampMixin):
    """Employee identity as seen by payroll."""

    __tablename__ = "employee"

    employee_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    employee_number: Mapped[str] = mapped_column(String, nullable=False, unique=True)
    first_name: Mapped[str] = mapped_column(String, nullable=False)
    last_name: Mapped[str] = mapped_column(String, nullable=False)
    status: Mapped[str] = mapped_column(String, nullable=False, default="active")
    work_location_id: Mapped[UUID | None] = mapped_column(nullable=True)
    hire_date: Mapped[date | None] = mapped_column(Date, nullable=True)

    __table_args__ = (
        CheckConstraint(
            "status IN ('active', 'inactive', 'terminated')",
            name="employee_status_check",
        ),
    )

    # Relationships
    compensations: Mapped[list[EmployeeCompensation]] = relationship(
        back_populates="employee",
        order_by="EmployeeCompensation.effective_date",
    )
    schedule_assignments: Mapped[list[EmployeeScheduleAssignment]] = relationship(
        back_populates="employee",
        order_by="EmployeeScheduleAssignment.effective_date",
    )

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"


class EmployeeCompensation(Base, TimestampMixin):
    """Effective-dated basic pay for an employee."""

    __tablename__ = "employee_compensation"

    compensation_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    employee_id: Mapped[UUID] = mapped_column(
        ForeignKey("employee.employee_id", ondelete="CASCADE"),
        nullable=False,
    )
    basic_pay: Mapped[Decimal] = mapped_column(Numeric(*MONEY), nullable=False)
    pay_type: Mapped[str] = mapped_column(String, nullable=False)
    effective_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date | None] = mapped_column(Date, nullable=True)

    __table_args__ = (
        CheckConstraint(
            "pay_type IN ('monthly', 'semi_monthly', 'weekly', 'daily')",
            name="employee_compensation_pay_type_check",
        ),
        CheckConstraint("basic_pay >= 0", name="employee_compensation_basic_pay_nonneg"),
        CheckConstraint(
            "end_date IS NULL OR end_date >= effective_date",
            name="employee_compensation_window_check",
        ),
    )

    # Relationships
    employee: Mapped[Employee] = relationship(back_populates="compensations")
