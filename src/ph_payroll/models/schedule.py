"""Work schedule, schedule assignment, and holiday calendar models."""

from __future__ import annotations

from datetime import date
from typing import TYPE_CHECKING, Any
from uuid import UUID, uuid4

from sqlalchemy import JSON, Boolean, CheckConstraint, Date, ForeignKey, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ph_payroll.models.base import Base, TimestampMixin

if TYPE_CHECKING:
    from ph_payroll.models.employee import Employee


class WorkSchedule(Base, TimestampMixin):
    """Schedule catalog entry.

    ``time_configuration`` holds a kind-specific JSON document; it is parsed
    into one of the schedule variants in ``ph_payroll.attendance.schedules``.
    Rows are versioned by creating a new schedule rather than editing one that
    DTRs already reference.
    """

    __tablename__ = "work_schedule"

    work_schedule_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    code: Mapped[str] = mapped_column(String, nullable=False, unique=True)
    name: Mapped[str] = mapped_column(String, nullable=False)
    schedule_type: Mapped[str] = mapped_column(String, nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    status: Mapped[str] = mapped_column(String, nullable=False, default="active")
    time_configuration: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False)
    overtime_rules: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)
    night_differential: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)

    __table_args__ = (
        CheckConstraint(
            "schedule_type IN ('fixed', 'flexible', 'shifting', 'compressed')",
            name="work_schedule_type_check",
        ),
        CheckConstraint(
            "status IN ('active', 'inactive')",
            name="work_schedule_status_check",
        ),
    )


class EmployeeScheduleAssignment(Base, TimestampMixin):
    """Time-bounded assignment of an employee to one schedule."""

    __tablename__ = "employee_schedule_assignment"

    assignment_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    employee_id: Mapped[UUID] = mapped_column(
        ForeignKey("employee.employee_id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    work_schedule_id: Mapped[UUID] = mapped_column(
        ForeignKey("work_schedule.work_schedule_id"),
        nullable=False,
    )
    shift_name: Mapped[str | None] = mapped_column(String, nullable=True)
    effective_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date | None] = mapped_column(Date, nullable=True)

    __table_args__ = (
        CheckConstraint(
            "end_date IS NULL OR end_date >= effective_date",
            name="schedule_assignment_window_check",
        ),
    )

    # Relationships
    employee: Mapped[Employee] = relationship(back_populates="schedule_assignments")
    work_schedule: Mapped[WorkSchedule] = relationship()


class Holiday(Base, TimestampMixin):
    """Holiday calendar entry, national or scoped to one work location."""

    __tablename__ = "holiday"

    holiday_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    name: Mapped[str] = mapped_column(String, nullable=False)
    holiday_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    holiday_type: Mapped[str] = mapped_column(String, nullable=False)
    is_national: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    work_location_id: Mapped[UUID | None] = mapped_column(nullable=True)

    __table_args__ = (
        CheckConstraint(
            "holiday_type IN ('regular', 'special_non_working', 'special_working', 'double')",
            name="holiday_type_check",
        ),
        CheckConstraint(
            "is_national OR work_location_id IS NOT NULL",
            name="holiday_scope_check",
        ),
    )
