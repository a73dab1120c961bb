"""Raw punch and daily time record models."""

from __future__ import annotations

from datetime import date, datetime
from typing import Any
from uuid import UUID, uuid4

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    Date,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from ph_payroll.models.base import Base, TimestampMixin


class RawPunch(Base, TimestampMixin):
    """One device or kiosk event. Append-only.

    ``punched_at`` is local wall-clock time as reported by the device.
    The integer key preserves insertion order, which breaks timestamp ties.
    """

    __tablename__ = "raw_punch"

    punch_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    employee_id: Mapped[UUID] = mapped_column(
        ForeignKey("employee.employee_id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    punched_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False)
    direction: Mapped[str] = mapped_column(String, nullable=False)
    source: Mapped[str] = mapped_column(String, nullable=False, default="kiosk")
    device_id: Mapped[str | None] = mapped_column(String, nullable=True)


class DailyTimeRecord(Base, TimestampMixin):
    """Per-employee, per-day attendance summary.

    Written only by the DTR service. ``overtime_approved`` is set by an
    external approval workflow and survives recomputation.
    """

    __tablename__ = "daily_time_record"

    dtr_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    employee_id: Mapped[UUID] = mapped_column(
        ForeignKey("employee.employee_id", ondelete="CASCADE"),
        nullable=False,
    )
    work_date: Mapped[date] = mapped_column(Date, nullable=False)
    work_schedule_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("work_schedule.work_schedule_id"),
        nullable=True,
    )
    shift_name: Mapped[str | None] = mapped_column(String, nullable=True)
    status: Mapped[str] = mapped_column(String, nullable=False)
    first_in: Mapped[datetime | None] = mapped_column(DateTime(timezone=False), nullable=True)
    last_out: Mapped[datetime | None] = mapped_column(DateTime(timezone=False), nullable=True)

    work_minutes: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    break_minutes: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    late_minutes: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    undertime_minutes: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    overtime_minutes: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    night_diff_minutes: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    overtime_approved: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    is_rest_day: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    holiday_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("holiday.holiday_id"),
        nullable=True,
    )
    holiday_type: Mapped[str | None] = mapped_column(String, nullable=True)

    needs_review: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    review_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    is_incomplete: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    punch_audit: Mapped[list[dict[str, Any]] | None] = mapped_column(JSON, nullable=True)

    __table_args__ = (
        UniqueConstraint("employee_id", "work_date", name="daily_time_record_employee_date_unique"),
        CheckConstraint(
            "status IN ('present', 'absent', 'holiday', 'rest_day', 'no_schedule')",
            name="daily_time_record_status_check",
        ),
        CheckConstraint(
            "work_minutes >= 0 AND break_minutes >= 0 AND late_minutes >= 0 "
            "AND undertime_minutes >= 0 AND overtime_minutes >= 0 AND night_diff_minutes >= 0",
            name="daily_time_record_minutes_nonneg",
        ),
    )
