"""Attendance: schedules, punch reconciliation, and daily time records."""

from ph_payroll.attendance.dtr_calculator import DtrCalculator
from ph_payroll.attendance.dtr_service import DtrService
from ph_payroll.attendance.holiday_calendar import HolidayCalendar
from ph_payroll.attendance.punch_reconciler import PunchReconciler
from ph_payroll.attendance.schedule_resolver import ResolvedSchedule, ScheduleResolver
from ph_payroll.attendance.schedules import (
    CompressedSchedule,
    FixedSchedule,
    FlexibleSchedule,
    ScheduleConfig,
    ShiftingSchedule,
    parse_schedule,
    parse_schedule_config,
)
from ph_payroll.attendance.types import (
    DayPlan,
    DtrResult,
    DtrStatus,
    HolidayType,
    PunchDirection,
    PunchRecord,
    ScheduleKind,
)

__all__ = [
    "CompressedSchedule",
    "DayPlan",
    "DtrCalculator",
    "DtrResult",
    "DtrService",
    "DtrStatus",
    "FixedSchedule",
    "FlexibleSchedule",
    "HolidayCalendar",
    "HolidayType",
    "PunchDirection",
    "PunchReconciler",
    "PunchRecord",
    "ResolvedSchedule",
    "ScheduleConfig",
    "ScheduleKind",
    "ScheduleResolver",
    "ShiftingSchedule",
    "parse_schedule",
    "parse_schedule_config",
]
