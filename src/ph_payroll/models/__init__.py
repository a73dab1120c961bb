"""ORM models."""

from ph_payroll.models.attendance import DailyTimeRecord, RawPunch
from ph_payroll.models.base import Base, TimestampMixin
from ph_payroll.models.employee import Employee, EmployeeCompensation
from ph_payroll.models.payroll import (
    AdjustmentApplication,
    AuditEvent,
    EmployeeAdjustment,
    PayrollDeduction,
    PayrollEarning,
    PayrollEntry,
    PayrollPeriod,
    PayrollRunEmployee,
)
from ph_payroll.models.schedule import EmployeeScheduleAssignment, Holiday, WorkSchedule
from ph_payroll.models.statutory import (
    ContributionBracket,
    ContributionTable,
    WithholdingTaxBracket,
    WithholdingTaxTable,
)

__all__ = [
    "AdjustmentApplication",
    "AuditEvent",
    "Base",
    "ContributionBracket",
    "ContributionTable",
    "DailyTimeRecord",
    "Employee",
    "EmployeeAdjustment",
    "EmployeeCompensation",
    "EmployeeScheduleAssignment",
    "Holiday",
    "PayrollDeduction",
    "PayrollEarning",
    "PayrollEntry",
    "PayrollPeriod",
    "PayrollRunEmployee",
    "RawPunch",
    "TimestampMixin",
    "WithholdingTaxBracket",
    "WithholdingTaxTable",
]
