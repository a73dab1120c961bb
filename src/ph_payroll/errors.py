"""Exception hierarchy for the attendance-to-payroll pipeline.

Four families matter to callers:

- DataIntegrityError: the stored configuration is inconsistent (overlapping
  schedule assignments, bracket gaps, no table in force). Fatal for the
  affected employee, never corrected automatically.
- InputIncompleteError: something HR has to supply or resolve (no
  compensation, unresolved attendance). The run continues for others.
- InvariantViolationError: the computation produced numbers that do not
  reconcile. Fatal internal error, logged with inputs.
- InvalidTransitionError: a state machine rejected the request.

PeriodNotFoundError covers a payroll period id that does not exist.
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import Any
from uuid import UUID


class PayrollError(Exception):
    """Base class for pipeline errors."""


# ===== Data integrity =====


class DataIntegrityError(PayrollError):
    """Stored configuration violates a structural invariant."""


class ScheduleOverlapError(DataIntegrityError):
    """Raised when an employee has more than one assignment for a date."""

    def __init__(self, employee_id: UUID, on_date: date, assignment_ids: list[UUID]):
        self.employee_id = employee_id
        self.on_date = on_date
        self.assignment_ids = assignment_ids
        super().__init__(
            f"Employee {employee_id} has {len(assignment_ids)} overlapping "
            f"schedule assignments on {on_date}"
        )


class ScheduleConfigError(DataIntegrityError):
    """Raised when a schedule's JSON configuration cannot be parsed."""

    def __init__(self, schedule_code: str, problem: str):
        self.schedule_code = schedule_code
        self.problem = problem
        super().__init__(f"Schedule '{schedule_code}' is misconfigured: {problem}")


class ScheduleNotFoundError(DataIntegrityError):
    """Raised when an assignment points at a work schedule that does not exist."""

    def __init__(self, work_schedule_id: UUID):
        self.work_schedule_id = work_schedule_id
        super().__init__(f"Work schedule {work_schedule_id} not found")


class BracketGapError(DataIntegrityError):
    """Raised when a value falls into no bracket of a table."""

    def __init__(self, table_label: str, value: Decimal):
        self.table_label = table_label
        self.value = value
        super().__init__(f"No bracket in {table_label} covers {value}")


class ContributionTableNotFoundError(DataIntegrityError):
    """Raised when no active contribution table is in force on a date."""

    def __init__(self, scheme: str, as_of_date: date):
        self.scheme = scheme
        self.as_of_date = as_of_date
        super().__init__(f"No active {scheme} contribution table effective {as_of_date}")


class TaxTableNotFoundError(DataIntegrityError):
    """Raised when no active withholding tax table is in force on a date."""

    def __init__(self, pay_period: str, as_of_date: date):
        self.pay_period = pay_period
        self.as_of_date = as_of_date
        super().__init__(
            f"No active {pay_period} withholding tax table effective {as_of_date}"
        )


# ===== Input incompleteness =====


class InputIncompleteError(PayrollError):
    """Input data needs manual HR action before computation can proceed."""


class CompensationNotFoundError(InputIncompleteError):
    """Raised when an employee has no compensation in force."""

    def __init__(self, employee_id: UUID, as_of_date: date):
        self.employee_id = employee_id
        self.as_of_date = as_of_date
        super().__init__(f"No compensation record for employee {employee_id} on {as_of_date}")


class UnresolvedAttendanceError(InputIncompleteError):
    """Raised when daily time records still need review before pay can be computed."""

    def __init__(self, employee_id: UUID, dates: list[date], reasons: list[str]):
        self.employee_id = employee_id
        self.dates = dates
        self.reasons = reasons
        listed = ", ".join(f"{d.isoformat()} ({r})" for d, r in zip(dates, reasons))
        super().__init__(f"Unresolved attendance for employee {employee_id}: {listed}")


# ===== Invariant violations =====


class InvariantViolationError(PayrollError):
    """Computed numbers failed a reconciliation check."""


class LineItemMismatchError(InvariantViolationError):
    """Raised when line items do not sum to the entry totals."""

    def __init__(self, field: str, expected: Decimal, actual: Decimal, inputs: dict[str, Any]):
        self.field = field
        self.expected = expected
        self.actual = actual
        self.inputs = inputs
        super().__init__(
            f"Line items for {field} sum to {actual}, entry total is {expected}"
        )


class PeriodTotalsMismatchError(InvariantViolationError):
    """Raised when aggregated period totals do not reconcile."""

    def __init__(self, period_id: UUID, gross: Decimal, deductions: Decimal, net: Decimal):
        self.period_id = period_id
        self.gross = gross
        self.deductions = deductions
        self.net = net
        super().__init__(
            f"Period {period_id} totals do not reconcile: "
            f"gross {gross} - deductions {deductions} != net {net}"
        )


# ===== State transitions =====


class InvalidTransitionError(PayrollError):
    """Raised when an invalid state transition is attempted."""

    def __init__(self, from_status: str, to_status: str, reason: str | None = None):
        self.from_status = from_status
        self.to_status = to_status
        self.reason = reason
        msg = f"Invalid transition from '{from_status}' to '{to_status}'"
        if reason:
            msg += f": {reason}"
        super().__init__(msg)


class PeriodLockedError(InvalidTransitionError):
    """Raised when a write targets data owned by an approved or closed period."""

    def __init__(self, period_id: UUID, status: str, action: str):
        self.period_id = period_id
        self.status = status
        self.action = action
        super().__init__(status, status, f"Period {period_id} is {status}; cannot {action}")


class PeriodNotFoundError(PayrollError):
    """Raised when a payroll period id does not exist."""

    def __init__(self, period_id: UUID):
        self.period_id = period_id
        super().__init__(f"Payroll period {period_id} not found")


class ComputationTimeoutError(PayrollError):
    """Raised when one employee's computation exceeds its time budget."""

    def __init__(self, employee_id: UUID, timeout_seconds: float):
        self.employee_id = employee_id
        self.timeout_seconds = timeout_seconds
        super().__init__(
            f"Computation for employee {employee_id} exceeded {timeout_seconds}s"
        )
