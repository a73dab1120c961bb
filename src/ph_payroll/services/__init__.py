"""Payroll services: lifecycle, locking, entry computation, and run orchestration."""

from ph_payroll.services.state_machine import (
    EntryStateMachine,
    EntryStatus,
    InvalidTransitionError,
    PeriodStateMachine,
    PeriodStatus,
)
from ph_payroll.services.locking_service import InFlightRegistry, LockingService, in_flight
from ph_payroll.services.adjustment_service import AdjustmentService
from ph_payroll.services.entry_computer import EntryComputationResult, PayrollEntryComputer
from ph_payroll.services.period_service import PeriodService
from ph_payroll.services.run_orchestrator import (
    EmployeeFailure,
    PayrollRunOrchestrator,
    RunReport,
)

__all__ = [
    "AdjustmentService",
    "EmployeeFailure",
    "EntryComputationResult",
    "EntryStateMachine",
    "EntryStatus",
    "InFlightRegistry",
    "InvalidTransitionError",
    "LockingService",
    "PayrollEntryComputer",
    "PayrollRunOrchestrator",
    "PeriodService",
    "PeriodStateMachine",
    "PeriodStatus",
    "RunReport",
    "in_flight",
]
