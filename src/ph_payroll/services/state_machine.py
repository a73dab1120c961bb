"""Payroll period and entry state machines with transition validation."""

from __future__ import annotations

from enum import Enum
from typing import TYPE_CHECKING

from ph_payroll.errors import InvalidTransitionError

if TYPE_CHECKING:
    from ph_payroll.models import PayrollEntry, PayrollPeriod


class PeriodStatus(str, Enum):
    """Payroll period status values."""

    DRAFT = "draft"
    OPEN = "open"
    COMPUTED = "computed"
    APPROVED = "approved"
    CLOSED = "closed"


class EntryStatus(str, Enum):
    """Payroll entry status values."""

    DRAFT = "draft"
    COMPUTED = "computed"
    APPROVED = "approved"


class PeriodStateMachine:
    """State machine for payroll period status transitions.

    Allowed transitions:
    - draft → open
    - open → computed
    - computed → approved
    - computed → open (reopen)
    - approved → open (reopen)
    - approved → closed
    - closed: terminal
    """

    # Define valid transitions: {from_status: [allowed_to_statuses]}
    VALID_TRANSITIONS: dict[str, list[str]] = {
        PeriodStatus.DRAFT: [PeriodStatus.OPEN],
        PeriodStatus.OPEN: [PeriodStatus.COMPUTED],
        PeriodStatus.COMPUTED: [PeriodStatus.APPROVED, PeriodStatus.OPEN],
        PeriodStatus.APPROVED: [PeriodStatus.CLOSED, PeriodStatus.OPEN],
        PeriodStatus.CLOSED: [],  # Terminal state
    }

    # Statuses where entries may be computed or recomputed
    CALCULATION_ALLOWED = {
        PeriodStatus.OPEN,
        PeriodStatus.COMPUTED,
    }

    @classmethod
    def can_transition(cls, from_status: str, to_status: str) -> bool:
        """Check if a transition is valid."""
        allowed = cls.VALID_TRANSITIONS.get(from_status, [])
        return to_status in allowed

    @classmethod
    def validate_transition(cls, from_status: str, to_status: str) -> None:
        """Validate a transition, raising InvalidTransitionError if invalid."""
        if not cls.can_transition(from_status, to_status):
            raise InvalidTransitionError(from_status, to_status)

    @classmethod
    def can_calculate(cls, status: str) -> bool:
        """Check if entry computation is allowed in this status."""
        return status in cls.CALCULATION_ALLOWED

    @classmethod
    def is_reopen(cls, from_status: str, to_status: str) -> bool:
        """Check if this transition is a reopen (computed/approved → open)."""
        return to_status == PeriodStatus.OPEN and from_status in (
            PeriodStatus.COMPUTED,
            PeriodStatus.APPROVED,
        )

    @classmethod
    def validate_period_for_transition(
        cls,
        period: PayrollPeriod,
        to_status: str,
        allow_failures: bool = False,
    ) -> list[str]:
        """Validate a period for a specific transition, returning any errors.

        Expects ``period.run_employees`` and ``period.entries`` loaded.
        Returns list of error messages (empty if valid).
        """
        errors: list[str] = []
        from_status = period.status

        # Basic transition check
        if not cls.can_transition(from_status, to_status):
            errors.append(f"Cannot transition from '{from_status}' to '{to_status}'")
            return errors

        if to_status == PeriodStatus.COMPUTED:
            pending = [r for r in period.run_employees if r.status == "pending"]
            failed = [r for r in period.run_employees if r.status == "failed"]
            if pending:
                errors.append(f"{len(pending)} employee(s) still pending computation")
            if failed and not allow_failures:
                errors.append(f"{len(failed)} employee(s) failed computation")

        elif to_status == PeriodStatus.APPROVED:
            not_computed = [e for e in period.entries if e.status == EntryStatus.DRAFT]
            if not_computed:
                errors.append(f"{len(not_computed)} entry(ies) are still draft")

        elif to_status == PeriodStatus.CLOSED:
            if from_status != PeriodStatus.APPROVED:
                errors.append("Can only close from approved status")
            still_computed = [e for e in period.entries if e.status == EntryStatus.COMPUTED]
            if still_computed:
                errors.append(f"{len(still_computed)} entry(ies) are computed but not approved")

        return errors


class EntryStateMachine:
    """State machine for payroll entry status transitions.

    Allowed transitions:
    - draft → computed
    - computed → computed (recompute)
    - computed → draft (reject)
    - computed → approved
    - approved → draft (reopen, audited)
    """

    VALID_TRANSITIONS: dict[str, list[str]] = {
        EntryStatus.DRAFT: [EntryStatus.COMPUTED],
        EntryStatus.COMPUTED: [EntryStatus.COMPUTED, EntryStatus.DRAFT, EntryStatus.APPROVED],
        EntryStatus.APPROVED: [EntryStatus.DRAFT],
    }

    # Statuses whose line items may be rebuilt
    RECOMPUTE_ALLOWED = {
        EntryStatus.DRAFT,
        EntryStatus.COMPUTED,
    }

    @classmethod
    def can_transition(cls, from_status: str, to_status: str) -> bool:
        allowed = cls.VALID_TRANSITIONS.get(from_status, [])
        return to_status in allowed

    @classmethod
    def validate_transition(cls, from_status: str, to_status: str) -> None:
        if not cls.can_transition(from_status, to_status):
            raise InvalidTransitionError(from_status, to_status)

    @classmethod
    def can_recompute(cls, status: str) -> bool:
        return status in cls.RECOMPUTE_ALLOWED

    @classmethod
    def validate_entry_for_recompute(cls, entry: PayrollEntry, period: PayrollPeriod) -> None:
        """Raise InvalidTransitionError unless the entry may be rebuilt now."""
        if not PeriodStateMachine.can_calculate(period.status):
            raise InvalidTransitionError(
                period.status,
                EntryStatus.COMPUTED,
                f"Period is {period.status}; entries cannot be computed",
            )
        if not cls.can_recompute(entry.status):
            raise InvalidTransitionError(
                entry.status,
                EntryStatus.COMPUTED,
                "Approved entries must be reopened before recomputation",
            )


__all__ = [
    "EntryStateMachine",
    "EntryStatus",
    "InvalidTransitionError",
    "PeriodStateMachine",
    "PeriodStatus",
]
