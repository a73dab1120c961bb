"""Tests for payroll period and entry state machines."""

from types import SimpleNamespace

import pytest

from ph_payroll.services.state_machine import (
    EntryStateMachine,
    EntryStatus,
    InvalidTransitionError,
    PeriodStateMachine,
    PeriodStatus,
)


class TestPeriodStateMachine:
    """Test period transitions."""

    def test_valid_transitions(self):
        """Test that valid transitions are allowed."""
        # draft → open
        assert PeriodStateMachine.can_transition("draft", "open") is True

        # open → computed
        assert PeriodStateMachine.can_transition("open", "computed") is True

        # computed → approved
        assert PeriodStateMachine.can_transition("computed", "approved") is True

        # computed → open (reopen)
        assert PeriodStateMachine.can_transition("computed", "open") is True

        # approved → open (reopen)
        assert PeriodStateMachine.can_transition("approved", "open") is True

        # approved → closed
        assert PeriodStateMachine.can_transition("approved", "closed") is True

    def test_invalid_transitions(self):
        """Test that invalid transitions are blocked."""
        # Can't skip computation
        assert PeriodStateMachine.can_transition("open", "approved") is False

        # Can't close before approval
        assert PeriodStateMachine.can_transition("computed", "closed") is False

        # Can't go back to draft
        assert PeriodStateMachine.can_transition("open", "draft") is False

    def test_closed_is_terminal(self):
        """Closed periods never move again."""
        for status in PeriodStatus:
            assert PeriodStateMachine.can_transition("closed", status) is False

    def test_validate_transition_raises(self):
        with pytest.raises(InvalidTransitionError) as exc_info:
            PeriodStateMachine.validate_transition("open", "closed")

        assert exc_info.value.from_status == "open"
        assert exc_info.value.to_status == "closed"

    def test_calculation_allowed(self):
        assert PeriodStateMachine.can_calculate("open") is True
        assert PeriodStateMachine.can_calculate("computed") is True
        assert PeriodStateMachine.can_calculate("draft") is False
        assert PeriodStateMachine.can_calculate("approved") is False

    def test_is_reopen(self):
        assert PeriodStateMachine.is_reopen("approved", "open") is True
        assert PeriodStateMachine.is_reopen("computed", "open") is True
        assert PeriodStateMachine.is_reopen("draft", "open") is False


class TestPeriodValidation:
    """Preconditions checked before a period transition."""

    @staticmethod
    def period(status, run_statuses=(), entry_statuses=()):
        return SimpleNamespace(
            status=status,
            run_employees=[SimpleNamespace(status=s) for s in run_statuses],
            entries=[SimpleNamespace(status=s) for s in entry_statuses],
        )

    def test_pending_blocks_mark_computed(self):
        period = self.period("open", run_statuses=["computed", "pending"])

        errors = PeriodStateMachine.validate_period_for_transition(period, "computed")

        assert errors == ["1 employee(s) still pending computation"]

    def test_failures_block_unless_allowed(self):
        """Failed employees need an explicit allow_failures override."""
        period = self.period("open", run_statuses=["computed", "failed"])

        assert PeriodStateMachine.validate_period_for_transition(period, "computed") == [
            "1 employee(s) failed computation"
        ]
        assert (
            PeriodStateMachine.validate_period_for_transition(
                period, "computed", allow_failures=True
            )
            == []
        )

    def test_draft_entries_block_approval(self):
        period = self.period("computed", entry_statuses=["computed", "draft"])

        errors = PeriodStateMachine.validate_period_for_transition(period, "approved")

        assert errors == ["1 entry(ies) are still draft"]

    def test_computed_entries_block_close(self):
        period = self.period("approved", entry_statuses=["approved", "computed"])

        errors = PeriodStateMachine.validate_period_for_transition(period, "closed")

        assert errors == ["1 entry(ies) are computed but not approved"]

    def test_invalid_transition_reported(self):
        period = self.period("draft")

        errors = PeriodStateMachine.validate_period_for_transition(period, "closed")

        assert errors == ["Cannot transition from 'draft' to 'closed'"]


class TestEntryStateMachine:
    """Test entry transitions."""

    def test_valid_transitions(self):
        assert EntryStateMachine.can_transition("draft", "computed") is True
        assert EntryStateMachine.can_transition("computed", "computed") is True
        assert EntryStateMachine.can_transition("computed", "approved") is True
        assert EntryStateMachine.can_transition("computed", "draft") is True
        assert EntryStateMachine.can_transition("approved", "draft") is True

    def test_invalid_transitions(self):
        assert EntryStateMachine.can_transition("draft", "approved") is False
        assert EntryStateMachine.can_transition("approved", "computed") is False

    def test_recompute_allowed(self):
        assert EntryStateMachine.can_recompute(EntryStatus.DRAFT) is True
        assert EntryStateMachine.can_recompute(EntryStatus.COMPUTED) is True
        assert EntryStateMachine.can_recompute(EntryStatus.APPROVED) is False

    def test_recompute_blocked_by_period(self):
        """Entries of an approved period cannot be recomputed."""
        entry = SimpleNamespace(status="computed")
        period = SimpleNamespace(status="approved")

        with pytest.raises(InvalidTransitionError):
            EntryStateMachine.validate_entry_for_recompute(entry, period)

    def test_recompute_blocked_for_approved_entry(self):
        """Approved entries must be reopened first."""
        entry = SimpleNamespace(status="approved")
        period = SimpleNamespace(status="open")

        with pytest.raises(InvalidTransitionError) as exc_info:
            EntryStateMachine.validate_entry_for_recompute(entry, period)

        assert "reopened" in exc_info.value.reason

    def test_recompute_allowed_in_open_period(self):
        entry = SimpleNamespace(status="computed")
        period = SimpleNamespace(status="open")

        EntryStateMachine.validate_entry_for_recompute(entry, period)
