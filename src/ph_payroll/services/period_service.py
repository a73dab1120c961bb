"""Payroll period service: generation, lifecycle transitions, and totals."""

from __future__ import annotations

import calendar
import logging
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from typing import Any
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from ph_payroll.calculators.line_builder import LineItemBuilder
from ph_payroll.calculators.types import PayFrequency
from ph_payroll.database import acquire_advisory_lock, release_advisory_lock
from ph_payroll.errors import PeriodNotFoundError, PeriodTotalsMismatchError
from ph_payroll.models import AuditEvent, PayrollEntry, PayrollPeriod
from ph_payroll.services.locking_service import InFlightRegistry, LockingService, in_flight
from ph_payroll.services.state_machine import (
    EntryStateMachine,
    EntryStatus,
    InvalidTransitionError,
    PeriodStateMachine,
    PeriodStatus,
)

logger = logging.getLogger(__name__)

PAY_DATE_ADJUSTMENTS = ("before", "after", "none")

# Entries counted in period totals
TOTALLED_ENTRY_STATUSES = (EntryStatus.COMPUTED.value, EntryStatus.APPROVED.value)


def adjust_pay_date(pay_date: date, adjustment: str) -> date:
    """Move a weekend pay date to the prior Friday ("before") or next Monday ("after")."""
    if adjustment not in PAY_DATE_ADJUSTMENTS:
        raise ValueError(f"Unknown pay date adjustment '{adjustment}'")
    step = {"before": -1, "after": 1}.get(adjustment)
    if step is None:
        return pay_date
    while pay_date.weekday() >= 5:
        pay_date += timedelta(days=step)
    return pay_date


def _month_end(year: int, month: int) -> date:
    return date(year, month, calendar.monthrange(year, month)[1])


def _pay_day(year: int, month: int, day: int, month_offset: int = 0) -> date:
    month += month_offset
    if month > 12:
        month -= 12
        year += 1
    return date(year, month, min(day, calendar.monthrange(year, month)[1]))


def period_calendar(
    year: int,
    pay_frequency: PayFrequency | str,
    pay_date_adjustment: str = "before",
) -> list[dict[str, Any]]:
    """Cutoffs, pay dates, and names for a year of periods.

    Semi-monthly: 1st-15th paid on the 25th; 16th-month end paid on the 10th
    of the following month. Monthly: whole month paid on the 30th (or the
    last day of shorter months).
    """
    pay_frequency = PayFrequency(pay_frequency)
    rows: list[dict[str, Any]] = []

    for month in range(1, 13):
        month_name = calendar.month_name[month]
        if pay_frequency is PayFrequency.SEMI_MONTHLY:
            rows.append(
                {
                    "period_number": (month - 1) * 2 + 1,
                    "name": f"{month_name} {year} - 1st Half",
                    "cutoff_start": date(year, month, 1),
                    "cutoff_end": date(year, month, 15),
                    "pay_date": adjust_pay_date(_pay_day(year, month, 25), pay_date_adjustment),
                }
            )
            rows.append(
                {
                    "period_number": (month - 1) * 2 + 2,
                    "name": f"{month_name} {year} - 2nd Half",
                    "cutoff_start": date(year, month, 16),
                    "cutoff_end": _month_end(year, month),
                    "pay_date": adjust_pay_date(
                        _pay_day(year, month, 10, month_offset=1), pay_date_adjustment
                    ),
                }
            )
        elif pay_frequency is PayFrequency.MONTHLY:
            rows.append(
                {
                    "period_number": month,
                    "name": f"{month_name} {year}",
                    "cutoff_start": date(year, month, 1),
                    "cutoff_end": _month_end(year, month),
                    "pay_date": adjust_pay_date(_pay_day(year, month, 30), pay_date_adjustment),
                }
            )
        else:
            raise ValueError(f"Cannot generate a calendar of {pay_frequency.value} periods")

    return rows


class PeriodService:
    """Service for managing payroll period lifecycle.

    Operations:
    - create_period / generate_periods: draft periods
    - transition_status: open, approve, reopen (audited)
    - close_period: terminal; refused while any computation is in flight
    - reject_entry / approve_entry / reopen_entry: per-entry transitions
    - aggregate_totals: one SQL pass over computed and approved entries
    """

    def __init__(self, session: AsyncSession, registry: InFlightRegistry | None = None):
        self.session = session
        self.registry = registry if registry is not None else in_flight
        self.locking = LockingService(session)

    # ===== Loading =====

    async def get_period(self, period_id: UUID, load_related: bool = False) -> PayrollPeriod | None:
        stmt = select(PayrollPeriod).where(PayrollPeriod.payroll_period_id == period_id)
        if load_related:
            # populate_existing would discard unflushed changes
            await self.session.flush()
            stmt = stmt.options(
                selectinload(PayrollPeriod.entries),
                selectinload(PayrollPeriod.run_employees),
            ).execution_options(populate_existing=True)
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def require_period(self, period_id: UUID, load_related: bool = False) -> PayrollPeriod:
        period = await self.get_period(period_id, load_related)
        if period is None:
            raise PeriodNotFoundError(period_id)
        return period

    async def list_periods(
        self, year: int | None = None, status: str | None = None
    ) -> list[PayrollPeriod]:
        stmt = select(PayrollPeriod).order_by(PayrollPeriod.cutoff_start, PayrollPeriod.pay_frequency)
        if year is not None:
            stmt = stmt.where(
                PayrollPeriod.cutoff_start >= date(year, 1, 1),
                PayrollPeriod.cutoff_start <= date(year, 12, 31),
            )
        if status is not None:
            stmt = stmt.where(PayrollPeriod.status == status)
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def get_entry(self, entry_id: UUID) -> PayrollEntry | None:
        """Load an entry with its line items, refreshed from the database."""
        await self.session.flush()
        result = await self.session.execute(
            select(PayrollEntry)
            .where(PayrollEntry.payroll_entry_id == entry_id)
            .options(
                selectinload(PayrollEntry.earnings),
                selectinload(PayrollEntry.deductions),
            )
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def list_entries(self, period_id: UUID) -> list[PayrollEntry]:
        result = await self.session.execute(
            select(PayrollEntry)
            .where(PayrollEntry.payroll_period_id == period_id)
            .order_by(PayrollEntry.employee_number)
        )
        return list(result.scalars().all())

    # ===== Creation =====

    async def create_period(
        self,
        name: str,
        cutoff_start: date,
        cutoff_end: date,
        pay_date: date,
        pay_frequency: str = "semi_monthly",
        period_number: int | None = None,
        actor: str | None = None,
    ) -> PayrollPeriod:
        PayFrequency(pay_frequency)
        if cutoff_end < cutoff_start:
            raise ValueError(f"Cutoff end {cutoff_end} is before cutoff start {cutoff_start}")

        period = PayrollPeriod(
            name=name,
            pay_frequency=pay_frequency,
            period_number=period_number,
            cutoff_start=cutoff_start,
            cutoff_end=cutoff_end,
            pay_date=pay_date,
            status=PeriodStatus.DRAFT.value,
        )
        self.session.add(period)
        await self.session.flush()

        await self._record_audit(
            entity_type="payroll_period",
            entity_id=period.payroll_period_id,
            action="created",
            actor=actor,
            after={"name": name, "cutoff_start": str(cutoff_start), "cutoff_end": str(cutoff_end)},
        )
        return period

    async def generate_periods(
        self,
        year: int,
        pay_frequency: str = "semi_monthly",
        pay_date_adjustment: str = "before",
        actor: str | None = None,
    ) -> list[PayrollPeriod]:
        """Create a year of draft periods, skipping cutoffs that already exist."""
        existing = await self.session.execute(
            select(PayrollPeriod.cutoff_start, PayrollPeriod.cutoff_end).where(
                PayrollPeriod.pay_frequency == pay_frequency,
                PayrollPeriod.cutoff_start >= date(year, 1, 1),
                PayrollPeriod.cutoff_start <= date(year, 12, 31),
            )
        )
        taken = {(row.cutoff_start, row.cutoff_end) for row in existing}

        created: list[PayrollPeriod] = []
        for row in period_calendar(year, pay_frequency, pay_date_adjustment):
            if (row["cutoff_start"], row["cutoff_end"]) in taken:
                continue
            created.append(
                await self.create_period(pay_frequency=pay_frequency, actor=actor, **row)
            )

        logger.info(
            "Generated %d %s payroll period(s) for %d", len(created), pay_frequency, year
        )
        return created

    # ===== Transitions =====

    async def transition_status(
        self,
        period: PayrollPeriod,
        to_status: str,
        actor: str | None = None,
        reason: str | None = None,
        allow_failures: bool = False,
    ) -> PayrollPeriod:
        """Transition a period to a new status.

        Handles all side effects of transitions:
        - open (from draft): set opened_at
        - computed: set computed_at
        - approved: approve every computed entry
        - open (from computed/approved): reopen approved entries to draft,
          increment reopen_count
        - approved and closed: routed through the in-flight guard

        Raises InvalidTransitionError if transition is not allowed.
        """
        if to_status in (PeriodStatus.APPROVED, PeriodStatus.CLOSED):
            return await self._exclusive_transition(period, to_status, actor, reason)
        return await self._apply_transition(period, to_status, actor, reason, allow_failures)

    async def open_period(self, period_id: UUID, actor: str | None = None) -> PayrollPeriod:
        period = await self.require_period(period_id)
        return await self.transition_status(period, PeriodStatus.OPEN, actor)

    async def mark_computed(
        self, period_id: UUID, actor: str | None = None, allow_failures: bool = False
    ) -> PayrollPeriod:
        period = await self.require_period(period_id)
        return await self.transition_status(
            period, PeriodStatus.COMPUTED, actor, allow_failures=allow_failures
        )

    async def approve_period(self, period_id: UUID, actor: str | None = None) -> PayrollPeriod:
        """Approve a computed period and its computed entries.

        Refused while a run or entry computation for the period is in flight,
        so no worker can write a computed entry into an approved period.
        """
        period = await self.require_period(period_id)
        return await self._exclusive_transition(period, PeriodStatus.APPROVED, actor)

    async def reopen_period(
        self, period_id: UUID, actor: str | None = None, reason: str | None = None
    ) -> PayrollPeriod:
        period = await self.require_period(period_id)
        if period.status not in (PeriodStatus.COMPUTED, PeriodStatus.APPROVED):
            raise InvalidTransitionError(
                period.status,
                PeriodStatus.OPEN,
                "Can only reopen from computed or approved status",
            )
        return await self.transition_status(period, PeriodStatus.OPEN, actor, reason)

    async def close_period(
        self,
        period: PayrollPeriod | UUID,
        actor: str | None = None,
        reason: str | None = None,
    ) -> PayrollPeriod:
        """Close an approved period.

        Refused while a run holds the period's advisory lock or any entry
        computation for the period is in flight in this process.
        """
        if isinstance(period, UUID):
            period = await self.require_period(period)
        return await self._exclusive_transition(period, PeriodStatus.CLOSED, actor, reason)

    async def _exclusive_transition(
        self,
        period: PayrollPeriod,
        to_status: str,
        actor: str | None,
        reason: str | None = None,
    ) -> PayrollPeriod:
        """Apply a transition while holding the advisory lock and the in-flight registry."""
        period_id = period.payroll_period_id
        lock_acquired = await acquire_advisory_lock(self.session, str(period_id))
        if not lock_acquired:
            raise InvalidTransitionError(
                period.status, to_status, "A payroll run is in progress"
            )

        try:
            async with self.registry.exclusive(period_id) as running:
                if running:
                    raise InvalidTransitionError(
                        period.status,
                        to_status,
                        f"{running} entry computation(s) in flight",
                    )
                return await self._apply_transition(period, to_status, actor, reason)
        finally:
            await release_advisory_lock(self.session, str(period_id))

    async def _apply_transition(
        self,
        period: PayrollPeriod,
        to_status: str,
        actor: str | None,
        reason: str | None,
        allow_failures: bool = False,
    ) -> PayrollPeriod:
        period = await self.require_period(period.payroll_period_id, load_related=True)
        from_status = period.status

        errors = PeriodStateMachine.validate_period_for_transition(
            period, to_status, allow_failures=allow_failures
        )
        if errors:
            raise InvalidTransitionError(from_status, to_status, "; ".join(errors))

        now = datetime.now(timezone.utc)

        if PeriodStateMachine.is_reopen(from_status, to_status):
            await self._handle_reopen(period, actor, reason)

        elif to_status == PeriodStatus.OPEN:
            period.opened_at = now

        elif to_status == PeriodStatus.COMPUTED:
            period.computed_at = now

        elif to_status == PeriodStatus.APPROVED:
            await self._handle_approval(period, now)

        elif to_status == PeriodStatus.CLOSED:
            period.closed_at = now

        period.status = PeriodStatus(to_status).value
        await self.session.flush()

        await self._record_audit(
            entity_type="payroll_period",
            entity_id=period.payroll_period_id,
            action=f"status_change:{from_status}:{period.status}",
            actor=actor,
            before={"status": from_status},
            after={"status": period.status, "reason": reason} if reason else {"status": period.status},
        )
        logger.info(
            "Payroll period %s moved %s -> %s", period.payroll_period_id, from_status, period.status
        )
        return period

    async def _handle_approval(self, period: PayrollPeriod, now: datetime) -> None:
        """Approve every computed entry with the period."""
        for entry in period.entries:
            if entry.status == EntryStatus.COMPUTED:
                EntryStateMachine.validate_transition(entry.status, EntryStatus.APPROVED)
                entry.status = EntryStatus.APPROVED.value
                entry.approved_at = now
        period.approved_at = now

    async def _handle_reopen(
        self, period: PayrollPeriod, actor: str | None, reason: str | None
    ) -> None:
        """Handle side effects of reopen (computed/approved -> open)."""
        for entry in period.entries:
            if entry.status == EntryStatus.APPROVED:
                await self._reopen_entry(entry, actor, reason)
        period.reopen_count += 1
        period.approved_at = None

    # ===== Entry transitions =====

    async def approve_entry(self, entry_id: UUID, actor: str | None = None) -> PayrollEntry:
        entry, _ = await self._entry_for_update(entry_id, "approve entries")
        EntryStateMachine.validate_transition(entry.status, EntryStatus.APPROVED)
        entry.status = EntryStatus.APPROVED.value
        entry.approved_at = datetime.now(timezone.utc)
        await self._record_audit(
            entity_type="payroll_entry",
            entity_id=entry.payroll_entry_id,
            action="approved",
            actor=actor,
        )
        return entry

    async def reject_entry(
        self, entry_id: UUID, actor: str | None = None, reason: str | None = None
    ) -> PayrollEntry:
        """Send a computed entry back to draft; it drops out of the totals."""
        entry, _ = await self._entry_for_update(entry_id, "reject entries")
        if entry.status != EntryStatus.COMPUTED:
            raise InvalidTransitionError(
                entry.status, EntryStatus.DRAFT, "Only computed entries can be rejected"
            )
        entry.status = EntryStatus.DRAFT.value
        await self._record_audit(
            entity_type="payroll_entry",
            entity_id=entry.payroll_entry_id,
            action="rejected",
            actor=actor,
            after={"reason": reason} if reason else None,
        )
        return entry

    async def reopen_entry(
        self, entry_id: UUID, actor: str | None = None, reason: str | None = None
    ) -> PayrollEntry:
        """Reopen an approved entry (approved -> draft)."""
        entry, _ = await self._entry_for_update(entry_id, "reopen entries")
        if entry.status != EntryStatus.APPROVED:
            raise InvalidTransitionError(
                entry.status, EntryStatus.DRAFT, "Can only reopen approved entries"
            )
        await self._reopen_entry(entry, actor, reason)
        return entry

    async def _reopen_entry(
        self, entry: PayrollEntry, actor: str | None, reason: str | None
    ) -> None:
        EntryStateMachine.validate_transition(entry.status, EntryStatus.DRAFT)
        entry.status = EntryStatus.DRAFT.value
        entry.approved_at = None
        entry.reopen_count += 1
        await self._record_audit(
            entity_type="payroll_entry",
            entity_id=entry.payroll_entry_id,
            action="reopened",
            actor=actor,
            before={"status": EntryStatus.APPROVED.value},
            after={"status": EntryStatus.DRAFT.value, "reason": reason},
        )

    async def _entry_for_update(
        self, entry_id: UUID, action: str
    ) -> tuple[PayrollEntry, PayrollPeriod]:
        entry = await self.session.get(PayrollEntry, entry_id)
        if entry is None:
            raise ValueError(f"Payroll entry {entry_id} not found")
        period = await self.require_period(entry.payroll_period_id)
        self.locking.ensure_period_writable(period, action)
        if not PeriodStateMachine.can_calculate(period.status):
            raise InvalidTransitionError(
                period.status, period.status, f"Period is {period.status}; cannot {action}"
            )
        return entry, period

    # ===== Totals =====

    async def aggregate_totals(self, period: PayrollPeriod | UUID) -> PayrollPeriod:
        """Recompute period totals from its computed and approved entries.

        Raises:
            PeriodTotalsMismatchError: gross - deductions != net
        """
        if isinstance(period, UUID):
            period = await self.require_period(period)
        await self.session.flush()

        row = (
            await self.session.execute(
                select(
                    func.count(PayrollEntry.payroll_entry_id),
                    func.coalesce(func.sum(PayrollEntry.gross_pay), 0),
                    func.coalesce(func.sum(PayrollEntry.total_deductions), 0),
                    func.coalesce(func.sum(PayrollEntry.net_pay), 0),
                ).where(
                    PayrollEntry.payroll_period_id == period.payroll_period_id,
                    PayrollEntry.status.in_(TOTALLED_ENTRY_STATUSES),
                )
            )
        ).one()

        count = int(row[0])
        gross, deductions, net = (
            LineItemBuilder.round_to_cents(Decimal(str(value))) for value in row[1:]
        )
        if gross - deductions != net:
            raise PeriodTotalsMismatchError(period.payroll_period_id, gross, deductions, net)

        period.employee_count = count
        period.total_gross = gross
        period.total_deductions = deductions
        period.total_net = net

        logger.info(
            "Period %s totals: %d employee(s), gross=%s deductions=%s net=%s",
            period.payroll_period_id,
            count,
            gross,
            deductions,
            net,
        )
        return period

    # ===== Audit =====

    async def _record_audit(
        self,
        entity_type: str,
        entity_id: UUID,
        action: str,
        actor: str | None = None,
        before: dict | None = None,
        after: dict | None = None,
    ) -> None:
        """Record an audit event for a period or entry action."""
        event = AuditEvent(
            actor=actor,
            entity_type=entity_type,
            entity_id=entity_id,
            action=action,
            before_json=before,
            after_json=after,
        )
        self.session.add(event)
