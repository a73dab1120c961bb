"""Payroll run orchestration: concurrent per-employee computation for a period."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Callable, Protocol
from uuid import UUID

from sqlalchemy import or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ph_payroll.config import Settings, get_settings
from ph_payroll.database import acquire_advisory_lock, release_advisory_lock
from ph_payroll.errors import ComputationTimeoutError, PayrollError, PeriodNotFoundError
from ph_payroll.models import (
    Employee,
    EmployeeCompensation,
    PayrollEntry,
    PayrollPeriod,
    PayrollRunEmployee,
)
from ph_payroll.services.entry_computer import EntryComputationResult, PayrollEntryComputer
from ph_payroll.services.locking_service import InFlightRegistry, LockingService, in_flight
from ph_payroll.services.period_service import PeriodService
from ph_payroll.services.state_machine import (
    EntryStatus,
    InvalidTransitionError,
    PeriodStateMachine,
    PeriodStatus,
)

logger = logging.getLogger(__name__)


class EntryComputer(Protocol):
    async def compute(self, period: Any, employee_id: UUID) -> EntryComputationResult: ...


@dataclass
class EmployeeFailure:
    """One employee that could not be computed, and why."""

    employee_id: UUID
    error_type: str
    reason: str


@dataclass
class RunReport:
    """Outcome of one payroll run."""

    payroll_period_id: UUID
    eligible: int = 0
    computed: list[UUID] = field(default_factory=list)
    failures: list[EmployeeFailure] = field(default_factory=list)
    skipped: list[UUID] = field(default_factory=list)
    cancelled: bool = False
    period_status: str | None = None
    employee_count: int = 0
    total_gross: Decimal = Decimal("0")
    total_deductions: Decimal = Decimal("0")
    total_net: Decimal = Decimal("0")

    @property
    def failure_count(self) -> int:
        return len(self.failures)

    @property
    def success(self) -> bool:
        return not self.failures and not self.skipped


class PayrollRunOrchestrator:
    """Computes every eligible employee of a period.

    Each employee runs as its own task, bounded by a semaphore, in its own
    session and transaction, under a per-employee timeout. A failure is
    recorded against that employee only; the rest of the run continues.
    The period row is written once, after every task has finished.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        settings: Settings | None = None,
        computer_factory: Callable[[AsyncSession], EntryComputer] | None = None,
        registry: InFlightRegistry | None = None,
    ):
        self.session_factory = session_factory
        self.settings = settings or get_settings()
        self.computer_factory = computer_factory or self._default_computer
        self.registry = registry if registry is not None else in_flight
        self._cancelled = False
        # Table caches shared by every employee of a run
        self._contribution_cache: dict = {}
        self._tax_cache: dict = {}

    def _default_computer(self, session: AsyncSession) -> PayrollEntryComputer:
        return PayrollEntryComputer(
            session,
            settings=self.settings,
            contribution_cache=self._contribution_cache,
            tax_cache=self._tax_cache,
        )

    def cancel(self) -> None:
        """Stop scheduling new employees; computations already started finish."""
        self._cancelled = True
        logger.info("Payroll run cancellation requested")

    async def run(
        self,
        period_id: UUID,
        concurrency: int | None = None,
        actor: str | None = None,
    ) -> RunReport:
        """Compute all eligible employees of an open or computed period.

        Raises:
            InvalidTransitionError: the period does not accept computation, or
                another run holds it
        """
        self._cancelled = False
        self._contribution_cache.clear()
        self._tax_cache.clear()
        report = RunReport(payroll_period_id=period_id)

        # The control session holds the period's advisory lock for the whole run
        async with self.session_factory() as control:
            period = await self._computable_period(control, period_id)

            lock_key = str(period_id)
            if not await acquire_advisory_lock(control, lock_key):
                raise InvalidTransitionError(
                    period.status, PeriodStatus.COMPUTED, "Another payroll run holds this period"
                )

            try:
                async with self.registry.track(period_id):
                    employee_ids = await self._prepare(period_id)
                    report.eligible = len(employee_ids)
                    logger.info(
                        "Running payroll for period %s: %d eligible employee(s)",
                        period_id,
                        len(employee_ids),
                    )

                    semaphore = asyncio.Semaphore(concurrency or self.settings.payroll_concurrency)
                    outcomes = await asyncio.gather(
                        *(self._run_employee(semaphore, period_id, eid) for eid in employee_ids)
                    )

                for employee_id, outcome in zip(employee_ids, outcomes):
                    if outcome is None:
                        report.computed.append(employee_id)
                    elif outcome == "skipped":
                        report.skipped.append(employee_id)
                    else:
                        report.failures.append(outcome)
                report.cancelled = self._cancelled

                await self._finish(period_id, report, actor)
            finally:
                await release_advisory_lock(control, lock_key)

        logger.info(
            "Payroll run for period %s finished: %d computed, %d failed, %d skipped",
            period_id,
            len(report.computed),
            report.failure_count,
            len(report.skipped),
        )
        return report

    async def recompute_employee(
        self,
        period_id: UUID,
        employee_id: UUID,
        actor: str | None = None,
    ) -> EntryComputationResult:
        """Explicit retry for one employee; refreshes the period totals.

        A period that does not accept computation is refused before anything
        runs and nothing is recorded. Other errors are recorded against the
        employee and re-raised.
        """
        async with self.session_factory() as session:
            await self._computable_period(session, period_id)

        try:
            result = await asyncio.wait_for(
                self._compute_one(period_id, employee_id),
                timeout=self.settings.employee_timeout_seconds,
            )
        except asyncio.TimeoutError as exc:
            error = ComputationTimeoutError(employee_id, self.settings.employee_timeout_seconds)
            await self._record_failure(
                period_id, EmployeeFailure(employee_id, type(error).__name__, str(error))
            )
            raise error from exc
        except InvalidTransitionError:
            # Lost a race with approval or close; the run rows stay as they were
            raise
        except PayrollError as exc:
            await self._record_failure(
                period_id, EmployeeFailure(employee_id, type(exc).__name__, str(exc))
            )
            raise

        async with self.session_factory() as session:
            await PeriodService(session, self.registry).aggregate_totals(period_id)
            await session.commit()

        logger.info(
            "Recomputed employee %s in period %s (actor=%s)", employee_id, period_id, actor
        )
        return result

    async def _computable_period(self, session: AsyncSession, period_id: UUID) -> PayrollPeriod:
        """Load the period, refusing one that is locked or not open for computation."""
        period = await session.get(PayrollPeriod, period_id)
        if period is None:
            raise PeriodNotFoundError(period_id)
        LockingService(session).ensure_period_writable(period, "compute entries")
        if not PeriodStateMachine.can_calculate(period.status):
            raise InvalidTransitionError(
                period.status,
                PeriodStatus.COMPUTED,
                f"Period is {period.status}; only open or computed periods can be run",
            )
        return period

    # ===== Per-employee work =====

    async def _run_employee(
        self,
        semaphore: asyncio.Semaphore,
        period_id: UUID,
        employee_id: UUID,
    ) -> EmployeeFailure | str | None:
        """Returns None on success, "skipped" when cancelled, else the failure."""
        async with semaphore:
            if self._cancelled:
                return "skipped"

            try:
                await asyncio.wait_for(
                    self._compute_one(period_id, employee_id),
                    timeout=self.settings.employee_timeout_seconds,
                )
                return None
            except asyncio.TimeoutError:
                error = ComputationTimeoutError(employee_id, self.settings.employee_timeout_seconds)
                logger.warning("%s", error)
                failure = EmployeeFailure(employee_id, type(error).__name__, str(error))
            except InvalidTransitionError as e:
                # Refused by period or entry state: reported, never recorded
                logger.warning("Employee %s refused: %s", employee_id, e)
                return EmployeeFailure(employee_id, type(e).__name__, str(e))
            except PayrollError as e:
                logger.warning("Employee %s not computed: %s", employee_id, e)
                failure = EmployeeFailure(employee_id, type(e).__name__, str(e))
            except Exception as e:
                # Catch unexpected errors
                logger.exception("Unexpected error computing employee %s", employee_id)
                failure = EmployeeFailure(employee_id, type(e).__name__, str(e))

        await self._record_failure(period_id, failure)
        return failure

    async def _compute_one(self, period_id: UUID, employee_id: UUID) -> EntryComputationResult:
        async with self.registry.track(period_id):
            async with self.session_factory() as session:
                async with session.begin():
                    computer = self.computer_factory(session)
                    result = await computer.compute(period_id, employee_id)
                    await self._mark_run_employee(session, period_id, employee_id, "computed")
        return result

    async def _record_failure(self, period_id: UUID, failure: EmployeeFailure) -> None:
        """Mark the employee failed and pull any stale computed entry out of the totals."""
        async with self.session_factory() as session:
            async with session.begin():
                await self._mark_run_employee(
                    session,
                    period_id,
                    failure.employee_id,
                    "failed",
                    error_type=failure.error_type,
                    error_message=failure.reason,
                )
                await session.execute(
                    update(PayrollEntry)
                    .where(
                        PayrollEntry.payroll_period_id == period_id,
                        PayrollEntry.employee_id == failure.employee_id,
                        PayrollEntry.status == EntryStatus.COMPUTED.value,
                    )
                    .values(status=EntryStatus.DRAFT.value)
                    .execution_options(synchronize_session=False)
                )

    async def _mark_run_employee(
        self,
        session: AsyncSession,
        period_id: UUID,
        employee_id: UUID,
        status: str,
        error_type: str | None = None,
        error_message: str | None = None,
    ) -> None:
        result = await session.execute(
            select(PayrollRunEmployee).where(
                PayrollRunEmployee.payroll_period_id == period_id,
                PayrollRunEmployee.employee_id == employee_id,
            )
        )
        row = result.scalar_one_or_none()
        if row is None:
            row = PayrollRunEmployee(payroll_period_id=period_id, employee_id=employee_id)
            session.add(row)
        row.status = status
        row.error_type = error_type
        row.error_message = error_message
        row.attempted_at = datetime.now(timezone.utc)

    # ===== Run bookkeeping =====

    async def _prepare(self, period_id: UUID) -> list[UUID]:
        """Select eligible employees and reset their run rows to pending."""
        async with self.session_factory() as session:
            async with session.begin():
                period = await session.get(PayrollPeriod, period_id)
                if period is None:
                    raise PeriodNotFoundError(period_id)

                result = await session.execute(
                    select(Employee.employee_id)
                    .join(EmployeeCompensation, EmployeeCompensation.employee_id == Employee.employee_id)
                    .where(
                        Employee.status == "active",
                        EmployeeCompensation.effective_date <= period.cutoff_end,
                        or_(
                            EmployeeCompensation.end_date.is_(None),
                            EmployeeCompensation.end_date >= period.cutoff_start,
                        ),
                    )
                    .distinct()
                    .order_by(Employee.employee_id)
                )
                employee_ids = list(result.scalars().all())

                existing = await session.execute(
                    select(PayrollRunEmployee).where(
                        PayrollRunEmployee.payroll_period_id == period_id
                    )
                )
                rows = {row.employee_id: row for row in existing.scalars().all()}

                for employee_id in employee_ids:
                    row = rows.get(employee_id)
                    if row is None:
                        session.add(
                            PayrollRunEmployee(
                                payroll_period_id=period_id,
                                employee_id=employee_id,
                                status="pending",
                            )
                        )
                    else:
                        row.status = "pending"
                        row.error_type = None
                        row.error_message = None

        return employee_ids

    async def _finish(self, period_id: UUID, report: RunReport, actor: str | None) -> None:
        """Aggregate totals once and move the period to computed when nothing failed."""
        async with self.session_factory() as session:
            service = PeriodService(session, self.registry)
            period = await service.aggregate_totals(period_id)

            if report.success and period.status == PeriodStatus.OPEN:
                period = await service.transition_status(period, PeriodStatus.COMPUTED, actor)
            elif not report.success:
                logger.warning(
                    "Period %s stays %s: %d failure(s), %d skipped",
                    period_id,
                    period.status,
                    report.failure_count,
                    len(report.skipped),
                )

            await session.commit()

            report.period_status = period.status
            report.employee_count = period.employee_count
            report.total_gross = period.total_gross
            report.total_deductions = period.total_deductions
            report.total_net = period.total_net
