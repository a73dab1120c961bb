"""Period locking: approved and closed periods refuse writes.

Two guards live here:

- ``LockingService`` answers "is this date or period locked?" from the
  database, so attendance and payroll writes can refuse to touch data an
  approved or closed period already owns.
- ``InFlightRegistry`` counts entry computations running against each
  period, so closing a period can check exclusively that none are in flight.
  On PostgreSQL, closing additionally holds an advisory lock keyed on the
  period, which serialises close against computations in other processes.
"""

from __future__ import annotations

import asyncio
import hashlib
import json
from contextlib import asynccontextmanager
from datetime import date
from typing import Any, AsyncIterator
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ph_payroll.errors import PeriodLockedError
from ph_payroll.models import PayrollPeriod

LOCKED_STATUSES = frozenset({"approved", "closed"})


def compute_hash(data: dict[str, Any]) -> str:
    """Deterministic hash of JSON-able data."""
    json_str = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(json_str.encode()).hexdigest()[:32]


class LockingService:
    """Refuses writes that target locked periods."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def locked_period_covering(self, on_date: date) -> PayrollPeriod | None:
        """An approved or closed period whose cutoff contains the date."""
        result = await self.session.execute(
            select(PayrollPeriod)
            .where(
                PayrollPeriod.cutoff_start <= on_date,
                PayrollPeriod.cutoff_end >= on_date,
                PayrollPeriod.status.in_(LOCKED_STATUSES),
            )
            .order_by(PayrollPeriod.cutoff_start)
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def ensure_date_unlocked(self, on_date: date, action: str) -> None:
        period = await self.locked_period_covering(on_date)
        if period is not None:
            raise PeriodLockedError(period.payroll_period_id, period.status, action)

    def ensure_period_writable(self, period: PayrollPeriod, action: str) -> None:
        if period.status in LOCKED_STATUSES:
            raise PeriodLockedError(period.payroll_period_id, period.status, action)


class InFlightRegistry:
    """Per-period count of running entry computations (in-process)."""

    def __init__(self) -> None:
        self._lock = asyncio.Lock()
        self._counts: dict[UUID, int] = {}

    async def begin(self, period_id: UUID) -> None:
        async with self._lock:
            self._counts[period_id] = self._counts.get(period_id, 0) + 1

    async def end(self, period_id: UUID) -> None:
        async with self._lock:
            remaining = self._counts.get(period_id, 0) - 1
            if remaining > 0:
                self._counts[period_id] = remaining
            else:
                self._counts.pop(period_id, None)

    def count(self, period_id: UUID) -> int:
        return self._counts.get(period_id, 0)

    @asynccontextmanager
    async def track(self, period_id: UUID) -> AsyncIterator[None]:
        await self.begin(period_id)
        try:
            yield
        finally:
            await self.end(period_id)

    @asynccontextmanager
    async def exclusive(self, period_id: UUID) -> AsyncIterator[int]:
        """Hold the registry lock and yield the in-flight count.

        No computation can begin while the caller holds this.
        """
        async with self._lock:
            yield self._counts.get(period_id, 0)


# Process-wide registry shared by the orchestrator and period service
in_flight = InFlightRegistry()
