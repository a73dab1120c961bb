"""Punch reconciliation.

Walks one employee-day's raw punches through a small state machine and
produces sessions, breaks, and the punches that could not be matched.
Invalid punches are never dropped silently: they come back as anomalies so
the DTR can flag the day for review and keep them in its audit trail.
"""

from __future__ import annotations

import logging
from datetime import datetime
from enum import Enum
from typing import Iterable

from ph_payroll.attendance.types import (
    Interval,
    PunchAnomaly,
    PunchDirection,
    PunchReconciliation,
    PunchRecord,
)

logger = logging.getLogger(__name__)


class _State(str, Enum):
    IDLE = "idle"
    WORKING = "working"
    ON_BREAK = "on_break"


def truncate_to_minute(value: datetime) -> datetime:
    return value.replace(second=0, microsecond=0)


class PunchReconciler:
    """Pairs in/out and break punches for a single employee-day.

    Rules:
    - Punches are ordered by timestamp; ties keep insertion order.
    - Timestamps are truncated to the minute before any math.
    - An employee may clock in and out several times a day. The gap between
      an out and the next in counts as break time.
    - Breaks belong to the session that follows them and are kept only once
      that session closes, so no break ever starts after the last clock-out.
    - A punch that does not fit the current state is an anomaly and is
      excluded from time math.
    - A session still open at the end is unmatched. It is reported as a
      missing clock-out only once the day has closed.
    """

    def reconcile(
        self,
        punches: Iterable[PunchRecord],
        day_closes_at: datetime | None = None,
        now: datetime | None = None,
    ) -> PunchReconciliation:
        ordered = sorted(punches, key=lambda p: (p.punched_at, p.punch_id))

        state = _State.IDLE
        sessions: list[Interval] = []
        breaks: list[Interval] = []
        # Breaks of the session in progress
        pending_breaks: list[Interval] = []
        anomalies: list[PunchAnomaly] = []
        session_start: datetime | None = None
        break_start: datetime | None = None
        previous_out: datetime | None = None

        def reject(punch: PunchRecord, at: datetime, reason: str) -> None:
            anomalies.append(PunchAnomaly(punch.punch_id, at, punch.direction, reason))

        for punch in ordered:
            at = truncate_to_minute(punch.punched_at)
            direction = PunchDirection.parse(punch.direction)

            if direction is None:
                reject(punch, at, "unknown direction")
                continue

            if state is _State.IDLE:
                if direction is PunchDirection.IN:
                    if previous_out is not None and at > previous_out:
                        pending_breaks.append(Interval(previous_out, at))
                    session_start = at
                    state = _State.WORKING
                elif direction is PunchDirection.OUT:
                    reject(punch, at, "duplicate out" if sessions else "out before in")
                elif direction is PunchDirection.BREAK_OUT:
                    reject(punch, at, "break_out before in")
                else:
                    reject(punch, at, "break_in before in")

            elif state is _State.WORKING:
                if direction is PunchDirection.OUT:
                    sessions.append(Interval(session_start, at))
                    breaks.extend(pending_breaks)
                    pending_breaks = []
                    previous_out = at
                    session_start = None
                    state = _State.IDLE
                elif direction is PunchDirection.BREAK_OUT:
                    break_start = at
                    state = _State.ON_BREAK
                elif direction is PunchDirection.IN:
                    reject(punch, at, "duplicate in")
                else:
                    reject(punch, at, "break_in before break_out")

            else:
                if direction is PunchDirection.BREAK_IN:
                    pending_breaks.append(Interval(break_start, at))
                    break_start = None
                    state = _State.WORKING
                elif direction is PunchDirection.BREAK_OUT:
                    reject(punch, at, "duplicate break_out")
                elif direction is PunchDirection.IN:
                    reject(punch, at, "in during break")
                else:
                    reject(punch, at, "out before break_in")

        missing_clock_out = False
        if session_start is not None:
            missing_clock_out = day_closes_at is None or now is None or now >= day_closes_at

        if anomalies:
            logger.debug("Reconciled %d punches with %d anomalies", len(ordered), len(anomalies))

        return PunchReconciliation(
            first_in=sessions[0].start if sessions else session_start,
            last_out=sessions[-1].end if sessions else None,
            sessions=tuple(sessions),
            breaks=tuple(breaks),
            anomalies=tuple(anomalies),
            open_session_start=session_start,
            missing_clock_out=missing_clock_out,
            punch_count=len(ordered),
        )
