"""Type definitions for the attendance pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID


class ScheduleKind(str, Enum):
    """Work schedule kinds."""

    FIXED = "fixed"
    FLEXIBLE = "flexible"
    SHIFTING = "shifting"
    COMPRESSED = "compressed"


class PunchDirection(str, Enum):
    """Normalised punch directions."""

    IN = "in"
    BREAK_OUT = "break_out"
    BREAK_IN = "break_in"
    OUT = "out"

    @classmethod
    def parse(cls, raw: str | int | None) -> PunchDirection | None:
        """Map a device direction code to a direction, or None if unknown."""
        if raw is None:
            return None
        return _DIRECTION_ALIASES.get(str(raw).strip().lower())


_DIRECTION_ALIASES: dict[str, PunchDirection] = {
    "in": PunchDirection.IN,
    "entry": PunchDirection.IN,
    "check-in": PunchDirection.IN,
    "check_in": PunchDirection.IN,
    "1": PunchDirection.IN,
    "out": PunchDirection.OUT,
    "exit": PunchDirection.OUT,
    "check-out": PunchDirection.OUT,
    "check_out": PunchDirection.OUT,
    "2": PunchDirection.OUT,
    "break_out": PunchDirection.BREAK_OUT,
    "lunch_out": PunchDirection.BREAK_OUT,
    "3": PunchDirection.BREAK_OUT,
    "break_in": PunchDirection.BREAK_IN,
    "lunch_in": PunchDirection.BREAK_IN,
    "4": PunchDirection.BREAK_IN,
}


class DtrStatus(str, Enum):
    """Daily time record status values."""

    PRESENT = "present"
    ABSENT = "absent"
    HOLIDAY = "holiday"
    REST_DAY = "rest_day"
    NO_SCHEDULE = "no_schedule"


class HolidayType(str, Enum):
    """Holiday classifications."""

    REGULAR = "regular"
    SPECIAL_NON_WORKING = "special_non_working"
    SPECIAL_WORKING = "special_working"
    DOUBLE = "double"

    @property
    def is_non_working(self) -> bool:
        return self is not HolidayType.SPECIAL_WORKING

    @property
    def precedence(self) -> int:
        """Higher wins when two holidays fall on the same date."""
        return {
            HolidayType.SPECIAL_WORKING: 0,
            HolidayType.SPECIAL_NON_WORKING: 1,
            HolidayType.REGULAR: 2,
            HolidayType.DOUBLE: 3,
        }[self]


# ===== Schedule building blocks =====


@dataclass(frozen=True)
class BreakRule:
    """Break rule. ``start_time`` None means the break may be taken anytime."""

    start_time: time | None = None
    duration_minutes: int = 0


@dataclass(frozen=True)
class OvertimeRules:
    """Overtime thresholds and multipliers."""

    daily_threshold_hours: Decimal = Decimal("8")
    weekly_threshold_hours: Decimal = Decimal("40")
    regular_multiplier: Decimal = Decimal("1.25")
    rest_day_multiplier: Decimal = Decimal("1.30")
    holiday_multiplier: Decimal = Decimal("2.00")

    @property
    def daily_threshold_minutes(self) -> int:
        return int(self.daily_threshold_hours * 60)


@dataclass(frozen=True)
class NightDifferentialRule:
    """Night differential window. The window may cross midnight."""

    enabled: bool = False
    start_time: time = time(22, 0)
    end_time: time = time(6, 0)
    rate_multiplier: Decimal = Decimal("1.10")


@dataclass(frozen=True)
class ShiftWindow:
    """One named shift of a shifting schedule."""

    name: str
    start_time: time
    end_time: time
    break_rule: BreakRule = BreakRule()


@dataclass(frozen=True)
class DayPlan:
    """What the schedule expects of an employee on one date."""

    work_date: date
    schedule_id: UUID | None
    kind: ScheduleKind
    is_work_day: bool
    required_minutes: int
    break_rule: BreakRule
    overtime: OvertimeRules
    night_differential: NightDifferentialRule
    shift_name: str | None = None
    scheduled_start: datetime | None = None
    scheduled_end: datetime | None = None
    core_start: datetime | None = None
    core_end: datetime | None = None
    latest_start: datetime | None = None

    @property
    def overtime_threshold_minutes(self) -> int:
        return max(self.overtime.daily_threshold_minutes, self.required_minutes)

    @property
    def scheduled_break_start(self) -> datetime | None:
        if self.break_rule.start_time is None:
            return None
        anchor = self.scheduled_start or datetime.combine(self.work_date, time(0, 0))
        candidate = datetime.combine(anchor.date(), self.break_rule.start_time)
        # Breaks of overnight shifts fall on the following calendar day
        if candidate < anchor:
            candidate += timedelta(days=1)
        return candidate


# ===== Punches =====


@dataclass(frozen=True)
class PunchRecord:
    """A raw punch as seen by the reconciler."""

    punch_id: int
    punched_at: datetime
    direction: str
    source: str = "kiosk"


@dataclass(frozen=True)
class PunchAnomaly:
    """A punch excluded from time math, retained for audit."""

    punch_id: int
    punched_at: datetime
    direction: str
    reason: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "punch_id": self.punch_id,
            "punched_at": self.punched_at.isoformat(),
            "direction": self.direction,
            "reason": self.reason,
        }


@dataclass(frozen=True)
class Interval:
    """Closed-open time interval ``[start, end)``."""

    start: datetime
    end: datetime

    @property
    def minutes(self) -> int:
        return max(0, int((self.end - self.start).total_seconds() // 60))

    def overlap_minutes(self, other: Interval) -> int:
        start = max(self.start, other.start)
        end = min(self.end, other.end)
        if start >= end:
            return 0
        return int((end - start).total_seconds() // 60)


@dataclass(frozen=True)
class PunchReconciliation:
    """Result of walking one employee-day's punches."""

    first_in: datetime | None = None
    last_out: datetime | None = None
    sessions: tuple[Interval, ...] = ()
    breaks: tuple[Interval, ...] = ()
    anomalies: tuple[PunchAnomaly, ...] = ()
    open_session_start: datetime | None = None
    missing_clock_out: bool = False
    punch_count: int = 0

    @property
    def has_valid_punches(self) -> bool:
        return bool(self.sessions) or self.open_session_start is not None

    @property
    def has_anomalies(self) -> bool:
        return bool(self.anomalies)

    @property
    def break_minutes(self) -> int:
        return sum(b.minutes for b in self.breaks)

    def work_intervals(self) -> list[Interval]:
        """Completed sessions with recorded breaks cut out."""
        intervals: list[Interval] = []
        for session in self.sessions:
            pieces = [session]
            for brk in self.breaks:
                next_pieces: list[Interval] = []
                for piece in pieces:
                    if brk.end <= piece.start or brk.start >= piece.end:
                        next_pieces.append(piece)
                        continue
                    if brk.start > piece.start:
                        next_pieces.append(Interval(piece.start, brk.start))
                    if brk.end < piece.end:
                        next_pieces.append(Interval(brk.end, piece.end))
                pieces = next_pieces
            intervals.extend(pieces)
        return intervals


# ===== Holiday and DTR =====


@dataclass(frozen=True)
class HolidayInfo:
    """The holiday that applies to an employee on a date."""

    holiday_id: UUID
    name: str
    holiday_date: date
    holiday_type: HolidayType


@dataclass(frozen=True)
class DtrResult:
    """Computed daily time record, before persistence."""

    work_date: date
    status: DtrStatus
    schedule_id: UUID | None = None
    shift_name: str | None = None
    first_in: datetime | None = None
    last_out: datetime | None = None
    work_minutes: int = 0
    break_minutes: int = 0
    late_minutes: int = 0
    undertime_minutes: int = 0
    overtime_minutes: int = 0
    night_diff_minutes: int = 0
    overtime_approved: bool = False
    is_rest_day: bool = False
    holiday_id: UUID | None = None
    holiday_type: HolidayType | None = None
    needs_review: bool = False
    review_reasons: tuple[str, ...] = ()
    is_incomplete: bool = False
    anomalies: tuple[PunchAnomaly, ...] = field(default=())

    @property
    def review_reason(self) -> str | None:
        if not self.review_reasons:
            return None
        return "; ".join(self.review_reasons)

    @property
    def paid_overtime_minutes(self) -> int:
        return self.overtime_minutes if self.overtime_approved else 0
