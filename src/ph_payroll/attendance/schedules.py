"""Work schedule variants.

A schedule row stores its shape as JSON. ``parse_schedule`` turns that into
one of four frozen variants; each variant knows how to lay out a single
date as a ``DayPlan`` (is it a work day, when does it start and end, how many
minutes are required). The DTR calculator only ever sees ``DayPlan``.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from decimal import Decimal, InvalidOperation
from typing import Any, ClassVar, Protocol
from uuid import UUID

from ph_payroll.attendance.types import (
    BreakRule,
    DayPlan,
    NightDifferentialRule,
    OvertimeRules,
    ScheduleKind,
    ShiftWindow,
)
from ph_payroll.errors import ScheduleConfigError

WEEKDAYS = ("monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday")
SATURDAY = 5
HALF_DAY_MINUTES = 240

MONDAY_TO_FRIDAY = frozenset(range(5))
EVERY_DAY = frozenset(range(7))


class ScheduleRow(Protocol):
    """Attributes read from a ``WorkSchedule`` row."""

    work_schedule_id: UUID
    code: str
    name: str
    schedule_type: str
    time_configuration: dict[str, Any]
    overtime_rules: dict[str, Any] | None
    night_differential: dict[str, Any] | None


def window_on(work_date: date, start: time, end: time) -> tuple[datetime, datetime]:
    """Anchor a start/end pair on a date; an end at or before the start is next day."""
    start_dt = datetime.combine(work_date, start)
    end_dt = datetime.combine(work_date, end)
    if end_dt <= start_dt:
        end_dt += timedelta(days=1)
    return start_dt, end_dt


@dataclass(frozen=True)
class ScheduleConfig:
    """Fields shared by every schedule kind."""

    kind: ClassVar[ScheduleKind]

    schedule_id: UUID | None
    code: str
    name: str
    work_days: frozenset[int]
    overtime: OvertimeRules
    night_differential: NightDifferentialRule

    def plan_for(self, work_date: date, shift_name: str | None = None) -> DayPlan | None:
        """Lay out one date. None means the day cannot be resolved."""
        raise NotImplementedError

    def is_work_day(self, work_date: date) -> bool:
        return work_date.weekday() in self.work_days

    def _plan(self, work_date: date, **fields: Any) -> DayPlan:
        fields.setdefault("is_work_day", self.is_work_day(work_date))
        return DayPlan(
            work_date=work_date,
            schedule_id=self.schedule_id,
            kind=self.kind,
            overtime=self.overtime,
            night_differential=self.night_differential,
            **fields,
        )


@dataclass(frozen=True)
class FixedSchedule(ScheduleConfig):
    """Same start and end every work day, optional half-day Saturday."""

    kind: ClassVar[ScheduleKind] = ScheduleKind.FIXED

    start_time: time = time(8, 0)
    end_time: time = time(17, 0)
    break_rule: BreakRule = BreakRule()
    half_day_saturday: bool = False
    saturday_end_time: time | None = None

    def is_work_day(self, work_date: date) -> bool:
        if self.half_day_saturday and work_date.weekday() == SATURDAY:
            return True
        return work_date.weekday() in self.work_days

    def plan_for(self, work_date: date, shift_name: str | None = None) -> DayPlan:
        start, end = window_on(work_date, self.start_time, self.end_time)

        if self.half_day_saturday and work_date.weekday() == SATURDAY:
            if self.saturday_end_time is not None:
                _, end = window_on(work_date, self.start_time, self.saturday_end_time)
            else:
                end = start + timedelta(minutes=HALF_DAY_MINUTES)
            return self._plan(
                work_date,
                required_minutes=HALF_DAY_MINUTES,
                break_rule=BreakRule(),
                scheduled_start=start,
                scheduled_end=end,
            )

        span = int((end - start).total_seconds() // 60)
        return self._plan(
            work_date,
            required_minutes=max(0, span - self.break_rule.duration_minutes),
            break_rule=self.break_rule,
            scheduled_start=start,
            scheduled_end=end,
        )


@dataclass(frozen=True)
class FlexibleSchedule(ScheduleConfig):
    """Required hours per day with a mandatory core window."""

    kind: ClassVar[ScheduleKind] = ScheduleKind.FLEXIBLE

    required_hours_per_day: Decimal = Decimal("8")
    required_hours_per_week: Decimal | None = None
    core_start: time | None = None
    core_end: time | None = None
    earliest_start: time | None = None
    latest_start: time | None = None
    break_rule: BreakRule = BreakRule()

    def plan_for(self, work_date: date, shift_name: str | None = None) -> DayPlan:
        core_start = core_end = None
        if self.core_start is not None and self.core_end is not None:
            core_start, core_end = window_on(work_date, self.core_start, self.core_end)

        latest = None
        if self.latest_start is not None:
            latest = datetime.combine(work_date, self.latest_start)

        return self._plan(
            work_date,
            required_minutes=int(self.required_hours_per_day * 60),
            break_rule=self.break_rule,
            core_start=core_start,
            core_end=core_end,
            latest_start=latest,
        )


@dataclass(frozen=True)
class ShiftingSchedule(ScheduleConfig):
    """Named shifts; the assignment picks which one applies."""

    kind: ClassVar[ScheduleKind] = ScheduleKind.SHIFTING

    shifts: tuple[ShiftWindow, ...] = ()

    def find_shift(self, shift_name: str | None) -> ShiftWindow | None:
        if shift_name is None:
            return self.shifts[0] if len(self.shifts) == 1 else None
        for shift in self.shifts:
            if shift.name == shift_name:
                return shift
        return None

    def plan_for(self, work_date: date, shift_name: str | None = None) -> DayPlan | None:
        shift = self.find_shift(shift_name)
        if shift is None:
            return None

        start, end = window_on(work_date, shift.start_time, shift.end_time)
        span = int((end - start).total_seconds() // 60)
        return self._plan(
            work_date,
            required_minutes=max(0, span - shift.break_rule.duration_minutes),
            break_rule=shift.break_rule,
            shift_name=shift.name,
            scheduled_start=start,
            scheduled_end=end,
        )


@dataclass(frozen=True)
class CompressedSchedule(ScheduleConfig):
    """Longer days over fewer work days (4x10, 4.5-day week)."""

    kind: ClassVar[ScheduleKind] = ScheduleKind.COMPRESSED

    daily_hours: Decimal = Decimal("10")
    start_time: time | None = None
    half_day_weekday: int | None = None
    half_day_hours: Decimal | None = None
    break_rule: BreakRule = BreakRule()

    def plan_for(self, work_date: date, shift_name: str | None = None) -> DayPlan:
        is_half_day = (
            self.half_day_weekday is not None and work_date.weekday() == self.half_day_weekday
        )
        if is_half_day:
            required = int((self.half_day_hours or Decimal("4")) * 60)
            break_rule = BreakRule()
        else:
            required = int(self.daily_hours * 60)
            break_rule = self.break_rule

        start = end = None
        if self.start_time is not None:
            start = datetime.combine(work_date, self.start_time)
            end = start + timedelta(minutes=required + break_rule.duration_minutes)

        return self._plan(
            work_date,
            required_minutes=required,
            break_rule=break_rule,
            scheduled_start=start,
            scheduled_end=end,
        )


# ===== Parsing =====


def parse_time(value: Any, field_name: str, code: str) -> time | None:
    """Parse ``HH:MM`` or ``HH:MM:SS``; None passes through."""
    if value is None or value == "":
        return None
    if isinstance(value, time):
        return value
    try:
        parts = [int(p) for p in str(value).split(":")]
        return time(parts[0], parts[1] if len(parts) > 1 else 0)
    except (ValueError, IndexError) as e:
        raise ScheduleConfigError(code, f"{field_name} '{value}' is not a time") from e


def _decimal(value: Any, field_name: str, code: str, default: str | None = None) -> Decimal | None:
    if value is None:
        return Decimal(default) if default is not None else None
    try:
        return Decimal(str(value))
    except InvalidOperation as e:
        raise ScheduleConfigError(code, f"{field_name} '{value}' is not a number") from e


def _work_days(values: Any, default: frozenset[int], code: str) -> frozenset[int]:
    if values is None:
        return default
    days = set()
    for value in values:
        name = str(value).strip().lower()
        if name not in WEEKDAYS:
            raise ScheduleConfigError(code, f"unknown work day '{value}'")
        days.add(WEEKDAYS.index(name))
    return frozenset(days)


def _break_rule(cfg: dict[str, Any] | None, code: str) -> BreakRule:
    if not cfg:
        return BreakRule()
    return BreakRule(
        start_time=parse_time(cfg.get("start_time"), "break.start_time", code),
        duration_minutes=int(cfg.get("duration_minutes") or 0),
    )


def parse_overtime_rules(cfg: dict[str, Any] | None, code: str = "") -> OvertimeRules:
    cfg = cfg or {}
    defaults = OvertimeRules()
    return OvertimeRules(
        daily_threshold_hours=_decimal(
            cfg.get("daily_threshold_hours"), "daily_threshold_hours", code,
            str(defaults.daily_threshold_hours),
        ),
        weekly_threshold_hours=_decimal(
            cfg.get("weekly_threshold_hours"), "weekly_threshold_hours", code,
            str(defaults.weekly_threshold_hours),
        ),
        regular_multiplier=_decimal(
            cfg.get("regular_multiplier"), "regular_multiplier", code,
            str(defaults.regular_multiplier),
        ),
        rest_day_multiplier=_decimal(
            cfg.get("rest_day_multiplier"), "rest_day_multiplier", code,
            str(defaults.rest_day_multiplier),
        ),
        holiday_multiplier=_decimal(
            cfg.get("holiday_multiplier"), "holiday_multiplier", code,
            str(defaults.holiday_multiplier),
        ),
    )


def parse_night_differential(cfg: dict[str, Any] | None, code: str = "") -> NightDifferentialRule:
    cfg = cfg or {}
    defaults = NightDifferentialRule()
    return NightDifferentialRule(
        enabled=bool(cfg.get("enabled", False)),
        start_time=parse_time(cfg.get("start_time"), "night_differential.start_time", code)
        or defaults.start_time,
        end_time=parse_time(cfg.get("end_time"), "night_differential.end_time", code)
        or defaults.end_time,
        rate_multiplier=_decimal(
            cfg.get("rate_multiplier"), "rate_multiplier", code, str(defaults.rate_multiplier)
        ),
    )


def parse_schedule_config(
    kind: str,
    time_configuration: dict[str, Any],
    overtime_rules: dict[str, Any] | None = None,
    night_differential: dict[str, Any] | None = None,
    schedule_id: UUID | None = None,
    code: str = "",
    name: str = "",
) -> ScheduleConfig:
    """Build the schedule variant for a kind and its JSON configuration."""
    try:
        schedule_kind = ScheduleKind(kind)
    except ValueError as e:
        raise ScheduleConfigError(code, f"unknown schedule type '{kind}'") from e

    cfg = time_configuration or {}
    common: dict[str, Any] = {
        "schedule_id": schedule_id,
        "code": code,
        "name": name,
        "overtime": parse_overtime_rules(overtime_rules, code),
        "night_differential": parse_night_differential(night_differential, code),
    }

    if schedule_kind is ScheduleKind.FIXED:
        start = parse_time(cfg.get("start_time"), "start_time", code)
        end = parse_time(cfg.get("end_time"), "end_time", code)
        if start is None or end is None:
            raise ScheduleConfigError(code, "fixed schedules need start_time and end_time")
        return FixedSchedule(
            work_days=_work_days(cfg.get("work_days"), MONDAY_TO_FRIDAY, code),
            start_time=start,
            end_time=end,
            break_rule=_break_rule(cfg.get("break"), code),
            half_day_saturday=bool(cfg.get("half_day_saturday", False)),
            saturday_end_time=parse_time(cfg.get("saturday_end_time"), "saturday_end_time", code),
            **common,
        )

    if schedule_kind is ScheduleKind.FLEXIBLE:
        core = cfg.get("core_hours") or {}
        window = cfg.get("flexible_start_window") or {}
        return FlexibleSchedule(
            work_days=_work_days(cfg.get("work_days"), MONDAY_TO_FRIDAY, code),
            required_hours_per_day=_decimal(
                cfg.get("required_hours_per_day"), "required_hours_per_day", code, "8"
            ),
            required_hours_per_week=_decimal(
                cfg.get("required_hours_per_week"), "required_hours_per_week", code
            ),
            core_start=parse_time(core.get("start_time"), "core_hours.start_time", code),
            core_end=parse_time(core.get("end_time"), "core_hours.end_time", code),
            earliest_start=parse_time(window.get("earliest"), "flexible_start_window.earliest", code),
            latest_start=parse_time(window.get("latest"), "flexible_start_window.latest", code),
            break_rule=_break_rule(cfg.get("break"), code),
            **common,
        )

    if schedule_kind is ScheduleKind.SHIFTING:
        shifts = []
        for raw in cfg.get("shifts") or []:
            start = parse_time(raw.get("start_time"), "shift.start_time", code)
            end = parse_time(raw.get("end_time"), "shift.end_time", code)
            if not raw.get("name") or start is None or end is None:
                raise ScheduleConfigError(code, "every shift needs name, start_time and end_time")
            shifts.append(
                ShiftWindow(
                    name=str(raw["name"]),
                    start_time=start,
                    end_time=end,
                    break_rule=_break_rule(raw.get("break"), code),
                )
            )
        if not shifts:
            raise ScheduleConfigError(code, "shifting schedules need at least one shift")
        return ShiftingSchedule(
            work_days=_work_days(cfg.get("work_days"), EVERY_DAY, code),
            shifts=tuple(shifts),
            **common,
        )

    half_day = cfg.get("half_day") or {}
    half_day_weekday = None
    if half_day.get("enabled") and half_day.get("day"):
        day_name = str(half_day["day"]).strip().lower()
        if day_name not in WEEKDAYS:
            raise ScheduleConfigError(code, f"unknown half-day '{half_day['day']}'")
        half_day_weekday = WEEKDAYS.index(day_name)
    return CompressedSchedule(
        work_days=_work_days(cfg.get("work_days"), frozenset(range(4)), code),
        daily_hours=_decimal(cfg.get("daily_hours"), "daily_hours", code, "10"),
        start_time=parse_time(cfg.get("start_time"), "start_time", code),
        half_day_weekday=half_day_weekday,
        half_day_hours=_decimal(half_day.get("hours"), "half_day.hours", code)
        if half_day_weekday is not None
        else None,
        break_rule=_break_rule(cfg.get("break"), code),
        **common,
    )


def parse_schedule(row: ScheduleRow) -> ScheduleConfig:
    """Build the schedule variant for a stored ``WorkSchedule`` row."""
    return parse_schedule_config(
        row.schedule_type,
        row.time_configuration,
        row.overtime_rules,
        row.night_differential,
        schedule_id=row.work_schedule_id,
        code=row.code,
        name=row.name,
    )
