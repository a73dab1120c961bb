"""Pytest fixtures for payroll engine tests."""

from __future__ import annotations

import dataclasses
from datetime import date, timedelta
from decimal import Decimal
from typing import Any, AsyncGenerator
from uuid import UUID

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from ph_payroll.config import Settings
from ph_payroll.database import make_session_factory
from ph_payroll.models import (
    Base,
    DailyTimeRecord,
    Employee,
    EmployeeCompensation,
    EmployeeScheduleAssignment,
    PayrollPeriod,
    WorkSchedule,
)
from ph_payroll.seeds import seed_statutory_tables
from ph_payroll.services.locking_service import InFlightRegistry
from ph_payroll.services.period_service import PeriodService

# In-memory SQLite shared by every session of a test
# For advisory locks, use a test Postgres database
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

DAY_SHIFT_CONFIG = {
    "work_days": ["monday", "tuesday", "wednesday", "thursday", "friday"],
    "start_time": "08:00",
    "end_time": "17:00",
    "break": {"start_time": "12:00", "duration_minutes": 60},
}


@pytest.fixture
async def engine():
    """Create test database engine."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(engine) -> async_sessionmaker[AsyncSession]:
    return make_session_factory(engine)


@pytest.fixture
async def session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Create a database session for each test."""
    async with session_factory() as session:
        yield session
        await session.rollback()


@pytest.fixture
def settings() -> Settings:
    """Settings pointed at the test database; one employee at a time."""
    return dataclasses.replace(
        Settings.from_env(),
        database_url=TEST_DATABASE_URL,
        payroll_concurrency=1,
        employee_timeout_seconds=30.0,
        sss_split_policy="even",
        philhealth_split_policy="even",
        pagibig_split_policy="even",
    )


@pytest.fixture
def registry() -> InFlightRegistry:
    """A registry per test; the process-wide one is bound to one event loop."""
    return InFlightRegistry()


@pytest.fixture
async def statutory_tables(session: AsyncSession) -> int:
    """Seed SSS, PhilHealth, Pag-IBIG, and withholding tax tables."""
    created = await seed_statutory_tables(session)
    await session.commit()
    return created


@pytest.fixture
async def day_schedule(session: AsyncSession) -> WorkSchedule:
    """Monday to Friday, 08:00-17:00 with a 12:00 one-hour lunch."""
    schedule = WorkSchedule(
        code="DAY-0800",
        name="Day shift 8-5",
        schedule_type="fixed",
        time_configuration=DAY_SHIFT_CONFIG,
        overtime_rules={"regular_multiplier": "1.25", "rest_day_multiplier": "1.30"},
        night_differential={"enabled": True, "start_time": "22:00", "end_time": "06:00"},
    )
    session.add(schedule)
    await session.commit()
    return schedule


async def _create_employee(
    session: AsyncSession,
    employee_number: str,
    basic_pay: Decimal = Decimal("30000"),
    pay_type: str = "monthly",
    schedule: WorkSchedule | None = None,
    first_name: str = "Juan",
    last_name: str = "Dela Cruz",
) -> Employee:
    """Employee with compensation from 2024 and an optional open-ended schedule."""
    employee = Employee(
        employee_number=employee_number,
        first_name=first_name,
        last_name=last_name,
        status="active",
    )
    session.add(employee)
    await session.flush()

    session.add(
        EmployeeCompensation(
            employee_id=employee.employee_id,
            basic_pay=basic_pay,
            pay_type=pay_type,
            effective_date=date(2024, 1, 1),
        )
    )
    if schedule is not None:
        session.add(
            EmployeeScheduleAssignment(
                employee_id=employee.employee_id,
                work_schedule_id=schedule.work_schedule_id,
                effective_date=date(2024, 1, 1),
            )
        )
    await session.commit()
    return employee


@pytest.fixture
async def employee(session: AsyncSession, day_schedule: WorkSchedule) -> Employee:
    """Monthly-paid employee earning 30,000 on the day schedule."""
    return await _create_employee(session, "EMP-001", schedule=day_schedule)


@pytest.fixture
async def open_period(session: AsyncSession, registry: InFlightRegistry) -> PayrollPeriod:
    """Open semi-monthly period, 1-15 March 2025."""
    service = PeriodService(session, registry)
    period = await service.create_period(
        name="March 2025 - 1st Half",
        cutoff_start=date(2025, 3, 1),
        cutoff_end=date(2025, 3, 15),
        pay_date=date(2025, 3, 25),
        pay_frequency="semi_monthly",
        period_number=5,
        actor="test",
    )
    period = await service.open_period(period.payroll_period_id, actor="test")
    await session.commit()
    return period


async def _add_attendance(
    session: AsyncSession,
    employee_id: UUID,
    schedule_id: UUID | None,
    start: date,
    end: date,
    overrides: dict[str, dict[str, Any]] | None = None,
) -> list[DailyTimeRecord]:
    """Full attendance: present 480 minutes on weekdays, rest day on weekends.

    ``overrides`` maps an ISO date to field values for that day.
    """
    records = []
    current = start
    while current <= end:
        is_weekend = current.weekday() >= 5
        fields = {
            "status": "rest_day" if is_weekend else "present",
            "work_minutes": 0 if is_weekend else 480,
            "break_minutes": 0 if is_weekend else 60,
            "is_rest_day": is_weekend,
        }
        fields.update((overrides or {}).get(current.isoformat(), {}))
        record = DailyTimeRecord(
            employee_id=employee_id,
            work_date=current,
            work_schedule_id=schedule_id,
            **fields,
        )
        session.add(record)
        records.append(record)
        current += timedelta(days=1)
    await session.commit()
    return records


@pytest.fixture
def make_employee(session: AsyncSession):
    """Factory for extra employees: ``await make_employee("EMP-002", ...)``."""

    async def factory(employee_number: str, **kwargs: Any) -> Employee:
        return await _create_employee(session, employee_number, **kwargs)

    return factory


@pytest.fixture
def make_attendance(session: AsyncSession):
    """Factory for DTR rows: ``await make_attendance(employee_id, schedule_id, start, end)``."""

    async def factory(
        employee_id: UUID,
        schedule_id: UUID | None,
        start: date,
        end: date,
        overrides: dict[str, dict[str, Any]] | None = None,
    ) -> list[DailyTimeRecord]:
        return await _add_attendance(session, employee_id, schedule_id, start, end, overrides)

    return factory
