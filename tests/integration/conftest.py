"""Integration test fixtures: the API wired to the test database."""

from collections.abc import AsyncGenerator
from datetime import datetime

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from ph_payroll.api.app import create_app
from ph_payroll.api.dependencies import get_registry, get_session_factory
from ph_payroll.config import get_settings
from ph_payroll.models import RawPunch


@pytest.fixture
async def client(session_factory, settings, registry) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client against the app, sharing the test engine and registry."""
    app = create_app()
    app.dependency_overrides[get_session_factory] = lambda: session_factory
    app.dependency_overrides[get_settings] = lambda: settings
    app.dependency_overrides[get_registry] = lambda: registry

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()


@pytest.fixture
def add_punches(session: AsyncSession):
    """Factory for raw punches: ``await add_punches(employee_id, [(datetime, "in"), ...])``."""

    async def factory(employee_id, punches: list[tuple[datetime, str]]) -> list[RawPunch]:
        rows = [
            RawPunch(employee_id=employee_id, punched_at=at, direction=direction)
            for at, direction in punches
        ]
        session.add_all(rows)
        await session.commit()
        return rows

    return factory


@pytest.fixture
def workweek_punches():
    """In 08:00, out 17:00 for each weekday in a list of ISO dates."""

    def build(days: list[str]) -> list[tuple[datetime, str]]:
        punches = []
        for day in days:
            d = datetime.fromisoformat(day)
            punches.append((d.replace(hour=8), "in"))
            punches.append((d.replace(hour=17), "out"))
        return punches

    return build
