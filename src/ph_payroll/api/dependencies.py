"""FastAPI dependencies for dependency injection."""

from collections.abc import AsyncGenerator
from typing import Annotated

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ph_payroll.config import Settings, get_settings
from ph_payroll.database import init_db
from ph_payroll.services.locking_service import InFlightRegistry, in_flight


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    """Session factory for work that opens its own sessions (payroll runs)."""
    _, factory = init_db()
    return factory


async def get_db_session(
    factory: Annotated[async_sessionmaker[AsyncSession], Depends(get_session_factory)],
) -> AsyncGenerator[AsyncSession, None]:
    """Get database session dependency."""
    async with factory() as session:
        try:
            yield session
        finally:
            await session.close()


def get_registry() -> InFlightRegistry:
    return in_flight


# Type aliases for cleaner dependency injection
DbSession = Annotated[AsyncSession, Depends(get_db_session)]
SessionFactory = Annotated[async_sessionmaker[AsyncSession], Depends(get_session_factory)]
AppSettings = Annotated[Settings, Depends(get_settings)]
Registry = Annotated[InFlightRegistry, Depends(get_registry)]
