"""FastAPI dependencies: per-request sessions and the app-scoped resolver.

The engine, session factory and PeriodResolver live on app.state (built by
create_app), so tests and multiple app instances never share them.
"""

from typing import AsyncGenerator

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from app.league import LeagueRepository
from app.periods import PeriodResolver


async def get_async_session(request: Request) -> AsyncGenerator[AsyncSession, None]:
    """Dependency for getting async database sessions."""
    async with request.app.state.sessionmaker() as session:
        try:
            yield session
        except Exception:
            await session.rollback()
            raise


def get_period_resolver(request: Request) -> PeriodResolver:
    return request.app.state.period_resolver


def get_repository(session: AsyncSession = Depends(get_async_session)) -> LeagueRepository:
    return LeagueRepository(session)
