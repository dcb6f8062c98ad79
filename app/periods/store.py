"""Period table access. Callers own the transaction (commit/rollback)."""

from datetime import datetime
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.db_utils import dialect_insert
from app.models import Period, utcnow


async def ensure_period(
    session: AsyncSession,
    label: str,
    start_at: datetime,
    end_at: datetime,
) -> tuple[Optional[Period], bool]:
    """
    Create-or-fetch the period with exactly this window.

    The INSERT is conflict-do-nothing without a target, so it yields to the
    unique window constraint and (on PostgreSQL) to the overlap exclusion
    constraint alike. Concurrent callers computing the same window converge
    on one row: the first writer wins, the others read it back.

    Returns:
        (period, created). period is None when the insert was suppressed by
        an overlapping row with a different window.
    """
    stmt = (
        dialect_insert(session, Period)
        .values(label=label, start_at=start_at, end_at=end_at, created_at=utcnow())
        .on_conflict_do_nothing()
        .returning(Period.id)
    )
    result = await session.execute(stmt)
    created = result.scalar_one_or_none() is not None

    period = await find_by_window(session, start_at, end_at)
    return period, created


async def find_by_window(
    session: AsyncSession, start_at: datetime, end_at: datetime
) -> Optional[Period]:
    result = await session.execute(
        select(Period).where(Period.start_at == start_at, Period.end_at == end_at)
    )
    return result.scalar_one_or_none()


async def find_covering(session: AsyncSession, instant: datetime) -> Optional[Period]:
    """Period whose [start_at, end_at) contains the naive-UTC instant."""
    result = await session.execute(
        select(Period)
        .where(Period.start_at <= instant, Period.end_at > instant)
        .order_by(Period.start_at.desc())
        .limit(1)
    )
    return result.scalar_one_or_none()


async def get_period(session: AsyncSession, period_id: int) -> Optional[Period]:
    return await session.get(Period, period_id)


async def list_periods(session: AsyncSession) -> list[Period]:
    """All periods, newest window first."""
    result = await session.execute(
        select(Period).order_by(Period.start_at.desc(), Period.id.desc())
    )
    return list(result.scalars().all())
