"""League JSON API (/api/*).

Every handler first asks the PeriodResolver for the applicable period, then
runs period-scoped repository calls with that id. Writes always target the
current period; listings accept ?period=YYYY-MM-DD for history.

Domain errors (InvalidInput, NotFound, ...) are raised as exceptions and
mapped to status codes by the handlers registered in app.main.
"""

import logging
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import get_settings
from app.dependencies import get_async_session, get_period_resolver, get_repository
from app.errors import NotFound
from app.league import LeagueRepository
from app.models import SQL_INT_MAX
from app.periods import PeriodResolver, ResolvedPeriod, format_duration
from app.periods import store as period_store
from app.periods.windows import to_aware_utc
from app.security import limiter
from app.telemetry.sentry import tag_period

router = APIRouter(prefix="/api", tags=["league"])
# Rate-limit strings are bound when the decorators run, at import time;
# create_app(settings) can only toggle RATE_LIMIT_ENABLED.
settings = get_settings()
logger = logging.getLogger(__name__)


# =============================================================================
# Request / response models
# =============================================================================


class AddTeamRequest(BaseModel):
    name: str


class TeamResponse(BaseModel):
    id: int
    name: str


class AddPlayerRequest(BaseModel):
    name: str
    team_id: int = Field(gt=0, le=SQL_INT_MAX)
    goals: int = Field(default=0, ge=0, le=SQL_INT_MAX)
    assists: int = Field(default=0, ge=0, le=SQL_INT_MAX)


class DeletePlayerRequest(BaseModel):
    name: str
    team_id: int = Field(gt=0, le=SQL_INT_MAX)


class PlayerResponse(BaseModel):
    name: str
    team_id: int
    goals: int
    assists: int


class AddMatchRequest(BaseModel):
    team1_id: int = Field(gt=0, le=SQL_INT_MAX)
    team2_id: int = Field(gt=0, le=SQL_INT_MAX)
    score1: int = Field(default=0, ge=0, le=SQL_INT_MAX)
    score2: int = Field(default=0, ge=0, le=SQL_INT_MAX)


class DeleteMatchRequest(BaseModel):
    id: int = Field(gt=0, le=SQL_INT_MAX)


class MatchCreatedResponse(BaseModel):
    id: int


class MatchResponse(BaseModel):
    id: int
    team1_id: int
    team2_id: int
    score1: int
    score2: int
    played_at: datetime


class OkResponse(BaseModel):
    ok: bool = True


class PeriodResponse(BaseModel):
    id: int
    label: str
    name: str  # same as label; kept for front-ends using the old field
    start: datetime
    end: datetime
    is_active: bool


class CurrentPeriodResponse(BaseModel):
    period: PeriodResponse
    elapsed_hours: float
    remaining_hours: float
    auto_reset_in: str


# =============================================================================
# Helpers
# =============================================================================


def _period_response(period: ResolvedPeriod, now: datetime) -> PeriodResponse:
    return PeriodResponse(
        id=period.id,
        label=period.label,
        name=period.label,
        start=period.start_at,
        end=period.end_at,
        is_active=period.is_active_at(now),
    )


async def _current_period(session: AsyncSession, resolver: PeriodResolver) -> ResolvedPeriod:
    resolved = await resolver.resolve_current(session)
    tag_period(resolved.label)
    return resolved


async def _period_for_query(
    period: Optional[str],
    session: AsyncSession,
    resolver: PeriodResolver,
) -> ResolvedPeriod:
    """Current period, or the period of ?period=YYYY-MM-DD when given."""
    if period is None or not period.strip():
        return await _current_period(session, resolver)
    resolved = await resolver.resolve_for_date(session, period)
    logger.debug(f"[API] Historical lookup for period {resolved.label} (id={resolved.id})")
    tag_period(resolved.label)
    return resolved


# =============================================================================
# Teams
# =============================================================================


@router.post("/add-team", response_model=TeamResponse)
@limiter.limit(settings.RATE_LIMIT_WRITES)
async def add_team(
    request: Request,
    body: AddTeamRequest,
    session: AsyncSession = Depends(get_async_session),
    resolver: PeriodResolver = Depends(get_period_resolver),
    repo: LeagueRepository = Depends(get_repository),
):
    """Register a team in the current period (idempotent by name)."""
    period = await _current_period(session, resolver)
    team = await repo.upsert_team(period.id, body.name)
    await session.commit()
    return TeamResponse(id=team.id, name=team.name)


@router.get("/list-teams", response_model=list[TeamResponse])
async def list_teams(
    period: Optional[str] = Query(None, description="YYYY-MM-DD"),
    session: AsyncSession = Depends(get_async_session),
    resolver: PeriodResolver = Depends(get_period_resolver),
    repo: LeagueRepository = Depends(get_repository),
):
    resolved = await _period_for_query(period, session, resolver)
    teams = await repo.list_teams(resolved.id)
    return [TeamResponse(id=t.id, name=t.name) for t in teams]


# =============================================================================
# Players
# =============================================================================


@router.post("/add-player", response_model=OkResponse)
@limiter.limit(settings.RATE_LIMIT_WRITES)
async def add_player(
    request: Request,
    body: AddPlayerRequest,
    session: AsyncSession = Depends(get_async_session),
    resolver: PeriodResolver = Depends(get_period_resolver),
    repo: LeagueRepository = Depends(get_repository),
):
    """Insert or overwrite a player's goals/assists for a current-period team."""
    period = await _current_period(session, resolver)
    await repo.upsert_player(period.id, body.team_id, body.name, body.goals, body.assists)
    await session.commit()
    return OkResponse()


@router.get("/players", response_model=list[PlayerResponse])
async def list_players(
    period: Optional[str] = Query(None, description="YYYY-MM-DD"),
    session: AsyncSession = Depends(get_async_session),
    resolver: PeriodResolver = Depends(get_period_resolver),
    repo: LeagueRepository = Depends(get_repository),
):
    """Leaderboard of the period (goals + assists, then goals, then name)."""
    resolved = await _period_for_query(period, session, resolver)
    players = await repo.list_players(resolved.id)
    return [
        PlayerResponse(name=p.name, team_id=p.team_id, goals=p.goals, assists=p.assists)
        for p in players
    ]


@router.post("/delete-player", response_model=OkResponse)
@limiter.limit(settings.RATE_LIMIT_WRITES)
async def delete_player(
    request: Request,
    body: DeletePlayerRequest,
    session: AsyncSession = Depends(get_async_session),
    resolver: PeriodResolver = Depends(get_period_resolver),
    repo: LeagueRepository = Depends(get_repository),
):
    period = await _current_period(session, resolver)
    if not await repo.delete_player(period.id, body.team_id, body.name):
        raise NotFound("player not found in current period")
    await session.commit()
    return OkResponse()


# =============================================================================
# Matches
# =============================================================================


@router.post("/add-match", response_model=MatchCreatedResponse)
@limiter.limit(settings.RATE_LIMIT_WRITES)
async def add_match(
    request: Request,
    body: AddMatchRequest,
    session: AsyncSession = Depends(get_async_session),
    resolver: PeriodResolver = Depends(get_period_resolver),
    repo: LeagueRepository = Depends(get_repository),
):
    """Record a result between two teams of the current period."""
    period = await _current_period(session, resolver)
    match = await repo.record_match(
        period.id,
        body.team1_id,
        body.team2_id,
        body.score1,
        body.score2,
        played_at=resolver.now(),
    )
    await session.commit()
    return MatchCreatedResponse(id=match.id)


@router.get("/matches", response_model=list[MatchResponse])
async def list_matches(
    period: Optional[str] = Query(None, description="YYYY-MM-DD"),
    session: AsyncSession = Depends(get_async_session),
    resolver: PeriodResolver = Depends(get_period_resolver),
    repo: LeagueRepository = Depends(get_repository),
):
    resolved = await _period_for_query(period, session, resolver)
    matches = await repo.list_matches(resolved.id)
    return [
        MatchResponse(
            id=m.id,
            team1_id=m.team1_id,
            team2_id=m.team2_id,
            score1=m.score1,
            score2=m.score2,
            played_at=to_aware_utc(m.played_at),
        )
        for m in matches
    ]


@router.post("/delete-match", response_model=OkResponse)
@limiter.limit(settings.RATE_LIMIT_WRITES)
async def delete_match(
    request: Request,
    body: DeleteMatchRequest,
    session: AsyncSession = Depends(get_async_session),
    resolver: PeriodResolver = Depends(get_period_resolver),
    repo: LeagueRepository = Depends(get_repository),
):
    period = await _current_period(session, resolver)
    if not await repo.delete_match(period.id, body.id):
        raise NotFound("match not found in current period")
    await session.commit()
    return OkResponse()


# =============================================================================
# Periods
# =============================================================================


@router.get("/current-period", response_model=CurrentPeriodResponse)
async def current_period(
    period: Optional[str] = Query(None, description="YYYY-MM-DD"),
    session: AsyncSession = Depends(get_async_session),
    resolver: PeriodResolver = Depends(get_period_resolver),
):
    """
    Current period (or the period of ?period=) with its clock.

    For a period that is not active, remaining is zero and elapsed is the
    part of the window already behind us (the full window for past days).
    """
    resolved = await _period_for_query(period, session, resolver)
    now = resolver.now()
    elapsed = resolved.elapsed_at(now)
    remaining = resolved.remaining_at(now)
    return CurrentPeriodResponse(
        period=_period_response(resolved, now),
        elapsed_hours=round(elapsed.total_seconds() / 3600, 4),
        remaining_hours=round(remaining.total_seconds() / 3600, 4),
        auto_reset_in=format_duration(remaining),
    )


@router.get("/list-periods", response_model=list[PeriodResponse])
async def list_periods(
    session: AsyncSession = Depends(get_async_session),
    resolver: PeriodResolver = Depends(get_period_resolver),
):
    """All periods, newest first. Makes sure today's period exists."""
    await _current_period(session, resolver)
    now = resolver.now()
    rows = await period_store.list_periods(session)
    return [_period_response(ResolvedPeriod.from_row(row), now) for row in rows]
