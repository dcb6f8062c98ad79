"""
Period-scoped access to teams, players and matches.

Every method takes the owning period id explicitly and never reads or
writes across period boundaries. Methods do not commit: the request
handler commits once after the last write.
"""

import logging
from datetime import datetime
from typing import Optional

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.db_utils import upsert_statement
from app.errors import InvalidInput
from app.models import SQL_INT_MAX, Match, Player, Team, utcnow
from app.periods.windows import to_naive_utc

logger = logging.getLogger(__name__)


def _clean_name(name: Optional[str], what: str) -> str:
    cleaned = (name or "").strip()
    if not cleaned:
        raise InvalidInput(f"{what} name must not be empty")
    return cleaned


def _check_count(value: int, field: str) -> int:
    # bool is an int subclass; True goals is not a stat line
    if isinstance(value, bool) or not isinstance(value, int) or not 0 <= value <= SQL_INT_MAX:
        raise InvalidInput(f"{field} must be an integer between 0 and {SQL_INT_MAX}")
    return value


class LeagueRepository:
    """Teams, players and matches of one database session."""

    def __init__(self, session: AsyncSession):
        self.session = session

    # ------------------------------------------------------------------
    # Teams
    # ------------------------------------------------------------------

    async def upsert_team(self, period_id: int, name: str) -> Team:
        """
        Register a team in the period; re-registering returns the same row.

        Single INSERT ... ON CONFLICT (name, period_id) DO UPDATE so the id
        comes back on both paths, also when two requests race.
        """
        name = _clean_name(name, "team")
        stmt = upsert_statement(
            self.session,
            Team,
            {"name": name, "period_id": period_id, "created_at": utcnow()},
            conflict_columns=["name", "period_id"],
            update_columns=["name"],
        ).returning(Team.id, Team.name, Team.period_id)
        row = (await self.session.execute(stmt)).one()
        return Team(id=row.id, name=row.name, period_id=row.period_id)

    async def get_team(self, team_id: int) -> Optional[Team]:
        result = await self.session.execute(select(Team).where(Team.id == team_id))
        return result.scalar_one_or_none()

    async def list_teams(self, period_id: int) -> list[Team]:
        result = await self.session.execute(
            select(Team)
            .where(Team.period_id == period_id)
            .order_by(Team.name.asc(), Team.id.asc())
        )
        return list(result.scalars().all())

    async def _team_in_period(self, team_id: int, period_id: int, label: str = "team") -> Team:
        team = await self.get_team(team_id)
        if team is None:
            raise InvalidInput(f"{label} not found")
        if team.period_id != period_id:
            raise InvalidInput(f"{label} is not in the current period")
        return team

    # ------------------------------------------------------------------
    # Players
    # ------------------------------------------------------------------

    async def upsert_player(
        self,
        period_id: int,
        team_id: int,
        name: str,
        goals: int,
        assists: int,
    ) -> None:
        """Insert a stat line, or overwrite goals/assists for (team, name)."""
        name = _clean_name(name, "player")
        _check_count(goals, "goals")
        _check_count(assists, "assists")
        await self._team_in_period(team_id, period_id)

        stmt = upsert_statement(
            self.session,
            Player,
            {"name": name, "team_id": team_id, "goals": goals, "assists": assists},
            conflict_columns=["team_id", "name"],
            update_columns=["goals", "assists"],
        )
        await self.session.execute(stmt)

    async def list_players(self, period_id: int) -> list[Player]:
        """
        Leaderboard: goals + assists desc, then goals desc, then name asc.
        The id is a last tiebreak so equal rows still come back in a fixed order.
        """
        result = await self.session.execute(
            select(Player)
            .join(Team, Player.team_id == Team.id)
            .where(Team.period_id == period_id)
            .order_by(
                (Player.goals + Player.assists).desc(),
                Player.goals.desc(),
                Player.name.asc(),
                Player.id.asc(),
            )
        )
        return list(result.scalars().all())

    async def delete_player(self, period_id: int, team_id: int, name: str) -> bool:
        """True if a player of that team, inside this period, was removed."""
        name = _clean_name(name, "player")
        stmt = (
            delete(Player)
            .where(
                Player.team_id == team_id,
                Player.name == name,
                Player.team_id.in_(select(Team.id).where(Team.period_id == period_id)),
            )
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        return (result.rowcount or 0) > 0

    # ------------------------------------------------------------------
    # Matches
    # ------------------------------------------------------------------

    async def record_match(
        self,
        period_id: int,
        team1_id: int,
        team2_id: int,
        score1: int,
        score2: int,
        played_at: Optional[datetime] = None,
    ) -> Match:
        """
        Insert one match between two distinct teams of the given period.

        Raises InvalidInput for a self-match, unknown teams, teams from two
        different periods, or teams outside the given period.
        """
        if team1_id == team2_id:
            raise InvalidInput("a team cannot play against itself")
        _check_count(score1, "score1")
        _check_count(score2, "score2")

        team1 = await self.get_team(team1_id)
        if team1 is None:
            raise InvalidInput("team1 not found")
        team2 = await self.get_team(team2_id)
        if team2 is None:
            raise InvalidInput("team2 not found")
        if team1.period_id != team2.period_id:
            raise InvalidInput("teams are from different periods")
        if team1.period_id != period_id:
            raise InvalidInput("teams are not in the current period")

        match = Match(
            team1_id=team1_id,
            team2_id=team2_id,
            score1=score1,
            score2=score2,
            played_at=to_naive_utc(played_at) if played_at else utcnow(),
            period_id=period_id,
        )
        self.session.add(match)
        await self.session.flush()
        logger.info(
            f"[LEAGUE] Match {match.id} recorded in period {period_id}: "
            f"{team1.name} {score1}-{score2} {team2.name}"
        )
        return match

    async def delete_match(self, period_id: int, match_id: int) -> bool:
        """True if a match scoped to this period was removed."""
        stmt = (
            delete(Match)
            .where(Match.id == match_id, Match.period_id == period_id)
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        return (result.rowcount or 0) > 0

    async def list_matches(self, period_id: int) -> list[Match]:
        """Chronological: played_at asc, then id asc."""
        result = await self.session.execute(
            select(Match)
            .where(Match.period_id == period_id)
            .order_by(Match.played_at.asc(), Match.id.asc())
        )
        return list(result.scalars().all())
