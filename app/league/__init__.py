"""Period-scoped league data: teams, players, matches."""

from app.league.repository import LeagueRepository

__all__ = [
    "LeagueRepository",
]
