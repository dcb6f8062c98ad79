"""Database models using SQLModel.

All timestamps are stored as naive UTC. Ownership is by foreign key:
periods -> teams -> players, and matches -> (two teams, one period).
Deleting a period cascades to everything attributed to it.
"""

from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import CheckConstraint, Column, DateTime, ForeignKey, Integer, UniqueConstraint
from sqlmodel import Field, SQLModel


# Largest value an INTEGER column holds on PostgreSQL (and a safe bound on SQLite)
SQL_INT_MAX = 2_147_483_647


def utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def _naive_utc_column(index: bool = False) -> Column:
    """Timestamp column without tz info; values are UTC by convention."""
    return Column(DateTime(timezone=False), nullable=False, index=index)


class Period(SQLModel, table=True):
    """A [start_at, end_at) window that owns teams, players and matches."""

    __tablename__ = "periods"
    __table_args__ = (
        UniqueConstraint("start_at", "end_at", name="uq_periods_window"),
        CheckConstraint("end_at > start_at", name="ck_periods_bounds"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    label: str = Field(max_length=64, description="Local calendar date, YYYY-MM-DD")
    # Inclusive start, exclusive end
    start_at: datetime = Field(sa_column=_naive_utc_column(index=True))
    end_at: datetime = Field(sa_column=_naive_utc_column())
    created_at: datetime = Field(default_factory=utcnow, sa_column=_naive_utc_column())


class Team(SQLModel, table=True):
    """Team registered for a single period. Names repeat across periods."""

    __tablename__ = "teams"
    __table_args__ = (
        UniqueConstraint("name", "period_id", name="uq_teams_name_period"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    name: str = Field(max_length=255)
    period_id: int = Field(
        sa_column=Column(
            Integer,
            ForeignKey("periods.id", ondelete="CASCADE"),
            nullable=False,
            index=True,
        )
    )
    created_at: datetime = Field(default_factory=utcnow, sa_column=_naive_utc_column())


class Player(SQLModel, table=True):
    """Player stats line. The owning team fixes the period."""

    __tablename__ = "players"
    __table_args__ = (
        UniqueConstraint("team_id", "name", name="uq_players_team_name"),
        CheckConstraint("goals >= 0", name="ck_players_goals"),
        CheckConstraint("assists >= 0", name="ck_players_assists"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    name: str = Field(max_length=255)
    team_id: int = Field(
        sa_column=Column(
            Integer,
            ForeignKey("teams.id", ondelete="CASCADE"),
            nullable=False,
            index=True,
        )
    )
    goals: int = Field(default=0)
    assists: int = Field(default=0)


class Match(SQLModel, table=True):
    """Single result between two distinct teams of the same period."""

    __tablename__ = "matches"
    __table_args__ = (
        CheckConstraint("team1_id <> team2_id", name="ck_matches_distinct_teams"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    team1_id: int = Field(
        sa_column=Column(Integer, ForeignKey("teams.id", ondelete="CASCADE"), nullable=False)
    )
    team2_id: int = Field(
        sa_column=Column(Integer, ForeignKey("teams.id", ondelete="CASCADE"), nullable=False)
    )
    score1: int = Field(default=0)
    score2: int = Field(default=0)
    played_at: datetime = Field(default_factory=utcnow, sa_column=_naive_utc_column(index=True))
    period_id: int = Field(
        sa_column=Column(
            Integer,
            ForeignKey("periods.id", ondelete="CASCADE"),
            nullable=False,
            index=True,
        )
    )
