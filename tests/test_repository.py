"""Tests for period-scoped teams, players and matches."""

from datetime import datetime, timezone

import pytest
from sqlalchemy import delete, func, select

from app.errors import InvalidInput
from app.league import LeagueRepository
from app.models import Match, Period, Player, Team
from app.periods import store

pytestmark = pytest.mark.anyio


@pytest.fixture
async def periods(sessionmaker):
    """Two committed periods: (yesterday_id, today_id)."""
    async with sessionmaker() as session:
        p1, _ = await store.ensure_period(
            session, "2026-10-17", datetime(2026, 10, 17), datetime(2026, 10, 18)
        )
        p2, _ = await store.ensure_period(
            session, "2026-10-18", datetime(2026, 10, 18), datetime(2026, 10, 19)
        )
        await session.commit()
        return p1.id, p2.id


@pytest.fixture
def repo(session):
    return LeagueRepository(session)


async def _count(sessionmaker, model) -> int:
    async with sessionmaker() as session:
        return (await session.execute(select(func.count()).select_from(model))).scalar_one()


class TestTeams:
    async def test_upsert_is_idempotent(self, repo, session, sessionmaker, periods):
        _, today = periods
        first = await repo.upsert_team(today, "Red")
        second = await repo.upsert_team(today, "Red")
        await session.commit()

        assert first.id == second.id
        assert await _count(sessionmaker, Team) == 1

    async def test_name_is_stripped(self, repo, periods):
        _, today = periods
        first = await repo.upsert_team(today, "Red")
        second = await repo.upsert_team(today, "  Red ")
        assert second.id == first.id
        assert second.name == "Red"

    async def test_same_name_in_other_period_is_distinct(self, repo, periods):
        yesterday, today = periods
        old = await repo.upsert_team(yesterday, "Red")
        new = await repo.upsert_team(today, "Red")
        assert old.id != new.id

    @pytest.mark.parametrize("name", ["", "   ", None])
    async def test_empty_name_rejected(self, repo, periods, name):
        _, today = periods
        with pytest.raises(InvalidInput):
            await repo.upsert_team(today, name)

    async def test_list_is_scoped_and_sorted(self, repo, periods):
        yesterday, today = periods
        await repo.upsert_team(today, "Red")
        await repo.upsert_team(today, "Blue")
        await repo.upsert_team(yesterday, "Green")

        assert [t.name for t in await repo.list_teams(today)] == ["Blue", "Red"]
        assert [t.name for t in await repo.list_teams(yesterday)] == ["Green"]

    async def test_list_empty_period(self, repo, periods):
        _, today = periods
        assert await repo.list_teams(today) == []


class TestPlayers:
    async def test_ranking(self, repo, periods):
        """Total desc, then goals desc, then name asc."""
        _, today = periods
        team = await repo.upsert_team(today, "Red")
        await repo.upsert_player(today, team.id, "C", goals=3, assists=0)
        await repo.upsert_player(today, team.id, "B", goals=2, assists=2)
        await repo.upsert_player(today, team.id, "A", goals=3, assists=1)

        assert [p.name for p in await repo.list_players(today)] == ["A", "B", "C"]

    async def test_name_breaks_full_ties(self, repo, periods):
        _, today = periods
        team = await repo.upsert_team(today, "Red")
        await repo.upsert_player(today, team.id, "Zed", goals=1, assists=1)
        await repo.upsert_player(today, team.id, "Amy", goals=1, assists=1)

        assert [p.name for p in await repo.list_players(today)] == ["Amy", "Zed"]

    async def test_upsert_overwrites_stats(self, repo, session, sessionmaker, periods):
        _, today = periods
        team = await repo.upsert_team(today, "Red")
        await repo.upsert_player(today, team.id, "Ana", goals=1, assists=0)
        await repo.upsert_player(today, team.id, "Ana", goals=4, assists=2)
        await session.commit()

        players = await repo.list_players(today)
        assert len(players) == 1
        assert (players[0].goals, players[0].assists) == (4, 2)
        assert await _count(sessionmaker, Player) == 1

    async def test_same_name_on_two_teams(self, repo, periods):
        _, today = periods
        red = await repo.upsert_team(today, "Red")
        blue = await repo.upsert_team(today, "Blue")
        await repo.upsert_player(today, red.id, "Ana", goals=1, assists=0)
        await repo.upsert_player(today, blue.id, "Ana", goals=0, assists=1)

        assert len(await repo.list_players(today)) == 2

    async def test_listing_is_scoped_to_period(self, repo, periods):
        yesterday, today = periods
        old = await repo.upsert_team(yesterday, "Red")
        await repo.upsert_player(yesterday, old.id, "Ana", goals=5, assists=5)

        assert await repo.list_players(today) == []

    async def test_team_of_other_period_rejected(self, repo, periods):
        yesterday, today = periods
        old = await repo.upsert_team(yesterday, "Red")
        with pytest.raises(InvalidInput):
            await repo.upsert_player(today, old.id, "Ana", goals=1, assists=0)

    async def test_unknown_team_rejected(self, repo, periods):
        _, today = periods
        with pytest.raises(InvalidInput):
            await repo.upsert_player(today, 9999, "Ana", goals=1, assists=0)

    @pytest.mark.parametrize("goals, assists", [(-1, 0), (0, -1), (True, 0), (2**31, 0), (0, 2**70)])
    async def test_invalid_counts_rejected(self, repo, periods, goals, assists):
        _, today = periods
        team = await repo.upsert_team(today, "Red")
        with pytest.raises(InvalidInput):
            await repo.upsert_player(today, team.id, "Ana", goals=goals, assists=assists)

    async def test_delete(self, repo, periods):
        _, today = periods
        team = await repo.upsert_team(today, "Red")
        await repo.upsert_player(today, team.id, "Ana", goals=1, assists=0)

        assert await repo.delete_player(today, team.id, "Ana") is True
        assert await repo.delete_player(today, team.id, "Ana") is False

    async def test_delete_outside_period_is_not_found(self, repo, periods):
        yesterday, today = periods
        old = await repo.upsert_team(yesterday, "Red")
        await repo.upsert_player(yesterday, old.id, "Ana", goals=1, assists=0)

        assert await repo.delete_player(today, old.id, "Ana") is False
        assert len(await repo.list_players(yesterday)) == 1


class TestMatches:
    async def test_record_and_list(self, repo, periods):
        _, today = periods
        red = await repo.upsert_team(today, "Red")
        blue = await repo.upsert_team(today, "Blue")

        match = await repo.record_match(today, red.id, blue.id, 3, 1)

        matches = await repo.list_matches(today)
        assert [m.id for m in matches] == [match.id]
        assert (matches[0].score1, matches[0].score2) == (3, 1)
        assert matches[0].period_id == today

    async def test_chronological_order(self, repo, periods):
        _, today = periods
        red = await repo.upsert_team(today, "Red")
        blue = await repo.upsert_team(today, "Blue")

        late = await repo.record_match(
            today, red.id, blue.id, 1, 0,
            played_at=datetime(2026, 10, 18, 20, 0, tzinfo=timezone.utc),
        )
        early = await repo.record_match(
            today, blue.id, red.id, 2, 2,
            played_at=datetime(2026, 10, 18, 9, 0, tzinfo=timezone.utc),
        )

        assert [m.id for m in await repo.list_matches(today)] == [early.id, late.id]

    async def test_self_match_rejected(self, repo, periods):
        _, today = periods
        red = await repo.upsert_team(today, "Red")
        with pytest.raises(InvalidInput):
            await repo.record_match(today, red.id, red.id, 1, 0)

    async def test_self_match_rejected_before_lookup(self, repo, periods):
        """Identical ids fail even when the team does not exist."""
        _, today = periods
        with pytest.raises(InvalidInput, match="itself"):
            await repo.record_match(today, 9999, 9999, -5, 0)

    async def test_unknown_team_rejected(self, repo, periods):
        _, today = periods
        red = await repo.upsert_team(today, "Red")
        with pytest.raises(InvalidInput):
            await repo.record_match(today, red.id, 9999, 1, 0)

    async def test_teams_from_different_periods_rejected(self, repo, periods):
        yesterday, today = periods
        old = await repo.upsert_team(yesterday, "Red")
        new = await repo.upsert_team(today, "Blue")
        with pytest.raises(InvalidInput, match="different periods"):
            await repo.record_match(today, old.id, new.id, 1, 0)

    async def test_expired_period_teams_rejected(self, repo, periods):
        yesterday, today = periods
        red = await repo.upsert_team(yesterday, "Red")
        blue = await repo.upsert_team(yesterday, "Blue")
        with pytest.raises(InvalidInput):
            await repo.record_match(today, red.id, blue.id, 1, 0)

    async def test_negative_score_rejected(self, repo, periods):
        _, today = periods
        red = await repo.upsert_team(today, "Red")
        blue = await repo.upsert_team(today, "Blue")
        with pytest.raises(InvalidInput):
            await repo.record_match(today, red.id, blue.id, -1, 0)

    async def test_delete(self, repo, periods):
        _, today = periods
        red = await repo.upsert_team(today, "Red")
        blue = await repo.upsert_team(today, "Blue")
        match = await repo.record_match(today, red.id, blue.id, 1, 0)

        assert await repo.delete_match(today, match.id) is True
        assert await repo.list_matches(today) == []

    async def test_delete_nonexistent_leaves_rows(self, repo, session, sessionmaker, periods):
        _, today = periods
        red = await repo.upsert_team(today, "Red")
        blue = await repo.upsert_team(today, "Blue")
        await repo.record_match(today, red.id, blue.id, 1, 0)
        await session.commit()

        assert await repo.delete_match(today, 9999) is False
        await session.commit()
        assert await _count(sessionmaker, Match) == 1

    async def test_delete_outside_period_is_not_found(self, repo, periods):
        yesterday, today = periods
        red = await repo.upsert_team(yesterday, "Red")
        blue = await repo.upsert_team(yesterday, "Blue")
        match = await repo.record_match(yesterday, red.id, blue.id, 1, 0)

        assert await repo.delete_match(today, match.id) is False


class TestCascade:
    async def test_deleting_period_removes_its_data(self, repo, session, sessionmaker, periods):
        yesterday, today = periods
        red = await repo.upsert_team(yesterday, "Red")
        blue = await repo.upsert_team(yesterday, "Blue")
        await repo.upsert_player(yesterday, red.id, "Ana", goals=1, assists=0)
        await repo.record_match(yesterday, red.id, blue.id, 1, 0)
        keep = await repo.upsert_team(today, "Red")
        await session.commit()

        await session.execute(delete(Period).where(Period.id == yesterday))
        await session.commit()

        assert await _count(sessionmaker, Player) == 0
        assert await _count(sessionmaker, Match) == 0
        async with sessionmaker() as fresh:
            remaining = await LeagueRepository(fresh).list_teams(today)
        assert [t.id for t in remaining] == [keep.id]
