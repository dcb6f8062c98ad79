"""Tests for the periods table: create-or-fetch and window constraints."""

from datetime import datetime

import pytest
from sqlalchemy import DateTime
from sqlalchemy.exc import IntegrityError
from sqlmodel import SQLModel

from app.models import Period
from app.periods import store

pytestmark = pytest.mark.anyio

DAY1 = (datetime(2026, 10, 17, 0, 0), datetime(2026, 10, 18, 0, 0))
DAY2 = (datetime(2026, 10, 18, 0, 0), datetime(2026, 10, 19, 0, 0))


class TestEnsurePeriod:
    async def test_first_call_creates(self, session):
        period, created = await store.ensure_period(session, "2026-10-17", *DAY1)
        await session.commit()

        assert created is True
        assert period.id is not None
        assert period.label == "2026-10-17"
        assert (period.start_at, period.end_at) == DAY1

    async def test_second_call_fetches_same_row(self, session):
        first, _ = await store.ensure_period(session, "2026-10-17", *DAY1)
        await session.commit()
        second, created = await store.ensure_period(session, "2026-10-17", *DAY1)
        await session.commit()

        assert created is False
        assert second.id == first.id
        assert len(await store.list_periods(session)) == 1


class TestConstraints:
    async def test_duplicate_window_rejected(self, session):
        await store.ensure_period(session, "2026-10-17", *DAY1)
        await session.commit()

        session.add(Period(label="dup", start_at=DAY1[0], end_at=DAY1[1]))
        with pytest.raises(IntegrityError):
            await session.flush()
        await session.rollback()

    async def test_empty_window_rejected(self, session):
        session.add(Period(label="bad", start_at=DAY1[1], end_at=DAY1[0]))
        with pytest.raises(IntegrityError):
            await session.flush()
        await session.rollback()


class TestLookups:
    async def test_find_covering_is_half_open(self, session):
        p1, _ = await store.ensure_period(session, "2026-10-17", *DAY1)
        p2, _ = await store.ensure_period(session, "2026-10-18", *DAY2)
        await session.commit()

        assert (await store.find_covering(session, datetime(2026, 10, 17, 23, 59))).id == p1.id
        # The boundary instant belongs to the later window only
        assert (await store.find_covering(session, datetime(2026, 10, 18, 0, 0))).id == p2.id
        assert await store.find_covering(session, datetime(2026, 10, 19, 0, 0)) is None

    async def test_list_periods_newest_first(self, session):
        await store.ensure_period(session, "2026-10-17", *DAY1)
        await store.ensure_period(session, "2026-10-18", *DAY2)
        await session.commit()

        labels = [p.label for p in await store.list_periods(session)]
        assert labels == ["2026-10-18", "2026-10-17"]

    async def test_get_period(self, session):
        p1, _ = await store.ensure_period(session, "2026-10-17", *DAY1)
        await session.commit()

        assert (await store.get_period(session, p1.id)).label == "2026-10-17"
        assert await store.get_period(session, 9999) is None


class TestTimestampColumns:
    """Timestamps are stored as naive UTC whatever sqlmodel maps datetime to."""

    @pytest.mark.parametrize(
        "table, column",
        [
            ("periods", "start_at"),
            ("periods", "end_at"),
            ("periods", "created_at"),
            ("teams", "created_at"),
            ("matches", "played_at"),
        ],
    )
    def test_declared_as_naive_datetime(self, table, column):
        column_type = SQLModel.metadata.tables[table].c[column].type
        assert type(column_type) is DateTime
        assert column_type.timezone is False

    async def test_orm_insert_with_naive_values(self, session):
        session.add(Period(label="2026-10-17", start_at=DAY1[0], end_at=DAY1[1]))
        await session.commit()

        row = await store.find_by_window(session, *DAY1)
        assert row.start_at == DAY1[0]
        assert row.created_at.tzinfo is None
