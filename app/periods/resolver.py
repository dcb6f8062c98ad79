"""
Period resolution: which period is "current", and which period owns a date.

Policy: calendar-day windows in a fixed reference timezone (see windows.py).
Because a window is a pure function of the date, resolving the current
period never needs a staleness read or a rotation step: the resolver
computes today's window and create-or-fetches exactly that row. Crossing
local midnight simply makes the next call land on a new window; the old
period keeps the end boundary it was created with.

Usage:
    resolver = PeriodResolver("Asia/Almaty")

    async with sessionmaker() as session:
        period = await resolver.resolve_current(session)
        historical = await resolver.resolve_for_date(session, "2026-10-01")

The resolver owns a short-lived cache of the current period (default 60 s).
The cache is an optimization only: a period is cached after the transaction
that created or read it committed, and a cached value is ignored as soon as
"now" leaves its window, whatever the TTL says.
"""

import asyncio
import logging
from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone
from typing import Callable, Optional
from zoneinfo import ZoneInfo

from sqlalchemy.exc import DBAPIError, IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import is_store_outage
from app.errors import PeriodConflict, StoreUnavailable
from app.models import Period
from app.periods import store
from app.periods.windows import (
    label_for_date,
    local_date,
    parse_period_date,
    to_aware_utc,
    to_naive_utc,
    window_for_date,
)
from app.telemetry import (
    record_period_conflict,
    record_period_created,
    record_period_resolution,
)
from app.utils.cache import SimpleCache

logger = logging.getLogger(__name__)

DEFAULT_CACHE_TTL_SECONDS = 60.0


def system_clock() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class ResolvedPeriod:
    """Immutable snapshot of a committed period row (aware UTC bounds)."""

    id: int
    label: str
    start_at: datetime
    end_at: datetime

    @classmethod
    def from_row(cls, period: Period) -> "ResolvedPeriod":
        return cls(
            id=period.id,
            label=period.label,
            start_at=to_aware_utc(period.start_at),
            end_at=to_aware_utc(period.end_at),
        )

    @property
    def duration(self) -> timedelta:
        return self.end_at - self.start_at

    def covers(self, instant: datetime) -> bool:
        instant = to_aware_utc(instant)
        return self.start_at <= instant < self.end_at

    def is_active_at(self, instant: datetime) -> bool:
        return self.covers(instant)

    def elapsed_at(self, instant: datetime) -> timedelta:
        """Time spent inside the window, clamped to [0, duration]."""
        elapsed = to_aware_utc(instant) - self.start_at
        return min(max(elapsed, timedelta(0)), self.duration)

    def remaining_at(self, instant: datetime) -> timedelta:
        """Time until the window closes; zero for past and future windows."""
        if not self.covers(instant):
            return timedelta(0)
        return self.end_at - to_aware_utc(instant)


class PeriodResolver:
    """Resolves periods for "now" or a calendar date, creating them lazily."""

    def __init__(
        self,
        timezone_name: str,
        cache_ttl_seconds: float = DEFAULT_CACHE_TTL_SECONDS,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.timezone = ZoneInfo(timezone_name)
        self._clock = clock or system_clock
        self._cache = SimpleCache(ttl=cache_ttl_seconds, clock=lambda: self.now().timestamp())
        self._lock = asyncio.Lock()

    def now(self) -> datetime:
        """Current instant as aware UTC."""
        return to_aware_utc(self._clock())

    def today(self) -> date:
        return local_date(self.now(), self.timezone)

    def window_for(self, day: date) -> tuple[datetime, datetime]:
        return window_for_date(day, self.timezone)

    def invalidate(self) -> None:
        self._cache.invalidate()

    def cached_period(self) -> Optional[ResolvedPeriod]:
        """The cached current period, if still fresh and still covering now."""
        hit, period = self._cache.get()
        if hit and period.covers(self.now()):
            return period
        return None

    async def resolve_current(self, session: AsyncSession) -> ResolvedPeriod:
        """
        Return the period covering the present instant, creating it if needed.

        Refreshes are single-flight: concurrent callers that miss the cache
        wait on one lock and reuse the value the first of them committed.
        """
        period = self.cached_period()
        if period is not None:
            record_period_resolution("cache")
            return period

        async with self._lock:
            period = self.cached_period()
            if period is not None:
                record_period_resolution("cache")
                return period

            now = self.now()
            period = await self._resolve_window(
                session,
                local_date(now, self.timezone),
                anchor=to_naive_utc(now),
            )
            self._cache.set(period)

        record_period_resolution("store")
        return period

    async def resolve_for_date(self, session: AsyncSession, day: date | str) -> ResolvedPeriod:
        """
        Return (creating if absent) the period whose window is the given
        local calendar day. Raises InvalidInput for unparseable dates.
        """
        day = parse_period_date(day)
        if day == self.today():
            return await self.resolve_current(session)

        start_at, _ = self.window_for(day)
        return await self._resolve_window(session, day, anchor=start_at)

    async def _resolve_window(
        self, session: AsyncSession, day: date, anchor: datetime
    ) -> ResolvedPeriod:
        """
        Create-or-fetch the row for `day` inside one short transaction.

        `anchor` (naive UTC) is the instant used to recover when the window
        insert was suppressed by an overlapping period: the period covering
        the anchor is returned instead. One retry is made after an integrity
        error (a concurrent writer committed between our insert and read).
        """
        start_at, end_at = self.window_for(day)
        label = label_for_date(day)

        for attempt in (1, 2):
            try:
                row, created = await store.ensure_period(session, label, start_at, end_at)
                if row is None:
                    row = await store.find_covering(session, anchor)
                    if row is None:
                        record_period_conflict("failed")
                        raise PeriodConflict(
                            f"period window for {label} overlaps an existing period"
                        )
                    record_period_conflict("recovered")
                    logger.warning(
                        f"[PERIOD] Window {label} overlaps period {row.id} ({row.label}); "
                        f"using the existing period"
                    )
                resolved = ResolvedPeriod.from_row(row)
                await session.commit()
            except IntegrityError as e:
                await session.rollback()
                if attempt == 2:
                    record_period_conflict("failed")
                    raise PeriodConflict(f"could not create period {label}: {e.orig}") from e
                logger.warning(f"[PERIOD] Integrity conflict creating {label}, retrying once")
                continue
            except DBAPIError as e:
                await session.rollback()
                if is_store_outage(e):
                    raise StoreUnavailable(f"database unavailable: {e.orig}") from e
                raise
            except PeriodConflict:
                await session.rollback()
                raise

            if created:
                record_period_created()
                logger.info(
                    f"[PERIOD] Opened period {resolved.label} (id={resolved.id}) "
                    f"[{resolved.start_at.isoformat()}, {resolved.end_at.isoformat()})"
                )
            return resolved

        raise PeriodConflict(f"could not resolve period {label}")
