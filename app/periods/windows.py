"""
Calendar-day period windows.

A period is the half-open interval [local midnight of day D, local midnight
of D+1) in a fixed reference timezone. The window is a pure function of
(date, timezone), which is what lets concurrent callers converge on a single
row with an idempotent insert instead of coordinating a rotation.

Windows are expressed as naive UTC datetimes, the storage format of the
periods table. DST days are 23 or 25 hours long; nothing here assumes 24.
"""

from __future__ import annotations

from datetime import date, datetime, time, timedelta, timezone
from zoneinfo import ZoneInfo

from app.errors import InvalidInput

LABEL_FORMAT = "%Y-%m-%d"


def to_naive_utc(instant: datetime) -> datetime:
    """Aware datetime -> naive UTC. Naive input is assumed to already be UTC."""
    if instant.tzinfo is None:
        return instant
    return instant.astimezone(timezone.utc).replace(tzinfo=None)


def to_aware_utc(instant: datetime) -> datetime:
    """Naive UTC (as stored) -> aware UTC."""
    if instant.tzinfo is None:
        return instant.replace(tzinfo=timezone.utc)
    return instant.astimezone(timezone.utc)


def local_date(instant: datetime, tz: ZoneInfo) -> date:
    """Calendar date of an instant in the reference timezone."""
    return to_aware_utc(instant).astimezone(tz).date()


def window_for_date(day: date, tz: ZoneInfo) -> tuple[datetime, datetime]:
    """
    Return (start_at, end_at) in naive UTC for the local calendar day.

    Raises InvalidInput when the window falls outside the datetime range
    (9999-12-31 has no next midnight; 0001-01-01 east of UTC starts in year 0).
    """
    try:
        start_local = datetime.combine(day, time.min, tzinfo=tz)
        end_local = datetime.combine(day + timedelta(days=1), time.min, tzinfo=tz)
        return to_naive_utc(start_local), to_naive_utc(end_local)
    except OverflowError as e:
        raise InvalidInput(f"no period window for {day.isoformat()}") from e


def label_for_date(day: date) -> str:
    return day.strftime(LABEL_FORMAT)


def parse_period_date(value: date | str) -> date:
    """
    Accept a date or a YYYY-MM-DD string.

    Raises InvalidInput for anything else (including datetimes, whose local
    date would depend on a timezone the caller did not state).
    """
    if isinstance(value, datetime):
        raise InvalidInput("expected a calendar date, got a datetime")
    if isinstance(value, date):
        return value
    if not isinstance(value, str):
        raise InvalidInput(f"invalid period date: {value!r}")

    raw = value.strip()
    try:
        return datetime.strptime(raw, LABEL_FORMAT).date()
    except ValueError as e:
        raise InvalidInput(f"invalid period date: {raw!r} (expected YYYY-MM-DD)") from e


def format_duration(delta: timedelta) -> str:
    """Compact duration such as '5h3m12s' (negative deltas clamp to '0s')."""
    total = max(int(delta.total_seconds()), 0)
    hours, rest = divmod(total, 3600)
    minutes, seconds = divmod(rest, 60)
    if hours:
        return f"{hours}h{minutes}m{seconds}s"
    if minutes:
        return f"{minutes}m{seconds}s"
    return f"{seconds}s"
