"""Period lifecycle: calendar windows, the periods table and the resolver."""

from app.periods.resolver import PeriodResolver, ResolvedPeriod, system_clock
from app.periods.windows import (
    format_duration,
    local_date,
    parse_period_date,
    window_for_date,
)

__all__ = [
    "PeriodResolver",
    "ResolvedPeriod",
    "system_clock",
    "format_duration",
    "local_date",
    "parse_period_date",
    "window_for_date",
]
