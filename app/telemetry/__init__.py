"""
Telemetry module.

Provides Prometheus metrics for period resolution, store errors and HTTP
traffic, plus optional Sentry error tracking.
"""

from app.telemetry.metrics import (
    league_period_resolutions_total,
    league_periods_created_total,
    league_period_conflicts_total,
    league_store_errors_total,
    league_api_requests_total,
    league_api_latency_ms,
    record_period_resolution,
    record_period_created,
    record_period_conflict,
    record_store_error,
    record_api_request,
    get_metrics_text,
)

__all__ = [
    "league_period_resolutions_total",
    "league_periods_created_total",
    "league_period_conflicts_total",
    "league_store_errors_total",
    "league_api_requests_total",
    "league_api_latency_ms",
    "record_period_resolution",
    "record_period_created",
    "record_period_conflict",
    "record_store_error",
    "record_api_request",
    "get_metrics_text",
]
