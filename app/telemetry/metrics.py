"""
Prometheus metrics for period resolution and the HTTP API.

Design principles:
- Low cardinality: labels come from small fixed sets (source, operation,
  HTTP method, status class). Period ids, team names and paths with ids
  are never labels; use logs for those.
- Best-effort: recording a metric never breaks a request.
"""

import logging

from prometheus_client import (
    Counter,
    Histogram,
    generate_latest,
    CONTENT_TYPE_LATEST,
    REGISTRY,
)

logger = logging.getLogger(__name__)

# =============================================================================
# PERIOD METRICS
# =============================================================================

league_period_resolutions_total = Counter(
    "league_period_resolutions_total",
    "Current-period resolutions by source",
    ["source"],  # cache, store
)

league_periods_created_total = Counter(
    "league_periods_created_total",
    "Period rows inserted (lazy creation on first use of a window)",
)

league_period_conflicts_total = Counter(
    "league_period_conflicts_total",
    "Window inserts suppressed by an overlapping period",
    ["outcome"],  # recovered, failed
)

# =============================================================================
# STORE / API METRICS
# =============================================================================

league_store_errors_total = Counter(
    "league_store_errors_total",
    "Database errors surfaced to callers",
    ["kind"],  # outage, integrity, other
)

league_api_requests_total = Counter(
    "league_api_requests_total",
    "HTTP requests by method and status class",
    ["method", "status_class"],
)

league_api_latency_ms = Histogram(
    "league_api_latency_ms",
    "HTTP request latency in milliseconds",
    ["method"],
    buckets=[5, 10, 25, 50, 100, 250, 500, 1000, 2500, 5000],
)


def record_period_resolution(source: str) -> None:
    """Record where a current-period lookup was answered from."""
    try:
        league_period_resolutions_total.labels(source=source).inc()
    except Exception as e:
        logger.warning(f"Failed to record period resolution metric: {e}")


def record_period_created() -> None:
    try:
        league_periods_created_total.inc()
    except Exception as e:
        logger.warning(f"Failed to record period created metric: {e}")


def record_period_conflict(outcome: str) -> None:
    try:
        league_period_conflicts_total.labels(outcome=outcome).inc()
    except Exception as e:
        logger.warning(f"Failed to record period conflict metric: {e}")


def record_store_error(kind: str) -> None:
    try:
        league_store_errors_total.labels(kind=kind).inc()
    except Exception as e:
        logger.warning(f"Failed to record store error metric: {e}")


def record_api_request(method: str, status_code: int, latency_ms: float) -> None:
    """Record one HTTP request (count by status class + latency)."""
    try:
        league_api_requests_total.labels(
            method=method,
            status_class=f"{status_code // 100}xx",
        ).inc()
        league_api_latency_ms.labels(method=method).observe(latency_ms)
    except Exception as e:
        logger.warning(f"Failed to record API request metric: {e}")


def get_metrics_text() -> tuple[str, str]:
    """Return (exposition text, content type) for the /metrics endpoint."""
    return generate_latest(REGISTRY).decode("utf-8"), CONTENT_TYPE_LATEST
