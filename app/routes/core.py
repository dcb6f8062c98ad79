"""Core routes: health, readiness, metrics.

- /health: liveness, rate limited, never touches the database
- /ready: SELECT 1 against the store (503 when unreachable)
- /metrics: Prometheus exposition
"""

import logging

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse, PlainTextResponse
from pydantic import BaseModel

from app.config import get_settings
from app.database import get_pool_status, ping
from app.errors import StoreUnavailable
from app.security import limiter
from app.telemetry import get_metrics_text

router = APIRouter(tags=["core"])
# Rate-limit strings are bound when the decorators run, at import time;
# create_app(settings) can only toggle RATE_LIMIT_ENABLED.
settings = get_settings()
logger = logging.getLogger(__name__)


class HealthResponse(BaseModel):
    status: str
    timezone: str


@router.get("/health", response_model=HealthResponse)
@limiter.limit(settings.RATE_LIMIT_HEALTH)
async def health_check(request: Request):
    """Health check endpoint."""
    return HealthResponse(
        status="ok",
        timezone=request.app.state.settings.PERIOD_TIMEZONE,
    )


@router.get("/ready")
async def readiness_check(request: Request):
    """Readiness: the database answers and the pool is not exhausted."""
    engine = request.app.state.engine
    try:
        await ping(engine)
    except StoreUnavailable as e:
        logger.warning(f"[READY] Database check failed: {e}")
        return JSONResponse(
            status_code=503,
            content={"status": "unavailable", "checks": {"database": "error"}},
        )
    return {
        "status": "ready",
        "checks": {"database": "ok"},
        "pool": get_pool_status(engine),
    }


@router.get("/metrics")
async def prometheus_metrics():
    """
    Prometheus metrics endpoint.

    Exposes period resolution (cache vs store), periods created, store
    errors and HTTP request counters/latency.
    """
    content, content_type = get_metrics_text()
    return PlainTextResponse(content=content, media_type=content_type)
