"""FastAPI application for the daily league service.

Teams, players and match results are attributed to calendar-day periods.
Use create_app() to build an instance (tests pass their own Settings and a
fake clock); the module-level `app` is what uvicorn serves.
"""

import logging
import time
from contextlib import asynccontextmanager
from datetime import datetime
from pathlib import Path
from typing import Callable, Optional

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exception_handlers import http_exception_handler
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.config import Settings, get_settings
from app.database import (
    build_engine,
    build_sessionmaker,
    close_db,
    init_db,
    is_store_outage,
    wait_for_database,
)
from app.errors import LeagueError, StoreUnavailable
from app.periods import PeriodResolver
from app.routes.api import router as api_router
from app.routes.core import router as core_router
from app.security import api_headers_middleware, is_api_path, limiter
from app.telemetry import record_api_request, record_store_error
from app.telemetry.sentry import init_sentry

# Configure logging
logging.basicConfig(
    level=get_settings().LOG_LEVEL,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler."""
    settings: Settings = app.state.settings
    engine = app.state.engine

    # Startup: refuse to serve against a database we cannot reach
    logger.info("[STARTUP] Starting league service...")
    try:
        await wait_for_database(
            engine,
            tries=settings.DB_CONNECT_RETRIES,
            delay=settings.DB_CONNECT_RETRY_DELAY_SECONDS,
        )
    except StoreUnavailable:
        logger.critical("[STARTUP] Database unreachable, exiting")
        raise
    await init_db(engine)

    # A period is always available: seed the current one
    async with app.state.sessionmaker() as session:
        period = await app.state.period_resolver.resolve_current(session)
    logger.info(
        f"[STARTUP] Ready. Current period {period.label} (id={period.id}), "
        f"timezone={settings.PERIOD_TIMEZONE}"
    )

    yield

    # Shutdown
    await close_db(engine)


# =============================================================================
# Exception handlers
# =============================================================================


async def league_error_handler(request: Request, exc: LeagueError) -> JSONResponse:
    """Domain errors -> status code carried by the exception class."""
    if isinstance(exc, StoreUnavailable):
        record_store_error("outage")
    if exc.status_code >= 500:
        logger.error(f"[API] {request.method} {request.url.path} failed: {exc.message}")
    else:
        logger.warning(f"[API] {request.method} {request.url.path} rejected: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Malformed JSON or missing/invalid fields are a 400, not FastAPI's 422."""
    logger.warning(f"[API] {request.method} {request.url.path} invalid body: {exc.errors()}")
    return JSONResponse(
        status_code=400,
        content={"detail": "invalid request", "errors": jsonable_encoder(exc.errors())},
    )


async def database_error_handler(request: Request, exc: SQLAlchemyError) -> JSONResponse:
    """Constraint violations are the caller's fault; everything else is ours."""
    if isinstance(exc, IntegrityError):
        record_store_error("integrity")
        logger.warning(f"[API] {request.method} {request.url.path} integrity error: {exc.orig}")
        return JSONResponse(
            status_code=400,
            content={"detail": "request conflicts with stored data"},
        )

    record_store_error("outage" if is_store_outage(exc) else "other")
    logger.error(
        f"[API] {request.method} {request.url.path} database error: {exc}",
        exc_info=exc,
    )
    return JSONResponse(status_code=500, content={"detail": "database error"})


def static_fallback_handler(static: Optional[StaticFiles]):
    """
    404 handler that falls back to the static front-end for GET/HEAD.

    Static files are served only when no route matched at all, so wrong
    methods on /api/* still answer 405 instead of being swallowed by a
    catch-all mount.
    """

    async def handler(request: Request, exc: StarletteHTTPException):
        if (
            static is not None
            and exc.status_code == 404
            and request.method in ("GET", "HEAD")
            and not is_api_path(request.url.path)
        ):
            try:
                return await static.get_response(static.get_path(request.scope), request.scope)
            except StarletteHTTPException as static_exc:
                return await http_exception_handler(request, static_exc)
        return await http_exception_handler(request, exc)

    return handler


# =============================================================================
# Middleware
# =============================================================================


async def request_logging_middleware(request: Request, call_next):
    """One log line and one metric per request, plus X-Process-Time-Ms."""
    start_time = time.perf_counter()
    response = await call_next(request)
    duration_ms = (time.perf_counter() - start_time) * 1000

    response.headers["X-Process-Time-Ms"] = str(int(duration_ms))
    record_api_request(request.method, response.status_code, duration_ms)
    logger.info(
        f"[API] {request.method} {request.url.path} {response.status_code} {duration_ms:.1f}ms"
    )
    return response


# =============================================================================
# Application factory
# =============================================================================


def create_app(
    settings: Optional[Settings] = None,
    clock: Optional[Callable[[], datetime]] = None,
) -> FastAPI:
    """
    Build the application with its own engine, session factory and resolver.

    Args:
        settings: Defaults to get_settings() (environment / .env).
        clock: Returns the current aware UTC instant; defaults to the system
            clock. Tests pass a fake clock to move across period boundaries.
    """
    settings = settings or get_settings()

    # Before app creation so the FastAPI integration hooks in
    init_sentry(settings)

    app = FastAPI(
        title="Daily League",
        description="Teams, players and match results grouped into daily periods",
        version="1.0.0",
        lifespan=lifespan,
    )

    engine = build_engine(settings)
    app.state.settings = settings
    app.state.engine = engine
    app.state.sessionmaker = build_sessionmaker(engine)
    app.state.period_resolver = PeriodResolver(
        settings.PERIOD_TIMEZONE,
        cache_ttl_seconds=settings.PERIOD_CACHE_TTL_SECONDS,
        clock=clock,
    )

    # Add rate limiting
    limiter.enabled = settings.RATE_LIMIT_ENABLED
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

    app.add_exception_handler(LeagueError, league_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(SQLAlchemyError, database_error_handler)

    static_dir = Path(settings.STATIC_DIR)
    static = StaticFiles(directory=static_dir, html=True) if static_dir.is_dir() else None
    if static is None:
        logger.info(f"[STARTUP] No static directory at {static_dir}, serving API only")
    app.add_exception_handler(StarletteHTTPException, static_fallback_handler(static))

    # Outermost last: logging wraps the CORS/security headers layer
    app.middleware("http")(api_headers_middleware)
    app.middleware("http")(request_logging_middleware)

    # Include routers
    app.include_router(core_router)
    app.include_router(api_router)

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=get_settings().PORT)
