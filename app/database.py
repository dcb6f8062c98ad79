"""Async database connection using SQLAlchemy (supports SQLite and PostgreSQL)."""

import asyncio
import logging

from sqlalchemy import event, text
from sqlalchemy.exc import DBAPIError, InterfaceError, OperationalError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel

from app import models  # noqa: F401  (registers tables on SQLModel.metadata)
from app.config import Settings
from app.errors import StoreUnavailable

logger = logging.getLogger(__name__)

# Non-overlapping period windows. UNIQUE(start_at, end_at) already exists on
# every dialect; PostgreSQL additionally gets a range exclusion constraint.
POSTGRES_PERIODS_EXCLUSION_SQL = """
DO $$
BEGIN
  IF NOT EXISTS (
    SELECT 1 FROM pg_constraint WHERE conname = 'ex_periods_no_overlap'
  ) THEN
    ALTER TABLE periods ADD CONSTRAINT ex_periods_no_overlap
      EXCLUDE USING gist (tsrange(start_at, end_at, '[)') WITH &&);
  END IF;
END $$;
"""


def get_database_url(url: str) -> str:
    """Convert database URL to async format."""
    # SQLite
    if url.startswith("sqlite://"):
        return url.replace("sqlite://", "sqlite+aiosqlite://", 1)

    # PostgreSQL
    if url.startswith("postgres://"):
        return url.replace("postgres://", "postgresql+asyncpg://", 1)
    if url.startswith("postgresql://"):
        return url.replace("postgresql://", "postgresql+asyncpg://", 1)

    return url


def is_sqlite_url(url: str) -> bool:
    return url.startswith("sqlite")


def _is_memory_sqlite(url: str) -> bool:
    return ":memory:" in url or url.rstrip("/") in ("sqlite+aiosqlite:", "sqlite:")


def build_engine(settings: Settings) -> AsyncEngine:
    """Create the async engine for the configured DATABASE_URL."""
    url = get_database_url(settings.DATABASE_URL)

    # Engine configuration
    engine_kwargs: dict = {
        "echo": False,
    }

    if is_sqlite_url(url):
        # SQLite-specific settings
        engine_kwargs["connect_args"] = {"check_same_thread": False}
        if _is_memory_sqlite(url):
            # One shared connection, otherwise every checkout sees an empty DB
            engine_kwargs["poolclass"] = StaticPool
    else:
        # PostgreSQL-specific settings
        engine_kwargs["pool_pre_ping"] = True  # Verify connection before checkout
        engine_kwargs["pool_size"] = settings.DB_POOL_SIZE
        engine_kwargs["max_overflow"] = settings.DB_MAX_OVERFLOW
        engine_kwargs["pool_recycle"] = 300  # Railway can drop idle connections
        engine_kwargs["pool_timeout"] = 30
        engine_kwargs["pool_reset_on_return"] = "rollback"
        engine_kwargs["connect_args"] = {
            "server_settings": {"statement_timeout": str(settings.DB_STATEMENT_TIMEOUT_MS)}
        }

    engine = create_async_engine(url, **engine_kwargs)

    if is_sqlite_url(url):
        # Cascades (period -> teams -> players/matches) need FK enforcement
        @event.listens_for(engine.sync_engine, "connect")
        def _enable_sqlite_foreign_keys(dbapi_connection, connection_record):
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

    return engine


def build_sessionmaker(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        bind=engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


async def ping(engine: AsyncEngine) -> None:
    """Run SELECT 1; raises StoreUnavailable if the database is unreachable."""
    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
    except (DBAPIError, OSError) as e:
        raise StoreUnavailable(f"database unreachable: {e}") from e


async def wait_for_database(engine: AsyncEngine, tries: int = 10, delay: float = 2.0) -> None:
    """
    Ping the database with a fixed backoff until it answers.

    Only used at startup: steady-state requests surface the first failure.
    Raises StoreUnavailable once all attempts are exhausted.
    """
    last_error: Exception | None = None
    for attempt in range(1, tries + 1):
        try:
            await ping(engine)
            if attempt > 1:
                logger.info(f"[DB] Database reachable after {attempt} attempts")
            return
        except StoreUnavailable as e:
            last_error = e
            logger.warning(f"[DB] Ping failed (attempt {attempt}/{tries}): {e}")
            if attempt < tries:
                await asyncio.sleep(delay)

    raise StoreUnavailable(f"database not reachable after {tries} attempts") from last_error


async def init_db(engine: AsyncEngine) -> None:
    """Initialize database tables and dialect-specific constraints."""
    logger.info("Initializing database tables...")
    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
        if engine.dialect.name == "postgresql":
            await conn.execute(text(POSTGRES_PERIODS_EXCLUSION_SQL))
    logger.info("Database tables created successfully.")


async def close_db(engine: AsyncEngine) -> None:
    """Close database connections."""
    logger.info("Closing database connections...")
    await engine.dispose()
    logger.info("Database connections closed.")


def get_pool_status(engine: AsyncEngine) -> dict:
    """Get current connection pool statistics for monitoring."""
    if engine.dialect.name == "sqlite":
        return {"type": "sqlite", "pooled": False}

    pool = engine.pool
    checked_out = pool.checkedout()
    total_capacity = pool.size() + pool.overflow()
    return {
        "type": "postgresql",
        "pool_size": pool.size(),
        "checked_in": pool.checkedin(),
        "checked_out": checked_out,
        "overflow": pool.overflow(),
        "utilization_pct": round(
            (checked_out / total_capacity) * 100, 1
        ) if total_capacity > 0 else 0,
    }


def is_store_outage(error: Exception) -> bool:
    """True for connection-level failures (as opposed to constraint errors)."""
    return isinstance(error, (OperationalError, InterfaceError)) or (
        isinstance(error, DBAPIError) and error.connection_invalidated
    )
