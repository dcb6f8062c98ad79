"""Shared fixtures: settings, in-memory database, fake clock, HTTP client."""

from datetime import datetime, timedelta, timezone

import httpx
import pytest

from app.config import Settings
from app.database import build_engine, build_sessionmaker, init_db


class FakeClock:
    """Settable clock returning aware UTC instants."""

    def __init__(self, start: datetime):
        self.current = start

    def __call__(self) -> datetime:
        return self.current

    def set(self, instant: datetime) -> None:
        self.current = instant

    def advance(self, **kwargs) -> None:
        self.current += timedelta(**kwargs)


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
def clock():
    # Noon UTC on 2026-10-18
    return FakeClock(datetime(2026, 10, 18, 12, 0, tzinfo=timezone.utc))


@pytest.fixture
def settings(tmp_path):
    return Settings(
        _env_file=None,
        DATABASE_URL="sqlite:///:memory:",
        PERIOD_TIMEZONE="UTC",
        RATE_LIMIT_ENABLED=False,
        STATIC_DIR=str(tmp_path / "public"),
        DB_CONNECT_RETRIES=1,
        DB_CONNECT_RETRY_DELAY_SECONDS=0,
    )


@pytest.fixture
async def engine(settings):
    engine = build_engine(settings)
    await init_db(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def sessionmaker(engine):
    return build_sessionmaker(engine)


@pytest.fixture
async def session(sessionmaker):
    async with sessionmaker() as session:
        yield session


@pytest.fixture
async def app(settings, clock):
    from app.main import create_app

    application = create_app(settings, clock=clock)
    # ASGITransport does not run the lifespan; create the tables here
    await init_db(application.state.engine)
    yield application
    await application.state.engine.dispose()


@pytest.fixture
async def client(app):
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
