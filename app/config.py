"""Application configuration using Pydantic Settings."""

from functools import lru_cache
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import field_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Database (Railway injects DATABASE_URL as postgres://...)
    DATABASE_URL: str = "sqlite:///./league.db"
    DB_POOL_SIZE: int = 10
    DB_MAX_OVERFLOW: int = 20
    DB_STATEMENT_TIMEOUT_MS: int = 15000  # Kill queries that hang a worker

    # Startup connectivity check (only place where we retry)
    DB_CONNECT_RETRIES: int = 10
    DB_CONNECT_RETRY_DELAY_SECONDS: float = 2.0

    # HTTP
    PORT: int = 3000
    STATIC_DIR: str = "public"
    LOG_LEVEL: str = "INFO"

    # Periods: calendar days in a fixed reference timezone
    PERIOD_TIMEZONE: str = "Asia/Almaty"
    PERIOD_CACHE_TTL_SECONDS: float = 60.0

    # Rate limiting (slowapi syntax)
    RATE_LIMIT_ENABLED: bool = True
    RATE_LIMIT_WRITES: str = "120/minute"
    RATE_LIMIT_HEALTH: str = "120/minute"

    # Error tracking (off unless SENTRY_DSN is set)
    SENTRY_DSN: str = ""
    SENTRY_ENABLED: bool = True
    SENTRY_TRACES_SAMPLE_RATE: float = 0.05
    RAILWAY_ENVIRONMENT: str = "development"
    RAILWAY_GIT_COMMIT_SHA: str = "unknown"

    @field_validator("PERIOD_TIMEZONE")
    @classmethod
    def _check_timezone(cls, value: str) -> str:
        try:
            ZoneInfo(value)
        except (ZoneInfoNotFoundError, ValueError) as e:
            raise ValueError(f"Unknown timezone: {value!r}") from e
        return value

    @field_validator("PERIOD_CACHE_TTL_SECONDS")
    @classmethod
    def _check_ttl(cls, value: float) -> float:
        if value < 0:
            raise ValueError("PERIOD_CACHE_TTL_SECONDS must be >= 0")
        return value

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
