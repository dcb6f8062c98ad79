"""
Optional Sentry error tracking.

Enabled only when SENTRY_DSN is set (and SENTRY_ENABLED is not false).
Events carry the label of the period the request resolved, so an error on
a busy match day can be tied back to that day's data.

Privacy: request bodies (team and player names) are dropped, cookies and
auth headers are redacted, and default PII capture stays off.
"""

import logging
import re
from typing import Optional

import sentry_sdk

from app.config import Settings

logger = logging.getLogger(__name__)

_sentry_initialized = False

REDACTED_HEADERS = {"authorization", "cookie", "set-cookie", "x-forwarded-for"}
_SECRET_PARAM = re.compile(r"(?i)(token|key|secret|password)=([^&]*)")


def scrub_sensitive_data(event: dict, hint: dict) -> Optional[dict]:
    """before_send hook: redact headers and secrets, drop request bodies."""
    request = event.get("request")
    if not request:
        return event

    headers = request.get("headers") or {}
    request["headers"] = {
        name: "[REDACTED]" if name.lower() in REDACTED_HEADERS else value
        for name, value in headers.items()
    }

    query_string = request.get("query_string")
    if isinstance(query_string, str):
        request["query_string"] = _SECRET_PARAM.sub(r"\1=[REDACTED]", query_string)

    request.pop("data", None)
    return event


def init_sentry(settings: Settings) -> bool:
    """
    Initialize the Sentry SDK once per process.

    Returns True when Sentry is active after the call.
    """
    global _sentry_initialized

    if _sentry_initialized:
        return True
    if not settings.SENTRY_ENABLED:
        logger.info("[SENTRY] Disabled via SENTRY_ENABLED=false")
        return False
    if not settings.SENTRY_DSN:
        logger.info("[SENTRY] Not configured (SENTRY_DSN not set)")
        return False

    from sentry_sdk.integrations.fastapi import FastApiIntegration
    from sentry_sdk.integrations.logging import LoggingIntegration
    from sentry_sdk.integrations.sqlalchemy import SqlalchemyIntegration

    sentry_sdk.init(
        dsn=settings.SENTRY_DSN,
        environment=settings.RAILWAY_ENVIRONMENT,
        release=settings.RAILWAY_GIT_COMMIT_SHA,
        integrations=[
            FastApiIntegration(transaction_style="endpoint"),
            SqlalchemyIntegration(),
            LoggingIntegration(level=logging.INFO, event_level=logging.ERROR),
        ],
        traces_sample_rate=settings.SENTRY_TRACES_SAMPLE_RATE,
        send_default_pii=False,
        before_send=scrub_sensitive_data,
    )

    _sentry_initialized = True
    logger.info(
        f"[SENTRY] Initialized: env={settings.RAILWAY_ENVIRONMENT}, "
        f"release={settings.RAILWAY_GIT_COMMIT_SHA[:8]}, "
        f"traces_sample_rate={settings.SENTRY_TRACES_SAMPLE_RATE}"
    )
    return True


def tag_period(label: str) -> None:
    """Attach the resolved period to events of the current request."""
    if _sentry_initialized:
        sentry_sdk.set_tag("league.period", label)


def is_sentry_enabled() -> bool:
    return _sentry_initialized
