"""
Sentry integration for error tracking.

Provides:
- Automatic exception capture with stacktrace
- FastAPI request context
- SQLAlchemy query errors
- Scheduler job context tagging

Security:
- Secret headers (API keys, cron secret, cookies) are scrubbed before sending
- Query strings with tokens are redacted
- Request bodies are NOT captured
- PII is disabled
"""

import os
import re
import logging
from typing import Optional
from contextlib import contextmanager

logger = logging.getLogger(__name__)

_sentry_initialized = False

SENSITIVE_HEADERS = [
    "x-cron-secret",
    "x-rapidapi-key",
    "x-apisports-key",
    "authorization",
    "cookie",
    "set-cookie",
    "x-forwarded-for",
]


def scrub_sensitive_data(event: dict, hint: dict) -> Optional[dict]:
    """Scrub secrets from Sentry events before sending."""
    try:
        request = event.get("request") or {}

        headers = request.get("headers") or {}
        for key in list(headers.keys()):
            if key.lower() in SENSITIVE_HEADERS:
                headers[key] = "[REDACTED]"
        request["headers"] = headers

        query_string = request.get("query_string")
        if isinstance(query_string, str) and query_string:
            request["query_string"] = re.sub(
                r"(?i)(token|api_key|key|secret|password)=([^&]*)",
                r"\1=[REDACTED]",
                query_string,
            )

        if "data" in request:
            request["data"] = "[SCRUBBED]"

        event["request"] = request

    except Exception as e:
        # Never fail scrubbing - just log and continue
        logger.warning(f"Sentry scrubbing error (continuing): {e}")

    return event


def init_sentry() -> bool:
    """
    Initialize Sentry SDK if SENTRY_DSN is configured.

    Returns True if Sentry was initialized, False otherwise.

    Environment variables:
    - SENTRY_DSN: Required. Sentry DSN from project settings.
    - SENTRY_TRACES_SAMPLE_RATE: Optional. Default 0.05 (5%).
    - SENTRY_ENABLED: Optional. Set to 'false' to disable even with DSN.
    - FIXTURECAST_ENV: Used as Sentry environment tag.
    """
    global _sentry_initialized

    if _sentry_initialized:
        logger.debug("Sentry already initialized, skipping")
        return True

    if os.getenv("SENTRY_ENABLED", "true").lower() == "false":
        logger.info("Sentry disabled via SENTRY_ENABLED=false")
        return False

    dsn = os.getenv("SENTRY_DSN")
    if not dsn:
        logger.info("Sentry not configured (SENTRY_DSN not set)")
        return False

    import sentry_sdk
    from sentry_sdk.integrations.fastapi import FastApiIntegration
    from sentry_sdk.integrations.sqlalchemy import SqlalchemyIntegration
    from sentry_sdk.integrations.logging import LoggingIntegration

    environment = os.getenv("FIXTURECAST_ENV", "development")
    traces_sample_rate = float(os.getenv("SENTRY_TRACES_SAMPLE_RATE", "0.05"))

    sentry_sdk.init(
        dsn=dsn,
        environment=environment,
        integrations=[
            FastApiIntegration(transaction_style="endpoint"),
            SqlalchemyIntegration(),
            LoggingIntegration(
                level=logging.ERROR,
                event_level=logging.ERROR,
            ),
        ],
        traces_sample_rate=traces_sample_rate,
        send_default_pii=False,
        before_send=scrub_sensitive_data,
        ignore_errors=[KeyboardInterrupt, SystemExit],
    )

    _sentry_initialized = True
    logger.info(f"Sentry initialized: env={environment}, traces_sample_rate={traces_sample_rate}")
    return True


@contextmanager
def sentry_job_context(job_id: str, **extra_tags):
    """
    Context manager for scheduler jobs that sets Sentry tags and captures exceptions.

    Usage:
        with sentry_job_context("section_sync", section_id="2025-W15-SatMon"):
            ...

    If an exception occurs, it is captured with full context before re-raising.
    """
    if not _sentry_initialized:
        yield
        return

    import sentry_sdk

    with sentry_sdk.new_scope() as scope:
        scope.set_tag("job_id", job_id)
        scope.set_context("job", {"job_id": job_id, **extra_tags})
        for key, value in extra_tags.items():
            if value is not None:
                scope.set_tag(key, str(value))

        try:
            yield scope
        except Exception as e:
            sentry_sdk.capture_exception(e)
            raise


def capture_exception(exception: Exception, job_id: str = None, **extra_context):
    """Capture an exception to Sentry with optional job context."""
    if not _sentry_initialized:
        return

    import sentry_sdk

    with sentry_sdk.new_scope() as scope:
        if job_id:
            scope.set_tag("job_id", job_id)
        for key, value in extra_context.items():
            scope.set_extra(key, value)
        sentry_sdk.capture_exception(exception)
