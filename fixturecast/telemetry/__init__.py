"""
Telemetry: Prometheus metrics and Sentry error tracking.
"""

from fixturecast.telemetry.metrics import (
    record_provider_request,
    record_provider_error,
    record_reconcile,
    record_job_run,
    get_metrics_text,
)
from fixturecast.telemetry.sentry import (
    init_sentry,
    sentry_job_context,
    capture_exception,
)

__all__ = [
    "record_provider_request",
    "record_provider_error",
    "record_reconcile",
    "record_job_run",
    "get_metrics_text",
    "init_sentry",
    "sentry_job_context",
    "capture_exception",
]
