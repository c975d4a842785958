"""
Prometheus metrics for upstream ingestion and scheduled jobs.

Labels are restricted to low-cardinality values only:
- provider:     "api_football"
- entity:       "fixture", "odds", "live", "prediction", "stats", "lineup", "events", "team_stats"
- endpoint:     "fixtures", "odds", "predictions", ...
- status_code:  "200", "404", "429", "500", "0"
- error_code:   "timeout", "request_error", "http_5xx", "api_error", "bad_envelope"
- job:          "section_sync", "live_sync", "history_cleanup"

Never use fixture IDs, team names or URLs as labels. Use logs for those.
"""

import time
import logging

from prometheus_client import (
    Counter,
    Histogram,
    Gauge,
    generate_latest,
    CONTENT_TYPE_LATEST,
    REGISTRY,
)

logger = logging.getLogger(__name__)

# =============================================================================
# INGESTION METRICS
# =============================================================================

provider_requests_total = Counter(
    "fixturecast_provider_requests_total",
    "Total requests to data providers",
    ["provider", "entity", "endpoint", "status_code"],
)

provider_errors_total = Counter(
    "fixturecast_provider_errors_total",
    "Total errors from data providers",
    ["provider", "entity", "error_code"],
)

provider_rate_limited_total = Counter(
    "fixturecast_provider_rate_limited_total",
    "Total rate-limited responses (429) from providers",
    ["provider", "entity"],
)

provider_latency_ms = Histogram(
    "fixturecast_provider_latency_ms",
    "Request latency in milliseconds",
    ["provider", "entity", "endpoint"],
    buckets=[10, 25, 50, 100, 250, 500, 1000, 2500, 5000, 10000],
)

# =============================================================================
# RECONCILIATION METRICS
# =============================================================================

reconcile_rows_total = Counter(
    "fixturecast_reconcile_rows_total",
    "Rows touched by section reconciliation",
    ["action"],  # inserted, updated, deleted, history
)

# =============================================================================
# JOB METRICS
# =============================================================================

job_runs_total = Counter(
    "fixturecast_job_runs_total",
    "Total job runs by status",
    ["job", "status"],
)

job_duration_ms = Histogram(
    "fixturecast_job_duration_ms",
    "Job duration in milliseconds",
    ["job"],
    buckets=[50, 100, 250, 500, 1000, 2500, 5000, 10000, 30000, 60000],
)

job_last_success_timestamp = Gauge(
    "fixturecast_job_last_success_timestamp",
    "Unix timestamp of the last successful run",
    ["job"],
)


def record_provider_request(
    provider: str,
    entity: str,
    endpoint: str,
    status_code: int,
    latency_ms: float,
    is_rate_limited: bool = False,
) -> None:
    """Record a provider request with all associated metrics."""
    try:
        provider_requests_total.labels(
            provider=provider,
            entity=entity,
            endpoint=endpoint,
            status_code=str(status_code),
        ).inc()

        provider_latency_ms.labels(
            provider=provider,
            entity=entity,
            endpoint=endpoint,
        ).observe(latency_ms)

        if is_rate_limited:
            provider_rate_limited_total.labels(provider=provider, entity=entity).inc()
    except Exception as e:
        logger.warning(f"Failed to record provider request metric: {e}")


def record_provider_error(provider: str, entity: str, error_code: str) -> None:
    """Record a provider error."""
    try:
        provider_errors_total.labels(
            provider=provider,
            entity=entity,
            error_code=error_code,
        ).inc()
    except Exception as e:
        logger.warning(f"Failed to record provider error metric: {e}")


def record_reconcile(inserted: int, updated: int, deleted: int, history: int) -> None:
    """Record row counts from one reconciliation pass."""
    try:
        reconcile_rows_total.labels(action="inserted").inc(inserted)
        reconcile_rows_total.labels(action="updated").inc(updated)
        reconcile_rows_total.labels(action="deleted").inc(deleted)
        reconcile_rows_total.labels(action="history").inc(history)
    except Exception as e:
        logger.warning(f"Failed to record reconcile metric: {e}")


def record_job_run(job: str, status: str, duration_ms: float) -> None:
    """
    Record a job run with status and duration.

    Args:
        job: Job identifier (section_sync, live_sync, history_cleanup)
        status: "ok", "skipped", "error"
        duration_ms: Job duration in milliseconds
    """
    try:
        job_runs_total.labels(job=job, status=status).inc()
        if duration_ms > 0:
            job_duration_ms.labels(job=job).observe(duration_ms)
        if status == "ok":
            job_last_success_timestamp.labels(job=job).set(time.time())
    except Exception as e:
        logger.warning(f"Failed to record job run metric: {e}")


def get_metrics_text() -> tuple[str, str]:
    """
    Generate Prometheus metrics text output.

    Returns:
        Tuple of (content, content_type)
    """
    return generate_latest(REGISTRY).decode("utf-8"), CONTENT_TYPE_LATEST
