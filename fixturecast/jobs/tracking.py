"""Job run tracking.

Records every scheduled or triggered job execution in the job_runs table,
next to the Prometheus job metrics.

Usage:
    from fixturecast.jobs.tracking import record_job_run

    started_at = datetime.now(timezone.utc)
    try:
        # ... job logic ...
        await record_job_run(session, "section_sync", "ok", started_at, metrics={"inserted": 5})
    except Exception as e:
        await record_job_run(session, "section_sync", "error", started_at, error=str(e))
        raise
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from fixturecast.models import JobRun

logger = logging.getLogger(__name__)


async def record_job_run(
    session: AsyncSession,
    job_name: str,
    status: str,
    started_at: datetime,
    error: Optional[str] = None,
    metrics: Optional[dict] = None,
) -> JobRun:
    """
    Record a job execution in the database.

    Args:
        session: Database session.
        job_name: Job identifier (section_sync, live_sync, history_cleanup).
        status: Execution status (ok, skipped, error).
        started_at: When the job started (aware UTC).
        error: Error message if failed.
        metrics: Optional job-specific metrics dict.
    """
    finished_at = datetime.now(timezone.utc)
    duration_ms = int((finished_at - started_at).total_seconds() * 1000)

    job_run = JobRun(
        job_name=job_name,
        status=status,
        started_at=started_at,
        finished_at=finished_at,
        duration_ms=duration_ms,
        error_message=error,
        metrics=metrics,
    )

    session.add(job_run)
    await session.commit()

    logger.debug(f"[JOB_TRACKING] Recorded {job_name} run: {status} in {duration_ms}ms")
    return job_run


async def get_last_success_at(
    session: AsyncSession,
    job_name: str,
) -> Optional[datetime]:
    """Finish time of the last successful run of a job, or None."""
    result = await session.execute(
        select(JobRun.finished_at)
        .where(JobRun.job_name == job_name)
        .where(JobRun.status == "ok")
        .order_by(JobRun.finished_at.desc())
        .limit(1)
    )
    row = result.first()
    return row[0] if row else None


async def cleanup_old_runs(
    session: AsyncSession,
    days_to_keep: int = 7,
    now: Optional[datetime] = None,
) -> int:
    """
    Delete job runs older than specified days.

    Returns:
        Number of rows deleted.
    """
    cutoff = (now or datetime.now(timezone.utc)) - timedelta(days=days_to_keep)
    result = await session.execute(delete(JobRun).where(JobRun.created_at < cutoff))
    await session.commit()
    deleted = result.rowcount or 0
    if deleted > 0:
        logger.info(f"[JOB_TRACKING] Cleaned up {deleted} old job runs")
    return deleted
