"""Background scheduler for section sync, live sync and history cleanup."""

import logging
import os

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.interval import IntervalTrigger

from fixturecast.config import get_settings
from fixturecast.jobs.sync import cleanup_history, update_live_scores, update_section_data

logger = logging.getLogger(__name__)

# Flag to prevent multiple scheduler instances (e.g., with --reload)
_scheduler_started = False
scheduler = AsyncIOScheduler()


def _log_scheduler_jobs():
    """Log all registered scheduler jobs and their next run times."""
    jobs = scheduler.get_jobs()
    if not jobs:
        logger.warning("SCHEDULER: No jobs registered!")
        return

    job_info = []
    for job in jobs:
        next_run = job.next_run_time
        next_str = next_run.strftime("%Y-%m-%d %H:%M:%S %Z") if next_run else "None"
        job_info.append(f"  - {job.id}: next={next_str}")

    logger.info(f"SCHEDULER: {len(jobs)} jobs registered:\n" + "\n".join(job_info))


def start_scheduler() -> bool:
    """
    Start the background scheduler.

    Uses a module-level flag to prevent duplicate scheduler instances
    when running with --reload or multiple workers.

    Returns:
        True if the scheduler was started by this call.
    """
    global _scheduler_started
    settings = get_settings()

    if not settings.SCHEDULER_ENABLED:
        logger.info("Scheduler disabled via SCHEDULER_ENABLED=false")
        return False

    if _scheduler_started:
        logger.warning("Scheduler already started, skipping duplicate initialization")
        return False

    # Uvicorn sets this env var in the reloader subprocess
    if os.environ.get("UVICORN_RELOADED"):
        logger.info("Skipping scheduler in reload subprocess")
        return False

    # Section data: cooldown inside the job throttles overlapping triggers
    scheduler.add_job(
        update_section_data,
        trigger=IntervalTrigger(minutes=settings.SECTION_SYNC_INTERVAL_MINUTES),
        id="update_section_data",
        name="Section Data Sync",
        replace_existing=True,
        max_instances=1,
        coalesce=True,
    )

    scheduler.add_job(
        update_live_scores,
        trigger=IntervalTrigger(seconds=settings.LIVE_SYNC_INTERVAL_SECONDS),
        id="update_live_scores",
        name="Live Scores Sync",
        replace_existing=True,
        max_instances=1,
        coalesce=True,
    )

    scheduler.add_job(
        cleanup_history,
        trigger=CronTrigger(hour=settings.HISTORY_CLEANUP_HOUR, minute=0, timezone=settings.LOCAL_TIMEZONE),
        id="cleanup_history",
        name="Forecast History Cleanup",
        replace_existing=True,
        max_instances=1,
        coalesce=True,
        misfire_grace_time=6 * 3600,
    )

    scheduler.start()
    _scheduler_started = True

    _log_scheduler_jobs()

    logger.info(
        f"Scheduler started:\n"
        f"  - Section data sync: Every {settings.SECTION_SYNC_INTERVAL_MINUTES} min\n"
        f"  - Live scores sync: Every {settings.LIVE_SYNC_INTERVAL_SECONDS}s\n"
        f"  - History cleanup: Daily {settings.HISTORY_CLEANUP_HOUR:02d}:00 {settings.LOCAL_TIMEZONE}"
    )
    return True


def stop_scheduler():
    """Stop the background scheduler."""
    global _scheduler_started
    if scheduler.running:
        scheduler.shutdown()
        _scheduler_started = False
        logger.info("Scheduler stopped")
