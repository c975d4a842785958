"""Cache refresh jobs, run by the scheduler or the trigger endpoints."""

import asyncio
import logging
import time
from datetime import datetime, timedelta, timezone
from typing import Optional

from fixturecast.config import get_settings
from fixturecast.database import AsyncSessionLocal
from fixturecast.etl.api_football import APIFootballProvider
from fixturecast.etl.assembler import assemble
from fixturecast.etl.pipeline import BASE_DATA_CACHE_KEY, ScoreReconciler, is_cooling_down
from fixturecast.jobs.tracking import cleanup_old_runs
from fixturecast.jobs.tracking import record_job_run as record_job_run_db
from fixturecast.sections import get_date_range, weekend_section_ids_to_keep
from fixturecast.telemetry import record_job_run, sentry_job_context

logger = logging.getLogger(__name__)

SECTION_SYNC_JOB = "section_sync"
LIVE_SYNC_JOB = "live_sync"
HISTORY_CLEANUP_JOB = "history_cleanup"


async def _finish(
    job_name: str,
    status: str,
    started_at: datetime,
    start_time: float,
    result: Optional[dict] = None,
    error: Optional[str] = None,
) -> None:
    """Record metrics and a job_runs row. Tracking failures never fail the job."""
    duration_ms = (time.time() - start_time) * 1000
    record_job_run(job=job_name, status=status, duration_ms=duration_ms)
    try:
        async with AsyncSessionLocal() as session:
            await record_job_run_db(session, job_name, status, started_at, error=error, metrics=result)
    except Exception as e:
        logger.warning(f"[JOB_TRACKING] Failed to record {job_name} run: {e}")


async def update_section_data(
    provider: Optional[APIFootballProvider] = None,
    force: bool = False,
) -> dict:
    """
    Refresh the cached rows for the current display section.

    Skips when the last successful fetch is within BASE_DATA_COOLDOWN_MINUTES
    (unless force=True), or when the upstream returned no fixtures at all so
    the last good cache is kept. Reconciliation errors propagate.
    """
    settings = get_settings()
    started_at = datetime.now(timezone.utc)
    start_time = time.time()

    with sentry_job_context(SECTION_SYNC_JOB):
        try:
            if not force:
                cooldown = timedelta(minutes=settings.BASE_DATA_COOLDOWN_MINUTES)
                async with AsyncSessionLocal() as session:
                    cooling_down = await is_cooling_down(session, BASE_DATA_CACHE_KEY, cooldown, now=started_at)
                if cooling_down:
                    logger.info(
                        f"[SECTION_SYNC] Skipped, last fetch < {settings.BASE_DATA_COOLDOWN_MINUTES} min ago"
                    )
                    result = {"status": "skipped", "reason": "cooldown"}
                    await _finish(SECTION_SYNC_JOB, "skipped", started_at, start_time, result)
                    return result

            date_range = get_date_range()
            logger.info(f"[SECTION_SYNC] Section {date_range.section_id}: {', '.join(date_range.dates)}")

            owns_provider = provider is None
            provider = provider or APIFootballProvider()
            try:
                fixtures, odds = await asyncio.gather(
                    provider.fetch_fixtures_for_dates(date_range.dates, settings.league_ids),
                    provider.fetch_odds_for_dates(date_range.dates),
                )
            finally:
                if owns_provider:
                    await provider.close()

            if not fixtures:
                logger.warning("[SECTION_SYNC] No fixtures fetched, keeping cached rows")
                result = {"status": "skipped", "reason": "no_fixtures", "section_id": date_range.section_id}
                await _finish(SECTION_SYNC_JOB, "skipped", started_at, start_time, result)
                return result

            rows = assemble(fixtures, odds)
            logger.info(f"[SECTION_SYNC] {len(fixtures)} fixtures fetched, {len(rows)} with odds")

            async with AsyncSessionLocal() as session:
                reconciled = await ScoreReconciler(session).reconcile(rows, BASE_DATA_CACHE_KEY)

            result = {
                "status": "ok",
                "section_id": date_range.section_id,
                "fixtures_fetched": len(fixtures),
                "rows": len(rows),
                **reconciled.to_dict(),
            }
            logger.info(f"[SECTION_SYNC] Complete: {result}")
            await _finish(SECTION_SYNC_JOB, "ok", started_at, start_time, result)
            return result

        except Exception as e:
            logger.error(f"[SECTION_SYNC] Failed: {e}")
            await _finish(SECTION_SYNC_JOB, "error", started_at, start_time, error=str(e))
            raise


async def update_live_scores(provider: Optional[APIFootballProvider] = None) -> dict:
    """Copy live status and score onto cached rows of tracked leagues."""
    settings = get_settings()
    started_at = datetime.now(timezone.utc)
    start_time = time.time()

    with sentry_job_context(LIVE_SYNC_JOB):
        try:
            owns_provider = provider is None
            provider = provider or APIFootballProvider()
            try:
                fixtures = await provider.fetch_live_fixtures(settings.league_ids)
            finally:
                if owns_provider:
                    await provider.close()

            updated = 0
            if fixtures:
                async with AsyncSessionLocal() as session:
                    updated = await ScoreReconciler(session).apply_live_updates(fixtures)

            result = {"status": "ok", "live_fixtures": len(fixtures), "updated": updated}
            logger.info(f"[LIVE_SYNC] {len(fixtures)} live fixtures, {updated} cached rows updated")
            await _finish(LIVE_SYNC_JOB, "ok", started_at, start_time, result)
            return result

        except Exception as e:
            logger.error(f"[LIVE_SYNC] Failed: {e}")
            await _finish(LIVE_SYNC_JOB, "error", started_at, start_time, error=str(e))
            raise


async def cleanup_history() -> dict:
    """Keep forecast history for the latest weekend sections only; prune old job runs."""
    settings = get_settings()
    started_at = datetime.now(timezone.utc)
    start_time = time.time()

    with sentry_job_context(HISTORY_CLEANUP_JOB):
        try:
            keep = weekend_section_ids_to_keep(settings.HISTORY_WEEKS_TO_KEEP)
            async with AsyncSessionLocal() as session:
                history_deleted = await ScoreReconciler(session).prune_forecast_history(keep)
                runs_deleted = await cleanup_old_runs(session, settings.JOB_RUNS_DAYS_TO_KEEP)

            result = {
                "status": "ok",
                "kept_sections": keep,
                "history_deleted": history_deleted,
                "job_runs_deleted": runs_deleted,
            }
            logger.info(f"[HISTORY_CLEANUP] Kept {keep}, deleted {history_deleted} history rows")
            await _finish(HISTORY_CLEANUP_JOB, "ok", started_at, start_time, result)
            return result

        except Exception as e:
            logger.error(f"[HISTORY_CLEANUP] Failed: {e}")
            await _finish(HISTORY_CLEANUP_JOB, "error", started_at, start_time, error=str(e))
            raise
