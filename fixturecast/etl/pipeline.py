"""Reconcile assembled rows against the cached tables."""

import logging
from dataclasses import asdict, dataclass
from datetime import datetime, timedelta, timezone
from typing import Iterable, Optional

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from fixturecast.etl.base import FixtureRecord, ScoreRow
from fixturecast.forecast import actual_outcome, forecast_for, is_correct
from fixturecast.models import ApiCache, FootballScore, ForecastHistory
from fixturecast.sections import get_date_range, is_weekend_section
from fixturecast.telemetry import record_reconcile

logger = logging.getLogger(__name__)

BASE_DATA_CACHE_KEY = "football_scores_base_data"

FINISHED_STATUS = "FT"


@dataclass
class ReconcileResult:
    inserted: int = 0
    updated: int = 0
    deleted: int = 0
    finished: int = 0
    history_written: int = 0

    def to_dict(self) -> dict:
        return asdict(self)


async def is_cooling_down(
    session: AsyncSession,
    marker_key: str,
    cooldown: timedelta,
    now: Optional[datetime] = None,
) -> bool:
    """True if the marker says the pipeline ran less than `cooldown` ago."""
    now = now or datetime.now(timezone.utc)
    result = await session.execute(select(ApiCache).where(ApiCache.key == marker_key))
    marker = result.scalar_one_or_none()
    if marker is None:
        return False
    return marker.last_fetched > now - cooldown


def _row_values(row: ScoreRow, now: datetime) -> dict:
    fixture = row.fixture
    return {
        "row_number": row.row_number,
        "day": row.day,
        "start_time": fixture.kickoff,
        "status_long": fixture.status.long,
        "status_short": fixture.status.short,
        "elapsed": fixture.status.elapsed,
        "home_team": fixture.home.to_dict(),
        "away_team": fixture.away.to_dict(),
        "home_goals": fixture.score.home,
        "away_goals": fixture.score.away,
        "league_id": fixture.league.id,
        "league": fixture.league.to_dict(),
        "odds_home": row.odds.home,
        "odds_draw": row.odds.draw,
        "odds_away": row.odds.away,
        "last_updated": now,
    }


class ScoreReconciler:
    """
    Applies one assembled batch to the cache tables.

    The caller owns the session; reconcile() commits on success and rolls
    back on any failure.
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def reconcile(
        self,
        rows: list[ScoreRow],
        marker_key: str = BASE_DATA_CACHE_KEY,
        now: Optional[datetime] = None,
    ) -> ReconcileResult:
        """
        Upsert the batch, evaluate fixtures that just finished, delete rows
        that left the section and stamp the cache marker.

        All writes share one transaction.
        """
        now = now or datetime.now(timezone.utc)
        result = ReconcileResult()

        try:
            existing_result = await self.session.execute(select(FootballScore))
            existing = {s.fixture_id: s for s in existing_result.scalars().all()}

            batch_ids: set[int] = set()
            for row in rows:
                batch_ids.add(row.fixture_id)
                cached = existing.get(row.fixture_id)
                previous_status = cached.status_short if cached else None

                values = _row_values(row, now)
                if cached is None:
                    self.session.add(FootballScore(fixture_id=row.fixture_id, **values))
                    result.inserted += 1
                else:
                    for key, value in values.items():
                        setattr(cached, key, value)
                    result.updated += 1

                if row.fixture.status.short == FINISHED_STATUS and previous_status != FINISHED_STATUS:
                    result.finished += 1
                    logger.info(f"Fixture {row.fixture_id} finished: {previous_status} -> FT")
                    if await self._save_forecast(row, now):
                        result.history_written += 1

            for fixture_id, cached in existing.items():
                if fixture_id not in batch_ids:
                    await self.session.delete(cached)
                    result.deleted += 1

            await self._touch_marker(marker_key, now)
            await self.session.commit()

        except Exception:
            await self.session.rollback()
            logger.exception("Reconciliation failed, transaction rolled back")
            raise

        record_reconcile(result.inserted, result.updated, result.deleted, result.history_written)
        logger.info(f"Reconcile complete: {result.to_dict()}")
        return result

    async def _save_forecast(self, row: ScoreRow, now: datetime) -> bool:
        """Upsert the forecast outcome for a finished weekend fixture."""
        section_id = get_date_range(row.fixture.kickoff).section_id
        if not is_weekend_section(section_id):
            logger.debug(f"Fixture {row.fixture_id} finished outside a weekend section ({section_id})")
            return False

        label = forecast_for(row.row_number)
        score = row.fixture.score.to_dict()
        outcome = actual_outcome(score)
        if label is None or outcome is None:
            logger.debug(f"Fixture {row.fixture_id} not evaluable (row={row.row_number}, score={score})")
            return False

        await upsert_forecast_history(
            self.session,
            fixture_id=row.fixture_id,
            week_section_id=section_id,
            row_number=row.row_number,
            forecast=label,
            actual=outcome,
            correct=is_correct(score, label),
            now=now,
        )
        return True

    async def _touch_marker(self, marker_key: str, now: datetime) -> None:
        result = await self.session.execute(select(ApiCache).where(ApiCache.key == marker_key))
        marker = result.scalar_one_or_none()
        if marker is None:
            self.session.add(ApiCache(key=marker_key, last_fetched=now))
        else:
            marker.last_fetched = now

    async def apply_live_updates(
        self,
        fixtures: Iterable[FixtureRecord],
        now: Optional[datetime] = None,
    ) -> int:
        """
        Refresh status and score of cached rows from live fixtures.

        Fixtures that are not cached are ignored. No history is written.
        """
        now = now or datetime.now(timezone.utc)
        live = {f.fixture_id: f for f in fixtures}
        if not live:
            return 0

        try:
            result = await self.session.execute(
                select(FootballScore).where(FootballScore.fixture_id.in_(list(live)))
            )
            updated = 0
            for cached in result.scalars().all():
                fixture = live[cached.fixture_id]
                cached.status_long = fixture.status.long
                cached.status_short = fixture.status.short
                cached.elapsed = fixture.status.elapsed
                cached.home_goals = fixture.score.home
                cached.away_goals = fixture.score.away
                cached.last_updated = now
                updated += 1
            await self.session.commit()
        except Exception:
            await self.session.rollback()
            raise

        return updated

    async def prune_forecast_history(self, keep_section_ids: list[str]) -> int:
        """Delete forecast history outside the given sections. Returns rows deleted."""
        try:
            result = await self.session.execute(
                delete(ForecastHistory).where(ForecastHistory.week_section_id.not_in(keep_section_ids))
            )
            await self.session.commit()
        except Exception:
            await self.session.rollback()
            raise
        return result.rowcount or 0


async def upsert_forecast_history(
    session: AsyncSession,
    fixture_id: int,
    week_section_id: str,
    row_number: int,
    correct: bool,
    forecast: Optional[str] = None,
    actual: Optional[str] = None,
    now: Optional[datetime] = None,
) -> ForecastHistory:
    """
    Insert or overwrite the history row for (fixture_id, week_section_id).

    Does not commit.
    """
    now = now or datetime.now(timezone.utc)
    result = await session.execute(
        select(ForecastHistory).where(
            ForecastHistory.fixture_id == fixture_id,
            ForecastHistory.week_section_id == week_section_id,
        )
    )
    history = result.scalar_one_or_none()

    if history is None:
        history = ForecastHistory(
            fixture_id=fixture_id,
            week_section_id=week_section_id,
            row_number=row_number,
            forecast=forecast,
            actual_outcome=actual,
            is_correct=correct,
            created_at=now,
        )
        session.add(history)
    else:
        history.row_number = row_number
        history.forecast = forecast
        history.actual_outcome = actual
        history.is_correct = correct
        history.updated_at = now

    return history
