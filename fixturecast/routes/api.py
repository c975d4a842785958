"""Dashboard API: cached scores, live proxy, pass-through detail views,
forecast history and job triggers.

Public endpoints are rate limited per client IP. Trigger endpoints
(/api/cron/*) require the shared cron secret when CRON_SECRET is set.
"""

import logging
from typing import AsyncGenerator, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field, StrictBool, StrictInt, field_validator
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from fixturecast.config import get_settings
from fixturecast.database import get_async_session
from fixturecast.etl.api_football import APIFootballProvider, MissingAPIKeyError, UpstreamError
from fixturecast.etl.base import FixtureRecord
from fixturecast.etl.pipeline import upsert_forecast_history
from fixturecast.forecast import HOME, DRAW, AWAY, LABEL_OUTCOMES, ForecastSummary, summarize
from fixturecast.jobs.sync import cleanup_history, update_live_scores, update_section_data
from fixturecast.models import FootballScore, ForecastHistory, to_utc_iso
from fixturecast.security import limiter, verify_cron_secret
from fixturecast.sections import get_date_range, weekend_section_ids_to_keep
from fixturecast.telemetry import capture_exception
from fixturecast.utils.cache import TTLCache

router = APIRouter(prefix="/api", tags=["api"])

logger = logging.getLogger(__name__)
settings = get_settings()

RATE_LIMIT = settings.RATE_LIMIT_PER_MINUTE

# Live proxy cache, keyed by league filter
_live_cache = TTLCache(ttl=5)

FORECAST_HISTORY_LIMIT = 3


async def get_provider() -> AsyncGenerator[APIFootballProvider, None]:
    """Upstream client for the request; 503 when the API key is missing."""
    try:
        provider = APIFootballProvider()
    except MissingAPIKeyError as e:
        logger.error(f"Upstream client unavailable: {e}")
        raise HTTPException(status_code=503, detail="Upstream API is not configured")
    try:
        yield provider
    finally:
        await provider.close()


def _parse_id_list(raw: Optional[str]) -> Optional[list[int]]:
    """'39,140' -> [39, 140]. 400 on anything that is not a comma list of ints."""
    if not raw:
        return None
    try:
        return [int(part) for part in raw.split(",") if part.strip()]
    except ValueError:
        raise HTTPException(status_code=400, detail="leagueIds must be a comma-separated list of integers")


def _require(value, name: str):
    if value is None:
        raise HTTPException(status_code=400, detail=f"{name} is required")
    return value


async def _pass_through(call, not_found: str):
    try:
        data = await call
    except UpstreamError as e:
        logger.error(f"Upstream pass-through failed: {e}")
        raise HTTPException(status_code=502, detail="Upstream request failed")
    if data is None:
        raise HTTPException(status_code=404, detail=not_found)
    return data


def _live_row(fixture: FixtureRecord, row_number: int) -> dict:
    return {
        "rowNumber": row_number,
        "fixtureId": fixture.fixture_id,
        "startTime": to_utc_iso(fixture.kickoff),
        "status": fixture.status.to_dict(),
        "home": fixture.home.to_dict(),
        "away": fixture.away.to_dict(),
        "score": fixture.score.to_dict(),
        "league": fixture.league.to_dict(),
    }


# =============================================================================
# Cached scores
# =============================================================================


@router.get("/football-scores")
@limiter.limit(RATE_LIMIT)
async def get_football_scores(
    request: Request,
    league_ids: Optional[str] = Query(None, alias="leagueIds"),
    session: AsyncSession = Depends(get_async_session),
):
    """Cached rows for the active section, ordered by kickoff."""
    ids = _parse_id_list(league_ids)

    stmt = select(FootballScore).order_by(FootballScore.start_time, FootballScore.row_number)
    if ids:
        stmt = stmt.where(FootballScore.league_id.in_(ids))

    result = await session.execute(stmt)
    return [score.to_api() for score in result.scalars().all()]


@router.get("/football-scores/summary")
@limiter.limit(RATE_LIMIT)
async def get_football_scores_summary(
    request: Request,
    session: AsyncSession = Depends(get_async_session),
):
    """Forecast accuracy over the cached rows plus the active section."""
    result = await session.execute(
        select(FootballScore.row_number, FootballScore.home_goals, FootballScore.away_goals)
    )
    summary = summarize(
        (row_number, {"home": home, "away": away})
        for row_number, home, away in result.all()
    )
    date_range = get_date_range()
    return {
        "sectionId": date_range.section_id,
        "dates": date_range.dates,
        **summary.to_dict(),
    }


@router.get("/football-scores/live")
@limiter.limit(RATE_LIMIT)
async def get_live_scores(
    request: Request,
    league_ids: Optional[str] = Query(None, alias="leagueIds"),
    provider: APIFootballProvider = Depends(get_provider),
):
    """In-play fixtures straight from the upstream, numbered in upstream order."""
    ids = _parse_id_list(league_ids)
    cache_key = tuple(ids) if ids else None

    hit, data = _live_cache.get(cache_key)
    if hit:
        return data

    fixtures = await provider.fetch_live_fixtures(ids)
    data = [_live_row(fixture, i) for i, fixture in enumerate(fixtures, start=1)]
    _live_cache.set(cache_key, data)
    return data


# =============================================================================
# Pass-through detail views
# =============================================================================


@router.get("/prediction")
@limiter.limit(RATE_LIMIT)
async def get_prediction(
    request: Request,
    fixture_id: Optional[int] = Query(None, alias="fixtureId"),
    provider: APIFootballProvider = Depends(get_provider),
):
    fixture_id = _require(fixture_id, "fixtureId")
    return await _pass_through(provider.get_prediction(fixture_id), "No prediction data found")


@router.get("/statistics")
@limiter.limit(RATE_LIMIT)
async def get_statistics(
    request: Request,
    fixture_id: Optional[int] = Query(None, alias="fixtureId"),
    provider: APIFootballProvider = Depends(get_provider),
):
    fixture_id = _require(fixture_id, "fixtureId")
    return await _pass_through(provider.get_fixture_statistics(fixture_id), "No statistics found")


@router.get("/lineups")
@limiter.limit(RATE_LIMIT)
async def get_lineups(
    request: Request,
    fixture_id: Optional[int] = Query(None, alias="fixtureId"),
    provider: APIFootballProvider = Depends(get_provider),
):
    fixture_id = _require(fixture_id, "fixtureId")
    return await _pass_through(provider.get_lineups(fixture_id), "No lineups found")


@router.get("/events")
@limiter.limit(RATE_LIMIT)
async def get_events(
    request: Request,
    fixture_id: Optional[int] = Query(None, alias="fixtureId"),
    provider: APIFootballProvider = Depends(get_provider),
):
    fixture_id = _require(fixture_id, "fixtureId")
    return await _pass_through(provider.get_fixture_events(fixture_id), "No events found")


@router.get("/team-statistics")
@limiter.limit(RATE_LIMIT)
async def get_team_statistics(
    request: Request,
    team_id: Optional[int] = Query(None, alias="teamId"),
    league_id: Optional[int] = Query(None, alias="leagueId"),
    season: Optional[int] = Query(None),
    provider: APIFootballProvider = Depends(get_provider),
):
    team_id = _require(team_id, "teamId")
    league_id = _require(league_id, "leagueId")
    season = _require(season, "season")
    return await _pass_through(
        provider.get_team_statistics(team_id, league_id, season),
        "No team statistics found",
    )


# =============================================================================
# Forecast history
# =============================================================================


class ForecastObservation(BaseModel):
    """Body for POST /api/forecast-history."""

    model_config = ConfigDict(populate_by_name=True)

    fixture_id: StrictInt = Field(alias="fixtureId", ge=1)
    row_number: StrictInt = Field(alias="rowNumber", ge=1)
    is_correct: StrictBool = Field(alias="isCorrect")
    week_section_id: Optional[str] = Field(default=None, alias="weekSectionId", max_length=20)
    forecast: Optional[str] = None
    actual_outcome: Optional[str] = Field(default=None, alias="actualOutcome")

    @field_validator("forecast")
    @classmethod
    def _known_label(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and v not in LABEL_OUTCOMES:
            raise ValueError(f"forecast must be one of {sorted(LABEL_OUTCOMES)}")
        return v

    @field_validator("actual_outcome")
    @classmethod
    def _known_outcome(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and v not in (HOME, DRAW, AWAY):
            raise ValueError("actualOutcome must be '1', 'X' or '2'")
        return v


@router.get("/forecast-history")
@limiter.limit(RATE_LIMIT)
async def get_forecast_history(
    request: Request,
    row_number: Optional[int] = Query(None, alias="rowNumber"),
    session: AsyncSession = Depends(get_async_session),
):
    """Last three correctness flags for a row number, newest first."""
    row_number = _require(row_number, "rowNumber")

    result = await session.execute(
        select(ForecastHistory.is_correct)
        .where(ForecastHistory.row_number == row_number)
        .order_by(ForecastHistory.created_at.desc(), ForecastHistory.id.desc())
        .limit(FORECAST_HISTORY_LIMIT)
    )
    return [bool(v) for v in result.scalars().all()]


@router.get("/forecast-history/summary")
@limiter.limit(RATE_LIMIT)
async def get_forecast_history_summary(
    request: Request,
    section_id: Optional[str] = Query(None, alias="sectionId"),
    session: AsyncSession = Depends(get_async_session),
):
    """Correct/incorrect counts for one weekend section (default: the latest)."""
    section_id = section_id or weekend_section_ids_to_keep(1)[0]

    result = await session.execute(
        select(ForecastHistory.is_correct, func.count())
        .where(ForecastHistory.week_section_id == section_id)
        .group_by(ForecastHistory.is_correct)
    )
    counts = {bool(is_correct): count for is_correct, count in result.all()}
    summary = ForecastSummary(correct=counts.get(True, 0), incorrect=counts.get(False, 0))
    return {"sectionId": section_id, **summary.to_dict()}


@router.post("/forecast-history")
@limiter.limit(RATE_LIMIT)
async def post_forecast_history(
    request: Request,
    body: ForecastObservation,
    session: AsyncSession = Depends(get_async_session),
):
    """Record one observation; overwrites the row for (fixtureId, weekSectionId)."""
    section_id = body.week_section_id or weekend_section_ids_to_keep(1)[0]

    try:
        await upsert_forecast_history(
            session,
            fixture_id=body.fixture_id,
            week_section_id=section_id,
            row_number=body.row_number,
            correct=body.is_correct,
            forecast=body.forecast,
            actual=body.actual_outcome,
        )
        await session.commit()
    except Exception as e:
        await session.rollback()
        logger.exception("Failed to save forecast history")
        capture_exception(e, fixture_id=body.fixture_id, week_section_id=section_id)
        return JSONResponse(status_code=500, content={"error": "Failed to save forecast history"})

    return {"success": True, "weekSectionId": section_id}


# =============================================================================
# Job triggers (external timer)
# =============================================================================


@router.api_route("/cron/update-section-data", methods=["GET", "POST"])
async def trigger_update_section_data(
    force: bool = False,
    _: bool = Depends(verify_cron_secret),
):
    try:
        return await update_section_data(force=force)
    except Exception:
        logger.exception("[SECTION_SYNC] Trigger failed")
        return JSONResponse(status_code=500, content={"error": "Failed to update section data"})


@router.api_route("/cron/update-live-scores", methods=["GET", "POST"])
async def trigger_update_live_scores(_: bool = Depends(verify_cron_secret)):
    try:
        return await update_live_scores()
    except Exception:
        logger.exception("[LIVE_SYNC] Trigger failed")
        return JSONResponse(status_code=500, content={"error": "Failed to update live scores"})


@router.api_route("/cron/cleanup-history", methods=["GET", "POST"])
async def trigger_cleanup_history(_: bool = Depends(verify_cron_secret)):
    try:
        return await cleanup_history()
    except Exception:
        logger.exception("[HISTORY_CLEANUP] Trigger failed")
        return JSONResponse(status_code=500, content={"error": "Failed to clean up history"})
