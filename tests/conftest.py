"""Shared test setup: in-memory database and upstream payload builders."""

import os

# Must be set before fixturecast modules read settings
os.environ["DATABASE_URL"] = "sqlite:///:memory:"
os.environ["RAPIDAPI_KEY"] = "test-key"
os.environ["SCHEDULER_ENABLED"] = "false"
os.environ["SENTRY_ENABLED"] = "false"
os.environ["CRON_SECRET"] = ""
os.environ["API_RETRY_DELAY_SECONDS"] = "0"

from datetime import datetime, timezone

import pytest
import pytest_asyncio
from sqlmodel import SQLModel

from fixturecast import models  # noqa: F401
from fixturecast.database import AsyncSessionLocal, async_engine
from fixturecast.etl.base import (
    FixtureRecord,
    FixtureStatus,
    LeagueInfo,
    OddsRecord,
    Score,
    TeamInfo,
)


@pytest_asyncio.fixture
async def db():
    """Fresh schema per test; the in-memory database dies with the engine pool."""
    async with async_engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
    yield
    await async_engine.dispose()


@pytest_asyncio.fixture
async def session(db):
    async with AsyncSessionLocal() as session:
        yield session


def make_fixture(
    fixture_id: int,
    kickoff: datetime,
    short: str = "NS",
    home_goals=None,
    away_goals=None,
    league_id: int = 39,
) -> FixtureRecord:
    if kickoff.tzinfo is None:
        kickoff = kickoff.replace(tzinfo=timezone.utc)
    return FixtureRecord(
        fixture_id=fixture_id,
        kickoff=kickoff,
        status=FixtureStatus(long="Match Finished" if short == "FT" else "Not Started", short=short),
        home=TeamInfo(id=fixture_id * 10 + 1, name=f"Home {fixture_id}"),
        away=TeamInfo(id=fixture_id * 10 + 2, name=f"Away {fixture_id}"),
        score=Score(home=home_goals, away=away_goals),
        league=LeagueInfo(id=league_id, name=f"League {league_id}", country="England", season=2025),
    )


def make_odds(fixture_id: int) -> OddsRecord:
    return OddsRecord(fixture_id=fixture_id, home="2.10", draw="3.40", away="3.50")


def api_fixture(
    fixture_id: int,
    date: str = "2025-04-12T14:00:00+00:00",
    short: str = "NS",
    league_id: int = 39,
    home_goals=None,
    away_goals=None,
) -> dict:
    """One item of the upstream /fixtures response."""
    return {
        "fixture": {
            "id": fixture_id,
            "date": date,
            "status": {"long": "Not Started", "short": short, "elapsed": None},
        },
        "league": {
            "id": league_id,
            "name": "Premier League",
            "country": "England",
            "logo": "https://media.example/leagues/39.png",
            "flag": "https://media.example/flags/gb.svg",
            "season": 2024,
            "round": "Regular Season - 32",
        },
        "teams": {
            "home": {"id": 40, "name": "Liverpool", "logo": "https://media.example/teams/40.png", "winner": None},
            "away": {"id": 50, "name": "Manchester City", "logo": "https://media.example/teams/50.png", "winner": None},
        },
        "goals": {"home": home_goals, "away": away_goals},
    }


def api_odds(fixture_id: int, bookmaker_id: int = 6, bet_id: int = 1, values=None) -> dict:
    """One item of the upstream /odds response."""
    if values is None:
        values = [
            {"value": "Home", "odd": "1.85"},
            {"value": "Draw", "odd": "3.60"},
            {"value": "Away", "odd": "4.20"},
        ]
    return {
        "fixture": {"id": fixture_id},
        "bookmakers": [
            {
                "id": bookmaker_id,
                "name": "Betway",
                "bets": [{"id": bet_id, "name": "Match Winner", "values": values}],
            }
        ],
    }


def envelope(items, current: int = 1, total: int = 1, errors=None) -> dict:
    return {
        "get": "fixtures",
        "errors": errors if errors is not None else [],
        "results": len(items) if isinstance(items, list) else 1,
        "paging": {"current": current, "total": total},
        "response": items,
    }


@pytest.fixture
def fixture_factory():
    return make_fixture


@pytest.fixture
def odds_factory():
    return make_odds
