"""Database models using SQLModel."""

from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import JSON, Column, DateTime, UniqueConstraint
from sqlalchemy.types import TypeDecorator
from sqlmodel import Field, SQLModel


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def to_utc_iso(value: Optional[datetime]) -> Optional[str]:
    """ISO 8601 in UTC with a trailing Z, e.g. '2025-04-12T14:00:00Z'."""
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).replace(tzinfo=None).isoformat() + "Z"


class UTCDateTime(TypeDecorator):
    """
    Timezone-aware UTC timestamp on every backend.

    Binds are converted to UTC (naive input is taken as UTC). SQLite hands
    back naive values, so results are re-stamped with UTC.
    """

    impl = DateTime
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)


def utc_column(nullable: bool = False, index: bool = False) -> Column:
    return Column(UTCDateTime(timezone=True), nullable=nullable, index=index)



class FootballScore(SQLModel, table=True):
    """Cached fixture + odds row for the active display section."""

    __tablename__ = "football_scores"

    id: Optional[int] = Field(default=None, primary_key=True)
    fixture_id: int = Field(unique=True, index=True, description="API-Football fixture ID")
    row_number: int = Field(description="Dense rank by kickoff within the last assembled batch")
    day: str = Field(max_length=40, description="Local day label, e.g. 'Saturday, Apr 12'")
    start_time: datetime = Field(sa_column=utc_column(index=True), description="Kickoff (UTC)")

    status_long: str = Field(default="Not Started", max_length=50)
    status_short: str = Field(default="NS", max_length=10, description="NS, 1H, HT, 2H, FT, ...")
    elapsed: Optional[int] = Field(default=None, description="Current minute for live matches")

    home_team: dict = Field(sa_column=Column(JSON, nullable=False), description="id, name, logo, winner")
    away_team: dict = Field(sa_column=Column(JSON, nullable=False), description="id, name, logo, winner")
    home_goals: Optional[int] = Field(default=None, description="NULL if not started")
    away_goals: Optional[int] = Field(default=None, description="NULL if not started")

    league_id: int = Field(index=True, description="Competition ID")
    league: dict = Field(
        sa_column=Column(JSON, nullable=False),
        description="id, name, country, logo, flag, season, round",
    )

    odds_home: str = Field(max_length=20, description="Decimal odds for home win")
    odds_draw: str = Field(max_length=20, description="Decimal odds for draw")
    odds_away: str = Field(max_length=20, description="Decimal odds for away win")

    last_updated: datetime = Field(default_factory=utcnow, sa_column=utc_column())

    def to_api(self) -> dict:
        """Serialize to the JSON shape the dashboard table consumes."""
        return {
            "rowNumber": self.row_number,
            "fixtureId": self.fixture_id,
            "day": self.day,
            "startTime": to_utc_iso(self.start_time),
            "status": {
                "long": self.status_long,
                "short": self.status_short,
                "elapsed": self.elapsed,
            },
            "home": self.home_team,
            "away": self.away_team,
            "score": {"home": self.home_goals, "away": self.away_goals},
            "league": self.league,
            "odds": {"home": self.odds_home, "draw": self.odds_draw, "away": self.odds_away},
            "lastUpdated": to_utc_iso(self.last_updated),
        }


class ForecastHistory(SQLModel, table=True):
    """
    Outcome of the canned forecast for one finished fixture in one section.

    At most one row per (fixture_id, week_section_id); later writes overwrite.
    """

    __tablename__ = "forecast_history"
    __table_args__ = (
        UniqueConstraint("fixture_id", "week_section_id", name="uq_forecast_fixture_section"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    fixture_id: int = Field(index=True)
    week_section_id: str = Field(max_length=20, index=True, description="e.g. '2025-W15-SatMon'")
    row_number: int = Field(index=True)
    forecast: Optional[str] = Field(default=None, max_length=5, description="'1/X', '1/2' or 'X/2'")
    actual_outcome: Optional[str] = Field(default=None, max_length=1, description="'1', 'X' or '2'")
    is_correct: bool = Field(description="Did the forecast cover the final result?")

    created_at: datetime = Field(default_factory=utcnow, sa_column=utc_column())
    updated_at: Optional[datetime] = Field(default=None, sa_column=utc_column(nullable=True))


class ApiCache(SQLModel, table=True):
    """Last successful fetch per named pipeline (cooldown marker)."""

    __tablename__ = "api_cache"

    id: Optional[int] = Field(default=None, primary_key=True)
    key: str = Field(max_length=100, unique=True, index=True)
    last_fetched: datetime = Field(sa_column=utc_column())


class JobRun(SQLModel, table=True):
    """One execution of a scheduled or triggered job."""

    __tablename__ = "job_runs"

    id: Optional[int] = Field(default=None, primary_key=True)
    job_name: str = Field(max_length=50, index=True)
    status: str = Field(max_length=20, description="ok, skipped, error")
    started_at: datetime = Field(sa_column=utc_column())
    finished_at: datetime = Field(sa_column=utc_column(index=True))
    duration_ms: int = Field(default=0)
    error_message: Optional[str] = Field(default=None)
    metrics: Optional[dict] = Field(default=None, sa_column=Column(JSON))
    created_at: datetime = Field(default_factory=utcnow, sa_column=utc_column(index=True))
