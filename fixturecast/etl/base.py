"""Data transfer objects for upstream fixtures, odds and assembled rows."""

from dataclasses import dataclass
from datetime import datetime
from typing import Optional


@dataclass
class FixtureStatus:
    long: str
    short: str  # NS, 1H, HT, 2H, FT, ...
    elapsed: Optional[int] = None

    @property
    def is_finished(self) -> bool:
        return self.short == "FT"

    def to_dict(self) -> dict:
        return {"long": self.long, "short": self.short, "elapsed": self.elapsed}


@dataclass
class TeamInfo:
    id: int
    name: str
    logo: Optional[str] = None
    winner: Optional[bool] = None

    def to_dict(self) -> dict:
        return {"id": self.id, "name": self.name, "logo": self.logo, "winner": self.winner}


@dataclass
class LeagueInfo:
    id: int
    name: str
    country: Optional[str] = None
    logo: Optional[str] = None
    flag: Optional[str] = None
    season: Optional[int] = None
    round: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "country": self.country,
            "logo": self.logo,
            "flag": self.flag,
            "season": self.season,
            "round": self.round,
        }


@dataclass
class Score:
    home: Optional[int] = None
    away: Optional[int] = None

    def to_dict(self) -> dict:
        return {"home": self.home, "away": self.away}


@dataclass
class FixtureRecord:
    """One upstream match, normalized at the client boundary."""

    fixture_id: int
    kickoff: datetime  # Aware UTC
    status: FixtureStatus
    home: TeamInfo
    away: TeamInfo
    score: Score
    league: LeagueInfo


@dataclass(frozen=True)
class OddsRecord:
    """1X2 decimal odds from the configured bookmaker/market. Always complete."""

    fixture_id: int
    home: str
    draw: str
    away: str

    def to_dict(self) -> dict:
        return {"home": self.home, "draw": self.draw, "away": self.away}


@dataclass
class ScoreRow:
    """A fixture joined with its odds, ranked for display."""

    fixture: FixtureRecord
    odds: OddsRecord
    row_number: int
    day: str

    @property
    def fixture_id(self) -> int:
        return self.fixture.fixture_id
