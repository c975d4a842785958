"""API-Football data provider (supports RapidAPI and API-Sports)."""

import asyncio
import logging
import time
from datetime import datetime, timezone
from typing import Iterable, Optional

import httpx

from fixturecast.config import Settings, get_settings
from fixturecast.etl.base import (
    FixtureRecord,
    FixtureStatus,
    LeagueInfo,
    OddsRecord,
    Score,
    TeamInfo,
)
from fixturecast.telemetry import record_provider_error, record_provider_request

logger = logging.getLogger(__name__)

PROVIDER = "api_football"

# Guard against a corrupt paging.total
MAX_PAGES = 100


class MissingAPIKeyError(RuntimeError):
    """Raised when RAPIDAPI_KEY is not configured."""


class UpstreamError(RuntimeError):
    """Raised by pass-through reads when the upstream request failed."""


def build_connection(settings: Settings) -> tuple[str, dict]:
    """Base URL and auth headers for the configured host."""
    host = settings.RAPIDAPI_HOST
    if "api-sports.io" in host:
        # API-Sports direct
        return f"https://{host}", {"x-apisports-key": settings.RAPIDAPI_KEY}
    # RapidAPI
    return f"https://{host}/v3", {
        "X-RapidAPI-Key": settings.RAPIDAPI_KEY,
        "X-RapidAPI-Host": host,
    }


def _parse_kickoff(value: str) -> datetime:
    kickoff = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if kickoff.tzinfo is None:
        kickoff = kickoff.replace(tzinfo=timezone.utc)
    return kickoff.astimezone(timezone.utc)


def _parse_team(team: dict) -> TeamInfo:
    return TeamInfo(
        id=int(team["id"]),
        name=team["name"],
        logo=team.get("logo"),
        winner=team.get("winner"),
    )


def parse_fixture(item: dict) -> FixtureRecord:
    """
    Parse one API fixture into a FixtureRecord.

    Raises KeyError/TypeError/ValueError on malformed items.
    """
    fixture_info = item["fixture"]
    status_info = fixture_info.get("status") or {}
    teams = item["teams"]
    goals = item.get("goals") or {}
    league = item["league"]

    return FixtureRecord(
        fixture_id=int(fixture_info["id"]),
        kickoff=_parse_kickoff(fixture_info["date"]),
        status=FixtureStatus(
            long=status_info.get("long") or "",
            short=status_info.get("short") or "NS",
            elapsed=status_info.get("elapsed"),
        ),
        home=_parse_team(teams["home"]),
        away=_parse_team(teams["away"]),
        score=Score(home=goals.get("home"), away=goals.get("away")),
        league=LeagueInfo(
            id=int(league["id"]),
            name=league["name"],
            country=league.get("country"),
            logo=league.get("logo"),
            flag=league.get("flag"),
            season=league.get("season"),
            round=league.get("round"),
        ),
    )


def parse_odds(item: dict, bookmaker_id: int, bet_id: int) -> Optional[OddsRecord]:
    """
    Extract the 1X2 triple for one bookmaker/market from an odds item.

    Returns None unless home, draw and away are all present.
    """
    fixture_id = int(item["fixture"]["id"])

    bookmaker = next(
        (b for b in item.get("bookmakers") or [] if b.get("id") == bookmaker_id),
        None,
    )
    if bookmaker is None:
        return None

    bet = next((b for b in bookmaker.get("bets") or [] if b.get("id") == bet_id), None)
    if bet is None:
        return None

    odds = {}
    for v in bet.get("values") or []:
        if v.get("value") in ("Home", "Draw", "Away") and v.get("odd"):
            odds[v["value"]] = str(v["odd"])

    if len(odds) != 3:
        return None

    return OddsRecord(
        fixture_id=fixture_id,
        home=odds["Home"],
        draw=odds["Draw"],
        away=odds["Away"],
    )


def _as_dict(value) -> dict:
    return value if isinstance(value, dict) else {}


def _percent(value) -> Optional[str]:
    return None if value is None else str(value)


def _total_pages(data: dict) -> int:
    paging = data.get("paging") or {}
    try:
        total = int(paging.get("total") or 1)
    except (TypeError, ValueError):
        return 1
    if total > MAX_PAGES:
        logger.warning(f"[API] paging.total={total} capped at {MAX_PAGES}")
        return MAX_PAGES
    return max(total, 1)


class APIFootballProvider:
    """
    Async client for the API-Football endpoints the dashboard uses.

    Date-scoped fetches follow `paging.total` and tolerate partial failure:
    a failed page is logged and skipped, a failed date contributes nothing.
    """

    def __init__(
        self,
        client: Optional[httpx.AsyncClient] = None,
        settings: Optional[Settings] = None,
    ):
        settings = settings or get_settings()
        if not settings.RAPIDAPI_KEY:
            raise MissingAPIKeyError("RAPIDAPI_KEY environment variable is not set.")

        self.BASE_URL, self.headers = build_connection(settings)
        self._owns_client = client is None
        self.client = client or httpx.AsyncClient(timeout=settings.API_TIMEOUT_SECONDS)

        self.max_retries = max(1, settings.API_MAX_RETRIES)
        self.retry_delay = settings.API_RETRY_DELAY_SECONDS
        self.bookmaker_id = settings.TARGET_BOOKMAKER_ID
        self.bet_id = settings.MATCH_WINNER_BET_ID
        self.timezone = settings.LOCAL_TIMEZONE

    async def __aenter__(self) -> "APIFootballProvider":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    async def _request(self, endpoint: str, params: dict, entity: str) -> Optional[dict]:
        """
        GET one page from the API.

        Retries 429 responses with exponential backoff. Every other failure
        (transport error, non-2xx, unparsable body, `errors` in the envelope)
        is logged and returns None.

        Args:
            endpoint: API endpoint to call
            params: Query parameters
            entity: Entity type for telemetry labels (fixture, odds, live, ...)
        """
        url = f"{self.BASE_URL}/{endpoint}"

        for attempt in range(self.max_retries):
            start_time = time.time()
            try:
                response = await self.client.get(url, params=params, headers=self.headers)
            except httpx.TimeoutException as e:
                record_provider_error(PROVIDER, entity, "timeout")
                logger.error(f"[API] Timeout on {endpoint} {params}: {e}")
                return None
            except httpx.RequestError as e:
                record_provider_error(PROVIDER, entity, "request_error")
                logger.error(f"[API] Request error on {endpoint} {params}: {e}")
                return None

            latency_ms = (time.time() - start_time) * 1000

            if response.status_code == 429:
                record_provider_request(
                    PROVIDER, entity, endpoint, 429, latency_ms, is_rate_limited=True
                )
                if attempt < self.max_retries - 1:
                    wait_time = self.retry_delay * (2**attempt)
                    logger.warning(f"[API] Rate limited on {endpoint}. Waiting {wait_time}s before retry...")
                    await asyncio.sleep(wait_time)
                    continue
                break

            record_provider_request(PROVIDER, entity, endpoint, response.status_code, latency_ms)

            if not response.is_success:
                record_provider_error(PROVIDER, entity, f"http_{response.status_code // 100}xx")
                logger.error(
                    f"[API] HTTP {response.status_code} on {endpoint} {params}: {response.text[:200]}"
                )
                return None

            try:
                data = response.json()
            except ValueError as e:
                record_provider_error(PROVIDER, entity, "bad_envelope")
                logger.error(f"[API] Unparsable body on {endpoint} {params}: {e}")
                return None

            if not isinstance(data, dict):
                record_provider_error(PROVIDER, entity, "bad_envelope")
                logger.error(f"[API] Unexpected envelope on {endpoint} {params}: {type(data).__name__}")
                return None

            if data.get("errors"):
                record_provider_error(PROVIDER, entity, "api_error")
                logger.error(f"[API] API error on {endpoint} {params}: {data['errors']}")
                return None

            return data

        logger.error(f"[API] Giving up on {endpoint} {params} after {self.max_retries} rate-limited attempts")
        return None

    async def _fetch_all_pages(self, endpoint: str, params: dict, entity: str) -> list[dict]:
        """Fetch every page of a paginated endpoint, skipping pages that fail."""
        first = await self._request(endpoint, params, entity)
        if first is None:
            return []

        items = self._response_items(first, endpoint, params, entity)
        total = _total_pages(first)

        for page in range(2, total + 1):
            page_params = {**params, "page": page}
            data = await self._request(endpoint, page_params, entity)
            if data is None:
                logger.warning(f"[API] Skipping {endpoint} page {page}/{total} for {params}")
                continue
            items.extend(self._response_items(data, endpoint, page_params, entity))

        return items

    @staticmethod
    def _response_items(data: dict, endpoint: str, params: dict, entity: str) -> list[dict]:
        items = data.get("response")
        if not isinstance(items, list):
            record_provider_error(PROVIDER, entity, "bad_envelope")
            logger.warning(f"[API] Non-list response for {endpoint} {params}, ignoring")
            return []
        return [item for item in items if isinstance(item, dict)]

    async def _gather_by_date(self, endpoint: str, dates: list[str], extra: dict, entity: str) -> list[list[dict]]:
        """Run one paginated fetch per date concurrently; a failed date yields []."""
        results = await asyncio.gather(
            *(
                self._fetch_all_pages(endpoint, {"date": d, **extra}, entity)
                for d in dates
            ),
            return_exceptions=True,
        )

        per_date = []
        for d, result in zip(dates, results):
            if isinstance(result, BaseException):
                logger.error(f"[API] {endpoint} for {d} failed: {result}")
                per_date.append([])
            else:
                per_date.append(result)
        return per_date

    def _parse_fixtures(self, items: Iterable[dict], league_ids: Optional[Iterable[int]]) -> list[FixtureRecord]:
        wanted = set(league_ids) if league_ids else None
        fixtures = []
        for item in items:
            try:
                fixture = parse_fixture(item)
            except (KeyError, TypeError, ValueError) as e:
                logger.warning(f"[API] Skipping malformed fixture: {e!r}")
                continue
            if wanted is not None and fixture.league.id not in wanted:
                continue
            fixtures.append(fixture)
        return fixtures

    async def fetch_fixtures_for_dates(
        self,
        dates: list[str],
        league_ids: Optional[Iterable[int]] = None,
    ) -> list[FixtureRecord]:
        """
        Fetch all fixtures for the given dates (GET /fixtures?date=YYYY-MM-DD).

        If league_ids is provided, results are filtered in memory.
        Fixtures appearing under more than one date are kept once.
        """
        logger.info(f"[API] Fetching fixtures for dates: {', '.join(dates)}")
        per_date = await self._gather_by_date("fixtures", dates, {"timezone": self.timezone}, "fixture")

        fixtures: list[FixtureRecord] = []
        seen: set[int] = set()
        for d, items in zip(dates, per_date):
            parsed = self._parse_fixtures(items, league_ids)
            logger.info(f"[API] {d}: {len(items)} fixtures received, {len(parsed)} kept")
            for fixture in parsed:
                if fixture.fixture_id in seen:
                    continue
                seen.add(fixture.fixture_id)
                fixtures.append(fixture)

        return fixtures

    async def fetch_odds_for_dates(self, dates: list[str]) -> dict[int, OddsRecord]:
        """
        Fetch 1X2 odds for the given dates from the configured bookmaker/market.

        Returns a map fixture_id -> OddsRecord; incomplete triples are dropped.
        """
        logger.info(f"[API] Fetching odds for dates: {', '.join(dates)}")
        extra = {"bookmaker": self.bookmaker_id, "bet": self.bet_id, "timezone": self.timezone}
        per_date = await self._gather_by_date("odds", dates, extra, "odds")

        odds_by_fixture: dict[int, OddsRecord] = {}
        for items in per_date:
            for item in items:
                try:
                    odds = parse_odds(item, self.bookmaker_id, self.bet_id)
                except (KeyError, TypeError, ValueError) as e:
                    logger.debug(f"[API] Skipping malformed odds item: {e!r}")
                    continue
                if odds is not None:
                    odds_by_fixture[odds.fixture_id] = odds

        logger.info(f"[API] Processed odds for {len(odds_by_fixture)} fixtures")
        return odds_by_fixture

    async def fetch_live_fixtures(self, league_ids: Optional[Iterable[int]] = None) -> list[FixtureRecord]:
        """Fetch in-play fixtures (GET /fixtures?live=all), filtered by league in memory."""
        items = await self._fetch_all_pages("fixtures", {"live": "all"}, "live")
        fixtures = self._parse_fixtures(items, league_ids)
        logger.info(f"[API] Live: {len(items)} fixtures received, {len(fixtures)} kept")
        return fixtures

    # ------------------------------------------------------------------
    # Pass-through reads for the dashboard detail views
    # ------------------------------------------------------------------

    async def _get_response(self, endpoint: str, params: dict, entity: str):
        data = await self._request(endpoint, params, entity)
        if data is None:
            raise UpstreamError(f"{endpoint} request failed")
        return data.get("response")

    async def get_prediction(self, fixture_id: int) -> Optional[dict]:
        """
        Upstream prediction summary for a fixture, or None if unavailable.

        Raises UpstreamError when the request failed or the item is not an object.
        """
        response = await self._get_response("predictions", {"fixture": fixture_id}, "prediction")
        if not response:
            return None

        item = response[0] if isinstance(response, list) else None
        if not isinstance(item, dict):
            record_provider_error(PROVIDER, "prediction", "bad_item")
            logger.error(f"[API] Malformed prediction for fixture {fixture_id}: {str(response)[:200]}")
            raise UpstreamError("predictions returned a malformed item")

        teams = _as_dict(item.get("teams"))
        predictions = _as_dict(item.get("predictions"))
        winner = _as_dict(predictions.get("winner"))
        percent = _as_dict(predictions.get("percent"))

        return {
            "home": _as_dict(teams.get("home")).get("name"),
            "away": _as_dict(teams.get("away")).get("name"),
            "prediction": winner.get("name"),
            "winPercentHome": _percent(percent.get("home")),
            "winPercentAway": _percent(percent.get("away")),
            "winPercentDraw": _percent(percent.get("draw")),
        }

    async def get_fixture_statistics(self, fixture_id: int) -> Optional[list]:
        """Per-team match statistics, or None if unavailable."""
        response = await self._get_response("fixtures/statistics", {"fixture": fixture_id}, "stats")
        return response if isinstance(response, list) and response else None

    async def get_lineups(self, fixture_id: int) -> Optional[list]:
        """Lineups for both teams, or None if not yet published."""
        response = await self._get_response("fixtures/lineups", {"fixture": fixture_id}, "lineup")
        return response if isinstance(response, list) and response else None

    async def get_fixture_events(self, fixture_id: int) -> Optional[list]:
        """Goals, cards and substitutions, or None if there are none yet."""
        response = await self._get_response("fixtures/events", {"fixture": fixture_id}, "events")
        return response if isinstance(response, list) and response else None

    async def get_team_statistics(self, team_id: int, league_id: int, season: int) -> Optional[dict]:
        """Season statistics for a team in a league, or None if unavailable."""
        params = {"team": team_id, "league": league_id, "season": season}
        response = await self._get_response("teams/statistics", params, "team_stats")
        return response if isinstance(response, dict) and response else None

    async def close(self) -> None:
        """Close the HTTP client if this provider created it."""
        if self._owns_client:
            await self.client.aclose()
