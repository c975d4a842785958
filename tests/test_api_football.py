"""
Tests for the API-Football client against a mocked transport.

No network: every request goes through httpx.MockTransport.
"""

import httpx
import pytest
from conftest import api_fixture, api_odds, envelope

from fixturecast.config import Settings
from fixturecast.etl.api_football import (
    APIFootballProvider,
    MissingAPIKeyError,
    UpstreamError,
    parse_fixture,
)


def make_provider(handler, **settings_overrides) -> tuple[APIFootballProvider, list[httpx.Request]]:
    """Provider whose requests are answered by `handler`; returns the request log too."""
    seen: list[httpx.Request] = []

    def recording_handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return handler(request)

    client = httpx.AsyncClient(transport=httpx.MockTransport(recording_handler))
    settings = Settings(RAPIDAPI_KEY="test-key", API_RETRY_DELAY_SECONDS=0, **settings_overrides)
    return APIFootballProvider(client=client, settings=settings), seen


class TestConstruction:
    def test_missing_key_raises_before_any_request(self):
        calls = []
        client = httpx.AsyncClient(transport=httpx.MockTransport(lambda r: calls.append(r)))

        with pytest.raises(MissingAPIKeyError):
            APIFootballProvider(client=client, settings=Settings(RAPIDAPI_KEY=""))

        assert calls == []

    @pytest.mark.asyncio
    async def test_rapidapi_headers(self):
        provider, seen = make_provider(lambda r: httpx.Response(200, json=envelope([])))

        await provider.fetch_fixtures_for_dates(["2025-04-12"])

        assert seen[0].headers["X-RapidAPI-Key"] == "test-key"
        assert seen[0].headers["X-RapidAPI-Host"] == "api-football-v1.p.rapidapi.com"
        assert seen[0].url.path == "/v3/fixtures"

    @pytest.mark.asyncio
    async def test_api_sports_host(self):
        provider, seen = make_provider(
            lambda r: httpx.Response(200, json=envelope([])),
            RAPIDAPI_HOST="v3.football.api-sports.io",
        )

        await provider.fetch_fixtures_for_dates(["2025-04-12"])

        assert seen[0].headers["x-apisports-key"] == "test-key"
        assert seen[0].url.host == "v3.football.api-sports.io"


class TestFixturesByDate:
    @pytest.mark.asyncio
    async def test_follows_pages_and_skips_failed_page(self):
        def handler(request):
            page = request.url.params.get("page", "1")
            if page == "1":
                return httpx.Response(200, json=envelope([api_fixture(1)], current=1, total=3))
            if page == "2":
                return httpx.Response(500, text="upstream exploded")
            return httpx.Response(200, json=envelope([api_fixture(3)], current=3, total=3))

        provider, seen = make_provider(handler)
        fixtures = await provider.fetch_fixtures_for_dates(["2025-04-12"])

        assert [f.fixture_id for f in fixtures] == [1, 3]
        assert sorted(r.url.params.get("page", "1") for r in seen) == ["1", "2", "3"]

    @pytest.mark.asyncio
    async def test_failed_date_does_not_abort_others(self):
        def handler(request):
            date = request.url.params["date"]
            if date == "2025-04-13":
                return httpx.Response(200, json=envelope([], errors={"requests": "limit reached"}))
            if date == "2025-04-14":
                return httpx.Response(200, content=b"<html>not json</html>")
            return httpx.Response(200, json=envelope([api_fixture(11)]))

        provider, seen = make_provider(handler)
        fixtures = await provider.fetch_fixtures_for_dates(["2025-04-12", "2025-04-13", "2025-04-14"])

        assert [f.fixture_id for f in fixtures] == [11]
        assert len(seen) == 3

    @pytest.mark.asyncio
    async def test_transport_error_degrades_to_empty(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        provider, _ = make_provider(handler)
        assert await provider.fetch_fixtures_for_dates(["2025-04-12"]) == []

    @pytest.mark.asyncio
    async def test_non_list_response_ignored(self):
        provider, _ = make_provider(lambda r: httpx.Response(200, json=envelope({"oops": True})))
        assert await provider.fetch_fixtures_for_dates(["2025-04-12"]) == []

    @pytest.mark.asyncio
    async def test_league_filter_and_malformed_items(self):
        broken = api_fixture(3)
        del broken["teams"]
        items = [api_fixture(1, league_id=39), api_fixture(2, league_id=999), broken]
        provider, _ = make_provider(lambda r: httpx.Response(200, json=envelope(items)))

        fixtures = await provider.fetch_fixtures_for_dates(["2025-04-12"], league_ids=[39, 140])

        assert [f.fixture_id for f in fixtures] == [1]

    @pytest.mark.asyncio
    async def test_same_fixture_under_two_dates_kept_once(self):
        provider, _ = make_provider(lambda r: httpx.Response(200, json=envelope([api_fixture(5)])))
        fixtures = await provider.fetch_fixtures_for_dates(["2025-04-12", "2025-04-13"])
        assert [f.fixture_id for f in fixtures] == [5]

    @pytest.mark.asyncio
    async def test_rate_limited_then_ok(self):
        responses = iter([
            httpx.Response(429, json={"message": "Too many requests"}),
            httpx.Response(200, json=envelope([api_fixture(1)])),
        ])
        provider, seen = make_provider(lambda r: next(responses))

        fixtures = await provider.fetch_fixtures_for_dates(["2025-04-12"])

        assert [f.fixture_id for f in fixtures] == [1]
        assert len(seen) == 2

    @pytest.mark.asyncio
    async def test_rate_limit_exhausted_degrades_to_empty(self):
        provider, seen = make_provider(lambda r: httpx.Response(429), API_MAX_RETRIES=2)
        assert await provider.fetch_fixtures_for_dates(["2025-04-12"]) == []
        assert len(seen) == 2


class TestParseFixture:
    def test_fields(self):
        fixture = parse_fixture(api_fixture(42, date="2025-04-12T16:30:00+03:00", short="FT", home_goals=2, away_goals=1))

        assert fixture.fixture_id == 42
        assert fixture.kickoff.isoformat() == "2025-04-12T13:30:00+00:00"
        assert fixture.status.short == "FT"
        assert fixture.status.is_finished
        assert fixture.score.home == 2 and fixture.score.away == 1
        assert fixture.home.name == "Liverpool"
        assert fixture.league.round == "Regular Season - 32"


class TestOddsByDate:
    @pytest.mark.asyncio
    async def test_complete_triples_only(self):
        items = [
            api_odds(1),
            api_odds(2, values=[{"value": "Home", "odd": "1.50"}, {"value": "Away", "odd": "6.00"}]),
            api_odds(3, bookmaker_id=8),
            api_odds(4, bet_id=5),
        ]
        provider, seen = make_provider(lambda r: httpx.Response(200, json=envelope(items)))

        odds = await provider.fetch_odds_for_dates(["2025-04-12"])

        assert list(odds) == [1]
        assert odds[1].to_dict() == {"home": "1.85", "draw": "3.60", "away": "4.20"}
        assert seen[0].url.path == "/v3/odds"
        assert seen[0].url.params["bookmaker"] == "6"
        assert seen[0].url.params["bet"] == "1"

    @pytest.mark.asyncio
    async def test_merges_dates(self):
        def handler(request):
            fixture_id = 1 if request.url.params["date"] == "2025-04-12" else 2
            return httpx.Response(200, json=envelope([api_odds(fixture_id)]))

        provider, _ = make_provider(handler)
        odds = await provider.fetch_odds_for_dates(["2025-04-12", "2025-04-13"])
        assert sorted(odds) == [1, 2]


class TestLiveFixtures:
    @pytest.mark.asyncio
    async def test_live_all_filtered_by_league(self):
        items = [api_fixture(1, short="1H", league_id=39), api_fixture(2, short="2H", league_id=999)]
        provider, seen = make_provider(lambda r: httpx.Response(200, json=envelope(items)))

        fixtures = await provider.fetch_live_fixtures([39])

        assert [f.fixture_id for f in fixtures] == [1]
        assert seen[0].url.params["live"] == "all"


class TestPassThrough:
    @pytest.mark.asyncio
    async def test_prediction_normalized(self):
        payload = [{
            "predictions": {
                "winner": {"id": 40, "name": "Liverpool"},
                "percent": {"home": "45%", "draw": "30%", "away": "25%"},
            },
            "teams": {"home": {"name": "Liverpool"}, "away": {"name": "Manchester City"}},
        }]
        provider, seen = make_provider(lambda r: httpx.Response(200, json=envelope(payload)))

        prediction = await provider.get_prediction(1001)

        assert prediction == {
            "home": "Liverpool",
            "away": "Manchester City",
            "prediction": "Liverpool",
            "winPercentHome": "45%",
            "winPercentAway": "25%",
            "winPercentDraw": "30%",
        }
        assert seen[0].url.params["fixture"] == "1001"

    @pytest.mark.asyncio
    async def test_prediction_without_percent_passes_none(self):
        payload = [{"predictions": {"winner": None}, "teams": {"home": {"name": "Liverpool"}, "away": "?"}}]
        provider, _ = make_provider(lambda r: httpx.Response(200, json=envelope(payload)))

        prediction = await provider.get_prediction(1001)

        assert prediction["home"] == "Liverpool"
        assert prediction["away"] is None
        assert prediction["prediction"] is None
        assert (prediction["winPercentHome"], prediction["winPercentAway"], prediction["winPercentDraw"]) == (
            None,
            None,
            None,
        )

    @pytest.mark.asyncio
    @pytest.mark.parametrize("response", [["oops"], {"fixture": 1}])
    async def test_malformed_prediction_raises_upstream_error(self, response):
        provider, _ = make_provider(lambda r: httpx.Response(200, json=envelope(response)))
        with pytest.raises(UpstreamError):
            await provider.get_prediction(1001)

    @pytest.mark.asyncio
    async def test_empty_response_is_none(self):
        provider, _ = make_provider(lambda r: httpx.Response(200, json=envelope([])))
        assert await provider.get_lineups(1001) is None
        assert await provider.get_fixture_events(1001) is None

    @pytest.mark.asyncio
    async def test_team_statistics_params(self):
        provider, seen = make_provider(lambda r: httpx.Response(200, json=envelope({"form": "WWDLW"})))

        stats = await provider.get_team_statistics(40, 39, 2024)

        assert stats == {"form": "WWDLW"}
        assert dict(seen[0].url.params) == {"team": "40", "league": "39", "season": "2024"}

    @pytest.mark.asyncio
    async def test_upstream_failure_raises(self):
        provider, _ = make_provider(lambda r: httpx.Response(503))
        with pytest.raises(UpstreamError):
            await provider.get_fixture_statistics(1001)

    @pytest.mark.asyncio
    async def test_close_leaves_injected_client_open(self):
        provider, _ = make_provider(lambda r: httpx.Response(200, json=envelope([])))
        await provider.close()
        assert not provider.client.is_closed
