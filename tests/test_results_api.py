"""Tests for the HTTP result provider."""

import asyncio

import httpx
import pytest

from conftest import make_player_prediction, make_prediction
from valuebet.errors import ProviderError, UnsupportedMarket
from valuebet.feeds.results_api import (
    HttpResultProvider,
    ResultAPIConfig,
    parse_event_view,
    parse_player_stats,
)
from valuebet.models.schemas import Market, Outcome, Side, StatLine
from valuebet.verification.verifier import VerificationController


EVENT_VIEW = {
    "success": 1,
    "results": [{
        "id": "8812",
        "time_status": "3",
        "ss": "2-1",
        "home": {"id": "1", "name": "Arsenal"},
        "away": {"id": "2", "name": "Chelsea"},
        "stats": {
            "corners": ["7", "4"],
            "yellowcards": {"home": "2", "away": "3"},
            "on_target": ["6", "3"],
            "off_target": ["5", "4"],
        },
    }],
}


PLAYER_STATS_URL = "https://stats.example.com/api/player-stats"

BOX_SCORE = {
    "success": True,
    "data": {
        "gameId": "1037",
        "playerId": "237",
        "playerName": "LeBron James",
        "minutesPlayed": "35",
        "gameDate": "2025-03-01",
        "stats": {"pts": 28, "reb": "8", "ast": 9},
    },
}


def provider_for(handler, player_stats_url=None) -> HttpResultProvider:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    config = ResultAPIConfig(api_key="test-token", player_stats_url=player_stats_url)
    return HttpResultProvider(config, client=client)


class TestParse:

    def test_parse_event_view(self):
        result = parse_event_view("8812", EVENT_VIEW)

        assert result.finished
        assert result.home_team == "Arsenal"
        assert (result.home_score, result.away_score) == (2, 1)
        assert result.stats[Market.CORNERS] == StatLine(7, 4)
        assert result.stats[Market.YELLOW_CARDS] == StatLine(2, 3)
        assert result.stats[Market.SHOTS_TOTAL] == StatLine(11, 7)
        assert result.stats[Market.GOALS].total == 3

    def test_in_progress(self):
        payload = {"success": 1, "results": [{"id": "1", "time_status": "1", "ss": "0-0"}]}
        result = parse_event_view("1", payload)
        assert not result.finished
        assert result.status == "1"

    def test_empty_results(self):
        assert parse_event_view("1", {"success": 1, "results": []}) is None

    @pytest.mark.parametrize("raw", [["7", ""], ["7", None], {"home": "7"}, ["x", "4"]])
    def test_half_reported_stat_is_dropped(self, raw):
        payload = {"success": 1, "results": [{"id": "1", "time_status": "3", "stats": {"corners": raw}}]}
        result = parse_event_view("1", payload)
        assert Market.CORNERS not in result.stats

    def test_half_reported_stat_cannot_settle(self, rate_limiter):
        payload = {"success": 1, "results": [{"id": "evt-1", "time_status": "3", "stats": {"corners": ["7", ""]}}]}
        provider = provider_for(lambda request: httpx.Response(200, json=payload))
        controller = VerificationController(provider, rate_limiter)
        prediction = make_prediction(stat_key="corners", line=8.5, side=Side.UNDER)

        with pytest.raises(UnsupportedMarket):
            asyncio.run(controller.verify(prediction))
        assert prediction.is_pending

    def test_parse_player_stats(self):
        result = parse_player_stats("1037", "237", BOX_SCORE)

        assert result.player_name == "LeBron James"
        assert result.minutes_played == 35
        assert result.game_date.day == 1
        assert result.stats[Market.PLAYER_REBOUNDS] == 8
        assert result.stats[Market.PLAYER_PRA] == 45

    def test_player_stats_without_data(self):
        assert parse_player_stats("1037", "237", {"success": True, "data": None}) is None


class TestClient:

    def test_fetch_result_sends_token_and_event_id(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["path"] = request.url.path
            seen["params"] = dict(request.url.params)
            return httpx.Response(200, json=EVENT_VIEW)

        async def run():
            async with provider_for(handler) as provider:
                return await provider.fetch_result("8812")

        result = asyncio.run(run())
        assert result.event_id == "8812"
        assert seen["path"] == "/v1/event/view"
        assert seen["params"] == {"token": "test-token", "event_id": "8812"}

    def test_not_found(self):
        provider = provider_for(lambda request: httpx.Response(404))
        assert asyncio.run(provider.fetch_result("missing")) is None

    def test_server_error_raises(self):
        provider = provider_for(lambda request: httpx.Response(503, text="down"))
        with pytest.raises(ProviderError) as exc:
            asyncio.run(provider.fetch_result("8812"))
        assert exc.value.status_code == 503
        assert exc.value.retryable
        assert provider.get_metrics()["error_count"] == 1

    def test_verify_through_http(self, rate_limiter):
        provider = provider_for(lambda request: httpx.Response(200, json=EVENT_VIEW))
        controller = VerificationController(provider, rate_limiter)
        prediction = make_prediction(stat_key="Corners", line=10.5, event_id="8812")

        outcome = asyncio.run(controller.verify(prediction))
        assert outcome.outcome is Outcome.WON
        assert outcome.actual_value == 11

    def test_provider_failure_in_body_is_retryable(self, rate_limiter):
        body = {"success": 0, "error": "TOO_MANY_REQUESTS"}
        provider = provider_for(lambda request: httpx.Response(200, json=body))
        controller = VerificationController(provider, rate_limiter)

        with pytest.raises(ProviderError) as exc:
            asyncio.run(controller.verify(make_prediction()))
        assert "TOO_MANY_REQUESTS" in exc.value.message
        assert exc.value.retryable
        assert provider.get_metrics()["error_count"] == 1
        assert provider.get_metrics()["last_success_ms"] == 0

    def test_fetch_player_result(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["url"] = f"{request.url.scheme}://{request.url.host}{request.url.path}"
            seen["params"] = dict(request.url.params)
            return httpx.Response(200, json=BOX_SCORE)

        provider = provider_for(handler, player_stats_url=PLAYER_STATS_URL)
        result = asyncio.run(provider.fetch_player_result("1037", "237"))

        assert result.stats[Market.PLAYER_POINTS] == 28
        assert seen["url"] == PLAYER_STATS_URL
        assert seen["params"] == {"game_id": "1037", "player_id": "237"}

    def test_player_stats_not_published(self):
        provider = provider_for(lambda request: httpx.Response(404), player_stats_url=PLAYER_STATS_URL)
        assert asyncio.run(provider.fetch_player_result("1037", "237")) is None

    def test_player_endpoint_not_configured(self):
        provider = provider_for(lambda request: httpx.Response(200, json=BOX_SCORE))
        with pytest.raises(UnsupportedMarket):
            asyncio.run(provider.fetch_player_result("1037", "237"))
        assert provider.get_metrics()["requests_made"] == 0

    def test_verify_player_prop_through_http(self, rate_limiter):
        provider = provider_for(
            lambda request: httpx.Response(200, json=BOX_SCORE),
            player_stats_url=PLAYER_STATS_URL,
        )
        controller = VerificationController(provider, rate_limiter)
        prediction = make_player_prediction(stat_key="PRA", line=44.5, game_id="1037")

        outcome = asyncio.run(controller.verify(prediction))
        assert outcome.outcome is Outcome.WON
        assert outcome.actual_value == 45
