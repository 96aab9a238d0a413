"""
Match result provider client.

Fetches the event view for a finished fixture and normalizes it into
an EventResult. Expected payload shape:

    {"success": 1, "results": [{
        "id": "123", "time_status": "3", "ss": "2-1",
        "home": {"name": "Arsenal"}, "away": {"name": "Chelsea"},
        "stats": {"corners": ["7", "4"], "yellowcards": ["2", "3"],
                  "on_target": ["6", "3"], "off_target": ["5", "4"]}
    }]}

Stat pairs may also arrive as {"home": .., "away": ..} objects.
time_status "3" means the match has ended.

Player props come from a separate box-score endpoint:

    {"success": true, "data": {
        "gameId": "1037", "playerId": "237", "playerName": "LeBron James",
        "minutesPlayed": "35", "gameDate": "2025-03-01",
        "stats": {"pts": 28, "reb": 8, "ast": 9}
    }}
"""

import ssl
import time
from dataclasses import dataclass
from typing import Any, Optional

import certifi
import httpx
import orjson
import structlog

from valuebet.errors import ProviderError, UnsupportedMarket
from valuebet.models.schemas import EventResult, Market, PlayerResult, StatLine, coerce_datetime

logger = structlog.get_logger()


FINISHED_STATUS = "3"

# Provider stat key -> market. First key present wins.
STAT_KEYS: dict[Market, tuple[str, ...]] = {
    Market.CORNERS: ("corners",),
    Market.YELLOW_CARDS: ("yellowcards", "yellow_cards"),
    Market.SHOTS_ON_TARGET: ("on_target", "shots_on_target", "shotstarget"),
    Market.SHOTS_TOTAL: ("shots_total", "total_shots"),
}

PLAYER_STAT_KEYS: dict[Market, tuple[str, ...]] = {
    Market.PLAYER_POINTS: ("pts", "points"),
    Market.PLAYER_REBOUNDS: ("reb", "rebounds"),
    Market.PLAYER_ASSISTS: ("ast", "assists"),
    Market.PLAYER_PRA: ("pra",),
}


# =============================================================================
# Configuration
# =============================================================================

@dataclass
class ResultAPIConfig:
    """Configuration for the result provider."""
    api_key: str
    base_url: str = "https://api.b365api.com/v1"
    timeout_seconds: float = 15.0
    player_stats_url: Optional[str] = None

    @classmethod
    def from_settings(cls, settings) -> "ResultAPIConfig":
        """Build from config.settings.VerificationSettings."""
        return cls(
            api_key=settings.result_api_key,
            base_url=settings.result_api_url,
            timeout_seconds=settings.timeout_seconds,
            player_stats_url=settings.player_stats_url or None,
        )


# =============================================================================
# Parsing
# =============================================================================

def _to_number(value: Any) -> Optional[float]:
    if value is None or value == "":
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def _stat_pair(raw: Any) -> Optional[StatLine]:
    if isinstance(raw, dict):
        home, away = _to_number(raw.get("home")), _to_number(raw.get("away"))
    elif isinstance(raw, (list, tuple)) and len(raw) >= 2:
        home, away = _to_number(raw[0]), _to_number(raw[1])
    else:
        return None
    # A half-reported stat has no trustworthy total
    if home is None or away is None:
        return None
    return StatLine(home=home, away=away)


def _parse_score(ss: Any) -> tuple[Optional[int], Optional[int]]:
    if not isinstance(ss, str) or "-" not in ss:
        return None, None
    home, _, away = ss.partition("-")
    try:
        return int(home.strip()), int(away.strip())
    except ValueError:
        return None, None


def _team_name(raw: Any) -> str:
    if isinstance(raw, dict):
        return str(raw.get("name") or "")
    return str(raw or "")


def parse_event_view(event_id: str, data: Any) -> Optional[EventResult]:
    """Normalize an event-view response. None when the event is unknown."""
    if not isinstance(data, dict):
        return None
    results = data.get("results")
    if isinstance(results, list):
        if not results:
            return None
        event = results[0]
    elif isinstance(results, dict):
        event = results
    else:
        return None
    if not isinstance(event, dict):
        return None

    status = str(event.get("time_status")) if event.get("time_status") is not None else None
    home_score, away_score = _parse_score(event.get("ss"))

    raw_stats = event.get("stats") or {}
    stats: dict[Market, StatLine] = {}
    for market, keys in STAT_KEYS.items():
        for key in keys:
            pair = _stat_pair(raw_stats.get(key))
            if pair is not None:
                stats[market] = pair
                break

    # Total shots = on target + off target when not reported directly
    if Market.SHOTS_TOTAL not in stats:
        on_target = stats.get(Market.SHOTS_ON_TARGET)
        off_target = _stat_pair(raw_stats.get("off_target"))
        if on_target is not None and off_target is not None:
            stats[Market.SHOTS_TOTAL] = StatLine(
                home=on_target.home + off_target.home,
                away=on_target.away + off_target.away,
            )

    if home_score is not None and away_score is not None:
        stats[Market.GOALS] = StatLine(home=float(home_score), away=float(away_score))

    return EventResult(
        event_id=str(event.get("id") or event_id),
        finished=status == FINISHED_STATUS,
        status=status,
        home_team=_team_name(event.get("home")),
        away_team=_team_name(event.get("away")),
        home_score=home_score,
        away_score=away_score,
        stats=stats,
    )


def parse_player_stats(game_id: str, player_id: str, data: Any) -> Optional[PlayerResult]:
    """Normalize a box-score response. None when no stat line was published."""
    if not isinstance(data, dict):
        return None
    player = data.get("data")
    if not isinstance(player, dict):
        return None
    raw_stats = player.get("stats")
    if not isinstance(raw_stats, dict):
        return None

    stats: dict[Market, float] = {}
    for market, keys in PLAYER_STAT_KEYS.items():
        for key in keys:
            value = _to_number(raw_stats.get(key))
            if value is not None:
                stats[market] = value
                break

    if Market.PLAYER_PRA not in stats:
        parts = [stats.get(m) for m in (Market.PLAYER_POINTS, Market.PLAYER_REBOUNDS, Market.PLAYER_ASSISTS)]
        if all(p is not None for p in parts):
            stats[Market.PLAYER_PRA] = sum(parts)

    try:
        game_date = coerce_datetime(player.get("gameDate"))
    except (TypeError, ValueError):
        game_date = None

    return PlayerResult(
        game_id=str(player.get("gameId") or game_id),
        player_id=str(player.get("playerId") or player_id),
        player_name=str(player.get("playerName") or ""),
        minutes_played=_to_number(player.get("minutesPlayed")),
        game_date=game_date,
        stats=stats,
    )


# =============================================================================
# Client
# =============================================================================

class HttpResultProvider:
    """
    Result provider backed by the event-view HTTP endpoint.

    Usage:
        async with HttpResultProvider(ResultAPIConfig(api_key="...")) as provider:
            result = await provider.fetch_result("123456")
    """

    def __init__(
        self,
        config: ResultAPIConfig,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.config = config
        self.logger = logger.bind(feed="result_api")
        self._http_client = client
        self._owns_client = client is None

        # Health
        self._requests_made: int = 0
        self._error_count: int = 0
        self._last_success_ms: int = 0

    # =========================================================================
    # Lifecycle
    # =========================================================================

    async def start(self) -> None:
        if self._http_client is not None:
            return
        ssl_context = ssl.create_default_context(cafile=certifi.where())
        self._http_client = httpx.AsyncClient(
            verify=ssl_context,
            timeout=self.config.timeout_seconds,
            headers={"Accept": "application/json"},
        )
        self._owns_client = True

    async def stop(self) -> None:
        if self._http_client is not None and self._owns_client:
            await self._http_client.aclose()
        self._http_client = None

    async def __aenter__(self) -> "HttpResultProvider":
        await self.start()
        return self

    async def __aexit__(self, *exc) -> None:
        await self.stop()

    # =========================================================================
    # API Calls
    # =========================================================================

    async def _get_json(self, url: str, params: dict, **log_context) -> Optional[Any]:
        """GET and decode. None on 404; ProviderError on any other failure."""
        if self._http_client is None:
            await self.start()

        self._requests_made += 1

        try:
            response = await self._http_client.get(url, params=params)
        except httpx.HTTPError as e:
            self._error_count += 1
            self.logger.error("Request failed", error=str(e), **log_context)
            raise ProviderError("result_api", str(e)) from e

        if response.status_code == 404:
            return None
        if response.status_code != 200:
            self._error_count += 1
            self.logger.warning(
                "API error",
                status=response.status_code,
                body=response.text[:200],
                **log_context,
            )
            raise ProviderError(
                "result_api",
                f"HTTP {response.status_code}",
                status_code=response.status_code,
            )

        try:
            data = orjson.loads(response.content)
        except orjson.JSONDecodeError as e:
            self._error_count += 1
            raise ProviderError("result_api", f"Invalid JSON: {e}") from e

        # Quota, auth and permission failures come back as 200 + success=0
        if isinstance(data, dict) and not data.get("success", 1) and data.get("error"):
            self._error_count += 1
            self.logger.warning("Provider reported failure", error=data.get("error"), **log_context)
            raise ProviderError("result_api", f"Provider reported failure: {data.get('error')}")

        self._last_success_ms = int(time.time() * 1000)
        return data

    async def fetch_result(self, event_id: str) -> Optional[EventResult]:
        """Fetch and normalize one event. Raises ProviderError on HTTP or API failure."""
        data = await self._get_json(
            f"{self.config.base_url}/event/view",
            {"token": self.config.api_key, "event_id": event_id},
            event_id=event_id,
        )
        if data is None:
            return None

        result = parse_event_view(event_id, data)
        self.logger.debug(
            "Fetched result",
            event_id=event_id,
            found=result is not None,
            finished=result.finished if result else None,
        )
        return result

    async def fetch_player_result(self, game_id: str, player_id: str) -> Optional[PlayerResult]:
        """Fetch one player's box score. None when the stats are not published."""
        if not self.config.player_stats_url:
            raise UnsupportedMarket("player props", detail="No player stats endpoint configured")

        data = await self._get_json(
            self.config.player_stats_url,
            {"game_id": game_id, "player_id": player_id},
            game_id=game_id,
            player_id=player_id,
        )
        if data is None:
            return None

        result = parse_player_stats(game_id, player_id, data)
        self.logger.debug(
            "Fetched player result",
            game_id=game_id,
            player_id=player_id,
            found=result is not None,
        )
        return result

    def get_metrics(self) -> dict:
        return {
            "requests_made": self._requests_made,
            "error_count": self._error_count,
            "last_success_ms": self._last_success_ms,
        }
