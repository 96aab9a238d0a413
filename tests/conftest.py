"""Shared fixtures for the value-bet tests."""

from datetime import datetime, timedelta, timezone
from typing import Optional

import pytest

from valuebet.models.schemas import (
    ConfidenceTier,
    Entity,
    EventRecord,
    EventResult,
    Market,
    PlayerResult,
    Prediction,
    Sample,
    Side,
    StatLine,
)
from valuebet.verification.quota import QuotaConfig, RateLimiter


class FakeClock:
    """Manually advanced UTC clock."""

    def __init__(self, start: datetime):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now = self.now + timedelta(**kwargs)


class FakeResultProvider:
    """In-memory result provider that counts network calls."""

    def __init__(self, results: Optional[dict] = None, player_results: Optional[dict] = None):
        self.results = results or {}
        self.player_results = player_results or {}
        self.calls: list[str] = []

    async def fetch_result(self, event_id: str) -> Optional[EventResult]:
        self.calls.append(event_id)
        result = self.results.get(event_id)
        if isinstance(result, Exception):
            raise result
        return result

    async def fetch_player_result(self, game_id: str, player_id: str) -> Optional[PlayerResult]:
        self.calls.append(f"{game_id}:{player_id}")
        return self.player_results.get((game_id, player_id))


def make_samples(values: list[float], stat_key: str = "corners") -> list[Sample]:
    """Samples most-recent-first, one day apart."""
    base = datetime(2025, 3, 1, tzinfo=timezone.utc)
    return [
        Sample(date=base - timedelta(days=7 * i), opponent=f"Team {i}", values={stat_key: v})
        for i, v in enumerate(values)
    ]


def make_prediction(
    stat_key: str = "corners",
    line: float = 8.5,
    side: Side = Side.OVER,
    event_id: Optional[str] = "evt-1",
    kickoff: Optional[datetime] = None,
) -> Prediction:
    return Prediction(
        event=EventRecord(
            home=Entity("Arsenal"),
            away=Entity("Chelsea"),
            date=kickoff or datetime(2025, 3, 1, 15, 0, tzinfo=timezone.utc),
            league="Premier League",
            event_id=event_id,
        ),
        stat_key=stat_key,
        line=line,
        side=side,
        probability=0.6,
        fair_odds=1 / 0.6,
        confidence=ConfidenceTier.MEDIUM,
    )


def finished_result(event_id: str = "evt-1", corners=(6, 5)) -> EventResult:
    return EventResult(
        event_id=event_id,
        finished=True,
        status="3",
        home_team="Arsenal",
        away_team="Chelsea",
        home_score=2,
        away_score=1,
        stats={
            Market.CORNERS: StatLine(*corners),
            Market.YELLOW_CARDS: StatLine(2, 3),
            Market.SHOTS_ON_TARGET: StatLine(6, 3),
            Market.SHOTS_TOTAL: StatLine(14, 9),
        },
    )


@pytest.fixture
def clock():
    return FakeClock(datetime(2025, 3, 1, 10, 15, tzinfo=timezone.utc))


@pytest.fixture
def rate_limiter(clock):
    """Limiter with no spacing so tests can call back to back."""
    return RateLimiter(QuotaConfig(min_delay_between_calls_ms=0), clock=clock)


def make_player_prediction(
    stat_key: str = "player_points",
    line: float = 25.5,
    side: Side = Side.OVER,
    game_id: Optional[str] = "game-1",
    player_id: Optional[str] = "237",
) -> Prediction:
    prediction = make_prediction(stat_key=stat_key, line=line, side=side, event_id=game_id)
    prediction.player = Entity("LeBron James", entity_id=player_id)
    return prediction


def box_score(game_id: str = "game-1", player_id: str = "237", pts=28, reb=8, ast=9) -> PlayerResult:
    return PlayerResult(
        game_id=game_id,
        player_id=player_id,
        player_name="LeBron James",
        stats={
            Market.PLAYER_POINTS: pts,
            Market.PLAYER_REBOUNDS: reb,
            Market.PLAYER_ASSISTS: ast,
            Market.PLAYER_PRA: pts + reb + ast,
        },
    )
