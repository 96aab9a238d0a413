"""
Collaborator interfaces.

The engine talks to providers only through these protocols. Concrete
clients normalize their payloads into the schemas before returning.
"""

from typing import Optional, Protocol, Sequence, runtime_checkable

from valuebet.models.schemas import (
    BookmakerQuote,
    EventRecord,
    EventResult,
    PlayerResult,
    Prediction,
    Sample,
    Side,
)


@runtime_checkable
class StatsProvider(Protocol):
    """Historical samples per team, most recent first."""

    async def get_samples(self, team_id: str, limit: int = 10) -> Sequence[Sample]: ...


@runtime_checkable
class OddsProvider(Protocol):
    """Upcoming events and bookmaker quotes."""

    async def get_events(self) -> Sequence[EventRecord]: ...

    async def get_quotes(
        self,
        event_id: str,
        stat_key: str,
        side: Side,
        line: float,
    ) -> Sequence[BookmakerQuote]: ...


@runtime_checkable
class ResultProvider(Protocol):
    """Final results. Returns None for unknown events or players."""

    async def fetch_result(self, event_id: str) -> Optional[EventResult]: ...

    async def fetch_player_result(self, game_id: str, player_id: str) -> Optional[PlayerResult]: ...


@runtime_checkable
class PredictionStore(Protocol):
    """Prediction persistence."""

    def list_predictions(self) -> list[Prediction]: ...

    def get(self, prediction_id: str) -> Optional[Prediction]: ...

    def save(self, prediction: Prediction) -> None: ...
