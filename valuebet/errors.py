"""
Error taxonomy for the value-bet engine.

Every failure carries a human-readable message. Retryable errors
(``retryable = True``) describe conditions that clear with time:
an unfinished match or an exhausted call budget.
"""

from typing import Optional


class ValueBetError(Exception):
    """Base class for all engine errors."""

    retryable: bool = False

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict:
        return {
            "error": type(self).__name__,
            "message": self.message,
            "retryable": self.retryable,
        }


class InsufficientSamples(ValueBetError):
    """No usable historical samples for a team/stat combination."""

    def __init__(self, stat_key: str, side: str):
        super().__init__(f"No usable {stat_key} samples for {side} team")
        self.stat_key = stat_key
        self.side = side


class InvalidProbability(ValueBetError):
    """Estimated probability outside (0, 1]."""

    def __init__(self, probability: float):
        super().__init__(f"Probability must be in (0, 1], got {probability}")
        self.probability = probability


class NoQuotes(ValueBetError):
    """Evaluation requested with an empty quote set."""

    def __init__(self, message: str = "No bookmaker quotes to evaluate"):
        super().__init__(message)


class EntityMismatch(ValueBetError):
    """Strict match lookup found no event at the required confidence."""

    def __init__(self, reason: str):
        super().__init__(reason)
        self.reason = reason


class MissingIdentifiers(ValueBetError):
    """Prediction lacks the external ids needed to fetch a result."""

    def __init__(self, prediction_id: str, missing: str = "result event id"):
        super().__init__(f"Prediction {prediction_id} has no {missing}")
        self.prediction_id = prediction_id
        self.missing = missing


class MatchNotFound(ValueBetError):
    """Result provider does not know the event."""

    def __init__(self, event_id: str):
        super().__init__(f"Event {event_id} not found")
        self.event_id = event_id


class PlayerNotFound(MatchNotFound):
    """Result provider has no stat line for the player in that game."""

    def __init__(self, game_id: str, player_id: str):
        ValueBetError.__init__(self, f"No stats for player {player_id} in game {game_id}")
        self.event_id = game_id
        self.player_id = player_id


class MatchNotFinished(ValueBetError):
    """Event exists but has no final result yet."""

    retryable = True

    def __init__(self, event_id: str, status: Optional[str] = None):
        message = f"Match {event_id} has not finished yet"
        if status:
            message += f" (status {status})"
        super().__init__(message)
        self.event_id = event_id
        self.status = status


class UnsupportedMarket(ValueBetError):
    """Market label outside the taxonomy, or stat missing from the result."""

    def __init__(self, market: str, detail: str = "Unsupported market"):
        super().__init__(f"{detail}: {market}")
        self.market = market


class RateLimitExceeded(ValueBetError):
    """Quota check refused a provider call."""

    retryable = True

    def __init__(self, reason: str, message: str, wait_time_ms: int = 0):
        super().__init__(message)
        self.reason = reason
        self.wait_time_ms = wait_time_ms

    def to_dict(self) -> dict:
        data = super().to_dict()
        data["reason"] = self.reason
        data["wait_time_ms"] = self.wait_time_ms
        return data


class InvalidTransition(ValueBetError):
    """Prediction state change not allowed from its current state."""

    def __init__(self, prediction_id: str, current: str, requested: str):
        super().__init__(
            f"Prediction {prediction_id} cannot move from {current} to {requested}"
        )
        self.prediction_id = prediction_id
        self.current = current
        self.requested = requested


class OperationCancelled(ValueBetError):
    """A queued bulk operation was cancelled before it ran."""

    def __init__(self, reason: str = "Cancelled"):
        super().__init__(reason)


class ProviderError(ValueBetError):
    """Transport or HTTP failure talking to an external provider."""

    retryable = True

    def __init__(self, provider: str, message: str, status_code: Optional[int] = None):
        super().__init__(f"{provider}: {message}")
        self.provider = provider
        self.status_code = status_code
