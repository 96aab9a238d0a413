"""
Verification Controller.

Settles a prediction against the official result:

1. Cached result for the event id (or game + player for props)? Use it,
   no network.
2. Otherwise ask the rate limiter; refuse with RateLimitExceeded.
3. Fetch; MatchNotFound / PlayerNotFound / MatchNotFinished when there is
   nothing to settle.
4. Resolve the market's actual value and compare with the line.

The controller never mutates or stores predictions. Callers apply the
returned outcome (see tracker.apply_outcome) and persist it.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Optional, Sequence

import structlog

from valuebet.errors import (
    MatchNotFinished,
    MatchNotFound,
    MissingIdentifiers,
    OperationCancelled,
    PlayerNotFound,
    RateLimitExceeded,
    ValueBetError,
)
from valuebet.feeds.base import ResultProvider
from valuebet.models.schemas import EventResult, Outcome, PlayerResult, Prediction
from valuebet.utils.tasks import CancellationToken, SerialTaskQueue
from valuebet.verification.markets import extract_actual_value, parse_market, resolve_outcome
from valuebet.verification.quota import RateLimiter, get_rate_limiter

logger = structlog.get_logger()

MIN_BULK_DELAY_MS = 500


@dataclass
class VerificationConfig:
    bulk_delay_ms: int = 1000

    @classmethod
    def from_settings(cls, settings) -> "VerificationConfig":
        """Build from config.settings.VerificationSettings."""
        return cls(bulk_delay_ms=settings.bulk_delay_ms)


@dataclass
class VerificationOutcome:
    """What verifying one prediction produced."""
    prediction_id: str
    success: bool
    outcome: Optional[Outcome] = None
    actual_value: Optional[float] = None
    verified_at: Optional[datetime] = None
    from_cache: bool = False
    skipped: bool = False         # Already settled; nothing done
    reason: Optional[str] = None
    error: Optional[ValueBetError] = None

    @property
    def retryable(self) -> bool:
        return self.error is not None and self.error.retryable


@dataclass
class BulkVerificationReport:
    total: int = 0
    verified: int = 0
    failed: int = 0
    skipped: int = 0
    cancelled: int = 0
    won: int = 0
    lost: int = 0
    push: int = 0
    outcomes: list[VerificationOutcome] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "total": self.total,
            "verified": self.verified,
            "failed": self.failed,
            "skipped": self.skipped,
            "cancelled": self.cancelled,
            "won": self.won,
            "lost": self.lost,
            "push": self.push,
        }


class VerificationController:
    """
    Resolves prediction outcomes under the provider quota.

    Usage:
        controller = VerificationController(provider, rate_limiter)
        outcome = await controller.verify(prediction)
        apply_outcome(prediction, outcome.outcome, outcome.actual_value)
    """

    def __init__(
        self,
        provider: ResultProvider,
        rate_limiter: Optional[RateLimiter] = None,
        config: Optional[VerificationConfig] = None,
        sleep: Optional[Callable[[float], Awaitable[None]]] = None,
    ):
        self.provider = provider
        self.rate_limiter = rate_limiter or get_rate_limiter()
        self.config = config or VerificationConfig()
        self.logger = logger.bind(component="verification_controller")

        # Bulk runs never go faster than the limiter's own spacing
        delay_ms = max(
            MIN_BULK_DELAY_MS,
            self.config.bulk_delay_ms,
            self.rate_limiter.config.min_delay_between_calls_ms,
        )
        self._queue = SerialTaskQueue(delay_ms=delay_ms, sleep=sleep)

        # Stats
        self._network_calls = 0
        self._cache_hits = 0
        self._failures_by_type: dict[str, int] = {}

    # =========================================================================
    # Single
    # =========================================================================

    async def verify(self, prediction: Prediction) -> VerificationOutcome:
        """
        Resolve one prediction.

        Raises the ValueBetError describing why it could not be settled.
        A prediction that is already settled returns skipped=True.
        """
        if not prediction.is_pending:
            return VerificationOutcome(
                prediction_id=prediction.prediction_id,
                success=False,
                outcome=prediction.outcome,
                actual_value=prediction.result.actual_value,
                skipped=True,
                reason=f"Already verified ({prediction.outcome.value})",
            )

        event_id = prediction.lookup_event_id
        # Reject unknown markets before spending quota
        market = parse_market(prediction.stat_key)

        if market.is_player:
            player_id = prediction.player.entity_id if prediction.player else None
            if not event_id or not player_id:
                raise MissingIdentifiers(prediction.prediction_id, "game id or player id")
            result, from_cache = await self._get_player_result(event_id, player_id)
        else:
            if not event_id:
                raise MissingIdentifiers(prediction.prediction_id)
            result, from_cache = await self._get_result(event_id)

        actual = extract_actual_value(market, result)
        outcome = resolve_outcome(prediction.side, prediction.line, actual)

        self.logger.info(
            "Prediction verified",
            prediction_id=prediction.prediction_id,
            event_id=event_id,
            player_id=prediction.player.entity_id if prediction.player else None,
            market=market.value,
            line=prediction.line,
            side=prediction.side.value,
            actual=actual,
            outcome=outcome.value,
            from_cache=from_cache,
        )

        return VerificationOutcome(
            prediction_id=prediction.prediction_id,
            success=True,
            outcome=outcome,
            actual_value=actual,
            verified_at=datetime.now(timezone.utc),
            from_cache=from_cache,
        )

    async def _fetch_under_quota(
        self,
        cache_key: str,
        label: str,
        fetch: Callable[[], Awaitable[Any]],
    ) -> tuple[Any, bool]:
        cached = self.rate_limiter.get_cached_result(cache_key)
        if cached is not None:
            self._cache_hits += 1
            return cached, True

        check = self.rate_limiter.can_call()
        if not check.allowed:
            raise RateLimitExceeded(check.reason, check.message, check.wait_time_ms)

        try:
            result = await fetch()
        finally:
            # A failed request still spends quota
            self.rate_limiter.record_call(label)
            self._network_calls += 1
        return result, False

    async def _get_result(self, event_id: str) -> tuple[EventResult, bool]:
        result, from_cache = await self._fetch_under_quota(
            event_id,
            f"result:{event_id}",
            lambda: self.provider.fetch_result(event_id),
        )
        if from_cache:
            return result, True

        if result is None:
            raise MatchNotFound(event_id)
        if not result.finished:
            raise MatchNotFinished(event_id, result.status)

        self.rate_limiter.cache_result(event_id, result)
        return result, False

    async def _get_player_result(self, game_id: str, player_id: str) -> tuple[PlayerResult, bool]:
        cache_key = f"player:{game_id}:{player_id}"
        result, from_cache = await self._fetch_under_quota(
            cache_key,
            cache_key,
            lambda: self.provider.fetch_player_result(game_id, player_id),
        )
        if from_cache:
            return result, True

        # Box scores are only published once the game is over
        if result is None:
            raise PlayerNotFound(game_id, player_id)

        self.rate_limiter.cache_result(cache_key, result)
        return result, False

    # =========================================================================
    # Bulk
    # =========================================================================

    async def verify_all(
        self,
        predictions: Sequence[Prediction],
        cancel_token: Optional[CancellationToken] = None,
    ) -> BulkVerificationReport:
        """
        Verify predictions one at a time with a fixed gap between calls.

        One failure never stops the batch. Settled predictions are counted
        as skipped without touching the provider.
        """
        report = BulkVerificationReport(total=len(predictions))
        pending = []
        for p in predictions:
            if p.is_pending:
                pending.append(p)
            else:
                report.skipped += 1
                report.outcomes.append(await self.verify(p))

        self.logger.info(
            "Bulk verification started",
            pending=len(pending),
            skipped=report.skipped,
            delay_ms=self._queue.delay_ms,
        )

        results = await self._queue.run(pending, self.verify, cancel_token)

        for task in results:
            prediction = task.item
            if task.cancelled:
                report.cancelled += 1
                error = OperationCancelled(cancel_token.reason if cancel_token else "Cancelled")
                report.outcomes.append(self._failure(prediction, error))
                continue

            if task.error is not None:
                report.failed += 1
                report.outcomes.append(self._failure(prediction, task.error))
                continue

            outcome = task.value
            report.verified += 1
            if outcome.outcome is Outcome.WON:
                report.won += 1
            elif outcome.outcome is Outcome.LOST:
                report.lost += 1
            elif outcome.outcome is Outcome.PUSH:
                report.push += 1
            report.outcomes.append(outcome)

        self.logger.info("Bulk verification complete", **report.to_dict())
        return report

    def _failure(self, prediction: Prediction, error: BaseException) -> VerificationOutcome:
        name = type(error).__name__
        self._failures_by_type[name] = self._failures_by_type.get(name, 0) + 1

        if isinstance(error, ValueBetError):
            self.logger.warning(
                "Verification failed",
                prediction_id=prediction.prediction_id,
                error=name,
                reason=error.message,
                retryable=error.retryable,
            )
            return VerificationOutcome(
                prediction_id=prediction.prediction_id,
                success=False,
                reason=error.message,
                error=error,
            )

        self.logger.error(
            "Verification error",
            prediction_id=prediction.prediction_id,
            error=str(error),
        )
        return VerificationOutcome(
            prediction_id=prediction.prediction_id,
            success=False,
            reason=str(error) or name,
        )

    def get_metrics(self) -> dict:
        return {
            "network_calls": self._network_calls,
            "cache_hits": self._cache_hits,
            "failures_by_type": dict(self._failures_by_type),
            "quota": self.rate_limiter.quota_status(),
        }
