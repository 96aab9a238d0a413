"""
Prediction result state machine and accuracy tracking.

    pending -> won | lost | push     (one successful verification)
    won | lost | push -> pending     (explicit undo)

No other transition is valid.
"""

from datetime import datetime, timedelta, timezone
from typing import Iterable, Optional

import structlog

from valuebet.errors import InvalidTransition
from valuebet.models.schemas import Outcome, Prediction, PredictionResult

logger = structlog.get_logger()


def apply_outcome(
    prediction: Prediction,
    outcome: Outcome,
    actual_value: float,
    verified_at: Optional[datetime] = None,
) -> Prediction:
    """Move a pending prediction to its terminal outcome."""
    if outcome is Outcome.PENDING:
        raise InvalidTransition(prediction.prediction_id, prediction.outcome.value, outcome.value)
    if not prediction.is_pending:
        raise InvalidTransition(prediction.prediction_id, prediction.outcome.value, outcome.value)

    prediction.result = PredictionResult(
        outcome=outcome,
        actual_value=actual_value,
        verified_at=verified_at or datetime.now(timezone.utc),
    )
    logger.info(
        "Prediction settled",
        prediction_id=prediction.prediction_id,
        market=prediction.stat_key,
        line=prediction.line,
        side=prediction.side.value,
        actual=actual_value,
        outcome=outcome.value,
    )
    return prediction


def undo_outcome(prediction: Prediction) -> Prediction:
    """Return a settled prediction to pending."""
    if prediction.is_pending:
        raise InvalidTransition(prediction.prediction_id, Outcome.PENDING.value, Outcome.PENDING.value)
    previous = prediction.outcome
    prediction.result = PredictionResult()
    logger.info("Prediction reset", prediction_id=prediction.prediction_id, previous=previous.value)
    return prediction


def predictions_needing_verification(
    predictions: Iterable[Prediction],
    now: Optional[datetime] = None,
    min_hours_after_kickoff: float = 2.0,
) -> list[Prediction]:
    """
    Pending predictions whose match should be over.

    Undated predictions are left out since there is no way to tell
    whether the match has been played.
    """
    now = now or datetime.now(timezone.utc)
    cutoff = timedelta(hours=min_hours_after_kickoff)
    due = []
    for p in predictions:
        if not p.is_pending or p.event.date is None:
            continue
        if now >= p.event.date + cutoff:
            due.append(p)
    return due


def _bucket(rows: dict[str, dict], key: str, outcome: Outcome) -> None:
    row = rows.setdefault(key, {"total": 0, "won": 0, "lost": 0})
    row["total"] += 1
    if outcome is Outcome.WON:
        row["won"] += 1
    else:
        row["lost"] += 1


def _accuracy(won: int, total: int) -> float:
    return round(100.0 * won / total, 1) if total else 0.0


def accuracy_stats(predictions: Iterable[Prediction]) -> dict:
    """
    Win rate over decided predictions, overall and by market and tier.

    Pushes and pending predictions are counted separately and do not
    affect accuracy.
    """
    predictions = list(predictions)
    decided = [p for p in predictions if p.outcome in (Outcome.WON, Outcome.LOST)]
    pushes = sum(1 for p in predictions if p.outcome is Outcome.PUSH)
    pending = sum(1 for p in predictions if p.is_pending)

    by_market: dict[str, dict] = {}
    by_confidence: dict[str, dict] = {}
    for p in decided:
        _bucket(by_market, p.stat_key, p.outcome)
        _bucket(by_confidence, p.confidence.value, p.outcome)

    won = sum(1 for p in decided if p.outcome is Outcome.WON)

    return {
        "total": len(decided),
        "won": won,
        "lost": len(decided) - won,
        "push": pushes,
        "pending": pending,
        "accuracy": _accuracy(won, len(decided)),
        "by_market": [
            {"market": k, **v, "accuracy": _accuracy(v["won"], v["total"])}
            for k, v in by_market.items()
        ],
        "by_confidence": [
            {"confidence": k, **v, "accuracy": _accuracy(v["won"], v["total"])}
            for k, v in by_confidence.items()
        ],
    }
