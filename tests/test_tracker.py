"""Tests for prediction state transitions and accuracy stats."""

from datetime import datetime, timedelta, timezone

import pytest

from conftest import make_prediction
from valuebet.errors import InvalidTransition
from valuebet.models.schemas import ConfidenceTier, Outcome
from valuebet.verification.tracker import (
    accuracy_stats,
    apply_outcome,
    predictions_needing_verification,
    undo_outcome,
)


class TestTransitions:

    def test_pending_to_terminal(self):
        prediction = make_prediction()
        apply_outcome(prediction, Outcome.WON, 11)

        assert prediction.outcome is Outcome.WON
        assert prediction.result.actual_value == 11
        assert prediction.result.verified_at is not None

    def test_terminal_is_not_overwritten(self):
        prediction = make_prediction()
        apply_outcome(prediction, Outcome.WON, 11)

        with pytest.raises(InvalidTransition):
            apply_outcome(prediction, Outcome.LOST, 6)
        assert prediction.outcome is Outcome.WON

    def test_cannot_apply_pending(self):
        with pytest.raises(InvalidTransition):
            apply_outcome(make_prediction(), Outcome.PENDING, 0)

    def test_undo_returns_to_pending(self):
        prediction = make_prediction()
        apply_outcome(prediction, Outcome.PUSH, 8.5)
        undo_outcome(prediction)

        assert prediction.is_pending
        assert prediction.result.actual_value is None
        apply_outcome(prediction, Outcome.LOST, 6)
        assert prediction.outcome is Outcome.LOST

    def test_undo_pending_is_invalid(self):
        with pytest.raises(InvalidTransition):
            undo_outcome(make_prediction())


class TestQueries:

    def test_predictions_needing_verification(self):
        now = datetime(2025, 3, 1, 18, 0, tzinfo=timezone.utc)
        over = make_prediction(kickoff=now - timedelta(hours=3))
        recent = make_prediction(kickoff=now - timedelta(hours=1))
        settled = make_prediction(kickoff=now - timedelta(hours=5))
        apply_outcome(settled, Outcome.WON, 10)

        due = predictions_needing_verification([over, recent, settled], now=now)
        assert due == [over]

    def test_accuracy_stats(self):
        predictions = []
        for stat_key, outcome in [
            ("corners", Outcome.WON),
            ("corners", Outcome.WON),
            ("corners", Outcome.LOST),
            ("yellow_cards", Outcome.LOST),
            ("yellow_cards", Outcome.PUSH),
        ]:
            p = make_prediction(stat_key=stat_key)
            apply_outcome(p, outcome, 0)
            predictions.append(p)
        predictions.append(make_prediction())

        stats = accuracy_stats(predictions)

        assert stats["total"] == 4
        assert stats["won"] == 2
        assert stats["lost"] == 2
        assert stats["push"] == 1
        assert stats["pending"] == 1
        assert stats["accuracy"] == 50.0
        by_market = {row["market"]: row for row in stats["by_market"]}
        assert by_market["corners"]["accuracy"] == 66.7
        assert by_market["yellow_cards"] == {
            "market": "yellow_cards", "total": 1, "won": 0, "lost": 1, "accuracy": 0.0,
        }
        assert stats["by_confidence"][0]["confidence"] == ConfidenceTier.MEDIUM.value

    def test_accuracy_stats_empty(self):
        stats = accuracy_stats([])
        assert stats["total"] == 0
        assert stats["accuracy"] == 0.0
        assert stats["by_market"] == []
