"""Tests for the verification runner."""

import asyncio

import orjson
import pytest

from conftest import (
    FakeResultProvider,
    box_score,
    finished_result,
    make_player_prediction,
    make_prediction,
)
from config.settings import QuotaSettings, Settings, VerificationSettings
from valuebet.main import VerificationRunner
from valuebet.models.schemas import EventResult, Outcome, Side
from valuebet.storage import JsonPredictionStore
from valuebet.verification.tracker import apply_outcome


async def no_sleep(seconds: float) -> None:
    return None


@pytest.fixture
def settings(tmp_path):
    return Settings(
        predictions_path=str(tmp_path / "predictions.json"),
        log_dir=str(tmp_path / "logs"),
        quota=QuotaSettings(min_delay_between_calls_ms=0),
    )


@pytest.fixture
def provider():
    return FakeResultProvider(
        {
            "evt-1": finished_result("evt-1", corners=(6, 5)),
            "evt-live": EventResult(event_id="evt-live", finished=False, status="1"),
        },
        player_results={("game-1", "237"): box_score(pts=28)},
    )


class TestVerificationRunner:

    def test_run_persists_settled_outcomes(self, settings, provider):
        over = make_prediction(line=9.5, side=Side.OVER)
        live = make_prediction(event_id="evt-live")
        prop = make_player_prediction(stat_key="pts", line=30.5, side=Side.UNDER)
        done = make_prediction()
        apply_outcome(done, Outcome.LOST, 3)
        JsonPredictionStore(settings.predictions_path).save_many([over, live, prop, done])

        runner = VerificationRunner(settings, provider=provider, sleep=no_sleep)
        report = asyncio.run(runner.run())

        assert report.total == 3
        assert report.verified == 2
        assert report.failed == 1
        assert runner.audit._file_handle is None

        stored = JsonPredictionStore(settings.predictions_path)
        assert stored.get(over.prediction_id).outcome is Outcome.WON
        assert stored.get(over.prediction_id).result.actual_value == 11
        assert stored.get(prop.prediction_id).outcome is Outcome.WON
        assert stored.get(live.prediction_id).is_pending
        assert stored.get(done.prediction_id).outcome is Outcome.LOST

        log_files = list(runner.audit.log_dir.glob("verifications_*.jsonl"))
        assert len(log_files) == 1
        records = [orjson.loads(line) for line in log_files[0].read_bytes().splitlines()]
        assert sorted(r["success"] for r in records) == [False, True, True]

    def test_limit_caps_the_batch(self, settings, provider):
        JsonPredictionStore(settings.predictions_path).save_many(
            [make_prediction(), make_prediction()]
        )
        runner = VerificationRunner(settings, provider=provider, sleep=no_sleep)

        report = asyncio.run(runner.run(limit=1))
        assert report.total == 1
        assert len(JsonPredictionStore(settings.predictions_path).list_pending()) == 1

    def test_audit_log_closed_when_save_fails(self, settings, provider, monkeypatch):
        JsonPredictionStore(settings.predictions_path).save(make_prediction())
        runner = VerificationRunner(settings, provider=provider, sleep=no_sleep)

        def fail(predictions):
            raise OSError("disk full")

        monkeypatch.setattr(runner.store, "save_many", fail)
        with pytest.raises(OSError):
            asyncio.run(runner.run())
        assert runner.audit._file_handle is None

    def test_missing_api_key_without_provider(self, settings):
        settings.verification = VerificationSettings(result_api_key="")
        with pytest.raises(ValueError):
            VerificationRunner(settings)
