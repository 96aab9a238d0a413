"""
JSON-file prediction store.

Keeps every prediction in a single JSON document keyed by prediction id.
Writes go to a temp file that replaces the original, so a crash mid-write
never leaves a truncated store.
"""

import os
import threading
from pathlib import Path
from typing import Optional

import orjson
import structlog

from valuebet.models.schemas import Prediction

logger = structlog.get_logger()


class JsonPredictionStore:
    """File-backed PredictionStore."""

    def __init__(self, path: str = "predictions.json"):
        self.path = Path(path)
        self.logger = logger.bind(component="prediction_store")
        self._lock = threading.Lock()
        self._predictions: dict[str, Prediction] = {}
        self._load()

    def _load(self) -> None:
        if not self.path.exists():
            return
        raw = orjson.loads(self.path.read_bytes() or b"[]")
        records = raw.values() if isinstance(raw, dict) else raw
        for record in records:
            prediction = Prediction.from_dict(record)
            self._predictions[prediction.prediction_id] = prediction
        self.logger.info("Predictions loaded", path=str(self.path), count=len(self._predictions))

    def _flush(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        payload = orjson.dumps(
            [p.to_dict() for p in self._predictions.values()],
            option=orjson.OPT_INDENT_2,
        )
        tmp = self.path.with_suffix(self.path.suffix + ".tmp")
        tmp.write_bytes(payload)
        os.replace(tmp, self.path)

    def list_predictions(self) -> list[Prediction]:
        with self._lock:
            return list(self._predictions.values())

    def list_pending(self) -> list[Prediction]:
        return [p for p in self.list_predictions() if p.is_pending]

    def get(self, prediction_id: str) -> Optional[Prediction]:
        with self._lock:
            return self._predictions.get(prediction_id)

    def save(self, prediction: Prediction) -> None:
        with self._lock:
            self._predictions[prediction.prediction_id] = prediction
            self._flush()

    def save_many(self, predictions: list[Prediction]) -> None:
        with self._lock:
            for prediction in predictions:
                self._predictions[prediction.prediction_id] = prediction
            self._flush()

    def __len__(self) -> int:
        return len(self._predictions)
