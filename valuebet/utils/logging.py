"""
Logging setup and the verification audit log.
"""

import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional

import orjson
import structlog
from structlog.processors import JSONRenderer, TimeStamper


def setup_logging(log_level: str = "INFO", log_dir: str = "logs") -> None:
    """
    Configure structlog for the application.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
        log_dir: Directory for log files
    """
    Path(log_dir).mkdir(parents=True, exist_ok=True)

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.StackInfoRenderer(),
            structlog.dev.set_exc_info,
            TimeStamper(fmt="iso"),
            JSONRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(
            getattr(logging, log_level.upper(), logging.INFO)
        ),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )


class VerificationLog:
    """
    Append-only JSONL record of verification attempts.

    One file per UTC day: verifications_YYYY-MM-DD.jsonl
    """

    def __init__(self, log_dir: str = "logs"):
        self.log_dir = Path(log_dir)
        self.log_dir.mkdir(parents=True, exist_ok=True)

        self.logger = structlog.get_logger("verification_log")

        self._current_date: Optional[str] = None
        self._current_file: Optional[Path] = None
        self._file_handle = None

    def _get_log_file(self) -> Path:
        """Get current day's log file, rotating if needed."""
        today = datetime.now(timezone.utc).strftime("%Y-%m-%d")

        if today != self._current_date:
            if self._file_handle:
                self._file_handle.close()
            self._current_date = today
            self._current_file = self.log_dir / f"verifications_{today}.jsonl"
            self._file_handle = open(self._current_file, "ab")

        return self._current_file

    def write(self, entry: dict[str, Any]) -> None:
        self._get_log_file()
        record = {"timestamp": datetime.now(timezone.utc).isoformat(), **entry}
        self._file_handle.write(orjson.dumps(record, default=str) + b"\n")
        self._file_handle.flush()

    def log_outcome(self, outcome) -> None:
        """Record a VerificationOutcome."""
        self.write({
            "type": "verification",
            "prediction_id": outcome.prediction_id,
            "success": outcome.success,
            "outcome": outcome.outcome.value if outcome.outcome else None,
            "actual_value": outcome.actual_value,
            "from_cache": outcome.from_cache,
            "reason": outcome.reason,
        })
        self.logger.debug(
            "verification_logged",
            prediction_id=outcome.prediction_id,
            success=outcome.success,
        )

    def close(self) -> None:
        if self._file_handle:
            self._file_handle.close()
            self._file_handle = None
