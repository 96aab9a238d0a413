"""Utility modules."""

from valuebet.utils.logging import setup_logging, VerificationLog
from valuebet.utils.tasks import CancellationToken, SerialTaskQueue, TaskResult

__all__ = [
    "setup_logging",
    "VerificationLog",
    "CancellationToken",
    "SerialTaskQueue",
    "TaskResult",
]
