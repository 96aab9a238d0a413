"""
Serial task queue with cancellation.

Bulk provider work runs one item at a time with a fixed gap between
items. The cancellation token is checked before every item and cuts the
gap short, so a running batch can be stopped mid-flight.
"""

import asyncio
from dataclasses import dataclass
from typing import Awaitable, Callable, Generic, Iterable, Optional, TypeVar

import structlog

from valuebet.errors import OperationCancelled

logger = structlog.get_logger()

T = TypeVar("T")
R = TypeVar("R")


class CancellationToken:
    """Cooperative cancellation signal shared between a caller and a queue."""

    def __init__(self):
        self._event: Optional[asyncio.Event] = None
        self._cancelled = False
        self.reason: Optional[str] = None

    def _get_event(self) -> asyncio.Event:
        if self._event is None:
            self._event = asyncio.Event()
            if self._cancelled:
                self._event.set()
        return self._event

    def cancel(self, reason: str = "Cancelled") -> None:
        self._cancelled = True
        self.reason = reason
        if self._event is not None:
            self._event.set()

    @property
    def is_cancelled(self) -> bool:
        return self._cancelled

    def raise_if_cancelled(self) -> None:
        if self._cancelled:
            raise OperationCancelled(self.reason or "Cancelled")

    async def sleep(self, seconds: float) -> bool:
        """Sleep up to ``seconds``. Returns True if woken by cancellation."""
        if self._cancelled:
            return True
        try:
            await asyncio.wait_for(self._get_event().wait(), timeout=seconds)
        except asyncio.TimeoutError:
            return False
        return True


@dataclass
class TaskResult(Generic[T, R]):
    item: T
    value: Optional[R] = None
    error: Optional[BaseException] = None
    cancelled: bool = False

    @property
    def ok(self) -> bool:
        return self.error is None and not self.cancelled


class SerialTaskQueue:
    """
    Runs a worker over items with concurrency one.

    Errors raised by the worker are captured per item and never stop the
    batch. Concurrent run() calls on one queue are serialized.
    """

    def __init__(
        self,
        delay_ms: float = 500.0,
        sleep: Optional[Callable[[float], Awaitable[None]]] = None,
    ):
        self.delay_ms = delay_ms
        self._sleep = sleep
        self._lock: Optional[asyncio.Lock] = None
        self.logger = logger.bind(component="task_queue")

    async def _pause(self, token: Optional[CancellationToken]) -> None:
        seconds = self.delay_ms / 1000
        if seconds <= 0:
            return
        if self._sleep is not None:
            await self._sleep(seconds)
        elif token is not None:
            await token.sleep(seconds)
        else:
            await asyncio.sleep(seconds)

    async def run(
        self,
        items: Iterable[T],
        worker: Callable[[T], Awaitable[R]],
        cancel_token: Optional[CancellationToken] = None,
    ) -> list[TaskResult[T, R]]:
        if self._lock is None:
            self._lock = asyncio.Lock()

        async with self._lock:
            results: list[TaskResult[T, R]] = []
            pending = list(items)
            for index, item in enumerate(pending):
                if index > 0:
                    await self._pause(cancel_token)

                if cancel_token is not None and cancel_token.is_cancelled:
                    remaining = pending[index:]
                    results.extend(TaskResult(item=i, cancelled=True) for i in remaining)
                    self.logger.info(
                        "Queue cancelled",
                        reason=cancel_token.reason,
                        completed=index,
                        skipped=len(remaining),
                    )
                    break

                try:
                    value = await worker(item)
                    results.append(TaskResult(item=item, value=value))
                except Exception as e:
                    results.append(TaskResult(item=item, error=e))
            return results
