"""Tests for the serial task queue."""

import asyncio

import pytest

from valuebet.errors import OperationCancelled
from valuebet.utils.tasks import CancellationToken, SerialTaskQueue


def test_items_run_in_order_and_errors_are_captured():
    seen = []

    async def worker(item):
        seen.append(item)
        if item == 2:
            raise RuntimeError("boom")
        return item * 10

    queue = SerialTaskQueue(delay_ms=0)
    results = asyncio.run(queue.run([1, 2, 3], worker))

    assert seen == [1, 2, 3]
    assert [r.value for r in results] == [10, None, 30]
    assert str(results[1].error) == "boom"
    assert [r.ok for r in results] == [True, False, True]


def test_cancelled_token_wakes_sleep():
    async def run():
        token = CancellationToken()
        token.cancel("stop")
        return await token.sleep(30)

    assert asyncio.run(run()) is True


def test_cancellation_before_first_item():
    token = CancellationToken()
    token.cancel()

    async def worker(item):
        return item

    results = asyncio.run(SerialTaskQueue(delay_ms=0).run([1, 2], worker, token))
    assert all(r.cancelled for r in results)


def test_raise_if_cancelled():
    token = CancellationToken()
    token.raise_if_cancelled()
    token.cancel("operator stop")
    with pytest.raises(OperationCancelled) as exc:
        token.raise_if_cancelled()
    assert exc.value.message == "operator stop"
