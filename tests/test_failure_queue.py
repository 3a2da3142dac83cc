import asyncio

import pytest

from async_code_mailer.failure_queue import FailureQueue
from async_code_mailer.models import QueuedItem


def item(name: str, attempts: int = 0) -> QueuedItem:
    return QueuedItem(recipient=f"{name}@example.com", display_name=name, code="1234", attempt_count=attempts)


@pytest.mark.asyncio
async def test_fifo_order():
    queue = FailureQueue()
    assert await queue.push(item("a")) == 1
    assert await queue.push(item("b")) == 2

    assert (await queue.pop()).display_name == "a"
    assert (await queue.pop()).display_name == "b"
    assert await queue.pop() is None
    assert len(queue) == 0


@pytest.mark.asyncio
async def test_snapshot_is_a_copy():
    queue = FailureQueue()
    await queue.push(item("a"))
    snap = await queue.snapshot()
    snap.clear()
    assert len(queue) == 1


@pytest.mark.asyncio
async def test_concurrent_push_and_pop_lose_nothing():
    queue = FailureQueue()

    async def producer(idx):
        await queue.push(item(f"u{idx}"))

    await asyncio.gather(*(producer(i) for i in range(50)))
    popped = await asyncio.gather(*(queue.pop() for _ in range(60)))

    names = [p.display_name for p in popped if p is not None]
    assert len(names) == 50
    assert len(set(names)) == 50


def test_summary_hides_code():
    summary = item("a", attempts=2).summary()
    assert "code" not in summary
    assert summary["attempt_count"] == 2
