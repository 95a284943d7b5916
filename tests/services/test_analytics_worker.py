"""Tests for the preview analytics queue and its worker handler.

The queue falls back to the in-memory implementation when REDIS_URL is
unset, so these run without Redis.
"""

from __future__ import annotations

import asyncio

import pytest
from prometheus_client import REGISTRY

from lessongate.services.analytics_queue import (
    PREVIEW_QUEUE,
    InMemoryAnalyticsQueue,
    publish_preview_duration,
)
from lessongate.worker import HANDLERS, handle_preview_duration, process_one


def _observations() -> float:
    return REGISTRY.get_sample_value("preview_final_duration_seconds_count") or 0.0


def test_preview_handler_registered() -> None:
    assert HANDLERS[PREVIEW_QUEUE] is handle_preview_duration


def test_queue_is_fifo() -> None:
    queue = InMemoryAnalyticsQueue()

    async def run() -> list[int]:
        for n in (10, 20, 30):
            await publish_preview_duration(
                queue, lesson_id="l", course_id="c", user_id=None, final_duration_seconds=n
            )
        assert await queue.queue_length(PREVIEW_QUEUE) == 3
        out = []
        while (event := await queue.dequeue(PREVIEW_QUEUE)) is not None:
            out.append(event.payload["final_duration_seconds"])
        return out

    assert asyncio.run(run()) == [10, 20, 30]


def test_process_one_observes_duration() -> None:
    queue = InMemoryAnalyticsQueue()
    before = _observations()

    async def run() -> tuple[bool, bool]:
        await publish_preview_duration(
            queue, lesson_id="l", course_id="c", user_id="u", final_duration_seconds=180
        )
        first = await process_one(queue, PREVIEW_QUEUE)
        second = await process_one(queue, PREVIEW_QUEUE)
        return first, second

    assert asyncio.run(run()) == (True, False)
    assert _observations() - before == 1


def test_process_one_logs_handler_failure(caplog: pytest.LogCaptureFixture) -> None:
    queue = InMemoryAnalyticsQueue()
    before = _observations()

    async def run() -> bool:
        await queue.enqueue(PREVIEW_QUEUE, {"final_duration_seconds": -5})
        return await process_one(queue, PREVIEW_QUEUE)

    assert asyncio.run(run()) is True
    assert _observations() == before
    assert any("failed" in r.message for r in caplog.records)


def test_handler_rejects_negative_duration() -> None:
    with pytest.raises(ValueError):
        asyncio.run(handle_preview_duration({"final_duration_seconds": -1}))
