"""Background worker process.

RUN:  python -m lessongate.worker

Same image as the API, different command:
  api:    uvicorn lessongate.main:app --host 0.0.0.0 --port 8000
  worker: python -m lessongate.worker

The loop polls every registered queue in turn, pops one event at a time
and hands its payload to the registered handler.  A failing handler is
logged and the loop moves on; analytics events are never retried.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Coroutine
from typing import Any

from lessongate.core.config import SETTINGS
from lessongate.core.logging import setup_logging
from lessongate.core.metrics import PREVIEW_FINAL_DURATION
from lessongate.services.analytics_queue import (
    PREVIEW_QUEUE,
    AnalyticsQueue,
    analytics_queue,
)

EventHandler = Callable[[dict], Coroutine[Any, Any, None]]

logger = logging.getLogger("lessongate.worker")

HANDLERS: dict[str, EventHandler] = {}


def register_handler(queue: str):
    """Decorator: register a coroutine as the handler for a queue."""

    def decorator(func):
        HANDLERS[queue] = func
        return func

    return decorator


@register_handler(PREVIEW_QUEUE)
async def handle_preview_duration(payload: dict) -> None:
    """Record how long a visitor watched before the preview locked."""
    duration = int(payload["final_duration_seconds"])
    if duration < 0:
        raise ValueError(f"negative preview duration: {duration}")
    PREVIEW_FINAL_DURATION.observe(duration)
    logger.info(
        "preview locked after %ds",
        duration,
        extra={
            "user_id": payload.get("user_id"),
            "lesson_id": payload.get("lesson_id"),
            "course_id": payload.get("course_id"),
        },
    )


async def process_one(queue: AnalyticsQueue, queue_name: str, timeout: int = 1) -> bool:
    """Pop and handle one event.  Returns False when the queue was empty."""
    event = await queue.dequeue(queue_name, timeout=timeout)
    if event is None:
        return False
    handler = HANDLERS[queue_name]
    try:
        await handler(event.payload)
        logger.debug("Event %s on [%s] handled", event.id, queue_name)
    except Exception:
        logger.exception("Event %s on [%s] failed", event.id, queue_name)
    return True


async def run_worker(queue: AnalyticsQueue = analytics_queue) -> None:
    queues = list(HANDLERS.keys())
    logger.info("Worker started, listening on queues: %s", queues)
    while True:
        handled = False
        for queue_name in queues:
            handled = await process_one(queue, queue_name) or handled
        if not handled:
            # In-memory dequeue does not block; avoid a hot loop in dev.
            await asyncio.sleep(0.5)


if __name__ == "__main__":
    setup_logging(SETTINGS.log_level, json_format=SETTINGS.log_json)
    asyncio.run(run_worker())
