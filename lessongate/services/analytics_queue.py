"""Analytics event queue on Redis lists.

The API produces, ``python -m lessongate.worker`` consumes:

  Producer (API):    LPUSH event onto analytics:{queue}
  Consumer (worker): BRPOP from the same list

LPUSH at the head and BRPOP at the tail gives FIFO order.  Delivery is
at-most-once: an event popped by a worker that then crashes is lost,
which is acceptable for analytics that never gate access.

Events carried today:

  preview_analytics   one per locked preview, with the final watched
                      duration in seconds
"""

from __future__ import annotations

import json
import uuid
from dataclasses import dataclass
from typing import Protocol, runtime_checkable

from lessongate.db.redis import redis_pool

PREVIEW_QUEUE = "preview_analytics"


@dataclass(frozen=True, slots=True)
class AnalyticsEvent:
    id: str
    queue: str
    payload: dict


@runtime_checkable
class AnalyticsQueue(Protocol):
    async def enqueue(self, queue: str, payload: dict) -> AnalyticsEvent: ...
    async def dequeue(self, queue: str, timeout: int = 0) -> AnalyticsEvent | None: ...
    async def queue_length(self, queue: str) -> int: ...


class InMemoryAnalyticsQueue:
    def __init__(self) -> None:
        self._queues: dict[str, list[AnalyticsEvent]] = {}

    async def enqueue(self, queue: str, payload: dict) -> AnalyticsEvent:
        event = AnalyticsEvent(id=str(uuid.uuid4()), queue=queue, payload=payload)
        self._queues.setdefault(queue, []).append(event)
        return event

    async def dequeue(self, queue: str, timeout: int = 0) -> AnalyticsEvent | None:
        events = self._queues.get(queue, [])
        if events:
            return events.pop(0)
        return None

    async def queue_length(self, queue: str) -> int:
        return len(self._queues.get(queue, []))


class RedisAnalyticsQueue:
    _PREFIX = "analytics:"

    def __init__(self, redis_client) -> None:
        self._redis = redis_client

    async def enqueue(self, queue: str, payload: dict) -> AnalyticsEvent:
        event = AnalyticsEvent(id=str(uuid.uuid4()), queue=queue, payload=payload)
        await self._redis.lpush(
            f"{self._PREFIX}{queue}",
            json.dumps({"id": event.id, "queue": event.queue, "payload": event.payload}),
        )
        return event

    async def dequeue(self, queue: str, timeout: int = 5) -> AnalyticsEvent | None:
        result = await self._redis.brpop(f"{self._PREFIX}{queue}", timeout=timeout)
        if result is None:
            return None
        _, raw = result
        return AnalyticsEvent(**json.loads(raw))

    async def queue_length(self, queue: str) -> int:
        return await self._redis.llen(f"{self._PREFIX}{queue}")


async def publish_preview_duration(
    queue: AnalyticsQueue,
    *,
    lesson_id: str,
    course_id: str,
    user_id: str | None,
    final_duration_seconds: int,
) -> AnalyticsEvent:
    return await queue.enqueue(
        PREVIEW_QUEUE,
        {
            "lesson_id": lesson_id,
            "course_id": course_id,
            "user_id": user_id,
            "final_duration_seconds": final_duration_seconds,
        },
    )


if redis_pool is not None:
    analytics_queue: AnalyticsQueue = RedisAnalyticsQueue(redis_pool)
else:
    analytics_queue = InMemoryAnalyticsQueue()
