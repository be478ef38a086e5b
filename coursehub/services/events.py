"""Domain event publishing.

The core never waits on notification delivery: publishing is a single
enqueue onto the notifications queue. A failed enqueue is logged and
dropped; the state change that produced the event stands.

Request-scoped publishers are built with ``deferred=True``. They hold
events until ``flush()``, which the API calls only after the request's
transaction has committed, so a rolled-back request announces nothing.
"""

from __future__ import annotations

import logging

from redis.exceptions import RedisError

from coursehub.core.metrics import DOMAIN_EVENTS
from coursehub.models.events import DomainEvent, EventType
from coursehub.services.task_queue import NOTIFICATIONS_QUEUE, TaskQueue

logger = logging.getLogger(__name__)


class EventPublisher:
    def __init__(self, queue: TaskQueue, *, deferred: bool = False) -> None:
        self._queue = queue
        self._deferred = deferred
        self._held: list[DomainEvent] = []

    async def publish(self, event_type: EventType, **payload: object) -> DomainEvent:
        event = DomainEvent(type=event_type, payload=_jsonable(payload))
        if self._deferred:
            self._held.append(event)
        else:
            await self._send(event)
        return event

    async def flush(self) -> None:
        """Enqueue every held event, oldest first."""
        held, self._held = self._held, []
        for event in held:
            await self._send(event)

    async def _send(self, event: DomainEvent) -> None:
        try:
            await self._queue.enqueue(NOTIFICATIONS_QUEUE, event.to_dict())
        except (RedisError, OSError):
            logger.exception(
                "Dropped domain event type=%s id=%s", event.type.value, event.id
            )
            return
        DOMAIN_EVENTS.labels(event_type=event.type.value).inc()
        logger.debug(
            "Published %s id=%s",
            event.type.value,
            event.id,
            extra={"event_type": event.type.value},
        )


def _jsonable(payload: dict[str, object]) -> dict:
    # UUIDs and enums become strings; None and ints pass through
    out: dict[str, object] = {}
    for key, value in payload.items():
        if value is None or isinstance(value, bool | int | float | str):
            out[key] = value
        else:
            out[key] = getattr(value, "value", None) or str(value)
    return out
