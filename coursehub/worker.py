"""Background worker process.

RUN:  python -m coursehub.worker

Consumes the domain events the API publishes onto the notifications
queue and turns each into a message for the people involved: the
teacher hears about a new payment to review, the student hears the
review outcome and about finishing a course. Message delivery (SMS,
email, Telegram) is an external collaborator; this process decides who
is told what and hands it on.

Same image as the API, different command:
  api:    uvicorn coursehub.main:app --host 0.0.0.0 --port 8000
  worker: python -m coursehub.worker
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Coroutine
from typing import Any

from coursehub.core.config import SETTINGS
from coursehub.core.logging import setup_logging
from coursehub.core.metrics import QUEUE_DEPTH
from coursehub.models.events import EventType
from coursehub.services.task_queue import NOTIFICATIONS_QUEUE, task_queue

TaskHandler = Callable[[dict], Coroutine[Any, Any, None]]
EventHandler = Callable[[dict], Coroutine[Any, Any, None]]

logger = logging.getLogger("worker")


# ---------------------------------------------------------------------------
# Handler registries
# ---------------------------------------------------------------------------

HANDLERS: dict[str, TaskHandler] = {}
EVENT_HANDLERS: dict[EventType, EventHandler] = {}


def register_handler(queue: str):
    """Decorator: register a coroutine as the handler for a queue."""

    def decorator(func):
        HANDLERS[queue] = func
        return func

    return decorator


def on_event(event_type: EventType):
    """Decorator: register a coroutine for one domain event type."""

    def decorator(func):
        EVENT_HANDLERS[event_type] = func
        return func

    return decorator


# ---------------------------------------------------------------------------
# Notifications
# ---------------------------------------------------------------------------


@register_handler(NOTIFICATIONS_QUEUE)
async def handle_notification(task_payload: dict) -> None:
    """Dispatch one domain event to its handler by ``type``."""
    try:
        event_type = EventType(task_payload["type"])
    except (KeyError, ValueError):
        logger.warning("Skipping malformed event: %r", task_payload)
        return
    handler = EVENT_HANDLERS.get(event_type)
    if handler is None:
        logger.debug("No handler for %s", event_type.value)
        return
    await handler(task_payload.get("payload", {}))


@on_event(EventType.PAYMENT_SUBMITTED)
async def notify_payment_submitted(payload: dict) -> None:
    logger.info(
        "Notify teacher=%s: payment=%s awaiting review (%s %s)",
        payload.get("teacher_id"),
        payload.get("payment_id"),
        payload.get("amount"),
        payload.get("currency"),
    )


@on_event(EventType.PAYMENT_APPROVED)
async def notify_payment_approved(payload: dict) -> None:
    logger.info(
        "Notify student=%s: payment=%s approved, course=%s unlocked",
        payload.get("student_id"),
        payload.get("payment_id"),
        payload.get("course_id"),
    )


@on_event(EventType.PAYMENT_REJECTED)
async def notify_payment_rejected(payload: dict) -> None:
    logger.info(
        "Notify student=%s: payment=%s rejected: %s",
        payload.get("student_id"),
        payload.get("payment_id"),
        payload.get("reason"),
    )


@on_event(EventType.ENROLLMENT_COMPLETED)
async def notify_enrollment_completed(payload: dict) -> None:
    logger.info(
        "Notify student=%s: course=%s completed",
        payload.get("student_id"),
        payload.get("course_id"),
    )


# ---------------------------------------------------------------------------
# Main worker loop
# ---------------------------------------------------------------------------


async def process_one(queue_name: str, timeout: int = 1) -> bool:
    """Dequeue and handle a single task. Returns False when the queue was empty."""
    task = await task_queue.dequeue(queue_name, timeout=timeout)
    if task is None:
        return False

    handler = HANDLERS[queue_name]
    try:
        await handler(task.payload)
        logger.info("Task %s on [%s] completed", task.id, queue_name)
    except Exception:
        # At-most-once: a failed notification is logged, not retried
        logger.exception("Task %s on [%s] failed", task.id, queue_name)
    return True


async def run_worker() -> None:
    """Poll all registered queues and dispatch tasks to handlers."""
    queues = list(HANDLERS.keys())
    logger.info("Worker started, listening on queues: %s", queues)

    while True:
        for queue_name in queues:
            await process_one(queue_name)
            QUEUE_DEPTH.labels(queue_name=queue_name).set(
                await task_queue.queue_length(queue_name)
            )


if __name__ == "__main__":
    setup_logging(SETTINGS.log_level, json_format=SETTINGS.log_json)
    asyncio.run(run_worker())
