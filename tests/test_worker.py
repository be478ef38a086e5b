from __future__ import annotations

import asyncio
import logging
from uuid import uuid4

import pytest

from coursehub import worker
from coursehub.models.events import EventType
from coursehub.services.events import EventPublisher
from coursehub.services.task_queue import NOTIFICATIONS_QUEUE, task_queue


def test_every_event_type_has_a_handler() -> None:
    assert set(worker.EVENT_HANDLERS) == set(EventType)
    assert NOTIFICATIONS_QUEUE in worker.HANDLERS


def test_process_one_dispatches_published_event(
    caplog: pytest.LogCaptureFixture,
) -> None:
    asyncio.run(
        EventPublisher(task_queue).publish(
            EventType.PAYMENT_REJECTED,
            payment_id=uuid4(),
            student_id="student-7",
            reason="wrong amount",
        )
    )

    with caplog.at_level(logging.INFO, logger="worker"):
        handled = asyncio.run(worker.process_one(NOTIFICATIONS_QUEUE))

    assert handled
    assert "student-7" in caplog.text
    assert "wrong amount" in caplog.text


def test_process_one_on_empty_queue() -> None:
    assert asyncio.run(worker.process_one(NOTIFICATIONS_QUEUE)) is False


def test_malformed_event_is_skipped(caplog: pytest.LogCaptureFixture) -> None:
    asyncio.run(task_queue.enqueue(NOTIFICATIONS_QUEUE, {"type": "Nope"}))

    with caplog.at_level(logging.INFO, logger="worker"):
        handled = asyncio.run(worker.process_one(NOTIFICATIONS_QUEUE))

    assert handled
    assert "Skipping malformed event" in caplog.text
