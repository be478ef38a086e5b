from __future__ import annotations

import asyncio

from coursehub.services.access_gate import DenyReason
from coursehub.services.container import Services
from tests.conftest import STUDENT_ID, build_course


def test_free_lesson_allowed_without_enrollment(services: Services) -> None:
    _, lessons = asyncio.run(build_course(services, price=50000, free_lessons=(0,)))
    decision = asyncio.run(services.access.can_access_lesson(STUDENT_ID, lessons[0]))
    assert decision.allowed
    assert decision.reason is None


def test_locked_lesson_denied_without_enrollment(services: Services) -> None:
    _, lessons = asyncio.run(build_course(services, price=50000))
    decision = asyncio.run(services.access.can_access_lesson(STUDENT_ID, lessons[1]))
    assert not decision.allowed
    assert decision.reason is DenyReason.NOT_ENROLLED


def test_locked_lesson_denied_while_payment_pending(services: Services) -> None:
    course, lessons = asyncio.run(build_course(services, price=50000))
    asyncio.run(services.enrollments.start_enrollment(STUDENT_ID, course.id))

    decision = asyncio.run(services.access.can_access_lesson(STUDENT_ID, lessons[0]))
    assert not decision.allowed
    assert decision.reason is DenyReason.PAYMENT_PENDING


def test_active_enrollment_unlocks_every_lesson(services: Services) -> None:
    course, lessons = asyncio.run(build_course(services, price=0))
    asyncio.run(services.enrollments.start_enrollment(STUDENT_ID, course.id))

    for lesson in lessons:
        assert asyncio.run(services.access.can_access_lesson(STUDENT_ID, lesson)).allowed


def test_other_students_enrollment_does_not_count(services: Services) -> None:
    course, lessons = asyncio.run(build_course(services, price=0))
    asyncio.run(services.enrollments.start_enrollment("someone-else", course.id))

    decision = asyncio.run(services.access.can_access_lesson(STUDENT_ID, lessons[0]))
    assert decision.reason is DenyReason.NOT_ENROLLED
