"""Lesson completion and course progress.

Completions are append-only facts keyed by (enrollment, lesson); the
enrollment row carries the derived percentage and the "continue here"
pointer. Both are written in the same transaction, with the enrollment
row locked for the duration, so a reader never sees one without the
other.

Percentage is ``completed / total`` rounded half up, held below 100
until every lesson is done; at that point the enrollment moves to
completed and stays there. A completed enrollment is never reopened,
even if the teacher adds lessons afterwards.

A pending_payment enrollment may complete free preview lessons; its
percentage and pointer move with them but it cannot complete. When a
payment approval activates it, ``resume`` recomputes from the recorded
completions in the same transaction.
"""

from __future__ import annotations

import logging
from uuid import UUID

from coursehub.core.errors import ConflictError, ForbiddenError, NotFoundError
from coursehub.core.metrics import LESSON_COMPLETIONS
from coursehub.models.course import Lesson
from coursehub.models.enrollment import Enrollment, EnrollmentStatus
from coursehub.models.events import EventType
from coursehub.models.progress import LessonCompletion, Progress, completion_percentage
from coursehub.repos.completion_repo import CompletionRepo
from coursehub.repos.enrollment_repo import EnrollmentRepo
from coursehub.services.access_gate import AccessGate
from coursehub.services.catalog_service import CatalogService
from coursehub.services.events import EventPublisher

logger = logging.getLogger(__name__)


def _snapshot(
    enrollment: Enrollment, lessons: list[Lesson], done: set[UUID]
) -> Progress:
    completed = tuple(les.id for les in lessons if les.id in done)
    return Progress(
        enrollment_id=enrollment.id,
        status=enrollment.status,
        completed_count=len(completed),
        total_count=len(lessons),
        percentage=enrollment.progress_percent,
        current_lesson_id=enrollment.current_lesson_id,
        completed_lesson_ids=completed,
        completed_at=enrollment.completed_at,
    )


def _recompute(
    enrollment: Enrollment,
    lessons: list[Lesson],
    done: set[UUID],
    current_lesson_id: UUID | None,
) -> Enrollment:
    total = len(lessons)
    completed = sum(1 for les in lessons if les.id in done)
    # A pending_payment enrollment holds at 99 until approval unlocks it
    finished = (
        total > 0
        and completed == total
        and enrollment.status is EnrollmentStatus.ACTIVE
    )
    percent = 100 if finished else min(completion_percentage(completed, total), 99)
    # Never move backwards, e.g. after a lesson is added to the course
    percent = max(percent, enrollment.progress_percent)
    return enrollment.with_progress(percent, current_lesson_id, completed=finished)


class ProgressTracker:
    def __init__(
        self,
        catalog: CatalogService,
        enrollments: EnrollmentRepo,
        completions: CompletionRepo,
        gate: AccessGate,
        publisher: EventPublisher,
    ) -> None:
        self._catalog = catalog
        self._enrollments = enrollments
        self._completions = completions
        self._gate = gate
        self._publisher = publisher

    async def mark_lesson_complete(
        self, enrollment_id: UUID, lesson_id: UUID
    ) -> Progress:
        enrollment = await self._enrollments.get_for_update(enrollment_id)
        if enrollment is None:
            raise NotFoundError("enrollment not found")
        lesson = await self._catalog.get_lesson(lesson_id)
        lessons = await self._catalog.ordered_lessons(enrollment.course_id)
        positions = {les.id: i for i, les in enumerate(lessons)}
        if lesson_id not in positions:
            raise NotFoundError(
                "lesson is not part of this course", code="lesson_not_in_course"
            )

        decision = await self._gate.can_access_lesson(enrollment.student_id, lesson)
        if not decision.allowed:
            LESSON_COMPLETIONS.labels(result="denied").inc()
            reason = decision.reason.value if decision.reason else "forbidden"
            logger.warning(
                "Completion denied student=%s lesson=%s reason=%s",
                enrollment.student_id,
                lesson_id,
                reason,
                extra={"enrollment_id": str(enrollment_id)},
            )
            raise ForbiddenError("lesson is locked for this enrollment", code=reason)

        completions = await self._completions.list_for_enrollment(enrollment_id)
        done = {c.lesson_id for c in completions}
        if enrollment.status is EnrollmentStatus.COMPLETED:
            LESSON_COMPLETIONS.labels(result="duplicate").inc()
            return _snapshot(enrollment, lessons, done)

        recorded = lesson_id not in done and await self._completions.add_if_absent(
            LessonCompletion.new(enrollment_id=enrollment_id, lesson_id=lesson_id)
        )
        if recorded:
            done.add(lesson_id)
            following = positions[lesson_id] + 1
            pointer = (
                lessons[following].id
                if following < len(lessons)
                else enrollment.current_lesson_id
            )
        else:
            pointer = enrollment.current_lesson_id

        updated = _recompute(enrollment, lessons, done, pointer)
        if updated != enrollment and not await self._enrollments.save_progress(
            updated, expected=enrollment.status
        ):
            raise ConflictError("enrollment changed concurrently, retry")

        if updated.status is EnrollmentStatus.COMPLETED:
            await self._completed(updated)
        else:
            result = "recorded" if recorded else "duplicate"
            LESSON_COMPLETIONS.labels(result=result).inc()
            logger.debug(
                "Lesson %s complete, progress=%d%%",
                lesson_id,
                updated.progress_percent,
                extra={"enrollment_id": str(enrollment_id)},
            )
        return _snapshot(updated, lessons, done)

    async def resume(self, enrollment: Enrollment) -> Enrollment:
        """Catch a freshly activated enrollment up with the preview lessons
        completed while it was pending_payment.

        The pointer moves to the first lesson not yet completed, in catalog
        order; finishing every lesson during the preview completes the course
        here. Runs inside the activating transaction.
        """
        completions = await self._completions.list_for_enrollment(enrollment.id)
        if not completions:
            return enrollment
        done = {c.lesson_id for c in completions}
        lessons = await self._catalog.ordered_lessons(enrollment.course_id)
        pointer = next(
            (les.id for les in lessons if les.id not in done),
            enrollment.current_lesson_id,
        )
        updated = _recompute(enrollment, lessons, done, pointer)
        if updated == enrollment:
            return enrollment
        if not await self._enrollments.save_progress(
            updated, expected=EnrollmentStatus.ACTIVE
        ):
            raise ConflictError("enrollment changed concurrently, retry")
        if updated.status is EnrollmentStatus.COMPLETED:
            await self._completed(updated)
        return updated

    async def _completed(self, enrollment: Enrollment) -> None:
        LESSON_COMPLETIONS.labels(result="course_completed").inc()
        logger.info(
            "Course completed student=%s",
            enrollment.student_id,
            extra={
                "course_id": str(enrollment.course_id),
                "enrollment_id": str(enrollment.id),
            },
        )
        await self._publisher.publish(
            EventType.ENROLLMENT_COMPLETED,
            enrollment_id=enrollment.id,
            course_id=enrollment.course_id,
            student_id=enrollment.student_id,
            completed_at=enrollment.completed_at,
        )

    async def get_progress(self, enrollment_id: UUID) -> Progress:
        enrollment = await self._enrollments.get(enrollment_id)
        if enrollment is None:
            raise NotFoundError("enrollment not found")
        lessons = await self._catalog.ordered_lessons(enrollment.course_id)
        completions = await self._completions.list_for_enrollment(enrollment_id)
        return _snapshot(enrollment, lessons, {c.lesson_id for c in completions})
