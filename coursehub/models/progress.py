from __future__ import annotations

import datetime
from dataclasses import dataclass
from uuid import UUID

from coursehub.models.enrollment import EnrollmentStatus


@dataclass(frozen=True, slots=True)
class LessonCompletion:
    """Append-only fact: the enrollment's student finished the lesson."""

    enrollment_id: UUID
    lesson_id: UUID
    completed_at: int

    @staticmethod
    def new(*, enrollment_id: UUID, lesson_id: UUID) -> LessonCompletion:
        return LessonCompletion(
            enrollment_id=enrollment_id,
            lesson_id=lesson_id,
            completed_at=int(datetime.datetime.now(datetime.UTC).timestamp()),
        )


@dataclass(frozen=True, slots=True)
class Progress:
    """Read model returned by the progress tracker."""

    enrollment_id: UUID
    status: EnrollmentStatus
    completed_count: int
    total_count: int
    percentage: int
    current_lesson_id: UUID | None
    completed_lesson_ids: tuple[UUID, ...] = ()
    completed_at: int | None = None


def completion_percentage(completed: int, total: int) -> int:
    """Integer percentage, rounded to nearest with ties rounding up.

    Done in integer arithmetic: floor((200c + t) / 2t) == floor(100c/t + 0.5).
    """
    if total <= 0:
        return 0
    return (200 * completed + total) // (2 * total)
