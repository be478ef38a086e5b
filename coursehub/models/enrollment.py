from __future__ import annotations

import datetime
from dataclasses import dataclass, replace
from enum import Enum
from uuid import UUID, uuid4


def _now() -> int:
    return int(datetime.datetime.now(datetime.UTC).timestamp())


class EnrollmentStatus(str, Enum):
    PENDING_PAYMENT = "pending_payment"
    ACTIVE = "active"
    COMPLETED = "completed"


UNLOCKED_STATUSES = frozenset({EnrollmentStatus.ACTIVE, EnrollmentStatus.COMPLETED})


class EnrollmentTransitionError(ValueError):
    """An Enrollment was asked to move along an edge its lifecycle lacks."""


@dataclass(frozen=True, slots=True)
class Enrollment:
    """A student's access and progress record for one course.

    ``progress_percent`` and ``current_lesson_id`` are written only by the
    progress tracker. ``payment_id`` records the approved payment that
    unlocked a paid course; free enrollments leave it empty.
    """

    id: UUID
    student_id: str
    course_id: UUID
    status: EnrollmentStatus
    created_at: int
    current_lesson_id: UUID | None = None
    progress_percent: int = 0
    payment_id: UUID | None = None
    completed_at: int | None = None

    @property
    def is_unlocked(self) -> bool:
        return self.status in UNLOCKED_STATUSES

    @staticmethod
    def new_free(
        *, student_id: str, course_id: UUID, first_lesson_id: UUID | None
    ) -> Enrollment:
        return Enrollment(
            id=uuid4(),
            student_id=student_id,
            course_id=course_id,
            status=EnrollmentStatus.ACTIVE,
            created_at=_now(),
            current_lesson_id=first_lesson_id,
        )

    @staticmethod
    def new_pending(*, student_id: str, course_id: UUID) -> Enrollment:
        return Enrollment(
            id=uuid4(),
            student_id=student_id,
            course_id=course_id,
            status=EnrollmentStatus.PENDING_PAYMENT,
            created_at=_now(),
        )

    @staticmethod
    def new_unlocked(
        *,
        student_id: str,
        course_id: UUID,
        payment_id: UUID,
        first_lesson_id: UUID | None,
    ) -> Enrollment:
        return Enrollment(
            id=uuid4(),
            student_id=student_id,
            course_id=course_id,
            status=EnrollmentStatus.ACTIVE,
            created_at=_now(),
            current_lesson_id=first_lesson_id,
            payment_id=payment_id,
        )

    def activate(self, payment_id: UUID, first_lesson_id: UUID | None) -> Enrollment:
        if self.status is not EnrollmentStatus.PENDING_PAYMENT:
            raise EnrollmentTransitionError(
                f"cannot activate enrollment in status {self.status.value}"
            )
        return replace(
            self,
            status=EnrollmentStatus.ACTIVE,
            payment_id=payment_id,
            current_lesson_id=self.current_lesson_id or first_lesson_id,
        )

    def with_progress(
        self, percent: int, current_lesson_id: UUID | None, *, completed: bool
    ) -> Enrollment:
        """Progress on preview lessons may be recorded while pending_payment,
        but only an active enrollment can complete."""
        if self.status is EnrollmentStatus.COMPLETED:
            raise EnrollmentTransitionError(
                "cannot record progress on a completed enrollment"
            )
        if completed:
            if self.status is not EnrollmentStatus.ACTIVE:
                raise EnrollmentTransitionError(
                    f"cannot complete enrollment in status {self.status.value}"
                )
            return replace(
                self,
                status=EnrollmentStatus.COMPLETED,
                progress_percent=percent,
                current_lesson_id=current_lesson_id,
                completed_at=_now(),
            )
        return replace(
            self, progress_percent=percent, current_lesson_id=current_lesson_id
        )
