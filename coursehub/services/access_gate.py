from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum

from coursehub.models.course import Lesson
from coursehub.models.enrollment import EnrollmentStatus
from coursehub.repos.enrollment_repo import EnrollmentRepo
from coursehub.services.catalog_service import CatalogService

logger = logging.getLogger(__name__)


class DenyReason(str, Enum):
    NOT_ENROLLED = "not_enrolled"
    PAYMENT_PENDING = "payment_pending"


@dataclass(frozen=True, slots=True)
class AccessDecision:
    allowed: bool
    reason: DenyReason | None = None


ALLOW = AccessDecision(allowed=True)


class AccessGate:
    """Decides whether a student may open a lesson.

    Free preview lessons are open to everyone. Anything else needs an
    unlocked (active or completed) enrollment in the lesson's course.
    Pure read: never writes.
    """

    def __init__(self, catalog: CatalogService, enrollments: EnrollmentRepo) -> None:
        self._catalog = catalog
        self._enrollments = enrollments

    async def can_access_lesson(
        self, student_id: str, lesson: Lesson
    ) -> AccessDecision:
        if lesson.is_free:
            return ALLOW
        course_id = await self._catalog.course_id_for_lesson(lesson)
        enrollment = await self._enrollments.get_by_student_course(
            student_id, course_id
        )
        if enrollment is None:
            decision = AccessDecision(allowed=False, reason=DenyReason.NOT_ENROLLED)
        elif enrollment.status is EnrollmentStatus.PENDING_PAYMENT:
            decision = AccessDecision(allowed=False, reason=DenyReason.PAYMENT_PENDING)
        else:
            return ALLOW
        logger.debug(
            "Lesson access denied student=%s lesson=%s reason=%s",
            student_id,
            lesson.id,
            decision.reason.value if decision.reason else None,
            extra={"course_id": str(course_id)},
        )
        return decision
