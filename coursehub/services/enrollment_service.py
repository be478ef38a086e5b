from __future__ import annotations

import logging
from uuid import UUID

from coursehub.core.errors import NotEnrolledError, NotFoundError
from coursehub.core.metrics import ENROLLMENTS_STARTED
from coursehub.models.enrollment import Enrollment
from coursehub.repos.enrollment_repo import DuplicateEnrollmentError, EnrollmentRepo
from coursehub.services.catalog_service import CatalogService, require_published
from coursehub.services.payment_service import PaymentWorkflow

logger = logging.getLogger(__name__)


class EnrollmentManager:
    """Creates and reads enrollments.

    Starting an enrollment is idempotent: a second call for the same
    student and course returns the existing record, whatever its status.
    """

    def __init__(
        self,
        catalog: CatalogService,
        enrollments: EnrollmentRepo,
        payments: PaymentWorkflow,
    ) -> None:
        self._catalog = catalog
        self._enrollments = enrollments
        self._payments = payments

    async def start_enrollment(self, student_id: str, course_id: UUID) -> Enrollment:
        course = await self._catalog.get_course(course_id)
        kind = "paid" if course.is_paid else "free"

        existing = await self._enrollments.get_by_student_course(student_id, course_id)
        if existing is not None:
            ENROLLMENTS_STARTED.labels(kind=kind, result="existing").inc()
            return existing

        require_published(course)
        if course.is_paid:
            enrollment = await self._payments.ensure_pending_enrollment(
                student_id, course
            )
            ENROLLMENTS_STARTED.labels(kind=kind, result="created").inc()
            return enrollment

        enrollment = Enrollment.new_free(
            student_id=student_id,
            course_id=course_id,
            first_lesson_id=await self._catalog.first_lesson_id(course_id),
        )
        try:
            await self._enrollments.add(enrollment)
        except DuplicateEnrollmentError:
            raced = await self._enrollments.get_by_student_course(student_id, course_id)
            if raced is None:
                raise
            ENROLLMENTS_STARTED.labels(kind=kind, result="existing").inc()
            return raced

        ENROLLMENTS_STARTED.labels(kind=kind, result="created").inc()
        logger.info(
            "Enrolled student=%s in free course",
            student_id,
            extra={"course_id": str(course_id), "enrollment_id": str(enrollment.id)},
        )
        return enrollment

    async def get_enrollment(self, student_id: str, course_id: UUID) -> Enrollment:
        await self._catalog.get_course(course_id)
        enrollment = await self._enrollments.get_by_student_course(
            student_id, course_id
        )
        if enrollment is None:
            raise NotEnrolledError("student is not enrolled in this course")
        return enrollment

    async def get_enrollment_by_id(self, enrollment_id: UUID) -> Enrollment:
        enrollment = await self._enrollments.get(enrollment_id)
        if enrollment is None:
            raise NotFoundError("enrollment not found")
        return enrollment

    async def list_enrollments(self, student_id: str) -> list[Enrollment]:
        return await self._enrollments.list_by_student(student_id)

    async def list_course_enrollments(self, course_id: UUID) -> list[Enrollment]:
        await self._catalog.get_course(course_id)
        return await self._enrollments.list_by_course(course_id)
