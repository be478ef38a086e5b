"""Enrollment, lesson access and progress endpoints."""

from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, status
from pydantic import BaseModel

from coursehub.api.catalog import LessonOut
from coursehub.api.dependencies import (
    CurrentUser,
    ServicesDep,
    Teacher,
    ensure_course_owner,
)
from coursehub.core.errors import ForbiddenError
from coursehub.models.enrollment import Enrollment, EnrollmentStatus
from coursehub.models.principal import Principal
from coursehub.models.progress import Progress
from coursehub.services.container import Services

router = APIRouter(prefix="/v1", tags=["enrollments"])


class EnrollmentOut(BaseModel):
    id: UUID
    student_id: str
    course_id: UUID
    status: EnrollmentStatus
    current_lesson_id: UUID | None
    progress_percent: int
    payment_id: UUID | None
    created_at: int
    completed_at: int | None

    @classmethod
    def of(cls, enrollment: Enrollment) -> EnrollmentOut:
        return cls(
            id=enrollment.id,
            student_id=enrollment.student_id,
            course_id=enrollment.course_id,
            status=enrollment.status,
            current_lesson_id=enrollment.current_lesson_id,
            progress_percent=enrollment.progress_percent,
            payment_id=enrollment.payment_id,
            created_at=enrollment.created_at,
            completed_at=enrollment.completed_at,
        )


class AccessOut(BaseModel):
    lesson_id: UUID
    allowed: bool
    reason: str | None


class ProgressOut(BaseModel):
    enrollment_id: UUID
    status: EnrollmentStatus
    completed_count: int
    total_count: int
    percentage: int
    current_lesson_id: UUID | None
    completed_lesson_ids: list[UUID]
    completed_at: int | None

    @classmethod
    def of(cls, progress: Progress) -> ProgressOut:
        return cls(
            enrollment_id=progress.enrollment_id,
            status=progress.status,
            completed_count=progress.completed_count,
            total_count=progress.total_count,
            percentage=progress.percentage,
            current_lesson_id=progress.current_lesson_id,
            completed_lesson_ids=list(progress.completed_lesson_ids),
            completed_at=progress.completed_at,
        )


async def _owned_enrollment(
    services: Services, enrollment_id: UUID, principal: Principal
) -> Enrollment:
    enrollment = await services.enrollments.get_enrollment_by_id(enrollment_id)
    if enrollment.student_id != principal.user_id and not principal.is_admin():
        raise ForbiddenError(
            "enrollment belongs to another student", code="not_enrollment_owner"
        )
    return enrollment


# ---------------------------------------------------------------------------
# Enrollment
# ---------------------------------------------------------------------------


@router.post(
    "/courses/{course_id}/enroll",
    response_model=EnrollmentOut,
    status_code=status.HTTP_200_OK,
)
async def enroll(
    course_id: UUID, principal: CurrentUser, services: ServicesDep
) -> EnrollmentOut:
    """Start (or return the existing) enrollment.

    Free courses come back active; paid courses come back pending_payment
    until a payment is approved.
    """
    enrollment = await services.enrollments.start_enrollment(
        principal.user_id, course_id
    )
    return EnrollmentOut.of(enrollment)


@router.get("/courses/{course_id}/enrollment", response_model=EnrollmentOut)
async def get_enrollment(
    course_id: UUID, principal: CurrentUser, services: ServicesDep
) -> EnrollmentOut:
    enrollment = await services.enrollments.get_enrollment(principal.user_id, course_id)
    return EnrollmentOut.of(enrollment)


@router.get("/courses/{course_id}/enrollments", response_model=list[EnrollmentOut])
async def list_course_enrollments(
    course_id: UUID, principal: Teacher, services: ServicesDep
) -> list[EnrollmentOut]:
    ensure_course_owner(await services.catalog.get_course(course_id), principal)
    enrollments = await services.enrollments.list_course_enrollments(course_id)
    return [EnrollmentOut.of(e) for e in enrollments]


@router.get("/me/enrollments", response_model=list[EnrollmentOut])
async def list_my_enrollments(
    principal: CurrentUser, services: ServicesDep
) -> list[EnrollmentOut]:
    enrollments = await services.enrollments.list_enrollments(principal.user_id)
    return [EnrollmentOut.of(e) for e in enrollments]


# ---------------------------------------------------------------------------
# Lesson access
# ---------------------------------------------------------------------------


@router.get("/lessons/{lesson_id}/access", response_model=AccessOut)
async def check_lesson_access(
    lesson_id: UUID, principal: CurrentUser, services: ServicesDep
) -> AccessOut:
    lesson = await services.catalog.get_lesson(lesson_id)
    decision = await services.access.can_access_lesson(principal.user_id, lesson)
    return AccessOut(
        lesson_id=lesson_id,
        allowed=decision.allowed,
        reason=decision.reason.value if decision.reason else None,
    )


@router.get("/lessons/{lesson_id}", response_model=LessonOut)
async def get_lesson(
    lesson_id: UUID, principal: CurrentUser, services: ServicesDep
) -> LessonOut:
    lesson = await services.catalog.get_lesson(lesson_id)
    decision = await services.access.can_access_lesson(principal.user_id, lesson)
    if not decision.allowed:
        reason = decision.reason.value if decision.reason else "forbidden"
        raise ForbiddenError("lesson is locked", code=reason)
    return LessonOut.of(lesson)


# ---------------------------------------------------------------------------
# Progress
# ---------------------------------------------------------------------------


@router.post(
    "/enrollments/{enrollment_id}/lessons/{lesson_id}/complete",
    response_model=ProgressOut,
)
async def complete_lesson(
    enrollment_id: UUID,
    lesson_id: UUID,
    principal: CurrentUser,
    services: ServicesDep,
) -> ProgressOut:
    await _owned_enrollment(services, enrollment_id, principal)
    progress = await services.progress.mark_lesson_complete(enrollment_id, lesson_id)
    return ProgressOut.of(progress)


@router.get("/enrollments/{enrollment_id}/progress", response_model=ProgressOut)
async def get_progress(
    enrollment_id: UUID, principal: CurrentUser, services: ServicesDep
) -> ProgressOut:
    await _owned_enrollment(services, enrollment_id, principal)
    return ProgressOut.of(await services.progress.get_progress(enrollment_id))
