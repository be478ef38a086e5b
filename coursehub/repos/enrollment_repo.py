from __future__ import annotations

from dataclasses import replace
from typing import Protocol
from uuid import UUID

from coursehub.models.enrollment import Enrollment, EnrollmentStatus


class DuplicateEnrollmentError(Exception):
    """An Enrollment already exists for this (student_id, course_id)."""


class EnrollmentRepo(Protocol):
    async def add(self, enrollment: Enrollment) -> None: ...
    async def get(self, enrollment_id: UUID) -> Enrollment | None: ...
    async def get_for_update(self, enrollment_id: UUID) -> Enrollment | None: ...
    async def get_by_student_course(
        self, student_id: str, course_id: UUID
    ) -> Enrollment | None: ...
    async def list_by_student(self, student_id: str) -> list[Enrollment]: ...
    async def list_by_course(self, course_id: UUID) -> list[Enrollment]: ...
    async def activate(
        self, enrollment_id: UUID, payment_id: UUID, first_lesson_id: UUID | None
    ) -> Enrollment | None: ...
    async def save_progress(
        self, enrollment: Enrollment, expected: EnrollmentStatus
    ) -> bool: ...


class InMemoryEnrollmentRepo:
    def __init__(self) -> None:
        self._by_id: dict[UUID, Enrollment] = {}
        self._by_pair: dict[tuple[str, UUID], UUID] = {}

    def clear(self) -> None:
        self._by_id.clear()
        self._by_pair.clear()

    async def add(self, enrollment: Enrollment) -> None:
        key = (enrollment.student_id, enrollment.course_id)
        if key in self._by_pair:
            raise DuplicateEnrollmentError(f"{key[0]}:{key[1]}")
        self._by_id[enrollment.id] = enrollment
        self._by_pair[key] = enrollment.id

    async def get(self, enrollment_id: UUID) -> Enrollment | None:
        return self._by_id.get(enrollment_id)

    async def get_for_update(self, enrollment_id: UUID) -> Enrollment | None:
        return self._by_id.get(enrollment_id)

    async def get_by_student_course(
        self, student_id: str, course_id: UUID
    ) -> Enrollment | None:
        enrollment_id = self._by_pair.get((student_id, course_id))
        if enrollment_id is None:
            return None
        return self._by_id[enrollment_id]

    async def list_by_student(self, student_id: str) -> list[Enrollment]:
        found = [e for e in self._by_id.values() if e.student_id == student_id]
        return sorted(found, key=lambda e: (e.created_at, str(e.id)))

    async def list_by_course(self, course_id: UUID) -> list[Enrollment]:
        found = [e for e in self._by_id.values() if e.course_id == course_id]
        return sorted(found, key=lambda e: (e.created_at, str(e.id)))

    async def activate(
        self, enrollment_id: UUID, payment_id: UUID, first_lesson_id: UUID | None
    ) -> Enrollment | None:
        """Move pending_payment -> active. Returns None if the row is not
        (or no longer) pending_payment."""
        existing = self._by_id.get(enrollment_id)
        if existing is None or existing.status is not EnrollmentStatus.PENDING_PAYMENT:
            return None
        updated = existing.activate(payment_id, first_lesson_id)
        self._by_id[enrollment_id] = updated
        return updated

    async def save_progress(
        self, enrollment: Enrollment, expected: EnrollmentStatus
    ) -> bool:
        """Persist progress fields, guarded on the stored status still being
        ``expected``."""
        existing = self._by_id.get(enrollment.id)
        if existing is None or existing.status is not expected:
            return False
        self._by_id[enrollment.id] = replace(
            existing,
            status=enrollment.status,
            progress_percent=enrollment.progress_percent,
            current_lesson_id=enrollment.current_lesson_id,
            completed_at=enrollment.completed_at,
        )
        return True
