"""PostgreSQL implementation of EnrollmentRepo."""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import func, select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.ext.asyncio import AsyncSession

from coursehub.db.tables import EnrollmentRow
from coursehub.models.enrollment import Enrollment, EnrollmentStatus
from coursehub.repos.enrollment_repo import DuplicateEnrollmentError


class PgEnrollmentRepo:
    """Satisfies the EnrollmentRepo Protocol using PostgreSQL."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def add(self, enrollment: Enrollment) -> None:
        # ON CONFLICT DO NOTHING keeps the transaction usable when a
        # concurrent request already inserted the (student, course) row.
        stmt = (
            pg_insert(EnrollmentRow)
            .values(
                id=enrollment.id,
                student_id=enrollment.student_id,
                course_id=enrollment.course_id,
                status=enrollment.status.value,
                current_lesson_id=enrollment.current_lesson_id,
                progress_percent=enrollment.progress_percent,
                payment_id=enrollment.payment_id,
                created_at=enrollment.created_at,
                completed_at=enrollment.completed_at,
            )
            .on_conflict_do_nothing(index_elements=["student_id", "course_id"])
            .returning(EnrollmentRow.id)
        )
        inserted = (await self._session.execute(stmt)).scalar_one_or_none()
        if inserted is None:
            raise DuplicateEnrollmentError(
                f"{enrollment.student_id}:{enrollment.course_id}"
            )

    async def get(self, enrollment_id: UUID) -> Enrollment | None:
        stmt = select(EnrollmentRow).where(EnrollmentRow.id == enrollment_id)
        return await self._fetch(stmt)

    async def get_for_update(self, enrollment_id: UUID) -> Enrollment | None:
        stmt = (
            select(EnrollmentRow)
            .where(EnrollmentRow.id == enrollment_id)
            .with_for_update()
        )
        return await self._fetch(stmt)

    async def get_by_student_course(
        self, student_id: str, course_id: UUID
    ) -> Enrollment | None:
        stmt = select(EnrollmentRow).where(
            EnrollmentRow.student_id == student_id,
            EnrollmentRow.course_id == course_id,
        )
        return await self._fetch(stmt)

    async def list_by_student(self, student_id: str) -> list[Enrollment]:
        stmt = (
            select(EnrollmentRow)
            .where(EnrollmentRow.student_id == student_id)
            .order_by(EnrollmentRow.created_at, EnrollmentRow.id)
        )
        rows = (await self._session.execute(stmt)).scalars().all()
        return [_row_to_enrollment(r) for r in rows]

    async def list_by_course(self, course_id: UUID) -> list[Enrollment]:
        stmt = (
            select(EnrollmentRow)
            .where(EnrollmentRow.course_id == course_id)
            .order_by(EnrollmentRow.created_at, EnrollmentRow.id)
        )
        rows = (await self._session.execute(stmt)).scalars().all()
        return [_row_to_enrollment(r) for r in rows]

    async def activate(
        self, enrollment_id: UUID, payment_id: UUID, first_lesson_id: UUID | None
    ) -> Enrollment | None:
        """Atomically move pending_payment -> active. Returns the updated
        record, or None if the row is not (or no longer) pending_payment."""
        stmt = (
            update(EnrollmentRow)
            .where(EnrollmentRow.id == enrollment_id)
            .where(EnrollmentRow.status == EnrollmentStatus.PENDING_PAYMENT.value)
            .values(
                status=EnrollmentStatus.ACTIVE.value,
                payment_id=payment_id,
                current_lesson_id=func.coalesce(
                    EnrollmentRow.current_lesson_id, first_lesson_id
                ),
            )
            .execution_options(synchronize_session=False)
        )
        result = await self._session.execute(stmt)
        if result.rowcount == 0:
            return None  # concurrent update won the race
        return await self.get(enrollment_id)

    async def save_progress(
        self, enrollment: Enrollment, expected: EnrollmentStatus
    ) -> bool:
        stmt = (
            update(EnrollmentRow)
            .where(EnrollmentRow.id == enrollment.id)
            .where(EnrollmentRow.status == expected.value)
            .values(
                status=enrollment.status.value,
                progress_percent=enrollment.progress_percent,
                current_lesson_id=enrollment.current_lesson_id,
                completed_at=enrollment.completed_at,
            )
            .execution_options(synchronize_session=False)
        )
        result = await self._session.execute(stmt)
        return result.rowcount > 0

    async def _fetch(self, stmt) -> Enrollment | None:
        # populate_existing: rows may have been changed by a Core UPDATE
        # earlier in this transaction.
        stmt = stmt.execution_options(populate_existing=True)
        row = (await self._session.execute(stmt)).scalar_one_or_none()
        return None if row is None else _row_to_enrollment(row)


def _row_to_enrollment(row: EnrollmentRow) -> Enrollment:
    return Enrollment(
        id=row.id,
        student_id=row.student_id,
        course_id=row.course_id,
        status=EnrollmentStatus(row.status),
        created_at=row.created_at,
        current_lesson_id=row.current_lesson_id,
        progress_percent=row.progress_percent,
        payment_id=row.payment_id,
        completed_at=row.completed_at,
    )
