"""PostgreSQL implementation of CatalogRepo."""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from coursehub.db.tables import CourseRow, LessonRow, ModuleRow
from coursehub.models.course import Course, CourseStatus, Lesson, LessonType, Module


class PgCatalogRepo:
    """Satisfies the CatalogRepo Protocol using PostgreSQL via SQLAlchemy."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    # --- courses ---

    async def add_course(self, course: Course) -> None:
        self._session.add(
            CourseRow(
                id=course.id,
                teacher_id=course.teacher_id,
                title=course.title,
                price=course.price,
                currency=course.currency,
                created_at=course.created_at,
                status=course.status.value,
            )
        )
        await self._session.flush()

    async def get_course(self, course_id: UUID) -> Course | None:
        row = await self._session.get(CourseRow, course_id, populate_existing=True)
        return None if row is None else _row_to_course(row)

    async def lock_course(self, course_id: UUID) -> Course | None:
        stmt = select(CourseRow).where(CourseRow.id == course_id).with_for_update()
        row = (await self._session.execute(stmt)).scalar_one_or_none()
        return None if row is None else _row_to_course(row)

    async def list_courses(
        self, teacher_id: str | None = None, status: CourseStatus | None = None
    ) -> list[Course]:
        stmt = select(CourseRow).order_by(CourseRow.created_at, CourseRow.id)
        if teacher_id is not None:
            stmt = stmt.where(CourseRow.teacher_id == teacher_id)
        if status is not None:
            stmt = stmt.where(CourseRow.status == status.value)
        rows = (await self._session.execute(stmt)).scalars().all()
        return [_row_to_course(r) for r in rows]

    async def set_course_status(self, course_id: UUID, status: CourseStatus) -> None:
        stmt = (
            update(CourseRow)
            .where(CourseRow.id == course_id)
            .values(status=status.value)
            .execution_options(synchronize_session=False)
        )
        await self._session.execute(stmt)

    # --- modules ---

    async def add_module(self, module: Module) -> None:
        self._session.add(
            ModuleRow(
                id=module.id,
                course_id=module.course_id,
                title=module.title,
                position=module.order,
                created_at=module.created_at,
            )
        )
        await self._session.flush()

    async def get_module(self, module_id: UUID) -> Module | None:
        row = await self._session.get(ModuleRow, module_id)
        return None if row is None else _row_to_module(row)

    async def lock_module(self, module_id: UUID) -> Module | None:
        stmt = select(ModuleRow).where(ModuleRow.id == module_id).with_for_update()
        row = (await self._session.execute(stmt)).scalar_one_or_none()
        return None if row is None else _row_to_module(row)

    async def list_modules(self, course_id: UUID) -> list[Module]:
        stmt = (
            select(ModuleRow)
            .where(ModuleRow.course_id == course_id)
            .order_by(ModuleRow.position, ModuleRow.created_at, ModuleRow.id)
            .execution_options(populate_existing=True)
        )
        rows = (await self._session.execute(stmt)).scalars().all()
        return [_row_to_module(r) for r in rows]

    async def set_module_orders(self, course_id: UUID, orders: dict[UUID, int]) -> None:
        # uq_course_modules_position is deferred, so intermediate duplicates
        # are fine until commit.
        for module_id, order in orders.items():
            stmt = (
                update(ModuleRow)
                .where(ModuleRow.id == module_id, ModuleRow.course_id == course_id)
                .values(position=order)
                .execution_options(synchronize_session=False)
            )
            await self._session.execute(stmt)

    # --- lessons ---

    async def add_lesson(self, lesson: Lesson) -> None:
        self._session.add(
            LessonRow(
                id=lesson.id,
                module_id=lesson.module_id,
                title=lesson.title,
                position=lesson.order,
                type=lesson.type.value,
                is_free=lesson.is_free,
                duration_minutes=lesson.duration_minutes,
                created_at=lesson.created_at,
            )
        )
        await self._session.flush()

    async def get_lesson(self, lesson_id: UUID) -> Lesson | None:
        row = await self._session.get(LessonRow, lesson_id)
        return None if row is None else _row_to_lesson(row)

    async def list_lessons(self, module_id: UUID) -> list[Lesson]:
        stmt = (
            select(LessonRow)
            .where(LessonRow.module_id == module_id)
            .order_by(LessonRow.position, LessonRow.created_at, LessonRow.id)
            .execution_options(populate_existing=True)
        )
        rows = (await self._session.execute(stmt)).scalars().all()
        return [_row_to_lesson(r) for r in rows]

    async def list_course_lessons(self, course_id: UUID) -> list[Lesson]:
        stmt = (
            select(LessonRow)
            .join(ModuleRow, LessonRow.module_id == ModuleRow.id)
            .where(ModuleRow.course_id == course_id)
            .execution_options(populate_existing=True)
        )
        rows = (await self._session.execute(stmt)).scalars().all()
        return [_row_to_lesson(r) for r in rows]

    async def set_lesson_orders(self, module_id: UUID, orders: dict[UUID, int]) -> None:
        for lesson_id, order in orders.items():
            stmt = (
                update(LessonRow)
                .where(LessonRow.id == lesson_id, LessonRow.module_id == module_id)
                .values(position=order)
                .execution_options(synchronize_session=False)
            )
            await self._session.execute(stmt)


def _row_to_course(row: CourseRow) -> Course:
    return Course(
        id=row.id,
        teacher_id=row.teacher_id,
        title=row.title,
        price=row.price,
        currency=row.currency,
        created_at=row.created_at,
        status=CourseStatus(row.status),
    )


def _row_to_module(row: ModuleRow) -> Module:
    return Module(
        id=row.id,
        course_id=row.course_id,
        title=row.title,
        order=row.position,
        created_at=row.created_at,
    )


def _row_to_lesson(row: LessonRow) -> Lesson:
    return Lesson(
        id=row.id,
        module_id=row.module_id,
        title=row.title,
        order=row.position,
        type=LessonType(row.type),
        is_free=row.is_free,
        duration_minutes=row.duration_minutes,
        created_at=row.created_at,
    )
