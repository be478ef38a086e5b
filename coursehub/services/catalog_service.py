"""Course catalog: courses, modules and lessons, and their order.

Catalog order is the order lessons are consumed in: modules by their
``order``, then lessons within each module by theirs. Creation time and
id only break ties. Appends take ``max(order) + 1`` under a lock on the
parent row so two concurrent appends never pick the same position;
reorders rewrite every sibling to a dense 1..n sequence.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from uuid import UUID

from coursehub.core.config import SETTINGS
from coursehub.core.errors import ConflictError, NotFoundError, ValidationError
from coursehub.models.course import (
    Course,
    CourseStatus,
    CourseTransitionError,
    CourseStructure,
    Lesson,
    LessonType,
    Module,
    ModuleOutline,
    sibling_sort_key,
)
from coursehub.repos.catalog_repo import CatalogRepo

logger = logging.getLogger(__name__)

MAX_TITLE_LENGTH = 200


def _clean_title(title: str) -> str:
    title = title.strip()
    if not title:
        raise ValidationError("title must be non-empty", code="invalid_title")
    if len(title) > MAX_TITLE_LENGTH:
        raise ValidationError(
            f"title must be at most {MAX_TITLE_LENGTH} characters",
            code="invalid_title",
        )
    return title


def _check_permutation(current: list[UUID], requested: list[UUID], what: str) -> None:
    if len(requested) != len(set(requested)):
        raise ValidationError(f"{what} ids contain duplicates", code="invalid_order")
    if set(requested) != set(current):
        raise ValidationError(
            f"{what} ids must list every {what} exactly once", code="invalid_order"
        )


def require_published(course: Course) -> None:
    """Refuse new enrollments and payments for draft or archived courses."""
    if not course.is_published:
        raise ValidationError(
            f"course is {course.status.value}, not open for enrollment",
            code="course_not_published",
        )


class CatalogService:
    def __init__(self, repo: CatalogRepo) -> None:
        self._repo = repo

    # --- writes ---

    async def create_course(
        self,
        *,
        teacher_id: str,
        title: str,
        price: int,
        currency: str | None = None,
    ) -> Course:
        title = _clean_title(title)
        if price < 0:
            logger.warning("Rejected negative price=%d teacher=%s", price, teacher_id)
            raise ValidationError("price must be >= 0", code="invalid_price")
        currency = (currency or SETTINGS.default_currency).strip().upper()
        if len(currency) != 3 or not currency.isalpha():
            raise ValidationError(
                "currency must be a 3-letter code", code="invalid_currency"
            )

        course = Course.new(
            teacher_id=teacher_id, title=title, price=price, currency=currency
        )
        await self._repo.add_course(course)
        logger.info(
            "Created course teacher=%s price=%d %s",
            teacher_id,
            price,
            currency,
            extra={"course_id": str(course.id)},
        )
        return course

    async def publish_course(self, course_id: UUID) -> Course:
        """Open the course to new students. It must have at least one lesson."""
        course = await self._repo.lock_course(course_id)
        if course is None:
            raise NotFoundError("course not found")
        if course.is_published:
            return course
        if not await self._repo.list_course_lessons(course_id):
            raise ValidationError(
                "a course needs at least one lesson to be published",
                code="course_empty",
            )
        return await self._set_status(course, CourseStatus.PUBLISHED)

    async def archive_course(self, course_id: UUID) -> Course:
        """Withdraw the course from the catalog.

        Existing enrollments keep their access; nobody new can enroll or pay.
        """
        course = await self._repo.lock_course(course_id)
        if course is None:
            raise NotFoundError("course not found")
        if course.status is CourseStatus.ARCHIVED:
            return course
        return await self._set_status(course, CourseStatus.ARCHIVED)

    async def _set_status(self, course: Course, status: CourseStatus) -> Course:
        try:
            updated = course.with_status(status)
        except CourseTransitionError as exc:
            raise ConflictError(str(exc), code="invalid_course_status") from None
        await self._repo.set_course_status(course.id, status)
        logger.info(
            "Course %s -> %s",
            course.status.value,
            status.value,
            extra={"course_id": str(course.id)},
        )
        return updated

    async def add_module(self, course_id: UUID, title: str) -> Module:
        title = _clean_title(title)
        course = await self._repo.lock_course(course_id)
        if course is None:
            raise NotFoundError("course not found")
        siblings = await self._repo.list_modules(course_id)
        order = max((m.order for m in siblings), default=0) + 1
        module = Module.new(course_id=course_id, title=title, order=order)
        await self._repo.add_module(module)
        logger.info(
            "Added module order=%d", order, extra={"course_id": str(course_id)}
        )
        return module

    async def add_lesson(
        self,
        module_id: UUID,
        *,
        title: str,
        type: LessonType | str,
        is_free: bool = False,
        duration_minutes: int = 0,
    ) -> Lesson:
        title = _clean_title(title)
        try:
            type = LessonType(type)
        except ValueError:
            raise ValidationError(
                f"unknown lesson type {type!r}", code="invalid_lesson_type"
            ) from None
        if duration_minutes < 0:
            raise ValidationError(
                "duration_minutes must be >= 0", code="invalid_duration"
            )
        module = await self._repo.lock_module(module_id)
        if module is None:
            raise NotFoundError("module not found")
        siblings = await self._repo.list_lessons(module_id)
        order = max((les.order for les in siblings), default=0) + 1
        lesson = Lesson.new(
            module_id=module_id,
            title=title,
            order=order,
            type=type,
            is_free=is_free,
            duration_minutes=duration_minutes,
        )
        await self._repo.add_lesson(lesson)
        logger.info(
            "Added lesson order=%d free=%s module=%s",
            order,
            is_free,
            module_id,
            extra={"course_id": str(module.course_id)},
        )
        return lesson

    async def reorder_modules(
        self, course_id: UUID, module_ids: list[UUID]
    ) -> CourseStructure:
        if await self._repo.lock_course(course_id) is None:
            raise NotFoundError("course not found")
        current = [m.id for m in await self._repo.list_modules(course_id)]
        _check_permutation(current, module_ids, "module")
        await self._repo.set_module_orders(
            course_id, {mid: i for i, mid in enumerate(module_ids, start=1)}
        )
        logger.info("Reordered modules", extra={"course_id": str(course_id)})
        return await self.get_course_structure(course_id)

    async def reorder_lessons(
        self, module_id: UUID, lesson_ids: list[UUID]
    ) -> CourseStructure:
        module = await self._repo.lock_module(module_id)
        if module is None:
            raise NotFoundError("module not found")
        current = [les.id for les in await self._repo.list_lessons(module_id)]
        _check_permutation(current, lesson_ids, "lesson")
        await self._repo.set_lesson_orders(
            module_id, {lid: i for i, lid in enumerate(lesson_ids, start=1)}
        )
        logger.info(
            "Reordered lessons module=%s",
            module_id,
            extra={"course_id": str(module.course_id)},
        )
        return await self.get_course_structure(module.course_id)

    # --- reads ---

    async def get_course(self, course_id: UUID) -> Course:
        course = await self._repo.get_course(course_id)
        if course is None:
            raise NotFoundError("course not found")
        return course

    async def get_module(self, module_id: UUID) -> Module:
        module = await self._repo.get_module(module_id)
        if module is None:
            raise NotFoundError("module not found")
        return module

    async def get_lesson(self, lesson_id: UUID) -> Lesson:
        lesson = await self._repo.get_lesson(lesson_id)
        if lesson is None:
            raise NotFoundError("lesson not found")
        return lesson

    async def course_id_for_lesson(self, lesson: Lesson) -> UUID:
        return (await self.get_module(lesson.module_id)).course_id

    async def list_courses(
        self, teacher_id: str | None = None, status: CourseStatus | None = None
    ) -> list[Course]:
        return await self._repo.list_courses(teacher_id, status)

    async def get_course_structure(self, course_id: UUID) -> CourseStructure:
        course = await self.get_course(course_id)
        modules = await self._repo.list_modules(course_id)
        by_module: dict[UUID, list[Lesson]] = defaultdict(list)
        for lesson in await self._repo.list_course_lessons(course_id):
            by_module[lesson.module_id].append(lesson)
        outlines = tuple(
            ModuleOutline(
                module=m,
                lessons=tuple(sorted(by_module[m.id], key=sibling_sort_key)),
            )
            for m in sorted(modules, key=sibling_sort_key)
        )
        return CourseStructure(course=course, modules=outlines)

    async def ordered_lessons(self, course_id: UUID) -> list[Lesson]:
        """All lessons of the course in catalog order."""
        return (await self.get_course_structure(course_id)).ordered_lessons()

    async def first_lesson_id(self, course_id: UUID) -> UUID | None:
        lessons = await self.ordered_lessons(course_id)
        return lessons[0].id if lessons else None
