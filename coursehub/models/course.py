from __future__ import annotations

import datetime
from dataclasses import dataclass, replace
from enum import Enum
from uuid import UUID, uuid4


def _now() -> int:
    return int(datetime.datetime.now(datetime.UTC).timestamp())


class CourseStatus(str, Enum):
    DRAFT = "draft"
    PUBLISHED = "published"
    ARCHIVED = "archived"


# Allowed lifecycle edges; an archived course can be published again
_COURSE_TRANSITIONS: dict[CourseStatus, frozenset[CourseStatus]] = {
    CourseStatus.DRAFT: frozenset({CourseStatus.PUBLISHED, CourseStatus.ARCHIVED}),
    CourseStatus.PUBLISHED: frozenset({CourseStatus.ARCHIVED}),
    CourseStatus.ARCHIVED: frozenset({CourseStatus.PUBLISHED}),
}


class CourseTransitionError(ValueError):
    """A Course was asked to move along an edge its lifecycle lacks."""


class LessonType(str, Enum):
    VIDEO = "video"
    TEXT = "text"
    QUIZ = "quiz"
    ASSIGNMENT = "assignment"
    FILE = "file"


@dataclass(frozen=True, slots=True)
class Course:
    id: UUID
    teacher_id: str
    title: str
    price: int  # minor units; 0 = free
    currency: str
    created_at: int
    status: CourseStatus = CourseStatus.DRAFT

    @property
    def is_paid(self) -> bool:
        return self.price > 0

    @property
    def is_published(self) -> bool:
        """Only published courses take new enrollments and payments."""
        return self.status is CourseStatus.PUBLISHED

    def with_status(self, status: CourseStatus) -> Course:
        if status not in _COURSE_TRANSITIONS[self.status]:
            raise CourseTransitionError(
                f"cannot move course from {self.status.value} to {status.value}"
            )
        return replace(self, status=status)

    @staticmethod
    def new(*, teacher_id: str, title: str, price: int, currency: str) -> Course:
        return Course(
            id=uuid4(),
            teacher_id=teacher_id,
            title=title,
            price=price,
            currency=currency,
            created_at=_now(),
        )


@dataclass(frozen=True, slots=True)
class Module:
    id: UUID
    course_id: UUID
    title: str
    order: int
    created_at: int

    @staticmethod
    def new(*, course_id: UUID, title: str, order: int) -> Module:
        return Module(
            id=uuid4(), course_id=course_id, title=title, order=order, created_at=_now()
        )


@dataclass(frozen=True, slots=True)
class Lesson:
    id: UUID
    module_id: UUID
    title: str
    order: int
    type: LessonType
    is_free: bool  # preview lesson, viewable without an enrollment
    duration_minutes: int
    created_at: int

    @staticmethod
    def new(
        *,
        module_id: UUID,
        title: str,
        order: int,
        type: LessonType,
        is_free: bool = False,
        duration_minutes: int = 0,
    ) -> Lesson:
        return Lesson(
            id=uuid4(),
            module_id=module_id,
            title=title,
            order=order,
            type=type,
            is_free=is_free,
            duration_minutes=duration_minutes,
            created_at=_now(),
        )


def sibling_sort_key(item: Module | Lesson) -> tuple[int, int, str]:
    """Catalog order: ``order`` first; creation time and id only break ties."""
    return (item.order, item.created_at, str(item.id))


@dataclass(frozen=True, slots=True)
class ModuleOutline:
    module: Module
    lessons: tuple[Lesson, ...]


@dataclass(frozen=True, slots=True)
class CourseStructure:
    """A course with its modules and lessons in catalog order."""

    course: Course
    modules: tuple[ModuleOutline, ...]

    def ordered_lessons(self) -> list[Lesson]:
        return [lesson for outline in self.modules for lesson in outline.lessons]

    @property
    def module_ids(self) -> list[UUID]:
        return [outline.module.id for outline in self.modules]

    @property
    def total_lessons(self) -> int:
        return sum(len(outline.lessons) for outline in self.modules)
