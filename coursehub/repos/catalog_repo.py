from __future__ import annotations

from dataclasses import replace
from typing import Protocol
from uuid import UUID

from coursehub.models.course import (
    Course,
    CourseStatus,
    Lesson,
    Module,
    sibling_sort_key,
)


class CatalogRepo(Protocol):
    async def add_course(self, course: Course) -> None: ...
    async def get_course(self, course_id: UUID) -> Course | None: ...
    async def lock_course(self, course_id: UUID) -> Course | None: ...
    async def list_courses(
        self, teacher_id: str | None = None, status: CourseStatus | None = None
    ) -> list[Course]: ...
    async def set_course_status(
        self, course_id: UUID, status: CourseStatus
    ) -> None: ...
    async def add_module(self, module: Module) -> None: ...
    async def get_module(self, module_id: UUID) -> Module | None: ...
    async def lock_module(self, module_id: UUID) -> Module | None: ...
    async def list_modules(self, course_id: UUID) -> list[Module]: ...
    async def set_module_orders(
        self, course_id: UUID, orders: dict[UUID, int]
    ) -> None: ...
    async def add_lesson(self, lesson: Lesson) -> None: ...
    async def get_lesson(self, lesson_id: UUID) -> Lesson | None: ...
    async def list_lessons(self, module_id: UUID) -> list[Lesson]: ...
    async def list_course_lessons(self, course_id: UUID) -> list[Lesson]: ...
    async def set_lesson_orders(
        self, module_id: UUID, orders: dict[UUID, int]
    ) -> None: ...


class InMemoryCatalogRepo:
    def __init__(self) -> None:
        self._courses: dict[UUID, Course] = {}
        self._modules: dict[UUID, Module] = {}
        self._lessons: dict[UUID, Lesson] = {}

    def clear(self) -> None:
        self._courses.clear()
        self._modules.clear()
        self._lessons.clear()

    async def add_course(self, course: Course) -> None:
        if course.id in self._courses:
            raise ValueError("course already exists")
        self._courses[course.id] = course

    async def get_course(self, course_id: UUID) -> Course | None:
        return self._courses.get(course_id)

    async def lock_course(self, course_id: UUID) -> Course | None:
        # A single event loop never interleaves inside a non-suspending call
        return self._courses.get(course_id)

    async def list_courses(
        self, teacher_id: str | None = None, status: CourseStatus | None = None
    ) -> list[Course]:
        courses = [
            c
            for c in self._courses.values()
            if (teacher_id is None or c.teacher_id == teacher_id)
            and (status is None or c.status is status)
        ]
        return sorted(courses, key=lambda c: (c.created_at, str(c.id)))

    async def set_course_status(self, course_id: UUID, status: CourseStatus) -> None:
        self._courses[course_id] = replace(self._courses[course_id], status=status)

    async def add_module(self, module: Module) -> None:
        self._modules[module.id] = module

    async def get_module(self, module_id: UUID) -> Module | None:
        return self._modules.get(module_id)

    async def lock_module(self, module_id: UUID) -> Module | None:
        return self._modules.get(module_id)

    async def list_modules(self, course_id: UUID) -> list[Module]:
        modules = [m for m in self._modules.values() if m.course_id == course_id]
        return sorted(modules, key=sibling_sort_key)

    async def set_module_orders(self, course_id: UUID, orders: dict[UUID, int]) -> None:
        for module_id, order in orders.items():
            existing = self._modules[module_id]
            if existing.course_id != course_id:
                raise KeyError("module does not belong to course")
            self._modules[module_id] = replace(existing, order=order)

    async def add_lesson(self, lesson: Lesson) -> None:
        self._lessons[lesson.id] = lesson

    async def get_lesson(self, lesson_id: UUID) -> Lesson | None:
        return self._lessons.get(lesson_id)

    async def list_lessons(self, module_id: UUID) -> list[Lesson]:
        lessons = [les for les in self._lessons.values() if les.module_id == module_id]
        return sorted(lessons, key=sibling_sort_key)

    async def list_course_lessons(self, course_id: UUID) -> list[Lesson]:
        module_ids = {m.id for m in self._modules.values() if m.course_id == course_id}
        return [les for les in self._lessons.values() if les.module_id in module_ids]

    async def set_lesson_orders(self, module_id: UUID, orders: dict[UUID, int]) -> None:
        for lesson_id, order in orders.items():
            existing = self._lessons[lesson_id]
            if existing.module_id != module_id:
                raise KeyError("lesson does not belong to module")
            self._lessons[lesson_id] = replace(existing, order=order)
