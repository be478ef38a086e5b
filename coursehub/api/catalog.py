"""Catalog endpoints: courses, modules, lessons and their ordering.

GET /v1/courses/{course_id} is read-through cached; every write below
deletes the course's cache entry before returning.
"""

from __future__ import annotations

import json
from uuid import UUID

from fastapi import APIRouter, status
from pydantic import BaseModel, Field

from coursehub.api.dependencies import (
    CurrentUser,
    ServicesDep,
    Teacher,
    ensure_course_owner,
)
from coursehub.core.config import SETTINGS
from coursehub.core.errors import NotFoundError
from coursehub.models.course import (
    Course,
    CourseStatus,
    CourseStructure,
    Lesson,
    LessonType,
    Module,
)
from coursehub.models.principal import Principal
from coursehub.services.cache import cache_service, course_structure_key

router = APIRouter(prefix="/v1", tags=["catalog"])


class CourseIn(BaseModel):
    title: str
    price: int = Field(ge=0)
    currency: str | None = None


class CourseOut(BaseModel):
    id: UUID
    teacher_id: str
    title: str
    price: int
    currency: str
    is_paid: bool
    status: CourseStatus
    created_at: int

    @classmethod
    def of(cls, course: Course) -> CourseOut:
        return cls(
            id=course.id,
            teacher_id=course.teacher_id,
            title=course.title,
            price=course.price,
            currency=course.currency,
            is_paid=course.is_paid,
            status=course.status,
            created_at=course.created_at,
        )


class ModuleIn(BaseModel):
    title: str


class ModuleOut(BaseModel):
    id: UUID
    course_id: UUID
    title: str
    order: int

    @classmethod
    def of(cls, module: Module) -> ModuleOut:
        return cls(
            id=module.id,
            course_id=module.course_id,
            title=module.title,
            order=module.order,
        )


class LessonIn(BaseModel):
    title: str
    type: LessonType
    is_free: bool = False
    duration_minutes: int = Field(default=0, ge=0)


class LessonOut(BaseModel):
    id: UUID
    module_id: UUID
    title: str
    order: int
    type: LessonType
    is_free: bool
    duration_minutes: int

    @classmethod
    def of(cls, lesson: Lesson) -> LessonOut:
        return cls(
            id=lesson.id,
            module_id=lesson.module_id,
            title=lesson.title,
            order=lesson.order,
            type=lesson.type,
            is_free=lesson.is_free,
            duration_minutes=lesson.duration_minutes,
        )


class ModuleOutlineOut(ModuleOut):
    lessons: list[LessonOut]


class CourseStructureOut(BaseModel):
    course: CourseOut
    modules: list[ModuleOutlineOut]
    total_lessons: int

    @classmethod
    def of(cls, structure: CourseStructure) -> CourseStructureOut:
        return cls(
            course=CourseOut.of(structure.course),
            modules=[
                ModuleOutlineOut(
                    **ModuleOut.of(outline.module).model_dump(),
                    lessons=[LessonOut.of(les) for les in outline.lessons],
                )
                for outline in structure.modules
            ],
            total_lessons=structure.total_lessons,
        )


class OrderIn(BaseModel):
    ids: list[UUID]


async def _invalidate(course_id: UUID) -> None:
    await cache_service.delete(course_structure_key(course_id))


def _sees_drafts(principal: Principal, teacher_id: str) -> bool:
    return principal.is_admin() or principal.user_id == teacher_id


# ---------------------------------------------------------------------------
# Courses
# ---------------------------------------------------------------------------


@router.post("/courses", response_model=CourseOut, status_code=status.HTTP_201_CREATED)
async def create_course(
    body: CourseIn, principal: Teacher, services: ServicesDep
) -> CourseOut:
    course = await services.catalog.create_course(
        teacher_id=principal.user_id,
        title=body.title,
        price=body.price,
        currency=body.currency,
    )
    return CourseOut.of(course)


@router.get("/courses", response_model=list[CourseOut])
async def list_courses(
    principal: CurrentUser,
    services: ServicesDep,
    teacher_id: str | None = None,
) -> list[CourseOut]:
    """Published courses; owners and admins also see drafts and archives."""
    if teacher_id is not None and _sees_drafts(principal, teacher_id):
        courses = await services.catalog.list_courses(teacher_id)
    elif teacher_id is None and principal.is_admin():
        courses = await services.catalog.list_courses()
    else:
        courses = await services.catalog.list_courses(
            teacher_id, CourseStatus.PUBLISHED
        )
    return [CourseOut.of(c) for c in courses]


@router.get("/courses/{course_id}", response_model=CourseStructureOut)
async def get_course_structure(
    course_id: UUID, principal: CurrentUser, services: ServicesDep
) -> CourseStructureOut:
    """Course with modules and lessons in catalog order (cached).

    Drafts are visible to their owner and admins only.
    """
    key = course_structure_key(course_id)
    cached = await cache_service.get(key)
    if cached is not None:
        out = CourseStructureOut.model_validate(json.loads(cached))
    else:
        structure = await services.catalog.get_course_structure(course_id)
        out = CourseStructureOut.of(structure)
        await cache_service.set(key, out.model_dump_json(), SETTINGS.course_cache_ttl)

    if out.course.status is CourseStatus.DRAFT and not _sees_drafts(
        principal, out.course.teacher_id
    ):
        raise NotFoundError("course not found")
    return out


@router.post("/courses/{course_id}/publish", response_model=CourseOut)
async def publish_course(
    course_id: UUID, principal: Teacher, services: ServicesDep
) -> CourseOut:
    ensure_course_owner(await services.catalog.get_course(course_id), principal)
    course = await services.catalog.publish_course(course_id)
    await _invalidate(course_id)
    return CourseOut.of(course)


@router.post("/courses/{course_id}/archive", response_model=CourseOut)
async def archive_course(
    course_id: UUID, principal: Teacher, services: ServicesDep
) -> CourseOut:
    ensure_course_owner(await services.catalog.get_course(course_id), principal)
    course = await services.catalog.archive_course(course_id)
    await _invalidate(course_id)
    return CourseOut.of(course)


# ---------------------------------------------------------------------------
# Modules and lessons
# ---------------------------------------------------------------------------


@router.post(
    "/courses/{course_id}/modules",
    response_model=ModuleOut,
    status_code=status.HTTP_201_CREATED,
)
async def add_module(
    course_id: UUID, body: ModuleIn, principal: Teacher, services: ServicesDep
) -> ModuleOut:
    ensure_course_owner(await services.catalog.get_course(course_id), principal)
    module = await services.catalog.add_module(course_id, body.title)
    await _invalidate(course_id)
    return ModuleOut.of(module)


@router.put("/courses/{course_id}/modules/order", response_model=CourseStructureOut)
async def reorder_modules(
    course_id: UUID, body: OrderIn, principal: Teacher, services: ServicesDep
) -> CourseStructureOut:
    ensure_course_owner(await services.catalog.get_course(course_id), principal)
    structure = await services.catalog.reorder_modules(course_id, body.ids)
    await _invalidate(course_id)
    return CourseStructureOut.of(structure)


@router.post(
    "/modules/{module_id}/lessons",
    response_model=LessonOut,
    status_code=status.HTTP_201_CREATED,
)
async def add_lesson(
    module_id: UUID, body: LessonIn, principal: Teacher, services: ServicesDep
) -> LessonOut:
    module = await services.catalog.get_module(module_id)
    ensure_course_owner(await services.catalog.get_course(module.course_id), principal)
    lesson = await services.catalog.add_lesson(
        module_id,
        title=body.title,
        type=body.type,
        is_free=body.is_free,
        duration_minutes=body.duration_minutes,
    )
    await _invalidate(module.course_id)
    return LessonOut.of(lesson)


@router.put("/modules/{module_id}/lessons/order", response_model=CourseStructureOut)
async def reorder_lessons(
    module_id: UUID, body: OrderIn, principal: Teacher, services: ServicesDep
) -> CourseStructureOut:
    module = await services.catalog.get_module(module_id)
    ensure_course_owner(await services.catalog.get_course(module.course_id), principal)
    structure = await services.catalog.reorder_lessons(module_id, body.ids)
    await _invalidate(module.course_id)
    return CourseStructureOut.of(structure)
