from __future__ import annotations

import sys
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from coursehub.main import app
from coursehub.models.course import Course, Lesson, LessonType
from coursehub.repos.bundle import clear_in_memory_repos, in_memory_repos
from coursehub.services import token_service
from coursehub.services.cache import cache_service
from coursehub.services.container import Services, build_services
from coursehub.services.task_queue import task_queue

# Ensure repo root is on sys.path so `import coursehub` works under pytest.
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

TEACHER_ID = "teacher-1"
STUDENT_ID = "student-1"


@pytest.fixture(autouse=True)
def reset_repos() -> None:
    """Clear the in-memory catalog, enrollment, payment and completion stores."""
    clear_in_memory_repos()


@pytest.fixture(autouse=True)
def reset_cache() -> None:
    if hasattr(cache_service, "_store"):
        cache_service._store.clear()  # type: ignore[union-attr]


@pytest.fixture(autouse=True)
def reset_task_queue() -> None:
    if hasattr(task_queue, "_queues"):
        task_queue._queues.clear()  # type: ignore[union-attr]


@pytest.fixture
def client() -> TestClient:
    return TestClient(app)


@pytest.fixture
def services() -> Services:
    """Services over the shared in-memory repos (the same ones the app uses)."""
    return build_services(in_memory_repos)


def mint_token(
    username: str = STUDENT_ID,
    roles: list[str] | None = None,
) -> str:
    """Create a valid ES256 JWT for testing."""
    return token_service.create_access_token(sub=username, roles=roles)


def auth(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def student_headers() -> dict[str, str]:
    return auth(mint_token(STUDENT_ID, ["student"]))


@pytest.fixture
def teacher_headers() -> dict[str, str]:
    return auth(mint_token(TEACHER_ID, ["teacher"]))


@pytest.fixture
def admin_headers() -> dict[str, str]:
    return auth(mint_token("admin-1", ["admin"]))


# ---------------------------------------------------------------------------
# Catalog helpers
# ---------------------------------------------------------------------------


async def build_course(
    services: Services,
    *,
    price: int = 0,
    modules: int = 2,
    lessons_per_module: int = 2,
    free_lessons: tuple[int, ...] = (),
    teacher_id: str = TEACHER_ID,
    publish: bool = True,
) -> tuple[Course, list[Lesson]]:
    """Create a course and return it with its lessons in catalog order.

    ``free_lessons`` holds 0-based positions (in catalog order) of
    preview lessons. A course with lessons is published unless
    ``publish`` is False.
    """
    course = await services.catalog.create_course(
        teacher_id=teacher_id, title="Python basics", price=price
    )
    lessons: list[Lesson] = []
    for m in range(modules):
        module = await services.catalog.add_module(course.id, f"Module {m + 1}")
        for n in range(lessons_per_module):
            lessons.append(
                await services.catalog.add_lesson(
                    module.id,
                    title=f"Lesson {m + 1}.{n + 1}",
                    type=LessonType.VIDEO,
                    is_free=len(lessons) in free_lessons,
                    duration_minutes=10,
                )
            )
    if publish and lessons:
        course = await services.catalog.publish_course(course.id)
    return course, lessons
