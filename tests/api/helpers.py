"""HTTP-level fixtures shared by the API tests."""

from __future__ import annotations

from fastapi.testclient import TestClient


def create_course(
    client: TestClient,
    headers: dict[str, str],
    *,
    price: int = 0,
    modules: int = 2,
    lessons_per_module: int = 2,
    free_lessons: tuple[int, ...] = (),
    publish: bool = True,
) -> tuple[dict, list[dict]]:
    """Create a course through the API; returns (course, lessons in catalog order).

    Courses with at least one lesson are published unless ``publish`` is False.
    """
    resp = client.post(
        "/v1/courses", json={"title": "Data analysis", "price": price}, headers=headers
    )
    assert resp.status_code == 201, resp.text
    course = resp.json()
    lessons: list[dict] = []
    for m in range(modules):
        resp = client.post(
            f"/v1/courses/{course['id']}/modules",
            json={"title": f"Module {m + 1}"},
            headers=headers,
        )
        assert resp.status_code == 201, resp.text
        module_id = resp.json()["id"]
        for n in range(lessons_per_module):
            resp = client.post(
                f"/v1/modules/{module_id}/lessons",
                json={
                    "title": f"Lesson {m + 1}.{n + 1}",
                    "type": "video",
                    "is_free": len(lessons) in free_lessons,
                    "duration_minutes": 12,
                },
                headers=headers,
            )
            assert resp.status_code == 201, resp.text
            lessons.append(resp.json())
    if publish and lessons:
        resp = client.post(f"/v1/courses/{course['id']}/publish", headers=headers)
        assert resp.status_code == 200, resp.text
        course = resp.json()
    return course, lessons
