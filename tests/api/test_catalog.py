from __future__ import annotations

import asyncio
from uuid import uuid4

from fastapi.testclient import TestClient

from coursehub.services.cache import cache_service, course_structure_key
from tests.api.helpers import create_course
from tests.conftest import auth, mint_token


def test_teacher_creates_course_with_structure(
    client: TestClient, teacher_headers: dict[str, str], student_headers: dict[str, str]
) -> None:
    course, lessons = create_course(client, teacher_headers, price=50000, free_lessons=(0,))

    resp = client.get(f"/v1/courses/{course['id']}", headers=student_headers)

    assert resp.status_code == 200
    body = resp.json()
    assert body["course"]["is_paid"] is True
    assert body["course"]["currency"] == "UZS"
    assert body["total_lessons"] == 4
    assert [m["order"] for m in body["modules"]] == [1, 2]
    flat = [les for m in body["modules"] for les in m["lessons"]]
    assert [les["id"] for les in flat] == [les["id"] for les in lessons]
    assert [les["is_free"] for les in flat] == [True, False, False, False]


def test_student_cannot_create_course(
    client: TestClient, student_headers: dict[str, str]
) -> None:
    resp = client.post(
        "/v1/courses", json={"title": "Nope", "price": 0}, headers=student_headers
    )
    assert resp.status_code == 403


def test_negative_price_is_rejected(
    client: TestClient, teacher_headers: dict[str, str]
) -> None:
    resp = client.post(
        "/v1/courses", json={"title": "Bad", "price": -5}, headers=teacher_headers
    )
    assert resp.status_code == 422


def test_blank_title_is_a_domain_validation_error(
    client: TestClient, teacher_headers: dict[str, str]
) -> None:
    resp = client.post(
        "/v1/courses", json={"title": "  ", "price": 0}, headers=teacher_headers
    )
    assert resp.status_code == 422
    assert resp.json()["code"] == "invalid_title"


def test_other_teacher_cannot_edit_course(
    client: TestClient, teacher_headers: dict[str, str]
) -> None:
    course, _ = create_course(client, teacher_headers, modules=0)
    intruder = auth(mint_token("teacher-2", ["teacher"]))

    resp = client.post(
        f"/v1/courses/{course['id']}/modules", json={"title": "x"}, headers=intruder
    )

    assert resp.status_code == 403
    assert resp.json()["code"] == "not_course_owner"


def test_admin_can_edit_any_course(
    client: TestClient, teacher_headers: dict[str, str], admin_headers: dict[str, str]
) -> None:
    course, _ = create_course(client, teacher_headers, modules=0)
    resp = client.post(
        f"/v1/courses/{course['id']}/modules",
        json={"title": "Added by admin"},
        headers=admin_headers,
    )
    assert resp.status_code == 201


def test_unknown_course_is_404(
    client: TestClient, student_headers: dict[str, str]
) -> None:
    resp = client.get(f"/v1/courses/{uuid4()}", headers=student_headers)
    assert resp.status_code == 404
    assert resp.json() == {"detail": "course not found", "code": "not_found"}


def test_reorder_modules(
    client: TestClient, teacher_headers: dict[str, str]
) -> None:
    course, lessons = create_course(client, teacher_headers)
    structure = client.get(f"/v1/courses/{course['id']}", headers=teacher_headers).json()
    first, second = [m["id"] for m in structure["modules"]]

    resp = client.put(
        f"/v1/courses/{course['id']}/modules/order",
        json={"ids": [second, first]},
        headers=teacher_headers,
    )

    assert resp.status_code == 200
    assert [m["id"] for m in resp.json()["modules"]] == [second, first]


def test_reorder_lessons_requires_full_permutation(
    client: TestClient, teacher_headers: dict[str, str]
) -> None:
    _, lessons = create_course(client, teacher_headers, modules=1, lessons_per_module=3)
    module_id = lessons[0]["module_id"]

    resp = client.put(
        f"/v1/modules/{module_id}/lessons/order",
        json={"ids": [lessons[0]["id"]]},
        headers=teacher_headers,
    )
    assert resp.status_code == 422
    assert resp.json()["code"] == "invalid_order"

    resp = client.put(
        f"/v1/modules/{module_id}/lessons/order",
        json={"ids": [les["id"] for les in reversed(lessons)]},
        headers=teacher_headers,
    )
    assert resp.status_code == 200
    ordered = resp.json()["modules"][0]["lessons"]
    assert [les["id"] for les in ordered] == [les["id"] for les in reversed(lessons)]


def test_structure_is_cached_and_invalidated_on_write(
    client: TestClient, teacher_headers: dict[str, str]
) -> None:
    course, _ = create_course(client, teacher_headers, modules=1)
    key = course_structure_key(course["id"])

    client.get(f"/v1/courses/{course['id']}", headers=teacher_headers)
    assert asyncio.run(cache_service.get(key)) is not None

    client.post(
        f"/v1/courses/{course['id']}/modules",
        json={"title": "Another"},
        headers=teacher_headers,
    )
    assert asyncio.run(cache_service.get(key)) is None

    fresh = client.get(f"/v1/courses/{course['id']}", headers=teacher_headers).json()
    assert len(fresh["modules"]) == 2


def test_list_courses_by_teacher(
    client: TestClient, teacher_headers: dict[str, str], student_headers: dict[str, str]
) -> None:
    create_course(client, teacher_headers, modules=1)
    create_course(client, auth(mint_token("teacher-2", ["teacher"])), modules=1)

    all_courses = client.get("/v1/courses", headers=student_headers).json()
    mine = client.get(
        "/v1/courses", params={"teacher_id": "teacher-1"}, headers=student_headers
    ).json()

    assert len(all_courses) == 2
    assert [c["teacher_id"] for c in mine] == ["teacher-1"]


def test_catalog_requires_auth(client: TestClient) -> None:
    assert client.get("/v1/courses").status_code == 401


# ---- publication ----


def test_new_course_is_a_hidden_draft(
    client: TestClient, teacher_headers: dict[str, str], student_headers: dict[str, str]
) -> None:
    draft, _ = create_course(client, teacher_headers, modules=1, publish=False)
    published, _ = create_course(client, teacher_headers, modules=1)

    listed = client.get("/v1/courses", headers=student_headers).json()
    own = client.get(
        "/v1/courses", params={"teacher_id": "teacher-1"}, headers=teacher_headers
    ).json()
    hidden = client.get(f"/v1/courses/{draft['id']}", headers=student_headers)
    preview = client.get(f"/v1/courses/{draft['id']}", headers=teacher_headers)

    assert draft["status"] == "draft"
    assert [c["id"] for c in listed] == [published["id"]]
    assert {c["status"] for c in own} == {"draft", "published"}
    assert hidden.status_code == 404
    assert preview.status_code == 200


def test_draft_course_rejects_enrollment(
    client: TestClient, teacher_headers: dict[str, str], student_headers: dict[str, str]
) -> None:
    course, _ = create_course(client, teacher_headers, publish=False)

    resp = client.post(f"/v1/courses/{course['id']}/enroll", headers=student_headers)

    assert resp.status_code == 422
    assert resp.json()["code"] == "course_not_published"


def test_publish_requires_a_lesson(
    client: TestClient, teacher_headers: dict[str, str]
) -> None:
    course, _ = create_course(client, teacher_headers, modules=0)

    resp = client.post(f"/v1/courses/{course['id']}/publish", headers=teacher_headers)

    assert resp.status_code == 422
    assert resp.json()["code"] == "course_empty"


def test_archive_keeps_existing_enrollments(
    client: TestClient, teacher_headers: dict[str, str], student_headers: dict[str, str]
) -> None:
    course, lessons = create_course(client, teacher_headers)
    client.post(f"/v1/courses/{course['id']}/enroll", headers=student_headers)

    archived = client.post(
        f"/v1/courses/{course['id']}/archive", headers=teacher_headers
    )
    newcomer = client.post(
        f"/v1/courses/{course['id']}/enroll",
        headers=auth(mint_token("student-2", ["student"])),
    )
    access = client.get(f"/v1/lessons/{lessons[1]['id']}/access", headers=student_headers)
    listed = client.get("/v1/courses", headers=student_headers).json()

    assert archived.json()["status"] == "archived"
    assert newcomer.status_code == 422
    assert access.json()["allowed"] is True
    assert listed == []


def test_only_owner_publishes(
    client: TestClient, teacher_headers: dict[str, str]
) -> None:
    course, _ = create_course(client, teacher_headers, publish=False)
    intruder = auth(mint_token("teacher-2", ["teacher"]))

    resp = client.post(f"/v1/courses/{course['id']}/publish", headers=intruder)

    assert resp.status_code == 403
