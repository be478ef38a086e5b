from __future__ import annotations

from uuid import uuid4

from fastapi.testclient import TestClient

from tests.api.helpers import create_course
from tests.conftest import auth, mint_token


def test_enroll_in_free_course_is_active_and_idempotent(
    client: TestClient, teacher_headers: dict[str, str], student_headers: dict[str, str]
) -> None:
    course, lessons = create_course(client, teacher_headers)

    first = client.post(f"/v1/courses/{course['id']}/enroll", headers=student_headers)
    second = client.post(f"/v1/courses/{course['id']}/enroll", headers=student_headers)

    assert first.status_code == 200
    assert first.json()["status"] == "active"
    assert first.json()["current_lesson_id"] == lessons[0]["id"]
    assert second.json()["id"] == first.json()["id"]


def test_enroll_in_paid_course_is_pending_payment(
    client: TestClient, teacher_headers: dict[str, str], student_headers: dict[str, str]
) -> None:
    course, _ = create_course(client, teacher_headers, price=50000)

    resp = client.post(f"/v1/courses/{course['id']}/enroll", headers=student_headers)

    assert resp.json()["status"] == "pending_payment"
    assert resp.json()["payment_id"] is None


def test_get_enrollment_when_not_enrolled(
    client: TestClient, teacher_headers: dict[str, str], student_headers: dict[str, str]
) -> None:
    course, _ = create_course(client, teacher_headers)

    resp = client.get(f"/v1/courses/{course['id']}/enrollment", headers=student_headers)

    assert resp.status_code == 404
    assert resp.json()["code"] == "not_enrolled"


def test_my_enrollments(
    client: TestClient, teacher_headers: dict[str, str], student_headers: dict[str, str]
) -> None:
    free, _ = create_course(client, teacher_headers)
    paid, _ = create_course(client, teacher_headers, price=1000)
    client.post(f"/v1/courses/{free['id']}/enroll", headers=student_headers)
    client.post(f"/v1/courses/{paid['id']}/enroll", headers=student_headers)

    resp = client.get("/v1/me/enrollments", headers=student_headers)

    assert sorted(e["status"] for e in resp.json()) == ["active", "pending_payment"]


def test_course_enrollments_visible_to_owner_only(
    client: TestClient, teacher_headers: dict[str, str], student_headers: dict[str, str]
) -> None:
    course, _ = create_course(client, teacher_headers)
    client.post(f"/v1/courses/{course['id']}/enroll", headers=student_headers)

    url = f"/v1/courses/{course['id']}/enrollments"
    owner = client.get(url, headers=teacher_headers)
    other = client.get(url, headers=auth(mint_token("teacher-2", ["teacher"])))

    assert owner.status_code == 200
    assert [e["student_id"] for e in owner.json()] == ["student-1"]
    assert other.status_code == 403


# ---- lesson access ----


def test_free_lesson_is_open_without_enrollment(
    client: TestClient, teacher_headers: dict[str, str], student_headers: dict[str, str]
) -> None:
    _, lessons = create_course(client, teacher_headers, price=50000, free_lessons=(0,))

    url = f"/v1/lessons/{lessons[0]['id']}"
    access = client.get(f"{url}/access", headers=student_headers)
    content = client.get(url, headers=student_headers)

    assert access.json() == {
        "lesson_id": lessons[0]["id"],
        "allowed": True,
        "reason": None,
    }
    assert content.status_code == 200


def test_locked_lesson_reports_reason(
    client: TestClient, teacher_headers: dict[str, str], student_headers: dict[str, str]
) -> None:
    course, lessons = create_course(client, teacher_headers, price=50000)
    lesson_id = lessons[1]["id"]

    before = client.get(f"/v1/lessons/{lesson_id}/access", headers=student_headers)
    assert before.json()["reason"] == "not_enrolled"

    client.post(f"/v1/courses/{course['id']}/enroll", headers=student_headers)
    after = client.get(f"/v1/lessons/{lesson_id}/access", headers=student_headers)
    content = client.get(f"/v1/lessons/{lesson_id}", headers=student_headers)

    assert after.json()["allowed"] is False
    assert after.json()["reason"] == "payment_pending"
    assert content.status_code == 403
    assert content.json()["code"] == "payment_pending"


def test_unknown_lesson_is_404(
    client: TestClient, student_headers: dict[str, str]
) -> None:
    resp = client.get(f"/v1/lessons/{uuid4()}/access", headers=student_headers)
    assert resp.status_code == 404


# ---- progress ----


def test_complete_lessons_through_api(
    client: TestClient, teacher_headers: dict[str, str], student_headers: dict[str, str]
) -> None:
    course, lessons = create_course(
        client, teacher_headers, modules=1, lessons_per_module=2
    )
    enrollment = client.post(
        f"/v1/courses/{course['id']}/enroll", headers=student_headers
    ).json()
    base = f"/v1/enrollments/{enrollment['id']}"

    first = client.post(
        f"{base}/lessons/{lessons[0]['id']}/complete", headers=student_headers
    )
    assert first.status_code == 200
    assert first.json()["percentage"] == 50
    assert first.json()["current_lesson_id"] == lessons[1]["id"]

    last = client.post(
        f"{base}/lessons/{lessons[1]['id']}/complete", headers=student_headers
    )
    assert last.json()["percentage"] == 100
    assert last.json()["status"] == "completed"
    assert last.json()["completed_at"] is not None

    progress = client.get(f"{base}/progress", headers=student_headers).json()
    assert progress["completed_lesson_ids"] == [les["id"] for les in lessons]


def test_progress_is_private_to_enrollment_owner(
    client: TestClient, teacher_headers: dict[str, str], student_headers: dict[str, str]
) -> None:
    course, lessons = create_course(client, teacher_headers)
    enrollment = client.post(
        f"/v1/courses/{course['id']}/enroll", headers=student_headers
    ).json()
    stranger = auth(mint_token("student-2", ["student"]))
    base = f"/v1/enrollments/{enrollment['id']}"

    assert client.get(f"{base}/progress", headers=stranger).status_code == 403
    resp = client.post(f"{base}/lessons/{lessons[0]['id']}/complete", headers=stranger)
    assert resp.status_code == 403
    assert resp.json()["code"] == "not_enrollment_owner"


def test_completing_locked_lesson_is_forbidden(
    client: TestClient, teacher_headers: dict[str, str], student_headers: dict[str, str]
) -> None:
    course, lessons = create_course(client, teacher_headers, price=50000)
    enrollment = client.post(
        f"/v1/courses/{course['id']}/enroll", headers=student_headers
    ).json()

    resp = client.post(
        f"/v1/enrollments/{enrollment['id']}/lessons/{lessons[0]['id']}/complete",
        headers=student_headers,
    )

    assert resp.status_code == 403
    assert resp.json()["code"] == "payment_pending"
