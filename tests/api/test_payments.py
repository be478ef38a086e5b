from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from tests.api.helpers import create_course
from tests.conftest import auth, mint_token

PRICE = 50000


def _submit(client: TestClient, headers: dict[str, str], course_id: str, **overrides):
    body = {"course_id": course_id, "amount": PRICE, "receipt_ref": "TX-1001"}
    body.update(overrides)
    return client.post("/v1/payments", json=body, headers=headers)


@pytest.fixture
def paid_course(
    client: TestClient, teacher_headers: dict[str, str]
) -> tuple[dict, list[dict]]:
    return create_course(client, teacher_headers, price=PRICE)


def test_submit_payment(
    client: TestClient, paid_course, student_headers: dict[str, str]
) -> None:
    course, _ = paid_course

    resp = _submit(client, student_headers, course["id"], notes="paid via bank")

    assert resp.status_code == 201
    body = resp.json()
    assert body["status"] == "pending"
    assert body["student_id"] == "student-1"
    assert body["notes"] == "paid via bank"
    assert body["reviewer_id"] is None

    enrollment = client.get(
        f"/v1/courses/{course['id']}/enrollment", headers=student_headers
    ).json()
    assert enrollment["status"] == "pending_payment"
    assert enrollment["payment_id"] is None


def test_submit_wrong_amount(
    client: TestClient, paid_course, student_headers: dict[str, str]
) -> None:
    course, _ = paid_course
    resp = _submit(client, student_headers, course["id"], amount=PRICE - 1)
    assert resp.status_code == 422
    assert resp.json()["code"] == "amount_mismatch"


def test_submit_twice_while_pending(
    client: TestClient, paid_course, student_headers: dict[str, str]
) -> None:
    course, _ = paid_course
    _submit(client, student_headers, course["id"])

    resp = _submit(client, student_headers, course["id"], receipt_ref="TX-1002")

    assert resp.status_code == 409
    assert resp.json()["code"] == "payment_pending"


def test_approve_unlocks_course(
    client: TestClient,
    paid_course,
    student_headers: dict[str, str],
    teacher_headers: dict[str, str],
) -> None:
    course, lessons = paid_course
    payment = _submit(client, student_headers, course["id"]).json()

    resp = client.post(f"/v1/payments/{payment['id']}/approve", headers=teacher_headers)

    assert resp.status_code == 200
    assert resp.json()["status"] == "approved"
    assert resp.json()["reviewer_id"] == "teacher-1"
    enrollment = client.get(
        f"/v1/courses/{course['id']}/enrollment", headers=student_headers
    ).json()
    assert enrollment["status"] == "active"
    assert enrollment["current_lesson_id"] == lessons[0]["id"]
    last_lesson = lessons[-1]["id"]
    access = client.get(f"/v1/lessons/{last_lesson}/access", headers=student_headers)
    assert access.json()["allowed"] is True


def test_previewed_course_is_completed_on_approval(
    client: TestClient,
    teacher_headers: dict[str, str],
    student_headers: dict[str, str],
) -> None:
    course, lessons = create_course(
        client,
        teacher_headers,
        price=PRICE,
        modules=1,
        lessons_per_module=2,
        free_lessons=(0, 1),
    )
    enrollment = client.post(
        f"/v1/courses/{course['id']}/enroll", headers=student_headers
    ).json()
    base = f"/v1/enrollments/{enrollment['id']}"
    for lesson in lessons:
        client.post(f"{base}/lessons/{lesson['id']}/complete", headers=student_headers)
    payment = _submit(client, student_headers, course["id"]).json()

    client.post(f"/v1/payments/{payment['id']}/approve", headers=teacher_headers)

    progress = client.get(f"{base}/progress", headers=student_headers).json()
    assert progress["status"] == "completed"
    assert progress["percentage"] == 100


def test_second_review_conflicts(
    client: TestClient,
    paid_course,
    student_headers: dict[str, str],
    teacher_headers: dict[str, str],
) -> None:
    course, _ = paid_course
    payment = _submit(client, student_headers, course["id"]).json()
    client.post(f"/v1/payments/{payment['id']}/approve", headers=teacher_headers)

    resp = client.post(
        f"/v1/payments/{payment['id']}/reject",
        json={"reason": "changed my mind"},
        headers=teacher_headers,
    )

    assert resp.status_code == 409
    assert resp.json()["code"] == "already_reviewed"


def test_reject_then_resubmit(
    client: TestClient,
    paid_course,
    student_headers: dict[str, str],
    teacher_headers: dict[str, str],
) -> None:
    course, _ = paid_course
    payment = _submit(client, student_headers, course["id"]).json()

    rejected = client.post(
        f"/v1/payments/{payment['id']}/reject",
        json={"reason": "receipt unreadable"},
        headers=teacher_headers,
    )
    assert rejected.json()["status"] == "rejected"
    assert rejected.json()["rejection_reason"] == "receipt unreadable"

    again = _submit(client, student_headers, course["id"], receipt_ref="TX-2002")
    assert again.status_code == 201

    mine = client.get("/v1/me/payments", headers=student_headers).json()
    assert sorted(p["status"] for p in mine) == ["pending", "rejected"]


def test_reject_requires_reason(
    client: TestClient,
    paid_course,
    student_headers: dict[str, str],
    teacher_headers: dict[str, str],
) -> None:
    course, _ = paid_course
    payment = _submit(client, student_headers, course["id"]).json()

    resp = client.post(
        f"/v1/payments/{payment['id']}/reject",
        json={"reason": "   "},
        headers=teacher_headers,
    )

    assert resp.status_code == 422
    assert resp.json()["code"] == "reason_required"


def test_other_teacher_cannot_review(
    client: TestClient, paid_course, student_headers: dict[str, str]
) -> None:
    course, _ = paid_course
    payment = _submit(client, student_headers, course["id"]).json()
    other = auth(mint_token("teacher-2", ["teacher"]))

    resp = client.post(f"/v1/payments/{payment['id']}/approve", headers=other)

    assert resp.status_code == 403
    assert resp.json()["code"] == "not_course_owner"


def test_admin_can_review_any_course(
    client: TestClient,
    paid_course,
    student_headers: dict[str, str],
    admin_headers: dict[str, str],
) -> None:
    course, _ = paid_course
    payment = _submit(client, student_headers, course["id"]).json()

    resp = client.post(f"/v1/payments/{payment['id']}/approve", headers=admin_headers)

    assert resp.status_code == 200
    assert resp.json()["reviewer_id"] == "admin-1"


def test_review_queue_filters_by_status(
    client: TestClient,
    paid_course,
    teacher_headers: dict[str, str],
) -> None:
    course, _ = paid_course
    for n in range(3):
        headers = auth(mint_token(f"student-{n}", ["student"]))
        _submit(client, headers, course["id"], receipt_ref=f"TX-{n}")
    first = client.get(
        f"/v1/courses/{course['id']}/payments", headers=teacher_headers
    ).json()
    client.post(f"/v1/payments/{first[0]['id']}/approve", headers=teacher_headers)

    pending = client.get(
        f"/v1/courses/{course['id']}/payments",
        params={"status": "pending"},
        headers=teacher_headers,
    )

    assert len(first) == 3
    assert pending.status_code == 200
    assert len(pending.json()) == 2
    assert all(p["status"] == "pending" for p in pending.json())


def test_payment_visibility(
    client: TestClient,
    paid_course,
    student_headers: dict[str, str],
    teacher_headers: dict[str, str],
) -> None:
    course, _ = paid_course
    payment = _submit(client, student_headers, course["id"]).json()
    url = f"/v1/payments/{payment['id']}"

    assert client.get(url, headers=student_headers).status_code == 200
    assert client.get(url, headers=teacher_headers).status_code == 200
    stranger = client.get(url, headers=auth(mint_token("student-2", ["student"])))
    assert stranger.status_code == 403
    assert stranger.json()["code"] == "not_payment_owner"


@pytest.mark.parametrize(
    ("roles", "expected"),
    [
        (None, 401),
        (["student"], 403),
        (["teacher"], 200),
        (["admin"], 200),
    ],
)
def test_review_queue_requires_teacher_role(
    client: TestClient,
    paid_course,
    roles: list[str] | None,
    expected: int,
) -> None:
    course, _ = paid_course
    headers = {} if roles is None else auth(mint_token("teacher-1", roles))

    resp = client.get(f"/v1/courses/{course['id']}/payments", headers=headers)

    assert resp.status_code == expected
