from __future__ import annotations

from uuid import uuid4

import pytest

from coursehub.models.course import Course, CourseStatus, CourseTransitionError
from coursehub.models.enrollment import (
    Enrollment,
    EnrollmentStatus,
    EnrollmentTransitionError,
)
from coursehub.models.payment import (
    Approved,
    Payment,
    PaymentStatus,
    Pending,
    Rejected,
    state_from_columns,
)
from coursehub.models.progress import completion_percentage

# ---- percentage ----


@pytest.mark.parametrize(
    ("completed", "total", "expected"),
    [(0, 4, 0), (1, 4, 25), (1, 3, 33), (2, 3, 67), (1, 8, 13), (1, 200, 1), (0, 0, 0)],
)
def test_completion_percentage_rounds_half_up(
    completed: int, total: int, expected: int
) -> None:
    assert completion_percentage(completed, total) == expected


# ---- payment state ----


def test_rejected_requires_reason() -> None:
    with pytest.raises(ValueError):
        Rejected(reviewer_id="t", reviewed_at=1, reason="  ")


def test_payment_state_accessors() -> None:
    payment = Payment.new(
        student_id="s", course_id=uuid4(), amount=1, currency="UZS", receipt_ref="r"
    )
    assert payment.status is PaymentStatus.PENDING
    assert payment.is_pending
    assert payment.reviewer_id is None

    rejected = Rejected(reviewer_id="t", reviewed_at=5, reason="blurry")
    assert state_from_columns("rejected", "t", 5, "blurry") == rejected
    assert state_from_columns("approved", "t", 5, None) == Approved("t", 5)
    assert state_from_columns("pending", None, None, None) == Pending()


def test_state_from_columns_rejects_missing_reviewer() -> None:
    with pytest.raises(ValueError):
        state_from_columns("approved", None, None, None)


# ---- enrollment transitions ----


def test_activate_only_from_pending_payment() -> None:
    pending = Enrollment.new_pending(student_id="s", course_id=uuid4())
    lesson_id, payment_id = uuid4(), uuid4()

    active = pending.activate(payment_id, lesson_id)

    assert active.status is EnrollmentStatus.ACTIVE
    assert active.current_lesson_id == lesson_id
    with pytest.raises(EnrollmentTransitionError):
        active.activate(payment_id, lesson_id)


def test_with_progress_completes_and_stamps_time() -> None:
    active = Enrollment.new_free(student_id="s", course_id=uuid4(), first_lesson_id=None)

    done = active.with_progress(100, None, completed=True)

    assert done.status is EnrollmentStatus.COMPLETED
    assert done.completed_at is not None
    with pytest.raises(EnrollmentTransitionError):
        done.with_progress(100, None, completed=True)


def test_pending_enrollment_records_preview_progress_but_never_completes() -> None:
    pending = Enrollment.new_pending(student_id="s", course_id=uuid4())
    lesson_id = uuid4()

    moved = pending.with_progress(50, lesson_id, completed=False)

    assert moved.status is EnrollmentStatus.PENDING_PAYMENT
    assert (moved.progress_percent, moved.current_lesson_id) == (50, lesson_id)
    with pytest.raises(EnrollmentTransitionError):
        pending.with_progress(100, None, completed=True)


# ---- course lifecycle ----


def test_course_lifecycle_edges() -> None:
    draft = Course.new(teacher_id="t", title="SQL", price=0, currency="UZS")
    assert draft.status is CourseStatus.DRAFT
    assert not draft.is_published

    published = draft.with_status(CourseStatus.PUBLISHED)
    archived = published.with_status(CourseStatus.ARCHIVED)

    assert published.is_published
    assert archived.with_status(CourseStatus.PUBLISHED).is_published
    with pytest.raises(CourseTransitionError):
        published.with_status(CourseStatus.DRAFT)
    with pytest.raises(CourseTransitionError):
        archived.with_status(CourseStatus.DRAFT)
