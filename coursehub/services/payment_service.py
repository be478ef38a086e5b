"""Manual payment review.

A student pays out of band, then submits a receipt reference. A teacher
(or admin) approves or rejects it. Approval unlocks the course;
rejection leaves the enrollment in pending_payment so the student can
submit again. Lessons completed during the free preview count from the
moment the course unlocks.

Review is a compare-and-swap on the payment's pending state: of two
concurrent reviewers exactly one wins and the other gets
``already_reviewed``.
"""

from __future__ import annotations

import logging
import re
import time
from uuid import UUID

from coursehub.core.errors import ConflictError, NotFoundError, ValidationError
from coursehub.core.metrics import PAYMENT_REVIEWS
from coursehub.models.course import Course
from coursehub.models.enrollment import Enrollment, EnrollmentStatus
from coursehub.models.events import EventType
from coursehub.models.payment import Approved, Payment, PaymentStatus, Rejected
from coursehub.repos.enrollment_repo import DuplicateEnrollmentError, EnrollmentRepo
from coursehub.repos.payment_repo import DuplicatePendingPaymentError, PaymentRepo
from coursehub.services.catalog_service import CatalogService, require_published
from coursehub.services.events import EventPublisher
from coursehub.services.progress_service import ProgressTracker

logger = logging.getLogger(__name__)

MAX_RECEIPT_REF_LENGTH = 512
MAX_NOTES_LENGTH = 2000
MAX_REASON_LENGTH = 1000

# Printable, no whitespace: a transaction id, a file key or a URL
_RECEIPT_REF_RE = re.compile(r"^[^\s\x00-\x1f\x7f]+$")


def _validate_receipt_ref(receipt_ref: str) -> str:
    receipt_ref = receipt_ref.strip()
    if not receipt_ref:
        raise ValidationError("receipt_ref must be non-empty", code="invalid_receipt")
    if len(receipt_ref) > MAX_RECEIPT_REF_LENGTH:
        raise ValidationError(
            f"receipt_ref must be at most {MAX_RECEIPT_REF_LENGTH} characters",
            code="invalid_receipt",
        )
    if not _RECEIPT_REF_RE.match(receipt_ref):
        raise ValidationError(
            "receipt_ref must not contain whitespace or control characters",
            code="invalid_receipt",
        )
    return receipt_ref


def _clean_notes(notes: str | None) -> str | None:
    if notes is None:
        return None
    notes = notes.strip()
    if len(notes) > MAX_NOTES_LENGTH:
        raise ValidationError(
            f"notes must be at most {MAX_NOTES_LENGTH} characters",
            code="invalid_notes",
        )
    return notes or None


class PaymentWorkflow:
    def __init__(
        self,
        catalog: CatalogService,
        enrollments: EnrollmentRepo,
        payments: PaymentRepo,
        progress: ProgressTracker,
        publisher: EventPublisher,
    ) -> None:
        self._catalog = catalog
        self._enrollments = enrollments
        self._payments = payments
        self._progress = progress
        self._publisher = publisher

    async def ensure_pending_enrollment(
        self, student_id: str, course: Course
    ) -> Enrollment:
        """Return the student's enrollment in ``course``, creating a
        pending_payment one when none exists."""
        existing = await self._enrollments.get_by_student_course(student_id, course.id)
        if existing is not None:
            return existing
        require_published(course)
        enrollment = Enrollment.new_pending(student_id=student_id, course_id=course.id)
        try:
            await self._enrollments.add(enrollment)
        except DuplicateEnrollmentError:
            # A concurrent request created it first
            raced = await self._enrollments.get_by_student_course(
                student_id, course.id
            )
            if raced is None:
                raise
            return raced
        logger.info(
            "Created pending_payment enrollment student=%s",
            student_id,
            extra={"course_id": str(course.id), "enrollment_id": str(enrollment.id)},
        )
        return enrollment

    async def submit_payment(
        self,
        *,
        student_id: str,
        course_id: UUID,
        amount: int,
        receipt_ref: str,
        notes: str | None = None,
    ) -> Payment:
        course = await self._catalog.get_course(course_id)
        if not course.is_paid:
            raise ValidationError(
                "course is free; enroll directly", code="course_is_free"
            )
        if amount != course.price:
            logger.warning(
                "Rejected payment amount=%d price=%d student=%s",
                amount,
                course.price,
                student_id,
                extra={"course_id": str(course_id)},
            )
            raise ValidationError(
                f"amount {amount} does not match course price {course.price}",
                code="amount_mismatch",
            )
        receipt_ref = _validate_receipt_ref(receipt_ref)
        notes = _clean_notes(notes)

        enrollment = await self.ensure_pending_enrollment(student_id, course)
        if enrollment.is_unlocked:
            raise ConflictError("course is already unlocked", code="already_enrolled")
        if await self._payments.get_pending(student_id, course_id) is not None:
            raise ConflictError(
                "a payment for this course is awaiting review", code="payment_pending"
            )

        payment = Payment.new(
            student_id=student_id,
            course_id=course_id,
            amount=amount,
            currency=course.currency,
            receipt_ref=receipt_ref,
            notes=notes,
        )
        try:
            await self._payments.add(payment)
        except DuplicatePendingPaymentError:
            raise ConflictError(
                "a payment for this course is awaiting review", code="payment_pending"
            ) from None

        logger.info(
            "Payment submitted student=%s amount=%d %s",
            student_id,
            amount,
            payment.currency,
            extra={"course_id": str(course_id), "payment_id": str(payment.id)},
        )
        await self._publisher.publish(
            EventType.PAYMENT_SUBMITTED,
            payment_id=payment.id,
            course_id=course_id,
            student_id=student_id,
            teacher_id=course.teacher_id,
            amount=amount,
            currency=payment.currency,
        )
        return payment

    async def approve_payment(self, payment_id: UUID, reviewer_id: str) -> Payment:
        await self._get_pending(payment_id)
        reviewed = await self._payments.review(
            payment_id, Approved(reviewer_id=reviewer_id, reviewed_at=int(time.time()))
        )
        if reviewed is None:
            raise self._already_reviewed(payment_id)

        enrollment = await self._unlock(reviewed)
        PAYMENT_REVIEWS.labels(outcome="approved").inc()
        logger.info(
            "Payment approved reviewer=%s",
            reviewer_id,
            extra={
                "course_id": str(reviewed.course_id),
                "payment_id": str(payment_id),
                "enrollment_id": str(enrollment.id),
            },
        )
        await self._publisher.publish(
            EventType.PAYMENT_APPROVED,
            payment_id=payment_id,
            course_id=reviewed.course_id,
            student_id=reviewed.student_id,
            enrollment_id=enrollment.id,
        )
        return reviewed

    async def reject_payment(
        self, payment_id: UUID, reviewer_id: str, reason: str
    ) -> Payment:
        reason = reason.strip()
        if not reason:
            raise ValidationError(
                "a rejection reason is required", code="reason_required"
            )
        if len(reason) > MAX_REASON_LENGTH:
            raise ValidationError(
                f"reason must be at most {MAX_REASON_LENGTH} characters",
                code="reason_required",
            )
        await self._get_pending(payment_id)
        reviewed = await self._payments.review(
            payment_id,
            Rejected(
                reviewer_id=reviewer_id, reviewed_at=int(time.time()), reason=reason
            ),
        )
        if reviewed is None:
            raise self._already_reviewed(payment_id)

        PAYMENT_REVIEWS.labels(outcome="rejected").inc()
        logger.info(
            "Payment rejected reviewer=%s",
            reviewer_id,
            extra={"course_id": str(reviewed.course_id), "payment_id": str(payment_id)},
        )
        await self._publisher.publish(
            EventType.PAYMENT_REJECTED,
            payment_id=payment_id,
            course_id=reviewed.course_id,
            student_id=reviewed.student_id,
            reason=reason,
        )
        return reviewed

    async def get_payment(self, payment_id: UUID) -> Payment:
        payment = await self._payments.get(payment_id)
        if payment is None:
            raise NotFoundError("payment not found")
        return payment

    async def list_student_payments(self, student_id: str) -> list[Payment]:
        return await self._payments.list_by_student(student_id)

    async def list_course_payments(
        self, course_ids: list[UUID], status: PaymentStatus | None = None
    ) -> list[Payment]:
        if not course_ids:
            return []
        return await self._payments.list_by_courses(course_ids, status)

    async def _get_pending(self, payment_id: UUID) -> Payment:
        payment = await self.get_payment(payment_id)
        if not payment.is_pending:
            raise self._already_reviewed(payment_id)
        return payment

    def _already_reviewed(self, payment_id: UUID) -> ConflictError:
        PAYMENT_REVIEWS.labels(outcome="already_reviewed").inc()
        logger.warning(
            "Review refused: payment already reviewed",
            extra={"payment_id": str(payment_id)},
        )
        return ConflictError("payment was already reviewed", code="already_reviewed")

    async def _unlock(self, payment: Payment) -> Enrollment:
        """Move the student's enrollment to active, creating it if missing.

        An enrollment that was pending_payment keeps its preview completions:
        progress is recomputed from them before the approval commits.
        """
        first_lesson_id = await self._catalog.first_lesson_id(payment.course_id)
        enrollment = await self._enrollments.get_by_student_course(
            payment.student_id, payment.course_id
        )
        if enrollment is None:
            created = Enrollment.new_unlocked(
                student_id=payment.student_id,
                course_id=payment.course_id,
                payment_id=payment.id,
                first_lesson_id=first_lesson_id,
            )
            try:
                await self._enrollments.add(created)
                return created
            except DuplicateEnrollmentError:
                enrollment = await self._enrollments.get_by_student_course(
                    payment.student_id, payment.course_id
                )
                if enrollment is None:
                    raise
        if enrollment.status is not EnrollmentStatus.PENDING_PAYMENT:
            return enrollment
        activated = await self._enrollments.activate(
            enrollment.id, payment.id, first_lesson_id
        )
        if activated is not None:
            return await self._progress.resume(activated)
        # Activated by someone else in between; report the stored row
        current = await self._enrollments.get(enrollment.id)
        return current if current is not None else enrollment
