"""Payment submission and review endpoints.

Students submit; the course's teacher (or an admin) reviews. Review
results reach the student through the notifications queue.
"""

from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, status
from pydantic import BaseModel

from coursehub.api.dependencies import (
    CurrentUser,
    ServicesDep,
    Teacher,
    ensure_course_owner,
)
from coursehub.core.errors import ForbiddenError
from coursehub.models.payment import Payment, PaymentStatus

router = APIRouter(prefix="/v1", tags=["payments"])


class PaymentIn(BaseModel):
    course_id: UUID
    amount: int
    receipt_ref: str
    notes: str | None = None


class RejectIn(BaseModel):
    reason: str


class PaymentOut(BaseModel):
    id: UUID
    student_id: str
    course_id: UUID
    amount: int
    currency: str
    receipt_ref: str
    notes: str | None
    status: PaymentStatus
    reviewer_id: str | None
    reviewed_at: int | None
    rejection_reason: str | None
    created_at: int

    @classmethod
    def of(cls, payment: Payment) -> PaymentOut:
        return cls(
            id=payment.id,
            student_id=payment.student_id,
            course_id=payment.course_id,
            amount=payment.amount,
            currency=payment.currency,
            receipt_ref=payment.receipt_ref,
            notes=payment.notes,
            status=payment.status,
            reviewer_id=payment.reviewer_id,
            reviewed_at=payment.reviewed_at,
            rejection_reason=payment.rejection_reason,
            created_at=payment.created_at,
        )


@router.post(
    "/payments", response_model=PaymentOut, status_code=status.HTTP_201_CREATED
)
async def submit_payment(
    body: PaymentIn, principal: CurrentUser, services: ServicesDep
) -> PaymentOut:
    payment = await services.payments.submit_payment(
        student_id=principal.user_id,
        course_id=body.course_id,
        amount=body.amount,
        receipt_ref=body.receipt_ref,
        notes=body.notes,
    )
    return PaymentOut.of(payment)


@router.get("/me/payments", response_model=list[PaymentOut])
async def list_my_payments(
    principal: CurrentUser, services: ServicesDep
) -> list[PaymentOut]:
    payments = await services.payments.list_student_payments(principal.user_id)
    return [PaymentOut.of(p) for p in payments]


@router.get("/payments/{payment_id}", response_model=PaymentOut)
async def get_payment(
    payment_id: UUID, principal: CurrentUser, services: ServicesDep
) -> PaymentOut:
    payment = await services.payments.get_payment(payment_id)
    if payment.student_id != principal.user_id:
        try:
            ensure_course_owner(
                await services.catalog.get_course(payment.course_id), principal
            )
        except ForbiddenError:
            raise ForbiddenError(
                "payment belongs to another student", code="not_payment_owner"
            ) from None
    return PaymentOut.of(payment)


@router.get("/courses/{course_id}/payments", response_model=list[PaymentOut])
async def list_course_payments(
    course_id: UUID,
    principal: Teacher,
    services: ServicesDep,
    status: PaymentStatus | None = None,
) -> list[PaymentOut]:
    """Review queue for one course, newest first."""
    ensure_course_owner(await services.catalog.get_course(course_id), principal)
    payments = await services.payments.list_course_payments([course_id], status)
    return [PaymentOut.of(p) for p in payments]


@router.post("/payments/{payment_id}/approve", response_model=PaymentOut)
async def approve_payment(
    payment_id: UUID, principal: Teacher, services: ServicesDep
) -> PaymentOut:
    payment = await services.payments.get_payment(payment_id)
    ensure_course_owner(await services.catalog.get_course(payment.course_id), principal)
    reviewed = await services.payments.approve_payment(payment_id, principal.user_id)
    return PaymentOut.of(reviewed)


@router.post("/payments/{payment_id}/reject", response_model=PaymentOut)
async def reject_payment(
    payment_id: UUID, body: RejectIn, principal: Teacher, services: ServicesDep
) -> PaymentOut:
    payment = await services.payments.get_payment(payment_id)
    ensure_course_owner(await services.catalog.get_course(payment.course_id), principal)
    reviewed = await services.payments.reject_payment(
        payment_id, principal.user_id, body.reason
    )
    return PaymentOut.of(reviewed)
