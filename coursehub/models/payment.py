"""Payment entity and its review state.

A Payment's review state is one of three variants rather than a status
string plus nullable reviewer/reason columns, so a rejected payment
without a reason or an approved payment without a reviewer cannot be
built.
"""

from __future__ import annotations

import datetime
from dataclasses import dataclass, field
from enum import Enum
from uuid import UUID, uuid4


def _now() -> int:
    return int(datetime.datetime.now(datetime.UTC).timestamp())


class PaymentStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


@dataclass(frozen=True, slots=True)
class Pending:
    status = PaymentStatus.PENDING


@dataclass(frozen=True, slots=True)
class Approved:
    reviewer_id: str
    reviewed_at: int
    status = PaymentStatus.APPROVED


@dataclass(frozen=True, slots=True)
class Rejected:
    reviewer_id: str
    reviewed_at: int
    reason: str
    status = PaymentStatus.REJECTED

    def __post_init__(self) -> None:
        if not self.reason or not self.reason.strip():
            raise ValueError("rejected payment requires a reason")


PaymentState = Pending | Approved | Rejected


@dataclass(frozen=True, slots=True)
class Payment:
    id: UUID
    student_id: str
    course_id: UUID
    amount: int
    currency: str
    receipt_ref: str
    created_at: int
    state: PaymentState = field(default_factory=Pending)
    notes: str | None = None

    @property
    def status(self) -> PaymentStatus:
        return self.state.status

    @property
    def is_pending(self) -> bool:
        return isinstance(self.state, Pending)

    @property
    def reviewer_id(self) -> str | None:
        if isinstance(self.state, Approved | Rejected):
            return self.state.reviewer_id
        return None

    @property
    def reviewed_at(self) -> int | None:
        if isinstance(self.state, Approved | Rejected):
            return self.state.reviewed_at
        return None

    @property
    def rejection_reason(self) -> str | None:
        if isinstance(self.state, Rejected):
            return self.state.reason
        return None

    @staticmethod
    def new(
        *,
        student_id: str,
        course_id: UUID,
        amount: int,
        currency: str,
        receipt_ref: str,
        notes: str | None = None,
    ) -> Payment:
        return Payment(
            id=uuid4(),
            student_id=student_id,
            course_id=course_id,
            amount=amount,
            currency=currency,
            receipt_ref=receipt_ref,
            created_at=_now(),
            notes=notes,
        )


def state_from_columns(
    status: str,
    reviewer_id: str | None,
    reviewed_at: int | None,
    rejection_reason: str | None,
) -> PaymentState:
    """Rebuild the review state from its flat persisted columns."""
    parsed = PaymentStatus(status)
    if parsed is PaymentStatus.PENDING:
        return Pending()
    if reviewer_id is None or reviewed_at is None:
        raise ValueError(f"{parsed.value} payment row is missing reviewer fields")
    if parsed is PaymentStatus.APPROVED:
        return Approved(reviewer_id=reviewer_id, reviewed_at=reviewed_at)
    return Rejected(
        reviewer_id=reviewer_id,
        reviewed_at=reviewed_at,
        reason=rejection_reason or "",
    )
