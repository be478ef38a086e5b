"""PostgreSQL implementation of PaymentRepo."""

from __future__ import annotations

from collections.abc import Iterable
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.ext.asyncio import AsyncSession

from coursehub.db.tables import PaymentRow
from coursehub.models.payment import (
    Approved,
    Payment,
    PaymentStatus,
    Rejected,
    state_from_columns,
)
from coursehub.repos.payment_repo import DuplicatePendingPaymentError

_PENDING = PaymentStatus.PENDING.value


class PgPaymentRepo:
    """Satisfies the PaymentRepo Protocol using PostgreSQL."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def add(self, payment: Payment) -> None:
        stmt = (
            pg_insert(PaymentRow)
            .values(
                id=payment.id,
                student_id=payment.student_id,
                course_id=payment.course_id,
                amount=payment.amount,
                currency=payment.currency,
                receipt_ref=payment.receipt_ref,
                notes=payment.notes,
                status=payment.status.value,
                rejection_reason=payment.rejection_reason,
                reviewer_id=payment.reviewer_id,
                reviewed_at=payment.reviewed_at,
                created_at=payment.created_at,
            )
            # matches the partial unique index uq_payments_one_pending
            .on_conflict_do_nothing(
                index_elements=["student_id", "course_id"],
                index_where=PaymentRow.status == _PENDING,
            )
            .returning(PaymentRow.id)
        )
        inserted = (await self._session.execute(stmt)).scalar_one_or_none()
        if inserted is None:
            raise DuplicatePendingPaymentError(
                f"{payment.student_id}:{payment.course_id}"
            )

    async def get(self, payment_id: UUID) -> Payment | None:
        stmt = (
            select(PaymentRow)
            .where(PaymentRow.id == payment_id)
            .execution_options(populate_existing=True)
        )
        row = (await self._session.execute(stmt)).scalar_one_or_none()
        return None if row is None else _row_to_payment(row)

    async def get_pending(self, student_id: str, course_id: UUID) -> Payment | None:
        stmt = select(PaymentRow).where(
            PaymentRow.student_id == student_id,
            PaymentRow.course_id == course_id,
            PaymentRow.status == _PENDING,
        )
        row = (await self._session.execute(stmt)).scalar_one_or_none()
        return None if row is None else _row_to_payment(row)

    async def list_by_student(self, student_id: str) -> list[Payment]:
        stmt = (
            select(PaymentRow)
            .where(PaymentRow.student_id == student_id)
            .order_by(PaymentRow.created_at.desc(), PaymentRow.id.desc())
        )
        rows = (await self._session.execute(stmt)).scalars().all()
        return [_row_to_payment(r) for r in rows]

    async def list_by_courses(
        self, course_ids: Iterable[UUID], status: PaymentStatus | None = None
    ) -> list[Payment]:
        ids = list(course_ids)
        if not ids:
            return []
        stmt = (
            select(PaymentRow)
            .where(PaymentRow.course_id.in_(ids))
            .order_by(PaymentRow.created_at.desc(), PaymentRow.id.desc())
        )
        if status is not None:
            stmt = stmt.where(PaymentRow.status == status.value)
        rows = (await self._session.execute(stmt)).scalars().all()
        return [_row_to_payment(r) for r in rows]

    async def review(
        self, payment_id: UUID, outcome: Approved | Rejected
    ) -> Payment | None:
        """Atomically move pending -> outcome. Returns the updated record, or
        None if the payment doesn't exist or was already reviewed."""
        stmt = (
            update(PaymentRow)
            .where(PaymentRow.id == payment_id)
            .where(PaymentRow.status == _PENDING)
            .values(
                status=outcome.status.value,
                reviewer_id=outcome.reviewer_id,
                reviewed_at=outcome.reviewed_at,
                rejection_reason=(
                    outcome.reason if isinstance(outcome, Rejected) else None
                ),
            )
            .execution_options(synchronize_session=False)
        )
        result = await self._session.execute(stmt)
        if result.rowcount == 0:
            return None  # concurrent review won the race
        return await self.get(payment_id)


def _row_to_payment(row: PaymentRow) -> Payment:
    return Payment(
        id=row.id,
        student_id=row.student_id,
        course_id=row.course_id,
        amount=row.amount,
        currency=row.currency,
        receipt_ref=row.receipt_ref,
        created_at=row.created_at,
        state=state_from_columns(
            row.status, row.reviewer_id, row.reviewed_at, row.rejection_reason
        ),
        notes=row.notes,
    )
