from __future__ import annotations

from collections.abc import Iterable
from dataclasses import replace
from typing import Protocol
from uuid import UUID

from coursehub.models.payment import Approved, Payment, PaymentStatus, Rejected


class DuplicatePendingPaymentError(Exception):
    """A pending Payment already exists for this (student_id, course_id)."""


class PaymentRepo(Protocol):
    async def add(self, payment: Payment) -> None: ...
    async def get(self, payment_id: UUID) -> Payment | None: ...
    async def get_pending(self, student_id: str, course_id: UUID) -> Payment | None: ...
    async def list_by_student(self, student_id: str) -> list[Payment]: ...
    async def list_by_courses(
        self, course_ids: Iterable[UUID], status: PaymentStatus | None = None
    ) -> list[Payment]: ...
    async def review(
        self, payment_id: UUID, outcome: Approved | Rejected
    ) -> Payment | None: ...


class InMemoryPaymentRepo:
    def __init__(self) -> None:
        self._by_id: dict[UUID, Payment] = {}

    def clear(self) -> None:
        self._by_id.clear()

    async def add(self, payment: Payment) -> None:
        if payment.is_pending and any(
            p.is_pending
            and p.student_id == payment.student_id
            and p.course_id == payment.course_id
            for p in self._by_id.values()
        ):
            raise DuplicatePendingPaymentError(
                f"{payment.student_id}:{payment.course_id}"
            )
        self._by_id[payment.id] = payment

    async def get(self, payment_id: UUID) -> Payment | None:
        return self._by_id.get(payment_id)

    async def get_pending(self, student_id: str, course_id: UUID) -> Payment | None:
        for p in self._by_id.values():
            if p.is_pending and p.student_id == student_id and p.course_id == course_id:
                return p
        return None

    async def list_by_student(self, student_id: str) -> list[Payment]:
        found = [p for p in self._by_id.values() if p.student_id == student_id]
        return sorted(found, key=lambda p: (p.created_at, str(p.id)), reverse=True)

    async def list_by_courses(
        self, course_ids: Iterable[UUID], status: PaymentStatus | None = None
    ) -> list[Payment]:
        wanted = set(course_ids)
        found = [
            p
            for p in self._by_id.values()
            if p.course_id in wanted and (status is None or p.status is status)
        ]
        return sorted(found, key=lambda p: (p.created_at, str(p.id)), reverse=True)

    async def review(
        self, payment_id: UUID, outcome: Approved | Rejected
    ) -> Payment | None:
        """Compare-and-swap pending -> outcome. Returns the updated record, or
        None if the payment doesn't exist or was already reviewed."""
        existing = self._by_id.get(payment_id)
        if existing is None or not existing.is_pending:
            return None
        updated = replace(existing, state=outcome)
        self._by_id[payment_id] = updated
        return updated
