"""Repository sets.

With DATABASE_URL unset every request shares the module-level in-memory
repos below; with it set, each request gets PostgreSQL repos bound to
its own session (and so to its own transaction).
"""

from __future__ import annotations

from dataclasses import dataclass

from sqlalchemy.ext.asyncio import AsyncSession

from coursehub.repos.catalog_repo import CatalogRepo, InMemoryCatalogRepo
from coursehub.repos.completion_repo import CompletionRepo, InMemoryCompletionRepo
from coursehub.repos.enrollment_repo import EnrollmentRepo, InMemoryEnrollmentRepo
from coursehub.repos.payment_repo import InMemoryPaymentRepo, PaymentRepo
from coursehub.repos.pg_catalog_repo import PgCatalogRepo
from coursehub.repos.pg_completion_repo import PgCompletionRepo
from coursehub.repos.pg_enrollment_repo import PgEnrollmentRepo
from coursehub.repos.pg_payment_repo import PgPaymentRepo


@dataclass(frozen=True, slots=True)
class Repos:
    catalog: CatalogRepo
    enrollments: EnrollmentRepo
    payments: PaymentRepo
    completions: CompletionRepo


catalog_repo = InMemoryCatalogRepo()
enrollment_repo = InMemoryEnrollmentRepo()
payment_repo = InMemoryPaymentRepo()
completion_repo = InMemoryCompletionRepo()

in_memory_repos = Repos(
    catalog=catalog_repo,
    enrollments=enrollment_repo,
    payments=payment_repo,
    completions=completion_repo,
)


def clear_in_memory_repos() -> None:
    catalog_repo.clear()
    enrollment_repo.clear()
    payment_repo.clear()
    completion_repo.clear()


def pg_repos(session: AsyncSession) -> Repos:
    return Repos(
        catalog=PgCatalogRepo(session),
        enrollments=PgEnrollmentRepo(session),
        payments=PgPaymentRepo(session),
        completions=PgCompletionRepo(session),
    )
