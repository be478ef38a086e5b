"""PostgreSQL implementation of CompletionRepo."""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.ext.asyncio import AsyncSession

from coursehub.db.tables import LessonCompletionRow
from coursehub.models.progress import LessonCompletion


class PgCompletionRepo:
    """Satisfies the CompletionRepo Protocol using PostgreSQL."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def add_if_absent(self, completion: LessonCompletion) -> bool:
        stmt = (
            pg_insert(LessonCompletionRow)
            .values(
                enrollment_id=completion.enrollment_id,
                lesson_id=completion.lesson_id,
                completed_at=completion.completed_at,
            )
            .on_conflict_do_nothing(index_elements=["enrollment_id", "lesson_id"])
            .returning(LessonCompletionRow.lesson_id)
        )
        return (await self._session.execute(stmt)).scalar_one_or_none() is not None

    async def list_for_enrollment(self, enrollment_id: UUID) -> list[LessonCompletion]:
        stmt = (
            select(LessonCompletionRow)
            .where(LessonCompletionRow.enrollment_id == enrollment_id)
            .order_by(LessonCompletionRow.completed_at, LessonCompletionRow.lesson_id)
        )
        rows = (await self._session.execute(stmt)).scalars().all()
        return [
            LessonCompletion(
                enrollment_id=r.enrollment_id,
                lesson_id=r.lesson_id,
                completed_at=r.completed_at,
            )
            for r in rows
        ]
