from __future__ import annotations

from typing import Protocol
from uuid import UUID

from coursehub.models.progress import LessonCompletion


class CompletionRepo(Protocol):
    async def add_if_absent(self, completion: LessonCompletion) -> bool: ...
    async def list_for_enrollment(
        self, enrollment_id: UUID
    ) -> list[LessonCompletion]: ...


class InMemoryCompletionRepo:
    def __init__(self) -> None:
        self._store: dict[tuple[UUID, UUID], LessonCompletion] = {}

    def clear(self) -> None:
        self._store.clear()

    async def add_if_absent(self, completion: LessonCompletion) -> bool:
        """Insert unless the pair exists. Returns True when a row was added."""
        key = (completion.enrollment_id, completion.lesson_id)
        if key in self._store:
            return False
        self._store[key] = completion
        return True

    async def list_for_enrollment(self, enrollment_id: UUID) -> list[LessonCompletion]:
        found = [c for (eid, _), c in self._store.items() if eid == enrollment_id]
        return sorted(found, key=lambda c: (c.completed_at, str(c.lesson_id)))
