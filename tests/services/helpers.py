"""Repository wrappers that replay the interleavings of concurrent requests.

The in-memory repos never suspend, so a plain ``asyncio.gather`` runs
each coroutine to completion in turn. These wrappers delegate to the
shared in-memory repos and change a single call to reproduce what a
second transaction could do in between.
"""

from __future__ import annotations

import asyncio
from dataclasses import replace

from coursehub.repos.bundle import in_memory_repos
from coursehub.services.container import Services, build_services


class _Delegating:
    def __init__(self, inner) -> None:
        self._inner = inner

    def __getattr__(self, name: str):
        return getattr(self._inner, name)


class StaleReadPaymentRepo(_Delegating):
    """``get`` yields to the event loop after reading, so two reviewers act
    on the same pending snapshot."""

    async def get(self, payment_id):
        payment = await self._inner.get(payment_id)
        await asyncio.sleep(0)
        return payment


class MissFirstLookupEnrollmentRepo(_Delegating):
    """The first lookup by (student, course) misses, as if another request
    inserted the row right after it was read."""

    def __init__(self, inner) -> None:
        super().__init__(inner)
        self.missed = False

    async def get_by_student_course(self, student_id, course_id):
        if not self.missed:
            self.missed = True
            return None
        return await self._inner.get_by_student_course(student_id, course_id)


class ActivatedElsewhereEnrollmentRepo(_Delegating):
    """Another transaction activates the row first; ours loses the update."""

    async def activate(self, enrollment_id, payment_id, first_lesson_id):
        await self._inner.activate(enrollment_id, payment_id, first_lesson_id)
        return None


class LostProgressWriteEnrollmentRepo(_Delegating):
    """Every guarded progress write finds the row changed underneath it."""

    async def save_progress(self, enrollment, expected):
        return False


def services_with(**repos) -> Services:
    """Services over the shared in-memory repos with some replaced."""
    return build_services(replace(in_memory_repos, **repos))
