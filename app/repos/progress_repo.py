from __future__ import annotations

from typing import Protocol
from uuid import UUID

from app.models.progress import ProgressPatch, ProgressRecord

_Key = tuple[str, UUID, UUID]


class ProgressLedger(Protocol):
    async def get(
        self, student_id: str, course_id: UUID, topic_id: UUID
    ) -> ProgressRecord | None: ...

    async def upsert(
        self,
        student_id: str,
        course_id: UUID,
        topic_id: UUID,
        patch: ProgressPatch,
        *,
        now: int,
    ) -> ProgressRecord:
        """Insert or merge-patch the record for this key.  Returns the result."""
        ...

    async def list_for_student(
        self, student_id: str, course_id: UUID
    ) -> list[ProgressRecord]: ...

    async def list_for_course(self, course_id: UUID) -> list[ProgressRecord]: ...


class InMemoryProgressRepo:
    def __init__(self) -> None:
        self._store: dict[_Key, ProgressRecord] = {}

    async def get(
        self, student_id: str, course_id: UUID, topic_id: UUID
    ) -> ProgressRecord | None:
        return self._store.get((student_id, course_id, topic_id))

    async def upsert(
        self,
        student_id: str,
        course_id: UUID,
        topic_id: UUID,
        patch: ProgressPatch,
        *,
        now: int,
    ) -> ProgressRecord:
        key = (student_id, course_id, topic_id)
        existing = self._store.get(key)
        if existing is None:
            record = patch.create(
                student_id=student_id, course_id=course_id, topic_id=topic_id, now=now
            )
        else:
            record = patch.apply(existing, now=now)
        self._store[key] = record
        return record

    async def list_for_student(
        self, student_id: str, course_id: UUID
    ) -> list[ProgressRecord]:
        return [
            r
            for (sid, cid, _), r in self._store.items()
            if sid == student_id and cid == course_id
        ]

    async def list_for_course(self, course_id: UUID) -> list[ProgressRecord]:
        return [r for (_, cid, _), r in self._store.items() if cid == course_id]
