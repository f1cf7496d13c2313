"""PostgreSQL implementation of ProgressLedger.

upsert is a single INSERT ... ON CONFLICT DO UPDATE that sets only the
columns named by the patch, so concurrent patches to different fields of
the same row never overwrite each other.
"""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import select
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.engine import store_errors
from app.db.tables import ProgressRow
from app.models.progress import ProgressPatch, ProgressRecord


class PgProgressRepo:
    """Satisfies the ProgressLedger Protocol using PostgreSQL via SQLAlchemy."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get(
        self, student_id: str, course_id: UUID, topic_id: UUID
    ) -> ProgressRecord | None:
        async with store_errors("progress.get"):
            row = await self._session.get(ProgressRow, (student_id, course_id, topic_id))
        return _row_to_record(row) if row is not None else None

    async def upsert(
        self,
        student_id: str,
        course_id: UUID,
        topic_id: UUID,
        patch: ProgressPatch,
        *,
        now: int,
    ) -> ProgressRecord:
        values = patch.values()
        stmt = insert(ProgressRow).values(
            student_id=student_id,
            course_id=course_id,
            topic_id=topic_id,
            is_unlocked=values.get("is_unlocked", False),
            is_completed=values.get("is_completed", False),
            updated_at=now,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=[
                ProgressRow.student_id,
                ProgressRow.course_id,
                ProgressRow.topic_id,
            ],
            set_={**values, "updated_at": now},
        ).returning(ProgressRow)
        async with store_errors("progress.upsert"):
            row = (
                await self._session.execute(
                    stmt, execution_options={"populate_existing": True}
                )
            ).scalar_one()
        return _row_to_record(row)

    async def list_for_student(
        self, student_id: str, course_id: UUID
    ) -> list[ProgressRecord]:
        stmt = select(ProgressRow).where(
            ProgressRow.student_id == student_id,
            ProgressRow.course_id == course_id,
        )
        async with store_errors("progress.list_for_student"):
            rows = (await self._session.execute(stmt)).scalars().all()
        return [_row_to_record(r) for r in rows]

    async def list_for_course(self, course_id: UUID) -> list[ProgressRecord]:
        stmt = select(ProgressRow).where(ProgressRow.course_id == course_id)
        async with store_errors("progress.list_for_course"):
            rows = (await self._session.execute(stmt)).scalars().all()
        return [_row_to_record(r) for r in rows]


def _row_to_record(row: ProgressRow) -> ProgressRecord:
    return ProgressRecord(
        student_id=row.student_id,
        course_id=row.course_id,
        topic_id=row.topic_id,
        is_unlocked=row.is_unlocked,
        is_completed=row.is_completed,
        updated_at=row.updated_at,
    )
