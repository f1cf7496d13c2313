"""PostgreSQL implementation of AssessmentRepo."""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import select
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.engine import store_errors
from app.db.tables import TestAttemptRow, TestRow
from app.models.assessment import Test, TestAttempt


class PgAssessmentRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get_test(self, test_id: UUID) -> Test | None:
        async with store_errors("get_test"):
            row = await self._session.get(TestRow, test_id)
        return _row_to_test(row) if row is not None else None

    async def add_test(self, test: Test) -> None:
        self._session.add(
            TestRow(
                id=test.id,
                course_id=test.course_id,
                topic_id=test.topic_id,
                title=test.title,
                scheduled_at=test.scheduled_at,
            )
        )
        async with store_errors("add_test"):
            await self._session.flush()

    async def list_tests(self, course_id: UUID) -> list[Test]:
        stmt = (
            select(TestRow)
            .where(TestRow.course_id == course_id)
            .order_by(TestRow.scheduled_at.asc().nulls_last(), TestRow.title)
        )
        async with store_errors("list_tests"):
            rows = (await self._session.execute(stmt)).scalars().all()
        return [_row_to_test(r) for r in rows]

    async def upsert_attempt(self, attempt: TestAttempt) -> TestAttempt:
        stmt = (
            insert(TestAttemptRow)
            .values(
                id=attempt.id,
                test_id=attempt.test_id,
                student_id=attempt.student_id,
                marks_obtained=attempt.marks_obtained,
                total_marks=attempt.total_marks,
                status=attempt.status,
                graded_by=attempt.graded_by,
                graded_at=attempt.graded_at,
            )
            .on_conflict_do_update(
                constraint="uq_test_attempts_test_student",
                set_={
                    "marks_obtained": attempt.marks_obtained,
                    "total_marks": attempt.total_marks,
                    "status": attempt.status,
                    "graded_by": attempt.graded_by,
                    "graded_at": attempt.graded_at,
                },
            )
            .returning(TestAttemptRow)
        )
        async with store_errors("upsert_attempt"):
            row = (
                await self._session.execute(
                    stmt, execution_options={"populate_existing": True}
                )
            ).scalar_one()
        return _row_to_attempt(row)

    async def list_attempts(
        self, student_id: str, course_id: UUID
    ) -> list[TestAttempt]:
        stmt = (
            select(TestAttemptRow)
            .join(TestRow, TestRow.id == TestAttemptRow.test_id)
            .where(
                TestAttemptRow.student_id == student_id,
                TestRow.course_id == course_id,
            )
            .order_by(TestAttemptRow.graded_at.desc().nulls_last())
        )
        async with store_errors("list_attempts"):
            rows = (await self._session.execute(stmt)).scalars().all()
        return [_row_to_attempt(r) for r in rows]


def _row_to_test(row: TestRow) -> Test:
    return Test(
        id=row.id,
        course_id=row.course_id,
        topic_id=row.topic_id,
        title=row.title,
        scheduled_at=row.scheduled_at,
    )


def _row_to_attempt(row: TestAttemptRow) -> TestAttempt:
    return TestAttempt(
        id=row.id,
        test_id=row.test_id,
        student_id=row.student_id,
        marks_obtained=row.marks_obtained,
        total_marks=row.total_marks,
        status=row.status,
        graded_by=row.graded_by,
        graded_at=row.graded_at,
    )
