"""PostgreSQL implementations of EnrollmentRepo and EnrollmentRequestRepo."""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.engine import store_errors
from app.db.tables import EnrollmentRequestRow, EnrollmentRow
from app.models.enrollment import Enrollment, EnrollmentRequest, EnrollmentStatus


class PgEnrollmentRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get(self, student_id: str, course_id: UUID) -> Enrollment | None:
        async with store_errors("enrollment.get"):
            row = await self._session.get(EnrollmentRow, (student_id, course_id))
        return _row_to_enrollment(row) if row is not None else None

    async def add(self, enrollment: Enrollment) -> None:
        self._session.add(
            EnrollmentRow(
                student_id=enrollment.student_id,
                course_id=enrollment.course_id,
                status=enrollment.status,
                created_at=enrollment.created_at,
                updated_at=enrollment.updated_at,
                completed_at=enrollment.completed_at,
                needs_content=enrollment.needs_content,
            )
        )
        async with store_errors("enrollment.add"):
            try:
                await self._session.flush()
            except IntegrityError:
                await self._session.rollback()
                raise ValueError("enrollment already exists") from None

    async def update(self, enrollment: Enrollment) -> None:
        stmt = (
            update(EnrollmentRow)
            .where(
                EnrollmentRow.student_id == enrollment.student_id,
                EnrollmentRow.course_id == enrollment.course_id,
            )
            .values(
                status=enrollment.status,
                updated_at=enrollment.updated_at,
                completed_at=enrollment.completed_at,
                needs_content=enrollment.needs_content,
            )
        )
        async with store_errors("enrollment.update"):
            result = await self._session.execute(stmt)
        if result.rowcount == 0:
            raise KeyError("enrollment not found")

    async def set_status(
        self, student_id: str, course_id: UUID, status: EnrollmentStatus, *, now: int
    ) -> Enrollment | None:
        values: dict[str, object] = {"status": status, "updated_at": now}
        if status == "completed":
            values["completed_at"] = func.coalesce(EnrollmentRow.completed_at, now)
        stmt = (
            update(EnrollmentRow)
            .where(
                EnrollmentRow.student_id == student_id,
                EnrollmentRow.course_id == course_id,
            )
            .values(**values)
            .returning(EnrollmentRow)
        )
        async with store_errors("enrollment.set_status"):
            row = (
                await self._session.execute(
                    stmt, execution_options={"populate_existing": True}
                )
            ).scalar_one_or_none()
        return _row_to_enrollment(row) if row is not None else None

    async def list_by_course(self, course_id: UUID) -> list[Enrollment]:
        stmt = select(EnrollmentRow).where(EnrollmentRow.course_id == course_id)
        async with store_errors("enrollment.list_by_course"):
            rows = (await self._session.execute(stmt)).scalars().all()
        return [_row_to_enrollment(r) for r in rows]

    async def list_by_student(self, student_id: str) -> list[Enrollment]:
        stmt = select(EnrollmentRow).where(EnrollmentRow.student_id == student_id)
        async with store_errors("enrollment.list_by_student"):
            rows = (await self._session.execute(stmt)).scalars().all()
        return [_row_to_enrollment(r) for r in rows]


class PgEnrollmentRequestRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get(self, request_id: UUID) -> EnrollmentRequest | None:
        async with store_errors("enrollment_request.get"):
            row = await self._session.get(EnrollmentRequestRow, request_id)
        return _row_to_request(row) if row is not None else None

    async def add(self, request: EnrollmentRequest) -> None:
        self._session.add(
            EnrollmentRequestRow(
                id=request.id,
                course_id=request.course_id,
                full_name=request.full_name,
                email=request.email,
                phone=request.phone,
                receipt_url=request.receipt_url,
                status=request.status,
                created_at=request.created_at,
            )
        )
        async with store_errors("enrollment_request.add"):
            await self._session.flush()

    async def update(self, request: EnrollmentRequest) -> None:
        stmt = (
            update(EnrollmentRequestRow)
            .where(EnrollmentRequestRow.id == request.id)
            .values(
                email=request.email,
                status=request.status,
                processed_by=request.processed_by,
                processed_at=request.processed_at,
                created_student_id=request.created_student_id,
                notes=request.notes,
            )
        )
        async with store_errors("enrollment_request.update"):
            result = await self._session.execute(stmt)
        if result.rowcount == 0:
            raise KeyError("enrollment request not found")

    async def list_by_status(self, status: str | None) -> list[EnrollmentRequest]:
        stmt = select(EnrollmentRequestRow).order_by(
            EnrollmentRequestRow.created_at.desc()
        )
        if status is not None:
            stmt = stmt.where(EnrollmentRequestRow.status == status)
        async with store_errors("enrollment_request.list_by_status"):
            rows = (await self._session.execute(stmt)).scalars().all()
        return [_row_to_request(r) for r in rows]


def _row_to_enrollment(row: EnrollmentRow) -> Enrollment:
    return Enrollment(
        student_id=row.student_id,
        course_id=row.course_id,
        status=row.status,  # type: ignore[arg-type]
        created_at=row.created_at,
        updated_at=row.updated_at,
        completed_at=row.completed_at,
        needs_content=row.needs_content,
    )


def _row_to_request(row: EnrollmentRequestRow) -> EnrollmentRequest:
    return EnrollmentRequest(
        id=row.id,
        course_id=row.course_id,
        full_name=row.full_name,
        email=row.email,
        phone=row.phone,
        receipt_url=row.receipt_url,
        status=row.status,  # type: ignore[arg-type]
        created_at=row.created_at,
        processed_by=row.processed_by,
        processed_at=row.processed_at,
        created_student_id=row.created_student_id,
        notes=row.notes,
    )
