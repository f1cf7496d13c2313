"""PostgreSQL implementation of TopicCatalog."""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.engine import store_errors
from app.db.tables import CourseRow, TopicRow
from app.models.course import Course, Topic
from app.services.errors import DuplicateOrderIndexError


class PgCatalogRepo:
    """Satisfies the TopicCatalog Protocol using PostgreSQL via SQLAlchemy."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get_course(self, course_id: UUID) -> Course | None:
        async with store_errors("get_course"):
            row = await self._session.get(CourseRow, course_id)
        return _row_to_course(row) if row is not None else None

    async def list_courses(self) -> list[Course]:
        stmt = select(CourseRow).order_by(CourseRow.slug)
        async with store_errors("list_courses"):
            rows = (await self._session.execute(stmt)).scalars().all()
        return [_row_to_course(r) for r in rows]

    async def add_course(self, course: Course) -> None:
        self._session.add(
            CourseRow(
                id=course.id,
                slug=course.slug,
                title=course.title,
                description=course.description,
                is_active=course.is_active,
                created_by=course.created_by,
            )
        )
        async with store_errors("add_course"):
            try:
                await self._session.flush()
            except IntegrityError:
                await self._session.rollback()
                raise ValueError("slug already exists") from None

    async def get_topic(self, topic_id: UUID) -> Topic | None:
        async with store_errors("get_topic"):
            row = await self._session.get(TopicRow, topic_id)
        return _row_to_topic(row) if row is not None else None

    async def list_topics(self, course_id: UUID) -> list[Topic]:
        stmt = select(TopicRow).where(TopicRow.course_id == course_id)
        async with store_errors("list_topics"):
            rows = (await self._session.execute(stmt)).scalars().all()
        # id tie-break uses the string form, same as Topic.sort_key
        return sorted((_row_to_topic(r) for r in rows), key=lambda t: t.sort_key)

    async def add_topic(self, topic: Topic) -> None:
        self._session.add(
            TopicRow(
                id=topic.id,
                course_id=topic.course_id,
                title=topic.title,
                order_index=topic.order_index,
                is_preview=topic.is_preview,
            )
        )
        async with store_errors("add_topic"):
            try:
                await self._session.flush()
            except IntegrityError:
                await self._session.rollback()
                raise DuplicateOrderIndexError(
                    f"order_index {topic.order_index} already used in this course"
                ) from None


def _row_to_course(row: CourseRow) -> Course:
    return Course(
        id=row.id,
        slug=row.slug,
        title=row.title,
        description=row.description,
        is_active=row.is_active,
        created_by=row.created_by,
    )


def _row_to_topic(row: TopicRow) -> Topic:
    return Topic(
        id=row.id,
        course_id=row.course_id,
        title=row.title,
        order_index=row.order_index,
        is_preview=row.is_preview,
    )
