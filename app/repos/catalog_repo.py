from __future__ import annotations

from typing import Protocol
from uuid import UUID

from app.models.course import Course, Topic
from app.services.errors import DuplicateOrderIndexError


class TopicCatalog(Protocol):
    async def get_course(self, course_id: UUID) -> Course | None: ...
    async def list_courses(self) -> list[Course]: ...
    async def add_course(self, course: Course) -> None: ...
    async def get_topic(self, topic_id: UUID) -> Topic | None: ...
    async def list_topics(self, course_id: UUID) -> list[Topic]: ...
    async def add_topic(self, topic: Topic) -> None: ...


class InMemoryCatalogRepo:
    def __init__(self) -> None:
        self._courses: dict[UUID, Course] = {}
        self._topics: dict[UUID, Topic] = {}

    async def get_course(self, course_id: UUID) -> Course | None:
        return self._courses.get(course_id)

    async def list_courses(self) -> list[Course]:
        return sorted(self._courses.values(), key=lambda c: c.slug)

    async def add_course(self, course: Course) -> None:
        if any(c.slug == course.slug for c in self._courses.values()):
            raise ValueError("slug already exists")
        self._courses[course.id] = course

    async def get_topic(self, topic_id: UUID) -> Topic | None:
        return self._topics.get(topic_id)

    async def list_topics(self, course_id: UUID) -> list[Topic]:
        topics = [t for t in self._topics.values() if t.course_id == course_id]
        return sorted(topics, key=lambda t: t.sort_key)

    async def add_topic(self, topic: Topic) -> None:
        for existing in self._topics.values():
            if (
                existing.course_id == topic.course_id
                and existing.order_index == topic.order_index
            ):
                raise DuplicateOrderIndexError(
                    f"order_index {topic.order_index} already used in this course"
                )
        self._topics[topic.id] = topic
