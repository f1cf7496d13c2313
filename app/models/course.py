from __future__ import annotations

from dataclasses import dataclass
from uuid import UUID, uuid4


@dataclass(frozen=True, slots=True)
class Course:
    id: UUID
    slug: str
    title: str
    description: str | None = None
    is_active: bool = True
    created_by: str | None = None

    @staticmethod
    def new(
        *,
        slug: str,
        title: str,
        description: str | None = None,
        created_by: str | None = None,
    ) -> Course:
        return Course(
            id=uuid4(),
            slug=slug,
            title=title,
            description=description,
            created_by=created_by,
        )


@dataclass(frozen=True, slots=True)
class Topic:
    """An ordered unit of course content.

    order_index is unique within a course and defines the unlock order.
    """

    id: UUID
    course_id: UUID
    title: str
    order_index: int
    is_preview: bool = False

    @staticmethod
    def new(
        *, course_id: UUID, title: str, order_index: int, is_preview: bool = False
    ) -> Topic:
        return Topic(
            id=uuid4(),
            course_id=course_id,
            title=title,
            order_index=order_index,
            is_preview=is_preview,
        )

    @property
    def sort_key(self) -> tuple[int, str]:
        # lowest id wins among duplicate order_index values
        return (self.order_index, str(self.id))
