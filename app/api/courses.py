"""Course catalog endpoints.

Any authenticated user can browse courses and their ordered topics.
Only admins create them.  A topic's order_index is unique within its
course and fixes its place in the unlock sequence.
"""

from __future__ import annotations

import logging
from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, Field

from app.api.dependencies import require_role, require_user
from app.api.stores import Stores, get_stores
from app.models.course import Course, Topic
from app.models.principal import Principal
from app.services.cache import report_cache
from app.services.errors import DuplicateOrderIndexError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/courses", tags=["courses"])


class CourseIn(BaseModel):
    slug: str = Field(min_length=1, max_length=255, pattern=r"^[a-z0-9][a-z0-9-]*$")
    title: str = Field(min_length=1, max_length=500)
    description: str | None = None


class CourseOut(BaseModel):
    id: UUID
    slug: str
    title: str
    description: str | None
    is_active: bool


class TopicIn(BaseModel):
    title: str = Field(min_length=1, max_length=500)
    order_index: int = Field(ge=0)
    is_preview: bool = False


class TopicOut(BaseModel):
    id: UUID
    course_id: UUID
    title: str
    order_index: int
    is_preview: bool


def _course_out(c: Course) -> CourseOut:
    return CourseOut(
        id=c.id,
        slug=c.slug,
        title=c.title,
        description=c.description,
        is_active=c.is_active,
    )


def _topic_out(t: Topic) -> TopicOut:
    return TopicOut(
        id=t.id,
        course_id=t.course_id,
        title=t.title,
        order_index=t.order_index,
        is_preview=t.is_preview,
    )


@router.get("", response_model=list[CourseOut])
async def list_courses(
    _principal: Annotated[Principal, Depends(require_user)],
    stores: Annotated[Stores, Depends(get_stores)],
) -> list[CourseOut]:
    return [_course_out(c) for c in await stores.catalog.list_courses() if c.is_active]


@router.post("", response_model=CourseOut, status_code=status.HTTP_201_CREATED)
async def create_course(
    body: CourseIn,
    principal: Annotated[Principal, Depends(require_role("admin"))],
    stores: Annotated[Stores, Depends(get_stores)],
) -> CourseOut:
    course = Course.new(
        slug=body.slug,
        title=body.title.strip(),
        description=body.description,
        created_by=principal.user_id,
    )
    try:
        await stores.catalog.add_course(course)
    except ValueError:
        raise HTTPException(status_code=409, detail="slug already exists") from None
    await stores.commit()
    logger.info("Course created id=%s slug=%s by=%s", course.id, course.slug, principal.user_id)
    return _course_out(course)


@router.get("/{course_id}/topics", response_model=list[TopicOut])
async def list_topics(
    course_id: UUID,
    _principal: Annotated[Principal, Depends(require_user)],
    stores: Annotated[Stores, Depends(get_stores)],
) -> list[TopicOut]:
    if await stores.catalog.get_course(course_id) is None:
        raise HTTPException(status_code=404, detail="course not found")
    return [_topic_out(t) for t in await stores.catalog.list_topics(course_id)]


@router.post(
    "/{course_id}/topics",
    response_model=TopicOut,
    status_code=status.HTTP_201_CREATED,
)
async def create_topic(
    course_id: UUID,
    body: TopicIn,
    principal: Annotated[Principal, Depends(require_role("admin"))],
    stores: Annotated[Stores, Depends(get_stores)],
) -> TopicOut:
    if await stores.catalog.get_course(course_id) is None:
        raise HTTPException(status_code=404, detail="course not found")

    topic = Topic.new(
        course_id=course_id,
        title=body.title.strip(),
        order_index=body.order_index,
        is_preview=body.is_preview,
    )
    try:
        await stores.catalog.add_topic(topic)
    except DuplicateOrderIndexError as e:
        raise HTTPException(status_code=409, detail=str(e)) from None

    # total_topics changed for every student in the course
    await stores.commit()
    await report_cache.invalidate(course_id)
    logger.info(
        "Topic created id=%s course=%s order_index=%d by=%s",
        topic.id,
        course_id,
        topic.order_index,
        principal.user_id,
    )
    return _topic_out(topic)
