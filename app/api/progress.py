"""Student-facing progress endpoints.

The caller's student_id is always the JWT subject.  Every endpoint here
requires a non-revoked enrollment in the course.
"""

from __future__ import annotations

import logging
from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel

from app.api.dependencies import require_user
from app.api.stores import Stores, get_stores
from app.models.enrollment import Enrollment
from app.models.principal import Principal
from app.models.progress import StudentCourseProgress
from app.services import enrollment_service, progress_service, report_service
from app.services.cache import report_cache
from app.services.errors import (
    CourseNotFoundError,
    EnrollmentNotFoundError,
    EnrollmentRevokedError,
    NotAccessibleError,
    TopicNotCompletedError,
    TopicNotFoundError,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/progress", tags=["progress"])


class TopicStatusOut(BaseModel):
    topic_id: UUID
    title: str
    order_index: int
    is_preview: bool
    is_unlocked: bool
    is_completed: bool


class CourseProgressOut(BaseModel):
    course_id: UUID
    course_title: str
    enrollment_status: str
    completed_count: int
    total_topics: int
    progress_percent: int
    consistent: bool
    topics: list[TopicStatusOut]


class TopicAccessOut(BaseModel):
    topic_id: UUID
    can_view: bool


class CompletionOut(BaseModel):
    topic_id: UUID
    is_completed: bool
    next_topic_id: UUID | None


class CertificateOut(BaseModel):
    student_id: str
    student_name: str
    course_id: UUID
    course_title: str
    completed_at: int | None


class AttemptOut(BaseModel):
    id: UUID
    test_id: UUID
    marks_obtained: int
    total_marks: int
    percent: float
    status: str
    graded_at: int | None


def course_progress_out(p: StudentCourseProgress) -> CourseProgressOut:
    return CourseProgressOut(
        course_id=p.course_id,
        course_title=p.course_title,
        enrollment_status=p.enrollment_status,
        completed_count=p.completed_count,
        total_topics=len(p.topics),
        progress_percent=p.progress_percent,
        consistent=p.consistent,
        topics=[
            TopicStatusOut(
                topic_id=t.topic_id,
                title=t.title,
                order_index=t.order_index,
                is_preview=t.is_preview,
                is_unlocked=t.is_unlocked,
                is_completed=t.is_completed,
            )
            for t in p.topics
        ],
    )


async def _enrollment(stores: Stores, principal: Principal, course_id: UUID) -> Enrollment:
    try:
        return await enrollment_service.require_enrollment(
            stores.enrollments, student_id=principal.user_id, course_id=course_id
        )
    except EnrollmentNotFoundError:
        raise HTTPException(status_code=403, detail="not enrolled in this course") from None
    except EnrollmentRevokedError:
        raise HTTPException(status_code=403, detail="enrollment revoked") from None


@router.get("/{course_id}", response_model=CourseProgressOut)
async def get_my_progress(
    course_id: UUID,
    principal: Annotated[Principal, Depends(require_user)],
    stores: Annotated[Stores, Depends(get_stores)],
) -> CourseProgressOut:
    enrollment = await _enrollment(stores, principal, course_id)
    try:
        progress = await report_service.course_progress_for(
            stores.catalog, stores.ledger, enrollment
        )
    except CourseNotFoundError:
        raise HTTPException(status_code=404, detail="course not found") from None
    return course_progress_out(progress)


@router.get("/{course_id}/topics/{topic_id}/access", response_model=TopicAccessOut)
async def check_topic_access(
    course_id: UUID,
    topic_id: UUID,
    principal: Annotated[Principal, Depends(require_user)],
    stores: Annotated[Stores, Depends(get_stores)],
) -> TopicAccessOut:
    await _enrollment(stores, principal, course_id)
    try:
        can_view = await progress_service.can_view_topic(
            stores.catalog,
            stores.ledger,
            student_id=principal.user_id,
            course_id=course_id,
            topic_id=topic_id,
        )
    except TopicNotFoundError:
        raise HTTPException(status_code=404, detail="topic not found") from None
    return TopicAccessOut(topic_id=topic_id, can_view=can_view)


@router.post("/{course_id}/topics/{topic_id}/complete", response_model=CompletionOut)
async def complete_topic(
    course_id: UUID,
    topic_id: UUID,
    principal: Annotated[Principal, Depends(require_user)],
    stores: Annotated[Stores, Depends(get_stores)],
) -> CompletionOut:
    """Self-report completion and unlock the next topic."""
    await _enrollment(stores, principal, course_id)
    try:
        await progress_service.mark_completed(
            stores.catalog,
            stores.ledger,
            student_id=principal.user_id,
            course_id=course_id,
            topic_id=topic_id,
            source="self_report",
        )
        next_topic_id = await progress_service.advance(
            stores.catalog,
            stores.ledger,
            student_id=principal.user_id,
            course_id=course_id,
            completed_topic_id=topic_id,
        )
    except TopicNotFoundError:
        raise HTTPException(status_code=404, detail="topic not found") from None
    except NotAccessibleError:
        raise HTTPException(status_code=403, detail="topic is locked") from None
    except TopicNotCompletedError:
        raise HTTPException(status_code=409, detail="topic not completed") from None

    await stores.commit()
    await report_cache.invalidate(course_id)
    return CompletionOut(topic_id=topic_id, is_completed=True, next_topic_id=next_topic_id)


@router.get("/{course_id}/certificate", response_model=CertificateOut)
async def get_certificate(
    course_id: UUID,
    principal: Annotated[Principal, Depends(require_user)],
    stores: Annotated[Stores, Depends(get_stores)],
) -> CertificateOut:
    enrollment = await _enrollment(stores, principal, course_id)
    if enrollment.status != "completed":
        raise HTTPException(status_code=404, detail="certificate not issued")

    course = await stores.catalog.get_course(course_id)
    if course is None:
        raise HTTPException(status_code=404, detail="course not found")
    account = await stores.directory.get(principal.user_id)
    return CertificateOut(
        student_id=principal.user_id,
        student_name=account.full_name if account else "Unknown",
        course_id=course.id,
        course_title=course.title,
        completed_at=enrollment.completed_at,
    )


@router.get("/{course_id}/attempts", response_model=list[AttemptOut])
async def list_my_attempts(
    course_id: UUID,
    principal: Annotated[Principal, Depends(require_user)],
    stores: Annotated[Stores, Depends(get_stores)],
) -> list[AttemptOut]:
    await _enrollment(stores, principal, course_id)
    attempts = await stores.assessments.list_attempts(principal.user_id, course_id)
    return [
        AttemptOut(
            id=a.id,
            test_id=a.test_id,
            marks_obtained=a.marks_obtained,
            total_marks=a.total_marks,
            percent=round(a.percent, 2),
            status=a.status,
            graded_at=a.graded_at,
        )
        for a in attempts
    ]
