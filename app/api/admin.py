"""Admin and instructor endpoints.

Reports and per-student progress are visible to staff (admin or
instructor).  Anything that changes a student's access is admin only.
"""

from __future__ import annotations

import logging
from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel

from app.api.dependencies import require_any_role, require_role
from app.api.progress import CourseProgressOut, course_progress_out
from app.api.stores import Stores, get_stores
from app.models.enrollment import Enrollment
from app.models.principal import STAFF_ROLES, Principal
from app.models.progress import StudentProgressSummary
from app.services import enrollment_service, progress_service, report_service
from app.services.cache import report_cache
from app.services.errors import (
    EnrollmentNotFoundError,
    EnrollmentRevokedError,
    TopicNotFoundError,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/admin", tags=["admin"])


class EnrollmentOut(BaseModel):
    student_id: str
    course_id: UUID
    status: str
    created_at: int
    updated_at: int
    completed_at: int | None
    needs_content: bool


class UnlockIn(BaseModel):
    student_id: str
    course_id: UUID
    topic_id: UUID


class UnlockOut(BaseModel):
    student_id: str
    course_id: UUID
    unlocked_topic_ids: list[UUID]


class CertificateIn(BaseModel):
    student_id: str
    course_id: UUID


class CurrentTopicOut(BaseModel):
    topic_id: UUID
    title: str
    is_completed: bool


class StudentSummaryOut(BaseModel):
    student_id: str
    name: str
    email: str
    status: str
    completed_count: int
    total_topics: int
    progress_percent: int
    current_topic: CurrentTopicOut | None
    last_activity_at: int | None


class StudentOverviewOut(BaseModel):
    student_id: str
    courses: list[CourseProgressOut]


def _enrollment_out(e: Enrollment) -> EnrollmentOut:
    return EnrollmentOut(
        student_id=e.student_id,
        course_id=e.course_id,
        status=e.status,
        created_at=e.created_at,
        updated_at=e.updated_at,
        completed_at=e.completed_at,
        needs_content=e.needs_content,
    )


def _summary_out(s: StudentProgressSummary) -> StudentSummaryOut:
    current = None
    if s.current_topic is not None:
        current = CurrentTopicOut(
            topic_id=s.current_topic.topic_id,
            title=s.current_topic.title,
            is_completed=s.current_topic.is_completed,
        )
    return StudentSummaryOut(
        student_id=s.student_id,
        name=s.name,
        email=s.email,
        status=s.status,
        completed_count=s.completed_count,
        total_topics=s.total_topics,
        progress_percent=s.progress_percent,
        current_topic=current,
        last_activity_at=s.last_activity_at,
    )


@router.post(
    "/enrollments/{course_id}/{student_id}/revoke",
    response_model=EnrollmentOut,
)
async def revoke_enrollment(
    course_id: UUID,
    student_id: str,
    principal: Annotated[Principal, Depends(require_role("admin"))],
    stores: Annotated[Stores, Depends(get_stores)],
) -> EnrollmentOut:
    try:
        enrollment = await enrollment_service.revoke_enrollment(
            stores.enrollments, student_id=student_id, course_id=course_id
        )
    except EnrollmentNotFoundError:
        raise HTTPException(status_code=404, detail="enrollment not found") from None

    await stores.commit()
    await report_cache.invalidate(course_id)
    logger.info(
        "Admin %s revoked student=%s course=%s", principal.user_id, student_id, course_id
    )
    return _enrollment_out(enrollment)


@router.post("/progress/unlock", response_model=UnlockOut)
async def unlock_topic(
    body: UnlockIn,
    principal: Annotated[Principal, Depends(require_role("admin"))],
    stores: Annotated[Stores, Depends(get_stores)],
) -> UnlockOut:
    """Grant access to a topic out of band.  Earlier locked topics open too."""
    try:
        await enrollment_service.require_enrollment(
            stores.enrollments, student_id=body.student_id, course_id=body.course_id
        )
        unlocked = await progress_service.unlock_through(
            stores.catalog,
            stores.ledger,
            student_id=body.student_id,
            course_id=body.course_id,
            topic_id=body.topic_id,
        )
    except EnrollmentNotFoundError:
        raise HTTPException(status_code=404, detail="enrollment not found") from None
    except EnrollmentRevokedError:
        raise HTTPException(status_code=409, detail="enrollment revoked") from None
    except TopicNotFoundError:
        raise HTTPException(status_code=404, detail="topic not found") from None

    await stores.commit()
    if unlocked:
        await report_cache.invalidate(body.course_id)
    logger.info(
        "Admin %s unlocked %d topic(s) for student=%s",
        principal.user_id,
        len(unlocked),
        body.student_id,
    )
    return UnlockOut(
        student_id=body.student_id,
        course_id=body.course_id,
        unlocked_topic_ids=unlocked,
    )


@router.get("/students/{student_id}/progress", response_model=StudentOverviewOut)
async def student_progress(
    student_id: str,
    _principal: Annotated[Principal, Depends(require_any_role(STAFF_ROLES))],
    stores: Annotated[Stores, Depends(get_stores)],
) -> StudentOverviewOut:
    courses = await report_service.student_overview(
        stores.catalog, stores.ledger, stores.enrollments, student_id=student_id
    )
    return StudentOverviewOut(
        student_id=student_id,
        courses=[course_progress_out(c) for c in courses],
    )


@router.get(
    "/reports/course-progress/{course_id}",
    response_model=list[StudentSummaryOut],
)
async def course_progress_report(
    course_id: UUID,
    _principal: Annotated[Principal, Depends(require_any_role(STAFF_ROLES))],
    stores: Annotated[Stores, Depends(get_stores)],
) -> list[StudentSummaryOut]:
    cached = await report_cache.get(course_id)
    if cached is not None:
        return [StudentSummaryOut.model_validate(row) for row in cached]

    if await stores.catalog.get_course(course_id) is None:
        raise HTTPException(status_code=404, detail="course not found")

    summaries = await report_service.course_report(
        stores.catalog,
        stores.ledger,
        stores.enrollments,
        stores.directory,
        course_id=course_id,
    )
    rows = [_summary_out(s) for s in summaries]
    await report_cache.set(course_id, [r.model_dump(mode="json") for r in rows])
    return rows


@router.post("/certificates/issue", response_model=EnrollmentOut)
async def issue_certificate(
    body: CertificateIn,
    principal: Annotated[Principal, Depends(require_role("admin"))],
    stores: Annotated[Stores, Depends(get_stores)],
) -> EnrollmentOut:
    try:
        enrollment = await enrollment_service.issue_certificate(
            stores.enrollments, student_id=body.student_id, course_id=body.course_id
        )
    except EnrollmentNotFoundError:
        raise HTTPException(status_code=404, detail="enrollment not found") from None
    except EnrollmentRevokedError:
        raise HTTPException(status_code=409, detail="enrollment revoked") from None

    await stores.commit()
    await report_cache.invalidate(body.course_id)
    logger.info(
        "Admin %s issued certificate student=%s course=%s",
        principal.user_id,
        body.student_id,
        body.course_id,
    )
    return _enrollment_out(enrollment)
