"""Test and grading endpoints.

A test belongs to one topic.  Grading always completes that topic for
the student; the next topic unlocks only on a passing score.
"""

from __future__ import annotations

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, Field

from app.api.dependencies import require_any_role, require_role, require_user
from app.api.stores import Stores, get_stores
from app.models.assessment import Test
from app.models.principal import STAFF_ROLES, Principal
from app.services import grading_service
from app.services.cache import report_cache
from app.services.errors import (
    CourseNotFoundError,
    EnrollmentNotFoundError,
    EnrollmentRevokedError,
    GradingValidationError,
    NotAccessibleError,
    TestNotFoundError,
    TopicNotFoundError,
)

router = APIRouter(tags=["assessments"])


class TestIn(BaseModel):
    course_id: UUID
    topic_id: UUID
    title: str = Field(min_length=1, max_length=500)
    scheduled_at: int | None = None


class TestOut(BaseModel):
    id: UUID
    course_id: UUID
    topic_id: UUID
    title: str
    scheduled_at: int | None


class GradeIn(BaseModel):
    student_id: str
    marks_obtained: int
    total_marks: int


class GradeOut(BaseModel):
    attempt_id: UUID
    test_id: UUID
    student_id: str
    marks_obtained: int
    total_marks: int
    percent: float
    passed: bool
    next_topic_id: UUID | None


def _test_out(t: Test) -> TestOut:
    return TestOut(
        id=t.id,
        course_id=t.course_id,
        topic_id=t.topic_id,
        title=t.title,
        scheduled_at=t.scheduled_at,
    )


@router.get("/v1/tests", response_model=list[TestOut])
async def list_tests(
    course_id: Annotated[UUID, Query()],
    _principal: Annotated[Principal, Depends(require_user)],
    stores: Annotated[Stores, Depends(get_stores)],
) -> list[TestOut]:
    return [_test_out(t) for t in await stores.assessments.list_tests(course_id)]


@router.post(
    "/v1/admin/tests",
    response_model=TestOut,
    status_code=status.HTTP_201_CREATED,
)
async def create_test(
    body: TestIn,
    _principal: Annotated[Principal, Depends(require_role("admin"))],
    stores: Annotated[Stores, Depends(get_stores)],
) -> TestOut:
    try:
        test = await grading_service.create_test(
            stores.catalog,
            stores.assessments,
            course_id=body.course_id,
            topic_id=body.topic_id,
            title=body.title,
            scheduled_at=body.scheduled_at,
        )
    except CourseNotFoundError:
        raise HTTPException(status_code=404, detail="course not found") from None
    except TopicNotFoundError:
        raise HTTPException(status_code=404, detail="topic not found") from None
    await stores.commit()
    return _test_out(test)


@router.post("/v1/admin/tests/{test_id}/grade", response_model=GradeOut)
async def grade_attempt(
    test_id: UUID,
    body: GradeIn,
    principal: Annotated[Principal, Depends(require_any_role(STAFF_ROLES))],
    stores: Annotated[Stores, Depends(get_stores)],
) -> GradeOut:
    try:
        outcome = await grading_service.grade_attempt(
            stores.catalog,
            stores.ledger,
            stores.assessments,
            stores.enrollments,
            test_id=test_id,
            student_id=body.student_id,
            marks_obtained=body.marks_obtained,
            total_marks=body.total_marks,
            graded_by=principal.user_id,
        )
    except GradingValidationError as e:
        raise HTTPException(status_code=422, detail=str(e)) from None
    except TestNotFoundError:
        raise HTTPException(status_code=404, detail="test not found") from None
    except EnrollmentNotFoundError:
        raise HTTPException(status_code=404, detail="enrollment not found") from None
    except EnrollmentRevokedError:
        raise HTTPException(status_code=409, detail="enrollment revoked") from None
    except TopicNotFoundError:
        raise HTTPException(status_code=404, detail="topic not found") from None
    except NotAccessibleError:
        raise HTTPException(
            status_code=403, detail="topic is locked for this student"
        ) from None

    await stores.commit()
    await report_cache.invalidate(outcome.course_id)
    attempt = outcome.attempt
    return GradeOut(
        attempt_id=attempt.id,
        test_id=attempt.test_id,
        student_id=attempt.student_id,
        marks_obtained=attempt.marks_obtained,
        total_marks=attempt.total_marks,
        percent=round(attempt.percent, 2),
        passed=outcome.passed,
        next_topic_id=outcome.next_topic_id,
    )
