"""Enrollment request endpoints.

Flow:
  applicant -> POST /v1/enrollment-requests          (pending, receipt attached)
  admin     -> POST /v1/admin/enrollment-requests/{id}/verify
            -> student account created, enrollment activated, first topic unlocked
  admin     -> POST /v1/admin/enrollment-requests/{id}/reject
"""

from __future__ import annotations

from typing import Annotated, Literal
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, Field

from app.api.dependencies import require_role
from app.api.stores import Stores, get_stores
from app.models.enrollment import EnrollmentRequest
from app.models.principal import Principal
from app.services import enrollment_service
from app.services.cache import report_cache
from app.services.errors import (
    CourseNotFoundError,
    EnrollmentValidationError,
    RequestAlreadyProcessedError,
    RequestNotFoundError,
    StudentAlreadyExistsError,
)

router = APIRouter(tags=["enrollments"])


class EnrollmentRequestIn(BaseModel):
    course_id: UUID
    full_name: str = Field(min_length=1, max_length=255)
    email: str = Field(min_length=3, max_length=320)
    phone: str | None = Field(default=None, max_length=64)
    receipt_url: str | None = None


class EnrollmentRequestOut(BaseModel):
    id: UUID
    course_id: UUID
    full_name: str
    email: str
    phone: str | None
    receipt_url: str | None
    status: str
    created_at: int
    processed_by: str | None
    processed_at: int | None
    created_student_id: str | None
    notes: str | None


class VerifyIn(BaseModel):
    password: str = Field(min_length=8, max_length=128)
    final_email: str | None = None
    notes: str | None = None


class VerifyOut(BaseModel):
    request: EnrollmentRequestOut
    student_id: str
    first_topic_id: UUID | None
    needs_content: bool


class RejectIn(BaseModel):
    reason: str = Field(min_length=1, max_length=2000)


def _request_out(r: EnrollmentRequest) -> EnrollmentRequestOut:
    return EnrollmentRequestOut(
        id=r.id,
        course_id=r.course_id,
        full_name=r.full_name,
        email=r.email,
        phone=r.phone,
        receipt_url=r.receipt_url,
        status=r.status,
        created_at=r.created_at,
        processed_by=r.processed_by,
        processed_at=r.processed_at,
        created_student_id=r.created_student_id,
        notes=r.notes,
    )


@router.post(
    "/v1/enrollment-requests",
    response_model=EnrollmentRequestOut,
    status_code=status.HTTP_201_CREATED,
)
async def submit_enrollment_request(
    body: EnrollmentRequestIn,
    stores: Annotated[Stores, Depends(get_stores)],
) -> EnrollmentRequestOut:
    try:
        request = await enrollment_service.submit_request(
            stores.catalog,
            stores.requests,
            course_id=body.course_id,
            full_name=body.full_name,
            email=body.email,
            phone=body.phone,
            receipt_url=body.receipt_url,
        )
    except EnrollmentValidationError as e:
        raise HTTPException(status_code=422, detail=str(e)) from None
    except CourseNotFoundError:
        raise HTTPException(status_code=404, detail="course not found") from None
    await stores.commit()
    return _request_out(request)


@router.get(
    "/v1/admin/enrollment-requests",
    response_model=list[EnrollmentRequestOut],
)
async def list_enrollment_requests(
    _principal: Annotated[Principal, Depends(require_role("admin"))],
    stores: Annotated[Stores, Depends(get_stores)],
    request_status: Annotated[
        Literal["pending", "verified", "rejected"] | None, Query(alias="status")
    ] = "pending",
) -> list[EnrollmentRequestOut]:
    return [_request_out(r) for r in await stores.requests.list_by_status(request_status)]


@router.post(
    "/v1/admin/enrollment-requests/{request_id}/verify",
    response_model=VerifyOut,
)
async def verify_enrollment_request(
    request_id: UUID,
    body: VerifyIn,
    principal: Annotated[Principal, Depends(require_role("admin"))],
    stores: Annotated[Stores, Depends(get_stores)],
) -> VerifyOut:
    try:
        result = await enrollment_service.verify_request(
            stores.catalog,
            stores.ledger,
            stores.enrollments,
            stores.requests,
            stores.directory,
            request_id=request_id,
            password=body.password,
            processed_by=principal.user_id,
            final_email=body.final_email,
            notes=body.notes,
        )
    except RequestNotFoundError:
        raise HTTPException(status_code=404, detail="request not found") from None
    except RequestAlreadyProcessedError:
        raise HTTPException(status_code=409, detail="request already processed") from None
    except StudentAlreadyExistsError:
        raise HTTPException(
            status_code=409, detail="a student with this email already exists"
        ) from None
    except EnrollmentValidationError as e:
        raise HTTPException(status_code=422, detail=str(e)) from None

    await stores.commit()
    await report_cache.invalidate(result.request.course_id)
    return VerifyOut(
        request=_request_out(result.request),
        student_id=result.student_id,
        first_topic_id=result.first_topic_id,
        needs_content=result.needs_content,
    )


@router.post(
    "/v1/admin/enrollment-requests/{request_id}/reject",
    response_model=EnrollmentRequestOut,
)
async def reject_enrollment_request(
    request_id: UUID,
    body: RejectIn,
    principal: Annotated[Principal, Depends(require_role("admin"))],
    stores: Annotated[Stores, Depends(get_stores)],
) -> EnrollmentRequestOut:
    try:
        request = await enrollment_service.reject_request(
            stores.requests,
            request_id=request_id,
            reason=body.reason,
            processed_by=principal.user_id,
        )
    except RequestNotFoundError:
        raise HTTPException(status_code=404, detail="request not found") from None
    except RequestAlreadyProcessedError:
        raise HTTPException(status_code=409, detail="request already processed") from None
    except EnrollmentValidationError as e:
        raise HTTPException(status_code=422, detail=str(e)) from None
    await stores.commit()
    return _request_out(request)
