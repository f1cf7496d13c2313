"""Enrollment request workflow, certificates, and revocation.

Payment is confirmed by hand: an applicant uploads a receipt, an admin
looks at it and either verifies the request (which creates the student
account and activates the enrollment) or rejects it.
"""

from __future__ import annotations

import datetime
import logging
import re
from dataclasses import dataclass, replace
from uuid import UUID

from app.models.enrollment import Enrollment, EnrollmentRequest
from app.repos.catalog_repo import TopicCatalog
from app.repos.enrollment_repo import EnrollmentRepo, EnrollmentRequestRepo
from app.repos.progress_repo import ProgressLedger
from app.services import progress_service
from app.services.errors import (
    CourseNotFoundError,
    EnrollmentNotFoundError,
    EnrollmentRevokedError,
    EnrollmentValidationError,
    NoTopicsError,
    RequestAlreadyProcessedError,
    RequestNotFoundError,
)
from app.services.user_directory import UserDirectory

logger = logging.getLogger(__name__)

_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
_MIN_PASSWORD_LEN = 8


def _now() -> int:
    return int(datetime.datetime.now(datetime.UTC).timestamp())


def normalize_email(email: str) -> str:
    normalized = email.strip().lower()
    if not _EMAIL_RE.match(normalized):
        raise EnrollmentValidationError("invalid email address")
    return normalized


@dataclass(frozen=True, slots=True)
class VerificationResult:
    request: EnrollmentRequest
    student_id: str
    first_topic_id: UUID | None
    needs_content: bool


async def submit_request(
    catalog: TopicCatalog,
    requests: EnrollmentRequestRepo,
    *,
    course_id: UUID,
    full_name: str,
    email: str,
    phone: str | None = None,
    receipt_url: str | None = None,
) -> EnrollmentRequest:
    full_name = full_name.strip()
    if not full_name:
        raise EnrollmentValidationError("full_name must be non-empty")
    email = normalize_email(email)

    course = await catalog.get_course(course_id)
    if course is None or not course.is_active:
        raise CourseNotFoundError(str(course_id))

    request = EnrollmentRequest.new(
        course_id=course_id,
        full_name=full_name,
        email=email,
        phone=phone.strip() if phone else None,
        receipt_url=receipt_url,
        created_at=_now(),
    )
    await requests.add(request)
    logger.info(
        "Enrollment request submitted id=%s course=%s email=%s",
        request.id,
        course_id,
        email,
    )
    return request


async def _pending(requests: EnrollmentRequestRepo, request_id: UUID) -> EnrollmentRequest:
    request = await requests.get(request_id)
    if request is None:
        raise RequestNotFoundError(str(request_id))
    if request.status != "pending":
        logger.warning(
            "Rejected processing of %s request id=%s", request.status, request_id
        )
        raise RequestAlreadyProcessedError(str(request_id))
    return request


async def verify_request(
    catalog: TopicCatalog,
    ledger: ProgressLedger,
    enrollments: EnrollmentRepo,
    requests: EnrollmentRequestRepo,
    directory: UserDirectory,
    *,
    request_id: UUID,
    password: str,
    processed_by: str,
    final_email: str | None = None,
    notes: str | None = None,
) -> VerificationResult:
    """Approve a pending request and activate the new student.

    The admin may correct the applicant's email before the account is
    created.  A course with no topics yet does not block verification;
    the result reports needs_content instead.
    """
    request = await _pending(requests, request_id)
    email = normalize_email(final_email or request.email)
    if len(password) < _MIN_PASSWORD_LEN:
        raise EnrollmentValidationError(
            f"password must be at least {_MIN_PASSWORD_LEN} characters"
        )

    account = await directory.create_student(
        email=email,
        password=password,
        full_name=request.full_name,
        phone=request.phone,
    )

    first_topic_id: UUID | None = None
    needs_content = False
    try:
        first_topic_id = await progress_service.activate(
            catalog,
            ledger,
            enrollments,
            student_id=account.id,
            course_id=request.course_id,
        )
    except NoTopicsError:
        needs_content = True

    processed = replace(
        request,
        email=email,
        status="verified",
        processed_by=processed_by,
        processed_at=_now(),
        created_student_id=account.id,
        notes=notes,
    )
    await requests.update(processed)
    logger.info(
        "Verified enrollment request id=%s student=%s by=%s needs_content=%s",
        request_id,
        account.id,
        processed_by,
        needs_content,
    )
    return VerificationResult(
        request=processed,
        student_id=account.id,
        first_topic_id=first_topic_id,
        needs_content=needs_content,
    )


async def reject_request(
    requests: EnrollmentRequestRepo,
    *,
    request_id: UUID,
    reason: str,
    processed_by: str,
) -> EnrollmentRequest:
    request = await _pending(requests, request_id)
    reason = reason.strip()
    if not reason:
        raise EnrollmentValidationError("a rejection reason is required")

    processed = replace(
        request,
        status="rejected",
        processed_by=processed_by,
        processed_at=_now(),
        notes=reason,
    )
    await requests.update(processed)
    logger.info("Rejected enrollment request id=%s by=%s", request_id, processed_by)
    return processed


async def issue_certificate(
    enrollments: EnrollmentRepo,
    *,
    student_id: str,
    course_id: UUID,
) -> Enrollment:
    """Move an enrollment to completed.  Re-issuing returns it unchanged."""
    enrollment = await enrollments.get(student_id, course_id)
    if enrollment is None:
        raise EnrollmentNotFoundError(f"{student_id}/{course_id}")
    if enrollment.status == "revoked":
        raise EnrollmentRevokedError(f"{student_id}/{course_id}")
    if enrollment.status == "completed":
        return enrollment

    updated = await enrollments.set_status(student_id, course_id, "completed", now=_now())
    if updated is None:
        raise EnrollmentNotFoundError(f"{student_id}/{course_id}")
    logger.info("Certificate issued student=%s course=%s", student_id, course_id)
    return updated


async def revoke_enrollment(
    enrollments: EnrollmentRepo,
    *,
    student_id: str,
    course_id: UUID,
) -> Enrollment:
    updated = await enrollments.set_status(student_id, course_id, "revoked", now=_now())
    if updated is None:
        raise EnrollmentNotFoundError(f"{student_id}/{course_id}")
    logger.info("Enrollment revoked student=%s course=%s", student_id, course_id)
    return updated


async def require_enrollment(
    enrollments: EnrollmentRepo,
    *,
    student_id: str,
    course_id: UUID,
) -> Enrollment:
    """Return the caller's enrollment, refusing revoked or missing ones."""
    enrollment = await enrollments.get(student_id, course_id)
    if enrollment is None:
        raise EnrollmentNotFoundError(f"{student_id}/{course_id}")
    if enrollment.status == "revoked":
        raise EnrollmentRevokedError(f"{student_id}/{course_id}")
    return enrollment
