from __future__ import annotations

import asyncio
from uuid import uuid4

import pytest

from app.api.stores import Stores, in_memory_stores
from app.models.course import Course, Topic
from app.services import enrollment_service
from app.services.errors import (
    CourseNotFoundError,
    EnrollmentNotFoundError,
    EnrollmentRevokedError,
    EnrollmentValidationError,
    RequestAlreadyProcessedError,
    RequestNotFoundError,
    StudentAlreadyExistsError,
)
from app.services.user_directory import verify_password


def _setup(topic_count: int = 2) -> tuple[Stores, Course, list[Topic]]:
    s = in_memory_stores()
    course = Course.new(slug="intro", title="Intro")
    topics = [
        Topic.new(course_id=course.id, title=f"T{i}", order_index=i)
        for i in range(1, topic_count + 1)
    ]

    async def seed() -> None:
        await s.catalog.add_course(course)
        for t in topics:
            await s.catalog.add_topic(t)

    asyncio.run(seed())
    return s, course, topics


def _submit(s: Stores, course: Course, email: str = "  Ada@Example.COM "):
    return asyncio.run(
        enrollment_service.submit_request(
            s.catalog,
            s.requests,
            course_id=course.id,
            full_name="Ada Lovelace",
            email=email,
            receipt_url="https://files.example.com/receipts/1.jpg",
        )
    )


def _verify(s: Stores, request_id, **kwargs):
    kwargs.setdefault("password", "s3cret-pass")
    kwargs.setdefault("processed_by", "admin-1")
    return asyncio.run(
        enrollment_service.verify_request(
            s.catalog,
            s.ledger,
            s.enrollments,
            s.requests,
            s.directory,
            request_id=request_id,
            **kwargs,
        )
    )


# ---- submit ----


def test_submit_normalizes_email_and_starts_pending() -> None:
    s, course, _ = _setup()
    request = _submit(s, course)
    assert request.email == "ada@example.com"
    assert request.status == "pending"
    assert asyncio.run(s.requests.list_by_status("pending")) == [request]


def test_submit_rejects_bad_email() -> None:
    s, course, _ = _setup()
    with pytest.raises(EnrollmentValidationError):
        _submit(s, course, email="not-an-email")


def test_submit_requires_existing_course() -> None:
    s, _, _ = _setup()
    with pytest.raises(CourseNotFoundError):
        _submit(s, Course.new(slug="nope", title="Nope"))


# ---- verify ----


def test_verify_creates_student_and_unlocks_first_topic() -> None:
    s, course, topics = _setup()
    request = _submit(s, course)

    result = _verify(s, request.id, notes="receipt ok")

    assert result.first_topic_id == topics[0].id
    assert result.needs_content is False
    assert result.request.status == "verified"
    assert result.request.processed_by == "admin-1"
    assert result.request.created_student_id == result.student_id
    assert result.request.notes == "receipt ok"

    account = asyncio.run(s.directory.get(result.student_id))
    assert account.email == "ada@example.com"
    assert verify_password("s3cret-pass", account.password_hash)

    record = asyncio.run(s.ledger.get(result.student_id, course.id, topics[0].id))
    assert record.is_unlocked is True


def test_verify_uses_corrected_email() -> None:
    s, course, _ = _setup()
    request = _submit(s, course)
    result = _verify(s, request.id, final_email="ada.l@example.com")
    assert result.request.email == "ada.l@example.com"


def test_verify_course_without_topics_reports_needs_content() -> None:
    s, course, _ = _setup(topic_count=0)
    request = _submit(s, course)

    result = _verify(s, request.id)

    assert result.needs_content is True
    assert result.first_topic_id is None
    assert result.request.status == "verified"
    enrollment = asyncio.run(s.enrollments.get(result.student_id, course.id))
    assert enrollment.needs_content is True


def test_verify_twice_is_rejected() -> None:
    s, course, _ = _setup()
    request = _submit(s, course)
    _verify(s, request.id)
    with pytest.raises(RequestAlreadyProcessedError):
        _verify(s, request.id)


def test_verify_unknown_request() -> None:
    s, _, _ = _setup()
    with pytest.raises(RequestNotFoundError):
        _verify(s, uuid4())


def test_verify_duplicate_email_leaves_request_pending() -> None:
    s, course, _ = _setup()
    first = _submit(s, course)
    second = _submit(s, course)
    _verify(s, first.id)

    with pytest.raises(StudentAlreadyExistsError):
        _verify(s, second.id)
    assert asyncio.run(s.requests.get(second.id)).status == "pending"


def test_verify_rejects_short_password() -> None:
    s, course, _ = _setup()
    request = _submit(s, course)
    with pytest.raises(EnrollmentValidationError):
        _verify(s, request.id, password="short")


# ---- reject ----


def test_reject_records_reason() -> None:
    s, course, _ = _setup()
    request = _submit(s, course)
    rejected = asyncio.run(
        enrollment_service.reject_request(
            s.requests,
            request_id=request.id,
            reason="receipt unreadable",
            processed_by="admin-1",
        )
    )
    assert rejected.status == "rejected"
    assert rejected.notes == "receipt unreadable"
    with pytest.raises(RequestAlreadyProcessedError):
        _verify(s, request.id)


# ---- certificates / revocation ----


def _enrolled() -> tuple[Stores, Course, str]:
    s, course, _ = _setup()
    result = _verify(s, _submit(s, course).id)
    return s, course, result.student_id


def test_issue_certificate_completes_enrollment() -> None:
    s, course, student_id = _enrolled()
    enrollment = asyncio.run(
        enrollment_service.issue_certificate(
            s.enrollments, student_id=student_id, course_id=course.id
        )
    )
    assert enrollment.status == "completed"
    assert enrollment.completed_at is not None

    again = asyncio.run(
        enrollment_service.issue_certificate(
            s.enrollments, student_id=student_id, course_id=course.id
        )
    )
    assert again == enrollment


def test_issue_certificate_refuses_revoked() -> None:
    s, course, student_id = _enrolled()
    asyncio.run(
        enrollment_service.revoke_enrollment(
            s.enrollments, student_id=student_id, course_id=course.id
        )
    )
    with pytest.raises(EnrollmentRevokedError):
        asyncio.run(
            enrollment_service.issue_certificate(
                s.enrollments, student_id=student_id, course_id=course.id
            )
        )


def test_issue_certificate_unknown_enrollment() -> None:
    s, course, _ = _setup()
    with pytest.raises(EnrollmentNotFoundError):
        asyncio.run(
            enrollment_service.issue_certificate(
                s.enrollments, student_id="nobody", course_id=course.id
            )
        )


def test_revoke_unknown_enrollment() -> None:
    s, course, _ = _setup()
    with pytest.raises(EnrollmentNotFoundError):
        asyncio.run(
            enrollment_service.revoke_enrollment(
                s.enrollments, student_id="nobody", course_id=course.id
            )
        )
