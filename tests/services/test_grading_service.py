from __future__ import annotations

import asyncio
from uuid import uuid4

import pytest
from prometheus_client import REGISTRY

from app.api.stores import Stores, in_memory_stores
from app.models.assessment import Test
from app.models.course import Course, Topic
from app.services import enrollment_service, grading_service, progress_service
from app.services.errors import (
    EnrollmentNotFoundError,
    EnrollmentRevokedError,
    GradingValidationError,
    NotAccessibleError,
    TestNotFoundError,
    TopicNotFoundError,
)

STUDENT = "student-1"


def _setup() -> tuple[Stores, Course, list[Topic], Test]:
    s = in_memory_stores()
    course = Course.new(slug="intro", title="Intro")
    topics = [
        Topic.new(course_id=course.id, title=f"T{i}", order_index=i) for i in (1, 2)
    ]

    async def seed() -> Test:
        await s.catalog.add_course(course)
        for t in topics:
            await s.catalog.add_topic(t)
        await progress_service.activate(
            s.catalog, s.ledger, s.enrollments, student_id=STUDENT, course_id=course.id
        )
        return await grading_service.create_test(
            s.catalog,
            s.assessments,
            course_id=course.id,
            topic_id=topics[0].id,
            title="Quiz 1",
        )

    test = asyncio.run(seed())
    return s, course, topics, test


def _grade(s: Stores, test_id, marks: int, total: int = 100, **kwargs):
    return asyncio.run(
        grading_service.grade_attempt(
            s.catalog,
            s.ledger,
            s.assessments,
            s.enrollments,
            test_id=test_id,
            student_id=kwargs.pop("student_id", STUDENT),
            marks_obtained=marks,
            total_marks=total,
            graded_by="instructor-1",
            threshold_percent=kwargs.pop("threshold_percent", 60),
        )
    )


def _graded(outcome: str) -> float:
    return REGISTRY.get_sample_value("graded_attempts_total", {"outcome": outcome}) or 0.0


def test_passing_grade_completes_and_advances() -> None:
    s, course, topics, test = _setup()
    before = _graded("passed")

    outcome = _grade(s, test.id, 60)

    assert outcome.passed is True
    assert outcome.next_topic_id == topics[1].id
    assert outcome.course_id == course.id
    assert asyncio.run(s.ledger.get(STUDENT, course.id, topics[0].id)).is_completed
    assert asyncio.run(s.ledger.get(STUDENT, course.id, topics[1].id)).is_unlocked
    assert _graded("passed") - before == 1


def test_failing_grade_completes_without_advancing() -> None:
    s, course, topics, test = _setup()
    before = _graded("failed")

    outcome = _grade(s, test.id, 59)

    assert outcome.passed is False
    assert outcome.next_topic_id is None
    assert asyncio.run(s.ledger.get(STUDENT, course.id, topics[0].id)).is_completed
    assert asyncio.run(s.ledger.get(STUDENT, course.id, topics[1].id)) is None
    assert _graded("failed") - before == 1


def test_regrade_replaces_attempt_and_can_advance() -> None:
    s, course, topics, test = _setup()
    first = _grade(s, test.id, 10)
    second = _grade(s, test.id, 90)

    assert second.attempt.id == first.attempt.id
    assert second.attempt.marks_obtained == 90
    assert second.next_topic_id == topics[1].id
    attempts = asyncio.run(s.assessments.list_attempts(STUDENT, course.id))
    assert len(attempts) == 1


def test_custom_threshold() -> None:
    s, _, _, test = _setup()
    assert _grade(s, test.id, 70, threshold_percent=75).passed is False


def test_grade_locked_topic_rejected() -> None:
    s, course, topics, _ = _setup()
    later = asyncio.run(
        grading_service.create_test(
            s.catalog,
            s.assessments,
            course_id=course.id,
            topic_id=topics[1].id,
            title="Quiz 2",
        )
    )
    with pytest.raises(NotAccessibleError):
        _grade(s, later.id, 80)


def test_grade_requires_enrollment() -> None:
    s, _, _, test = _setup()
    with pytest.raises(EnrollmentNotFoundError):
        _grade(s, test.id, 80, student_id="never-enrolled")


def test_grade_refuses_revoked_student() -> None:
    s, course, topics, test = _setup()
    asyncio.run(
        enrollment_service.revoke_enrollment(
            s.enrollments, student_id=STUDENT, course_id=course.id
        )
    )

    with pytest.raises(EnrollmentRevokedError):
        _grade(s, test.id, 90)
    assert asyncio.run(s.ledger.get(STUDENT, course.id, topics[0].id)).is_completed is False
    assert asyncio.run(s.assessments.list_attempts(STUDENT, course.id)) == []


@pytest.mark.parametrize(
    ("marks", "total"),
    [(-1, 10), (11, 10), (0, 0)],
)
def test_grade_validates_marks(marks: int, total: int) -> None:
    s, _, _, test = _setup()
    with pytest.raises(GradingValidationError):
        _grade(s, test.id, marks, total)


def test_grade_unknown_test() -> None:
    s, _, _, _ = _setup()
    with pytest.raises(TestNotFoundError):
        _grade(s, uuid4(), 5, 10)


def test_create_test_requires_topic_in_course() -> None:
    s, course, _, _ = _setup()
    with pytest.raises(TopicNotFoundError):
        asyncio.run(
            grading_service.create_test(
                s.catalog,
                s.assessments,
                course_id=course.id,
                topic_id=uuid4(),
                title="Orphan",
            )
        )
