"""Tests and grading.

Grading records the attempt, marks the test's topic completed, and
unlocks the next topic only when the score meets the pass threshold.
"""

from __future__ import annotations

import datetime
import logging
from dataclasses import dataclass
from uuid import UUID

from app.core.config import SETTINGS
from app.core.metrics import GRADED_ATTEMPTS
from app.models.assessment import Test, TestAttempt
from app.repos.assessment_repo import AssessmentRepo
from app.repos.catalog_repo import TopicCatalog
from app.repos.enrollment_repo import EnrollmentRepo
from app.repos.progress_repo import ProgressLedger
from app.services import enrollment_service, progress_service
from app.services.errors import (
    CourseNotFoundError,
    GradingValidationError,
    TestNotFoundError,
    TopicNotFoundError,
)

logger = logging.getLogger(__name__)


def _now() -> int:
    return int(datetime.datetime.now(datetime.UTC).timestamp())


@dataclass(frozen=True, slots=True)
class GradeOutcome:
    attempt: TestAttempt
    course_id: UUID
    passed: bool
    next_topic_id: UUID | None


async def create_test(
    catalog: TopicCatalog,
    assessments: AssessmentRepo,
    *,
    course_id: UUID,
    topic_id: UUID,
    title: str,
    scheduled_at: int | None = None,
) -> Test:
    if await catalog.get_course(course_id) is None:
        raise CourseNotFoundError(str(course_id))
    topic = await catalog.get_topic(topic_id)
    if topic is None or topic.course_id != course_id:
        raise TopicNotFoundError(str(topic_id))

    test = Test.new(
        course_id=course_id,
        topic_id=topic_id,
        title=title.strip(),
        scheduled_at=scheduled_at,
    )
    await assessments.add_test(test)
    logger.info("Created test id=%s topic=%s", test.id, topic_id)
    return test


async def grade_attempt(
    catalog: TopicCatalog,
    ledger: ProgressLedger,
    assessments: AssessmentRepo,
    enrollments: EnrollmentRepo,
    *,
    test_id: UUID,
    student_id: str,
    marks_obtained: int,
    total_marks: int,
    graded_by: str,
    threshold_percent: int | None = None,
) -> GradeOutcome:
    """Record a graded attempt and move the student along if they passed.

    The topic is marked completed whatever the score; only the unlock of
    the next topic is gated on the threshold.  Re-grading replaces the
    stored attempt.

    Only students with a live enrollment can be graded.

    Raises GradingValidationError, TestNotFoundError, EnrollmentNotFoundError,
    EnrollmentRevokedError, NotAccessibleError.
    """
    if total_marks <= 0:
        raise GradingValidationError("total_marks must be positive")
    if not 0 <= marks_obtained <= total_marks:
        raise GradingValidationError("marks_obtained must be between 0 and total_marks")

    test = await assessments.get_test(test_id)
    if test is None:
        raise TestNotFoundError(str(test_id))

    await enrollment_service.require_enrollment(
        enrollments, student_id=student_id, course_id=test.course_id
    )

    await progress_service.mark_completed(
        catalog,
        ledger,
        student_id=student_id,
        course_id=test.course_id,
        topic_id=test.topic_id,
        source="grading",
    )

    attempt = await assessments.upsert_attempt(
        TestAttempt.new(
            test_id=test.id,
            student_id=student_id,
            marks_obtained=marks_obtained,
            total_marks=total_marks,
            graded_by=graded_by,
            graded_at=_now(),
        )
    )

    threshold = (
        SETTINGS.pass_threshold_percent if threshold_percent is None else threshold_percent
    )
    passed = attempt.passed(threshold)
    next_topic_id: UUID | None = None
    if passed:
        next_topic_id = await progress_service.advance(
            catalog,
            ledger,
            student_id=student_id,
            course_id=test.course_id,
            completed_topic_id=test.topic_id,
        )

    GRADED_ATTEMPTS.labels(outcome="passed" if passed else "failed").inc()
    logger.info(
        "Graded test=%s student=%s score=%d/%d passed=%s by=%s",
        test.id,
        student_id,
        marks_obtained,
        total_marks,
        passed,
        graded_by,
        extra={
            "student_id": student_id,
            "course_id": str(test.course_id),
            "topic_id": str(test.topic_id),
        },
    )
    return GradeOutcome(
        attempt=attempt,
        course_id=test.course_id,
        passed=passed,
        next_topic_id=next_topic_id,
    )
