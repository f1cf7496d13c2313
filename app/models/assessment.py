from __future__ import annotations

from dataclasses import dataclass
from uuid import UUID, uuid4


@dataclass(frozen=True, slots=True)
class Test:
    """A graded test attached to one topic of a course."""

    __test__ = False  # not a pytest class

    id: UUID
    course_id: UUID
    topic_id: UUID
    title: str
    scheduled_at: int | None = None

    @staticmethod
    def new(
        *,
        course_id: UUID,
        topic_id: UUID,
        title: str,
        scheduled_at: int | None = None,
    ) -> Test:
        return Test(
            id=uuid4(),
            course_id=course_id,
            topic_id=topic_id,
            title=title,
            scheduled_at=scheduled_at,
        )


@dataclass(frozen=True, slots=True)
class TestAttempt:
    """Grading outcome, one per (test, student).  Re-grading replaces it."""

    __test__ = False

    id: UUID
    test_id: UUID
    student_id: str
    marks_obtained: int
    total_marks: int
    status: str = "graded"
    graded_by: str | None = None
    graded_at: int | None = None

    @staticmethod
    def new(
        *,
        test_id: UUID,
        student_id: str,
        marks_obtained: int,
        total_marks: int,
        graded_by: str | None,
        graded_at: int,
    ) -> TestAttempt:
        return TestAttempt(
            id=uuid4(),
            test_id=test_id,
            student_id=student_id,
            marks_obtained=marks_obtained,
            total_marks=total_marks,
            graded_by=graded_by,
            graded_at=graded_at,
        )

    @property
    def percent(self) -> float:
        if self.total_marks <= 0:
            return 0.0
        return self.marks_obtained * 100 / self.total_marks

    def passed(self, threshold_percent: int) -> bool:
        return self.percent >= threshold_percent
