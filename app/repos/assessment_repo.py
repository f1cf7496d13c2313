from __future__ import annotations

from dataclasses import replace
from typing import Protocol
from uuid import UUID

from app.models.assessment import Test, TestAttempt


class AssessmentRepo(Protocol):
    async def get_test(self, test_id: UUID) -> Test | None: ...
    async def add_test(self, test: Test) -> None: ...
    async def list_tests(self, course_id: UUID) -> list[Test]: ...
    async def upsert_attempt(self, attempt: TestAttempt) -> TestAttempt:
        """Store the attempt, replacing any earlier one for (test, student)."""
        ...

    async def list_attempts(
        self, student_id: str, course_id: UUID
    ) -> list[TestAttempt]: ...


class InMemoryAssessmentRepo:
    def __init__(self) -> None:
        self._tests: dict[UUID, Test] = {}
        self._attempts: dict[tuple[UUID, str], TestAttempt] = {}

    async def get_test(self, test_id: UUID) -> Test | None:
        return self._tests.get(test_id)

    async def add_test(self, test: Test) -> None:
        self._tests[test.id] = test

    async def list_tests(self, course_id: UUID) -> list[Test]:
        tests = [t for t in self._tests.values() if t.course_id == course_id]
        return sorted(
            tests, key=lambda t: (t.scheduled_at is None, t.scheduled_at or 0, t.title)
        )

    async def upsert_attempt(self, attempt: TestAttempt) -> TestAttempt:
        key = (attempt.test_id, attempt.student_id)
        existing = self._attempts.get(key)
        if existing is not None:
            # keep the original attempt id across re-grades
            attempt = replace(attempt, id=existing.id)
        self._attempts[key] = attempt
        return attempt

    async def list_attempts(
        self, student_id: str, course_id: UUID
    ) -> list[TestAttempt]:
        course_tests = {t.id for t in self._tests.values() if t.course_id == course_id}
        attempts = [
            a
            for (test_id, sid), a in self._attempts.items()
            if sid == student_id and test_id in course_tests
        ]
        return sorted(attempts, key=lambda a: a.graded_at or 0, reverse=True)
