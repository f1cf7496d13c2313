from __future__ import annotations

import asyncio
from uuid import uuid4

from app.models.course import Course, Topic
from app.models.enrollment import Enrollment
from app.models.progress import COMPLETE, UNLOCK, ProgressRecord
from app.repos.catalog_repo import InMemoryCatalogRepo
from app.repos.enrollment_repo import InMemoryEnrollmentRepo
from app.repos.progress_repo import InMemoryProgressRepo
from app.services import report_service
from app.services.report_service import (
    find_prefix_gaps,
    progress_percent,
    select_current_topic,
)
from app.services.user_directory import InMemoryUserDirectory

COURSE = Course.new(slug="intro", title="Intro")
T1, T2, T3 = (
    Topic.new(course_id=COURSE.id, title=f"T{i}", order_index=i) for i in (1, 2, 3)
)
TOPICS = [T1, T2, T3]


def _rec(topic: Topic, *, unlocked: bool = True, completed: bool = False, at: int = 0):
    return ProgressRecord(
        student_id="s",
        course_id=COURSE.id,
        topic_id=topic.id,
        is_unlocked=unlocked,
        is_completed=completed,
        updated_at=at,
    )


# ---- progress_percent ----


def test_progress_percent_rounds_half_up() -> None:
    assert progress_percent(1, 3) == 33
    assert progress_percent(2, 3) == 67
    assert progress_percent(1, 8) == 13  # 12.5
    assert progress_percent(3, 8) == 38  # 37.5
    assert progress_percent(3, 3) == 100


def test_progress_percent_zero_topics() -> None:
    assert progress_percent(0, 0) == 0


# ---- select_current_topic ----


def test_current_topic_none_for_completed_enrollment() -> None:
    records = {T1.id: _rec(T1)}
    assert select_current_topic(TOPICS, records, enrollment_status="completed") is None


def test_current_topic_first_unlocked_incomplete() -> None:
    records = {T1.id: _rec(T1, completed=True), T2.id: _rec(T2)}
    current = select_current_topic(TOPICS, records, enrollment_status="active")
    assert current.topic_id == T2.id
    assert current.is_completed is False


def test_current_topic_falls_back_to_highest_unlocked() -> None:
    records = {
        T1.id: _rec(T1, completed=True),
        T2.id: _rec(T2, completed=True),
    }
    current = select_current_topic(TOPICS, records, enrollment_status="active")
    assert current.topic_id == T2.id
    assert current.is_completed is True


def test_current_topic_placeholder_without_records() -> None:
    current = select_current_topic(TOPICS, {}, enrollment_status="active")
    assert current.topic_id == T1.id
    assert current.is_completed is False


def test_current_topic_none_for_empty_course() -> None:
    assert select_current_topic([], {}, enrollment_status="active") is None


# ---- find_prefix_gaps ----


def test_prefix_gaps_empty_when_consistent() -> None:
    records = {T1.id: _rec(T1, completed=True), T2.id: _rec(T2)}
    assert find_prefix_gaps(TOPICS, records) == []


def test_prefix_gaps_reports_topics_after_a_locked_one() -> None:
    records = {T1.id: _rec(T1), T3.id: _rec(T3)}
    assert find_prefix_gaps(TOPICS, records) == [T3.id]


# ---- course_report ----


class _Stores:
    def __init__(self) -> None:
        self.catalog = InMemoryCatalogRepo()
        self.ledger = InMemoryProgressRepo()
        self.enrollments = InMemoryEnrollmentRepo()
        self.directory = InMemoryUserDirectory()

    async def seed(self) -> None:
        await self.catalog.add_course(COURSE)
        for t in TOPICS:
            await self.catalog.add_topic(t)

    async def enroll(self, student_id: str, *, status="active", at: int = 100) -> None:
        await self.enrollments.add(
            Enrollment(
                student_id=student_id,
                course_id=COURSE.id,
                status=status,
                created_at=at,
                updated_at=at,
            )
        )

    def report(self):
        return asyncio.run(
            report_service.course_report(
                self.catalog,
                self.ledger,
                self.enrollments,
                self.directory,
                course_id=COURSE.id,
            )
        )


def test_report_example_one_of_three_completed() -> None:
    s = _Stores()

    async def setup() -> str:
        await s.seed()
        account = await s.directory.create_student(
            email="ada@example.com", password="correct-horse", full_name="Ada"
        )
        await s.enroll(account.id)
        await s.ledger.upsert(account.id, COURSE.id, T1.id, UNLOCK, now=200)
        await s.ledger.upsert(account.id, COURSE.id, T1.id, COMPLETE, now=300)
        await s.ledger.upsert(account.id, COURSE.id, T2.id, UNLOCK, now=300)
        return account.id

    student_id = asyncio.run(setup())
    [row] = s.report()

    assert row.student_id == student_id
    assert row.name == "Ada"
    assert row.email == "ada@example.com"
    assert row.completed_count == 1
    assert row.total_topics == 3
    assert row.progress_percent == 33
    assert row.current_topic.topic_id == T2.id
    assert row.last_activity_at == 300


def test_report_excludes_revoked_and_uses_fallback_names() -> None:
    s = _Stores()

    async def setup() -> None:
        await s.seed()
        await s.enroll("ghost")
        await s.enroll("gone", status="revoked")

    asyncio.run(setup())
    rows = s.report()

    assert [r.student_id for r in rows] == ["ghost"]
    assert rows[0].name == "Unknown"
    assert rows[0].email == "No Email"
    assert rows[0].progress_percent == 0


def test_report_sorted_by_last_activity_then_student_id() -> None:
    s = _Stores()

    async def setup() -> None:
        await s.seed()
        await s.enroll("carol", at=100)
        await s.enroll("bob", at=100)
        await s.enroll("alice", at=100)
        await s.ledger.upsert("alice", COURSE.id, T1.id, UNLOCK, now=500)

    asyncio.run(setup())
    assert [r.student_id for r in s.report()] == ["alice", "bob", "carol"]


def test_report_completed_enrollment_has_no_current_topic() -> None:
    s = _Stores()

    async def setup() -> None:
        await s.seed()
        await s.enroll("grad", status="completed")
        for t in TOPICS:
            await s.ledger.upsert("grad", COURSE.id, t.id, UNLOCK, now=150)
            await s.ledger.upsert("grad", COURSE.id, t.id, COMPLETE, now=150)

    asyncio.run(setup())
    [row] = s.report()
    assert row.current_topic is None
    assert row.progress_percent == 100


def test_report_ignores_records_for_topics_outside_catalog() -> None:
    s = _Stores()

    async def setup() -> None:
        await s.seed()
        await s.enroll("s1")
        stray = uuid4()
        await s.ledger.upsert("s1", COURSE.id, stray, UNLOCK, now=150)
        await s.ledger.upsert("s1", COURSE.id, stray, COMPLETE, now=150)

    asyncio.run(setup())
    [row] = s.report()
    assert row.completed_count == 0


def test_report_empty_course() -> None:
    s = _Stores()
    asyncio.run(s.seed())
    assert s.report() == []


# ---- student_overview ----


def test_student_overview_flags_prefix_gap() -> None:
    s = _Stores()

    async def setup():
        await s.seed()
        await s.enroll("s1")
        await s.ledger.upsert("s1", COURSE.id, T1.id, UNLOCK, now=1)
        await s.ledger.upsert("s1", COURSE.id, T3.id, UNLOCK, now=1)
        return await report_service.student_overview(
            s.catalog, s.ledger, s.enrollments, student_id="s1"
        )

    [course] = asyncio.run(setup())
    assert course.course_id == COURSE.id
    assert course.consistent is False
    assert course.prefix_gaps == [T3.id]
    assert [t.is_unlocked for t in course.topics] == [True, False, True]
