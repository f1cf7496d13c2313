from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Literal
from uuid import UUID

CompletionSource = Literal["self_report", "grading"]


@dataclass(frozen=True, slots=True)
class ProgressRecord:
    """One row of the progress ledger, keyed by (student, course, topic).

    A topic can never be completed without having been unlocked.
    """

    student_id: str
    course_id: UUID
    topic_id: UUID
    is_unlocked: bool = False
    is_completed: bool = False
    updated_at: int = 0

    def __post_init__(self) -> None:
        if self.is_completed and not self.is_unlocked:
            raise ValueError("a progress record cannot be completed while locked")


@dataclass(frozen=True, slots=True)
class ProgressPatch:
    """Field-level update for a ProgressRecord.

    None means "leave the stored value alone".  Upserting a patch never
    resets a field the patch does not name, so unlocking a topic can't
    clobber an existing is_completed=True.
    """

    is_unlocked: bool | None = None
    is_completed: bool | None = None

    def values(self) -> dict[str, bool]:
        out: dict[str, bool] = {}
        if self.is_unlocked is not None:
            out["is_unlocked"] = self.is_unlocked
        if self.is_completed is not None:
            out["is_completed"] = self.is_completed
        return out

    def apply(self, record: ProgressRecord, *, now: int) -> ProgressRecord:
        return replace(record, updated_at=now, **self.values())

    def create(
        self, *, student_id: str, course_id: UUID, topic_id: UUID, now: int
    ) -> ProgressRecord:
        return ProgressRecord(
            student_id=student_id,
            course_id=course_id,
            topic_id=topic_id,
            updated_at=now,
            **self.values(),
        )


UNLOCK = ProgressPatch(is_unlocked=True)
COMPLETE = ProgressPatch(is_completed=True)


@dataclass(frozen=True, slots=True)
class TopicStatus:
    topic_id: UUID
    title: str
    order_index: int
    is_preview: bool
    is_unlocked: bool
    is_completed: bool


@dataclass(frozen=True, slots=True)
class CurrentTopic:
    topic_id: UUID
    title: str
    is_completed: bool


@dataclass(frozen=True, slots=True)
class StudentCourseProgress:
    """Per-topic view of one student's progress in one course."""

    course_id: UUID
    course_title: str
    enrollment_status: str
    topics: list[TopicStatus]
    completed_count: int
    progress_percent: int
    prefix_gaps: list[UUID]

    @property
    def consistent(self) -> bool:
        return not self.prefix_gaps


@dataclass(frozen=True, slots=True)
class StudentProgressSummary:
    """One row of the course progress report."""

    student_id: str
    name: str
    email: str
    status: str
    completed_count: int
    total_topics: int
    progress_percent: int
    current_topic: CurrentTopic | None
    last_activity_at: int | None
