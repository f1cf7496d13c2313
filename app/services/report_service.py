"""Read-only progress aggregation.

Nothing in this module writes to the ledger.  The course report joins
enrollments, topics, and progress records in memory, the same way the
admin dashboard consumes it.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from uuid import UUID

from app.models.course import Topic
from app.models.enrollment import Enrollment
from app.models.progress import (
    CurrentTopic,
    ProgressRecord,
    StudentCourseProgress,
    StudentProgressSummary,
    TopicStatus,
)
from app.repos.catalog_repo import TopicCatalog
from app.repos.enrollment_repo import EnrollmentRepo
from app.repos.progress_repo import ProgressLedger
from app.services.errors import CourseNotFoundError
from app.services.user_directory import UserDirectory

logger = logging.getLogger(__name__)

_Records = dict[UUID, ProgressRecord]


def progress_percent(completed: int, total: int) -> int:
    """100 * completed / total, rounded half up.  0 for an empty course."""
    if total <= 0:
        return 0
    return (200 * completed + total) // (2 * total)


def _is_unlocked(records: _Records, topic_id: UUID) -> bool:
    record = records.get(topic_id)
    return record is not None and record.is_unlocked


def _is_completed(records: _Records, topic_id: UUID) -> bool:
    record = records.get(topic_id)
    return record is not None and record.is_completed


def select_current_topic(
    topics: list[Topic], records: _Records, *, enrollment_status: str
) -> CurrentTopic | None:
    """Pick the topic the dashboard shows as "current" for a student.

    1. completed enrollment: nothing
    2. first unlocked topic that is not completed
    3. the highest unlocked topic (waiting on the next unlock)
    4. the course's first topic as a placeholder

    Steps 3 and 4 are a display heuristic for edge states, not a ledger
    invariant.
    """
    if enrollment_status == "completed":
        return None

    for topic in topics:
        if _is_unlocked(records, topic.id) and not _is_completed(records, topic.id):
            return CurrentTopic(topic_id=topic.id, title=topic.title, is_completed=False)

    unlocked = [t for t in topics if _is_unlocked(records, t.id)]
    if unlocked:
        latest = max(unlocked, key=lambda t: t.sort_key)
        return CurrentTopic(
            topic_id=latest.id,
            title=latest.title,
            is_completed=_is_completed(records, latest.id),
        )

    if topics:
        return CurrentTopic(topic_id=topics[0].id, title=topics[0].title, is_completed=False)
    return None


def find_prefix_gaps(topics: list[Topic], records: _Records) -> list[UUID]:
    """Unlocked topics that come after a locked one.  Empty when consistent."""
    gaps: list[UUID] = []
    seen_locked = False
    for topic in topics:
        if not _is_unlocked(records, topic.id):
            seen_locked = True
        elif seen_locked:
            gaps.append(topic.id)
    return gaps


def topic_statuses(topics: list[Topic], records: _Records) -> list[TopicStatus]:
    return [
        TopicStatus(
            topic_id=t.id,
            title=t.title,
            order_index=t.order_index,
            is_preview=t.is_preview,
            is_unlocked=_is_unlocked(records, t.id),
            is_completed=_is_completed(records, t.id),
        )
        for t in topics
    ]


async def course_progress_for(
    catalog: TopicCatalog,
    ledger: ProgressLedger,
    enrollment: Enrollment,
) -> StudentCourseProgress:
    course = await catalog.get_course(enrollment.course_id)
    if course is None:
        raise CourseNotFoundError(str(enrollment.course_id))

    topics = await catalog.list_topics(course.id)
    records = {
        r.topic_id: r
        for r in await ledger.list_for_student(enrollment.student_id, course.id)
    }
    statuses = topic_statuses(topics, records)
    completed = sum(1 for s in statuses if s.is_completed)
    gaps = find_prefix_gaps(topics, records)
    if gaps:
        logger.warning(
            "Unlock prefix broken student=%s course=%s gaps=%s",
            enrollment.student_id,
            course.id,
            gaps,
        )

    return StudentCourseProgress(
        course_id=course.id,
        course_title=course.title,
        enrollment_status=enrollment.status,
        topics=statuses,
        completed_count=completed,
        progress_percent=progress_percent(completed, len(topics)),
        prefix_gaps=gaps,
    )


async def student_overview(
    catalog: TopicCatalog,
    ledger: ProgressLedger,
    enrollments: EnrollmentRepo,
    *,
    student_id: str,
) -> list[StudentCourseProgress]:
    """Progress in every non-revoked course the student is enrolled in."""
    out: list[StudentCourseProgress] = []
    for enrollment in await enrollments.list_by_student(student_id):
        if not enrollment.is_reportable:
            continue
        try:
            out.append(await course_progress_for(catalog, ledger, enrollment))
        except CourseNotFoundError:
            logger.warning(
                "Skipping enrollment in missing course=%s student=%s",
                enrollment.course_id,
                student_id,
            )
    return out


async def course_report(
    catalog: TopicCatalog,
    ledger: ProgressLedger,
    enrollments: EnrollmentRepo,
    directory: UserDirectory,
    *,
    course_id: UUID,
) -> list[StudentProgressSummary]:
    """Summarize every active or completed student in a course.

    Sorted by last activity, most recent first.  Revoked enrollments are
    left out entirely.
    """
    enrolled = [e for e in await enrollments.list_by_course(course_id) if e.is_reportable]
    if not enrolled:
        return []

    topics = await catalog.list_topics(course_id)
    by_student: dict[str, _Records] = defaultdict(dict)
    for record in await ledger.list_for_course(course_id):
        by_student[record.student_id][record.topic_id] = record

    summaries: list[StudentProgressSummary] = []
    for enrollment in enrolled:
        records = by_student.get(enrollment.student_id, {})
        completed = sum(1 for t in topics if _is_completed(records, t.id))
        timestamps = [r.updated_at for r in records.values()]
        timestamps.append(enrollment.updated_at)
        last_activity = max(timestamps) or None

        account = await directory.get(enrollment.student_id)
        summaries.append(
            StudentProgressSummary(
                student_id=enrollment.student_id,
                name=account.full_name if account else "Unknown",
                email=account.email if account else "No Email",
                status=enrollment.status,
                completed_count=completed,
                total_topics=len(topics),
                progress_percent=progress_percent(completed, len(topics)),
                current_topic=select_current_topic(
                    topics, records, enrollment_status=enrollment.status
                ),
                last_activity_at=last_activity,
            )
        )

    summaries.sort(key=lambda s: (-(s.last_activity_at or 0), s.student_id))
    return summaries
