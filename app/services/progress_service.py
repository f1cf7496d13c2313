"""Progressive content-unlock state machine.

Lifecycle of one (student, course) pair:

    activate        -> first topic unlocked
    mark_completed  -> topic N completed (self-report or grading)
    advance         -> topic N+1 unlocked
    ...             -> advance returns None once the course is exhausted

Unlocked topics always form a prefix of the course's ordered topics.
Every write is a merge-patch upsert keyed on (student, course, topic), so
a retried or doubled request converges on the same ledger state.  The
caller's identity is always passed in; nothing here reads session state.
"""

from __future__ import annotations

import datetime
import logging
from dataclasses import replace
from uuid import UUID

from app.core.metrics import PROGRESS_TRANSITIONS
from app.models.course import Topic
from app.models.enrollment import Enrollment
from app.models.progress import COMPLETE, UNLOCK, CompletionSource, ProgressRecord
from app.repos.catalog_repo import TopicCatalog
from app.repos.enrollment_repo import EnrollmentRepo
from app.repos.progress_repo import ProgressLedger
from app.services.errors import (
    NoTopicsError,
    NotAccessibleError,
    TopicNotCompletedError,
    TopicNotFoundError,
)

logger = logging.getLogger(__name__)


def _now() -> int:
    return int(datetime.datetime.now(datetime.UTC).timestamp())


def _position(topics: list[Topic], topic_id: UUID) -> int:
    for i, topic in enumerate(topics):
        if topic.id == topic_id:
            return i
    raise TopicNotFoundError(str(topic_id))


def next_topic(topics: list[Topic], topic_id: UUID) -> Topic | None:
    """Return the topic after topic_id in (order_index, id) order, or None.

    Topics that share an order_index are walked one at a time, lowest id
    first, so the result can carry the same order_index as topic_id rather
    than a strictly greater one.  The catalog rejects such duplicates; this
    only matters for legacy rows, and it keeps the unlocked set a prefix.
    """
    i = _position(topics, topic_id)
    return topics[i + 1] if i + 1 < len(topics) else None


async def activate(
    catalog: TopicCatalog,
    ledger: ProgressLedger,
    enrollments: EnrollmentRepo,
    *,
    student_id: str,
    course_id: UUID,
) -> UUID:
    """Ensure an active enrollment exists and unlock the course's first topic.

    Returns the first topic's id.  Safe to retry: an already-unlocked first
    topic is left untouched.

    Raises NoTopicsError when the course has no content yet.  The enrollment
    is still created, flagged with needs_content for manual follow-up.
    """
    now = _now()
    enrollment = await enrollments.get(student_id, course_id)
    if enrollment is None:
        enrollment = Enrollment(
            student_id=student_id,
            course_id=course_id,
            status="active",
            created_at=now,
            updated_at=now,
        )
        await enrollments.add(enrollment)
        logger.info(
            "Enrollment created student=%s course=%s",
            student_id,
            course_id,
            extra={"student_id": student_id, "course_id": str(course_id)},
        )
    elif enrollment.status == "revoked":
        enrollment = replace(enrollment, status="active", updated_at=now)
        await enrollments.update(enrollment)
        logger.info("Enrollment reactivated student=%s course=%s", student_id, course_id)

    topics = await catalog.list_topics(course_id)
    if not topics:
        if not enrollment.needs_content:
            await enrollments.update(
                replace(enrollment, needs_content=True, updated_at=now)
            )
        PROGRESS_TRANSITIONS.labels(transition="no_topics").inc()
        logger.warning(
            "Course has no topics; enrollment flagged for follow-up "
            "student=%s course=%s",
            student_id,
            course_id,
            extra={"student_id": student_id, "course_id": str(course_id)},
        )
        raise NoTopicsError(str(course_id))

    if enrollment.needs_content:
        await enrollments.update(
            replace(enrollment, needs_content=False, updated_at=now)
        )

    first = topics[0]
    existing = await ledger.get(student_id, course_id, first.id)
    if existing is not None and existing.is_unlocked:
        logger.debug("First topic already unlocked student=%s", student_id)
        return first.id

    await ledger.upsert(student_id, course_id, first.id, UNLOCK, now=now)
    PROGRESS_TRANSITIONS.labels(transition="activated").inc()
    logger.info(
        "Activated student=%s course=%s first_topic=%s",
        student_id,
        course_id,
        first.id,
        extra={
            "student_id": student_id,
            "course_id": str(course_id),
            "topic_id": str(first.id),
        },
    )
    return first.id


async def mark_completed(
    catalog: TopicCatalog,
    ledger: ProgressLedger,
    *,
    student_id: str,
    course_id: UUID,
    topic_id: UUID,
    source: CompletionSource,
) -> ProgressRecord:
    """Mark an unlocked topic completed.

    Completing an already-completed topic is a no-op success.  Does not
    unlock the next topic; the caller decides whether to advance (grading
    gates on a pass threshold, self-reports always advance).

    Raises TopicNotFoundError, NotAccessibleError.
    """
    topic = await catalog.get_topic(topic_id)
    if topic is None or topic.course_id != course_id:
        raise TopicNotFoundError(str(topic_id))

    record = await ledger.get(student_id, course_id, topic_id)
    if record is None or not record.is_unlocked:
        PROGRESS_TRANSITIONS.labels(transition="rejected").inc()
        logger.warning(
            "Rejected completion of locked topic student=%s topic=%s source=%s",
            student_id,
            topic_id,
            source,
            extra={
                "student_id": student_id,
                "course_id": str(course_id),
                "topic_id": str(topic_id),
            },
        )
        raise NotAccessibleError(str(topic_id))

    if record.is_completed:
        return record

    record = await ledger.upsert(student_id, course_id, topic_id, COMPLETE, now=_now())
    PROGRESS_TRANSITIONS.labels(transition="completed").inc()
    logger.info(
        "Topic completed student=%s topic=%s source=%s",
        student_id,
        topic_id,
        source,
        extra={
            "student_id": student_id,
            "course_id": str(course_id),
            "topic_id": str(topic_id),
        },
    )
    return record


async def advance(
    catalog: TopicCatalog,
    ledger: ProgressLedger,
    *,
    student_id: str,
    course_id: UUID,
    completed_topic_id: UUID,
) -> UUID | None:
    """Unlock the topic that follows completed_topic_id.

    Returns the next topic's id, or None when the course has no further
    topics (no ledger write happens in that case).  An already-unlocked
    next topic is returned as-is; its is_completed flag is never touched.

    Raises TopicNotFoundError, TopicNotCompletedError.
    """
    topics = await catalog.list_topics(course_id)
    nxt = next_topic(topics, completed_topic_id)
    if nxt is None:
        PROGRESS_TRANSITIONS.labels(transition="exhausted").inc()
        logger.info(
            "No topic after %s; course content exhausted for student=%s",
            completed_topic_id,
            student_id,
        )
        return None

    done = await ledger.get(student_id, course_id, completed_topic_id)
    if done is None or not done.is_completed:
        PROGRESS_TRANSITIONS.labels(transition="rejected").inc()
        logger.warning(
            "Rejected advance past incomplete topic student=%s topic=%s",
            student_id,
            completed_topic_id,
        )
        raise TopicNotCompletedError(str(completed_topic_id))

    existing = await ledger.get(student_id, course_id, nxt.id)
    if existing is not None and existing.is_unlocked:
        return nxt.id

    await ledger.upsert(student_id, course_id, nxt.id, UNLOCK, now=_now())
    PROGRESS_TRANSITIONS.labels(transition="unlocked").inc()
    logger.info(
        "Unlocked next topic student=%s topic=%s",
        student_id,
        nxt.id,
        extra={
            "student_id": student_id,
            "course_id": str(course_id),
            "topic_id": str(nxt.id),
        },
    )
    return nxt.id


async def unlock_through(
    catalog: TopicCatalog,
    ledger: ProgressLedger,
    *,
    student_id: str,
    course_id: UUID,
    topic_id: UUID,
) -> list[UUID]:
    """Manually unlock topic_id and every locked topic before it.

    Used by admins to grant access out of band.  Filling the earlier
    topics keeps the unlocked set a prefix.  Returns the ids that were
    newly unlocked, in course order.
    """
    topics = await catalog.list_topics(course_id)
    end = _position(topics, topic_id)
    records = {r.topic_id: r for r in await ledger.list_for_student(student_id, course_id)}

    now = _now()
    unlocked: list[UUID] = []
    for topic in topics[: end + 1]:
        record = records.get(topic.id)
        if record is not None and record.is_unlocked:
            continue
        await ledger.upsert(student_id, course_id, topic.id, UNLOCK, now=now)
        unlocked.append(topic.id)

    if unlocked:
        PROGRESS_TRANSITIONS.labels(transition="unlocked").inc(len(unlocked))
        logger.info(
            "Manually unlocked %d topic(s) through %s for student=%s",
            len(unlocked),
            topic_id,
            student_id,
        )
    return unlocked


async def can_view_topic(
    catalog: TopicCatalog,
    ledger: ProgressLedger,
    *,
    student_id: str,
    course_id: UUID,
    topic_id: UUID,
) -> bool:
    """Preview topics are open to everyone; others need an unlocked record."""
    topic = await catalog.get_topic(topic_id)
    if topic is None or topic.course_id != course_id:
        raise TopicNotFoundError(str(topic_id))
    if topic.is_preview:
        return True
    record = await ledger.get(student_id, course_id, topic_id)
    return record is not None and record.is_unlocked
