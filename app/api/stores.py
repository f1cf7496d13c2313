"""Per-request repository bundle.

With DATABASE_URL configured every request gets Pg repos sharing one
AsyncSession.  Mutating routes await Stores.commit() before building their
response, so a failed commit surfaces as a 503 instead of a success the
client already received.  Anything left uncommitted is rolled back when
the session closes.  Without a database all requests share the
module-level in-memory stores and commit is a no-op.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncGenerator
from dataclasses import dataclass

from sqlalchemy.ext.asyncio import AsyncSession

from app.db.engine import async_session_factory, store_errors
from app.repos.assessment_repo import AssessmentRepo, InMemoryAssessmentRepo
from app.repos.catalog_repo import InMemoryCatalogRepo, TopicCatalog
from app.repos.enrollment_repo import (
    EnrollmentRepo,
    EnrollmentRequestRepo,
    InMemoryEnrollmentRepo,
    InMemoryEnrollmentRequestRepo,
)
from app.repos.pg_assessment_repo import PgAssessmentRepo
from app.repos.pg_catalog_repo import PgCatalogRepo
from app.repos.pg_enrollment_repo import PgEnrollmentRepo, PgEnrollmentRequestRepo
from app.repos.pg_progress_repo import PgProgressRepo
from app.repos.pg_student_repo import PgUserDirectory
from app.repos.progress_repo import InMemoryProgressRepo, ProgressLedger
from app.services.user_directory import InMemoryUserDirectory, UserDirectory

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class Stores:
    catalog: TopicCatalog
    ledger: ProgressLedger
    enrollments: EnrollmentRepo
    requests: EnrollmentRequestRepo
    assessments: AssessmentRepo
    directory: UserDirectory
    session: AsyncSession | None = None

    async def commit(self) -> None:
        """Make this request's writes durable.  Raises StoreUnavailableError."""
        if self.session is None:
            return
        async with store_errors("commit"):
            await self.session.commit()


def in_memory_stores() -> Stores:
    return Stores(
        catalog=InMemoryCatalogRepo(),
        ledger=InMemoryProgressRepo(),
        enrollments=InMemoryEnrollmentRepo(),
        requests=InMemoryEnrollmentRequestRepo(),
        assessments=InMemoryAssessmentRepo(),
        directory=InMemoryUserDirectory(),
    )


_memory_stores = in_memory_stores()


async def get_stores() -> AsyncGenerator[Stores, None]:
    """FastAPI dependency yielding the repositories for one request."""
    if async_session_factory is None:
        yield _memory_stores
        return

    async with async_session_factory() as session:
        try:
            yield Stores(
                catalog=PgCatalogRepo(session),
                ledger=PgProgressRepo(session),
                enrollments=PgEnrollmentRepo(session),
                requests=PgEnrollmentRequestRepo(session),
                assessments=PgAssessmentRepo(session),
                directory=PgUserDirectory(session),
                session=session,
            )
        except Exception:
            await session.rollback()
            raise
