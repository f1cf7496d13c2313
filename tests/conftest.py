from __future__ import annotations

import asyncio
from collections.abc import Iterator

import pytest
from fastapi.testclient import TestClient

from app.api.stores import Stores, get_stores, in_memory_stores
from app.main import app
from app.models.course import Course, Topic
from app.services import progress_service, token_service
from app.services.cache import cache_service


@pytest.fixture(autouse=True)
def stores() -> Iterator[Stores]:
    """Fresh in-memory repositories for every test, wired into the app."""
    fresh = in_memory_stores()
    app.dependency_overrides[get_stores] = lambda: fresh
    yield fresh
    app.dependency_overrides.pop(get_stores, None)


@pytest.fixture(autouse=True)
def reset_cache() -> None:
    """Clear the report cache between tests."""
    if hasattr(cache_service, "_store"):
        cache_service._store.clear()  # type: ignore[union-attr]


@pytest.fixture
def client() -> TestClient:
    return TestClient(app)


def mint_token(
    username: str = "student-1",
    roles: list[str] | None = None,
) -> str:
    """Create a valid ES256 JWT for testing."""
    return token_service.create_access_token(sub=username, roles=roles)


def bearer(username: str = "student-1", roles: list[str] | None = None) -> dict[str, str]:
    return {"Authorization": f"Bearer {mint_token(username, roles)}"}


@pytest.fixture
def token() -> str:
    """Token with the default student role."""
    return mint_token()


@pytest.fixture
def admin_token() -> str:
    return mint_token(username="test-admin", roles=["admin"])


@pytest.fixture
def instructor_token() -> str:
    return mint_token(username="test-instructor", roles=["instructor"])


def seed_course(
    stores: Stores,
    topic_count: int = 3,
    *,
    slug: str = "intro",
    preview_first: bool = False,
) -> tuple[Course, list[Topic]]:
    """Create a course with topics T1..Tn at order_index 1..n."""
    course = Course.new(slug=slug, title=slug.title())
    topics = [
        Topic.new(
            course_id=course.id,
            title=f"T{i}",
            order_index=i,
            is_preview=preview_first and i == 1,
        )
        for i in range(1, topic_count + 1)
    ]

    async def _seed() -> None:
        await stores.catalog.add_course(course)
        for t in topics:
            await stores.catalog.add_topic(t)

    asyncio.run(_seed())
    return course, topics


def enroll(stores: Stores, student_id: str, course: Course) -> None:
    """Activate an enrollment the way a verified request does."""
    asyncio.run(
        progress_service.activate(
            stores.catalog,
            stores.ledger,
            stores.enrollments,
            student_id=student_id,
            course_id=course.id,
        )
    )
