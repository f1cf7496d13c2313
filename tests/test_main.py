from __future__ import annotations

from dataclasses import replace

import pytest
from fastapi.testclient import TestClient
from prometheus_client import REGISTRY
from sqlalchemy.exc import OperationalError

from app.api.stores import Stores, get_stores
from app.main import app
from app.services.cache import report_cache
from app.services.errors import StoreUnavailableError
from tests.conftest import bearer, enroll, seed_course

ADMIN = bearer("test-admin", ["admin"])


def test_store_outage_maps_to_503(client: TestClient) -> None:
    def _down() -> Stores:
        raise StoreUnavailableError("load stores")

    app.dependency_overrides[get_stores] = _down
    resp = client.get("/v1/courses", headers=bearer())
    assert resp.status_code == 503
    assert resp.headers["retry-after"] == "1"
    assert resp.json() == {"detail": "store unavailable, retry later"}


def test_enrollment_to_report_walkthrough(client: TestClient, stores: Stores) -> None:
    """Applicant is verified, works through the course, and shows up in the report."""
    course, topics = seed_course(stores, topic_count=2)

    request_id = client.post(
        "/v1/enrollment-requests",
        json={"course_id": str(course.id), "full_name": "Grace", "email": "g@h.io"},
    ).json()["id"]
    student_id = client.post(
        f"/v1/admin/enrollment-requests/{request_id}/verify",
        json={"password": "hopper-1906"},
        headers=ADMIN,
    ).json()["student_id"]
    student = bearer(student_id)

    for topic in topics:
        resp = client.post(
            f"/v1/progress/{course.id}/topics/{topic.id}/complete", headers=student
        )
        assert resp.status_code == 200

    [row] = client.get(
        f"/v1/admin/reports/course-progress/{course.id}", headers=ADMIN
    ).json()
    assert row["student_id"] == student_id
    assert row["name"] == "Grace"
    assert row["email"] == "g@h.io"
    assert row["progress_percent"] == 100
    assert row["current_topic"]["topic_id"] == str(topics[1].id)
    assert row["current_topic"]["is_completed"] is True

    client.post(
        "/v1/admin/certificates/issue",
        json={"student_id": student_id, "course_id": str(course.id)},
        headers=ADMIN,
    )
    cert = client.get(f"/v1/progress/{course.id}/certificate", headers=student).json()
    assert cert["student_name"] == "Grace"


class _FailingSession:
    async def commit(self) -> None:
        raise OperationalError("COMMIT", {}, ConnectionResetError("connection reset"))


class _RecordingSession:
    def __init__(self, events: list[str]) -> None:
        self.events = events

    async def commit(self) -> None:
        self.events.append("commit")


def _invalidations() -> float:
    return (
        REGISTRY.get_sample_value(
            "report_cache_operations_total", {"operation": "invalidate"}
        )
        or 0.0
    )


def test_failed_commit_is_not_reported_as_success(
    client: TestClient, stores: Stores
) -> None:
    course, topics = seed_course(stores)
    enroll(stores, "student-1", course)
    app.dependency_overrides[get_stores] = lambda: replace(
        stores, session=_FailingSession()
    )

    before = _invalidations()
    resp = client.post(
        f"/v1/progress/{course.id}/topics/{topics[0].id}/complete", headers=bearer()
    )
    assert resp.status_code == 503
    assert "next_topic_id" not in resp.json()
    # the cache keeps serving the last committed report
    assert _invalidations() == before


def test_failed_commit_on_public_submit(client: TestClient, stores: Stores) -> None:
    course, _ = seed_course(stores)
    app.dependency_overrides[get_stores] = lambda: replace(
        stores, session=_FailingSession()
    )
    resp = client.post(
        "/v1/enrollment-requests",
        json={"course_id": str(course.id), "full_name": "Ada", "email": "a@b.io"},
    )
    assert resp.status_code == 503


def test_report_cache_invalidated_after_commit(
    client: TestClient, stores: Stores, monkeypatch: pytest.MonkeyPatch
) -> None:
    course, topics = seed_course(stores)
    enroll(stores, "student-1", course)
    events: list[str] = []
    app.dependency_overrides[get_stores] = lambda: replace(
        stores, session=_RecordingSession(events)
    )

    async def _invalidate(course_id) -> None:
        events.append("invalidate")

    monkeypatch.setattr(report_cache, "invalidate", _invalidate)
    resp = client.post(
        f"/v1/progress/{course.id}/topics/{topics[0].id}/complete", headers=bearer()
    )
    assert resp.status_code == 200
    assert events == ["commit", "invalidate"]
