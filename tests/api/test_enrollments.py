"""Tests for the enrollment request review flow."""

from __future__ import annotations

import asyncio

from fastapi.testclient import TestClient

from app.api.stores import Stores
from tests.conftest import bearer, seed_course

ADMIN = bearer("test-admin", ["admin"])


def _submit(client: TestClient, course_id, email: str = "Ada@Example.com"):
    return client.post(
        "/v1/enrollment-requests",
        json={
            "course_id": str(course_id),
            "full_name": "Ada Lovelace",
            "email": email,
            "receipt_url": "https://files.example.com/r/1.jpg",
        },
    )


# ---- submit (public) ----


def test_submit_needs_no_token(client: TestClient, stores: Stores) -> None:
    course, _ = seed_course(stores)
    resp = _submit(client, course.id)
    assert resp.status_code == 201
    body = resp.json()
    assert body["status"] == "pending"
    assert body["email"] == "ada@example.com"


def test_submit_bad_email(client: TestClient, stores: Stores) -> None:
    course, _ = seed_course(stores)
    assert _submit(client, course.id, email="nope-at-all").status_code == 422


def test_submit_unknown_course(client: TestClient) -> None:
    resp = _submit(client, "00000000-0000-0000-0000-000000000000")
    assert resp.status_code == 404


# ---- admin review ----


def test_list_requires_admin(client: TestClient) -> None:
    resp = client.get("/v1/admin/enrollment-requests", headers=bearer())
    assert resp.status_code == 403


def test_list_defaults_to_pending(client: TestClient, stores: Stores) -> None:
    course, _ = seed_course(stores)
    request_id = _submit(client, course.id).json()["id"]

    resp = client.get("/v1/admin/enrollment-requests", headers=ADMIN)
    assert resp.status_code == 200
    assert [r["id"] for r in resp.json()] == [request_id]

    resp = client.get(
        "/v1/admin/enrollment-requests", params={"status": "verified"}, headers=ADMIN
    )
    assert resp.json() == []


def test_verify_activates_enrollment(client: TestClient, stores: Stores) -> None:
    course, topics = seed_course(stores)
    request_id = _submit(client, course.id).json()["id"]

    resp = client.post(
        f"/v1/admin/enrollment-requests/{request_id}/verify",
        json={"password": "first-login-pw", "notes": "receipt ok"},
        headers=ADMIN,
    )
    assert resp.status_code == 200
    body = resp.json()
    assert body["request"]["status"] == "verified"
    assert body["request"]["processed_by"] == "test-admin"
    assert body["first_topic_id"] == str(topics[0].id)
    assert body["needs_content"] is False

    student_id = body["student_id"]
    progress = client.get(f"/v1/progress/{course.id}", headers=bearer(student_id))
    assert progress.status_code == 200
    assert progress.json()["topics"][0]["is_unlocked"] is True


def test_verify_course_without_topics(client: TestClient, stores: Stores) -> None:
    course, _ = seed_course(stores, topic_count=0)
    request_id = _submit(client, course.id).json()["id"]

    resp = client.post(
        f"/v1/admin/enrollment-requests/{request_id}/verify",
        json={"password": "first-login-pw"},
        headers=ADMIN,
    )
    assert resp.status_code == 200
    assert resp.json()["needs_content"] is True
    assert resp.json()["first_topic_id"] is None


def test_verify_twice_conflicts(client: TestClient, stores: Stores) -> None:
    course, _ = seed_course(stores)
    request_id = _submit(client, course.id).json()["id"]
    url = f"/v1/admin/enrollment-requests/{request_id}/verify"

    body = {"password": "first-login-pw"}
    assert client.post(url, json=body, headers=ADMIN).status_code == 200
    resp = client.post(url, json=body, headers=ADMIN)
    assert resp.status_code == 409


def test_verify_short_password(client: TestClient, stores: Stores) -> None:
    course, _ = seed_course(stores)
    request_id = _submit(client, course.id).json()["id"]
    resp = client.post(
        f"/v1/admin/enrollment-requests/{request_id}/verify",
        json={"password": "short"},
        headers=ADMIN,
    )
    assert resp.status_code == 422


def test_reject_request(client: TestClient, stores: Stores) -> None:
    course, _ = seed_course(stores)
    request_id = _submit(client, course.id).json()["id"]

    resp = client.post(
        f"/v1/admin/enrollment-requests/{request_id}/reject",
        json={"reason": "receipt unreadable"},
        headers=ADMIN,
    )
    assert resp.status_code == 200
    assert resp.json()["status"] == "rejected"
    assert resp.json()["notes"] == "receipt unreadable"
    assert asyncio.run(stores.requests.list_by_status("pending")) == []
