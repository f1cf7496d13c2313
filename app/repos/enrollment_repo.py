from __future__ import annotations

from dataclasses import replace
from typing import Protocol
from uuid import UUID

from app.models.enrollment import Enrollment, EnrollmentRequest, EnrollmentStatus


class EnrollmentRepo(Protocol):
    async def get(self, student_id: str, course_id: UUID) -> Enrollment | None: ...
    async def add(self, enrollment: Enrollment) -> None: ...
    async def update(self, enrollment: Enrollment) -> None: ...
    async def set_status(
        self, student_id: str, course_id: UUID, status: EnrollmentStatus, *, now: int
    ) -> Enrollment | None: ...
    async def list_by_course(self, course_id: UUID) -> list[Enrollment]: ...
    async def list_by_student(self, student_id: str) -> list[Enrollment]: ...


class EnrollmentRequestRepo(Protocol):
    async def get(self, request_id: UUID) -> EnrollmentRequest | None: ...
    async def add(self, request: EnrollmentRequest) -> None: ...
    async def update(self, request: EnrollmentRequest) -> None: ...
    async def list_by_status(self, status: str | None) -> list[EnrollmentRequest]: ...


class InMemoryEnrollmentRepo:
    def __init__(self) -> None:
        self._store: dict[tuple[str, UUID], Enrollment] = {}

    async def get(self, student_id: str, course_id: UUID) -> Enrollment | None:
        return self._store.get((student_id, course_id))

    async def add(self, enrollment: Enrollment) -> None:
        key = (enrollment.student_id, enrollment.course_id)
        if key in self._store:
            raise ValueError("enrollment already exists")
        self._store[key] = enrollment

    async def update(self, enrollment: Enrollment) -> None:
        key = (enrollment.student_id, enrollment.course_id)
        if key not in self._store:
            raise KeyError("enrollment not found")
        self._store[key] = enrollment

    async def set_status(
        self, student_id: str, course_id: UUID, status: EnrollmentStatus, *, now: int
    ) -> Enrollment | None:
        existing = self._store.get((student_id, course_id))
        if existing is None:
            return None
        updated = replace(existing, status=status, updated_at=now)
        if status == "completed" and existing.completed_at is None:
            updated = replace(updated, completed_at=now)
        self._store[(student_id, course_id)] = updated
        return updated

    async def list_by_course(self, course_id: UUID) -> list[Enrollment]:
        return [e for e in self._store.values() if e.course_id == course_id]

    async def list_by_student(self, student_id: str) -> list[Enrollment]:
        return [e for e in self._store.values() if e.student_id == student_id]


class InMemoryEnrollmentRequestRepo:
    def __init__(self) -> None:
        self._by_id: dict[UUID, EnrollmentRequest] = {}

    async def get(self, request_id: UUID) -> EnrollmentRequest | None:
        return self._by_id.get(request_id)

    async def add(self, request: EnrollmentRequest) -> None:
        self._by_id[request.id] = request

    async def update(self, request: EnrollmentRequest) -> None:
        if request.id not in self._by_id:
            raise KeyError("enrollment request not found")
        self._by_id[request.id] = request

    async def list_by_status(self, status: str | None) -> list[EnrollmentRequest]:
        requests = [
            r for r in self._by_id.values() if status is None or r.status == status
        ]
        return sorted(requests, key=lambda r: r.created_at, reverse=True)
