from __future__ import annotations

from dataclasses import dataclass
from typing import Literal
from uuid import UUID, uuid4

EnrollmentStatus = Literal["active", "completed", "revoked"]
RequestStatus = Literal["pending", "verified", "rejected"]

REPORTABLE_STATUSES: frozenset[str] = frozenset({"active", "completed"})


@dataclass(frozen=True, slots=True)
class Enrollment:
    """A student's relationship to a course, keyed by (student_id, course_id)."""

    student_id: str
    course_id: UUID
    status: EnrollmentStatus = "active"
    created_at: int = 0
    updated_at: int = 0
    completed_at: int | None = None
    needs_content: bool = False  # activation found no topics

    @property
    def is_reportable(self) -> bool:
        return self.status in REPORTABLE_STATUSES


@dataclass(frozen=True, slots=True)
class EnrollmentRequest:
    """An applicant's request to join a course, pending manual receipt review."""

    id: UUID
    course_id: UUID
    full_name: str
    email: str
    phone: str | None
    receipt_url: str | None
    status: RequestStatus = "pending"
    created_at: int = 0
    processed_by: str | None = None
    processed_at: int | None = None
    created_student_id: str | None = None
    notes: str | None = None

    @staticmethod
    def new(
        *,
        course_id: UUID,
        full_name: str,
        email: str,
        phone: str | None,
        receipt_url: str | None,
        created_at: int,
    ) -> EnrollmentRequest:
        return EnrollmentRequest(
            id=uuid4(),
            course_id=course_id,
            full_name=full_name,
            email=email,
            phone=phone,
            receipt_url=receipt_url,
            created_at=created_at,
        )
