from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class StudentAccount:
    """A user-directory account as seen by this service."""

    id: str
    email: str
    full_name: str
    password_hash: str
    phone: str | None = None
    role: str = "student"
    is_active: bool = True
