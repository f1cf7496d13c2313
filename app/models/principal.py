from __future__ import annotations

from dataclasses import dataclass

STAFF_ROLES: frozenset[str] = frozenset({"admin", "instructor"})


@dataclass(frozen=True, slots=True)
class Principal:
    """Caller identity taken from a verified user-directory token.

    For students user_id doubles as the student_id passed to every
    progress operation.  roles: student|instructor|admin
    """

    user_id: str
    roles: frozenset[str]

    def has_role(self, role: str) -> bool:
        return role in self.roles

    def has_any_role(self, roles: set[str] | frozenset[str]) -> bool:
        return bool(self.roles & roles)
