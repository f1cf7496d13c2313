"""User-directory collaborator.

The hosted auth backend owns student accounts; this service only needs
to create one when an enrollment request is verified and to look up
display names for reports.  InMemoryUserDirectory stands in for it when
running locally and in tests.
"""

from __future__ import annotations

import logging
from typing import Protocol
from uuid import uuid4

from argon2 import PasswordHasher
from argon2.exceptions import InvalidHash, VerificationError, VerifyMismatchError

from app.models.student import StudentAccount
from app.services.errors import StudentAlreadyExistsError

logger = logging.getLogger(__name__)

_ph = PasswordHasher()


def hash_password(plain_password: str) -> str:
    if not plain_password:
        raise ValueError("password must be non-empty")
    return _ph.hash(plain_password)


def verify_password(plain_password: str, password_hash: str) -> bool:
    if not plain_password or not password_hash:
        return False
    try:
        return _ph.verify(password_hash, plain_password)
    except (VerifyMismatchError, VerificationError, InvalidHash):
        return False


class UserDirectory(Protocol):
    async def create_student(
        self,
        *,
        email: str,
        password: str,
        full_name: str,
        phone: str | None = None,
    ) -> StudentAccount: ...

    async def get(self, student_id: str) -> StudentAccount | None: ...


class InMemoryUserDirectory:
    def __init__(self) -> None:
        self._by_id: dict[str, StudentAccount] = {}
        self._by_email: dict[str, StudentAccount] = {}

    async def create_student(
        self,
        *,
        email: str,
        password: str,
        full_name: str,
        phone: str | None = None,
    ) -> StudentAccount:
        if email in self._by_email:
            logger.warning("Rejected duplicate student email=%s", email)
            raise StudentAlreadyExistsError(email)

        account = StudentAccount(
            id=str(uuid4()),
            email=email,
            full_name=full_name,
            password_hash=hash_password(password),
            phone=phone,
        )
        self._by_id[account.id] = account
        self._by_email[email] = account
        logger.info("Created student account id=%s email=%s", account.id, email)
        return account

    async def get(self, student_id: str) -> StudentAccount | None:
        return self._by_id.get(student_id)
