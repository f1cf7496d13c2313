"""PostgreSQL-backed UserDirectory.

Used when the service runs against its own database instead of a hosted
directory.  Password hashing stays in app.services.user_directory.
"""

from __future__ import annotations

import logging
from uuid import uuid4

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.engine import store_errors
from app.db.tables import StudentAccountRow
from app.models.student import StudentAccount
from app.services.errors import StudentAlreadyExistsError
from app.services.user_directory import hash_password

logger = logging.getLogger(__name__)


class PgUserDirectory:
    """Satisfies the UserDirectory Protocol using PostgreSQL via SQLAlchemy."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def create_student(
        self,
        *,
        email: str,
        password: str,
        full_name: str,
        phone: str | None = None,
    ) -> StudentAccount:
        stmt = select(StudentAccountRow.id).where(StudentAccountRow.email == email)
        async with store_errors("directory.lookup"):
            taken = (await self._session.execute(stmt)).scalar_one_or_none()
        if taken is not None:
            logger.warning("Rejected duplicate student email=%s", email)
            raise StudentAlreadyExistsError(email)

        account = StudentAccount(
            id=str(uuid4()),
            email=email,
            full_name=full_name,
            password_hash=hash_password(password),
            phone=phone,
        )
        self._session.add(
            StudentAccountRow(
                id=account.id,
                email=account.email,
                full_name=account.full_name,
                password_hash=account.password_hash,
                phone=account.phone,
                role=account.role,
                is_active=account.is_active,
            )
        )
        async with store_errors("directory.create_student"):
            try:
                await self._session.flush()
            except IntegrityError:
                await self._session.rollback()
                raise StudentAlreadyExistsError(email) from None
        logger.info("Created student account id=%s email=%s", account.id, email)
        return account

    async def get(self, student_id: str) -> StudentAccount | None:
        async with store_errors("directory.get"):
            row = await self._session.get(StudentAccountRow, student_id)
        if row is None:
            return None
        return StudentAccount(
            id=row.id,
            email=row.email,
            full_name=row.full_name,
            password_hash=row.password_hash,
            phone=row.phone,
            role=row.role,
            is_active=row.is_active,
        )
