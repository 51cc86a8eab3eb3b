"""EmployeeDAO — employees table operations."""

import uuid

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from skillsync.dao.base import BaseDAO
from skillsync.models.employee import Employee


class EmployeeDAO(BaseDAO[Employee]):
    model = Employee

    # ── read ──────────────────────────────────────────────────────────────

    async def find_by_email(
        self, session: AsyncSession, company_id: uuid.UUID, email: str
    ) -> Employee | None:
        """Case-insensitive exact email match within a company."""
        stmt = select(Employee).where(
            Employee.company_id == company_id,
            func.lower(Employee.email) == email.strip().lower(),
        )
        result = await session.execute(stmt)
        return result.scalars().first()

    async def find_by_name(
        self,
        session: AsyncSession,
        company_id: uuid.UUID,
        first_name: str,
        last_name: str,
    ) -> Employee | None:
        """Case-insensitive exact first/last name match within a company."""
        stmt = (
            select(Employee)
            .where(
                Employee.company_id == company_id,
                func.lower(Employee.first_name) == first_name.lower(),
                func.lower(Employee.last_name) == last_name.lower(),
            )
            .order_by(Employee.created_at)
        )
        result = await session.execute(stmt)
        return result.scalars().first()

    async def get_by_github_username(
        self, session: AsyncSession, company_id: uuid.UUID | None, username: str
    ) -> Employee | None:
        """Resolve a linked employee by external username (case-insensitive)."""
        stmt = select(Employee).where(
            func.lower(Employee.github_username) == username.lower()
        )
        if company_id is not None:
            stmt = stmt.where(Employee.company_id == company_id)
        result = await session.execute(stmt)
        return result.scalars().first()

    # ── write ─────────────────────────────────────────────────────────────

    async def set_github_link(
        self,
        session: AsyncSession,
        pk: uuid.UUID,
        *,
        github_username: str,
        github_user_id: int | None,
        confidence: float,
        method: str,
        auto_discovered: bool,
    ) -> None:
        self._require_pk(pk)
        stmt = (
            update(Employee)
            .where(Employee.id == pk)
            .values(
                github_username=github_username,
                github_user_id=github_user_id,
                discovery_confidence=confidence,
                discovery_method=method,
                auto_discovered=auto_discovered,
            )
        )
        await session.execute(stmt)

    async def clear_github_link(self, session: AsyncSession, pk: uuid.UUID) -> None:
        self._require_pk(pk)
        stmt = (
            update(Employee)
            .where(Employee.id == pk)
            .values(
                github_username=None,
                github_user_id=None,
                discovery_confidence=None,
                discovery_method=None,
                auto_discovered=False,
            )
        )
        await session.execute(stmt)
