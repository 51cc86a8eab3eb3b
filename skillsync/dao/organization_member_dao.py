"""OrganizationMemberDAO — organization_members table operations."""

import uuid

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from skillsync.dao.base import BaseDAO, Page
from skillsync.models.organization_member import OrganizationMember

# external account fields; resolution columns are never touched by a rescan
_SNAPSHOT_COLUMNS = ("github_username", "github_email", "github_name", "org_role", "is_active")


class OrganizationMemberDAO(BaseDAO[OrganizationMember]):
    model = OrganizationMember

    # ── read ──────────────────────────────────────────────────────────────

    async def get_by_github_user(
        self, session: AsyncSession, company_id: uuid.UUID, github_user_id: int
    ) -> OrganizationMember | None:
        stmt = select(OrganizationMember).where(
            OrganizationMember.company_id == company_id,
            OrganizationMember.github_user_id == github_user_id,
        )
        result = await session.execute(stmt)
        return result.scalars().first()

    async def list_unresolved(
        self,
        session: AsyncSession,
        company_id: uuid.UUID,
        cursor: str | None = None,
        page_size: int = 20,
    ) -> Page[OrganizationMember]:
        """Active members without an employee link (manual review queue)."""
        query = select(OrganizationMember).where(
            OrganizationMember.company_id == company_id,
            OrganizationMember.employee_id.is_(None),
            OrganizationMember.is_active.is_(True),
        )
        return await self.paginate(session, query, cursor, page_size)

    async def list_resolved(
        self,
        session: AsyncSession,
        company_id: uuid.UUID,
        cursor: str | None = None,
        page_size: int = 20,
    ) -> Page[OrganizationMember]:
        query = select(OrganizationMember).where(
            OrganizationMember.company_id == company_id,
            OrganizationMember.employee_id.is_not(None),
        )
        return await self.paginate(session, query, cursor, page_size)

    # ── write ─────────────────────────────────────────────────────────────

    async def upsert_snapshot(
        self,
        session: AsyncSession,
        *,
        company_id: uuid.UUID,
        github_user_id: int,
        github_username: str,
        github_email: str | None = None,
        github_name: str | None = None,
        org_role: str = "member",
    ) -> OrganizationMember:
        """Insert or refresh the external account snapshot.

        Resolution columns (employee_id, confidence, method) are left
        untouched on conflict.
        """
        values = dict(
            company_id=company_id,
            github_user_id=github_user_id,
            github_username=github_username,
            github_email=github_email,
            github_name=github_name,
            org_role=org_role,
            is_active=True,
        )
        return await self._upsert(
            session,
            values,
            refresh=_SNAPSHOT_COLUMNS,
            constraint="uq_organization_members_company_github_user",
        )

    async def set_resolution(
        self,
        session: AsyncSession,
        pk: uuid.UUID,
        *,
        employee_id: uuid.UUID | None,
        confidence: float,
        method: str | None,
    ) -> None:
        self._require_pk(pk)
        stmt = (
            update(OrganizationMember)
            .where(OrganizationMember.id == pk)
            .values(employee_id=employee_id, match_confidence=confidence, match_method=method)
        )
        await session.execute(stmt)

    async def release_employee(self, session: AsyncSession, employee_id: uuid.UUID) -> None:
        """Detach *employee_id* from whichever member currently holds it."""
        stmt = (
            update(OrganizationMember)
            .where(OrganizationMember.employee_id == employee_id)
            .values(employee_id=None, match_confidence=0.0, match_method=None)
        )
        await session.execute(stmt)

    async def deactivate(
        self, session: AsyncSession, company_id: uuid.UUID, github_user_id: int
    ) -> bool:
        stmt = (
            update(OrganizationMember)
            .where(
                OrganizationMember.company_id == company_id,
                OrganizationMember.github_user_id == github_user_id,
            )
            .values(is_active=False)
        )
        result = await session.execute(stmt)
        return result.rowcount > 0
