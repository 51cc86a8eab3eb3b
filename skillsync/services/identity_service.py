"""IdentityService — employees, organization members and the link between them."""

from __future__ import annotations

import uuid

from sqlalchemy.ext.asyncio import AsyncSession

from skillsync.dao.employee_dao import EmployeeDAO
from skillsync.dao.organization_member_dao import OrganizationMemberDAO
from skillsync.models.employee import Employee
from skillsync.models.organization_member import OrganizationMember
from skillsync.services import ConflictError, NotFoundError


class IdentityService:
    """Reads and writes both sides of an identity link.

    A link is stored twice: on the OrganizationMember (``employee_id``) and
    on the Employee (``github_username`` / ``github_user_id``). Every write
    here keeps the two in step.
    """

    def __init__(self, employee_dao: EmployeeDAO, member_dao: OrganizationMemberDAO) -> None:
        self._employee_dao = employee_dao
        self._member_dao = member_dao

    # ── employees ─────────────────────────────────────────────────────────

    async def get_employee(self, session: AsyncSession, employee_id: uuid.UUID) -> Employee:
        employee = await self._employee_dao.get_by_id(session, employee_id)
        if employee is None:
            raise NotFoundError("employee not found")
        return employee

    async def find_employee_by_email(
        self, session: AsyncSession, company_id: uuid.UUID, email: str
    ) -> Employee | None:
        return await self._employee_dao.find_by_email(session, company_id, email)

    async def find_employee_by_name(
        self, session: AsyncSession, company_id: uuid.UUID, first_name: str, last_name: str
    ) -> Employee | None:
        return await self._employee_dao.find_by_name(session, company_id, first_name, last_name)

    async def find_employee_by_username(
        self, session: AsyncSession, company_id: uuid.UUID | None, username: str
    ) -> Employee | None:
        return await self._employee_dao.get_by_github_username(session, company_id, username)

    # ── members ───────────────────────────────────────────────────────────

    async def get_member(
        self, session: AsyncSession, company_id: uuid.UUID, github_user_id: int
    ) -> OrganizationMember | None:
        return await self._member_dao.get_by_github_user(session, company_id, github_user_id)

    async def upsert_member(
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
        return await self._member_dao.upsert_snapshot(
            session,
            company_id=company_id,
            github_user_id=github_user_id,
            github_username=github_username,
            github_email=github_email,
            github_name=github_name,
            org_role=org_role,
        )

    async def deactivate_member(
        self, session: AsyncSession, company_id: uuid.UUID, github_user_id: int
    ) -> bool:
        return await self._member_dao.deactivate(session, company_id, github_user_id)

    async def list_unresolved(
        self,
        session: AsyncSession,
        company_id: uuid.UUID,
        cursor: str | None = None,
        page_size: int = 20,
    ) -> dict:
        page = await self._member_dao.list_unresolved(session, company_id, cursor, page_size)
        return page.as_dict()

    async def list_resolved(
        self,
        session: AsyncSession,
        company_id: uuid.UUID,
        cursor: str | None = None,
        page_size: int = 20,
    ) -> dict:
        page = await self._member_dao.list_resolved(session, company_id, cursor, page_size)
        return page.as_dict()

    # ── linking ───────────────────────────────────────────────────────────

    async def record_match(
        self,
        session: AsyncSession,
        member: OrganizationMember,
        employee: Employee,
        *,
        confidence: float,
        method: str,
    ) -> None:
        """Persist a link on both sides.

        Any member previously holding *employee* is detached first so the
        one-to-one mapping holds.
        """
        if member.employee_id is not None and member.employee_id != employee.id:
            await self._employee_dao.clear_github_link(session, member.employee_id)
        await self._member_dao.release_employee(session, employee.id)
        await self._member_dao.set_resolution(
            session, member.id, employee_id=employee.id, confidence=confidence, method=method
        )
        await self._employee_dao.set_github_link(
            session,
            employee.id,
            github_username=member.github_username,
            github_user_id=member.github_user_id,
            confidence=confidence,
            method=method,
            auto_discovered=method != "manual",
        )

    async def record_unmatched(self, session: AsyncSession, member: OrganizationMember) -> None:
        await self._member_dao.set_resolution(
            session, member.id, employee_id=None, confidence=0.0, method=None
        )

    async def unlink(
        self, session: AsyncSession, company_id: uuid.UUID, github_user_id: int
    ) -> OrganizationMember:
        """Remove a member's employee link.

        Raises :class:`NotFoundError` for an unknown member and
        :class:`ConflictError` when the member is not linked.
        """
        member = await self.get_member(session, company_id, github_user_id)
        if member is None:
            raise NotFoundError("organization member not found")
        if member.employee_id is None:
            raise ConflictError("organization member is not linked")
        await self._employee_dao.clear_github_link(session, member.employee_id)
        await self.record_unmatched(session, member)
        return member
