"""InstallationService — organization installations and individual connections."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone

from sqlalchemy.ext.asyncio import AsyncSession

from skillsync.dao.github_connection_dao import GitHubConnectionDAO
from skillsync.dao.github_installation_dao import GitHubInstallationDAO
from skillsync.models.github_connection import GitHubConnection
from skillsync.models.github_installation import GitHubInstallation
from skillsync.services import NotFoundError


class InstallationService:
    def __init__(
        self,
        installation_dao: GitHubInstallationDAO,
        connection_dao: GitHubConnectionDAO,
    ) -> None:
        self._installation_dao = installation_dao
        self._connection_dao = connection_dao

    # ── installations ─────────────────────────────────────────────────────

    async def get_by_installation_id(
        self, session: AsyncSession, installation_id: int
    ) -> GitHubInstallation | None:
        return await self._installation_dao.get_by_installation_id(session, installation_id)

    async def require_for_company(
        self, session: AsyncSession, company_id: uuid.UUID
    ) -> GitHubInstallation:
        """Return the company's active installation.

        Raises :class:`NotFoundError` if the company has none.
        """
        installation = await self._installation_dao.get_active_for_company(session, company_id)
        if installation is None:
            raise NotFoundError("no active installation for organization")
        return installation

    async def list_active(self, session: AsyncSession) -> list[GitHubInstallation]:
        return await self._installation_dao.list_active(session)

    async def register(
        self,
        session: AsyncSession,
        *,
        installation_id: int,
        company_id: uuid.UUID,
        account_login: str,
        account_type: str = "Organization",
    ) -> GitHubInstallation:
        return await self._installation_dao.upsert(
            session,
            installation_id=installation_id,
            company_id=company_id,
            account_login=account_login,
            account_type=account_type,
        )

    async def activate(self, session: AsyncSession, installation_id: int) -> bool:
        return await self._installation_dao.set_active(session, installation_id, is_active=True)

    async def deactivate(
        self, session: AsyncSession, installation_id: int, *, suspended: bool = False
    ) -> bool:
        return await self._installation_dao.set_active(
            session,
            installation_id,
            is_active=False,
            suspended_at=datetime.now(timezone.utc) if suspended else None,
        )

    # ── individual connections ────────────────────────────────────────────

    async def get_connection(
        self, session: AsyncSession, employee_id: uuid.UUID
    ) -> GitHubConnection | None:
        return await self._connection_dao.get_active_for_employee(session, employee_id)

    async def touch_connection(self, session: AsyncSession, employee_id: uuid.UUID) -> None:
        await self._connection_dao.touch_last_sync(session, employee_id)
