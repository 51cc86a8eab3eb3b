"""GitHubInstallationDAO — github_installations table operations."""

import uuid
from datetime import datetime

from sqlalchemy import select, update
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.ext.asyncio import AsyncSession

from skillsync.dao.base import BaseDAO
from skillsync.models.github_installation import GitHubInstallation


class GitHubInstallationDAO(BaseDAO[GitHubInstallation]):
    model = GitHubInstallation

    # ── read ──────────────────────────────────────────────────────────────

    async def get_by_installation_id(
        self, session: AsyncSession, installation_id: int
    ) -> GitHubInstallation | None:
        return await self.get_by_field(session, installation_id=installation_id)

    async def get_active_for_company(
        self, session: AsyncSession, company_id: uuid.UUID
    ) -> GitHubInstallation | None:
        stmt = (
            select(GitHubInstallation)
            .where(
                GitHubInstallation.company_id == company_id,
                GitHubInstallation.is_active.is_(True),
            )
            .order_by(GitHubInstallation.created_at.desc())
        )
        result = await session.execute(stmt)
        return result.scalars().first()

    async def list_active(self, session: AsyncSession) -> list[GitHubInstallation]:
        """All active installations (periodic organization sync)."""
        stmt = (
            select(GitHubInstallation)
            .where(GitHubInstallation.is_active.is_(True))
            .order_by(GitHubInstallation.created_at)
        )
        result = await session.execute(stmt)
        return list(result.scalars().all())

    # ── write ─────────────────────────────────────────────────────────────

    async def upsert(
        self,
        session: AsyncSession,
        *,
        installation_id: int,
        company_id: uuid.UUID,
        account_login: str,
        account_type: str = "Organization",
    ) -> GitHubInstallation:
        """Register an installation or reactivate an existing one."""
        stmt = (
            insert(GitHubInstallation)
            .values(
                installation_id=installation_id,
                company_id=company_id,
                account_login=account_login,
                account_type=account_type,
                is_active=True,
            )
            .on_conflict_do_update(
                index_elements=["installation_id"],
                set_={
                    "account_login": account_login,
                    "account_type": account_type,
                    "is_active": True,
                    "suspended_at": None,
                },
            )
            .returning(GitHubInstallation)
        )
        result = await session.execute(stmt)
        return result.scalars().one()

    async def set_active(
        self,
        session: AsyncSession,
        installation_id: int,
        *,
        is_active: bool,
        suspended_at: datetime | None = None,
    ) -> bool:
        """Toggle an installation. Returns False when it is unknown."""
        stmt = (
            update(GitHubInstallation)
            .where(GitHubInstallation.installation_id == installation_id)
            .values(is_active=is_active, suspended_at=suspended_at)
        )
        result = await session.execute(stmt)
        return result.rowcount > 0
