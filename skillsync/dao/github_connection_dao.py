"""GitHubConnectionDAO — github_connections table operations."""

import uuid
from datetime import datetime, timezone

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from skillsync.dao.base import BaseDAO
from skillsync.models.github_connection import GitHubConnection


class GitHubConnectionDAO(BaseDAO[GitHubConnection]):
    model = GitHubConnection

    async def get_active_for_employee(
        self, session: AsyncSession, employee_id: uuid.UUID
    ) -> GitHubConnection | None:
        stmt = select(GitHubConnection).where(
            GitHubConnection.employee_id == employee_id,
            GitHubConnection.is_active.is_(True),
        )
        result = await session.execute(stmt)
        return result.scalars().first()

    async def touch_last_sync(self, session: AsyncSession, employee_id: uuid.UUID) -> None:
        stmt = (
            update(GitHubConnection)
            .where(GitHubConnection.employee_id == employee_id)
            .values(last_sync_at=datetime.now(timezone.utc))
        )
        await session.execute(stmt)
