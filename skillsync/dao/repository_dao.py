"""RepositoryDAO — repositories table operations."""

import uuid
from typing import Any

from sqlalchemy import delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from skillsync.dao.base import BaseDAO
from skillsync.models.commit import Commit
from skillsync.models.employee_repository import EmployeeRepository
from skillsync.models.repository import Repository

# columns the platform is authoritative for; refreshed on every observation
_MUTABLE_COLUMNS = (
    "company_id",
    "name",
    "full_name",
    "owner_login",
    "description",
    "default_branch",
    "visibility",
    "is_fork",
    "is_archived",
    "stars",
    "primary_language",
    "languages",
    "frameworks",
    "github_created_at",
    "pushed_at",
    "last_activity_at",
    "last_synced_at",
)


class RepositoryDAO(BaseDAO[Repository]):
    model = Repository

    # ── read ──────────────────────────────────────────────────────────────

    async def get_by_github_id(
        self, session: AsyncSession, github_repo_id: int
    ) -> Repository | None:
        return await self.get_by_field(session, github_repo_id=github_repo_id)

    async def list_for_employee(
        self,
        session: AsyncSession,
        employee_id: uuid.UUID,
        company_id: uuid.UUID | None = None,
    ) -> list[Repository]:
        """Repositories associated with an employee (skill inference input)."""
        stmt = (
            select(Repository)
            .join(EmployeeRepository, EmployeeRepository.repository_id == Repository.id)
            .where(EmployeeRepository.employee_id == employee_id)
            .order_by(Repository.full_name)
        )
        if company_id is not None:
            stmt = stmt.where(Repository.company_id == company_id)
        result = await session.execute(stmt)
        return list(result.scalars().all())

    # ── write ─────────────────────────────────────────────────────────────

    async def upsert(self, session: AsyncSession, values: dict[str, Any]) -> Repository:
        """Insert or refresh a repository keyed by ``github_repo_id``.

        Only the keys present in *values* are overwritten on conflict, so a
        partial observation (e.g. a webhook without language data) never
        clears what a sync stored earlier.
        """
        if "github_repo_id" not in values:
            raise ValueError("upsert() requires github_repo_id")
        return await self._upsert(
            session, values, refresh=_MUTABLE_COLUMNS, index_elements=["github_repo_id"]
        )

    async def set_archived(
        self, session: AsyncSession, github_repo_id: int, is_archived: bool
    ) -> bool:
        stmt = (
            update(Repository)
            .where(Repository.github_repo_id == github_repo_id)
            .values(is_archived=is_archived)
        )
        result = await session.execute(stmt)
        return result.rowcount > 0

    async def delete_by_github_id(self, session: AsyncSession, github_repo_id: int) -> bool:
        """Remove a repository and (via cascade) its commits. False if absent."""
        stmt = delete(Repository).where(Repository.github_repo_id == github_repo_id)
        result = await session.execute(stmt)
        return result.rowcount > 0

    async def recount_commits(self, session: AsyncSession, pk: uuid.UUID) -> int:
        """Set ``total_commits`` from the stored commit rows and return it."""
        self._require_pk(pk)
        total = (
            select(func.count())
            .select_from(Commit)
            .where(Commit.repository_id == pk)
            .scalar_subquery()
        )
        stmt = (
            update(Repository)
            .where(Repository.id == pk)
            .values(total_commits=total)
            .returning(Repository.total_commits)
        )
        result = await session.execute(stmt)
        return result.scalar_one()

    async def sample_full_names(
        self, session: AsyncSession, company_id: uuid.UUID, limit: int
    ) -> list[str]:
        """Most recently active repository names for a company."""
        stmt = (
            select(Repository.full_name)
            .where(Repository.company_id == company_id)
            .order_by(Repository.last_activity_at.desc().nullslast(), Repository.full_name)
            .limit(limit)
        )
        result = await session.execute(stmt)
        return list(result.scalars().all())
