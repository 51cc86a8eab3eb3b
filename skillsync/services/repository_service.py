"""RepositoryService — repositories, commits, pull requests and their links."""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from skillsync.dao.commit_dao import CommitDAO
from skillsync.dao.employee_repository_dao import EmployeeRepositoryDAO
from skillsync.dao.pull_request_dao import PullRequestDAO
from skillsync.dao.repository_dao import RepositoryDAO
from skillsync.models.repository import Repository


class RepositoryService:
    """Stateless service for idempotent contribution writes."""

    def __init__(
        self,
        repository_dao: RepositoryDAO,
        commit_dao: CommitDAO,
        pull_request_dao: PullRequestDAO,
        employee_repository_dao: EmployeeRepositoryDAO,
    ) -> None:
        self._repo_dao = repository_dao
        self._commit_dao = commit_dao
        self._pr_dao = pull_request_dao
        self._link_dao = employee_repository_dao

    # ── repositories ──────────────────────────────────────────────────────

    async def get_by_github_id(
        self, session: AsyncSession, github_repo_id: int
    ) -> Repository | None:
        return await self._repo_dao.get_by_github_id(session, github_repo_id)

    async def list_for_employee(
        self,
        session: AsyncSession,
        employee_id: uuid.UUID,
        company_id: uuid.UUID | None = None,
    ) -> list[Repository]:
        return await self._repo_dao.list_for_employee(session, employee_id, company_id)

    async def upsert_repository(
        self, session: AsyncSession, values: dict[str, Any]
    ) -> Repository:
        """Insert or refresh by ``github_repo_id``; returns the stored row."""
        return await self._repo_dao.upsert(session, values)

    async def delete_repository(self, session: AsyncSession, github_repo_id: int) -> bool:
        return await self._repo_dao.delete_by_github_id(session, github_repo_id)

    async def set_archived(
        self, session: AsyncSession, github_repo_id: int, is_archived: bool
    ) -> bool:
        return await self._repo_dao.set_archived(session, github_repo_id, is_archived)

    async def recount_commits(self, session: AsyncSession, repository_id: uuid.UUID) -> int:
        """Recompute ``total_commits`` from stored rows (never incremented)."""
        return await self._repo_dao.recount_commits(session, repository_id)

    async def link_employee(
        self,
        session: AsyncSession,
        employee_id: uuid.UUID,
        repository_id: uuid.UUID,
        *,
        commit_count: int | None = None,
        last_activity_at: datetime | None = None,
    ) -> None:
        await self._link_dao.link(
            session,
            employee_id=employee_id,
            repository_id=repository_id,
            commit_count=commit_count,
            last_activity_at=last_activity_at,
        )

    # ── commits / pull requests ───────────────────────────────────────────

    async def upsert_commit(
        self,
        session: AsyncSession,
        repository_id: uuid.UUID,
        sha: str,
        **values: Any,
    ) -> bool:
        """Idempotent commit write keyed by (repository, sha). True if new."""
        return await self._commit_dao.upsert(session, repository_id, sha, **values)

    async def upsert_pull_request(
        self,
        session: AsyncSession,
        repository_id: uuid.UUID,
        number: int,
        **values: Any,
    ) -> bool:
        return await self._pr_dao.upsert(session, repository_id, number, **values)

    async def count_commits(self, session: AsyncSession, repository_id: uuid.UUID) -> int:
        return await self._commit_dao.count_by_repository(session, repository_id)

    async def author_stats(
        self,
        session: AsyncSession,
        repository_id: uuid.UUID,
        *,
        login: str | None,
        email: str | None,
    ) -> tuple[int, datetime | None]:
        return await self._commit_dao.author_stats(
            session, repository_id, login=login, email=email
        )

    async def sample_full_names(
        self, session: AsyncSession, company_id: uuid.UUID, limit: int = 10
    ) -> list[str]:
        return await self._repo_dao.sample_full_names(session, company_id, limit)
