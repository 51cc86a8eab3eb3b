"""CommitDAO — commits table operations."""

import uuid
from datetime import datetime
from typing import Any

from sqlalchemy import func, literal_column, or_, select
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.ext.asyncio import AsyncSession

from skillsync.dao.base import BaseDAO
from skillsync.models.commit import Commit

_STAT_COLUMNS = ("additions", "deletions", "files_changed")


class CommitDAO(BaseDAO[Commit]):
    model = Commit
    immutable_columns = BaseDAO.immutable_columns | {"repository_id", "sha"}

    # ── read ──────────────────────────────────────────────────────────────

    async def count_by_repository(self, session: AsyncSession, repository_id: uuid.UUID) -> int:
        stmt = select(func.count()).select_from(Commit).where(Commit.repository_id == repository_id)
        result = await session.execute(stmt)
        return result.scalar_one()

    async def author_stats(
        self,
        session: AsyncSession,
        repository_id: uuid.UUID,
        *,
        login: str | None,
        email: str | None,
    ) -> tuple[int, datetime | None]:
        """Commits attributed to an identity in one repository.

        A commit belongs to the identity when its ``author_login`` equals
        *login* or its author email equals *email* (both case-insensitive).
        Returns ``(count, most recent author_date)``.
        """
        conditions = []
        if login:
            conditions.append(func.lower(Commit.author_login) == login.lower())
        if email:
            conditions.append(func.lower(Commit.author_email) == email.lower())
        if not conditions:
            return 0, None
        stmt = select(func.count(), func.max(Commit.author_date)).where(
            Commit.repository_id == repository_id, or_(*conditions)
        )
        row = (await session.execute(stmt)).one()
        return row[0], row[1]

    # ── write ─────────────────────────────────────────────────────────────

    async def upsert(
        self,
        session: AsyncSession,
        repository_id: uuid.UUID,
        sha: str,
        **values: Any,
    ) -> bool:
        """Insert or update a commit keyed by ``(repository_id, sha)``.

        Diff-stat columns are only overwritten when supplied, so a later
        observation without stats keeps the ones fetched earlier.
        Returns True when a new row was inserted.
        """
        for key in values:
            if key in self.immutable_columns:
                raise AttributeError(f"'{key}' is immutable and cannot be upserted")
        set_ = {k: v for k, v in values.items() if k not in _STAT_COLUMNS or v is not None}
        insert_values = {k: v for k, v in values.items() if v is not None}
        set_["updated_at"] = func.now()
        stmt = (
            insert(Commit)
            .values(repository_id=repository_id, sha=sha, **insert_values)
            .on_conflict_do_update(constraint="uq_commits_repository_sha", set_=set_)
            .returning(literal_column("(xmax = 0)").label("inserted"))
        )
        result = await session.execute(stmt)
        return bool(result.scalar_one())
