"""PullRequestDAO — pull_requests table operations."""

import uuid
from typing import Any

from sqlalchemy import func, literal_column
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.ext.asyncio import AsyncSession

from skillsync.dao.base import BaseDAO
from skillsync.models.pull_request import PullRequest


class PullRequestDAO(BaseDAO[PullRequest]):
    model = PullRequest

    async def upsert(
        self,
        session: AsyncSession,
        repository_id: uuid.UUID,
        number: int,
        **values: Any,
    ) -> bool:
        """Insert or refresh a pull request keyed by ``(repository_id, number)``.

        Returns True when a new row was inserted.
        """
        set_ = dict(values)
        set_["updated_at"] = func.now()
        stmt = (
            insert(PullRequest)
            .values(repository_id=repository_id, number=number, **values)
            .on_conflict_do_update(constraint="uq_pull_requests_repository_number", set_=set_)
            .returning(literal_column("(xmax = 0)").label("inserted"))
        )
        result = await session.execute(stmt)
        return bool(result.scalar_one())
