"""EmployeeRepositoryDAO — employee_repositories association operations."""

import uuid
from datetime import datetime

from sqlalchemy import func
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.ext.asyncio import AsyncSession

from skillsync.dao.base import BaseDAO
from skillsync.models.employee_repository import EmployeeRepository


class EmployeeRepositoryDAO(BaseDAO[EmployeeRepository]):
    model = EmployeeRepository

    async def link(
        self,
        session: AsyncSession,
        *,
        employee_id: uuid.UUID,
        repository_id: uuid.UUID,
        commit_count: int | None = None,
        last_activity_at: datetime | None = None,
    ) -> None:
        """Associate an employee with a repository (idempotent).

        ``commit_count`` is only replaced when given; ``last_activity_at``
        only moves forward.
        """
        table = EmployeeRepository.__table__
        stmt = insert(EmployeeRepository).values(
            employee_id=employee_id,
            repository_id=repository_id,
            commit_count=commit_count or 0,
            last_activity_at=last_activity_at,
        )
        set_ = {
            "last_activity_at": func.greatest(
                table.c.last_activity_at, stmt.excluded.last_activity_at
            ),
            "updated_at": func.now(),
        }
        if commit_count is not None:
            set_["commit_count"] = commit_count
        stmt = stmt.on_conflict_do_update(
            constraint="uq_employee_repositories_employee_repository", set_=set_
        )
        await session.execute(stmt)
