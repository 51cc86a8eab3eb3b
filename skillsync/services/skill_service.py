"""SkillService — skill taxonomy and per-employee skill records."""

from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy.ext.asyncio import AsyncSession

from skillsync.dao.skill_dao import SkillDAO
from skillsync.dao.skill_record_dao import SkillRecordDAO
from skillsync.models.skill import Skill


class SkillService:
    def __init__(self, skill_dao: SkillDAO, skill_record_dao: SkillRecordDAO) -> None:
        self._skill_dao = skill_dao
        self._record_dao = skill_record_dao

    async def ensure_skill(self, session: AsyncSession, name: str, category: str) -> Skill:
        return await self._skill_dao.get_or_create(session, name=name, category=category)

    async def upsert_auto_record(
        self,
        session: AsyncSession,
        employee_id: uuid.UUID,
        skill_id: uuid.UUID,
        *,
        level: str,
        confidence: float,
        lines_of_code: int,
        commit_count: int,
        projects_used: int,
        last_used_at: datetime | None,
        source: str,
    ) -> bool:
        """Write an inferred record; False when a manual record blocks it."""
        return await self._record_dao.upsert_auto(
            session,
            employee_id=employee_id,
            skill_id=skill_id,
            level=level,
            confidence=confidence,
            lines_of_code=lines_of_code,
            commit_count=commit_count,
            projects_used=projects_used,
            last_used_at=last_used_at,
            source=source,
        )

    async def prune_auto_records(
        self, session: AsyncSession, employee_id: uuid.UUID, keep_skill_ids: list[uuid.UUID]
    ) -> int:
        return await self._record_dao.delete_stale_auto(session, employee_id, keep_skill_ids)

    async def list_for_employee(self, session: AsyncSession, employee_id: uuid.UUID) -> list[dict]:
        """Employee skills joined with their taxonomy entry."""
        rows = await self._record_dao.list_by_employee(session, employee_id)
        return [
            {
                "skill_id": skill.id,
                "name": skill.name,
                "category": skill.category,
                "level": record.level,
                "confidence": record.confidence,
                "lines_of_code": record.lines_of_code,
                "commit_count": record.commit_count,
                "projects_used": record.projects_used,
                "last_used_at": record.last_used_at,
                "is_auto_detected": record.is_auto_detected,
                "source": record.source,
            }
            for record, skill in rows
        ]
