"""SkillRecordDAO — skill_records table operations."""

import uuid
from datetime import datetime

from sqlalchemy import delete, func, select
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.ext.asyncio import AsyncSession

from skillsync.dao.base import BaseDAO
from skillsync.models.skill import Skill
from skillsync.models.skill_record import SkillRecord


class SkillRecordDAO(BaseDAO[SkillRecord]):
    model = SkillRecord

    # ── read ──────────────────────────────────────────────────────────────

    async def list_by_employee(
        self, session: AsyncSession, employee_id: uuid.UUID
    ) -> list[tuple[SkillRecord, Skill]]:
        """Skill records with their taxonomy entry, strongest first."""
        stmt = (
            select(SkillRecord, Skill)
            .join(Skill, Skill.id == SkillRecord.skill_id)
            .where(SkillRecord.employee_id == employee_id)
            .order_by(SkillRecord.confidence.desc(), Skill.name)
        )
        result = await session.execute(stmt)
        return [(row[0], row[1]) for row in result.all()]

    # ── write ─────────────────────────────────────────────────────────────

    async def upsert_auto(
        self,
        session: AsyncSession,
        *,
        employee_id: uuid.UUID,
        skill_id: uuid.UUID,
        level: str,
        confidence: float,
        lines_of_code: int,
        commit_count: int,
        projects_used: int,
        last_used_at: datetime | None,
        source: str,
    ) -> bool:
        """Write an auto-detected record keyed by ``(employee_id, skill_id)``.

        A manually curated record (``is_auto_detected = false``) is never
        overwritten. Returns False when the write was skipped for that reason.
        """
        values = {
            "level": level,
            "confidence": confidence,
            "lines_of_code": lines_of_code,
            "commit_count": commit_count,
            "projects_used": projects_used,
            "last_used_at": last_used_at,
            "source": source,
        }
        stmt = (
            insert(SkillRecord)
            .values(employee_id=employee_id, skill_id=skill_id, is_auto_detected=True, **values)
            .on_conflict_do_update(
                constraint="uq_skill_records_employee_skill",
                set_={**values, "updated_at": func.now()},
                where=SkillRecord.__table__.c.is_auto_detected.is_(True),
            )
            .returning(SkillRecord.id)
        )
        result = await session.execute(stmt)
        return result.first() is not None

    async def delete_stale_auto(
        self,
        session: AsyncSession,
        employee_id: uuid.UUID,
        keep_skill_ids: list[uuid.UUID],
    ) -> int:
        """Remove auto-detected records for skills no longer observed."""
        stmt = delete(SkillRecord).where(
            SkillRecord.employee_id == employee_id,
            SkillRecord.is_auto_detected.is_(True),
        )
        if keep_skill_ids:
            stmt = stmt.where(SkillRecord.skill_id.not_in(keep_skill_ids))
        result = await session.execute(stmt)
        return result.rowcount
