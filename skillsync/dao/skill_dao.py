"""SkillDAO — skills taxonomy operations."""

from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.ext.asyncio import AsyncSession

from skillsync.dao.base import BaseDAO
from skillsync.models.skill import Skill


class SkillDAO(BaseDAO[Skill]):
    model = Skill

    async def get_or_create(self, session: AsyncSession, *, name: str, category: str) -> Skill:
        """Return the taxonomy entry for *name*, creating it when missing.

        Lookup is case-insensitive; the first spelling seen is kept.
        """
        slug = name.strip().lower()
        stmt = (
            insert(Skill)
            .values(name=name.strip(), slug=slug, category=category)
            .on_conflict_do_nothing(index_elements=["slug"])
            .returning(Skill)
        )
        result = await session.execute(stmt)
        row = result.scalars().first()
        if row is None:
            # already registered
            row = await self.get_by_field(session, slug=slug)
        return row
