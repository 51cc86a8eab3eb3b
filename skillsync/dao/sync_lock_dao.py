"""SyncLockDAO — per-scope sync mutual exclusion."""

from datetime import datetime, timedelta, timezone

from sqlalchemy import delete
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.ext.asyncio import AsyncSession

from skillsync.dao.base import BaseDAO
from skillsync.models.sync_lock import SyncLock


class SyncLockDAO(BaseDAO[SyncLock]):
    model = SyncLock

    async def acquire(
        self,
        session: AsyncSession,
        scope_key: str,
        holder: str,
        ttl: timedelta,
    ) -> bool:
        """Take the lock for *scope_key* unless another holder has a live one.

        An expired lock is taken over. Returns True on success.
        """
        now = datetime.now(timezone.utc)
        table = SyncLock.__table__
        stmt = (
            insert(SyncLock)
            .values(scope_key=scope_key, holder=holder, locked_until=now + ttl)
            .on_conflict_do_update(
                index_elements=["scope_key"],
                set_={"holder": holder, "locked_until": now + ttl, "updated_at": now},
                where=table.c.locked_until < now,
            )
            .returning(SyncLock.id)
        )
        result = await session.execute(stmt)
        return result.first() is not None

    async def release(self, session: AsyncSession, scope_key: str, holder: str) -> None:
        stmt = delete(SyncLock).where(SyncLock.scope_key == scope_key, SyncLock.holder == holder)
        await session.execute(stmt)
