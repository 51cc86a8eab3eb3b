"""SyncLockService — one running sync per scope."""

from __future__ import annotations

import os
from datetime import timedelta

from sqlalchemy.ext.asyncio import AsyncSession

from skillsync.dao.sync_lock_dao import SyncLockDAO
from skillsync.services import ConflictError


class SyncLockService:
    def __init__(self, sync_lock_dao: SyncLockDAO) -> None:
        self._dao = sync_lock_dao

    async def acquire(
        self,
        session: AsyncSession,
        scope_key: str,
        holder: str,
        ttl_minutes: int | None = None,
    ) -> None:
        """Take the scope lock.

        Raises :class:`ConflictError` while another live holder has it.
        """
        if ttl_minutes is None:
            ttl_minutes = int(os.environ.get("SKILLSYNC_SYNC_LOCK_TTL_MINUTES", "30"))
        acquired = await self._dao.acquire(
            session, scope_key, holder, timedelta(minutes=ttl_minutes)
        )
        if not acquired:
            raise ConflictError(f"a sync is already running for {scope_key}")

    async def release(self, session: AsyncSession, scope_key: str, holder: str) -> None:
        await self._dao.release(session, scope_key, holder)
