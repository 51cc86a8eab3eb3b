"""WebhookEventService — delivery log and idempotency bookkeeping."""

from __future__ import annotations

import os
import uuid
from datetime import timedelta
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from skillsync.dao.webhook_event_dao import WebhookEventDAO
from skillsync.models.webhook_event import WebhookEvent


class WebhookEventService:
    def __init__(self, webhook_event_dao: WebhookEventDAO) -> None:
        self._dao = webhook_event_dao

    async def record(
        self,
        session: AsyncSession,
        *,
        delivery_id: str,
        event_type: str,
        action: str | None,
        installation_id: int | None,
        company_id: uuid.UUID | None,
        payload: dict[str, Any],
    ) -> tuple[WebhookEvent, bool]:
        """Persist a delivery keyed by its id.

        Returns ``(event, is_new)``; for a replayed delivery id the stored
        event is returned with ``is_new = False``.
        """
        event = await self._dao.insert_if_new(
            session,
            delivery_id=delivery_id,
            event_type=event_type,
            action=action,
            installation_id=installation_id,
            company_id=company_id,
            payload=payload,
        )
        if event is not None:
            return event, True
        existing = await self._dao.get_by_delivery_id(session, delivery_id)
        return existing, False

    async def mark_processed(self, session: AsyncSession, event_id: uuid.UUID) -> None:
        await self._dao.mark_processed(session, event_id)

    async def mark_failed(self, session: AsyncSession, event_id: uuid.UUID, error: str) -> None:
        await self._dao.mark_failed(session, event_id, error)

    async def claim_redelivery(
        self,
        session: AsyncSession,
        delivery_id: str,
        lease_seconds: int | None = None,
    ) -> WebhookEvent | None:
        """Claim a replayed delivery for another dispatch, or None if it must be skipped."""
        if lease_seconds is None:
            lease_seconds = int(os.environ.get("SKILLSYNC_WEBHOOK_PENDING_LEASE_SECONDS", "300"))
        return await self._dao.claim_redelivery(
            session, delivery_id, timedelta(seconds=lease_seconds)
        )
