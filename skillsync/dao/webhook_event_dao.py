"""WebhookEventDAO — webhook_events table operations."""

import uuid
from datetime import datetime, timedelta, timezone
from typing import Any

from sqlalchemy import and_, func, or_, update
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.ext.asyncio import AsyncSession

from skillsync.dao.base import BaseDAO
from skillsync.models.webhook_event import WebhookEvent


class WebhookEventDAO(BaseDAO[WebhookEvent]):
    model = WebhookEvent

    async def get_by_delivery_id(
        self, session: AsyncSession, delivery_id: str
    ) -> WebhookEvent | None:
        return await self.get_by_field(session, delivery_id=delivery_id)

    async def insert_if_new(
        self,
        session: AsyncSession,
        *,
        delivery_id: str,
        event_type: str,
        action: str | None,
        installation_id: int | None,
        company_id: uuid.UUID | None,
        payload: dict[str, Any],
    ) -> WebhookEvent | None:
        """Record a delivery. Returns None if the delivery id already exists.

        ON CONFLICT (delivery_id) DO NOTHING.
        """
        stmt = (
            insert(WebhookEvent)
            .values(
                delivery_id=delivery_id,
                event_type=event_type,
                action=action,
                installation_id=installation_id,
                company_id=company_id,
                payload=payload,
            )
            .on_conflict_do_nothing(index_elements=["delivery_id"])
            .returning(WebhookEvent)
        )
        result = await session.execute(stmt)
        return result.scalars().first()

    async def mark_processed(self, session: AsyncSession, pk: uuid.UUID) -> None:
        self._require_pk(pk)
        stmt = (
            update(WebhookEvent)
            .where(WebhookEvent.id == pk)
            .values(
                status="processed",
                processed_at=datetime.now(timezone.utc),
                error_message=None,
            )
        )
        await session.execute(stmt)

    async def mark_failed(self, session: AsyncSession, pk: uuid.UUID, error: str) -> None:
        """Record a handler failure and bump ``retry_count``."""
        self._require_pk(pk)
        table = WebhookEvent.__table__
        stmt = (
            update(WebhookEvent)
            .where(WebhookEvent.id == pk)
            .values(
                status="failed",
                error_message=error,
                retry_count=table.c.retry_count + 1,
            )
        )
        await session.execute(stmt)

    async def claim_redelivery(
        self, session: AsyncSession, delivery_id: str, lease: timedelta
    ) -> WebhookEvent | None:
        """Move a replayed delivery back to pending if it may be dispatched again.

        A failed delivery is always claimable. A pending one is claimable only
        once its last transition is older than *lease*, which covers a worker
        that died (or could not record the failure) mid-dispatch. Returns the
        claimed row, or None when the delivery is processed or still in flight.
        """
        stmt = (
            update(WebhookEvent)
            .where(
                WebhookEvent.delivery_id == delivery_id,
                or_(
                    WebhookEvent.status == "failed",
                    and_(
                        WebhookEvent.status == "pending",
                        WebhookEvent.updated_at < func.now() - lease,
                    ),
                ),
            )
            .values(status="pending", updated_at=func.now())
            .returning(WebhookEvent)
            .execution_options(populate_existing=True)
        )
        result = await session.execute(stmt)
        return result.scalars().first()
