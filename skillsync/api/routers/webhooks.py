"""Webhooks router — signed platform deliveries (no bearer auth)."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Header, Request
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from skillsync.api.deps import get_session_factory, get_webhook_processor
from skillsync.api.schemas.webhook import WebhookAck
from skillsync.engines.webhook.processor import WebhookProcessor

router = APIRouter()


@router.post("", response_model=WebhookAck)
async def receive_webhook(
    request: Request,
    x_hub_signature_256: str | None = Header(None),
    x_github_event: str | None = Header(None),
    x_github_delivery: str | None = Header(None),
    factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
    processor: WebhookProcessor = Depends(get_webhook_processor),
) -> WebhookAck:
    raw_body = await request.body()
    result = await processor.ingest(
        factory, raw_body, x_hub_signature_256, x_github_event, x_github_delivery
    )
    return WebhookAck(
        delivery_id=result.delivery_id,
        event_type=result.event_type,
        status=result.status,
        duplicate=result.duplicate,
    )
