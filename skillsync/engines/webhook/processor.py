"""WebhookProcessor — verify, record, de-duplicate and dispatch platform deliveries.

Lifecycle of a delivery::

    received -> verified -> dispatched -> processed
                         -> dispatched -> failed (retryable)
             -> rejected (bad signature, terminal)

A delivery id already recorded as processed, or pending within its lease, is
acknowledged without dispatching. A failed delivery id is dispatched again,
since that is the platform's redelivery of a delivery we could not apply. So
is a pending one whose lease ran out: its worker died, or could not record
the failure, before the row left pending.

Employees a handler touched are queued for skill inference only after the
dispatch transaction commits, so inference never reads a half-applied event.
"""

from __future__ import annotations

import json
import os
import uuid
from dataclasses import dataclass

import pydantic
import structlog
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from skillsync.engines.skill_inference.queue import InferenceQueue
from skillsync.engines.webhook.handlers import WebhookHandlers
from skillsync.engines.webhook.payloads import PAYLOAD_MODELS, WebhookEnvelope
from skillsync.engines.webhook.signature import verify_signature
from skillsync.services import AuthenticationError, ValidationError
from skillsync.services.installation_service import InstallationService
from skillsync.services.webhook_event_service import WebhookEventService

log = structlog.get_logger("skillsync.engine")

_ENV_WEBHOOK_SECRET = "SKILLSYNC_WEBHOOK_SECRET"


@dataclass
class IngestResult:
    delivery_id: str
    event_type: str
    status: str
    duplicate: bool = False


class WebhookProcessor:
    def __init__(
        self,
        webhook_event_service: WebhookEventService,
        installation_service: InstallationService,
        handlers: WebhookHandlers,
        inference_queue: InferenceQueue,
        *,
        secret: str | None = None,
        pending_lease_seconds: int | None = None,
    ) -> None:
        self._event_service = webhook_event_service
        self._installation_service = installation_service
        self._handlers = handlers.dispatch_table()
        self._queue = inference_queue
        self._secret = secret
        self._pending_lease_seconds = pending_lease_seconds

    def _get_secret(self) -> str:
        secret = self._secret or os.environ.get(_ENV_WEBHOOK_SECRET)
        if not secret:
            raise RuntimeError(f"{_ENV_WEBHOOK_SECRET} environment variable is required")
        return secret

    async def ingest(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        raw_body: bytes,
        signature: str | None,
        event_type: str | None,
        delivery_id: str | None,
    ) -> IngestResult:
        """Apply one delivery.

        Raises :class:`ValidationError` for missing headers or a malformed
        body, :class:`AuthenticationError` for a bad signature, and
        re-raises handler failures after recording them so the platform
        redelivers.
        """
        if not signature or not event_type or not delivery_id:
            raise ValidationError("missing webhook signature, event or delivery headers")

        if not verify_signature(self._get_secret(), raw_body, signature):
            log.warning("webhook.rejected", delivery_id=delivery_id, event_type=event_type)
            raise AuthenticationError("invalid webhook signature")

        try:
            payload = json.loads(raw_body)
        except (json.JSONDecodeError, UnicodeDecodeError) as exc:
            raise ValidationError("webhook body is not valid JSON") from exc
        if not isinstance(payload, dict):
            raise ValidationError("webhook body must be a JSON object")

        model = PAYLOAD_MODELS.get(event_type, WebhookEnvelope)
        try:
            event = model.model_validate(payload)
        except pydantic.ValidationError as exc:
            raise ValidationError(f"invalid {event_type} payload: {exc}") from exc

        # ── record (idempotency gate) ──
        async with session_factory() as session:
            async with session.begin():
                installation = None
                if event.installation_id is not None:
                    installation = await self._installation_service.get_by_installation_id(
                        session, event.installation_id
                    )
                record, is_new = await self._event_service.record(
                    session,
                    delivery_id=delivery_id,
                    event_type=event_type,
                    action=event.action,
                    installation_id=event.installation_id,
                    company_id=installation.company_id if installation else None,
                    payload=payload,
                )
                if not is_new:
                    previous_status = record.status
                    claimed = await self._event_service.claim_redelivery(
                        session, delivery_id, self._pending_lease_seconds
                    )
                    if claimed is None:
                        log.info(
                            "webhook.duplicate",
                            delivery_id=delivery_id,
                            event_type=event_type,
                            status=previous_status,
                        )
                        return IngestResult(
                            delivery_id, event_type, previous_status, duplicate=True
                        )
                    log.info(
                        "webhook.redelivery",
                        delivery_id=delivery_id,
                        event_type=event_type,
                        previous_status=previous_status,
                        retry_count=claimed.retry_count,
                    )
        event_id = record.id

        # ── dispatch ──
        handler = self._handlers.get(event_type)
        touched: set[uuid.UUID] = set()
        try:
            async with session_factory() as session:
                async with session.begin():
                    if handler is None:
                        log.info(
                            "webhook.unhandled", delivery_id=delivery_id, event_type=event_type
                        )
                    else:
                        touched = await handler(session, installation, event)
                    await self._event_service.mark_processed(session, event_id)
        except Exception as exc:
            log.error(
                "webhook.failed",
                delivery_id=delivery_id,
                event_type=event_type,
                action=event.action,
                error=str(exc),
            )
            async with session_factory() as session:
                async with session.begin():
                    await self._event_service.mark_failed(session, event_id, str(exc))
            raise

        for employee_id in sorted(touched, key=str):
            self._queue.enqueue(employee_id)
        log.info(
            "webhook.processed",
            delivery_id=delivery_id,
            event_type=event_type,
            action=event.action,
            employees_queued=len(touched),
        )
        return IngestResult(delivery_id, event_type, "processed")
