"""Webhook acknowledgement schema."""

from __future__ import annotations

from pydantic import BaseModel


class WebhookAck(BaseModel):
    success: bool = True
    delivery_id: str
    event_type: str
    status: str
    duplicate: bool = False
