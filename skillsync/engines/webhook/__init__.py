"""Webhook engine — signed, idempotent processing of platform deliveries."""

from skillsync.engines.webhook.handlers import WebhookHandlers
from skillsync.engines.webhook.processor import IngestResult, WebhookProcessor
from skillsync.engines.webhook.signature import compute_signature, verify_signature

__all__ = [
    "IngestResult",
    "WebhookHandlers",
    "WebhookProcessor",
    "compute_signature",
    "verify_signature",
]
