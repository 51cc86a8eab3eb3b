"""Webhook signature verification (``X-Hub-Signature-256``)."""

from __future__ import annotations

import hashlib
import hmac

_PREFIX = "sha256="


def compute_signature(secret: str, body: bytes) -> str:
    """Return ``sha256=<hex hmac>`` of *body* keyed by *secret*."""
    digest = hmac.new(secret.encode(), body, hashlib.sha256).hexdigest()
    return f"{_PREFIX}{digest}"


def verify_signature(secret: str, body: bytes, signature: str | None) -> bool:
    """Constant-time check of *signature* against the raw, unparsed body."""
    if not signature or not signature.startswith(_PREFIX):
        return False
    return hmac.compare_digest(compute_signature(secret, body), signature)
