"""Shared response envelopes and pagination schemas."""

from __future__ import annotations

from typing import Any, Generic, TypeVar

from pydantic import BaseModel

T = TypeVar("T")


class PageMeta(BaseModel):
    """Cursor pagination metadata."""

    next_cursor: str | None
    has_more: bool


class PaginatedResponse(BaseModel, Generic[T]):
    """Generic paginated list response."""

    data: list[T]
    meta: PageMeta


class Envelope(BaseModel):
    """Success envelope for command-style endpoints."""

    success: bool = True
    message: str
    data: dict[str, Any] | None = None
