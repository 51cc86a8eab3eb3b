"""Sync request schemas."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel


class SyncRequest(BaseModel):
    scope: Literal["individual", "organization"] = "individual"
