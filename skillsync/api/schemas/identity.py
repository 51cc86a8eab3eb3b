"""Identity resolution request/response schemas."""

from __future__ import annotations

import uuid
from datetime import datetime

from pydantic import BaseModel, ConfigDict


class OrganizationMemberItem(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    github_user_id: int
    github_username: str
    github_email: str | None
    github_name: str | None
    org_role: str
    is_active: bool
    employee_id: uuid.UUID | None
    match_confidence: float
    match_method: str | None
    updated_at: datetime


class LinkRequest(BaseModel):
    github_user_id: int
    employee_id: uuid.UUID


class MatchResponse(BaseModel):
    employee_id: uuid.UUID | None
    confidence: float
    method: str | None


class DiscoveryResponse(BaseModel):
    discovered: int
    matched: int
    unmatched: int
    errors: list[str]
