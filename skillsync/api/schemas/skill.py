"""Skill profile schemas."""

from __future__ import annotations

import uuid
from datetime import datetime

from pydantic import BaseModel


class SkillRecordItem(BaseModel):
    skill_id: uuid.UUID
    name: str
    category: str
    level: str
    confidence: float
    lines_of_code: int
    commit_count: int
    projects_used: int
    last_used_at: datetime | None
    is_auto_detected: bool
    source: str
