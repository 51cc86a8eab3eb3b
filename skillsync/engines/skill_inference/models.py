"""Data models for the skill inference engine."""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Literal

SkillCategory = Literal["Programming Language", "Framework"]

CATEGORY_LANGUAGE: SkillCategory = "Programming Language"
CATEGORY_FRAMEWORK: SkillCategory = "Framework"


@dataclass
class RepoContribution:
    """One repository as seen from one employee. Pure data, no DB types."""

    full_name: str
    languages: dict[str, int]
    frameworks: list[str]
    employee_commits: int
    total_commits: int
    last_activity_at: datetime | None = None

    @property
    def ratio(self) -> float:
        """Share of the repository's commits authored by the employee."""
        if self.employee_commits <= 0:
            return 0.0
        return min(self.employee_commits / max(self.total_commits, 1), 1.0)


@dataclass
class SkillAggregate:
    name: str
    category: SkillCategory
    lines_of_code: int = 0
    commits: int = 0
    repositories: int = 0
    last_used_at: datetime | None = None


@dataclass
class InferredSkill:
    name: str
    category: SkillCategory
    level: str
    confidence: float
    lines_of_code: int
    commits: int
    repositories: int
    last_used_at: datetime | None


@dataclass
class InferenceResult:
    """Summary of one inference pass for one employee."""

    employee_id: uuid.UUID
    skills: list[InferredSkill] = field(default_factory=list)
    written: int = 0
    skipped_manual: int = 0
    pruned: int = 0
