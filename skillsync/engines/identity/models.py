"""Data models for identity resolution."""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field

METHOD_EMAIL = "email"
METHOD_NAME = "name"
METHOD_COMMIT_EMAIL = "commit_email"
METHOD_MANUAL = "manual"

CONFIDENCE_MANUAL = 1.0


@dataclass
class ExternalIdentity:
    """An external account as reported by the platform."""

    github_user_id: int
    login: str
    email: str | None = None
    name: str | None = None
    org_role: str = "member"


@dataclass(frozen=True)
class MatchResult:
    employee_id: uuid.UUID | None
    confidence: float
    method: str | None
    # a strategy linked the member on this pass
    linked: bool = False

    @property
    def matched(self) -> bool:
        return self.employee_id is not None


UNMATCHED = MatchResult(employee_id=None, confidence=0.0, method=None)


@dataclass
class DiscoveryResult:
    """Summary of an organization member discovery scan."""

    company_id: uuid.UUID
    discovered: int = 0
    matched: int = 0
    unmatched: int = 0
    errors: list[str] = field(default_factory=list)
