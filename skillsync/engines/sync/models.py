"""Data models for the sync orchestrator."""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from typing import Any, Literal

SyncMode = Literal["quick", "full"]
ScopeType = Literal["organization", "individual"]


@dataclass(frozen=True)
class SyncLimits:
    """Work bounds for one mode. None means unbounded."""

    max_repositories: int | None
    lookback_days: int | None
    max_commits_per_repo: int | None
    max_pull_request_pages: int | None = None
    pause_every_pages: int | None = None
    pause_seconds: float = 0.0


QUICK_LIMITS = SyncLimits(
    max_repositories=30,
    lookback_days=90,
    max_commits_per_repo=100,
    max_pull_request_pages=1,
)
FULL_LIMITS = SyncLimits(
    max_repositories=None,
    lookback_days=None,
    max_commits_per_repo=None,
    pause_every_pages=10,
    pause_seconds=1.0,
)

LIMITS: dict[str, SyncLimits] = {"quick": QUICK_LIMITS, "full": FULL_LIMITS}


@dataclass(frozen=True)
class SyncScope:
    """What a run synchronizes: a whole organization or one employee's account.

    For an individual scope ``scope_id`` is the employee id and ``login`` is
    the employee's platform username.
    """

    scope_type: ScopeType
    scope_id: uuid.UUID
    company_id: uuid.UUID
    login: str | None = None

    @property
    def key(self) -> str:
        return f"{self.scope_type}:{self.scope_id}"


@dataclass
class RepoSyncDetail:
    full_name: str
    commits: int = 0
    new_commits: int = 0
    pull_requests: int = 0
    languages: list[str] = field(default_factory=list)
    frameworks: list[str] = field(default_factory=list)
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class SyncResult:
    """Run-level counters plus per-repository detail."""

    scope_key: str
    mode: SyncMode
    repositories: int = 0
    repositories_failed: int = 0
    commits: int = 0
    new_commits: int = 0
    pull_requests: int = 0
    languages: set[str] = field(default_factory=set)
    frameworks: set[str] = field(default_factory=set)
    employees_queued: int = 0
    details: list[RepoSyncDetail] = field(default_factory=list)

    def add(self, detail: RepoSyncDetail) -> None:
        self.details.append(detail)
        if not detail.ok:
            self.repositories_failed += 1
            return
        self.repositories += 1
        self.commits += detail.commits
        self.new_commits += detail.new_commits
        self.pull_requests += detail.pull_requests
        self.languages.update(detail.languages)
        self.frameworks.update(detail.frameworks)

    def summary(self) -> dict[str, Any]:
        return {
            "scope": self.scope_key,
            "mode": self.mode,
            "repositories": self.repositories,
            "repositories_failed": self.repositories_failed,
            "commits": self.commits,
            "new_commits": self.new_commits,
            "pull_requests": self.pull_requests,
            "languages": sorted(self.languages),
            "frameworks": sorted(self.frameworks),
            "employees_queued": self.employees_queued,
            "details": [
                {
                    "repository": d.full_name,
                    "commits": d.commits,
                    "new_commits": d.new_commits,
                    "pull_requests": d.pull_requests,
                    "languages": d.languages,
                    "frameworks": d.frameworks,
                    "error": d.error,
                }
                for d in self.details
            ],
        }
