"""Typed views of GitHub REST responses, validated at the client boundary."""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from skillsync.core.github import full_name_from_api_url


class _GitHubModel(BaseModel):
    model_config = ConfigDict(extra="ignore")


class GitHubAccount(_GitHubModel):
    id: int
    login: str
    type: str | None = None
    name: str | None = None
    email: str | None = None


class GitHubRepo(_GitHubModel):
    id: int
    name: str
    full_name: str
    owner: GitHubAccount
    description: str | None = None
    private: bool = False
    visibility: str | None = None
    fork: bool = False
    archived: bool = False
    stargazers_count: int = 0
    language: str | None = None
    default_branch: str = "main"
    created_at: datetime | None = None
    pushed_at: datetime | None = None
    updated_at: datetime | None = None

    def to_values(self, company_id: uuid.UUID) -> dict[str, Any]:
        """Column values for ``RepositoryDAO.upsert``."""
        return {
            "github_repo_id": self.id,
            "company_id": company_id,
            "name": self.name,
            "full_name": self.full_name,
            "owner_login": self.owner.login,
            "description": self.description,
            "default_branch": self.default_branch,
            "visibility": self.visibility or ("private" if self.private else "public"),
            "is_fork": self.fork,
            "is_archived": self.archived,
            "stars": self.stargazers_count,
            "primary_language": self.language,
            "github_created_at": self.created_at,
            "pushed_at": self.pushed_at,
            "last_activity_at": self.pushed_at or self.updated_at,
        }


class GitHubCommitPerson(_GitHubModel):
    name: str | None = None
    email: str | None = None
    date: datetime | None = None


class GitHubCommitDetail(_GitHubModel):
    message: str = ""
    author: GitHubCommitPerson | None = None
    committer: GitHubCommitPerson | None = None


class GitHubParent(_GitHubModel):
    sha: str


class GitHubCommitStats(_GitHubModel):
    additions: int = 0
    deletions: int = 0
    total: int = 0


class GitHubCommit(_GitHubModel):
    sha: str
    commit: GitHubCommitDetail
    author: GitHubAccount | None = None
    parents: list[GitHubParent] = Field(default_factory=list)
    html_url: str | None = None
    stats: GitHubCommitStats | None = None
    files: list[dict[str, Any]] | None = None

    def to_values(self) -> dict[str, Any]:
        """Column values for ``CommitDAO.upsert`` (sha excluded).

        Diff stats are None unless this is a single-commit response.
        """
        author = self.commit.author or GitHubCommitPerson()
        committer = self.commit.committer or GitHubCommitPerson()
        return {
            "message": self.commit.message,
            "author_name": author.name,
            "author_email": author.email,
            "author_login": self.author.login if self.author else None,
            "author_date": author.date,
            "committer_name": committer.name,
            "committer_email": committer.email,
            "committed_at": committer.date,
            "parent_shas": [p.sha for p in self.parents],
            "html_url": self.html_url,
            "additions": self.stats.additions if self.stats else None,
            "deletions": self.stats.deletions if self.stats else None,
            "files_changed": len(self.files) if self.files is not None else None,
        }


class GitHubPullRequest(_GitHubModel):
    id: int | None = None
    number: int
    title: str = ""
    user: GitHubAccount | None = None
    state: str = "open"
    merged: bool | None = None
    merged_at: datetime | None = None
    created_at: datetime | None = None
    additions: int | None = None
    deletions: int | None = None
    changed_files: int | None = None

    @property
    def is_merged(self) -> bool:
        return bool(self.merged) or self.merged_at is not None

    def to_values(self) -> dict[str, Any]:
        values: dict[str, Any] = {
            "github_pr_id": self.id,
            "title": self.title,
            "author_login": self.user.login if self.user else None,
            "state": self.state,
            "merged": self.is_merged,
            "opened_at": self.created_at,
            "merged_at": self.merged_at,
        }
        # list endpoints omit diff sizes
        for key in ("additions", "deletions", "changed_files"):
            value = getattr(self, key)
            if value is not None:
                values[key] = value
        return values


class GitHubSearchIssue(_GitHubModel):
    """An issue search hit; the repository is referenced only by API URL."""

    number: int
    repository_url: str

    @property
    def repository_full_name(self) -> str | None:
        return full_name_from_api_url(self.repository_url)
