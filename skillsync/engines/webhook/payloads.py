"""Webhook payload models, one per handled event type.

Payloads are validated here before any handler sees them; fields the
handlers do not use are ignored.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from skillsync.engines.github.models import GitHubAccount, GitHubPullRequest, GitHubRepo


class _Payload(BaseModel):
    model_config = ConfigDict(extra="ignore")


class InstallationRef(_Payload):
    id: int
    account: GitHubAccount | None = None


class WebhookEnvelope(_Payload):
    """Fields every delivery may carry."""

    action: str | None = None
    installation: InstallationRef | None = None
    sender: GitHubAccount | None = None

    @property
    def installation_id(self) -> int | None:
        return self.installation.id if self.installation else None


# ── installation lifecycle ────────────────────────────────────────────────


class InstallationEvent(WebhookEnvelope):
    pass


class RepositoryRef(_Payload):
    """Abbreviated repository as listed by installation events."""

    id: int
    name: str
    full_name: str
    private: bool = False


class InstallationRepositoriesEvent(WebhookEnvelope):
    repositories_added: list[RepositoryRef] = Field(default_factory=list)
    repositories_removed: list[RepositoryRef] = Field(default_factory=list)


class RepositoryEvent(WebhookEnvelope):
    repository: GitHubRepo


# ── contributions ─────────────────────────────────────────────────────────


class PushPerson(_Payload):
    name: str | None = None
    email: str | None = None
    username: str | None = None


class PushCommit(_Payload):
    id: str
    message: str = ""
    timestamp: datetime | None = None
    url: str | None = None
    author: PushPerson | None = None
    committer: PushPerson | None = None
    added: list[str] = Field(default_factory=list)
    removed: list[str] = Field(default_factory=list)
    modified: list[str] = Field(default_factory=list)

    def to_values(self) -> dict[str, Any]:
        """Column values for ``CommitDAO.upsert``; diff stats are left unset."""
        author = self.author or PushPerson()
        committer = self.committer or PushPerson()
        return {
            "message": self.message,
            "author_name": author.name,
            "author_email": author.email,
            "author_login": author.username,
            "author_date": self.timestamp,
            "committer_name": committer.name,
            "committer_email": committer.email,
            "committed_at": self.timestamp,
            "html_url": self.url,
            "files_changed": len(set(self.added) | set(self.removed) | set(self.modified)),
        }


class PushEvent(WebhookEnvelope):
    ref: str = ""
    repository: GitHubRepo
    commits: list[PushCommit] = Field(default_factory=list)
    pusher: PushPerson | None = None

    @property
    def pusher_login(self) -> str | None:
        if self.sender is not None:
            return self.sender.login
        return self.pusher.name if self.pusher else None


class PullRequestEvent(WebhookEnvelope):
    number: int
    pull_request: GitHubPullRequest
    repository: GitHubRepo


# ── membership ────────────────────────────────────────────────────────────


class MemberEvent(WebhookEnvelope):
    member: GitHubAccount
    repository: GitHubRepo | None = None


class Membership(_Payload):
    user: GitHubAccount | None = None
    role: str = "member"


class OrganizationEvent(WebhookEnvelope):
    membership: Membership | None = None
    organization: GitHubAccount | None = None


PAYLOAD_MODELS: dict[str, type[WebhookEnvelope]] = {
    "installation": InstallationEvent,
    "installation_repositories": InstallationRepositoriesEvent,
    "repository": RepositoryEvent,
    "push": PushEvent,
    "pull_request": PullRequestEvent,
    "member": MemberEvent,
    "organization": OrganizationEvent,
}
