"""Identity match strategies, evaluated in order by :class:`IdentityMatcher`."""

from __future__ import annotations

import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from skillsync.core.github import split_full_name
from skillsync.engines.github.client import GitHubClient
from skillsync.engines.identity.models import (
    METHOD_COMMIT_EMAIL,
    METHOD_EMAIL,
    METHOD_NAME,
    ExternalIdentity,
)
from skillsync.models.employee import Employee
from skillsync.services import RateLimitError
from skillsync.services.identity_service import IdentityService
from skillsync.services.repository_service import RepositoryService

log = structlog.get_logger("skillsync.engine")

COMMIT_SAMPLE_REPOS = 10
COMMIT_SAMPLE_PER_REPO = 20


@dataclass
class MatchContext:
    company_id: uuid.UUID
    identity: ExternalIdentity
    client: GitHubClient | None = None


class MatchStrategy(ABC):
    """One way of linking an external identity to an employee."""

    method: str
    confidence: float

    @abstractmethod
    async def attempt(self, session: AsyncSession, ctx: MatchContext) -> Employee | None:
        """Return the matching employee, or None."""


class EmailStrategy(MatchStrategy):
    """Public profile email equals an employee email (case-insensitive)."""

    method = METHOD_EMAIL
    confidence = 0.95

    def __init__(self, identity_service: IdentityService) -> None:
        self._identity_service = identity_service

    async def attempt(self, session: AsyncSession, ctx: MatchContext) -> Employee | None:
        email = (ctx.identity.email or "").strip()
        if not email:
            return None
        return await self._identity_service.find_employee_by_email(session, ctx.company_id, email)


def split_display_name(name: str | None) -> tuple[str, str] | None:
    """First and last whitespace-separated tokens, None for single-token names."""
    tokens = (name or "").split()
    if len(tokens) < 2:
        return None
    return tokens[0], tokens[-1]


class NameStrategy(MatchStrategy):
    method = METHOD_NAME
    confidence = 0.75

    def __init__(self, identity_service: IdentityService) -> None:
        self._identity_service = identity_service

    async def attempt(self, session: AsyncSession, ctx: MatchContext) -> Employee | None:
        parts = split_display_name(ctx.identity.name)
        if parts is None:
            return None
        first, last = parts
        return await self._identity_service.find_employee_by_name(
            session, ctx.company_id, first, last
        )


class CommitEmailStrategy(MatchStrategy):
    """Author emails from a sample of the identity's commits in known repositories.

    Samples at most ``COMMIT_SAMPLE_REPOS`` repositories and
    ``COMMIT_SAMPLE_PER_REPO`` commits from each. An inaccessible
    repository is skipped.
    """

    method = METHOD_COMMIT_EMAIL
    confidence = 0.60

    def __init__(
        self, identity_service: IdentityService, repository_service: RepositoryService
    ) -> None:
        self._identity_service = identity_service
        self._repository_service = repository_service

    async def collect_emails(self, session: AsyncSession, ctx: MatchContext) -> list[str]:
        if ctx.client is None:
            return []
        names = await self._repository_service.sample_full_names(
            session, ctx.company_id, COMMIT_SAMPLE_REPOS
        )
        emails: dict[str, None] = {}
        for full_name in names:
            owner, repo = split_full_name(full_name)
            try:
                commits = await ctx.client.get_page(
                    f"/repos/{owner}/{repo}/commits",
                    {"author": ctx.identity.login},
                    per_page=COMMIT_SAMPLE_PER_REPO,
                )
            except RateLimitError:
                raise
            except Exception as exc:
                log.debug("identity.commit_sample_skipped", repository=full_name, error=str(exc))
                continue
            for item in commits:
                email = ((item.get("commit") or {}).get("author") or {}).get("email")
                if email:
                    emails[email.lower()] = None
        return list(emails)

    async def attempt(self, session: AsyncSession, ctx: MatchContext) -> Employee | None:
        for email in await self.collect_emails(session, ctx):
            employee = await self._identity_service.find_employee_by_email(
                session, ctx.company_id, email
            )
            if employee is not None:
                return employee
        return None
