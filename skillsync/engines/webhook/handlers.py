"""Per-event-type webhook handlers.

Each handler runs inside the caller's transaction and must tolerate
out-of-order delivery: a missing target is a logged no-op, never an error.
Handlers return the ids of employees whose skills need re-inference; the
caller queues them only after the transaction commits.
"""

from __future__ import annotations

import uuid
from collections.abc import Awaitable, Callable

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from skillsync.core.github import split_full_name
from skillsync.engines.github.client import GitHubClient
from skillsync.engines.identity.matcher import IdentityMatcher, identity_from_profile
from skillsync.engines.identity.models import ExternalIdentity
from skillsync.engines.webhook.payloads import (
    InstallationEvent,
    InstallationRepositoriesEvent,
    MemberEvent,
    OrganizationEvent,
    PullRequestEvent,
    PushEvent,
    RepositoryEvent,
    WebhookEnvelope,
)
from skillsync.models.employee import Employee
from skillsync.models.github_installation import GitHubInstallation
from skillsync.models.repository import Repository
from skillsync.services import RateLimitError
from skillsync.services.identity_service import IdentityService
from skillsync.services.installation_service import InstallationService
from skillsync.services.repository_service import RepositoryService

log = structlog.get_logger("skillsync.engine")

ClientFactory = Callable[[int], Awaitable[GitHubClient]]

_REPOSITORY_UPSERT_ACTIONS = {
    "created",
    "edited",
    "renamed",
    "publicized",
    "privatized",
    "transferred",
}


class WebhookHandlers:
    def __init__(
        self,
        installation_service: InstallationService,
        repository_service: RepositoryService,
        identity_service: IdentityService,
        matcher: IdentityMatcher,
        client_factory: ClientFactory | None = None,
    ) -> None:
        self._installation_service = installation_service
        self._repository_service = repository_service
        self._identity_service = identity_service
        self._matcher = matcher
        self._client_factory = client_factory

    # ── installation lifecycle ─────────────────────────────────────────────

    async def installation(
        self,
        session: AsyncSession,
        installation: GitHubInstallation | None,
        event: InstallationEvent,
    ) -> set[uuid.UUID]:
        installation_id = event.installation_id
        if installation is None:
            # companies claim installations through the setup flow
            log.info(
                "webhook.installation_unclaimed",
                installation_id=installation_id,
                action=event.action,
            )
            return set()
        if event.action in ("deleted", "suspend"):
            await self._installation_service.deactivate(
                session, installation.installation_id, suspended=event.action == "suspend"
            )
        elif event.action in ("created", "unsuspend", "new_permissions_accepted"):
            await self._installation_service.activate(session, installation.installation_id)
        log.info("webhook.installation", installation_id=installation_id, action=event.action)
        return set()

    async def installation_repositories(
        self,
        session: AsyncSession,
        installation: GitHubInstallation | None,
        event: InstallationRepositoriesEvent,
    ) -> set[uuid.UUID]:
        if installation is None:
            log.info("webhook.no_installation", event_type="installation_repositories")
            return set()
        for ref in event.repositories_added:
            owner, name = split_full_name(ref.full_name)
            await self._repository_service.upsert_repository(
                session,
                {
                    "github_repo_id": ref.id,
                    "company_id": installation.company_id,
                    "name": name,
                    "full_name": ref.full_name,
                    "owner_login": owner,
                    "visibility": "private" if ref.private else "public",
                },
            )
        for ref in event.repositories_removed:
            if not await self._repository_service.delete_repository(session, ref.id):
                log.debug("webhook.repository_missing", github_repo_id=ref.id)
        return set()

    async def repository(
        self,
        session: AsyncSession,
        installation: GitHubInstallation | None,
        event: RepositoryEvent,
    ) -> set[uuid.UUID]:
        repo = event.repository
        if event.action == "deleted":
            if not await self._repository_service.delete_repository(session, repo.id):
                log.debug("webhook.repository_missing", github_repo_id=repo.id)
        elif event.action in ("archived", "unarchived"):
            changed = await self._repository_service.set_archived(
                session, repo.id, event.action == "archived"
            )
            if not changed:
                log.debug("webhook.repository_missing", github_repo_id=repo.id)
        elif event.action in _REPOSITORY_UPSERT_ACTIONS:
            if installation is None:
                log.info("webhook.no_installation", event_type="repository", action=event.action)
                return set()
            await self._repository_service.upsert_repository(
                session, repo.to_values(installation.company_id)
            )
        return set()

    # ── contributions ─────────────────────────────────────────────────────

    async def push(
        self,
        session: AsyncSession,
        installation: GitHubInstallation | None,
        event: PushEvent,
    ) -> set[uuid.UUID]:
        """Upsert the pushed commits and link the pusher to the repository."""
        if installation is None:
            log.info("webhook.no_installation", event_type="push")
            return set()
        stored = await self._repository_service.upsert_repository(
            session, event.repository.to_values(installation.company_id)
        )
        for commit in event.commits:
            await self._repository_service.upsert_commit(
                session, stored.id, commit.id, **commit.to_values()
            )
        total = await self._repository_service.recount_commits(session, stored.id)

        touched: set[uuid.UUID] = set()
        employee = await self._resolve(session, installation.company_id, event.pusher_login)
        if employee is not None:
            touched.add(await self._link(session, employee, stored))
        log.info(
            "webhook.push",
            repository=event.repository.full_name,
            commits=len(event.commits),
            total_commits=total,
            pusher=event.pusher_login,
            employee_id=str(employee.id) if employee else None,
        )
        return touched

    async def pull_request(
        self,
        session: AsyncSession,
        installation: GitHubInstallation | None,
        event: PullRequestEvent,
    ) -> set[uuid.UUID]:
        if installation is None:
            log.info("webhook.no_installation", event_type="pull_request")
            return set()
        stored = await self._repository_service.upsert_repository(
            session, event.repository.to_values(installation.company_id)
        )
        pr = event.pull_request
        await self._repository_service.upsert_pull_request(
            session, stored.id, pr.number, **pr.to_values()
        )
        if event.action == "closed" and pr.is_merged and pr.user is not None:
            employee = await self._resolve(session, installation.company_id, pr.user.login)
            if employee is not None:
                return {await self._link(session, employee, stored)}
        return set()

    # ── membership ────────────────────────────────────────────────────────

    async def member(
        self,
        session: AsyncSession,
        installation: GitHubInstallation | None,
        event: MemberEvent,
    ) -> set[uuid.UUID]:
        if installation is None:
            log.info("webhook.no_installation", event_type="member")
            return set()
        if event.action in ("added", "edited"):
            return await self._match_account(session, installation, event.member.model_dump())
        return set()

    async def organization(
        self,
        session: AsyncSession,
        installation: GitHubInstallation | None,
        event: OrganizationEvent,
    ) -> set[uuid.UUID]:
        if installation is None or event.membership is None or event.membership.user is None:
            log.info("webhook.organization_skipped", action=event.action)
            return set()
        user = event.membership.user
        if event.action == "member_added":
            return await self._match_account(
                session, installation, user.model_dump(), org_role=event.membership.role
            )
        elif event.action == "member_removed":
            if not await self._identity_service.deactivate_member(
                session, installation.company_id, user.id
            ):
                log.debug("webhook.member_missing", github_user_id=user.id)
        return set()

    # ── helpers ───────────────────────────────────────────────────────────

    async def _resolve(
        self, session: AsyncSession, company_id: uuid.UUID, login: str | None
    ) -> Employee | None:
        if not login:
            return None
        return await self._identity_service.find_employee_by_username(session, company_id, login)

    async def _link(
        self, session: AsyncSession, employee: Employee, repo: Repository
    ) -> uuid.UUID:
        count, last_commit_at = await self._repository_service.author_stats(
            session, repo.id, login=employee.github_username, email=employee.email
        )
        await self._repository_service.link_employee(
            session, employee.id, repo.id, commit_count=count, last_activity_at=last_commit_at
        )
        return employee.id

    async def _match_account(
        self,
        session: AsyncSession,
        installation: GitHubInstallation,
        account: dict,
        org_role: str = "member",
    ) -> set[uuid.UUID]:
        """Re-run identity matching, enriching the account with its public profile."""
        client = None
        try:
            profile = account
            if self._client_factory is not None:
                try:
                    client = await self._client_factory(installation.installation_id)
                    profile = await client.get(f"/users/{account['login']}")
                except RateLimitError:
                    raise
                except Exception as exc:
                    log.warning(
                        "webhook.profile_fetch_failed", login=account["login"], error=str(exc)
                    )
            identity: ExternalIdentity = identity_from_profile(profile, org_role=org_role)
            match = await self._matcher.match_identity(
                session, installation.company_id, identity, client
            )
            return {match.employee_id} if match.linked else set()
        finally:
            if client is not None:
                await client.close()

    def dispatch_table(
        self,
    ) -> dict[
        str,
        Callable[
            [AsyncSession, GitHubInstallation | None, WebhookEnvelope],
            Awaitable[set[uuid.UUID]],
        ],
    ]:
        return {
            "installation": self.installation,
            "installation_repositories": self.installation_repositories,
            "repository": self.repository,
            "push": self.push,
            "pull_request": self.pull_request,
            "member": self.member,
            "organization": self.organization,
        }
