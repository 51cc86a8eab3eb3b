"""SyncOrchestrator — pull-based synchronization of one scope (organization or individual).

Repositories are processed one at a time, each in its own transaction; each
commit and pull request is written inside a savepoint so a bad item only
loses itself. The run never writes to the platform.
"""

from __future__ import annotations

import asyncio
import os
import uuid
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any

import pydantic
import structlog
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from skillsync.core.github import split_full_name
from skillsync.engines.github.client import PER_PAGE_MAX, GitHubClient
from skillsync.engines.github.frameworks import detect_frameworks
from skillsync.engines.github.models import (
    GitHubCommit,
    GitHubPullRequest,
    GitHubRepo,
    GitHubSearchIssue,
)
from skillsync.engines.skill_inference.queue import InferenceQueue
from skillsync.engines.sync.models import (
    LIMITS,
    RepoSyncDetail,
    SyncLimits,
    SyncMode,
    SyncResult,
    SyncScope,
)
from skillsync.models.repository import Repository
from skillsync.services import ExternalServiceError, RateLimitError, ValidationError
from skillsync.services.identity_service import IdentityService
from skillsync.services.installation_service import InstallationService
from skillsync.services.repository_service import RepositoryService
from skillsync.services.sync_lock_service import SyncLockService

log = structlog.get_logger("skillsync.engine")

# diff stats cost one request per commit; only the head of page 1 gets them
DIFF_STATS_PREFIX = 10

_RATE_LIMIT_ATTEMPTS = 3
_SEARCH_MAX_PAGES = 10  # the search API stops at 1000 results
_USER_REPO_AFFILIATION = "owner,collaborator,organization_member"


@dataclass(frozen=True)
class _Author:
    employee_id: uuid.UUID
    login: str | None
    email: str | None


def _later(a: datetime | None, b: datetime | None) -> datetime | None:
    if a is None:
        return b
    if b is None:
        return a
    return max(a, b)


class SyncOrchestrator:
    def __init__(
        self,
        repository_service: RepositoryService,
        identity_service: IdentityService,
        sync_lock_service: SyncLockService,
        inference_queue: InferenceQueue,
        installation_service: InstallationService | None = None,
        *,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        self._repository_service = repository_service
        self._identity_service = identity_service
        self._lock_service = sync_lock_service
        self._queue = inference_queue
        self._installation_service = installation_service
        self._sleep = sleep

    # ── public ─────────────────────────────────────────────────────────────

    async def run_sync(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        scope: SyncScope,
        mode: SyncMode,
        client: GitHubClient,
    ) -> SyncResult:
        """Synchronize *scope* and enqueue skill inference for touched employees.

        Raises :class:`ConflictError` if the scope is already syncing, and
        propagates repository-enumeration failures (the run cannot continue
        without a repository list). Per-repository failures are recorded in
        the result instead.
        """
        if mode not in LIMITS:
            raise ValidationError(f"unknown sync mode: {mode}")

        holder = uuid.uuid4().hex
        async with session_factory() as session:
            async with session.begin():
                await self._lock_service.acquire(session, scope.key, holder)
        try:
            return await self._run(session_factory, scope, mode, client)
        finally:
            try:
                async with session_factory() as session:
                    async with session.begin():
                        await self._lock_service.release(session, scope.key, holder)
            except Exception as exc:
                log.warning("sync.lock_release_failed", scope=scope.key, error=str(exc))

    # ── run ────────────────────────────────────────────────────────────────

    async def _run(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        scope: SyncScope,
        mode: SyncMode,
        client: GitHubClient,
    ) -> SyncResult:
        limits = LIMITS[mode]
        result = SyncResult(scope_key=scope.key, mode=mode)
        log.info("sync.started", scope=scope.key, mode=mode)

        scope_author: _Author | None = None
        if scope.scope_type == "individual":
            async with session_factory() as session:
                employee = await self._identity_service.get_employee(session, scope.scope_id)
            scope_author = _Author(
                employee.id, scope.login or employee.github_username, employee.email
            )

        repos = await self._enumerate_repositories(client, scope, limits)
        log.info("sync.repositories_listed", scope=scope.key, count=len(repos))

        since = None
        if limits.lookback_days is not None:
            since = datetime.now(timezone.utc) - timedelta(days=limits.lookback_days)

        authors: dict[str, _Author | None] = {}
        touched: set[uuid.UUID] = set()
        for repo in repos:
            detail = await self._sync_repository(
                session_factory, client, scope, repo, limits, since, authors, touched, scope_author
            )
            result.add(detail)

        if scope_author is not None and self._installation_service is not None:
            async with session_factory() as session:
                async with session.begin():
                    await self._installation_service.touch_connection(session, scope.scope_id)

        for employee_id in sorted(touched, key=str):
            if self._queue.enqueue(employee_id):
                result.employees_queued += 1

        log.info(
            "sync.finished",
            scope=scope.key,
            mode=mode,
            repositories=result.repositories,
            repositories_failed=result.repositories_failed,
            commits=result.commits,
            new_commits=result.new_commits,
            pull_requests=result.pull_requests,
        )
        return result

    # ── enumeration ────────────────────────────────────────────────────────

    async def _enumerate_repositories(
        self, client: GitHubClient, scope: SyncScope, limits: SyncLimits
    ) -> list[GitHubRepo]:
        """Merge every listing source, de-duplicated by repository id (first seen wins)."""
        seen: dict[int, GitHubRepo] = {}
        if scope.scope_type == "organization":
            await self._collect_listing(
                client, "/installation/repositories", {}, "repositories", seen, limits
            )
        else:
            await self._collect_listing(
                client,
                "/user/repos",
                {"affiliation": _USER_REPO_AFFILIATION, "sort": "pushed"},
                None,
                seen,
                limits,
            )
            if scope.login:
                await self._collect_contributed(client, scope.login, seen, limits)
        return list(seen.values())

    @staticmethod
    def _is_full(seen: dict[int, GitHubRepo], limits: SyncLimits) -> bool:
        return limits.max_repositories is not None and len(seen) >= limits.max_repositories

    def _accept(self, seen: dict[int, GitHubRepo], item: dict) -> None:
        try:
            repo = GitHubRepo.model_validate(item)
        except pydantic.ValidationError as exc:
            log.warning(
                "sync.repo_payload_invalid", repository=item.get("full_name"), error=str(exc)
            )
            return
        seen.setdefault(repo.id, repo)

    async def _collect_listing(
        self,
        client: GitHubClient,
        path: str,
        params: dict[str, Any],
        items_key: str | None,
        seen: dict[int, GitHubRepo],
        limits: SyncLimits,
    ) -> None:
        page = 1
        while not self._is_full(seen, limits):
            items = await self._call(
                client.get_page,
                path,
                params,
                page=page,
                per_page=PER_PAGE_MAX,
                items_key=items_key,
            )
            for item in items:
                if self._is_full(seen, limits):
                    return
                self._accept(seen, item)
            if len(items) < PER_PAGE_MAX:
                return
            await self._maybe_pause(limits, page)
            page += 1

    async def _collect_contributed(
        self,
        client: GitHubClient,
        login: str,
        seen: dict[int, GitHubRepo],
        limits: SyncLimits,
    ) -> None:
        """Repositories the user landed merged pull requests in."""
        known = {repo.full_name.lower() for repo in seen.values()}
        page = 1
        while not self._is_full(seen, limits) and page <= _SEARCH_MAX_PAGES:
            items = await self._call(
                client.get_page,
                "/search/issues",
                {"q": f"author:{login} is:pr is:merged"},
                page=page,
                per_page=PER_PAGE_MAX,
                items_key="items",
            )
            for item in items:
                if self._is_full(seen, limits):
                    return
                try:
                    hit = GitHubSearchIssue.model_validate(item)
                except pydantic.ValidationError as exc:
                    log.warning("sync.search_hit_invalid", error=str(exc))
                    continue
                full_name = hit.repository_full_name
                if full_name is None or full_name.lower() in known:
                    continue
                known.add(full_name.lower())
                try:
                    data = await self._call(client.get, f"/repos/{full_name}")
                except RateLimitError:
                    raise
                except Exception as exc:
                    log.warning(
                        "sync.contributed_repo_skipped", repository=full_name, error=str(exc)
                    )
                    continue
                self._accept(seen, data)
            if len(items) < PER_PAGE_MAX:
                return
            page += 1

    # ── per repository ─────────────────────────────────────────────────────

    async def _sync_repository(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        client: GitHubClient,
        scope: SyncScope,
        repo: GitHubRepo,
        limits: SyncLimits,
        since: datetime | None,
        authors: dict[str, _Author | None],
        touched: set[uuid.UUID],
        scope_author: _Author | None,
    ) -> RepoSyncDetail:
        detail = RepoSyncDetail(full_name=repo.full_name)
        try:
            owner, name = split_full_name(repo.full_name)
            languages = await self._call(client.get, f"/repos/{owner}/{name}/languages")
            frameworks = await self._call(detect_frameworks, client, owner, name)

            async with session_factory() as session:
                async with session.begin():
                    values = repo.to_values(scope.company_id)
                    values.update(
                        languages=languages,
                        frameworks=frameworks,
                        last_synced_at=datetime.now(timezone.utc),
                    )
                    stored = await self._repository_service.upsert_repository(session, values)

                    linked: dict[uuid.UUID, _Author] = {}
                    if scope_author is not None:
                        linked[scope_author.employee_id] = scope_author

                    await self._sync_commits(
                        session, client, scope, stored, limits, since, detail, authors, linked
                    )
                    await self._sync_pull_requests(
                        session, client, scope, stored, limits, detail, authors, linked
                    )
                    await self._repository_service.recount_commits(session, stored.id)
                    await self._link_authors(session, stored, linked)
        except RateLimitError:
            raise
        except Exception as exc:
            log.error(
                "sync.repo_failed",
                scope=scope.key,
                repository=repo.full_name,
                error=str(exc),
            )
            return RepoSyncDetail(full_name=repo.full_name, error=str(exc))

        detail.languages = sorted(languages)
        detail.frameworks = list(frameworks)
        touched.update(linked)
        return detail

    async def _link_authors(
        self,
        session: AsyncSession,
        repository: Repository,
        linked: dict[uuid.UUID, _Author],
    ) -> None:
        for employee_id, author in linked.items():
            count, last_commit_at = await self._repository_service.author_stats(
                session, repository.id, login=author.login, email=author.email
            )
            await self._repository_service.link_employee(
                session,
                employee_id,
                repository.id,
                commit_count=count,
                last_activity_at=last_commit_at,
            )

    async def _resolve_author(
        self,
        session: AsyncSession,
        company_id: uuid.UUID,
        login: str | None,
        authors: dict[str, _Author | None],
    ) -> _Author | None:
        """Employee behind a platform login, cached for the run."""
        if not login:
            return None
        key = login.lower()
        if key not in authors:
            employee = await self._identity_service.find_employee_by_username(
                session, company_id, login
            )
            authors[key] = (
                _Author(employee.id, employee.github_username, employee.email)
                if employee is not None
                else None
            )
        return authors[key]

    # ── commits ────────────────────────────────────────────────────────────

    async def _sync_commits(
        self,
        session: AsyncSession,
        client: GitHubClient,
        scope: SyncScope,
        repository: Repository,
        limits: SyncLimits,
        since: datetime | None,
        detail: RepoSyncDetail,
        authors: dict[str, _Author | None],
        linked: dict[uuid.UUID, _Author],
    ) -> None:
        owner, name = split_full_name(repository.full_name)
        params: dict[str, Any] = {}
        if since is not None:
            params["since"] = since.isoformat()
        cap = limits.max_commits_per_repo

        page = 1
        fetched = 0
        while True:
            try:
                items = await self._call(
                    client.get_page,
                    f"/repos/{owner}/{name}/commits",
                    params,
                    page=page,
                    per_page=PER_PAGE_MAX,
                )
            except ExternalServiceError as exc:
                if exc.status_code == 409:
                    # empty repository
                    return
                raise
            full_page = len(items) == PER_PAGE_MAX
            # page size stays fixed so page numbers keep addressing the same offsets
            if cap is not None:
                items = items[: cap - fetched]

            for index, item in enumerate(items):
                with_stats = page == 1 and index < DIFF_STATS_PREFIX
                await self._sync_commit(
                    session, client, scope, repository, item, with_stats, detail, authors, linked
                )

            fetched += len(items)
            if not full_page:
                return
            if cap is not None and fetched >= cap:
                return
            await self._maybe_pause(limits, page)
            page += 1

    async def _sync_commit(
        self,
        session: AsyncSession,
        client: GitHubClient,
        scope: SyncScope,
        repository: Repository,
        item: dict,
        with_stats: bool,
        detail: RepoSyncDetail,
        authors: dict[str, _Author | None],
        linked: dict[uuid.UUID, _Author],
    ) -> None:
        sha = item.get("sha") if isinstance(item, dict) else None
        try:
            commit = GitHubCommit.model_validate(item)
            if with_stats:
                commit = await self._with_diff_stats(client, repository.full_name, commit)
            values = commit.to_values()
            async with session.begin_nested():
                inserted = await self._repository_service.upsert_commit(
                    session, repository.id, commit.sha, **values
                )
        except RateLimitError:
            raise
        except Exception as exc:
            log.warning(
                "sync.commit_failed",
                scope=scope.key,
                repository=repository.full_name,
                sha=sha,
                error=str(exc),
            )
            return

        detail.commits += 1
        if inserted:
            detail.new_commits += 1

        author = await self._resolve_author(
            session, scope.company_id, values["author_login"], authors
        )
        if author is not None:
            linked.setdefault(author.employee_id, author)

    async def _with_diff_stats(
        self, client: GitHubClient, full_name: str, commit: GitHubCommit
    ) -> GitHubCommit:
        """Re-fetch a commit with diff stats; keep the listing copy on failure."""
        try:
            data = await self._call(client.get, f"/repos/{full_name}/commits/{commit.sha}")
            return GitHubCommit.model_validate(data)
        except RateLimitError:
            raise
        except Exception as exc:
            log.warning(
                "sync.commit_stats_failed", repository=full_name, sha=commit.sha, error=str(exc)
            )
            return commit

    # ── pull requests ──────────────────────────────────────────────────────

    async def _sync_pull_requests(
        self,
        session: AsyncSession,
        client: GitHubClient,
        scope: SyncScope,
        repository: Repository,
        limits: SyncLimits,
        detail: RepoSyncDetail,
        authors: dict[str, _Author | None],
        linked: dict[uuid.UUID, _Author],
    ) -> None:
        owner, name = split_full_name(repository.full_name)
        page = 1
        while limits.max_pull_request_pages is None or page <= limits.max_pull_request_pages:
            try:
                items = await self._call(
                    client.get_page,
                    f"/repos/{owner}/{name}/pulls",
                    {"state": "all", "sort": "updated", "direction": "desc"},
                    page=page,
                    per_page=PER_PAGE_MAX,
                )
            except RateLimitError:
                raise
            except Exception as exc:
                log.warning(
                    "sync.pulls_failed",
                    scope=scope.key,
                    repository=repository.full_name,
                    error=str(exc),
                )
                return

            for item in items:
                try:
                    pr = GitHubPullRequest.model_validate(item)
                    async with session.begin_nested():
                        await self._repository_service.upsert_pull_request(
                            session, repository.id, pr.number, **pr.to_values()
                        )
                except Exception as exc:
                    log.warning(
                        "sync.pull_request_failed",
                        scope=scope.key,
                        repository=repository.full_name,
                        number=item.get("number") if isinstance(item, dict) else None,
                        error=str(exc),
                    )
                    continue
                detail.pull_requests += 1
                if pr.is_merged and pr.user is not None:
                    author = await self._resolve_author(
                        session, scope.company_id, pr.user.login, authors
                    )
                    if author is not None:
                        linked.setdefault(author.employee_id, author)

            if len(items) < PER_PAGE_MAX:
                return
            await self._maybe_pause(limits, page)
            page += 1

    # ── rate limits ────────────────────────────────────────────────────────

    async def _call(self, fn: Callable[..., Awaitable[Any]], *args: Any, **kwargs: Any) -> Any:
        """Invoke a platform call, sleeping through short rate-limit windows.

        A wait longer than ``SKILLSYNC_RATE_LIMIT_MAX_SLEEP`` seconds (or a
        limit that persists across attempts) propagates to the caller.
        """
        ceiling = int(os.environ.get("SKILLSYNC_RATE_LIMIT_MAX_SLEEP", "60"))
        attempt = 0
        while True:
            try:
                return await fn(*args, **kwargs)
            except RateLimitError as exc:
                attempt += 1
                if exc.retry_after > ceiling or attempt >= _RATE_LIMIT_ATTEMPTS:
                    raise
                log.warning("sync.rate_limited", retry_after=exc.retry_after, attempt=attempt)
                await self._sleep(exc.retry_after)

    async def _maybe_pause(self, limits: SyncLimits, pages_done: int) -> None:
        if limits.pause_every_pages and pages_done % limits.pause_every_pages == 0:
            await self._sleep(limits.pause_seconds)
