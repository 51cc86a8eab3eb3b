"""IdentityMatcher — cascade of match strategies plus the manual override path."""

from __future__ import annotations

import uuid

import structlog
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from skillsync.engines.github.client import GitHubClient
from skillsync.engines.identity.models import (
    CONFIDENCE_MANUAL,
    METHOD_MANUAL,
    UNMATCHED,
    DiscoveryResult,
    ExternalIdentity,
    MatchResult,
)
from skillsync.engines.identity.strategies import (
    CommitEmailStrategy,
    EmailStrategy,
    MatchContext,
    MatchStrategy,
    NameStrategy,
)
from skillsync.engines.skill_inference.engine import SkillInferenceEngine
from skillsync.engines.skill_inference.queue import InferenceQueue
from skillsync.models.organization_member import OrganizationMember
from skillsync.services import NotFoundError, RateLimitError
from skillsync.services.identity_service import IdentityService
from skillsync.services.repository_service import RepositoryService

log = structlog.get_logger("skillsync.engine")

_MEMBERS_PER_PAGE = 100


def identity_from_profile(profile: dict, org_role: str = "member") -> ExternalIdentity:
    """Build an identity from a ``/users/{login}`` (or webhook user) object."""
    return ExternalIdentity(
        github_user_id=int(profile["id"]),
        login=profile["login"],
        email=profile.get("email"),
        name=profile.get("name"),
        org_role=org_role,
    )


class IdentityMatcher:
    def __init__(
        self,
        identity_service: IdentityService,
        repository_service: RepositoryService,
        inference_queue: InferenceQueue,
        inference_engine: SkillInferenceEngine,
        strategies: list[MatchStrategy] | None = None,
    ) -> None:
        self._identity_service = identity_service
        self._queue = inference_queue
        self._inference_engine = inference_engine
        self._strategies = strategies if strategies is not None else [
            EmailStrategy(identity_service),
            NameStrategy(identity_service),
            CommitEmailStrategy(identity_service, repository_service),
        ]

    # ── automatic resolution ──────────────────────────────────────────────

    async def match_identity(
        self,
        session: AsyncSession,
        company_id: uuid.UUID,
        identity: ExternalIdentity,
        client: GitHubClient | None = None,
    ) -> MatchResult:
        """Snapshot *identity* and link it to an employee if any strategy matches.

        A manual link is never replaced. An existing automatic link is kept
        when no strategy matches on this pass. Each strategy runs in its own
        savepoint so a failed lookup leaves the transaction usable.

        Nothing is queued for inference here: the caller enqueues
        ``result.employee_id`` once its transaction has committed, when
        ``result.linked`` is set.
        """
        member = await self._identity_service.upsert_member(
            session,
            company_id=company_id,
            github_user_id=identity.github_user_id,
            github_username=identity.login,
            github_email=identity.email,
            github_name=identity.name,
            org_role=identity.org_role,
        )
        if member.employee_id is not None and member.match_method == METHOD_MANUAL:
            return MatchResult(member.employee_id, member.match_confidence, METHOD_MANUAL)

        ctx = MatchContext(company_id=company_id, identity=identity, client=client)
        for strategy in self._strategies:
            try:
                async with session.begin_nested():
                    employee = await strategy.attempt(session, ctx)
            except Exception as exc:
                log.warning(
                    "identity.strategy_failed",
                    strategy=strategy.method,
                    login=identity.login,
                    error=str(exc),
                )
                continue
            if employee is None:
                continue
            if (
                employee.github_user_id is not None
                and employee.github_user_id != identity.github_user_id
            ):
                log.info(
                    "identity.candidate_taken",
                    strategy=strategy.method,
                    login=identity.login,
                    employee_id=str(employee.id),
                )
                continue

            await self._identity_service.record_match(
                session, member, employee, confidence=strategy.confidence, method=strategy.method
            )
            log.info(
                "identity.matched",
                login=identity.login,
                employee_id=str(employee.id),
                method=strategy.method,
                confidence=strategy.confidence,
            )
            return MatchResult(employee.id, strategy.confidence, strategy.method, linked=True)

        if member.employee_id is not None:
            return MatchResult(member.employee_id, member.match_confidence, member.match_method)

        await self._identity_service.record_unmatched(session, member)
        log.info("identity.unmatched", login=identity.login, company_id=str(company_id))
        return UNMATCHED

    # ── manual override ───────────────────────────────────────────────────

    async def manual_link(
        self,
        session: AsyncSession,
        company_id: uuid.UUID,
        github_user_id: int,
        employee_id: uuid.UUID,
    ) -> MatchResult:
        """Link a member to an employee with full confidence, then infer skills.

        The employee's previous link, if any, is dropped.
        Raises :class:`NotFoundError` for an unknown member or an employee
        outside *company_id*.
        """
        member = await self._identity_service.get_member(session, company_id, github_user_id)
        if member is None:
            raise NotFoundError("organization member not found")
        employee = await self._identity_service.get_employee(session, employee_id)
        if employee.company_id != company_id:
            raise NotFoundError("employee not found")

        await self._identity_service.record_match(
            session, member, employee, confidence=CONFIDENCE_MANUAL, method=METHOD_MANUAL
        )
        log.info(
            "identity.manual_link",
            login=member.github_username,
            employee_id=str(employee_id),
        )
        await self._inference_engine.infer_skills(session, employee_id, company_id)
        return MatchResult(employee_id, CONFIDENCE_MANUAL, METHOD_MANUAL)

    async def unlink(
        self, session: AsyncSession, company_id: uuid.UUID, github_user_id: int
    ) -> OrganizationMember:
        return await self._identity_service.unlink(session, company_id, github_user_id)

    # ── discovery scan ────────────────────────────────────────────────────

    async def discover_members(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        company_id: uuid.UUID,
        org_login: str,
        client: GitHubClient,
    ) -> DiscoveryResult:
        """List the organization's members and resolve each one.

        Listing failures abort the scan; a failure on a single member is
        logged and counted, and the scan moves on.
        """
        result = DiscoveryResult(company_id=company_id)
        logins: list[str] = []
        page = 1
        while True:
            batch = await client.get_page(
                f"/orgs/{org_login}/members", page=page, per_page=_MEMBERS_PER_PAGE
            )
            logins.extend(item["login"] for item in batch)
            if len(batch) < _MEMBERS_PER_PAGE:
                break
            page += 1

        for login in logins:
            result.discovered += 1
            try:
                profile = await client.get(f"/users/{login}")
                identity = identity_from_profile(profile)
                async with session_factory() as session:
                    async with session.begin():
                        match = await self.match_identity(session, company_id, identity, client)
            except RateLimitError:
                raise
            except Exception as exc:
                log.error("identity.member_failed", login=login, error=str(exc))
                result.errors.append(f"{login}: {exc}")
                continue
            if match.linked:
                self._queue.enqueue(match.employee_id)
            if match.matched:
                result.matched += 1
            else:
                result.unmatched += 1

        log.info(
            "identity.discovery_done",
            company_id=str(company_id),
            org=org_login,
            discovered=result.discovered,
            matched=result.matched,
            unmatched=result.unmatched,
        )
        return result
