"""Identities router — resolution review, manual links, discovery scans."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from skillsync.api.deps import (
    get_credential_broker,
    get_identity_matcher,
    get_identity_service,
    get_installation_service,
    get_session,
    get_session_factory,
    require_admin,
)
from skillsync.api.schemas.common import PageMeta, PaginatedResponse
from skillsync.api.schemas.identity import (
    DiscoveryResponse,
    LinkRequest,
    MatchResponse,
    OrganizationMemberItem,
)
from skillsync.engines.github.credentials import SCOPE_ORGANIZATION, CredentialBroker
from skillsync.engines.identity.matcher import IdentityMatcher
from skillsync.services.auth_service import Actor
from skillsync.services.identity_service import IdentityService
from skillsync.services.installation_service import InstallationService

router = APIRouter()


def _page(result: dict) -> PaginatedResponse[OrganizationMemberItem]:
    return PaginatedResponse(
        data=[OrganizationMemberItem.model_validate(m) for m in result["data"]],
        meta=PageMeta(next_cursor=result["next_cursor"], has_more=result["has_more"]),
    )


@router.get("/unresolved", response_model=PaginatedResponse[OrganizationMemberItem])
async def list_unresolved(
    cursor: str | None = Query(None),
    page_size: int = Query(20, ge=1, le=100),
    session: AsyncSession = Depends(get_session),
    actor: Actor = Depends(require_admin),
    svc: IdentityService = Depends(get_identity_service),
) -> PaginatedResponse[OrganizationMemberItem]:
    return _page(await svc.list_unresolved(session, actor.company_id, cursor, page_size))


@router.get("/resolved", response_model=PaginatedResponse[OrganizationMemberItem])
async def list_resolved(
    cursor: str | None = Query(None),
    page_size: int = Query(20, ge=1, le=100),
    session: AsyncSession = Depends(get_session),
    actor: Actor = Depends(require_admin),
    svc: IdentityService = Depends(get_identity_service),
) -> PaginatedResponse[OrganizationMemberItem]:
    return _page(await svc.list_resolved(session, actor.company_id, cursor, page_size))


@router.post("/link", response_model=MatchResponse)
async def link_identity(
    body: LinkRequest,
    session: AsyncSession = Depends(get_session),
    actor: Actor = Depends(require_admin),
    matcher: IdentityMatcher = Depends(get_identity_matcher),
) -> MatchResponse:
    match = await matcher.manual_link(
        session, actor.company_id, body.github_user_id, body.employee_id
    )
    return MatchResponse(
        employee_id=match.employee_id, confidence=match.confidence, method=match.method
    )


@router.delete("/link/{github_user_id}", response_model=OrganizationMemberItem)
async def unlink_identity(
    github_user_id: int,
    session: AsyncSession = Depends(get_session),
    actor: Actor = Depends(require_admin),
    matcher: IdentityMatcher = Depends(get_identity_matcher),
) -> OrganizationMemberItem:
    member = await matcher.unlink(session, actor.company_id, github_user_id)
    return OrganizationMemberItem.model_validate(member)


@router.post("/discover", response_model=DiscoveryResponse)
async def discover_members(
    actor: Actor = Depends(require_admin),
    factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
    broker: CredentialBroker = Depends(get_credential_broker),
    installations: InstallationService = Depends(get_installation_service),
    matcher: IdentityMatcher = Depends(get_identity_matcher),
) -> DiscoveryResponse:
    async with factory() as session:
        async with session.begin():
            installation = await installations.require_for_company(session, actor.company_id)
            client = await broker.get_scoped_client(
                session, actor.company_id, SCOPE_ORGANIZATION
            )
    async with client:
        result = await matcher.discover_members(
            factory, actor.company_id, installation.account_login, client
        )
    return DiscoveryResponse(
        discovered=result.discovered,
        matched=result.matched,
        unmatched=result.unmatched,
        errors=result.errors,
    )
