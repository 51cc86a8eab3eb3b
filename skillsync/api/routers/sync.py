"""Sync router — quick and full contribution syncs."""

from __future__ import annotations

from fastapi import APIRouter, Body, Depends
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from skillsync.api.deps import (
    get_credential_broker,
    get_current_actor,
    get_installation_service,
    get_session_factory,
    get_sync_orchestrator,
)
from skillsync.api.schemas.common import Envelope
from skillsync.api.schemas.sync import SyncRequest
from skillsync.engines.github.credentials import (
    SCOPE_INDIVIDUAL,
    SCOPE_ORGANIZATION,
    CredentialBroker,
)
from skillsync.engines.sync.models import SyncMode, SyncScope
from skillsync.engines.sync.orchestrator import SyncOrchestrator
from skillsync.services import NotFoundError, PermissionDeniedError
from skillsync.services.auth_service import Actor
from skillsync.services.installation_service import InstallationService

router = APIRouter()


async def _sync(
    mode: SyncMode,
    body: SyncRequest,
    actor: Actor,
    factory: async_sessionmaker[AsyncSession],
    broker: CredentialBroker,
    installations: InstallationService,
    orchestrator: SyncOrchestrator,
) -> Envelope:
    if body.scope == SCOPE_ORGANIZATION and not actor.is_admin:
        raise PermissionDeniedError("organization sync requires the admin role")

    async with factory() as session:
        async with session.begin():
            if body.scope == SCOPE_ORGANIZATION:
                installation = await installations.require_for_company(session, actor.company_id)
                scope = SyncScope(
                    scope_type=SCOPE_ORGANIZATION,
                    scope_id=actor.company_id,
                    company_id=actor.company_id,
                    login=installation.account_login,
                )
            else:
                connection = await installations.get_connection(session, actor.employee_id)
                if connection is None:
                    raise NotFoundError("no active GitHub connection for employee")
                scope = SyncScope(
                    scope_type=SCOPE_INDIVIDUAL,
                    scope_id=actor.employee_id,
                    company_id=actor.company_id,
                    login=connection.github_username,
                )
            client = await broker.get_scoped_client(session, scope.scope_id, scope.scope_type)

    async with client:
        result = await orchestrator.run_sync(factory, scope, mode, client)

    return Envelope(
        message=(
            f"{mode} sync finished: {result.repositories} repositories, "
            f"{result.new_commits} new commits"
        ),
        data=result.summary(),
    )


@router.post("/quick", response_model=Envelope)
async def quick_sync(
    body: SyncRequest = Body(default_factory=SyncRequest),
    actor: Actor = Depends(get_current_actor),
    factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
    broker: CredentialBroker = Depends(get_credential_broker),
    installations: InstallationService = Depends(get_installation_service),
    orchestrator: SyncOrchestrator = Depends(get_sync_orchestrator),
) -> Envelope:
    return await _sync("quick", body, actor, factory, broker, installations, orchestrator)


@router.post("/full", response_model=Envelope)
async def full_sync(
    body: SyncRequest = Body(default_factory=SyncRequest),
    actor: Actor = Depends(get_current_actor),
    factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
    broker: CredentialBroker = Depends(get_credential_broker),
    installations: InstallationService = Depends(get_installation_service),
    orchestrator: SyncOrchestrator = Depends(get_sync_orchestrator),
) -> Envelope:
    return await _sync("full", body, actor, factory, broker, installations, orchestrator)
