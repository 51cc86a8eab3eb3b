"""Dependency injection — session, auth, and service singletons."""

from __future__ import annotations

from collections.abc import AsyncGenerator

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from skillsync.core.database import build_engine, build_session_factory
from skillsync.dao.commit_dao import CommitDAO
from skillsync.dao.employee_dao import EmployeeDAO
from skillsync.dao.employee_repository_dao import EmployeeRepositoryDAO
from skillsync.dao.github_connection_dao import GitHubConnectionDAO
from skillsync.dao.github_installation_dao import GitHubInstallationDAO
from skillsync.dao.organization_member_dao import OrganizationMemberDAO
from skillsync.dao.pull_request_dao import PullRequestDAO
from skillsync.dao.repository_dao import RepositoryDAO
from skillsync.dao.skill_dao import SkillDAO
from skillsync.dao.skill_record_dao import SkillRecordDAO
from skillsync.dao.sync_lock_dao import SyncLockDAO
from skillsync.dao.webhook_event_dao import WebhookEventDAO
from skillsync.engines.github.credentials import CredentialBroker
from skillsync.engines.identity.matcher import IdentityMatcher
from skillsync.engines.skill_inference.engine import SkillInferenceEngine
from skillsync.engines.skill_inference.queue import InferenceQueue
from skillsync.engines.skill_inference.runner import InferenceRunner
from skillsync.engines.sync.orchestrator import SyncOrchestrator
from skillsync.engines.webhook.handlers import WebhookHandlers
from skillsync.engines.webhook.processor import WebhookProcessor
from skillsync.services import AuthenticationError, PermissionDeniedError
from skillsync.services.auth_service import Actor, AuthService
from skillsync.services.identity_service import IdentityService
from skillsync.services.installation_service import InstallationService
from skillsync.services.repository_service import RepositoryService
from skillsync.services.skill_service import SkillService
from skillsync.services.sync_lock_service import SyncLockService
from skillsync.services.webhook_event_service import WebhookEventService

# ---------------------------------------------------------------------------
# DAO singletons
# ---------------------------------------------------------------------------
_employee_dao = EmployeeDAO()
_member_dao = OrganizationMemberDAO()
_installation_dao = GitHubInstallationDAO()
_connection_dao = GitHubConnectionDAO()
_repository_dao = RepositoryDAO()
_employee_repository_dao = EmployeeRepositoryDAO()
_commit_dao = CommitDAO()
_pull_request_dao = PullRequestDAO()
_skill_dao = SkillDAO()
_skill_record_dao = SkillRecordDAO()
_webhook_event_dao = WebhookEventDAO()
_sync_lock_dao = SyncLockDAO()

# ---------------------------------------------------------------------------
# Service singletons
# ---------------------------------------------------------------------------
_auth_service = AuthService()
_identity_service = IdentityService(_employee_dao, _member_dao)
_installation_service = InstallationService(_installation_dao, _connection_dao)
_repository_service = RepositoryService(
    _repository_dao, _commit_dao, _pull_request_dao, _employee_repository_dao
)
_skill_service = SkillService(_skill_dao, _skill_record_dao)
_webhook_event_service = WebhookEventService(_webhook_event_dao)
_sync_lock_service = SyncLockService(_sync_lock_dao)

# ---------------------------------------------------------------------------
# Engine singletons (stateless apart from the inference queue)
# ---------------------------------------------------------------------------
_inference_queue = InferenceQueue()
_inference_engine = SkillInferenceEngine(_identity_service, _repository_service, _skill_service)
_inference_runner = InferenceRunner(_inference_engine, _inference_queue)
_identity_matcher = IdentityMatcher(
    _identity_service, _repository_service, _inference_queue, _inference_engine
)
_sync_orchestrator = SyncOrchestrator(
    _repository_service,
    _identity_service,
    _sync_lock_service,
    _inference_queue,
    _installation_service,
)

# ---------------------------------------------------------------------------
# Engine / session factory (initialised by app lifespan)
# ---------------------------------------------------------------------------
_engine: AsyncEngine | None = None
_session_factory: async_sessionmaker[AsyncSession] | None = None


def init_session_factory(database_url: str | None = None) -> async_sessionmaker[AsyncSession]:
    """Create the async engine and session factory. Called once at startup."""
    global _engine, _session_factory  # noqa: PLW0603
    _engine = build_engine(database_url)
    _session_factory = build_session_factory(_engine)
    return _session_factory


async def dispose_engine() -> None:
    """Dispose the async engine, closing all pooled connections."""
    global _engine  # noqa: PLW0603
    if _engine is not None:
        await _engine.dispose()
        _engine = None


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    """Factory for engines that manage their own per-item transactions."""
    if _session_factory is None:
        raise RuntimeError("call init_session_factory() before handling requests")
    return _session_factory


async def get_session() -> AsyncGenerator[AsyncSession, None]:
    """Yield a per-request session with automatic commit/rollback."""
    if _session_factory is None:
        raise RuntimeError("call init_session_factory() before handling requests")
    async with _session_factory() as session:
        async with session.begin():
            yield session


# ---------------------------------------------------------------------------
# Auth dependency
# ---------------------------------------------------------------------------

_bearer = HTTPBearer(auto_error=False)


async def get_current_actor(
    credentials: HTTPAuthorizationCredentials | None = Depends(_bearer),
) -> Actor:
    """Extract and validate Bearer token, return the authenticated actor."""
    if credentials is None:
        raise AuthenticationError("missing authorization header")
    return _auth_service.authenticate(credentials.credentials)


async def require_admin(actor: Actor = Depends(get_current_actor)) -> Actor:
    if not actor.is_admin:
        raise PermissionDeniedError("admin role required")
    return actor


# ---------------------------------------------------------------------------
# Per-request collaborators
# ---------------------------------------------------------------------------


def get_credential_broker() -> CredentialBroker:
    """A fresh broker per request; installation tokens are never shared."""
    return CredentialBroker(_installation_service)


def get_webhook_processor(
    broker: CredentialBroker = Depends(get_credential_broker),
) -> WebhookProcessor:
    handlers = WebhookHandlers(
        _installation_service,
        _repository_service,
        _identity_service,
        _identity_matcher,
        client_factory=broker.get_installation_client,
    )
    return WebhookProcessor(
        _webhook_event_service, _installation_service, handlers, _inference_queue
    )


# ---------------------------------------------------------------------------
# Service getters (for Depends())
# ---------------------------------------------------------------------------


def get_identity_service() -> IdentityService:
    return _identity_service


def get_installation_service() -> InstallationService:
    return _installation_service


def get_skill_service() -> SkillService:
    return _skill_service


def get_identity_matcher() -> IdentityMatcher:
    return _identity_matcher


def get_sync_orchestrator() -> SyncOrchestrator:
    return _sync_orchestrator


def get_inference_engine() -> SkillInferenceEngine:
    return _inference_engine


def get_inference_runner() -> InferenceRunner:
    return _inference_runner


def get_inference_queue() -> InferenceQueue:
    return _inference_queue
