"""CredentialBroker — scoped GitHub clients per organization or individual.

Organization scope mints a GitHub App installation token; individual scope
uses the employee's stored delegated token. A broker instance caches
installation tokens for its own lifetime only; create one per request or run.
"""

from __future__ import annotations

import os
import time
import uuid
from datetime import datetime, timedelta, timezone

import httpx
import structlog
from jose import jwt
from sqlalchemy.ext.asyncio import AsyncSession

from skillsync.engines.github.client import GitHubClient
from skillsync.services import AuthenticationError, NotFoundError, ValidationError
from skillsync.services.installation_service import InstallationService

log = structlog.get_logger("skillsync.engine")

SCOPE_ORGANIZATION = "organization"
SCOPE_INDIVIDUAL = "individual"

_APP_JWT_TTL = 540  # seconds, GitHub caps App JWTs at 10 minutes
_TOKEN_REFRESH_MARGIN = timedelta(minutes=5)


def _parse_github_time(value: str) -> datetime:
    return datetime.fromisoformat(value.replace("Z", "+00:00"))


class CredentialBroker:
    def __init__(
        self,
        installation_service: InstallationService,
        *,
        app_id: str | None = None,
        private_key: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._installation_service = installation_service
        self._app_id = app_id or os.environ.get("SKILLSYNC_GITHUB_APP_ID")
        self._private_key = private_key or os.environ.get("SKILLSYNC_GITHUB_APP_PRIVATE_KEY")
        self._transport = transport
        self._token_cache: dict[int, tuple[str, datetime]] = {}

    async def get_scoped_client(
        self,
        session: AsyncSession,
        scope_id: uuid.UUID,
        scope_type: str,
    ) -> GitHubClient:
        """Return an authenticated client for a company or an employee.

        Raises :class:`NotFoundError` when the scope has no installation or
        connection and :class:`AuthenticationError` when the credential
        has expired or cannot be minted.
        """
        if scope_type == SCOPE_ORGANIZATION:
            installation = await self._installation_service.require_for_company(session, scope_id)
            return await self.get_installation_client(installation.installation_id)

        if scope_type == SCOPE_INDIVIDUAL:
            connection = await self._installation_service.get_connection(session, scope_id)
            if connection is None:
                raise NotFoundError("no active GitHub connection for employee")
            if connection.expires_at is not None and connection.expires_at <= datetime.now(
                timezone.utc
            ):
                raise AuthenticationError("GitHub connection has expired, reconnect required")
            return GitHubClient(connection.access_token, transport=self._transport)

        raise ValidationError(f"unknown scope type: {scope_type}")

    async def get_installation_client(self, installation_id: int) -> GitHubClient:
        token = await self._installation_token(installation_id)
        return GitHubClient(token, transport=self._transport)

    # ── internal ───────────────────────────────────────────────────────────

    def _app_jwt(self) -> str:
        if not self._app_id or not self._private_key:
            raise AuthenticationError("GitHub App credentials are not configured")
        now = int(time.time())
        claims = {"iat": now - 60, "exp": now + _APP_JWT_TTL, "iss": str(self._app_id)}
        return jwt.encode(claims, self._private_key, algorithm="RS256")

    async def _installation_token(self, installation_id: int) -> str:
        cached = self._token_cache.get(installation_id)
        if cached is not None:
            token, expires_at = cached
            if expires_at - _TOKEN_REFRESH_MARGIN > datetime.now(timezone.utc):
                return token

        async with GitHubClient(
            self._app_jwt(), token_type="Bearer", transport=self._transport
        ) as app_client:
            data = await app_client.post(f"/app/installations/{installation_id}/access_tokens")

        token = data["token"]
        expires_at = _parse_github_time(data["expires_at"])
        self._token_cache[installation_id] = (token, expires_at)
        log.info("github.installation_token", installation_id=installation_id)
        return token
