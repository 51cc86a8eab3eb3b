"""Tests for CredentialBroker scoped clients (no DB, no network)."""

from __future__ import annotations

import uuid
from datetime import datetime, timedelta, timezone
from types import SimpleNamespace
from unittest.mock import AsyncMock

import httpx
import pytest
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from jose import jwt

from skillsync.engines.github import SCOPE_INDIVIDUAL, SCOPE_ORGANIZATION, CredentialBroker
from skillsync.services import AuthenticationError, NotFoundError, ValidationError


@pytest.fixture(scope="module")
def rsa_keys() -> tuple[str, str]:
    key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    private_pem = key.private_bytes(
        serialization.Encoding.PEM,
        serialization.PrivateFormat.PKCS8,
        serialization.NoEncryption(),
    ).decode()
    public_pem = (
        key.public_key()
        .public_bytes(serialization.Encoding.PEM, serialization.PublicFormat.SubjectPublicKeyInfo)
        .decode()
    )
    return private_pem, public_pem


class FakeGitHub:
    """Serves the token endpoint and echoes the Authorization header elsewhere."""

    def __init__(self, expires_in: timedelta = timedelta(hours=1)) -> None:
        self.token_requests: list[httpx.Request] = []
        self.expires_in = expires_in

    def __call__(self, request: httpx.Request) -> httpx.Response:
        if request.url.path.endswith("/access_tokens"):
            self.token_requests.append(request)
            expires_at = datetime.now(timezone.utc) + self.expires_in
            return httpx.Response(
                201,
                json={
                    "token": f"ghs_{len(self.token_requests)}",
                    "expires_at": expires_at.strftime("%Y-%m-%dT%H:%M:%SZ"),
                },
            )
        return httpx.Response(200, json={"authorization": request.headers.get("authorization")})


def _installations(*, installation=None, connection=None) -> AsyncMock:
    svc = AsyncMock()
    svc.require_for_company = AsyncMock(return_value=installation)
    svc.get_connection = AsyncMock(return_value=connection)
    return svc


# ── individual ────────────────────────────────────────────────────────────


class TestIndividualScope:
    @pytest.mark.asyncio
    async def test_uses_stored_token(self):
        connection = SimpleNamespace(access_token="gho_alice", expires_at=None)
        broker = CredentialBroker(
            _installations(connection=connection), transport=httpx.MockTransport(FakeGitHub())
        )

        async with await broker.get_scoped_client(
            AsyncMock(), uuid.uuid4(), SCOPE_INDIVIDUAL
        ) as client:
            data = await client.get("/user")

        assert data["authorization"] == "token gho_alice"

    @pytest.mark.asyncio
    async def test_missing_connection(self):
        broker = CredentialBroker(_installations(connection=None))
        with pytest.raises(NotFoundError):
            await broker.get_scoped_client(AsyncMock(), uuid.uuid4(), SCOPE_INDIVIDUAL)

    @pytest.mark.asyncio
    async def test_expired_connection(self):
        connection = SimpleNamespace(
            access_token="gho_alice",
            expires_at=datetime.now(timezone.utc) - timedelta(minutes=1),
        )
        broker = CredentialBroker(_installations(connection=connection))
        with pytest.raises(AuthenticationError):
            await broker.get_scoped_client(AsyncMock(), uuid.uuid4(), SCOPE_INDIVIDUAL)


# ── organization ──────────────────────────────────────────────────────────


class TestOrganizationScope:
    @pytest.mark.asyncio
    async def test_mints_installation_token_with_app_jwt(self, rsa_keys):
        private_pem, public_pem = rsa_keys
        github = FakeGitHub()
        broker = CredentialBroker(
            _installations(installation=SimpleNamespace(installation_id=77)),
            app_id="1234",
            private_key=private_pem,
            transport=httpx.MockTransport(github),
        )

        async with await broker.get_scoped_client(
            AsyncMock(), uuid.uuid4(), SCOPE_ORGANIZATION
        ) as client:
            data = await client.get("/installation/repositories")

        assert data["authorization"] == "token ghs_1"
        request = github.token_requests[0]
        assert request.method == "POST"
        assert request.url.path == "/app/installations/77/access_tokens"
        scheme, app_jwt = request.headers["authorization"].split(" ", 1)
        assert scheme == "Bearer"
        claims = jwt.decode(app_jwt, public_pem, algorithms=["RS256"])
        assert claims["iss"] == "1234"
        assert claims["exp"] - claims["iat"] <= 600

    @pytest.mark.asyncio
    async def test_token_is_cached_until_near_expiry(self, rsa_keys):
        github = FakeGitHub()
        broker = CredentialBroker(
            _installations(),
            app_id="1234",
            private_key=rsa_keys[0],
            transport=httpx.MockTransport(github),
        )

        for _ in range(2):
            client = await broker.get_installation_client(77)
            await client.close()
        assert len(github.token_requests) == 1

        await (await broker.get_installation_client(78)).close()
        assert len(github.token_requests) == 2

    @pytest.mark.asyncio
    async def test_token_close_to_expiry_is_refreshed(self, rsa_keys):
        github = FakeGitHub(expires_in=timedelta(minutes=2))
        broker = CredentialBroker(
            _installations(),
            app_id="1234",
            private_key=rsa_keys[0],
            transport=httpx.MockTransport(github),
        )

        for _ in range(2):
            await (await broker.get_installation_client(77)).close()
        assert len(github.token_requests) == 2

    @pytest.mark.asyncio
    async def test_missing_app_credentials(self, monkeypatch):
        monkeypatch.delenv("SKILLSYNC_GITHUB_APP_ID", raising=False)
        monkeypatch.delenv("SKILLSYNC_GITHUB_APP_PRIVATE_KEY", raising=False)
        broker = CredentialBroker(_installations())
        with pytest.raises(AuthenticationError):
            await broker.get_installation_client(77)

    @pytest.mark.asyncio
    async def test_company_without_installation(self):
        installations = _installations()
        installations.require_for_company = AsyncMock(
            side_effect=NotFoundError("no active GitHub installation for company")
        )
        broker = CredentialBroker(installations)
        with pytest.raises(NotFoundError):
            await broker.get_scoped_client(AsyncMock(), uuid.uuid4(), SCOPE_ORGANIZATION)


@pytest.mark.asyncio
async def test_unknown_scope_type():
    broker = CredentialBroker(_installations())
    with pytest.raises(ValidationError):
        await broker.get_scoped_client(AsyncMock(), uuid.uuid4(), "team")
