"""AuthService — bearer token verification for API actors.

Tokens are issued by the surrounding platform; this service only verifies
them and extracts the actor.
"""

import os
import uuid
from dataclasses import dataclass

from jose import JWTError, jwt

from skillsync.services import AuthenticationError

_ALGORITHM = "HS256"

# Environment variable keys
_ENV_JWT_SECRET = "SKILLSYNC_JWT_SECRET"


def _get_secret() -> str:
    """Read JWT secret from environment. Raises if not set."""
    secret = os.environ.get(_ENV_JWT_SECRET)
    if not secret:
        raise RuntimeError(f"{_ENV_JWT_SECRET} environment variable is required")
    return secret


@dataclass(frozen=True)
class Actor:
    """The authenticated caller of an API request."""

    employee_id: uuid.UUID
    company_id: uuid.UUID
    role: str = "member"

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"


class AuthService:
    """Stateless token verification."""

    def authenticate(self, token: str) -> Actor:
        """Decode an access token and return the actor it names.

        Raises :class:`AuthenticationError` on invalid or expired token.
        """
        secret = _get_secret()
        try:
            payload = jwt.decode(token, secret, algorithms=[_ALGORITHM])
        except JWTError:
            raise AuthenticationError("invalid access token")

        if payload.get("type", "access") != "access":
            raise AuthenticationError("invalid token type")

        try:
            employee_id = uuid.UUID(payload["sub"])
            company_id = uuid.UUID(payload["company_id"])
        except (KeyError, ValueError, TypeError):
            raise AuthenticationError("invalid token payload")

        return Actor(
            employee_id=employee_id,
            company_id=company_id,
            role=payload.get("role", "member"),
        )
