"""GitHub engine — REST client, credential broker, framework detection."""

from skillsync.engines.github.client import GitHubClient
from skillsync.engines.github.credentials import (
    SCOPE_INDIVIDUAL,
    SCOPE_ORGANIZATION,
    CredentialBroker,
)
from skillsync.engines.github.frameworks import detect_frameworks

__all__ = [
    "SCOPE_INDIVIDUAL",
    "SCOPE_ORGANIZATION",
    "CredentialBroker",
    "GitHubClient",
    "detect_frameworks",
]
