"""Identity resolution engine — link external accounts to employees."""

from skillsync.engines.identity.matcher import IdentityMatcher, identity_from_profile
from skillsync.engines.identity.models import (
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

__all__ = [
    "CommitEmailStrategy",
    "DiscoveryResult",
    "EmailStrategy",
    "ExternalIdentity",
    "IdentityMatcher",
    "MatchContext",
    "MatchResult",
    "MatchStrategy",
    "NameStrategy",
    "identity_from_profile",
]
