"""Sync engine — pull-based repository, commit and pull request ingestion."""

from skillsync.engines.sync.models import (
    FULL_LIMITS,
    QUICK_LIMITS,
    RepoSyncDetail,
    SyncLimits,
    SyncResult,
    SyncScope,
)
from skillsync.engines.sync.orchestrator import DIFF_STATS_PREFIX, SyncOrchestrator

__all__ = [
    "DIFF_STATS_PREFIX",
    "FULL_LIMITS",
    "QUICK_LIMITS",
    "RepoSyncDetail",
    "SyncLimits",
    "SyncOrchestrator",
    "SyncResult",
    "SyncScope",
]
