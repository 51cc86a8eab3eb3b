"""Scheduler — periodic organization syncs feeding the skill inference worker."""

from __future__ import annotations

import asyncio
import os
from collections.abc import Awaitable, Callable

import structlog
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from skillsync.engines.github.credentials import SCOPE_ORGANIZATION, CredentialBroker
from skillsync.engines.skill_inference.queue import InferenceQueue
from skillsync.engines.skill_inference.runner import InferenceRunner
from skillsync.engines.sync.models import SyncScope
from skillsync.engines.sync.orchestrator import SyncOrchestrator
from skillsync.services import ConflictError
from skillsync.services.installation_service import InstallationService

logger = structlog.get_logger(__name__)


class EngineLoop:
    """Single engine scheduling loop with trigger/timeout wake mechanism."""

    def __init__(
        self,
        name: str,
        run_fn: Callable[[], Awaitable[int]],
        interval: float,
        downstream: asyncio.Event | None = None,
        trigger: asyncio.Event | None = None,
    ) -> None:
        self.name = name
        self.run_fn = run_fn
        self.interval = interval
        self.trigger = trigger or asyncio.Event()
        self.downstream = downstream

    async def run_once(self) -> int:
        """One cycle; errors are logged and count as zero processed."""
        try:
            processed = await self.run_fn()
        except Exception:
            logger.exception("engine.error", engine=self.name)
            return 0
        logger.info("engine.cycle", engine=self.name, processed=processed)
        if processed > 0 and self.downstream is not None:
            self.downstream.set()
        return processed

    async def loop(self) -> None:
        """Run the engine in an infinite loop, waking on trigger or timeout."""
        while True:
            try:
                await asyncio.wait_for(self.trigger.wait(), timeout=self.interval)
                self.trigger.clear()
            except asyncio.TimeoutError:
                pass
            await self.run_once()


class Scheduler:
    """Manages lifecycle of all EngineLoop tasks."""

    def __init__(self, loops: list[EngineLoop]) -> None:
        self._loops = loops
        self._tasks: list[asyncio.Task[None]] = []

    async def start(self) -> None:
        """Start all engine loops as asyncio tasks."""
        self._tasks = [
            asyncio.create_task(loop.loop(), name=f"engine-{loop.name}") for loop in self._loops
        ]
        # Kick off the first engine immediately
        if self._loops:
            self._loops[0].trigger.set()
        logger.info("scheduler.started", engines=[loop.name for loop in self._loops])

    async def stop(self) -> None:
        """Cancel all engine loops and wait for them to exit."""
        for task in self._tasks:
            task.cancel()
        await asyncio.gather(*self._tasks, return_exceptions=True)
        self._tasks.clear()
        logger.info("scheduler.stopped")


def _env_float(key: str, default: float) -> float:
    return float(os.environ.get(key, default))


def create_scheduler(
    session_factory: async_sessionmaker[AsyncSession],
    *,
    installation_service: InstallationService,
    orchestrator: SyncOrchestrator,
    inference_runner: InferenceRunner,
    inference_queue: InferenceQueue,
    broker_factory: Callable[[], CredentialBroker],
) -> Scheduler:
    """Build the org-sync loop chained into the inference worker loop.

    The inference loop also wakes whenever anything is enqueued.
    """
    org_sync_interval = _env_float("SKILLSYNC_ORG_SYNC_INTERVAL", 3600)
    inference_interval = _env_float("SKILLSYNC_INFERENCE_INTERVAL", 30)

    async def _sync_organizations() -> int:
        async with session_factory() as session:
            installations = await installation_service.list_active(session)
        broker = broker_factory()
        synced = 0
        for installation in installations:
            scope = SyncScope(
                scope_type=SCOPE_ORGANIZATION,
                scope_id=installation.company_id,
                company_id=installation.company_id,
                login=installation.account_login,
            )
            try:
                async with await broker.get_installation_client(
                    installation.installation_id
                ) as client:
                    await orchestrator.run_sync(session_factory, scope, "quick", client)
                synced += 1
            except ConflictError:
                logger.info("org_sync.skipped_running", scope=scope.key)
            except Exception:
                logger.exception(
                    "org_sync.failed",
                    installation_id=installation.installation_id,
                    company_id=str(installation.company_id),
                )
        return synced

    async def _infer_pending() -> int:
        results = await inference_runner.drain(session_factory)
        return len(results)

    inference_loop = EngineLoop(
        "skill_inference", _infer_pending, inference_interval, trigger=inference_queue.event
    )
    org_sync_loop = EngineLoop(
        "org_sync", _sync_organizations, org_sync_interval, downstream=inference_queue.event
    )
    return Scheduler([org_sync_loop, inference_loop])
