"""InferenceRunner — drains the inference queue, one transaction per employee."""

from __future__ import annotations

import uuid

import structlog
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from skillsync.engines.skill_inference.engine import SkillInferenceEngine
from skillsync.engines.skill_inference.models import InferenceResult
from skillsync.engines.skill_inference.queue import InferenceQueue

log = structlog.get_logger("skillsync.engine")


class InferenceRunner:
    def __init__(self, engine: SkillInferenceEngine, queue: InferenceQueue) -> None:
        self._engine = engine
        self._queue = queue

    async def run_one(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        employee_id: uuid.UUID,
    ) -> InferenceResult | None:
        """Infer skills for a single employee; failures are logged and swallowed."""
        try:
            async with session_factory() as session:
                async with session.begin():
                    return await self._engine.infer_skills(session, employee_id)
        except Exception as exc:
            log.error("inference.failed", employee_id=str(employee_id), error=str(exc))
            return None

    async def drain(
        self, session_factory: async_sessionmaker[AsyncSession]
    ) -> list[InferenceResult]:
        """Process every employee currently queued."""
        results = []
        for employee_id in self._queue.drain():
            result = await self.run_one(session_factory, employee_id)
            if result is not None:
                results.append(result)
        return results
