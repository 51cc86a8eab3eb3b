"""InferenceQueue — in-process, de-duplicating queue of employees awaiting inference."""

from __future__ import annotations

import asyncio
import uuid


class InferenceQueue:
    """Pending employee ids, drained by the ``skill_inference`` engine loop.

    Enqueueing an id that is already pending is a no-op. Every enqueue sets
    :attr:`event` so the worker loop wakes before its interval elapses.
    """

    def __init__(self) -> None:
        self._pending: dict[uuid.UUID, None] = {}
        self.event = asyncio.Event()

    def enqueue(self, employee_id: uuid.UUID) -> bool:
        """Add *employee_id*. Returns False when it was already pending."""
        if employee_id in self._pending:
            return False
        self._pending[employee_id] = None
        self.event.set()
        return True

    def drain(self) -> list[uuid.UUID]:
        """Remove and return every pending id, oldest first."""
        ids = list(self._pending)
        self._pending.clear()
        return ids

    def __len__(self) -> int:
        return len(self._pending)

    def __contains__(self, employee_id: object) -> bool:
        return employee_id in self._pending
