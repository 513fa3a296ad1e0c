# /taskflow/services/context_store.py

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Dict, List, Optional

from taskflow.models.context import ProcessContext
from taskflow.utils.metrics import active_contexts_gauge

# This service holds the in-flight ProcessContext of every session in memory.
# State is lost on restart. Per-session locks serialize message handling for
# one session while different sessions proceed concurrently.

logger = logging.getLogger(__name__)


class _SessionLock:
    __slots__ = ("lock", "holders")

    def __init__(self):
        self.lock = asyncio.Lock()
        self.holders = 0


class SessionContextStore:
    def __init__(self):
        self._contexts: Dict[str, ProcessContext] = {}
        self._locks: Dict[str, _SessionLock] = {}

    async def get(self, session_id: str) -> Optional[ProcessContext]:
        return self._contexts.get(session_id)

    async def set(self, session_id: str, context: ProcessContext) -> None:
        self._contexts[session_id] = context
        active_contexts_gauge.set(len(self._contexts))

    async def delete(self, session_id: str) -> bool:
        removed = self._contexts.pop(session_id, None) is not None
        active_contexts_gauge.set(len(self._contexts))
        return removed

    async def clear(self) -> None:
        self._contexts.clear()
        active_contexts_gauge.set(0)

    def size(self) -> int:
        return len(self._contexts)

    def session_ids(self) -> List[str]:
        return list(self._contexts)

    @asynccontextmanager
    async def session_lock(self, session_id: str) -> AsyncIterator[None]:
        """
        Holds the lock of one session. Waiters are served in arrival order.
        The lock entry is dropped once nobody holds or waits for it.
        """
        entry = self._locks.get(session_id)
        if entry is None:
            entry = self._locks[session_id] = _SessionLock()
        entry.holders += 1
        try:
            async with entry.lock:
                yield
        finally:
            entry.holders -= 1
            if entry.holders == 0 and self._locks.get(session_id) is entry:
                del self._locks[session_id]

    def lock_count(self) -> int:
        return len(self._locks)


# Globally accessible instance
context_store = SessionContextStore()
