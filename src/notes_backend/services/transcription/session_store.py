from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import AsyncIterator, Awaitable, Callable, Dict, List, Optional, Tuple, TypeVar

from src.notes_backend.domain.models.transcription_session import TranscriptionSession
from src.notes_backend.services.audit.service import audit_service
from src.notes_backend.services.transcription.exceptions import SessionNotFound

logger = logging.getLogger(__name__)

T = TypeVar("T")

EvictionCallback = Callable[[], Awaitable[None]]


@dataclass
class _PendingEviction:
    task: asyncio.Task
    callback: EvictionCallback


class EvictionScheduler:
    """Runs deferred eviction callbacks keyed by session id.

    Each scheduled eviction is an asyncio task that sleeps for the requested
    delay and then runs its callback. Pending evictions can be cancelled, or
    fired immediately with :meth:`run_pending` so tests never have to sleep.
    """

    def __init__(self) -> None:
        self._pending: Dict[str, _PendingEviction] = {}

    def schedule(self, key: str, delay: float, callback: EvictionCallback) -> bool:
        """Schedule ``callback`` to run after ``delay`` seconds.

        Returns False when an eviction for ``key`` is already pending; the
        earlier deadline is kept.
        """

        if key in self._pending:
            return False
        task = asyncio.create_task(self._fire_later(key, delay), name=f"evict-session-{key}")
        self._pending[key] = _PendingEviction(task=task, callback=callback)
        return True

    def pending(self) -> List[str]:
        return list(self._pending)

    def cancel(self, key: str) -> bool:
        pending = self._pending.pop(key, None)
        if pending is None:
            return False
        pending.task.cancel()
        return True

    async def run_pending(self) -> int:
        """Fire every pending eviction now, in scheduling order."""

        superseded: List[asyncio.Task] = []
        for key in list(self._pending):
            pending = self._pending.pop(key, None)
            if pending is None:
                continue
            pending.task.cancel()
            superseded.append(pending.task)
            await self._run_callback(key, pending.callback)
        await asyncio.gather(*superseded, return_exceptions=True)
        return len(superseded)

    async def shutdown(self) -> None:
        """Cancel all pending evictions and wait for their tasks to finish."""

        pending = list(self._pending.values())
        self._pending.clear()
        for item in pending:
            item.task.cancel()
        await asyncio.gather(*(item.task for item in pending), return_exceptions=True)

    async def _fire_later(self, key: str, delay: float) -> None:
        await asyncio.sleep(delay)
        pending = self._pending.pop(key, None)
        if pending is not None:
            await self._run_callback(key, pending.callback)

    async def _run_callback(self, key: str, callback: EvictionCallback) -> None:
        try:
            await callback()
        except Exception:
            # Eviction is best effort and must never reach a request.
            logger.exception("Scheduled eviction for session %s failed", key)


@dataclass
class _SessionLock:
    lock: asyncio.Lock = field(default_factory=asyncio.Lock)
    users: int = 0


class SessionStore:
    """Process-wide, in-memory registry of live transcription sessions.

    Nothing is persisted: a restart loses every session. Callers serialize
    work on one session with :meth:`session_lock`; different sessions never
    contend with each other. Lock entries only exist while someone holds or
    waits for them.
    """

    def __init__(self, *, scheduler: Optional[EvictionScheduler] = None) -> None:
        self._sessions: Dict[str, TranscriptionSession] = {}
        self._locks: Dict[str, _SessionLock] = {}
        self._scheduler = scheduler or EvictionScheduler()

    def __len__(self) -> int:
        return len(self._sessions)

    def __contains__(self, session_id: object) -> bool:
        return session_id in self._sessions

    @property
    def scheduler(self) -> EvictionScheduler:
        return self._scheduler

    @asynccontextmanager
    async def session_lock(self, session_id: str) -> AsyncIterator[None]:
        entry = self._locks.get(session_id)
        if entry is None:
            entry = self._locks[session_id] = _SessionLock()
        entry.users += 1
        try:
            async with entry.lock:
                yield
        finally:
            entry.users -= 1
            if entry.users == 0 and self._locks.get(session_id) is entry:
                del self._locks[session_id]

    def get_or_create(self, session_id: str, workspace_id: str) -> Tuple[TranscriptionSession, bool]:
        """Return the session for ``session_id``, creating it if absent.

        The second element tells whether the session was created by this call.
        A new session is bound to ``workspace_id`` for its whole lifetime.
        """

        session = self._sessions.get(session_id)
        if session is not None:
            return session, False

        session = TranscriptionSession(
            session_id=session_id,
            workspace_id=workspace_id,
            created_at=datetime.now(timezone.utc),
        )
        self._sessions[session_id] = session
        logger.debug("Created transcription session %s for workspace %s", session_id, workspace_id)
        return session, True

    def get(self, session_id: str) -> Optional[TranscriptionSession]:
        """Return a snapshot of the session, or None if it does not exist."""

        session = self._sessions.get(session_id)
        if session is None:
            return None
        return session.model_copy(deep=True)

    def mutate(self, session_id: str, fn: Callable[[TranscriptionSession], T]) -> T:
        session = self._sessions.get(session_id)
        if session is None:
            raise SessionNotFound(f"Unknown session_id: {session_id}")
        return fn(session)

    def evict(self, session_id: str) -> bool:
        """Remove a session right away. Removing an absent session is a no-op."""

        session = self._sessions.pop(session_id, None)
        if session is None:
            return False

        logger.info("Evicted transcription session %s after %d chunks", session_id, session.chunk_count)
        audit_service.log_event(
            action="evict_transcription_session",
            resource_type="transcription_session",
            resource_id=session_id,
            extra={"workspace_id": session.workspace_id, "chunk_count": session.chunk_count},
        )
        return True

    def schedule_eviction(self, session_id: str, delay: float) -> bool:
        """Remove the session ``delay`` seconds from now, if it still exists then.

        The session stays readable until the eviction fires, so requests that
        are already in flight for it can still complete.
        """

        async def _evict() -> None:
            async with self.session_lock(session_id):
                self.evict(session_id)

        return self._scheduler.schedule(session_id, delay, _evict)

    async def close(self) -> None:
        await self._scheduler.shutdown()
