"""In-process registry of live practice sessions."""
import logging
import threading
import time
import uuid

from psyexam.config import (
    SESSION_CLEANUP_INTERVAL_SECONDS,
    SESSION_IDLE_TIMEOUT_MINUTES,
)
from psyexam.models.context import RequestContext
from psyexam.services.session_runner import Clock, ExamSession

logger = logging.getLogger(__name__)


class SessionNotFoundError(KeyError):
    """Raised when a session id is unknown or has been discarded."""


class SessionAccessError(PermissionError):
    """Raised when a caller drives a session someone else started."""


def new_session_id() -> str:
    return uuid.uuid4().hex


class SessionRegistry:
    """Sessions keyed by id; each session is owned by the user who started it."""

    def __init__(
        self,
        idle_timeout_seconds: float = SESSION_IDLE_TIMEOUT_MINUTES * 60,
        clock: Clock = time.monotonic,
    ) -> None:
        self.idle_timeout_seconds = idle_timeout_seconds
        self._clock = clock
        self._sessions: dict[str, ExamSession] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)

    def add(self, session: ExamSession) -> ExamSession:
        with self._lock:
            self._sessions[session.session_id] = session
        return session

    def get(self, session_id: str, context: RequestContext) -> ExamSession:
        with self._lock:
            session = self._sessions.get(session_id)
        if session is None:
            raise SessionNotFoundError(session_id)
        if session.context.user_id != context.user_id:
            raise SessionAccessError(session_id)
        session.touch()
        return session

    def discard(self, session_id: str, context: RequestContext) -> None:
        self.get(session_id, context)
        with self._lock:
            self._sessions.pop(session_id, None)

    def sweep_idle(self) -> int:
        """Drop sessions idle for longer than the timeout."""
        cutoff = self._clock() - self.idle_timeout_seconds
        with self._lock:
            stale = [
                sid for sid, session in self._sessions.items()
                if session.last_activity < cutoff
            ]
            for sid in stale:
                del self._sessions[sid]
        if stale:
            logger.info(f"Discarded {len(stale)} idle practice sessions")
        return len(stale)


registry = SessionRegistry()


def schedule_session_cleanup(target: SessionRegistry = registry) -> None:
    """Sweep idle sessions periodically on a daemon thread."""

    def _worker() -> None:
        while True:
            time.sleep(SESSION_CLEANUP_INTERVAL_SECONDS)
            try:
                target.sweep_idle()
            except Exception as e:
                logger.error(f"Failed to sweep idle sessions: {e}")

    thread = threading.Thread(
        target=_worker,
        name="sessions_cleanup",
        daemon=True,
    )
    thread.start()
