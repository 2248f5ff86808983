import asyncio
import logging
from typing import Dict, List

from ..models import SessionState, Turn
from ..settings import get_settings

logger = logging.getLogger(__name__)


class SessionStore:
    """In-process session map with a bounded, keep-most-recent turn window.

    Sessions are created lazily and live for the lifetime of the process.
    Each session also owns an asyncio.Lock so that callers can serialize
    whole conversation turns on one session while other sessions proceed.
    """

    def __init__(self, max_history: int, default_digest: str) -> None:
        if max_history < 1:
            raise ValueError("max_history must be at least 1")
        self._max_history = max_history
        self._default_digest = default_digest
        self._sessions: Dict[str, SessionState] = {}
        self._locks: Dict[str, asyncio.Lock] = {}

    @property
    def max_history(self) -> int:
        return self._max_history

    def __len__(self) -> int:
        return len(self._sessions)

    def __contains__(self, session_id: object) -> bool:
        return session_id in self._sessions

    def get_or_create(self, session_id: str) -> SessionState:
        """Return the SessionState for session_id, creating an empty one if unseen."""
        session = self._sessions.get(session_id)
        if session is None:
            session = SessionState(session_id=session_id, digest=self._default_digest)
            self._sessions[session_id] = session
            logger.debug("Created session %s", session_id)
        return session

    def lock(self, session_id: str) -> asyncio.Lock:
        """Return the lock guarding turns on session_id."""
        lock = self._locks.get(session_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[session_id] = lock
        return lock

    def append_turn(self, session_id: str, turn: Turn) -> None:
        """Append turn and drop the oldest entries beyond max_history."""
        session = self.get_or_create(session_id)
        session.history.append(turn)
        if len(session.history) > self._max_history:
            del session.history[: -self._max_history]

    def history(self, session_id: str) -> List[Turn]:
        """Return a copy of the session's current turn window."""
        return list(self.get_or_create(session_id).history)

    def get_digest(self, session_id: str) -> str:
        return self.get_or_create(session_id).digest

    def set_digest(self, session_id: str, text: str) -> None:
        self.get_or_create(session_id).digest = text


_STORE: SessionStore | None = None


def get_session_store() -> SessionStore:
    """Return the process-wide SessionStore, built from settings on first use."""
    global _STORE
    if _STORE is None:
        settings = get_settings()
        _STORE = SessionStore(
            max_history=settings.max_history,
            default_digest=settings.default_digest,
        )
    return _STORE
