"""Session registry - open editor sessions kept in memory by the service.

Created once by the host application and injected into handlers. Sessions
idle longer than ``idle_ttl`` seconds are dropped, and opening a session
beyond ``max_sessions`` evicts the least recently used one.
"""

from __future__ import annotations

import logging
import os
import threading
import time
from collections import OrderedDict
from typing import Callable

from models.template_models import Template
from operators.editor_session import EditorSession
from operators.history_manager import DEFAULT_HISTORY_LIMIT

logger = logging.getLogger(__name__)

DEFAULT_MAX_SESSIONS = 200
DEFAULT_SESSION_TTL = 3600.0  # seconds


class SessionNotFoundError(Exception):
    """Raised when an editor session is not found."""

    pass


def _number_from_env(name: str, default, cast):
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        value = cast(raw)
    except ValueError:
        logger.warning("Invalid %s %r, using %s", name, raw, default)
        return default
    if value <= 0:
        logger.warning("%s must be positive, using %s", name, default)
        return default
    return value


def history_limit_from_env() -> int:
    return _number_from_env("EDITOR_HISTORY_LIMIT", DEFAULT_HISTORY_LIMIT, int)


def max_sessions_from_env() -> int:
    return _number_from_env("EDITOR_MAX_SESSIONS", DEFAULT_MAX_SESSIONS, int)


def session_ttl_from_env() -> float:
    return _number_from_env("EDITOR_SESSION_TTL", DEFAULT_SESSION_TTL, float)


class EditorSessionRegistry:
    """Thread-safe map of session id -> EditorSession, most recently used last."""

    def __init__(
        self,
        history_limit: int | None = None,
        max_sessions: int | None = None,
        idle_ttl: float | None = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.history_limit = history_limit or history_limit_from_env()
        self.max_sessions = max_sessions or max_sessions_from_env()
        self.idle_ttl = idle_ttl or session_ttl_from_env()
        self._clock = clock
        self._sessions: OrderedDict[str, tuple[EditorSession, float]] = OrderedDict()
        self._lock = threading.Lock()

    def _evict_idle(self, now: float) -> None:
        expired = [
            session_id
            for session_id, (_, last_used) in self._sessions.items()
            if now - last_used > self.idle_ttl
        ]
        for session_id in expired:
            del self._sessions[session_id]
            logger.info(f"Expired idle editor session {session_id}")

    def open(self, template: Template | None = None) -> EditorSession:
        """Create a session on ``template`` (or a new default template)."""
        session = EditorSession(template=template, history_limit=self.history_limit)
        with self._lock:
            now = self._clock()
            self._evict_idle(now)
            while len(self._sessions) >= self.max_sessions:
                evicted_id, _ = self._sessions.popitem(last=False)
                logger.info(f"Evicted least recently used editor session {evicted_id}")
            self._sessions[session.session_id] = (session, now)

        logger.info(
            f"Opened editor session {session.session_id} "
            f"for template {session.state.template.id}"
        )
        return session

    def get(self, session_id: str) -> EditorSession:
        with self._lock:
            now = self._clock()
            self._evict_idle(now)
            entry = self._sessions.get(session_id)
            if entry is not None:
                self._sessions[session_id] = (entry[0], now)
                self._sessions.move_to_end(session_id)
        if entry is None:
            raise SessionNotFoundError(f"Editor session {session_id} not found")
        return entry[0]

    def close(self, session_id: str) -> bool:
        with self._lock:
            entry = self._sessions.pop(session_id, None)
        if entry is None:
            return False
        logger.info(f"Closed editor session {session_id}")
        return True

    def list_ids(self) -> list[str]:
        with self._lock:
            return list(self._sessions)

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)
