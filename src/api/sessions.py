"""
Session registry - Dashboard sessions keyed by opaque session ids.

Each HTTP client owns one DashboardSession. The registry creates and
starts sessions, looks them up by the ``X-Session-Id`` header value and
tears them down (closing every live subscription) on request, after an
idle timeout, or on application shutdown.

Idle sessions are swept lazily: every create() and get() first closes
the sessions nobody has looked up for ``idle_timeout_seconds``.
"""

import logging
import secrets
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass

from src.domain.session import DashboardSession

logger = logging.getLogger(__name__)


@dataclass
class _Entry:
    session: DashboardSession
    last_seen: float


class SessionRegistry:
    """Process-wide map of session id to DashboardSession."""

    def __init__(
        self,
        factory: Callable[[], DashboardSession],
        idle_timeout_seconds: float = 1800.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._factory = factory
        self._idle_timeout = idle_timeout_seconds
        self._clock = clock
        self._entries: dict[str, _Entry] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def create(self) -> tuple[str, DashboardSession]:
        self.sweep()
        session = self._factory()
        session.start()
        session_id = secrets.token_urlsafe(24)
        with self._lock:
            self._entries[session_id] = _Entry(session, self._clock())
        logger.info("Session opened (%d active)", len(self))
        return session_id, session

    def get(self, session_id: str) -> DashboardSession | None:
        """Look up a session and mark it as seen now."""
        self.sweep()
        with self._lock:
            entry = self._entries.get(session_id)
            if entry is None:
                return None
            entry.last_seen = self._clock()
            return entry.session

    def close(self, session_id: str) -> bool:
        with self._lock:
            entry = self._entries.pop(session_id, None)
        if entry is None:
            return False
        entry.session.close()
        logger.info("Session closed (%d active)", len(self))
        return True

    def sweep(self) -> int:
        """
        Close every session left idle for the timeout or longer.

        Returns:
            Number of sessions closed
        """
        cutoff = self._clock() - self._idle_timeout
        with self._lock:
            expired = [
                session_id
                for session_id, entry in self._entries.items()
                if entry.last_seen <= cutoff
            ]
            sessions = [self._entries.pop(session_id).session for session_id in expired]
        for session in sessions:
            session.close()
        if sessions:
            logger.info("Expired %d idle session(s) (%d active)", len(sessions), len(self))
        return len(sessions)

    def close_all(self) -> None:
        with self._lock:
            sessions = [entry.session for entry in self._entries.values()]
            self._entries.clear()
        for session in sessions:
            session.close()
        logger.info("Closed %d session(s)", len(sessions))
