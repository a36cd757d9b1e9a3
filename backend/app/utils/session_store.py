"""
Session Store - Per-user multi-step conversation state for the chat layer

One SessionStore instance lives for the process lifetime and is injected
into the command router. Entries expire after SESSION_TIMEOUT_MINUTES of
inactivity.
"""
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, Optional
import threading

from app.core.constants import SESSION_TIMEOUT_MINUTES
from app.utils.timezone import get_reference_now


class SessionStore:
    def __init__(self, timeout_minutes: int = SESSION_TIMEOUT_MINUTES,
                 clock: Callable[[], datetime] = get_reference_now):
        self.timeout = timedelta(minutes=timeout_minutes)
        self.clock = clock
        self._lock = threading.Lock()
        # Format: {external_id: {"data": {...}, "last_active": datetime}}
        self._sessions: Dict[str, Dict[str, Any]] = {}

    def get(self, external_id: str) -> Optional[Dict[str, Any]]:
        """
        Get a user's conversation state, or None if absent or expired

        Args:
            external_id: User's chat address (e.g., "whatsapp:+13128856151")

        Returns:
            Copy of the stored state
        """
        self.cleanup_expired_sessions()
        with self._lock:
            session = self._sessions.get(external_id)
            if session is None:
                return None
            session["last_active"] = self.clock()
            return dict(session["data"])

    def set(self, external_id: str, data: Dict[str, Any]) -> None:
        with self._lock:
            self._sessions[external_id] = {"data": dict(data), "last_active": self.clock()}

    def clear(self, external_id: str) -> bool:
        """
        Manually clear a user's session

        Returns:
            True if session existed and was cleared, False otherwise
        """
        with self._lock:
            return self._sessions.pop(external_id, None) is not None

    def cleanup_expired_sessions(self) -> int:
        """
        Remove sessions that have been inactive for longer than the timeout

        Returns:
            Number of sessions removed
        """
        cutoff_time = self.clock() - self.timeout
        with self._lock:
            expired = [
                external_id
                for external_id, session in self._sessions.items()
                if session["last_active"] < cutoff_time
            ]
            for external_id in expired:
                del self._sessions[external_id]
        return len(expired)

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)
