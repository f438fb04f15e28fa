"""
In-memory registry of quiz sessions keyed by (guild, channel).
"""
import logging
import threading
import time
from typing import Dict, List, Optional, Union

from .models import QuizSession, SessionKey


class _Pending:
    """Marker held for a key while its start request is fetching questions."""

    def __repr__(self) -> str:
        return "<pending>"


PENDING = _Pending()


class SessionStore:
    """
    Keyed registry of quiz sessions.

    At most one session (or pending reservation) exists per key. All
    operations are synchronous and guarded by a lock so the store can be
    shared between threads.
    """

    def __init__(self):
        self.logger = logging.getLogger(__name__)
        self._entries: Dict[SessionKey, Union[QuizSession, _Pending]] = {}
        self._lock = threading.Lock()

    def reserve(self, key: SessionKey) -> bool:
        """
        Reserve a key before starting an asynchronous question fetch.

        Args:
            key: Session key to reserve

        Returns:
            True if the key was free and is now reserved, False otherwise
        """
        with self._lock:
            if key in self._entries:
                return False
            self._entries[key] = PENDING

        self.logger.debug(
            f"Reserved session key {key}",
            extra={'event_type': 'session_reserved', 'session_key': str(key), 'timestamp': time.time()}
        )
        return True

    def release(self, key: SessionKey) -> None:
        """Drop a pending reservation; active sessions are left alone."""
        with self._lock:
            if self._entries.get(key) is PENDING:
                del self._entries[key]

    def create(self, key: SessionKey, session: QuizSession) -> bool:
        """
        Insert a session for a key.

        A pending reservation for the key is replaced; an active session is not.

        Returns:
            True on success, False if a session is already active for the key
        """
        with self._lock:
            existing = self._entries.get(key)
            if existing is not None and existing is not PENDING:
                return False
            self._entries[key] = session
        return True

    def get(self, key: SessionKey) -> Optional[QuizSession]:
        """Return the active session for a key, or None."""
        with self._lock:
            entry = self._entries.get(key)
        if entry is None or entry is PENDING:
            return None
        return entry

    def delete(self, key: SessionKey) -> None:
        """Remove whatever is stored for a key; no-op if absent."""
        with self._lock:
            self._entries.pop(key, None)

    def is_busy(self, key: SessionKey) -> bool:
        """True if the key holds an active session or a reservation."""
        with self._lock:
            return key in self._entries

    def active_keys(self) -> List[SessionKey]:
        with self._lock:
            return [key for key, entry in self._entries.items() if entry is not PENDING]

    def __len__(self) -> int:
        with self._lock:
            return sum(1 for entry in self._entries.values() if entry is not PENDING)
