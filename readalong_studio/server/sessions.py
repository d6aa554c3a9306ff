"""In-memory session store with per-session locking and TTL cleanup.

WHY: The HTTP API keeps read-along sessions alive between requests so an
operator can place anchors one call at a time. FastAPI runs sync
endpoints on a threadpool, so two requests for the same session may
arrive concurrently, while the core itself does no locking. An
in-memory store is enough for a single-operator tool with no
persistence requirements.

HOW: Two components work together:
  StoredSession — dataclass holding the ReadAlongSession, its lock,
                  timestamps and the last text published by the editor
  SessionStore  — dict-based store with create/get/list/delete and
                  idle-TTL cleanup, guarded by a threading.Lock

RULES:
- Store mutations are protected by the store lock
- Every use of a session's core objects happens under that session's lock
- get_session() bumps last_access; TTL is measured from last_access
- Session ids are uuid4 hex strings generated at creation time
- Creating beyond max_sessions raises ValueError
"""

from __future__ import annotations

import logging
import threading
import time
import uuid
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from readalong_studio.config import MAX_SESSIONS, SESSION_TTL_SECONDS
from readalong_studio.core.session import ReadAlongSession

logger = logging.getLogger(__name__)


@dataclass
class StoredSession:
    """A live session plus the bookkeeping the API needs.

    Attributes:
        id: uuid4 hex, immutable after creation.
        session: The read-along session.
        created_at: Epoch seconds at creation.
        last_access: Epoch seconds of the last request touching it.
        published_text: Last text handed to the update callback.
        update_count: Number of committed anchor edits published.
        lock: Serializes requests against this session.
    """

    id: str
    session: ReadAlongSession
    created_at: float
    last_access: float
    published_text: Optional[str] = None
    update_count: int = 0
    lock: threading.RLock = field(default_factory=threading.RLock, repr=False)

    def record_update(self, text: str) -> None:
        self.published_text = text
        self.update_count += 1


class SessionStore:
    """Thread-safe in-memory store for read-along sessions."""

    def __init__(
        self,
        ttl_seconds: int = SESSION_TTL_SECONDS,
        max_sessions: int = MAX_SESSIONS,
    ) -> None:
        self._sessions: Dict[str, StoredSession] = {}
        self._lock = threading.Lock()
        self._ttl_seconds = ttl_seconds
        self.max_sessions = max_sessions

    def create_session(self, session: ReadAlongSession) -> StoredSession:
        """Register a session and return its stored record.

        Raises:
            ValueError: The store already holds max_sessions sessions.
        """
        with self._lock:
            if len(self._sessions) >= self.max_sessions:
                raise ValueError(
                    "Maximum number of concurrent sessions ({}) reached".format(
                        self.max_sessions
                    )
                )
            session_id = uuid.uuid4().hex
            now = time.time()
            stored = StoredSession(
                id=session_id,
                session=session,
                created_at=now,
                last_access=now,
            )
            self._sessions[session_id] = stored

        logger.info("Created session %s", session_id)
        return stored

    def get_session(self, session_id: str) -> Optional[StoredSession]:
        """Look up a session by id, or None. Bumps last_access."""
        with self._lock:
            stored = self._sessions.get(session_id)
            if stored is not None:
                stored.last_access = time.time()
            return stored

    def list_sessions(self) -> List[StoredSession]:
        """All sessions, oldest first."""
        with self._lock:
            return sorted(self._sessions.values(), key=lambda s: s.created_at)

    def delete_session(self, session_id: str) -> bool:
        with self._lock:
            stored = self._sessions.pop(session_id, None)
        if stored is None:
            return False
        logger.info("Deleted session %s", session_id)
        return True

    def cleanup_expired(self) -> int:
        """Remove sessions idle for longer than the TTL; returns the count."""
        now = time.time()
        expired: List[StoredSession] = []

        with self._lock:
            for session_id, stored in list(self._sessions.items()):
                if now - stored.last_access > self._ttl_seconds:
                    expired.append(self._sessions.pop(session_id))

        for stored in expired:
            logger.info("Expired session %s (idle %.0fs)", stored.id, now - stored.last_access)
        return len(expired)

    def clear(self) -> None:
        with self._lock:
            self._sessions.clear()
