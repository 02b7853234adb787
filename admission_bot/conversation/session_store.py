"""
In-memory session store keyed by conversation id.

Sessions live only as long as the process. An optional idle TTL evicts
sessions whose sender has gone quiet; a TTL of zero keeps them until the
flow itself ends them.
"""

import logging
import time
from typing import TYPE_CHECKING, Callable, Optional

if TYPE_CHECKING:
    from admission_bot.schemas.session_schema import Session

logger = logging.getLogger(__name__)


class SessionStore:
    """Process-wide mapping of conversation id to session."""

    def __init__(
        self,
        idle_ttl_seconds: float = 0.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._sessions: dict[str, "Session"] = {}
        self._last_seen: dict[str, float] = {}
        self._idle_ttl = idle_ttl_seconds
        self._clock = clock

    def _expired(self, conversation_id: str) -> bool:
        if self._idle_ttl <= 0:
            return False
        last_seen = self._last_seen.get(conversation_id)
        return last_seen is not None and self._clock() - last_seen > self._idle_ttl

    def get(self, conversation_id: str) -> Optional["Session"]:
        """Return the live session for ``conversation_id``, refreshing its idle timer."""
        if conversation_id not in self._sessions:
            return None
        if self._expired(conversation_id):
            logger.info("Session expired after %.0fs idle", self._idle_ttl)
            self.delete(conversation_id)
            return None
        self._last_seen[conversation_id] = self._clock()
        return self._sessions[conversation_id]

    def set(self, conversation_id: str, session: "Session") -> None:
        self._sessions[conversation_id] = session
        self._last_seen[conversation_id] = self._clock()

    def delete(self, conversation_id: str) -> None:
        """Remove a session. Deleting an absent session is a no-op."""
        self._sessions.pop(conversation_id, None)
        self._last_seen.pop(conversation_id, None)

    def purge_expired(self) -> int:
        """Drop every idle session; returns how many were removed."""
        expired = [cid for cid in self._sessions if self._expired(cid)]
        for cid in expired:
            self.delete(cid)
        if expired:
            logger.info("Purged %d idle session(s)", len(expired))
        return len(expired)

    def __contains__(self, conversation_id: str) -> bool:
        return conversation_id in self._sessions

    def __len__(self) -> int:
        return len(self._sessions)
