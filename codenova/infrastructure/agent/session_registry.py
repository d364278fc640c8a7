"""
Agent Session Registry - at most one live agent session per stream id.

The registry is the single authoritative map from ``stream_id`` to the live
``AgentSession`` and its abort handle. Every mutation is a plain synchronous
method: all callers run on one event loop, so no awaits happen between the
check and the update.

Usage:
    registry = AgentSessionRegistry()

    if not registry.acquire(session):
        return AgentRunResult(success=False, error="Agent already running")
    try:
        ...
    finally:
        registry.release(session.stream_id, session)
"""

import logging
from typing import Any

from codenova.domain.model.agent.agent_session import AgentSession

logger = logging.getLogger(__name__)


class AgentSessionRegistry:
    def __init__(self) -> None:
        # stream_id -> AgentSession
        self._sessions: dict[str, AgentSession] = {}

        # Metrics
        self._total_acquired = 0
        self._total_rejected = 0
        self._total_aborted = 0

    def acquire(self, session: AgentSession) -> bool:
        """Register a session. Returns False if its stream id is already held."""
        if session.stream_id in self._sessions:
            self._total_rejected += 1
            logger.warning(
                f"[SessionRegistry] Rejected duplicate start for stream_id={session.stream_id}"
            )
            return False

        self._sessions[session.stream_id] = session
        self._total_acquired += 1
        logger.debug(f"[SessionRegistry] Acquired stream_id={session.stream_id}")
        return True

    def release(self, stream_id: str, session: AgentSession | None = None) -> bool:
        """
        Remove the entry for ``stream_id``.

        When ``session`` is given, the entry is only removed if it still
        belongs to that session, so a late cleanup cannot evict a newer one.
        """
        current = self._sessions.get(stream_id)
        if current is None:
            return False
        if session is not None and current is not session:
            return False

        del self._sessions[stream_id]
        logger.debug(f"[SessionRegistry] Released stream_id={stream_id}")
        return True

    def abort(self, stream_id: str) -> bool:
        """Signal the held abort handle and release. False if nothing is held."""
        session = self._sessions.pop(stream_id, None)
        if session is None:
            logger.debug(f"[SessionRegistry] No session to abort for stream_id={stream_id}")
            return False

        session.abort_handle.abort()
        self._total_aborted += 1
        logger.info(f"[SessionRegistry] Aborted stream_id={stream_id}")
        return True

    def get(self, stream_id: str) -> AgentSession | None:
        return self._sessions.get(stream_id)

    def is_active(self, stream_id: str) -> bool:
        return stream_id in self._sessions

    def list(self) -> list[str]:
        """Stream ids of all live sessions."""
        return list(self._sessions)

    def __len__(self) -> int:
        return len(self._sessions)

    def get_stats(self) -> dict[str, Any]:
        return {
            "active_sessions": len(self._sessions),
            "total_acquired": self._total_acquired,
            "total_rejected": self._total_rejected,
            "total_aborted": self._total_aborted,
        }
