"""In-memory registry of live sessions, keyed by session id.

The registry is deliberately process-local: native resumption tokens are
often tied to the running backend process, so a restart invalidates every
session anyway. No locking is needed because each session is mutated only
by its own stream-consumption task.
"""

from __future__ import annotations

from collections.abc import Iterator

from agentdeck.engines.types import Session


class SessionRegistry:
    """Synchronous map of session id to Session."""

    def __init__(self) -> None:
        self._sessions: dict[str, Session] = {}

    def get(self, session_id: str) -> Session | None:
        return self._sessions.get(session_id)

    def set(self, session: Session) -> None:
        self._sessions[session.id] = session

    def delete(self, session_id: str) -> bool:
        return self._sessions.pop(session_id, None) is not None

    def values(self) -> list[Session]:
        return list(self._sessions.values())

    def __contains__(self, session_id: object) -> bool:
        return session_id in self._sessions

    def __len__(self) -> int:
        return len(self._sessions)

    def __iter__(self) -> Iterator[str]:
        return iter(list(self._sessions))
