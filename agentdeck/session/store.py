"""Interface to the external session metadata store.

The relational store that backs usage statistics lives outside agentdeck.
Adapters only need two calls: create a row when a session starts and update
it with status, token counts and cost when a turn ends. Errors raised by an
implementation are caught and logged by the adapter.
"""

from __future__ import annotations

from typing import Any, Protocol


class SessionMetadataStore(Protocol):
    def create_session(self, session_id: str, fields: dict[str, Any]) -> None: ...

    def update_session(self, session_id: str, fields: dict[str, Any]) -> None: ...


class MemorySessionStore:
    """Dict-backed store, used when no external store is wired in."""

    def __init__(self) -> None:
        self.rows: dict[str, dict[str, Any]] = {}

    def create_session(self, session_id: str, fields: dict[str, Any]) -> None:
        self.rows[session_id] = {"session_id": session_id, "status": "running", **fields}

    def update_session(self, session_id: str, fields: dict[str, Any]) -> None:
        self.rows.setdefault(session_id, {"session_id": session_id}).update(fields)

    def get(self, session_id: str) -> dict[str, Any] | None:
        return self.rows.get(session_id)


class TaskContextProvider(Protocol):
    """Supplies task context for prompts tied to a tracked task.

    ``task_context`` returns text prepended to the prompt; ``link_session``
    records that a finished session worked on the task.
    """

    def task_context(self, task_context_id: str) -> str: ...

    async def link_session(self, session_id: str, task_context_id: str) -> None: ...
