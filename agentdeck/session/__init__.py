"""Session registry, history persistence, and external store interfaces."""

from agentdeck.session.history import HistoryStore
from agentdeck.session.registry import SessionRegistry
from agentdeck.session.store import MemorySessionStore, SessionMetadataStore, TaskContextProvider

__all__ = [
    "HistoryStore",
    "MemorySessionStore",
    "SessionMetadataStore",
    "SessionRegistry",
    "TaskContextProvider",
]
