"""Typed events published on a session's channel.

OutputEvent carries one normalized log entry as it streams in.
CompleteEvent carries the terminal result and is always the last event
of a turn.
"""

from __future__ import annotations

from dataclasses import dataclass

from agentdeck.engines.types import CompletionResult, LogEntry


@dataclass(frozen=True, slots=True)
class OutputEvent:
    session_id: str
    entry: LogEntry


@dataclass(frozen=True, slots=True)
class CompleteEvent:
    session_id: str
    result: CompletionResult


SessionEvent = OutputEvent | CompleteEvent
