"""Shared types for the multi-engine session layer.

Every adapter (Claude Code, Codex, DeepSeek) produces and consumes these
objects so callers never depend on a specific backend's native types.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any


def now_ms() -> int:
    """Current wall-clock time in epoch milliseconds."""
    return int(time.time() * 1000)


class LogChannel(StrEnum):
    STDOUT = "stdout"
    STDERR = "stderr"


@dataclass(slots=True)
class LogEntry:
    """One human-readable unit of streamed output, rendered as markdown."""

    session_id: str
    channel: LogChannel
    content: str
    event_type: str = ""
    time: int = field(default_factory=now_ms)

    def to_dict(self) -> dict[str, Any]:
        return {
            "time": self.time,
            "session_id": self.session_id,
            "channel": str(self.channel),
            "content": self.content,
            "event_type": self.event_type,
        }

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> LogEntry:
        return cls(
            session_id=d.get("session_id", ""),
            channel=LogChannel(d.get("channel", "stdout")),
            content=d.get("content", ""),
            event_type=d.get("event_type", ""),
            time=d.get("time", 0),
        )


@dataclass(slots=True)
class TokenUsage:
    """Cumulative token counts for a session."""

    input_tokens: int = 0
    output_tokens: int = 0
    cache_write_tokens: int = 0
    cache_read_tokens: int = 0

    def merge(self, other: TokenUsage) -> None:
        self.input_tokens += other.input_tokens
        self.output_tokens += other.output_tokens
        self.cache_write_tokens += other.cache_write_tokens
        self.cache_read_tokens += other.cache_read_tokens

    @property
    def total(self) -> int:
        return (
            self.input_tokens
            + self.output_tokens
            + self.cache_write_tokens
            + self.cache_read_tokens
        )


@dataclass(slots=True)
class Session:
    """One run of prompts against one engine, resumable across turns.

    Mutated only by the adapter's stream-consumption loop for this session.
    Other tasks read it for status queries. ``transport`` is whatever the
    adapter keeps to interrupt an in-flight native turn; adapters check for
    an ``interrupt`` coroutine on it at call time.
    """

    id: str
    engine: str
    project_name: str
    project_path: str
    last_prompt: str
    task_context_id: str | None = None
    provider_session_token: str | None = None
    created_at: int = field(default_factory=now_ms)
    turn_started_at: int = field(default_factory=now_ms)
    usage: TokenUsage = field(default_factory=TokenUsage)
    message_count: int = 0
    tool_call_count: int = 0
    model: str | None = None
    logs: list[LogEntry] = field(default_factory=list)
    transport: Any = None
    busy: bool = False


@dataclass(slots=True)
class ExecuteResult:
    """Returned by ``execute`` as soon as a turn is dispatched."""

    session_id: str
    started_at: int
    resumed: bool = False
    message: str = ""


@dataclass(slots=True)
class SessionStatus:
    running: bool
    busy: bool = False
    project_name: str = ""
    prompt: str = ""
    start_time: int = 0
    uptime: int = 0
    log_count: int = 0


@dataclass(slots=True)
class ActiveSessionInfo:
    session_id: str
    project_name: str
    prompt: str
    start_time: int
    uptime: int
    busy: bool = False


@dataclass(slots=True)
class TerminateResult:
    success: bool
    message: str


@dataclass(slots=True)
class CostBreakdown:
    """Monetary cost of a usage tuple under one pricing row (USD)."""

    input_tokens: int
    output_tokens: int
    cache_write_tokens: int
    cache_read_tokens: int
    total_tokens: int
    input_cost: float
    output_cost: float
    cache_write_cost: float
    cache_read_cost: float
    total_cost: float
    engine: str
    model: str
    rates: dict[str, float] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "input_tokens": self.input_tokens,
            "output_tokens": self.output_tokens,
            "cache_write_tokens": self.cache_write_tokens,
            "cache_read_tokens": self.cache_read_tokens,
            "total_tokens": self.total_tokens,
            "input_cost": self.input_cost,
            "output_cost": self.output_cost,
            "cache_write_cost": self.cache_write_cost,
            "cache_read_cost": self.cache_read_cost,
            "total_cost": self.total_cost,
            "pricing": {"engine": self.engine, "model": self.model, "rates": dict(self.rates)},
        }


@dataclass(slots=True)
class CompletionResult:
    """Terminal outcome of one turn, published exactly once per turn."""

    session_id: str
    success: bool
    logs: list[LogEntry]
    duration: int
    start_time: int
    end_time: int
    error: str | None = None
    cost: CostBreakdown | None = None


@dataclass(slots=True)
class HistoryRecord:
    """One finished (or failed) turn, retained per project."""

    id: str
    prompt: str
    timestamp: int
    success: bool
    logs: list[LogEntry]
    duration: int
    engine: str
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = {
            "id": self.id,
            "prompt": self.prompt,
            "timestamp": self.timestamp,
            "success": self.success,
            "logs": [entry.to_dict() for entry in self.logs],
            "duration": self.duration,
            "engine": self.engine,
        }
        if self.error is not None:
            d["error"] = self.error
        return d

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> HistoryRecord:
        return cls(
            id=d["id"],
            prompt=d.get("prompt", ""),
            timestamp=d.get("timestamp", 0),
            success=bool(d.get("success", False)),
            logs=[LogEntry.from_dict(e) for e in d.get("logs", [])],
            duration=d.get("duration", 0),
            engine=d.get("engine", ""),
            error=d.get("error"),
        )
