"""EngineAdapter: the contract every AI engine implements, plus the shared turn loop.

Callers (the factory, the orchestrator, the CLI) depend only on this class.
Each concrete adapter supplies four hooks:

* ``_open_transport`` connects to the native backend (a failure such as
  ProviderUnavailableError releases the reserved session),
* ``_iterate`` yields native stream events,
* ``_normalize`` maps one native event to a LogEntry or None, updating the
  session's usage and counters along the way,
* ``_close_transport`` releases the native connection.

Everything else (session ids, the registry, ordering of output and
completion events, cost, history, metadata) lives here so all engines
behave the same from the outside. A turn always ends with exactly one
CompleteEvent, published after its last OutputEvent, whether the native
stream ended normally, raised, or was interrupted.
"""

from __future__ import annotations

import asyncio
import warnings
from abc import ABC, abstractmethod
from collections.abc import AsyncIterator, Mapping
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from loguru import logger

from agentdeck.bus.events import CompleteEvent, OutputEvent
from agentdeck.config.schema import EngineProfile, PriceRow, RenderingConfig
from agentdeck.cost.calculator import compute_cost
from agentdeck.engines.errors import (
    SessionBusyError,
    SessionNotFoundError,
    UnknownProviderEventWarning,
)
from agentdeck.engines.types import (
    ActiveSessionInfo,
    CompletionResult,
    CostBreakdown,
    ExecuteResult,
    HistoryRecord,
    LogChannel,
    LogEntry,
    Session,
    SessionStatus,
    TerminateResult,
    now_ms,
)
from agentdeck.session.registry import SessionRegistry

if TYPE_CHECKING:
    from agentdeck.bus.channels import EventBus, SessionListener
    from agentdeck.bus.events import SessionEvent
    from agentdeck.session.history import HistoryStore
    from agentdeck.session.store import SessionMetadataStore, TaskContextProvider

THINKING_MODE = "thinking"


@dataclass(slots=True)
class TurnOutcome:
    """Terminal state observed while normalizing one turn's native events."""

    terminal: bool = False
    failed: bool = False
    error: str | None = None


class EngineAdapter(ABC):
    """Uniform execute / status / logs / terminate contract over one native engine."""

    #: Whether the backend can continue a native conversation from a token.
    supports_resume: bool = True

    def __init__(
        self,
        name: str,
        profile: EngineProfile,
        *,
        bus: EventBus,
        history: HistoryStore,
        rendering: RenderingConfig | None = None,
        pricing: Mapping[str, Mapping[str, PriceRow]] | None = None,
        metadata_store: SessionMetadataStore | None = None,
        task_context: TaskContextProvider | None = None,
    ) -> None:
        self.name = name
        self.profile = profile
        self._bus = bus
        self._history = history
        self._rendering = rendering or RenderingConfig()
        self._pricing = pricing
        self._store = metadata_store
        self._task_context = task_context
        self._registry = SessionRegistry()
        self._tasks: set[asyncio.Task[None]] = set()

    @property
    def display_name(self) -> str:
        return self.profile.display_name or self.name

    @property
    def registry(self) -> SessionRegistry:
        return self._registry

    @property
    def history_store(self) -> HistoryStore:
        return self._history

    # -- Hooks implemented by each engine --

    @abstractmethod
    async def check_available(self) -> bool:
        """Return True, or raise ProviderUnavailableError explaining what is missing."""

    @abstractmethod
    async def _open_transport(
        self,
        session: Session,
        prompt: str,
        resume_token: str | None,
        mode: str | None,
    ) -> Any:
        """Connect to the backend for one turn and return the transport handle."""

    @abstractmethod
    def _iterate(
        self, session: Session, transport: Any, prompt: str, outcome: TurnOutcome
    ) -> AsyncIterator[Any]:
        """Yield native events for the turn, in the order the backend sends them."""

    @abstractmethod
    def _normalize(self, session: Session, event: Any, outcome: TurnOutcome) -> LogEntry | None:
        """Translate one native event; return None for events that produce no output."""

    async def _close_transport(self, transport: Any) -> None:
        """Release the transport after the turn's stream has ended."""

    async def _interrupt(self, transport: Any) -> bool:
        """Ask the backend to stop the in-flight turn.

        Returns False when the transport offers no interrupt primitive.
        """
        interrupt = getattr(transport, "interrupt", None)
        if interrupt is None:
            return False
        await interrupt()
        return True

    # -- Helpers for subclasses --

    def _entry(
        self,
        session: Session,
        content: str,
        event_type: str,
        channel: LogChannel = LogChannel.STDOUT,
    ) -> LogEntry | None:
        if not content or not content.strip():
            return None
        return LogEntry(
            session_id=session.id,
            channel=channel,
            content=content,
            event_type=event_type,
        )

    def _unknown_event(self, session: Session, kind: str, event: Any) -> None:
        message = f"[{self.name}] unhandled native event '{kind}' in session {session.id}"
        logger.warning("{} (dropped): {!r}", message, event)
        warnings.warn(UnknownProviderEventWarning(message), stacklevel=2)

    def _new_session_id(self, project_name: str) -> str:
        stamp = now_ms()
        session_id = f"{self.name}-{project_name}-{stamp}"
        while session_id in self._registry:
            stamp += 1
            session_id = f"{self.name}-{project_name}-{stamp}"
        return session_id

    def _apply_task_context(self, prompt: str, task_context_id: str | None) -> str:
        if not task_context_id or self._task_context is None:
            return prompt
        try:
            context = self._task_context.task_context(task_context_id)
        except Exception as exc:
            logger.warning("Could not load task context {}: {}", task_context_id, exc)
            return prompt
        if not context:
            return prompt
        logger.info("Added context of task {} to prompt", task_context_id)
        return f"{context}\n\n[User request]\n{prompt}"

    # -- Contract --

    async def execute(
        self,
        project_name: str,
        project_path: str,
        prompt: str,
        session_id: str | None = None,
        task_context_id: str | None = None,
        mode: str | None = None,
        *,
        display_prompt: str | None = None,
    ) -> ExecuteResult:
        """Start a new session or continue an existing one; returns immediately.

        ``display_prompt`` is what history records for this turn when the
        dispatched ``prompt`` carries extra context the operator never typed.
        """
        final_prompt = self._apply_task_context(prompt, task_context_id)
        existing = self._registry.get(session_id) if session_id else None

        if existing is not None and existing.busy:
            raise SessionBusyError(existing.id, engine=self.name)

        resume_token = None
        if existing is not None and self.supports_resume:
            resume_token = existing.provider_session_token

        session = existing or Session(
            id=session_id or self._new_session_id(project_name),
            engine=self.name,
            project_name=project_name,
            project_path=project_path,
            last_prompt=final_prompt,
            task_context_id=task_context_id,
        )

        logger.info(
            "[{}] {} session {} (project={}, mode={})",
            self.name,
            "Resuming" if resume_token else ("Continuing" if existing else "Starting"),
            session.id,
            project_name,
            mode or "default",
        )
        logger.debug("[{}] prompt: {}", self.name, final_prompt[:200])

        # Reserve the session before the first await so a concurrent execute
        # on the same id sees it busy.
        session.busy = True
        if existing is None:
            self._registry.set(session)
        try:
            transport = await self._open_transport(session, final_prompt, resume_token, mode)
        except BaseException:
            session.busy = False
            if existing is None:
                self._registry.delete(session.id)
            raise

        started_at = now_ms()
        session.last_prompt = final_prompt
        session.turn_started_at = started_at
        session.transport = transport
        if task_context_id:
            session.task_context_id = task_context_id

        if existing is None:
            self._create_metadata(session)

        task = asyncio.create_task(
            self._run_turn(session, transport, final_prompt, display_prompt or prompt),
            name=f"{self.name}:{session.id}",
        )
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

        return ExecuteResult(
            session_id=session.id,
            started_at=started_at,
            resumed=resume_token is not None,
            message="AI task started (continuing session)" if existing else "AI task started",
        )

    def status(self, session_id: str) -> SessionStatus:
        session = self._registry.get(session_id)
        if session is None:
            return SessionStatus(running=False)
        return SessionStatus(
            running=True,
            busy=session.busy,
            project_name=session.project_name,
            prompt=session.last_prompt,
            start_time=session.created_at,
            uptime=now_ms() - session.created_at,
            log_count=len(session.logs),
        )

    def logs(self, session_id: str, limit: int = 100) -> list[LogEntry]:
        session = self._registry.get(session_id)
        if session is None or limit <= 0:
            return []
        return list(session.logs[-limit:])

    async def terminate(self, session_id: str) -> TerminateResult:
        """Interrupt the session's in-flight turn and drop it from the registry.

        When the backend offers no interrupt primitive (or interrupting
        fails) the entry is dropped anyway and the result says "forced": the
        native job may keep running orphaned until it finishes on its own.
        """
        session = self._registry.get(session_id)
        if session is None:
            raise SessionNotFoundError(session_id, engine=self.name)

        message = "terminated"
        if session.busy and session.transport is not None:
            try:
                if await self._interrupt(session.transport):
                    logger.info("[{}] Interrupted session {}", self.name, session_id)
                else:
                    logger.warning(
                        "[{}] No interrupt primitive for session {}; dropping it, "
                        "the backend job may continue",
                        self.name,
                        session_id,
                    )
                    message = "forced"
            except Exception as exc:
                logger.error("[{}] Failed to interrupt session {}: {}", self.name, session_id, exc)
                message = "forced"

        self._registry.delete(session_id)
        return TerminateResult(success=True, message=message)

    def active_sessions(self) -> list[ActiveSessionInfo]:
        now = now_ms()
        return [
            ActiveSessionInfo(
                session_id=s.id,
                project_name=s.project_name,
                prompt=s.last_prompt,
                start_time=s.created_at,
                uptime=now - s.created_at,
                busy=s.busy,
            )
            for s in self._registry.values()
        ]

    def history(self, project_name: str, limit: int = 10) -> list[HistoryRecord]:
        return self._history.recent(project_name, limit)

    def history_detail(self, project_name: str, record_id: str) -> HistoryRecord | None:
        return self._history.get(project_name, record_id)

    def clear_history(self, project_name: str) -> TerminateResult:
        self._history.clear(project_name)
        return TerminateResult(success=True, message="history cleared")

    # -- Event channel pass-through --

    def on(self, session_id: str, listener: SessionListener) -> None:
        self._bus.subscribe(session_id, listener)

    def off(self, session_id: str, listener: SessionListener) -> None:
        self._bus.unsubscribe(session_id, listener)

    async def emit(self, event: SessionEvent) -> None:
        await self._bus.publish(event)

    async def wait_idle(self) -> None:
        """Wait until every in-flight turn of this adapter has completed."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    # -- Turn loop --

    async def _run_turn(
        self, session: Session, transport: Any, prompt: str, history_prompt: str
    ) -> None:
        start = session.turn_started_at
        turn_logs: list[LogEntry] = []
        outcome = TurnOutcome()
        error: str | None = None
        cancelled = False
        event_count = 0

        try:
            async for event in self._iterate(session, transport, prompt, outcome):
                event_count += 1
                entry = self._normalize(session, event, outcome)
                if entry is None:
                    logger.debug("[{}] event #{} filtered", self.name, event_count)
                    continue
                logger.debug("[{}] output: {}", self.name, entry.content[:50])
                turn_logs.append(entry)
                session.logs.append(entry)
                await self._bus.publish(OutputEvent(session.id, entry))
        except asyncio.CancelledError:
            cancelled = True
            error = "Session cancelled"
            logger.warning("[{}] Turn cancelled: {}", self.name, session.id)
        except Exception as exc:
            error = str(exc) or type(exc).__name__
            logger.error("[{}] Stream failed for session {}: {}", self.name, session.id, error)

        try:
            await self._close_transport(transport)
        except Exception as exc:
            logger.warning("[{}] Error closing transport for {}: {}", self.name, session.id, exc)

        session.transport = None
        session.busy = False

        if error is None and outcome.failed:
            error = outcome.error or "Engine reported a failed turn"

        await self._finish_turn(session, history_prompt, start, turn_logs, error)
        logger.info(
            "[{}] Turn finished for {} ({} events, {} log entries, success={})",
            self.name,
            session.id,
            event_count,
            len(turn_logs),
            error is None,
        )
        if cancelled:
            raise asyncio.CancelledError

    async def _finish_turn(
        self,
        session: Session,
        prompt: str,
        start: int,
        turn_logs: list[LogEntry],
        error: str | None,
    ) -> None:
        end = now_ms()
        duration = end - start
        success = error is None

        cost = compute_cost(session.usage, self.name, session.model, self._pricing)
        logger.info(
            "[{}] {} tokens, ${} for session {}",
            self.name,
            cost.total_tokens,
            cost.total_cost,
            session.id,
        )

        self._update_metadata(session, duration, success, error, cost)

        self._history.append(
            session.project_name,
            HistoryRecord(
                id=session.id,
                prompt=prompt,
                timestamp=start,
                success=success,
                logs=list(turn_logs),
                duration=duration,
                engine=self.name,
                error=error,
            ),
        )

        if session.task_context_id and self._task_context is not None:
            try:
                await self._task_context.link_session(session.id, session.task_context_id)
            except Exception as exc:
                logger.warning(
                    "Could not link session {} to task {}: {}",
                    session.id,
                    session.task_context_id,
                    exc,
                )

        result = CompletionResult(
            session_id=session.id,
            success=success,
            logs=list(turn_logs),
            duration=duration,
            start_time=start,
            end_time=end,
            error=error,
            cost=cost,
        )
        await self._bus.publish(CompleteEvent(session.id, result))

    # -- Metadata store --

    def _create_metadata(self, session: Session) -> None:
        if self._store is None:
            return
        try:
            self._store.create_session(
                session.id,
                {
                    "project_name": session.project_name,
                    "task_context_id": session.task_context_id,
                    "session_type": "chat",
                    "engine": self.name,
                    "model": session.model,
                    "prompt": session.last_prompt,
                },
            )
        except Exception as exc:
            logger.warning("Failed to create metadata row for {}: {}", session.id, exc)

    def _update_metadata(
        self,
        session: Session,
        duration: int,
        success: bool,
        error: str | None,
        cost: CostBreakdown,
    ) -> None:
        if self._store is None:
            return
        fields: dict[str, Any] = {
            "status": "completed" if success else "failed",
            "duration_ms": duration,
            "model": session.model,
            "num_messages": session.message_count,
            "num_tool_calls": session.tool_call_count,
            "input_tokens": cost.input_tokens,
            "output_tokens": cost.output_tokens,
            "cache_write_tokens": cost.cache_write_tokens,
            "cache_read_tokens": cost.cache_read_tokens,
            "total_tokens": cost.total_tokens,
            "input_cost": cost.input_cost,
            "output_cost": cost.output_cost,
            "cache_write_cost": cost.cache_write_cost,
            "cache_read_cost": cost.cache_read_cost,
            "total_cost_usd": cost.total_cost,
        }
        if error is not None:
            fields["error_message"] = error
        try:
            self._store.update_session(session.id, fields)
        except Exception as exc:
            logger.warning("Failed to update metadata row for {}: {}", session.id, exc)
