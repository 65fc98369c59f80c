"""Engine factory: resolves engine names to adapters and fronts their contract.

``create_factory`` builds one adapter per enabled profile in
``config.engines.profiles``. The profile ``kind`` picks the class:

* ``"claude_sdk"``: ``ClaudeCodeAdapter`` (Claude Agent SDK)
* ``"deepseek"``: ``DeepSeekAdapter`` (Claude Agent SDK on DeepSeek's gateway)
* ``"codex_cli"``: ``CodexAdapter`` (``codex exec --json``)

Adapter modules are imported on demand so a missing optional SDK only
affects the engine that needs it.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import TYPE_CHECKING, Any

from loguru import logger

from agentdeck.engines.base import EngineAdapter
from agentdeck.engines.errors import EngineError, UnsupportedEngineError
from agentdeck.session.history import HistoryStore

if TYPE_CHECKING:
    from agentdeck.bus.channels import EventBus, SessionListener
    from agentdeck.bus.events import SessionEvent
    from agentdeck.config.schema import AgentDeckConfig
    from agentdeck.engines.types import (
        ActiveSessionInfo,
        ExecuteResult,
        HistoryRecord,
        LogEntry,
        SessionStatus,
        TerminateResult,
    )
    from agentdeck.session.store import SessionMetadataStore, TaskContextProvider


class EngineFactory:
    """Name-to-adapter router with a facade mirroring the adapter contract."""

    def __init__(self, adapters: Mapping[str, EngineAdapter], default_engine: str) -> None:
        self._adapters = dict(adapters)
        self.default_engine = default_engine

    @property
    def supported_engines(self) -> list[str]:
        return list(self._adapters)

    def get_engine(self, engine: str | None = None) -> EngineAdapter:
        name = engine or self.default_engine
        adapter = self._adapters.get(name)
        if adapter is None:
            raise UnsupportedEngineError(name, self.supported_engines)
        return adapter

    def display_name(self, engine: str) -> str:
        adapter = self._adapters.get(engine)
        return adapter.display_name if adapter is not None else engine

    def display_names(self) -> dict[str, str]:
        return {name: adapter.display_name for name, adapter in self._adapters.items()}

    def available_engines(self) -> list[dict[str, Any]]:
        return [
            {
                "name": name,
                "display_name": adapter.display_name,
                "is_default": name == self.default_engine,
            }
            for name, adapter in self._adapters.items()
        ]

    async def check_engine_available(self, engine: str) -> bool:
        """True when the engine's backend can be initialized; failures are logged."""
        try:
            return await self.get_engine(engine).check_available()
        except EngineError as exc:
            logger.warning("Engine {} unavailable: {}", engine, exc)
            return False

    # -- Facade --

    async def execute(
        self,
        engine: str | None,
        project_name: str,
        project_path: str,
        prompt: str,
        session_id: str | None = None,
        task_context_id: str | None = None,
        mode: str | None = None,
        *,
        display_prompt: str | None = None,
    ) -> ExecuteResult:
        adapter = self.get_engine(engine)
        logger.info("Using {} engine for project {}", adapter.display_name, project_name)
        return await adapter.execute(
            project_name,
            project_path,
            prompt,
            session_id,
            task_context_id,
            mode,
            display_prompt=display_prompt,
        )

    def get_session_status(self, engine: str | None, session_id: str) -> SessionStatus:
        return self.get_engine(engine).status(session_id)

    def get_session_logs(
        self, engine: str | None, session_id: str, limit: int = 100
    ) -> list[LogEntry]:
        return self.get_engine(engine).logs(session_id, limit)

    async def terminate_session(self, engine: str | None, session_id: str) -> TerminateResult:
        return await self.get_engine(engine).terminate(session_id)

    def get_history(
        self, engine: str | None, project_name: str, limit: int = 10
    ) -> list[HistoryRecord]:
        return self.get_engine(engine).history(project_name, limit)

    def get_history_detail(
        self, engine: str | None, project_name: str, record_id: str
    ) -> HistoryRecord | None:
        return self.get_engine(engine).history_detail(project_name, record_id)

    def clear_history(self, engine: str | None, project_name: str) -> TerminateResult:
        return self.get_engine(engine).clear_history(project_name)

    def get_active_sessions(self, engine: str | None = None) -> list[ActiveSessionInfo]:
        return self.get_engine(engine).active_sessions()

    def on(self, engine: str | None, session_id: str, listener: SessionListener) -> None:
        self.get_engine(engine).on(session_id, listener)

    def off(self, engine: str | None, session_id: str, listener: SessionListener) -> None:
        self.get_engine(engine).off(session_id, listener)

    async def emit(self, engine: str | None, event: SessionEvent) -> None:
        await self.get_engine(engine).emit(event)


def _adapter_class(kind: str) -> type[EngineAdapter]:
    match kind:
        case "claude_sdk":
            from agentdeck.engines.claude_engine import ClaudeCodeAdapter

            return ClaudeCodeAdapter
        case "deepseek":
            from agentdeck.engines.deepseek_engine import DeepSeekAdapter

            return DeepSeekAdapter
        case "codex_cli":
            from agentdeck.engines.codex_engine import CodexAdapter

            return CodexAdapter
        case _:
            raise ValueError(f"Unknown engine kind: {kind}")


def create_factory(
    config: AgentDeckConfig,
    bus: EventBus,
    *,
    metadata_store: SessionMetadataStore | None = None,
    task_context: TaskContextProvider | None = None,
) -> EngineFactory:
    """Build an EngineFactory with one adapter per enabled engine profile.

    Each adapter gets its own history file
    (``<history.directory>/<engine>-history.json``) and shares ``bus``.
    """
    history_dir = config.history.directory.expanduser().resolve()
    adapters: dict[str, EngineAdapter] = {}

    for name, profile in config.engines.profiles.items():
        if not profile.enabled:
            logger.debug("Engine {} disabled, skipping", name)
            continue
        adapter_cls = _adapter_class(profile.kind)
        adapters[name] = adapter_cls(
            name,
            profile,
            bus=bus,
            history=HistoryStore(
                history_dir / f"{name}-history.json",
                max_per_project=config.history.max_per_project,
            ),
            rendering=config.rendering,
            pricing=config.pricing,
            metadata_store=metadata_store,
            task_context=task_context,
        )
        logger.info("Registered engine {} ({})", name, adapter_cls.__name__)

    default_engine = config.engines.default_engine
    if default_engine not in adapters:
        logger.warning(
            "Default engine {} is not configured or disabled; supported: {}",
            default_engine,
            ", ".join(adapters) or "none",
        )

    return EngineFactory(adapters, default_engine)
