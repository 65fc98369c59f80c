"""Orchestrator: the application context wiring engines, events and conversations.

Built once at startup by ``build_orchestrator`` and handed to whatever
serves operators (the CLI here, an HTTP layer elsewhere). It owns the
config, the event bus, the metadata store, the engine factory and the
conversation bridge. Nothing in agentdeck is a module-level singleton.
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from dataclasses import dataclass
from typing import TYPE_CHECKING

from loguru import logger

from agentdeck.bus.channels import EventBus
from agentdeck.bus.events import CompleteEvent, SessionEvent
from agentdeck.config.loader import load_config
from agentdeck.conversation.bridge import ConversationBridge
from agentdeck.engines.factory import EngineFactory, create_factory
from agentdeck.engines.types import LogChannel, SessionStatus, TerminateResult, now_ms
from agentdeck.session.store import MemorySessionStore

if TYPE_CHECKING:
    from agentdeck.config.schema import AgentDeckConfig
    from agentdeck.session.store import SessionMetadataStore, TaskContextProvider


@dataclass(slots=True)
class TurnResult:
    conversation_id: str
    session_id: str
    engine: str
    prompt: str
    has_context: bool
    resumed: bool = False
    message: str = ""


class Orchestrator:
    """Starts turns across engines and keeps the cross-engine transcript current."""

    def __init__(
        self,
        config: AgentDeckConfig,
        bus: EventBus,
        factory: EngineFactory,
        bridge: ConversationBridge,
        metadata_store: SessionMetadataStore,
    ) -> None:
        self.config = config
        self.bus = bus
        self.factory = factory
        self.bridge = bridge
        self.metadata_store = metadata_store

    async def start_turn(
        self,
        engine: str | None,
        project_name: str,
        project_path: str,
        prompt: str,
        conversation_id: str | None = None,
        task_context_id: str | None = None,
        mode: str | None = None,
    ) -> TurnResult:
        """Dispatch one operator prompt and return as soon as the turn is running.

        The assistant reply (the turn's stdout entries joined by blank lines)
        is added to the conversation when the turn completes successfully.
        """
        engine_name = self.factory.get_engine(engine).name
        conversation_id = conversation_id or f"{project_name}-{now_ms()}"
        session_id = f"{engine_name}-{conversation_id}"

        # Must run before add_user_message, which moves last_engine.
        context = self.bridge.get_context_prompt(conversation_id, engine_name)
        self.bridge.add_user_message(conversation_id, engine_name, prompt)
        full_prompt = f"{context}{prompt}" if context else prompt

        if context:
            logger.info(
                "Attached cross-engine context to {} ({} chars)", session_id, len(context)
            )

        bridge = self.bridge

        async def record_reply(event: SessionEvent) -> None:
            if not isinstance(event, CompleteEvent):
                return
            self.bus.unsubscribe(session_id, record_reply)
            result = event.result
            if not result.success:
                logger.info("Turn {} failed, assistant reply not recorded", session_id)
                return
            reply = "\n\n".join(
                entry.content
                for entry in result.logs
                if entry.channel == LogChannel.STDOUT and entry.content
            )
            if reply:
                bridge.add_assistant_message(conversation_id, engine_name, reply)

        self.bus.subscribe(session_id, record_reply)
        try:
            started = await self.factory.execute(
                engine_name,
                project_name,
                project_path,
                full_prompt,
                session_id,
                task_context_id,
                mode,
                display_prompt=prompt,
            )
        except Exception:
            self.bus.unsubscribe(session_id, record_reply)
            raise

        return TurnResult(
            conversation_id=conversation_id,
            session_id=started.session_id,
            engine=engine_name,
            prompt=prompt,
            has_context=context is not None,
            resumed=started.resumed,
            message=started.message,
        )

    def engine_for_session(self, session_id: str) -> str:
        """Engine whose name prefixes ``session_id`` (longest match), else the default."""
        matches = [
            name for name in self.factory.supported_engines if session_id.startswith(f"{name}-")
        ]
        if not matches:
            return self.factory.default_engine
        return max(matches, key=len)

    def status(self, session_id: str) -> SessionStatus:
        return self.factory.get_session_status(self.engine_for_session(session_id), session_id)

    async def terminate(self, session_id: str) -> TerminateResult:
        return await self.factory.terminate_session(self.engine_for_session(session_id), session_id)

    def stream(self, session_id: str) -> AsyncIterator[SessionEvent]:
        """Events of the session's current turn, ending with its CompleteEvent."""
        return self.bus.stream(session_id)

    async def wait_idle(self) -> None:
        for name in self.factory.supported_engines:
            await self.factory.get_engine(name).wait_idle()


def build_orchestrator(
    config: AgentDeckConfig | None = None,
    *,
    metadata_store: SessionMetadataStore | None = None,
    task_context: TaskContextProvider | None = None,
) -> Orchestrator:
    """Construct the application context from configuration."""
    config = config or load_config()
    bus = EventBus()
    store = metadata_store or MemorySessionStore()
    factory = create_factory(config, bus, metadata_store=store, task_context=task_context)
    bridge = ConversationBridge(config.conversation, factory.display_names())
    return Orchestrator(config, bus, factory, bridge, store)
