"""Cross-engine conversation transcripts and the engine-switch preamble.

A conversation groups turns the operator sends under one id, possibly to
different engines. When the next turn goes to a different engine than the
previous user turn did, ``get_context_prompt`` renders the recent transcript
so the new engine can pick up where the old one stopped.

The caller must fetch the context prompt *before* recording the new user
message, since recording updates ``last_engine``.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any

from loguru import logger

from agentdeck.config.schema import ConversationConfig
from agentdeck.engines.types import now_ms


class Role(StrEnum):
    USER = "user"
    ASSISTANT = "assistant"


@dataclass(slots=True)
class ConversationMessage:
    role: Role
    content: str
    engine: str
    timestamp: int = field(default_factory=now_ms)


@dataclass(slots=True)
class Conversation:
    id: str
    messages: list[ConversationMessage] = field(default_factory=list)
    last_engine: str | None = None
    engines: set[str] = field(default_factory=set)
    start_time: int = field(default_factory=now_ms)


class ConversationBridge:
    """In-memory conversations keyed by id, with engine-switch context rendering."""

    def __init__(
        self,
        config: ConversationConfig | None = None,
        display_names: Mapping[str, str] | None = None,
    ) -> None:
        self._config = config or ConversationConfig()
        self._display_names = dict(display_names or {})
        self._conversations: dict[str, Conversation] = {}

    def get_or_create(self, conversation_id: str) -> Conversation:
        conversation = self._conversations.get(conversation_id)
        if conversation is None:
            conversation = Conversation(id=conversation_id)
            self._conversations[conversation_id] = conversation
            logger.info("New conversation: {}", conversation_id)
        return conversation

    def get(self, conversation_id: str) -> Conversation | None:
        return self._conversations.get(conversation_id)

    def add_user_message(self, conversation_id: str, engine: str, prompt: str) -> None:
        conversation = self.get_or_create(conversation_id)
        conversation.messages.append(ConversationMessage(Role.USER, prompt, engine))
        previous = conversation.last_engine
        conversation.last_engine = engine
        conversation.engines.add(engine)
        self._trim(conversation)
        logger.debug(
            "Conversation {}: user message on {} (previous engine {}, {} messages)",
            conversation_id,
            engine,
            previous or "none",
            len(conversation.messages),
        )

    def add_assistant_message(self, conversation_id: str, engine: str, content: str) -> None:
        conversation = self.get_or_create(conversation_id)
        conversation.messages.append(ConversationMessage(Role.ASSISTANT, content, engine))
        self._trim(conversation)
        logger.debug(
            "Conversation {}: assistant reply from {} ({} messages)",
            conversation_id,
            engine,
            len(conversation.messages),
        )

    def history(
        self, conversation_id: str, limit: int = 10, engine: str | None = None
    ) -> list[ConversationMessage]:
        """Most recent ``limit`` messages, optionally only those of one engine."""
        conversation = self._conversations.get(conversation_id)
        if conversation is None or limit <= 0:
            return []
        messages = conversation.messages
        if engine:
            messages = [m for m in messages if m.engine == engine]
        return list(messages[-limit:])

    def get_context_prompt(self, conversation_id: str, current_engine: str) -> str | None:
        """Preamble summarizing recent turns when switching engines, else None."""
        conversation = self._conversations.get(conversation_id)
        if conversation is None or not conversation.messages:
            return None

        previous = conversation.last_engine
        if not previous or previous == current_engine:
            return None

        recent = self.history(conversation_id, limit=self._config.context_window)
        if not recent:
            return None

        summary = "\n\n".join(
            self._render_message(m) for m in recent[-self._config.rendered_messages :]
        )
        logger.info(
            "Engine switch {} -> {} in conversation {}: injecting {} message(s) of context",
            previous,
            current_engine,
            conversation_id,
            len(recent),
        )
        return (
            f"\n\n---\n**Conversation context** (previously using "
            f"{self._display_names.get(previous, previous)})\n\n"
            f"{summary}"
            "\n\n---\n\nPlease continue the work based on the conversation history above.\n\n"
        )

    def clear(self, conversation_id: str) -> None:
        if self._conversations.pop(conversation_id, None) is not None:
            logger.info("Cleared conversation: {}", conversation_id)

    def stats(self, conversation_id: str) -> dict[str, Any] | None:
        conversation = self._conversations.get(conversation_id)
        if conversation is None:
            return None
        return {
            "message_count": len(conversation.messages),
            "engines": sorted(conversation.engines),
            "last_engine": conversation.last_engine,
            "start_time": conversation.start_time,
            "duration": now_ms() - conversation.start_time,
        }

    def _render_message(self, message: ConversationMessage) -> str:
        label = "User" if message.role == Role.USER else "Assistant"
        limit = self._config.message_char_limit
        content = message.content
        if len(content) > limit:
            content = content[:limit] + "..."
        return f"{label}: {content}"

    def _trim(self, conversation: Conversation) -> None:
        excess = len(conversation.messages) - self._config.max_messages
        if excess > 0:
            del conversation.messages[:excess]
