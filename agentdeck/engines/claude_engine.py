"""ClaudeCodeAdapter: the primary engine, driven through claude_agent_sdk.

One ClaudeSDKClient is connected per turn. The SDK's ``session_id`` from the
init message is kept on the Session so the next turn can pass it back as
``resume`` and continue the same native conversation.

The SDK is imported lazily so the rest of agentdeck works (and the factory
can report the engine as unavailable) when claude-agent-sdk is missing.
"""

from __future__ import annotations

import os
from collections.abc import AsyncIterator
from enum import StrEnum
from types import ModuleType
from typing import Any

from loguru import logger

from agentdeck.cost.calculator import extract_usage
from agentdeck.engines.base import THINKING_MODE, EngineAdapter, TurnOutcome
from agentdeck.engines.errors import ProviderUnavailableError
from agentdeck.engines.rendering import render_tool_result, render_tool_use
from agentdeck.engines.types import LogChannel, LogEntry, Session


class ClaudeEventKind(StrEnum):
    INIT = "system.init"
    SYSTEM = "system"
    ASSISTANT = "assistant"
    TOOL_RESULT = "user.tool_result"
    USER = "user"
    RESULT_SUCCESS = "result.success"
    RESULT_ERROR = "result.error"
    STREAM_EVENT = "stream_event"
    UNKNOWN = "unknown"


def classify(message: Any) -> ClaudeEventKind:
    """Map an SDK message object to its event kind."""
    match type(message).__name__:
        case "SystemMessage":
            if getattr(message, "subtype", "") == "init":
                return ClaudeEventKind.INIT
            return ClaudeEventKind.SYSTEM
        case "AssistantMessage":
            return ClaudeEventKind.ASSISTANT
        case "UserMessage":
            if _tool_results(message):
                return ClaudeEventKind.TOOL_RESULT
            return ClaudeEventKind.USER
        case "ResultMessage":
            if getattr(message, "subtype", "") == "success" and not getattr(
                message, "is_error", False
            ):
                return ClaudeEventKind.RESULT_SUCCESS
            return ClaudeEventKind.RESULT_ERROR
        case "StreamEvent":
            return ClaudeEventKind.STREAM_EVENT
        case _:
            return ClaudeEventKind.UNKNOWN


def _tool_results(message: Any) -> list[Any]:
    structured = getattr(message, "tool_use_result", None)
    if structured:
        return [structured]
    content = getattr(message, "content", None)
    if not isinstance(content, list):
        return []
    return [block.content for block in content if hasattr(block, "tool_use_id")]


class ClaudeCodeAdapter(EngineAdapter):
    """Claude Code sessions via ClaudeSDKClient (connect, query, receive_response)."""

    _sdk: ModuleType | None = None

    def _load_sdk(self) -> ModuleType:
        if self._sdk is None:
            try:
                import claude_agent_sdk
            except ImportError as exc:
                raise ProviderUnavailableError(
                    f"Claude Agent SDK is not installed: {exc}",
                    engine=self.name,
                    hint="pip install claude-agent-sdk",
                ) from exc
            self._sdk = claude_agent_sdk
        return self._sdk

    async def check_available(self) -> bool:
        self._load_sdk()
        return True

    # -- Per-engine configuration --

    def _api_key(self) -> str:
        key = self.profile.api_key.get_secret_value()
        if not key and self.profile.api_key_env:
            key = os.environ.get(self.profile.api_key_env, "")
        return key

    def _resolve_model(self, mode: str | None) -> str:
        if mode == THINKING_MODE:
            if self.profile.thinking_model:
                logger.info("[{}] Thinking mode: {}", self.name, self.profile.thinking_model)
                return self.profile.thinking_model
            logger.warning(
                "[{}] Thinking mode is not supported, using the default model", self.name
            )
        return self.profile.model

    def _build_env(self, model: str) -> dict[str, str]:
        """Environment passed to the SDK's CLI process for this engine only."""
        env: dict[str, str] = {}
        key = self._api_key()
        if key:
            env["ANTHROPIC_API_KEY"] = key
        if self.profile.base_url:
            env["ANTHROPIC_BASE_URL"] = self.profile.base_url
            if model:
                env["ANTHROPIC_MODEL"] = model
        return env

    def _build_options(
        self, session: Session, resume_token: str | None, mode: str | None
    ) -> Any:
        sdk = self._load_sdk()
        model = self._resolve_model(mode)
        kwargs: dict[str, Any] = {
            "cwd": session.project_path,
            "setting_sources": list(self.profile.setting_sources),
            "system_prompt": {"type": "preset", "preset": "claude_code"},
            "max_turns": self.profile.max_turns,
            "permission_mode": self.profile.permission_mode,
            "env": self._build_env(model),
        }
        if model:
            kwargs["model"] = model
            session.model = model
        if resume_token:
            kwargs["resume"] = resume_token
        return sdk.ClaudeAgentOptions(**kwargs)

    # -- Transport --

    async def _open_transport(
        self,
        session: Session,
        prompt: str,
        resume_token: str | None,
        mode: str | None,
    ) -> Any:
        sdk = self._load_sdk()
        options = self._build_options(session, resume_token, mode)
        client = sdk.ClaudeSDKClient(options=options)
        try:
            await client.connect()
        except Exception as exc:
            raise ProviderUnavailableError(
                f"Failed to start Claude Code: {exc}",
                engine=self.name,
                hint="Check that the Claude Code CLI is installed and the API key is valid.",
            ) from exc
        return client

    async def _iterate(
        self, session: Session, transport: Any, prompt: str, outcome: TurnOutcome
    ) -> AsyncIterator[Any]:
        await transport.query(prompt)
        async for message in transport.receive_response():
            yield message

    async def _close_transport(self, transport: Any) -> None:
        await transport.disconnect()

    # -- Normalization --

    def _normalize(self, session: Session, event: Any, outcome: TurnOutcome) -> LogEntry | None:
        kind = classify(event)
        logger.debug("[{}] event: {}", self.name, kind)
        match kind:
            case ClaudeEventKind.INIT:
                data = getattr(event, "data", None) or {}
                token = data.get("session_id")
                if token:
                    session.provider_session_token = token
                    logger.info("[{}] Native session id: {}", self.name, token)
                if data.get("model") and not session.model:
                    session.model = data["model"]
                return None
            case ClaudeEventKind.SYSTEM | ClaudeEventKind.USER | ClaudeEventKind.STREAM_EVENT:
                return None
            case ClaudeEventKind.ASSISTANT:
                return self._render_assistant(session, event)
            case ClaudeEventKind.TOOL_RESULT:
                rendered = [render_tool_result(r, self._rendering) for r in _tool_results(event)]
                return self._entry(session, "\n\n".join(rendered), "tool_result")
            case ClaudeEventKind.RESULT_SUCCESS:
                self._record_result(session, event, outcome)
                return self._entry(session, _result_summary(event), "result")
            case ClaudeEventKind.RESULT_ERROR:
                self._record_result(session, event, outcome)
                label = getattr(event, "subtype", "") or "error"
                outcome.failed = True
                outcome.error = label
                detail = getattr(event, "result", None) or ""
                content = f"❌ **Execution failed**: {label}"
                if detail:
                    content += f"\n{detail}"
                return self._entry(session, content, "result", LogChannel.STDERR)
            case ClaudeEventKind.UNKNOWN:
                self._unknown_event(session, type(event).__name__, event)
                return None

    def _render_assistant(self, session: Session, message: Any) -> LogEntry | None:
        model = getattr(message, "model", None)
        if model and not session.model:
            session.model = model
        session.message_count += 1

        parts: list[str] = []
        for block in getattr(message, "content", None) or []:
            if hasattr(block, "name") and hasattr(block, "input"):
                session.tool_call_count += 1
                parts.append(render_tool_use(block.name, block.input, self._rendering))
            elif hasattr(block, "text"):
                if block.text:
                    parts.append(block.text)
        return self._entry(session, "\n\n".join(parts), "assistant")

    def _record_result(self, session: Session, message: Any, outcome: TurnOutcome) -> None:
        outcome.terminal = True
        session.usage.merge(extract_usage(getattr(message, "usage", None)))
        token = getattr(message, "session_id", None)
        if token:
            session.provider_session_token = token


def _result_summary(message: Any) -> str:
    lines = ["✅ **Task complete**"]
    duration_ms = getattr(message, "duration_ms", None)
    if duration_ms is not None:
        lines.append(f"Duration: {duration_ms / 1000:.2f}s")
    api_ms = getattr(message, "duration_api_ms", None)
    if api_ms is not None:
        lines.append(f"API time: {api_ms / 1000:.2f}s")
    turns = getattr(message, "num_turns", None)
    if turns is not None:
        lines.append(f"Turns: {turns}")
    cost = getattr(message, "total_cost_usd", None)
    if cost is not None:
        lines.append(f"Cost: ${cost:.4f}")
    return "\n".join(lines)
