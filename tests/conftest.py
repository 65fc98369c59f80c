"""Shared test fixtures for the agentdeck test suite.

The _isolate_agentdeck_config fixture (autouse) prevents AgentDeckConfig from
reading the user's real ~/.agentdeck/config.json during tests.

The fake_sdk fixture installs a scripted stand-in for ``claude_agent_sdk``
in sys.modules, since the real SDK spawns the Claude Code CLI.
"""

from __future__ import annotations

import asyncio
import sys
import types
from pathlib import Path
from typing import Any

import pytest

from agentdeck.bus.channels import EventBus
from agentdeck.config.schema import AgentDeckConfig

# Script item that blocks the fake stream until interrupt() or release().
HOLD = object()


@pytest.fixture(autouse=True)
def _isolate_agentdeck_config(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    """Point AgentDeckConfig's json_file at an empty temp file for every test."""
    empty_config = tmp_path / "agentdeck_test_config.json"
    empty_config.write_text("{}", encoding="utf-8")
    monkeypatch.setitem(AgentDeckConfig.model_config, "json_file", empty_config)


# ---------------------------------------------------------------------------
# Fake claude_agent_sdk
# ---------------------------------------------------------------------------


class SystemMessage:
    def __init__(self, subtype: str, data: dict[str, Any] | None = None) -> None:
        self.subtype = subtype
        self.data = data or {}


class TextBlock:
    def __init__(self, text: str) -> None:
        self.text = text


class ToolUseBlock:
    def __init__(self, id: str, name: str, input: dict[str, Any]) -> None:
        self.id = id
        self.name = name
        self.input = input


class ToolResultBlock:
    def __init__(self, tool_use_id: str, content: Any = None, is_error: bool = False) -> None:
        self.tool_use_id = tool_use_id
        self.content = content
        self.is_error = is_error


class AssistantMessage:
    def __init__(self, content: list[Any], model: str = "claude-sonnet-4-5-20250929") -> None:
        self.content = content
        self.model = model


class UserMessage:
    def __init__(self, content: Any, tool_use_result: Any = None) -> None:
        self.content = content
        self.tool_use_result = tool_use_result


class ResultMessage:
    def __init__(
        self,
        subtype: str = "success",
        *,
        session_id: str = "native-1",
        usage: dict[str, Any] | None = None,
        is_error: bool = False,
        result: str | None = None,
        duration_ms: int = 1500,
        duration_api_ms: int = 1200,
        num_turns: int = 2,
        total_cost_usd: float | None = 0.0123,
    ) -> None:
        self.subtype = subtype
        self.session_id = session_id
        self.usage = usage
        self.is_error = is_error
        self.result = result
        self.duration_ms = duration_ms
        self.duration_api_ms = duration_api_ms
        self.num_turns = num_turns
        self.total_cost_usd = total_cost_usd


class StreamEvent:
    def __init__(self, event: dict[str, Any] | None = None) -> None:
        self.event = event or {}


class ClaudeAgentOptions:
    def __init__(self, **kwargs: Any) -> None:
        self.kwargs = kwargs
        self.__dict__.update(kwargs)


class FakeSDK:
    """Scripted ClaudeSDKClient factory: each new client consumes the next script."""

    def __init__(self) -> None:
        self.scripts: list[list[Any]] = []
        self.clients: list[Any] = []
        self.fail_connect = False
        self.connect_delay = 0.0
        self.interrupt_error: Exception | None = None
        self.hold = HOLD
        self.module = self._build_module()

    def push(self, *items: Any) -> None:
        self.scripts.append(list(items))

    @property
    def last_client(self) -> Any:
        return self.clients[-1]

    def _build_module(self) -> types.ModuleType:
        sdk = self

        class ClaudeSDKClient:
            def __init__(self, options: ClaudeAgentOptions | None = None) -> None:
                self.options = options
                self.queries: list[str] = []
                self.script = sdk.scripts.pop(0) if sdk.scripts else []
                self.connected = False
                self.disconnected = False
                self.interrupted = False
                self._stop = asyncio.Event()
                sdk.clients.append(self)

            async def connect(self) -> None:
                if sdk.connect_delay:
                    await asyncio.sleep(sdk.connect_delay)
                if sdk.fail_connect:
                    raise ConnectionError("CLI not found")
                self.connected = True

            async def query(self, prompt: str) -> None:
                self.queries.append(prompt)

            async def receive_response(self):
                for item in self.script:
                    if item is HOLD:
                        await self._stop.wait()
                        if self.interrupted:
                            return
                        continue
                    if isinstance(item, Exception):
                        raise item
                    yield item

            async def interrupt(self) -> None:
                if sdk.interrupt_error is not None:
                    raise sdk.interrupt_error
                self.interrupted = True
                self._stop.set()

            def release(self) -> None:
                self._stop.set()

            async def disconnect(self) -> None:
                self.disconnected = True

        module = types.ModuleType("claude_agent_sdk")
        module.ClaudeSDKClient = ClaudeSDKClient
        module.ClaudeAgentOptions = ClaudeAgentOptions
        for cls in (
            SystemMessage,
            AssistantMessage,
            UserMessage,
            ResultMessage,
            StreamEvent,
            TextBlock,
            ToolUseBlock,
            ToolResultBlock,
        ):
            setattr(module, cls.__name__, cls)
        return module


@pytest.fixture
def fake_sdk(monkeypatch: pytest.MonkeyPatch) -> FakeSDK:
    """Insert a fresh fake claude_agent_sdk into sys.modules."""
    sdk = FakeSDK()
    monkeypatch.setitem(sys.modules, "claude_agent_sdk", sdk.module)
    return sdk


# ---------------------------------------------------------------------------
# Common fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def bus() -> EventBus:
    return EventBus()


@pytest.fixture
def project_dir(tmp_path: Path) -> Path:
    path = tmp_path / "demo"
    path.mkdir()
    return path


@pytest.fixture
def config(tmp_path: Path) -> AgentDeckConfig:
    """Default engines with history written under tmp_path."""
    return AgentDeckConfig(history={"directory": str(tmp_path / "history")})
