"""Tests for DeepSeekAdapter: Claude Code against DeepSeek's Anthropic-compatible API."""

from __future__ import annotations

import os
from pathlib import Path

import pytest

from agentdeck.config.schema import AgentDeckConfig
from agentdeck.engines.deepseek_engine import DEEPSEEK_BASE_URL, DeepSeekAdapter
from agentdeck.engines.errors import ProviderUnavailableError
from agentdeck.session.history import HistoryStore


@pytest.fixture
def adapter(bus, tmp_path: Path, monkeypatch) -> DeepSeekAdapter:
    monkeypatch.setenv("DEEPSEEK_API_KEY", "ds-key")
    profile = AgentDeckConfig().engines.profiles["deepseek"]
    return DeepSeekAdapter(
        "deepseek",
        profile,
        bus=bus,
        history=HistoryStore(tmp_path / "deepseek-history.json"),
    )


class TestDeepSeekAdapter:
    @pytest.mark.asyncio
    async def test_gateway_settings_passed_through_options_env(
        self, adapter, bus, fake_sdk, project_dir, monkeypatch
    ):
        monkeypatch.delenv("ANTHROPIC_BASE_URL", raising=False)
        fake_sdk.push(fake_sdk.module.ResultMessage())

        started = await adapter.execute("demo", str(project_dir), "hi")
        [_ async for _ in bus.stream(started.session_id)]

        options = fake_sdk.last_client.options
        assert options.model == "deepseek-chat"
        assert options.env == {
            "ANTHROPIC_BASE_URL": DEEPSEEK_BASE_URL,
            "ANTHROPIC_API_KEY": "ds-key",
            "ANTHROPIC_MODEL": "deepseek-chat",
        }
        assert "ANTHROPIC_BASE_URL" not in os.environ
        assert started.session_id.startswith("deepseek-demo-")

    @pytest.mark.asyncio
    async def test_thinking_mode_uses_reasoner(self, adapter, bus, fake_sdk, project_dir):
        fake_sdk.push(fake_sdk.module.ResultMessage())

        started = await adapter.execute("demo", str(project_dir), "hi", mode="thinking")
        [_ async for _ in bus.stream(started.session_id)]

        options = fake_sdk.last_client.options
        assert options.model == "deepseek-reasoner"
        assert options.env["ANTHROPIC_MODEL"] == "deepseek-reasoner"
        assert adapter.registry.get(started.session_id).model == "deepseek-reasoner"

    @pytest.mark.asyncio
    async def test_completion_priced_with_deepseek_table(
        self, adapter, bus, fake_sdk, project_dir
    ):
        fake_sdk.push(
            fake_sdk.module.ResultMessage(
                usage={"input_tokens": 1_000_000, "output_tokens": 1_000_000}
            )
        )

        started = await adapter.execute("demo", str(project_dir), "hi")
        events = [e async for e in bus.stream(started.session_id)]

        cost = events[-1].result.cost
        assert cost.input_cost == pytest.approx(0.28)
        assert cost.output_cost == pytest.approx(0.42)
        assert cost.total_cost == pytest.approx(0.70)

    @pytest.mark.asyncio
    async def test_missing_api_key(self, adapter, fake_sdk, monkeypatch):
        monkeypatch.delenv("DEEPSEEK_API_KEY", raising=False)

        with pytest.raises(ProviderUnavailableError, match="DeepSeek API key"):
            await adapter.check_available()

    @pytest.mark.asyncio
    async def test_available_with_key(self, adapter, fake_sdk):
        assert await adapter.check_available() is True

    def test_display_name(self, adapter):
        assert adapter.display_name == "Claude Code - DeepSeek"
