"""Tests for the configuration system."""

from __future__ import annotations

import json
from pathlib import Path

import pytest
from pydantic import SecretStr, ValidationError

from agentdeck.config import load_config, save_config
from agentdeck.config.loader import get_history_path
from agentdeck.config.schema import (
    AgentDeckConfig,
    ConversationConfig,
    EngineProfile,
    HistoryConfig,
    RenderingConfig,
)


def test_default_engines():
    config = AgentDeckConfig()
    assert config.engines.default_engine == "claude-code"
    assert list(config.engines.profiles) == ["claude-code", "codex", "deepseek"]

    deepseek = config.engines.profiles["deepseek"]
    assert deepseek.kind == "deepseek"
    assert deepseek.model == "deepseek-chat"
    assert deepseek.thinking_model == "deepseek-reasoner"
    assert deepseek.base_url == "https://api.deepseek.com/anthropic"
    assert config.engines.profiles["codex"].kind == "codex_cli"


def test_limit_defaults():
    assert HistoryConfig().max_per_project == 20
    conversation = ConversationConfig()
    assert (conversation.max_messages, conversation.context_window) == (50, 10)
    assert (conversation.rendered_messages, conversation.message_char_limit) == (6, 200)
    rendering = RenderingConfig()
    assert (rendering.max_lines, rendering.max_chars) == (10, 1000)
    assert (rendering.json_max_chars, rendering.json_preview_chars) == (500, 200)


def test_rendering_fields_are_the_summary_thresholds():
    assert set(RenderingConfig.model_fields) == {
        "max_lines",
        "max_chars",
        "head_lines",
        "tail_lines",
        "json_max_chars",
        "json_preview_chars",
    }


def test_default_pricing_rows():
    pricing = AgentDeckConfig().pricing
    assert pricing["claude-code"]["default"].input == 3.00
    assert pricing["claude-code"]["claude-opus-4-20250514"].cache_read == 1.50
    assert pricing["codex"]["default"].cache_read == 0.125
    assert pricing["deepseek"]["default"].output == 0.42


def test_invalid_engine_kind():
    with pytest.raises(ValidationError):
        EngineProfile(kind="gemini_cli")


def test_env_override(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setenv("AGENTDECK_ENGINES__DEFAULT_ENGINE", "codex")
    assert AgentDeckConfig().engines.default_engine == "codex"


def test_load_missing_file_gives_defaults(tmp_path: Path):
    config = load_config(tmp_path / "nope.json")
    assert config.engines.default_engine == "claude-code"


def test_load_from_file(tmp_path: Path):
    path = tmp_path / "config.json"
    path.write_text(
        json.dumps(
            {
                "engines": {"default_engine": "codex"},
                "history": {"max_per_project": 5},
                "pricing": {"codex": {"default": {"input": 2.0, "output": 8.0}}},
            }
        ),
        encoding="utf-8",
    )

    config = load_config(path)
    assert config.engines.default_engine == "codex"
    assert config.history.max_per_project == 5
    assert config.pricing["codex"]["default"].output == 8.0


def test_save_and_reload_keeps_api_key(tmp_path: Path):
    config = AgentDeckConfig()
    config.engines.profiles["codex"].api_key = SecretStr("sk-secret")
    path = save_config(config, tmp_path / "out" / "config.json")

    assert not path.with_suffix(".tmp").exists()
    raw = json.loads(path.read_text(encoding="utf-8"))
    assert raw["engines"]["profiles"]["codex"]["api_key"] == "sk-secret"
    assert raw["history"]["directory"] == "~/.agentdeck/history"

    reloaded = load_config(path)
    assert reloaded.engines.profiles["codex"].api_key.get_secret_value() == "sk-secret"


def test_history_path_resolves(tmp_path: Path):
    config = AgentDeckConfig(history={"directory": str(tmp_path / "h")})
    assert get_history_path(config) == (tmp_path / "h").resolve()
