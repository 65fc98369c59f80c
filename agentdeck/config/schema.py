"""Pydantic configuration models for agentdeck.

All config is loaded from ~/.agentdeck/config.json and can be overridden
via AGENTDECK_ prefixed environment variables.
"""

from __future__ import annotations

from pathlib import Path

from pydantic import BaseModel, Field, SecretStr, field_serializer
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic_settings.main import JsonConfigSettingsSource


class EngineProfile(BaseModel):
    """Connection and runtime settings for a single AI coding-agent engine.

    Every value an adapter needs to reach its backend lives here and is
    passed to the adapter at construction time. Adapters never read or
    write process-wide environment variables to reconfigure a backend.
    """

    kind: str = Field(
        default="claude_sdk",
        pattern="^(claude_sdk|deepseek|codex_cli)$",
        description="Native backend: 'claude_sdk' (Claude Agent SDK), 'deepseek' (Claude Agent SDK "
        "against an Anthropic-compatible gateway) or 'codex_cli' (Codex CLI, JSON lines).",
    )
    display_name: str = ""
    enabled: bool = True
    model: str = Field(
        default="",
        description="Model identifier passed to the backend. Empty = backend default.",
    )
    thinking_model: str = Field(
        default="",
        description="Model used when a turn is started in 'thinking' mode. "
        "Empty = thinking mode not supported by this engine.",
    )
    api_key: SecretStr = SecretStr("")
    api_key_env: str = Field(
        default="",
        description="Environment variable read for the API key when api_key is empty.",
    )
    base_url: str = Field(
        default="",
        description="Alternate API endpoint (e.g. an Anthropic-compatible gateway).",
    )
    max_turns: int = Field(default=50, ge=1, le=1000)
    permission_mode: str = Field(
        default="acceptEdits",
        description="Claude SDK permission mode: 'acceptEdits', 'bypassPermissions', or 'default'.",
    )
    setting_sources: list[str] = Field(default_factory=lambda: ["project", "user"])
    executable: str = Field(
        default="codex",
        description="Executable name or path for CLI-driven engines.",
    )
    extra_args: list[str] = Field(default_factory=list)

    @field_serializer("api_key", when_used="json")
    @staticmethod
    def _serialize_api_key(v: SecretStr) -> str:
        return v.get_secret_value()


def _default_profiles() -> dict[str, EngineProfile]:
    return {
        "claude-code": EngineProfile(
            kind="claude_sdk",
            display_name="Claude Code",
            api_key_env="ANTHROPIC_API_KEY",
        ),
        "codex": EngineProfile(
            kind="codex_cli",
            display_name="OpenAI Codex",
            api_key_env="OPENAI_API_KEY",
        ),
        "deepseek": EngineProfile(
            kind="deepseek",
            display_name="Claude Code - DeepSeek",
            model="deepseek-chat",
            thinking_model="deepseek-reasoner",
            api_key_env="DEEPSEEK_API_KEY",
            base_url="https://api.deepseek.com/anthropic",
        ),
    }


class EnginesConfig(BaseModel):
    """Engine registry: which engines exist and which one is used by default."""

    default_engine: str = "claude-code"
    profiles: dict[str, EngineProfile] = Field(default_factory=_default_profiles)


class HistoryConfig(BaseModel):
    """Per-project session history retention."""

    directory: Path = Field(
        default=Path("~/.agentdeck/history"),
        description="Directory holding one <engine>-history.json file per engine.",
    )
    max_per_project: int = Field(default=20, ge=1, le=1000)
    default_limit: int = Field(default=10, ge=1, le=1000)


class ConversationConfig(BaseModel):
    """Limits for the cross-engine conversation transcript."""

    max_messages: int = Field(
        default=50,
        ge=2,
        description="Messages kept per conversation; oldest trimmed first.",
    )
    context_window: int = Field(
        default=10,
        ge=1,
        description="Recent messages considered when building a switch preamble.",
    )
    rendered_messages: int = Field(
        default=6,
        ge=1,
        description="Messages actually written into the preamble text.",
    )
    message_char_limit: int = Field(default=200, ge=10)


class RenderingConfig(BaseModel):
    """Thresholds for summarizing large tool and command output in log entries."""

    max_lines: int = Field(default=10, ge=1)
    max_chars: int = Field(default=1000, ge=1)
    head_lines: int = Field(default=3, ge=0)
    tail_lines: int = Field(default=3, ge=0)
    json_max_chars: int = Field(default=500, ge=1)
    json_preview_chars: int = Field(default=200, ge=1)


class PriceRow(BaseModel):
    """USD per million tokens for each token category."""

    input: float = Field(default=0.0, ge=0.0)
    output: float = Field(default=0.0, ge=0.0)
    cache_write: float = Field(default=0.0, ge=0.0)
    cache_read: float = Field(default=0.0, ge=0.0)


def default_pricing() -> dict[str, dict[str, PriceRow]]:
    sonnet = PriceRow(input=3.00, output=15.00, cache_write=3.75, cache_read=0.30)
    return {
        "claude-code": {
            "claude-sonnet-4-5-20250929": sonnet,
            "claude-sonnet-4-20250514": sonnet,
            "claude-opus-4-20250514": PriceRow(
                input=15.00, output=75.00, cache_write=18.75, cache_read=1.50
            ),
            "default": sonnet,
        },
        "codex": {
            "default": PriceRow(input=1.25, output=10.00, cache_write=0.0, cache_read=0.125),
        },
        "deepseek": {
            "deepseek-chat": PriceRow(input=0.28, output=0.42, cache_write=0.0, cache_read=0.028),
            "deepseek-reasoner": PriceRow(
                input=0.28, output=0.42, cache_write=0.0, cache_read=0.028
            ),
            "default": PriceRow(input=0.28, output=0.42, cache_write=0.0, cache_read=0.028),
        },
    }


class AgentDeckConfig(BaseSettings):
    """Root configuration for agentdeck.

    Loaded from ~/.agentdeck/config.json with AGENTDECK_ env var overrides.
    Uses JsonConfigSettingsSource so pydantic-settings reads the JSON file
    and merges it with environment variable overrides.
    """

    model_config = SettingsConfigDict(
        env_prefix="AGENTDECK_",
        env_nested_delimiter="__",
        json_file=Path("~/.agentdeck/config.json").expanduser(),
        json_file_encoding="utf-8",
        extra="ignore",
    )

    engines: EnginesConfig = Field(default_factory=EnginesConfig)
    history: HistoryConfig = Field(default_factory=HistoryConfig)
    conversation: ConversationConfig = Field(default_factory=ConversationConfig)
    rendering: RenderingConfig = Field(default_factory=RenderingConfig)
    pricing: dict[str, dict[str, PriceRow]] = Field(default_factory=default_pricing)

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls,
        init_settings,
        env_settings,
        dotenv_settings,
        file_secret_settings,
    ):
        """Enable JSON file loading alongside env vars and init kwargs."""
        return (
            init_settings,
            env_settings,
            JsonConfigSettingsSource(settings_cls),
        )
