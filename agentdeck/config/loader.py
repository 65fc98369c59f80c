"""Reading and writing ~/.agentdeck/config.json.

The file holds the engine profiles (keys, models, endpoints), the history
directory and caps, the conversation-context limits, rendering thresholds
and the pricing table. ``AGENTDECK_`` environment variables override it.
"""

from __future__ import annotations

import json
from pathlib import Path

from agentdeck.config.schema import AgentDeckConfig

_AGENTDECK_HOME = Path.home() / ".agentdeck"
_CONFIG_FILE = _AGENTDECK_HOME / "config.json"


def get_config_path() -> Path:
    return _CONFIG_FILE


def get_history_path(config: AgentDeckConfig | None = None) -> Path:
    """Directory holding one ``<engine>-history.json`` per engine."""
    if config is None:
        return _AGENTDECK_HOME / "history"
    return config.history.directory.expanduser().resolve()


def load_config(path: Path | None = None) -> AgentDeckConfig:
    """Build the configuration from ``path`` (default ~/.agentdeck/config.json).

    A missing file yields the built-in engines (claude-code, codex, deepseek)
    and default pricing. ``AGENTDECK_ENGINES__DEFAULT_ENGINE=codex`` style
    variables win over file values.
    """
    config_file = (path or _CONFIG_FILE).expanduser().resolve()
    if not config_file.exists():
        return AgentDeckConfig()
    raw = json.loads(config_file.read_text(encoding="utf-8"))
    return AgentDeckConfig(**raw)


def save_config(config: AgentDeckConfig, path: Path | None = None) -> Path:
    """Write ``config`` as JSON, API keys in clear, through a temp file and rename."""
    config_file = (path or _CONFIG_FILE).expanduser().resolve()
    config_file.parent.mkdir(parents=True, exist_ok=True)

    data = config.model_dump(mode="json")
    _paths_to_str(data)

    staging = config_file.with_suffix(".tmp")
    staging.write_text(json.dumps(data, indent=2, ensure_ascii=False), encoding="utf-8")
    staging.rename(config_file)
    return config_file


def _paths_to_str(section: dict) -> None:
    for key, value in section.items():
        if isinstance(value, Path):
            section[key] = str(value)
        elif isinstance(value, dict):
            _paths_to_str(value)
