"""Configuration models and file I/O."""

from agentdeck.config.loader import load_config, save_config
from agentdeck.config.schema import (
    AgentDeckConfig,
    ConversationConfig,
    EngineProfile,
    EnginesConfig,
    HistoryConfig,
    PriceRow,
    RenderingConfig,
)

__all__ = [
    "AgentDeckConfig",
    "ConversationConfig",
    "EngineProfile",
    "EnginesConfig",
    "HistoryConfig",
    "PriceRow",
    "RenderingConfig",
    "load_config",
    "save_config",
]
