"""DeepSeekAdapter: Claude Code pointed at DeepSeek's Anthropic-compatible API."""

from __future__ import annotations

from agentdeck.engines.claude_engine import ClaudeCodeAdapter
from agentdeck.engines.errors import ProviderUnavailableError

DEEPSEEK_BASE_URL = "https://api.deepseek.com/anthropic"


class DeepSeekAdapter(ClaudeCodeAdapter):
    """Same native protocol as ClaudeCodeAdapter with DeepSeek credentials and models.

    The gateway settings are handed to the SDK through ``options.env`` of each
    client, so a DeepSeek turn and a Claude turn can run side by side.
    """

    async def check_available(self) -> bool:
        self._load_sdk()
        if not self._api_key():
            raise ProviderUnavailableError(
                "DeepSeek API key is not configured",
                engine=self.name,
                hint=f"Set {self.profile.api_key_env or 'DEEPSEEK_API_KEY'} "
                f"or engines.profiles.{self.name}.api_key",
            )
        return True

    def _build_env(self, model: str) -> dict[str, str]:
        env: dict[str, str] = {"ANTHROPIC_BASE_URL": self.profile.base_url or DEEPSEEK_BASE_URL}
        key = self._api_key()
        if key:
            env["ANTHROPIC_API_KEY"] = key
        if model:
            env["ANTHROPIC_MODEL"] = model
        return env
