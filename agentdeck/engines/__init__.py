"""AI engine adapters: Claude Code, DeepSeek (via Claude Code) and OpenAI Codex."""
