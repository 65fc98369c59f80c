"""Markdown rendering for tool calls and their results.

Both adapters show tool activity the same way: a short bold headline plus
the interesting argument, and for outputs either the full text or, when it
is large, the first and last few lines. Thresholds come from
RenderingConfig so they can be tuned without code changes.
"""

from __future__ import annotations

import json
from collections.abc import Callable
from typing import Any

from agentdeck.config.schema import RenderingConfig


def is_large(text: str, cfg: RenderingConfig) -> bool:
    return text.count("\n") + 1 > cfg.max_lines or len(text) > cfg.max_chars


def summarize_output(text: str, cfg: RenderingConfig) -> str:
    """Return ``text`` unchanged, or its head and tail lines when it is large.

    Head and tail never overlap and each is cut to ``max_chars // 2``
    characters, so a summary is at most ``max_chars`` plus the separator.
    """
    if not is_large(text, cfg):
        return text
    lines = text.split("\n")
    budget = cfg.max_chars // 2
    head = "\n".join(lines[: cfg.head_lines])[:budget]
    tail_start = max(len(lines) - cfg.tail_lines, cfg.head_lines)
    tail = "\n".join(lines[tail_start:])
    tail = tail[max(len(tail) - budget, 0) :]
    if not tail:
        return f"{head}\n..."
    return f"{head}\n...\n{tail}"


def line_count(text: str) -> int:
    return len(text.split("\n"))


def fenced(text: str, lang: str = "") -> str:
    return f"```{lang}\n{text}\n```"


def render_json(payload: Any, cfg: RenderingConfig) -> str:
    """Pretty JSON block, cut to a preview when the payload is large."""
    text = json.dumps(payload, indent=2, ensure_ascii=False, default=str)
    if len(text) > cfg.json_max_chars:
        return fenced(text[: cfg.json_preview_chars] + "...", "json")
    return fenced(text, "json")


def _path_of(tool_input: dict[str, Any]) -> str:
    return tool_input.get("file_path") or tool_input.get("path") or ""


_TOOL_RENDERERS: dict[str, Callable[[dict[str, Any]], str]] = {
    "Read": lambda i: f"**Reading file**\n`{_path_of(i)}`",
    "Write": lambda i: f"**Writing file**\n`{_path_of(i)}`",
    "Edit": lambda i: f"**Editing file**\n`{_path_of(i)}`",
    "MultiEdit": lambda i: f"**Editing file**\n`{_path_of(i)}`",
    "Bash": lambda i: "**Running command**\n" + fenced(i.get("command", ""), "bash"),
    "Glob": lambda i: f"**Searching files**\nPattern: `{i.get('pattern', '')}`",
    "Grep": lambda i: f"**Searching content**\nPattern: `{i.get('pattern', '')}`",
    "Task": lambda i: f"**Starting sub-agent**\nTask: {i.get('description') or 'subtask'}",
    "TodoWrite": lambda i: "**Updating task list**",
    "WebFetch": lambda i: f"**Fetching page**\n{i.get('url', '')}",
    "WebSearch": lambda i: f"**Searching the web**\n\"{i.get('query', '')}\"",
}


def render_tool_use(name: str, tool_input: dict[str, Any] | None, cfg: RenderingConfig) -> str:
    """Headline for a tool invocation; unknown tools show their input as JSON."""
    tool_input = tool_input or {}
    renderer = _TOOL_RENDERERS.get(name)
    if renderer is not None:
        return renderer(tool_input)
    return f"**Calling tool: {name}**\n" + render_json(tool_input, cfg)


def render_command_result(
    output: str, exit_code: int | None, cfg: RenderingConfig, command: str = ""
) -> str:
    ok = not exit_code
    status = "succeeded" if ok else "failed"
    exit_info = f" (exit code {exit_code})" if exit_code is not None else ""
    parts = [f"{'✅' if ok else '❌'} **Command {status}**{exit_info}"]
    if command:
        parts.append(fenced(command, "bash"))
    if output:
        if is_large(output, cfg):
            parts[0] += f" ({line_count(output)} lines of output)"
        parts.append(fenced(summarize_output(output, cfg)))
    return "\n".join(parts)


def render_tool_result(result: Any, cfg: RenderingConfig) -> str:
    """Render a tool's result payload (string, structured dict, or anything else)."""
    if not result:
        return "✅ **Done**"

    if isinstance(result, str):
        if is_large(result, cfg):
            return (
                f"✅ **Done** ({line_count(result)} lines of output)\n"
                + fenced(summarize_output(result, cfg))
            )
        return "✅ **Done**\n" + fenced(result)

    if isinstance(result, dict):
        file_info = result.get("file")
        if result.get("type") == "text" and isinstance(file_info, dict):
            return (
                f"✅ **File read**\n`{file_info.get('filePath', '')}` "
                f"({file_info.get('numLines', 0)} lines)"
            )
        if result.get("stdout") or result.get("stderr"):
            output = result.get("stdout") or result.get("stderr") or ""
            exit_code = result.get("exitCode", 0)
            return render_command_result(output, exit_code, cfg)
        return "✅ **Done**\n" + render_json(result, cfg)

    if isinstance(result, list):
        texts = [b.get("text", "") for b in result if isinstance(b, dict) and b.get("text")]
        if texts:
            return render_tool_result("\n".join(texts), cfg)
        return "✅ **Done**\n" + render_json(result, cfg)

    return f"✅ **Done**\n{result}"


def render_todo_items(items: list[dict[str, Any]]) -> str:
    lines = [f"{'✅' if item.get('completed') else '⬜'} {item.get('text', '')}" for item in items]
    return "**Task list**\n" + "\n".join(lines)
