"""Tests for markdown rendering of tool activity."""

from __future__ import annotations

from agentdeck.config.schema import RenderingConfig
from agentdeck.engines.rendering import (
    render_json,
    render_tool_result,
    render_tool_use,
    summarize_output,
)

CFG = RenderingConfig()


class TestSummarizeOutput:
    def test_small_output_unchanged(self):
        text = "\n".join(f"line {i}" for i in range(10))
        assert summarize_output(text, CFG) == text

    def test_many_lines_keep_head_and_tail(self):
        text = "\n".join(f"line {i}" for i in range(11))
        assert summarize_output(text, CFG) == "line 0\nline 1\nline 2\n...\nline 8\nline 9\nline 10"

    def test_long_single_line_is_cut_not_repeated(self):
        summary = summarize_output("x" * 50_000, CFG)
        assert len(summary) <= CFG.max_chars + len("\n...\n")
        assert summary == "x" * 500 + "\n..."

    def test_few_long_lines_stay_bounded(self):
        text = "\n".join(["a" * 800, "b" * 800, "c" * 800])
        summary = summarize_output(text, CFG)
        assert len(summary) <= CFG.max_chars + len("\n...\n")
        assert summary.startswith("a" * 500)
        assert summary.count("...") == 1

    def test_long_lines_head_and_tail_cut_by_chars(self):
        lines = [str(i) * 400 for i in range(20)]
        summary = summarize_output("\n".join(lines), CFG)
        head, tail = summary.split("\n...\n")
        assert len(head) == 500
        assert len(tail) == 500
        assert tail.endswith("19" * 200)

    def test_thresholds_configurable(self):
        cfg = RenderingConfig(max_lines=2, head_lines=1, tail_lines=1)
        assert summarize_output("a\nb\nc", cfg) == "a\n...\nc"


class TestRenderToolUse:
    def test_known_tools(self):
        assert render_tool_use("Read", {"file_path": "src/app.py"}, CFG) == (
            "**Reading file**\n`src/app.py`"
        )
        assert render_tool_use("Bash", {"command": "ls -la"}, CFG) == (
            "**Running command**\n```bash\nls -la\n```"
        )
        assert "Pattern: `*.py`" in render_tool_use("Glob", {"pattern": "*.py"}, CFG)

    def test_unknown_tool_shows_json_input(self):
        rendered = render_tool_use("mcp__docs__search", {"query": "asyncio"}, CFG)
        assert rendered.startswith("**Calling tool: mcp__docs__search**")
        assert '"query": "asyncio"' in rendered


class TestRenderToolResult:
    def test_empty_result(self):
        assert render_tool_result(None, CFG) == "✅ **Done**"

    def test_string_result(self):
        assert render_tool_result("ok", CFG) == "✅ **Done**\n```\nok\n```"

    def test_large_string_result_summarized(self):
        text = "\n".join(str(i) for i in range(40))
        rendered = render_tool_result(text, CFG)
        assert rendered.startswith("✅ **Done** (40 lines of output)")
        assert "0\n1\n2\n...\n37\n38\n39" in rendered

    def test_huge_single_line_result_bounded(self):
        rendered = render_tool_result("y" * 50_000, CFG)
        assert rendered.startswith("✅ **Done** (1 lines of output)")
        assert len(rendered) < 2 * CFG.max_chars

    def test_file_read_result(self):
        result = {"type": "text", "file": {"filePath": "README.md", "numLines": 42}}
        assert render_tool_result(result, CFG) == "✅ **File read**\n`README.md` (42 lines)"

    def test_command_result_dict(self):
        rendered = render_tool_result({"stdout": "", "stderr": "not found", "exitCode": 127}, CFG)
        assert "❌ **Command failed** (exit code 127)" in rendered
        assert "not found" in rendered

    def test_content_block_list(self):
        blocks = [{"type": "text", "text": "hello"}, {"type": "image"}]
        assert render_tool_result(blocks, CFG) == "✅ **Done**\n```\nhello\n```"


def test_large_json_cut_to_preview():
    payload = {"items": ["x" * 50 for _ in range(20)]}
    rendered = render_json(payload, CFG)
    body = rendered.removeprefix("```json\n").removesuffix("\n```")
    assert body.endswith("...")
    assert len(body) == 203
