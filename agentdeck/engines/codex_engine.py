"""CodexAdapter: OpenAI Codex sessions through the ``codex exec --json`` CLI.

Each turn runs one ``codex exec`` subprocess that prints JSON-lines events
on stdout. The ``thread_id`` from ``thread.started`` is the native session
token; later turns pass it to ``codex exec ... resume <thread_id>``.
"""

from __future__ import annotations

import asyncio
import contextlib
import json
import os
import shutil
from collections.abc import AsyncIterator
from enum import StrEnum
from typing import Any

from loguru import logger

from agentdeck.cost.calculator import extract_usage
from agentdeck.engines.base import THINKING_MODE, EngineAdapter, TurnOutcome
from agentdeck.engines.errors import ProviderUnavailableError
from agentdeck.engines.rendering import (
    fenced,
    render_command_result,
    render_json,
    render_todo_items,
)
from agentdeck.engines.types import LogChannel, LogEntry, Session

_STREAM_LIMIT = 16 * 1024 * 1024
_TERMINATE_GRACE_SECONDS = 5.0
_STDERR_TAIL_CHARS = 500


class CodexEventKind(StrEnum):
    THREAD_STARTED = "thread.started"
    TURN_STARTED = "turn.started"
    TURN_COMPLETED = "turn.completed"
    TURN_FAILED = "turn.failed"
    ITEM_STARTED = "item.started"
    ITEM_UPDATED = "item.updated"
    ITEM_COMPLETED = "item.completed"
    ERROR = "error"


class CodexItemType(StrEnum):
    AGENT_MESSAGE = "agent_message"
    REASONING = "reasoning"
    COMMAND_EXECUTION = "command_execution"
    FILE_CHANGE = "file_change"
    MCP_TOOL_CALL = "mcp_tool_call"
    WEB_SEARCH = "web_search"
    TODO_LIST = "todo_list"
    ERROR = "error"


def classify(event: dict[str, Any]) -> CodexEventKind | None:
    try:
        return CodexEventKind(event.get("type", ""))
    except ValueError:
        return None


class CodexProcess:
    """A running ``codex exec`` child process for one turn."""

    def __init__(self, process: asyncio.subprocess.Process) -> None:
        self.process = process
        self.interrupted = False

    async def lines(self) -> AsyncIterator[str]:
        assert self.process.stdout is not None
        async for raw in self.process.stdout:
            yield raw.decode("utf-8", errors="replace")

    async def wait(self) -> tuple[int, str]:
        """Wait for exit; return the exit code and the tail of stderr."""
        stderr = b""
        if self.process.stderr is not None:
            stderr = await self.process.stderr.read()
        code = await self.process.wait()
        return code, stderr.decode("utf-8", errors="replace")[-_STDERR_TAIL_CHARS:].strip()

    async def interrupt(self) -> None:
        if self.process.returncode is not None:
            return
        self.interrupted = True
        self.process.terminate()
        try:
            await asyncio.wait_for(self.process.wait(), timeout=_TERMINATE_GRACE_SECONDS)
        except TimeoutError:
            logger.warning("codex process {} ignored SIGTERM, killing", self.process.pid)
            with contextlib.suppress(ProcessLookupError):
                self.process.kill()


class CodexAdapter(EngineAdapter):
    """Codex CLI sessions; one subprocess per turn, resumed by thread id."""

    def _executable(self) -> str:
        path = shutil.which(self.profile.executable)
        if path is None:
            raise ProviderUnavailableError(
                f"Codex CLI '{self.profile.executable}' not found on PATH",
                engine=self.name,
                hint="npm install -g @openai/codex, or set engines.profiles.codex.executable",
            )
        return path

    async def check_available(self) -> bool:
        self._executable()
        return True

    def _resolve_model(self, mode: str | None) -> str:
        if mode == THINKING_MODE:
            if self.profile.thinking_model:
                return self.profile.thinking_model
            logger.warning(
                "[{}] Thinking mode is not supported, using the default model", self.name
            )
        return self.profile.model

    def build_command(
        self, session: Session, prompt: str, resume_token: str | None, mode: str | None
    ) -> list[str]:
        args = [
            self._executable(),
            "exec",
            "--json",
            "--skip-git-repo-check",
            "-C",
            session.project_path,
        ]
        model = self._resolve_model(mode)
        if model:
            args += ["-m", model]
            session.model = model
        args += list(self.profile.extra_args)
        if resume_token:
            args += ["resume", resume_token]
        args.append(prompt)
        return args

    def _build_env(self) -> dict[str, str]:
        """Child environment: a copy of ours plus this engine's key and endpoint."""
        env = dict(os.environ)
        key = self.profile.api_key.get_secret_value()
        if key:
            env["OPENAI_API_KEY"] = key
        if self.profile.base_url:
            env["OPENAI_BASE_URL"] = self.profile.base_url
        return env

    async def _open_transport(
        self,
        session: Session,
        prompt: str,
        resume_token: str | None,
        mode: str | None,
    ) -> CodexProcess:
        args = self.build_command(session, prompt, resume_token, mode)
        try:
            process = await asyncio.create_subprocess_exec(
                *args,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                cwd=session.project_path,
                env=self._build_env(),
                limit=_STREAM_LIMIT,
            )
        except OSError as exc:
            raise ProviderUnavailableError(
                f"Failed to start Codex: {exc}", engine=self.name
            ) from exc
        logger.debug("[{}] codex pid {}", self.name, process.pid)
        return CodexProcess(process)

    async def _iterate(
        self, session: Session, transport: CodexProcess, prompt: str, outcome: TurnOutcome
    ) -> AsyncIterator[Any]:
        async for line in transport.lines():
            line = line.strip()
            if not line:
                continue
            try:
                event = json.loads(line)
            except json.JSONDecodeError:
                logger.debug("[{}] non-JSON output: {}", self.name, line[:200])
                continue
            if isinstance(event, dict):
                yield event

        code, stderr = await transport.wait()
        if transport.interrupted:
            raise RuntimeError("Codex turn was interrupted")
        if code != 0 and not outcome.terminal:
            raise RuntimeError(f"codex exited with code {code}: {stderr or 'no output'}")

    async def _close_transport(self, transport: CodexProcess) -> None:
        if transport.process.returncode is None:
            await transport.interrupt()

    # -- Normalization --

    def _normalize(
        self, session: Session, event: dict[str, Any], outcome: TurnOutcome
    ) -> LogEntry | None:
        kind = classify(event)
        if kind is None:
            self._unknown_event(session, str(event.get("type")), event)
            return None
        logger.debug("[{}] event: {}", self.name, kind)

        match kind:
            case CodexEventKind.THREAD_STARTED:
                token = event.get("thread_id")
                if token:
                    session.provider_session_token = token
                    logger.info("[{}] Thread id: {}", self.name, token)
                return None
            case CodexEventKind.TURN_STARTED:
                return None
            case CodexEventKind.TURN_COMPLETED:
                usage = extract_usage(event.get("usage"))
                # cached_input_tokens is a subset of input_tokens
                usage.input_tokens = max(usage.input_tokens - usage.cache_read_tokens, 0)
                session.usage.merge(usage)
                outcome.terminal = True
                return None
            case CodexEventKind.TURN_FAILED:
                message = (event.get("error") or {}).get("message", "unknown error")
                outcome.terminal = True
                outcome.failed = True
                outcome.error = message
                return self._entry(
                    session, f"❌ **Turn failed**: {message}", kind, LogChannel.STDERR
                )
            case CodexEventKind.ERROR:
                return self._entry(
                    session, f"❌ **Error**: {event.get('message', '')}", kind, LogChannel.STDERR
                )
            case CodexEventKind.ITEM_STARTED:
                item = event.get("item") or {}
                return self._entry(session, self._item_started(session, item), kind)
            case CodexEventKind.ITEM_UPDATED:
                item = event.get("item") or {}
                return self._entry(session, self._item_updated(item), kind)
            case CodexEventKind.ITEM_COMPLETED:
                item = event.get("item") or {}
                return self._entry(session, self._item_completed(session, item), kind)

    @staticmethod
    def _item_type(item: dict[str, Any]) -> CodexItemType | None:
        try:
            return CodexItemType(item.get("type", ""))
        except ValueError:
            return None

    def _item_started(self, session: Session, item: dict[str, Any]) -> str:
        match self._item_type(item):
            case CodexItemType.COMMAND_EXECUTION:
                session.tool_call_count += 1
                return "**Running command**\n" + fenced(item.get("command", ""), "bash")
            case CodexItemType.MCP_TOOL_CALL:
                session.tool_call_count += 1
                return f"**Calling tool**: {item.get('server')}/{item.get('tool')}"
            case CodexItemType.WEB_SEARCH:
                return f"**Searching the web**: {item.get('query', '')}"
            case CodexItemType.TODO_LIST:
                return render_todo_items(item.get("items") or [])
            case _:
                return ""

    def _item_updated(self, item: dict[str, Any]) -> str:
        if item.get("type") == CodexItemType.TODO_LIST:
            return render_todo_items(item.get("items") or [])
        return ""

    def _item_completed(self, session: Session, item: dict[str, Any]) -> str:
        ok = item.get("status", "completed") == "completed"
        match self._item_type(item):
            case CodexItemType.AGENT_MESSAGE:
                session.message_count += 1
                return item.get("text", "")
            case CodexItemType.REASONING:
                return f"**Reasoning**\n{item.get('text', '')}"
            case CodexItemType.COMMAND_EXECUTION:
                exit_code = item.get("exit_code")
                if exit_code is None and not ok:
                    exit_code = 1
                return render_command_result(
                    item.get("aggregated_output") or "",
                    exit_code,
                    self._rendering,
                    command=item.get("command", ""),
                )
            case CodexItemType.FILE_CHANGE:
                marks = {"add": "➕", "delete": "➖"}
                changes = "\n".join(
                    f"  {marks.get(c.get('kind'), '✏️')} `{c.get('path', '')}`"
                    for c in item.get("changes") or []
                )
                status = "✅ **Files changed**" if ok else "❌ **File change failed**"
                return f"{status}\n{changes}"
            case CodexItemType.MCP_TOOL_CALL:
                mark = "✅" if ok else "❌"
                text = f"{mark} **Tool call**: {item.get('server')}/{item.get('tool')}"
                error = item.get("error")
                result = item.get("result") or {}
                if isinstance(error, dict):
                    error = error.get("message", error)
                if error:
                    text += f"\nError: {error}"
                elif result.get("structured_content"):
                    text += "\n" + render_json(result["structured_content"], self._rendering)
                return text
            case CodexItemType.WEB_SEARCH:
                return f"✅ **Search complete**: {item.get('query', '')}"
            case CodexItemType.TODO_LIST:
                return render_todo_items(item.get("items") or [])
            case CodexItemType.ERROR:
                return f"⚠️ **Warning**: {item.get('message', '')}"
            case None:
                # Warned once per item, on completion.
                self._unknown_event(session, f"item:{item.get('type')}", item)
                return ""
