"""agentdeck run: one prompt, streamed to the terminal until it completes."""

from __future__ import annotations

import asyncio
from pathlib import Path

import typer
from rich.console import Console
from rich.markdown import Markdown

from agentdeck.bus.events import CompleteEvent, OutputEvent
from agentdeck.config import load_config
from agentdeck.cost import format_cost
from agentdeck.engines.base import THINKING_MODE
from agentdeck.engines.errors import EngineError
from agentdeck.engines.types import LogChannel
from agentdeck.orchestrator import build_orchestrator

console = Console()


def run_command(
    project: str = typer.Argument(..., help="Project name (groups history)."),
    path: Path = typer.Argument(..., help="Project directory the engine works in."),  # noqa: B008
    prompt: str = typer.Argument(..., help="What the engine should do."),
    engine: str | None = typer.Option(None, "--engine", "-e", help="Engine name."),  # noqa: B008
    conversation: str | None = typer.Option(  # noqa: B008
        None,
        "--conversation",
        help=(
            "Conversation id for this run. Names the session and its history records only:"
            " conversations and native sessions live in memory, so a later invocation"
            " starts with no context and no resume."
        ),
    ),
    thinking: bool = typer.Option(False, "--thinking", help="Use the engine's reasoning model."),
    no_markdown: bool = typer.Option(False, "--no-markdown", help="Plain text output."),  # noqa: B008
) -> None:
    """Run one prompt on a project and stream the output."""
    from agentdeck.cli.app import state

    config = load_config(state.config_path)
    project_path = path.expanduser().resolve()
    if not project_path.is_dir():
        console.print(f"[red]Project path does not exist: {project_path}[/red]")
        raise typer.Exit(1)

    ok = asyncio.run(
        _run(
            config,
            engine,
            project,
            str(project_path),
            prompt,
            conversation,
            THINKING_MODE if thinking else None,
            no_markdown,
        )
    )
    if not ok:
        raise typer.Exit(1)


async def _run(
    config,
    engine: str | None,
    project: str,
    project_path: str,
    prompt: str,
    conversation: str | None,
    mode: str | None,
    no_markdown: bool,
) -> bool:
    orchestrator = build_orchestrator(config)
    try:
        turn = await orchestrator.start_turn(
            engine, project, project_path, prompt, conversation_id=conversation, mode=mode
        )
    except EngineError as exc:
        console.print(f"[red]{exc}[/red]")
        if exc.hint:
            console.print(f"[dim]{exc.hint}[/dim]")
        return False

    console.print(
        f"[dim]{orchestrator.factory.display_name(turn.engine)} · session {turn.session_id}"
        f" · conversation {turn.conversation_id}[/dim]"
    )

    success = False
    async for event in orchestrator.stream(turn.session_id):
        match event:
            case OutputEvent(entry=entry):
                if entry.channel == LogChannel.STDERR:
                    console.print(f"[red]{entry.content}[/red]")
                elif no_markdown:
                    console.print(entry.content, markup=False)
                else:
                    console.print(Markdown(entry.content))
            case CompleteEvent(result=result):
                success = result.success
                status = "[green]done[/green]" if success else f"[red]failed: {result.error}[/red]"
                cost = format_cost(result.cost.total_cost) if result.cost else "n/a"
                console.print(f"\n{status} in {result.duration / 1000:.1f}s, cost {cost}")

    await orchestrator.wait_idle()
    return success
