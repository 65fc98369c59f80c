"""agentdeck history: past sessions of a project, newest first."""

from __future__ import annotations

from datetime import datetime

import typer
from rich.console import Console
from rich.table import Table

from agentdeck.config import load_config
from agentdeck.engines.errors import UnsupportedEngineError
from agentdeck.orchestrator import build_orchestrator

console = Console()


def history_command(
    project: str = typer.Argument(..., help="Project name."),
    engine: str | None = typer.Option(None, "--engine", "-e", help="Engine name."),  # noqa: B008
    limit: int | None = typer.Option(None, "--limit", "-n", help="Maximum records."),  # noqa: B008
) -> None:
    """Show past sessions of a project."""
    from agentdeck.cli.app import state

    config = load_config(state.config_path)
    factory = build_orchestrator(config).factory
    try:
        records = factory.get_history(engine, project, limit or config.history.default_limit)
    except UnsupportedEngineError as exc:
        console.print(f"[red]{exc}[/red]")
        raise typer.Exit(1) from exc

    if not records:
        console.print(f"[dim]No history for {project}.[/dim]")
        return

    table = Table(title=f"History: {project}")
    table.add_column("Started")
    table.add_column("Session", style="dim")
    table.add_column("Prompt")
    table.add_column("Duration", justify="right")
    table.add_column("Result")

    for record in records:
        started = datetime.fromtimestamp(record.timestamp / 1000).strftime("%Y-%m-%d %H:%M:%S")
        prompt = record.prompt if len(record.prompt) <= 60 else record.prompt[:57] + "..."
        result = "[green]ok[/green]" if record.success else f"[red]{record.error or 'failed'}[/red]"
        table.add_row(started, record.id, prompt, f"{record.duration / 1000:.1f}s", result)

    console.print(table)
