"""agentdeck engines: configured engines and whether their backend is reachable."""

from __future__ import annotations

import asyncio

from rich.console import Console
from rich.table import Table

from agentdeck.config import load_config
from agentdeck.orchestrator import build_orchestrator

console = Console()


def engines_command() -> None:
    """List configured engines and their availability."""
    from agentdeck.cli.app import state

    config = load_config(state.config_path)
    orchestrator = build_orchestrator(config)
    factory = orchestrator.factory

    table = Table(title="Engines")
    table.add_column("Name", style="bold")
    table.add_column("Display name")
    table.add_column("Model")
    table.add_column("Default")
    table.add_column("Available")

    for info in factory.available_engines():
        name = info["name"]
        available = asyncio.run(factory.check_engine_available(name))
        profile = config.engines.profiles[name]
        table.add_row(
            name,
            info["display_name"],
            profile.model or "[dim]backend default[/dim]",
            "✓" if info["is_default"] else "",
            "[green]yes[/green]" if available else "[red]no[/red]",
        )

    console.print(table)
