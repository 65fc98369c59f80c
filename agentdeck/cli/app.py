"""Main CLI application: registers all subcommands and global options."""

from __future__ import annotations

from pathlib import Path

import typer

from agentdeck.logging import setup_logging

app = typer.Typer(
    name="agentdeck",
    help="agentdeck - Run Claude Code, DeepSeek and Codex sessions against local projects.",
    no_args_is_help=True,
    pretty_exceptions_enable=False,
)


class _GlobalState:
    """Shared state set by the top-level callback, consumed by subcommands."""

    config_path: Path | None = None
    verbose: bool = False
    quiet: bool = False


state = _GlobalState()


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show DEBUG-level logs."),  # noqa: B008
    quiet: bool = typer.Option(False, "--quiet", "-q", help="Suppress logs below WARNING."),  # noqa: B008
    config: Path | None = typer.Option(None, "--config", "-c", help="Path to config.json."),  # noqa: B008
) -> None:
    """agentdeck - Run Claude Code, DeepSeek and Codex sessions against local projects."""
    state.verbose = verbose
    state.quiet = quiet
    state.config_path = config
    setup_logging(verbose=verbose, quiet=quiet)


# Subcommands import state from this module, so register them last.
from agentdeck.cli.engines_cmd import engines_command  # noqa: E402
from agentdeck.cli.history_cmd import history_command  # noqa: E402
from agentdeck.cli.run_cmd import run_command  # noqa: E402

app.command(name="run", help="Run one prompt on a project and stream the output.")(run_command)
app.command(name="engines", help="List configured engines and their availability.")(
    engines_command
)
app.command(name="history", help="Show past sessions of a project.")(history_command)
