"""loguru sinks for agentdeck.

The CLI callback calls ``setup_logging`` before any command runs. Engine
adapters log per-event traces at DEBUG, so the terminal shows them only with
``--verbose``. The rotating file under ``~/.agentdeck/logs`` always keeps them,
which is where a failed turn's native event sequence can be read back.
"""

from __future__ import annotations

import sys
from pathlib import Path

from loguru import logger

_TERMINAL_FORMAT = "<level>{level:<8}</level> | <cyan>{name}</cyan> - {message}"
_FILE_FORMAT = "{time:YYYY-MM-DD HH:mm:ss.SSS} | {level:<8} | {name}:{function}:{line} - {message}"


def _terminal_level(verbose: bool, quiet: bool) -> str:
    if quiet:
        return "WARNING"
    return "DEBUG" if verbose else "INFO"


def setup_logging(
    verbose: bool = False,
    quiet: bool = False,
    log_dir: Path | None = None,
) -> Path:
    """Replace loguru's default sink with a terminal sink and a session log file.

    Args:
        verbose: Also print per-event engine traces (DEBUG) to stderr.
        quiet: Only print warnings and errors, such as failed turns and
            unknown native events.
        log_dir: Where ``agentdeck.log`` rotates. Defaults to ~/.agentdeck/logs.

    Returns the log file path.
    """
    logger.remove()
    logger.add(
        sys.stderr,
        level=_terminal_level(verbose, quiet),
        format=_TERMINAL_FORMAT,
        colorize=True,
    )

    directory = log_dir or (Path.home() / ".agentdeck" / "logs")
    directory.mkdir(parents=True, exist_ok=True)
    log_file = directory / "agentdeck.log"
    logger.add(
        log_file,
        level="DEBUG",
        format=_FILE_FORMAT,
        rotation="10 MB",
        retention=5,
        encoding="utf-8",
        enqueue=True,
    )
    return log_file
