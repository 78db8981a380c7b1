"""Rich console and logging setup shared by the CLI commands."""

from __future__ import annotations

import logging

from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape

console = Console()
err_console = Console(stderr=True)

LOGGER_NAME = "leakscope"


def print_error(message: str) -> None:
    err_console.print(f"[red]Error:[/red] {escape(message)}")


def setup_logging(debug: bool = False, no_color: bool = False) -> logging.Logger:
    """
    Route leakscope log records to stderr through rich.

    Parameters:
        debug: Log at DEBUG instead of WARNING.
        no_color: Plain output (CI logs).

    Returns:
        The package logger.
    """
    logger = logging.getLogger(LOGGER_NAME)
    for handler in list(logger.handlers):
        if isinstance(handler, RichHandler):
            logger.removeHandler(handler)

    handler = RichHandler(
        console=Console(stderr=True, no_color=no_color),
        show_path=debug,
        show_time=debug,
        markup=False,
        rich_tracebacks=debug,
    )
    handler.setFormatter(logging.Formatter("%(message)s"))
    logger.addHandler(handler)
    logger.setLevel(logging.DEBUG if debug else logging.WARNING)
    return logger
