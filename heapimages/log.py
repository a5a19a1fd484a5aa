"""Console output and logging setup."""

import logging
from typing import Optional

from rich.console import Console
from rich.logging import RichHandler


console = Console()
err_console = Console(stderr=True)

PACKAGE_LOGGER = 'heapimages'


def setup_logging(verbose: bool = False, level: Optional[int] = None) -> logging.Logger:
    """Route package logging through rich.

    Progress messages are shown only when verbose; warnings and errors
    always are.

    Args:
        verbose: Show INFO messages
        level: Explicit level, overrides verbose

    Returns:
        The package logger
    """
    if level is None:
        level = logging.INFO if verbose else logging.WARNING

    logger = logging.getLogger(PACKAGE_LOGGER)
    logger.setLevel(level)
    if not any(isinstance(handler, RichHandler) for handler in logger.handlers):
        handler = RichHandler(console=err_console, show_path=False, markup=False)
        handler.setFormatter(logging.Formatter('%(message)s'))
        logger.addHandler(handler)
    logger.propagate = False
    return logger


def print_message(message: str, style: Optional[str] = None) -> None:
    """Print message with optional styling."""
    console.print(message, style=style)


def print_error(message: str) -> None:
    err_console.print(f"[red]Error:[/red] {message}", highlight=False)


def print_warning(message: str) -> None:
    console.print(f"[yellow]Warning:[/yellow] {message}")


def print_success(message: str) -> None:
    console.print(f"[green]Success:[/green] {message}")
