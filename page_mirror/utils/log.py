"""
Console and logging helpers built on rich.

Every component logs through a child of the "page_mirror" logger, so one
call to setup_logger() configures the whole package.
"""

import logging
from typing import Optional

from rich.console import Console
from rich.logging import RichHandler
from rich.progress import BarColumn, Progress, SpinnerColumn, TaskProgressColumn, TextColumn


ROOT_LOGGER = "page_mirror"

FILE_LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

# Shared by log records, status lines and progress bars
console = Console()


def level_for(verbose: bool = False, quiet: bool = False) -> int:
    """Map CLI verbosity flags to a logging level."""
    if verbose:
        return logging.DEBUG
    if quiet:
        return logging.WARNING
    return logging.INFO


def setup_logger(
    level: int = logging.INFO,
    log_file: Optional[str] = None
) -> logging.Logger:
    """
    Configure the package logger.

    Replaces any handlers installed by an earlier call, so it is safe to
    call again with a different level.

    Args:
        level: Logging level for console and file output
        log_file: Optional path that receives a plain-text copy of the log

    Returns:
        The package logger
    """
    logger = logging.getLogger(ROOT_LOGGER)
    logger.setLevel(level)
    logger.handlers.clear()

    # URLs are full of square brackets, so rich markup stays off
    handler = RichHandler(
        console=console,
        show_path=False,
        markup=False,
        rich_tracebacks=True
    )
    handler.setFormatter(logging.Formatter("%(message)s"))
    logger.addHandler(handler)

    if log_file:
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setFormatter(logging.Formatter(FILE_LOG_FORMAT))
        logger.addHandler(file_handler)

    logger.propagate = False
    return logger


def get_logger(component: Optional[str] = None) -> logging.Logger:
    """Return the logger of a component, e.g. get_logger("downloader")."""
    root = logging.getLogger(ROOT_LOGGER)
    if not root.handlers:
        setup_logger()
    return root.getChild(component) if component else root


def is_quiet() -> bool:
    """True when the package logger is set quieter than INFO."""
    return logging.getLogger(ROOT_LOGGER).getEffectiveLevel() > logging.INFO


def create_progress() -> Progress:
    """
    Progress bar for long-running batches.

    Hidden in quiet mode or when the console is not a terminal.
    """
    quiet = is_quiet()
    return Progress(
        SpinnerColumn(),
        TextColumn("{task.description}"),
        BarColumn(),
        TaskProgressColumn(),
        console=console,
        transient=True,
        disable=quiet or not console.is_terminal
    )


def print_status(message: str, style: str = "bold blue") -> None:
    console.print(message, style=style, markup=False, highlight=False)


def print_error(message: str) -> None:
    print_status(f"❌ {message}", "bold red")


def print_success(message: str) -> None:
    if not is_quiet():
        print_status(f"✅ {message}", "bold green")


def print_warning(message: str) -> None:
    if not is_quiet():
        print_status(f"⚠️ {message}", "bold yellow")


def print_info(message: str) -> None:
    if not is_quiet():
        print_status(f"ℹ️ {message}", "bold cyan")
