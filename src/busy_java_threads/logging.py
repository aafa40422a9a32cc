"""Console messages and structlog configuration.

This module provides:
1. Icon vocabulary (Icon class namespace)
2. Core console functions (log, info, error) with Rich markup
3. Structlog configuration (configure)

Console messages go to stderr so they never mix with the stack report on
stdout. Structured diagnostics go through structlog to stderr (human
format) and, when configured, to a JSON Lines file.
"""

from __future__ import annotations

import logging
import logging.handlers
import sys
from typing import TYPE_CHECKING

import structlog
from rich.console import Console

if TYPE_CHECKING:
    from busy_java_threads.config import Config

_console = Console(stderr=True, highlight=False)


class Icon:
    """Icon vocabulary for console output."""

    FAIL = "[bold red]✗[/]"
    SIGNAL = "⚡"


_LEVEL_STYLES = {
    "info": "[bright_blue]\\[info][/]",
    "error": "[bold red]\\[err][/] ",
}


def log(level: str, msg: str, icon: str = "") -> None:
    """Print a console message with a level tag.

    Args:
        level: Log level (info, error)
        msg: Message to print (can include Rich markup)
        icon: Optional icon to show after level (e.g., Icon.FAIL)
    """
    lvl = _LEVEL_STYLES.get(level, f"[{level}]")
    icon_part = f" {icon}" if icon else ""
    _console.print(f"{lvl}{icon_part} {msg}")


def info(msg: str, icon: str = "") -> None:
    """Log an info message."""
    log("info", msg, icon)


def error(msg: str, icon: str = "") -> None:
    """Log an error message."""
    log("error", msg, icon)


def interrupted(rounds: int) -> None:
    """Log a run stopped by the operator."""
    suffix = "s" if rounds != 1 else ""
    info(f"Interrupted after [cyan]{rounds}[/] round{suffix}", Icon.SIGNAL)


def _level_for(config: Config, verbose: bool) -> int:
    if verbose:
        return logging.DEBUG
    return logging.getLevelName(config.logging.level.upper())


def configure(config: Config, verbose: bool = False) -> None:
    """Configure structlog through stdlib logging.

    Stderr gets human-readable lines; the optional log file gets JSON Lines
    for machine parsing.

    Args:
        config: Application config (log level and file)
        verbose: Force debug level on stderr
    """
    level = _level_for(config, verbose)
    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.TimeStamper(fmt="iso", utc=False, key="ts"),
        structlog.processors.add_log_level,
        structlog.processors.format_exc_info,
    ]

    stdlib_root = logging.getLogger()
    stdlib_root.handlers.clear()
    stdlib_root.setLevel(level)

    stderr_handler = logging.StreamHandler(sys.stderr)
    stderr_handler.setLevel(level)
    stderr_handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            processor=structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty()),
            foreign_pre_chain=shared_processors,
        )
    )
    stdlib_root.addHandler(stderr_handler)

    if config.log_path is not None:
        config.log_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.handlers.RotatingFileHandler(
            config.log_path,
            maxBytes=config.logging.max_bytes,
            backupCount=config.logging.backup_count,
            encoding="utf-8",
        )
        file_handler.setLevel(level)
        file_handler.setFormatter(
            structlog.stdlib.ProcessorFormatter(
                processor=structlog.processors.JSONRenderer(),
                foreign_pre_chain=shared_processors,
            )
        )
        stdlib_root.addHandler(file_handler)

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.filter_by_level,
            structlog.processors.TimeStamper(fmt="iso", utc=False, key="ts"),
            structlog.processors.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )
