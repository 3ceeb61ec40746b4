"""Logging utilities for the SpecialtyMapper CLI."""

from __future__ import annotations

import logging
import logging.config
import sys
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional

from rich.console import Console
from rich.progress import MofNCompleteColumn, Progress, SpinnerColumn, TextColumn

LOGGER_NAME = "SpecialtyMapper.cli"
LOG_FORMATS = ("text", "json")


def configure_logging(log_path: Optional[Path], log_format: str, verbose: bool) -> logging.Logger:
    """Configure console logging on stderr plus an optional log file.

    Standard output stays reserved for command results.
    """

    formatter = "json" if log_format == "json" else "text"
    level = "DEBUG" if verbose else "WARNING"
    handlers: dict[str, dict[str, object]] = {
        "console": {
            "class": "logging.StreamHandler",
            "stream": sys.stderr,
            "formatter": formatter,
            "level": level,
        }
    }
    if log_path is not None:
        log_path.parent.mkdir(parents=True, exist_ok=True)
        handlers["file"] = {
            "class": "logging.FileHandler",
            "filename": str(log_path),
            "mode": "a",
            "encoding": "utf-8",
            "formatter": formatter,
            "level": "DEBUG" if verbose else "INFO",
        }

    formatters = {
        "text": {
            "format": "%(asctime)s %(levelname)s %(name)s %(message)s",
        },
        "json": {
            "()": "pythonjsonlogger.jsonlogger.JsonFormatter",
            "fmt": "%(asctime)s %(levelname)s %(name)s %(message)s",
        },
    }

    logging.config.dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": formatters,
            "handlers": handlers,
            "loggers": {
                LOGGER_NAME: {
                    "handlers": list(handlers.keys()),
                    "level": "DEBUG" if verbose else "INFO",
                    "propagate": False,
                },
            },
            "root": {
                "level": "DEBUG" if verbose else "INFO",
                "handlers": list(handlers.keys()),
            },
        }
    )
    logger = logging.getLogger(LOGGER_NAME)
    logger.debug(
        "Logging configured",
        extra={"log_path": str(log_path) if log_path else None, "log_format": log_format},
    )
    return logger


@contextmanager
def progress_spinner(message: str, total: Optional[int] = None, done: Optional[str] = None) -> Iterator[Progress]:
    """Show a transient spinner on stderr while a batch runs.

    With ``total`` the spinner also counts items; ``done`` is printed once the
    block finishes without raising.
    """

    console = Console(stderr=True)
    columns = [SpinnerColumn(), TextColumn("{task.description}")]
    if total is not None:
        columns.append(MofNCompleteColumn())
    progress = Progress(*columns, transient=True, console=console)
    task_id = progress.add_task(message, total=total)
    with progress:
        yield progress
    progress.update(task_id, completed=total if total is not None else 1)
    if done:
        console.print(done, highlight=False)
