"""CLI package exports."""

from .app import app, main
from .config import CLISettings, load_cli_settings
from .logging import configure_logging, progress_spinner

__all__ = [
    "app",
    "main",
    "CLISettings",
    "configure_logging",
    "load_cli_settings",
    "progress_spinner",
]
