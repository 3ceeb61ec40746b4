"""Environment-aware settings for the SpecialtyMapper CLI."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional

from SpecialtyMapper.mapping.exceptions import MappingConfigError

from .logging import LOG_FORMATS

ENV_DATA_DIR = "SM_DATA_DIR"
ENV_LOG_FORMAT = "SM_LOG_FORMAT"
ENV_LOG_PATH = "SM_LOG_PATH"


def _expand(path: Optional[str | Path]) -> Optional[Path]:
    if path is None or str(path).strip() == "":
        return None
    return Path(path).expanduser()


@dataclass(frozen=True)
class CLISettings:
    """Runtime settings after command-line options and environment are merged."""

    data_dir: Optional[Path]
    log_format: str
    log_path: Optional[Path]
    verbose: bool = False


def load_cli_settings(
    *,
    data_dir: Optional[Path] = None,
    log_format: Optional[str] = None,
    log_path: Optional[Path] = None,
    verbose: bool = False,
    env: Optional[Mapping[str, str]] = None,
) -> CLISettings:
    """Resolve settings; explicit options win over ``SM_*`` environment variables."""

    env = os.environ if env is None else env
    resolved_format = (log_format or env.get(ENV_LOG_FORMAT) or "text").strip().lower()
    if resolved_format not in LOG_FORMATS:
        raise MappingConfigError(
            [f"log format must be one of {', '.join(LOG_FORMATS)} (got {resolved_format!r})"]
        )
    return CLISettings(
        data_dir=_expand(data_dir) if data_dir is not None else _expand(env.get(ENV_DATA_DIR)),
        log_format=resolved_format,
        log_path=_expand(log_path) if log_path is not None else _expand(env.get(ENV_LOG_PATH)),
        verbose=verbose,
    )


__all__ = [
    "CLISettings",
    "ENV_DATA_DIR",
    "ENV_LOG_FORMAT",
    "ENV_LOG_PATH",
    "load_cli_settings",
]
