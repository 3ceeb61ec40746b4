from __future__ import annotations

import json
import logging
from pathlib import Path

import pytest

from SpecialtyMapper.cli import CLISettings, configure_logging, load_cli_settings
from SpecialtyMapper.cli.logging import LOGGER_NAME, progress_spinner
from SpecialtyMapper.mapping import MappingConfigError

pytestmark = pytest.mark.usefixtures("reset_logging")


def test_settings_default_to_text_without_paths() -> None:
    settings = load_cli_settings(env={})

    assert settings == CLISettings(data_dir=None, log_format="text", log_path=None, verbose=False)


def test_environment_supplies_missing_options() -> None:
    env = {"SM_DATA_DIR": "~/survey-data", "SM_LOG_FORMAT": "JSON", "SM_LOG_PATH": "/tmp/mapper.log"}

    settings = load_cli_settings(env=env)

    assert settings.data_dir == Path("~/survey-data").expanduser()
    assert settings.log_format == "json"
    assert settings.log_path == Path("/tmp/mapper.log")


def test_options_win_over_environment(tmp_path: Path) -> None:
    env = {"SM_DATA_DIR": "/srv/data", "SM_LOG_FORMAT": "json"}

    settings = load_cli_settings(data_dir=tmp_path, log_format="text", verbose=True, env=env)

    assert settings.data_dir == tmp_path
    assert settings.log_format == "text"
    assert settings.verbose


def test_blank_environment_values_are_ignored() -> None:
    settings = load_cli_settings(env={"SM_DATA_DIR": "  ", "SM_LOG_PATH": ""})

    assert settings.data_dir is None
    assert settings.log_path is None


def test_unknown_log_format_is_rejected() -> None:
    with pytest.raises(MappingConfigError, match="log format must be one of text, json"):
        load_cli_settings(log_format="xml", env={})


def test_json_log_file(tmp_path: Path) -> None:
    path = tmp_path / "logs" / "mapper.log"

    logger = configure_logging(path, "json", verbose=False)
    logger.info("mapping finished", extra={"payload": {"rows": 3}})
    for handler in logger.handlers:
        handler.flush()

    assert logger.name == LOGGER_NAME
    assert not logger.propagate
    records = [json.loads(line) for line in path.read_text(encoding="utf-8").splitlines()]
    assert records[-1]["message"] == "mapping finished"
    assert records[-1]["payload"] == {"rows": 3}
    assert records[-1]["levelname"] == "INFO"


def test_console_level_follows_verbosity() -> None:
    configure_logging(None, "text", verbose=False)
    quiet = [handler.level for handler in logging.getLogger(LOGGER_NAME).handlers]

    configure_logging(None, "text", verbose=True)
    loud = [handler.level for handler in logging.getLogger(LOGGER_NAME).handlers]

    assert quiet == [logging.WARNING]
    assert loud == [logging.DEBUG]


def test_progress_spinner_counts_items_and_prints_completion(capsys: pytest.CaptureFixture[str]) -> None:
    with progress_spinner("Mapping specialties", total=4, done="Mapped 4 specialties") as progress:
        assert progress.tasks[0].total == 4

    assert progress.tasks[0].completed == 4
    assert progress.tasks[0].finished
    captured = capsys.readouterr()
    assert "Mapped 4 specialties" in captured.err
    assert captured.out == ""


def test_progress_spinner_skips_completion_on_error(capsys: pytest.CaptureFixture[str]) -> None:
    with pytest.raises(RuntimeError):
        with progress_spinner("Mapping specialties", done="Mapped 0 specialties"):
            raise RuntimeError("boom")

    assert "Mapped 0 specialties" not in capsys.readouterr().err
