"""CLI application entrypoint built with Typer."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import List, NoReturn, Optional, Sequence

import typer

from SpecialtyMapper.mapping.calibration import MappingCalibrationSuite
from SpecialtyMapper.mapping.config import (
    DEFAULT_PRESET,
    PRESETS,
    MappingConfig,
    create_custom_config,
    resolve_config,
)
from SpecialtyMapper.mapping.exceptions import SourceAdapterError, SpecialtyMappingError
from SpecialtyMapper.mapping.loaders import DataStores, load_default_stores, load_overrides, load_stores, load_test_cases
from SpecialtyMapper.mapping.models import MappingDecision, MappingResult, OverrideMapping
from SpecialtyMapper.mapping.pipeline import MappingPipeline
from SpecialtyMapper.mapping.reporting import MappingReport, review_queue, write_decisions_csv
from SpecialtyMapper.mapping.storage import MappingStorage
from SpecialtyMapper.mapping.telemetry import MappingTelemetry
from SpecialtyMapper.sources import available_sources, get_adapter

from .config import CLISettings, load_cli_settings
from .logging import configure_logging, progress_spinner

CLI_VERSION = "0.1.0"

app = typer.Typer(help="SpecialtyMapper command line interface")


def _fail(message: str) -> NoReturn:
    typer.echo(f"[error] {message}", err=True)
    raise typer.Exit(code=1)


def _settings(
    data_dir: Optional[Path],
    log_format: Optional[str],
    log_file: Optional[Path],
    verbose: bool,
) -> CLISettings:
    try:
        return load_cli_settings(data_dir=data_dir, log_format=log_format, log_path=log_file, verbose=verbose)
    except SpecialtyMappingError as exc:
        _fail(str(exc))


def _mapping_config(config: str, threshold: Optional[float]) -> MappingConfig:
    resolved = resolve_config(config)
    if threshold is None:
        return resolved
    return create_custom_config(resolved, min_decision_threshold=threshold)


def _stores(settings: CLISettings, overrides: Sequence[OverrideMapping]) -> DataStores:
    if settings.data_dir is not None:
        return load_stores(settings.data_dir, extra_overrides=overrides)
    return load_default_stores().with_overrides(overrides)


def _print_summary(result: MappingResult, verbose: bool) -> None:
    statistics = result.statistics
    typer.echo(f"Processed: {statistics.total_processed}")
    typer.echo(f"Auto-decided: {statistics.auto_decided}")
    typer.echo(f"Undecided: {statistics.undecided}")
    typer.echo(f"Auto-decide rate: {statistics.auto_decide_rate:.1f}%")
    typer.echo(f"Average confidence: {statistics.average_confidence:.3f}")
    if not verbose:
        return
    pending = review_queue(result.decisions)
    if pending:
        typer.echo("Undecided inputs:")
    for decision in pending:
        typer.echo(f"  - {_describe(decision)}")


def _describe(decision: MappingDecision) -> str:
    line = f"[{decision.input.source}] {decision.input.raw_name}"
    if decision.notes:
        line = f"{line}: {decision.notes}"
    return line


@app.command("map-file")
def map_file(
    input_path: Optional[Path] = typer.Option(None, "--in", help="Survey file to map (.csv, .txt, .xlsx, .xls)."),
    source: Optional[str] = typer.Option(None, "--source", help="Survey source name (Gallagher, SullivanCotter, MGMA)."),
    output_path: Optional[Path] = typer.Option(None, "--out", help="Destination CSV for the decisions."),
    config: str = typer.Option(DEFAULT_PRESET, "--config", help="Preset name or path to a TOML/JSON config file."),
    threshold: Optional[float] = typer.Option(
        None,
        "--threshold",
        help="Minimum confidence for an automatic decision; overrides the preset or config file threshold.",
    ),
    data_dir: Optional[Path] = typer.Option(None, "--data-dir", help="Directory with taxonomy, synonyms and rules."),
    overrides: Optional[Path] = typer.Option(None, "--overrides", help="Override mappings file (JSON or YAML)."),
    cache: Optional[Path] = typer.Option(None, "--cache", help="DuckDB file caching accepted mappings."),
    report_dir: Optional[Path] = typer.Option(None, "--report-dir", help="Directory for summary.json."),
    workers: Optional[int] = typer.Option(None, "--workers", min=1, help="Worker threads for the batch."),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output and logging."),
    log_format: Optional[str] = typer.Option(None, "--log-format", help="Log format: text or json."),
    log_file: Optional[Path] = typer.Option(None, "--log-file", help="Append logs to this file."),
) -> None:
    """Map every specialty in a survey file and write the decisions as CSV."""

    missing = [
        flag
        for flag, value in (("--in", input_path), ("--source", source), ("--out", output_path))
        if value is None
    ]
    if missing:
        _fail(f"missing required option(s): {', '.join(missing)}")

    settings = _settings(data_dir, log_format, log_file, verbose)
    logger = configure_logging(settings.log_path, settings.log_format, settings.verbose)

    if not input_path.is_file():
        _fail(f"input file {input_path} does not exist")
    try:
        adapter = get_adapter(source)
    except SourceAdapterError as exc:
        _fail(str(exc))

    storage: Optional[MappingStorage] = None
    try:
        mapping_config = _mapping_config(config, threshold)
        extra_overrides: List[OverrideMapping] = list(load_overrides(overrides)) if overrides else []
        stores = _stores(settings, extra_overrides)
        if cache is not None:
            storage = MappingStorage(output_root=cache.parent, duckdb_path=cache)
            stores = stores.with_overrides(storage.accepted_overrides())
        engine = stores.build_engine(mapping_config)
        if storage is not None:
            storage.normalizer = engine.normalizer
        inputs = adapter.to_raw_inputs(input_path)
        pipeline = MappingPipeline(
            engine=engine,
            telemetry=MappingTelemetry(logger),
            storage=storage,
            workers=workers,
        )
        with progress_spinner(
            f"Mapping specialties from {adapter.source}",
            total=len(inputs),
            done=f"Mapped {len(inputs)} specialties from {adapter.source}",
        ):
            result = pipeline.run(inputs)
    except SpecialtyMappingError as exc:
        _fail(str(exc))
    finally:
        if storage is not None:
            storage.close()

    try:
        write_decisions_csv(result.decisions, output_path)
        if report_dir is not None:
            MappingReport(report_dir).write_summary(result)
    except OSError as exc:
        _fail(f"unable to write output {output_path}: {exc}")

    logger.info(
        "map-file completed",
        extra={"payload": {"input": str(input_path), "output": str(output_path), "source": adapter.source}},
    )
    _print_summary(result, settings.verbose)


@app.command("presets")
def presets() -> None:
    """Print the named configuration presets as JSON."""

    payload = {
        "default": DEFAULT_PRESET,
        "presets": {name: preset.to_dict() for name, preset in PRESETS.items()},
    }
    typer.echo(json.dumps(payload, indent=2, sort_keys=True))


@app.command("sources")
def sources() -> None:
    """List the registered survey sources."""

    for name in available_sources():
        typer.echo(name)


@app.command("evaluate")
def evaluate(
    cases_path: Path = typer.Argument(..., help="Calibration cases file (JSON or YAML)."),
    config: str = typer.Option(DEFAULT_PRESET, "--config", help="Preset name or path to a TOML/JSON config file."),
    data_dir: Optional[Path] = typer.Option(None, "--data-dir", help="Directory with taxonomy, synonyms and rules."),
    min_accuracy: Optional[float] = typer.Option(
        None, "--min-accuracy", min=0.0, max=1.0, help="Exit with status 1 when accuracy falls below this value."
    ),
    workers: Optional[int] = typer.Option(None, "--workers", min=1, help="Worker threads for the run."),
) -> None:
    """Run the calibration cases and print the metrics as JSON."""

    settings = _settings(data_dir, None, None, False)
    try:
        mapping_config = resolve_config(config)
        cases = load_test_cases(cases_path)
        engine = _stores(settings, ()).build_engine(mapping_config)
    except SpecialtyMappingError as exc:
        _fail(str(exc))
    result = MappingCalibrationSuite(engine, workers=workers).run(cases)
    typer.echo(json.dumps(result.to_dict(), indent=2, sort_keys=True))
    if min_accuracy is not None and result.accuracy < min_accuracy:
        logging.getLogger(__name__).warning(
            "calibration below target", extra={"payload": {"accuracy": result.accuracy, "target": min_accuracy}}
        )
        _fail(f"accuracy {result.accuracy:.3f} is below the required {min_accuracy:.3f}")


@app.command("version")
def version() -> None:
    typer.echo(CLI_VERSION)


def main() -> None:
    app()


__all__ = ["app", "main"]
