from __future__ import annotations

import asyncio
import json
import logging
from importlib.metadata import PackageNotFoundError, version
from pathlib import Path

import typer

from crop4mkv.aggregate.reducers import normalize_strategy
from crop4mkv.batch import BatchReport, resolve_input_paths, run_batch
from crop4mkv.config import Settings, load_settings
from crop4mkv.errors import CropDetectionError
from crop4mkv.guard import GuardStore
from crop4mkv.ingest.process import missing_tools
from crop4mkv.logging_config import configure_logging
from crop4mkv.printing import print_error

app = typer.Typer(help="Analyze the crop margins of videos and store them as MKV crop flags.")
config_app = typer.Typer(help="Configuration commands.")

app.add_typer(config_app, name="config")

logger = logging.getLogger(__name__)

LICENSE_TEXT = """\
crop4mkv

License:            MPL2
Link License Text:  https://www.mozilla.org/en-US/MPL/2.0/

Runtime dependencies: typer (MIT), pydantic (MIT), PyYAML (MIT).
External tools: FFmpeg (LGPL/GPL), MKVToolNix (GPL-2.0).
"""


def _package_version() -> str:
    try:
        return version("crop4mkv")
    except PackageNotFoundError:
        return "0.0.0"


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(_package_version())
        raise typer.Exit()


@app.callback()
def main(
    show_version: bool = typer.Option(
        False,
        "--version",
        callback=_version_callback,
        is_eager=True,
        help="Print version and exit.",
    ),
) -> None:
    """Analyze the crop margins of videos and store them as MKV crop flags."""


def _bootstrap(config_path: Path | None) -> Settings:
    settings = load_settings(config_path)
    configure_logging(settings.logging)
    logger.debug("Loaded runtime settings from %s", config_path)
    return settings


def _apply_overrides(settings: Settings, **overrides: object) -> Settings:
    data = settings.model_dump(mode="python")
    for dotted, value in overrides.items():
        if value is None:
            continue
        section, key = dotted.split("__", 1)
        data[section][key] = value
    return Settings.model_validate(data)


@config_app.command("show")
def show_config(
    config_path: Path | None = typer.Option(
        None,
        "--config",
        "-c",
        envvar="CROP4MKV_CONFIG",
        help="Path to YAML configuration file.",
    )
) -> None:
    """Print resolved runtime configuration."""

    settings = _bootstrap(config_path)
    typer.echo(json.dumps(settings.model_dump(mode="json"), indent=2))


@app.command("license")
def show_license() -> None:
    """Print license information."""

    typer.echo(LICENSE_TEXT)


@app.command("crop")
def crop(
    path: Path = typer.Argument(..., help="Path of folder or mkv file."),
    config_path: Path | None = typer.Option(
        None,
        "--config",
        "-c",
        envvar="CROP4MKV_CONFIG",
        help="Path to YAML configuration file.",
    ),
    dry_run: bool = typer.Option(False, "--dry-run", "-d", help="When set does not write tags to file."),
    overwrite: bool = typer.Option(
        False, "--overwrite", "-o", help="When set does not check if tags are already set."
    ),
    no_filter: bool = typer.Option(False, "--no-filter", help="Disables filtering outliers."),
    limit: int | None = typer.Option(None, help="Pixels with brightness below the limit are detected as black."),
    round_to: int | None = typer.Option(None, "--round", help="Round detected width and height to this multiple."),
    parts: int | None = typer.Option(None, help="At how many points the video is checked. More parts give better coverage."),
    max_duration: int | None = typer.Option(None, help="Maximum duration per part in seconds."),
    concurrency: int | None = typer.Option(
        None, help="How many files are processed at once. Keeps memory in check on huge folders."
    ),
    strategy: str | None = typer.Option(None, help="Axis reduction strategy: safest or most-seen."),
    guard_db: Path | None = typer.Option(None, help="SQLite file remembering already processed files."),
    verbose: bool = typer.Option(False, "--verbose", help="Prints more information."),
) -> None:
    """Detect the safe crop of a file or every mkv in a folder and write it as metadata."""

    settings = _bootstrap(config_path)
    try:
        settings = _apply_overrides(
            settings,
            batch__dry_run=dry_run or None,
            batch__overwrite=overwrite or None,
            batch__concurrency=concurrency,
            batch__verbose=verbose or None,
            detection__filter_outliers=False if no_filter else None,
            detection__limit=limit,
            detection__round=round_to,
            detection__parts=parts,
            detection__max_duration_seconds=max_duration,
            detection__strategy=normalize_strategy(strategy) if strategy else None,
            guard__db_path=guard_db,
        )
    except ValueError as exc:
        print_error(f"Error: {exc}")
        raise typer.Exit(code=2) from exc

    absent = missing_tools()
    if absent:
        for tool in absent:
            print_error(f"ERROR: {tool} not in PATH")
        raise typer.Exit(code=1)

    try:
        paths = asyncio.run(resolve_input_paths(path, settings.batch.extension))
    except CropDetectionError as exc:
        print_error(f"ERROR (while reading path):\n{exc}")
        raise typer.Exit(code=1) from exc

    report = _run(paths, settings)

    for failed_path, error in report.unexpected_errors:
        print_error(f"Unexpected error while processing '{failed_path}': {error!r}")

    typer.echo(
        f"Processed {len(report.results)} file(s): "
        f"{len(report.results) - len(report.errored)} ok, {len(report.errored)} failed.",
        err=True,
    )
    raise typer.Exit(code=report.exit_code)


def _run(paths: list[str], settings: Settings) -> BatchReport:
    if settings.guard.db_path is None:
        return asyncio.run(run_batch(paths, settings))

    with GuardStore(settings.guard.db_path) as guard:
        return asyncio.run(run_batch(paths, settings, guard=guard))


if __name__ == "__main__":
    app()
