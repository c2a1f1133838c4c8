from __future__ import annotations

import logging
import math
import shutil

import typer

from crop4mkv.models import Crop

logger = logging.getLogger(__name__)


class FileLog:
    """Private output buffer for one file's pipeline.

    Lines are collected while the file is processed and written with a single
    echo once the pipeline finishes, so concurrently processed files never
    interleave their output.
    """

    def __init__(self, verbose: bool = False) -> None:
        self.verbose = verbose
        self._lines: list[str] = []

    def _append(self, message: str, fg: str | None = None) -> None:
        logger.debug(message)
        self._lines.append(typer.style(message, fg=fg) if fg else message)

    def info(self, message: str) -> None:
        self._append(message, typer.colors.CYAN)

    def warn(self, message: str) -> None:
        self._append(message, typer.colors.YELLOW)

    def ok(self, message: str) -> None:
        self._append(message, typer.colors.BRIGHT_GREEN)

    def error(self, message: str) -> None:
        self._append(message, typer.colors.RED)

    def command(self, message: str) -> None:
        self._append(message, typer.colors.MAGENTA)

    def debug(self, message: str) -> None:
        if self.verbose:
            self._append(message, typer.colors.BRIGHT_BLACK)
        else:
            logger.debug(message)

    def separator(self) -> None:
        self._lines.append("=" * shutil.get_terminal_size((160, 24)).columns)

    @property
    def lines(self) -> list[str]:
        return list(self._lines)

    def flush(self) -> None:
        if not self._lines:
            return
        typer.echo("\n".join(self._lines))
        self._lines.clear()


def print_error(message: str) -> None:
    typer.echo(typer.style(message, fg=typer.colors.RED), err=True)


def crop_to_string(crop: Crop) -> str:
    return (
        "Crop:\n"
        f"  - left:   {crop.left}\n"
        f"  - top:    {crop.top}\n"
        f"  - right:  {crop.right}\n"
        f"  - bottom: {crop.bottom}"
    )


def secs_to_time_string(secs: float) -> str:
    """Format seconds as ``HH:MM:SS``, dropping fractions."""

    hours = math.floor(secs / 60 / 60)
    minutes = math.floor((secs / 60) % 60)
    seconds = math.floor(secs % 60)
    return f"{hours:02d}:{minutes:02d}:{seconds:02d}"
