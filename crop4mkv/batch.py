from __future__ import annotations

import asyncio
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path

from crop4mkv.config import Settings
from crop4mkv.errors import PathError
from crop4mkv.guard import GuardStore
from crop4mkv.pipeline import FileResult, PipelineState, process_file

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class BatchReport:
    results: list[FileResult] = field(default_factory=list)
    unexpected_errors: list[tuple[str, BaseException]] = field(default_factory=list)

    @property
    def errored(self) -> list[FileResult]:
        return [result for result in self.results if result.state is PipelineState.ERRORED]

    @property
    def exit_code(self) -> int:
        return 1 if self.unexpected_errors else 0


async def resolve_input_paths(root: str | Path, extension: str = ".mkv") -> list[str]:
    """Expand ``root`` into the list of files to process."""

    source = Path(root).expanduser()
    if not source.exists():
        raise PathError(f"ERROR: File does not exist: '{root}'")
    if not os.access(source, os.R_OK):
        raise PathError(f"ERROR: Path is not readable: '{root}'")

    if source.is_dir():
        return await asyncio.to_thread(_scan_directory, source.resolve(), extension)
    if source.is_file():
        return [str(source.resolve())]
    raise PathError("Path given is neither file nor folder.")


def _scan_directory(root: Path, extension: str) -> list[str]:
    found: list[str] = []
    for dirpath, _, filenames in os.walk(root):
        for name in filenames:
            candidate = Path(dirpath) / name
            if name.endswith(extension) and candidate.is_file():
                found.append(str(candidate))
    return sorted(found)


async def run_batch(paths: list[str], settings: Settings, *, guard: GuardStore | None = None) -> BatchReport:
    """Run the file pipeline over ``paths`` with bounded concurrency.

    Completion (and therefore output) order is not defined. Typed per-file
    failures land in the report; any other exception is collected as
    unexpected and makes the batch fail.
    """

    semaphore = asyncio.Semaphore(settings.batch.concurrency)

    async def _limited(path: str) -> FileResult:
        async with semaphore:
            return await process_file(path, settings, guard=guard)

    outcomes = await asyncio.gather(*(_limited(path) for path in paths), return_exceptions=True)

    report = BatchReport()
    for path, outcome in zip(paths, outcomes):
        if isinstance(outcome, FileResult):
            report.results.append(outcome)
            continue
        logger.error("Unexpected failure while processing %s: %r", path, outcome)
        report.unexpected_errors.append((path, outcome))
    return report
