from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from pathlib import Path

from crop4mkv.aggregate.crop import crop_from_samples
from crop4mkv.config import Settings
from crop4mkv.errors import CropDetectionError
from crop4mkv.export.mkvpropedit import write_crop_metadata
from crop4mkv.features.windows import collect_samples, plan_windows
from crop4mkv.guard import GuardStore
from crop4mkv.ingest.probe import has_crop_metadata, probe_video_info
from crop4mkv.models import Crop
from crop4mkv.printing import FileLog, crop_to_string, secs_to_time_string

logger = logging.getLogger(__name__)


class PipelineState(str, Enum):
    START = "start"
    SKIP_CHECK = "skip_check"
    PROBING = "probing"
    SAMPLING = "sampling"
    AGGREGATING = "aggregating"
    WRITING = "writing"
    DONE = "done"
    ERRORED = "errored"


@dataclass(slots=True)
class FileResult:
    """Outcome of one file's pipeline run."""

    path: str
    state: PipelineState
    crop: Crop | None = None
    skipped_reason: str | None = None
    written: bool = False
    error: CropDetectionError | None = None
    failed_at: PipelineState | None = None

    @property
    def succeeded(self) -> bool:
        return self.state is PipelineState.DONE


class _Run:
    """Tracks the current state so failures can name the stage they hit."""

    def __init__(self, path: str) -> None:
        self.path = path
        self.state = PipelineState.START

    def advance(self, state: PipelineState) -> None:
        logger.debug("%s: %s -> %s", self.path, self.state.value, state.value)
        self.state = state


async def process_file(path: str | Path, settings: Settings, *, guard: GuardStore | None = None) -> FileResult:
    """Detect and persist the crop of one file.

    Expected failures become an ``ERRORED`` result; anything else propagates.
    The file's buffered output is flushed exactly once either way.
    """

    key = str(path)
    log = FileLog(verbose=settings.batch.verbose)
    run = _Run(key)

    # Dry runs only preview; they never record an outcome in the guard store.
    recording_guard = guard if not settings.batch.dry_run else None

    try:
        result = await _crop_file(key, settings, log, run, guard)
    except CropDetectionError as exc:
        log.error(str(exc))
        if exc.cause is not None:
            log.error(str(exc.cause))
        if recording_guard is not None:
            await asyncio.to_thread(recording_guard.set_error, key)
        result = FileResult(path=key, state=PipelineState.ERRORED, error=exc, failed_at=run.state)
    finally:
        log.flush()

    if recording_guard is not None and _handled(result):
        await asyncio.to_thread(recording_guard.set_processed, key)
    return result


def _handled(result: FileResult) -> bool:
    """True when the file needs no further work: written, zero crop or already flagged."""

    if not result.succeeded:
        return False
    return result.written or result.skipped_reason in ("zero-crop", "existing-metadata")


async def _crop_file(
    path: str,
    settings: Settings,
    log: FileLog,
    run: _Run,
    guard: GuardStore | None,
) -> FileResult:
    detection = settings.detection
    batch = settings.batch

    log.separator()
    log.info(f"File: {path}")

    run.advance(PipelineState.SKIP_CHECK)
    if guard is not None and not batch.overwrite and await asyncio.to_thread(guard.file_processed, path):
        log.warn("Skipping file as it is marked as handled in the guard store.")
        run.advance(PipelineState.DONE)
        return FileResult(path=path, state=PipelineState.DONE, skipped_reason="guard")

    if not batch.overwrite and await has_crop_metadata(path):
        log.warn("Skipping file as mkv crop flags where already set.")
        log.info("Use --overwrite flag to still process file.")
        run.advance(PipelineState.DONE)
        return FileResult(path=path, state=PipelineState.DONE, skipped_reason="existing-metadata")

    run.advance(PipelineState.PROBING)
    video = await probe_video_info(path)
    log.info(f"Resolution: {video.width}x{video.height}")
    log.info(f"Length: {secs_to_time_string(video.duration)} hh:mm:ss")

    run.advance(PipelineState.SAMPLING)
    windows = plan_windows(video.duration, parts=detection.parts, max_duration=detection.max_duration_seconds)
    log.debug(f"Sampling {len(windows)} window(s).")
    samples = await collect_samples(path, windows, limit=detection.limit, round_to=detection.round, log=log)

    run.advance(PipelineState.AGGREGATING)
    crop = crop_from_samples(
        video,
        samples,
        strategy=detection.strategy,
        filter_outliers_enabled=detection.filter_outliers,
        log=log,
    )
    log.ok(crop_to_string(crop))

    run.advance(PipelineState.WRITING)
    written = await write_crop_metadata(path, crop, dry_run=batch.dry_run, log=log)

    run.advance(PipelineState.DONE)
    return FileResult(
        path=path,
        state=PipelineState.DONE,
        crop=crop,
        skipped_reason="zero-crop" if crop.is_zero else None,
        written=written,
    )
