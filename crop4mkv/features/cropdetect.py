from __future__ import annotations

import re
from pathlib import Path

from crop4mkv.errors import MissingSamplesError
from crop4mkv.ingest import process
from crop4mkv.models import Axis, AxisSample, Window
from crop4mkv.printing import FileLog, secs_to_time_string

CROP_RE = re.compile(r"crop=(?P<width>\d+):(?P<height>\d+):(?P<x>\d+):(?P<y>\d+)")


def build_cropdetect_command(path: str | Path, window: Window, limit: int = 24, round_to: int = 2) -> list[str]:
    return [
        "ffmpeg",
        "-hide_banner",
        "-loglevel",
        "info",
        "-ss",
        secs_to_time_string(window.start),
        "-skip_frame",
        "nokey",
        "-i",
        str(path),
        "-vf",
        f"cropdetect=mode=black:limit={limit}:round={round_to}:skip=0:reset=1",
        "-t",
        secs_to_time_string(window.duration),
        "-f",
        "null",
        "-",
    ]


def parse_cropdetect_output(text: str) -> list[AxisSample]:
    """Turn every ``crop=W:H:X:Y`` line into an X sample followed by a Y sample."""

    samples: list[AxisSample] = []
    for line in text.splitlines():
        match = CROP_RE.search(line)
        if match is None:
            continue

        samples.append(AxisSample(length=int(match["width"]), offset=int(match["x"]), axis=Axis.X))
        samples.append(AxisSample(length=int(match["height"]), offset=int(match["y"]), axis=Axis.Y))
    return samples


async def sample_window(
    path: str | Path,
    window: Window,
    *,
    limit: int = 24,
    round_to: int = 2,
    log: FileLog | None = None,
) -> list[AxisSample]:
    """Run cropdetect over one window and return the parsed axis samples."""

    command = build_cropdetect_command(path, window, limit=limit, round_to=round_to)
    result = await process.run_command(command, tool="ffmpeg")

    if not result.stderr:
        raise MissingSamplesError("ffmpeg did not output anything.")

    samples = parse_cropdetect_output(result.stderr)
    if log is not None:
        log.debug(f"Extracted crop of {len(samples) // 2} frames.")
    return samples
