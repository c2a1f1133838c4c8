from __future__ import annotations

import asyncio
import math
from pathlib import Path

from crop4mkv.errors import MissingSamplesError
from crop4mkv.features import cropdetect
from crop4mkv.models import AxisSample, Window
from crop4mkv.printing import FileLog


def plan_windows(duration: float, parts: int = 6, max_duration: float = 60) -> list[Window]:
    """Split ``[0, duration)`` into ``parts`` segments and sample each one's head.

    Every window starts at ``i * floor(duration / parts)`` and lasts at most
    ``max_duration`` seconds. Files shorter than ``max_duration`` are sampled as
    a single window.
    """

    if parts <= 0:
        raise ValueError("parts must be a positive integer.")
    if max_duration <= 0:
        raise ValueError("max_duration must be positive.")

    if duration < max_duration:
        return [Window(start=0, duration=duration)]

    # Segments shorter than one second would produce empty windows.
    effective_parts = min(parts, max(math.floor(duration), 1))
    segment_length = math.floor(duration / effective_parts)
    window_duration = min(segment_length, max_duration)
    return [Window(start=index * segment_length, duration=window_duration) for index in range(effective_parts)]


async def collect_samples(
    path: str | Path,
    windows: list[Window],
    *,
    limit: int = 24,
    round_to: int = 2,
    log: FileLog | None = None,
) -> list[AxisSample]:
    """Sample all windows concurrently and pool their samples in window order."""

    results = await asyncio.gather(
        *(cropdetect.sample_window(path, window, limit=limit, round_to=round_to, log=log) for window in windows)
    )
    samples = [sample for window_samples in results for sample in window_samples]

    if not samples:
        raise MissingSamplesError("ERROR: Failed extracting any samples.")
    return samples
