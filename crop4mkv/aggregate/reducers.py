from __future__ import annotations

from collections import Counter
from typing import Literal, Sequence

from crop4mkv.errors import MissingSamplesError
from crop4mkv.models import AxisSample

ReductionStrategy = Literal["safest", "most-seen"]

STRATEGIES: tuple[str, ...] = ("safest", "most-seen")


def safest_crop(samples: Sequence[AxisSample]) -> AxisSample:
    """Pick the sample with the largest length (least aggressive crop).

    On equal lengths the first sample seen wins.
    """

    if not samples:
        raise MissingSamplesError("ERROR: No samples to reduce.")

    best = samples[0]
    for sample in samples:
        if sample.length > best.length:
            best = sample
    return best


def most_seen_crop(samples: Sequence[AxisSample]) -> AxisSample:
    """Pick the most frequent ``(length, offset)`` pair; first seen wins ties."""

    if not samples:
        raise MissingSamplesError("ERROR: No samples to reduce.")

    counts = Counter((sample.length, sample.offset) for sample in samples)
    # Counter keeps insertion order and max() returns the first maximum.
    (length, offset), _ = max(counts.items(), key=lambda item: item[1])
    return AxisSample(length=length, offset=offset, axis=samples[0].axis)


def reduce_axis(samples: Sequence[AxisSample], strategy: ReductionStrategy = "safest") -> AxisSample:
    """Reduce same-axis samples to one chosen extent using ``strategy``."""

    normalized = normalize_strategy(strategy)
    if normalized == "most-seen":
        return most_seen_crop(samples)
    return safest_crop(samples)


def normalize_strategy(strategy: str) -> ReductionStrategy:
    normalized = strategy.lower().strip().replace("_", "-")
    if normalized not in STRATEGIES:
        msg = (
            f"Unsupported reduction strategy '{strategy}'. "
            "Expected one of: safest, most-seen."
        )
        raise ValueError(msg)
    return normalized  # type: ignore[return-value]
