from __future__ import annotations

import math
from typing import Sequence

from crop4mkv.errors import MissingSamplesError
from crop4mkv.models import AxisSample

IQR_MULTIPLIER = 1.5


def filter_outliers(samples: Sequence[AxisSample]) -> list[AxisSample]:
    """Drop samples whose length falls outside the 1.5 * IQR fences.

    Quartiles use the plain order statistic ``sorted[floor(n * p)]`` without
    interpolation. Retained samples keep their arrival order.
    """

    if not samples:
        raise MissingSamplesError("ERROR: No samples left to filter.")

    ordered = sorted(samples, key=lambda sample: sample.length)
    q1 = _quantile(ordered, 0.25)
    q3 = _quantile(ordered, 0.75)
    spread = q3 - q1
    lower_bound = q1 - IQR_MULTIPLIER * spread
    upper_bound = q3 + IQR_MULTIPLIER * spread

    return [sample for sample in samples if lower_bound <= sample.length <= upper_bound]


def _quantile(sorted_samples: Sequence[AxisSample], percentage: float) -> int:
    index = math.floor(len(sorted_samples) * percentage)
    return sorted_samples[index].length
