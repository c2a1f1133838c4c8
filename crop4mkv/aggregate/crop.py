from __future__ import annotations

from typing import Sequence

from crop4mkv.aggregate.outliers import filter_outliers
from crop4mkv.aggregate.reducers import ReductionStrategy, reduce_axis
from crop4mkv.errors import WrongAxisError
from crop4mkv.models import Axis, AxisSample, Crop, VideoInfo
from crop4mkv.printing import FileLog


def calculate_crop(video: VideoInfo, x_axis: AxisSample, y_axis: AxisSample) -> Crop:
    """Turn the chosen horizontal and vertical extents into a four-sided crop."""

    if x_axis.axis is not Axis.X or y_axis.axis is not Axis.Y:
        raise WrongAxisError()

    return Crop(
        left=x_axis.offset,
        top=y_axis.offset,
        right=video.width - (x_axis.length + x_axis.offset),
        bottom=video.height - (y_axis.length + y_axis.offset),
    )


def crop_from_samples(
    video: VideoInfo,
    samples: Sequence[AxisSample],
    *,
    strategy: ReductionStrategy = "safest",
    filter_outliers_enabled: bool = True,
    log: FileLog | None = None,
) -> Crop:
    """Aggregate the pooled samples of every window into a single crop."""

    x_samples = [sample for sample in samples if sample.axis is Axis.X]
    y_samples = [sample for sample in samples if sample.axis is Axis.Y]

    x_filtered = filter_outliers(x_samples) if filter_outliers_enabled else x_samples
    y_filtered = filter_outliers(y_samples) if filter_outliers_enabled else y_samples

    if log is not None:
        log.debug(f"Filtered out {len(x_samples) - len(x_filtered)} samples from x axis.")
        log.debug(f"Filtered out {len(y_samples) - len(y_filtered)} samples from y axis.")

    x_axis = reduce_axis(x_filtered, strategy)
    y_axis = reduce_axis(y_filtered, strategy)
    return calculate_crop(video, x_axis, y_axis)
