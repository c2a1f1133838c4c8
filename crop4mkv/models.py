from __future__ import annotations

from dataclasses import dataclass
from enum import Enum, IntEnum
from typing import Iterator


class Axis(str, Enum):
    X = "x"
    Y = "y"


@dataclass(slots=True, frozen=True)
class AxisSample:
    """One detected crop extent and its offset along a single axis."""

    length: int
    offset: int
    axis: Axis


@dataclass(slots=True, frozen=True)
class VideoInfo:
    width: int
    height: int
    duration: float


@dataclass(slots=True, frozen=True)
class Crop:
    """Pixels to remove from each side of the frame."""

    top: int
    bottom: int
    left: int
    right: int

    @property
    def is_zero(self) -> bool:
        return not any(value for _, value in self.sides())

    def sides(self) -> Iterator[tuple[str, int]]:
        yield "top", self.top
        yield "bottom", self.bottom
        yield "left", self.left
        yield "right", self.right


@dataclass(slots=True, frozen=True)
class Window:
    """A contiguous time slice of a video, in seconds."""

    start: float
    duration: float


class FileStatus(IntEnum):
    NOT_PROCESSED = 0
    PROCESSED = 1
    ERRORED = 2
