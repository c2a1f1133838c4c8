from __future__ import annotations

from enum import Enum


class ErrorKind(str, Enum):
    WRONG_AXIS = "WrongAxis"
    MISSING_SAMPLES = "MissingSamples"
    EXECUTION_FAILED = "ExecutionFailed"
    GARBAGE_RETURNED = "GarbageReturned"
    IO_ERROR = "IoError"


class CropDetectionError(RuntimeError):
    """Expected failure while processing a single file.

    Anything raised as a subclass of this error is reported per file and does
    not stop the rest of a batch.
    """

    kind: ErrorKind = ErrorKind.EXECUTION_FAILED

    def __init__(self, message: str | None = None, cause: BaseException | None = None) -> None:
        super().__init__(message or f"Internal error: {self.kind.value}")
        self.cause = cause
        if cause is not None:
            self.__cause__ = cause


class WrongAxisError(CropDetectionError):
    kind = ErrorKind.WRONG_AXIS


class MissingSamplesError(CropDetectionError):
    kind = ErrorKind.MISSING_SAMPLES


class ExecutionFailedError(CropDetectionError):
    kind = ErrorKind.EXECUTION_FAILED


class GarbageReturnedError(CropDetectionError):
    kind = ErrorKind.GARBAGE_RETURNED


class PathError(CropDetectionError):
    kind = ErrorKind.IO_ERROR
