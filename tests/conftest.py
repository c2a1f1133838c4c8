from __future__ import annotations

import json
from typing import Any, Sequence

import pytest

from crop4mkv.config import Settings
from crop4mkv.errors import ExecutionFailedError
from crop4mkv.ingest import process
from crop4mkv.ingest.process import CommandResult

LETTERBOX_LINE = (
    "[Parsed_cropdetect_0 @ 0x5581] x1:0 x2:1919 y1:140 y2:939 w:1920 h:800 "
    "x:0 y:140 pts:1001 t:0.041708 limit:0.094118 crop=1920:800:0:140"
)


class FakeTools:
    """Stands in for ffmpeg, ffprobe, mkvmerge and mkvpropedit."""

    def __init__(self) -> None:
        self.calls: list[list[str]] = []
        self.probe_payload: dict[str, Any] = {
            "streams": [{"width": 1920, "height": 1080}],
            "format": {"duration": "7200.000000"},
        }
        self.tracks: list[dict[str, Any]] = [{"type": "video", "properties": {}}]
        self.cropdetect_lines: list[str] = [LETTERBOX_LINE] * 4
        self.cropdetect_by_start: dict[str, list[str]] = {}
        self.failing_paths: set[str] = set()

    def calls_for(self, tool: str) -> list[list[str]]:
        return [call for call in self.calls if call[0] == tool]

    async def __call__(self, command: Sequence[str], *, tool: str | None = None) -> CommandResult:
        command = list(command)
        self.calls.append(command)

        if any(path in command for path in self.failing_paths):
            raise ExecutionFailedError(
                f"ERROR (while executing {command[0]})",
                RuntimeError(f"{command[0]} exited with status 1."),
            )

        name = command[0]
        if name == "ffprobe":
            return CommandResult(0, json.dumps(self.probe_payload), "")
        if name == "mkvmerge":
            return CommandResult(0, json.dumps({"tracks": self.tracks}), "")
        if name == "ffmpeg":
            start = command[command.index("-ss") + 1]
            lines = self.cropdetect_by_start.get(start, self.cropdetect_lines)
            banner = "Input #0, matroska,webm, from 'movie.mkv':"
            return CommandResult(0, "", "\n".join([banner, *lines]))
        if name == "mkvpropedit":
            return CommandResult(0, "The changes are written to the file.", "")
        raise AssertionError(f"unexpected command: {command}")


@pytest.fixture()
def fake_tools(monkeypatch: pytest.MonkeyPatch) -> FakeTools:
    tools = FakeTools()
    monkeypatch.setattr(process, "run_command", tools)
    return tools


@pytest.fixture()
def settings() -> Settings:
    return Settings()
