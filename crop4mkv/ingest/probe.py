from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from crop4mkv.errors import GarbageReturnedError
from crop4mkv.ingest import process
from crop4mkv.models import VideoInfo


async def probe_video_info(path: str | Path) -> VideoInfo:
    """Read width and height of the first video stream plus container duration."""

    command = [
        "ffprobe",
        "-v",
        "error",
        "-select_streams",
        "v:0",
        "-show_entries",
        "stream=width,height",
        "-show_entries",
        "format=duration",
        "-of",
        "json",
        str(path),
    ]
    result = await process.run_command(command, tool="ffprobe")
    payload = _load_json(result.stdout, tool="ffprobe")
    return _normalize_probe_payload(payload)


async def has_crop_metadata(path: str | Path) -> bool:
    """Return True when any track of the Matroska file already carries cropping."""

    result = await process.run_command(["mkvmerge", "-J", str(path)], tool="mkvmerge")
    payload = _load_json(result.stdout, tool="mkvmerge")

    tracks = payload.get("tracks") if isinstance(payload, dict) else None
    if not isinstance(tracks, list):
        raise GarbageReturnedError("ERROR: mkvmerge did not return a track list.")

    for track in tracks:
        properties = track.get("properties", {}) if isinstance(track, dict) else {}
        if isinstance(properties, dict) and "cropping" in properties:
            return True
    return False


def _load_json(raw: str, *, tool: str) -> Any:
    try:
        return json.loads(raw)
    except json.JSONDecodeError as exc:
        raise GarbageReturnedError(f"ERROR: {tool} returned invalid JSON output.", exc) from exc


def _normalize_probe_payload(payload: Any) -> VideoInfo:
    streams = payload.get("streams") if isinstance(payload, dict) else None
    stream = streams[0] if isinstance(streams, list) and streams else {}
    format_entry = payload.get("format", {}) if isinstance(payload, dict) else {}

    width = _to_int(stream.get("width")) if isinstance(stream, dict) else None
    height = _to_int(stream.get("height")) if isinstance(stream, dict) else None
    duration = _to_float(format_entry.get("duration")) if isinstance(format_entry, dict) else None

    if not width or not height or not duration or width < 0 or height < 0 or duration < 0:
        raise GarbageReturnedError("ERROR: ffprobe did not return values in expected structure.")

    return VideoInfo(width=width, height=height, duration=duration)


def _to_float(raw_value: Any) -> float | None:
    if raw_value in (None, "N/A", ""):
        return None
    try:
        return float(raw_value)
    except (TypeError, ValueError):
        return None


def _to_int(raw_value: Any) -> int | None:
    if raw_value in (None, "N/A", ""):
        return None
    try:
        return int(raw_value)
    except (TypeError, ValueError):
        return None
