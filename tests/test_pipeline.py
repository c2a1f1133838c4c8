from __future__ import annotations

import asyncio
from pathlib import Path

import pytest

from conftest import FakeTools
from crop4mkv import batch
from crop4mkv.batch import resolve_input_paths, run_batch
from crop4mkv.config import Settings
from crop4mkv.errors import ErrorKind, PathError
from crop4mkv.guard import GuardStore
from crop4mkv.models import Crop, FileStatus
from crop4mkv.pipeline import FileResult, PipelineState, process_file


@pytest.mark.asyncio
async def test_letterboxed_file_gets_top_and_bottom_crop(
    fake_tools: FakeTools, settings: Settings, capsys: pytest.CaptureFixture[str]
) -> None:
    settings.detection.filter_outliers = False

    result = await process_file("/media/movie.mkv", settings)

    assert result.state is PipelineState.DONE
    assert result.crop == Crop(top=140, bottom=140, left=0, right=0)
    assert result.written is True
    assert len(fake_tools.calls_for("ffmpeg")) == 6
    assert fake_tools.calls_for("mkvpropedit")[0][-4:] == [
        "--set",
        "pixel-crop-top=140",
        "--set",
        "pixel-crop-bottom=140",
    ]
    output = capsys.readouterr().out
    assert "File: /media/movie.mkv" in output
    assert "Resolution: 1920x1080" in output
    assert "Length: 02:00:00 hh:mm:ss" in output


@pytest.mark.asyncio
async def test_existing_crop_metadata_skips_file(fake_tools: FakeTools, settings: Settings) -> None:
    fake_tools.tracks = [{"type": "video", "properties": {"cropping": "0,140,0,140"}}]

    result = await process_file("/media/movie.mkv", settings)

    assert result.state is PipelineState.DONE
    assert result.skipped_reason == "existing-metadata"
    assert fake_tools.calls_for("ffprobe") == []


@pytest.mark.asyncio
async def test_overwrite_ignores_existing_metadata(fake_tools: FakeTools, settings: Settings) -> None:
    fake_tools.tracks = [{"type": "video", "properties": {"cropping": "0,140,0,140"}}]
    settings.batch.overwrite = True

    result = await process_file("/media/movie.mkv", settings)

    assert result.written is True
    assert fake_tools.calls_for("mkvmerge") == []


@pytest.mark.asyncio
async def test_full_frame_video_skips_write(fake_tools: FakeTools, settings: Settings) -> None:
    fake_tools.cropdetect_lines = ["crop=1920:1080:0:0"] * 5

    result = await process_file("/media/movie.mkv", settings)

    assert result.state is PipelineState.DONE
    assert result.crop == Crop(0, 0, 0, 0)
    assert result.skipped_reason == "zero-crop"
    assert fake_tools.calls_for("mkvpropedit") == []


@pytest.mark.asyncio
async def test_dry_run_does_not_write(fake_tools: FakeTools, settings: Settings) -> None:
    settings.batch.dry_run = True

    result = await process_file("/media/movie.mkv", settings)

    assert result.state is PipelineState.DONE
    assert result.written is False
    assert fake_tools.calls_for("mkvpropedit") == []


@pytest.mark.asyncio
async def test_typed_failure_becomes_errored_result(
    fake_tools: FakeTools, settings: Settings, capsys: pytest.CaptureFixture[str]
) -> None:
    fake_tools.probe_payload = {"streams": [{"width": 1920}], "format": {}}

    result = await process_file("/media/movie.mkv", settings)

    assert result.state is PipelineState.ERRORED
    assert result.failed_at is PipelineState.PROBING
    assert result.error is not None and result.error.kind is ErrorKind.GARBAGE_RETURNED
    assert "did not return values in expected structure" in capsys.readouterr().out


@pytest.mark.asyncio
async def test_unexpected_failure_propagates_after_flush(
    fake_tools: FakeTools, settings: Settings, monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]
) -> None:
    from crop4mkv import pipeline

    def _boom(*args: object, **kwargs: object) -> Crop:
        raise KeyError("programmer error")

    monkeypatch.setattr(pipeline, "crop_from_samples", _boom)

    with pytest.raises(KeyError):
        await process_file("/media/movie.mkv", settings)

    assert "File: /media/movie.mkv" in capsys.readouterr().out


@pytest.mark.asyncio
async def test_guard_store_skips_handled_and_records_outcome(
    fake_tools: FakeTools, settings: Settings, tmp_path: Path
) -> None:
    fake_tools.failing_paths.add("/media/bad.mkv")
    with GuardStore(tmp_path / "guard.sqlite3") as guard:
        guard.set_processed("/media/done.mkv")

        skipped = await process_file("/media/done.mkv", settings, guard=guard)
        good = await process_file("/media/good.mkv", settings, guard=guard)
        bad = await process_file("/media/bad.mkv", settings, guard=guard)

        assert skipped.skipped_reason == "guard"
        assert good.succeeded and not bad.succeeded
        assert guard.file_processed("/media/good.mkv") is True
        assert guard.file_processed("/media/bad.mkv") is True
    assert all("/media/done.mkv" not in call for call in fake_tools.calls)


@pytest.mark.asyncio
async def test_dry_run_leaves_guard_untouched_so_real_run_writes(
    fake_tools: FakeTools, settings: Settings, tmp_path: Path
) -> None:
    fake_tools.failing_paths.add("/media/bad.mkv")
    with GuardStore(tmp_path / "guard.sqlite3") as guard:
        settings.batch.dry_run = True
        preview = await process_file("/media/movie.mkv", settings, guard=guard)
        await process_file("/media/bad.mkv", settings, guard=guard)

        assert preview.succeeded and not preview.written
        assert guard.status("/media/movie.mkv") is FileStatus.NOT_PROCESSED
        assert guard.status("/media/bad.mkv") is FileStatus.NOT_PROCESSED

        settings.batch.dry_run = False
        real = await process_file("/media/movie.mkv", settings, guard=guard)

        assert real.skipped_reason is None
        assert real.written is True
        assert len(fake_tools.calls_for("mkvpropedit")) == 1
        assert guard.status("/media/movie.mkv") is FileStatus.PROCESSED


@pytest.mark.asyncio
async def test_guard_skip_keeps_errored_status(fake_tools: FakeTools, settings: Settings, tmp_path: Path) -> None:
    with GuardStore(tmp_path / "guard.sqlite3") as guard:
        guard.set_error("/media/bad.mkv")

        result = await process_file("/media/bad.mkv", settings, guard=guard)

        assert result.skipped_reason == "guard"
        assert guard.status("/media/bad.mkv") is FileStatus.ERRORED
    assert fake_tools.calls == []


@pytest.mark.asyncio
async def test_zero_crop_and_existing_metadata_mark_file_processed(
    fake_tools: FakeTools, settings: Settings, tmp_path: Path
) -> None:
    fake_tools.cropdetect_lines = ["crop=1920:1080:0:0"] * 3
    with GuardStore(tmp_path / "guard.sqlite3") as guard:
        zero = await process_file("/media/full.mkv", settings, guard=guard)
        fake_tools.tracks = [{"type": "video", "properties": {"cropping": "0,140,0,140"}}]
        flagged = await process_file("/media/flagged.mkv", settings, guard=guard)

        assert zero.skipped_reason == "zero-crop"
        assert flagged.skipped_reason == "existing-metadata"
        assert guard.status("/media/full.mkv") is FileStatus.PROCESSED
        assert guard.status("/media/flagged.mkv") is FileStatus.PROCESSED


@pytest.mark.asyncio
async def test_overwrite_reprocesses_files_listed_in_guard(
    fake_tools: FakeTools, settings: Settings, tmp_path: Path
) -> None:
    settings.batch.overwrite = True
    with GuardStore(tmp_path / "guard.sqlite3") as guard:
        guard.set_processed("/media/movie.mkv")

        result = await process_file("/media/movie.mkv", settings, guard=guard)

        assert result.skipped_reason is None
        assert result.written is True
        assert guard.status("/media/movie.mkv") is FileStatus.PROCESSED


@pytest.mark.asyncio
async def test_guard_store_calls_run_in_worker_thread(
    fake_tools: FakeTools, settings: Settings, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    offloaded: list[str] = []
    real_to_thread = asyncio.to_thread

    async def _to_thread(func, /, *args, **kwargs):
        offloaded.append(func.__name__)
        return await real_to_thread(func, *args, **kwargs)

    monkeypatch.setattr(asyncio, "to_thread", _to_thread)

    with GuardStore(tmp_path / "guard.sqlite3") as guard:
        await process_file("/media/movie.mkv", settings, guard=guard)

    assert offloaded == ["file_processed", "set_processed"]


@pytest.mark.asyncio
async def test_batch_isolates_failing_file(fake_tools: FakeTools, settings: Settings) -> None:
    paths = [f"/media/movie_{index}.mkv" for index in range(5)]
    fake_tools.failing_paths.add(paths[2])

    report = await run_batch(paths, settings)

    assert report.exit_code == 0
    assert [result.path for result in report.errored] == [paths[2]]
    assert report.errored[0].error.kind is ErrorKind.EXECUTION_FAILED
    assert sum(result.state is PipelineState.DONE for result in report.results) == 4


@pytest.mark.asyncio
async def test_batch_respects_concurrency_limit(settings: Settings, monkeypatch: pytest.MonkeyPatch) -> None:
    settings.batch.concurrency = 3
    active = 0
    peak = 0

    async def _slow_process(path: str, settings: Settings, *, guard=None) -> FileResult:
        nonlocal active, peak
        active += 1
        peak = max(peak, active)
        await asyncio.sleep(0.01)
        active -= 1
        return FileResult(path=path, state=PipelineState.DONE)

    monkeypatch.setattr(batch, "process_file", _slow_process)

    report = await run_batch([f"/media/{index}.mkv" for index in range(10)], settings)

    assert len(report.results) == 10
    assert peak == 3


@pytest.mark.asyncio
async def test_batch_reports_unexpected_errors_with_non_zero_exit(
    settings: Settings, monkeypatch: pytest.MonkeyPatch
) -> None:
    async def _process(path: str, settings: Settings, *, guard=None) -> FileResult:
        if path.endswith("b.mkv"):
            raise TypeError("bad wiring")
        return FileResult(path=path, state=PipelineState.DONE)

    monkeypatch.setattr(batch, "process_file", _process)

    report = await run_batch(["/media/a.mkv", "/media/b.mkv", "/media/c.mkv"], settings)

    assert report.exit_code == 1
    assert [path for path, _ in report.unexpected_errors] == ["/media/b.mkv"]
    assert len(report.results) == 2


@pytest.mark.asyncio
async def test_resolve_input_paths_scans_directory_recursively(tmp_path: Path) -> None:
    (tmp_path / "season 1").mkdir()
    (tmp_path / "season 1" / "e01.mkv").write_bytes(b"data")
    (tmp_path / "e00.mkv").write_bytes(b"data")
    (tmp_path / "notes.txt").write_text("skip", encoding="utf-8")
    (tmp_path / "trailer.mp4").write_bytes(b"data")

    paths = await resolve_input_paths(tmp_path)

    assert paths == sorted([str(tmp_path / "e00.mkv"), str(tmp_path / "season 1" / "e01.mkv")])


@pytest.mark.asyncio
async def test_resolve_input_paths_single_file_is_absolute(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    (tmp_path / "movie.mkv").write_bytes(b"data")
    monkeypatch.chdir(tmp_path)

    assert await resolve_input_paths("movie.mkv") == [str(tmp_path.resolve() / "movie.mkv")]


@pytest.mark.asyncio
async def test_resolve_input_paths_missing_path_is_io_error(tmp_path: Path) -> None:
    with pytest.raises(PathError, match="does not exist") as excinfo:
        await resolve_input_paths(tmp_path / "missing.mkv")

    assert excinfo.value.kind is ErrorKind.IO_ERROR
