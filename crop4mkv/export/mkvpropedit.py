from __future__ import annotations

import shlex
from pathlib import Path

from crop4mkv.ingest import process
from crop4mkv.models import Crop
from crop4mkv.printing import FileLog


def build_edit_command(path: str | Path, crop: Crop) -> list[str] | None:
    """Build the mkvpropedit call for the non-zero sides of ``crop``.

    Returns None when there is nothing to write.
    """

    command = ["mkvpropedit", str(path), "--edit", "track:v1"]
    changed = False
    for side, value in crop.sides():
        if not value:
            continue
        command.extend(["--set", f"pixel-crop-{side}={value}"])
        changed = True

    return command if changed else None


async def write_crop_metadata(path: str | Path, crop: Crop, *, dry_run: bool, log: FileLog) -> bool:
    """Persist ``crop`` on the first video track. Returns True if mkvpropedit ran."""

    command = build_edit_command(path, crop)
    if command is None:
        log.warn("Skipping write as crop is 0.")
        return False

    if dry_run:
        log.warn("Dryrun enabled. No metadata will be overwritten. Following would have been executed:")
        log.command(shlex.join(command))
        return False

    await process.run_command(command, tool="mkvpropedit")
    log.ok("Write success!")
    return True
