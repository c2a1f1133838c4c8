from __future__ import annotations

import asyncio
import logging
import shutil
from dataclasses import dataclass
from typing import Iterable, Sequence

from crop4mkv.errors import ExecutionFailedError

logger = logging.getLogger(__name__)

REQUIRED_TOOLS: tuple[str, ...] = ("mkvmerge", "mkvpropedit", "ffprobe", "ffmpeg")


@dataclass(slots=True)
class CommandResult:
    returncode: int
    stdout: str
    stderr: str


async def run_command(command: Sequence[str], *, tool: str | None = None) -> CommandResult:
    """Run an external tool without blocking the event loop.

    Spawn failures and non-zero exits are raised as ``ExecutionFailedError``
    with the original exception attached.
    """

    tool_name = tool or command[0]
    logger.debug("Running %s", " ".join(command))

    try:
        process = await asyncio.create_subprocess_exec(
            *command,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
    except FileNotFoundError as exc:
        raise ExecutionFailedError(
            f"ERROR (while executing {tool_name}): {tool_name} executable was not found on PATH.",
            exc,
        ) from exc
    except OSError as exc:
        raise ExecutionFailedError(f"ERROR (while executing {tool_name})", exc) from exc

    stdout_bytes, stderr_bytes = await process.communicate()
    stdout = stdout_bytes.decode("utf-8", errors="replace")
    stderr = stderr_bytes.decode("utf-8", errors="replace")
    returncode = process.returncode if process.returncode is not None else -1

    if returncode != 0:
        details = stderr.strip().splitlines()[-1] if stderr.strip() else ""
        cause = RuntimeError(f"{tool_name} exited with status {returncode}. {details}".strip())
        raise ExecutionFailedError(f"ERROR (while executing {tool_name})", cause)

    return CommandResult(returncode=returncode, stdout=stdout, stderr=stderr)


def missing_tools(tools: Iterable[str] = REQUIRED_TOOLS) -> list[str]:
    return [tool for tool in tools if shutil.which(tool) is None]
