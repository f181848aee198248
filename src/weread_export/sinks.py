#!/usr/bin/env python3
"""
Export Sinks

Thin boundary that hands serialized exports to the outside world: files on
disk or the system clipboard.
"""

import asyncio
import logging
import shutil
import subprocess
from pathlib import Path

import aiofiles

from weread_export.models import ExportPayload

logger = logging.getLogger(__name__)

# Tried in order; the first command found on PATH receives the text on stdin
CLIPBOARD_COMMANDS: list[list[str]] = [
    ["pbcopy"],
    ["wl-copy"],
    ["xclip", "-selection", "clipboard"],
    ["xsel", "--clipboard", "--input"],
]


class ClipboardUnavailableError(Exception):
    """Raised when no clipboard command is available on this system."""

    pass


async def write_export(payload: ExportPayload, directory: str | Path) -> Path:
    """
    Write an export payload to a file.

    Args:
        payload: Serialized export
        directory: Target directory, created if missing

    Returns:
        Path of the written file
    """
    output_dir = Path(directory)
    output_dir.mkdir(parents=True, exist_ok=True)
    output_path = output_dir / payload.file_name

    async with aiofiles.open(output_path, "w", encoding="utf-8") as f:
        await f.write(payload.content)

    logger.info(f"Wrote {payload.file_name} ({len(payload.content)} chars) to {output_dir}")
    return output_path


def find_clipboard_command() -> list[str] | None:
    for command in CLIPBOARD_COMMANDS:
        if shutil.which(command[0]):
            return command
    return None


async def copy_to_clipboard(text: str) -> None:
    """
    Copy text to the system clipboard.

    Raises:
        ClipboardUnavailableError: If no supported clipboard command is installed
        RuntimeError: If the clipboard command fails
    """
    command = find_clipboard_command()
    if command is None:
        raise ClipboardUnavailableError(
            "No clipboard command found (tried: " + ", ".join(c[0] for c in CLIPBOARD_COMMANDS) + ")"
        )

    def _copy() -> None:
        try:
            subprocess.run(command, input=text.encode("utf-8"), capture_output=True, check=True, timeout=10)
        except subprocess.CalledProcessError as e:
            stderr = e.stderr.decode("utf-8", errors="replace").strip() if e.stderr else ""
            raise RuntimeError(f"{command[0]} exited with status {e.returncode}: {stderr}") from e
        except subprocess.TimeoutExpired:
            raise RuntimeError(f"{command[0]} timed out after 10 seconds") from None

    loop = asyncio.get_running_loop()
    await loop.run_in_executor(None, _copy)
    logger.info(f"Copied {len(text)} chars to clipboard via {command[0]}")
