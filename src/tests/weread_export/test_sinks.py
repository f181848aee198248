#!/usr/bin/env python3
"""Tests for file and clipboard sinks."""

import subprocess
from unittest.mock import patch

import pytest

from weread_export.models import ExportPayload
from weread_export.sinks import ClipboardUnavailableError, copy_to_clipboard, find_clipboard_command, write_export


def _only(*names):
    """shutil.which stand-in that finds only the given commands."""
    return lambda name: f"/usr/bin/{name}" if name in names else None


@pytest.mark.asyncio
async def test_write_export_creates_directory(tmp_path):
    payload = ExportPayload("读书笔记.md", "# 标题\n\n> 摘录\n", "text/markdown;charset=utf-8")
    target = tmp_path / "nested" / "out"

    path = await write_export(payload, target)

    assert path == target / "读书笔记.md"
    assert path.read_text(encoding="utf-8") == "# 标题\n\n> 摘录\n"


@pytest.mark.asyncio
async def test_write_export_overwrites_existing_file(tmp_path):
    (tmp_path / "weread-export.csv").write_text("old", encoding="utf-8")

    path = await write_export(ExportPayload("weread-export.csv", "new", "text/csv;charset=utf-8"), tmp_path)

    assert path.read_text(encoding="utf-8") == "new"


def test_find_clipboard_command_prefers_first_available():
    with patch("weread_export.sinks.shutil.which", side_effect=_only("xclip", "xsel")):
        assert find_clipboard_command() == ["xclip", "-selection", "clipboard"]


@pytest.mark.asyncio
async def test_copy_without_clipboard_command_raises():
    with patch("weread_export.sinks.shutil.which", return_value=None):
        with pytest.raises(ClipboardUnavailableError):
            await copy_to_clipboard("text")


@pytest.mark.asyncio
async def test_copy_pipes_text_to_command():
    with (
        patch("weread_export.sinks.shutil.which", side_effect=_only("pbcopy")),
        patch("weread_export.sinks.subprocess.run") as mock_run,
    ):
        await copy_to_clipboard("摘录")

    mock_run.assert_called_once()
    assert mock_run.call_args.args[0] == ["pbcopy"]
    assert mock_run.call_args.kwargs["input"] == "摘录".encode()


@pytest.mark.asyncio
async def test_copy_command_failure_raises_runtime_error():
    error = subprocess.CalledProcessError(1, ["wl-copy"], stderr=b"no display")
    with (
        patch("weread_export.sinks.shutil.which", side_effect=_only("wl-copy")),
        patch("weread_export.sinks.subprocess.run", side_effect=error),
    ):
        with pytest.raises(RuntimeError, match="no display"):
            await copy_to_clipboard("text")
