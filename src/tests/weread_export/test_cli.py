#!/usr/bin/env python3
"""Tests for the weread-export command line interface."""

import json
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from tests.test_utils.mocks import make_book, make_note
from weread_export.cli import create_parser, main
from weread_export.client import RequestError
from weread_export.login import LoginRedirectResult


@pytest.fixture(autouse=True)
def no_logging_setup():
    """Keep CLI tests from creating log files."""
    with patch("weread_export.cli.setup_logging") as mock_setup:
        yield mock_setup


@pytest.fixture
def mock_export_book():
    with patch("weread_export.cli.export_book", new_callable=AsyncMock) as mock_export:
        yield mock_export


class TestParser:
    def test_book_command(self):
        args = create_parser().parse_args(["book", "3300064831", "--user-vid", "42", "--stdout"])

        assert args.command == "book"
        assert args.book_id == "3300064831"
        assert args.user_vid == "42"
        assert args.stdout is True
        assert args.clipboard is False

    def test_book_destinations_are_exclusive(self):
        with pytest.raises(SystemExit):
            create_parser().parse_args(["book", "1", "--stdout", "--clipboard"])

    def test_batch_command(self):
        args = create_parser().parse_args(
            ["batch", "--book-ids", "1,2", "--format", "csv", "--concurrency", "1", "--delay-ms", "200"]
        )

        assert args.command == "batch"
        assert args.format == "csv"
        assert args.concurrency == 1
        assert args.delay_ms == 200
        assert args.retry_delays is None

    def test_batch_rejects_unknown_format(self):
        with pytest.raises(SystemExit):
            create_parser().parse_args(["batch", "--format", "pdf"])


class TestBookCommand:
    @pytest.mark.asyncio
    async def test_stdout(self, mock_export_book, capsys):
        mock_export_book.return_value = make_book("1", "Book", markdown="# Book\n\n> quote\n")

        exit_code = await main(["book", "1", "--user-vid", "42", "--stdout", "--retry-delays", ""])

        assert exit_code == 0
        assert "# Book\n\n> quote" in capsys.readouterr().out
        assert mock_export_book.await_args.args[1:] == ("1", "42", ())

    @pytest.mark.asyncio
    async def test_writes_file(self, mock_export_book, tmp_path):
        mock_export_book.return_value = make_book("1", "Book: Vol 1", markdown="# Book\n")

        exit_code = await main(["book", "1", "--user-vid", "42", "--output-dir", str(tmp_path)])

        assert exit_code == 0
        assert (tmp_path / "Book_ Vol 1.md").read_text(encoding="utf-8") == "# Book\n"

    @pytest.mark.asyncio
    async def test_clipboard(self, mock_export_book):
        mock_export_book.return_value = make_book("1", "Book", markdown="# Book\n")

        with patch("weread_export.cli.copy_to_clipboard", new_callable=AsyncMock) as mock_copy:
            exit_code = await main(["book", "1", "--user-vid", "42", "--clipboard"])

        assert exit_code == 0
        mock_copy.assert_awaited_once_with("# Book\n")

    @pytest.mark.asyncio
    async def test_request_failure_exits_non_zero(self, mock_export_book, capsys):
        mock_export_book.side_effect = RequestError("Request failed with status 404", status=404)

        exit_code = await main(["book", "1", "--user-vid", "42", "--stdout"])

        assert exit_code == 1
        assert "[1] Export failed: Request failed with status 404" in capsys.readouterr().err

    @pytest.mark.asyncio
    async def test_missing_user_vid(self, mock_export_book, capsys):
        exit_code = await main(["book", "1", "--stdout"])

        assert exit_code == 1
        assert "--user-vid is required" in capsys.readouterr().err
        mock_export_book.assert_not_awaited()


class TestBatchCommand:
    @pytest.mark.asyncio
    async def test_combined_json_export(self, mock_export_book, tmp_path):
        books = {
            "1": make_book("1", "Older", finish_time=100, notes=(make_note("1", "Older"),)),
            "2": make_book("2", "Newer", finish_time=200, notes=(make_note("2", "Newer"),)),
        }
        mock_export_book.side_effect = lambda client, book_id, **kwargs: books[book_id]

        exit_code = await main(
            ["batch", "--book-ids", "1,2", "--format", "json", "--user-vid", "42", "--output-dir", str(tmp_path)]
        )

        assert exit_code == 0
        rows = json.loads((tmp_path / "weread-export.json").read_text(encoding="utf-8"))
        assert [row["title"] for row in rows] == ["Newer", "Older"]

    @pytest.mark.asyncio
    async def test_failures_reported_and_exit_non_zero(self, mock_export_book, tmp_path, capsys):
        def export(client, book_id, **kwargs):
            if book_id == "bad":
                raise RequestError("Request failed with status 404", status=404)
            return make_book(book_id, f"Book {book_id}")

        mock_export_book.side_effect = export

        exit_code = await main(
            ["batch", "--book-ids", "good,bad", "--user-vid", "42", "--output-dir", str(tmp_path), "--concurrency", "1"]
        )

        assert exit_code == 1
        assert "[bad] Export failed" in capsys.readouterr().err
        assert (tmp_path / "weread-export.md").read_text(encoding="utf-8") == "# Book good\n\nbody of Book good"

    @pytest.mark.asyncio
    async def test_unauthorized_triggers_login_redirect(self, mock_export_book, tmp_path):
        mock_export_book.side_effect = RequestError("Request failed with status 401", status=401)
        redirect = MagicMock()
        redirect.trigger.return_value = LoginRedirectResult(used="browser", url="https://weread.qq.com/#login")

        with patch("weread_export.cli.LoginRedirect", return_value=redirect):
            exit_code = await main(["batch", "--book-ids", "1,2", "--user-vid", "42", "--output-dir", str(tmp_path)])

        assert exit_code == 1
        assert redirect.trigger.call_count == 2
        redirect.trigger.assert_called_with("expired")
        assert not (tmp_path / "weread-export.md").exists()

    @pytest.mark.asyncio
    async def test_requires_book_ids(self, mock_export_book, capsys):
        exit_code = await main(["batch", "--user-vid", "42"])

        assert exit_code == 1
        assert "--book-ids" in capsys.readouterr().err

    @pytest.mark.asyncio
    async def test_config_file_supplies_settings(self, mock_export_book, tmp_path):
        config_path = tmp_path / "config.json"
        config_path.write_text(
            json.dumps({"user_vid": "from-file", "format": "csv", "output_dir": str(tmp_path / "out")}),
            encoding="utf-8",
        )
        mock_export_book.side_effect = lambda client, book_id, **kwargs: make_book(book_id, "T")

        exit_code = await main(["batch", "--config", str(config_path), "--book-ids", "1"])

        assert exit_code == 0
        assert (tmp_path / "out" / "weread-export.csv").exists()
        assert mock_export_book.await_args.kwargs["user_vid"] == "from-file"


@pytest.mark.asyncio
async def test_no_command_prints_help(capsys):
    assert await main([]) == 1
    assert "usage: weread-export" in capsys.readouterr().out
