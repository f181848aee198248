#!/usr/bin/env python3
"""
WeRead Export CLI

Command line entry point for exporting WeRead highlights and reviews.
"""

import argparse
import asyncio
import logging
import sys
from collections.abc import Sequence
from functools import partial
from pathlib import Path
from typing import Any

from weread_export.aggregator import export_book
from weread_export.batch import batch_run
from weread_export.client import RequestError, WeReadClient
from weread_export.config import (
    ExportConfig,
    apply_args_to_config,
    load_export_config,
    parse_book_id_arguments,
)
from weread_export.export import build_combined_export, build_markdown_export
from weread_export.logging_config import setup_logging
from weread_export.login import LoginRedirect
from weread_export.models import BatchOutcome, ExportFormat
from weread_export.sinks import ClipboardUnavailableError, copy_to_clipboard, write_export

logger = logging.getLogger(__name__)


def _add_common_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--config", help="JSON config file with export settings")
    parser.add_argument("--user-vid", help="WeRead user id (vid) whose reviews are exported")
    parser.add_argument("--cookie", help="WeRead session cookie (default: $WEREAD_COOKIE)")
    parser.add_argument("--base-url", help=argparse.SUPPRESS)
    parser.add_argument("--timeout", type=int, help="Per-request timeout in seconds (default: 30)")
    parser.add_argument(
        "--retry-delays",
        help="Comma-separated retry delays in milliseconds; empty disables retries (default: 1000,3000)",
    )
    parser.add_argument("--output-dir", help="Directory for exported files (default: output)")
    parser.add_argument("--log-level", choices=["DEBUG", "INFO", "WARNING", "ERROR"], default="INFO")
    parser.add_argument("--log-file", help="Log file path (default: timestamped file in logs/)")


def create_parser() -> argparse.ArgumentParser:
    """Create the main argument parser with subcommands."""
    parser = argparse.ArgumentParser(
        prog="weread-export",
        description="Export WeRead highlights, notes and reviews to Markdown, JSON or CSV",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Export one book to output/<title>.md
  weread-export book 3300064831 --user-vid 12345678

  # Print one book's Markdown instead of writing a file
  weread-export book 3300064831 --user-vid 12345678 --stdout

  # Export several books into one CSV, two at a time
  weread-export batch --book-ids 3300064831,822995 --format csv --user-vid 12345678

  # Export books listed in a file, one at a time with a pause between them
  weread-export batch --book-ids-file books.txt --concurrency 1 --delay-ms 500

The session cookie is read from --cookie, the config file or $WEREAD_COOKIE.
        """,
    )
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    book_parser = subparsers.add_parser("book", help="Export a single book as Markdown")
    book_parser.add_argument("book_id", help="WeRead book id")
    _add_common_arguments(book_parser)
    destination = book_parser.add_mutually_exclusive_group()
    destination.add_argument("--stdout", action="store_true", help="Print the Markdown instead of writing a file")
    destination.add_argument("--clipboard", action="store_true", help="Copy the Markdown to the clipboard")

    batch_parser = subparsers.add_parser("batch", help="Export many books into one combined file")
    _add_common_arguments(batch_parser)
    batch_parser.add_argument("--book-ids", help="Comma-separated book ids")
    batch_parser.add_argument("--book-ids-file", help="File with one book id per line")
    batch_parser.add_argument(
        "--format", choices=[fmt.value for fmt in ExportFormat], help="Combined export format (default: markdown)"
    )
    batch_parser.add_argument("--concurrency", type=int, help="Books exported at once (default: 2)")
    batch_parser.add_argument("--delay-ms", type=int, help="Pause between books when concurrency is 1 (default: 0)")
    batch_parser.add_argument("--stop-on-error", action="store_true", help="Stop starting new books after a failure")

    return parser


def _make_client(config: ExportConfig) -> WeReadClient:
    return WeReadClient(base_url=config.base_url, cookie=config.cookie, timeout=config.timeout)


def _report_failure(book_id: str, error: BaseException | str | None, login: LoginRedirect) -> None:
    print(f"[{book_id}] Export failed: {error}", file=sys.stderr)
    if isinstance(error, RequestError) and error.status == 401:
        result = login.trigger("expired")
        if result.used != "skipped":
            print(f"Session expired; log in at {result.url} and update the cookie", file=sys.stderr)


async def run_book(args: argparse.Namespace, config: ExportConfig, login: LoginRedirect) -> int:
    """Export one book to a file, stdout or the clipboard."""
    async with _make_client(config) as client:
        try:
            book = await export_book(client, args.book_id, config.user_vid, config.retry_delays)
        except RequestError as e:
            _report_failure(args.book_id, e, login)
            return 1

    payload = build_markdown_export(book)
    if args.stdout:
        print(payload.content)
        return 0

    if args.clipboard:
        try:
            await copy_to_clipboard(payload.content)
        except ClipboardUnavailableError as e:
            print(f"Clipboard unavailable: {e}", file=sys.stderr)
            return 1
        print(f"Copied '{book.title}' to clipboard")
        return 0

    path = await write_export(payload, config.output_dir)
    print(f"Exported '{book.title}' to {path}")
    return 0


def _print_progress(outcome: BatchOutcome[Any, Any], done: int, total: int) -> None:
    status = "ok" if outcome.succeeded else f"failed ({outcome.error})"
    print(f"[{done}/{total}] {outcome.item}: {status}")


async def run_batch(args: argparse.Namespace, config: ExportConfig, login: LoginRedirect) -> int:
    """Export many books into one combined payload."""
    try:
        book_ids = parse_book_id_arguments(args.book_ids, args.book_ids_file)
    except (ValueError, FileNotFoundError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    if not book_ids:
        print("Error: provide --book-ids or --book-ids-file", file=sys.stderr)
        return 1

    async with _make_client(config) as client:
        outcomes = await batch_run(
            book_ids,
            partial(export_book, client, user_vid=config.user_vid, retry_delays=config.retry_delays),
            concurrency=config.concurrency,
            delay_ms=config.delay_ms,
            stop_on_error=args.stop_on_error,
            on_progress=_print_progress,
        )

    books = [outcome.value for outcome in outcomes if outcome.succeeded and outcome.value is not None]
    failures = [outcome for outcome in outcomes if not outcome.succeeded]
    for failure in failures:
        _report_failure(failure.item, failure.exception or failure.error, login)

    if books:
        payload = build_combined_export(books, config.format)
        path = await write_export(payload, config.output_dir)
        print(f"Exported {len(books)} of {len(book_ids)} books to {path}")
    else:
        print("No books exported", file=sys.stderr)

    return 1 if failures or not books else 0


async def main(argv: Sequence[str] | None = None) -> int:
    """Main entry point for the weread-export CLI."""
    parser = create_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 1

    setup_logging(args.log_level, Path(args.log_file) if args.log_file else None)

    try:
        config = load_export_config(args.config) if args.config else None
        config = apply_args_to_config(args, config)
    except (OSError, ValueError) as e:
        print(f"Error: invalid configuration: {e}", file=sys.stderr)
        return 1

    if not config.user_vid:
        print("Error: --user-vid is required (or set user_vid in the config file)", file=sys.stderr)
        return 1
    if not config.cookie:
        logger.warning("No session cookie configured; requests will likely be rejected")

    login = LoginRedirect()
    match args.command:
        case "book":
            return await run_book(args, config, login)
        case "batch":
            return await run_batch(args, config, login)
        case _:
            parser.print_help()
            return 1


def entry_point() -> None:
    sys.exit(asyncio.run(main()))


if __name__ == "__main__":
    entry_point()
