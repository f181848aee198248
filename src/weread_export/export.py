#!/usr/bin/env python3
"""
Export Formatter

Serializes exported books into Markdown, JSON or CSV payloads.
"""

import csv
import io
import json
import re
from collections.abc import Sequence
from dataclasses import replace
from typing import Any

from weread_export.constants import (
    COMBINED_EXPORT_BASENAME,
    CSV_MIME_TYPE,
    EMPTY_FILENAME_PLACEHOLDER,
    JSON_MIME_TYPE,
    MARKDOWN_MIME_TYPE,
)
from weread_export.models import ExportedBook, ExportFormat, ExportPayload, NoteRecord

CSV_HEADER = [
    "bookId",
    "title",
    "author",
    "rating",
    "isbn",
    "publisher",
    "coverUrl",
    "chapterUid",
    "chapterTitle",
    "range",
    "markText",
    "reviewText",
    "createdAt",
    "readingTime",
    "startTime",
    "finishTime",
]

JSON_FIELDS = [
    "bookId",
    "title",
    "author",
    "rating",
    "publisher",
    "coverUrl",
    "isbn",
    "chapterUid",
    "chapterTitle",
    "range",
    "markText",
    "reviewText",
    "createdAt",
    "readingTime",
    "startTime",
    "finishTime",
]

MARKDOWN_SEPARATOR = "\n\n---\n\n"

_ILLEGAL_FILENAME_CHARS = re.compile(r'[\\/:*?"<>|]+')
_LINE_BREAK = re.compile(r"\r?\n")


def sanitize_file_name(name: str) -> str:
    """Replace characters that are illegal in file names; never returns an empty name."""
    safe = _ILLEGAL_FILENAME_CHARS.sub("_", name or "").strip()
    return safe or EMPTY_FILENAME_PLACEHOLDER


def build_markdown_export(book: ExportedBook) -> ExportPayload:
    """Single-book Markdown payload named after the sanitized title."""
    return ExportPayload(
        file_name=f"{sanitize_file_name(book.title)}.md",
        content=book.markdown,
        mime_type=MARKDOWN_MIME_TYPE,
    )


def _first_note_value(book: ExportedBook, attr: str) -> Any:
    if book.notes:
        return getattr(book.notes[0], attr)
    return None


def _normalize_times(book: ExportedBook) -> ExportedBook:
    """Fill missing reading-session times from the first note, then 0."""
    times = {}
    for attr in ("finish_time", "start_time", "reading_time"):
        value = getattr(book, attr)
        if value is None:
            value = _first_note_value(book, attr)
        times[attr] = 0 if value is None else value
    return replace(book, **times)


def sort_books(books: Sequence[ExportedBook]) -> list[ExportedBook]:
    """Normalize times and order books by finish time, most recent first."""
    normalized = [_normalize_times(book) for book in books]
    return sorted(normalized, key=lambda book: book.finish_time or 0, reverse=True)


def _note_row(book: ExportedBook, note: NoteRecord | None) -> dict[str, Any]:
    if note is None:
        # Book without notes: its rendered body stands in for the highlight text
        return {
            "bookId": book.book_id,
            "title": book.title,
            "author": book.author or "",
            "rating": book.rating or "",
            "publisher": book.publisher or "",
            "coverUrl": book.cover_url or "",
            "isbn": book.isbn or "",
            "chapterUid": "",
            "chapterTitle": "",
            "range": "",
            "markText": book.markdown or "",
            "reviewText": "",
            "createdAt": "",
            "readingTime": book.reading_time or "",
            "startTime": book.start_time or "",
            "finishTime": book.finish_time or "",
        }

    return {
        "bookId": note.book_id or book.book_id,
        "title": book.title,
        "author": book.author or "",
        "rating": book.rating or "",
        "publisher": note.publisher or book.publisher or "",
        "coverUrl": note.cover_url or book.cover_url or "",
        "isbn": note.isbn or book.isbn or "",
        "chapterUid": "" if note.chapter_uid is None else note.chapter_uid,
        "chapterTitle": note.chapter_title or "",
        "range": note.range or "",
        "markText": note.mark_text or "",
        "reviewText": note.review_text or "",
        "createdAt": note.created_at or "",
        "readingTime": note.reading_time or book.reading_time or "",
        "startTime": note.start_time or book.start_time or "",
        "finishTime": note.finish_time or book.finish_time or "",
    }


def build_rows(books: Sequence[ExportedBook]) -> list[dict[str, Any]]:
    """Flatten sorted books into one row per note, or one row per note-less book."""
    rows = []
    for book in books:
        notes: Sequence[NoteRecord | None] = book.notes or [None]
        rows.extend(_note_row(book, note) for note in notes)
    return rows


def _csv_field(value: Any) -> str:
    return _LINE_BREAK.sub(r"\\n", "" if value is None else str(value))


def _render_csv(rows: list[dict[str, Any]]) -> str:
    buffer = io.StringIO()
    writer = csv.writer(buffer, quoting=csv.QUOTE_ALL, lineterminator="\n")
    for row in rows:
        writer.writerow([_csv_field(row[column]) for column in CSV_HEADER])
    lines = [",".join(CSV_HEADER)]
    if rows:
        lines.append(buffer.getvalue().removesuffix("\n"))
    return "\n".join(lines)


def _render_markdown(books: list[ExportedBook]) -> str:
    return MARKDOWN_SEPARATOR.join(f"# {book.title}\n\n{book.markdown}" for book in books)


def build_combined_export(books: Sequence[ExportedBook], fmt: ExportFormat | str) -> ExportPayload:
    """
    Serialize many books into one combined payload.

    Args:
        books: Exported books, in any order
        fmt: markdown, json or csv

    Returns:
        ExportPayload named weread-export.<ext>

    Raises:
        ValueError: For an unsupported format
    """
    try:
        export_format = ExportFormat(fmt)
    except ValueError:
        raise ValueError(f"Unsupported format: {fmt}") from None

    ordered = sort_books(books)

    match export_format:
        case ExportFormat.MARKDOWN:
            return ExportPayload(f"{COMBINED_EXPORT_BASENAME}.md", _render_markdown(ordered), MARKDOWN_MIME_TYPE)
        case ExportFormat.JSON:
            rows = [{field: row[field] for field in JSON_FIELDS} for row in build_rows(ordered)]
            content = json.dumps(rows, indent=2, ensure_ascii=False)
            return ExportPayload(f"{COMBINED_EXPORT_BASENAME}.json", content, JSON_MIME_TYPE)
        case ExportFormat.CSV:
            return ExportPayload(f"{COMBINED_EXPORT_BASENAME}.csv", _render_csv(build_rows(ordered)), CSV_MIME_TYPE)
