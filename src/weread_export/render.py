"""Markdown rendering of a book's raw bookmark, review and progress data."""

import re
from collections import defaultdict
from datetime import UTC, datetime
from typing import Any

from weread_export.constants import HIGHLIGHT_MARK_TYPE, REVIEW_NOTE_TYPE

_RANGE_START = re.compile(r"^\s*(\d+)")


def format_duration(seconds: float) -> str:
    """
    Format a reading duration as a human-readable string.

    Args:
        seconds: Duration in seconds

    Returns:
        str: Formatted duration (e.g., "45s", "2m 30s", "1h 15m")
    """
    if seconds < 60:
        return f"{int(seconds)}s"
    elif seconds < 3600:
        minutes = int(seconds // 60)
        return f"{minutes}m {int(seconds % 60)}s"
    else:
        hours = int(seconds // 3600)
        return f"{hours}h {int((seconds % 3600) // 60)}m"


def format_date(timestamp: Any) -> str:
    """Format a WeRead epoch-seconds timestamp as YYYY-MM-DD (UTC); empty for missing values."""
    if not isinstance(timestamp, int | float) or isinstance(timestamp, bool) or timestamp <= 0:
        return ""
    return datetime.fromtimestamp(timestamp, UTC).strftime("%Y-%m-%d")


def _range_start(value: Any) -> int:
    match = _RANGE_START.match(str(value or ""))
    return int(match.group(1)) if match else 1 << 30


def _quote(text: str) -> str:
    return "> " + text.strip().replace("\n", "\n> ")


def _review_entries(review_data: Any) -> list[dict]:
    reviews = []
    for item in (review_data or {}).get("reviews") or []:
        review = (item or {}).get("review") or item
        if isinstance(review, dict) and review.get("type") == REVIEW_NOTE_TYPE:
            reviews.append(review)
    return reviews


def render_book_markdown(mark_data: Any, review_data: Any, progress_data: Any) -> str:
    """Render one book's highlights and reviews as a Markdown document body.

    Highlights are grouped by chapter in reading order. A review written on a
    highlighted passage is shown beneath the quote; reviews on passages that
    were never highlighted are quoted from their abstract.
    """
    mark_data = mark_data or {}
    book = mark_data.get("book") or {}
    progress = (progress_data or {}).get("book") or {}

    lines: list[str] = [f"# {book.get('title') or 'Untitled'}", ""]

    details = []
    if book.get("author"):
        details.append(f"- Author: {book['author']}")
    if progress.get("readingTime"):
        details.append(f"- Reading time: {format_duration(progress['readingTime'])}")
    if started := format_date(progress.get("startReadingTime")):
        details.append(f"- Started: {started}")
    if finished := format_date(progress.get("finishTime")):
        details.append(f"- Finished: {finished}")
    if details:
        lines.extend(details)
        lines.append("")

    chapters = mark_data.get("chapters") or []
    chapter_order = {chapter.get("chapterUid"): index for index, chapter in enumerate(chapters)}
    chapter_titles = {chapter.get("chapterUid"): chapter.get("title") or "" for chapter in chapters}

    reviews_by_key: dict[str, dict] = {}
    for review in _review_entries(review_data):
        if review.get("range"):
            reviews_by_key[f"{review.get('chapterUid')}-{review.get('range')}"] = review

    entries: dict[Any, list[tuple[int, str, str]]] = defaultdict(list)
    used_keys: set[str] = set()
    for mark in mark_data.get("updated") or []:
        if not isinstance(mark, dict) or mark.get("type") != HIGHLIGHT_MARK_TYPE:
            continue
        key = f"{mark.get('chapterUid')}-{mark.get('range')}"
        review = reviews_by_key.get(key)
        note = ""
        if review:
            used_keys.add(key)
            note = review.get("content") or review.get("abstract") or ""
        text = mark.get("markText") or mark.get("abstract") or ""
        entries[mark.get("chapterUid")].append((_range_start(mark.get("range")), text, note))

    for key, review in reviews_by_key.items():
        if key in used_keys:
            continue
        entries[review.get("chapterUid")].append(
            (_range_start(review.get("range")), review.get("abstract") or "", review.get("content") or "")
        )

    if not entries:
        lines.append("_No highlights._")
        return "\n".join(lines) + "\n"

    for chapter_uid in sorted(entries, key=lambda uid: chapter_order.get(uid, len(chapter_order))):
        lines.append(f"## {chapter_titles.get(chapter_uid) or 'Unknown chapter'}")
        lines.append("")
        for _, text, note in sorted(entries[chapter_uid], key=lambda entry: entry[0]):
            lines.append(_quote(text) if text else "> _No highlight text._")
            lines.append("")
            if note:
                lines.append(f"**Note:** {note.strip()}")
                lines.append("")

    return "\n".join(lines)
