#!/usr/bin/env python3
"""
Book Aggregator

Fetches the four WeRead sources for a book (bookmarks, reviews, reading
progress, book info) concurrently and merges them into one ExportedBook.
A failed attempt is retried as a whole, following a caller-supplied list of
delays.
"""

import asyncio
import logging
from collections.abc import Callable, Sequence
from enum import Enum
from typing import Any, TypeAlias

from tenacity import AsyncRetrying, RetryCallState, retry_if_exception, stop_after_attempt

from weread_export.client import RequestError, WeReadClient
from weread_export.constants import (
    BOOK_INFO_PATH,
    BOOKMARK_LIST_PATH,
    COVER_ALT_SUFFIX,
    COVER_LARGE_MARKER,
    COVER_SMALL_MARKER,
    HIGHLIGHT_MARK_TYPE,
    PROGRESS_PATH,
    REVIEW_LIST_PATH,
    REVIEW_NOTE_TYPE,
)
from weread_export.models import BookId, BookMeta, ExportedBook, JSONDict, NoteRecord
from weread_export.render import render_book_markdown

logger = logging.getLogger(__name__)

Renderer: TypeAlias = Callable[[Any, Any, Any], str]


class AttemptState(Enum):
    """States of a book export attempt cycle."""

    ATTEMPTING = "attempting"
    WAITING_TO_RETRY = "waiting_to_retry"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


StateObserver: TypeAlias = Callable[[AttemptState, int, BaseException | None], None]


def _as_dict(value: Any) -> JSONDict:
    return value if isinstance(value, dict) else {}


def normalize_cover_url(raw: str | None) -> str | None:
    """Swap small cover thumbnails for the larger variant; None for a missing cover."""
    if not raw:
        return None
    return raw.replace(COVER_SMALL_MARKER, COVER_LARGE_MARKER)


def _first_present(source: JSONDict, keys: Sequence[str], default: Any = "") -> Any:
    for key in keys:
        value = source.get(key)
        if value is not None:
            return value
    return default


def build_book_meta(book_id: BookId, mark_book: JSONDict | None, info_book: JSONDict | None) -> BookMeta:
    """
    Merge the bookmark list's embedded book object with the book info source.

    Precedence, per field:

    ============  =========================================================
    field         resolution (first match wins)
    ============  =========================================================
    title         mark title, info title, book_id (first non-empty)
    author        merged author (mark overrides info)
    cover         merged cover (mark overrides info)
    rating        rating, score, newRating, star, ratingDetail.recent, ""
                  (first value that is not None)
    isbn          isbn, isbn13, "" (first non-empty)
    publisher     publisher, publish, "" (first non-empty)
    ============  =========================================================
    """
    mark_book = _as_dict(mark_book)
    info_book = _as_dict(info_book)
    combined = {**info_book, **mark_book}

    rating = _first_present(combined, ("rating", "score", "newRating", "star"), default=None)
    if rating is None:
        rating = _first_present(_as_dict(combined.get("ratingDetail")), ("recent",))

    return BookMeta(
        book_id=book_id,
        title=mark_book.get("title") or info_book.get("title") or book_id,
        author=combined.get("author"),
        cover=combined.get("cover"),
        rating=rating,
        isbn=combined.get("isbn") or combined.get("isbn13") or "",
        publisher=combined.get("publisher") or combined.get("publish") or "",
    )


def find_chapter_title(chapters: Sequence[JSONDict] | None, chapter_uid: Any) -> str:
    if not chapters or chapter_uid is None:
        return ""
    for chapter in chapters:
        if _as_dict(chapter).get("chapterUid") == chapter_uid:
            return chapter.get("title") or ""
    return ""


def review_key(chapter_uid: Any, text_range: Any) -> str:
    return f"{chapter_uid}-{text_range}"


def build_review_index(review_data: Any) -> dict[str, str]:
    """Map chapter+range keys to review text for the user's passage reviews.

    Entries are either ``{"review": {...}}`` wrappers or bare review objects.
    Only type 1 reviews with a range are indexed; a later review with the
    same key replaces an earlier one.
    """
    index: dict[str, str] = {}
    for item in _as_dict(review_data).get("reviews") or []:
        review = _as_dict(item).get("review") or item
        if not isinstance(review, dict) or review.get("type") != REVIEW_NOTE_TYPE or not review.get("range"):
            continue
        index[review_key(review.get("chapterUid"), review["range"])] = (
            review.get("content") or review.get("abstract") or ""
        )
    return index


def build_note_records(
    mark_data: Any,
    review_data: Any,
    progress_data: Any,
    meta: BookMeta,
    cover_url: str | None,
) -> tuple[NoteRecord, ...]:
    """Build a NoteRecord for every highlight in the bookmark list."""
    mark_data = _as_dict(mark_data)
    chapters = mark_data.get("chapters")
    chapters = chapters if isinstance(chapters, list) else []
    progress = _as_dict(_as_dict(progress_data).get("book"))
    reviews = build_review_index(review_data)

    updated = mark_data.get("updated")
    marks = updated if isinstance(updated, list) else []

    notes = []
    for mark in marks:
        if not isinstance(mark, dict) or mark.get("type") != HIGHLIGHT_MARK_TYPE:
            continue
        chapter_uid = mark.get("chapterUid")
        notes.append(
            NoteRecord(
                book_id=mark.get("bookId") or meta.book_id,
                title=meta.title,
                author=meta.author,
                cover_url=cover_url,
                rating=meta.rating,
                publisher=meta.publisher,
                isbn=meta.isbn,
                chapter_uid=chapter_uid,
                chapter_title=find_chapter_title(chapters, chapter_uid),
                range=mark.get("range"),
                mark_text=mark.get("markText") or mark.get("abstract") or "",
                review_text=reviews.get(review_key(chapter_uid, mark.get("range"))) or "",
                created_at=mark.get("createTime") or "",
                style=mark.get("style"),
                reading_time=progress.get("readingTime"),
                start_time=progress.get("startReadingTime"),
                finish_time=progress.get("finishTime"),
            )
        )
    return tuple(notes)


def assemble_book(
    book_id: BookId,
    mark_data: Any,
    review_data: Any,
    progress_data: Any,
    info_data: Any,
    renderer: Renderer = render_book_markdown,
) -> ExportedBook:
    """Merge the four fetched sources into an ExportedBook."""
    meta = build_book_meta(book_id, _as_dict(mark_data).get("book"), info_data)
    cover_url = normalize_cover_url(meta.cover)

    markdown = renderer(mark_data, review_data, progress_data)
    if cover_url:
        markdown = f"![{meta.title} {COVER_ALT_SUFFIX}]({cover_url})\n\n{markdown}"

    progress = _as_dict(_as_dict(progress_data).get("book"))
    return ExportedBook(
        book_id=book_id,
        title=meta.title,
        markdown=markdown,
        cover_url=cover_url,
        author=meta.author,
        rating=meta.rating,
        publisher=meta.publisher,
        isbn=meta.isbn,
        notes=build_note_records(mark_data, review_data, progress_data, meta, cover_url),
        finish_time=progress.get("finishTime"),
        start_time=progress.get("startReadingTime"),
        reading_time=progress.get("readingTime"),
    )


def book_source_urls(client: WeReadClient, book_id: BookId, user_vid: str) -> list[str]:
    """URLs for the bookmark list, review list, reading progress and book info, in that order."""
    return [
        client.url_for(BOOKMARK_LIST_PATH.format(book_id=book_id)),
        client.url_for(REVIEW_LIST_PATH.format(book_id=book_id, user_vid=user_vid)),
        client.url_for(PROGRESS_PATH.format(book_id=book_id)),
        client.url_for(BOOK_INFO_PATH.format(book_id=book_id)),
    ]


async def fetch_book_sources(client: WeReadClient, urls: Sequence[str]) -> list[Any]:
    """Fetch all URLs concurrently; the first failure fails the group and cancels the rest."""
    tasks = [asyncio.create_task(client.fetch_json(url)) for url in urls]
    try:
        return await asyncio.gather(*tasks)
    except BaseException:
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        raise


def is_retryable(error: BaseException) -> bool:
    if isinstance(error, RequestError):
        return error.should_retry
    return True


async def _pause(seconds: float) -> None:
    if seconds:
        await asyncio.sleep(seconds)


def _retry_wait(retry_delays: Sequence[int]) -> Callable[[RetryCallState], float]:
    def wait(retry_state: RetryCallState) -> float:
        if not retry_delays:
            return 0.0
        index = min(retry_state.attempt_number - 1, len(retry_delays) - 1)
        return retry_delays[index] / 1000

    return wait


async def export_book(
    client: WeReadClient,
    book_id: BookId,
    user_vid: str,
    retry_delays: Sequence[int] = (),
    renderer: Renderer = render_book_markdown,
    observer: StateObserver | None = None,
) -> ExportedBook:
    """
    Export one book, retrying the whole four-request group on transient failure.

    Args:
        client: API client
        book_id: WeRead book id
        user_vid: Id of the user whose reviews are exported
        retry_delays: Milliseconds to wait before each retry; its length is the retry budget
        renderer: Renders the raw mark/review/progress sources to a Markdown body
        observer: Optional callback receiving (state, attempt_number, error) transitions

    Returns:
        ExportedBook for the book

    Raises:
        RequestError: The final failure, once it is not retryable or the budget is spent
    """
    retry_delays = list(retry_delays)
    urls = book_source_urls(client, book_id, user_vid)

    def notify(state: AttemptState, attempt_number: int, error: BaseException | None = None) -> None:
        if observer is not None:
            observer(state, attempt_number, error)

    def before_sleep(retry_state: RetryCallState) -> None:
        error = retry_state.outcome.exception() if retry_state.outcome else None
        wait_seconds = retry_state.next_action.sleep if retry_state.next_action else 0.0
        logger.warning(
            f"[{book_id}] Attempt {retry_state.attempt_number} failed ({type(error).__name__}: {error}), "
            f"retrying in {wait_seconds:.1f}s"
        )
        notify(AttemptState.WAITING_TO_RETRY, retry_state.attempt_number, error)

    retrying = AsyncRetrying(
        stop=stop_after_attempt(len(retry_delays) + 1),
        retry=retry_if_exception(is_retryable),
        wait=_retry_wait(retry_delays),
        sleep=_pause,
        before_sleep=before_sleep,
        reraise=True,
    )

    attempt_number = 0
    try:
        async for attempt in retrying:
            with attempt:
                attempt_number = attempt.retry_state.attempt_number
                notify(AttemptState.ATTEMPTING, attempt_number)
                logger.debug(f"[{book_id}] Fetching sources (attempt {attempt_number})")
                mark_data, review_data, progress_data, info_data = await fetch_book_sources(client, urls)
    except Exception as e:
        logger.error(f"[{book_id}] Export failed after {attempt_number} attempt(s): {type(e).__name__}: {e}")
        notify(AttemptState.FAILED, attempt_number, e)
        raise

    book = assemble_book(book_id, mark_data, review_data, progress_data, info_data, renderer)
    notify(AttemptState.SUCCEEDED, attempt_number)
    logger.info(f"[{book_id}] Exported '{book.title}' with {len(book.notes)} notes")
    return book
