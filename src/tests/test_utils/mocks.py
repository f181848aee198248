"""
Shared fakes for weread_export tests.

This module provides:
- A fake WeRead client serving canned sources with scripted failures
- Mock aiohttp responses and sessions for client tests
- Builders for exported book records
"""

import asyncio
from typing import Any
from unittest.mock import AsyncMock, MagicMock

from weread_export.client import WeReadClient
from weread_export.models import ExportedBook, NoteRecord

# =============================================================================
# Fake API client
# =============================================================================

SOURCE_PATHS = {
    "/web/book/bookmarklist": "marks",
    "/web/review/list": "reviews",
    "/web/book/getProgress": "progress",
    "/web/book/info": "info",
}


def source_for(url: str) -> str:
    for path, source in SOURCE_PATHS.items():
        if path in url:
            return source
    raise AssertionError(f"Unexpected URL requested: {url}")


class FakeWeReadClient(WeReadClient):
    """
    WeRead client that serves canned JSON per source instead of hitting the network.

    ``responses`` maps a source name (marks, reviews, progress, info) to the
    body returned for it. ``errors`` maps a source name to exceptions raised
    by its successive requests; once a list is exhausted the source succeeds.
    """

    def __init__(
        self,
        responses: dict[str, Any] | None = None,
        errors: dict[str, list[BaseException]] | None = None,
    ):
        super().__init__(base_url="https://weread.test")
        self.responses = responses or {}
        self.errors = {source: list(queue) for source, queue in (errors or {}).items()}
        self.calls: list[str] = []

    async def fetch_json(self, url: str) -> Any:
        self.calls.append(url)
        # Yield so sibling fetches start before any of them settles
        await asyncio.sleep(0)
        source = source_for(url)
        queue = self.errors.get(source)
        if queue:
            raise queue.pop(0)
        return self.responses.get(source, {})

    def calls_for(self, source: str) -> list[str]:
        return [url for url in self.calls if source_for(url) == source]


# =============================================================================
# aiohttp mocks
# =============================================================================


def create_aiohttp_response(status: int = 200, json_body: Any = None, json_error: Exception | None = None) -> MagicMock:
    """
    Create a mock aiohttp response.

    Args:
        status: HTTP status code
        json_body: Value returned by ``response.json()``
        json_error: Exception raised by ``response.json()`` instead

    Returns:
        Mock response with status and an awaitable json method
    """
    response = MagicMock()
    response.status = status
    if json_error is not None:
        response.json = AsyncMock(side_effect=json_error)
    else:
        response.json = AsyncMock(return_value=json_body)
    return response


def create_session_mock(response: MagicMock | None = None, get_error: Exception | None = None) -> MagicMock:
    """Create a mock ClientSession whose ``get`` is usable as ``async with session.get(...)``."""
    session = MagicMock()
    context = MagicMock()
    context.__aenter__ = AsyncMock(return_value=response)
    context.__aexit__ = AsyncMock(return_value=False)
    if get_error is not None:
        session.get = MagicMock(side_effect=get_error)
    else:
        session.get = MagicMock(return_value=context)
    session.close = AsyncMock()
    return session


# =============================================================================
# Record builders
# =============================================================================


def make_note(book_id: str = "book-1", title: str = "Book", **overrides: Any) -> NoteRecord:
    values: dict[str, Any] = {
        "book_id": book_id,
        "title": title,
        "chapter_uid": 1,
        "chapter_title": "Chapter 1",
        "range": "10-20",
        "mark_text": "highlighted text",
    }
    values.update(overrides)
    return NoteRecord(**values)


def make_book(book_id: str = "book-1", title: str = "Book", **overrides: Any) -> ExportedBook:
    values: dict[str, Any] = {
        "book_id": book_id,
        "title": title,
        "markdown": f"body of {title}",
    }
    values.update(overrides)
    return ExportedBook(**values)
