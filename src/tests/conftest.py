"""Shared test configuration utilities and fixtures."""

from unittest.mock import AsyncMock, patch

import pytest

from tests.test_utils.mocks import FakeWeReadClient


@pytest.fixture
def mark_data():
    """Bookmark list source with one highlight and one non-highlight entry."""
    return {
        "book": {
            "title": "Test Book",
            "author": "Author",
            "cover": "https://example.com/s_cover.png",
            "isbn": "ISBN-1",
            "publisher": "Publisher-1",
        },
        "chapters": [
            {"chapterUid": "1", "chapterIdx": 1, "title": "Ch1"},
            {"chapterUid": "2", "chapterIdx": 2, "title": "Ch2"},
        ],
        "updated": [
            {
                "bookId": "book-1",
                "chapterUid": "1",
                "type": 1,
                "range": "1-2",
                "abstract": "abstract",
                "markText": "note content",
                "createTime": 1700000000,
                "style": 0,
            },
            {"chapterUid": "2", "type": 0, "range": "5-6", "markText": "bookmark only"},
        ],
    }


@pytest.fixture
def review_data():
    """Review list source with one review matching the highlight."""
    return {
        "reviews": [
            {"review": {"chapterUid": "1", "range": "1-2", "type": 1, "content": "my thoughts", "abstract": "quoted"}},
        ]
    }


@pytest.fixture
def progress_data():
    return {"book": {"readingTime": 3600, "startReadingTime": 1690000000, "finishTime": 1700000000}}


@pytest.fixture
def info_data():
    return {"title": "Info Title", "rating": 4.5, "isbn13": "9780000000000", "publish": "Info Publisher"}


@pytest.fixture
def book_sources(mark_data, review_data, progress_data, info_data):
    return {"marks": mark_data, "reviews": review_data, "progress": progress_data, "info": info_data}


@pytest.fixture
def fake_client(book_sources):
    """Fake client serving the standard test book."""
    return FakeWeReadClient(responses=book_sources)


@pytest.fixture
def mock_pause():
    """Replace the retry pause so tests never wait and can inspect requested delays."""
    with patch("weread_export.aggregator._pause", new_callable=AsyncMock) as pause:
        yield pause
