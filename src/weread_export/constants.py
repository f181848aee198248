#!/usr/bin/env python3
"""
Constants for weread_export application.

Centralized constants to eliminate duplication across the codebase.
"""

from pathlib import Path

# WeRead web API
WEREAD_BASE_URL = "https://weread.qq.com"
WEREAD_LOGIN_PATH = "/#login"

BOOKMARK_LIST_PATH = "/web/book/bookmarklist?bookId={book_id}"
REVIEW_LIST_PATH = (
    "/web/review/list?bookId={book_id}&mine=1&listType=11&maxIdx=0&count=0&listMode=2&synckey=0&userVid={user_vid}"
)
PROGRESS_PATH = "/web/book/getProgress?bookId={book_id}"
BOOK_INFO_PATH = "/web/book/info?bookId={book_id}"

# Source API type discriminants
HIGHLIGHT_MARK_TYPE = 1
REVIEW_NOTE_TYPE = 1

# Cover thumbnails: small "s_" covers are swapped for the larger "t6_" variant
COVER_SMALL_MARKER = "s_"
COVER_LARGE_MARKER = "t6_"

# Output files
OUTPUT_DIR = Path("output")
COMBINED_EXPORT_BASENAME = "weread-export"
EMPTY_FILENAME_PLACEHOLDER = "导出"
COVER_ALT_SUFFIX = "封面"

MARKDOWN_MIME_TYPE = "text/markdown;charset=utf-8"
JSON_MIME_TYPE = "application/json;charset=utf-8"
CSV_MIME_TYPE = "text/csv;charset=utf-8"

# Request defaults
DEFAULT_TIMEOUT = 30
HTTP_CONNECTION_POOL_LIMITS = {"limit": 20, "limit_per_host": 10}

# Batch defaults
DEFAULT_CONCURRENCY = 2
DEFAULT_DELAY_MS = 0
DEFAULT_RETRY_DELAYS_MS = (1000, 3000)
