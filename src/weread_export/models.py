#!/usr/bin/env python3
"""
Export Models

Records produced by the aggregator and consumed by the export formatter.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Generic, Literal, TypeAlias, TypeVar

BookId: TypeAlias = str
Rating: TypeAlias = str | int | float
JSONDict: TypeAlias = dict[str, Any]

T = TypeVar("T")
R = TypeVar("R")


class ExportFormat(Enum):
    """Output formats for combined exports."""

    MARKDOWN = "markdown"
    JSON = "json"
    CSV = "csv"


@dataclass(frozen=True)
class BookMeta:
    """Book metadata merged from the bookmark list and book info sources."""

    book_id: BookId
    title: str
    author: str | None = None
    cover: str | None = None
    rating: Rating = ""
    isbn: str = ""
    publisher: str = ""


@dataclass(frozen=True)
class NoteRecord:
    """A single highlight, with the user's review attached when one exists."""

    book_id: BookId
    title: str
    author: str | None = None
    cover_url: str | None = None
    rating: Rating | None = None
    publisher: str | None = None
    isbn: str | None = None
    chapter_uid: int | str | None = None
    chapter_title: str = ""
    range: str | None = None
    mark_text: str = ""
    review_text: str = ""
    created_at: int | str = ""
    style: int | None = None
    reading_time: int | None = None
    start_time: int | None = None
    finish_time: int | None = None


@dataclass(frozen=True)
class ExportedBook:
    """One book's full export unit."""

    book_id: BookId
    title: str
    markdown: str
    cover_url: str | None = None
    author: str | None = None
    rating: Rating | None = None
    publisher: str | None = None
    isbn: str | None = None
    notes: tuple[NoteRecord, ...] = field(default_factory=tuple)
    finish_time: int | None = None
    start_time: int | None = None
    reading_time: int | None = None


@dataclass(frozen=True)
class ExportPayload:
    """A serialized export ready to be handed to a sink."""

    file_name: str
    content: str
    mime_type: str


@dataclass(frozen=True)
class BatchOutcome(Generic[T, R]):
    """Result of running the unit of work for one batch item."""

    item: T
    action: Literal["completed", "failed"]
    value: R | None = None
    error: str | None = None
    exception: BaseException | None = None

    @property
    def succeeded(self) -> bool:
        return self.action == "completed"
