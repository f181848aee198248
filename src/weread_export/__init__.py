#!/usr/bin/env python3
"""
WeRead Export

Export WeRead highlights, notes and reviews to Markdown, JSON and CSV.
"""

from .aggregator import export_book
from .batch import BatchRunner, batch_run
from .client import RequestError, WeReadClient
from .export import build_combined_export, build_markdown_export, sanitize_file_name
from .models import BatchOutcome, ExportedBook, ExportFormat, ExportPayload, NoteRecord

__all__ = [
    # Fetching and aggregation
    "WeReadClient",
    "RequestError",
    "export_book",
    # Batch execution
    "BatchRunner",
    "batch_run",
    # Formatting
    "build_combined_export",
    "build_markdown_export",
    "sanitize_file_name",
    # Records
    "BatchOutcome",
    "ExportedBook",
    "ExportFormat",
    "ExportPayload",
    "NoteRecord",
]
