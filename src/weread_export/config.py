#!/usr/bin/env python3
"""
Export Configuration

Settings for export runs, read from an optional JSON file and overridden by
command line arguments.
"""

import json
import logging
import os
from dataclasses import asdict, dataclass, fields, replace
from pathlib import Path
from typing import Any

from weread_export.constants import (
    DEFAULT_CONCURRENCY,
    DEFAULT_DELAY_MS,
    DEFAULT_RETRY_DELAYS_MS,
    DEFAULT_TIMEOUT,
    OUTPUT_DIR,
    WEREAD_BASE_URL,
)
from weread_export.models import ExportFormat

logger = logging.getLogger(__name__)

COOKIE_ENV_VAR = "WEREAD_COOKIE"


@dataclass(frozen=True)
class ExportConfig:
    """Configuration for an export run."""

    user_vid: str = ""
    cookie: str | None = None
    output_dir: Path = OUTPUT_DIR
    format: ExportFormat = ExportFormat.MARKDOWN
    concurrency: int = DEFAULT_CONCURRENCY
    delay_ms: int = DEFAULT_DELAY_MS
    retry_delays: tuple[int, ...] = DEFAULT_RETRY_DELAYS_MS
    timeout: int = DEFAULT_TIMEOUT
    base_url: str = WEREAD_BASE_URL

    def __post_init__(self) -> None:
        if self.concurrency < 1:
            raise ValueError(f"concurrency must be at least 1, got {self.concurrency}")
        if self.delay_ms < 0:
            raise ValueError(f"delay_ms must not be negative, got {self.delay_ms}")
        if any(delay < 0 for delay in self.retry_delays):
            raise ValueError(f"retry delays must not be negative, got {list(self.retry_delays)}")

    def to_dict(self) -> dict[str, Any]:
        """JSON-ready form; the cookie is never written out."""
        data = asdict(self)
        data.pop("cookie")
        data["output_dir"] = str(self.output_dir)
        data["format"] = self.format.value
        data["retry_delays"] = list(self.retry_delays)
        return data


def _coerce_field(name: str, value: Any) -> Any:
    match name:
        case "output_dir":
            return Path(value)
        case "format":
            return ExportFormat(value)
        case "retry_delays":
            return tuple(int(delay) for delay in value)
        case "concurrency" | "delay_ms" | "timeout":
            return int(value)
        case _:
            return value


def config_from_dict(data: dict[str, Any]) -> ExportConfig:
    """Build an ExportConfig from a dict, ignoring unknown keys."""
    known = {field.name for field in fields(ExportConfig)}
    unknown = sorted(set(data) - known)
    if unknown:
        logger.warning(f"Ignoring unknown config keys: {', '.join(unknown)}")
    return ExportConfig(**{name: _coerce_field(name, value) for name, value in data.items() if name in known})


def load_export_config(config_path: str | Path) -> ExportConfig:
    """
    Load export configuration from a JSON file.
    """
    with open(config_path, encoding="utf-8") as f:
        data = json.load(f)
    if not isinstance(data, dict):
        raise ValueError(f"Config file must contain a JSON object: {config_path}")
    return config_from_dict(data)


def save_export_config(config: ExportConfig, config_path: str | Path) -> None:
    with open(config_path, "w", encoding="utf-8") as f:
        json.dump(config.to_dict(), f, indent=2, ensure_ascii=False)


def parse_retry_delays(value: str) -> tuple[int, ...]:
    """Parse a comma-separated list of millisecond delays; an empty string disables retries."""
    if not value.strip():
        return ()
    try:
        delays = tuple(int(part.strip()) for part in value.split(",") if part.strip())
    except ValueError:
        raise ValueError(f"Retry delays must be comma-separated integers, got '{value}'") from None
    if any(delay < 0 for delay in delays):
        raise ValueError(f"Retry delays must not be negative, got '{value}'")
    return delays


def apply_args_to_config(args: Any, config: ExportConfig | None = None) -> ExportConfig:
    """
    Overlay explicitly provided command line arguments onto a configuration.

    Arguments left unset (None) keep the configured value. The cookie falls
    back to the WEREAD_COOKIE environment variable when neither source sets it.
    """
    config = config or ExportConfig()
    overrides: dict[str, Any] = {}

    for name in ("user_vid", "cookie", "concurrency", "delay_ms", "timeout", "base_url"):
        value = getattr(args, name, None)
        if value is not None:
            overrides[name] = value

    if getattr(args, "output_dir", None) is not None:
        overrides["output_dir"] = Path(args.output_dir)
    if getattr(args, "format", None) is not None:
        overrides["format"] = ExportFormat(args.format)
    if getattr(args, "retry_delays", None) is not None:
        overrides["retry_delays"] = parse_retry_delays(args.retry_delays)

    if not overrides.get("cookie") and not config.cookie and os.environ.get(COOKIE_ENV_VAR):
        overrides["cookie"] = os.environ[COOKIE_ENV_VAR]

    return replace(config, **overrides)


def validate_book_id(book_id: str) -> None:
    """Validate a single book id.

    Raises:
        ValueError: If the book id is invalid
    """
    if not book_id:
        raise ValueError("Empty book id found")
    if len(book_id) > 64:
        raise ValueError(f"Book id '{book_id}' is too long (max 64 characters)")
    if not all(c.isalnum() or c in "-_" for c in book_id):
        raise ValueError(
            f"Book id '{book_id}' contains invalid characters (only alphanumeric, dash, underscore allowed)"
        )


def validate_and_parse_book_ids(book_ids_str: str) -> list[str]:
    """Validate and parse a comma-separated book id string."""
    book_ids = [book_id.strip() for book_id in book_ids_str.split(",")]
    book_ids = [book_id for book_id in book_ids if book_id]

    if not book_ids:
        raise ValueError("No valid book ids found")

    for book_id in book_ids:
        validate_book_id(book_id)
    return book_ids


def read_book_ids_from_file(file_path: str) -> list[str]:
    """Read and validate book ids from a text file, one per line; '#' starts a comment line.

    Raises:
        FileNotFoundError: If the file doesn't exist
        ValueError: If any book id is invalid or none are found
    """
    path = Path(file_path)
    if not path.exists():
        raise FileNotFoundError(f"Book ids file not found: {file_path}")
    if not path.is_file():
        raise ValueError(f"Path is not a file: {file_path}")

    book_ids = []
    with open(path, encoding="utf-8") as f:
        for line_num, line in enumerate(f, 1):
            line = line.strip()
            if not line or line.startswith("#"):
                continue
            try:
                validate_book_id(line)
            except ValueError as e:
                raise ValueError(f"Invalid book id on line {line_num}: {e}") from e
            book_ids.append(line)

    if not book_ids:
        raise ValueError(f"No valid book ids found in file: {file_path}")
    return book_ids


def parse_book_id_arguments(book_ids_str: str | None, book_ids_file: str | None) -> list[str] | None:
    """Parse book ids from either a comma-separated string or a file.

    Returns:
        List of validated book ids, or None if neither input was given

    Raises:
        ValueError: If both inputs are given or any book id is invalid
        FileNotFoundError: If the file doesn't exist
    """
    has_ids = book_ids_str is not None and book_ids_str.strip()
    has_file = book_ids_file is not None and book_ids_file.strip()

    if has_ids and has_file:
        raise ValueError("Cannot specify both --book-ids and --book-ids-file. Use one or the other.")
    if not has_ids and not has_file:
        return None

    if has_ids:
        assert book_ids_str is not None
        return validate_and_parse_book_ids(book_ids_str)
    assert book_ids_file is not None
    return read_book_ids_from_file(book_ids_file)
