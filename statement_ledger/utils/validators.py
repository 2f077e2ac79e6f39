"""Input checks shared by the CLI, the Celery tasks and the orchestrator."""

import os
from typing import Iterable, Optional

from statement_ledger.config.settings import (
    MAX_FILE_SIZE_MB,
    SUPPORTED_CSV_FORMATS,
    SUPPORTED_PDF_FORMATS,
)
from statement_ledger.utils.exceptions import ValidationError

BYTES_PER_MB = 1024 * 1024


def validate_file_path(file_path: str) -> None:
    """Check that ``file_path`` names an existing, readable regular file.

    Raises:
        ValidationError: On an empty path, a missing path, a directory or
            a file the process cannot read.
    """
    if not file_path:
        raise ValidationError("Statement path cannot be empty")
    if not os.path.exists(file_path):
        raise ValidationError(f"Statement does not exist: {file_path}")
    if not os.path.isfile(file_path):
        raise ValidationError(f"{file_path} is not a file")
    if not os.access(file_path, os.R_OK):
        raise ValidationError(f"Statement cannot be read: {file_path}")


def validate_file_size(file_path: str, max_size_mb: int = MAX_FILE_SIZE_MB) -> None:
    """Reject uploads larger than ``max_size_mb`` megabytes."""
    size_mb = os.path.getsize(file_path) / BYTES_PER_MB
    if size_mb > max_size_mb:
        raise ValidationError(f"Upload of {size_mb:.2f}MB exceeds maximum of {max_size_mb}MB")


def validate_file_extension(file_path: str, supported_formats: Iterable[str]) -> None:
    """Reject files whose lower-cased extension is not in ``supported_formats``."""
    formats = list(supported_formats)
    extension = os.path.splitext(file_path)[1].lower()
    if extension not in formats:
        raise ValidationError(
            f"Extension '{extension}' is not supported (expected one of {', '.join(formats)})"
        )


def _validate_upload(file_path: str, max_size_mb: int, formats: Iterable[str]) -> None:
    validate_file_path(file_path)
    validate_file_extension(file_path, formats)
    validate_file_size(file_path, max_size_mb)


def validate_pdf_file(file_path: str, max_size_mb: int = MAX_FILE_SIZE_MB) -> None:
    """Run every upload check for a statement PDF.

    Raises:
        ValidationError: If any check fails.
    """
    _validate_upload(file_path, max_size_mb, SUPPORTED_PDF_FORMATS)


def validate_csv_file(file_path: str, max_size_mb: int = MAX_FILE_SIZE_MB) -> None:
    """Run every upload check for a bank CSV export."""
    _validate_upload(file_path, max_size_mb, SUPPORTED_CSV_FORMATS)


def validate_directory_path(dir_path: str) -> None:
    """Make sure ``dir_path`` is a writable directory, creating it if needed.

    Raises:
        ValidationError: If the path is empty, cannot be created, is not a
            directory or is read-only.
    """
    if not dir_path:
        raise ValidationError("Output directory cannot be empty")

    try:
        os.makedirs(dir_path, exist_ok=True)
    except FileExistsError:
        raise ValidationError(f"{dir_path} is not a directory")
    except OSError as e:
        raise ValidationError(f"Cannot create output directory {dir_path}: {str(e)}")

    if not os.path.isdir(dir_path):
        raise ValidationError(f"{dir_path} is not a directory")
    if not os.access(dir_path, os.W_OK):
        raise ValidationError(f"Output directory is read-only: {dir_path}")


def validate_max_pages(max_pages: Optional[int]) -> None:
    """Accept ``None`` (no limit) or a positive integer page limit."""
    if max_pages is None:
        return
    if isinstance(max_pages, bool) or not isinstance(max_pages, int):
        raise ValidationError(f"Max pages must be an integer, got {max_pages!r}")
    if max_pages < 1:
        raise ValidationError(f"Max pages must be at least 1, got {max_pages}")


def validate_page_range(
    start_page: int,
    end_page: Optional[int] = None,
    total_pages: Optional[int] = None
) -> None:
    """Check a 1-based inclusive page range.

    Args:
        start_page: First page of the range.
        end_page: Optional last page; must not precede ``start_page``.
        total_pages: Optional document length bounding ``end_page``.

    Raises:
        ValidationError: If the range is malformed or out of bounds.
    """
    if not isinstance(start_page, int) or start_page < 1:
        raise ValidationError(f"Invalid start page: {start_page!r}")
    if end_page is None:
        return
    if not isinstance(end_page, int) or end_page < start_page:
        raise ValidationError(f"Invalid page range: {start_page}-{end_page!r}")
    if total_pages is not None and end_page > total_pages:
        raise ValidationError(f"End page {end_page} exceeds total pages {total_pages}")
