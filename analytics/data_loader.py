# data_loader.py — CSV parsing for dataset uploads
# Handles upload reading, encoding fallback, size limits, simple CSV splitting
"""
data_loader.py — CSV Upload Loading

The dashboard's CSV dialect is deliberately simple: one record per line,
fields split on commas, one layer of surrounding double quotes stripped.
Embedded commas and escaped quotes are NOT supported (documented
limitation of the upload format).
"""

from __future__ import annotations

import logging
from typing import BinaryIO

from analytics.cleaning import process_dataset
from analytics.errors import (
    EmptyDatasetError,
    FileReadError,
    FileTooLargeError,
    UnsupportedFileTypeError,
)
from analytics.models import Dataset
from analytics.scalars import Row
from analytics.validators import validate_file_extension

log = logging.getLogger(__name__)


# =============================================================================
# CONSTANTS
# =============================================================================

MAX_FILE_SIZE_MB = 100
MAX_FILE_SIZE_BYTES = MAX_FILE_SIZE_MB * 1024 * 1024
SUPPORTED_ENCODINGS = ["utf-8-sig", "latin-1"]


# =============================================================================
# PARSING
# =============================================================================

def _strip_field(field: str) -> str:
    field = field.strip()
    if field.startswith('"'):
        field = field[1:]
    if field.endswith('"'):
        field = field[:-1]
    return field


def parse_csv(content: str) -> list[Row]:
    """
    Split CSV text into raw rows.

    Args:
        content: Full file text, first non-blank line holds the headers

    Returns:
        List of dicts (header → raw string). Empty fields and fields
        missing from short lines are None.
    """
    lines = [line for line in content.splitlines() if line.strip()]
    if not lines:
        return []

    headers = [_strip_field(h) for h in lines[0].split(",")]
    rows = []

    for line in lines[1:]:
        values = [_strip_field(v) for v in line.split(",")]
        row: Row = {}
        for index, header in enumerate(headers):
            value = values[index] if index < len(values) else ""
            row[header] = value or None
        rows.append(row)

    return rows


# =============================================================================
# DATA LOADING
# =============================================================================

def read_csv_rows(
    file: BinaryIO | bytes | str,
    filename: str = "unknown.csv",
) -> list[Row]:
    """
    Read and parse a CSV upload.

    Args:
        file: File-like object, bytes, or file path
        filename: Original filename for error messages

    Raises:
        FileReadError: If the file cannot be read or decoded
        FileTooLargeError: If the file exceeds MAX_FILE_SIZE_MB
        EmptyDatasetError: If the file is empty or has no data rows
    """
    try:
        if isinstance(file, str):
            with open(file, "rb") as f:
                raw_bytes = f.read()
        elif isinstance(file, bytes):
            raw_bytes = file
        else:
            raw_bytes = file.read()
            if hasattr(file, "seek"):
                file.seek(0)
    except OSError as e:
        raise FileReadError(f"Failed to read file: {e}") from e

    if len(raw_bytes) > MAX_FILE_SIZE_BYTES:
        raise FileTooLargeError(
            f"File exceeds {MAX_FILE_SIZE_MB}MB limit ({len(raw_bytes) / 1024 / 1024:.1f}MB)"
        )

    if len(raw_bytes) == 0:
        raise EmptyDatasetError("File is empty")

    text = None
    for encoding in SUPPORTED_ENCODINGS:
        try:
            text = raw_bytes.decode(encoding)
            break
        except UnicodeDecodeError:
            log.debug("Decoding %s as %s failed", filename, encoding)
            continue

    if text is None:
        raise FileReadError(f"Could not decode {filename}")

    rows = parse_csv(text)
    if not rows:
        raise EmptyDatasetError("CSV file contains no data rows")

    return rows


def safe_load_csv(
    file: BinaryIO | bytes | str,
    filename: str = "unknown.csv",
) -> tuple[list[Row] | None, str | None]:
    """
    Safely read and parse a CSV upload.

    Returns:
        Tuple of (rows or None, error_message or None)
    """
    try:
        return read_csv_rows(file, filename), None
    except (FileReadError, FileTooLargeError, EmptyDatasetError) as e:
        return None, str(e)


def load_dataset(file: BinaryIO | bytes | str, filename: str) -> Dataset:
    """
    Validate, parse and clean an upload in one step.

    Raises:
        UnsupportedFileTypeError: If the file is not a CSV
        FileReadError: If the file cannot be read or decoded
        FileTooLargeError: If the file exceeds the size limit
        EmptyDatasetError: If the file holds no data rows
    """
    is_valid, error = validate_file_extension(filename)
    if not is_valid:
        raise UnsupportedFileTypeError(error)

    dataset = process_dataset(read_csv_rows(file, filename))
    log.info(
        "Loaded %s: %d rows, %d columns, %d duplicates removed",
        filename,
        dataset.summary.total_rows,
        dataset.summary.total_columns,
        dataset.summary.duplicates,
    )
    return dataset
