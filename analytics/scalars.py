# scalars.py — Cell values: null handling, parsing and column-type coercion
"""
scalars.py — Cell Scalar Handling

A cell holds one of: str, float, date / datetime, bool, or None.
Raw uploads carry strings (or whatever the caller passed in); after
ingestion every cell is coerced to its column's type once, so downstream
readers can rely on the schema.
"""

from __future__ import annotations

import json
import math
import numbers
import re
from datetime import date, datetime
from typing import Any, Union

import pandas as pd


Scalar = Union[str, float, date, datetime, bool, None]
Row = dict[str, Scalar]

BOOLEAN_TRUE_LITERALS = {"true", "1"}
BOOLEAN_FALSE_LITERALS = {"false", "0"}

_HEX_PATTERN = re.compile(r"^0[xX][0-9a-fA-F]+$")

# pandas resolves these against the wall clock
RELATIVE_DATE_WORDS = {"now", "today", "yesterday", "tomorrow"}


# =============================================================================
# NULLS
# =============================================================================

def is_null(value: Any) -> bool:
    """None, empty string and float NaN all count as missing."""
    if value is None:
        return True
    if isinstance(value, str):
        return value == ""
    if isinstance(value, float):
        return math.isnan(value)
    return value is pd.NaT


# =============================================================================
# PARSING
# =============================================================================

def parse_number(value: Any) -> float | None:
    """
    Parse a cell as a finite number.

    Booleans are never numbers; strings accept decimal, exponent and
    hex notation. Returns None when the value is not numeric.
    """
    if value is None or isinstance(value, bool):
        return None

    if isinstance(value, numbers.Real):
        number = float(value)
        return number if math.isfinite(number) else None

    if not isinstance(value, str):
        return None

    text = value.strip()
    if not text or "_" in text:
        return None

    if _HEX_PATTERN.match(text):
        return float(int(text, 16))

    try:
        number = float(text)
    except ValueError:
        return None

    return number if math.isfinite(number) else None


def parse_boolean(value: Any) -> bool | None:
    """Parse true/false/1/0 literals (case-insensitive)."""
    if isinstance(value, bool):
        return value
    if not isinstance(value, str):
        return None

    text = value.strip().lower()
    if text in BOOLEAN_TRUE_LITERALS:
        return True
    if text in BOOLEAN_FALSE_LITERALS:
        return False
    return None


def parse_date(value: Any) -> date | datetime | None:
    """
    Parse a cell as a calendar date or timestamp.

    Midnight timestamps without a timezone collapse to `date`.
    """
    if value is None or isinstance(value, bool):
        return None

    if isinstance(value, pd.Timestamp):
        return None if pd.isna(value) else _from_timestamp(value)

    if isinstance(value, (datetime, date)):
        return value

    if not isinstance(value, str) or not value.strip():
        return None

    if value.strip().lower() in RELATIVE_DATE_WORDS:
        return None

    try:
        parsed = pd.to_datetime(value.strip(), errors="coerce")
    except (ValueError, TypeError, OverflowError):
        return None

    if parsed is None or pd.isna(parsed):
        return None

    return _from_timestamp(parsed)


def _from_timestamp(ts: pd.Timestamp) -> date | datetime:
    if ts.tzinfo is None and ts == ts.normalize():
        return ts.date()
    return ts.to_pydatetime()


def to_timestamp(value: Any) -> pd.Timestamp | None:
    """Normalise any date-like cell to a naive UTC pandas Timestamp."""
    parsed = parse_date(value)
    if parsed is None:
        return None

    ts = pd.Timestamp(parsed)
    if ts.tzinfo is not None:
        ts = ts.tz_convert("UTC").tz_localize(None)
    return ts


def to_iso(value: Any) -> str:
    """Render a cell as text; dates use ISO format."""
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


# =============================================================================
# COERCION
# =============================================================================

def coerce_value(value: Any, column_type: str) -> Scalar:
    """
    Coerce a raw cell to its column type.

    Cells that do not fit the column type become None.
    """
    if is_null(value):
        return None

    if column_type == "number":
        return parse_number(value)
    if column_type == "boolean":
        return parse_boolean(value)
    if column_type == "date":
        return parse_date(value)
    if isinstance(value, str):
        return value
    return to_iso(value)


def coerce_row(row: Row, column_types: dict[str, str]) -> Row:
    return {
        name: coerce_value(row.get(name), column_type)
        for name, column_type in column_types.items()
    }


def _json_default(value: Any) -> str:
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return str(value)


def row_key(row: Row) -> str:
    """Structural equality key for a row (key order and value types matter)."""
    return json.dumps(row, default=_json_default, ensure_ascii=False)
