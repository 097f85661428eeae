# cleaning.py — Type inference & cleaning pipeline
# Null normalisation, deduplication, type detection, imputation
"""
cleaning.py — Dataset Ingestion & Cleaning

Turns raw uploaded rows into a typed Dataset:

1. Null normalisation   (None / "" / NaN → None)
2. Deduplication        (full-row equality, first occurrence wins)
3. Type detection       (number → boolean → date → string precedence)
4. Imputation           (numeric mean, string mode; dates/booleans untouched)

Missing-value counts are taken from the deduplicated rows BEFORE imputation.
"""

from __future__ import annotations

import math
from collections import Counter
from typing import Any, Iterable, Mapping

from analytics.errors import EmptyDatasetError
from analytics.models import Column, ColumnType, Dataset, DatasetSummary
from analytics.scalars import (
    Row,
    coerce_row,
    coerce_value,
    is_null,
    parse_boolean,
    parse_date,
    parse_number,
    row_key,
)


# =============================================================================
# NULL NORMALISATION
# =============================================================================

def _column_names(rows: Iterable[Mapping[str, Any]]) -> list[str]:
    """Union of row keys, in first-seen order."""
    names: dict[str, None] = {}
    for row in rows:
        for key in row.keys():
            names.setdefault(str(key), None)
    return list(names)


def normalize_nulls(rows: list[Mapping[str, Any]]) -> list[Row]:
    """
    Replace every missing cell with None.

    Rows lacking a column present elsewhere get None for it, so every
    output row carries the same keys in the same order.
    """
    names = _column_names(rows)
    cleaned = []
    for row in rows:
        cleaned.append({
            name: None if is_null(row.get(name)) else row.get(name)
            for name in names
        })
    return cleaned


# =============================================================================
# DEDUPLICATION
# =============================================================================

def remove_duplicates(rows: list[Row]) -> list[Row]:
    """Drop structurally identical rows; the first occurrence is kept."""
    seen: set[str] = set()
    unique = []
    for row in rows:
        key = row_key(row)
        if key not in seen:
            seen.add(key)
            unique.append(row)
    return unique


# =============================================================================
# TYPE DETECTION
# =============================================================================

def detect_column_type(values: Iterable[Any]) -> ColumnType:
    """
    Classify a column from its non-null values.

    The numeric check runs before the boolean one so that "1"/"0"
    columns are numbers. An all-null column is a string column.
    """
    non_null = [v for v in values if not is_null(v)]

    if not non_null:
        return "string"

    if all(parse_number(v) is not None for v in non_null):
        return "number"

    if all(parse_boolean(v) is not None for v in non_null):
        return "boolean"

    if all(parse_date(v) is not None for v in non_null):
        return "date"

    return "string"


# =============================================================================
# IMPUTATION
# =============================================================================

def _mode(values: list[Any]) -> Any:
    """Most frequent value; ties go to the value seen first."""
    counts = Counter(values)
    return max(counts, key=counts.__getitem__)


def fill_missing_values(rows: list[Row], columns: list[Column]) -> list[Row]:
    """
    Impute null cells: numeric columns get the column mean, string
    columns the column mode. Returns new row dicts.
    """
    filled = [dict(row) for row in rows]

    for column in columns:
        values = [row.get(column.name) for row in filled if row.get(column.name) is not None]
        if not values:
            continue

        if column.type == "number":
            numbers = [n for n in (parse_number(v) for v in values) if n is not None]
            if not numbers:
                continue
            fill_value: Any = math.fsum(numbers) / len(numbers)
        elif column.type == "string":
            fill_value = _mode(values)
        else:
            continue

        for row in filled:
            if row.get(column.name) is None:
                row[column.name] = fill_value

    return filled


def normalize_data(rows: list[Row], columns: list[Column]) -> list[Row]:
    """
    Add a `<column>_normalized` min-max scaled cell for each numeric
    column whose values are not all equal.
    """
    normalized = [dict(row) for row in rows]

    for column in columns:
        if column.type != "number":
            continue

        values = [n for n in (parse_number(row.get(column.name)) for row in normalized) if n is not None]
        if not values:
            continue

        low, high = min(values), max(values)
        if high <= low:
            continue

        for row in normalized:
            value = parse_number(row.get(column.name))
            if value is not None:
                row[f"{column.name}_normalized"] = (value - low) / (high - low)

    return normalized


# =============================================================================
# PIPELINE
# =============================================================================

def process_dataset(raw_rows: list[Mapping[str, Any]]) -> Dataset:
    """
    Run the full cleaning pipeline over raw rows.

    Args:
        raw_rows: Rows as mappings from column name to raw cell value

    Returns:
        Dataset with typed rows, column schema and summary

    Raises:
        EmptyDatasetError: If there are no rows or no columns
    """
    if not raw_rows:
        raise EmptyDatasetError("No data to process")

    normalized = normalize_nulls(raw_rows)
    unique = remove_duplicates(normalized)

    names = _column_names(unique)
    if not names:
        raise EmptyDatasetError("Rows contain no columns")

    columns = []
    column_types: dict[str, str] = {}
    missing_values: dict[str, int] = {}

    for name in names:
        raw_values = [row.get(name) for row in unique]
        column_type = detect_column_type(raw_values)
        column_types[name] = column_type

        null_count = sum(1 for v in raw_values if v is None)
        if null_count > 0:
            missing_values[name] = null_count

        typed = [v for v in (coerce_value(raw, column_type) for raw in raw_values) if v is not None]
        columns.append(Column(
            name=name,
            type=column_type,
            nullable=len(typed) < len(unique),
            unique_count=len(set(typed)),
        ))

    typed_rows = [coerce_row(row, column_types) for row in unique]
    filled = fill_missing_values(typed_rows, columns)

    return Dataset(
        rows=filled,
        columns=columns,
        summary=DatasetSummary(
            total_rows=len(filled),
            total_columns=len(columns),
            missing_values=missing_values,
            duplicates=len(raw_rows) - len(unique),
        ),
    )

