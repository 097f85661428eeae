# statistics.py — Descriptive statistics & data-quality scan
"""
statistics.py — Statistics Engine

Per-column descriptive statistics for numeric columns, plus a data-quality
scan of the cleaned dataset.

Quartiles and the median use rank indexing on the ascending-sorted values
(`sorted[floor(n * p)]`), not interpolation. Dashboard figures depend on
this exact indexing.
"""

from __future__ import annotations

import math

import numpy as np
import pandas as pd

from analytics.models import Column, ColumnStats, Dataset
from analytics.scalars import Row, parse_number


# =============================================================================
# CONSTANTS
# =============================================================================

MISSING_FLAG_THRESHOLD = 0.05  # Flag columns with > 5% missing
COMPLETE_ROWS_FLAG_THRESHOLD = 0.80  # Flag if < 80% complete rows
DUPLICATE_FLAG_THRESHOLD = 0.01  # Flag if > 1% duplicates


# =============================================================================
# DESCRIPTIVE STATISTICS
# =============================================================================

def rank_quantile(sorted_values: list[float], p: float) -> float:
    """Value at rank floor(n * p) of an ascending list."""
    index = min(int(math.floor(len(sorted_values) * p)), len(sorted_values) - 1)
    return sorted_values[index]


def column_statistics(values: list[float]) -> ColumnStats | None:
    """Descriptive statistics for one column; None when there are no values."""
    if not values:
        return None

    ordered = sorted(values)
    arr = np.asarray(values, dtype=float)
    low, high = ordered[0], ordered[-1]

    # summation error can push the mean of near-equal values outside [min, max]
    mean = min(max(float(arr.mean()), low), high)
    std_dev = float(arr.std())  # population (ddof=0)

    return ColumnStats(
        count=len(values),
        mean=mean,
        median=rank_quantile(ordered, 0.5),
        std_dev=std_dev,
        min=low,
        max=high,
        q1=rank_quantile(ordered, 0.25),
        q3=rank_quantile(ordered, 0.75),
    )


def generate_statistics(rows: list[Row], columns: list[Column]) -> dict[str, ColumnStats]:
    """
    Compute statistics for every numeric column.

    Columns without any numeric value are left out of the result.
    """
    stats: dict[str, ColumnStats] = {}

    for column in columns:
        if column.type != "number":
            continue

        values = [n for n in (parse_number(row.get(column.name)) for row in rows) if n is not None]
        column_stats = column_statistics(values)
        if column_stats is not None:
            stats[column.name] = column_stats

    return stats


# =============================================================================
# DATA QUALITY SCAN
# =============================================================================

def scan_data_quality(dataset: Dataset) -> dict:
    """
    Scan a cleaned dataset for quality issues.

    Missing counts come from the ingestion summary (taken before
    imputation); everything else is measured on the cleaned frame.

    Returns:
        {
            overall_score: float,
            missing_summary: {total_missing_cells, total_cells, missing_pct},
            column_quality: list[{name, missing_count, missing_pct, is_flagged}],
            complete_rows_pct: float,
            duplicate_rows: int,
            constant_columns: list[str],
            quality_warnings: list[str]
        }
    """
    df = dataset.to_frame()
    summary = dataset.summary
    row_count = len(df)
    col_count = len(df.columns)
    total_cells = row_count * col_count

    missing_by_col = pd.Series(
        {name: summary.missing_values.get(name, 0) for name in dataset.column_names},
        dtype="int64",
    )
    total_missing = int(missing_by_col.sum()) if col_count else 0
    missing_pct = (total_missing / total_cells * 100) if total_cells > 0 else 0.0

    column_quality = []
    for name, missing_count in missing_by_col.items():
        col_missing_pct = (missing_count / row_count * 100) if row_count > 0 else 0.0
        column_quality.append({
            "name": str(name),
            "missing_count": int(missing_count),
            "missing_pct": round(col_missing_pct, 2),
            "is_flagged": col_missing_pct > MISSING_FLAG_THRESHOLD * 100,
        })

    complete_rows = int(df.notna().all(axis=1).sum()) if col_count else 0
    complete_rows_pct = (complete_rows / row_count * 100) if row_count > 0 else 0.0

    raw_rows = row_count + summary.duplicates
    duplicate_pct = (summary.duplicates / raw_rows * 100) if raw_rows > 0 else 0.0

    constant_columns = [
        str(col) for col in df.columns
        if row_count > 1 and df[col].nunique(dropna=True) <= 1
    ]

    quality_warnings = []

    flagged = [cq["name"] for cq in column_quality if cq["is_flagged"]]
    if flagged:
        quality_warnings.append(
            f"High missing values (>{MISSING_FLAG_THRESHOLD * 100:.0f}%) in: {', '.join(flagged[:5])}"
            + (f" and {len(flagged) - 5} more" if len(flagged) > 5 else "")
        )

    if complete_rows_pct < COMPLETE_ROWS_FLAG_THRESHOLD * 100:
        quality_warnings.append(
            f"Only {complete_rows_pct:.1f}% of rows are complete after imputation"
        )

    if duplicate_pct > DUPLICATE_FLAG_THRESHOLD * 100:
        quality_warnings.append(
            f"{summary.duplicates} duplicate rows removed ({duplicate_pct:.1f}%)"
        )

    if constant_columns:
        quality_warnings.append(
            f"Constant columns (no analytical value): {', '.join(constant_columns[:5])}"
        )

    missing_score = max(0.0, 1 - missing_pct / 100)
    complete_score = complete_rows_pct / 100
    duplicate_score = max(0.0, 1 - (duplicate_pct / 100) * 10)
    constant_score = max(0.0, 1 - len(constant_columns) / max(col_count, 1))

    overall_score = (
        missing_score * 0.35 +
        complete_score * 0.35 +
        duplicate_score * 0.15 +
        constant_score * 0.15
    )

    return {
        "overall_score": round(overall_score, 3),
        "missing_summary": {
            "total_missing_cells": total_missing,
            "total_cells": total_cells,
            "missing_pct": round(missing_pct, 2),
        },
        "column_quality": column_quality,
        "complete_rows_pct": round(complete_rows_pct, 2),
        "duplicate_rows": summary.duplicates,
        "constant_columns": constant_columns,
        "quality_warnings": quality_warnings,
    }
