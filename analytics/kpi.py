# kpi.py — KPI cards and trend classification
"""
kpi.py — KPI Calculator

One KPI per numeric column: latest value, percent change against the
previous value, and a trend label fitted over the last ten values.
"""

from __future__ import annotations

import re

import numpy as np

from analytics.forecasting import linear_regression
from analytics.models import KPI, Trend
from analytics.scalars import Row, parse_number


# =============================================================================
# CONSTANTS
# =============================================================================

TREND_WINDOW = 10
TREND_THRESHOLD_RATIO = 0.01  # slope must exceed 1% of the average magnitude
CURRENCY_PATTERNS = re.compile(r"(revenue|sales)", re.IGNORECASE)


# =============================================================================
# TREND CLASSIFIER
# =============================================================================

def detect_trend(values: list[float]) -> Trend:
    """
    Classify a series as up / down / stable from its OLS slope.

    Fewer than two values is always stable.
    """
    if len(values) < 2:
        return "stable"

    slope, _ = linear_regression(list(range(len(values))), list(values))
    threshold = abs(float(np.mean(values))) * TREND_THRESHOLD_RATIO

    if slope > threshold:
        return "up"
    if slope < -threshold:
        return "down"
    return "stable"


# =============================================================================
# KPI CALCULATOR
# =============================================================================

def _display_name(column: str) -> str:
    """`total_revenue` → `Total Revenue` (only first letters are touched)."""
    return re.sub(r"\b\w", lambda m: m.group(0).upper(), column.replace("_", " "))


def calculate_kpis(rows: list[Row], metric_columns: list[str]) -> list[KPI]:
    """
    Build KPI cards for the given numeric columns.

    Columns with no numeric values are skipped.
    """
    kpis = []

    for column in metric_columns:
        values = [n for n in (parse_number(row.get(column)) for row in rows) if n is not None]
        if not values:
            continue

        current = values[-1]
        previous = values[-2] if len(values) > 1 else current
        change = (current - previous) / previous * 100 if previous != 0 else 0.0

        kpis.append(KPI(
            id=column,
            name=_display_name(column),
            value=round(current, 2),
            change=round(change, 2),
            trend=detect_trend(values[-TREND_WINDOW:]),
            unit="$" if CURRENCY_PATTERNS.search(column) else "",
        ))

    return kpis
