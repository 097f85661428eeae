# timeseries.py — Build a univariate series from dataset rows
"""
timeseries.py — Metric Time Series

Pairs each row with a timestamp and a numeric metric value. The timestamp
comes from the row's `date` (or `timestamp`) cell; rows without one get a
synthetic date, one day apart, with the last row on `today`.
"""

from __future__ import annotations

from datetime import date, timedelta

import pandas as pd

from analytics.models import TimeSeriesPoint
from analytics.scalars import Row, is_null, parse_number, to_iso, to_timestamp


DATE_FIELDS = ("date", "timestamp")


def _row_timestamp(row: Row, date_fields: tuple[str, ...]) -> object | None:
    for field in date_fields:
        value = row.get(field)
        if not is_null(value):
            return value
    return None


def build_time_series(
    rows: list[Row],
    metric: str,
    today: date | None = None,
    date_fields: tuple[str, ...] = DATE_FIELDS,
    sort: bool = True,
) -> list[TimeSeriesPoint]:
    """
    Build the (timestamp, value) series for one metric.

    Args:
        rows: Dataset rows
        metric: Metric column name
        today: Anchor for synthetic dates (defaults to the current date)
        date_fields: Row fields checked, in order, for an explicit timestamp
        sort: Sort ascending by timestamp (stable for equal timestamps)

    Returns:
        Points with non-numeric metric values and unparseable explicit
        timestamps dropped.
    """
    today = today or date.today()
    n = len(rows)
    keyed: list[tuple[pd.Timestamp, TimeSeriesPoint]] = []

    for index, row in enumerate(rows):
        value = parse_number(row.get(metric))
        if value is None:
            continue

        explicit = _row_timestamp(row, date_fields)
        if explicit is None:
            synthetic = today - timedelta(days=n - 1 - index)
            ts = pd.Timestamp(synthetic)
            label = synthetic.isoformat()
        else:
            ts = to_timestamp(explicit)
            if ts is None:
                continue
            label = to_iso(explicit) if not isinstance(explicit, str) else explicit

        keyed.append((ts, TimeSeriesPoint(timestamp=label, value=value)))

    if sort:
        keyed.sort(key=lambda item: item[0])

    return [point for _, point in keyed]


def last_timestamp(points: list[TimeSeriesPoint]) -> pd.Timestamp:
    """Parsed timestamp of the final point of a non-empty series."""
    return to_timestamp(points[-1].timestamp)
