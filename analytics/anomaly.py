# anomaly.py — z-score anomaly detection for a single metric
"""
anomaly.py — Anomaly Detector

Flags points whose z-score against the series' population mean and
standard deviation exceeds 2.0. Severity tiers:

    z > 3.0          → high
    2.5 < z <= 3.0   → medium
    2.0 < z <= 2.5   → low

Only anomalous points are returned.
"""

from __future__ import annotations

from datetime import date

import numpy as np

from analytics.models import AnomalyResult, Severity
from analytics.scalars import Row
from analytics.timeseries import build_time_series


# =============================================================================
# CONSTANTS
# =============================================================================

ZSCORE_THRESHOLD = 2.0
MEDIUM_SEVERITY_Z = 2.5
HIGH_SEVERITY_Z = 3.0
MIN_ANOMALY_POINTS = 3


def classify_severity(z_score: float) -> Severity:
    if z_score > HIGH_SEVERITY_Z:
        return "high"
    if z_score > MEDIUM_SEVERITY_Z:
        return "medium"
    return "low"


def detect_anomalies(
    rows: list[Row],
    metric: str,
    today: date | None = None,
) -> list[AnomalyResult]:
    """
    Detect anomalous values of a metric.

    Args:
        rows: Dataset rows (row order is kept in the output)
        metric: Numeric column to scan
        today: Anchor for synthetic timestamps when rows carry no date

    Returns:
        Anomalous points only. Empty with fewer than three usable points
        or when every value is identical (zero standard deviation).
    """
    series = build_time_series(rows, metric, today=today, sort=False)

    if len(series) < MIN_ANOMALY_POINTS:
        return []

    values = np.array([p.value for p in series], dtype=float)
    mean = float(values.mean())
    std_dev = float(values.std())

    if std_dev == 0:
        return []

    anomalies = []
    for point in series:
        z_score = abs(point.value - mean) / std_dev
        if z_score <= ZSCORE_THRESHOLD:
            continue

        deviation = round((point.value - mean) / mean * 100, 2) if mean != 0 else None

        anomalies.append(AnomalyResult(
            timestamp=point.timestamp,
            metric=metric,
            value=point.value,
            expected_value=mean,
            deviation=deviation,
            is_anomaly=True,
            severity=classify_severity(z_score),
        ))

    return anomalies
