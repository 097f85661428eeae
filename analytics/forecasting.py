# forecasting.py — Short-horizon forecasting for a single metric
# Exponential smoothing → OLS trend line → projection with confidence band
"""
forecasting.py — Forecasting Engine

The model is intentionally simple and fully deterministic:

1. Exponential smoothing (alpha = 0.3)
2. OLS regression of the smoothed series against its index
3. Projection `slope * (n + i) + intercept + slope * i * 0.1`
   (the last term amplifies momentum and is part of the model)
4. Confidence half-width = mean absolute residual * 1.96
5. Accuracy = 1 - mse / variance, clamped to [0, 1]
"""

from __future__ import annotations

from datetime import date

import numpy as np
import pandas as pd
from scipy import stats

from analytics.models import Prediction, PredictionResult
from analytics.scalars import Row
from analytics.timeseries import build_time_series, last_timestamp


# =============================================================================
# CONSTANTS
# =============================================================================

SMOOTHING_ALPHA = 0.3
CONFIDENCE_Z = 1.96
TREND_AMPLIFICATION = 0.1
DEFAULT_PERIODS = 30
MIN_FORECAST_POINTS = 2

MODEL_TYPE = "linear_regression_with_exponential_smoothing"
INSUFFICIENT_DATA = "insufficient_data"


# =============================================================================
# SERIES HELPERS
# =============================================================================

def exponential_smoothing(values: list[float], alpha: float = SMOOTHING_ALPHA) -> list[float]:
    """s[0] = v[0]; s[i] = alpha * v[i] + (1 - alpha) * s[i-1]."""
    if not values:
        return []

    smoothed = [values[0]]
    for value in values[1:]:
        smoothed.append(alpha * value + (1 - alpha) * smoothed[-1])
    return smoothed


def simple_moving_average(values: list[float], window: int) -> list[float]:
    """Trailing-window mean; positions before the first full window keep the raw value."""
    sma = []
    for i, value in enumerate(values):
        if i < window - 1:
            sma.append(value)
        else:
            sma.append(float(np.mean(values[i - window + 1:i + 1])))
    return sma


def calculate_seasonality(values: list[float], period: int = 7) -> list[float]:
    """Average of all values sharing each position's `index % period`."""
    if period <= 0:
        return list(values)

    season_means = {}
    for offset in range(min(period, len(values))):
        season_means[offset] = float(np.mean(values[offset::period]))
    return [season_means[i % period] for i in range(len(values))]


def linear_regression(x: list[float], y: list[float]) -> tuple[float, float]:
    """
    Ordinary least-squares fit of y against x.

    Returns:
        (slope, intercept)
    """
    result = stats.linregress(x, y)
    return float(result.slope), float(result.intercept)


# =============================================================================
# FORECAST
# =============================================================================

def _accuracy_score(values: np.ndarray, smoothed: np.ndarray) -> float | None:
    """R²-style fit score of the smoothed series; None for a constant series."""
    residuals = values - smoothed
    mse = float(np.mean(residuals ** 2))
    variance = float(np.var(values))

    if variance == 0:
        return None

    r2 = 1 - mse / variance
    return round(min(1.0, max(0.0, r2)), 3)


def predict_time_series(
    rows: list[Row],
    metric: str,
    periods: int = DEFAULT_PERIODS,
    today: date | None = None,
) -> PredictionResult:
    """
    Forecast a metric `periods` days past its last observation.

    Args:
        rows: Dataset rows
        metric: Numeric column to forecast
        periods: Number of future daily steps
        today: Anchor for synthetic dates when rows carry no date

    Returns:
        PredictionResult; with fewer than two usable points the result is
        the `insufficient_data` sentinel with no predictions.
    """
    series = build_time_series(rows, metric, today=today)

    if len(series) < MIN_FORECAST_POINTS:
        return PredictionResult(metric=metric, predictions=[], model_type=INSUFFICIENT_DATA)

    values = np.array([p.value for p in series], dtype=float)
    n = len(values)
    smoothed = np.array(exponential_smoothing(values.tolist()), dtype=float)

    slope, intercept = linear_regression(list(range(n)), smoothed.tolist())

    mae = float(np.mean(np.abs(values - smoothed)))
    half_width = mae * CONFIDENCE_Z

    last_date = last_timestamp(series).normalize()
    predictions = []

    for i in range(1, periods + 1):
        projected = slope * (n + i) + intercept
        adjusted = projected + slope * i * TREND_AMPLIFICATION
        future = last_date + pd.Timedelta(days=i)

        predictions.append(Prediction(
            date=future.strftime("%Y-%m-%d"),
            value=round(max(0.0, adjusted), 2),
            confidence_lower=round(max(0.0, adjusted - half_width), 2),
            confidence_upper=round(max(0.0, adjusted + half_width), 2),
        ))

    return PredictionResult(
        metric=metric,
        predictions=predictions,
        model_type=MODEL_TYPE,
        accuracy_score=_accuracy_score(values, smoothed),
    )
