# recommendations.py — Rule-based recommendations, alerts and insight records
"""
recommendations.py — Recommendation Generator

Pure rules over (anomalies, prediction). Rules fire in a fixed order and
their messages accumulate:

1. any high-severity anomaly          → critical
2. forecast change first→last > +20%  → opportunity  /  < -20% → warning
3. more than two medium anomalies     → monitor
4. accuracy score below 0.6           → data-quality caveat
5. nothing fired                      → all-normal message
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone

from analytics.models import Alert, AnomalyResult, Insight, PredictionResult


# =============================================================================
# CONSTANTS
# =============================================================================

FORECAST_CHANGE_THRESHOLD = 20.0  # percent
MEDIUM_ANOMALY_LIMIT = 2
LOW_ACCURACY_THRESHOLD = 0.6

ALL_NORMAL_MESSAGE = "All metrics within normal ranges. Continue monitoring key performance indicators."
LOW_ACCURACY_MESSAGE = "Note: Prediction accuracy is moderate. Consider collecting more data for improved forecasting."


# =============================================================================
# RECOMMENDATIONS
# =============================================================================

def forecast_change_pct(prediction: PredictionResult) -> float | None:
    """Percent change from the first to the last predicted value."""
    if not prediction.predictions:
        return None

    first = prediction.predictions[0].value
    last = prediction.predictions[-1].value
    if first == 0:
        return None
    return (last - first) / first * 100


def generate_recommendations(
    anomalies: list[AnomalyResult],
    prediction: PredictionResult,
) -> list[str]:
    """Turn anomaly and forecast results into ordered recommendation messages."""
    recommendations = []

    high = [a for a in anomalies if a.severity == "high"]
    if high:
        recommendations.append(
            f"Critical: {len(high)} high-severity anomalies detected. Immediate investigation recommended."
        )

    change = forecast_change_pct(prediction)
    if change is not None:
        if change > FORECAST_CHANGE_THRESHOLD:
            recommendations.append(
                f"Opportunity: {prediction.metric} projected to increase by {change:.1f}% over the next period."
            )
        elif change < -FORECAST_CHANGE_THRESHOLD:
            recommendations.append(
                f"Warning: {prediction.metric} projected to decrease by {abs(change):.1f}%. "
                "Consider intervention strategies."
            )

    medium = [a for a in anomalies if a.severity == "medium"]
    if len(medium) > MEDIUM_ANOMALY_LIMIT:
        recommendations.append(
            f"Monitor: {len(medium)} moderate anomalies detected. Trend analysis recommended."
        )

    if prediction.accuracy_score is not None and prediction.accuracy_score < LOW_ACCURACY_THRESHOLD:
        recommendations.append(LOW_ACCURACY_MESSAGE)

    if not recommendations:
        recommendations.append(ALL_NORMAL_MESSAGE)

    return recommendations


# =============================================================================
# ALERTS & INSIGHT RECORDS
# =============================================================================

def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _short_id(prefix: str) -> str:
    return f"{prefix}-{uuid.uuid4().hex[:8]}"


def build_alerts(anomalies: list[AnomalyResult], created_at: str | None = None) -> list[Alert]:
    """One alert per high or medium anomaly; low-severity points stay silent."""
    created_at = created_at or _now_iso()
    alerts = []

    for anomaly in anomalies:
        if anomaly.severity not in ("high", "medium"):
            continue

        is_high = anomaly.severity == "high"
        if anomaly.deviation is not None:
            detail = f"deviated by {abs(anomaly.deviation):.1f}%"
        else:
            detail = f"reached {anomaly.value:.2f} against an expected {anomaly.expected_value:.2f}"

        alerts.append(Alert(
            id=_short_id("anomaly"),
            type="anomaly",
            title=f"{'Critical' if is_high else 'Warning'}: {anomaly.metric} Anomaly",
            message=f"{anomaly.metric} {detail} at {anomaly.timestamp}",
            severity="critical" if is_high else "warning",
            created_at=created_at,
        ))

    return alerts


def build_insights(
    dataset_id: str,
    prediction: PredictionResult,
    anomalies: list[AnomalyResult],
    created_at: str | None = None,
) -> list[Insight]:
    """Forecast insight, plus an anomaly insight when anything was flagged."""
    created_at = created_at or _now_iso()
    accuracy_pct = (prediction.accuracy_score or 0) * 100

    insights = [Insight(
        id=_short_id("prediction"),
        type="prediction",
        dataset_id=dataset_id,
        title=f"{prediction.metric} Forecast",
        description=(
            f"Predicted {prediction.metric} for the next {len(prediction.predictions)} periods "
            f"with {accuracy_pct:.1f}% confidence"
        ),
        created_at=created_at,
        data=prediction,
    )]

    if anomalies:
        insights.append(Insight(
            id=_short_id("anomaly"),
            type="anomaly",
            dataset_id=dataset_id,
            title="Anomalies Detected",
            description=f"Found {len(anomalies)} anomalies in {prediction.metric}",
            created_at=created_at,
            severity="high" if any(a.severity == "high" for a in anomalies) else "medium",
            data=list(anomalies),
        ))

    return insights
