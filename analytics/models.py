# models.py — Typed records shared by the analytics core
# Column schema, Dataset snapshot, forecast / anomaly / KPI / insight records
"""
models.py — Analytics Data Model

Every record is a dataclass produced fresh by a core function and treated
as read-only afterwards. `to_dict()` gives the JSON-ready shape consumed by
the dashboard and the dataset store.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any, Literal

import pandas as pd

from analytics.scalars import Row


ColumnType = Literal["string", "number", "date", "boolean"]
Severity = Literal["low", "medium", "high"]
Trend = Literal["up", "down", "stable"]
VisualizationType = Literal["table", "line", "bar", "pie", "scatter"]

COLUMN_TYPES = ("string", "number", "date", "boolean")


# =============================================================================
# DATASET
# =============================================================================

@dataclass(frozen=True)
class Column:
    """Column schema, inferred once at ingestion."""
    name: str
    type: ColumnType
    nullable: bool
    unique_count: int

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> Column:
        return cls(
            name=str(data["name"]),
            type=data["type"],
            nullable=bool(data.get("nullable", False)),
            unique_count=int(data.get("unique_count", 0)),
        )


@dataclass(frozen=True)
class DatasetSummary:
    total_rows: int
    total_columns: int
    missing_values: dict[str, int]
    duplicates: int

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class Dataset:
    """
    Cleaned, typed snapshot of one upload.

    Replaced wholesale on re-upload; never mutated after ingestion.
    """
    rows: list[Row]
    columns: list[Column]
    summary: DatasetSummary

    @property
    def column_names(self) -> list[str]:
        return [c.name for c in self.columns]

    def get_column(self, name: str) -> Column | None:
        for column in self.columns:
            if column.name == name:
                return column
        return None

    def columns_of_type(self, column_type: ColumnType) -> list[str]:
        return [c.name for c in self.columns if c.type == column_type]

    @property
    def numeric_columns(self) -> list[str]:
        return self.columns_of_type("number")

    def preview(self, n: int = 5) -> list[Row]:
        return [dict(row) for row in self.rows[:n]]

    def to_frame(self) -> pd.DataFrame:
        """View the rows as a DataFrame (one column per schema column)."""
        return pd.DataFrame(
            [[row.get(name) for name in self.column_names] for row in self.rows],
            columns=self.column_names,
        )

    def to_dict(self) -> dict:
        return {
            "columns": [c.to_dict() for c in self.columns],
            "rows": [dict(row) for row in self.rows],
            "summary": self.summary.to_dict(),
        }


@dataclass(frozen=True)
class ColumnStats:
    count: int
    mean: float
    median: float
    std_dev: float
    min: float
    max: float
    q1: float
    q3: float

    def to_dict(self) -> dict:
        return asdict(self)


# =============================================================================
# FORECASTING / ANOMALIES / KPIs
# =============================================================================

@dataclass(frozen=True)
class TimeSeriesPoint:
    timestamp: str  # ISO date
    value: float


@dataclass(frozen=True)
class Prediction:
    date: str
    value: float
    confidence_lower: float
    confidence_upper: float

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class PredictionResult:
    metric: str
    predictions: list[Prediction]
    model_type: str
    accuracy_score: float | None = None

    def to_dict(self) -> dict:
        out: dict[str, Any] = {
            "metric": self.metric,
            "predictions": [p.to_dict() for p in self.predictions],
            "model_type": self.model_type,
        }
        if self.accuracy_score is not None:
            out["accuracy_score"] = self.accuracy_score
        return out


@dataclass(frozen=True)
class AnomalyResult:
    timestamp: str
    metric: str
    value: float
    expected_value: float
    deviation: float | None  # percent from mean; None when the mean is 0
    is_anomaly: bool
    severity: Severity

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class KPI:
    id: str
    name: str
    value: float
    change: float
    trend: Trend
    unit: str = ""

    def to_dict(self) -> dict:
        return asdict(self)


# =============================================================================
# ALERTS / INSIGHTS
# =============================================================================

@dataclass
class Alert:
    id: str
    type: Literal["anomaly", "threshold", "prediction"]
    title: str
    message: str
    severity: Literal["info", "warning", "critical"]
    created_at: str
    read: bool = False

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class Insight:
    id: str
    type: Literal["prediction", "anomaly", "recommendation", "summary"]
    dataset_id: str
    title: str
    description: str
    created_at: str
    severity: Severity | None = None
    data: Any = field(default=None, compare=False)

    def to_dict(self) -> dict:
        data = self.data
        if isinstance(data, list):
            data = [item.to_dict() if hasattr(item, "to_dict") else item for item in data]
        elif hasattr(data, "to_dict"):
            data = data.to_dict()
        return {
            "id": self.id,
            "type": self.type,
            "dataset_id": self.dataset_id,
            "title": self.title,
            "description": self.description,
            "severity": self.severity,
            "data": data,
            "created_at": self.created_at,
        }
