# app_state.py — Dashboard session state (datasets, alerts, insights)
"""
app_state.py — Application State

Holds what the dashboard shows between requests. The analytics core
never reads it; workflow results are pushed in by the caller.
Alerts and insights are kept newest first.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from analytics.errors import DatasetNotFoundError
from analytics.models import Alert, Insight
from storage.dataset_store import DatasetRecord


@dataclass
class AppState:
    datasets: list[DatasetRecord] = field(default_factory=list)
    current_dataset_id: str | None = None
    alerts: list[Alert] = field(default_factory=list)
    insights: list[Insight] = field(default_factory=list)

    @property
    def current_dataset(self) -> DatasetRecord | None:
        for record in self.datasets:
            if record.id == self.current_dataset_id:
                return record
        return None

    @property
    def unread_alerts(self) -> list[Alert]:
        return [a for a in self.alerts if not a.read]

    def add_dataset(self, record: DatasetRecord) -> None:
        """Register a dataset and make it current. A re-upload under the same id replaces it."""
        self.datasets = [d for d in self.datasets if d.id != record.id]
        self.datasets.append(record)
        self.current_dataset_id = record.id

    def set_current_dataset(self, dataset_id: str) -> None:
        if not any(d.id == dataset_id for d in self.datasets):
            raise DatasetNotFoundError(f"Dataset {dataset_id} not found")
        self.current_dataset_id = dataset_id

    def add_alert(self, alert: Alert) -> None:
        self.alerts.insert(0, alert)

    def mark_alert_as_read(self, alert_id: str) -> bool:
        """Returns False when no alert has that id."""
        for alert in self.alerts:
            if alert.id == alert_id:
                alert.read = True
                return True
        return False

    def add_insight(self, insight: Insight) -> None:
        self.insights.insert(0, insight)
