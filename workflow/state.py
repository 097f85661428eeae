# state.py — Shared state schemas for the analysis and question graphs
"""
state.py — Workflow State Schema

TypedDict structures passed between LangGraph nodes. All fields are
optional (total=False) so each node returns only the keys it updates.
"""

from __future__ import annotations

from datetime import date
from typing import Any, Callable, TypedDict

from analytics.models import KPI, Alert, AnomalyResult, ColumnStats, Dataset, Insight, PredictionResult
from settings.analytics_config import AnalyticsConfig
from storage.dataset_store import DatasetRecord, DatasetStore


class _ErrorFields(TypedDict, total=False):
    error: str | None
    error_type: str | None
    failed_node: str | None
    partial_results: bool
    recovery_hint: str | None


class AnalysisState(_ErrorFields, total=False):
    """State for upload → clean → profile → persist → analyze → synthesize."""

    # =========================================================================
    # INPUT LAYER
    # =========================================================================
    raw_file: bytes | str | None  # Upload bytes or a file path
    filename: str | None
    requested_metric: str | None  # Caller-selected metric column
    periods: int  # Forecast horizon
    today: date | None  # Anchor for synthetic dates

    # =========================================================================
    # DATA LAYER
    # =========================================================================
    raw_rows: list[dict] | None
    dataset: Dataset | None
    dataset_id: str | None
    dataset_metadata: DatasetRecord | None

    # =========================================================================
    # PROFILE LAYER
    # =========================================================================
    statistics: dict[str, ColumnStats] | None
    data_quality: dict | None

    # =========================================================================
    # ANALYSIS LAYER
    # =========================================================================
    metric: str | None
    kpis: list[KPI] | None
    prediction: PredictionResult | None
    anomalies: list[AnomalyResult] | None

    # =========================================================================
    # SYNTHESIS LAYER
    # =========================================================================
    recommendations: list[str] | None
    alerts: list[Alert] | None
    insights: list[Insight] | None
    warnings: list[str]

    # =========================================================================
    # OUTPUT / CONTROL LAYER
    # =========================================================================
    payload: dict | None
    current_node: str | None
    progress: float
    progress_message: str | None

    # =========================================================================
    # SERVICES (not persisted)
    # =========================================================================
    config: AnalyticsConfig
    store: DatasetStore | None
    progress_callback: Callable[[dict], None] | None


class QueryState(_ErrorFields, total=False):
    """State for question → plan → execute → summarize."""

    question: str | None
    table_name: str
    dataset: Dataset | None

    plan: dict | None
    plan_source: str | None  # "llm" | "heuristic"
    results: list[dict] | None
    insight: str | None

    payload: dict | None
    current_node: str | None
    progress: float
    progress_message: str | None

    config: AnalyticsConfig
    llm: Any
    progress_callback: Callable[[dict], None] | None


def create_initial_state(
    raw_file: bytes | str | None = None,
    filename: str | None = None,
    requested_metric: str | None = None,
    periods: int | None = None,
    today: date | None = None,
    config: AnalyticsConfig | None = None,
    store: DatasetStore | None = None,
    progress_callback: Callable[[dict], None] | None = None,
) -> AnalysisState:
    """Fresh AnalysisState with defaults filled in."""
    config = config or AnalyticsConfig()
    return AnalysisState(
        raw_file=raw_file,
        filename=filename,
        requested_metric=requested_metric,
        periods=periods or config.default_forecast_periods,
        today=today,

        raw_rows=None,
        dataset=None,
        dataset_id=None,
        dataset_metadata=None,

        statistics=None,
        data_quality=None,

        metric=None,
        kpis=None,
        prediction=None,
        anomalies=None,

        recommendations=None,
        alerts=None,
        insights=None,
        warnings=[],

        payload=None,
        current_node=None,
        progress=0.0,
        progress_message=None,

        error=None,
        error_type=None,
        failed_node=None,
        partial_results=False,
        recovery_hint=None,

        config=config,
        store=store,
        progress_callback=progress_callback,
    )


def create_query_state(
    question: str | None,
    dataset: Dataset | None,
    table_name: str = "data",
    llm: Any = None,
    config: AnalyticsConfig | None = None,
    progress_callback: Callable[[dict], None] | None = None,
) -> QueryState:
    return QueryState(
        question=question,
        table_name=table_name,
        dataset=dataset,
        plan=None,
        plan_source=None,
        results=None,
        insight=None,
        payload=None,
        current_node=None,
        progress=0.0,
        progress_message=None,
        error=None,
        error_type=None,
        failed_node=None,
        partial_results=False,
        recovery_hint=None,
        config=config or AnalyticsConfig(),
        llm=llm,
        progress_callback=progress_callback,
    )
