# nodes.py — Workflow steps (individual graph node functions)
# Analysis: ingest → clean → profile → persist → analyze → synthesize
# Questions: plan → execute → summarize
"""
nodes.py — LangGraph Workflow Nodes

Each node takes the current state and returns only the keys it updates.
Nodes never raise: a failure becomes an error-state update and the graph
routes to handle_error.

Analysis nodes:
- ingest_data: Validate the upload and parse CSV rows
- clean_data: Type inference, null normalisation, dedup, imputation
- profile_data: Column statistics and data-quality scan
- persist_dataset: Save rows + metadata in the dataset store
- analyze_metrics: KPIs, forecast and anomalies for the primary metric
- synthesize_insights: Recommendations, alerts, insight records, payload

Question nodes:
- plan_query: NLQ collaborator with heuristic fallback
- execute_query: Run the plan against the dataset rows
- summarize_results: Insight collaborator with templated fallback
"""

from __future__ import annotations

import logging

from analytics.anomaly import detect_anomalies
from analytics.cleaning import process_dataset
from analytics.data_loader import MAX_FILE_SIZE_MB, read_csv_rows
from analytics.errors import EmptyDatasetError, FileReadError, FileTooLargeError
from analytics.forecasting import predict_time_series
from analytics.kpi import calculate_kpis
from analytics.query_executor import QueryExecutor
from analytics.recommendations import build_alerts, build_insights, generate_recommendations
from analytics.statistics import generate_statistics, scan_data_quality
from analytics.validators import (
    resolve_metric,
    sanitize_dict_for_json,
    sanitize_question,
    validate_file_extension,
)
from collaborators.insight import summarize_results
from collaborators.nlq import SOURCE_LLM, plan_query
from settings.analytics_config import AnalyticsConfig
from settings.llm_config import get_llm
from storage.dataset_store import DatasetStore

log = logging.getLogger(__name__)


# =============================================================================
# PROGRESS / ERROR HELPERS
# =============================================================================

def _emit_progress(
    state: dict,
    node: str,
    progress: float,
    message: str,
    status: str = "running",
) -> None:
    """
    Report progress through the state's callback, if any.

    Args:
        status: "running" | "complete" | "failed"
    """
    callback = state.get("progress_callback")
    if not callable(callback):
        return
    try:
        callback({
            "node": node,
            "status": status,
            "progress": progress,
            "message": message,
        })
    except Exception:
        # A broken progress display must not fail the analysis
        log.warning("Progress callback failed in %s", node, exc_info=True)


def _create_error_state(
    state: dict,
    node: str,
    error_msg: str,
    error_type: str,
    recovery_hint: str,
) -> dict:
    log.warning("%s failed (%s): %s", node, error_type, error_msg)
    return {
        "error": error_msg,
        "error_type": error_type,
        "failed_node": node,
        "recovery_hint": recovery_hint,
        "current_node": node,
        "partial_results": _has_partial_results(state),
    }


def _has_partial_results(state: dict) -> bool:
    return any([
        state.get("dataset_id"),
        state.get("statistics"),
        state.get("data_quality"),
        state.get("kpis"),
    ])


def _config(state: dict) -> AnalyticsConfig:
    return state.get("config") or AnalyticsConfig()


# =============================================================================
# NODE: INGEST DATA
# =============================================================================

def ingest_data(state: dict) -> dict:
    """
    Validate the upload and parse it into raw rows.

    Output state updates:
        - raw_rows: list[dict]
    """
    node_name = "ingest_data"
    _emit_progress(state, node_name, 0.02, "Loading your data...")

    raw_file = state.get("raw_file")
    filename = state.get("filename") or "unknown.csv"

    if raw_file is None:
        return _create_error_state(
            state, node_name,
            "No file provided",
            "DATA_MISSING",
            "Please upload a CSV file to analyze.",
        )

    is_valid_ext, ext_error = validate_file_extension(filename)
    if not is_valid_ext:
        return _create_error_state(
            state, node_name,
            ext_error,
            "UNSUPPORTED_FILE_TYPE",
            "Please upload a valid CSV file.",
        )

    try:
        rows = read_csv_rows(raw_file, filename)
    except FileTooLargeError as e:
        return _create_error_state(
            state, node_name,
            str(e),
            "FILE_TOO_LARGE",
            f"Please upload a file smaller than {MAX_FILE_SIZE_MB}MB.",
        )
    except FileReadError as e:
        return _create_error_state(
            state, node_name,
            str(e),
            "FILE_UNREADABLE",
            "The file could not be read. Please check it and re-upload.",
        )
    except EmptyDatasetError as e:
        return _create_error_state(
            state, node_name,
            str(e),
            "EMPTY_INPUT",
            "The file appears to be empty. Please check and re-upload.",
        )

    _emit_progress(state, node_name, 0.10, "Data loaded", "complete")

    return {
        "raw_rows": rows,
        "current_node": node_name,
        "progress": 0.10,
        "progress_message": f"Read {len(rows):,} rows",
    }


# =============================================================================
# NODE: CLEAN DATA
# =============================================================================

def clean_data(state: dict) -> dict:
    node_name = "clean_data"
    _emit_progress(state, node_name, 0.15, "Cleaning and typing columns...")

    try:
        dataset = process_dataset(state.get("raw_rows") or [])
    except EmptyDatasetError as e:
        return _create_error_state(
            state, node_name,
            str(e),
            "EMPTY_INPUT",
            "The file has a header but no data rows.",
        )

    summary = dataset.summary
    _emit_progress(state, node_name, 0.25, "Cleaning complete", "complete")

    return {
        "dataset": dataset,
        "current_node": node_name,
        "progress": 0.25,
        "progress_message": (
            f"Cleaned {summary.total_rows:,} rows × {summary.total_columns} columns, "
            f"{summary.duplicates} duplicates removed"
        ),
    }


# =============================================================================
# NODE: PROFILE DATA
# =============================================================================

def profile_data(state: dict) -> dict:
    """
    Column statistics and data-quality scan.

    A failed quality scan is not fatal: the analysis continues with a
    warning and an empty quality report.
    """
    node_name = "profile_data"
    _emit_progress(state, node_name, 0.30, "Profiling columns...")

    dataset = state.get("dataset")
    if dataset is None:
        return _create_error_state(
            state, node_name,
            "No dataset available for profiling",
            "DATA_MISSING",
            "Please re-upload your file.",
        )

    warnings = list(state.get("warnings", []))
    statistics = generate_statistics(dataset.rows, dataset.columns)

    _emit_progress(state, node_name, 0.35, "Scanning data quality...")
    try:
        quality = scan_data_quality(dataset)
    except (ValueError, TypeError) as e:
        quality = {
            "overall_score": 0.0,
            "missing_summary": {"total_missing_cells": 0, "total_cells": 0, "missing_pct": 0},
            "column_quality": [],
            "complete_rows_pct": 0,
            "duplicate_rows": dataset.summary.duplicates,
            "constant_columns": [],
            "quality_warnings": [f"Quality scan failed: {e}"],
        }
        warnings.append(f"Data quality scan incomplete: {e}")
    else:
        warnings.extend(quality.get("quality_warnings", []))

    _emit_progress(state, node_name, 0.40, "Profiling complete", "complete")

    return {
        "statistics": statistics,
        "data_quality": sanitize_dict_for_json(quality),
        "warnings": warnings,
        "current_node": node_name,
        "progress": 0.40,
        "progress_message": f"Profiled {len(statistics)} numeric columns",
    }


# =============================================================================
# NODE: PERSIST DATASET
# =============================================================================

def persist_dataset(state: dict) -> dict:
    node_name = "persist_dataset"
    _emit_progress(state, node_name, 0.45, "Saving dataset...")

    dataset = state.get("dataset")
    if dataset is None:
        return _create_error_state(
            state, node_name,
            "No dataset available to save",
            "DATA_MISSING",
            "Please re-upload your file.",
        )

    config = _config(state)
    store = state.get("store") or DatasetStore(config.storage_dir, preview_rows=config.preview_rows)

    try:
        record = store.save(dataset, state.get("filename") or "unknown.csv")
    except OSError as e:
        return _create_error_state(
            state, node_name,
            f"Could not save dataset: {e}",
            "STORAGE_FAILED",
            "Check that the storage directory exists and is writable.",
        )

    _emit_progress(state, node_name, 0.50, "Dataset saved", "complete")

    return {
        "dataset_id": record.id,
        "dataset_metadata": record,
        "store": store,
        "current_node": node_name,
        "progress": 0.50,
        "progress_message": f"Saved dataset {record.name}",
    }


# =============================================================================
# NODE: ANALYZE METRICS
# =============================================================================

def analyze_metrics(state: dict) -> dict:
    """
    KPIs for every numeric column; forecast and anomalies for the
    primary metric (the requested one when numeric, else the first).
    """
    node_name = "analyze_metrics"
    _emit_progress(state, node_name, 0.55, "Calculating KPIs...")

    dataset = state.get("dataset")
    if dataset is None:
        return _create_error_state(
            state, node_name,
            "No dataset available for analysis",
            "DATA_MISSING",
            "Please re-run the analysis from the beginning.",
        )

    warnings = list(state.get("warnings", []))
    numeric = dataset.numeric_columns
    requested = state.get("requested_metric")

    metric = resolve_metric(requested, numeric)
    if metric is None:
        return _create_error_state(
            state, node_name,
            "No numeric columns available for forecasting",
            "ANALYSIS_FAILED",
            "Upload data with at least one numeric column.",
        )
    if requested and requested != metric:
        warnings.append(f"'{requested}' is not a numeric column; analysing '{metric}' instead")

    kpis = calculate_kpis(dataset.rows, numeric)

    _emit_progress(state, node_name, 0.65, f"Forecasting {metric}...")
    periods = state.get("periods") or _config(state).default_forecast_periods
    prediction = predict_time_series(dataset.rows, metric, periods=periods, today=state.get("today"))
    if not prediction.predictions:
        warnings.append(f"Not enough data points to forecast {metric}")

    _emit_progress(state, node_name, 0.75, "Detecting anomalies...")
    anomalies = detect_anomalies(dataset.rows, metric, today=state.get("today"))

    _emit_progress(state, node_name, 0.80, "Analysis complete", "complete")

    return {
        "metric": metric,
        "kpis": kpis,
        "prediction": prediction,
        "anomalies": anomalies,
        "warnings": warnings,
        "current_node": node_name,
        "progress": 0.80,
        "progress_message": (
            f"Generated {len(kpis)} KPIs, {len(prediction.predictions)} forecast points, "
            f"{len(anomalies)} anomalies"
        ),
    }


# =============================================================================
# NODE: SYNTHESIZE INSIGHTS
# =============================================================================

def synthesize_insights(state: dict) -> dict:
    node_name = "synthesize_insights"
    _emit_progress(state, node_name, 0.85, "Writing recommendations...")

    prediction = state.get("prediction")
    if prediction is None:
        return _create_error_state(
            state, node_name,
            "No analysis results to summarise",
            "DATA_MISSING",
            "Please re-run the analysis from the beginning.",
        )

    anomalies = state.get("anomalies") or []
    dataset_id = state.get("dataset_id") or ""

    recommendations = generate_recommendations(anomalies, prediction)
    alerts = build_alerts(anomalies)
    insights = build_insights(dataset_id, prediction, anomalies)

    metadata = state.get("dataset_metadata")
    payload = {
        "is_error": False,
        "dataset": metadata.to_dict() if metadata is not None else None,
        "metric": state.get("metric"),
        "statistics": state.get("statistics") or {},
        "data_quality": state.get("data_quality"),
        "kpis": state.get("kpis") or [],
        "prediction": prediction,
        "anomalies": anomalies,
        "recommendations": recommendations,
        "alerts": alerts,
        "insights": insights,
        "warnings": state.get("warnings", []),
    }

    _emit_progress(state, node_name, 1.0, "Done", "complete")

    return {
        "recommendations": recommendations,
        "alerts": alerts,
        "insights": insights,
        "payload": sanitize_dict_for_json(payload),
        "current_node": node_name,
        "progress": 1.0,
        "progress_message": f"{len(recommendations)} recommendations, {len(alerts)} alerts",
    }


# =============================================================================
# NODE: HANDLE ERROR
# =============================================================================

def handle_error(state: dict) -> dict:
    """Build the user-facing error payload, with partial results when present."""
    node_name = "handle_error"
    _emit_progress(state, node_name, 0.99, "Handling error...", "failed")

    error = state.get("error") or "An unknown error occurred"
    error_type = state.get("error_type") or "UNKNOWN"
    has_partial = state.get("partial_results", False)

    payload = {
        "is_error": True,
        "error_message": error,
        "error_type": error_type,
        "failed_node": state.get("failed_node") or "unknown",
        "recovery_hint": state.get("recovery_hint") or "Please try again.",
        "has_partial_results": has_partial,
    }

    if has_partial:
        metadata = state.get("dataset_metadata")
        payload["partial_results"] = {
            "dataset": metadata.to_dict() if metadata is not None else None,
            "statistics": state.get("statistics"),
            "data_quality": state.get("data_quality"),
            "kpis": state.get("kpis"),
            "warnings": list(state.get("warnings", [])) + [f"Analysis incomplete: {error}"],
        }

    return {
        "payload": sanitize_dict_for_json(payload),
        "current_node": node_name,
        "progress": 1.0,
        "progress_message": f"Error: {error_type}",
    }


# =============================================================================
# QUESTION NODES
# =============================================================================

def plan_query_node(state: dict) -> dict:
    node_name = "plan_query"
    _emit_progress(state, node_name, 0.10, "Planning query...")

    dataset = state.get("dataset")
    if dataset is None:
        return _create_error_state(
            state, node_name,
            "No dataset selected",
            "DATA_MISSING",
            "Upload or select a dataset before asking questions.",
        )

    question = sanitize_question(state.get("question"))
    if question is None:
        return _create_error_state(
            state, node_name,
            "Question is empty or too short",
            "QUESTION_INVALID",
            "Ask a question about your data, e.g. 'What is the average revenue?'",
        )

    config = _config(state)
    llm = state.get("llm")
    if not config.use_llm:
        llm = None
    elif llm is None:
        llm = get_llm(prefer_cloud=config.prefer_cloud_llm)

    plan, source = plan_query(question, dataset.columns, state.get("table_name") or "data", llm=llm)

    _emit_progress(state, node_name, 0.40, "Query planned", "complete")

    return {
        "question": question,
        "plan": plan.to_dict(),
        "plan_source": source,
        "llm": llm,
        "current_node": node_name,
        "progress": 0.40,
        "progress_message": plan.explanation,
    }


def execute_query_node(state: dict) -> dict:
    node_name = "execute_query"
    _emit_progress(state, node_name, 0.50, "Running query...")

    plan = state.get("plan")
    dataset = state.get("dataset")
    if plan is None or dataset is None:
        return _create_error_state(
            state, node_name,
            "No query plan to execute",
            "DATA_MISSING",
            "Please ask the question again.",
        )

    config = _config(state)
    if state.get("plan_source") == SOURCE_LLM:
        row_limit = config.backend_query_row_limit
    else:
        row_limit = config.query_row_limit

    results = QueryExecutor(row_limit=row_limit).execute(plan["sql_or_plan"], dataset.rows)

    _emit_progress(state, node_name, 0.70, "Query complete", "complete")

    return {
        "results": results,
        "current_node": node_name,
        "progress": 0.70,
        "progress_message": f"{len(results)} result rows",
    }


def summarize_results_node(state: dict) -> dict:
    node_name = "summarize_results"
    _emit_progress(state, node_name, 0.80, "Summarising results...")

    results = state.get("results") or []
    llm = state.get("llm") if _config(state).use_llm else None
    insight = summarize_results(results, state.get("question") or "", llm=llm)

    payload = {
        "is_error": False,
        "question": state.get("question"),
        "plan": state.get("plan"),
        "plan_source": state.get("plan_source"),
        "results": results,
        "insight": insight,
    }

    _emit_progress(state, node_name, 1.0, "Done", "complete")

    return {
        "insight": insight,
        "payload": sanitize_dict_for_json(payload),
        "current_node": node_name,
        "progress": 1.0,
        "progress_message": insight,
    }
