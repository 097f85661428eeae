# graph.py — LangGraph workflow definitions
# Wires nodes into the analysis and question graphs with error routing
"""
graph.py — LangGraph Workflow Definition

Analysis flow:
    START → ingest_data → clean_data → profile_data → persist_dataset
          → analyze_metrics → synthesize_insights → END

Question flow:
    START → plan_query → execute_query → summarize_results → END

Any node that sets state["error"] routes to handle_error → END.
"""

from __future__ import annotations

from datetime import date
from typing import Any, Callable, Iterator, Literal

from langgraph.graph import END, START, StateGraph

from analytics.models import Dataset
from settings.analytics_config import AnalyticsConfig
from storage.dataset_store import DatasetStore
from workflow.nodes import (
    analyze_metrics,
    clean_data,
    execute_query_node,
    handle_error,
    ingest_data,
    persist_dataset,
    plan_query_node,
    profile_data,
    summarize_results_node,
    synthesize_insights,
)
from workflow.state import AnalysisState, QueryState, create_initial_state, create_query_state


ANALYSIS_STEPS = (
    ("ingest_data", ingest_data),
    ("clean_data", clean_data),
    ("profile_data", profile_data),
    ("persist_dataset", persist_dataset),
    ("analyze_metrics", analyze_metrics),
    ("synthesize_insights", synthesize_insights),
)

QUERY_STEPS = (
    ("plan_query", plan_query_node),
    ("execute_query", execute_query_node),
    ("summarize_results", summarize_results_node),
)


# =============================================================================
# CONDITIONAL ROUTING
# =============================================================================

def route_after_node(state: dict) -> Literal["continue", "error"]:
    if state.get("error"):
        return "error"
    return "continue"


# =============================================================================
# GRAPH BUILDERS
# =============================================================================

def _build_linear_graph(state_schema: type, steps: tuple) -> StateGraph:
    """Chain `steps` in order; every step can divert to handle_error."""
    workflow = StateGraph(state_schema)

    for name, node in steps:
        workflow.add_node(name, node)
    workflow.add_node("handle_error", handle_error)

    workflow.add_edge(START, steps[0][0])

    for index, (name, _) in enumerate(steps):
        next_node = steps[index + 1][0] if index + 1 < len(steps) else END
        workflow.add_conditional_edges(
            name,
            route_after_node,
            {
                "continue": next_node,
                "error": "handle_error",
            },
        )

    workflow.add_edge("handle_error", END)
    return workflow


def build_analysis_graph() -> StateGraph:
    return _build_linear_graph(AnalysisState, ANALYSIS_STEPS)


def build_query_graph() -> StateGraph:
    return _build_linear_graph(QueryState, QUERY_STEPS)


_compiled_graphs: dict[str, Any] = {}


def get_compiled_graph(kind: Literal["analysis", "query"] = "analysis"):
    """Compiled graph, built once per process."""
    if kind not in _compiled_graphs:
        builder = build_analysis_graph if kind == "analysis" else build_query_graph
        _compiled_graphs[kind] = builder().compile()
    return _compiled_graphs[kind]


# =============================================================================
# GRAPH EXECUTION
# =============================================================================

def run_analysis(
    raw_file: bytes | str,
    filename: str,
    metric: str | None = None,
    periods: int | None = None,
    today: date | None = None,
    config: AnalyticsConfig | None = None,
    store: DatasetStore | None = None,
    progress_callback: Callable[[dict], None] | None = None,
) -> dict:
    """
    Run the full upload-to-insights workflow.

    Args:
        raw_file: CSV bytes or a path to a CSV file
        filename: Original filename (extension is validated)
        metric: Preferred metric column; defaults to the first numeric column
        periods: Forecast horizon; defaults to config.default_forecast_periods
        today: Anchor for synthetic dates when the rows carry none
        config: AnalyticsConfig; defaults to AnalyticsConfig()
        store: Dataset store; defaults to one built from config.storage_dir
        progress_callback: Receives {node, status, progress, message}

    Returns:
        Final state. `payload` holds the JSON-ready result, or the error
        payload (`is_error` True) when a step failed.

    Example:
        result = run_analysis(open("sales.csv", "rb").read(), "sales.csv")
        if result["payload"]["is_error"]:
            print(result["payload"]["recovery_hint"])
    """
    initial_state = create_initial_state(
        raw_file=raw_file,
        filename=filename,
        requested_metric=metric,
        periods=periods,
        today=today,
        config=config,
        store=store,
        progress_callback=progress_callback,
    )
    return get_compiled_graph("analysis").invoke(initial_state)


def stream_analysis(
    raw_file: bytes | str,
    filename: str,
    metric: str | None = None,
    periods: int | None = None,
    today: date | None = None,
    config: AnalyticsConfig | None = None,
    store: DatasetStore | None = None,
    progress_callback: Callable[[dict], None] | None = None,
) -> Iterator[tuple[str, dict]]:
    """
    Stream the analysis workflow.

    Yields:
        (node_name, accumulated_state) after each node
    """
    initial_state = create_initial_state(
        raw_file=raw_file,
        filename=filename,
        requested_metric=metric,
        periods=periods,
        today=today,
        config=config,
        store=store,
        progress_callback=progress_callback,
    )

    accumulated_state = dict(initial_state)
    for event in get_compiled_graph("analysis").stream(initial_state):
        for node_name, state_update in event.items():
            accumulated_state.update(state_update or {})
            yield node_name, accumulated_state


def ask_question(
    question: str,
    dataset: Dataset,
    llm: Any = None,
    table_name: str = "data",
    config: AnalyticsConfig | None = None,
    progress_callback: Callable[[dict], None] | None = None,
) -> dict:
    """
    Answer a natural-language question about a dataset.

    With no `llm` a client is picked by `get_llm` (Groq, then Ollama).
    When none is reachable, or config.use_llm is False, the heuristic
    planner and the templated summary are used.

    Returns:
        Final state; `payload` holds question, plan, plan_source, results
        and insight.
    """
    initial_state = create_query_state(
        question=question,
        dataset=dataset,
        table_name=table_name,
        llm=llm,
        config=config,
        progress_callback=progress_callback,
    )
    return get_compiled_graph("query").invoke(initial_state)
