"""
End-to-end tests for the analysis and question graphs.
"""

import json

import pytest

from settings.analytics_config import AnalyticsConfig
from storage.dataset_store import DatasetStore
from workflow.graph import ask_question, build_analysis_graph, run_analysis, stream_analysis


NO_NUMBERS_CSV = b"name,city\nann,Oslo\nbob,Rome\n"


@pytest.fixture(autouse=True)
def no_llm_provider(monkeypatch):
    """Keep question tests offline unless a test injects a provider."""
    monkeypatch.setattr("workflow.nodes.get_llm", lambda **kwargs: None)


class TestRunAnalysis:
    """Upload to insights in one call."""

    def test_happy_path(self, sales_csv_bytes, today):
        store = DatasetStore()
        result = run_analysis(sales_csv_bytes, "sales.csv", today=today, store=store)
        payload = result["payload"]

        assert payload["is_error"] is False
        assert payload["metric"] == "revenue"
        assert [k["id"] for k in payload["kpis"]] == ["revenue", "units"]
        assert len(payload["prediction"]["predictions"]) == 30
        assert payload["prediction"]["predictions"][0]["date"] == "2024-01-06"
        assert payload["recommendations"]
        assert payload["dataset"]["row_count"] == 5
        assert set(payload["statistics"]) == {"revenue", "units"}

        assert [r.id for r in store.list_datasets()] == [result["dataset_id"]]
        json.dumps(payload)

    def test_requested_metric(self, sales_csv_bytes):
        result = run_analysis(sales_csv_bytes, "sales.csv", metric="units", periods=5)
        assert result["metric"] == "units"
        assert len(result["prediction"].predictions) == 5

    def test_non_numeric_metric_request_warns(self, sales_csv_bytes):
        result = run_analysis(sales_csv_bytes, "sales.csv", metric="region")
        assert result["metric"] == "revenue"
        assert any("'region' is not a numeric column" in w for w in result["warnings"])

    def test_forecast_horizon_from_config(self, sales_csv_bytes):
        config = AnalyticsConfig(default_forecast_periods=3)
        result = run_analysis(sales_csv_bytes, "sales.csv", config=config)
        assert len(result["payload"]["prediction"]["predictions"]) == 3

    def test_disk_store_from_config(self, sales_csv_bytes, tmp_path):
        config = AnalyticsConfig(storage_dir=str(tmp_path))
        result = run_analysis(sales_csv_bytes, "sales.csv", config=config)
        assert (tmp_path / result["dataset_id"]).is_dir()


class TestAnalysisErrors:
    """Failures route to handle_error with a user-facing payload."""

    def test_unsupported_file_type(self, sales_csv_bytes):
        payload = run_analysis(sales_csv_bytes, "sales.xlsx")["payload"]
        assert payload["is_error"] is True
        assert payload["error_type"] == "UNSUPPORTED_FILE_TYPE"
        assert payload["failed_node"] == "ingest_data"
        assert payload["has_partial_results"] is False

    def test_empty_input(self):
        payload = run_analysis(b"a,b\n", "empty.csv")["payload"]
        assert payload["error_type"] == "EMPTY_INPUT"

    def test_missing_file(self):
        payload = run_analysis(None, "data.csv")["payload"]
        assert payload["error_type"] == "DATA_MISSING"

    def test_unreadable_file(self, tmp_path):
        payload = run_analysis(str(tmp_path / "gone.csv"), "gone.csv")["payload"]
        assert payload["error_type"] == "FILE_UNREADABLE"
        assert payload["failed_node"] == "ingest_data"

    def test_oversize_file(self, monkeypatch, sales_csv_bytes):
        monkeypatch.setattr("analytics.data_loader.MAX_FILE_SIZE_BYTES", 10)
        payload = run_analysis(sales_csv_bytes, "sales.csv")["payload"]
        assert payload["error_type"] == "FILE_TOO_LARGE"

    def test_no_numeric_columns_keeps_partial_results(self):
        payload = run_analysis(NO_NUMBERS_CSV, "people.csv")["payload"]
        assert payload["error_type"] == "ANALYSIS_FAILED"
        assert payload["failed_node"] == "analyze_metrics"
        assert payload["has_partial_results"] is True
        assert payload["partial_results"]["dataset"]["row_count"] == 2


class TestStreamingAndProgress:

    def test_stream_order(self, sales_csv_bytes):
        nodes = [name for name, _ in stream_analysis(sales_csv_bytes, "sales.csv")]
        assert nodes == [
            "ingest_data",
            "clean_data",
            "profile_data",
            "persist_dataset",
            "analyze_metrics",
            "synthesize_insights",
        ]

    def test_stream_error_path(self):
        nodes = [name for name, _ in stream_analysis(b"x", "bad.txt")]
        assert nodes == ["ingest_data", "handle_error"]

    def test_progress_events(self, sales_csv_bytes):
        events = []
        run_analysis(sales_csv_bytes, "sales.csv", progress_callback=events.append)
        assert events[0]["node"] == "ingest_data"
        assert events[-1]["progress"] == 1.0
        assert all(e["status"] in ("running", "complete", "failed") for e in events)

    def test_broken_callback_does_not_fail(self, sales_csv_bytes):
        def explode(event):
            raise RuntimeError("display gone")

        result = run_analysis(sales_csv_bytes, "sales.csv", progress_callback=explode)
        assert result["payload"]["is_error"] is False

    def test_graph_nodes(self):
        graph = build_analysis_graph().compile()
        assert "handle_error" in graph.get_graph().nodes


class TestAskQuestion:
    """Question graph with and without an LLM."""

    def test_heuristic_count(self, sales_dataset):
        result = ask_question("How many rows are there?", sales_dataset)
        payload = result["payload"]
        assert payload["plan_source"] == "heuristic"
        assert payload["results"] == [{"total_count": 5}]
        assert payload["insight"] == "Analysis: Found 1 records matching your query."

    def test_heuristic_group_by(self, sales_dataset):
        result = ask_question("breakdown by region", sales_dataset)
        assert result["plan"]["visualization_type"] == "bar"
        assert [r["region"] for r in result["results"]] == ["North", "South"]

    def test_llm_plan_and_insight(self, sales_dataset, fake_llm):
        llm = fake_llm(
            json.dumps({"sql": "SELECT SUM(revenue) FROM data", "explanation": "sum", "confidence": 0.9}),
            "Revenue totals 610.",
        )
        payload = ask_question("total revenue", sales_dataset, llm=llm)["payload"]
        assert payload["plan_source"] == "llm"
        assert payload["results"] == [{"total_revenue": 610.0}]
        assert payload["insight"] == "Revenue totals 610."

    def test_llm_raw_sample_uses_backend_limit(self, fake_llm):
        from analytics.cleaning import process_dataset

        dataset = process_dataset([{"id": str(i)} for i in range(40)])
        llm = fake_llm(json.dumps({"sql": "SELECT * FROM data", "explanation": "all"}), "ok")
        assert len(ask_question("everything", dataset, llm=llm)["results"]) == 10
        assert len(ask_question("everything", dataset)["results"]) == 40

    def test_failing_llm_falls_back(self, sales_dataset, failing_llm):
        payload = ask_question("top revenue", sales_dataset, llm=failing_llm)["payload"]
        assert payload["plan_source"] == "heuristic"
        assert payload["results"][0]["revenue"] == 150.0
        assert payload["insight"].startswith("Analysis: Found")

    def test_llm_disabled_by_config(self, sales_dataset, fake_llm):
        llm = fake_llm("unused")
        ask_question("how many", sales_dataset, llm=llm, config=AnalyticsConfig(use_llm=False))
        assert llm.calls == []

    @pytest.mark.parametrize("question", ["", " ", "?"])
    def test_invalid_question(self, sales_dataset, question):
        payload = ask_question(question, sales_dataset)["payload"]
        assert payload["is_error"] is True
        assert payload["error_type"] == "QUESTION_INVALID"

    def test_no_dataset(self):
        payload = ask_question("how many", None)["payload"]
        assert payload["error_type"] == "DATA_MISSING"

    def test_provider_from_factory(self, sales_dataset, fake_llm, monkeypatch):
        llm = fake_llm(json.dumps({"sql": "SELECT COUNT(*) FROM data", "explanation": "count"}), "Five rows.")
        calls = []

        def factory(**kwargs):
            calls.append(kwargs)
            return llm

        monkeypatch.setattr("workflow.nodes.get_llm", factory)
        config = AnalyticsConfig(prefer_cloud_llm=False)
        payload = ask_question("how many", sales_dataset, config=config)["payload"]

        assert calls == [{"prefer_cloud": False}]
        assert payload["plan_source"] == "llm"
        assert payload["insight"] == "Five rows."

    def test_factory_skipped_when_llm_disabled(self, sales_dataset, monkeypatch):
        def factory(**kwargs):
            raise AssertionError("provider lookup should not run")

        monkeypatch.setattr("workflow.nodes.get_llm", factory)
        payload = ask_question("how many", sales_dataset, config=AnalyticsConfig(use_llm=False))["payload"]
        assert payload["plan_source"] == "heuristic"
