"""
Tests for the NLQ and insight collaborators and their fallbacks.
"""

import json
import logging

import pytest

from analytics.errors import CollaboratorUnavailable
from analytics.models import Column
from analytics.query_executor import execute_query
from collaborators.insight import fallback_insight, request_insight, summarize_results
from collaborators.nlq import heuristic_plan, plan_query, translate_query
from collaborators.result import CollaboratorResult


COLUMNS = [
    Column("date", "date", False, 5),
    Column("region", "string", False, 2),
    Column("units", "number", False, 5),
    Column("revenue", "number", False, 5),
]

LLM_PLAN = json.dumps({
    "sql": "SELECT SUM(revenue) as total_revenue FROM data",
    "explanation": "Adds up revenue",
    "confidence": 0.95,
    "visualization_type": "table",
})


class TestCollaboratorResult:

    def test_success(self):
        result = CollaboratorResult.success(3)
        assert result.ok
        assert result.or_else(lambda e: 0) == 3
        assert result.unwrap() == 3

    def test_failure(self):
        result = CollaboratorResult.failure("down")
        assert not result.ok
        assert isinstance(result.error, CollaboratorUnavailable)
        assert result.or_else(lambda e: str(e)) == "down"
        with pytest.raises(CollaboratorUnavailable):
            result.unwrap()


class TestHeuristicPlan:
    """Keyword categories, first match wins."""

    @pytest.mark.parametrize("question, plan, visualization", [
        ("What is the average units?", "SELECT AVG(units) as average_units FROM data", "table"),
        ("total sold", "SELECT SUM(units) as total_units FROM data", "table"),
        ("How many orders?", "SELECT COUNT(*) as total_count FROM data", "table"),
        ("revenue over time", "SELECT date, revenue FROM data ORDER BY date LIMIT 1000", "line"),
        ("breakdown by region", "SELECT region, SUM(units) as total FROM data GROUP BY region LIMIT 20", "bar"),
        ("top days", "SELECT * FROM data ORDER BY units DESC LIMIT 10", "bar"),
        ("worst days", "SELECT * FROM data ORDER BY units ASC LIMIT 10", "bar"),
        ("hello there", "SELECT * FROM data LIMIT 100", "table"),
    ])
    def test_categories(self, question, plan, visualization):
        result = heuristic_plan(question, COLUMNS)
        assert result.sql_or_plan == plan
        assert result.visualization_type == visualization
        assert result.confidence == 0.8

    def test_table_name(self):
        assert heuristic_plan("count", COLUMNS, table_name="sales").sql_or_plan.endswith("FROM sales")

    def test_empty_schema(self):
        assert heuristic_plan("average revenue", []).sql_or_plan == "SELECT * FROM data LIMIT 100"

    def test_plans_run_in_executor(self):
        rows = [
            {"date": "2024-01-01", "region": "A", "units": 3, "revenue": 30},
            {"date": "2024-01-02", "region": "A", "units": 2, "revenue": 20},
            {"date": "2024-01-03", "region": "B", "units": 1, "revenue": 10},
        ]
        grouped = execute_query(heuristic_plan("breakdown by region", COLUMNS).sql_or_plan, rows)
        assert grouped == [{"region": "A", "total": 5}, {"region": "B", "total": 1}]

        counted = execute_query(heuristic_plan("how many", COLUMNS).sql_or_plan, rows)
        assert counted == [{"total_count": 3}]


class TestTranslateQuery:
    """LLM failures come back as values, never exceptions."""

    def test_parses_reply(self, fake_llm):
        llm = fake_llm(LLM_PLAN)
        result = translate_query("total revenue", COLUMNS, llm=llm)
        assert result.ok
        assert result.value.sql_or_plan == "SELECT SUM(revenue) as total_revenue FROM data"
        assert result.value.confidence == 0.95
        assert "revenue (number)" in llm.calls[0]["system_prompt"]

    def test_code_fences_stripped(self, fake_llm):
        result = translate_query("q", COLUMNS, llm=fake_llm(f"```json\n{LLM_PLAN}\n```"))
        assert result.ok

    def test_unknown_visualization_becomes_table(self, fake_llm):
        reply = json.dumps({"sql": "SELECT 1", "visualization_type": "radar"})
        assert translate_query("q", COLUMNS, llm=fake_llm(reply)).value.visualization_type == "table"

    @pytest.mark.parametrize("reply", ["not json", "[]", json.dumps({"explanation": "no sql"})])
    def test_malformed_reply(self, fake_llm, reply):
        result = translate_query("q", COLUMNS, llm=fake_llm(reply))
        assert not result.ok

    def test_transport_error(self, failing_llm):
        result = translate_query("q", COLUMNS, llm=failing_llm)
        assert "connection refused" in str(result.error)

    def test_no_llm(self):
        assert not translate_query("q", COLUMNS).ok


class TestPlanQuery:

    def test_llm_plan(self, fake_llm):
        plan, source = plan_query("total revenue", COLUMNS, llm=fake_llm(LLM_PLAN))
        assert source == "llm"
        assert plan.explanation == "Adds up revenue"

    def test_falls_back_to_heuristic(self, failing_llm, caplog):
        with caplog.at_level(logging.WARNING, logger="collaborators.nlq"):
            plan, source = plan_query("how many rows", COLUMNS, llm=failing_llm)
        assert source == "heuristic"
        assert plan.sql_or_plan == "SELECT COUNT(*) as total_count FROM data"
        assert "heuristic planner" in caplog.text

    def test_without_llm(self):
        _, source = plan_query("how many rows", COLUMNS)
        assert source == "heuristic"


class TestInsightSummary:

    def test_fallback_text(self):
        rows = [{"a": 1}, {"a": 2}, {"a": 3}]
        assert summarize_results(rows, "q") == "Analysis: Found 3 records matching your query."
        assert fallback_insight([]) == "Analysis: Found 0 records matching your query."

    def test_llm_insight(self, fake_llm):
        llm = fake_llm("  Revenue is concentrated in region A.  ")
        rows = [{"region": f"r{i}", "total": i} for i in range(8)]
        assert summarize_results(rows, "breakdown", llm=llm) == "Revenue is concentrated in region A."

        prompt = llm.calls[0]["prompt"]
        assert prompt.startswith("Query: breakdown")
        assert '"r4"' in prompt
        assert '"r5"' not in prompt

    def test_failure_uses_template(self, failing_llm):
        assert summarize_results([{}], "q", llm=failing_llm) == fallback_insight([{}])

    def test_empty_reply_is_failure(self, fake_llm):
        assert not request_insight([], "q", llm=fake_llm("   ")).ok
