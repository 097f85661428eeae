"""
Tests for the pattern-matched query executor.
"""

import pytest

from analytics.query_executor import QueryExecutor, execute_query


@pytest.fixture
def region_rows():
    return [
        {"region": "A", "sales": 30},
        {"region": "A", "sales": 20},
        {"region": "B", "sales": 10},
    ]


@pytest.fixture
def numbered_rows():
    return [{"id": i, "score": (i * 37) % 150} for i in range(150)]


class TestShapes:
    """Each supported shape, in priority order."""

    def test_count(self):
        rows = [{"x": i} for i in range(7)]
        assert execute_query("SELECT COUNT(*) FROM data", rows) == [{"total_count": 7}]

    def test_count_is_case_insensitive(self):
        assert execute_query("select count( * ) from data", [{}, {}]) == [{"total_count": 2}]

    def test_average(self):
        rows = [{"sales": 10}, {"sales": "20"}, {"sales": 25}, {"sales": "n/a"}]
        assert execute_query("SELECT AVG(sales) as average_sales FROM data", rows) == [
            {"average_sales": 18.33}
        ]

    def test_average_without_values(self):
        assert execute_query("SELECT AVG(sales) FROM data", [{"sales": None}]) == [
            {"average_sales": None}
        ]

    def test_sum(self, region_rows):
        assert execute_query("SELECT SUM(sales) as total_sales FROM data", region_rows) == [
            {"total_sales": 60.0}
        ]

    def test_sum_treats_non_numeric_as_zero(self):
        rows = [{"sales": 5}, {"sales": "abc"}, {"sales": None}]
        assert execute_query("SELECT SUM(sales) FROM data", rows) == [{"total_sales": 5.0}]

    def test_group_by_sum(self, region_rows):
        plan = "SELECT region, SUM(sales) as total FROM data GROUP BY region LIMIT 20"
        assert execute_query(plan, region_rows) == [
            {"region": "A", "total": 50},
            {"region": "B", "total": 10},
        ]

    def test_group_by_capped_at_twenty(self):
        rows = [{"g": f"g{i}", "v": i} for i in range(30)]
        result = execute_query("SELECT g, SUM(v) FROM data GROUP BY g", rows)
        assert len(result) == 20
        assert result[0] == {"g": "g29", "total": 29}

    def test_order_desc(self, numbered_rows):
        result = execute_query("SELECT * FROM data ORDER BY score DESC LIMIT 10", numbered_rows)
        assert len(result) == 10
        scores = [r["score"] for r in result]
        assert scores == sorted(scores, reverse=True)
        assert scores[0] == 149

    def test_order_asc(self, numbered_rows):
        result = execute_query("SELECT * FROM data ORDER BY score ASC LIMIT 10", numbered_rows)
        assert [r["score"] for r in result][:2] == [0, 1]


class TestFallback:
    """Unmatched plans return a capped raw sample."""

    def test_unmatched_plan_returns_first_hundred(self, numbered_rows):
        result = execute_query("SELECT * FROM data", numbered_rows)
        assert result == numbered_rows[:100]

    def test_configurable_cap(self, numbered_rows):
        assert len(QueryExecutor(row_limit=10).execute("SELECT * FROM data", numbered_rows)) == 10

    def test_unextractable_column_falls_through(self, numbered_rows):
        # "average" matches the shape keyword but there is no avg(<col>)
        result = execute_query("SHOW THE AVERAGE SCORE", numbered_rows)
        assert result == numbered_rows[:100]

    def test_empty_plan(self, region_rows):
        assert execute_query("", region_rows) == region_rows

    def test_results_are_copies(self, region_rows):
        result = execute_query("SELECT * FROM data", region_rows)
        result[0]["sales"] = 999
        assert region_rows[0]["sales"] == 30
