"""
Tests for descriptive statistics and the data-quality scan.
"""

import pytest

from analytics.cleaning import process_dataset
from analytics.models import Column
from analytics.statistics import (
    column_statistics,
    generate_statistics,
    rank_quantile,
    scan_data_quality,
)


class TestRankQuantiles:
    """Quartiles use sorted[floor(n * p)], not interpolation."""

    def test_even_length(self):
        stats = column_statistics([4.0, 1.0, 3.0, 2.0])
        assert stats.median == 3.0
        assert stats.q1 == 2.0
        assert stats.q3 == 4.0

    def test_single_value(self):
        assert rank_quantile([7.0], 0.75) == 7.0

    def test_population_std_dev(self):
        stats = column_statistics([1.0, 2.0, 3.0, 4.0])
        assert stats.mean == 2.5
        assert stats.std_dev == pytest.approx(1.118034, rel=1e-6)

    @pytest.mark.parametrize("values", [
        [1.0],
        [5.0, -3.0, 2.0],
        [0.1] * 10,
        [1e9, 1.0, -1e9, 3.5, 3.5],
    ])
    def test_ordering_properties(self, values):
        stats = column_statistics(values)
        assert stats.q1 <= stats.median <= stats.q3
        assert stats.min <= stats.mean <= stats.max


class TestGenerateStatistics:
    """Numeric columns only; empty columns are left out."""

    def test_only_numeric_columns(self, sales_dataset):
        stats = generate_statistics(sales_dataset.rows, sales_dataset.columns)
        assert set(stats) == {"revenue", "units"}
        assert stats["revenue"].count == 5
        assert stats["revenue"].min == 100.0
        assert stats["revenue"].max == 150.0

    def test_column_without_values_is_omitted(self):
        columns = [Column(name="x", type="number", nullable=True, unique_count=0)]
        assert generate_statistics([{"x": None}, {"x": "n/a"}], columns) == {}


class TestDataQualityScan:
    """Quality report over the cleaned dataset."""

    def test_report_shape(self, sales_dataset):
        report = scan_data_quality(sales_dataset)
        assert 0.0 <= report["overall_score"] <= 1.0
        assert report["duplicate_rows"] == 1
        assert report["missing_summary"]["total_missing_cells"] == 2
        names = [c["name"] for c in report["column_quality"]]
        assert names == sales_dataset.column_names

    def test_constant_column_flagged(self):
        dataset = process_dataset([
            {"k": "1", "const": "x"},
            {"k": "2", "const": "x"},
            {"k": "3", "const": "x"},
        ])
        report = scan_data_quality(dataset)
        assert report["constant_columns"] == ["const"]
        assert any("Constant columns" in w for w in report["quality_warnings"])
