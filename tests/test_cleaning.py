"""
Tests for type inference and the cleaning pipeline.
"""

from datetime import date

import pytest

from analytics.cleaning import (
    detect_column_type,
    fill_missing_values,
    normalize_data,
    normalize_nulls,
    process_dataset,
    remove_duplicates,
)
from analytics.errors import EmptyDatasetError, EmptyInputError
from analytics.models import Column


class TestNullsAndDuplicates:
    """Null normalisation and full-row deduplication."""

    def test_empty_string_and_nan_become_none(self):
        rows = normalize_nulls([{"a": "", "b": float("nan"), "c": "x"}])
        assert rows == [{"a": None, "b": None, "c": "x"}]

    def test_missing_keys_are_filled(self):
        rows = normalize_nulls([{"a": "1"}, {"b": "2"}])
        assert rows == [{"a": "1", "b": None}, {"a": None, "b": "2"}]

    def test_first_occurrence_wins(self):
        rows = [{"a": "1", "b": "x"}, {"a": "2", "b": "y"}, {"a": "1", "b": "x"}]
        assert remove_duplicates(rows) == rows[:2]

    def test_duplicates_plus_unique_equals_raw(self, raw_sales_rows):
        dataset = process_dataset(raw_sales_rows)
        assert dataset.summary.duplicates + dataset.summary.total_rows == len(raw_sales_rows)
        assert dataset.summary.duplicates == 1


class TestTypeDetection:
    """Fixed precedence: number, boolean, date, string."""

    def test_zero_one_column_is_numeric(self):
        assert detect_column_type(["1", "0", "1"]) == "number"

    def test_boolean_literals(self):
        assert detect_column_type(["true", "FALSE", "1"]) == "boolean"

    def test_dates(self):
        assert detect_column_type(["2024-01-01", "2024-02-15"]) == "date"

    def test_mixed_values_are_strings(self):
        assert detect_column_type(["10", "abc"]) == "string"

    def test_all_null_column_is_string(self):
        assert detect_column_type([None, "", None]) == "string"

    def test_nulls_are_ignored(self):
        assert detect_column_type(["3.5", None, "-2"]) == "number"


class TestImputation:
    """Mean for numbers, mode for strings; dates and booleans untouched."""

    def test_numeric_mean(self):
        dataset = process_dataset([{"v": "10"}, {"v": ""}, {"v": "20"}])
        assert [row["v"] for row in dataset.rows] == [10.0, 15.0, 20.0]

    def test_string_mode_first_seen_breaks_ties(self):
        rows = [
            {"id": "1", "s": "b"},
            {"id": "2", "s": "a"},
            {"id": "3", "s": "a"},
            {"id": "4", "s": "b"},
            {"id": "5", "s": None},
        ]
        dataset = process_dataset(rows)
        assert dataset.rows[-1]["s"] == "b"

    def test_dates_and_booleans_not_imputed(self):
        rows = [
            {"d": "2024-01-01", "flag": "true", "k": "1"},
            {"d": None, "flag": None, "k": "2"},
        ]
        dataset = process_dataset(rows)
        assert dataset.rows[1]["d"] is None
        assert dataset.rows[1]["flag"] is None
        assert dataset.rows[0]["d"] == date(2024, 1, 1)
        assert dataset.rows[0]["flag"] is True

    def test_fill_missing_values_returns_new_rows(self):
        rows = [{"v": 1.0}, {"v": None}]
        columns = [Column(name="v", type="number", nullable=True, unique_count=1)]
        filled = fill_missing_values(rows, columns)
        assert filled[1]["v"] == 1.0
        assert rows[1]["v"] is None


class TestProcessDataset:
    """Schema and summary produced by the full pipeline."""

    def test_empty_input_raises(self):
        with pytest.raises(EmptyDatasetError):
            process_dataset([])

    def test_empty_input_alias(self):
        assert EmptyInputError is EmptyDatasetError

    def test_missing_values_counted_before_imputation(self, sales_dataset):
        assert sales_dataset.summary.missing_values == {"region": 1, "units": 1}

    def test_missing_values_only_for_columns_with_nulls(self, sales_dataset):
        assert "revenue" not in sales_dataset.summary.missing_values

    def test_column_schema(self, sales_dataset):
        types = {c.name: c.type for c in sales_dataset.columns}
        assert types == {"date": "date", "region": "string", "revenue": "number", "units": "number"}

        units = sales_dataset.get_column("units")
        assert units.nullable is True
        assert sales_dataset.get_column("revenue").nullable is False

    def test_unique_count_bounded_by_rows(self, sales_dataset):
        for column in sales_dataset.columns:
            assert column.unique_count <= sales_dataset.summary.total_rows

    def test_cleaning_twice_finds_no_duplicates(self, sales_dataset):
        again = process_dataset(sales_dataset.rows)
        assert again.summary.duplicates == 0
        assert again.rows == sales_dataset.rows

    def test_relative_date_words_stay_text(self):
        dataset = process_dataset([{"status": "now"}, {"status": "today"}])
        assert dataset.get_column("status").type == "string"
        assert dataset.rows == [{"status": "now"}, {"status": "today"}]
        assert process_dataset([{"status": "now"}, {"status": "today"}]).rows == dataset.rows


class TestNormalizeData:
    """Min-max scaled companion columns."""

    def test_scales_to_unit_range(self):
        rows = [{"v": 0.0}, {"v": 5.0}, {"v": 10.0}]
        columns = [Column(name="v", type="number", nullable=False, unique_count=3)]
        normalized = normalize_data(rows, columns)
        assert [r["v_normalized"] for r in normalized] == [0.0, 0.5, 1.0]
        assert "v_normalized" not in rows[0]

    def test_constant_column_skipped(self):
        rows = [{"v": 3.0}, {"v": 3.0}]
        columns = [Column(name="v", type="number", nullable=False, unique_count=1)]
        assert "v_normalized" not in normalize_data(rows, columns)[0]
