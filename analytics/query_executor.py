# query_executor.py — Run a constrained query plan against in-memory rows
"""
query_executor.py — Query Executor

Not a SQL engine. The plan text is pattern-matched against a fixed set of
shapes, in priority order; the first shape that matches wins:

    COUNT(*)              → [{total_count: n}]
    AVG(col)              → [{average_<col>: mean}]
    SUM(col)              → [{total_<col>: sum}]          (no GROUP BY)
    GROUP BY g + SUM(col) → [{g: key, total: sum}, ...]   (desc by total)
    ORDER BY col DESC     → top rows
    ORDER BY col ASC      → bottom rows

Anything else, or a shape whose column cannot be extracted, falls back to
the first `row_limit` rows.
"""

from __future__ import annotations

import logging
import math
import re
from dataclasses import dataclass

from analytics.scalars import Row, parse_number

log = logging.getLogger(__name__)


# =============================================================================
# CONSTANTS
# =============================================================================

CLIENT_ROW_LIMIT = 100
BACKEND_ROW_LIMIT = 10
GROUP_LIMIT = 20
ORDER_LIMIT = 10

COUNT_PATTERN = re.compile(r"select\s+count\(\s*\*\s*\)", re.IGNORECASE)
AVG_PATTERN = re.compile(r"avg\((\w+)\)", re.IGNORECASE)
SUM_PATTERN = re.compile(r"sum\((\w+)\)", re.IGNORECASE)
GROUP_BY_PATTERN = re.compile(r"group\s+by\s+(\w+)", re.IGNORECASE)
ORDER_DESC_PATTERN = re.compile(r"order\s+by\s+(\w+)\s+desc", re.IGNORECASE)
ORDER_ASC_PATTERN = re.compile(r"order\s+by\s+(\w+)\s+asc", re.IGNORECASE)


def _number_or_zero(value) -> float:
    number = parse_number(value)
    return number if number is not None else 0.0


@dataclass
class QueryExecutor:
    """
    Executes query plans with configurable result caps.

    `row_limit` is the raw-sample cap: 100 on the client-only path,
    10 when the plan came from the backend.
    """
    row_limit: int = CLIENT_ROW_LIMIT
    group_limit: int = GROUP_LIMIT
    order_limit: int = ORDER_LIMIT

    def execute(self, plan: str, rows: list[Row]) -> list[Row]:
        try:
            result = self._match(plan or "", rows)
        except (TypeError, ValueError, KeyError) as e:
            log.warning("Query plan failed, returning raw sample: %s", e)
            result = None

        if result is None:
            log.debug("No query shape matched, returning first %d rows", self.row_limit)
            return [dict(row) for row in rows[:self.row_limit]]
        return result

    # =========================================================================
    # SHAPES
    # =========================================================================

    def _match(self, plan: str, rows: list[Row]) -> list[Row] | None:
        lowered = plan.lower()

        if COUNT_PATTERN.search(plan):
            return [{"total_count": len(rows)}]

        if "avg(" in lowered or "average" in lowered:
            match = AVG_PATTERN.search(plan)
            if match:
                return self._average(match.group(1), rows)

        group_match = GROUP_BY_PATTERN.search(plan)

        if "sum(" in lowered and not group_match:
            match = SUM_PATTERN.search(plan)
            if match:
                column = match.group(1)
                total = math.fsum(_number_or_zero(row.get(column)) for row in rows)
                return [{f"total_{column}": total}]

        if group_match:
            sum_match = SUM_PATTERN.search(plan)
            if sum_match:
                return self._group_sum(group_match.group(1), sum_match.group(1), rows)

        if "order by" in lowered and "desc" in lowered:
            match = ORDER_DESC_PATTERN.search(plan)
            if match:
                return self._order(match.group(1), rows, descending=True)

        if "order by" in lowered and "asc" in lowered:
            match = ORDER_ASC_PATTERN.search(plan)
            if match:
                return self._order(match.group(1), rows, descending=False)

        return None

    def _average(self, column: str, rows: list[Row]) -> list[Row]:
        values = [n for n in (parse_number(row.get(column)) for row in rows) if n is not None]
        average = round(math.fsum(values) / len(values), 2) if values else None
        return [{f"average_{column}": average}]

    def _group_sum(self, group_column: str, sum_column: str, rows: list[Row]) -> list[Row]:
        grouped: dict = {}
        for row in rows:
            key = row.get(group_column)
            grouped[key] = grouped.get(key, 0.0) + _number_or_zero(row.get(sum_column))

        result = [{group_column: key, "total": total} for key, total in grouped.items()]
        result.sort(key=lambda r: r["total"], reverse=True)
        return result[:self.group_limit]

    def _order(self, column: str, rows: list[Row], descending: bool) -> list[Row]:
        ordered = sorted(rows, key=lambda row: _number_or_zero(row.get(column)), reverse=descending)
        return [dict(row) for row in ordered[:self.order_limit]]


def execute_query(plan: str, rows: list[Row], row_limit: int = CLIENT_ROW_LIMIT) -> list[Row]:
    """Execute a query plan with the default shape caps."""
    return QueryExecutor(row_limit=row_limit).execute(plan, rows)
