# nlq.py — Natural-language question → query plan
# LLM translation with a keyword heuristic as the fixed fallback
"""
nlq.py — NLQ Collaborator

Contract: given a question, the column schema and a table name, return a
QueryPlan whose `sql_or_plan` the Query Executor can pattern-match.

`translate_query` asks the LLM and reports failure as a value.
`heuristic_plan` maps keyword categories to the executor's fixed shapes.
`plan_query` combines the two: LLM first, heuristic on any failure.
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import asdict, dataclass
from typing import Any

from analytics.models import Column, VisualizationType
from collaborators.result import CollaboratorResult
from settings.llm_config import LLMError

log = logging.getLogger(__name__)


# =============================================================================
# CONSTANTS
# =============================================================================

HEURISTIC_CONFIDENCE = 0.8
DEFAULT_TABLE_NAME = "data"
VISUALIZATION_TYPES = ("table", "line", "bar", "pie", "scatter")

SOURCE_LLM = "llm"
SOURCE_HEURISTIC = "heuristic"

CODE_FENCE_PATTERN = re.compile(r"^```(?:json)?\s*|\s*```$", re.IGNORECASE)

NLQ_SYSTEM_PROMPT = """You are a SQL expert. Convert natural language questions to SQL queries.
Table schema: {table_name} with columns: {schema}

Rules:
1. Only use columns that exist in the schema
2. Return valid SQLite syntax
3. Use proper aggregations (SUM, AVG, COUNT, etc.)
4. Add WHERE clauses for filtering
5. Use GROUP BY when needed
6. Always limit results to 1000 rows

Return JSON with:
{{
  "sql": "SELECT ...",
  "explanation": "This query...",
  "confidence": 0.95,
  "visualization_type": "bar"
}}"""


@dataclass(frozen=True)
class QueryPlan:
    sql_or_plan: str
    explanation: str
    confidence: float
    visualization_type: VisualizationType = "table"

    def to_dict(self) -> dict:
        return asdict(self)


# =============================================================================
# HEURISTIC PLANNER
# =============================================================================

def _contains_any(text: str, keywords: tuple[str, ...]) -> bool:
    return any(k in text for k in keywords)


def heuristic_plan(
    query: str,
    columns: list[Column],
    table_name: str = DEFAULT_TABLE_NAME,
) -> QueryPlan:
    """
    Keyword planner. First matching category wins:
    average → sum → count → trend → group-by → top → bottom → sample.
    """
    if not columns:
        return QueryPlan(
            sql_or_plan=f"SELECT * FROM {table_name} LIMIT 100",
            explanation="Shows a sample of the data",
            confidence=HEURISTIC_CONFIDENCE,
        )

    lowered = (query or "").lower()
    names = [c.name for c in columns]
    numeric = [c.name for c in columns if c.type == "number"]
    dates = [c.name for c in columns if c.type == "date"]
    strings = [c.name for c in columns if c.type == "string"]

    first = names[0]
    value_col = numeric[0] if numeric else first
    second_or_first = numeric[0] if numeric else (names[1] if len(names) > 1 else first)

    if _contains_any(lowered, ("average", "avg", "mean")):
        return QueryPlan(
            f"SELECT AVG({value_col}) as average_{value_col} FROM {table_name}",
            f"Calculates the average of {value_col}",
            HEURISTIC_CONFIDENCE,
            "table",
        )

    if _contains_any(lowered, ("sum", "total")):
        return QueryPlan(
            f"SELECT SUM({value_col}) as total_{value_col} FROM {table_name}",
            f"Calculates the total sum of {value_col}",
            HEURISTIC_CONFIDENCE,
            "table",
        )

    if _contains_any(lowered, ("count", "how many")):
        return QueryPlan(
            f"SELECT COUNT(*) as total_count FROM {table_name}",
            "Counts the total number of records",
            HEURISTIC_CONFIDENCE,
            "table",
        )

    if _contains_any(lowered, ("trend", "over time")):
        date_col = dates[0] if dates else first
        revenue = [n for n in numeric if "revenue" in n.lower()]
        trend_col = revenue[0] if revenue else second_or_first
        return QueryPlan(
            f"SELECT {date_col}, {trend_col} FROM {table_name} ORDER BY {date_col} LIMIT 1000",
            f"Shows trends of {trend_col} over {date_col}",
            HEURISTIC_CONFIDENCE,
            "line",
        )

    if _contains_any(lowered, ("group by", "breakdown", "by category")):
        group_col = strings[0] if strings else first
        return QueryPlan(
            f"SELECT {group_col}, SUM({second_or_first}) as total FROM {table_name} "
            f"GROUP BY {group_col} LIMIT 20",
            f"Groups data by {group_col} and shows totals",
            HEURISTIC_CONFIDENCE,
            "bar",
        )

    if _contains_any(lowered, ("top", "highest", "best")):
        return QueryPlan(
            f"SELECT * FROM {table_name} ORDER BY {value_col} DESC LIMIT 10",
            f"Shows top 10 records by {value_col}",
            HEURISTIC_CONFIDENCE,
            "bar",
        )

    if _contains_any(lowered, ("bottom", "lowest", "worst")):
        return QueryPlan(
            f"SELECT * FROM {table_name} ORDER BY {value_col} ASC LIMIT 10",
            f"Shows bottom 10 records by {value_col}",
            HEURISTIC_CONFIDENCE,
            "bar",
        )

    return QueryPlan(
        f"SELECT * FROM {table_name} LIMIT 100",
        "Shows a sample of the data",
        HEURISTIC_CONFIDENCE,
        "table",
    )


# =============================================================================
# LLM TRANSLATION
# =============================================================================

def _parse_plan(text: str) -> QueryPlan:
    """
    Parse the LLM's JSON reply.

    Raises:
        ValueError: Reply is not a JSON object with a non-empty "sql"
    """
    cleaned = CODE_FENCE_PATTERN.sub("", text.strip())
    data: Any = json.loads(cleaned)

    if not isinstance(data, dict):
        raise ValueError("LLM reply is not a JSON object")

    sql = data.get("sql") or data.get("sql_or_plan")
    if not isinstance(sql, str) or not sql.strip():
        raise ValueError("LLM reply has no query")

    visualization = data.get("visualization_type", "table")
    if visualization not in VISUALIZATION_TYPES:
        visualization = "table"

    confidence = float(data.get("confidence", 0.0))

    return QueryPlan(
        sql_or_plan=sql.strip(),
        explanation=str(data.get("explanation", "")),
        confidence=min(1.0, max(0.0, confidence)),
        visualization_type=visualization,
    )


def translate_query(
    query: str,
    columns: list[Column],
    table_name: str = DEFAULT_TABLE_NAME,
    llm=None,
) -> CollaboratorResult[QueryPlan]:
    """
    Ask the LLM for a query plan.

    Failure (no client, transport error, malformed JSON) is returned as
    a failed CollaboratorResult, never raised.
    """
    if llm is None:
        return CollaboratorResult.failure("No LLM configured for query translation")

    schema = ", ".join(f"{c.name} ({c.type})" for c in columns)
    system_prompt = NLQ_SYSTEM_PROMPT.format(table_name=table_name, schema=schema)

    try:
        reply = llm.generate(query, system_prompt=system_prompt, temperature=0.3, max_tokens=500)
    except LLMError as e:
        return CollaboratorResult.failure(f"Query translation failed: {e}")

    try:
        return CollaboratorResult.success(_parse_plan(reply))
    except (ValueError, TypeError) as e:
        # json.JSONDecodeError is a ValueError
        return CollaboratorResult.failure(f"Malformed query plan from LLM: {e}")


def plan_query(
    query: str,
    columns: list[Column],
    table_name: str = DEFAULT_TABLE_NAME,
    llm=None,
) -> tuple[QueryPlan, str]:
    """
    Plan a question, falling back to the heuristic on any LLM failure.

    Returns:
        (plan, source) where source is "llm" or "heuristic"
    """
    if llm is None:
        return heuristic_plan(query, columns, table_name), SOURCE_HEURISTIC

    result = translate_query(query, columns, table_name, llm=llm)
    if result.ok:
        return result.value, SOURCE_LLM

    def fallback(error):
        log.warning("NLQ collaborator unavailable, using heuristic planner: %s", error)
        return heuristic_plan(query, columns, table_name)

    return result.or_else(fallback), SOURCE_HEURISTIC
