# insight.py — One-paragraph business insight for a query result
"""
insight.py — Insight-Summary Collaborator

Contract: given result rows and the original question, return a short
insight. On any failure the caller gets the templated row-count summary.
"""

from __future__ import annotations

import json
import logging

from analytics.scalars import Row
from analytics.validators import sanitize_dict_for_json
from collaborators.result import CollaboratorResult
from settings.llm_config import LLMError

log = logging.getLogger(__name__)


# =============================================================================
# CONSTANTS
# =============================================================================

SAMPLE_ROWS = 5

INSIGHT_SYSTEM_PROMPT = "You are a business analyst. Provide concise, actionable insights from data."


def fallback_insight(rows: list[Row]) -> str:
    return f"Analysis: Found {len(rows)} records matching your query."


def request_insight(rows: list[Row], query: str, llm=None) -> CollaboratorResult[str]:
    """Ask the LLM for a 2-3 sentence insight on the first rows of a result."""
    if llm is None:
        return CollaboratorResult.failure("No LLM configured for insight summaries")

    sample = json.dumps(sanitize_dict_for_json(rows[:SAMPLE_ROWS]), indent=2)
    prompt = (
        f"Query: {query}\n\nResults sample:\n{sample}\n\n"
        "Provide a brief business insight (2-3 sentences)."
    )

    try:
        text = llm.generate(prompt, system_prompt=INSIGHT_SYSTEM_PROMPT, temperature=0.7, max_tokens=150)
    except LLMError as e:
        return CollaboratorResult.failure(f"Insight request failed: {e}")

    if not text or not text.strip():
        return CollaboratorResult.failure("Empty insight from LLM")
    return CollaboratorResult.success(text.strip())


def summarize_results(rows: list[Row], query: str, llm=None) -> str:
    """Insight text for a query result; never raises."""
    result = request_insight(rows, query, llm=llm)

    def fallback(error):
        if llm is not None:
            log.warning("Insight collaborator unavailable, using template: %s", error)
        return fallback_insight(rows)

    return result.or_else(fallback)
