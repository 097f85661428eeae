# analytics_config.py — Runtime knobs for the analysis and question workflows
"""
analytics_config.py — Analytics Configuration

Defaults mirror the dashboard's behaviour. `from_env()` lets a deployment
override them through ANALYTICS_* environment variables.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass

from analytics.forecasting import DEFAULT_PERIODS
from analytics.query_executor import BACKEND_ROW_LIMIT, CLIENT_ROW_LIMIT

log = logging.getLogger(__name__)


# =============================================================================
# CONSTANTS
# =============================================================================

ENV_PREFIX = "ANALYTICS_"
DEFAULT_PREVIEW_ROWS = 5
TRUE_VALUES = ("1", "true", "yes", "on")


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(ENV_PREFIX + name)
    if raw is None or not raw.strip():
        return default
    try:
        value = int(raw)
    except ValueError:
        log.warning("Ignoring invalid %s%s=%r, using %d", ENV_PREFIX, name, raw, default)
        return default
    if value <= 0:
        log.warning("Ignoring non-positive %s%s=%r, using %d", ENV_PREFIX, name, raw, default)
        return default
    return value


def _env_bool(name: str, default: bool) -> bool:
    raw = os.environ.get(ENV_PREFIX + name)
    if raw is None or not raw.strip():
        return default
    return raw.strip().lower() in TRUE_VALUES


@dataclass(frozen=True)
class AnalyticsConfig:
    """
    Settings shared by the workflows.

    Attributes:
        default_forecast_periods: Forecast horizon in days
        query_row_limit: Raw-sample cap for locally planned questions
        backend_query_row_limit: Raw-sample cap for LLM-planned questions
        preview_rows: Rows kept in dataset metadata
        storage_dir: Dataset store root; None keeps datasets in memory
        prefer_cloud_llm: Try Groq before Ollama
        use_llm: Set False to force heuristic-only collaborators
    """
    default_forecast_periods: int = DEFAULT_PERIODS
    query_row_limit: int = CLIENT_ROW_LIMIT
    backend_query_row_limit: int = BACKEND_ROW_LIMIT
    preview_rows: int = DEFAULT_PREVIEW_ROWS
    storage_dir: str | None = None
    prefer_cloud_llm: bool = True
    use_llm: bool = True

    @classmethod
    def from_env(cls) -> AnalyticsConfig:
        storage_dir = os.environ.get(ENV_PREFIX + "STORAGE_DIR") or None
        return cls(
            default_forecast_periods=_env_int("FORECAST_PERIODS", DEFAULT_PERIODS),
            query_row_limit=_env_int("QUERY_ROW_LIMIT", CLIENT_ROW_LIMIT),
            backend_query_row_limit=_env_int("BACKEND_QUERY_ROW_LIMIT", BACKEND_ROW_LIMIT),
            preview_rows=_env_int("PREVIEW_ROWS", DEFAULT_PREVIEW_ROWS),
            storage_dir=storage_dir,
            prefer_cloud_llm=_env_bool("PREFER_CLOUD_LLM", True),
            use_llm=_env_bool("USE_LLM", True),
        )
