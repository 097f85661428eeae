# validators.py — Input sanitization & validation
# File type checks, question sanitization, metric checks, JSON cleanup
"""
validators.py — Input Sanitization & Validation

- File type validation
- Natural-language question sanitization
- Metric column validation against the schema
- JSON-safe conversion of analysis payloads
"""

from __future__ import annotations

import math
import re
from dataclasses import asdict, is_dataclass
from datetime import date, datetime
from typing import Any

import numpy as np


# =============================================================================
# CONSTANTS
# =============================================================================

ALLOWED_EXTENSIONS = {".csv"}
MAX_QUESTION_LENGTH = 500
MIN_QUESTION_LENGTH = 2


# =============================================================================
# FILE VALIDATION
# =============================================================================

def validate_file_extension(filename: str | None) -> tuple[bool, str | None]:
    """
    Validate that file has an allowed extension.

    Returns:
        (is_valid, error_message)
    """
    if not filename:
        return False, "No filename provided"

    ext = "." + filename.rsplit(".", 1)[-1].lower() if "." in filename else ""

    if ext not in ALLOWED_EXTENSIONS:
        return False, f"Invalid file type: {ext or 'none'}. Only CSV files are supported"

    return True, None


# =============================================================================
# QUESTION / METRIC VALIDATION
# =============================================================================

def sanitize_question(question: str | None) -> str | None:
    """
    Sanitize a user question before it reaches the query planner.

    Returns:
        Cleaned question or None if invalid/empty
    """
    if not isinstance(question, str):
        return None

    question = question.strip()

    if len(question) < MIN_QUESTION_LENGTH:
        return None

    if len(question) > MAX_QUESTION_LENGTH:
        question = question[:MAX_QUESTION_LENGTH]

    question = re.sub(r"[<>{}[\]\\]", "", question)

    return question or None


def resolve_metric(requested: str | None, numeric_columns: list[str]) -> str | None:
    """
    Pick the metric to analyse: the requested column when it is numeric,
    otherwise the first numeric column.
    """
    if requested and requested in numeric_columns:
        return requested
    return numeric_columns[0] if numeric_columns else None


# =============================================================================
# JSON SANITIZATION
# =============================================================================

def sanitize_dict_for_json(obj: Any) -> Any:
    """
    Recursively convert a payload into JSON-safe values.
    Handles dataclasses, numpy types, dates, NaN and Inf.
    """
    if obj is None:
        return None

    if hasattr(obj, "to_dict"):
        return sanitize_dict_for_json(obj.to_dict())

    if is_dataclass(obj) and not isinstance(obj, type):
        return sanitize_dict_for_json(asdict(obj))

    if isinstance(obj, dict):
        return {str(k): sanitize_dict_for_json(v) for k, v in obj.items()}

    if isinstance(obj, (list, tuple)):
        return [sanitize_dict_for_json(v) for v in obj]

    if isinstance(obj, (datetime, date)):
        return obj.isoformat()

    if isinstance(obj, (bool, np.bool_)):
        return bool(obj)

    if isinstance(obj, np.integer):
        return int(obj)

    if isinstance(obj, np.ndarray):
        return sanitize_dict_for_json(obj.tolist())

    if isinstance(obj, (float, np.floating)):
        value = float(obj)
        if math.isnan(value) or math.isinf(value):
            return None
        return value

    return obj
