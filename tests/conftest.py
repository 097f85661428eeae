"""
Shared fixtures for the analytics test suite.
"""

from datetime import date

import pytest

from analytics.cleaning import process_dataset
from settings.llm_config import LLMError


SALES_CSV = (
    "date,region,revenue,units,active\n"
    "2024-01-01,North,100,10,true\n"
    "2024-01-02,South,120,12,false\n"
    "2024-01-03,North,110,,true\n"
    "2024-01-03,North,110,,true\n"
    "2024-01-04,,130,13,\n"
    '2024-01-05,"South",150,15,true\n'
)


class FakeLLM:
    """Stands in for GroqLLM / OllamaLLM: canned replies, records prompts.

    `replies` is returned in order; the last reply repeats.
    """

    def __init__(self, *replies, error=None):
        self.replies = list(replies)
        self.error = error
        self.calls = []

    def generate(self, prompt, system_prompt=None, temperature=None, max_tokens=None):
        self.calls.append({"prompt": prompt, "system_prompt": system_prompt})
        if self.error is not None:
            raise self.error
        if len(self.replies) > 1:
            return self.replies.pop(0)
        return self.replies[0] if self.replies else ""


@pytest.fixture
def today():
    return date(2024, 3, 10)


@pytest.fixture
def sales_csv_bytes():
    return SALES_CSV.encode("utf-8")


@pytest.fixture
def raw_sales_rows():
    return [
        {"date": "2024-01-01", "region": "North", "revenue": "100", "units": "10"},
        {"date": "2024-01-02", "region": "South", "revenue": "120", "units": "12"},
        {"date": "2024-01-03", "region": "North", "revenue": "110", "units": ""},
        {"date": "2024-01-03", "region": "North", "revenue": "110", "units": ""},
        {"date": "2024-01-04", "region": None, "revenue": "130", "units": "13"},
        {"date": "2024-01-05", "region": "South", "revenue": "150", "units": "15"},
    ]


@pytest.fixture
def sales_dataset(raw_sales_rows):
    return process_dataset(raw_sales_rows)


@pytest.fixture
def fake_llm():
    return FakeLLM


@pytest.fixture
def failing_llm():
    return FakeLLM(error=LLMError("connection refused"))
