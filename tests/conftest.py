"""
Shared fixtures for the ad insights tests.
"""

import asyncio
from typing import List, Optional

import pytest

from ad_insights.intelligence.providers.base import (
    InsightProvider,
    InsightRequest,
    LLMResponse,
    TokenUsage,
)
from ad_insights.preprocessing.converter import convert_rows
from ad_insights.schema.inference import infer_columns


class FakeProvider(InsightProvider):
    """Provider double with a configurable delay, content or error."""

    def __init__(
        self,
        provider_id: str,
        model: str = "gpt-4o-mini",
        content: str = "Spend is concentrated in two ad groups.",
        delay: float = 0.0,
        error: Optional[Exception] = None,
        usage: Optional[TokenUsage] = None,
    ):
        self.provider_id = provider_id
        self.model = model
        self.content = content
        self.delay = delay
        self.error = error
        self.usage = usage or TokenUsage(input_tokens=1000, output_tokens=500)
        self.requests: List[InsightRequest] = []

    async def generate(self, request: InsightRequest) -> LLMResponse:
        self.requests.append(request)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return LLMResponse(content=self.content, model=self.model, usage=self.usage)


@pytest.fixture
def ad_group_rows():
    """Raw AdGroups rows with string-typed numbers and an identifier field."""
    return [
        {"campaign": "Brand", "adGroup": "Brand Exact", "impr": "1,200", "clicks": "120", "cost": "60.50", "conv": "12", "value": "600"},
        {"campaign": "Brand", "adGroup": "Brand Broad", "impr": "800", "clicks": "40", "cost": "30", "conv": "3", "value": "150"},
        {"campaign": "Generic", "adGroup": "Shoes", "impr": "5000", "clicks": "150", "cost": "210", "conv": "5", "value": "400"},
        {"campaign": "Generic", "adGroup": "Boots", "impr": "3000", "clicks": "90", "cost": "95.25", "conv": "0", "value": "0"},
        {"campaign": "Generic", "adGroup": "Sandals", "impr": "700", "clicks": "14", "cost": "12", "conv": "1", "value": "45"},
    ]


@pytest.fixture
def daily_rows():
    """Raw Daily rows (time series)."""
    return [
        {"campaign": "Brand", "date": "2024-03-01", "impr": 1000, "clicks": 50, "cost": 25.0, "conv": 2, "value": 100.0},
        {"campaign": "Brand", "date": "2024-03-02", "impr": 1100, "clicks": 55, "cost": 27.5, "conv": 3, "value": 140.0},
        {"campaign": "Generic", "date": "2024-03-01", "impr": 4000, "clicks": 90, "cost": 120.0, "conv": 4, "value": 210.0},
        {"campaign": "Generic", "date": "2024-03-03", "impr": 4200, "clicks": 95, "cost": 9000.0, "conv": 5, "value": 260.0},
        {"campaign": "Generic", "date": "not a date", "impr": 3900, "clicks": 80, "cost": 110.0, "conv": 3, "value": 150.0},
    ]


@pytest.fixture
def cost_outlier_raw_rows():
    """Twenty ordinary rows and one with an extreme cost."""
    rows = [
        {"searchTerm": f"term {i}", "impr": 100, "clicks": 10, "cost": 1, "conv": 1, "value": 10}
        for i in range(20)
    ]
    rows.append({"searchTerm": "runaway term", "impr": 100, "clicks": 10, "cost": 100, "conv": 1, "value": 10})
    return rows


def build_rows(raw_rows):
    """Infer columns and convert rows in one step."""
    columns = infer_columns(raw_rows)
    return columns, convert_rows(raw_rows, columns)
