"""
Unit tests for the Insight Orchestrator.

Provider doubles resolve after short sleeps so the independence of
side-by-side state slices can be observed mid-flight.
"""

import asyncio
import logging

import pytest

from ad_insights.analysis.summary import summarize
from ad_insights.exceptions import InsightValidationError, ProviderError
from ad_insights.intelligence.orchestrator import InsightOrchestrator, ProviderStatus
from ad_insights.intelligence.pricing import ModelPricing, PricingTable
from ad_insights.intelligence.prompts import DatasetMetadata
from ad_insights.intelligence.providers.base import InsightProvider, LLMResponse, TokenUsage

from conftest import FakeProvider, build_rows


METADATA = DatasetMetadata(
    source_name="Ad Groups",
    filters="None",
    total_rows=5,
    rows_analyzed=5,
    outlier_info="No outliers detected",
)

PRICING = PricingTable([
    ModelPricing(id="gpt-4o-mini", display_name="GPT-4o mini", provider="openai", input_cost=0.15, output_cost=0.60),
])


@pytest.fixture
def dataset(ad_group_rows):
    columns, rows = build_rows(ad_group_rows)
    return rows, summarize(rows, columns)


class SequencedProvider(InsightProvider):
    """Returns a different (delay, content) pair on each call."""

    def __init__(self, provider_id, responses):
        self.provider_id = provider_id
        self.model = "gpt-4o-mini"
        self.responses = list(responses)

    async def generate(self, request):
        delay, content = self.responses.pop(0)
        await asyncio.sleep(delay)
        return LLMResponse(content=content, model=self.model, usage=TokenUsage(input_tokens=10, output_tokens=5))


class TestValidation:
    """Requests rejected before anything is dispatched."""

    @pytest.mark.asyncio
    async def test_empty_prompt_sends_nothing(self, dataset):
        rows, summary = dataset
        provider = FakeProvider("primary")
        orchestrator = InsightOrchestrator({"primary": provider})

        with pytest.raises(InsightValidationError) as exc_info:
            await orchestrator.generate("primary", "   ", summary, METADATA, rows)

        assert exc_info.value.details == {"field": "prompt"}
        assert provider.requests == []
        assert orchestrator.get_state("primary").status == ProviderStatus.IDLE

    @pytest.mark.asyncio
    async def test_missing_summary(self, dataset):
        rows, _ = dataset
        provider = FakeProvider("primary")
        orchestrator = InsightOrchestrator({"primary": provider})
        with pytest.raises(InsightValidationError):
            await orchestrator.generate("primary", "Analyze", None, METADATA, rows)
        assert provider.requests == []

    @pytest.mark.asyncio
    async def test_empty_rows(self, dataset):
        _, summary = dataset
        orchestrator = InsightOrchestrator({"primary": FakeProvider("primary")})
        with pytest.raises(InsightValidationError):
            await orchestrator.generate("primary", "Analyze", summary, METADATA, [])

    @pytest.mark.asyncio
    async def test_unknown_provider(self, dataset):
        rows, summary = dataset
        orchestrator = InsightOrchestrator({"primary": FakeProvider("primary")})
        with pytest.raises(InsightValidationError):
            await orchestrator.generate("gemini", "Analyze", summary, METADATA, rows)

    @pytest.mark.asyncio
    async def test_side_by_side_needs_two_distinct_providers(self, dataset):
        rows, summary = dataset
        provider = FakeProvider("primary")
        orchestrator = InsightOrchestrator({"primary": provider, "comparison": FakeProvider("comparison")})
        with pytest.raises(InsightValidationError):
            await orchestrator.generate_side_by_side(["primary", "primary"], "Analyze", summary, METADATA, rows)
        with pytest.raises(InsightValidationError):
            await orchestrator.generate_side_by_side(["primary"], "Analyze", summary, METADATA, rows)
        assert provider.requests == []


class TestSingleProvider:
    """Single-provider mode."""

    @pytest.mark.asyncio
    async def test_success_records_usage_and_cost(self, dataset):
        rows, summary = dataset
        orchestrator = InsightOrchestrator({"primary": FakeProvider("primary")}, PRICING)

        state = await orchestrator.generate("primary", "Analyze spend", summary, METADATA, rows)

        assert state.status == ProviderStatus.SUCCESS
        assert "Spend is concentrated" in state.content
        assert state.usage.input_tokens == 1000
        assert state.estimated_cost == pytest.approx(0.00045)
        assert state.error is None

    @pytest.mark.asyncio
    async def test_unknown_model_has_no_cost(self, dataset):
        rows, summary = dataset
        provider = FakeProvider("primary", model="mystery-model")
        orchestrator = InsightOrchestrator({"primary": provider}, PRICING)
        state = await orchestrator.generate("primary", "Analyze", summary, METADATA, rows)
        assert state.status == ProviderStatus.SUCCESS
        assert state.estimated_cost is None

    @pytest.mark.asyncio
    async def test_request_carries_metadata_block_and_rows(self, dataset):
        rows, summary = dataset
        provider = FakeProvider("primary")
        orchestrator = InsightOrchestrator({"primary": provider})

        await orchestrator.generate("primary", "Which ad groups waste spend?", summary, METADATA, rows)

        request = provider.requests[0]
        assert request.prompt.startswith("Dataset: Ad Groups\nFilters Applied: None")
        assert request.prompt.endswith("User Prompt: Which ad groups waste spend?")
        assert len(request.rows) == 5
        assert request.rows[0]["adGroup"] == "Brand Exact"

    @pytest.mark.asyncio
    async def test_provider_exception_becomes_failure(self, dataset):
        rows, summary = dataset
        provider = FakeProvider("primary", error=ConnectionError("network down"))
        orchestrator = InsightOrchestrator({"primary": provider})

        state = await orchestrator.generate("primary", "Analyze", summary, METADATA, rows)

        assert state.status == ProviderStatus.FAILURE
        assert state.error == "network down"
        assert state.content is None

    @pytest.mark.asyncio
    async def test_empty_content_becomes_failure(self, dataset):
        rows, summary = dataset
        orchestrator = InsightOrchestrator({"primary": FakeProvider("primary", content="  ")})
        state = await orchestrator.generate("primary", "Analyze", summary, METADATA, rows)
        assert state.status == ProviderStatus.FAILURE

    @pytest.mark.asyncio
    async def test_prior_result_cleared_before_new_request(self, dataset):
        rows, summary = dataset
        provider = SequencedProvider("primary", [(0, "first"), (0.05, "second")])
        orchestrator = InsightOrchestrator({"primary": provider}, format_markdown=False)

        await orchestrator.generate("primary", "Analyze", summary, METADATA, rows)
        task = asyncio.create_task(orchestrator.generate("primary", "Again", summary, METADATA, rows))
        await asyncio.sleep(0.01)

        in_flight = orchestrator.get_state("primary")
        assert in_flight.status == ProviderStatus.REQUESTING
        assert in_flight.content is None
        assert in_flight.usage is None

        state = await task
        assert state.content == "second"

    @pytest.mark.asyncio
    async def test_stale_result_is_discarded(self, dataset):
        rows, summary = dataset
        provider = SequencedProvider("primary", [(0.1, "stale"), (0, "fresh")])
        orchestrator = InsightOrchestrator({"primary": provider}, format_markdown=False)

        slow = asyncio.create_task(orchestrator.generate("primary", "Analyze", summary, METADATA, rows))
        await asyncio.sleep(0.01)
        fresh = await orchestrator.generate("primary", "Analyze again", summary, METADATA, rows)
        await slow

        assert fresh.content == "fresh"
        assert orchestrator.get_state("primary").content == "fresh"
        assert orchestrator.get_state("primary").generation == 2

    @pytest.mark.asyncio
    async def test_large_payload_logs_warning(self, dataset, caplog):
        rows, summary = dataset
        provider = FakeProvider("primary")
        orchestrator = InsightOrchestrator({"primary": provider}, max_recommended_rows=2)

        with caplog.at_level(logging.WARNING):
            await orchestrator.generate("primary", "Analyze", summary, METADATA, rows)

        assert "more than the recommended 2" in caplog.text
        assert len(provider.requests[0].rows) == 5


class TestSideBySide:
    """Side-by-side mode: independent state slices."""

    @pytest.mark.asyncio
    async def test_fast_success_visible_while_sibling_requesting(self, dataset):
        rows, summary = dataset
        fast = FakeProvider("primary", content="Fast answer", delay=0.1)
        slow = FakeProvider("comparison", delay=0.3, error=ProviderError("comparison", "rate limited"))
        orchestrator = InsightOrchestrator({"primary": fast, "comparison": slow}, format_markdown=False)

        task = asyncio.create_task(
            orchestrator.generate_side_by_side(["primary", "comparison"], "Analyze", summary, METADATA, rows)
        )
        await asyncio.sleep(0.2)

        assert orchestrator.get_state("primary").status == ProviderStatus.SUCCESS
        assert orchestrator.get_state("primary").content == "Fast answer"
        assert orchestrator.get_state("comparison").status == ProviderStatus.REQUESTING

        results = await task

        assert results["comparison"].status == ProviderStatus.FAILURE
        assert results["comparison"].error == "rate limited"
        assert orchestrator.get_state("primary").status == ProviderStatus.SUCCESS
        assert orchestrator.get_state("primary").content == "Fast answer"

    @pytest.mark.asyncio
    async def test_identical_inputs_for_both_providers(self, dataset):
        rows, summary = dataset
        first, second = FakeProvider("primary"), FakeProvider("comparison", model="o4-mini-2025-04-16")
        orchestrator = InsightOrchestrator({"primary": first, "comparison": second})

        await orchestrator.generate_side_by_side(["primary", "comparison"], "Analyze", summary, METADATA, rows)

        assert first.requests[0] == second.requests[0]

    @pytest.mark.asyncio
    async def test_both_slots_cleared_before_dispatch(self, dataset):
        rows, summary = dataset
        orchestrator = InsightOrchestrator({
            "primary": FakeProvider("primary", delay=0.05),
            "comparison": FakeProvider("comparison", delay=0.05),
        })
        await orchestrator.generate_side_by_side(["primary", "comparison"], "Analyze", summary, METADATA, rows)

        task = asyncio.create_task(
            orchestrator.generate_side_by_side(["primary", "comparison"], "Again", summary, METADATA, rows)
        )
        await asyncio.sleep(0.01)
        assert all(s.status == ProviderStatus.REQUESTING and s.content is None for s in orchestrator.states.values())
        await task
