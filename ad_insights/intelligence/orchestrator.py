"""
Insight Orchestrator - requests AI analysis from one or two providers.

Each provider owns one state slice (idle -> requesting -> success | failure)
in a single provider_id -> state mapping. A provider's slice is written
only by the dispatch that owns its current generation number, so:
- clearing prior state always happens before the new request is sent
- a sibling provider's failure or latency never touches another slice
- a stale resolution (older generation) is discarded silently

Provider errors never propagate out of this module; they become a
failure state on the provider that produced them.
"""

import asyncio
import logging
from dataclasses import dataclass, replace
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence

from ad_insights.analysis.summary import Summary
from ad_insights.exceptions import InsightValidationError, ProviderError
from ad_insights.intelligence.pricing import PricingTable
from ad_insights.intelligence.prompts import (
    DatasetMetadata,
    create_data_insights_prompt,
    format_response_as_markdown,
    serialize_rows,
)
from ad_insights.intelligence.providers.base import InsightProvider, InsightRequest, TokenUsage
from ad_insights.schema.models import DataRow

logger = logging.getLogger(__name__)

DEFAULT_MAX_RECOMMENDED_ROWS = 500
DEFAULT_MAX_OUTPUT_TOKENS = 4000


class ProviderStatus(str, Enum):
    """Lifecycle of one provider's request."""
    IDLE = "idle"
    REQUESTING = "requesting"
    SUCCESS = "success"
    FAILURE = "failure"


@dataclass(frozen=True)
class ProviderInsightState:
    """
    Result slot for one provider.

    content/usage/estimated_cost are set only on success, error only on
    failure. generation identifies the dispatch that produced this state.
    """
    provider_id: str
    status: ProviderStatus = ProviderStatus.IDLE
    content: Optional[str] = None
    usage: Optional[TokenUsage] = None
    estimated_cost: Optional[float] = None
    error: Optional[str] = None
    model: str = ""
    generation: int = 0

    @property
    def is_loading(self) -> bool:
        return self.status == ProviderStatus.REQUESTING

    def to_dict(self) -> Dict[str, Any]:
        return {
            "provider_id": self.provider_id,
            "status": self.status.value,
            "content": self.content,
            "usage": self.usage.model_dump() if self.usage else None,
            "estimated_cost": self.estimated_cost,
            "error": self.error,
            "model": self.model,
            "generation": self.generation,
        }


class InsightOrchestrator:
    """
    Dispatches insight requests and tracks per-provider state.

    Usage:
        orchestrator = InsightOrchestrator(providers, PricingTable.load())
        state = await orchestrator.generate("primary", prompt, summary, metadata, rows)
        states = await orchestrator.generate_side_by_side(
            ["primary", "comparison"], prompt, summary, metadata, rows
        )
    """

    def __init__(
        self,
        providers: Dict[str, InsightProvider],
        pricing: Optional[PricingTable] = None,
        max_recommended_rows: int = DEFAULT_MAX_RECOMMENDED_ROWS,
        max_output_tokens: int = DEFAULT_MAX_OUTPUT_TOKENS,
        format_markdown: bool = True,
    ):
        self.providers = dict(providers)
        self.pricing = pricing or PricingTable()
        self.max_recommended_rows = max_recommended_rows
        self.max_output_tokens = max_output_tokens
        self.format_markdown = format_markdown

        self._states: Dict[str, ProviderInsightState] = {
            pid: ProviderInsightState(provider_id=pid, model=p.model)
            for pid, p in self.providers.items()
        }
        self._generations: Dict[str, int] = {pid: 0 for pid in self.providers}

    @property
    def states(self) -> Dict[str, ProviderInsightState]:
        """Snapshot of every provider's state."""
        return dict(self._states)

    def get_state(self, provider_id: str) -> ProviderInsightState:
        if provider_id not in self._states:
            raise InsightValidationError(f"Unknown provider: {provider_id}", field="provider_id")
        return self._states[provider_id]

    def reset(self, provider_id: Optional[str] = None) -> None:
        """Return one provider (or all) to idle. In-flight results become stale."""
        for pid in [provider_id] if provider_id else list(self.providers):
            self._generations[pid] = self._generations.get(pid, 0) + 1
            self._states[pid] = ProviderInsightState(
                provider_id=pid,
                model=self.providers[pid].model,
                generation=self._generations[pid],
            )

    # ------------------------------------------------------------------
    # Request preparation
    # ------------------------------------------------------------------

    def build_request(
        self,
        prompt: str,
        summary: Optional[Summary],
        metadata: DatasetMetadata,
        rows: Sequence[DataRow],
    ) -> InsightRequest:
        """
        Validate inputs and build the request shared by every provider.

        Raises:
            InsightValidationError: Empty prompt, no summary or no rows
        """
        if not prompt or not prompt.strip():
            raise InsightValidationError("Please enter a prompt for analysis", field="prompt")
        if summary is None:
            raise InsightValidationError("Data summary is not available", field="summary")
        if not rows:
            raise InsightValidationError("No data available for analysis", field="rows")

        if len(rows) > self.max_recommended_rows:
            logger.warning(
                f"Sending {len(rows)} rows for analysis, more than the recommended "
                f"{self.max_recommended_rows}; responses may be slow or truncated"
            )

        return InsightRequest(
            prompt=create_data_insights_prompt(prompt, metadata),
            rows=serialize_rows([row.values for row in rows]),
            source_name=metadata.source_name,
            metadata={"dataset": metadata.to_dict(), "summary": summary.to_dict()},
            max_tokens=self.max_output_tokens,
        )

    def _check_provider(self, provider_id: str) -> InsightProvider:
        provider = self.providers.get(provider_id)
        if provider is None:
            raise InsightValidationError(f"Unknown provider: {provider_id}", field="provider_id")
        return provider

    # ------------------------------------------------------------------
    # Dispatch
    # ------------------------------------------------------------------

    def _begin(self, provider_id: str) -> int:
        """Clear the provider's prior result and claim a new generation."""
        generation = self._generations[provider_id] + 1
        self._generations[provider_id] = generation
        self._states[provider_id] = ProviderInsightState(
            provider_id=provider_id,
            status=ProviderStatus.REQUESTING,
            model=self.providers[provider_id].model,
            generation=generation,
        )
        return generation

    def _commit(self, state: ProviderInsightState) -> ProviderInsightState:
        """Store the state unless a newer dispatch owns the slot."""
        current = self._generations[state.provider_id]
        if state.generation != current:
            logger.debug(
                f"[{state.provider_id}] Discarding stale result "
                f"(generation {state.generation}, current {current})"
            )
            return self._states[state.provider_id]
        self._states[state.provider_id] = state
        return state

    async def _run(self, provider_id: str, generation: int, request: InsightRequest) -> ProviderInsightState:
        provider = self.providers[provider_id]
        base = ProviderInsightState(provider_id=provider_id, model=provider.model, generation=generation)
        logger.info(f"[{provider_id}] Requesting insights from {provider.model} ({len(request.rows)} rows)")

        try:
            response = await provider.generate(request)
            content = response.content
            if not content or not content.strip():
                raise ProviderError(provider_id, "Provider returned empty content")
        except ProviderError as e:
            logger.error(f"[{provider_id}] Insight generation failed: {e.message}")
            return self._commit(replace(base, status=ProviderStatus.FAILURE, error=e.message))
        except Exception as e:
            logger.error(f"[{provider_id}] Insight generation failed: {e}")
            return self._commit(replace(base, status=ProviderStatus.FAILURE, error=str(e) or type(e).__name__))

        if self.format_markdown:
            content = format_response_as_markdown(content)

        estimated_cost = self.pricing.calculate_cost(response.usage, provider.model)
        logger.info(
            f"[{provider_id}] Insights received: {response.usage.input_tokens} input / "
            f"{response.usage.output_tokens} output tokens"
        )
        return self._commit(replace(
            base,
            status=ProviderStatus.SUCCESS,
            content=content,
            usage=response.usage,
            estimated_cost=estimated_cost,
        ))

    async def generate(
        self,
        provider_id: str,
        prompt: str,
        summary: Optional[Summary],
        metadata: DatasetMetadata,
        rows: Sequence[DataRow],
    ) -> ProviderInsightState:
        """
        Single-provider mode.

        Raises:
            InsightValidationError: Before anything is dispatched

        Returns:
            The provider's state after its request resolved
        """
        self._check_provider(provider_id)
        request = self.build_request(prompt, summary, metadata, rows)
        generation = self._begin(provider_id)
        return await self._run(provider_id, generation, request)

    async def generate_side_by_side(
        self,
        provider_ids: Sequence[str],
        prompt: str,
        summary: Optional[Summary],
        metadata: DatasetMetadata,
        rows: Sequence[DataRow],
    ) -> Dict[str, ProviderInsightState]:
        """
        Side-by-side mode: the same request fanned out to two providers.

        Both slots are cleared before either request is sent. Each
        provider resolves into its own slot as soon as it finishes.

        Raises:
            InsightValidationError: Not exactly two distinct known providers,
                or invalid prompt/summary/rows
        """
        ids: List[str] = list(provider_ids)
        if len(ids) != 2 or ids[0] == ids[1]:
            raise InsightValidationError(
                "Side-by-side mode requires exactly two distinct providers",
                field="provider_ids",
            )
        for provider_id in ids:
            self._check_provider(provider_id)

        request = self.build_request(prompt, summary, metadata, rows)
        generations = [self._begin(provider_id) for provider_id in ids]

        results = await asyncio.gather(*(
            self._run(provider_id, generation, request)
            for provider_id, generation in zip(ids, generations)
        ))
        return dict(zip(ids, results))
