"""Abstract base class for insight providers.

Every concrete provider (OpenAI, Gemini, Anthropic...) takes the same
request and returns the same response shape so the orchestrator can
dispatch to any of them interchangeably.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, List

from pydantic import BaseModel, Field

from ad_insights.intelligence.prompts import DATA_ANALYSIS_SYSTEM_PROMPT


class TokenUsage(BaseModel):
    """Token counts reported by a provider."""

    input_tokens: int = 0
    output_tokens: int = 0

    @property
    def total_tokens(self) -> int:
        return self.input_tokens + self.output_tokens


class InsightRequest(BaseModel):
    """Request sent to a provider.

    `prompt` already carries the metadata block; `rows` are JSON-safe dicts.
    """

    prompt: str
    rows: List[Dict[str, Any]] = Field(default_factory=list)
    source_name: str = ""
    metadata: Dict[str, Any] = Field(default_factory=dict)
    system_prompt: str = DATA_ANALYSIS_SYSTEM_PROMPT
    max_tokens: int = 4000


class LLMResponse(BaseModel):
    """Response from a provider."""

    content: str
    model: str
    usage: TokenUsage = Field(default_factory=TokenUsage)


class InsightProvider(ABC):
    """Abstract base for insight providers."""

    provider_id: str
    model: str

    @abstractmethod
    async def generate(self, request: InsightRequest) -> LLMResponse:
        """Request an analysis of the rows.

        Args:
            request: Prompt, rows and dataset metadata

        Returns:
            LLMResponse with content and token usage

        Raises:
            ProviderError: On network failure or an unusable response
        """
        pass
