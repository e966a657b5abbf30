"""
OpenAI provider for insight generation.

Sends the system prompt, the metadata-prefixed user prompt and the JSON
row payload through the async chat completions API.
"""

import logging
import os
import re
from typing import Any, Optional

from openai import AsyncOpenAI

from ad_insights.exceptions import ProviderError
from ad_insights.intelligence.prompts import build_user_content
from ad_insights.intelligence.providers.base import (
    InsightProvider,
    InsightRequest,
    LLMResponse,
    TokenUsage,
)

logger = logging.getLogger(__name__)

# o1, o3-mini, o4-mini-2025-04-16, ...
RE_REASONING_MODEL = re.compile(r"^o\d")


class OpenAIProvider(InsightProvider):
    """
    Insight provider backed by OpenAI chat completions.

    Reasoning models (o-series) take `max_completion_tokens` and no
    temperature; other models take `max_tokens`.
    """

    DEFAULT_MODEL = "gpt-4o-mini"

    def __init__(
        self,
        provider_id: str = "openai",
        model: str = DEFAULT_MODEL,
        api_key: Optional[str] = None,
        client: Optional[Any] = None,
    ):
        """
        Initialize the provider.

        Args:
            provider_id: Identifier used in orchestrator state and logs
            model: Model to use (default: gpt-4o-mini)
            api_key: OpenAI API key. If not provided, uses OPENAI_API_KEY env var.
            client: Preconfigured async client (tests inject a double here)
        """
        self.provider_id = provider_id
        self.model = model

        if client is not None:
            self.client = client
        else:
            api_key = api_key or os.environ.get("OPENAI_API_KEY")
            if not api_key:
                raise ValueError(
                    "OpenAI API key not provided. Set OPENAI_API_KEY environment variable "
                    "or pass api_key parameter."
                )
            self.client = AsyncOpenAI(api_key=api_key)

        logger.info(f"[{self.provider_id}] OpenAI provider initialized with model: {self.model}")

    @property
    def is_reasoning_model(self) -> bool:
        return RE_REASONING_MODEL.match(self.model) is not None

    async def generate(self, request: InsightRequest) -> LLMResponse:
        messages = [
            {"role": "system", "content": request.system_prompt},
            {"role": "user", "content": build_user_content(request.prompt, request.rows)},
        ]

        params = {"model": self.model, "messages": messages}
        if self.is_reasoning_model:
            params["max_completion_tokens"] = request.max_tokens
        else:
            params["max_tokens"] = request.max_tokens
            params["temperature"] = 0.2

        try:
            response = await self.client.chat.completions.create(**params)
        except Exception as e:
            raise ProviderError(self.provider_id, f"OpenAI request failed: {e}") from e

        if not response.choices:
            raise ProviderError(self.provider_id, "OpenAI returned no choices")

        content = response.choices[0].message.content
        if not content or not content.strip():
            raise ProviderError(self.provider_id, "OpenAI returned empty content")

        usage = TokenUsage()
        if response.usage is not None:
            usage = TokenUsage(
                input_tokens=response.usage.prompt_tokens or 0,
                output_tokens=response.usage.completion_tokens or 0,
            )

        return LLMResponse(content=content, model=self.model, usage=usage)
