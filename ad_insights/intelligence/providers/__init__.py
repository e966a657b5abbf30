"""Insight provider implementations and factory."""

from typing import Dict, Optional

from ad_insights.core.config import Settings, get_settings
from ad_insights.intelligence.providers.base import (
    InsightProvider,
    InsightRequest,
    LLMResponse,
    TokenUsage,
)

__all__ = [
    "InsightProvider",
    "InsightRequest",
    "LLMResponse",
    "TokenUsage",
    "create_provider",
    "build_default_providers",
]


def create_provider(provider_name: str, provider_id: str, model: str, settings: Settings) -> InsightProvider:
    """Create an insight provider.

    Args:
        provider_name: Provider family ('openai')
        provider_id: Identifier for orchestrator state
        model: Model identifier
        settings: Application settings (API keys)

    Raises:
        ValueError: If provider name is unknown
    """
    if provider_name == "openai":
        from ad_insights.intelligence.providers.openai_provider import OpenAIProvider

        return OpenAIProvider(provider_id=provider_id, model=model, api_key=settings.openai_api_key)

    raise ValueError(f"Unknown insight provider: {provider_name}. Supported providers: openai")


def build_default_providers(settings: Optional[Settings] = None) -> Dict[str, InsightProvider]:
    """Primary and comparison providers keyed by provider id."""
    settings = settings or get_settings()
    return {
        "primary": create_provider("openai", "primary", settings.llm_model, settings),
        "comparison": create_provider("openai", "comparison", settings.comparison_llm_model, settings),
    }
