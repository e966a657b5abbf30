"""
Configuration settings for the Ad Insights pipeline.
Uses pydantic-settings for environment variable loading.
"""

from functools import lru_cache
from typing import List, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    # LLM Configuration
    openai_api_key: Optional[str] = None
    llm_model: str = "gpt-4o-mini"
    comparison_llm_model: str = "o4-mini-2025-04-16"
    llm_max_output_tokens: int = 4000

    # Payload Configuration
    max_recommended_insight_rows: int = 500
    pricing_table_path: Optional[str] = None  # None = packaged pricing.yaml

    # Data Source Configuration
    data_dir: str = "data"
    source_tables: List[str] = Field(
        default_factory=lambda: ["Daily", "AdGroups", "SearchTerms"]
    )

    # Logging
    log_level: str = "INFO"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
