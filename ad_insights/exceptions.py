"""
Custom exceptions for the Ad Insights pipeline.

Pipeline stages (schema inference through summary) degrade instead of
raising; only the orchestrator and the data-source boundary raise these.
"""

from typing import Any, Dict, Optional


class InsightsError(Exception):
    """Base exception."""

    def __init__(
        self,
        message: str,
        error_type: str = "insights_error",
        details: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.error_type = error_type
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "error": self.error_type,
            "message": self.message,
            "details": self.details,
        }


class InsightValidationError(InsightsError):
    """Insight request rejected before anything was dispatched."""

    def __init__(self, message: str, field: Optional[str] = None):
        details = {"field": field} if field else {}
        super().__init__(
            message=message,
            error_type="validation_error",
            details=details,
        )


class ProviderError(InsightsError):
    """An AI provider failed or returned an unusable response."""

    def __init__(self, provider_id: str, message: str):
        self.provider_id = provider_id
        super().__init__(
            message=message,
            error_type="provider_error",
            details={"provider": provider_id},
        )


class SourceUnavailableError(InsightsError):
    """The upstream data source could not deliver a row array."""

    def __init__(self, source: str, message: Optional[str] = None):
        super().__init__(
            message=message or f"Data source unavailable: {source}",
            error_type="source_unavailable",
            details={"source": source},
        )
