"""Session wiring of the insights pipeline."""

from ad_insights.sessions.session import InsightsSession

__all__ = ["InsightsSession"]
