"""Configuration and shared value coercion."""

from ad_insights.core.config import Settings, get_settings

__all__ = ["Settings", "get_settings"]
