"""
Ad Insights - advertising performance analysis.

Infers a schema from raw ad-platform rows, filters and summarizes them,
flags statistical outliers, and requests natural-language analysis from
one or two AI providers.
"""

__version__ = "0.1.0"
