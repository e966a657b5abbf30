"""
Row Preprocessing Pipeline.

Provides:
- Typed row conversion
- Type-aware row filtering with fail-open semantics
- Sorting for the filtered view
"""

from ad_insights.preprocessing.converter import convert_rows, convert_value
from ad_insights.preprocessing.row_filter import (
    MAX_FILTERS,
    Filter,
    FilterOperator,
    FilterResult,
    FilterSet,
    RowFilter,
    apply_filters,
    describe_filters,
)
from ad_insights.preprocessing.sorting import SortConfig, SortDirection, sort_rows

__all__ = [
    "convert_rows",
    "convert_value",
    "MAX_FILTERS",
    "Filter",
    "FilterOperator",
    "FilterResult",
    "FilterSet",
    "RowFilter",
    "apply_filters",
    "describe_filters",
    "SortConfig",
    "SortDirection",
    "sort_rows",
]
