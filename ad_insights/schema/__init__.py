"""
Column schema for loosely-typed ad performance rows.

Provides:
- Column and row models
- Schema inference from the first raw row
"""

from ad_insights.schema.models import Column, ColumnType, DataRow
from ad_insights.schema.inference import classify_field, infer_columns

__all__ = [
    "Column",
    "ColumnType",
    "DataRow",
    "classify_field",
    "infer_columns",
]
