"""
Schema inference for advertising performance rows.

Derives column semantics (date / dimension / metric) from the first row
of a raw sample. Rows come in several shapes (daily campaign rows, ad group
rows, search term rows) and values may be loosely typed, so inference
relies on field names first and values second.
"""

import logging
from typing import Any, List, Mapping, Sequence

from ad_insights.core.values import is_date_instant, looks_numeric
from ad_insights.schema.models import (
    METRIC_PRIORITY,
    Column,
    ColumnType,
    canonical_metric,
    display_name,
    normalize_field_name,
)

logger = logging.getLogger(__name__)

# Identifier-like fields stay dimensions even when their values are numeric.
IDENTIFIER_FIELDS = {
    "campaign",
    "campaignid",
    "adgroup",
    "adgroupid",
    "searchterm",
    "url",
}


def classify_field(field_name: str, value: Any) -> ColumnType:
    """
    Classify a single field from its name and a sample value.

    Order of precedence:
        1. identifier override -> dimension
        2. name is/ends with "date", or value is a date instant -> date
        3. numeric value or known metric name -> metric
        4. otherwise -> dimension
    """
    normalized = normalize_field_name(field_name)
    if normalized in IDENTIFIER_FIELDS:
        return ColumnType.DIMENSION

    if str(field_name).lower().endswith("date") or is_date_instant(value):
        return ColumnType.DATE

    if looks_numeric(value) or canonical_metric(field_name) is not None:
        return ColumnType.METRIC

    return ColumnType.DIMENSION


def _metric_sort_key(column: Column):
    key = canonical_metric(column.field)
    if key is not None:
        return (0, METRIC_PRIORITY.index(key), "")
    return (1, 0, column.field.lower())


def infer_columns(rows: Sequence[Mapping[str, Any]]) -> List[Column]:
    """
    Infer the column set from a raw row sample.

    Only the first row is inspected. Output order: dimensions in
    first-encounter order, then dates, then metrics by canonical priority
    (unlisted metrics alphabetically after the listed ones).

    Args:
        rows: Raw rows as delivered by the data source

    Returns:
        List of Column. Empty when the sample is empty or malformed.
    """
    if not rows:
        return []

    first_row = rows[0]
    if not isinstance(first_row, Mapping):
        logger.warning(
            f"Schema mismatch: expected a mapping row, got {type(first_row).__name__}; "
            f"falling back to an empty column set"
        )
        return []

    dimensions: List[Column] = []
    dates: List[Column] = []
    metrics: List[Column] = []

    for field_name, value in first_row.items():
        column_type = classify_field(field_name, value)
        column = Column(
            field=field_name,
            name=display_name(str(field_name)),
            type=column_type,
        )
        if column_type == ColumnType.DIMENSION:
            dimensions.append(column)
        elif column_type == ColumnType.DATE:
            dates.append(column)
        else:
            metrics.append(column)

    metrics.sort(key=_metric_sort_key)

    logger.debug(
        f"Inferred {len(dimensions)} dimensions, {len(dates)} dates, "
        f"{len(metrics)} metrics"
    )
    return dimensions + dates + metrics
