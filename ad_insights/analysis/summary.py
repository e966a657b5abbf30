"""
Summary statistics over the final row set.

Per metric: min, max, mean and sum over finite values.
Per dimension/date: distinct group count and the top groups by row count,
each with cost/clicks/value/conversions totals.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

import numpy as np
import pandas as pd

from ad_insights.core.values import to_display_string, to_finite_float
from ad_insights.schema.models import Column, ColumnType, DataRow

logger = logging.getLogger(__name__)

TOP_GROUPS = 5

# Breakdown total name -> canonical metric key
BREAKDOWN_METRICS = {
    "cost": "cost",
    "clicks": "clicks",
    "value": "value",
    "conversions": "conv",
}


@dataclass
class MetricSummary:
    """Statistics for one metric. Numeric fields are None when no value qualified."""
    name: str
    field: str
    min: Optional[float] = None
    max: Optional[float] = None
    avg: Optional[float] = None
    sum: Optional[float] = None

    @property
    def has_data(self) -> bool:
        return self.sum is not None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"name": self.name}
        for key in ("min", "max", "avg", "sum"):
            value = getattr(self, key)
            if value is not None:
                data[key] = value
        return data


@dataclass
class GroupStat:
    """One group of a dimension breakdown."""
    value: str
    count: int
    totals: Dict[str, float] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {"group": self.value, "count": self.count, **self.totals}


@dataclass
class DimensionBreakdown:
    """Grouping of rows by one dimension or date column."""
    name: str
    field: str
    unique_count: int
    top_values: List[GroupStat] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "unique_count": self.unique_count,
            "top_values": [g.to_dict() for g in self.top_values],
        }


@dataclass
class Summary:
    """Summary of a row set."""
    row_count: int
    metrics: List[MetricSummary] = field(default_factory=list)
    dimensions: List[DimensionBreakdown] = field(default_factory=list)

    def get_metric(self, field_name: str) -> Optional[MetricSummary]:
        return next((m for m in self.metrics if m.field == field_name), None)

    def get_dimension(self, field_name: str) -> Optional[DimensionBreakdown]:
        return next((d for d in self.dimensions if d.field == field_name), None)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "row_count": self.row_count,
            "metrics": [m.to_dict() for m in self.metrics],
            "dimensions": [d.to_dict() for d in self.dimensions],
        }


def summarize_metric(rows: Sequence[DataRow], column: Column) -> MetricSummary:
    """Min/max/mean/sum over the finite values of one metric column."""
    values = [to_finite_float(row.get(column.field)) for row in rows]
    finite = np.array([v for v in values if v is not None], dtype=float)

    if finite.size == 0:
        return MetricSummary(name=column.name, field=column.field)

    return MetricSummary(
        name=column.name,
        field=column.field,
        min=float(finite.min()),
        max=float(finite.max()),
        avg=float(finite.mean()),
        sum=float(finite.sum()),
    )


def summarize_dimension(
    rows: Sequence[DataRow],
    column: Column,
    columns: List[Column],
    top_n: int = TOP_GROUPS,
) -> DimensionBreakdown:
    """
    Group rows by the string form of a column's value.

    Groups are ranked by row count; ties keep first-appearance order.
    Totals for metrics the source does not have are zero.
    """
    metric_fields = {
        total_name: next((c.field for c in columns if c.metric_key == key), None)
        for total_name, key in BREAKDOWN_METRICS.items()
    }

    records = []
    for row in rows:
        raw = row.get(column.field)
        if raw is None:
            continue
        record = {"group": to_display_string(raw)}
        for total_name, metric_field in metric_fields.items():
            number = to_finite_float(row.get(metric_field)) if metric_field else None
            record[total_name] = number if number is not None else 0.0
        records.append(record)

    if not records:
        return DimensionBreakdown(name=column.name, field=column.field, unique_count=0)

    frame = pd.DataFrame.from_records(records)
    grouped = frame.groupby("group", sort=False)
    stats = grouped[list(BREAKDOWN_METRICS)].sum()
    stats["count"] = grouped.size()
    stats = stats.sort_values("count", ascending=False, kind="stable")

    top_values = [
        GroupStat(
            value=str(group),
            count=int(record["count"]),
            totals={name: float(record[name]) for name in BREAKDOWN_METRICS},
        )
        for group, record in stats.head(top_n).iterrows()
    ]

    return DimensionBreakdown(
        name=column.name,
        field=column.field,
        unique_count=len(stats),
        top_values=top_values,
    )


def summarize(
    rows: Sequence[DataRow],
    columns: List[Column],
    top_n: int = TOP_GROUPS,
) -> Optional[Summary]:
    """
    Summarize the final row set.

    Args:
        rows: Final rows (post-filter, optionally post-outlier-exclusion)
        columns: Current column set
        top_n: Number of top groups per dimension

    Returns:
        Summary, or None when there are no columns or no rows.
    """
    if not columns or not rows:
        return None

    summary = Summary(row_count=len(rows))
    for column in columns:
        if column.type == ColumnType.METRIC:
            summary.metrics.append(summarize_metric(rows, column))
        else:
            summary.dimensions.append(summarize_dimension(rows, column, columns, top_n))

    logger.debug(
        f"Summarized {summary.row_count} rows: {len(summary.metrics)} metrics, "
        f"{len(summary.dimensions)} breakdowns"
    )
    return summary
