"""
Chart data for time-series sources.

Builds the series for a line chart of the first metric over the date
field. Drawing the chart is left to the caller.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

from ad_insights.core.values import parse_date
from ad_insights.schema.models import Column, DataRow

logger = logging.getLogger(__name__)

MAX_CHART_POINTS = 50


@dataclass(frozen=True)
class ChartSeries:
    """Rows to plot plus axis fields and title."""
    rows: List[DataRow] = field(default_factory=list)
    x_field: str = ""
    y_field: str = ""
    title: str = ""
    chart_type: str = "line"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "x_field": self.x_field,
            "y_field": self.y_field,
            "title": self.title,
            "chart_type": self.chart_type,
            "data": [
                {self.x_field: row.get(self.x_field), self.y_field: row.get(self.y_field)}
                for row in self.rows
            ],
        }


def chart_series(
    rows: Sequence[DataRow],
    columns: List[Column],
    date_field: Optional[str],
    source_name: str = "",
    max_points: int = MAX_CHART_POINTS,
) -> Optional[ChartSeries]:
    """
    Build a line-chart series of the first metric over time.

    Rows are ordered chronologically (stable; unparseable dates last) and
    only the most recent `max_points` rows are kept.

    Returns:
        ChartSeries, or None without a date field, rows or a metric column.
    """
    if not date_field or not columns or not rows:
        logger.warning("Cannot build chart: missing date field, columns, or data")
        return None

    metric = next((c for c in columns if c.is_metric), None)
    if metric is None:
        logger.warning("Cannot build chart: no metric columns")
        return None

    def chronological(row: DataRow):
        parsed = parse_date(row.get(date_field))
        return (parsed is None, parsed or 0)

    ordered = sorted(rows, key=chronological)

    return ChartSeries(
        rows=ordered[-max_points:],
        x_field=date_field,
        y_field=metric.field,
        title=f"{metric.name} over Time ({source_name})",
    )
