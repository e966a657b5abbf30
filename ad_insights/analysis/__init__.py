"""Outlier detection, summary statistics and chart data."""

from ad_insights.analysis.chart import MAX_CHART_POINTS, ChartSeries, chart_series
from ad_insights.analysis.outliers import (
    MetricBounds,
    OutlierDetail,
    OutlierDetector,
    OutlierScan,
    detect_outliers,
)
from ad_insights.analysis.summary import (
    DimensionBreakdown,
    GroupStat,
    MetricSummary,
    Summary,
    summarize,
)

__all__ = [
    "MAX_CHART_POINTS",
    "ChartSeries",
    "chart_series",
    "MetricBounds",
    "OutlierDetail",
    "OutlierDetector",
    "OutlierScan",
    "detect_outliers",
    "DimensionBreakdown",
    "GroupStat",
    "MetricSummary",
    "Summary",
    "summarize",
]
