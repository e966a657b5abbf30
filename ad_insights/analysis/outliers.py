"""
Outlier detection over the filtered row set.

Flags metric values more than three population standard deviations from
the metric's mean. Detection is a pure full recompute: it returns a scan
(details plus flagged row ids) and never mutates rows.

Only core volume metrics are scanned (impressions, clicks, cost,
conversions, conversion value). Derived ratios such as CTR or ROAS are
skipped. Time-series data (any date column) and row sets smaller than
MIN_OUTLIER_ROWS are not scanned at all.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, FrozenSet, List, Optional, Sequence, Tuple

import numpy as np

from ad_insights.core.values import to_finite_float
from ad_insights.schema.models import Column, DataRow, has_date_column

logger = logging.getLogger(__name__)

CORE_OUTLIER_METRICS = ("impr", "clicks", "cost", "conv", "value")
OUTLIER_STD_THRESHOLD = 3.0
MIN_OUTLIER_ROWS = 4


@dataclass(frozen=True)
class MetricBounds:
    """Mean, standard deviation and flagging bounds for one metric."""
    field: str
    mean: float
    std_dev: float
    threshold: float = OUTLIER_STD_THRESHOLD

    @property
    def lower(self) -> float:
        return self.mean - self.threshold * self.std_dev

    @property
    def upper(self) -> float:
        return self.mean + self.threshold * self.std_dev

    def is_outlier(self, value: float) -> bool:
        """Strictly outside the bounds; a value on a bound is not an outlier."""
        return value < self.lower or value > self.upper

    @classmethod
    def from_values(
        cls,
        field_name: str,
        values: Sequence[float],
        threshold: float = OUTLIER_STD_THRESHOLD,
    ) -> "MetricBounds":
        array = np.asarray(values, dtype=float)
        return cls(
            field=field_name,
            mean=float(array.mean()),
            std_dev=float(array.std()),
            threshold=threshold,
        )


@dataclass(frozen=True)
class OutlierDetail:
    """One flagged row, explained by the first metric that flagged it."""
    id: str
    column: str
    field: str
    value: float
    row: DataRow
    explanation: str
    mean: float
    std_dev: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "column": self.column,
            "field": self.field,
            "value": self.value,
            "row_id": self.row.row_id,
            "explanation": self.explanation,
            "mean": self.mean,
            "std_dev": self.std_dev,
        }


@dataclass(frozen=True)
class OutlierScan:
    """
    Result of one outlier detection run.

    Attributes:
        details: One entry per flagged row (first triggering metric only)
        flagged_row_ids: Row ids flagged by any metric
        triggering_fields: Row id -> every metric field that flagged it
        bounds: Per-metric statistics used for this run
        skipped_reason: Why detection did not run (None when it ran)
    """
    details: Tuple[OutlierDetail, ...] = ()
    flagged_row_ids: FrozenSet[int] = frozenset()
    triggering_fields: Dict[int, Tuple[str, ...]] = field(default_factory=dict)
    bounds: Dict[str, MetricBounds] = field(default_factory=dict)
    skipped_reason: Optional[str] = None

    @property
    def outliers(self) -> Optional[List[OutlierDetail]]:
        """Detail list, or None when skipped or nothing was flagged."""
        return list(self.details) if self.details else None

    @property
    def skipped(self) -> bool:
        return self.skipped_reason is not None

    def mark_rows(self, rows: Sequence[DataRow]) -> List[DataRow]:
        """Copies of the rows with is_outlier set from this scan."""
        return [row.with_outlier_flag(row.row_id in self.flagged_row_ids) for row in rows]

    def exclude(self, rows: Sequence[DataRow]) -> List[DataRow]:
        """Rows not flagged by this scan."""
        return [row for row in rows if row.row_id not in self.flagged_row_ids]


def _explain(value: float, mean: float) -> str:
    direction = "higher" if value > mean else "lower"
    return f"significantly {direction} than average ({mean:.2f})"


class OutlierDetector:
    """
    Standard-deviation outlier detector.

    Usage:
        detector = OutlierDetector()
        scan = detector.scan(filtered_rows, columns)
        if scan.outliers:
            for detail in scan.outliers:
                print(detail.column, detail.value, detail.explanation)
    """

    def __init__(
        self,
        threshold: float = OUTLIER_STD_THRESHOLD,
        min_rows: int = MIN_OUTLIER_ROWS,
        metrics: Sequence[str] = CORE_OUTLIER_METRICS,
    ):
        self.threshold = threshold
        self.min_rows = min_rows
        self.metrics = tuple(metrics)

    def eligible_columns(self, columns: List[Column]) -> List[Column]:
        """Metric columns whose canonical key is in the scanned subset."""
        return [c for c in columns if c.metric_key in self.metrics]

    def scan(
        self,
        rows: Sequence[DataRow],
        columns: List[Column],
        is_time_series: Optional[bool] = None,
    ) -> OutlierScan:
        """
        Run detection over the current (filtered) rows.

        Args:
            rows: Filtered rows; bounds are computed from these only
            columns: Current column set
            is_time_series: Override for the time-series flag. Defaults to
                "has a date column".

        Returns:
            OutlierScan (always; check `outliers` / `skipped_reason`)
        """
        if is_time_series is None:
            is_time_series = has_date_column(columns)
        if is_time_series:
            return OutlierScan(skipped_reason="time-series data")
        if len(rows) < self.min_rows:
            return OutlierScan(skipped_reason=f"fewer than {self.min_rows} rows")

        details: List[OutlierDetail] = []
        detailed_rows = set()
        triggering: Dict[int, List[str]] = {}
        bounds_by_field: Dict[str, MetricBounds] = {}

        for column in self.eligible_columns(columns):
            numeric: List[Tuple[DataRow, float]] = []
            for row in rows:
                number = to_finite_float(row.get(column.field))
                if number is not None:
                    numeric.append((row, number))
            if not numeric:
                continue

            bounds = MetricBounds.from_values(
                column.field, [number for _, number in numeric], self.threshold
            )
            bounds_by_field[column.field] = bounds

            for row, number in numeric:
                if not bounds.is_outlier(number):
                    continue
                triggering.setdefault(row.row_id, []).append(column.field)
                if row.row_id in detailed_rows:
                    continue
                detailed_rows.add(row.row_id)
                details.append(OutlierDetail(
                    id=f"{column.field}-{row.row_id}",
                    column=column.name,
                    field=column.field,
                    value=number,
                    row=row,
                    explanation=_explain(number, bounds.mean),
                    mean=bounds.mean,
                    std_dev=bounds.std_dev,
                ))

        if details:
            logger.info(
                f"Detected {len(details)} outlier rows across "
                f"{len(bounds_by_field)} metrics ({len(rows)} rows scanned)"
            )

        return OutlierScan(
            details=tuple(details),
            flagged_row_ids=frozenset(triggering),
            triggering_fields={k: tuple(v) for k, v in triggering.items()},
            bounds=bounds_by_field,
        )


def detect_outliers(
    rows: Sequence[DataRow],
    columns: List[Column],
    is_time_series: Optional[bool] = None,
) -> Optional[List[OutlierDetail]]:
    """Outlier details for the rows, or None when skipped or nothing is flagged."""
    return OutlierDetector().scan(rows, columns, is_time_series).outliers
