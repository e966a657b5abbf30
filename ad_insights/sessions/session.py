"""
Insights Session - one analyst working against one data source.

Wires the pipeline together:
1. Schema inference on source change
2. Row conversion
3. Filtering (then sorting for display)
4. Outlier detection on the filtered rows
5. Summary over the final rows (optionally without outliers)
6. AI insight requests through the orchestrator

Stages 1-5 are synchronous and recomputed on demand; results are cached
per input state (data, filters, sort, outlier choice) so repeated reads
are cheap.
"""

import logging
import uuid
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Sequence

from ad_insights.analysis.chart import ChartSeries, chart_series
from ad_insights.analysis.outliers import OutlierDetail, OutlierDetector, OutlierScan
from ad_insights.analysis.summary import Summary, summarize
from ad_insights.exceptions import InsightsError, SourceUnavailableError
from ad_insights.intelligence.orchestrator import InsightOrchestrator, ProviderInsightState
from ad_insights.intelligence.prompts import DatasetMetadata
from ad_insights.preprocessing.converter import convert_rows
from ad_insights.preprocessing.row_filter import Filter, FilterOperator, FilterSet, RowFilter
from ad_insights.preprocessing.sorting import SortConfig, SortDirection, default_sort, sort_rows
from ad_insights.schema.inference import infer_columns
from ad_insights.schema.models import Column, DataRow, has_date_column
from ad_insights.sources import DataSource, DataSourceInfo

logger = logging.getLogger(__name__)


class InsightsSession:
    """
    Holds the state of one analysis session.

    Usage:
        session = InsightsSession(JsonFileDataSource("data"), orchestrator)
        session.select_source("AdGroups")
        session.add_filter("cost", FilterOperator.GREATER_THAN, "5")
        session.set_exclude_outliers(True)
        print(session.summary.to_dict())
        state = await session.generate_insights("Which ad groups waste spend?")
    """

    def __init__(
        self,
        source: Optional[DataSource] = None,
        orchestrator: Optional[InsightOrchestrator] = None,
        detector: Optional[OutlierDetector] = None,
        session_id: Optional[str] = None,
    ):
        """
        Initialize a session.

        Args:
            source: Data source to fetch tables from
            orchestrator: Insight orchestrator (required for AI insights only)
            detector: Outlier detector (default 3 sigma, 4-row minimum)
            session_id: Unique ID for the session. Generated if not provided.
        """
        self.session_id = session_id or str(uuid.uuid4())[:8]
        self.created_at = datetime.now()
        self.source = source
        self.orchestrator = orchestrator
        self.detector = detector or OutlierDetector()

        self.source_id: Optional[str] = None
        self.error: Optional[str] = None
        self.columns: List[Column] = []
        self.rows: List[DataRow] = []
        self.filters = FilterSet()
        self.sort = SortConfig()
        self.exclude_outliers = False

        self._data_version = 0
        self._cache_key: Optional[tuple] = None
        self._cache: Dict[str, Any] = {}

        logger.info(f"Created insights session (ID: {self.session_id})")

    # ------------------------------------------------------------------
    # Source and rows
    # ------------------------------------------------------------------

    @property
    def available_sources(self) -> List[DataSourceInfo]:
        return self.source.list_tables() if self.source else []

    def select_source(self, source_id: str) -> List[Column]:
        """
        Fetch a table and rebuild columns, rows, filters and sort.

        Raises:
            SourceUnavailableError: The fetch failed; the session is left
                empty with `error` set.
        """
        if self.source is None:
            raise SourceUnavailableError(source_id, "No data source configured")
        try:
            raw_rows = self.source.fetch_rows(source_id)
        except SourceUnavailableError as e:
            self.error = e.message
            self.source_id = source_id
            self._set_data([], [])
            logger.error(f"Source '{source_id}' unavailable: {e.message}")
            raise
        return self.load_rows(raw_rows, source_id=source_id)

    def load_rows(self, raw_rows: Sequence[Any], source_id: str = "") -> List[Column]:
        """Replace the session data with a raw row array."""
        columns = infer_columns(raw_rows)
        rows = convert_rows(raw_rows, columns) if columns else []
        self.source_id = source_id
        self.error = None
        self._set_data(columns, rows)
        logger.info(
            f"Loaded source '{source_id}': {len(rows)} rows, {len(columns)} columns"
        )
        return columns

    def _set_data(self, columns: List[Column], rows: List[DataRow]) -> None:
        self.columns = columns
        self.rows = rows
        self.filters.reset(columns)
        self.sort = default_sort(columns)
        self._data_version += 1

    @property
    def source_name(self) -> str:
        if not self.source_id:
            return ""
        info = next((s for s in self.available_sources if s.id == self.source_id), None)
        return info.name if info else self.source_id

    @property
    def is_time_series(self) -> bool:
        return has_date_column(self.columns)

    @property
    def time_series_field(self) -> Optional[str]:
        """Field id of the first date column, if any."""
        return next((c.field for c in self.columns if c.is_date), None)

    # ------------------------------------------------------------------
    # Filters, sort and outlier choice
    # ------------------------------------------------------------------

    def add_filter(
        self,
        field_name: Optional[str] = None,
        operator: Optional[FilterOperator] = None,
        value: str = "",
    ) -> Optional[Filter]:
        return self.filters.add(field_name, operator, value)

    def update_filter(
        self,
        filter_id: int,
        field_name: Optional[str] = None,
        operator: Optional[FilterOperator] = None,
        value: Optional[str] = None,
    ) -> Optional[Filter]:
        return self.filters.update(filter_id, field_name, operator, value)

    def remove_filter(self, filter_id: int) -> bool:
        return self.filters.remove(filter_id)

    def clear_filters(self) -> None:
        self.filters.clear()

    def set_sort(self, key: str) -> SortConfig:
        self.sort = self.sort.toggled(key)
        return self.sort

    def sort_by(self, key: str, direction: SortDirection = SortDirection.DESC) -> SortConfig:
        """Set the sort explicitly, without toggling."""
        self.sort = SortConfig(key=key, direction=SortDirection(direction))
        return self.sort

    def set_exclude_outliers(self, exclude: bool) -> None:
        self.exclude_outliers = bool(exclude)

    # ------------------------------------------------------------------
    # Derived data (cached per input state)
    # ------------------------------------------------------------------

    def _cached(self, name: str, compute: Callable[[], Any]) -> Any:
        key = (self._data_version, self.filters.version, self.sort, self.exclude_outliers)
        if key != self._cache_key:
            self._cache_key = key
            self._cache = {}
        if name not in self._cache:
            self._cache[name] = compute()
        return self._cache[name]

    @property
    def filtered_rows(self) -> List[DataRow]:
        """Rows passing every filter, in source order."""
        return self._cached(
            "filtered",
            lambda: RowFilter(self.columns).apply_all(self.rows, self.filters.filters).rows,
        )

    @property
    def outlier_scan(self) -> OutlierScan:
        return self._cached(
            "scan",
            lambda: self.detector.scan(self.filtered_rows, self.columns, self.is_time_series),
        )

    @property
    def outliers(self) -> Optional[List[OutlierDetail]]:
        return self.outlier_scan.outliers

    @property
    def display_rows(self) -> List[DataRow]:
        """Filtered rows, sorted, with outlier flags set."""
        return self._cached(
            "display",
            lambda: sort_rows(
                self.outlier_scan.mark_rows(self.filtered_rows), self.sort, self.columns
            ),
        )

    @property
    def excludes_outliers(self) -> bool:
        """Outliers are removed only on request and never for time-series data."""
        return self.exclude_outliers and not self.is_time_series

    @property
    def final_rows(self) -> List[DataRow]:
        """Rows used for the summary and sent to providers."""
        def compute() -> List[DataRow]:
            rows = self.display_rows
            if self.excludes_outliers:
                rows = self.outlier_scan.exclude(rows)
            return rows

        return self._cached("final", compute)

    @property
    def summary(self) -> Optional[Summary]:
        return self._cached("summary", lambda: summarize(self.final_rows, self.columns))

    @property
    def chart(self) -> Optional[ChartSeries]:
        """First metric over the time-series field, for time-series sources only."""
        return self._cached(
            "chart",
            lambda: chart_series(
                self.display_rows, self.columns, self.time_series_field, self.source_name
            ) if self.is_time_series else None,
        )

    # ------------------------------------------------------------------
    # Insight requests
    # ------------------------------------------------------------------

    @property
    def outlier_info(self) -> str:
        """Outlier handling line of the metadata block."""
        scan = self.outlier_scan
        if self.is_time_series:
            return "Not applied (time-series data)"
        if scan.skipped:
            return f"Not applied ({scan.skipped_reason})"
        if not scan.flagged_row_ids:
            return "No outliers detected"
        count = len(scan.flagged_row_ids)
        if self.excludes_outliers:
            return f"{count} outlier rows excluded (values beyond 3 standard deviations)"
        return f"{count} potential outlier rows included"

    def dataset_metadata(self) -> DatasetMetadata:
        return DatasetMetadata(
            source_name=self.source_name,
            filters=self.filters.describe(),
            total_rows=len(self.filtered_rows),
            rows_analyzed=len(self.final_rows),
            outlier_info=self.outlier_info,
        )

    def _require_orchestrator(self) -> InsightOrchestrator:
        if self.orchestrator is None:
            raise InsightsError("No insight providers configured", error_type="configuration_error")
        return self.orchestrator

    async def generate_insights(self, prompt: str, provider_id: str = "primary") -> ProviderInsightState:
        """Request insights from one provider for the current final rows."""
        orchestrator = self._require_orchestrator()
        return await orchestrator.generate(
            provider_id, prompt, self.summary, self.dataset_metadata(), self.final_rows
        )

    async def generate_side_by_side(
        self,
        prompt: str,
        provider_ids: Sequence[str] = ("primary", "comparison"),
    ) -> Dict[str, ProviderInsightState]:
        """Request insights from two providers on identical inputs."""
        orchestrator = self._require_orchestrator()
        return await orchestrator.generate_side_by_side(
            provider_ids, prompt, self.summary, self.dataset_metadata(), self.final_rows
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        summary = self.summary
        chart = self.chart
        return {
            "session_id": self.session_id,
            "created_at": self.created_at.isoformat(),
            "source_id": self.source_id,
            "error": self.error,
            "columns": [c.to_dict() for c in self.columns],
            "filters": [f.to_dict() for f in self.filters],
            "sort": {"key": self.sort.key, "direction": self.sort.direction.value},
            "exclude_outliers": self.exclude_outliers,
            "total_rows": len(self.rows),
            "filtered_rows": len(self.filtered_rows),
            "outliers": [o.to_dict() for o in self.outliers or []],
            "summary": summary.to_dict() if summary else None,
            "chart": chart.to_dict() if chart else None,
        }
