"""
Unit tests for InsightsSession and data sources.
"""

import json

import pytest

from ad_insights.exceptions import InsightsError, SourceUnavailableError
from ad_insights.intelligence.orchestrator import InsightOrchestrator, ProviderStatus
from ad_insights.preprocessing.row_filter import FilterOperator
from ad_insights.preprocessing.sorting import SortDirection
from ad_insights.sessions.session import InsightsSession
from ad_insights.sources import InMemoryDataSource, JsonFileDataSource, validate_payload

from conftest import FakeProvider


@pytest.fixture
def source(ad_group_rows, daily_rows, cost_outlier_raw_rows):
    return InMemoryDataSource({
        "Daily": daily_rows,
        "AdGroups": ad_group_rows,
        "SearchTerms": cost_outlier_raw_rows,
    })


class TestDataSources:
    """Test source catalogue and payload validation."""

    def test_display_names(self, source):
        names = {s.id: s.name for s in source.list_tables()}
        assert names == {"Daily": "Daily", "AdGroups": "Ad Groups", "SearchTerms": "Search Terms"}

    def test_non_list_payload_rejected(self):
        with pytest.raises(SourceUnavailableError):
            validate_payload("Daily", {"rows": []})

    def test_unknown_table(self, source):
        with pytest.raises(SourceUnavailableError):
            source.fetch_rows("Keywords")

    def test_json_directory_source(self, tmp_path, ad_group_rows):
        (tmp_path / "AdGroups.json").write_text(json.dumps(ad_group_rows), encoding="utf-8")
        json_source = JsonFileDataSource(tmp_path)
        assert json_source.fetch_rows("AdGroups") == ad_group_rows
        with pytest.raises(SourceUnavailableError):
            json_source.fetch_rows("Daily")


class TestSourceSelection:
    """Test source change lifecycle."""

    def test_select_source_builds_state(self, source):
        session = InsightsSession(source)
        columns = session.select_source("AdGroups")
        assert [c.field for c in columns][:2] == ["campaign", "adGroup"]
        assert len(session.rows) == 5
        assert session.source_name == "Ad Groups"
        assert session.sort.key == "impr"
        assert session.sort.direction == SortDirection.DESC

    def test_source_change_resets_filters(self, source):
        session = InsightsSession(source)
        session.select_source("AdGroups")
        session.add_filter("cost", FilterOperator.GREATER_THAN, "50")
        session.select_source("SearchTerms")
        assert len(session.filters) == 0
        assert len(session.filtered_rows) == 21

    def test_unavailable_source_sets_error(self, ad_group_rows):
        session = InsightsSession(InMemoryDataSource({"AdGroups": ad_group_rows, "Daily": "oops"}))
        session.select_source("AdGroups")
        with pytest.raises(SourceUnavailableError):
            session.select_source("Daily")
        assert session.error is not None
        assert session.rows == []
        assert session.columns == []
        assert session.summary is None

    def test_time_series_field(self, source):
        session = InsightsSession(source)
        session.select_source("Daily")
        assert session.is_time_series
        assert session.time_series_field == "date"


class TestDerivedData:
    """Test filtering, outliers and summary wiring."""

    def test_filter_updates_summary(self, source):
        session = InsightsSession(source)
        session.select_source("AdGroups")
        session.add_filter("campaign", FilterOperator.EQUALS, "brand")
        assert len(session.filtered_rows) == 2
        assert session.summary.row_count == 2
        assert session.dataset_metadata().filters == "Campaign equals (ignore case) 'brand'"

    def test_exclude_outliers(self, source):
        session = InsightsSession(source)
        session.select_source("SearchTerms")
        assert session.outliers is not None
        assert len(session.final_rows) == 21

        session.set_exclude_outliers(True)
        assert len(session.final_rows) == 20
        assert session.summary.get_metric("cost").max == 1.0

        metadata = session.dataset_metadata()
        assert metadata.total_rows == 21
        assert metadata.rows_analyzed == 20
        assert "excluded" in metadata.outlier_info

    def test_display_rows_flag_outliers(self, source):
        session = InsightsSession(source)
        session.select_source("SearchTerms")
        flagged = [r for r in session.display_rows if r.is_outlier]
        assert [r["searchTerm"] for r in flagged] == ["runaway term"]

    def test_time_series_never_excludes(self, source):
        session = InsightsSession(source)
        session.select_source("Daily")
        session.set_exclude_outliers(True)
        assert session.outliers is None
        assert len(session.final_rows) == 5
        assert session.outlier_info == "Not applied (time-series data)"

    def test_sort_toggle(self, source):
        session = InsightsSession(source)
        session.select_source("AdGroups")
        session.set_sort("cost")
        assert [r["cost"] for r in session.display_rows][0] == 210.0
        session.set_sort("cost")
        assert session.sort.direction == SortDirection.ASC
        assert [r["cost"] for r in session.display_rows][0] == 12.0

    def test_sort_by_does_not_toggle(self, source):
        session = InsightsSession(source)
        session.select_source("AdGroups")
        assert session.sort.key == "impr"
        assert session.sort.direction == SortDirection.DESC

        session.sort_by("impr")
        assert session.sort.direction == SortDirection.DESC
        session.sort_by("impr")
        assert session.sort.direction == SortDirection.DESC

        session.sort_by("cost", SortDirection.ASC)
        assert session.sort.direction == SortDirection.ASC
        assert [r["cost"] for r in session.display_rows][0] == 12.0

    def test_chart_for_time_series(self, source):
        session = InsightsSession(source)
        session.select_source("Daily")
        chart = session.chart
        assert chart.title == "Impr over Time (Daily)"
        assert len(chart.rows) == 5
        assert session.to_dict()["chart"]["y_field"] == "impr"

    def test_no_chart_without_dates(self, source):
        session = InsightsSession(source)
        session.select_source("AdGroups")
        assert session.chart is None
        assert session.to_dict()["chart"] is None

    def test_derived_data_is_cached(self, source):
        session = InsightsSession(source)
        session.select_source("AdGroups")
        assert session.filtered_rows is session.filtered_rows
        first = session.filtered_rows
        session.add_filter("cost", FilterOperator.GREATER_THAN, "1")
        assert session.filtered_rows is not first


class TestSessionInsights:
    """Test insight requests through the session."""

    @pytest.mark.asyncio
    async def test_generate_sends_final_rows(self, source):
        provider = FakeProvider("primary")
        session = InsightsSession(source, InsightOrchestrator({"primary": provider}))
        session.select_source("SearchTerms")
        session.set_exclude_outliers(True)

        state = await session.generate_insights("Which terms waste budget?")

        assert state.status == ProviderStatus.SUCCESS
        request = provider.requests[0]
        assert len(request.rows) == 20
        assert "Rows Being Analyzed: 20" in request.prompt
        assert "Dataset: Search Terms" in request.prompt

    @pytest.mark.asyncio
    async def test_side_by_side(self, source):
        orchestrator = InsightOrchestrator({
            "primary": FakeProvider("primary"),
            "comparison": FakeProvider("comparison", error=RuntimeError("boom")),
        })
        session = InsightsSession(source, orchestrator)
        session.select_source("AdGroups")

        results = await session.generate_side_by_side("Compare")

        assert results["primary"].status == ProviderStatus.SUCCESS
        assert results["comparison"].status == ProviderStatus.FAILURE

    @pytest.mark.asyncio
    async def test_without_orchestrator(self, source):
        session = InsightsSession(source)
        session.select_source("AdGroups")
        with pytest.raises(InsightsError):
            await session.generate_insights("Analyze")
