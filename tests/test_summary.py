"""
Unit tests for the summary aggregator.
"""

import pytest

from ad_insights.analysis.summary import TOP_GROUPS, summarize
from ad_insights.schema.models import Column, ColumnType, DataRow

from conftest import build_rows


class TestMetricSummary:
    """Test per-metric statistics."""

    def test_cost_statistics(self, ad_group_rows):
        columns, rows = build_rows(ad_group_rows)
        summary = summarize(rows, columns)
        cost = summary.get_metric("cost")
        assert cost.sum == pytest.approx(407.75)
        assert cost.min == 12.0
        assert cost.max == 210.0
        assert cost.avg == pytest.approx(81.55)

    def test_metric_without_values_has_name_only(self):
        columns = [Column(field="conv", name="Conv", type=ColumnType.METRIC)]
        rows = [DataRow(row_id=0, values={"conv": None}), DataRow(row_id=1, values={"conv": "n/a"})]
        summary = summarize(rows, columns)
        assert summary.metrics[0].to_dict() == {"name": "Conv"}

    def test_empty_input(self, ad_group_rows):
        columns, _ = build_rows(ad_group_rows)
        assert summarize([], columns) is None
        assert summarize([DataRow(row_id=0, values={})], []) is None


class TestDimensionBreakdown:
    """Test grouping by dimension and date columns."""

    def test_groups_ranked_by_count(self, ad_group_rows):
        columns, rows = build_rows(ad_group_rows)
        campaign = summarize(rows, columns).get_dimension("campaign")
        assert campaign.unique_count == 2
        assert [g.value for g in campaign.top_values] == ["Generic", "Brand"]

        generic = campaign.top_values[0]
        assert generic.count == 3
        assert generic.totals["cost"] == pytest.approx(317.25)
        assert generic.totals["clicks"] == 254.0
        assert generic.totals["conversions"] == 6.0
        assert generic.totals["value"] == 445.0

    def test_top_groups_limited(self):
        columns = [
            Column(field="term", name="Term", type=ColumnType.DIMENSION),
            Column(field="cost", name="Cost", type=ColumnType.METRIC),
        ]
        rows = [DataRow(row_id=i, values={"term": f"t{i}", "cost": 1.0}) for i in range(12)]
        breakdown = summarize(rows, columns).get_dimension("term")
        assert breakdown.unique_count == 12
        assert len(breakdown.top_values) == TOP_GROUPS
        # ties keep first-appearance order
        assert [g.value for g in breakdown.top_values] == ["t0", "t1", "t2", "t3", "t4"]

    def test_missing_metrics_total_zero(self):
        columns = [Column(field="term", name="Term", type=ColumnType.DIMENSION)]
        rows = [DataRow(row_id=0, values={"term": "a"})]
        group = summarize(rows, columns).get_dimension("term").top_values[0]
        assert group.totals == {"cost": 0.0, "clicks": 0.0, "value": 0.0, "conversions": 0.0}

    def test_date_groups_use_date_strings(self, daily_rows):
        columns, rows = build_rows(daily_rows)
        dates = summarize(rows, columns).get_dimension("date")
        assert dates.top_values[0].value == "2024-03-01"
        assert dates.top_values[0].count == 2

    def test_to_dict(self, ad_group_rows):
        columns, rows = build_rows(ad_group_rows)
        data = summarize(rows, columns).to_dict()
        assert data["row_count"] == 5
        assert data["dimensions"][0]["top_values"][0]["group"] == "Generic"
