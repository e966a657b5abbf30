#!/usr/bin/env python3
"""
Run the Ad Insights pipeline against local JSON data.

This script:
1. Loads a table (<data-dir>/<source>.json) and infers its columns
2. Applies filters and reports detected outliers
3. Prints the summary statistics
4. Optionally requests AI insights from one or two providers

Usage:
    # Local summary only
    python run_insights.py --data-dir data --source AdGroups --local-only

    # Filtered, outliers excluded, single provider
    python run_insights.py \
        --source SearchTerms \
        --filter "cost:greater_than:5" \
        --filter "searchTerm:contains:brand" \
        --exclude-outliers \
        --prompt "Which search terms waste budget?"

    # Side-by-side comparison of the primary and comparison models
    python run_insights.py --source Daily --side-by-side --prompt "Summarize the trend"

    # Save the session snapshot and insights as JSON
    python run_insights.py --source AdGroups --output results/adgroups.json
"""

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Dict, List

from ad_insights.core.config import get_settings
from ad_insights.exceptions import InsightsError, SourceUnavailableError
from ad_insights.intelligence.orchestrator import InsightOrchestrator, ProviderInsightState, ProviderStatus
from ad_insights.intelligence.pricing import PricingTable
from ad_insights.intelligence.prompts import DEFAULT_USER_PROMPT
from ad_insights.intelligence.providers import build_default_providers
from ad_insights.preprocessing.row_filter import FilterOperator
from ad_insights.sessions.session import InsightsSession
from ad_insights.sources import JsonFileDataSource

logger = logging.getLogger(__name__)


def parse_filter(text: str):
    """'field:operator:value' -> (field, FilterOperator, value)."""
    parts = text.split(":", 2)
    if len(parts) != 3:
        raise argparse.ArgumentTypeError(
            f"Invalid filter '{text}'. Expected field:operator:value"
        )
    field_name, operator, value = parts
    try:
        return field_name, FilterOperator(operator), value
    except ValueError:
        valid = ", ".join(o.value for o in FilterOperator)
        raise argparse.ArgumentTypeError(f"Unknown operator '{operator}'. Valid: {valid}")


def print_summary(session: InsightsSession) -> None:
    """Print summary statistics and outliers."""
    print("\n" + "=" * 70)
    print(f"DATA SUMMARY: {session.source_name}")
    print("=" * 70)
    print(f"Filters:       {session.filters.describe()}")
    print(f"Rows:          {len(session.filtered_rows)} of {len(session.rows)} match filters")
    print(f"Outliers:      {session.outlier_info}")

    summary = session.summary
    if summary is None:
        print("\nNo data to summarize.")
        return

    print(f"\nMetrics ({summary.row_count} rows analyzed):")
    for metric in summary.metrics:
        if not metric.has_data:
            print(f"   {metric.name:<20} (no data)")
            continue
        print(
            f"   {metric.name:<20} sum={metric.sum:,.2f}  avg={metric.avg:,.2f}  "
            f"min={metric.min:,.2f}  max={metric.max:,.2f}"
        )

    for breakdown in summary.dimensions:
        print(f"\n{breakdown.name} ({breakdown.unique_count} unique):")
        for group in breakdown.top_values:
            print(
                f"   {group.value[:40]:<40} rows={group.count:<5} "
                f"cost={group.totals['cost']:,.2f}  clicks={group.totals['clicks']:,.0f}"
            )

    chart = session.chart
    if chart is not None:
        print(f"\nChart: {chart.title} ({len(chart.rows)} points, {chart.chart_type})")

    if session.outliers:
        print(f"\nPotential outliers ({len(session.outliers)}):")
        for outlier in session.outliers[:10]:
            print(f"   Row {outlier.row.row_id}: {outlier.column}={outlier.value:,.2f} - {outlier.explanation}")
        if len(session.outliers) > 10:
            print(f"   ... and {len(session.outliers) - 10} more")


def print_insight(state: ProviderInsightState) -> None:
    print("\n" + "=" * 70)
    print(f"INSIGHTS: {state.provider_id} ({state.model})")
    print("=" * 70)
    if state.status == ProviderStatus.FAILURE:
        print(f"❌ {state.error}")
        return
    print(state.content)
    if state.usage:
        cost = f"${state.estimated_cost:.4f}" if state.estimated_cost is not None else "n/a"
        print(
            f"\nTokens: {state.usage.input_tokens} in / {state.usage.output_tokens} out"
            f"  Estimated cost: {cost}"
        )


async def request_insights(session: InsightsSession, prompt: str, side_by_side: bool) -> Dict[str, ProviderInsightState]:
    if side_by_side:
        return await session.generate_side_by_side(prompt)
    state = await session.generate_insights(prompt)
    return {state.provider_id: state}


def main():
    parser = argparse.ArgumentParser(
        description="Summarize ad performance data and request AI insights",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__
    )

    parser.add_argument(
        "--data-dir",
        type=str,
        help="Directory containing <table>.json files (default: settings.data_dir)"
    )
    parser.add_argument(
        "--source",
        type=str,
        required=True,
        help="Table to analyze (e.g., Daily, AdGroups, SearchTerms)"
    )
    parser.add_argument(
        "--filter",
        action="append",
        type=parse_filter,
        default=[],
        help="Filter as field:operator:value (can specify up to 5 times)"
    )
    parser.add_argument(
        "--sort",
        type=str,
        help="Field to sort the rows by (descending)"
    )
    parser.add_argument(
        "--exclude-outliers",
        action="store_true",
        help="Exclude detected outliers from the summary and AI analysis"
    )
    parser.add_argument(
        "--prompt",
        type=str,
        default=DEFAULT_USER_PROMPT,
        help="Analysis prompt sent to the AI providers"
    )
    parser.add_argument(
        "--side-by-side",
        action="store_true",
        help="Compare the primary and comparison models on identical inputs"
    )
    parser.add_argument(
        "--local-only",
        action="store_true",
        help="Only compute the local summary; no AI requests"
    )
    parser.add_argument(
        "--output",
        type=str,
        help="Write the session snapshot and insights to this JSON file"
    )

    args = parser.parse_args()
    settings = get_settings()

    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )

    data_dir = Path(args.data_dir or settings.data_dir)
    source = JsonFileDataSource(data_dir, tables=settings.source_tables)

    orchestrator = None
    if not args.local_only:
        try:
            orchestrator = InsightOrchestrator(
                build_default_providers(settings),
                PricingTable.load(settings.pricing_table_path),
                max_recommended_rows=settings.max_recommended_insight_rows,
                max_output_tokens=settings.llm_max_output_tokens,
            )
        except ValueError as e:
            print(f"\n❌ {e}")
            return 1

    session = InsightsSession(source, orchestrator)

    print("=" * 70)
    print("AD INSIGHTS")
    print("=" * 70)
    print(f"Data dir: {data_dir}")
    print(f"Source:   {args.source}")

    try:
        session.select_source(args.source)
    except SourceUnavailableError as e:
        print(f"\n❌ {e.message}")
        return 1

    for field_name, operator, value in args.filter:
        if session.add_filter(field_name, operator, value) is None:
            print(f"⚠️  Filter limit reached, ignoring: {field_name} {operator.value} {value}")
    if args.sort:
        session.sort_by(args.sort)
    session.set_exclude_outliers(args.exclude_outliers)

    print_summary(session)

    results: Dict[str, ProviderInsightState] = {}
    if not args.local_only:
        try:
            results = asyncio.run(request_insights(session, args.prompt, args.side_by_side))
        except InsightsError as e:
            print(f"\n❌ {e.message}")
            return 1
        for state in results.values():
            print_insight(state)

    if args.output:
        output_path = Path(args.output)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        snapshot = session.to_dict()
        snapshot["insights"] = {pid: state.to_dict() for pid, state in results.items()}
        with open(output_path, "w", encoding="utf-8") as f:
            json.dump(snapshot, f, indent=2, default=str)
        print(f"\nSaved: {output_path}")

    failed: List[str] = [pid for pid, s in results.items() if s.status == ProviderStatus.FAILURE]
    return 1 if failed else 0


if __name__ == "__main__":
    sys.exit(main())
