"""
Prompt templates for AI insight generation.

The same metadata block is prepended to the user prompt for every
provider so side-by-side results are produced from identical inputs.
"""

import json
import re
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, Dict, List, Mapping, Sequence

DATA_ANALYSIS_SYSTEM_PROMPT = (
    "You are a data analysis assistant that provides insightful analysis of "
    "marketing data. Format your response using markdown."
)

DEFAULT_USER_PROMPT = (
    "Analyze this filtered dataset focusing on performance trends, anomalies, "
    "and actionable recommendations for optimization."
)

DATA_INSIGHTS_PROMPT = """Dataset: {source_name}
Filters Applied: {filters}
Total Rows Matching Filters: {total_rows}
Rows Being Analyzed: {rows_analyzed}
Outlier Handling: {outlier_info}

User Prompt: {prompt}"""


@dataclass(frozen=True)
class DatasetMetadata:
    """Describes the dataset sent along with a prompt."""
    source_name: str
    filters: str
    total_rows: int
    rows_analyzed: int
    outlier_info: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "source_name": self.source_name,
            "filters": self.filters,
            "total_rows": self.total_rows,
            "rows_analyzed": self.rows_analyzed,
            "outlier_info": self.outlier_info,
        }


def create_data_insights_prompt(prompt: str, metadata: DatasetMetadata) -> str:
    """Metadata block followed by the user prompt."""
    return DATA_INSIGHTS_PROMPT.format(
        source_name=metadata.source_name,
        filters=metadata.filters,
        total_rows=metadata.total_rows,
        rows_analyzed=metadata.rows_analyzed,
        outlier_info=metadata.outlier_info,
        prompt=prompt.strip(),
    )


def _json_default(value: Any) -> Any:
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return str(value)


def serialize_rows(rows: Sequence[Mapping[str, Any]]) -> List[Dict[str, Any]]:
    """Plain dicts with date instants converted to ISO-8601 strings."""
    serialized = []
    for row in rows:
        serialized.append({
            key: value.isoformat() if isinstance(value, (datetime, date)) else value
            for key, value in row.items()
        })
    return serialized


def format_rows_for_prompt(rows: Sequence[Mapping[str, Any]]) -> str:
    """JSON text block appended to the prompt."""
    return json.dumps(list(rows), indent=2, default=_json_default)


def build_user_content(full_prompt: str, rows: Sequence[Mapping[str, Any]]) -> str:
    return f"{full_prompt}\n\nData:\n{format_rows_for_prompt(rows)}"


_SECTION_HEADINGS = [
    (re.compile(r"([A-Za-z\s]+Summary:)"), r"\n\n## \1\n"),
    (re.compile(r"(Key Performance Trends and Observations:)"), r"\n\n## \1\n"),
    (re.compile(r"(Anomalies & Potential Issues:)"), r"\n\n## \1\n"),
    (re.compile(r"(Actionable Recommendations:)"), r"\n\n## \1\n"),
    (re.compile(r"(Brand vs\. Non-Brand:)"), r"\n\n### \1\n"),
]


def format_response_as_markdown(text: str) -> str:
    """
    Tidy a provider response into readable markdown.

    Promotes known section labels to headings, spaces out bullet lists and
    paragraphs, and bolds quoted "... Outlier:" labels.
    """
    formatted = text
    for pattern, replacement in _SECTION_HEADINGS:
        formatted = pattern.sub(replacement, formatted)

    formatted = re.sub(r"(\n[•\-*] .+)(\n[•\-*] )", r"\1\n\2", formatted)
    formatted = re.sub(r"\.(\n)([A-Z])", r".\n\n\2", formatted)

    if not formatted.startswith("#"):
        formatted = re.sub(r"^(.+?)(\n)", r"\1\n\n", formatted, count=1)

    formatted = re.sub(r'"([^"]+)" Outlier:', r'**"\1" Outlier:**', formatted)
    return formatted
