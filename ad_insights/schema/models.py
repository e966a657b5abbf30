"""
Data models for columns and rows.
"""

import re
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Dict, Iterator, List, Mapping, Optional


class ColumnType(str, Enum):
    """Semantic type of a column."""
    DATE = "date"
    DIMENSION = "dimension"
    METRIC = "metric"


# Canonical metric keys and the normalized field names that map to them.
METRIC_ALIASES: Dict[str, tuple] = {
    "impr": ("impr", "impressions"),
    "clicks": ("clicks",),
    "cost": ("cost",),
    "conv": ("conv", "conversions"),
    "value": ("value", "convvalue", "conversionvalue"),
    "cpc": ("cpc", "costperclick"),
    "ctr": ("ctr", "clickthroughrate"),
    "convrate": ("convrate", "conversionrate", "cvr"),
    "cpa": ("cpa", "costperacquisition", "costperconversion"),
    "roas": ("roas", "returnonadspend"),
}

# Display ordering for metric columns; unlisted metrics follow alphabetically.
METRIC_PRIORITY: List[str] = [
    "impr", "clicks", "cost", "conv", "value",
    "cpc", "ctr", "convrate", "cpa", "roas",
]

_ALIAS_TO_CANONICAL = {
    alias: canonical
    for canonical, aliases in METRIC_ALIASES.items()
    for alias in aliases
}


def normalize_field_name(field_name: str) -> str:
    """Lowercase and strip separators: 'Campaign_ID' -> 'campaignid'."""
    return re.sub(r"[^a-z0-9]", "", str(field_name).lower())


def canonical_metric(field_name: str) -> Optional[str]:
    """Return the canonical metric key for a field name, if it is a known metric."""
    return _ALIAS_TO_CANONICAL.get(normalize_field_name(field_name))


def display_name(field_name: str) -> str:
    """'search_term' -> 'Search term', 'cost' -> 'Cost'."""
    if not field_name:
        return field_name
    return field_name[0].upper() + field_name[1:].replace("_", " ")


@dataclass(frozen=True)
class Column:
    """A typed field descriptor."""
    field: str
    name: str
    type: ColumnType

    @property
    def is_metric(self) -> bool:
        return self.type == ColumnType.METRIC

    @property
    def is_date(self) -> bool:
        return self.type == ColumnType.DATE

    @property
    def metric_key(self) -> Optional[str]:
        """Canonical metric key (None for non-metrics and unknown metrics)."""
        if not self.is_metric:
            return None
        return canonical_metric(self.field)

    def to_dict(self) -> Dict[str, Any]:
        return {"field": self.field, "name": self.name, "type": self.type.value}


@dataclass(frozen=True)
class DataRow:
    """
    One typed performance record.

    Attributes:
        row_id: Position of the row in its source snapshot. Stable across
            filtering and sorting, used to identify outlier rows.
        values: Field id -> typed value. Keys always equal the column set.
        is_outlier: Outlier flag, materialised from an outlier scan.
    """
    row_id: int
    values: Mapping[str, Any] = field(default_factory=dict)
    is_outlier: bool = False

    def __getitem__(self, key: str) -> Any:
        return self.values[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self.values)

    def get(self, key: str, default: Any = None) -> Any:
        return self.values.get(key, default)

    def with_outlier_flag(self, flagged: bool) -> "DataRow":
        """Return a copy with the outlier flag set."""
        if flagged == self.is_outlier:
            return self
        return replace(self, is_outlier=flagged)


def columns_by_field(columns: List[Column]) -> Dict[str, Column]:
    """Index columns by field id."""
    return {c.field: c for c in columns}


def has_date_column(columns: List[Column]) -> bool:
    """True if the column set describes time-series data."""
    return any(c.is_date for c in columns)
