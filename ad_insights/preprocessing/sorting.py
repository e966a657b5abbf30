"""
Sorting for the filtered row view.
"""

from dataclasses import dataclass
from enum import Enum
from functools import cmp_to_key
from typing import Any, List, Optional, Sequence

from ad_insights.core.values import parse_date, to_display_string, to_finite_float
from ad_insights.schema.models import Column, ColumnType, DataRow, columns_by_field


class SortDirection(str, Enum):
    ASC = "asc"
    DESC = "desc"


@dataclass(frozen=True)
class SortConfig:
    """Sort key and direction. An empty key means unsorted."""
    key: str = ""
    direction: SortDirection = SortDirection.DESC

    def toggled(self, key: str) -> "SortConfig":
        """Selecting the current desc key flips it to asc; anything else sorts desc."""
        if self.key == key and self.direction == SortDirection.DESC:
            return SortConfig(key=key, direction=SortDirection.ASC)
        return SortConfig(key=key, direction=SortDirection.DESC)


def default_sort(columns: List[Column]) -> SortConfig:
    """First metric or date column, else the first column; descending."""
    if not columns:
        return SortConfig()
    sortable = next((c for c in columns if c.type in (ColumnType.METRIC, ColumnType.DATE)), columns[0])
    return SortConfig(key=sortable.field, direction=SortDirection.DESC)


def _compare_values(a: Any, b: Any, column_type: ColumnType) -> int:
    if column_type == ColumnType.METRIC:
        diff = (to_finite_float(a) or 0.0) - (to_finite_float(b) or 0.0)
        return (diff > 0) - (diff < 0)

    if column_type == ColumnType.DATE:
        date_a, date_b = parse_date(a), parse_date(b)
        if date_a is not None and date_b is not None:
            return (date_a > date_b) - (date_a < date_b)
        if date_a is None and date_b is not None:
            return -1
        if date_a is not None and date_b is None:
            return 1
        return 0

    text_a, text_b = to_display_string(a), to_display_string(b)
    return (text_a > text_b) - (text_a < text_b)


def sort_rows(
    rows: Sequence[DataRow],
    sort_config: SortConfig,
    columns: List[Column],
) -> List[DataRow]:
    """
    Return the rows sorted by the configured key (stable).

    Missing values sort last ascending and first descending. An unknown
    or empty key leaves the order unchanged.
    """
    column: Optional[Column] = columns_by_field(columns).get(sort_config.key)
    if column is None:
        return list(rows)

    ascending = sort_config.direction == SortDirection.ASC

    def compare(row_a: DataRow, row_b: DataRow) -> int:
        a, b = row_a.get(column.field), row_b.get(column.field)
        if a is None and b is None:
            return 0
        if a is None:
            return 1 if ascending else -1
        if b is None:
            return -1 if ascending else 1
        result = _compare_values(a, b, column.type)
        return result if ascending else -result

    return sorted(rows, key=cmp_to_key(compare))
