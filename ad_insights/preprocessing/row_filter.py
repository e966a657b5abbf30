"""
Type-aware row filtering.

Filters combine with AND. A filter whose value cannot be parsed for its
column type (or that references an unknown column or an operator the
column type does not support) fails open: it evaluates True for every
row and the problem is logged. Filtering runs on every edit, so it must
never raise and never empty the view because of a half-typed value.
"""

import itertools
import logging
import operator as op
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from ad_insights.core.values import parse_date, to_display_string, to_finite_float
from ad_insights.schema.models import Column, ColumnType, DataRow, columns_by_field

logger = logging.getLogger(__name__)

MAX_FILTERS = 5


class FilterOperator(str, Enum):
    """Filter operators. Which ones apply depends on the column type."""
    # Text
    CONTAINS = "contains"
    DOES_NOT_CONTAIN = "does_not_contain"
    CONTAINS_CASE_SENSITIVE = "contains_case_sensitive"
    DOES_NOT_CONTAIN_CASE_SENSITIVE = "does_not_contain_case_sensitive"
    EQUALS_CASE_SENSITIVE = "equals_case_sensitive"
    STARTS_WITH = "starts_with"
    ENDS_WITH = "ends_with"
    # Shared by text, number and date
    EQUALS = "equals"
    NOT_EQUALS = "not_equals"
    # Number and date
    GREATER_THAN = "greater_than"
    GREATER_THAN_EQUALS = "greater_than_equals"
    LESS_THAN = "less_than"
    LESS_THAN_EQUALS = "less_than_equals"


OPERATORS_BY_TYPE: Dict[ColumnType, List[Tuple[FilterOperator, str]]] = {
    ColumnType.DIMENSION: [
        (FilterOperator.CONTAINS, "contains"),
        (FilterOperator.DOES_NOT_CONTAIN, "does not contain"),
        (FilterOperator.EQUALS, "equals (ignore case)"),
        (FilterOperator.NOT_EQUALS, "does not equal"),
        (FilterOperator.STARTS_WITH, "starts with"),
        (FilterOperator.ENDS_WITH, "ends with"),
        (FilterOperator.CONTAINS_CASE_SENSITIVE, "contains (case sensitive)"),
        (FilterOperator.DOES_NOT_CONTAIN_CASE_SENSITIVE, "does not contain (case sensitive)"),
        (FilterOperator.EQUALS_CASE_SENSITIVE, "equals (case sensitive)"),
    ],
    ColumnType.METRIC: [
        (FilterOperator.GREATER_THAN, ">"),
        (FilterOperator.GREATER_THAN_EQUALS, ">="),
        (FilterOperator.EQUALS, "="),
        (FilterOperator.NOT_EQUALS, "!="),
        (FilterOperator.LESS_THAN, "<"),
        (FilterOperator.LESS_THAN_EQUALS, "<="),
    ],
    ColumnType.DATE: [
        (FilterOperator.GREATER_THAN, "after"),
        (FilterOperator.GREATER_THAN_EQUALS, "on or after"),
        (FilterOperator.EQUALS, "on"),
        (FilterOperator.NOT_EQUALS, "not on"),
        (FilterOperator.LESS_THAN, "before"),
        (FilterOperator.LESS_THAN_EQUALS, "on or before"),
    ],
}

_ORDERING = {
    FilterOperator.GREATER_THAN: op.gt,
    FilterOperator.GREATER_THAN_EQUALS: op.ge,
    FilterOperator.LESS_THAN: op.lt,
    FilterOperator.LESS_THAN_EQUALS: op.le,
    FilterOperator.EQUALS: op.eq,
    FilterOperator.NOT_EQUALS: op.ne,
}

Predicate = Callable[[Any], bool]


def operators_for_type(column_type: ColumnType) -> List[Tuple[FilterOperator, str]]:
    """Get (operator, label) pairs available for a column type."""
    return list(OPERATORS_BY_TYPE.get(column_type, OPERATORS_BY_TYPE[ColumnType.DIMENSION]))


def default_operator(column_type: ColumnType) -> FilterOperator:
    """First operator offered for a column type."""
    return operators_for_type(column_type)[0][0]


def operator_label(column_type: ColumnType, operator: FilterOperator) -> str:
    for candidate, label in operators_for_type(column_type):
        if candidate == operator:
            return label
    return operator.value.replace("_", " ")


@dataclass(frozen=True)
class Filter:
    """A single user filter."""
    id: int
    field: str
    operator: FilterOperator
    value: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "field": self.field,
            "operator": self.operator.value,
            "value": self.value,
        }


@dataclass
class FilterResult:
    """Result of applying filters to a row set."""
    rows: List[DataRow]
    filters_applied: int
    rows_before: int
    rows_after: int
    rows_removed: int
    errors: List[str] = field(default_factory=list)


class FilterValueError(ValueError):
    """A filter value cannot be used for its column; the filter fails open."""


# =========================
# Predicate builders
# =========================

def _text_predicate(operator: FilterOperator, target: str) -> Predicate:
    lowered = target.lower()

    def text(value: Any) -> str:
        return to_display_string(value)

    handlers: Dict[FilterOperator, Predicate] = {
        FilterOperator.EQUALS: lambda v: text(v).lower() == lowered,
        FilterOperator.NOT_EQUALS: lambda v: text(v).lower() != lowered,
        FilterOperator.EQUALS_CASE_SENSITIVE: lambda v: text(v) == target,
        FilterOperator.CONTAINS: lambda v: lowered in text(v).lower(),
        FilterOperator.DOES_NOT_CONTAIN: lambda v: lowered not in text(v).lower(),
        FilterOperator.CONTAINS_CASE_SENSITIVE: lambda v: target in text(v),
        FilterOperator.DOES_NOT_CONTAIN_CASE_SENSITIVE: lambda v: target not in text(v),
        FilterOperator.STARTS_WITH: lambda v: text(v).lower().startswith(lowered),
        FilterOperator.ENDS_WITH: lambda v: text(v).lower().endswith(lowered),
    }
    return handlers[operator]


def _ordered_predicate(
    operator: FilterOperator,
    target: Any,
    coerce: Callable[[Any], Optional[Any]],
) -> Predicate:
    compare = _ORDERING[operator]

    def predicate(value: Any) -> bool:
        item = coerce(value)
        if item is None:
            # A missing or unparseable row value never matches, except for "not equals".
            return operator == FilterOperator.NOT_EQUALS
        return compare(item, target)

    return predicate


def build_predicate(filter_: Filter, column: Optional[Column]) -> Predicate:
    """
    Build a row-value predicate for a filter.

    Raises:
        FilterValueError: when the filter cannot be evaluated
            (unknown column, unsupported operator, unparseable value).
    """
    if column is None:
        raise FilterValueError(f"unknown field '{filter_.field}'")

    allowed = {candidate for candidate, _ in operators_for_type(column.type)}
    if filter_.operator not in allowed:
        raise FilterValueError(
            f"operator '{filter_.operator.value}' not supported for {column.type.value} column '{column.field}'"
        )

    raw_value = "" if filter_.value is None else str(filter_.value)

    if column.type == ColumnType.METRIC:
        target = to_finite_float(raw_value)
        if target is None:
            raise FilterValueError(f"'{raw_value}' is not a number")
        return _ordered_predicate(filter_.operator, target, to_finite_float)

    if column.type == ColumnType.DATE:
        target_date = parse_date(raw_value)
        if target_date is None:
            raise FilterValueError(f"'{raw_value}' is not a date")
        return _ordered_predicate(filter_.operator, target_date, parse_date)

    return _text_predicate(filter_.operator, raw_value)


# =========================
# Filter application
# =========================

class RowFilter:
    """
    Applies an AND-combined set of filters to typed rows.

    Usage:
        row_filter = RowFilter(columns)
        result = row_filter.apply_all(rows, filters)
        print(f"Removed {result.rows_removed} rows")
    """

    def __init__(self, columns: List[Column]):
        self.columns = columns
        self._columns = columns_by_field(columns)

    def compile(self, filters: Sequence[Filter]) -> Tuple[List[Tuple[Filter, Predicate]], List[str]]:
        """Compile filters into predicates, dropping (failing open) unusable ones."""
        compiled: List[Tuple[Filter, Predicate]] = []
        errors: List[str] = []

        for filter_ in filters:
            if not filter_.field:
                continue
            try:
                predicate = build_predicate(filter_, self._columns.get(filter_.field))
            except FilterValueError as e:
                error_msg = f"Filter {filter_.id} on '{filter_.field}' ignored: {e}"
                errors.append(error_msg)
                logger.warning(error_msg)
                continue
            compiled.append((filter_, predicate))

        return compiled, errors

    def apply_all(self, rows: Sequence[DataRow], filters: Sequence[Filter]) -> FilterResult:
        """
        Apply all filters to the rows, preserving row order.

        Args:
            rows: Typed rows
            filters: Active filters (combined with AND)

        Returns:
            FilterResult with the rows that pass every filter
        """
        compiled, errors = self.compile(filters)
        failed_open = set()

        kept: List[DataRow] = []
        for row in rows:
            keep = True
            for filter_, predicate in compiled:
                if filter_.id in failed_open:
                    continue
                try:
                    passed = predicate(row.get(filter_.field))
                except Exception as e:
                    error_msg = (
                        f"Error applying filter: {filter_.operator.value} on field "
                        f"{filter_.field}: {e}"
                    )
                    errors.append(error_msg)
                    logger.warning(error_msg)
                    failed_open.add(filter_.id)
                    continue
                if not passed:
                    keep = False
                    break
            if keep:
                kept.append(row)

        rows_before = len(rows)
        return FilterResult(
            rows=kept,
            filters_applied=len(compiled) - len(failed_open),
            rows_before=rows_before,
            rows_after=len(kept),
            rows_removed=rows_before - len(kept),
            errors=errors,
        )


def apply_filters(
    rows: Sequence[DataRow],
    filters: Sequence[Filter],
    columns: List[Column],
) -> List[DataRow]:
    """Convenience wrapper returning only the surviving rows."""
    return RowFilter(columns).apply_all(rows, filters).rows


def describe_filters(filters: Sequence[Filter], columns: List[Column]) -> str:
    """
    Human-readable description of the active filters.

    Example:
        "Cost > '5' AND Campaign contains 'brand'"
    """
    index = columns_by_field(columns)
    clauses = []
    for filter_ in filters:
        if not filter_.field:
            continue
        column = index.get(filter_.field)
        if column is None:
            clauses.append(f"{filter_.field} {filter_.operator.value.replace('_', ' ')} '{filter_.value}'")
            continue
        label = operator_label(column.type, filter_.operator)
        clauses.append(f"{column.name} {label} '{filter_.value}'")
    return " AND ".join(clauses) if clauses else "None"


# =========================
# Filter list management
# =========================

class FilterSet:
    """
    Insertion-ordered list of at most MAX_FILTERS filters.

    Every mutation bumps `version` so callers can cache derived row sets.
    """

    def __init__(self, columns: Optional[List[Column]] = None):
        self._columns: List[Column] = list(columns or [])
        self._filters: List[Filter] = []
        self._ids = itertools.count(1)
        self.version = 0

    def __len__(self) -> int:
        return len(self._filters)

    def __iter__(self):
        return iter(self._filters)

    @property
    def filters(self) -> List[Filter]:
        return list(self._filters)

    @property
    def is_full(self) -> bool:
        return len(self._filters) >= MAX_FILTERS

    def reset(self, columns: Optional[List[Column]] = None) -> None:
        """Drop all filters (on source change) and adopt a new column set."""
        if columns is not None:
            self._columns = list(columns)
        self._filters = []
        self.version += 1

    def add(
        self,
        field_name: Optional[str] = None,
        operator: Optional[FilterOperator] = None,
        value: str = "",
    ) -> Optional[Filter]:
        """
        Add a filter. A sixth filter is a no-op (returns None).

        Defaults: the first column, the first operator for its type,
        and an empty value.
        """
        if self.is_full:
            logger.info(f"Filter limit reached ({MAX_FILTERS}); ignoring new filter")
            return None

        index = columns_by_field(self._columns)
        if field_name is None:
            field_name = self._columns[0].field if self._columns else ""
        column = index.get(field_name)
        column_type = column.type if column else ColumnType.DIMENSION
        if operator is None:
            operator = default_operator(column_type)

        new_filter = Filter(
            id=next(self._ids),
            field=field_name,
            operator=FilterOperator(operator),
            value=value,
        )
        self._filters.append(new_filter)
        self.version += 1
        return new_filter

    def update(
        self,
        filter_id: int,
        field_name: Optional[str] = None,
        operator: Optional[FilterOperator] = None,
        value: Optional[str] = None,
    ) -> Optional[Filter]:
        """
        Update a filter in place (position is kept).

        Changing the field resets the operator to the new column type's
        first operator and clears the value.
        """
        for position, existing in enumerate(self._filters):
            if existing.id != filter_id:
                continue

            updated = existing
            if field_name is not None and field_name != existing.field:
                column = columns_by_field(self._columns).get(field_name)
                column_type = column.type if column else ColumnType.DIMENSION
                updated = replace(
                    updated,
                    field=field_name,
                    operator=default_operator(column_type),
                    value="",
                )
            if operator is not None:
                updated = replace(updated, operator=FilterOperator(operator))
            if value is not None:
                updated = replace(updated, value=value)

            self._filters[position] = updated
            self.version += 1
            return updated

        logger.debug(f"Filter {filter_id} not found")
        return None

    def clear(self) -> None:
        """Remove every filter."""
        self.reset()

    def remove(self, filter_id: int) -> bool:
        before = len(self._filters)
        self._filters = [f for f in self._filters if f.id != filter_id]
        if len(self._filters) != before:
            self.version += 1
            return True
        return False

    def describe(self) -> str:
        return describe_filters(self._filters, self._columns)
