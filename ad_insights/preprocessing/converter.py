"""
Row conversion: coerce raw values into typed values per inferred column.
"""

import logging
from typing import Any, List, Mapping, Sequence

from ad_insights.core.values import parse_date, to_finite_float
from ad_insights.schema.models import Column, ColumnType, DataRow

logger = logging.getLogger(__name__)


def convert_value(value: Any, column_type: ColumnType) -> Any:
    """
    Convert one raw value for a column type. Never raises.

    - date: parsed into a datetime; unparseable values are kept unchanged
    - metric: coerced to float; non-numeric/non-finite values are kept unchanged
    - dimension: kept unchanged
    """
    if column_type == ColumnType.DATE:
        parsed = parse_date(value)
        return value if parsed is None else parsed

    if column_type == ColumnType.METRIC:
        number = to_finite_float(value)
        if number is None:
            return value
        if isinstance(value, int) and not isinstance(value, bool):
            return value
        return number

    return value


def convert_rows(
    raw_rows: Sequence[Mapping[str, Any]],
    columns: List[Column],
) -> List[DataRow]:
    """
    Convert raw rows into typed DataRows.

    Each output row holds exactly the inferred column fields: fields the
    raw row lacks are filled with None and extra fields are dropped.
    Non-mapping raw rows become rows of None values.

    Args:
        raw_rows: Rows as delivered by the data source
        columns: Columns inferred for this source

    Returns:
        List of DataRow with row_id = position in raw_rows and the
        outlier flag cleared.
    """
    rows: List[DataRow] = []
    skipped = 0

    for index, raw in enumerate(raw_rows):
        if not isinstance(raw, Mapping):
            skipped += 1
            raw = {}
        values = {
            column.field: convert_value(raw.get(column.field), column.type)
            for column in columns
        }
        rows.append(DataRow(row_id=index, values=values, is_outlier=False))

    if skipped:
        logger.warning(f"Converted {skipped} malformed rows to empty rows")

    return rows
