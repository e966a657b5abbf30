"""
Value coercion helpers shared by the pipeline stages.

Rows arrive loosely typed: numbers may be strings ("1,234.50", "$12"),
dates may be strings or already date instants. These helpers never raise;
they return None when a value cannot be coerced.
"""

import math
import re
import warnings
from datetime import date, datetime
from typing import Any, Optional

import pandas as pd

NULL_LIKE = {"", "na", "n/a", "null", "none", "nan"}

RE_PURE_NUMBER = re.compile(r"^\s*[-+]?\d+(\.\d+)?\s*$")


def _clean_numeric(s: str) -> str:
    s2 = s.strip()
    s2 = s2.replace(",", "")
    s2 = re.sub(r"[\$₪€£%]", "", s2)
    return s2


def is_date_instant(value: Any) -> bool:
    """True for datetime/date/Timestamp values (NaT excluded)."""
    if value is None or value is pd.NaT:
        return False
    return isinstance(value, (datetime, date))


def to_finite_float(value: Any) -> Optional[float]:
    """
    Coerce a value to a finite float.

    Accepts ints, floats and numeric strings (thousand separators and
    currency symbols are stripped). Booleans, dates, NaN and infinities
    are rejected.

    Returns:
        The float value, or None if the value is not a finite number.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        try:
            number = float(value)
        except OverflowError:
            # ints beyond float range
            return None
    elif isinstance(value, str):
        cleaned = _clean_numeric(value)
        if cleaned.lower() in NULL_LIKE:
            return None
        try:
            number = float(cleaned)
        except ValueError:
            return None
    else:
        # numpy scalars and Decimals
        try:
            number = float(value)
        except (TypeError, ValueError, OverflowError):
            return None
    if not math.isfinite(number):
        return None
    return number


def looks_numeric(value: Any) -> bool:
    """True if the value is (or reads as) a finite number."""
    return to_finite_float(value) is not None


def parse_date(value: Any) -> Optional[datetime]:
    """
    Parse a value into a naive datetime.

    Date instants are returned as datetimes; strings are parsed with pandas.
    Timezone-aware results are normalised to naive UTC so that all parsed
    instants are mutually comparable. Pure numbers are not treated as dates.

    Returns:
        datetime or None if the value cannot be parsed.
    """
    if value is None or value is pd.NaT:
        return None
    if isinstance(value, pd.Timestamp):
        parsed = value
    elif isinstance(value, datetime):
        parsed = pd.Timestamp(value)
    elif isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    elif isinstance(value, str):
        s = value.strip()
        if not s or s.lower() in NULL_LIKE or RE_PURE_NUMBER.match(s):
            return None
        with warnings.catch_warnings():
            warnings.simplefilter("ignore")
            try:
                parsed = pd.to_datetime(s, errors="coerce")
            except (ValueError, TypeError, OverflowError):
                return None
    else:
        return None

    if parsed is None or pd.isna(parsed):
        return None
    if parsed.tzinfo is not None:
        parsed = parsed.tz_convert("UTC").tz_localize(None)
    return parsed.to_pydatetime()


def to_display_string(value: Any) -> str:
    """String form used for grouping and text comparison ('' for missing)."""
    if value is None:
        return ""
    if isinstance(value, datetime):
        if value.hour == 0 and value.minute == 0 and value.second == 0 and value.microsecond == 0:
            return value.date().isoformat()
        return value.isoformat()
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)
