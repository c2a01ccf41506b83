"""
Row filtering for chart specs.
"""
import math
from typing import Any, Dict, List, Optional, Sequence

from manifest_viewer.schemas.chart import ChartFilter
from manifest_viewer.services.field_access import get_value_by_path

Row = Dict[str, Any]


def _to_float(value: Any) -> float:
    """
    Numeric coercion for comparisons; non-numeric values become NaN so every comparison fails.

    A missing field resolves to None and counts as non-numeric. Blank strings are 0.
    """
    if isinstance(value, bool):
        return float(value)
    if isinstance(value, (int, float)):
        return float(value)
    if value is None:
        return math.nan
    if isinstance(value, str):
        s = value.strip()
        if not s:
            return 0.0
        try:
            return float(s)
        except ValueError:
            return math.nan
    return math.nan


def matches(row: Row, flt: ChartFilter) -> bool:
    actual = get_value_by_path(row, flt.field)
    expected = flt.value
    op = flt.op

    if op == "eq":
        return actual == expected
    if op == "neq":
        return actual != expected
    if op == "contains":
        return isinstance(actual, str) and str(expected).lower() in actual.lower()
    if op == "in":
        return isinstance(expected, list) and actual in expected

    left, right = _to_float(actual), _to_float(expected)
    if op == "gt":
        return left > right
    if op == "gte":
        return left >= right
    if op == "lt":
        return left < right
    if op == "lte":
        return left <= right
    return True


def apply_filters(rows: Sequence[Row], filters: Optional[List[ChartFilter]]) -> List[Row]:
    """Keep rows passing every filter (logical AND). No filters keeps all rows."""
    if not filters:
        return list(rows)
    return [row for row in rows if all(matches(row, f) for f in filters)]
