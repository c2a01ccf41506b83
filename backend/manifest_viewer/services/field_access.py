"""
Field access and normalization for chart rows.

Rows are plain dicts built from the canonical manifest. Chart specs name
fields loosely (``mawb``, ``weight``, ``pcs``); they are mapped onto canonical
dotted paths before lookup.
"""
import logging
import math
from typing import Any, Optional

from pydantic import BaseModel

from manifest_viewer.config.mapping_loader import (
    get_field_alias,
    get_source_default,
    get_treemap_defaults,
)
from manifest_viewer.schemas.chart import ChartSpec

logger = logging.getLogger(__name__)


def safe_number(value: Any, default: float = 0.0) -> float:
    """
    Coerce a raw value to a finite float.

    Numbers pass through, numeric strings are parsed, anything else
    (None, bools, dicts, "abc", NaN) becomes ``default``.
    """
    if isinstance(value, bool) or value is None:
        return default
    if isinstance(value, (int, float)):
        return float(value) if math.isfinite(value) else default
    if isinstance(value, str):
        s = value.strip()
        if not s:
            return default
        try:
            parsed = float(s)
        except ValueError:
            return default
        return parsed if math.isfinite(parsed) else default
    return default


def _numeric_or_none(value: Any) -> Optional[float]:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        s = value.strip()
        if not s:
            return 0.0
        try:
            parsed = float(s)
        except ValueError:
            return None
        return parsed if math.isfinite(parsed) else None
    return None


def _lookup(record: Any, key: str) -> Any:
    if isinstance(record, dict):
        return record.get(key)
    if isinstance(record, BaseModel):
        return getattr(record, key, None)
    return None


def get_value_by_path(record: Any, path: Optional[str]) -> Any:
    """
    Resolve a dotted path ("weight.value") into a nested record.

    Returns None when any segment is missing. A resolved object carrying a
    numeric ``value`` is unwrapped to that number, so ``weight`` and
    ``weight.value`` resolve alike.
    """
    if not path or record is None:
        return None
    result = record
    for key in path.split("."):
        result = _lookup(result, key)
        if result is None:
            return None
    if isinstance(result, (dict, BaseModel)):
        unwrapped = _numeric_or_none(_lookup(result, "value"))
        if unwrapped is not None:
            return unwrapped
    return result


def normalize_field_path(field: Optional[str], source: str) -> Optional[str]:
    """Map a field alias onto its canonical path for ``source``; unknown names pass through."""
    if not field:
        return field
    return get_field_alias(field, source) or field


def default_category_field(source: str) -> str:
    return get_source_default("category", source) or "awb_number"


def default_value_field(source: str) -> str:
    return get_source_default("value", source) or "weight.value"


def normalize_spec_fields(spec: ChartSpec) -> ChartSpec:
    """Return a copy of ``spec`` with aliases resolved and required fields filled in."""
    src = spec.source
    updates = {
        name: normalize_field_path(getattr(spec, name), src)
        for name in (
            "x_field", "y_field", "y_category_field", "value_field",
            "series_field", "size_field", "parent_field", "child_field",
        )
    }

    if not updates["x_field"]:
        updates["x_field"] = default_category_field(src)
    if not updates["y_field"]:
        updates["y_field"] = default_value_field(src)

    if spec.chart_type == "heatmap":
        if not updates["y_category_field"]:
            updates["y_category_field"] = get_source_default("heatmap_y_category", src) or "uld_id"
        if not updates["value_field"]:
            updates["value_field"] = updates["y_field"]
    if spec.chart_type == "stacked_bar" and not updates["series_field"]:
        updates["series_field"] = get_source_default("stack_series", src) or "awb_number"
    if spec.chart_type == "treemap":
        treemap = get_treemap_defaults()
        updates["parent_field"] = updates["parent_field"] or treemap.get("parent", "awb_number")
        updates["child_field"] = updates["child_field"] or treemap.get("child", "hawb_number")
        updates["value_field"] = updates["value_field"] or treemap.get("value", "actual_weight_kg")

    normalized = spec.model_copy(update=updates)
    logger.debug("Normalized chart spec fields: %s -> %s", spec.model_dump(exclude_none=True), updates)
    return normalized
