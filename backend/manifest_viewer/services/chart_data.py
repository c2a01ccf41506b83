"""
Chart data shaping - flattens the manifest into rows and groups them into {name, value} series.
"""
import logging
from typing import Any, Dict, List, Optional

import pandas as pd

from manifest_viewer.schemas.chart import ChartSpec
from manifest_viewer.schemas.manifest import ManifestData
from manifest_viewer.services.chart_filters import apply_filters
from manifest_viewer.services.field_access import (
    default_category_field,
    get_value_by_path,
    normalize_spec_fields,
    safe_number,
)

logger = logging.getLogger(__name__)

DEFAULT_MAX_POINTS = 20
UNKNOWN_LABEL = "Unknown"

Row = Dict[str, Any]

_PANDAS_AGG = {"sum": "sum", "count": "count", "avg": "mean"}


def stringify_key(value: Any) -> str:
    """Category key for a resolved value; missing/empty values become ''."""
    if value is None or value == "":
        return ""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def get_source_rows(manifest: Optional[ManifestData], source: str) -> List[Row]:
    """Flatten the manifest into one row per shipment, ULD allocation or house shipment."""
    if manifest is None:
        return []
    rows: List[Row] = []
    flight = manifest.flight_details

    if source == "shipments":
        for s in manifest.shipments:
            weight = s.weight.value or 0
            rows.append({
                "awb_number": s.awb_number,
                "pieces": s.pieces,
                "weight_kg": weight,
                "weight": {"value": weight},
                "nature_of_goods": s.nature_of_goods,
                "destination": flight.arrival_airport,
                "origin": flight.departure_airport,
            })
    elif source == "ulds":
        for s in manifest.shipments:
            for u in s.uld_contents:
                weight = u.weight.value or 0
                rows.append({
                    "awb_number": s.awb_number,
                    "uld_id": u.uld_id,
                    "pieces": u.pieces,
                    "weight_kg": weight,
                    "weight": {"value": weight},
                })
    else:
        for s in manifest.shipments:
            for h in s.house_shipments:
                rows.append({
                    "awb_number": s.awb_number,
                    "hawb_number": h.hawb_number,
                    "customer": h.customer,
                    "destination": h.destination,
                    "origin": h.origin,
                    "pieces": h.pieces,
                    "weight_kg": h.actual_weight_kg,
                    "actual_weight_kg": h.actual_weight_kg,
                })
    return rows


def resolve_numeric(row: Row, field: str) -> float:
    """
    Numeric value of ``field`` for aggregation.

    Fallback chain: the field itself, ``<field>.value`` for weight-named
    fields, then ``weight.value`` and ``weight_kg``. The implicit ``value``
    field counts each row as 1.
    """
    raw = get_value_by_path(row, field)
    if raw is None or isinstance(raw, dict):
        if field.endswith("weight"):
            raw = get_value_by_path(row, f"{field}.value")
        if raw is None:
            raw = get_value_by_path(row, "weight.value")
            if raw is None:
                raw = get_value_by_path(row, "weight_kg")
    if raw is None:
        raw = 1 if field == "value" else 0
    return safe_number(raw)


def _aggregate(keys: List[str], values: List[float], aggregate: str) -> List[Dict[str, Any]]:
    if not keys:
        return []
    frame = pd.DataFrame({"name": keys, "value": values})
    grouped = frame.groupby("name", sort=False)["value"].agg(_PANDAS_AGG.get(aggregate, "sum"))
    return [
        {"name": name or UNKNOWN_LABEL, "value": int(value) if aggregate == "count" else float(value)}
        for name, value in grouped.items()
    ]


def generate_chart_data(manifest: Optional[ManifestData], spec: ChartSpec, _retried: bool = False) -> List[Dict[str, Any]]:
    """
    Shape manifest rows into an ordered list of {name, value} points.

    Rows are filtered, grouped by the stringified category field in
    first-seen order and aggregated (sum | count | avg). Results are sorted
    when asked, truncated to topN, or capped at 20 points when no topN is
    given. If most groups end up without a category key, the shaping is
    retried once with the source's default category field.
    """
    spec_n = normalize_spec_fields(spec)
    rows = apply_filters(get_source_rows(manifest, spec_n.source), spec_n.filters)
    x_field = spec_n.x_field
    y_field = spec_n.y_field or "value"
    aggregate = spec_n.aggregate or "sum"

    keys: List[str] = []
    values: List[float] = []
    undefined_names = 0
    for row in rows:
        key = stringify_key(get_value_by_path(row, x_field))
        if not key:
            undefined_names += 1
        keys.append(key)
        values.append(resolve_numeric(row, y_field))

    data = _aggregate(keys, values, aggregate)

    if spec_n.sort:
        data.sort(key=lambda d: d["value"], reverse=spec_n.sort == "desc")
    if spec_n.top_n and spec_n.top_n > 0:
        data = data[:spec_n.top_n]
    elif len(data) > DEFAULT_MAX_POINTS:
        data = data[:DEFAULT_MAX_POINTS]

    if undefined_names:
        logger.warning("Chart rows with no '%s' value: %d of %d", x_field, undefined_names, len(rows))

    if undefined_names > len(data) / 2 and not _retried:
        fallback_x = default_category_field(spec_n.source)
        if fallback_x != x_field:
            logger.warning("Retrying chart data with fallback category field %s (was %s)", fallback_x, x_field)
            return generate_chart_data(manifest, spec_n.model_copy(update={"x_field": fallback_x}), _retried=True)

    if not data:
        logger.warning("Empty chart dataset for spec %s", spec.model_dump(exclude_none=True))
    return data
