"""
Chart option builder - turns a chart spec plus shaped data into an ECharts option.
"""
import logging
import math
from collections import OrderedDict
from typing import Any, Dict, List, Optional, Sequence

from manifest_viewer.schemas.chart import ROW_LEVEL_CHART_TYPES, ChartPoint, ChartRender, ChartSpec
from manifest_viewer.schemas.manifest import ManifestData
from manifest_viewer.services.chart_data import (
    UNKNOWN_LABEL,
    generate_chart_data,
    get_source_rows,
    resolve_numeric,
    stringify_key,
)
from manifest_viewer.services.chart_filters import apply_filters
from manifest_viewer.services.field_access import get_value_by_path, normalize_spec_fields, safe_number

logger = logging.getLogger(__name__)

AXIS_LABEL_COLOR = "#cbd5e1"
SPLIT_LINE_COLOR = "#334155"
PALETTE = ["#22d3ee", "#60a5fa", "#34d399", "#fbbf24", "#f472b6", "#a78bfa"]
DEFAULT_SCATTER_SIZE = 8
SCATTER_SIZE_RANGE = (6, 40)
DATA_ZOOM_THRESHOLD = 12


def guess_unit(spec: Optional[ChartSpec], manifest: Optional[ManifestData] = None) -> str:
    if spec is None:
        return ""
    if spec.unit:
        return spec.unit
    field = (spec.y_field or "").lower()
    if "weight" in field:
        return manifest.total_weight.unit if manifest and manifest.total_weight.unit else "kg"
    if "pieces" in field:
        return "pcs"
    return ""


def to_title(field: Optional[str]) -> str:
    if not field:
        return ""
    return " ".join(word.capitalize() for word in field.replace(".", " ").replace("_", " ").split())


def format_with_unit(value: Any, unit: Optional[str] = None) -> str:
    n = safe_number(value)
    text = f"{n:,.2f}".rstrip("0").rstrip(".")
    return f"{text} {unit}" if unit else text


def _axis_formatter(unit: str) -> str:
    return f"{{value}} {unit}" if unit else "{value}"


def _common_option(unit: str) -> Dict[str, Any]:
    return {
        "tooltip": {
            "trigger": "item",
            "backgroundColor": "#0f172a",
            "borderColor": SPLIT_LINE_COLOR,
            "textStyle": {"color": "#e2e8f0"},
            "valueFormatter": _axis_formatter(unit),
        },
        "grid": {"top": "20%", "right": 16, "bottom": "20%", "left": 64},
        "textStyle": {"fontFamily": "Inter, ui-sans-serif, system-ui"},
        "color": list(PALETTE),
        "toolbox": {"right": 12, "feature": {"saveAsImage": {}, "restore": {}, "dataView": {"readOnly": True}}},
        "animation": True,
        "animationDuration": 600,
        "animationEasing": "cubicOut",
    }


def _category_axis(categories: List[str], rotate: int = 45) -> Dict[str, Any]:
    return {
        "type": "category",
        "data": categories,
        "axisLabel": {"rotate": rotate, "color": AXIS_LABEL_COLOR, "interval": 0, "hideOverlap": True},
        "axisLine": {"lineStyle": {"color": SPLIT_LINE_COLOR}},
    }


def _value_axis(unit: str = "") -> Dict[str, Any]:
    return {
        "type": "value",
        "axisLabel": {"color": AXIS_LABEL_COLOR, "formatter": _axis_formatter(unit)},
        "splitLine": {"lineStyle": {"color": SPLIT_LINE_COLOR}},
    }


def _data_zoom(count: int) -> Optional[List[Dict[str, Any]]]:
    if count > DATA_ZOOM_THRESHOLD:
        return [{"type": "slider", "bottom": 24}, {"type": "inside"}]
    return None


def _cell_label(value: Any) -> str:
    return stringify_key(value) or UNKNOWN_LABEL


def no_data_option(title: str) -> Dict[str, Any]:
    """Placeholder option shown instead of an empty chart."""
    return {
        "title": {"text": title, "left": "center", "textStyle": {"color": AXIS_LABEL_COLOR}},
        "graphic": {
            "type": "text",
            "left": "center",
            "top": "middle",
            "style": {"text": "No data available for this chart", "fill": AXIS_LABEL_COLOR, "fontSize": 14},
        },
        "series": [],
    }


def bin_values(values: Sequence[float], bin_count: int) -> Dict[str, Any]:
    """
    Equal-width histogram over [min(0, data-min), max(1, data-max)].

    A value lands in bucket floor((v - min) / step), clamped into range, so
    the upper boundary falls into the last bucket.
    """
    bins = max(1, int(bin_count))
    low = min([*values, 0])
    high = max([*values, 1])
    step = (high - low) / bins or 1
    counts = [0] * bins
    for v in values:
        idx = math.floor((v - low) / step)
        counts[min(max(idx, 0), bins - 1)] += 1
    edges = [low + i * step for i in range(bins + 1)]
    return {"counts": counts, "edges": edges, "step": step}


def _build_stacked_bar(spec: ChartSpec, rows: List[Dict[str, Any]], common: Dict[str, Any], unit: str) -> Dict[str, Any]:
    categories: List[str] = []
    series_map: "OrderedDict[str, Dict[str, float]]" = OrderedDict()
    y_field = spec.y_field or "value"
    for row in rows:
        cat = _cell_label(get_value_by_path(row, spec.x_field))
        series_value = get_value_by_path(row, spec.series_field or "series")
        series_name = stringify_key(series_value) or "other"
        cells = series_map.setdefault(series_name, {})
        cells[cat] = cells.get(cat, 0.0) + resolve_numeric(row, y_field)
        if cat not in categories:
            categories.append(cat)

    series = [
        {
            "name": name,
            "type": "bar",
            "stack": "total" if spec.stack is not False else None,
            "emphasis": {"focus": "series"},
            "data": [cells.get(c, 0.0) for c in categories],
        }
        for name, cells in series_map.items()
    ]
    return {
        **common,
        "legend": {"top": 0, "textStyle": {"color": AXIS_LABEL_COLOR}},
        "xAxis": _category_axis(categories),
        "yAxis": _value_axis(unit),
        "dataZoom": _data_zoom(len(categories)),
        "series": series,
    }


def _build_scatter(spec: ChartSpec, rows: List[Dict[str, Any]], common: Dict[str, Any], unit: str) -> Dict[str, Any]:
    y_field = spec.y_field or "value"
    points = []
    for row in rows:
        x = safe_number(get_value_by_path(row, spec.x_field))
        y = safe_number(get_value_by_path(row, y_field))
        size = safe_number(get_value_by_path(row, spec.size_field)) if spec.size_field else DEFAULT_SCATTER_SIZE
        name = get_value_by_path(row, "awb_number") or get_value_by_path(row, "hawb_number") or ""
        points.append({"value": [x, y, size], "name": str(name)})
    option = {
        **common,
        "xAxis": {**_value_axis(), "name": to_title(spec.x_field)},
        "yAxis": {**_value_axis(unit), "name": to_title(y_field)},
        "series": [{"type": "scatter", "symbolSize": DEFAULT_SCATTER_SIZE, "data": points}],
    }
    if spec.size_field:
        sizes = [p["value"][2] for p in points]
        option["visualMap"] = {
            "show": False,
            "dimension": 2,
            "min": min(sizes, default=0.0),
            "max": max(sizes, default=0.0),
            "inRange": {"symbolSize": list(SCATTER_SIZE_RANGE)},
        }
    return option


def _build_histogram(spec: ChartSpec, rows: List[Dict[str, Any]], common: Dict[str, Any]) -> Dict[str, Any]:
    values = [safe_number(get_value_by_path(row, spec.x_field)) for row in rows]
    bins = max(5, min(spec.bin_count or 12, 50))
    result = bin_values(values, bins)
    edges = result["edges"]
    labels = [f"{edges[i]:.0f}–{edges[i + 1]:.0f}" for i in range(bins)]
    return {
        **common,
        "xAxis": _category_axis(labels),
        "yAxis": _value_axis(),
        "series": [{"type": "bar", "data": result["counts"]}],
    }


def _build_heatmap(spec: ChartSpec, rows: List[Dict[str, Any]], common: Dict[str, Any]) -> Dict[str, Any]:
    y_cat_field = spec.y_category_field or "uld_id"
    value_field = spec.value_field or spec.y_field or "weight.value"
    x_cats: List[str] = []
    y_cats: List[str] = []
    cells: Dict[tuple, float] = {}
    for row in rows:
        x = _cell_label(get_value_by_path(row, spec.x_field))
        y = _cell_label(get_value_by_path(row, y_cat_field))
        if x not in x_cats:
            x_cats.append(x)
        if y not in y_cats:
            y_cats.append(y)
        cells[(x, y)] = cells.get((x, y), 0.0) + resolve_numeric(row, value_field)

    grid = [
        [i, j, cells.get((x, y), 0.0)]
        for i, x in enumerate(x_cats)
        for j, y in enumerate(y_cats)
    ]
    max_value = max((cell[2] for cell in grid), default=0.0)
    return {
        **common,
        "xAxis": {"type": "category", "data": x_cats, "axisLabel": {"color": AXIS_LABEL_COLOR, "rotate": 45, "hideOverlap": True}},
        "yAxis": {"type": "category", "data": y_cats, "axisLabel": {"color": AXIS_LABEL_COLOR}},
        "visualMap": {
            "min": 0,
            "max": max_value,
            "calculable": True,
            "orient": "vertical",
            "right": 10,
            "top": "middle",
            "textStyle": {"color": AXIS_LABEL_COLOR},
        },
        "series": [{"type": "heatmap", "data": grid}],
    }


def build_treemap_tree(spec: ChartSpec, rows: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Parent -> child hierarchy; parents with no positive total or no children are dropped."""
    parents: "OrderedDict[str, Dict[str, Any]]" = OrderedDict()
    dropped = 0
    for row in rows:
        parent = stringify_key(get_value_by_path(row, spec.parent_field or "awb_number"))
        child = stringify_key(get_value_by_path(row, spec.child_field or "hawb_number"))
        raw = get_value_by_path(row, spec.value_field or "actual_weight_kg")
        value = safe_number(raw, default=math.nan) if raw is not None else 0.0
        if not parent or not child or not math.isfinite(value):
            dropped += 1
            continue
        node = parents.setdefault(parent, {"name": parent, "value": 0.0, "children": []})
        node["children"].append({"name": child, "value": max(0.0, value)})
        node["value"] += max(0.0, value)
    if dropped:
        logger.debug("Treemap dropped %d of %d rows", dropped, len(rows))
    tree = [node for node in parents.values() if node["value"] > 0 and node["children"]]
    tree.sort(key=lambda n: n["value"], reverse=True)
    return tree


def build_chart_option(
    spec: ChartSpec,
    data: List[Dict[str, Any]],
    manifest: Optional[ManifestData] = None,
) -> Dict[str, Any]:
    """
    Renderer option for a normalized spec.

    bar/line/pie consume the shaped ``data``; the row-level chart types
    (stacked_bar, scatter, histogram, heatmap, treemap) re-read the filtered
    source rows from ``manifest``.
    """
    unit = guess_unit(spec, manifest)
    common = _common_option(unit)
    chart_type = spec.chart_type

    if chart_type in ROW_LEVEL_CHART_TYPES:
        source = "hawbs" if chart_type == "treemap" else spec.source
        rows = apply_filters(get_source_rows(manifest, source), spec.filters)
        if chart_type == "stacked_bar":
            return _build_stacked_bar(spec, rows, common, unit)
        if chart_type == "scatter":
            return _build_scatter(spec, rows, common, unit)
        if chart_type == "histogram":
            return _build_histogram(spec, rows, common)
        if chart_type == "heatmap":
            return _build_heatmap(spec, rows, common)
        return {
            **common,
            "series": [{
                "type": "treemap",
                "roam": True,
                "leafDepth": 1,
                "breadcrumb": {"show": True},
                "label": {"show": True},
                "data": build_treemap_tree(spec, rows),
            }],
        }

    if chart_type == "pie":
        return {
            **common,
            "legend": {"bottom": 0, "textStyle": {"color": AXIS_LABEL_COLOR}},
            "series": [{
                "type": "pie",
                "radius": ["30%", "70%"],
                "avoidLabelOverlap": True,
                "label": {"show": False, "color": AXIS_LABEL_COLOR},
                "labelLine": {"show": False},
                "emphasis": {"scale": True, "itemStyle": {"shadowBlur": 10, "shadowColor": "rgba(0,0,0,0.25)"}},
                "data": [{"name": d["name"], "value": d["value"]} for d in data],
            }],
        }

    return {
        **common,
        "xAxis": _category_axis([d["name"] for d in data]),
        "yAxis": _value_axis(unit),
        "dataZoom": _data_zoom(len(data)),
        "series": [{
            "type": "line" if chart_type == "line" else "bar",
            "data": [d["value"] for d in data],
            "smooth": chart_type == "line",
            "emphasis": {"focus": "series"},
        }],
    }


def _option_is_empty(spec: ChartSpec, option: Dict[str, Any], data: List[Dict[str, Any]]) -> bool:
    if spec.chart_type not in ROW_LEVEL_CHART_TYPES:
        return not data
    series = option.get("series") or []
    if spec.chart_type == "stacked_bar":
        return not series
    return not series or not series[0].get("data") or (
        spec.chart_type == "histogram" and not any(series[0]["data"])
    )


def render_chart(manifest: Optional[ManifestData], spec: ChartSpec, title: Optional[str] = None) -> ChartRender:
    """Normalize, shape and build a chart; empty datasets yield a no-data placeholder."""
    spec_n = normalize_spec_fields(spec)
    data = generate_chart_data(manifest, spec_n)
    chart_title = title or spec.title or f"{to_title(spec_n.y_field)} by {to_title(spec_n.x_field)}"
    option = build_chart_option(spec_n, data, manifest)
    empty = _option_is_empty(spec_n, option, data)
    if empty:
        logger.warning("Chart '%s' has no data; rendering placeholder", chart_title)
        option = no_data_option(chart_title)
    return ChartRender(
        title=chart_title,
        spec=spec_n,
        data=[ChartPoint(**d) for d in data],
        option=option,
        empty=empty,
    )
