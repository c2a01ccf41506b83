"""
Chart spec, request and render schemas.

Specs usually arrive from LLM output, so every enumerated slot is a Literal
and unknown keys are ignored.
"""
from pydantic import BaseModel, Field
from typing import Any, Dict, List, Literal, Optional

from manifest_viewer.schemas.manifest import ManifestData

ChartSource = Literal["shipments", "hawbs", "ulds"]
ChartType = Literal["bar", "line", "pie", "stacked_bar", "scatter", "histogram", "heatmap", "treemap"]
Aggregate = Literal["sum", "count", "avg"]
FilterOp = Literal["eq", "neq", "contains", "in", "gt", "gte", "lt", "lte"]

ROW_LEVEL_CHART_TYPES = {"stacked_bar", "scatter", "histogram", "heatmap", "treemap"}


class ChartFilter(BaseModel):
    field: str
    op: FilterOp
    value: Any = None


class ChartSpec(BaseModel):
    source: ChartSource = "shipments"
    chart_type: ChartType = Field(default="bar", alias="chartType")
    x_field: Optional[str] = Field(default=None, alias="xField")
    y_field: Optional[str] = Field(default=None, alias="yField")
    y_category_field: Optional[str] = Field(default=None, alias="yCategoryField")
    value_field: Optional[str] = Field(default=None, alias="valueField")
    series_field: Optional[str] = Field(default=None, alias="seriesField")
    size_field: Optional[str] = Field(default=None, alias="sizeField")
    parent_field: Optional[str] = Field(default=None, alias="parentField")
    child_field: Optional[str] = Field(default=None, alias="childField")
    aggregate: Optional[Aggregate] = None
    title: Optional[str] = None
    filters: Optional[List[ChartFilter]] = None
    top_n: Optional[int] = Field(default=None, alias="topN")
    sort: Optional[Literal["asc", "desc"]] = None
    unit: Optional[str] = None
    bin_count: Optional[int] = Field(default=None, alias="binCount")
    stack: Optional[bool] = None

    class Config:
        populate_by_name = True


class ChartPoint(BaseModel):
    name: str
    value: float


class ChartRender(BaseModel):
    title: str
    spec: ChartSpec
    data: List[ChartPoint] = Field(default_factory=list)
    option: Dict[str, Any] = Field(default_factory=dict)
    empty: bool = False

    class Config:
        populate_by_name = True


class ChartRequest(BaseModel):
    manifest: ManifestData
    spec: ChartSpec
    title: Optional[str] = None
