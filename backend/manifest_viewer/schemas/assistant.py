"""
Assistant (chat + quick action) schemas.
"""
from pydantic import BaseModel, Field
from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from manifest_viewer.schemas.chart import ChartSpec
from manifest_viewer.schemas.manifest import ManifestData, SelectedItem


class WeightDistributionAction(BaseModel):
    type: Literal["weight_distribution"] = "weight_distribution"
    label: str = "Weight distribution"


class AnomalyReportAction(BaseModel):
    type: Literal["anomaly_report"] = "anomaly_report"
    label: str = "Anomaly report"


class PrintSummaryAction(BaseModel):
    type: Literal["print_summary"] = "print_summary"
    label: str = "Printable summary"


class RenderChartAction(BaseModel):
    type: Literal["render_chart"] = "render_chart"
    label: str = "Chart"
    spec: ChartSpec


QuickAction = Annotated[
    Union[WeightDistributionAction, AnomalyReportAction, PrintSummaryAction, RenderChartAction],
    Field(discriminator="type"),
]


class ChatMessage(BaseModel):
    sender: Literal["user", "ai"]
    text: str


class ChatRequest(BaseModel):
    manifest: ManifestData
    question: str
    selected_mawb: Optional[str] = None
    selected_item: Optional[SelectedItem] = None
    history: List[ChatMessage] = Field(default_factory=list)


class ChatResponse(BaseModel):
    text: str
    actions: List[QuickAction] = Field(default_factory=list)


class SuggestionsRequest(BaseModel):
    manifest: ManifestData
    selected_mawb: Optional[str] = None


class SuggestionsResponse(BaseModel):
    actions: List[QuickAction] = Field(default_factory=list)


class RunActionRequest(BaseModel):
    manifest: ManifestData
    action: QuickAction


class RunActionResponse(BaseModel):
    type: str
    title: str
    payload: Dict[str, Any] = Field(default_factory=dict)
