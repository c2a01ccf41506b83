from .manifest import (
    Weight,
    ULDContent,
    HouseShipment,
    Shipment,
    FlightDetails,
    ManifestData,
    ManifestSummary,
    GetManifestsResponse,
    ManifestFilters,
    SelectedULD,
    SelectedHouse,
    SelectedItem,
)
from .chart import ChartFilter, ChartSpec, ChartPoint, ChartRender, ChartRequest
from .assistant import ChatRequest, ChatResponse, QuickAction, RunActionRequest, RunActionResponse

__all__ = [
    "Weight",
    "ULDContent",
    "HouseShipment",
    "Shipment",
    "FlightDetails",
    "ManifestData",
    "ManifestSummary",
    "GetManifestsResponse",
    "ManifestFilters",
    "SelectedULD",
    "SelectedHouse",
    "SelectedItem",
    "ChartFilter",
    "ChartSpec",
    "ChartPoint",
    "ChartRender",
    "ChartRequest",
    "ChatRequest",
    "ChatResponse",
    "QuickAction",
    "RunActionRequest",
    "RunActionResponse",
]
