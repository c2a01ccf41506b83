"""
Manifest schemas (canonical model produced by the aggregator).
"""
from pydantic import BaseModel, Field
from typing import Annotated, Optional, List, Literal, Union


class Weight(BaseModel):
    value: float = 0.0
    unit: str = "kg"


class ULDContent(BaseModel):
    uld_id: str
    pieces: int = 0
    weight: Weight = Field(default_factory=Weight)


class HouseShipment(BaseModel):
    hawb_number: str = ""
    customer: str = ""
    origin: str = ""
    destination: str = ""
    pieces: int = 0
    actual_weight_kg: float = 0.0
    chargeable_weight_kg: float = 0.0
    remarks: Optional[str] = None


class Shipment(BaseModel):
    awb_number: str
    pieces: int = 0
    weight: Weight = Field(default_factory=Weight)
    nature_of_goods: str = ""
    special_handling_codes: List[str] = Field(default_factory=list)
    storage_instructions: Optional[str] = None
    uld_contents: List[ULDContent] = Field(default_factory=list)
    house_shipments: List[HouseShipment] = Field(default_factory=list)


class FlightDetails(BaseModel):
    flight_number: str = ""
    departure_airport: str = ""
    arrival_airport: str = ""
    departure_date: str = ""
    arrival_date: str = ""


class ManifestData(BaseModel):
    id: str = ""
    manifest_number: str = ""
    flight_details: FlightDetails = Field(default_factory=FlightDetails)
    shipments: List[Shipment] = Field(default_factory=list)
    total_pieces: int = 0
    total_weight: Weight = Field(default_factory=Weight)


class ManifestSummary(BaseModel):
    """One row of the upstream manifest list."""
    id: str
    manifestNo: Optional[str] = None
    flightNo: Optional[str] = None
    date: Optional[str] = None
    pointOfLoading: Optional[str] = None
    pointOfUnloading: Optional[str] = None
    totalPieces: Optional[int] = None
    totalWeightKg: Optional[str] = None


class GetManifestsResponse(BaseModel):
    docs: List[ManifestSummary] = Field(default_factory=list)
    totalDocs: int = 0
    limit: int = 25
    totalPages: int = 0
    page: int = 1
    pagingCounter: Optional[int] = None
    hasPrevPage: bool = False
    hasNextPage: bool = False
    prevPage: Optional[int] = None
    nextPage: Optional[int] = None


class ManifestFilters(BaseModel):
    """List filters accepted by the proxy; names follow the upstream query string."""
    manifestNo: Optional[str] = None
    flightNo: Optional[str] = None
    dateFrom: Optional[str] = None
    dateTo: Optional[str] = None
    pointOfLoading: Optional[str] = None
    pointOfUnloading: Optional[str] = None
    ownerOrOperator: Optional[str] = None
    registration: Optional[str] = None
    page: Optional[int] = None
    pageSize: Optional[int] = None
    sortBy: Optional[str] = None
    sortDir: Optional[Literal["asc", "desc"]] = None


# Selection made in the detail view. The kind is fixed when the selection is
# built, never inferred from which fields happen to be present.

class SelectedULD(BaseModel):
    kind: Literal["uld"] = "uld"
    awb_number: str
    uld_id: str
    pieces: int = 0
    weight: Weight = Field(default_factory=Weight)


class SelectedHouse(BaseModel):
    kind: Literal["hawb"] = "hawb"
    awb_number: str
    hawb_number: str
    customer: str = ""
    origin: str = ""
    destination: str = ""
    pieces: int = 0
    actual_weight_kg: float = 0.0
    chargeable_weight_kg: float = 0.0
    remarks: Optional[str] = None


SelectedItem = Annotated[Union[SelectedULD, SelectedHouse], Field(discriminator="kind")]


def select_uld(shipment: Shipment, uld: ULDContent) -> SelectedULD:
    return SelectedULD(
        awb_number=shipment.awb_number,
        uld_id=uld.uld_id,
        pieces=uld.pieces,
        weight=uld.weight,
    )


def select_house(shipment: Shipment, house: HouseShipment) -> SelectedHouse:
    return SelectedHouse(awb_number=shipment.awb_number, **house.model_dump())
