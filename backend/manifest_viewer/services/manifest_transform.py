"""
Manifest aggregation - converts a raw upstream manifest document into ManifestData.

The upstream feed is unversioned: masterbills can sit under different keys,
pieces may or may not carry their own container number, and weights arrive
as numbers, numeric strings or nothing at all. Everything here is permissive;
anomalies are logged and defaulted, never raised.
"""
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from manifest_viewer.schemas.manifest import (
    FlightDetails,
    HouseShipment,
    ManifestData,
    Shipment,
    ULDContent,
    Weight,
)
from manifest_viewer.services.field_access import safe_number

logger = logging.getLogger(__name__)

UNKNOWN_ULD = "UNKNOWN-ULD"
MISSING_CONTAINER_ID = "N/A"
WEIGHT_UNIT = "kg"

# Keys that mark a dict as a plausible masterbill when probing unknown arrays
MASTERBILL_MARKER_KEYS = ("masterbillNumber", "housebills", "pieces")


def _as_list(value: Any) -> List[Any]:
    return value if isinstance(value, list) else []


def _as_dict(value: Any) -> Dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _text(value: Any) -> str:
    return "" if value is None else str(value)


def locate_masterbills(container: Dict[str, Any]) -> Tuple[List[Any], Optional[str]]:
    """
    Find the masterbills array of a container.

    Known shapes are tried in priority order (``masterbills`` then
    ``masterbill``). As a last resort the container's own properties are
    probed for the first array of objects whose first element looks like a
    masterbill. Returns the list and the key it was found under.
    """
    for key in ("masterbills", "masterbill"):
        if isinstance(container.get(key), list):
            return container[key], key

    for key, value in container.items():
        if isinstance(value, list) and value and isinstance(value[0], dict):
            if any(marker in value[0] for marker in MASTERBILL_MARKER_KEYS):
                logger.warning("Discovered masterbills under key '%s' by heuristic", key)
                return value, key
    return [], None


@dataclass(frozen=True)
class MasterbillContribution:
    """What a single masterbill adds to its AWB."""
    awb_number: str
    nature_of_goods: str
    pieces: int
    weight_kg: float
    shcs: Tuple[str, ...]
    uld_totals: Tuple[Tuple[str, int, float], ...]
    house_shipments: Tuple[HouseShipment, ...]


@dataclass
class AwbAccumulator:
    nature_of_goods: str
    total_pieces: int = 0
    total_weight_kg: float = 0.0
    uld_totals: Dict[str, List[float]] = field(default_factory=dict)
    house_shipments: List[HouseShipment] = field(default_factory=list)
    shcs: Dict[str, None] = field(default_factory=dict)


def _piece_weight(pieces: List[Any]) -> float:
    return sum(safe_number(_as_dict(p).get("weight")) for p in pieces)


def _allocate_uld_weight(uld_piece_counts: Dict[str, int], total_weight: float) -> Tuple[Tuple[str, int, float], ...]:
    """
    Spread ``total_weight`` across ULDs in proportion to their piece counts.

    Piece count stands in for weight share; pieces of uneven weight will be
    misallocated, but the upstream feed carries no per-ULD weight.
    """
    divisor = sum(uld_piece_counts.values()) or 1
    return tuple(
        (uld_id, pcs, total_weight * pcs / divisor)
        for uld_id, pcs in uld_piece_counts.items()
    )


def build_contribution(
    masterbill: Dict[str, Any],
    default_uld_id: str,
    departure_airport: str,
    arrival_airport: str,
) -> Optional[MasterbillContribution]:
    """Reduce one raw masterbill to its contribution; None when it has no AWB number."""
    awb_number = _text(masterbill.get("masterbillNumber"))
    if not awb_number:
        logger.warning("Skipping masterbill with missing AWB number. Keys: %s", list(masterbill.keys()))
        return None

    pieces = _as_list(masterbill.get("pieces"))
    housebills = [_as_dict(hb) for hb in _as_list(masterbill.get("housebills"))]

    if pieces:
        piece_count = len(pieces)
    else:
        piece_count = sum(len(_as_list(hb.get("pieces"))) for hb in housebills)
    house_weight = sum(_piece_weight(_as_list(hb.get("pieces"))) for hb in housebills)

    shcs = tuple(
        code for code in (_text(_as_dict(s).get("code")).strip() for s in _as_list(masterbill.get("shcs")))
        if code
    )

    uld_piece_counts: Dict[str, int] = {}
    if pieces:
        for piece in pieces:
            uld_id = _text(_as_dict(piece).get("containerNumber")) or default_uld_id
            uld_piece_counts[uld_id] = uld_piece_counts.get(uld_id, 0) + 1
    else:
        uld_piece_counts[default_uld_id] = piece_count

    house_shipments = []
    for hb in housebills:
        hb_pieces = _as_list(hb.get("pieces"))
        hb_weight = _piece_weight(hb_pieces)
        remarks = hb.get("remarks")
        house_shipments.append(HouseShipment(
            hawb_number=_text(hb.get("housebillNumber")),
            customer=_text(hb.get("customer")),
            origin=departure_airport,
            destination=arrival_airport,
            pieces=len(hb_pieces),
            actual_weight_kg=hb_weight,
            # Upstream has no separate chargeable weight
            chargeable_weight_kg=hb_weight,
            remarks=_text(remarks) if remarks is not None else None,
        ))

    logger.debug(
        "AWB %s: %d pcs, %.2fkg across ULDs %s",
        awb_number, piece_count, house_weight, list(uld_piece_counts),
    )
    return MasterbillContribution(
        awb_number=awb_number,
        nature_of_goods=_text(masterbill.get("natureOfGoods")),
        pieces=piece_count,
        weight_kg=house_weight,
        shcs=shcs,
        uld_totals=_allocate_uld_weight(uld_piece_counts, house_weight),
        house_shipments=tuple(house_shipments),
    )


def merge_contribution(accumulators: Dict[str, AwbAccumulator], contribution: MasterbillContribution) -> None:
    """Fold a contribution into the per-AWB accumulators, creating the AWB on first sight."""
    acc = accumulators.get(contribution.awb_number)
    if acc is None:
        acc = AwbAccumulator(nature_of_goods=contribution.nature_of_goods)
        accumulators[contribution.awb_number] = acc
        logger.debug("New AWB %s (%s)", contribution.awb_number, acc.nature_of_goods)

    acc.total_pieces += contribution.pieces
    acc.total_weight_kg += contribution.weight_kg
    for code in contribution.shcs:
        acc.shcs.setdefault(code, None)
    for uld_id, pcs, weight in contribution.uld_totals:
        totals = acc.uld_totals.setdefault(uld_id, [0, 0.0])
        totals[0] += pcs
        totals[1] += weight
    acc.house_shipments.extend(contribution.house_shipments)


def _finalize(awb_number: str, acc: AwbAccumulator) -> Shipment:
    return Shipment(
        awb_number=awb_number,
        pieces=acc.total_pieces,
        weight=Weight(value=acc.total_weight_kg, unit=WEIGHT_UNIT),
        nature_of_goods=acc.nature_of_goods,
        special_handling_codes=list(acc.shcs),
        storage_instructions=None,
        uld_contents=[
            ULDContent(uld_id=uld_id, pieces=int(pcs), weight=Weight(value=weight, unit=WEIGHT_UNIT))
            for uld_id, (pcs, weight) in acc.uld_totals.items()
        ],
        house_shipments=list(acc.house_shipments),
    )


def transform_manifest(api_data: Any) -> ManifestData:
    """
    Convert a raw manifest document into ManifestData.

    Walks containers -> masterbills -> housebills -> pieces, aggregating per
    AWB. Falls back to a top-level ``masterbills`` array only when the
    container walk found no masterbill candidates at all. Manifest totals are
    recomputed from the resulting shipments.
    """
    raw = _as_dict(api_data)
    doc = raw["doc"] if isinstance(raw.get("doc"), dict) else raw
    manifest_info = _as_dict(doc.get("manifest"))
    containers = _as_list(doc.get("containers"))

    departure_airport = _text(manifest_info.get("pointOfLoading"))
    arrival_airport = _text(manifest_info.get("pointOfUnloading"))
    logger.info(
        "Transforming manifest %s: %d containers",
        manifest_info.get("manifestNo", "?"), len(containers),
    )

    accumulators: Dict[str, AwbAccumulator] = {}
    candidates_seen = 0

    for index, container in enumerate(containers, 1):
        container = _as_dict(container)
        uld_id = _text(container.get("containerNumber")) or MISSING_CONTAINER_ID
        masterbills, found_under = locate_masterbills(container)
        logger.debug(
            "Container %d/%d (%s): %d masterbills under %s",
            index, len(containers), uld_id, len(masterbills), found_under,
        )
        candidates_seen += len(masterbills)

        for masterbill in masterbills:
            contribution = build_contribution(_as_dict(masterbill), uld_id, departure_airport, arrival_airport)
            if contribution is not None:
                merge_contribution(accumulators, contribution)

    top_level = _as_list(doc.get("masterbills"))
    if candidates_seen == 0 and top_level:
        logger.warning("Container-level masterbills empty; falling back to top-level masterbills (%d)", len(top_level))
        for masterbill in top_level:
            contribution = build_contribution(_as_dict(masterbill), UNKNOWN_ULD, departure_airport, arrival_airport)
            if contribution is not None:
                merge_contribution(accumulators, contribution)

    shipments = [_finalize(awb, acc) for awb, acc in accumulators.items()]
    total_pieces = sum(s.pieces for s in shipments)
    total_weight = sum(s.weight.value for s in shipments)

    manifest_id = manifest_info.get("id")
    if manifest_id is None:
        manifest_id = manifest_info.get("manifestNo")

    manifest = ManifestData(
        id=_text(manifest_id),
        manifest_number=_text(manifest_info.get("manifestNo")),
        flight_details=FlightDetails(
            flight_number=_text(manifest_info.get("flightNo")),
            departure_airport=departure_airport,
            arrival_airport=arrival_airport,
            departure_date=_text(manifest_info.get("date")),
            arrival_date="",
        ),
        shipments=shipments,
        total_pieces=total_pieces,
        total_weight=Weight(value=total_weight, unit=WEIGHT_UNIT),
    )
    logger.info(
        "Manifest %s transformed: %d shipments, %d pcs, %.2f%s",
        manifest.manifest_number, len(shipments), total_pieces, total_weight, WEIGHT_UNIT,
    )
    return manifest
