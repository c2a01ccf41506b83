"""
Shipment analysis - compliance hints per MAWB and manifest-wide anomaly checks.
"""
import logging
from typing import Any, Dict, List, Literal

from pydantic import BaseModel

from manifest_viewer.schemas.manifest import ManifestData, Shipment

logger = logging.getLogger(__name__)

VAGUE_GOODS_DESCRIPTIONS = ["general cargo", "consolidated", "goods", "samples"]

# Weight mismatch tolerance: absolute kg floor, or share of MAWB weight
MISMATCH_FLOOR_KG = 50
MISMATCH_RATIO = 0.05


class ShipmentIssue(BaseModel):
    id: str
    level: Literal["warning", "info", "critical"]
    message: str
    suggestion: str


class Anomaly(BaseModel):
    awb: str
    issue: str
    details: str = ""


def analyze_shipment(shipment: Shipment) -> List[ShipmentIssue]:
    """Rule-based review of one MAWB."""
    issues: List[ShipmentIssue] = []
    awb = shipment.awb_number
    nature = (shipment.nature_of_goods or "").lower()
    codes = set(shipment.special_handling_codes)

    if any(vague in nature for vague in VAGUE_GOODS_DESCRIPTIONS):
        issues.append(ShipmentIssue(
            id=f"issue-nog-{awb}",
            level="warning",
            message='Vague "Nature of Goods" description.',
            suggestion=(
                "Consider providing a more detailed description to avoid potential customs delays. "
                'For example, instead of "Samples", specify "Apparel Samples".'
            ),
        ))

    if "AVI" in codes:
        issues.append(ShipmentIssue(
            id=f"issue-avi-{awb}",
            level="info",
            message="Shipment contains live animals (AVI).",
            suggestion=(
                "Ensure all IATA Live Animals Regulations (LAR) documentation is complete and attached. "
                "Verify container is compliant."
            ),
        ))

    if "DGR" in codes:
        issues.append(ShipmentIssue(
            id=f"issue-dgr-{awb}",
            level="critical",
            message="Dangerous Goods (DGR) detected.",
            suggestion=(
                "Verify the Shipper's Declaration for Dangerous Goods is accurate and that all "
                "packaging and labeling requirements are met."
            ),
        ))

    if "PIL" in codes and not shipment.storage_instructions:
        issues.append(ShipmentIssue(
            id=f"issue-pil-{awb}",
            level="warning",
            message="Perishable goods (PIL) have no storage instructions.",
            suggestion=(
                "Add specific temperature range and storage instructions to prevent spoilage "
                "and ensure compliance."
            ),
        ))

    if any("high value" in (h.remarks or "").lower() for h in shipment.house_shipments):
        issues.append(ShipmentIssue(
            id=f"issue-val-{awb}",
            level="info",
            message="High-value cargo detected in HAWB remarks.",
            suggestion='Confirm if special security arrangements (e.g., "Secure Storage") are required and in place.',
        ))

    return issues


def analyze_manifest(manifest: ManifestData) -> Dict[str, List[ShipmentIssue]]:
    """Issues keyed by AWB; shipments without issues are omitted."""
    result = {}
    for shipment in manifest.shipments:
        issues = analyze_shipment(shipment)
        if issues:
            result[shipment.awb_number] = issues
    return result


def _format_kg(value: float) -> str:
    return f"{value:g}"


def find_anomalies(manifest: ManifestData) -> List[Anomaly]:
    """
    Manifest-wide checks:
    - MAWB weight disagrees with its HAWBs by more than max(50kg, 5%)
    - MAWB with no ULD association
    """
    rows: List[Anomaly] = []
    for s in manifest.shipments:
        mawb_weight = s.weight.value or 0
        house_weight = sum(h.actual_weight_kg or 0 for h in s.house_shipments)
        delta = abs(mawb_weight - house_weight)
        if delta > max(MISMATCH_FLOOR_KG, mawb_weight * MISMATCH_RATIO):
            rows.append(Anomaly(
                awb=s.awb_number,
                issue="Weight mismatch",
                details=f"MAWB {_format_kg(mawb_weight)}kg vs HAWBs {_format_kg(house_weight)}kg (Δ {_format_kg(delta)}kg)",
            ))
        if not s.uld_contents:
            rows.append(Anomaly(awb=s.awb_number, issue="No ULD association"))
    if rows:
        logger.info("Manifest %s: %d anomalies", manifest.manifest_number, len(rows))
    return rows


def weight_distribution(manifest: ManifestData) -> List[Dict[str, Any]]:
    return [{"awb": s.awb_number, "weight": s.weight.value or 0} for s in manifest.shipments]
