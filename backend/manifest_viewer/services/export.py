"""
Export services for the printable manifest summary (PDF and Excel).
"""
import logging
import re
import time
from pathlib import Path
from typing import Any, Dict, Optional

import pandas as pd
from reportlab.lib import colors
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import getSampleStyleSheet, ParagraphStyle
from reportlab.lib.units import mm
from reportlab.platypus import SimpleDocTemplate, Paragraph, Spacer, Table, TableStyle

from manifest_viewer.config.settings import settings
from manifest_viewer.schemas.manifest import ManifestData
from manifest_viewer.services.shipment_analysis import find_anomalies

logger = logging.getLogger(__name__)

SHIPMENT_COLUMNS = ["MAWB #", "Nature of Goods", "Pieces", "Weight (kg)", "SHCs", "ULDs"]


def _export_dir(export_dir: Optional[Path] = None) -> Path:
    path = Path(export_dir or settings.export_dir)
    path.mkdir(parents=True, exist_ok=True)
    return path


def _file_stem(manifest: ManifestData) -> str:
    key = manifest.manifest_number or manifest.id or "manifest"
    return re.sub(r"[^A-Za-z0-9_-]+", "_", key)


def build_summary(manifest: ManifestData) -> Dict[str, Any]:
    """Printable summary: manifest details plus one row per MAWB."""
    flight = manifest.flight_details
    unit = manifest.total_weight.unit
    return {
        "manifest_number": manifest.manifest_number,
        "flight_number": flight.flight_number,
        "route": f"{flight.departure_airport} → {flight.arrival_airport}",
        "date": flight.departure_date,
        "total_pieces": manifest.total_pieces,
        "total_weight": manifest.total_weight.value,
        "unit": unit,
        "shipments": [
            {
                "awb_number": s.awb_number,
                "nature_of_goods": s.nature_of_goods,
                "pieces": s.pieces,
                "weight": s.weight.value,
            }
            for s in manifest.shipments
        ],
    }


def generate_summary_excel(manifest: ManifestData, export_dir: Optional[Path] = None) -> str:
    """
    Excel workbook with sheets:
    - Summary
    - Shipments
    - HAWBs
    - Anomalies (only when any)
    """
    start_time = time.perf_counter()
    summary = build_summary(manifest)
    file_path = _export_dir(export_dir) / f"manifest_summary_{_file_stem(manifest)}.xlsx"

    with pd.ExcelWriter(file_path, engine="openpyxl") as writer:
        pd.DataFrame({
            "Field": ["Manifest #", "Flight #", "Route", "Date", "Total Pieces", f"Total Weight ({summary['unit']})"],
            "Value": [
                summary["manifest_number"],
                summary["flight_number"],
                summary["route"],
                summary["date"],
                summary["total_pieces"],
                round(summary["total_weight"], 2),
            ],
        }).to_excel(writer, sheet_name="Summary", index=False)

        shipment_rows = [
            {
                "MAWB #": s.awb_number,
                "Nature of Goods": s.nature_of_goods,
                "Pieces": s.pieces,
                "Weight (kg)": round(s.weight.value, 2),
                "SHCs": ", ".join(s.special_handling_codes),
                "ULDs": ", ".join(u.uld_id for u in s.uld_contents),
            }
            for s in manifest.shipments
        ]
        pd.DataFrame(shipment_rows, columns=SHIPMENT_COLUMNS).to_excel(writer, sheet_name="Shipments", index=False)

        house_rows = [
            {
                "MAWB #": s.awb_number,
                "HAWB #": h.hawb_number,
                "Customer": h.customer,
                "Origin": h.origin,
                "Destination": h.destination,
                "Pieces": h.pieces,
                "Actual Weight (kg)": round(h.actual_weight_kg, 2),
                "Chargeable Weight (kg)": round(h.chargeable_weight_kg, 2),
                "Remarks": h.remarks or "",
            }
            for s in manifest.shipments
            for h in s.house_shipments
        ]
        if house_rows:
            pd.DataFrame(house_rows).to_excel(writer, sheet_name="HAWBs", index=False)

        anomalies = find_anomalies(manifest)
        if anomalies:
            pd.DataFrame([a.model_dump() for a in anomalies]).to_excel(writer, sheet_name="Anomalies", index=False)

    duration = round(time.perf_counter() - start_time, 3)
    logger.info(
        "Excel summary generated for manifest %s shipments=%d in %.2fs",
        manifest.manifest_number, len(manifest.shipments), duration,
    )
    return str(file_path)


def generate_summary_pdf(manifest: ManifestData, export_dir: Optional[Path] = None) -> str:
    """PDF printable summary: manifest details and the shipments table."""
    start_time = time.perf_counter()
    summary = build_summary(manifest)
    file_path = _export_dir(export_dir) / f"manifest_summary_{_file_stem(manifest)}.pdf"
    doc = SimpleDocTemplate(str(file_path), pagesize=A4, leftMargin=20 * mm, rightMargin=20 * mm,
                            topMargin=20 * mm, bottomMargin=20 * mm)
    story = []

    styles = getSampleStyleSheet()
    title_style = ParagraphStyle(
        'ManifestTitle',
        parent=styles['Heading1'],
        fontSize=18,
        alignment=1,
        textColor=colors.HexColor('#1a1a1a'),
        spaceAfter=20,
    )

    story.append(Paragraph("Air Cargo Manifest Summary", title_style))
    story.append(Paragraph("Manifest Details", styles['Heading2']))

    unit = summary["unit"]
    details = [
        ["Manifest #:", summary["manifest_number"], "Flight #:", summary["flight_number"]],
        # Standard PDF fonts have no arrow glyph
        ["Route:", summary["route"].replace("→", "->"), "Date:", summary["date"]],
        ["Total Pieces:", f"{summary['total_pieces']:,}", "Total Weight:", f"{summary['total_weight']:,.2f} {unit}"],
    ]
    details_table = Table(details, hAlign='LEFT')
    details_table.setStyle(TableStyle([
        ('FONTNAME', (0, 0), (0, -1), 'Helvetica-Bold'),
        ('FONTNAME', (2, 0), (2, -1), 'Helvetica-Bold'),
        ('FONTSIZE', (0, 0), (-1, -1), 9),
    ]))
    story.append(details_table)
    story.append(Spacer(1, 8 * mm))

    story.append(Paragraph("Shipments", styles['Heading2']))
    rows = [["MAWB #", "Nature of Goods", "Pieces", f"Weight ({unit})"]]
    for s in summary["shipments"]:
        rows.append([s["awb_number"], s["nature_of_goods"], f"{s['pieces']:,}", f"{s['weight']:,.2f}"])
    shipments_table = Table(rows, hAlign='LEFT', repeatRows=1)
    shipments_table.setStyle(TableStyle([
        ('FONTNAME', (0, 0), (-1, 0), 'Helvetica-Bold'),
        ('LINEBELOW', (0, 0), (-1, 0), 1.5, colors.black),
        ('LINEBELOW', (0, 1), (-1, -1), 0.25, colors.grey),
        ('ALIGN', (2, 0), (-1, -1), 'RIGHT'),
        ('FONTNAME', (0, 1), (0, -1), 'Courier'),
        ('FONTSIZE', (0, 0), (-1, -1), 9),
    ]))
    story.append(shipments_table)

    doc.build(story)
    duration = round(time.perf_counter() - start_time, 3)
    logger.info("PDF summary generated for manifest %s in %.2fs", manifest.manifest_number, duration)
    return str(file_path)
