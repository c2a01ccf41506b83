"""
Report endpoints (anomalies, compliance issues, printable summary, PDF, Excel).
"""
import logging

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.responses import FileResponse

from manifest_viewer.schemas.manifest import ManifestData
from manifest_viewer.services.export import build_summary, generate_summary_excel, generate_summary_pdf
from manifest_viewer.services.manifest_client import ManifestApiClient, get_manifest_client
from manifest_viewer.services.manifest_transform import transform_manifest
from manifest_viewer.services.shipment_analysis import analyze_manifest, find_anomalies

router = APIRouter()
logger = logging.getLogger(__name__)


async def _load_manifest(manifest_id: str, client: ManifestApiClient) -> ManifestData:
    return transform_manifest(await client.get_manifest(manifest_id))


@router.get("/{manifest_id}/anomalies")
async def get_anomalies(
    manifest_id: str,
    client: ManifestApiClient = Depends(get_manifest_client)
):
    """Weight mismatches and MAWBs without ULDs."""
    manifest = await _load_manifest(manifest_id, client)
    anomalies = find_anomalies(manifest)
    return {"anomalies": [a.model_dump() for a in anomalies], "count": len(anomalies)}


@router.get("/{manifest_id}/issues")
async def get_issues(
    manifest_id: str,
    client: ManifestApiClient = Depends(get_manifest_client)
):
    """Compliance hints per MAWB."""
    manifest = await _load_manifest(manifest_id, client)
    issues = analyze_manifest(manifest)
    return {
        "issues": {awb: [i.model_dump() for i in items] for awb, items in issues.items()},
        "count": sum(len(items) for items in issues.values()),
    }


@router.get("/{manifest_id}/summary")
async def get_summary(
    manifest_id: str,
    client: ManifestApiClient = Depends(get_manifest_client)
):
    manifest = await _load_manifest(manifest_id, client)
    return build_summary(manifest)


@router.get("/{manifest_id}/excel")
async def download_excel_summary(
    manifest_id: str,
    client: ManifestApiClient = Depends(get_manifest_client)
):
    """Download Excel workbook with shipments, HAWBs and anomalies."""
    manifest = await _load_manifest(manifest_id, client)
    try:
        file_path = generate_summary_excel(manifest)
        return FileResponse(
            file_path,
            media_type="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
            filename=f"manifest_summary_{manifest.manifest_number or manifest_id}.xlsx"
        )
    except Exception as e:
        logger.exception("Excel summary failed for manifest %s", manifest_id)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Error generating Excel summary: {str(e)}"
        )


@router.get("/{manifest_id}/pdf")
async def download_pdf_summary(
    manifest_id: str,
    client: ManifestApiClient = Depends(get_manifest_client)
):
    """Download printable PDF summary."""
    manifest = await _load_manifest(manifest_id, client)
    try:
        file_path = generate_summary_pdf(manifest)
        return FileResponse(
            file_path,
            media_type="application/pdf",
            filename=f"manifest_summary_{manifest.manifest_number or manifest_id}.pdf"
        )
    except Exception as e:
        logger.exception("PDF summary failed for manifest %s", manifest_id)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Error generating PDF summary: {str(e)}"
        )
