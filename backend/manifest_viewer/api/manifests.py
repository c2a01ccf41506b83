"""
Manifest proxy endpoints (list, raw document, transformed manifest, file upload).
"""
import json
import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, HTTPException, Request, status, UploadFile, File as FastAPIFile
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from manifest_viewer.schemas.manifest import ManifestData, ManifestFilters
from manifest_viewer.services.manifest_client import ManifestApiClient, get_manifest_client
from manifest_viewer.services.manifest_transform import transform_manifest

router = APIRouter()
logger = logging.getLogger(__name__)

MANIFEST_ID_REQUIRED = "A string manifestId is required."
MAX_UPLOAD_BYTES = 5 * 1024 * 1024
FILE_TOO_LARGE = "File is too large. Maximum size is 5MB."


async def _read_json_body(request: Request) -> Dict[str, Any]:
    if request.method != "POST":
        return {}
    raw = await request.body()
    if not raw:
        return {}
    try:
        body = json.loads(raw)
    except ValueError:
        logger.warning("Ignoring malformed JSON body on %s", request.url.path)
        return {}
    return body if isinstance(body, dict) else {}


def _manifest_id_missing() -> JSONResponse:
    return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content={"message": MANIFEST_ID_REQUIRED})


async def _resolve_manifest_id(request: Request) -> Optional[str]:
    manifest_id = (await _read_json_body(request)).get("manifestId")
    if not manifest_id:
        manifest_id = request.query_params.get("manifestId")
    return manifest_id if isinstance(manifest_id, str) and manifest_id else None


@router.api_route("/get-manifests", methods=["GET", "POST"])
async def get_manifests(
    request: Request,
    client: ManifestApiClient = Depends(get_manifest_client),
):
    """List manifests. Filters come from the JSON body (POST) overlaid by query params."""
    merged = await _read_json_body(request)
    for key, value in request.query_params.items():
        if value and key in ManifestFilters.model_fields:
            merged[key] = value
    try:
        filters = ManifestFilters(**{k: v for k, v in merged.items() if k in ManifestFilters.model_fields})
    except ValidationError as e:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=e.errors(include_url=False),
        )
    return await client.get_manifests(filters)


@router.api_route("/get-manifest", methods=["GET", "POST"])
async def get_manifest(
    request: Request,
    client: ManifestApiClient = Depends(get_manifest_client),
):
    """Raw upstream manifest document."""
    manifest_id = await _resolve_manifest_id(request)
    if not manifest_id:
        return _manifest_id_missing()
    return await client.get_manifest(manifest_id)


@router.get("/manifest-data", response_model=ManifestData)
async def get_manifest_data(
    manifestId: Optional[str] = None,
    client: ManifestApiClient = Depends(get_manifest_client),
):
    """Manifest fetched from upstream and aggregated into the canonical model."""
    if not manifestId:
        return _manifest_id_missing()
    raw = await client.get_manifest(manifestId)
    return transform_manifest(raw)


@router.post("/manifests/transform", response_model=ManifestData)
async def transform_uploaded_manifest(file: UploadFile = FastAPIFile(...)):
    """Transform a saved raw manifest JSON file."""
    content = await file.read(MAX_UPLOAD_BYTES + 1)
    if len(content) > MAX_UPLOAD_BYTES:
        logger.warning("Rejected upload %s: larger than %d bytes", file.filename, MAX_UPLOAD_BYTES)
        raise HTTPException(
            status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
            detail=FILE_TOO_LARGE
        )
    try:
        raw = json.loads(content)
    except ValueError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Invalid JSON in {file.filename}: {str(e)}"
        )
    manifest = transform_manifest(raw)
    logger.info("Transformed uploaded file %s: %d shipments", file.filename, len(manifest.shipments))
    return manifest
