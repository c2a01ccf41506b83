"""
Client for the external manifest API.

The API key stays server side; the browser only talks to our /api routes.
"""
import logging
import time
from typing import Any, Dict, List, Optional, Tuple

import httpx

from manifest_viewer.config.settings import settings
from manifest_viewer.schemas.manifest import ManifestFilters

logger = logging.getLogger(__name__)

AUTH_PREFIX = "users API-Key "
BACKEND_ERROR_MESSAGE = "An error occurred while calling the backend API."

# Optional filters forwarded only when non-empty, in upstream order
OPTIONAL_FILTER_KEYS = [
    "manifestNo",
    "flightNo",
    "dateFrom",
    "dateTo",
    "pointOfLoading",
    "pointOfUnloading",
    "ownerOrOperator",
    "registration",
]


class UpstreamAPIError(Exception):
    """Failure talking to the external API, carrying the status to forward."""

    def __init__(self, status_code: int, message: str, details: Optional[str] = None, error: Optional[str] = None):
        super().__init__(message)
        self.status_code = status_code
        self.message = message
        self.details = details
        self.error = error

    def to_body(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {"message": self.message}
        if self.details is not None:
            body["details"] = self.details
        if self.error is not None:
            body["error"] = self.error
        return body


def build_manifest_query(filters: ManifestFilters) -> List[Tuple[str, str]]:
    """Query parameters for the list call, with paging and sort defaults."""
    params = []
    for key in OPTIONAL_FILTER_KEYS:
        value = getattr(filters, key)
        if value:
            params.append((key, str(value)))
    params.append(("page", str(filters.page or 1)))
    params.append(("pageSize", str(filters.pageSize or 25)))
    params.append(("sortBy", filters.sortBy or "createdAt"))
    params.append(("sortDir", filters.sortDir or "desc"))
    return params


def authorization_header(raw_key: str) -> str:
    return raw_key if raw_key.startswith(AUTH_PREFIX) else f"{AUTH_PREFIX}{raw_key}"


class ManifestApiClient:
    def __init__(
        self,
        api_key: str,
        base_url: str = settings.manifest_api_base_url,
        timeout: float = settings.manifest_api_timeout,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        if not api_key:
            raise RuntimeError("MANIFEST_API_KEY environment variable not set for API service")
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.transport = transport

    async def _get(self, path: str, params: List[Tuple[str, str]], headers: Dict[str, str]) -> Any:
        url = f"{self.base_url}{path}"
        start_time = time.perf_counter()
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                response = await client.get(url, params=params, headers=headers)
            if response.is_error:
                logger.error("External API Error (%s): %s", response.status_code, response.text)
                raise UpstreamAPIError(
                    status_code=response.status_code,
                    message=f"Error from external API: {response.reason_phrase}",
                    details=response.text,
                )
            data = response.json()
        except UpstreamAPIError:
            raise
        except (httpx.HTTPError, ValueError) as e:
            logger.error("Error fetching from API url %s: %s", url, e)
            raise UpstreamAPIError(status_code=500, message=BACKEND_ERROR_MESSAGE, error=str(e)) from e

        duration = round(time.perf_counter() - start_time, 3)
        logger.info("GET %s -> %s in %.2fs", path, response.status_code, duration)
        return data

    async def get_manifests(self, filters: ManifestFilters) -> Any:
        headers = {
            "Authorization": authorization_header(self.api_key),
            "Content-Type": "application/json",
        }
        return await self._get("/get-manifests", build_manifest_query(filters), headers)

    async def get_manifest(self, manifest_id: str) -> Any:
        headers = {"Authorization": authorization_header(self.api_key)}
        return await self._get("/get-manifest", [("manifestId", manifest_id)], headers)


def get_manifest_client() -> ManifestApiClient:
    """FastAPI dependency; tests override it with a client on a mock transport."""
    try:
        return ManifestApiClient(api_key=settings.manifest_api_key)
    except RuntimeError as e:
        logger.error("Manifest API client not configured: %s", e)
        raise UpstreamAPIError(status_code=500, message=BACKEND_ERROR_MESSAGE, error=str(e)) from e
