"""
Shared fixtures: raw upstream manifest documents, the transformed manifest,
a TestClient wired to a mocked upstream API, and a fake OpenAI client.
"""
import json
from types import SimpleNamespace

import httpx
import pytest
from fastapi.testclient import TestClient

from manifest_viewer.main import app
from manifest_viewer.services import assistant as assistant_service
from manifest_viewer.services.manifest_client import ManifestApiClient, get_manifest_client
from manifest_viewer.services.manifest_transform import transform_manifest

UPSTREAM_BASE = "https://upstream.test/api"


def _piece(weight, container=None):
    piece = {"weight": weight}
    if container:
        piece["containerNumber"] = container
    return piece


@pytest.fixture
def raw_manifest():
    """
    Two containers. AWB 176-111 appears in both, AWB 176-222 only in the
    second; one masterbill without a number must be skipped.
    """
    return {
        "doc": {
            "manifest": {
                "id": "m-1",
                "manifestNo": "MAN-001",
                "flightNo": "EK202",
                "pointOfLoading": "DXB",
                "pointOfUnloading": "JFK",
                "date": "2025-01-15",
            },
            "containers": [
                {
                    "containerNumber": "AKE1001EK",
                    "masterbills": [
                        {
                            "masterbillNumber": "176-111",
                            "natureOfGoods": "Consolidated",
                            "shcs": [{"code": "PIL"}, {"code": "COL"}],
                            "pieces": [],
                            "housebills": [
                                {
                                    "housebillNumber": "H-1",
                                    "customer": "Acme",
                                    "remarks": "high value electronics",
                                    "pieces": [_piece(5), _piece("7")],
                                },
                            ],
                        },
                        {"masterbillNumber": "", "housebills": [{"pieces": [_piece(100)]}]},
                    ],
                },
                {
                    "containerNumber": "PMC2002EK",
                    "masterbill": [
                        {
                            "masterbillNumber": "176-111",
                            "natureOfGoods": "Electronics",
                            "shcs": [{"code": "PIL"}, {"code": "ELI"}],
                            "pieces": [_piece(0, "PMC2002EK"), _piece(0, "AKE3003EK"), _piece(0)],
                            "housebills": [
                                {"housebillNumber": "H-2", "customer": "Beta", "pieces": [_piece(30), _piece("abc")]},
                                {"housebillNumber": "H-3", "customer": "Beta", "pieces": [_piece(15)]},
                            ],
                        },
                        {
                            "masterbillNumber": "176-222",
                            "natureOfGoods": "Live animals",
                            "shcs": [{"code": "AVI"}],
                            "housebills": [
                                {"housebillNumber": "H-4", "customer": "Zoo", "pieces": [_piece(20), _piece(20)]},
                            ],
                        },
                    ],
                },
            ],
        }
    }


@pytest.fixture
def manifest(raw_manifest):
    return transform_manifest(raw_manifest)


@pytest.fixture
def upstream_calls():
    return []


@pytest.fixture
def upstream_routes(raw_manifest):
    """Path -> (status, body) served by the mock upstream."""
    return {
        "/api/get-manifests": (200, {
            "docs": [{"id": "m-1", "manifestNo": "MAN-001", "flightNo": "EK202"}],
            "totalDocs": 1,
            "limit": 25,
            "totalPages": 1,
            "page": 1,
            "hasPrevPage": False,
            "hasNextPage": False,
        }),
        "/api/get-manifest": (200, raw_manifest),
    }


@pytest.fixture
def mock_transport(upstream_routes, upstream_calls):
    def handler(request: httpx.Request) -> httpx.Response:
        upstream_calls.append(request)
        status_code, body = upstream_routes.get(request.url.path, (404, "not here"))
        if isinstance(body, (dict, list)):
            return httpx.Response(status_code, content=json.dumps(body), headers={"Content-Type": "application/json"})
        return httpx.Response(status_code, text=body)

    return httpx.MockTransport(handler)


@pytest.fixture
def client(mock_transport):
    app.dependency_overrides[get_manifest_client] = lambda: ManifestApiClient(
        api_key="secret-key",
        base_url=UPSTREAM_BASE,
        transport=mock_transport,
    )
    with TestClient(app, raise_server_exceptions=False) as c:
        yield c
    app.dependency_overrides.clear()


class FakeCompletions:
    """Stands in for ``client.chat.completions``; replies are consumed in order."""

    def __init__(self, replies):
        self.replies = list(replies)
        self.calls = []

    def create(self, **kwargs):
        self.calls.append(kwargs)
        reply = self.replies.pop(0) if self.replies else ""
        if isinstance(reply, Exception):
            raise reply
        if kwargs.get("stream"):
            return iter([
                SimpleNamespace(choices=[SimpleNamespace(delta=SimpleNamespace(content=part))])
                for part in reply
            ])
        return SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=reply))])


@pytest.fixture
def fake_openai(monkeypatch):
    """Install a fake OpenAI client; call with the replies it should return."""
    def install(*replies):
        completions = FakeCompletions(replies)
        fake = SimpleNamespace(chat=SimpleNamespace(completions=completions))
        monkeypatch.setattr(assistant_service, "_openai_client", fake)
        return completions

    return install
