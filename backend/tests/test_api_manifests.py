"""
Manifest proxy endpoints against a mocked upstream API.
"""
import json


# ── /api/get-manifests ────────────────────────────────────────────────────────

class TestGetManifests:
    def test_get_forwards_list(self, client, upstream_calls):
        resp = client.get("/api/get-manifests")
        assert resp.status_code == 200
        assert resp.json()["docs"][0]["manifestNo"] == "MAN-001"
        request = upstream_calls[-1]
        assert request.headers["Authorization"] == "users API-Key secret-key"
        assert dict(request.url.params) == {
            "page": "1", "pageSize": "25", "sortBy": "createdAt", "sortDir": "desc",
        }

    def test_query_filters_forwarded(self, client, upstream_calls):
        resp = client.get("/api/get-manifests", params={"flightNo": "EK202", "page": 2, "unknown": "x"})
        assert resp.status_code == 200
        params = upstream_calls[-1].url.params
        assert params["flightNo"] == "EK202"
        assert params["page"] == "2"
        assert "unknown" not in params

    def test_post_body_overlaid_by_query(self, client, upstream_calls):
        resp = client.post(
            "/api/get-manifests?flightNo=EK999",
            json={"flightNo": "EK202", "manifestNo": "MAN-001", "pageSize": 50},
        )
        assert resp.status_code == 200
        params = upstream_calls[-1].url.params
        assert params["flightNo"] == "EK999"
        assert params["manifestNo"] == "MAN-001"
        assert params["pageSize"] == "50"

    def test_invalid_sort_dir_rejected(self, client, upstream_calls):
        resp = client.get("/api/get-manifests", params={"sortDir": "sideways"})
        assert resp.status_code == 422
        assert upstream_calls == []

    def test_upstream_error_forwarded(self, client, upstream_routes):
        upstream_routes["/api/get-manifests"] = (401, "bad key")
        resp = client.get("/api/get-manifests")
        assert resp.status_code == 401
        assert resp.json() == {"message": "Error from external API: Unauthorized", "details": "bad key"}


# ── /api/get-manifest ─────────────────────────────────────────────────────────

class TestGetManifest:
    def test_get_by_query(self, client, upstream_calls, raw_manifest):
        resp = client.get("/api/get-manifest", params={"manifestId": "m-1"})
        assert resp.status_code == 200
        assert resp.json() == raw_manifest
        assert upstream_calls[-1].url.params["manifestId"] == "m-1"
        assert upstream_calls[-1].headers["Authorization"] == "users API-Key secret-key"

    def test_post_by_body(self, client, upstream_calls):
        resp = client.post("/api/get-manifest", content=json.dumps({"manifestId": "m-2"}))
        assert resp.status_code == 200
        assert upstream_calls[-1].url.params["manifestId"] == "m-2"

    def test_missing_id(self, client, upstream_calls):
        resp = client.get("/api/get-manifest")
        assert resp.status_code == 400
        assert resp.json() == {"message": "A string manifestId is required."}
        assert upstream_calls == []

    def test_non_string_id_in_body(self, client):
        resp = client.post("/api/get-manifest", json={"manifestId": 42})
        assert resp.status_code == 400

    def test_upstream_not_found(self, client, upstream_routes):
        upstream_routes["/api/get-manifest"] = (404, '{"error":"no such manifest"}')
        resp = client.get("/api/get-manifest", params={"manifestId": "nope"})
        assert resp.status_code == 404
        assert resp.json()["details"] == '{"error":"no such manifest"}'


# ── transformed manifest ──────────────────────────────────────────────────────

def test_manifest_data_is_transformed(client):
    resp = client.get("/api/manifest-data", params={"manifestId": "m-1"})
    assert resp.status_code == 200
    body = resp.json()
    assert body["manifest_number"] == "MAN-001"
    assert body["total_pieces"] == 7
    assert [s["awb_number"] for s in body["shipments"]] == ["176-111", "176-222"]


def test_manifest_data_requires_id(client):
    resp = client.get("/api/manifest-data")
    assert resp.status_code == 400
    assert resp.json() == {"message": "A string manifestId is required."}


def test_transform_uploaded_file(client, raw_manifest):
    resp = client.post(
        "/api/manifests/transform",
        files={"file": ("manifest.json", json.dumps(raw_manifest), "application/json")},
    )
    assert resp.status_code == 200
    assert resp.json()["total_weight"] == {"value": 97.0, "unit": "kg"}


def test_transform_uploaded_file_rejects_bad_json(client):
    resp = client.post("/api/manifests/transform", files={"file": ("broken.json", "{not json", "application/json")})
    assert resp.status_code == 400


def test_transform_uploaded_file_rejects_oversized_upload(client):
    payload = json.dumps({"doc": {"padding": "x" * (6 * 1024 * 1024)}})
    resp = client.post("/api/manifests/transform", files={"file": ("huge.json", payload, "application/json")})
    assert resp.status_code == 413
    assert resp.json() == {"detail": "File is too large. Maximum size is 5MB."}


# ── misc ──────────────────────────────────────────────────────────────────────

def test_unknown_api_path(client):
    resp = client.get("/api/get-everything")
    assert resp.status_code == 404
    assert resp.json() == {"message": "Endpoint not found."}


def test_root_and_health(client):
    assert client.get("/health").json() == {"status": "healthy"}
    assert client.get("/").status_code == 200
