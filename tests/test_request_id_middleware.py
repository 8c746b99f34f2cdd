from __future__ import annotations


def test_preserves_incoming_request_id_header(client):
    incoming_id = "test-request-id-123"
    resp = client.get("/health", headers={"X-Request-ID": incoming_id})

    assert resp.status_code == 200
    assert resp.headers.get("X-Request-ID") == incoming_id


def test_generates_request_id_when_missing(client):
    resp = client.get("/health")

    assert resp.status_code == 200
    generated = resp.headers.get("X-Request-ID")
    assert generated
    assert isinstance(generated, str)

    duration = resp.headers.get("X-Request-Duration-ms")
    assert duration is not None


def test_error_body_carries_request_id(client):
    resp = client.get("/v1/injections/999", headers={"X-Request-ID": "trace-me"})

    assert resp.status_code == 404
    assert resp.json()["error"]["request_id"] == "trace-me"


def test_security_headers_on_every_response(client):
    resp = client.get("/v1/injections")

    assert resp.headers["X-Content-Type-Options"] == "nosniff"
    assert resp.headers["X-Frame-Options"] == "DENY"
    assert resp.headers["Referrer-Policy"] == "strict-origin-when-cross-origin"
    assert "frame-ancestors 'none'" in resp.headers["Content-Security-Policy"]


def test_docs_are_exempt_from_csp(client):
    resp = client.get("/docs")

    assert resp.status_code == 200
    assert "Content-Security-Policy" not in resp.headers
    assert resp.headers["X-Frame-Options"] == "DENY"


def test_health_reports_database(client):
    assert client.get("/health").json() == {"status": "ok", "database": "ok"}
