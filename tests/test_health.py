from __future__ import annotations


def test_health_ok(app_client):
    _app, client = app_client
    res = client.get("/health")
    assert res.status_code == 200
    data = res.get_json()
    assert data["status"] == "ok"
    assert data["db"] == "ok"
    assert data["workflow"] == "ok"
    assert "time" in data
    assert "version" in data


def test_version(app_client):
    _app, client = app_client
    res = client.get("/version")
    assert res.status_code == 200
    data = res.get_json()
    assert data["env"] == "testing"
    assert "version" in data


def test_security_headers_and_request_id(app_client):
    _app, client = app_client
    res = client.get("/api/v1/auth/me", headers={"X-Request-ID": "req-123"})
    assert res.status_code == 401
    assert res.headers["X-Request-ID"] == "req-123"
    assert res.headers["X-Content-Type-Options"] == "nosniff"
    assert res.headers["Cache-Control"] == "no-store"
    assert res.headers["Pragma"] == "no-cache"
    assert res.get_json()["request_id"] == "req-123"


def test_malformed_request_id_is_replaced(app_client):
    _app, client = app_client
    res = client.get("/health", headers={"X-Request-ID": "bad id with spaces"})
    assert res.headers["X-Request-ID"] != "bad id with spaces"
    assert len(res.headers["X-Request-ID"]) == 16


def test_unknown_route_uses_error_envelope(app_client):
    _app, client = app_client
    res = client.get("/api/v1/nope")
    assert res.status_code == 404
    body = res.get_json()
    assert body["success"] is False
    assert body["error"]["code"] == "HTTP_404"


def test_departments_seeded(app_client):
    app, _client = app_client
    codes = {d["code"] for d in app.extensions["mongo_db"].departments.find({})}
    assert {"OPERATION", "FINANCE", "HR", "ADMIN"} <= codes


def test_non_api_routes_are_cacheable(app_client):
    _app, client = app_client
    res = client.get("/health")
    assert res.headers["X-Frame-Options"] == "DENY"
    assert "Cache-Control" not in res.headers
    assert "Strict-Transport-Security" not in res.headers


def test_resolve_request_id():
    from onboarding.middlewares.request_id import resolve_request_id

    assert resolve_request_id(" abc-123.X_y ") == "abc-123.X_y"
    generated = resolve_request_id("x" * 65)
    assert len(generated) == 16
    assert generated != resolve_request_id(None)
