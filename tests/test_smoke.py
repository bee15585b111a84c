from sqlalchemy.exc import OperationalError

from conftest import login


def test_health_ok(client):
    r = client.get("/health")
    assert r.status_code == 200
    assert r.json["ok"] is True
    assert client.get("/healthz").status_code == 200


def test_login_me_logout(client):
    r = client.get("/auth/me")
    assert r.status_code == 401
    assert r.json == {"data": None, "error": "unauthorized"}

    api = login(client)
    r = api.get("/auth/me")
    assert r.status_code == 200
    assert r.json["data"]["user"]["email"] == "admin@example.com"
    assert r.json["data"]["csrf_token"] == api.csrf_token

    assert api.post("/auth/logout").status_code == 200
    assert client.get("/auth/me").status_code == 401


def test_login_rejects_bad_password(client):
    r = client.post("/auth/login", json={"email": "admin@example.com", "password": "nope"})
    assert r.status_code == 401
    assert r.json["error"] == "invalid_credentials"


def test_anonymous_api_is_unauthorized(client):
    r = client.get("/api/crm/accounts")
    assert r.status_code == 401
    assert r.json["error"] == "unauthorized"


def test_writes_require_csrf_token(api):
    r = api.client.post("/api/crm/accounts", json={"name": "Acme"})
    assert r.status_code == 400
    assert r.json["error"] == "csrf_invalid"

    r = api.post("/api/crm/accounts", json={"name": "Acme"})
    assert r.status_code == 201


def test_missing_permission_is_forbidden(member_api):
    r = member_api.post("/api/crm/accounts", json={"name": "Acme"})
    assert r.status_code == 403
    assert r.json["error"] == "forbidden"


def test_unknown_route_uses_envelope(api):
    r = api.get("/api/does-not-exist")
    assert r.status_code == 404
    assert r.json == {"data": None, "error": "not_found"}


def test_db_unavailable_maps_to_500(api, monkeypatch):
    from app.boaz.modules.accounts import admin as accounts_admin

    def boom(*args, **kwargs):
        raise OperationalError("SELECT 1", {}, Exception("connection refused"))

    monkeypatch.setattr(accounts_admin, "list_accounts", boom)
    r = api.get("/api/crm/accounts")
    assert r.status_code == 500
    assert r.json["error"] == "db_unavailable"


def test_login_rate_limited_after_five_failures(client):
    for _ in range(5):
        r = client.post("/auth/login", json={"email": "admin@example.com", "password": "nope"})
        assert r.status_code == 401
    r = client.post("/auth/login", json={"email": "admin@example.com", "password": "pw"})
    assert r.status_code == 429
    assert r.json["error"] == "too_many_attempts"
