import pytest
from werkzeug.security import generate_password_hash

from app.boaz import create_app
from app.boaz.auth import login_throttle
from app.boaz.db import session_scope
from app.boaz.models import Base, Permission, Role, User

MANAGER_PERMISSIONS = (
    "crm.view",
    "crm.edit",
    "support.view",
    "support.edit",
    "contracts.view",
    "contracts.edit",
    "accounting.view",
    "accounting.edit",
    "assets.view",
    "assets.edit",
    "marketing.view",
    "marketing.edit",
)


class ApiClient:
    """Test client wrapper that sends the session's CSRF token on writes."""

    def __init__(self, client, csrf_token: str | None = None):
        self.client = client
        self.csrf_token = csrf_token

    def _headers(self, extra=None):
        headers = dict(extra or {})
        if self.csrf_token:
            headers["X-CSRF-Token"] = self.csrf_token
        return headers

    def get(self, url, **kwargs):
        return self.client.get(url, **kwargs)

    def post(self, url, json=None, headers=None, **kwargs):
        return self.client.post(url, json=json, headers=self._headers(headers), **kwargs)

    def put(self, url, json=None, headers=None, **kwargs):
        return self.client.put(url, json=json, headers=self._headers(headers), **kwargs)

    def patch(self, url, json=None, headers=None, **kwargs):
        return self.client.patch(url, json=json, headers=self._headers(headers), **kwargs)

    def delete(self, url, headers=None, **kwargs):
        return self.client.delete(url, headers=self._headers(headers), **kwargs)


@pytest.fixture(autouse=True)
def _fresh_login_throttle():
    login_throttle.reset()
    yield
    login_throttle.reset()


@pytest.fixture()
def app(tmp_path, monkeypatch):
    monkeypatch.setenv("SECRET_KEY", "test-secret")
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{tmp_path/'test.db'}")
    monkeypatch.setenv("ENV", "test")
    monkeypatch.setenv("STORAGE_BACKEND", "local")
    monkeypatch.setenv("STORAGE_ROOT", str(tmp_path / "storage"))
    monkeypatch.setenv("APP_BASE_URL", "https://boaz.test")
    for k in ("SMTP_HOST", "SMTP_USER", "ALERT_TO", "S3_ENDPOINT", "S3_BUCKET", "S3_ACCESS_KEY_ID", "S3_SECRET_ACCESS_KEY"):
        monkeypatch.delenv(k, raising=False)

    app = create_app()

    engine = app.extensions["sqlalchemy_engine"]
    Base.metadata.create_all(bind=engine)

    with session_scope(app) as s:
        perms = {key: Permission(key=key, name=key) for key in ("*", *MANAGER_PERMISSIONS)}
        admin = Role(key="admin", name="Administrator")
        admin.permissions.append(perms["*"])
        manager = Role(key="manager", name="Manager")
        manager.permissions.extend(perms[k] for k in MANAGER_PERMISSIONS)
        member = Role(key="member", name="Member")
        member.permissions.extend([perms["crm.view"], perms["support.view"]])

        users = [
            ("admin@example.com", "Admin", admin),
            ("manager@example.com", "Morgan Manager", manager),
            ("member@example.com", "Mel Member", member),
        ]
        s.add_all([*perms.values(), admin, manager, member])
        for email, name, role in users:
            u = User(email=email, name=name, password_hash=generate_password_hash("pw"), is_active=True)
            u.roles.append(role)
            s.add(u)

    return app


@pytest.fixture()
def client(app):
    return app.test_client()


def login(client, email: str = "admin@example.com", password: str = "pw") -> ApiClient:
    r = client.post("/auth/login", json={"email": email, "password": password})
    assert r.status_code == 200, r.json
    return ApiClient(client, r.json["data"]["csrf_token"])


@pytest.fixture()
def api(client):
    """Logged in as the superuser."""
    return login(client)


@pytest.fixture()
def manager_api(app):
    return login(app.test_client(), "manager@example.com")


@pytest.fixture()
def member_api(app):
    return login(app.test_client(), "member@example.com")
