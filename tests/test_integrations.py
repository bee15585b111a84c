import hashlib
import hmac
import json

import pytest

from app.boaz.modules.integrations.webhook_client import WebhookClient, WebhookError, WebhookResponse


@pytest.fixture()
def outbox(monkeypatch):
    """Captures outgoing webhook POSTs; urls containing 'down' fail in transport."""
    sent = []

    def fake_post(self, url, body, headers):
        if "down" in url:
            raise WebhookError("fetch_failed: refused")
        sent.append({"url": url, "body": body.decode("utf-8"), "headers": headers})
        return WebhookResponse(status=200 if "ok" in url else 500, text="thanks")

    monkeypatch.setattr(WebhookClient, "post", fake_post)
    return sent


def _hook(api, **fields):
    r = api.post("/api/integrations/webhooks", json={"name": "Hook", "url": "https://ok.example.com/in", **fields})
    assert r.status_code == 201, r.json
    return r.json["data"]


def test_webhook_crud_masks_secret(api):
    hook = _hook(api, secret="s3cret")
    assert hook["secret"] == "********"
    assert hook["events"] == ["*"]

    r = api.post("/api/integrations/webhooks", json={"name": "Bad", "url": "ftp://nope"})
    assert r.json["error"] == "invalid_payload"

    r = api.put(f"/api/integrations/webhooks/{hook['id']}", json={"events": ["task.completed"], "secret": ""})
    assert r.json["data"]["events"] == ["task.completed"]
    assert r.json["data"]["secret"] is None

    assert len(api.get("/api/integrations/webhooks").json["data"]["items"]) == 1
    assert api.delete(f"/api/integrations/webhooks/{hook['id']}").json["data"] == {"ok": True}
    assert api.get("/api/integrations/webhooks").json["data"]["items"] == []


def test_events_catalog(api):
    events = api.get("/api/integrations/events").json["data"]["events"]
    assert "contract.signed" in events
    assert "task.completed" in events


def test_test_ping_signs_payload_and_records_delivery(api, outbox):
    hook = _hook(api, secret="s3cret")
    r = api.post(f"/api/integrations/webhooks/{hook['id']}/test")
    data = r.json["data"]
    assert data["attempted"] == 1
    assert data["webhook"]["last_delivery_ok"] is True
    assert data["webhook"]["last_delivery_status"] == 200

    (msg,) = outbox
    headers = msg["headers"]
    assert headers["X-Boaz-Event"] == "test.ping"
    expected = hmac.new(
        b"s3cret", f"{headers['X-Boaz-Timestamp']}.{msg['body']}".encode("utf-8"), hashlib.sha256
    ).hexdigest()
    assert headers["X-Boaz-Signature"] == f"v1={expected}"
    envelope = json.loads(msg["body"])
    assert envelope["type"] == "test.ping"
    assert envelope["delivery_id"] == headers["X-Boaz-Delivery"]
    assert envelope["data"]["requested_by"] == "admin@example.com"

    deliveries = api.get(f"/api/integrations/webhooks/{hook['id']}/deliveries").json["data"]["items"]
    assert [(d["id"], d["ok"], d["source"]) for d in deliveries] == [(headers["X-Boaz-Delivery"], True, "manual_test")]


def test_failed_deliveries_are_recorded_not_raised(api, outbox):
    broken = _hook(api, name="Broken", url="https://fail.example.com/in")
    down = _hook(api, name="Down", url="https://down.example.com/in")

    api.post(f"/api/integrations/webhooks/{broken['id']}/test")
    r = api.post(f"/api/integrations/webhooks/{down['id']}/test")
    assert r.status_code == 200
    assert r.json["data"]["webhook"]["last_delivery_error"] == "fetch_failed: refused"

    (d,) = api.get(f"/api/integrations/webhooks/{broken['id']}/deliveries").json["data"]["items"]
    assert d["ok"] is False
    assert d["status"] == 500
    assert d["response_text"] == "thanks"


def test_domain_events_reach_subscribed_hooks_only(api, outbox):
    _hook(api, name="Tasks", url="https://ok.example.com/tasks", events=["task.completed"])
    _hook(api, name="Social", url="https://ok.example.com/social", events=["social.post.published"])
    _hook(api, name="Paused", url="https://ok.example.com/paused", is_active=False)

    task = api.post("/api/crm/tasks", json={"subject": "Ship it"}).json["data"]
    api.post(f"/api/crm/tasks/{task['id']}/complete")

    assert [m["url"] for m in outbox] == ["https://ok.example.com/tasks"]
    envelope = json.loads(outbox[0]["body"])
    assert envelope["type"] == "task.completed"
    assert envelope["data"]["id"] == task["id"]
    assert "X-Boaz-Signature" not in outbox[0]["headers"]


def test_api_key_lifecycle(app, api):
    r = api.post("/api/integrations/api-keys", json={"name": "Zapier"})
    assert r.status_code == 201
    created = r.json["data"]
    full = created["api_key"]
    assert full.startswith("boaz_sk_")
    assert created["prefix"] == full[:12]
    assert created["scopes"] == ["*"]

    listed = api.get("/api/integrations/api-keys").json["data"]["items"]
    assert "api_key" not in listed[0]

    machine = app.test_client()
    r = machine.post("/api/crm/tasks", json={"subject": "From Zapier"}, headers={"X-Boaz-Api-Key": full})
    assert r.status_code == 201, r.json
    r = machine.get("/api/crm/tasks", headers={"Authorization": f"Bearer {full}"})
    assert r.json["data"]["total"] == 1
    assert api.get("/api/integrations/api-keys").json["data"]["items"][0]["last_used_at"] is not None

    r = machine.get("/api/crm/tasks", headers={"X-Boaz-Api-Key": "boaz_sk_wrong"})
    assert r.status_code == 401
    assert r.json["error"] == "invalid_api_key"

    api.delete(f"/api/integrations/api-keys/{created['id']}")
    assert api.get("/api/integrations/api-keys").json["data"]["items"] == []
    r = machine.get("/api/crm/tasks", headers={"X-Boaz-Api-Key": full})
    assert r.status_code == 401


def test_integrations_require_superuser(manager_api):
    assert manager_api.get("/api/integrations/webhooks").status_code == 403
    assert manager_api.post("/api/integrations/api-keys", json={"name": "x"}).status_code == 403
