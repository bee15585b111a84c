import pytest

from app.boaz.modules.tasks import admin as tasks_admin


@pytest.fixture()
def completed_events(monkeypatch):
    sent = []
    monkeypatch.setattr(tasks_admin, "dispatch_event", lambda s, t, d, source=None: sent.append((t, d["id"])))
    return sent


def _me(api):
    return api.get("/auth/me").json["data"]["user"]


def _task(api, **fields):
    r = api.post("/api/crm/tasks", json={"subject": "Follow up", **fields})
    assert r.status_code == 201, r.json
    return r.json["data"]


def test_create_defaults_owner_to_caller(api):
    me = _me(api)
    t = _task(api, subject="  Call Acme  ", type="call", due_at="2026-11-01T15:00:00Z")
    assert t["subject"] == "Call Acme"
    assert t["status"] == "open"
    assert t["priority"] == "normal"
    assert t["owner_id"] == me["id"]
    assert t["due_at"] == "2026-11-01T15:00:00"

    r = api.post("/api/crm/tasks", json={"subject": "x", "due_at": "next tuesday"})
    assert r.json["error"] == "invalid_due_at"
    r = api.post("/api/crm/tasks", json={"subject": "x", "owner_id": 9999})
    assert r.json["error"] == "invalid_owner"
    r = api.post("/api/crm/tasks", json={"subject": "   "})
    assert r.json["error"] == "invalid_payload"
    r = api.post("/api/crm/tasks", json={"subject": "x", "related_type": "planet"})
    assert r.json["error"] == "invalid_payload"


def test_list_filters_sort_and_paging(api, manager_api):
    manager = _me(manager_api)
    _task(api, subject="Late", due_at="2026-12-01", priority="low")
    _task(api, subject="Soon", due_at="2026-10-20", priority="high")
    _task(api, subject="Undated", priority="normal")
    _task(api, subject="Theirs", owner_id=manager["id"], related_type="account", related_id=7)

    items = api.get("/api/crm/tasks").json["data"]["items"]
    assert [t["subject"] for t in items][:2] == ["Soon", "Late"]
    assert {t["subject"] for t in items[2:]} == {"Undated", "Theirs"}

    items = api.get("/api/crm/tasks?sort=due_at&dir=desc").json["data"]["items"]
    assert [t["subject"] for t in items][:2] == ["Late", "Soon"]

    items = api.get("/api/crm/tasks?sort=priority&dir=desc").json["data"]["items"]
    assert items[0]["subject"] == "Soon"

    mine = manager_api.get("/api/crm/tasks?mine=1").json["data"]
    assert [t["subject"] for t in mine["items"]] == ["Theirs"]
    assert mine["items"][0]["owner_name"] == "Morgan Manager"

    assert api.get("/api/crm/tasks?q=soo").json["data"]["total"] == 1
    assert api.get("/api/crm/tasks?related_type=account&related_id=7").json["data"]["total"] == 1

    page = api.get("/api/crm/tasks?limit=3&page=2").json["data"]
    assert page["total"] == 4
    assert page["page"] == 2
    assert len(page["items"]) == 1


def test_counts_per_related_record(api):
    _task(api, related_type="account", related_id=1)
    _task(api, related_type="account", related_id=1, status="in_progress")
    _task(api, related_type="account", related_id=1, status="completed")
    _task(api, related_type="contact", related_id=1)

    r = api.get("/api/crm/tasks/counts?related_type=account&related_ids=1,2&status=open")
    assert r.json["data"] == {"related_type": "account", "counts": {"1": 2, "2": 0}}
    r = api.get("/api/crm/tasks/counts?related_type=account&related_ids=1")
    assert r.json["data"]["counts"] == {"1": 3}
    r = api.get("/api/crm/tasks/counts?related_type=galaxy")
    assert r.json["error"] == "invalid_related_type"


def test_update_complete_reopen_history(api, completed_events):
    t = _task(api, subject="Draft proposal")

    r = api.put(f"/api/crm/tasks/{t['id']}", json={"priority": "high", "due_at": "2026-11-02T09:00:00"})
    assert r.json["data"]["priority"] == "high"

    r = api.post(f"/api/crm/tasks/{t['id']}/complete")
    assert r.json["data"]["status"] == "completed"
    assert r.json["data"]["completed_at"] is not None
    api.post(f"/api/crm/tasks/{t['id']}/complete")
    assert completed_events == [("task.completed", t["id"])]

    r = api.put(f"/api/crm/tasks/{t['id']}", json={"status": "open"})
    assert r.json["data"]["completed_at"] is None
    api.put(f"/api/crm/tasks/{t['id']}", json={"status": "completed"})
    assert len(completed_events) == 2

    history = api.get(f"/api/crm/tasks/{t['id']}/history").json["data"]["items"]
    assert [h["event"] for h in history] == ["created", "updated", "completed", "reopened", "completed"]
    updated = history[1]["changes"]
    assert updated["priority"] == {"old": "normal", "new": "high"}
    assert updated["due_at"] == {"old": None, "new": "2026-11-02T09:00:00"}
    assert history[0]["actor_email"] == "admin@example.com"


def test_delete_keeps_history(api):
    t = _task(api, subject="Short lived")
    assert api.delete(f"/api/crm/tasks/{t['id']}").json["data"] == {"ok": True}
    assert api.get(f"/api/crm/tasks/{t['id']}").status_code == 404

    history = api.get(f"/api/crm/tasks/{t['id']}/history").json["data"]["items"]
    assert [h["event"] for h in history] == ["created", "deleted"]
    assert api.get("/api/crm/tasks/9999/history").status_code == 404


def test_member_can_read_but_not_write(api, member_api):
    _task(api)
    assert member_api.get("/api/crm/tasks").json["data"]["total"] == 1
    assert member_api.post("/api/crm/tasks", json={"subject": "nope"}).status_code == 403
