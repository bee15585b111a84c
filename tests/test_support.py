import io
from datetime import datetime, timedelta

import pytest

from app.boaz.api import ApiError
from app.boaz.counters import assign_number
from app.boaz.db import session_scope
from app.boaz.models import Counter
from app.boaz.modules.support.models import SupportTicket


def _ticket(api, **fields):
    body = {"short_description": "Printer on fire", **fields}
    r = api.post("/api/crm/support/tickets", json=body)
    assert r.status_code == 201, r.json
    return r.json["data"]


def test_ticket_create_numbering_and_legacy_title(api):
    t1 = _ticket(api)
    assert t1["ticket_number"] == 200001
    assert t1["status"] == "open"
    assert t1["comments"] == []

    r = api.post("/api/crm/support/tickets", json={"title": "Sent as title"})
    assert r.status_code == 201
    assert r.json["data"]["short_description"] == "Sent as title"
    assert r.json["data"]["ticket_number"] == 200002

    r = api.post("/api/crm/support/tickets", json={"short_description": "   "})
    assert r.status_code == 400
    assert r.json["error"] == "invalid_payload"


def test_ticket_number_realigns_after_counter_falls_behind(app, api):
    for _ in range(3):
        _ticket(api)
    with session_scope(app) as s:
        s.get(Counter, "ticketNumber").seq = 200001

    assert _ticket(api)["ticket_number"] == 200004
    with session_scope(app) as s:
        assert s.get(Counter, "ticketNumber").seq == 200004


def test_ticket_number_gives_up_after_repeated_collisions(app, api):
    _ticket(api)

    def build(number):
        return SupportTicket(ticket_number=200001, short_description="Clash", comments=[])

    with pytest.raises(ApiError) as exc:
        with session_scope(app) as s:
            assign_number(
                s, build, counter="ticketNumber", start=200001, column=SupportTicket.ticket_number, attempts=3
            )
    assert exc.value.code == "duplicate_ticket_number"
    assert exc.value.status == 409
    assert [t["ticket_number"] for t in api.get("/api/crm/support/tickets").json["data"]["items"]] == [200001]


def test_ticket_list_sort_direction(api):
    for _ in range(3):
        _ticket(api)

    def numbers(query):
        items = api.get(f"/api/crm/support/tickets?sort=ticket_number{query}").json["data"]["items"]
        return [t["ticket_number"] for t in items]

    assert numbers("") == [200003, 200002, 200001]
    assert numbers("&dir=asc") == [200001, 200002, 200003]
    assert numbers("&dir=foo") == [200003, 200002, 200001]


def test_ticket_description_is_capped(api):
    t = _ticket(api, description="x" * 3000)
    assert len(t["description"]) == 2500


def test_sla_breach_metrics_and_by_account(api):
    past = (datetime.utcnow() - timedelta(hours=1)).isoformat() + "Z"
    soon = (datetime.utcnow() + timedelta(minutes=30)).isoformat()
    breached = _ticket(api, account_id=7, priority="high", sla_due_at=past)
    _ticket(api, account_id=7, sla_due_at=soon)
    _ticket(api, account_id=8, status="closed", sla_due_at=past)

    assert breached["breached"] is True

    r = api.get("/api/crm/support/tickets/metrics")
    assert r.json["data"] == {"open": 2, "breached": 1, "due_next_60": 1}

    r = api.get("/api/crm/support/tickets?breached=1")
    assert [t["id"] for t in r.json["data"]["items"]] == [breached["id"]]

    r = api.get("/api/crm/support/tickets?due_within=60")
    assert len(r.json["data"]["items"]) == 1

    r = api.get("/api/crm/support/tickets/by-account?account_ids=7,8")
    assert r.json["data"]["items"] == [{"account_id": 7, "open": 2, "high": 1, "breached": 1}]


def test_ticket_update_and_comments(api):
    t = _ticket(api)
    r = api.put(f"/api/crm/support/tickets/{t['id']}", json={"status": "pending", "assignee": "sam@example.com"})
    assert r.status_code == 200
    assert r.json["data"]["status"] == "pending"

    r = api.post(f"/api/crm/support/tickets/{t['id']}/comments", json={"body": "Called the customer"})
    assert r.status_code == 201
    assert r.json["data"]["author"] == "admin@example.com"

    r = api.get(f"/api/crm/support/tickets/{t['id']}")
    assert [c["body"] for c in r.json["data"]["comments"]] == ["Called the customer"]

    r = api.put("/api/crm/support/tickets/9999", json={"status": "closed"})
    assert r.status_code == 404


def test_ticket_attachments_roundtrip(api):
    t = _ticket(api)
    r = api.post(
        f"/api/crm/support/tickets/{t['id']}/attachments",
        data={"file": (io.BytesIO(b"log line"), "error log.txt")},
        content_type="multipart/form-data",
    )
    assert r.status_code == 201, r.json
    att = r.json["data"]
    assert att["filename"] == "error_log.txt"
    assert att["size_bytes"] == 8

    r = api.get(f"/api/crm/support/tickets/{t['id']}/attachments/{att['id']}/download")
    assert r.status_code == 200
    assert r.data == b"log line"

    r = api.get(f"/api/crm/support/tickets/{t['id'] + 1}/attachments/{att['id']}/download")
    assert r.status_code == 404

    r = api.post(f"/api/crm/support/tickets/{t['id']}/attachments", data={}, content_type="multipart/form-data")
    assert r.status_code == 400
    assert r.json["error"] == "file_required"


def test_sla_alert_run_respects_cooldown(app, api, monkeypatch):
    from app.boaz.modules.support import alerts

    sent = []

    def fake_send(to, subject, text, html=None):
        sent.append((to, subject))
        return True

    monkeypatch.setattr(alerts, "send_mail", fake_send)
    app.config["ALERT_TO"] = "ops@example.com"

    soon = (datetime.utcnow() + timedelta(minutes=20)).isoformat()
    _ticket(api, sla_due_at=soon)
    _ticket(api, sla_due_at=(datetime.utcnow() + timedelta(days=2)).isoformat())

    r = api.post("/api/crm/support/alerts/run")
    assert r.json["data"] == {"sent": 1, "candidates": 1}
    assert sent[0][0] == "ops@example.com"

    r = api.post("/api/crm/support/alerts/run")
    assert r.json["data"] == {"sent": 0, "candidates": 0}


def test_sla_alert_without_recipient_sends_nothing(api, monkeypatch):
    from app.boaz.modules.support import alerts

    calls = []
    monkeypatch.setattr(alerts, "send_mail", lambda *a, **k: calls.append(a) or True)
    _ticket(api, sla_due_at=(datetime.utcnow() - timedelta(minutes=5)).isoformat())
    r = api.post("/api/crm/support/alerts/run")
    assert r.json["data"] == {"sent": 0, "candidates": 1}
    assert calls == []


def test_kb_articles(api, member_api):
    r = api.post(
        "/api/crm/support/kb",
        json={"title": "Reset a password", "body": "Go to settings", "tags": [" auth ", "auth", "howto"]},
    )
    assert r.status_code == 201
    article = r.json["data"]
    assert article["tags"] == ["auth", "howto"]

    api.post("/api/crm/support/kb", json={"title": "Billing FAQ", "tags": ["billing"]})

    r = member_api.get("/api/crm/support/kb?tag=auth")
    assert [a["title"] for a in r.json["data"]["items"]] == ["Reset a password"]

    r = member_api.get("/api/crm/support/kb?q=billing")
    assert len(r.json["data"]["items"]) == 1

    r = member_api.put(f"/api/crm/support/kb/{article['id']}", json={"title": "Nope"})
    assert r.status_code == 403

    r = api.put(f"/api/crm/support/kb/{article['id']}", json={"category": "Accounts", "tags": []})
    assert r.json["data"]["category"] == "Accounts"
    assert r.json["data"]["tags"] == []

    assert api.delete(f"/api/crm/support/kb/{article['id']}").status_code == 200
    assert api.get(f"/api/crm/support/kb/{article['id']}").status_code == 404
