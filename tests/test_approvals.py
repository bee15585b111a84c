import pytest


@pytest.fixture()
def mails(monkeypatch):
    from app.boaz.modules.approvals import service

    sent = []

    def fake_send(to, subject, text, html=None):
        sent.append({"to": to, "subject": subject, "text": text})
        return True

    monkeypatch.setattr(service, "send_mail", fake_send)
    return sent


def _request(api, **fields):
    body = {"subject_type": "deal", "subject_id": 77, "approver_email": "manager@example.com", "amount": 25000, **fields}
    return api.post("/api/approvals/requests", json=body)


def test_request_notifies_approver(api, mails):
    r = _request(api, title="Big deal")
    assert r.status_code == 201
    req = r.json["data"]
    assert req["status"] == "pending"
    assert req["requester_email"] == "admin@example.com"
    assert mails[0]["to"] == "manager@example.com"
    assert "25,000.00" in mails[0]["text"]
    assert "https://boaz.test/approvals" in mails[0]["text"]


def test_request_validation(api, mails):
    r = _request(api, approver_email="ghost@example.com")
    assert r.status_code == 404
    assert r.json["error"] == "approver_not_found"

    r = _request(api, approver_email="member@example.com")
    assert r.status_code == 403
    assert r.json["error"] == "approver_not_manager"

    r = _request(api, subject_type="invoice")
    assert r.status_code == 400
    assert r.json["error"] == "invalid_payload"

    assert _request(api).status_code == 201
    r = _request(api)
    assert r.status_code == 400
    assert r.json["error"] == "approval_request_already_exists"


def test_default_title(api, mails):
    req = _request(api, subject_type="quote", subject_id=5).json["data"]
    assert req["title"] == "Quote #5"


def test_queue_and_decisions(api, manager_api, member_api, mails):
    req = _request(api).json["data"]

    r = member_api.get("/api/approvals/queue")
    assert r.status_code == 403
    assert r.json["error"] == "manager_access_required"

    r = manager_api.get("/api/approvals/queue")
    assert [i["id"] for i in r.json["data"]["items"]] == [req["id"]]
    assert api.get("/api/approvals/queue").json["data"]["items"] == []

    r = api.post(f"/api/approvals/requests/{req['id']}/approve")
    assert r.status_code == 403
    assert r.json["error"] == "not_assigned_approver"

    r = manager_api.post(f"/api/approvals/requests/{req['id']}/reject", json={"review_notes": " too pricey "})
    assert r.status_code == 200
    decided = r.json["data"]
    assert decided["status"] == "rejected"
    assert decided["reviewed_by"] == "manager@example.com"
    assert decided["review_notes"] == "too pricey"
    assert mails[-1]["to"] == "admin@example.com"
    assert "rejected" in mails[-1]["subject"]

    r = manager_api.post(f"/api/approvals/requests/{req['id']}/approve")
    assert r.status_code == 400
    assert r.json["error"] == "already_reviewed"

    assert manager_api.get("/api/approvals/queue").json["data"]["items"] == []
    r = manager_api.get("/api/approvals/queue?status=all")
    assert len(r.json["data"]["items"]) == 1

    assert api.get("/api/approvals/requests/999").status_code == 404
