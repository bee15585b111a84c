import io
from datetime import date, datetime, timedelta

import pytest

from app.boaz.db import session_scope
from app.boaz.modules.contracts import admin as contracts_admin
from app.boaz.modules.contracts import public as contracts_public
from app.boaz.modules.contracts.models import SignatureInvite


@pytest.fixture()
def events(monkeypatch):
    sent = []
    monkeypatch.setattr(contracts_public, "dispatch_event", lambda s, t, d, source=None: sent.append((t, d)))
    return sent


def _account(api, name="Acme"):
    return api.post("/api/crm/accounts", json={"name": name}).json["data"]["id"]


def _invite(api, contract_id, role, email):
    r = api.post(f"/api/crm/contracts/{contract_id}/invites", json={"role": role, "email": email, "name": "Sam Signer"})
    assert r.status_code == 201, r.json
    return r.json["data"]


def _token(invite):
    return invite["signing_url"].rsplit("/", 1)[-1]


def test_contract_numbering_and_template_rendering(api):
    acc = _account(api, "Acme & Co")
    r = api.post(
        "/api/crm/contract-templates",
        json={"key": " MSA ", "name": "Master services", "html_body": "<h1>{{contract_name}}</h1><p>{{account_name}}</p>"},
    )
    template = r.json["data"]
    assert template["key"] == "msa"
    r = api.post("/api/crm/contract-templates", json={"key": "msa", "name": "Dup"})
    assert r.status_code == 409
    assert r.json["error"] == "duplicate_key"

    first = api.post(
        "/api/crm/contracts", json={"name": "Support 2026", "account_id": acc, "template_id": template["id"]}
    ).json["data"]
    second = api.post("/api/crm/contracts", json={"name": "Other"}).json["data"]
    assert first["contract_number"] == 1001
    assert second["contract_number"] == 1002
    assert first["status"] == "draft"
    assert first["html_body"] == "<h1>Support 2026</h1><p>Acme &amp; Co</p>"

    r = api.post("/api/crm/contracts", json={"name": "x", "template_id": 999})
    assert r.json["error"] == "template_not_found"
    r = api.post("/api/crm/contracts", json={"name": "x", "billing_email": "nope"})
    assert r.json["error"] == "invalid_payload"


def test_contract_list_update_and_delete(api):
    acc = _account(api)
    c = api.post("/api/crm/contracts", json={"name": "Gold support", "account_id": acc}).json["data"]
    api.post("/api/crm/contracts", json={"name": "Silver support"})

    assert len(api.get("/api/crm/contracts?q=gold").json["data"]["items"]) == 1
    assert len(api.get(f"/api/crm/contracts?account_id={acc}").json["data"]["items"]) == 1

    r = api.put(f"/api/crm/contracts/{c['id']}", json={"billing_email": "AP@Acme.com", "name": None})
    assert r.json["data"]["billing_email"] == "ap@acme.com"
    assert r.json["data"]["name"] == "Gold support"

    assert api.delete(f"/api/crm/contracts/{c['id']}").json["data"] == {"ok": True}
    assert api.get(f"/api/crm/contracts/{c['id']}").status_code == 404


def test_contracts_by_account_rollup(api):
    acc = _account(api)
    soon = (date.today() + timedelta(days=30)).isoformat()
    later = (date.today() + timedelta(days=365)).isoformat()
    api.post(
        "/api/crm/contracts",
        json={"name": "A", "account_id": acc, "status": "active", "end_date": soon, "response_target_minutes": 60},
    )
    api.post(
        "/api/crm/contracts",
        json={"name": "B", "account_id": acc, "status": "active", "end_date": later, "response_target_minutes": 30},
    )
    api.post("/api/crm/contracts", json={"name": "C", "account_id": acc, "status": "draft"})

    items = api.get(f"/api/crm/contracts/by-account?account_ids={acc}").json["data"]["items"]
    assert items == [
        {
            "account_id": acc,
            "active_count": 2,
            "expiring_soon": 1,
            "best_response": 30,
            "best_resolution": None,
            "next_expiry": soon,
        }
    ]


def test_signing_flow_executes_contract(app, api, events):
    c = api.post("/api/crm/contracts", json={"name": "Enterprise"}).json["data"]
    customer = _invite(api, c["id"], "customer_signer", "Buyer@Example.com")
    assert customer["email"] == "buyer@example.com"
    assert customer["emailed"] is False
    assert customer["signing_url"].startswith("https://boaz.test/public/sign/")
    assert api.get(f"/api/crm/contracts/{c['id']}").json["data"]["status"] == "sent"

    public = app.test_client()
    r = public.get(f"/public/sign/{_token(customer)}")
    assert r.status_code == 200
    view = r.json["data"]
    assert view["contract"]["name"] == "Enterprise"
    assert "signature_audit" not in view["contract"]
    assert view["invite"]["role"] == "customer_signer"
    assert "token" not in view["invite"]

    r = public.post(f"/public/sign/{_token(customer)}", json={"name": "Sam", "email": "sam@example.com"})
    assert r.json["data"] == {"ok": True, "fully_executed": False, "status": "sent"}
    assert events == [("contract.signed", {"contract_id": c["id"], "contract_number": 1001, "role": "customer_signer"})]

    r = public.get(f"/public/sign/{_token(customer)}")
    assert r.status_code == 410
    assert r.json["error"] == "already_used"

    provider = _invite(api, c["id"], "provider_signer", "ceo@boaz.test")
    r = public.post(
        f"/public/sign/{_token(provider)}",
        json={"name": "Pat", "title": "CEO", "email": "ceo@boaz.test"},
        headers={"User-Agent": "pytest", "X-Forwarded-For": "10.0.0.9"},
    )
    assert r.json["data"] == {"ok": True, "fully_executed": True, "status": "active"}
    assert [t for t, _ in events] == ["contract.signed", "contract.signed", "contract.executed"]

    detail = api.get(f"/api/crm/contracts/{c['id']}").json["data"]
    assert detail["customer_signed_by"] == "Sam"
    assert detail["provider_signed_by"] == "Pat"
    assert detail["executed_date"] is not None
    audit = detail["signature_audit"]
    assert [e["event"] for e in audit] == ["signed", "signed", "fully_executed"]
    assert audit[1]["ip"] == "10.0.0.9"
    assert audit[1]["title"] == "CEO"


def test_signature_after_execution_keeps_executed_date(app, api, events):
    c = api.post("/api/crm/contracts", json={"name": "Renewal"}).json["data"]
    public = app.test_client()
    for role, email in (("customer_signer", "buyer@example.com"), ("provider_signer", "ceo@boaz.test")):
        invite = _invite(api, c["id"], role, email)
        public.post(f"/public/sign/{_token(invite)}", json={"name": "Signer", "email": email})
    executed = api.get(f"/api/crm/contracts/{c['id']}").json["data"]["executed_date"]
    assert executed is not None

    late = _invite(api, c["id"], "customer_signer", "cfo@example.com")
    r = public.post(f"/public/sign/{_token(late)}", json={"name": "Casey", "email": "cfo@example.com"})
    assert r.json["data"] == {"ok": True, "fully_executed": False, "status": "active"}

    detail = api.get(f"/api/crm/contracts/{c['id']}").json["data"]
    assert detail["executed_date"] == executed
    assert detail["customer_signed_by"] == "Casey"
    assert [e["event"] for e in detail["signature_audit"]] == ["signed", "signed", "fully_executed", "signed"]
    assert [t for t, _ in events].count("contract.executed") == 1


def test_signing_rejects_bad_tokens(app, api, events):
    c = api.post("/api/crm/contracts", json={"name": "Small"}).json["data"]
    public = app.test_client()

    r = public.get("/public/sign/not-a-token")
    assert r.status_code == 404
    assert r.json["error"] == "invalid_or_expired"

    cancelled = _invite(api, c["id"], "customer_signer", "a@example.com")
    r = api.post(f"/api/crm/contracts/{c['id']}/invites/{cancelled['id']}/cancel")
    assert r.json["data"]["status"] == "cancelled"
    assert public.get(f"/public/sign/{_token(cancelled)}").status_code == 404

    stale = _invite(api, c["id"], "customer_signer", "b@example.com")
    with session_scope(app) as s:
        s.get(SignatureInvite, stale["id"]).expires_at = datetime.utcnow() - timedelta(minutes=1)
    r = public.post(f"/public/sign/{_token(stale)}", json={"name": "B", "email": "b@example.com"})
    assert r.status_code == 410
    assert r.json["error"] == "expired"

    fresh = _invite(api, c["id"], "customer_signer", "c@example.com")
    r = public.post(f"/public/sign/{_token(fresh)}", json={"name": "", "email": "c@example.com"})
    assert r.json["error"] == "invalid_payload"
    assert events == []

    other = api.post("/api/crm/contracts", json={"name": "Other"}).json["data"]
    r = api.post(f"/api/crm/contracts/{other['id']}/invites/{fresh['id']}/cancel")
    assert r.status_code == 404

    items = api.get(f"/api/crm/contracts/{c['id']}/invites").json["data"]["items"]
    assert sorted(i["status"] for i in items) == ["cancelled", "pending", "pending"]


def test_invite_email_sent_when_smtp_configured(api, monkeypatch):
    sent = []
    monkeypatch.setattr(
        contracts_admin, "send_invite_email", lambda contract, invite: sent.append((contract.name, invite.email)) or True
    )
    c = api.post("/api/crm/contracts", json={"name": "Mailed"}).json["data"]
    invite = _invite(api, c["id"], "customer_signer", "x@example.com")
    assert invite["emailed"] is True
    assert sent == [("Mailed", "x@example.com")]


def test_contract_attachments(api):
    c = api.post("/api/crm/contracts", json={"name": "With files"}).json["data"]
    r = api.post(
        f"/api/crm/contracts/{c['id']}/attachments",
        data={"file": (io.BytesIO(b"%PDF-1.4"), "signed copy.pdf")},
        content_type="multipart/form-data",
    )
    assert r.status_code == 201
    att = r.json["data"]
    assert api.get(f"/api/crm/contracts/{c['id']}").json["data"]["attachments"][0]["id"] == att["id"]

    r = api.get(f"/api/crm/contracts/{c['id']}/attachments/{att['id']}/download")
    assert r.status_code == 200
    assert r.data == b"%PDF-1.4"

    r = api.post(f"/api/crm/contracts/{c['id']}/attachments", data={}, content_type="multipart/form-data")
    assert r.json["error"] == "file_required"


def test_member_cannot_view_contracts(member_api):
    assert member_api.get("/api/crm/contracts").status_code == 403
