def test_account_crud_and_numbering(api):
    r = api.post(
        "/api/crm/accounts",
        json={"name": " Acme ", "primary_contact_email": "Ops@Acme.Example", "custom_fields": {"tier": "gold"}},
    )
    assert r.status_code == 201
    acme = r.json["data"]
    assert acme["name"] == "Acme"
    assert acme["primary_contact_email"] == "ops@acme.example"
    assert acme["account_number"] == 998801

    r = api.post("/api/crm/accounts", json={"name": "Globex"})
    assert r.json["data"]["account_number"] == 998802

    r = api.get("/api/crm/accounts?q=glob")
    assert [a["name"] for a in r.json["data"]["items"]] == ["Globex"]

    r = api.put(f"/api/crm/accounts/{acme['id']}", json={"notes": "renewal in Q3"})
    assert r.status_code == 200
    assert r.json["data"]["notes"] == "renewal in Q3"

    assert api.delete(f"/api/crm/accounts/{acme['id']}").status_code == 200
    r = api.get(f"/api/crm/accounts/{acme['id']}")
    assert r.status_code == 404
    assert r.json["error"] == "not_found"


def test_account_validation(api):
    r = api.post("/api/crm/accounts", json={"name": ""})
    assert r.status_code == 400
    assert r.json["error"] == "invalid_payload"
    assert r.json["details"]

    r = api.post("/api/crm/accounts", json={"name": "X", "primary_contact_email": "not-an-email"})
    assert r.status_code == 400
