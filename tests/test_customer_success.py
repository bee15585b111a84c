from datetime import date, datetime, timedelta


def _account(api, name):
    return api.post("/api/crm/accounts", json={"name": name}).json["data"]["id"]


def test_survey_validation_and_status(api):
    acc = _account(api, "Acme")
    r = api.post("/api/crm/success/surveys", json={"account_id": acc, "score": 11})
    assert r.json["error"] == "invalid_payload"
    r = api.post("/api/crm/success/surveys", json={"account_id": 999, "score": 5})
    assert r.status_code == 404
    assert r.json["error"] == "account_not_found"

    api.post("/api/crm/success/surveys", json={"account_id": acc, "score": 4, "comment": " slow "})
    r = api.post("/api/crm/success/surveys", json={"account_id": acc, "score": 9})
    assert r.status_code == 201

    items = api.get(f"/api/crm/success/surveys/status?account_ids={acc}").json["data"]["items"]
    assert len(items) == 1
    assert items[0]["response_count"] == 2
    assert items[0]["last_score"] == 9


def test_account_health_combines_signals(api):
    risky = _account(api, "Risky")
    calm = _account(api, "Calm")
    middling = _account(api, "Middling")

    api.post("/api/crm/success/surveys", json={"account_id": risky, "score": 5})
    api.post("/api/crm/success/surveys", json={"account_id": calm, "score": 9})
    api.post("/api/crm/success/surveys", json={"account_id": middling, "score": 6})

    past = (datetime.utcnow() - timedelta(hours=2)).isoformat()
    api.post("/api/crm/support/tickets", json={"short_description": "Down", "account_id": risky, "priority": "high"})
    api.post("/api/crm/support/tickets", json={"short_description": "Slow", "account_id": risky, "sla_due_at": past})

    product = api.post(
        "/api/assets/products",
        json={"customer_id": risky, "product_name": "Legacy", "product_type": "Software", "status": "Needs Upgrade"},
    ).json["data"]
    api.post(
        "/api/assets/licenses",
        json={
            "product_id": product["id"],
            "license_type": "Subscription",
            "expiration_date": (date.today() - timedelta(days=1)).isoformat(),
        },
    )

    api.post(
        "/api/stratflow/projects",
        json={"name": "Rollout", "key": "ROLL", "type": "KANBAN", "account_id": risky, "health": "at_risk"},
    )

    items = api.get("/api/crm/success/health").json["data"]["items"]
    assert [(i["account_name"], i["score"], i["label"]) for i in items] == [
        ("Risky", 89, "High"),
        ("Middling", 35, "Medium"),
        ("Calm", 0, "Low"),
    ]
    risky_row = items[0]
    assert len(risky_row["reasons"]) == 4
    assert risky_row["tickets"] == {"account_id": risky, "open": 2, "high": 1, "breached": 1}
    assert risky_row["assets"]["score"] == 50
    assert risky_row["projects"]["at_risk"] == 1

    items = api.get(f"/api/crm/success/health?account_ids={calm}").json["data"]["items"]
    assert [i["account_id"] for i in items] == [calm]


def test_health_scoring_helpers():
    from app.boaz.modules.customer_success.service import label_for, survey_points, ticket_points

    assert survey_points(None) == 0
    assert survey_points(6) == 35
    assert survey_points(7) == 20
    assert survey_points(8) == 10
    assert survey_points(9) == 0
    assert ticket_points(10, 10, 10) == 24 + 18 + 30
    assert label_for(70) == "High"
    assert label_for(34) == "Low"
