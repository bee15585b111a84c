from datetime import date, timedelta

import pytest


def _days(n: int) -> str:
    return (date.today() + timedelta(days=n)).isoformat()


@pytest.fixture()
def customer(api):
    return api.post("/api/crm/accounts", json={"name": "Initech"}).json["data"]


@pytest.fixture()
def estate(api, customer):
    env = api.post(
        "/api/assets/environments",
        json={"customer_id": customer["id"], "name": "Prod", "environment_type": "Production"},
    ).json["data"]
    product = api.post(
        "/api/assets/products",
        json={
            "customer_id": customer["id"],
            "environment_id": env["id"],
            "product_name": "Boaz Desk",
            "product_type": "Software",
            "vendor": "Acme Soft",
            "status": "Needs Upgrade",
        },
    ).json["data"]
    expired = api.post(
        "/api/assets/licenses",
        json={"product_id": product["id"], "license_type": "Seat-based", "license_count": 10, "seats_assigned": 12, "expiration_date": _days(-3)},
    ).json["data"]
    soon = api.post(
        "/api/assets/licenses",
        json={"product_id": product["id"], "license_type": "Subscription", "expiration_date": _days(20), "assigned_users": ["a@x", "a@x", "b@x"]},
    ).json["data"]
    return {"env": env, "product": product, "expired": expired, "soon": soon}


def test_customers_and_creation_checks(api, customer, estate):
    r = api.get("/api/assets/customers")
    assert r.json["data"]["items"] == [{"id": customer["id"], "name": "Initech", "account_number": customer["account_number"]}]

    r = api.post("/api/assets/environments", json={"customer_id": 999, "name": "X", "environment_type": "UAT"})
    assert r.status_code == 404
    assert r.json["error"] == "customer_not_found"

    r = api.post("/api/assets/environments", json={"customer_id": customer["id"], "name": "X", "environment_type": "Mainframe"})
    assert r.json["error"] == "invalid_payload"

    other = api.post("/api/crm/accounts", json={"name": "Other"}).json["data"]
    r = api.post(
        "/api/assets/products",
        json={"customer_id": other["id"], "environment_id": estate["env"]["id"], "product_name": "P", "product_type": "Hardware"},
    )
    assert r.json["error"] == "invalid_environment"

    r = api.post("/api/assets/licenses", json={"product_id": 999, "license_type": "Perpetual"})
    assert r.json["error"] == "product_not_found"

    assert estate["soon"]["assigned_users"] == ["a@x", "b@x"]


def test_lists_and_updates(api, customer, estate):
    assert len(api.get(f"/api/assets/environments/{customer['id']}").json["data"]["items"]) == 1
    assert len(api.get(f"/api/assets/products/{customer['id']}").json["data"]["items"]) == 1
    assert len(api.get(f"/api/assets/products/environment/{estate['env']['id']}").json["data"]["items"]) == 1
    licenses = api.get(f"/api/assets/licenses/product/{estate['product']['id']}").json["data"]["items"]
    assert [l["id"] for l in licenses] == [estate["expired"]["id"], estate["soon"]["id"]]

    r = api.put(f"/api/assets/environments/{estate['env']['id']}", json={"name": None, "location": "Frankfurt"})
    assert r.json["data"]["name"] == "Prod"
    assert r.json["data"]["location"] == "Frankfurt"

    r = api.put(f"/api/assets/licenses/{estate['soon']['id']}", json={"renewal_status": "Pending Renewal"})
    assert r.json["data"]["renewal_status"] == "Pending Renewal"

    assert api.delete(f"/api/assets/environments/{estate['env']['id']}").status_code == 200
    product = api.get(f"/api/assets/products/{customer['id']}").json["data"]["items"][0]
    assert product["environment_id"] is None


def test_customer_summary(api, customer, estate):
    r = api.get(f"/api/assets/summary/{customer['id']}")
    data = r.json["data"]
    assert data["total_environments"] == 1
    assert data["total_products"] == 1
    assert data["total_licenses"] == 2
    assert [l["id"] for l in data["upcoming_renewals"]] == [estate["soon"]["id"]]
    assert data["license_allocation"] == [
        {
            "product_id": estate["product"]["id"],
            "product_name": "Boaz Desk",
            "license_count": 11,
            "seats_assigned": 12,
            "over_allocated": True,
        }
    ]
    assert data["product_health"]["Needs Upgrade"] == 1


def test_license_report_filters(api, estate):
    rows = api.get("/api/assets/license-report").json["data"]["items"]
    assert [r["id"] for r in rows] == [estate["expired"]["id"], estate["soon"]["id"]]
    assert rows[0]["days_to_expiry"] == -3
    assert rows[0]["environment_name"] == "Prod"

    rows = api.get("/api/assets/license-report?license_status=expired").json["data"]["items"]
    assert [r["id"] for r in rows] == [estate["expired"]["id"]]
    rows = api.get("/api/assets/license-report?license_status=expiring&window_days=30").json["data"]["items"]
    assert [r["id"] for r in rows] == [estate["soon"]["id"]]
    rows = api.get("/api/assets/license-report?license_status=expiring&window_days=10").json["data"]["items"]
    assert rows == []
    assert api.get("/api/assets/license-report?vendor=acme").json["data"]["items"]
    assert api.get("/api/assets/license-report?vendor=globex").json["data"]["items"] == []


def test_asset_risk_scoring():
    from app.boaz.modules.assets.service import license_expiry_risk

    today = date(2026, 1, 1)
    assert license_expiry_risk(None, today) == 0
    assert license_expiry_risk(date(2025, 12, 31), today) == 40
    assert license_expiry_risk(today, today) == 30
    assert license_expiry_risk(date(2026, 1, 31), today) == 30
    assert license_expiry_risk(date(2026, 2, 20), today) == 15
    assert license_expiry_risk(date(2026, 3, 20), today) == 10
    assert license_expiry_risk(date(2026, 6, 1), today) == 0
