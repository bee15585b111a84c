import pytest

from app.boaz.modules.marketing_social import publishers
from app.boaz.modules.marketing_social.publishers import PublishResult, post_text


@pytest.fixture()
def fake_publishers(monkeypatch):
    calls = []

    def ok(account, post):
        calls.append((account.platform, post_text(post)))
        return PublishResult(ok=True, post_id=f"{account.platform}-1")

    def broken(account, post):
        calls.append((account.platform, post.content))
        return PublishResult(ok=False, error="Twitter API error 403")

    monkeypatch.setitem(publishers.PUBLISHERS, "facebook", ok)
    monkeypatch.setitem(publishers.PUBLISHERS, "linkedin", ok)
    monkeypatch.setitem(publishers.PUBLISHERS, "twitter", broken)
    return calls


def _connect(api, platform, ext_id, token="tok"):
    r = api.post(
        "/api/marketing/social/accounts",
        json={"platform": platform, "account_name": f"Boaz {platform}", "account_id": ext_id, "access_token": token},
    )
    assert r.status_code == 201, r.json
    return r.json["data"]


def test_connect_account_hides_token_and_rejects_duplicates(api):
    acc = _connect(api, "facebook", "123")
    assert acc["has_token"] is True
    assert "access_token" not in acc

    r = api.post(
        "/api/marketing/social/accounts",
        json={"platform": "facebook", "account_name": "Again", "account_id": "123"},
    )
    assert r.json["error"] == "account_already_connected"

    r = api.post("/api/marketing/social/accounts", json={"platform": "myspace", "account_name": "x", "account_id": "1"})
    assert r.json["error"] == "invalid_payload"

    items = api.get("/api/marketing/social/accounts").json["data"]["items"]
    assert [a["account_id"] for a in items] == ["123"]


def test_post_crud_and_scheduling_rules(api):
    r = api.post("/api/marketing/social/posts", json={"content": "Launch", "status": "scheduled"})
    assert r.json["error"] == "scheduled_for_required"

    r = api.post(
        "/api/marketing/social/posts",
        json={"content": "Launch day", "platforms": ["twitter", "facebook", "twitter"], "hashtags": ["#crm", "crm", "erp"]},
    )
    post = r.json["data"]
    assert post["status"] == "draft"
    assert post["platforms"] == ["facebook", "twitter"]
    assert post["hashtags"] == ["crm", "erp"]

    r = api.put(
        f"/api/marketing/social/posts/{post['id']}",
        json={"status": "scheduled", "scheduled_for": "2030-01-01T09:00:00Z"},
    )
    assert r.json["data"]["scheduled_for"].startswith("2030-01-01T09:00:00")

    assert len(api.get("/api/marketing/social/posts?status=scheduled").json["data"]["items"]) == 1
    assert api.get("/api/marketing/social/posts?platform=linkedin").json["data"]["items"] == []

    assert api.delete(f"/api/marketing/social/posts/{post['id']}").json["data"] == {"ok": True}
    assert api.get(f"/api/marketing/social/posts/{post['id']}").status_code == 404


def test_publish_partial_failure_then_locked(api, fake_publishers):
    fb = _connect(api, "facebook", "fb-page")
    tw = _connect(api, "twitter", "tw-user")
    post = api.post(
        "/api/marketing/social/posts",
        json={"content": "Hello", "platforms": ["facebook", "twitter"], "account_ids": [fb["id"], tw["id"]], "hashtags": ["boaz"]},
    ).json["data"]

    r = api.post(f"/api/marketing/social/publish/{post['id']}")
    assert r.status_code == 200, r.json
    body = r.json["data"]
    assert body["post"]["status"] == "published"
    assert body["post"]["error"].startswith("Partial failure")
    assert body["post"]["platform_post_ids"] == {"facebook": "facebook-1"}
    assert ("facebook", "Hello\n\n#boaz") in fake_publishers

    r = api.put(f"/api/marketing/social/posts/{post['id']}", json={"content": "Edited"})
    assert r.json["error"] == "cannot_edit_published_post"
    r = api.delete(f"/api/marketing/social/posts/{post['id']}")
    assert r.json["error"] == "cannot_delete_published_post"


def test_publish_all_failed(api, fake_publishers):
    tw = _connect(api, "twitter", "tw-only")
    post = api.post("/api/marketing/social/posts", json={"content": "x", "account_ids": [tw["id"]]}).json["data"]
    r = api.post(f"/api/marketing/social/publish/{post['id']}")
    assert r.status_code == 400
    assert r.json["error"] == "publish_failed"
    assert api.get(f"/api/marketing/social/posts/{post['id']}").json["data"]["status"] == "failed"


def test_publish_requires_active_accounts(api):
    post = api.post("/api/marketing/social/posts", json={"content": "x"}).json["data"]
    r = api.post(f"/api/marketing/social/publish/{post['id']}")
    assert r.json["error"] == "no_accounts_found"
    assert api.post("/api/marketing/social/publish/999").json["error"] == "post_not_found"


def test_missing_token_reported_without_calling_network(api):
    fb = _connect(api, "facebook", "no-token", token="")
    post = api.post("/api/marketing/social/posts", json={"content": "x", "account_ids": [fb["id"]]}).json["data"]
    r = api.post(f"/api/marketing/social/publish/{post['id']}")
    assert r.json["error"] == "publish_failed"
    assert "No access token" in r.json["details"]["message"]


def test_metrics_feed_analytics(api, fake_publishers):
    fb = _connect(api, "facebook", "fb-metrics")
    post = api.post(
        "/api/marketing/social/posts", json={"content": "x", "platforms": ["facebook"], "account_ids": [fb["id"]]}
    ).json["data"]
    api.post(f"/api/marketing/social/publish/{post['id']}")
    r = api.put(
        f"/api/marketing/social/posts/{post['id']}/metrics",
        json={"metrics": {"facebook": {"likes": 5, "reach": 100}}},
    )
    assert r.json["data"]["metrics"]["facebook"]["likes"] == 5

    data = api.get("/api/marketing/social/analytics").json["data"]
    assert data["total_posts"] == 1
    assert data["totals"]["likes"] == 5
    assert data["by_platform"]["facebook"]["posts"] == 1
    assert data["by_platform"]["facebook"]["reach"] == 100


def test_member_cannot_use_marketing(member_api):
    assert member_api.get("/api/marketing/social/posts").status_code == 403
