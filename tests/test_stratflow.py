import pytest


def _me(api):
    return api.get("/auth/me").json["data"]["user"]


@pytest.fixture()
def project(api, manager_api):
    manager_id = _me(manager_api)["id"]
    r = api.post(
        "/api/stratflow/projects",
        json={"name": "Website relaunch", "key": "web re", "type": "SCRUM", "team_ids": [manager_id], "account_id": 11},
    )
    assert r.status_code == 201, r.json
    return r.json["data"]


def _board(api, board_id):
    return api.get(f"/api/stratflow/boards/{board_id}").json["data"]


def _columns(api, board_id):
    return {c["name"]: c for c in _board(api, board_id)["columns"]}


def test_project_template_and_key(api, project):
    p = project["project"]
    assert p["key"] == "WEB-RE"
    detail = api.get(f"/api/stratflow/projects/{p['id']}").json["data"]
    assert [(b["name"], b["kind"]) for b in detail["boards"]] == [("Backlog", "BACKLOG"), ("Sprint Board", "KANBAN")]
    assert detail["default_board_id"] == project["default_board_id"] == detail["boards"][1]["id"]
    assert list(_columns(api, project["default_board_id"])) == ["To Do", "In Progress", "In Review", "Done"]

    r = api.post("/api/stratflow/projects", json={"name": "Again", "key": "WEB-RE", "type": "KANBAN"})
    assert r.status_code == 409
    assert r.json["error"] == "key_taken"


def test_project_visibility(api, manager_api, member_api, project):
    pid = project["project"]["id"]
    assert [p["id"] for p in manager_api.get("/api/stratflow/projects").json["data"]["items"]] == [pid]
    assert member_api.get("/api/stratflow/projects").json["data"]["items"] == []

    r = member_api.get(f"/api/stratflow/projects/{pid}")
    assert r.status_code == 403
    assert api.get("/api/stratflow/projects/999").status_code == 404

    members = api.get(f"/api/stratflow/projects/{pid}/members").json["data"]["items"]
    assert {(m["email"], m["is_owner"]) for m in members} == {
        ("admin@example.com", True),
        ("manager@example.com", False),
    }


def test_issue_create_normalizes_and_validates(api, member_api, project, monkeypatch):
    from app.boaz.modules.stratflow import admin as sf_admin

    events = []
    monkeypatch.setattr(sf_admin, "dispatch_event", lambda s, t, d, **kw: events.append(t) or 0)

    pid = project["project"]["id"]
    todo = _columns(api, project["default_board_id"])["To Do"]
    r = api.post(
        f"/api/stratflow/projects/{pid}/issues",
        json={"title": " Login broken ", "column_id": todo["id"], "type": "Bug", "priority": "Critical", "labels": ["a", "a", " b "]},
    )
    assert r.status_code == 201, r.json
    issue = r.json["data"]
    assert issue["title"] == "Login broken"
    assert (issue["type"], issue["priority"], issue["status_key"]) == ("Defect", "Highest", "todo")
    assert issue["labels"] == ["a", "b"]
    assert issue["order"] == 1000
    assert events == ["stratflow.issue.created"]

    second = api.post(f"/api/stratflow/projects/{pid}/issues", json={"title": "Next", "column_id": todo["id"]}).json["data"]
    assert second["order"] == 2000

    member_id = _me(member_api)["id"]
    r = api.post(f"/api/stratflow/projects/{pid}/issues", json={"title": "x", "column_id": todo["id"], "assignee_id": member_id})
    assert r.json["error"] == "invalid_assignee"
    r = api.post(f"/api/stratflow/projects/{pid}/issues", json={"title": "x", "column_id": 9999})
    assert r.json["error"] == "invalid_column"
    r = api.post(f"/api/stratflow/projects/{pid}/issues", json={"title": "x", "column_id": todo["id"], "epic_id": second["id"]})
    assert r.json["error"] == "invalid_epic"
    r = api.post(f"/api/stratflow/projects/{pid}/issues", json={"title": "x", "column_id": todo["id"], "component_ids": [42]})
    assert r.json["error"] == "invalid_components"


def test_move_issue_between_columns(api, project):
    pid = project["project"]["id"]
    cols = _columns(api, project["default_board_id"])
    ids = [
        api.post(f"/api/stratflow/projects/{pid}/issues", json={"title": t, "column_id": cols["To Do"]["id"]}).json["data"]["id"]
        for t in ("one", "two", "three")
    ]

    r = api.patch(f"/api/stratflow/issues/{ids[2]}/move", json={"to_column_id": cols["To Do"]["id"], "to_index": 0})
    assert r.json["data"]["order"] == 0

    r = api.patch(f"/api/stratflow/issues/{ids[0]}/move", json={"to_column_id": cols["Done"]["id"], "to_index": 5})
    assert r.json["data"]["status_key"] == "done"
    assert r.json["data"]["order"] == 1000

    board = _board(api, project["default_board_id"])
    by_name = {c["name"]: [i["title"] for i in c["issues"]] for c in board["columns"]}
    assert by_name["To Do"] == ["three", "two"]
    assert by_name["Done"] == ["one"]

    backlog_board = api.get(f"/api/stratflow/projects/{pid}/boards").json["data"]["items"][0]
    backlog_col = _board(api, backlog_board["id"])["columns"][0]
    r = api.patch(f"/api/stratflow/issues/{ids[1]}/move", json={"to_column_id": backlog_col["id"], "to_index": 0})
    assert r.status_code == 404
    assert r.json["error"] == "column_not_found"


def test_sprints_and_issue_filters(api, project):
    pid = project["project"]["id"]
    todo = _columns(api, project["default_board_id"])["To Do"]
    s1 = api.post(f"/api/stratflow/projects/{pid}/sprints", json={"name": "Sprint 1"}).json["data"]
    s2 = api.post(f"/api/stratflow/projects/{pid}/sprints", json={"name": "Sprint 2"}).json["data"]
    assert s1["state"] == "planned"

    api.post(f"/api/stratflow/sprints/{s1['id']}/set-active")
    r = api.patch(f"/api/stratflow/sprints/{s2['id']}", json={"state": "active"})
    assert r.json["data"]["state"] == "active"
    states = {s["name"]: s["state"] for s in api.get(f"/api/stratflow/projects/{pid}/sprints").json["data"]["items"]}
    assert states == {"Sprint 1": "planned", "Sprint 2": "active"}

    api.post(f"/api/stratflow/projects/{pid}/issues", json={"title": "in sprint", "column_id": todo["id"], "sprint_id": s2["id"]})
    api.post(f"/api/stratflow/projects/{pid}/issues", json={"title": "unplanned", "column_id": todo["id"]})

    r = api.get(f"/api/stratflow/projects/{pid}/issues?sprint_id=null")
    assert [i["title"] for i in r.json["data"]["items"]] == ["unplanned"]
    r = api.get(f"/api/stratflow/projects/{pid}/issues?sprint_id={s2['id']}")
    assert [i["title"] for i in r.json["data"]["items"]] == ["in sprint"]


def test_comments_and_issue_update(api, project):
    pid = project["project"]["id"]
    todo = _columns(api, project["default_board_id"])["To Do"]
    epic = api.post(f"/api/stratflow/projects/{pid}/issues", json={"title": "Epic", "column_id": todo["id"], "type": "Epic"}).json["data"]
    story = api.post(f"/api/stratflow/projects/{pid}/issues", json={"title": "Story", "column_id": todo["id"]}).json["data"]

    r = api.patch(f"/api/stratflow/issues/{story['id']}", json={"epic_id": epic["id"], "story_points": 3})
    assert r.json["data"]["epic_id"] == epic["id"]
    r = api.patch(f"/api/stratflow/issues/{epic['id']}", json={"epic_id": epic["id"]})
    assert r.json["error"] == "invalid_epic"

    r = api.post(f"/api/stratflow/issues/{story['id']}/comments", json={"body": "  looks good "})
    assert r.status_code == 201
    assert r.json["data"]["body"] == "looks good"
    r = api.post(f"/api/stratflow/issues/{story['id']}/comments", json={"body": "   "})
    assert r.json["error"] == "invalid_payload"
    assert len(api.get(f"/api/stratflow/issues/{story['id']}/comments").json["data"]["items"]) == 1


def test_blank_title_and_name_rejected_on_update(api, project):
    pid = project["project"]["id"]
    todo = _columns(api, project["default_board_id"])["To Do"]
    issue = api.post(f"/api/stratflow/projects/{pid}/issues", json={"title": "Fix login", "column_id": todo["id"]}).json["data"]

    r = api.patch(f"/api/stratflow/issues/{issue['id']}", json={"title": "   "})
    assert r.status_code == 400
    assert r.json["error"] == "invalid_payload"
    r = api.patch(f"/api/stratflow/issues/{issue['id']}", json={"title": "  Fix signup "})
    assert r.json["data"]["title"] == "Fix signup"

    r = api.patch(f"/api/stratflow/projects/{pid}", json={"name": "    "})
    assert r.status_code == 400
    assert r.json["error"] == "invalid_payload"
    assert api.get(f"/api/stratflow/projects/{pid}").json["data"]["project"]["name"] == "Website relaunch"


def test_admin_members_components_and_delete(api, manager_api, member_api, project):
    pid = project["project"]["id"]
    member_id = _me(member_api)["id"]
    manager_id = _me(manager_api)["id"]
    todo = _columns(api, project["default_board_id"])["To Do"]

    r = manager_api.post(f"/api/stratflow/admin/projects/{pid}/members", json={"user_id": member_id})
    assert r.status_code == 403

    r = api.post(f"/api/stratflow/admin/projects/{pid}/members", json={"user_id": member_id})
    assert member_id in r.json["data"]["team_ids"]
    assert api.post(f"/api/stratflow/admin/projects/{pid}/members", json={"user_id": 999}).status_code == 404

    comp = api.post(f"/api/stratflow/admin/projects/{pid}/components", json={"name": "API"}).json["data"]
    r = api.post(f"/api/stratflow/admin/projects/{pid}/components", json={"name": "api"})
    assert r.status_code == 409
    assert r.json["error"] == "component_exists"

    issue = api.post(
        f"/api/stratflow/projects/{pid}/issues",
        json={"title": "Rate limits", "column_id": todo["id"], "assignee_id": manager_id, "component_ids": [comp["id"]]},
    ).json["data"]

    r = api.delete(f"/api/stratflow/admin/projects/{pid}/members/{manager_id}")
    assert r.json["data"]["unassigned"] == 1
    assert api.get(f"/api/stratflow/issues/{issue['id']}").json["data"]["assignee_id"] is None

    owner_id = _me(api)["id"]
    r = api.delete(f"/api/stratflow/admin/projects/{pid}/members/{owner_id}")
    assert r.json["error"] == "cannot_remove_owner"

    r = api.delete(f"/api/stratflow/admin/components/{comp['id']}")
    assert r.json["data"]["issues_updated"] == 1
    assert api.get(f"/api/stratflow/issues/{issue['id']}").json["data"]["component_ids"] == []

    r = api.delete(f"/api/stratflow/admin/projects/{pid}")
    assert r.json["data"]["deleted"]["issues"] == 1
    assert r.json["data"]["deleted"]["boards"] == 2
    assert r.json["data"]["deleted"]["columns"] == 5
    assert api.get(f"/api/stratflow/projects/{pid}").status_code == 404


def test_projects_by_account(api, project):
    api.patch(f"/api/stratflow/projects/{project['project']['id']}", json={"health": "at_risk"})
    api.post("/api/stratflow/projects", json={"name": "Ops", "key": "OPS", "type": "KANBAN", "account_id": 11, "health": "off_track", "status": "On Hold"})
    r = api.get("/api/stratflow/projects/by-account?account_ids=11")
    assert r.json["data"]["items"] == [{"account_id": 11, "total": 2, "active": 1, "at_risk": 1, "off_track": 1}]
