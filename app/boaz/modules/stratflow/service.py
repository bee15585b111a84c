from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import func

from app.boaz.api import ApiError
from app.boaz.audit import record_event
from app.boaz.models import User
from app.boaz.modules.stratflow.models import (
    SfBoard,
    SfColumn,
    SfComment,
    SfComponent,
    SfIssue,
    SfProject,
    SfSprint,
)
from app.boaz.modules.stratflow.ordering import ORDER_STEP, order_for_index
from app.boaz.utils import normalize_str_list, slugify

if TYPE_CHECKING:
    from sqlalchemy.orm import Session
    from app.boaz.modules.stratflow.schemas import (
        IssueCreate,
        IssueUpdate,
        ProjectCreate,
        ProjectUpdate,
        SprintCreate,
        SprintUpdate,
    )

# project type -> [(board name, board kind, column names)]
BOARD_TEMPLATES = {
    "SCRUM": [
        ("Backlog", "BACKLOG", ["Backlog"]),
        ("Sprint Board", "KANBAN", ["To Do", "In Progress", "In Review", "Done"]),
    ],
    "KANBAN": [("Board", "KANBAN", ["To Do", "In Progress", "In Review", "Done"])],
    "TRADITIONAL": [("Milestones", "MILESTONES", ["Not Started", "In Progress", "Blocked", "Complete"])],
    "HYBRID": [
        ("Board", "KANBAN", ["To Do", "In Progress", "In Review", "Done"]),
        ("Backlog", "BACKLOG", ["Backlog"]),
    ],
}

STATUS_KEYS = {
    "backlog": "backlog",
    "to do": "todo",
    "todo": "todo",
    "in progress": "in_progress",
    "in review": "in_review",
    "done": "done",
    "blocked": "blocked",
    "not started": "not_started",
    "complete": "complete",
}

MAX_LIST_ITEMS = 50


def status_key_for(column_name: str) -> str:
    name = (column_name or "").strip().lower()
    return STATUS_KEYS.get(name) or slugify(name) or "todo"


# ---------- Projects ----------
def can_access(project: SfProject, user: User) -> bool:
    return user.id in project.member_ids()


def load_project(s: "Session", project_id: int, user: User) -> SfProject:
    project = s.get(SfProject, project_id)
    if project is None:
        raise ApiError("not_found", 404)
    if not can_access(project, user):
        raise ApiError("forbidden", 403)
    return project


def list_projects(s: "Session", user: User) -> list[SfProject]:
    # Membership lives in a JSON list; filter in Python to stay portable across SQLite/Postgres.
    projects = s.query(SfProject).order_by(SfProject.updated_at.desc()).all()
    return [p for p in projects if can_access(p, user)]


def _create_template(s: "Session", project: SfProject) -> int | None:
    default_board_id = None
    first_board_id = None
    for name, kind, columns in BOARD_TEMPLATES[project.type]:
        board = SfBoard(project_id=project.id, name=name, kind=kind, created_at=datetime.utcnow())
        s.add(board)
        s.flush()
        for idx, col_name in enumerate(columns):
            s.add(SfColumn(board_id=board.id, name=col_name, order=(idx + 1) * ORDER_STEP))
        first_board_id = first_board_id or board.id
        if kind == "KANBAN" and default_board_id is None:
            default_board_id = board.id
    s.flush()
    return default_board_id or first_board_id


def create_project(s: "Session", payload: "ProjectCreate", user: User) -> tuple[SfProject, int | None]:
    taken = (
        s.query(SfProject.id)
        .filter(SfProject.owner_user_id == user.id, SfProject.key == payload.key)
        .first()
    )
    if taken:
        raise ApiError("key_taken", 409)
    now = datetime.utcnow()
    project = SfProject(
        name=payload.name.strip(),
        key=payload.key,
        description=payload.description,
        type=payload.type,
        status=payload.status,
        health=payload.health,
        owner_user_id=user.id,
        team_ids=sorted({i for i in payload.team_ids if i != user.id}),
        account_id=payload.account_id,
        start_date=payload.start_date,
        target_end_date=payload.target_end_date,
        created_at=now,
        updated_at=now,
    )
    s.add(project)
    s.flush()
    default_board_id = _create_template(s, project)
    record_event(
        s,
        actor=user,
        action="stratflow.project.create",
        entity_type="SfProject",
        entity_id=str(project.id),
        metadata={"key": project.key, "type": project.type},
    )
    return project, default_board_id


def update_project(s: "Session", project: SfProject, payload: "ProjectUpdate", user: User) -> SfProject:
    data = payload.model_dump(exclude_unset=True)
    if data.get("name"):
        project.name = data["name"].strip()
    for field in ("description", "health", "account_id", "start_date", "target_end_date"):
        if field in data:
            setattr(project, field, data[field])
    if data.get("status"):
        project.status = data["status"]
    if data.get("team_ids") is not None:
        project.team_ids = sorted({i for i in data["team_ids"] if i != project.owner_user_id})
    project.updated_at = datetime.utcnow()
    record_event(
        s,
        actor=user,
        action="stratflow.project.edit",
        entity_type="SfProject",
        entity_id=str(project.id),
        metadata={"fields": sorted(data)},
    )
    return project


def project_boards(s: "Session", project: SfProject) -> list[SfBoard]:
    return s.query(SfBoard).filter(SfBoard.project_id == project.id).order_by(SfBoard.id.asc()).all()


def default_board_id(boards: list[SfBoard]) -> int | None:
    for b in boards:
        if b.kind == "KANBAN":
            return b.id
    return boards[0].id if boards else None


def board_view(s: "Session", board: SfBoard) -> dict:
    columns = s.query(SfColumn).filter(SfColumn.board_id == board.id).order_by(SfColumn.order.asc()).all()
    issues = (
        s.query(SfIssue)
        .filter(SfIssue.board_id == board.id)
        .order_by(SfIssue.order.asc(), SfIssue.id.asc())
        .all()
    )
    by_column: dict[int, list[dict]] = {c.id: [] for c in columns}
    for issue in issues:
        by_column.setdefault(issue.column_id, []).append(issue.to_dict())
    return {
        "board": board.to_dict(),
        "columns": [{**c.to_dict(), "issues": by_column.get(c.id, [])} for c in columns],
    }


def load_board(s: "Session", board_id: int, user: User) -> tuple[SfBoard, SfProject]:
    board = s.get(SfBoard, board_id)
    if board is None:
        raise ApiError("not_found", 404)
    return board, load_project(s, board.project_id, user)


def projects_by_account(s: "Session", account_ids: list[int] | None = None) -> list[dict]:
    query = s.query(SfProject).filter(SfProject.account_id.isnot(None))
    if account_ids:
        query = query.filter(SfProject.account_id.in_(account_ids))
    out: dict[int, dict] = {}
    for p in query.all():
        row = out.setdefault(p.account_id, {"account_id": p.account_id, "total": 0, "active": 0, "at_risk": 0, "off_track": 0})
        row["total"] += 1
        if p.status == "Active":
            row["active"] += 1
        if p.health == "at_risk":
            row["at_risk"] += 1
        elif p.health == "off_track":
            row["off_track"] += 1
    return list(out.values())


# ---------- Issues ----------
def _validate_refs(s: "Session", project: SfProject, data: dict) -> None:
    if data.get("assignee_id") is not None and data["assignee_id"] not in project.member_ids():
        raise ApiError("invalid_assignee", 400)
    if data.get("sprint_id") is not None:
        sprint = s.get(SfSprint, data["sprint_id"])
        if sprint is None or sprint.project_id != project.id:
            raise ApiError("invalid_sprint", 400)
    if data.get("epic_id") is not None:
        epic = s.get(SfIssue, data["epic_id"])
        if epic is None or epic.project_id != project.id or epic.type != "Epic":
            raise ApiError("invalid_epic", 400)
    if data.get("component_ids"):
        ids = set(data["component_ids"])
        found = {
            cid
            for (cid,) in s.query(SfComponent.id)
            .filter(SfComponent.project_id == project.id, SfComponent.id.in_(ids))
            .all()
        }
        if found != ids:
            raise ApiError("invalid_components", 400)


def _normalize_component_ids(ids: list[int] | None) -> list[int]:
    out: list[int] = []
    for i in ids or []:
        if i not in out:
            out.append(i)
    return out[:MAX_LIST_ITEMS]


def _project_column(s: "Session", project: SfProject, column_id: int) -> SfColumn:
    column = (
        s.query(SfColumn)
        .join(SfBoard, SfBoard.id == SfColumn.board_id)
        .filter(SfColumn.id == column_id, SfBoard.project_id == project.id)
        .one_or_none()
    )
    if column is None:
        raise ApiError("invalid_column", 400)
    return column


def create_issue(s: "Session", project: SfProject, payload: "IssueCreate", user: User) -> SfIssue:
    column = _project_column(s, project, payload.column_id)
    data = payload.model_dump()
    data["component_ids"] = _normalize_component_ids(payload.component_ids)
    _validate_refs(s, project, data)

    last = s.query(func.max(SfIssue.order)).filter(SfIssue.column_id == column.id).scalar()
    now = datetime.utcnow()
    issue = SfIssue(
        project_id=project.id,
        board_id=column.board_id,
        column_id=column.id,
        title=payload.title,
        description=payload.description,
        type=payload.type,
        priority=payload.priority,
        status_key=status_key_for(column.name),
        order=(last or 0) + ORDER_STEP,
        reporter_id=user.id,
        assignee_id=payload.assignee_id,
        sprint_id=payload.sprint_id,
        epic_id=payload.epic_id,
        story_points=payload.story_points,
        labels=normalize_str_list(payload.labels, max_items=MAX_LIST_ITEMS),
        component_ids=data["component_ids"],
        created_at=now,
        updated_at=now,
    )
    s.add(issue)
    s.flush()
    project.updated_at = now
    record_event(
        s,
        actor=user,
        action="stratflow.issue.create",
        entity_type="SfIssue",
        entity_id=str(issue.id),
        metadata={"project": project.key, "title": issue.title},
    )
    return issue


def load_issue(s: "Session", issue_id: int, user: User) -> tuple[SfIssue, SfProject]:
    issue = s.get(SfIssue, issue_id)
    if issue is None:
        raise ApiError("not_found", 404)
    return issue, load_project(s, issue.project_id, user)


def update_issue(s: "Session", issue: SfIssue, project: SfProject, payload: "IssueUpdate", user: User) -> SfIssue:
    data = payload.model_dump(exclude_unset=True)
    if "component_ids" in data:
        data["component_ids"] = _normalize_component_ids(data["component_ids"])
    if data.get("epic_id") is not None and data["epic_id"] == issue.id:
        raise ApiError("invalid_epic", 400)
    _validate_refs(s, project, data)

    for field, value in data.items():
        if field in ("title", "type", "priority") and not value:
            continue
        if field == "title":
            value = value.strip()
        if field == "labels":
            value = normalize_str_list(value, max_items=MAX_LIST_ITEMS)
        setattr(issue, field, value)
    issue.updated_at = datetime.utcnow()
    record_event(
        s,
        actor=user,
        action="stratflow.issue.edit",
        entity_type="SfIssue",
        entity_id=str(issue.id),
        metadata={"fields": sorted(data)},
    )
    return issue


def move_issue(s: "Session", issue: SfIssue, to_column_id: int, to_index: int, user: User) -> SfIssue:
    column = s.get(SfColumn, to_column_id)
    if column is None or column.board_id != issue.board_id:
        raise ApiError("column_not_found", 404)

    others = (
        s.query(SfIssue)
        .filter(SfIssue.column_id == column.id, SfIssue.id != issue.id)
        .order_by(SfIssue.order.asc(), SfIssue.id.asc())
        .all()
    )
    new_order, renumbered = order_for_index([o.order for o in others], to_index)
    if renumbered is not None:
        for other, order in zip(others, renumbered):
            other.order = order

    issue.column_id = column.id
    issue.order = new_order
    issue.status_key = status_key_for(column.name)
    issue.updated_at = datetime.utcnow()
    record_event(
        s,
        actor=user,
        action="stratflow.issue.move",
        entity_type="SfIssue",
        entity_id=str(issue.id),
        metadata={"column": column.name, "order": new_order, "reindexed": renumbered is not None},
    )
    return issue


def list_project_issues(
    s: "Session",
    project: SfProject,
    *,
    q: str = "",
    type: str = "",
    status_key: str = "",
    sprint: str = "",
    epic_id: int | None = None,
    board_id: int | None = None,
    limit: int = 500,
) -> list[SfIssue]:
    query = s.query(SfIssue).filter(SfIssue.project_id == project.id)
    if q:
        like = f"%{q}%"
        query = query.filter((SfIssue.title.ilike(like)) | (SfIssue.description.ilike(like)))
    if type:
        query = query.filter(SfIssue.type == type)
    if status_key:
        query = query.filter(SfIssue.status_key == status_key)
    if sprint == "null":
        query = query.filter(SfIssue.sprint_id.is_(None))
    elif sprint.isdigit():
        query = query.filter(SfIssue.sprint_id == int(sprint))
    if epic_id is not None:
        query = query.filter(SfIssue.epic_id == epic_id)
    if board_id is not None:
        query = query.filter(SfIssue.board_id == board_id)
    return query.order_by(SfIssue.order.asc(), SfIssue.id.asc()).limit(limit).all()


# ---------- Sprints ----------
def list_sprints(s: "Session", project: SfProject) -> list[SfSprint]:
    return s.query(SfSprint).filter(SfSprint.project_id == project.id).order_by(SfSprint.created_at.desc()).all()


def create_sprint(s: "Session", project: SfProject, payload: "SprintCreate", user: User) -> SfSprint:
    now = datetime.utcnow()
    sprint = SfSprint(
        project_id=project.id,
        name=payload.name.strip(),
        goal=payload.goal,
        state="planned",
        start_date=payload.start_date,
        end_date=payload.end_date,
        created_at=now,
        updated_at=now,
    )
    s.add(sprint)
    s.flush()
    record_event(s, actor=user, action="stratflow.sprint.create", entity_type="SfSprint", entity_id=str(sprint.id))
    return sprint


def load_sprint(s: "Session", sprint_id: int, user: User) -> tuple[SfSprint, SfProject]:
    sprint = s.get(SfSprint, sprint_id)
    if sprint is None:
        raise ApiError("not_found", 404)
    return sprint, load_project(s, sprint.project_id, user)


def set_active_sprint(s: "Session", sprint: SfSprint) -> None:
    """Only one sprint per project may be active; others fall back to planned."""
    now = datetime.utcnow()
    for other in (
        s.query(SfSprint)
        .filter(SfSprint.project_id == sprint.project_id, SfSprint.state == "active", SfSprint.id != sprint.id)
        .all()
    ):
        other.state = "planned"
        other.updated_at = now
    sprint.state = "active"
    sprint.updated_at = now


def update_sprint(s: "Session", sprint: SfSprint, payload: "SprintUpdate", user: User) -> SfSprint:
    data = payload.model_dump(exclude_unset=True)
    if data.get("name"):
        sprint.name = data["name"].strip()
    for field in ("goal", "start_date", "end_date"):
        if field in data:
            setattr(sprint, field, data[field])
    if data.get("state") == "active":
        set_active_sprint(s, sprint)
    elif data.get("state"):
        sprint.state = data["state"]
    sprint.updated_at = datetime.utcnow()
    record_event(
        s, actor=user, action="stratflow.sprint.edit", entity_type="SfSprint", entity_id=str(sprint.id),
        metadata={"fields": sorted(data)},
    )
    return sprint


# ---------- Comments / members / components ----------
def list_comments(s: "Session", issue: SfIssue) -> list[SfComment]:
    return s.query(SfComment).filter(SfComment.issue_id == issue.id).order_by(SfComment.created_at.asc()).all()


def add_comment(s: "Session", issue: SfIssue, body: str, user: User) -> SfComment:
    comment = SfComment(issue_id=issue.id, author_id=user.id, body=body, created_at=datetime.utcnow())
    s.add(comment)
    s.flush()
    return comment


def list_members(s: "Session", project: SfProject) -> list[dict]:
    users = s.query(User).filter(User.id.in_(project.member_ids())).order_by(User.email.asc()).all()
    return [{**u.to_dict(), "is_owner": u.id == project.owner_user_id} for u in users]


def list_components(s: "Session", project: SfProject) -> list[SfComponent]:
    return s.query(SfComponent).filter(SfComponent.project_id == project.id).order_by(SfComponent.name.asc()).all()


# ---------- Admin ----------
def delete_project(s: "Session", project: SfProject, user: User) -> dict:
    issue_ids = [i for (i,) in s.query(SfIssue.id).filter(SfIssue.project_id == project.id).all()]
    board_ids = [b for (b,) in s.query(SfBoard.id).filter(SfBoard.project_id == project.id).all()]
    counts = {
        "comments": s.query(SfComment).filter(SfComment.issue_id.in_(issue_ids)).delete(synchronize_session=False)
        if issue_ids
        else 0,
        "issues": s.query(SfIssue).filter(SfIssue.project_id == project.id).delete(synchronize_session=False),
        "sprints": s.query(SfSprint).filter(SfSprint.project_id == project.id).delete(synchronize_session=False),
        "components": s.query(SfComponent)
        .filter(SfComponent.project_id == project.id)
        .delete(synchronize_session=False),
        "columns": s.query(SfColumn).filter(SfColumn.board_id.in_(board_ids)).delete(synchronize_session=False)
        if board_ids
        else 0,
        "boards": s.query(SfBoard).filter(SfBoard.project_id == project.id).delete(synchronize_session=False),
    }
    record_event(
        s,
        actor=user,
        action="stratflow.project.delete",
        entity_type="SfProject",
        entity_id=str(project.id),
        metadata={"key": project.key, **counts},
    )
    s.delete(project)
    return counts


def add_member(s: "Session", project: SfProject, user_id: int, actor: User) -> SfProject:
    if s.get(User, user_id) is None:
        raise ApiError("user_not_found", 404)
    if user_id == project.owner_user_id or user_id in (project.team_ids or []):
        return project
    if len(project.team_ids or []) >= MAX_LIST_ITEMS:
        raise ApiError("too_many_members", 400)
    project.team_ids = [*(project.team_ids or []), user_id]
    project.updated_at = datetime.utcnow()
    record_event(
        s, actor=actor, action="stratflow.member.add", entity_type="SfProject", entity_id=str(project.id),
        metadata={"user_id": user_id},
    )
    return project


def remove_member(s: "Session", project: SfProject, user_id: int, actor: User) -> int:
    """Drop a member and unassign their issues; returns the number of issues unassigned."""
    if user_id == project.owner_user_id:
        raise ApiError("cannot_remove_owner", 400)
    project.team_ids = [i for i in (project.team_ids or []) if i != user_id]
    project.updated_at = datetime.utcnow()
    cleared = (
        s.query(SfIssue)
        .filter(SfIssue.project_id == project.id, SfIssue.assignee_id == user_id)
        .update({SfIssue.assignee_id: None}, synchronize_session=False)
    )
    record_event(
        s, actor=actor, action="stratflow.member.remove", entity_type="SfProject", entity_id=str(project.id),
        metadata={"user_id": user_id, "unassigned": cleared},
    )
    return cleared


def create_component(s: "Session", project: SfProject, name: str, actor: User) -> SfComponent:
    name = name.strip()
    if len(name) < 2:
        raise ApiError("invalid_name", 400)
    exists = (
        s.query(SfComponent.id)
        .filter(SfComponent.project_id == project.id, SfComponent.name_lower == name.lower())
        .first()
    )
    if exists:
        raise ApiError("component_exists", 409)
    comp = SfComponent(project_id=project.id, name=name, name_lower=name.lower(), created_at=datetime.utcnow())
    s.add(comp)
    s.flush()
    record_event(s, actor=actor, action="stratflow.component.create", entity_type="SfComponent", entity_id=str(comp.id))
    return comp


def delete_component(s: "Session", comp: SfComponent, actor: User) -> int:
    """Delete a component and pull it from every issue; returns issues touched."""
    touched = 0
    for issue in s.query(SfIssue).filter(SfIssue.project_id == comp.project_id).all():
        if comp.id in (issue.component_ids or []):
            issue.component_ids = [c for c in issue.component_ids if c != comp.id]
            touched += 1
    record_event(
        s, actor=actor, action="stratflow.component.delete", entity_type="SfComponent", entity_id=str(comp.id),
        metadata={"issues": touched},
    )
    s.delete(comp)
    return touched
