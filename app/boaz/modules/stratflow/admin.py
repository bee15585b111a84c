from __future__ import annotations

from flask import Blueprint

from app.boaz.api import current_user, get_or_404, ok, parse_body
from app.boaz.db import db_session
from app.boaz.modules.integrations.service import dispatch_event
from app.boaz.modules.stratflow.models import SfComponent, SfProject
from app.boaz.modules.stratflow.schemas import (
    CommentCreate,
    ComponentCreate,
    IssueCreate,
    IssueMove,
    IssueUpdate,
    MemberAdd,
    ProjectCreate,
    ProjectUpdate,
    SprintCreate,
    SprintUpdate,
)
from app.boaz.modules.stratflow.service import (
    add_comment,
    add_member,
    board_view,
    create_component,
    create_issue,
    create_project,
    create_sprint,
    default_board_id,
    delete_component,
    delete_project,
    list_comments,
    list_components,
    list_members,
    list_project_issues,
    list_projects,
    list_sprints,
    load_board,
    load_issue,
    load_project,
    load_sprint,
    move_issue,
    project_boards,
    projects_by_account,
    remove_member,
    set_active_sprint,
    update_issue,
    update_project,
    update_sprint,
)
from app.boaz.rbac import SUPERUSER, require_login, require_permission
from app.boaz.utils import arg_ids, arg_int, arg_str

bp = Blueprint("stratflow", __name__)


# ---------- Projects ----------
@bp.get("/projects")
@require_login
def projects_list():
    items = list_projects(db_session(), current_user())
    return ok({"items": [p.to_dict() for p in items]})


@bp.post("/projects")
@require_login
def projects_create():
    s = db_session()
    project, board_id = create_project(s, parse_body(ProjectCreate), current_user())
    s.commit()
    return ok({"project": project.to_dict(), "default_board_id": board_id}, 201)


@bp.get("/projects/by-account")
@require_login
def projects_by_account_view():
    return ok({"items": projects_by_account(db_session(), arg_ids("account_ids"))})


@bp.get("/projects/<int:project_id>")
@require_login
def project_detail(project_id: int):
    s = db_session()
    project = load_project(s, project_id, current_user())
    boards = project_boards(s, project)
    return ok(
        {
            "project": project.to_dict(),
            "boards": [b.to_dict() for b in boards],
            "default_board_id": default_board_id(boards),
        }
    )


@bp.patch("/projects/<int:project_id>")
@require_login
def project_update(project_id: int):
    s = db_session()
    project = load_project(s, project_id, current_user())
    update_project(s, project, parse_body(ProjectUpdate), current_user())
    s.commit()
    return ok(project.to_dict())


@bp.get("/projects/<int:project_id>/boards")
@require_login
def project_boards_list(project_id: int):
    s = db_session()
    project = load_project(s, project_id, current_user())
    return ok({"items": [b.to_dict() for b in project_boards(s, project)]})


@bp.get("/boards/<int:board_id>")
@require_login
def board_detail(board_id: int):
    s = db_session()
    board, _ = load_board(s, board_id, current_user())
    return ok(board_view(s, board))


@bp.get("/projects/<int:project_id>/members")
@require_login
def project_members(project_id: int):
    s = db_session()
    project = load_project(s, project_id, current_user())
    return ok({"items": list_members(s, project)})


@bp.get("/projects/<int:project_id>/components")
@require_login
def project_components(project_id: int):
    s = db_session()
    project = load_project(s, project_id, current_user())
    return ok({"items": [c.to_dict() for c in list_components(s, project)]})


# ---------- Issues ----------
@bp.get("/projects/<int:project_id>/issues")
@require_login
def project_issues(project_id: int):
    s = db_session()
    project = load_project(s, project_id, current_user())
    items = list_project_issues(
        s,
        project,
        q=arg_str("q"),
        type=arg_str("type"),
        status_key=arg_str("status_key"),
        sprint=arg_str("sprint_id"),
        epic_id=arg_int("epic_id"),
        board_id=arg_int("board_id"),
    )
    return ok({"items": [i.to_dict() for i in items]})


@bp.post("/projects/<int:project_id>/issues")
@require_login
def project_issue_create(project_id: int):
    s = db_session()
    project = load_project(s, project_id, current_user())
    issue = create_issue(s, project, parse_body(IssueCreate), current_user())
    s.commit()
    dispatch_event(s, "stratflow.issue.created", issue.to_dict(), source="stratflow")
    return ok(issue.to_dict(), 201)


@bp.get("/issues/<int:issue_id>")
@require_login
def issue_detail(issue_id: int):
    issue, _ = load_issue(db_session(), issue_id, current_user())
    return ok(issue.to_dict())


@bp.patch("/issues/<int:issue_id>")
@require_login
def issue_update(issue_id: int):
    s = db_session()
    issue, project = load_issue(s, issue_id, current_user())
    update_issue(s, issue, project, parse_body(IssueUpdate), current_user())
    s.commit()
    return ok(issue.to_dict())


@bp.patch("/issues/<int:issue_id>/move")
@require_login
def issue_move(issue_id: int):
    s = db_session()
    issue, _ = load_issue(s, issue_id, current_user())
    payload = parse_body(IssueMove)
    move_issue(s, issue, payload.to_column_id, payload.to_index, current_user())
    s.commit()
    return ok(issue.to_dict())


@bp.get("/issues/<int:issue_id>/comments")
@require_login
def issue_comments(issue_id: int):
    s = db_session()
    issue, _ = load_issue(s, issue_id, current_user())
    return ok({"items": [c.to_dict() for c in list_comments(s, issue)]})


@bp.post("/issues/<int:issue_id>/comments")
@require_login
def issue_comment_create(issue_id: int):
    s = db_session()
    issue, _ = load_issue(s, issue_id, current_user())
    comment = add_comment(s, issue, parse_body(CommentCreate).body, current_user())
    s.commit()
    return ok(comment.to_dict(), 201)


# ---------- Sprints ----------
@bp.get("/projects/<int:project_id>/sprints")
@require_login
def sprints_list(project_id: int):
    s = db_session()
    project = load_project(s, project_id, current_user())
    return ok({"items": [sp.to_dict() for sp in list_sprints(s, project)]})


@bp.post("/projects/<int:project_id>/sprints")
@require_login
def sprints_create(project_id: int):
    s = db_session()
    project = load_project(s, project_id, current_user())
    sprint = create_sprint(s, project, parse_body(SprintCreate), current_user())
    s.commit()
    return ok(sprint.to_dict(), 201)


@bp.patch("/sprints/<int:sprint_id>")
@require_login
def sprint_update(sprint_id: int):
    s = db_session()
    sprint, _ = load_sprint(s, sprint_id, current_user())
    update_sprint(s, sprint, parse_body(SprintUpdate), current_user())
    s.commit()
    return ok(sprint.to_dict())


@bp.post("/sprints/<int:sprint_id>/set-active")
@require_login
def sprint_set_active(sprint_id: int):
    s = db_session()
    sprint, _ = load_sprint(s, sprint_id, current_user())
    set_active_sprint(s, sprint)
    s.commit()
    return ok(sprint.to_dict())


# ---------- Admin ----------
@bp.get("/admin/projects")
@require_permission(SUPERUSER)
def admin_projects():
    s = db_session()
    items = s.query(SfProject).order_by(SfProject.created_at.desc()).all()
    return ok({"items": [p.to_dict() for p in items]})


@bp.delete("/admin/projects/<int:project_id>")
@require_permission(SUPERUSER)
def admin_project_delete(project_id: int):
    s = db_session()
    project = get_or_404(s, SfProject, project_id)
    counts = delete_project(s, project, current_user())
    s.commit()
    return ok({"ok": True, "deleted": counts})


@bp.post("/admin/projects/<int:project_id>/members")
@require_permission(SUPERUSER)
def admin_member_add(project_id: int):
    s = db_session()
    project = get_or_404(s, SfProject, project_id)
    add_member(s, project, parse_body(MemberAdd).user_id, current_user())
    s.commit()
    return ok(project.to_dict())


@bp.delete("/admin/projects/<int:project_id>/members/<int:user_id>")
@require_permission(SUPERUSER)
def admin_member_remove(project_id: int, user_id: int):
    s = db_session()
    project = get_or_404(s, SfProject, project_id)
    cleared = remove_member(s, project, user_id, current_user())
    s.commit()
    return ok({"project": project.to_dict(), "unassigned": cleared})


@bp.post("/admin/projects/<int:project_id>/components")
@require_permission(SUPERUSER)
def admin_component_create(project_id: int):
    s = db_session()
    project = get_or_404(s, SfProject, project_id)
    comp = create_component(s, project, parse_body(ComponentCreate).name, current_user())
    s.commit()
    return ok(comp.to_dict(), 201)


@bp.delete("/admin/components/<int:component_id>")
@require_permission(SUPERUSER)
def admin_component_delete(component_id: int):
    s = db_session()
    comp = get_or_404(s, SfComponent, component_id)
    touched = delete_component(s, comp, current_user())
    s.commit()
    return ok({"ok": True, "issues_updated": touched})
