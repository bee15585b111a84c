from __future__ import annotations

from flask import Blueprint

from app.boaz.api import ApiError, current_user, get_or_404, ok, parse_body
from app.boaz.db import db_session
from app.boaz.modules.integrations.service import dispatch_event
from app.boaz.modules.tasks.models import Task
from app.boaz.modules.tasks.schemas import TaskCreate, TaskUpdate
from app.boaz.modules.tasks.service import (
    DEFAULT_LIMIT,
    complete_task,
    create_task,
    delete_task,
    list_tasks,
    task_counts,
    task_history,
    update_task,
)
from app.boaz.rbac import require_permission
from app.boaz.utils import arg_ids, arg_int, arg_str, sort_dir_desc

bp = Blueprint("tasks", __name__)


@bp.get("")
@require_permission("crm.view")
def tasks_list():
    s = db_session()
    result = list_tasks(
        s,
        current_user(),
        q=arg_str("q"),
        status=arg_str("status"),
        type=arg_str("type"),
        priority=arg_str("priority"),
        mine=arg_str("mine") in ("1", "true"),
        owner_id=arg_int("owner_id"),
        related_type=arg_str("related_type"),
        related_id=arg_int("related_id"),
        sort=arg_str("sort"),
        desc=sort_dir_desc(),
        page=arg_int("page", 1) or 1,
        limit=arg_int("limit", DEFAULT_LIMIT) or DEFAULT_LIMIT,
    )
    return ok(result)


@bp.get("/counts")
@require_permission("crm.view")
def tasks_counts():
    s = db_session()
    return ok(
        task_counts(
            s,
            related_type=arg_str("related_type"),
            related_ids=arg_ids("related_ids"),
            status=arg_str("status"),
        )
    )


@bp.post("")
@require_permission("crm.edit")
def tasks_create():
    s = db_session()
    task = create_task(s, parse_body(TaskCreate), current_user())
    s.commit()
    return ok(task.to_dict(), 201)


@bp.get("/<int:task_id>")
@require_permission("crm.view")
def task_detail(task_id: int):
    return ok(get_or_404(db_session(), Task, task_id).to_dict())


@bp.put("/<int:task_id>")
@require_permission("crm.edit")
def task_update(task_id: int):
    s = db_session()
    task = get_or_404(s, Task, task_id)
    was_completed = task.status == "completed"
    update_task(s, task, parse_body(TaskUpdate), current_user())
    s.commit()
    if task.status == "completed" and not was_completed:
        dispatch_event(s, "task.completed", task.to_dict(), source="tasks")
    return ok(task.to_dict())


@bp.post("/<int:task_id>/complete")
@require_permission("crm.edit")
def task_complete(task_id: int):
    s = db_session()
    task = get_or_404(s, Task, task_id)
    changed = complete_task(s, task, current_user())
    s.commit()
    if changed:
        dispatch_event(s, "task.completed", task.to_dict(), source="tasks")
    return ok(task.to_dict())


@bp.delete("/<int:task_id>")
@require_permission("crm.edit")
def task_delete(task_id: int):
    s = db_session()
    task = get_or_404(s, Task, task_id)
    delete_task(s, task, current_user())
    s.commit()
    return ok({"ok": True})


@bp.get("/<int:task_id>/history")
@require_permission("crm.view")
def task_history_view(task_id: int):
    s = db_session()
    items = task_history(s, task_id)
    # History survives deletion, so only 404 when nothing was ever recorded.
    if not items and s.get(Task, task_id) is None:
        raise ApiError("not_found", 404)
    return ok({"items": [h.to_dict() for h in items]})
