from __future__ import annotations

from datetime import date, datetime
from typing import TYPE_CHECKING

from sqlalchemy import case, func, or_

from app.boaz.api import ApiError
from app.boaz.audit import record_event
from app.boaz.models import User
from app.boaz.modules.tasks.models import Task, TaskHistory
from app.boaz.modules.tasks.schemas import RELATED_TYPES
from app.boaz.utils import iso, parse_datetime

if TYPE_CHECKING:
    from sqlalchemy.orm import Session
    from app.boaz.modules.tasks.schemas import TaskCreate, TaskUpdate


MAX_LIMIT = 200
DEFAULT_LIMIT = 50
OPEN_STATUSES = ("open", "in_progress")

_PRIORITY_RANK = case(
    (Task.priority == "high", 2),
    (Task.priority == "normal", 1),
    else_=0,
)

SORT_FIELDS = {
    "due_at": Task.due_at,
    "created_at": Task.created_at,
    "priority": _PRIORITY_RANK,
    "status": Task.status,
}


def _parse_due_at(raw: str | None) -> datetime | None:
    try:
        return parse_datetime(raw)
    except ValueError:
        raise ApiError("invalid_due_at", 400, {"due_at": raw})


def _json_value(value):
    if isinstance(value, (datetime, date)):
        return iso(value)
    return value


def _history(s: "Session", task_id: int, event: str, user: User | None, changes: dict | None = None) -> None:
    s.add(
        TaskHistory(
            task_id=task_id,
            event=event,
            actor_id=user.id if user else None,
            actor_email=user.email if user else None,
            changes=changes or None,
        )
    )


def _resolve_owner(s: "Session", owner_id: int | None, user: User | None) -> User | None:
    if owner_id is None:
        return user
    owner = s.get(User, owner_id)
    if owner is None:
        raise ApiError("invalid_owner", 400, {"owner_id": owner_id})
    return owner


def list_tasks(
    s: "Session",
    user: User,
    *,
    q: str = "",
    status: str = "",
    type: str = "",
    priority: str = "",
    mine: bool = False,
    owner_id: int | None = None,
    related_type: str = "",
    related_id: int | None = None,
    sort: str = "",
    desc: bool = False,
    page: int = 1,
    limit: int = DEFAULT_LIMIT,
) -> dict:
    page = max(1, page)
    limit = max(1, min(limit, MAX_LIMIT))

    query = s.query(Task)
    if q:
        like = f"%{q}%"
        query = query.filter(or_(Task.subject.ilike(like), Task.description.ilike(like)))
    if status:
        query = query.filter(Task.status == status)
    if type:
        query = query.filter(Task.type == type)
    if priority:
        query = query.filter(Task.priority == priority)
    if mine:
        query = query.filter(Task.owner_id == user.id)
    elif owner_id is not None:
        query = query.filter(Task.owner_id == owner_id)
    if related_type:
        query = query.filter(Task.related_type == related_type)
    if related_id is not None:
        query = query.filter(Task.related_id == related_id)

    total = query.count()
    col = SORT_FIELDS.get(sort or "due_at", Task.created_at)
    ordered = col.desc() if desc else col.asc()
    if col is Task.due_at:
        # Undated tasks go last either way.
        query = query.order_by(Task.due_at.is_(None), ordered, Task.id.asc())
    else:
        query = query.order_by(ordered, Task.id.asc())
    items = query.offset((page - 1) * limit).limit(limit).all()
    return {"items": [t.to_dict() for t in items], "total": total, "page": page, "limit": limit}


def task_counts(s: "Session", *, related_type: str, related_ids: list[int], status: str = "") -> dict:
    """Task counts per related record, e.g. for badges on an account list."""
    if related_type not in RELATED_TYPES:
        raise ApiError("invalid_related_type", 400, {"related_type": related_type})
    query = s.query(Task.related_id, func.count(Task.id)).filter(Task.related_type == related_type)
    if related_ids:
        query = query.filter(Task.related_id.in_(related_ids))
    if status == "open":
        query = query.filter(Task.status.in_(OPEN_STATUSES))
    elif status:
        query = query.filter(Task.status == status)
    counts = {str(rid): 0 for rid in related_ids}
    for rid, n in query.group_by(Task.related_id).all():
        if rid is not None:
            counts[str(rid)] = int(n)
    return {"related_type": related_type, "counts": counts}


def create_task(s: "Session", payload: "TaskCreate", user: User | None) -> Task:
    data = payload.model_dump()
    due_at = _parse_due_at(data.pop("due_at"))
    owner = _resolve_owner(s, data.pop("owner_id"), user)
    task = Task(
        **data,
        due_at=due_at,
        owner_id=owner.id if owner else None,
        owner_name=(owner.name or owner.email) if owner else None,
    )
    if task.status == "completed":
        task.completed_at = datetime.utcnow()
    s.add(task)
    s.flush()
    _history(s, task.id, "created", user, {"subject": task.subject, "status": task.status})
    record_event(
        s, actor=user, action="task.create", entity_type="Task", entity_id=str(task.id),
        metadata={"subject": task.subject},
    )
    return task


def _set_status(s: "Session", task: Task, status: str, user: User | None) -> None:
    old = task.status
    if old == status:
        return
    task.status = status
    if status == "completed":
        task.completed_at = datetime.utcnow()
        event = "completed"
    elif old == "completed":
        task.completed_at = None
        event = "reopened"
    else:
        event = "status_changed"
    _history(s, task.id, event, user, {"status": {"old": old, "new": status}})


def update_task(s: "Session", task: Task, payload: "TaskUpdate", user: User | None) -> dict:
    data = payload.model_dump(exclude_unset=True)
    status = data.pop("status", None)

    if "due_at" in data:
        data["due_at"] = _parse_due_at(data["due_at"])
    if "owner_id" in data:
        owner = _resolve_owner(s, data["owner_id"], None) if data["owner_id"] is not None else None
        data["owner_name"] = (owner.name or owner.email) if owner else None

    changes = {}
    for field, value in data.items():
        if value is None and field in ("type", "subject", "priority"):
            continue
        old = getattr(task, field)
        if old != value:
            changes[field] = {"old": _json_value(old), "new": _json_value(value)}
            setattr(task, field, value)
    if changes:
        _history(s, task.id, "updated", user, changes)
    if status is not None:
        _set_status(s, task, status, user)
    task.updated_at = datetime.utcnow()
    record_event(
        s, actor=user, action="task.edit", entity_type="Task", entity_id=str(task.id),
        metadata={"changes": changes, "status": task.status},
    )
    return changes


def complete_task(s: "Session", task: Task, user: User | None) -> bool:
    """Mark done; returns False when it already was."""
    if task.status == "completed":
        return False
    _set_status(s, task, "completed", user)
    task.updated_at = datetime.utcnow()
    record_event(s, actor=user, action="task.complete", entity_type="Task", entity_id=str(task.id))
    return True


def delete_task(s: "Session", task: Task, user: User | None) -> None:
    _history(s, task.id, "deleted", user, {"subject": task.subject})
    record_event(
        s, actor=user, action="task.delete", entity_type="Task", entity_id=str(task.id),
        metadata={"subject": task.subject},
    )
    s.delete(task)


def task_history(s: "Session", task_id: int) -> list[TaskHistory]:
    return (
        s.query(TaskHistory)
        .filter(TaskHistory.task_id == task_id)
        .order_by(TaskHistory.created_at.asc(), TaskHistory.id.asc())
        .all()
    )
