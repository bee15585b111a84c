from __future__ import annotations

from datetime import datetime, timedelta
from typing import TYPE_CHECKING

from sqlalchemy import and_, case, func

from app.boaz.audit import record_event
from app.boaz.counters import assign_number
from app.boaz.modules.support.models import KbArticle, SupportTicket

if TYPE_CHECKING:
    from sqlalchemy.orm import Session
    from app.boaz.models import User
    from app.boaz.modules.support.schemas import (
        KbArticleCreate,
        KbArticleUpdate,
        TicketCommentCreate,
        TicketCreate,
        TicketUpdate,
    )


TICKET_NUMBER_START = 200001
ACTIVE_STATUSES = ("open", "pending")
HIGH_PRIORITIES = ("high", "urgent", "p1")
LIST_LIMIT = 200

SORT_FIELDS = {
    "created_at": SupportTicket.created_at,
    "updated_at": SupportTicket.updated_at,
    "priority": SupportTicket.priority,
    "status": SupportTicket.status,
    "ticket_number": SupportTicket.ticket_number,
    "sla_due_at": SupportTicket.sla_due_at,
}


def list_tickets(
    s: "Session",
    *,
    q: str = "",
    status: str = "",
    priority: str = "",
    account_id: int | None = None,
    contact_id: int | None = None,
    breached: bool = False,
    due_within_min: int | None = None,
    sort: str = "",
    desc: bool = True,
    now: datetime | None = None,
) -> list[SupportTicket]:
    now = now or datetime.utcnow()
    query = s.query(SupportTicket)
    if q:
        like = f"%{q}%"
        query = query.filter(
            (SupportTicket.short_description.ilike(like)) | (SupportTicket.description.ilike(like))
        )
    if status:
        query = query.filter(SupportTicket.status == status)
    if priority:
        query = query.filter(SupportTicket.priority == priority)
    if account_id is not None:
        query = query.filter(SupportTicket.account_id == account_id)
    if contact_id is not None:
        query = query.filter(SupportTicket.contact_id == contact_id)
    if breached:
        query = query.filter(
            SupportTicket.status.in_(ACTIVE_STATUSES),
            SupportTicket.sla_due_at.isnot(None),
            SupportTicket.sla_due_at < now,
        )
    if due_within_min and due_within_min > 0:
        query = query.filter(
            SupportTicket.status.in_(ACTIVE_STATUSES),
            SupportTicket.sla_due_at.isnot(None),
            SupportTicket.sla_due_at >= now,
            SupportTicket.sla_due_at <= now + timedelta(minutes=due_within_min),
        )
    col = SORT_FIELDS.get(sort, SupportTicket.created_at)
    query = query.order_by(col.desc() if desc else col.asc(), SupportTicket.id.desc())
    return query.limit(LIST_LIMIT).all()


def ticket_metrics(s: "Session", now: datetime | None = None) -> dict:
    now = now or datetime.utcnow()
    active = SupportTicket.status.in_(ACTIVE_STATUSES)
    open_count = s.query(func.count(SupportTicket.id)).filter(active).scalar() or 0
    breached = (
        s.query(func.count(SupportTicket.id))
        .filter(active, SupportTicket.sla_due_at.isnot(None), SupportTicket.sla_due_at < now)
        .scalar()
        or 0
    )
    due_next_60 = (
        s.query(func.count(SupportTicket.id))
        .filter(
            active,
            SupportTicket.sla_due_at >= now,
            SupportTicket.sla_due_at <= now + timedelta(minutes=60),
        )
        .scalar()
        or 0
    )
    return {"open": open_count, "breached": breached, "due_next_60": due_next_60}


def tickets_by_account(s: "Session", account_ids: list[int] | None = None, now: datetime | None = None) -> list[dict]:
    """Open/high/breached counts per account, over open and pending tickets."""
    now = now or datetime.utcnow()
    high = func.sum(case((SupportTicket.priority.in_(HIGH_PRIORITIES), 1), else_=0))
    breached = func.sum(
        case(
            (and_(SupportTicket.sla_due_at.isnot(None), SupportTicket.sla_due_at < now), 1),
            else_=0,
        )
    )
    query = (
        s.query(SupportTicket.account_id, func.count(SupportTicket.id), high, breached)
        .filter(SupportTicket.status.in_(ACTIVE_STATUSES), SupportTicket.account_id.isnot(None))
        .group_by(SupportTicket.account_id)
    )
    if account_ids:
        query = query.filter(SupportTicket.account_id.in_(account_ids))
    return [
        {"account_id": acc_id, "open": int(n or 0), "high": int(h or 0), "breached": int(b or 0)}
        for acc_id, n, h, b in query.all()
    ]


def create_ticket(s: "Session", payload: "TicketCreate", user: "User | None") -> SupportTicket:
    now = datetime.utcnow()

    def build(number: int) -> SupportTicket:
        return SupportTicket(
            ticket_number=number,
            short_description=payload.short_description,
            description=payload.description,
            status=payload.status,
            priority=payload.priority,
            account_id=payload.account_id,
            contact_id=payload.contact_id,
            assignee=(payload.assignee or "").strip() or None,
            sla_due_at=payload.sla_due_at,
            comments=[],
            created_at=now,
            updated_at=now,
            created_by_user_id=user.id if user else None,
        )

    ticket = assign_number(
        s, build, counter="ticketNumber", start=TICKET_NUMBER_START, column=SupportTicket.ticket_number
    )
    record_event(
        s,
        actor=user,
        action="ticket.create",
        entity_type="SupportTicket",
        entity_id=str(ticket.id),
        metadata={"ticket_number": ticket.ticket_number, "priority": ticket.priority},
    )
    return ticket


def update_ticket(s: "Session", ticket: SupportTicket, payload: "TicketUpdate", user: "User | None") -> dict:
    changes = {}
    for field, value in payload.model_dump(exclude_unset=True).items():
        if value is None and field in ("short_description", "status", "priority"):
            continue
        if field == "short_description":
            value = value.strip()
            if not value:
                continue
        old = getattr(ticket, field)
        if old != value:
            changes[field] = {"old": old, "new": value}
            setattr(ticket, field, value)

    ticket.updated_at = datetime.utcnow()
    record_event(
        s,
        actor=user,
        action="ticket.edit",
        entity_type="SupportTicket",
        entity_id=str(ticket.id),
        metadata={"ticket_number": ticket.ticket_number, "changes": changes},
    )
    return changes


def add_comment(s: "Session", ticket: SupportTicket, payload: "TicketCommentCreate", user: "User | None") -> dict:
    author = (payload.author or "").strip() or (user.email if user else "system")
    comment = {"author": author, "body": payload.body, "at": datetime.utcnow().isoformat()}
    # Reassign so the JSON column is flagged dirty.
    ticket.comments = [*(ticket.comments or []), comment]
    ticket.updated_at = datetime.utcnow()
    record_event(
        s,
        actor=user,
        action="ticket.comment",
        entity_type="SupportTicket",
        entity_id=str(ticket.id),
        metadata={"ticket_number": ticket.ticket_number},
    )
    return comment


# ---------- Knowledge base ----------
def list_kb_articles(s: "Session", *, q: str = "", tag: str = "") -> list[KbArticle]:
    query = s.query(KbArticle)
    if q:
        like = f"%{q}%"
        query = query.filter((KbArticle.title.ilike(like)) | (KbArticle.body.ilike(like)))
    articles = query.order_by(KbArticle.updated_at.desc()).limit(LIST_LIMIT).all()
    if tag:
        # Tags live in a JSON list; filter in Python to stay portable across SQLite/Postgres.
        articles = [a for a in articles if tag in (a.tags or [])]
    return articles


def create_kb_article(s: "Session", payload: "KbArticleCreate", user: "User | None") -> KbArticle:
    from app.boaz.utils import normalize_str_list

    now = datetime.utcnow()
    article = KbArticle(
        title=payload.title.strip(),
        body=payload.body,
        category=(payload.category or "").strip() or None,
        tags=normalize_str_list(payload.tags),
        created_at=now,
        updated_at=now,
        author_user_id=user.id if user else None,
    )
    s.add(article)
    s.flush()
    record_event(s, actor=user, action="kb.create", entity_type="KbArticle", entity_id=str(article.id))
    return article


def update_kb_article(s: "Session", article: KbArticle, payload: "KbArticleUpdate", user: "User | None") -> KbArticle:
    from app.boaz.utils import normalize_str_list

    data = payload.model_dump(exclude_unset=True)
    if data.get("title"):
        article.title = data["title"].strip()
    if data.get("body") is not None:
        article.body = data["body"]
    if "category" in data:
        article.category = (data["category"] or "").strip() or None
    if data.get("tags") is not None:
        article.tags = normalize_str_list(data["tags"])
    article.updated_at = datetime.utcnow()
    record_event(
        s,
        actor=user,
        action="kb.edit",
        entity_type="KbArticle",
        entity_id=str(article.id),
        metadata={"fields": sorted(data)},
    )
    return article
