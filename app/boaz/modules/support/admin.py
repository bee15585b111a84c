from __future__ import annotations

from flask import Blueprint, current_app, request

from app.boaz.api import ApiError, current_user, get_or_404, ok, parse_body
from app.boaz.audit import record_event
from app.boaz.db import db_session
from app.boaz.models import Attachment
from app.boaz.modules.integrations.service import dispatch_event
from app.boaz.modules.support.alerts import run_sla_alerts
from app.boaz.modules.support.models import KbArticle, SupportTicket
from app.boaz.modules.support.schemas import (
    KbArticleCreate,
    KbArticleUpdate,
    TicketCommentCreate,
    TicketCreate,
    TicketUpdate,
)
from app.boaz.modules.support.service import (
    add_comment,
    create_kb_article,
    create_ticket,
    list_kb_articles,
    list_tickets,
    ticket_metrics,
    tickets_by_account,
    update_kb_article,
    update_ticket,
)
from app.boaz.rbac import require_permission
from app.boaz.storage import list_attachments, send_attachment, store_upload
from app.boaz.utils import arg_ids, arg_int, arg_str, sort_dir_desc

bp = Blueprint("support", __name__)


# ---------- Tickets ----------
@bp.get("/tickets")
@require_permission("support.view")
def tickets_list():
    s = db_session()
    items = list_tickets(
        s,
        q=arg_str("q"),
        status=arg_str("status"),
        priority=arg_str("priority"),
        account_id=arg_int("account_id"),
        contact_id=arg_int("contact_id"),
        breached=arg_str("breached") == "1",
        due_within_min=arg_int("due_within"),
        sort=arg_str("sort"),
        desc=sort_dir_desc(default=True),
    )
    return ok({"items": [t.to_dict() for t in items]})


@bp.get("/tickets/metrics")
@require_permission("support.view")
def tickets_metrics():
    return ok(ticket_metrics(db_session()))


@bp.get("/tickets/by-account")
@require_permission("support.view")
def tickets_by_account_view():
    return ok({"items": tickets_by_account(db_session(), arg_ids("account_ids"))})


@bp.post("/tickets")
@require_permission("support.edit")
def tickets_create():
    s = db_session()
    payload = parse_body(TicketCreate)
    ticket = create_ticket(s, payload, current_user())
    s.commit()
    dispatch_event(s, "support.ticket.created", ticket.to_dict(), source="support")
    return ok(ticket.to_dict(), 201)


@bp.get("/tickets/<int:ticket_id>")
@require_permission("support.view")
def ticket_detail(ticket_id: int):
    s = db_session()
    ticket = get_or_404(s, SupportTicket, ticket_id)
    data = ticket.to_dict()
    data["attachments"] = [a.to_dict() for a in list_attachments(s, "ticket", ticket.id)]
    return ok(data)


@bp.put("/tickets/<int:ticket_id>")
@require_permission("support.edit")
def ticket_update(ticket_id: int):
    s = db_session()
    ticket = get_or_404(s, SupportTicket, ticket_id)
    payload = parse_body(TicketUpdate)
    changes = update_ticket(s, ticket, payload, current_user())
    s.commit()
    if changes:
        dispatch_event(
            s,
            "support.ticket.updated",
            {"ticket": ticket.to_dict(), "changed": sorted(changes)},
            source="support",
        )
    return ok(ticket.to_dict())


@bp.post("/tickets/<int:ticket_id>/comments")
@require_permission("support.edit")
def ticket_comment(ticket_id: int):
    s = db_session()
    ticket = get_or_404(s, SupportTicket, ticket_id)
    payload = parse_body(TicketCommentCreate)
    comment = add_comment(s, ticket, payload, current_user())
    s.commit()
    return ok(comment, 201)


# ---------- Attachments ----------
@bp.get("/tickets/<int:ticket_id>/attachments")
@require_permission("support.view")
def ticket_attachments(ticket_id: int):
    s = db_session()
    ticket = get_or_404(s, SupportTicket, ticket_id)
    return ok({"items": [a.to_dict() for a in list_attachments(s, "ticket", ticket.id)]})


@bp.post("/tickets/<int:ticket_id>/attachments")
@require_permission("support.edit")
def ticket_attachment_upload(ticket_id: int):
    s = db_session()
    ticket = get_or_404(s, SupportTicket, ticket_id)
    f = request.files.get("file")
    if not f or not f.filename:
        raise ApiError("file_required", 400)
    att = store_upload(s, entity_type="ticket", entity_id=ticket.id, upload=f, user=current_user())
    s.commit()
    return ok(att.to_dict(), 201)


@bp.get("/tickets/<int:ticket_id>/attachments/<int:attachment_id>/download")
@require_permission("support.view")
def ticket_attachment_download(ticket_id: int, attachment_id: int):
    s = db_session()
    att = s.get(Attachment, attachment_id)
    if not att or att.entity_type != "ticket" or att.entity_id != ticket_id:
        raise ApiError("not_found", 404)
    return send_attachment(att)


# ---------- SLA alerts ----------
@bp.post("/alerts/run")
@require_permission("support.edit")
def alerts_run():
    s = db_session()
    result = run_sla_alerts(s, current_app.config)
    s.commit()
    return ok(result)


# ---------- Knowledge base ----------
@bp.get("/kb")
@require_permission("support.view")
def kb_list():
    items = list_kb_articles(db_session(), q=arg_str("q"), tag=arg_str("tag"))
    return ok({"items": [a.to_dict() for a in items]})


@bp.post("/kb")
@require_permission("support.edit")
def kb_create():
    s = db_session()
    article = create_kb_article(s, parse_body(KbArticleCreate), current_user())
    s.commit()
    return ok(article.to_dict(), 201)


@bp.get("/kb/<int:article_id>")
@require_permission("support.view")
def kb_detail(article_id: int):
    return ok(get_or_404(db_session(), KbArticle, article_id).to_dict())


@bp.put("/kb/<int:article_id>")
@require_permission("support.edit")
def kb_update(article_id: int):
    s = db_session()
    article = get_or_404(s, KbArticle, article_id)
    update_kb_article(s, article, parse_body(KbArticleUpdate), current_user())
    s.commit()
    return ok(article.to_dict())


@bp.delete("/kb/<int:article_id>")
@require_permission("support.edit")
def kb_delete(article_id: int):
    s = db_session()
    article = get_or_404(s, KbArticle, article_id)
    record_event(s, actor=current_user(), action="kb.delete", entity_type="KbArticle", entity_id=str(article.id))
    s.delete(article)
    s.commit()
    return ok({"ok": True})
