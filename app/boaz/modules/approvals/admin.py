from __future__ import annotations

from flask import Blueprint

from app.boaz.api import current_user, get_or_404, ok, parse_body
from app.boaz.db import db_session
from app.boaz.modules.approvals.models import ApprovalRequest
from app.boaz.modules.approvals.schemas import ApprovalDecision, ApprovalRequestCreate
from app.boaz.modules.approvals.service import create_request, decide, list_queue, notify_approver, notify_requester
from app.boaz.modules.integrations.service import dispatch_event
from app.boaz.rbac import require_login
from app.boaz.utils import arg_str

bp = Blueprint("approvals", __name__)


@bp.post("/requests")
@require_login
def requests_create():
    s = db_session()
    payload = parse_body(ApprovalRequestCreate)
    req = create_request(
        s,
        subject_type=payload.subject_type,
        subject_id=payload.subject_id,
        approver_email=str(payload.approver_email),
        requester=current_user(),
        title=payload.title,
        amount=payload.amount,
    )
    s.commit()
    notify_approver(req)
    return ok(req.to_dict(), 201)


@bp.get("/queue")
@require_login
def queue():
    s = db_session()
    items = list_queue(s, current_user(), arg_str("status") or "pending")
    return ok({"items": [r.to_dict() for r in items]})


@bp.get("/requests/<int:request_id>")
@require_login
def request_detail(request_id: int):
    return ok(get_or_404(db_session(), ApprovalRequest, request_id).to_dict())


def _decide(request_id: int, approve: bool):
    s = db_session()
    req = get_or_404(s, ApprovalRequest, request_id)
    payload = parse_body(ApprovalDecision)
    decide(s, req, current_user(), approve=approve, notes=payload.review_notes)
    s.commit()
    notify_requester(req)
    dispatch_event(s, "approval.decided", req.to_dict(), source="approvals")
    return ok(req.to_dict())


@bp.post("/requests/<int:request_id>/approve")
@require_login
def request_approve(request_id: int):
    return _decide(request_id, True)


@bp.post("/requests/<int:request_id>/reject")
@require_login
def request_reject(request_id: int):
    return _decide(request_id, False)
