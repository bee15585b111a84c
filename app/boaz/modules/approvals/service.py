from __future__ import annotations

import logging
from datetime import datetime
from typing import TYPE_CHECKING

from flask import current_app

from app.boaz.api import ApiError
from app.boaz.audit import record_event
from app.boaz.mail import send_mail
from app.boaz.models import User
from app.boaz.modules.accounting.models import Expense
from app.boaz.modules.approvals.models import ApprovalRequest
from app.boaz.rbac import user_has_role

if TYPE_CHECKING:
    from sqlalchemy.orm import Session

logger = logging.getLogger(__name__)

APPROVER_ROLES = ("manager", "admin")
QUEUE_LIMIT = 100


def find_approver(s: "Session", email: str) -> User:
    approver = s.query(User).filter(User.email == email.strip().lower()).one_or_none()
    if approver is None:
        raise ApiError("approver_not_found", 404)
    if not user_has_role(approver, *APPROVER_ROLES):
        raise ApiError("approver_not_manager", 403)
    return approver


def create_request(
    s: "Session",
    *,
    subject_type: str,
    subject_id: int,
    approver_email: str,
    requester: User,
    title: str | None = None,
    amount: float | None = None,
) -> ApprovalRequest:
    approver = find_approver(s, approver_email)
    existing = (
        s.query(ApprovalRequest.id)
        .filter(
            ApprovalRequest.subject_type == subject_type,
            ApprovalRequest.subject_id == subject_id,
            ApprovalRequest.approver_email == approver.email,
            ApprovalRequest.status == "pending",
        )
        .first()
    )
    if existing:
        raise ApiError("approval_request_already_exists", 400)

    req = ApprovalRequest(
        subject_type=subject_type,
        subject_id=subject_id,
        title=(title or "").strip() or f"{subject_type.title()} #{subject_id}",
        amount=amount,
        requester_id=requester.id,
        requester_email=requester.email,
        requester_name=requester.name,
        approver_id=approver.id,
        approver_email=approver.email,
        status="pending",
        requested_at=datetime.utcnow(),
    )
    s.add(req)
    s.flush()
    record_event(
        s,
        actor=requester,
        action="approval.request",
        entity_type="ApprovalRequest",
        entity_id=str(req.id),
        metadata={"subject_type": subject_type, "subject_id": subject_id, "approver": approver.email},
    )
    return req


def notify_approver(req: ApprovalRequest) -> bool:
    base = (current_app.config.get("APP_BASE_URL") or "").rstrip("/")
    amount = f"\nAmount: {req.amount:,.2f}" if req.amount is not None else ""
    text = (
        f"{req.requester_name or req.requester_email} requested your approval.\n\n"
        f"{req.title}{amount}\n\n"
        f"Review it at {base}/approvals"
    )
    return send_mail(req.approver_email, f"Approval requested: {req.title}", text)


def notify_requester(req: ApprovalRequest) -> bool:
    if not req.requester_email:
        return False
    notes = f"\n\nNotes: {req.review_notes}" if req.review_notes else ""
    text = f"Your request \"{req.title}\" was {req.status} by {req.reviewed_by}.{notes}"
    return send_mail(req.requester_email, f"Approval {req.status}: {req.title}", text)


def list_queue(s: "Session", user: User, status: str = "pending") -> list[ApprovalRequest]:
    if not user_has_role(user, *APPROVER_ROLES):
        raise ApiError("manager_access_required", 403)
    query = s.query(ApprovalRequest).filter(ApprovalRequest.approver_email == user.email)
    if status and status != "all":
        query = query.filter(ApprovalRequest.status == status)
    return query.order_by(ApprovalRequest.requested_at.desc(), ApprovalRequest.id.desc()).limit(QUEUE_LIMIT).all()


def _apply_to_subject(s: "Session", req: ApprovalRequest) -> None:
    if req.subject_type != "expense":
        return
    expense = s.get(Expense, req.subject_id)
    if expense is None:
        logger.warning("Approval %s decided for missing expense %s", req.id, req.subject_id)
        return
    if expense.status in ("draft", "pending_approval", "rejected"):
        expense.status = req.status
        expense.updated_at = datetime.utcnow()
        if req.status == "approved":
            expense.approved_at = req.reviewed_at
            expense.approved_by = req.reviewed_by


def decide(s: "Session", req: ApprovalRequest, user: User, *, approve: bool, notes: str | None) -> ApprovalRequest:
    if (req.approver_email or "").lower() != user.email.lower():
        raise ApiError("not_assigned_approver", 403)
    if req.status != "pending":
        raise ApiError("already_reviewed", 400)

    req.status = "approved" if approve else "rejected"
    req.reviewed_at = datetime.utcnow()
    req.reviewed_by = user.email
    req.review_notes = (notes or "").strip() or None
    _apply_to_subject(s, req)
    record_event(
        s,
        actor=user,
        action=f"approval.{req.status}",
        entity_type="ApprovalRequest",
        entity_id=str(req.id),
        metadata={"subject_type": req.subject_type, "subject_id": req.subject_id},
    )
    return req
