from __future__ import annotations

import html
import secrets
from datetime import date, datetime, timedelta
from typing import TYPE_CHECKING

from flask import current_app

from app.boaz.api import ApiError
from app.boaz.audit import record_event
from app.boaz.counters import assign_number
from app.boaz.mail import send_mail
from app.boaz.modules.accounts.models import Account
from app.boaz.modules.contracts.models import Contract, ContractTemplate, SignatureInvite

if TYPE_CHECKING:
    from sqlalchemy.orm import Session
    from app.boaz.models import User
    from app.boaz.modules.contracts.schemas import (
        ContractCreate,
        ContractUpdate,
        InviteCreate,
        SignSubmit,
        TemplateCreate,
        TemplateUpdate,
    )

CONTRACT_NUMBER_START = 1001
EXPIRING_WINDOW_DAYS = 90
ROLE_FIELDS = {
    "customer_signer": ("customer_signed_by", "customer_signed_at"),
    "provider_signer": ("provider_signed_by", "provider_signed_at"),
}


def render_template(body: str, *, contract_name: str, account_name: str) -> str:
    return (
        (body or "")
        .replace("{{contract_name}}", html.escape(contract_name))
        .replace("{{account_name}}", html.escape(account_name))
    )


# ---------- Contracts ----------
def list_contracts(
    s: "Session", *, q: str = "", account_id: int | None = None, status: str = "", limit: int = 200
) -> list[Contract]:
    query = s.query(Contract)
    if q:
        query = query.filter(Contract.name.ilike(f"%{q}%"))
    if account_id is not None:
        query = query.filter(Contract.account_id == account_id)
    if status:
        query = query.filter(Contract.status == status)
    return query.order_by(Contract.created_at.desc(), Contract.id.desc()).limit(limit).all()


def create_contract(s: "Session", payload: "ContractCreate", user: "User | None") -> Contract:
    data = payload.model_dump()
    if data.get("billing_email"):
        data["billing_email"] = str(data["billing_email"]).lower()
    if payload.template_id is not None:
        template = s.get(ContractTemplate, payload.template_id)
        if template is None:
            raise ApiError("template_not_found", 404)
        if not payload.html_body:
            account = s.get(Account, payload.account_id) if payload.account_id else None
            data["html_body"] = render_template(
                template.html_body, contract_name=payload.name, account_name=account.name if account else ""
            )
    now = datetime.utcnow()

    def build(number: int) -> Contract:
        return Contract(
            **data,
            contract_number=number,
            signature_audit=[],
            created_at=now,
            updated_at=now,
            created_by_user_id=user.id if user else None,
        )

    contract = assign_number(
        s, build, counter="contractNumber", start=CONTRACT_NUMBER_START, column=Contract.contract_number
    )
    record_event(
        s,
        actor=user,
        action="contract.create",
        entity_type="Contract",
        entity_id=str(contract.id),
        metadata={"contract_number": contract.contract_number, "name": contract.name},
    )
    return contract


def update_contract(s: "Session", contract: Contract, payload: "ContractUpdate", user: "User | None") -> Contract:
    data = payload.model_dump(exclude_unset=True)
    for field, value in data.items():
        if value is None and field in ("name", "type", "status", "auto_renew"):
            continue
        if field == "billing_email" and value:
            value = str(value).lower()
        setattr(contract, field, value)
    contract.updated_at = datetime.utcnow()
    record_event(
        s,
        actor=user,
        action="contract.edit",
        entity_type="Contract",
        entity_id=str(contract.id),
        metadata={"fields": sorted(data)},
    )
    return contract


def _min_present(current: int | None, value: int) -> int:
    return value if current is None else min(current, value)


def contracts_by_account(s: "Session", account_ids: list[int] | None = None, today: date | None = None) -> list[dict]:
    today = today or date.today()
    soon = today + timedelta(days=EXPIRING_WINDOW_DAYS)
    query = s.query(Contract).filter(Contract.status == "active", Contract.account_id.isnot(None))
    if account_ids:
        query = query.filter(Contract.account_id.in_(account_ids))
    out: dict[int, dict] = {}
    for c in query.all():
        row = out.setdefault(
            c.account_id,
            {
                "account_id": c.account_id,
                "active_count": 0,
                "expiring_soon": 0,
                "best_response": None,
                "best_resolution": None,
                "next_expiry": None,
            },
        )
        row["active_count"] += 1
        if c.end_date and today <= c.end_date <= soon:
            row["expiring_soon"] += 1
        if c.response_target_minutes is not None:
            row["best_response"] = _min_present(row["best_response"], c.response_target_minutes)
        if c.resolution_target_minutes is not None:
            row["best_resolution"] = _min_present(row["best_resolution"], c.resolution_target_minutes)
        if c.end_date and c.end_date >= today:
            current = row["next_expiry"]
            if current is None or c.end_date.isoformat() < current:
                row["next_expiry"] = c.end_date.isoformat()
    return list(out.values())


# ---------- Invites / signing ----------
def signing_url(token: str) -> str:
    base = (current_app.config.get("APP_BASE_URL") or "").rstrip("/")
    return f"{base}/public/sign/{token}"


def create_invite(s: "Session", contract: Contract, payload: "InviteCreate", user: "User | None") -> SignatureInvite:
    now = datetime.utcnow()
    invite = SignatureInvite(
        contract_id=contract.id,
        role=payload.role,
        email=str(payload.email).lower(),
        name=(payload.name or "").strip() or None,
        title=(payload.title or "").strip() or None,
        token=secrets.token_urlsafe(32),
        status="pending",
        expires_at=now + timedelta(days=payload.expires_in_days),
        created_at=now,
        created_by_user_id=user.id if user else None,
    )
    s.add(invite)
    s.flush()
    if contract.status == "draft":
        contract.status = "sent"
        contract.updated_at = now
    record_event(
        s,
        actor=user,
        action="contract.invite",
        entity_type="Contract",
        entity_id=str(contract.id),
        metadata={"role": invite.role, "email": invite.email},
    )
    return invite


def send_invite_email(contract: Contract, invite: SignatureInvite) -> bool:
    greeting = f"Hello {invite.name}," if invite.name else "Hello,"
    text = (
        f"{greeting}\n\n"
        f"You have been asked to sign \"{contract.name}\" (contract #{contract.contract_number}).\n\n"
        f"Review and sign: {signing_url(invite.token)}\n\n"
        f"This link expires on {invite.expires_at.strftime('%Y-%m-%d')}."
    )
    return send_mail(invite.email, f"Signature requested: {contract.name}", text)


def cancel_invite(s: "Session", invite: SignatureInvite, user: "User | None") -> SignatureInvite:
    if invite.status == "signed":
        raise ApiError("already_signed", 400)
    invite.status = "cancelled"
    record_event(
        s, actor=user, action="contract.invite_cancel", entity_type="Contract", entity_id=str(invite.contract_id),
        metadata={"invite_id": invite.id},
    )
    return invite


def resolve_invite(s: "Session", token: str, now: datetime | None = None) -> SignatureInvite:
    now = now or datetime.utcnow()
    invite = s.query(SignatureInvite).filter(SignatureInvite.token == token).one_or_none()
    if invite is None or invite.status == "cancelled":
        raise ApiError("invalid_or_expired", 404)
    if invite.status == "signed":
        raise ApiError("already_used", 410)
    if invite.expires_at < now:
        raise ApiError("expired", 410)
    return invite


def sign_contract(
    s: "Session",
    invite: SignatureInvite,
    payload: "SignSubmit",
    *,
    ip: str | None,
    user_agent: str | None,
) -> tuple[Contract, bool]:
    """Record a signature; returns (contract, fully_executed)."""
    contract = s.get(Contract, invite.contract_id)
    if contract is None:
        raise ApiError("invalid_or_expired", 404)
    now = datetime.utcnow()
    was_executed = contract.status == "active" and contract.executed_date is not None
    by_field, at_field = ROLE_FIELDS[invite.role]
    signer = payload.name.strip()
    setattr(contract, by_field, signer)
    setattr(contract, at_field, now)

    audit = list(contract.signature_audit or [])
    audit.append(
        {
            "event": "signed",
            "role": invite.role,
            "name": signer,
            "title": (payload.title or "").strip() or None,
            "email": str(payload.email).lower(),
            "invite_id": invite.id,
            "ip": ip,
            "user_agent": (user_agent or "")[:512] or None,
            "at": now.isoformat(),
        }
    )
    fully_executed = not was_executed and bool(contract.customer_signed_at and contract.provider_signed_at)
    if fully_executed:
        contract.status = "active"
        contract.executed_date = contract.executed_date or now
        audit.append({"event": "fully_executed", "at": now.isoformat()})
    contract.signature_audit = audit
    contract.updated_at = now

    invite.status = "signed"
    invite.signed_at = now
    record_event(
        s,
        actor=None,
        action="contract.sign",
        entity_type="Contract",
        entity_id=str(contract.id),
        metadata={"role": invite.role, "email": str(payload.email).lower(), "fully_executed": fully_executed},
    )
    return contract, fully_executed


# ---------- Templates ----------
def create_template(s: "Session", payload: "TemplateCreate", user: "User | None") -> ContractTemplate:
    key = payload.key.strip().lower()
    if s.query(ContractTemplate.id).filter(ContractTemplate.key == key).first():
        raise ApiError("duplicate_key", 409)
    now = datetime.utcnow()
    template = ContractTemplate(
        key=key,
        name=payload.name.strip(),
        description=payload.description,
        html_body=payload.html_body,
        created_at=now,
        updated_at=now,
    )
    s.add(template)
    s.flush()
    record_event(s, actor=user, action="contract_template.create", entity_type="ContractTemplate", entity_id=str(template.id))
    return template


def update_template(
    s: "Session", template: ContractTemplate, payload: "TemplateUpdate", user: "User | None"
) -> ContractTemplate:
    data = payload.model_dump(exclude_unset=True)
    if data.get("name"):
        template.name = data["name"].strip()
    if "description" in data:
        template.description = data["description"]
    if data.get("html_body") is not None:
        template.html_body = data["html_body"]
    template.updated_at = datetime.utcnow()
    record_event(
        s, actor=user, action="contract_template.edit", entity_type="ContractTemplate", entity_id=str(template.id),
        metadata={"fields": sorted(data)},
    )
    return template
